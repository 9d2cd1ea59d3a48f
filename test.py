#!/usr/bin/env python3

from dataclasses import dataclass
import subprocess as sp
import typing as tp
from pathlib import Path
import sys
from concurrent import futures as fut
from enum import Enum

from tqdm import tqdm

from libcli import *
from py_util import *

argparser=ArgParser("run the fixture tests through the lexpp driver")

argparser.add(name="--target",short="-t",help="run specific target",key="target",arg_store_op=ArgStore.store_value,type=int)
argparser.add(name="--num-threads",short="-j",help="number of test threads",key="num_threads",arg_store_op=ArgStore.store_value,default=get_num_cores(),type=int)
argparser.add(name="--show-output",help="print the output of failed tests",key="show_output",arg_store_op=ArgStore.presence_flag)
argparser.add(name="--help",short="-h",help="Prints this help message",key="show_help",arg_store_op=ArgStore.presence_flag)

DRIVER=str(Path(__file__).parent/"lexpp.py")

class TestResult(str,Enum):
    SUCCESS="SUCCESS"
    FAILURE="FAILURE"
    TIMEOUT="TIMEOUT"

@dataclass
class Test:
    file:str
    goal:str
    should_fail:bool=False

    flags:tp.Optional[list[str]]=None
    " extra driver arguments, placed before the file "

    result:tp.Optional[TestResult]=None

    command:tp.Optional[list[str]]=None
    exit_code:tp.Optional[int]=None
    output:str=""

    def run(self,timeout:float=5.0):
        self.command=[sys.executable,DRIVER,*(self.flags or []),self.file]

        try:
            proc=sp.run(self.command,stdout=sp.PIPE,stderr=sp.PIPE,timeout=timeout,cwd=Path(__file__).parent)
        except sp.TimeoutExpired:
            self.result=TestResult.TIMEOUT
            return

        self.exit_code=proc.returncode
        self.output=proc.stdout.decode()+proc.stderr.decode()

        did_fail=proc.returncode!=0
        if did_fail==self.should_fail:
            self.result=TestResult.SUCCESS
        else:
            self.result=TestResult.FAILURE

TEST_FILES=[
    Test(file="test/test001.ml", goal="plain text without directives passes through"),
    Test(file="test/test002.ml", goal="object macros, undef"),
    Test(file="test/test003.ml", goal="function macros, empty argument, unknown call passthrough"),
    Test(file="test/test004.ml", goal="lexical scoping of macro bodies and arguments"),
    Test(file="test/test005.ml", goal="if/elif/else, ifdef, ifndef, defined"),
    Test(file="test/test006.ml", goal="arithmetic operators, shift clamp, truncating division"),
    Test(file="test/test007.ml", goal="include directive, sibling re-inclusion, include guard"),
    Test(file="test/test008.ml", goal="__FILE__ and __LINE__ inside and outside of macros"),
    Test(file="test/test009.ml", goal="warning directive does not stop preprocessing"),
    Test(file="test/test010.ml", goal="error directive", should_fail=True),
    Test(file="test/test010.ml", goal="error directive skipped when the macro is predefined", flags=["-D","REQUIRED"]),
    Test(file="test/test011.ml", goal="cyclic inclusion", should_fail=True),
    Test(file="test/test012.ml", goal="function macro applied to the wrong number of arguments", should_fail=True),
    Test(file="test/test013.ml", goal="division by zero in conditional", should_fail=True),
    Test(file="test/test014.ml", goal="redefinition without undef", should_fail=True),
    Test(file="test/test015.ml", goal="missing #endif", should_fail=True),
    Test(file="test/test016.ml", goal="explicit line directives"),
    Test(file="test/missing.ml", goal="nonexistent input file", should_fail=True),
]

def pad_to(s,n:int,fmt_str:str="{s}")->str:
    s_str=fmt_str.format(s=s)
    return (" "*(n-len(s_str)))+s_str

def main(argv:list[str])->int:
    args=argparser.parse(argv)

    if args.get("show_help",False):
        argparser.print_help()
        return 0

    tests=list(TEST_FILES)

    test_target=args.get("target")
    if test_target is not None:
        if not 0<=test_target<len(tests):
            print(f"{RED}error: test target {test_target} out of range{RESET}")
            return 1

        tests=[tests[test_target]]

    print(f"{BOLD}running tests...{RESET}")

    num_test_workers=max(1,args.get("num_threads") or 1)
    with fut.ThreadPoolExecutor(max_workers=num_test_workers) as threadpool:
        test_futures=[threadpool.submit(test.run) for test in tests]
        for test_future in tqdm(fut.as_completed(test_futures),total=len(test_futures),desc="running tests",unit="test"):
            test_future.result()

    results={res:0 for res in TestResult}
    for test in tests:
        assert test.result is not None
        results[test.result]+=1

    num_total=len(tests)
    num_succeeded=results[TestResult.SUCCESS]
    num_failed=results[TestResult.FAILURE]
    num_timed_out=results[TestResult.TIMEOUT]

    print(f"{BOLD}Test Results:{RESET}")
    print(f"Total: {num_total}")
    max_num_tests_len=max(len(str(n)) for n in [num_succeeded,num_failed,num_timed_out])
    for color,label,num in [(GREEN,"Succeeded",num_succeeded),(RED,"Failed   ",num_failed),(ORANGE,"Timed out",num_timed_out)]:
        perc_str=pad_to(num/num_total*100,6,fmt_str="{s:.2f}")
        print(f"{color}{label} : {pad_to(num,max_num_tests_len)} ({perc_str} %){RESET}")

    for test in tests:
        if test.result==TestResult.SUCCESS:
            continue

        command=" ".join(test.command or [])
        if test.result==TestResult.TIMEOUT:
            print(f"{ORANGE}Timed out test: '{command}'{RESET} ({test.goal})")
            continue

        if test.should_fail:
            extra_info=" (expected to fail)"
        else:
            extra_info=f" (expected to succeed; failed with {test.exit_code})"
        print(f"{RED}Failed test: '{command}'{RESET}{extra_info} ({test.goal})")
        if args.get("show_output",False):
            print(test.output)

    return 0 if num_succeeded==num_total else 1

if __name__=="__main__":
    sys.exit(main(sys.argv[1:]))
