#!/usr/bin/env python3

import io
import sys
import typing as tp
from pathlib import Path

from tqdm import tqdm

from libcli import *
from py_util import *
from py_errors import PreprocessorError
from py_nodes import Env, Node, print_nodes
from py_parser import parse
from py_include import IncludeResolver
from py_preprocessor import Preprocessor

COMMAND_LINE_FILENAME="<command-line>"
STDIN_FILENAME="<stdin>"

def make_argparser()->ArgParser:
    argparser=ArgParser("lexpp - macro preprocessor with lexically scoped macros\n\nusage: lexpp [options] [files...]",positional="inputs")

    argparser.add(name="--define",short="-D",help="predefine a macro: NAME=VALUE, or \"NAME body\"",key="defines",arg_store_op=ArgStore.append_value)
    argparser.add(name="--undef",short="-U",help="remove a predefined macro",key="undefs",arg_store_op=ArgStore.append_value)
    argparser.add(name="--include-dir",short="-I",help="add a directory to the include search path",key="include_dirs",arg_store_op=ArgStore.append_value)
    argparser.add(name="--output",short="-o",help="write output to this file instead of stdout",key="output",arg_store_op=ArgStore.store_value)
    argparser.add(name="--print-tree",help="print the parsed tree of each input file",key="print_tree",arg_store_op=ArgStore.presence_flag)
    argparser.add(name="--progress",help="show a progress bar over the input files",key="progress",arg_store_op=ArgStore.presence_flag)

    argparser.add(name="--help",short="-h",help="Prints this help message",key="show_help",arg_store_op=ArgStore.presence_flag)

    return argparser

def predefine_source(defines:list[str])->str:
    "turn -D values into #define lines"
    lines=[]
    for define in defines:
        name,sep,value=define.partition("=")
        if sep:
            lines.append(f"#define {name} {value}\n")
        else:
            lines.append(f"#define {define}\n")
    return "".join(lines)

def predefined_env(defines:list[str],undefs:list[str])->Env:
    """
    environment holding the command line definitions. they are expanded like any other
    source, but into a scratch buffer that is then discarded
    """
    scratch=Preprocessor()
    env=scratch.expand_top_level(COMMAND_LINE_FILENAME,Env(),parse(COMMAND_LINE_FILENAME,predefine_source(defines)))
    for name in undefs:
        env=env.remove(name)
    return env

def pass_through_bytes(stream:tp.TextIO):
    "let bytes that are not utf-8 cross a standard stream unchanged, as surrogates"
    if isinstance(stream,io.TextIOWrapper) and stream.errors!="surrogateescape":
        stream.reconfigure(errors="surrogateescape")

def open_sources(filenames:list[str])->tp.Generator[tuple[str,tp.TextIO],None,None]:
    for filename in filenames:
        if filename=="-":
            pass_through_bytes(sys.stdin)
            yield STDIN_FILENAME,sys.stdin
            continue

        with open(filename,"r",encoding="utf-8",errors="surrogateescape",newline="") as f:
            yield filename,f

def print_error(message:str):
    print(colored(message,RED,sys.stderr),file=sys.stderr)

def main(argv:list[str])->int:
    argparser=make_argparser()
    try:
        args=argparser.parse(argv)
    except ValueError as e:
        print_error(f"error: {e}")
        return 2

    if args.get("show_help",False):
        argparser.print_help()
        return 0

    inputs:list[str]=args["inputs"] or ["-"]

    parse_func:tp.Callable[[str,str],list[Node]]=parse
    if args.get("print_tree",False):
        def parse_and_print(filename:str,file_contents:str)->list[Node]:
            nodes=parse(filename,file_contents)
            print(f"{GREEN}tree of {filename}:{RESET}")
            print_nodes(nodes)
            return nodes

        parse_func=parse_and_print

    lookup_dirs=[Path(d) for d in args["include_dirs"]] or [Path(".")]
    p=Preprocessor(resolver=IncludeResolver(lookup_dirs=lookup_dirs,parse_func=parse_func))

    sources=open_sources(inputs)
    try:
        env=predefined_env(args["defines"],args["undefs"])

        _=p.include_sources(env,tqdm(sources,total=len(inputs),desc="preprocessing",unit="file",disable=not args.get("progress",False),file=sys.stderr))

    except PreprocessorError as e:
        print_error(str(e))
        return 1
    except OSError as e:
        print_error(f"Error: {e}")
        return 1
    finally:
        # closes the input file that was open when expansion stopped
        sources.close()

    output=args.get("output")
    if output is not None:
        with open(output,"w",encoding="utf-8",errors="surrogateescape",newline="") as f:
            f.write(p.getvalue())
    else:
        pass_through_bytes(sys.stdout)
        sys.stdout.write(p.getvalue())
        sys.stdout.flush()

    return 0

def run():
    sys.exit(main(sys.argv[1:]))

if __name__=="__main__":
    run()
