import sys
import typing as tp
import inspect

BOLD="\033[1m"
RESET="\033[0m"
RED="\033[31m"
GREEN="\033[32m"
ORANGE="\033[33m"
BLUE="\033[34m"
PURPLE="\033[35m"
CYAN="\033[36m"
LIGHT_GRAY="\033[37m"

def ind(n:int)->str:
    # U+FF5C ｜
    return LIGHT_GRAY+("｜"*n)+RESET

def colored(s:str,color:str,stream:tp.TextIO)->str:
    "wrap s in color codes, only if stream is an interactive terminal"
    isatty=getattr(stream,"isatty",None)
    if isatty is not None and isatty():
        return f"{color}{s}{RESET}"
    return s

def fatal(message:str="",exit_code:int=-1)->tp.NoReturn:
    current_frame=inspect.currentframe()
    assert current_frame is not None

    frames=[current_frame]

    while (current_frame:=current_frame.f_back) is not None:
        frames.append(current_frame)

    # omit bottom of stack (which is this function) and top of stack (which is the module)
    # and reverse to print lowest stack information last
    frames=reversed(frames[1:-1])

    print()

    _=sys.stdout.write("FATAL >>>\n")

    for current_frame in frames:
        lineno=current_frame.f_lineno
        filename=current_frame.f_code.co_filename
        func_name=current_frame.f_code.co_qualname

        _=sys.stdout.write(f" {LIGHT_GRAY}{filename}:{lineno} -{RESET} {func_name}\n")

    if len(message)>0:
        _=sys.stdout.write(f" >>> {RED}{message}{RESET}\n")
    else:
        _=sys.stdout.write(" >>> \n")

    _=sys.stdout.flush()

    sys.exit(exit_code)

T=tp.TypeVar("T")
class Iter(tp.Generic[T]):
    "bidirectional iterator over an indexable container"
    def __init__(self,container:list[T],initial_index:int=0):
        self.container=container
        self.index=initial_index

    def copy(self)->"Iter[T]":
        "make a copy of the current state of the iterator and return the copy"
        return Iter(container=self.container,initial_index=self.index)

    @property
    def item(self)->T:
        return self.container[self.index]

    def __len__(self)->int:
        return len(self.container)

    @property
    def empty(self)->bool:
        "return True if the index of the current element exceeds the container size"
        return self.index>=len(self)

    def peek(self,i:int=0)->T|None:
        "get item at self.index+i, or None past either end"
        index=self.index+i
        if index<0 or index>=len(self):
            return None
        return self.container[index]

    def advance(self)->T:
        "return the current item and move past it"
        ret=self.item
        self.index+=1
        return ret

    def restore(self,other:"Iter[T]"):
        "rewind (or fast-forward) to the position of a copy sharing the same container"
        assert self.container is other.container
        self.index=other.index

