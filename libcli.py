import typing as tp
import os
import platform
from enum import Enum

def get_num_cores()->int:
    """
    get number of logical cores on the host system, minus 1

    returns at least 1
    """

    max_num_cores=1
    try:
        native_num_cores=os.cpu_count()
        if native_num_cores is not None:
            max_num_cores=native_num_cores
        elif platform.system()=="Darwin":
            max_num_cores=int(os.popen("sysctl -n hw.logicalcpu").read())
        elif platform.system()=="Linux":
            max_num_cores=int(os.popen("nproc").read())
    except (OSError,ValueError):
        pass

    if max_num_cores==1:
        return 1

    # leave 1 core for the system
    return max_num_cores - 1

class ArgStore(str,Enum):
    presence_flag="presence_flag"
    store_value="store_value"
    append_value="append_value"
    " repeatable, values are collected into a list "

class Arg:
    def __init__(self,
        name:str,
        short:tp.Optional[str]=None,
        help:str="",
        default:tp.Optional[tp.Any]=None,
        key:tp.Optional[str]=None,
        type:tp.Type=str,
        arg_store_op:ArgStore=ArgStore.store_value,
        options:tp.Optional[tp.Union[tp.List[tp.Any],tp.Dict[str,tp.Any]]]=None
    ):
        self.name=name
        self.short=short
        self.help=help
        self.default=default
        self.key=key or self.name.lstrip("-").replace("-","_")
        self.type=type
        self.arg_store_op=arg_store_op
        if self.arg_store_op==ArgStore.presence_flag and self.default is None:
            self.default=False
        if self.arg_store_op==ArgStore.append_value and self.default is None:
            self.default=[]
        self.options=options

class ArgParser:
    """
    options are given as name=value or as name followed by the value in the next argument.
    anything not starting with '-' (and a lone '-') is collected under the positional key
    """

    def __init__(self,program_info:str,positional:tp.Optional[str]=None):
        self.program_info=program_info
        self.positional=positional
        self.args:tp.List[Arg]=[]

    def print_help(self):
        print(self.program_info)
        print()
        print("Arguments:")

        arg_strs=[]
        for arg in self.args:
            short_arg_name=(arg.short+' ') if arg.short else ''
            arg_strs.append((f"  {short_arg_name}{arg.name}",f" : {arg.help}"))

        longest_prefix=max(len(a[0]) for a in arg_strs)
        for (arg_pre,arg_post),arg in zip(arg_strs,self.args):
            print(arg_pre,arg_post,sep=" "*(longest_prefix-len(arg_pre)))
            match arg.arg_store_op:
                case ArgStore.presence_flag|ArgStore.append_value:
                    pass
                case ArgStore.store_value:
                    print(" "*(longest_prefix+4),f"- default: {arg.default}",sep=None)

            if arg.options is not None:
                if isinstance(arg.options,dict):
                    options=[f"{k}={v}" for k,v in arg.options.items()]
                else:
                    options=[str(o) for o in arg.options]
                print(" "*(longest_prefix+4),f"- options: {', '.join(options)}",sep=None)

    def add(self,*args,**kwargs):
        self.args.append(Arg(*args,**kwargs))

    def parse(self,args:tp.List[str])->dict:
        valid_args=dict()
        for arg in self.args:
            if arg.name in valid_args:
                raise ValueError(f"Duplicate argument name {arg.name}")
            valid_args[arg.name]=arg
            if arg.short is not None:
                if arg.short in valid_args:
                    raise ValueError(f"Duplicate argument short {arg.short}")
                valid_args[arg.short]=arg

        arg_values={
            # copy list defaults so that appending does not modify the declaration
            a.key:(list(a.default) if isinstance(a.default,list) else a.default) for a in self.args
        }
        if self.positional is not None:
            arg_values[self.positional]=[]

        arg_index=0
        while arg_index<len(args):
            a=args[arg_index]
            arg_index+=1

            if self.positional is not None and (a=="-" or not a.startswith("-")):
                arg_values[self.positional].append(a)
                continue

            # the value itself may contain '=', e.g. --define=A=1
            arg_split=a.split("=",1)
            arg_name=arg_split[0]
            arg_value=arg_split[1] if len(arg_split)==2 else None

            arg=valid_args.get(arg_name,None)
            if arg is None:
                raise ValueError(f"Unknown arg {a}")

            if arg.arg_store_op!=ArgStore.presence_flag and arg_value is None:
                if arg_index>=len(args):
                    raise ValueError(f"Missing value for argument {arg_name}")
                arg_value=args[arg_index]
                arg_index+=1

            value=None
            match arg.arg_store_op:
                case ArgStore.presence_flag:
                    value=True
                case ArgStore.store_value|ArgStore.append_value:
                    value=arg.type(arg_value)
                case _other:
                    raise ValueError(f"Unknown arg store operation {_other}")

            if arg.options is not None:
                if value not in arg.options:
                    raise ValueError(f"Invalid value '{value}' for argument {arg_name}, valid values are {arg.options}")

            if arg.arg_store_op==ArgStore.append_value:
                arg_values[arg.key].append(value)
            else:
                arg_values[arg.key]=value

        return arg_values
