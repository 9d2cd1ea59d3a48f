import sys
from dataclasses import dataclass, replace
import typing as tp

from py_util import *
from py_location import Location, OutputBuffer, explicit_line_directive, format_diagnostic, quote_string
from py_errors import MacroNameError, ArityError, CycleError, UserError
from py_nodes import *
from py_eval import eval_bool
from py_include import IncludeResolver

def plural(n:int)->str:
    return "" if n==1 else "s"

def print_warning(message:str):
    "default warning sink: standard error, orange on a terminal"
    print(colored(message,ORANGE,sys.stderr),file=sys.stderr)

@dataclass(frozen=True)
class Context:
    "per-call expansion state, rebound (never mutated) when descending into includes and macro bodies"

    included:frozenset[str]
    " normalized paths of the files in the active inclusion chain "

    call_loc:Location|None=None
    " location of the outermost active macro invocation, reported by __LINE__ and __FILE__ "

class Preprocessor:
    """
    expands directive trees into an output buffer.

    the environment is threaded through the expansion: every expand_* method
    takes the environment in effect before the node(s) and returns the one in
    effect after them.
    """

    def __init__(self,resolver:IncludeResolver|None=None,warn:tp.Callable[[str],None]=print_warning):
        self.resolver=resolver if resolver is not None else IncludeResolver()
        self.warn=warn
        self.out=OutputBuffer()

    def expand_list(self,ctx:Context,env:Env,nodes:list[Node])->Env:
        for node in nodes:
            env=self.expand_node(ctx,env,node)
        return env

    def expand_node(self,ctx:Context,env:Env,node:Node)->Env:
        match node:
            case NodeIdent():
                return self.expand_ident(ctx,env,node)

            case NodeDefine(loc=loc,name=name,body=body):
                self.out.owe_marker()
                if name in env:
                    raise MacroNameError(loc,f"{quote_string(name)} is already defined")
                return env.add(name,ObjectMacro(loc,name,body,env))

            case NodeDefineFunction(loc=loc,name=name,params=params,body=body):
                self.out.owe_marker()
                if name in env:
                    raise MacroNameError(loc,f"{quote_string(name)} is already defined")
                return env.add(name,FunctionMacro(loc,name,params,body,env))

            case NodeUndef(name=name):
                self.out.owe_marker()
                return env.remove(name)

            case NodeInclude(loc=loc,path=path):
                self.out.owe_marker()
                env=self.include_file(ctx,env,path,loc)
                # text following the directive comes from this file again
                self.out.owe_marker()
                return env

            case NodeConditional(test=test,if_true=if_true,if_false=if_false):
                branch=if_true if eval_bool(env,test) else if_false
                self.out.owe_marker()
                env=self.expand_list(ctx,env,branch)
                self.out.owe_marker()
                return env

            case NodeError(loc=loc,message=message):
                raise UserError(loc,message)

            case NodeWarning(loc=loc,message=message):
                self.warn(format_diagnostic(loc,"Warning",message))
                return env

            case NodeText(loc=loc,is_space=is_space,s=s):
                self.out.write_text(s,loc.start,is_space)
                return env

            case NodeSequence(nodes=nodes):
                return self.expand_list(ctx,env,nodes)

            case NodeLine(filename=filename,line=line):
                self.out.owe_marker()
                self.out.write(explicit_line_directive(line,filename))
                return env

            case NodeCurrentLine(loc=loc):
                self.out.flush_marker(loc.start)
                self.out.owe_marker()
                call_loc=ctx.call_loc if ctx.call_loc is not None else loc
                self.out.write(f" {call_loc.line} ")
                return env

            case NodeCurrentFile(loc=loc):
                self.out.flush_marker(loc.start)
                self.out.owe_marker()
                call_loc=ctx.call_loc if ctx.call_loc is not None else loc
                self.out.write(f" {quote_string(call_loc.filename)} ")
                return env

            case other:
                fatal(f"unimplemented node {other!r}")

    def expand_ident(self,ctx:Context,env:Env,node:NodeIdent)->Env:
        loc,name,args=node.loc,node.name,node.args

        macro=env.get(name)

        if macro is None:
            self.out.flush_marker(loc.start)
            self.out.marker_owed=False

            if args is None:
                return self.expand_node(ctx,env,NodeText(loc,False,name))

            # unknown call, reproduced verbatim with its arguments expanded
            call_nodes:list[Node]=[NodeText(loc,False,name+"(")]
            for arg_index,arg in enumerate(args):
                if arg_index>0:
                    call_nodes.append(NodeText(loc,False,","))
                call_nodes.extend(arg)
            call_nodes.append(NodeText(loc,False,")"))
            return self.expand_list(ctx,env,call_nodes)

        self.out.owe_marker()

        if ctx.call_loc is None:
            ctx=replace(ctx,call_loc=loc)

        match macro:
            case ObjectMacro():
                if args is not None:
                    raise MacroNameError(loc,f"{quote_string(name)} expects no arguments")

                # the body sees the environment of its definition, and its own definitions stay local
                _=self.expand_list(ctx,macro.env,macro.body)
                return env

            case FunctionMacro(params=params):
                argc=len(params)
                if args is None:
                    raise ArityError(loc,name,argc,0,f"{quote_string(name)} expects {argc} argument{plural(argc)} but is applied to none.")

                # f() passes one empty argument to a macro with one parameter
                if len(args)==0 and argc==1:
                    args=[[]]

                if len(args)!=argc:
                    n=len(args)
                    raise ArityError(loc,name,argc,n,f"{quote_string(name)} expects {argc} argument{plural(argc)} but is applied to {n} argument{plural(n)}.")

                # arguments are expanded in the caller's environment
                app_env=macro.env
                for param,arg in zip(params,args):
                    app_env=app_env.add(param,ObjectMacro(loc,param,arg,env))

                _=self.expand_list(ctx,app_env,macro.body)
                return env

            case other:
                fatal(f"unimplemented macro definition {other!r}")

    def include_file(self,ctx:Context,env:Env,path:str,loc:Location)->Env:
        resolved=self.resolver.resolve(path,loc.filename,loc)

        key=self.resolver.normalize(resolved)
        if key in ctx.included:
            raise CycleError(loc,path,f"Cyclic inclusion of file {quote_string(path)}")

        nodes=self.resolver.load(resolved)
        return self.expand_list(replace(ctx,included=ctx.included|{key}),env,nodes)

    def include_sources(self,env:Env,sources:tp.Iterable[tuple[str,tp.TextIO]])->Env:
        """
        expand several already opened sources into the shared output buffer.
        the environment carries over from one source to the next, while each
        source starts a fresh inclusion chain and a fresh marker state.
        """
        for filename,source in sources:
            nodes=self.resolver.parse_func(filename,source.read())
            env=self.expand_top_level(filename,env,nodes)
        return env

    def expand_top_level(self,filename:str,env:Env,nodes:list[Node])->Env:
        self.out.reset_markers()
        ctx=Context(included=frozenset([self.resolver.normalize(filename)]))
        return self.expand_list(ctx,env,nodes)

    def getvalue(self)->str:
        return self.out.getvalue()
