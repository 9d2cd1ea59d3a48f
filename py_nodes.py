from dataclasses import dataclass
import typing as tp
from enum import Enum

from py_util import ind
from py_location import Location

# arithmetic expressions (signed 64 bit)

class ArithKind(str,Enum):
    VALUE="int"
    IDENT="ident"

    NEGATE="-x"
    ADD="+"
    SUBTRACT="-"
    MULTIPLY="*"
    DIVIDE="/"
    MODULO="mod"

    BITWISE_NOT="lnot"
    SHIFT_LEFT="lsl"
    SHIFT_RIGHT_LOGICAL="lsr"
    SHIFT_RIGHT_ARITHMETIC="asr"
    BITWISE_AND="land"
    BITWISE_OR="lor"
    BITWISE_XOR="lxor"

    @property
    def is_unary(self)->bool:
        return self in (ArithKind.NEGATE,ArithKind.BITWISE_NOT)

class ArithExpr:
    "base class for arithmetic expressions"
    kind:ArithKind

@dataclass(frozen=True)
class ArithValue(ArithExpr):
    value:int

    kind:tp.ClassVar[ArithKind]=ArithKind.VALUE

    @tp.override
    def __str__(self):
        return str(self.value)

@dataclass(frozen=True)
class ArithIdent(ArithExpr):
    "reference to a macro that must be bound to an int literal (or to another such identifier)"
    loc:Location
    name:str

    kind:tp.ClassVar[ArithKind]=ArithKind.IDENT

    @tp.override
    def __str__(self):
        return self.name

@dataclass(frozen=True)
class ArithOperation(ArithExpr):
    operation:ArithKind
    val0:ArithExpr
    val1:ArithExpr|None=None
    loc:Location|None=None
    " set on division and modulo, to report division by zero "

    def __post_init__(self):
        assert self.operation not in (ArithKind.VALUE,ArithKind.IDENT), self.operation
        assert (self.val1 is None)==self.operation.is_unary, f"{self.operation} arity"

    @property
    def kind(self)->ArithKind:
        return self.operation

    @tp.override
    def __str__(self):
        match self.operation:
            case ArithKind.NEGATE:
                return f"(-{self.val0})"
            case ArithKind.BITWISE_NOT:
                return f"(lnot {self.val0})"
            case _:
                return f"({self.val0} {self.operation.value} {self.val1})"

# boolean expressions

class BoolKind(str,Enum):
    TRUE="true"
    FALSE="false"
    DEFINED="defined"
    NOT="not"
    AND="&&"
    OR="||"
    EQUAL="="
    LESS_THAN="<"
    GREATER_THAN=">"

class BoolExpr:
    "base class for boolean expressions"
    kind:BoolKind

@dataclass(frozen=True)
class BoolValue(BoolExpr):
    value:bool

    @property
    def kind(self)->BoolKind:
        return BoolKind.TRUE if self.value else BoolKind.FALSE

    @tp.override
    def __str__(self):
        return self.kind.value

@dataclass(frozen=True)
class BoolDefined(BoolExpr):
    name:str

    kind:tp.ClassVar[BoolKind]=BoolKind.DEFINED

    @tp.override
    def __str__(self):
        return f"defined {self.name}"

@dataclass(frozen=True)
class BoolNot(BoolExpr):
    expr:BoolExpr

    kind:tp.ClassVar[BoolKind]=BoolKind.NOT

    @tp.override
    def __str__(self):
        return f"(not {self.expr})"

@dataclass(frozen=True)
class BoolLogic(BoolExpr):
    operation:BoolKind
    left:BoolExpr
    right:BoolExpr

    def __post_init__(self):
        assert self.operation in (BoolKind.AND,BoolKind.OR), self.operation

    @property
    def kind(self)->BoolKind:
        return self.operation

    @tp.override
    def __str__(self):
        return f"({self.left} {self.operation.value} {self.right})"

@dataclass(frozen=True)
class BoolCompare(BoolExpr):
    operation:BoolKind
    left:ArithExpr
    right:ArithExpr

    def __post_init__(self):
        assert self.operation in (BoolKind.EQUAL,BoolKind.LESS_THAN,BoolKind.GREATER_THAN), self.operation

    @property
    def kind(self)->BoolKind:
        return self.operation

    @tp.override
    def __str__(self):
        return f"({self.left} {self.operation.value} {self.right})"

# directive / text tree

class NodeKind(str,Enum):
    IDENT="ident"
    DEFINE="define"
    DEFINE_FUNCTION="define function"
    UNDEF="undef"
    INCLUDE="include"
    CONDITIONAL="if"
    ERROR="error"
    WARNING="warning"
    TEXT="text"
    SEQUENCE="sequence"
    LINE="line"
    CURRENT_LINE="__LINE__"
    CURRENT_FILE="__FILE__"

class Node:
    "base class for any node of the directive tree"
    kind:NodeKind

    def print(self,indent:int=0):
        print(ind(indent)+self.kind.value)

def print_nodes(nodes:list[Node],indent:int=0):
    for node in nodes:
        node.print(indent)

@dataclass(frozen=True)
class NodeIdent(Node):
    loc:Location
    name:str
    args:list[list[Node]]|None=None
    " None if the identifier is not applied, otherwise one node list per argument "

    kind:tp.ClassVar[NodeKind]=NodeKind.IDENT

    @tp.override
    def print(self,indent:int=0):
        if self.args is None:
            print(ind(indent)+f"ident: {self.name}")
            return

        print(ind(indent)+f"call: {self.name}")
        for arg_index,arg in enumerate(self.args):
            print(ind(indent+1)+f"arg {arg_index}:")
            print_nodes(arg,indent+2)

@dataclass(frozen=True)
class NodeDefine(Node):
    loc:Location
    name:str
    body:list[Node]

    kind:tp.ClassVar[NodeKind]=NodeKind.DEFINE

    @tp.override
    def print(self,indent:int=0):
        print(ind(indent)+f"define: {self.name}")
        print_nodes(self.body,indent+1)

@dataclass(frozen=True)
class NodeDefineFunction(Node):
    loc:Location
    name:str
    params:list[str]
    body:list[Node]

    kind:tp.ClassVar[NodeKind]=NodeKind.DEFINE_FUNCTION

    @tp.override
    def print(self,indent:int=0):
        print(ind(indent)+f"define: {self.name}({', '.join(self.params)})")
        print_nodes(self.body,indent+1)

@dataclass(frozen=True)
class NodeUndef(Node):
    loc:Location
    name:str

    kind:tp.ClassVar[NodeKind]=NodeKind.UNDEF

    @tp.override
    def print(self,indent:int=0):
        print(ind(indent)+f"undef: {self.name}")

@dataclass(frozen=True)
class NodeInclude(Node):
    loc:Location
    path:str

    kind:tp.ClassVar[NodeKind]=NodeKind.INCLUDE

    @tp.override
    def print(self,indent:int=0):
        print(ind(indent)+f"include: {self.path}")

@dataclass(frozen=True)
class NodeConditional(Node):
    loc:Location
    test:BoolExpr
    if_true:list[Node]
    if_false:list[Node]

    kind:tp.ClassVar[NodeKind]=NodeKind.CONDITIONAL

    @tp.override
    def print(self,indent:int=0):
        print(ind(indent)+f"if: {self.test}")
        print_nodes(self.if_true,indent+1)
        print(ind(indent)+"else:")
        print_nodes(self.if_false,indent+1)

@dataclass(frozen=True)
class NodeError(Node):
    loc:Location
    message:str

    kind:tp.ClassVar[NodeKind]=NodeKind.ERROR

    @tp.override
    def print(self,indent:int=0):
        print(ind(indent)+f"error: {self.message!r}")

@dataclass(frozen=True)
class NodeWarning(Node):
    loc:Location
    message:str

    kind:tp.ClassVar[NodeKind]=NodeKind.WARNING

    @tp.override
    def print(self,indent:int=0):
        print(ind(indent)+f"warning: {self.message!r}")

@dataclass(frozen=True)
class NodeText(Node):
    loc:Location
    is_space:bool
    s:str

    kind:tp.ClassVar[NodeKind]=NodeKind.TEXT

    @tp.override
    def print(self,indent:int=0):
        if self.is_space:
            return
        print(ind(indent)+f"text: {self.s!r}")

@dataclass(frozen=True)
class NodeSequence(Node):
    nodes:list[Node]

    kind:tp.ClassVar[NodeKind]=NodeKind.SEQUENCE

    @tp.override
    def print(self,indent:int=0):
        print(ind(indent)+"sequence:")
        print_nodes(self.nodes,indent+1)

@dataclass(frozen=True)
class NodeLine(Node):
    "explicit line directive, copied to the output as-is"
    loc:Location
    filename:str|None
    line:int

    kind:tp.ClassVar[NodeKind]=NodeKind.LINE

    @tp.override
    def print(self,indent:int=0):
        print(ind(indent)+f"line: {self.line} {self.filename or ''}")

@dataclass(frozen=True)
class NodeCurrentLine(Node):
    loc:Location

    kind:tp.ClassVar[NodeKind]=NodeKind.CURRENT_LINE

@dataclass(frozen=True)
class NodeCurrentFile(Node):
    loc:Location

    kind:tp.ClassVar[NodeKind]=NodeKind.CURRENT_FILE

# macro definitions and environments

@dataclass(frozen=True,eq=False)
class ObjectMacro:
    loc:Location
    name:str
    body:list[Node]
    env:"Env"
    " environment at the definition site "

@dataclass(frozen=True,eq=False)
class FunctionMacro:
    loc:Location
    name:str
    params:list[str]
    body:list[Node]
    env:"Env"
    " environment at the definition site "

MacroDef=ObjectMacro|FunctionMacro

@dataclass(frozen=True,slots=True)
class EnvTree:
    " node of the height balanced search tree behind Env. nodes are shared between environments "
    left:"EnvTree|None"
    name:str
    macro:MacroDef
    right:"EnvTree|None"
    height:int
    size:int

def tree_height(t:EnvTree|None)->int:
    return t.height if t is not None else 0

def tree_size(t:EnvTree|None)->int:
    return t.size if t is not None else 0

def make_tree(left:EnvTree|None,name:str,macro:MacroDef,right:EnvTree|None)->EnvTree:
    return EnvTree(left,name,macro,right,max(tree_height(left),tree_height(right))+1,tree_size(left)+tree_size(right)+1)

def balance_tree(left:EnvTree|None,name:str,macro:MacroDef,right:EnvTree|None)->EnvTree:
    "like make_tree, with one rotation when the heights of left and right differ by 2"
    hl,hr=tree_height(left),tree_height(right)
    if hl>hr+1:
        assert left is not None
        if tree_height(left.left)>=tree_height(left.right):
            return make_tree(left.left,left.name,left.macro,make_tree(left.right,name,macro,right))
        lr=left.right
        assert lr is not None
        return make_tree(make_tree(left.left,left.name,left.macro,lr.left),lr.name,lr.macro,make_tree(lr.right,name,macro,right))
    if hr>hl+1:
        assert right is not None
        if tree_height(right.right)>=tree_height(right.left):
            return make_tree(make_tree(left,name,macro,right.left),right.name,right.macro,right.right)
        rl=right.left
        assert rl is not None
        return make_tree(make_tree(left,name,macro,rl.left),rl.name,rl.macro,make_tree(rl.right,right.name,right.macro,right.right))
    return make_tree(left,name,macro,right)

def tree_insert(t:EnvTree|None,name:str,macro:MacroDef)->EnvTree:
    if t is None:
        return make_tree(None,name,macro,None)
    if name<t.name:
        return balance_tree(tree_insert(t.left,name,macro),t.name,t.macro,t.right)
    if name>t.name:
        return balance_tree(t.left,t.name,t.macro,tree_insert(t.right,name,macro))
    return make_tree(t.left,name,macro,t.right)

def tree_pop_min(t:EnvTree)->tuple[EnvTree,EnvTree|None]:
    "leftmost node of t, and t without it"
    if t.left is None:
        return t,t.right
    leftmost,rest=tree_pop_min(t.left)
    return leftmost,balance_tree(rest,t.name,t.macro,t.right)

def tree_remove(t:EnvTree|None,name:str)->EnvTree|None:
    if t is None:
        return None
    if name<t.name:
        return balance_tree(tree_remove(t.left,name),t.name,t.macro,t.right)
    if name>t.name:
        return balance_tree(t.left,t.name,t.macro,tree_remove(t.right,name))

    if t.left is None:
        return t.right
    if t.right is None:
        return t.left
    successor,rest=tree_pop_min(t.right)
    return balance_tree(t.left,successor.name,successor.macro,rest)

class Env:
    """
    persistent mapping from macro name to definition.

    add and remove return new environments and leave self untouched, so an
    environment captured by a definition never changes afterwards. both copy
    only the path from the root to the changed name, O(log n).
    """

    __slots__=("_root",)

    def __init__(self,defs:tp.Mapping[str,MacroDef]|None=None):
        self._root:EnvTree|None=None
        if defs is not None:
            for name,macro in defs.items():
                self._root=tree_insert(self._root,name,macro)

    @staticmethod
    def _wrap(root:EnvTree|None)->"Env":
        env=Env()
        env._root=root
        return env

    def add(self,name:str,macro:MacroDef)->"Env":
        return Env._wrap(tree_insert(self._root,name,macro))

    def remove(self,name:str)->"Env":
        if name not in self:
            return self
        return Env._wrap(tree_remove(self._root,name))

    def get(self,name:str)->MacroDef|None:
        t=self._root
        while t is not None:
            if name<t.name:
                t=t.left
            elif name>t.name:
                t=t.right
            else:
                return t.macro
        return None

    def __contains__(self,name:object)->bool:
        return isinstance(name,str) and self.get(name) is not None

    def __len__(self)->int:
        return tree_size(self._root)

    def __iter__(self)->tp.Iterator[str]:
        "names in sorted order"
        stack:list[EnvTree]=[]
        t=self._root
        while stack or t is not None:
            while t is not None:
                stack.append(t)
                t=t.left
            t=stack.pop()
            yield t.name
            t=t.right

    @property
    def height(self)->int:
        return tree_height(self._root)

    @tp.override
    def __repr__(self)->str:
        return f"Env({', '.join(self)})"
