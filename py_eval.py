import re

from py_util import fatal
from py_location import quote_string
from py_errors import PreprocessorError, MacroNameError, EvalError
from py_nodes import *

INT64_MIN=-(1<<63)
INT64_MAX=(1<<63)-1
UINT64_MASK=(1<<64)-1

def wrap_int64(n:int)->int:
    "reduce n to a signed 64 bit two's complement value"
    n&=UINT64_MASK
    if n>INT64_MAX:
        n-=1<<64
    return n

INT_LITERAL_RE=re.compile(r"([+-]?)(0[xX][0-9a-fA-F_]+|0[oO][0-7_]+|0[bB][01_]+|[0-9][0-9_]*)")

def parse_int64(s:str)->int|None:
    """
    parse a 64 bit integer literal, or return None.

    decimal literals must fit the signed range. hexadecimal, octal and binary
    literals may use the whole unsigned range and wrap around into negative values.
    """
    m=INT_LITERAL_RE.fullmatch(s)
    if m is None:
        return None

    sign,digits=m.groups()
    negative=sign=="-"

    base=10
    if len(digits)>1 and digits[0]=="0" and digits[1] in "xXoObB":
        base={"x":16,"o":8,"b":2}[digits[1].lower()]
        digits=digits[2:]

    digits=digits.replace("_","")
    if len(digits)==0:
        return None

    value=int(digits,base)
    if base==10:
        limit=-INT64_MIN if negative else INT64_MAX
        if value>limit:
            return None
    elif value>UINT64_MASK:
        return None

    if negative:
        value=-value
    return wrap_int64(value)

def strip_space(s:str)->str:
    return s.strip(" \t\n\r")

def remove_space(nodes:list[Node])->list[Node]:
    return [node for node in nodes if not (isinstance(node,NodeText) and node.is_space)]

def div_int64(a:int,b:int)->int:
    "division truncating towards zero"
    q=abs(a)//abs(b)
    if (a<0)!=(b<0):
        q=-q
    return wrap_int64(q)

def rem_int64(a:int,b:int)->int:
    "remainder with the sign of the dividend"
    return wrap_int64(a-b*div_int64(a,b))

def shift_amount(shift:int)->int|None:
    "None for shifts whose magnitude is 64 or more (the result is then 0). other negative amounts act modulo 64"
    if shift>=64 or shift<=-64:
        return None
    return shift&63

def eval_ident(env:Env,expr:ArithIdent)->int:
    name=expr.name
    macro=env.get(name)
    if macro is None:
        raise MacroNameError(expr.loc,f"Undefined identifier {quote_string(name)}")
    if isinstance(macro,FunctionMacro):
        raise EvalError(expr.loc,f"{quote_string(name)} expects arguments")

    try:
        body=remove_space(macro.body)

        # plain alias of another identifier
        if len(body)==1 and isinstance(body[0],NodeIdent) and body[0].args is None:
            return eval_int(env,ArithIdent(body[0].loc,body[0].name))

        text=""
        for node in macro.body:
            if not isinstance(node,NodeText):
                raise EvalError(expr.loc,f"Identifier {quote_string(name)} is not bound to a constant")
            text+=node.s

        value=parse_int64(strip_space(text))
        if value is None:
            raise EvalError(expr.loc,f"Identifier {quote_string(name)} is not bound to an int literal")

        return value

    except PreprocessorError as e:
        raise EvalError(expr.loc,f"Identifier {quote_string(name)} does not expand to an int:\n{e}") from e

def eval_int(env:Env,expr:ArithExpr)->int:
    "evaluate an arithmetic expression to a signed 64 bit integer"
    match expr:
        case ArithValue(value=value):
            return value

        case ArithIdent():
            return eval_ident(env,expr)

        case ArithOperation(operation=ArithKind.NEGATE,val0=a):
            return wrap_int64(-eval_int(env,a))

        case ArithOperation(operation=ArithKind.BITWISE_NOT,val0=a):
            return ~eval_int(env,a)

        case ArithOperation(operation=operation,val0=a,val1=b) if b is not None:
            left=eval_int(env,a)
            right=eval_int(env,b)

            match operation:
                case ArithKind.ADD:
                    return wrap_int64(left+right)
                case ArithKind.SUBTRACT:
                    return wrap_int64(left-right)
                case ArithKind.MULTIPLY:
                    return wrap_int64(left*right)

                case ArithKind.DIVIDE:
                    if right==0:
                        raise EvalError(expr.loc,"Division by zero")
                    return div_int64(left,right)
                case ArithKind.MODULO:
                    if right==0:
                        raise EvalError(expr.loc,"Division by zero")
                    return rem_int64(left,right)

                case ArithKind.SHIFT_LEFT:
                    shift=shift_amount(right)
                    if shift is None:
                        return 0
                    return wrap_int64(left<<shift)
                case ArithKind.SHIFT_RIGHT_LOGICAL:
                    shift=shift_amount(right)
                    if shift is None:
                        return 0
                    return wrap_int64((left&UINT64_MASK)>>shift)
                case ArithKind.SHIFT_RIGHT_ARITHMETIC:
                    shift=shift_amount(right)
                    if shift is None:
                        return 0
                    return left>>shift

                case ArithKind.BITWISE_AND:
                    return left&right
                case ArithKind.BITWISE_OR:
                    return left|right
                case ArithKind.BITWISE_XOR:
                    return left^right

                case other:
                    fatal(f"unimplemented binary operation {other}")

        case other:
            fatal(f"unimplemented arithmetic expression {other!r}")

def eval_bool(env:Env,expr:BoolExpr)->bool:
    "evaluate a boolean expression. && and || short-circuit left to right"
    match expr:
        case BoolValue(value=value):
            return value
        case BoolDefined(name=name):
            return name in env
        case BoolNot(expr=inner):
            return not eval_bool(env,inner)

        case BoolLogic(operation=BoolKind.AND,left=a,right=b):
            return eval_bool(env,a) and eval_bool(env,b)
        case BoolLogic(operation=BoolKind.OR,left=a,right=b):
            return eval_bool(env,a) or eval_bool(env,b)

        case BoolCompare(operation=BoolKind.EQUAL,left=a,right=b):
            return eval_int(env,a)==eval_int(env,b)
        case BoolCompare(operation=BoolKind.LESS_THAN,left=a,right=b):
            return eval_int(env,a)<eval_int(env,b)
        case BoolCompare(operation=BoolKind.GREATER_THAN,left=a,right=b):
            return eval_int(env,a)>eval_int(env,b)

        case other:
            fatal(f"unimplemented boolean expression {other!r}")
