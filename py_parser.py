from dataclasses import dataclass
import typing as tp
import re

from py_util import *
from py_location import Location, quote_string
from py_errors import MacroSyntaxError
from py_tokenizer import Token, TokenType, tokenize
from py_eval import parse_int64
from py_nodes import *

DIRECTIVE_NAMES=set([
    "define","undef","include",
    "if","ifdef","ifndef","elif","else","endif",
    "error","warning","line",
])

EXPRESSION_KEYWORDS=set([
    "true","false","defined","not",
    "mod","land","lor","lxor","lsl","lsr","asr","lnot",
])

OPENING_BRACKETS=("(","[","{")
CLOSING_BRACKETS=(")","]","}")

STRING_ESCAPE_RE=re.compile(r"\\(\n[ \t]*|[\\'\"ntbr ]|[0-9]{3}|x[0-9a-fA-F]{2}|o[0-3][0-7]{2})")
SIMPLE_ESCAPES={"\\":"\\","'":"'",'"':'"',"n":"\n","t":"\t","b":"\b","r":"\r"," ":" "}

def unescape_string(tok:Token)->str:
    "contents of a string literal token with escape sequences resolved"
    def replace(m:re.Match[str])->str:
        escape=m.group(1)
        if escape[0]=="\n":
            return ""
        if escape in SIMPLE_ESCAPES:
            return SIMPLE_ESCAPES[escape]
        if escape[0]=="x":
            return chr(int(escape[1:],16))
        if escape[0]=="o":
            return chr(int(escape[1:],8))
        return chr(int(escape))

    return STRING_ESCAPE_RE.sub(replace,tok.s[1:-1])

def significant(tokens:list[Token])->list[Token]:
    "drop whitespace, comments and line continuations"
    return [tok for tok in tokens if not tok.is_blank]

@dataclass
class Directive:
    name:str
    hash_tok:Token
    name_tok:Token
    args:list[Token]
    " raw tokens following the directive name. for '# N' line directives this starts with N "

    @property
    def loc(self)->Location:
        last_tok=self.name_tok
        for tok in self.args:
            if not tok.is_blank:
                last_tok=tok
        return Location(self.hash_tok.start,last_tok.end)

    def expect_end(self,rest:list[Token]):
        leftover=significant(rest)
        if len(leftover)>0:
            raise MacroSyntaxError(leftover[0].loc,f"unexpected {leftover[0].s!r} after #{self.name}")

    def single_arg(self,token_type:TokenType,what:str)->Token:
        "the only significant token of the directive, which must be of token_type"
        args=significant(self.args)
        if len(args)==0 or args[0].token_type!=token_type:
            raise MacroSyntaxError(self.loc,f"expected {what} after #{self.name}")
        self.expect_end(args[1:])
        return args[0]

class ExpressionParser:
    "recursive descent over the significant tokens of an #if or #elif line"

    def __init__(self,directive:Directive):
        self.directive=directive
        self.it:Iter[Token]=Iter(significant(directive.args))
        self.last_tok:Token=directive.name_tok

    def error(self,message:str)->tp.NoReturn:
        tok=self.it.peek()
        raise MacroSyntaxError(tok.loc if tok is not None else self.directive.loc,message)

    def peek_is(self,*s:str)->bool:
        tok=self.it.peek()
        return tok is not None and tok.token_type in (TokenType.SYMBOL,TokenType.OPERATOR_PUNCTUATION) and tok.s in s

    def advance(self)->Token:
        self.last_tok=self.it.advance()
        return self.last_tok

    def expect(self,s:str):
        if not self.peek_is(s):
            self.error(f"expected {s!r} in #{self.directive.name} expression")
        self.advance()

    def parse(self)->BoolExpr:
        if self.it.empty:
            self.error(f"missing expression after #{self.directive.name}")

        expr=self.parse_or()
        if not self.it.empty:
            self.error(f"unexpected {self.it.item.s!r} in #{self.directive.name} expression")
        return expr

    def parse_or(self)->BoolExpr:
        left=self.parse_and()
        while self.peek_is("||"):
            self.advance()
            left=BoolLogic(BoolKind.OR,left,self.parse_and())
        return left

    def parse_and(self)->BoolExpr:
        left=self.parse_not()
        while self.peek_is("&&"):
            self.advance()
            left=BoolLogic(BoolKind.AND,left,self.parse_not())
        return left

    def parse_not(self)->BoolExpr:
        if self.peek_is("not"):
            self.advance()
            return BoolNot(self.parse_not())
        return self.parse_bool_atom()

    def parse_bool_atom(self)->BoolExpr:
        if self.peek_is("true"):
            self.advance()
            return BoolValue(True)
        if self.peek_is("false"):
            self.advance()
            return BoolValue(False)

        if self.peek_is("defined"):
            self.advance()
            parenthesized=self.peek_is("(")
            if parenthesized:
                self.advance()
            tok=self.it.peek()
            if tok is None or tok.token_type!=TokenType.SYMBOL:
                self.error("expected macro name after 'defined'")
            self.advance()
            if parenthesized:
                self.expect(")")
            return BoolDefined(tok.s)

        if self.peek_is("("):
            # either a parenthesized boolean expression or the start of a comparison like (a + 1) = b
            saved=self.it.copy()
            saved_last_tok=self.last_tok
            try:
                self.advance()
                expr=self.parse_or()
                self.expect(")")
                if self.it.empty or self.peek_is("&&","||",")"):
                    return expr
            except MacroSyntaxError:
                pass

            self.it.restore(saved)
            self.last_tok=saved_last_tok

        return self.parse_comparison()

    def parse_comparison(self)->BoolExpr:
        left=self.parse_arith()

        tok=self.it.peek()
        if tok is None or tok.s not in ("=","<",">","<>","<=",">="):
            self.error("expected comparison operator")
        self.advance()

        right=self.parse_arith()

        match tok.s:
            case "=":
                return BoolCompare(BoolKind.EQUAL,left,right)
            case "<":
                return BoolCompare(BoolKind.LESS_THAN,left,right)
            case ">":
                return BoolCompare(BoolKind.GREATER_THAN,left,right)
            case "<>":
                return BoolNot(BoolCompare(BoolKind.EQUAL,left,right))
            case "<=":
                return BoolNot(BoolCompare(BoolKind.GREATER_THAN,left,right))
            case ">=":
                return BoolNot(BoolCompare(BoolKind.LESS_THAN,left,right))
            case other:
                fatal(f"unimplemented comparison {other}")

    def parse_arith(self)->ArithExpr:
        left=self.parse_mul()
        while self.peek_is("+","-"):
            operation=ArithKind.ADD if self.advance().s=="+" else ArithKind.SUBTRACT
            left=ArithOperation(operation,left,self.parse_mul())
        return left

    MUL_OPERATIONS={
        "*":ArithKind.MULTIPLY,
        "/":ArithKind.DIVIDE,
        "mod":ArithKind.MODULO,
        "land":ArithKind.BITWISE_AND,
        "lor":ArithKind.BITWISE_OR,
        "lxor":ArithKind.BITWISE_XOR,
    }

    def parse_mul(self)->ArithExpr:
        start=self.it.peek()
        left=self.parse_shift()
        while self.peek_is(*self.MUL_OPERATIONS):
            operation=self.MUL_OPERATIONS[self.advance().s]
            right=self.parse_shift()

            loc=None
            if operation in (ArithKind.DIVIDE,ArithKind.MODULO):
                assert start is not None
                loc=Location(start.start,self.last_tok.end)
            left=ArithOperation(operation,left,right,loc=loc)
        return left

    SHIFT_OPERATIONS={
        "lsl":ArithKind.SHIFT_LEFT,
        "lsr":ArithKind.SHIFT_RIGHT_LOGICAL,
        "asr":ArithKind.SHIFT_RIGHT_ARITHMETIC,
    }

    def parse_shift(self)->ArithExpr:
        left=self.parse_unary()
        if self.peek_is(*self.SHIFT_OPERATIONS):
            operation=self.SHIFT_OPERATIONS[self.advance().s]
            # right associative
            return ArithOperation(operation,left,self.parse_shift())
        return left

    def parse_unary(self)->ArithExpr:
        if self.peek_is("-"):
            self.advance()
            # negative literals may reach the minimum value, which has no positive counterpart
            tok=self.it.peek()
            if tok is not None and tok.token_type==TokenType.LITERAL_NUMBER:
                value=parse_int64("-"+tok.s)
                if value is not None:
                    self.advance()
                    return ArithValue(value)
            return ArithOperation(ArithKind.NEGATE,self.parse_unary())

        if self.peek_is("lnot"):
            self.advance()
            return ArithOperation(ArithKind.BITWISE_NOT,self.parse_unary())

        return self.parse_arith_atom()

    def parse_arith_atom(self)->ArithExpr:
        tok=self.it.peek()
        if tok is None:
            self.error(f"unexpected end of #{self.directive.name} expression")

        if tok.token_type==TokenType.LITERAL_NUMBER:
            value=parse_int64(tok.s)
            if value is None:
                self.error(f"invalid integer literal {tok.s!r}")
            self.advance()
            return ArithValue(value)

        if tok.token_type==TokenType.SYMBOL and tok.s not in EXPRESSION_KEYWORDS:
            self.advance()
            return ArithIdent(tok.loc,tok.s)

        if self.peek_is("("):
            self.advance()
            expr=self.parse_arith()
            self.expect(")")
            return expr

        self.error(f"unexpected {tok.s!r} in #{self.directive.name} expression")

class Parser:
    " turns the tokens of one file into the directive tree "

    def __init__(self,filename:str,tokens:list[Token]):
        self.filename=filename
        self.it:Iter[Token]=Iter(tokens)

    def parse(self)->list[Node]:
        nodes,_=self.parse_block(set())
        return nodes

    def parse_block(self,terminators:set[str])->tuple[list[Node],Directive|None]:
        """
        parse until end of file or until a directive named in terminators.
        returns the nodes and the terminating directive (None at end of file)
        """
        nodes:list[Node]=[]

        # blanks at the start of a line are dropped if the line holds a directive
        pending_space:list[Token]=[]
        at_line_start=True

        while not self.it.empty:
            tok=self.it.advance()

            if at_line_start and tok.token_type==TokenType.WHITESPACE:
                pending_space.append(tok)
                continue

            if at_line_start and tok.token_type==TokenType.OPERATOR_PUNCTUATION and tok.s=="#":
                pending_space=[]

                directive=self.read_directive(tok)
                if directive is None:
                    # empty directive is allowed
                    continue

                if directive.name in terminators:
                    return nodes,directive

                match directive.name:
                    case "if"|"ifdef"|"ifndef":
                        nodes.append(self.parse_conditional(directive))
                    case "elif"|"else"|"endif":
                        raise MacroSyntaxError(directive.loc,f"#{directive.name} without matching #if")
                    case _:
                        nodes.append(self.directive_node(directive))

                continue

            nodes.extend(NodeText(space.loc,True,space.s) for space in pending_space)
            pending_space=[]

            nodes.append(self.parse_text_token(self.it,tok))
            at_line_start=tok.token_type==TokenType.NEWLINE

        nodes.extend(NodeText(space.loc,True,space.s) for space in pending_space)
        return nodes,None

    def read_directive(self,hash_tok:Token)->Directive|None:
        "consume the rest of the line following '#', including the newline"
        line:list[Token]=[]
        while not self.it.empty:
            tok=self.it.advance()
            if tok.token_type==TokenType.NEWLINE:
                break
            line.append(tok)

        name_index=next((i for i,tok in enumerate(line) if not tok.is_blank),None)
        if name_index is None:
            return None

        name_tok=line[name_index]
        args=line[name_index+1:]

        if name_tok.token_type==TokenType.LITERAL_NUMBER:
            return Directive("line",hash_tok,name_tok,line[name_index:])

        if name_tok.token_type!=TokenType.SYMBOL or name_tok.s not in DIRECTIVE_NAMES:
            raise MacroSyntaxError(Location(hash_tok.start,name_tok.end),f"unknown directive #{name_tok.s}")

        return Directive(name_tok.s,hash_tok,name_tok,args)

    def parse_conditional(self,directive:Directive)->NodeConditional:
        match directive.name:
            case "ifdef":
                test:BoolExpr=BoolDefined(directive.single_arg(TokenType.SYMBOL,"macro name").s)
            case "ifndef":
                test=BoolNot(BoolDefined(directive.single_arg(TokenType.SYMBOL,"macro name").s))
            case "if"|"elif":
                test=ExpressionParser(directive).parse()
            case other:
                fatal(f"unimplemented conditional #{other}")

        if_true,end=self.parse_block({"elif","else","endif"})
        if end is None:
            raise MacroSyntaxError(directive.loc,f"missing #endif for #{directive.name}")

        if_false:list[Node]=[]
        match end.name:
            case "endif":
                end.expect_end(end.args)
            case "else":
                end.expect_end(end.args)
                if_false,final=self.parse_block({"endif"})
                if final is None:
                    raise MacroSyntaxError(end.loc,"missing #endif for #else")
                final.expect_end(final.args)
            case "elif":
                # the nested conditional consumes the shared #endif
                if_false=[self.parse_conditional(end)]

        return NodeConditional(directive.loc,test,if_true,if_false)

    def directive_node(self,directive:Directive)->Node:
        match directive.name:
            case "define":
                return self.parse_define(directive)
            case "undef":
                return NodeUndef(directive.loc,directive.single_arg(TokenType.SYMBOL,"macro name").s)
            case "include":
                path_tok=directive.single_arg(TokenType.LITERAL_STRING,"quoted file name")
                return NodeInclude(directive.loc,unescape_string(path_tok))
            case "error":
                message_tok=directive.single_arg(TokenType.LITERAL_STRING,"quoted message")
                return NodeError(directive.loc,unescape_string(message_tok))
            case "warning":
                message_tok=directive.single_arg(TokenType.LITERAL_STRING,"quoted message")
                return NodeWarning(directive.loc,unescape_string(message_tok))
            case "line":
                return self.parse_line(directive)
            case other:
                fatal(f"unimplemented directive #{other}")

    def parse_line(self,directive:Directive)->NodeLine:
        args=significant(directive.args)
        if len(args)==0 or args[0].token_type!=TokenType.LITERAL_NUMBER:
            raise MacroSyntaxError(directive.loc,"expected line number")

        line=parse_int64(args[0].s)
        if line is None or line<0:
            raise MacroSyntaxError(args[0].loc,f"invalid line number {args[0].s!r}")

        filename:str|None=None
        if len(args)>1 and args[1].token_type==TokenType.LITERAL_STRING:
            filename=unescape_string(args[1])
            directive.expect_end(args[2:])
        else:
            directive.expect_end(args[1:])

        return NodeLine(directive.loc,filename,line)

    def parse_define(self,directive:Directive)->Node:
        args=directive.args

        def skip_blank(i:int)->int:
            while i<len(args) and args[i].is_blank:
                i+=1
            return i

        i=skip_blank(0)
        if i>=len(args) or args[i].token_type!=TokenType.SYMBOL:
            raise MacroSyntaxError(directive.loc,"expected macro name after #define")
        name_tok=args[i]
        i+=1

        params:list[str]|None=None
        # a parameter list must touch the macro name, otherwise the parenthesis is part of the body
        if i<len(args) and args[i].s=="(" and name_tok.touches(args[i]):
            params=[]
            i=skip_blank(i+1)
            if i<len(args) and args[i].s==")":
                i+=1
            else:
                while True:
                    i=skip_blank(i)
                    if i>=len(args) or args[i].token_type!=TokenType.SYMBOL:
                        raise MacroSyntaxError(directive.loc,f"expected parameter name in definition of {quote_string(name_tok.s)}")
                    if args[i].s in params:
                        raise MacroSyntaxError(args[i].loc,f"duplicate parameter {quote_string(args[i].s)}")
                    params.append(args[i].s)

                    i=skip_blank(i+1)
                    if i<len(args) and args[i].s==",":
                        i+=1
                        continue
                    if i<len(args) and args[i].s==")":
                        i+=1
                        break
                    raise MacroSyntaxError(directive.loc,f"expected ',' or ')' in parameter list of {quote_string(name_tok.s)}")

        body=self.parse_body(args[i:])

        if params is None:
            return NodeDefine(directive.loc,name_tok.s,body)
        return NodeDefineFunction(directive.loc,name_tok.s,params,body)

    def parse_body(self,tokens:list[Token])->list[Node]:
        "macro body: surrounding blanks are trimmed, line continuations turn into newlines"
        def is_edge_space(tok:Token)->bool:
            return tok.token_type in (TokenType.WHITESPACE,TokenType.LINE_CONTINUATION)

        start=0
        while start<len(tokens) and is_edge_space(tokens[start]):
            start+=1
        end=len(tokens)
        while end>start and is_edge_space(tokens[end-1]):
            end-=1

        body_tokens=[
            Token("\n",tok.start,tok.end,TokenType.NEWLINE) if tok.token_type==TokenType.LINE_CONTINUATION else tok
            for tok in tokens[start:end]
        ]

        it=Iter(body_tokens)
        nodes:list[Node]=[]
        while not it.empty:
            nodes.append(self.parse_text_token(it,it.advance()))
        return nodes

    def parse_text_token(self,it:Iter[Token],tok:Token)->Node:
        "node for tok, which has just been consumed from it. may consume a call's argument list"
        if tok.token_type!=TokenType.SYMBOL:
            return NodeText(tok.loc,tok.is_space,tok.s)

        match tok.s:
            case "__LINE__":
                return NodeCurrentLine(tok.loc)
            case "__FILE__":
                return NodeCurrentFile(tok.loc)

        next_tok=it.peek()
        if next_tok is not None and next_tok.s=="(" and next_tok.token_type==TokenType.OPERATOR_PUNCTUATION and tok.touches(next_tok):
            return self.parse_call(it,tok)

        return NodeIdent(tok.loc,tok.s)

    def parse_call(self,it:Iter[Token],name_tok:Token)->NodeIdent:
        "arguments are split at commas outside of any brackets"
        open_tok=it.advance()

        args:list[list[Node]]=[[]]
        depth=0
        while True:
            if it.empty:
                raise MacroSyntaxError(Location(name_tok.start,open_tok.end),f"unterminated argument list of {quote_string(name_tok.s)}")

            tok=it.advance()
            if tok.token_type==TokenType.OPERATOR_PUNCTUATION:
                if tok.s in OPENING_BRACKETS:
                    depth+=1
                elif tok.s in CLOSING_BRACKETS:
                    if depth==0 and tok.s==")":
                        close_tok=tok
                        break
                    depth=max(depth-1,0)
                elif tok.s=="," and depth==0:
                    args.append([])
                    continue

            args[-1].append(self.parse_text_token(it,tok))

        # f() and f( ) apply f to no arguments
        if len(args)==1 and all(isinstance(node,NodeText) and node.is_space for node in args[0]):
            args=[]

        return NodeIdent(name_tok.loc.spanning(close_tok.loc),name_tok.s,args)

def parse(filename:str,file_contents:str)->list[Node]:
    "parse the whole contents of a file into the directive tree"
    return Parser(filename,tokenize(filename,file_contents)).parse()
