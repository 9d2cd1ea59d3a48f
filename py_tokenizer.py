from dataclasses import dataclass
import typing as tp
from enum import Enum
import re

from py_util import *
from py_location import Position, Location
from py_errors import MacroSyntaxError

class TokenType(int,Enum):
    WHITESPACE=1
    NEWLINE=2
    COMMENT=3

    SYMBOL=4
    OPERATOR_PUNCTUATION=5

    LINE_CONTINUATION=6
    " backslash immediately followed by a newline "

    LITERAL_STRING=0x10
    LITERAL_CHAR=0x11
    LITERAL_NUMBER=0x12

@dataclass
class Token:
    s:str
    start:Position
    end:Position
    token_type:TokenType=TokenType.SYMBOL

    @property
    def loc(self)->Location:
        return Location(self.start,self.end)

    @property
    def is_space(self)->bool:
        return self.token_type in (TokenType.WHITESPACE,TokenType.NEWLINE)

    @property
    def is_blank(self)->bool:
        "whitespace, comment or line continuation, i.e. irrelevant inside a directive"
        return self.token_type in (TokenType.WHITESPACE,TokenType.COMMENT,TokenType.LINE_CONTINUATION)

    def touches(self,other:"Token")->bool:
        "True if other starts exactly where this token ends"
        return self.end.offset==other.start.offset

    @tp.override
    def __str__(self)->str:
        return f"{self.s!r} at {self.start}"

WHITESPACE_NONEWLINE_CHARS=set(" \t\r\f\v")
def is_whitespace(c:str)->bool:
    assert len(c)==1, f"{len(c) = } ; {c = }"
    return c in WHITESPACE_NONEWLINE_CHARS

def is_ident_start(c:str)->bool:
    return c=="_" or ("a"<=c<="z") or ("A"<=c<="Z")

def is_ident_char(c:str)->bool:
    return is_ident_start(c) or is_numeric(c) or c=="'"

def is_numeric(c:str)->bool:
    return "0"<=c<="9"

SPECIAL_COMPOUND_SYMBOLS=[
    "<>",
    "<=",
    ">=",

    "&&",
    "||",
]
"compound symbols used by conditional expressions"

CHAR_LITERAL_RE=re.compile(r"'(?:[^\\'\n]|\\(?:[\\'\"ntbr ]|[0-9]{3}|x[0-9a-fA-F]{2}|o[0-3][0-7]{2}))'")

class Tokenizer:
    " utility class to convert file characters into tokens "

    def __init__(self,filename:str,file_contents:str):
        self.filename:str=filename
        self.file_contents:str=file_contents
        self.file_index:int=0

        self.line:int=1
        self.line_start:int=0

        self.tokens:list[Token]=[]

    @property
    def c(self)->str:
        " return character at current pointer location "
        return self.c_fut(0)

    def c_fut(self,n:int)->str:
        " return character n positions in advance of current pointer, or empty string past the end "
        index=self.file_index+n
        if index>=len(self.file_contents):
            return ""
        return self.file_contents[index]

    @property
    def remaining(self)->bool:
        " return True if any characters are remaining in the file "
        return self.file_index<len(self.file_contents)

    def adv(self,n:int=1):
        " advance pointer by n characters, keeping track of line starts "
        for _ in range(n):
            if not self.remaining:
                break
            if self.c=="\n":
                self.line+=1
                self.line_start=self.file_index+1
            self.file_index+=1

    def current_pos(self)->Position:
        " return source position of current pointer into file "
        return Position(self.filename,self.line,self.line_start,self.file_index)

    def error(self,start:Position,message:str)->tp.NoReturn:
        raise MacroSyntaxError(Location(start,self.current_pos()),message)

    def add_tok(self,start:Position,token_type:TokenType):
        s=self.file_contents[start.offset:self.file_index]
        self.tokens.append(Token(s,start,self.current_pos(),token_type))

    def parse_string_literal(self,start:Position):
        self.adv() # opening quote
        while self.remaining:
            if self.c=="\\":
                self.adv(2)
                continue

            if self.c=='"':
                self.adv()
                return

            self.adv()

        self.error(start,"unterminated string literal")

    def parse_comment(self,start:Position):
        "nested (* *) comment. string literals inside comments are skipped as a whole"
        depth=0
        while self.remaining:
            if self.c=="(" and self.c_fut(1)=="*":
                depth+=1
                self.adv(2)
            elif self.c=="*" and self.c_fut(1)==")":
                depth-=1
                self.adv(2)
                if depth==0:
                    return
            elif self.c=='"':
                self.parse_string_literal(self.current_pos())
            else:
                self.adv()

        self.error(start,"unterminated comment")

    def parse_tokens(self)->list[Token]:
        self.tokens=[]

        while self.remaining:
            start=self.current_pos()
            c=self.c

            if c=="\n":
                self.adv()
                self.add_tok(start,TokenType.NEWLINE)

            elif is_whitespace(c):
                while self.remaining and is_whitespace(self.c):
                    self.adv()
                self.add_tok(start,TokenType.WHITESPACE)

            elif c=="\\" and (self.c_fut(1)=="\n" or (self.c_fut(1)=="\r" and self.c_fut(2)=="\n")):
                self.adv(2 if self.c_fut(1)=="\n" else 3)
                self.add_tok(start,TokenType.LINE_CONTINUATION)

            elif c=='"':
                self.parse_string_literal(start)
                self.add_tok(start,TokenType.LITERAL_STRING)

            elif c=="'":
                m=CHAR_LITERAL_RE.match(self.file_contents,self.file_index)
                self.adv(len(m.group(0)) if m is not None else 1)
                self.add_tok(start,TokenType.LITERAL_CHAR if m is not None else TokenType.OPERATOR_PUNCTUATION)

            elif c=="(" and self.c_fut(1)=="*":
                self.parse_comment(start)
                self.add_tok(start,TokenType.COMMENT)

            elif is_ident_start(c):
                while self.remaining and is_ident_char(self.c):
                    self.adv()
                self.add_tok(start,TokenType.SYMBOL)

            elif is_numeric(c):
                # suffixes and radix prefixes are part of the literal, validity is checked on use
                while self.remaining and (is_ident_char(self.c) and self.c!="'"):
                    self.adv()
                self.add_tok(start,TokenType.LITERAL_NUMBER)

            else:
                for compound_symbol in SPECIAL_COMPOUND_SYMBOLS:
                    if self.file_contents.startswith(compound_symbol,self.file_index):
                        self.adv(len(compound_symbol))
                        break
                else:
                    self.adv()
                self.add_tok(start,TokenType.OPERATOR_PUNCTUATION)

        return self.tokens

def tokenize(filename:str,file_contents:str)->list[Token]:
    return Tokenizer(filename,file_contents).parse_tokens()
