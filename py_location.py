from dataclasses import dataclass
import typing as tp

@dataclass(frozen=True)
class Position:
    "a point in a source file. line is 1-based, offsets are 0-based character offsets into the file"
    filename:str
    line:int
    line_start:int
    " offset of the first character of the line "
    offset:int

    @property
    def col(self)->int:
        return self.offset-self.line_start

    @tp.override
    def __str__(self):
        return f"{self.filename}:{self.line}:{self.col+1}"

    @staticmethod
    def placeholder(filename:str="")->"Position":
        return Position(filename,0,0,0)

@dataclass(frozen=True)
class Location:
    start:Position
    end:Position

    @property
    def filename(self)->str:
        return self.start.filename

    @property
    def line(self)->int:
        return self.start.line

    def describe(self)->str:
        "render as 'File \"f\", line n, characters c1-c2'. both character columns are relative to the start line"
        c1=self.start.offset-self.start.line_start
        c2=self.end.offset-self.start.line_start
        return f"File {quote_string(self.start.filename)}, line {self.start.line}, characters {c1}-{c2}"

    def spanning(self,other:"Location")->"Location":
        "location covering self up to the end of other"
        return Location(self.start,other.end)

    @tp.override
    def __str__(self):
        return self.describe()

    @staticmethod
    def placeholder(filename:str="")->"Location":
        pos=Position.placeholder(filename)
        return Location(pos,pos)

_ESCAPES={
    '"':'\\"',
    "\\":"\\\\",
    "\n":"\\n",
    "\t":"\\t",
    "\r":"\\r",
    "\b":"\\b",
}

def quote_string(s:str)->str:
    "double-quote s, escaping quotes and backslashes. other bytes outside printable ascii become three decimal digits"
    ret='"'
    for c in s:
        escaped=_ESCAPES.get(c)
        if escaped is not None:
            ret+=escaped
        elif " "<=c<="~":
            ret+=c
        else:
            # undecodable input bytes are carried as surrogates and escape to the original byte
            for byte in c.encode("utf-8","surrogateescape"):
                ret+=f"\\{byte:03d}"
    return ret+'"'

def format_diagnostic(loc:Location|None,severity:str,message:str)->str:
    if loc is None:
        return f"{severity}: {message}"
    return f"{loc.describe()}\n{severity}: {message}"

def line_directive(pos:Position,prev_file:str|None)->str:
    """
    marker text announcing that the following output comes from pos.
    the filename is left out if it matches the previously announced one.
    the source column is reproduced as indentation.
    """
    if prev_file is not None and prev_file==pos.filename:
        ret=f"\n# {pos.line}\n"
    else:
        ret=f"\n# {pos.line} {quote_string(pos.filename)}\n"

    return ret+(" "*pos.col)

def explicit_line_directive(line:int,filename:str|None)->str:
    if filename is None:
        return f"\n# {line}\n"
    return f"\n# {line} {quote_string(filename)}\n"

class OutputBuffer:
    """
    append-only output, interleaving text with location markers.

    a marker is owed after any directive; it is written right before the next
    non-whitespace text and then cleared. whitespace never forces a marker.
    """

    def __init__(self):
        self.parts:list[str]=[]

        self.marker_owed:bool=True
        self.last_file:str|None=None
        " filename announced by the most recent marker "

    def reset_markers(self):
        "start a fresh top-level source: owe a marker, forget the last announced file"
        self.marker_owed=True
        self.last_file=None

    def owe_marker(self):
        self.marker_owed=True

    def flush_marker(self,pos:Position):
        "write a marker for pos if one is owed. does not clear the owed state"
        if self.marker_owed:
            self.parts.append(line_directive(pos,self.last_file))
            self.last_file=pos.filename

    def write_text(self,s:str,pos:Position,is_space:bool):
        if not is_space:
            self.flush_marker(pos)
            self.marker_owed=False

        self.parts.append(s)

    def write(self,s:str):
        "append raw text, bypassing the marker logic"
        self.parts.append(s)

    def getvalue(self)->str:
        return "".join(self.parts)
