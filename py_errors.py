import typing as tp

from py_location import Location, format_diagnostic

class PreprocessorError(Exception):
    "base class of all fatal preprocessing errors. str() yields the user facing diagnostic"

    def __init__(self,loc:Location|None,message:str):
        super().__init__(message)
        self.loc=loc
        self.message=message

    @tp.override
    def __str__(self)->str:
        return format_diagnostic(self.loc,"Error",self.message)

class MacroSyntaxError(PreprocessorError):
    "malformed source text or directive"

class MacroNameError(PreprocessorError):
    "unbound identifier in an expression, object macro applied to arguments, redefinition without #undef"

class ArityError(MacroNameError):
    "function macro applied to the wrong number of arguments"

    def __init__(self,loc:Location|None,name:str,expected:int,actual:int,message:str):
        super().__init__(loc,message)
        self.name=name
        self.expected=expected
        self.actual=actual

class EvalError(PreprocessorError):
    "arithmetic failure: division by zero, non-integer macro body, function macro inside an expression"

class CycleError(PreprocessorError):
    "file included from within its own inclusion chain"

    def __init__(self,loc:Location|None,filename:str,message:str):
        super().__init__(loc,message)
        self.filename=filename

class IncludeNotFoundError(PreprocessorError):
    pass

class UserError(PreprocessorError):
    "raised by an #error directive"
