from pathlib import Path
import typing as tp
import os

from py_location import Location, quote_string
from py_errors import IncludeNotFoundError
from py_nodes import Node
from py_parser import parse

class IncludeResolver:
    " finds and parses the files named by #include directives "

    def __init__(self,lookup_dirs:list[Path]|None=None,parse_func:tp.Callable[[str,str],list[Node]]=parse):
        self.lookup_dirs:list[Path]=lookup_dirs if lookup_dirs is not None else [Path(".")]
        " searched in order, after the directory of the including file "
        self.parse_func=parse_func

        self.parsed_files:dict[str,list[Node]]={}
        " parse cache, keyed by normalized path "

    @staticmethod
    def normalize(path:str|Path)->str:
        "normalized absolute form of path, used to compare files in the inclusion ancestry"
        return os.path.normpath(os.path.abspath(path))

    def resolve(self,path:str,from_file:str,loc:Location|None)->str:
        "return the path of the file that 'path', included from from_file, refers to"
        include_path=Path(path)
        if include_path.is_absolute():
            if include_path.is_file():
                return str(include_path)
            raise IncludeNotFoundError(loc,f"Cannot find included file {quote_string(path)}")

        candidates=[Path(from_file).parent/include_path]
        candidates.extend(lookup_dir/include_path for lookup_dir in self.lookup_dirs)

        for candidate in candidates:
            if candidate.is_file():
                return str(candidate)

        raise IncludeNotFoundError(loc,f"Cannot find included file {quote_string(path)}")

    def load(self,path:str)->list[Node]:
        "parse the file at path (the whole file is read at once). bytes that are not utf-8 pass through as surrogates. results are cached"
        key=self.normalize(path)
        nodes=self.parsed_files.get(key)
        if nodes is None:
            with open(path,"r",encoding="utf-8",errors="surrogateescape",newline="") as f:
                file_contents=f.read()
            nodes=self.parse_func(path,file_contents)
            self.parsed_files[key]=nodes

        return nodes
