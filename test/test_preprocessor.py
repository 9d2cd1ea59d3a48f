import io
import re

import pytest

from py_errors import MacroNameError, ArityError, EvalError, UserError
from py_location import Location
from py_nodes import Env, NodeSequence, NodeDefine, NodeIdent, NodeText
from py_parser import parse
from py_preprocessor import Preprocessor, print_warning

MARKER_RE=re.compile(r'\n# \d+(?: "(?:[^"\\]|\\.)*")?\n *')

def preprocess(text:str,filename:str="t.ml",env:Env|None=None)->tuple[str,list[str]]:
    warnings:list[str]=[]
    p=Preprocessor(warn=warnings.append)
    _=p.expand_top_level(filename,env if env is not None else Env(),parse(filename,text))
    return p.getvalue(),warnings

def expand(text:str)->str:
    "output with all location markers removed"
    output,_=preprocess(text)
    return MARKER_RE.sub("",output)

def test_identity_without_macros():
    text="let x = (1, \"a\") (* c *)\n  in x\n"
    output,_=preprocess(text)
    assert output=='\n# 1 "t.ml"\n'+text
    assert expand(text)==text

def test_object_macro_output_with_marker():
    output,_=preprocess("#define X 1\nX\n")
    assert output=='\n# 1 "t.ml"\n          1\n'

def test_lexical_scoping():
    assert expand("#define A 1\n#define B A\n#undef A\nB\n")=="1\n"

def test_function_macro():
    assert expand("#define F(x) x x\nF(hi)\n")=="hi hi\n"

def test_function_macro_output_with_markers():
    output,_=preprocess("#define F(x) x x\nF(hi)\n")
    assert output=='\n# 2 "t.ml"\n  hi \n# 2\n  hi\n'

def test_arguments_expand_in_caller_scope():
    text="#define X 1\n#define F(a) a X\n#undef X\n#define X 2\nF(X)\n"
    assert expand(text)=="2 1\n"

def test_parameters_shadow_definitions():
    assert expand("#define a 0\n#define F(a) [a]\nF(1)\n")=="[1]\n"

def test_function_macro_multiple_arguments():
    assert expand("#define PAIR(a, b) (a, b)\nPAIR(f(x, y),[1; 2])\n")=="(f(x, y), [1; 2])\n"

def test_single_parameter_with_empty_call():
    assert expand("#define F(x) x\n[F()]\n")=="[]\n"

def test_zero_parameter_function_macro():
    assert expand("#define F() ok\nF()\n")=="ok\n"

def test_arity_error():
    with pytest.raises(ArityError) as e:
        preprocess("#define F(x) x\nF(a,b)\n")
    assert e.value.expected==1
    assert e.value.actual==2
    assert e.value.message=='"F" expects 1 argument but is applied to 2 arguments.'
    assert str(e.value)=='File "t.ml", line 2, characters 0-6\nError: "F" expects 1 argument but is applied to 2 arguments.'

def test_arity_error_plural():
    with pytest.raises(ArityError) as e:
        preprocess("#define F(x, y) x\nF(a)\n")
    assert e.value.message=='"F" expects 2 arguments but is applied to 1 argument.'

def test_function_macro_without_arguments():
    with pytest.raises(ArityError) as e:
        preprocess("#define F(x, y) x\nF\n")
    assert e.value.message=='"F" expects 2 arguments but is applied to none.'

def test_object_macro_with_arguments():
    with pytest.raises(MacroNameError) as e:
        preprocess("#define X 1\nX(2)\n")
    assert e.value.message=='"X" expects no arguments'

def test_unbound_call_round_trips():
    assert expand("#define X 1\nf(a, X)\n")=="f(a, 1)\n"
    assert expand("g()\n")=="g()\n"

def test_redefinition():
    with pytest.raises(MacroNameError) as e:
        preprocess("#define X 1\n#define X 2\n")
    assert e.value.message=='"X" is already defined'

def test_redefinition_after_undef():
    assert expand("#define X 1\n#undef X\n#define X 2\nX\n")=="2\n"

def test_undef_unbound_is_noop():
    assert expand("#undef NOPE\nok\n")=="ok\n"

def test_conditional_visits_one_branch():
    text="#if false\n#define X 1\n#endif\n#ifdef X\nyes\n#else\nno\n#endif\n"
    assert expand(text)=="no\n"

def test_conditional_arithmetic():
    text="#define N 0x10\n#if N * 2 = 32 && N lsr 4 = 1\nbig\n#elif N > 0\nsmall\n#endif\n"
    assert expand(text)=="big\n"

def test_elif_chain():
    text="#define V 2\n#if V = 1\none\n#elif V = 2\ntwo\n#else\nother\n#endif\n"
    assert expand(text)=="two\n"

def test_division_by_zero_in_conditional():
    with pytest.raises(EvalError) as e:
        preprocess("#define Z 0\n#if 1 / Z = 0\n#endif\n")
    assert e.value.message=="Division by zero"
    assert e.value.loc is not None and e.value.loc.line==2

def test_error_directive():
    with pytest.raises(UserError) as e:
        preprocess('#error "boom"\n')
    assert str(e.value)=='File "t.ml", line 1, characters 0-13\nError: boom'

def test_error_in_untaken_branch():
    assert expand('#if false\n#error "boom"\n#endif\nfine\n')=="fine\n"

def test_warning_directive():
    output,warnings=preprocess('#warning "careful"\nx\n')
    assert warnings==['File "t.ml", line 1, characters 0-18\nWarning: careful']
    assert MARKER_RE.sub("",output)=="x\n"

def test_default_warning_goes_to_stderr(capsys):
    print_warning("Warning: w")
    captured=capsys.readouterr()
    assert captured.out==""
    assert captured.err=="Warning: w\n"

def test_current_line_reports_call_site():
    output,_=preprocess("#define L __LINE__\nfoo\nL\n")
    assert output=='\n# 2 "t.ml"\nfoo\n\n# 1\n           3 \n'

def test_current_line_and_file_at_top_level():
    output,_=preprocess("__LINE__ __FILE__\n")
    assert output=='\n# 1 "t.ml"\n 1  \n# 1\n          "t.ml" \n'

def test_current_line_inside_nested_macros():
    output,_=preprocess("#define L __LINE__\n#define M L\n\nM\n")
    assert output.endswith(" 4 \n")

def test_explicit_line_directive():
    output,_=preprocess('# 5 "x.ml"\nfoo\n')
    assert output=='\n# 5 "x.ml"\n\n# 2 "t.ml"\nfoo\n'

def test_directive_forces_marker():
    output,_=preprocess("a\n#undef X\nb\n")
    assert output=='\n# 1 "t.ml"\na\n\n# 3\nb\n'

def test_include_sources_shares_environment():
    p=Preprocessor(warn=lambda message:None)
    sources=[("a.ml",io.StringIO("#define X 1\n")),("b.ml",io.StringIO("X\n"))]
    env=p.include_sources(Env(),sources)
    assert "X" in env
    assert p.getvalue()=='\n# 1 "a.ml"\n          1\n'

def test_include_sources_resets_markers():
    p=Preprocessor()
    _=p.include_sources(Env(),[("a.ml",io.StringIO("x\n")),("a.ml",io.StringIO("y\n"))])
    assert p.getvalue()=='\n# 1 "a.ml"\nx\n\n# 1 "a.ml"\ny\n'

def test_predefined_env_is_used():
    scratch=Preprocessor()
    env=scratch.expand_top_level("<command-line>",Env(),parse("<command-line>","#define DEBUG 1\n"))
    output,_=preprocess("#if DEBUG = 1\non\n#endif\n",env=env)
    assert MARKER_RE.sub("",output)=="on\n"

def test_sequence_threads_environment():
    loc=Location.placeholder("t.ml")
    p=Preprocessor()
    sequence=NodeSequence([NodeDefine(loc,"S",[NodeText(loc,False,"seq")]),NodeIdent(loc,"S")])
    env=p.expand_top_level("t.ml",Env(),[sequence])
    assert "S" in env
    assert MARKER_RE.sub("",p.getvalue())=="seq"
