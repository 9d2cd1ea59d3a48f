from py_location import *

def pos(line:int,col:int,filename:str="t.ml")->Position:
    return Position(filename,line,100,100+col)

def test_describe():
    loc=Location(pos(3,4),pos(3,9))
    assert loc.describe()=='File "t.ml", line 3, characters 4-9'
    assert str(loc)==loc.describe()

def test_describe_multiline_counts_from_start_line():
    loc=Location(Position("t.ml",1,0,2),Position("t.ml",2,10,15))
    assert loc.describe()=='File "t.ml", line 1, characters 2-15'

def test_quote_string():
    assert quote_string("a.ml")=='"a.ml"'
    assert quote_string('say "hi"\\')=='"say \\"hi\\"\\\\"'
    assert quote_string("a\nb\x01")=='"a\\nb\\001"'

def test_quote_string_escapes_non_ascii_bytes():
    # é is c3 a9 in utf-8, \udcff is the undecodable byte ff
    assert quote_string("café.ml")=='"caf\\195\\169.ml"'
    assert quote_string("x\udcff")=='"x\\255"'
    assert quote_string("\x7f~")=='"\\127~"'

def test_line_directive_escapes_non_ascii_filename():
    assert line_directive(Position("déf.ml",2,0,0),None)=='\n# 2 "d\\195\\169f.ml"\n'

def test_format_diagnostic():
    loc=Location(pos(1,0),pos(1,13))
    assert format_diagnostic(loc,"Error","boom")=='File "t.ml", line 1, characters 0-13\nError: boom'
    assert format_diagnostic(None,"Warning","careful")=="Warning: careful"

def test_line_directive():
    assert line_directive(pos(2,0),None)=='\n# 2 "t.ml"\n'
    assert line_directive(pos(2,3),"t.ml")=="\n# 2\n   "
    assert line_directive(pos(7,1,"u.ml"),"t.ml")=='\n# 7 "u.ml"\n '

def test_explicit_line_directive():
    assert explicit_line_directive(10,None)=="\n# 10\n"
    assert explicit_line_directive(10,"x.ml")=='\n# 10 "x.ml"\n'

def test_marker_written_once_before_text():
    out=OutputBuffer()
    out.write_text("a",pos(1,0),False)
    out.write_text("b",pos(1,1),False)
    assert out.getvalue()=='\n# 1 "t.ml"\nab'

def test_whitespace_does_not_flush_marker():
    out=OutputBuffer()
    out.write_text("  ",pos(1,0),True)
    assert out.getvalue()=="  "
    assert out.marker_owed

    out.write_text("x",pos(1,2),False)
    assert out.getvalue()=='  \n# 1 "t.ml"\n  x'
    assert not out.marker_owed

def test_marker_omits_unchanged_filename():
    out=OutputBuffer()
    out.write_text("a",pos(1,0),False)
    out.owe_marker()
    out.write_text("b",pos(3,0),False)
    out.owe_marker()
    out.write_text("c",pos(1,0,"inc.ml"),False)
    assert out.getvalue()=='\n# 1 "t.ml"\na\n# 3\nb\n# 1 "inc.ml"\nc'

def test_flush_marker_keeps_owed_state():
    out=OutputBuffer()
    out.flush_marker(pos(1,0))
    assert out.marker_owed
    assert out.last_file=="t.ml"

def test_reset_markers():
    out=OutputBuffer()
    out.write_text("a",pos(1,0),False)
    out.reset_markers()
    assert out.marker_owed
    assert out.last_file is None

    out.write_text("b",pos(1,0),False)
    assert out.getvalue()=='\n# 1 "t.ml"\na\n# 1 "t.ml"\nb'

def test_write_bypasses_markers():
    out=OutputBuffer()
    out.write("raw")
    assert out.getvalue()=="raw"
    assert out.marker_owed
