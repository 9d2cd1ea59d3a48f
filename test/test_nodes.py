import time

from py_location import Location
from py_nodes import *

LOC=Location.placeholder("t.ml")

def all_subclasses(cls:type)->list[type]:
    ret=[]
    for sub in cls.__subclasses__():
        ret.append(sub)
        ret.extend(all_subclasses(sub))
    return ret

def test_every_node_kind_has_one_class():
    kinds=[cls.kind for cls in all_subclasses(Node)]
    assert sorted(kinds)==sorted(NodeKind)

def test_every_arith_kind_is_constructible():
    for kind in ArithKind:
        match kind:
            case ArithKind.VALUE:
                expr:ArithExpr=ArithValue(1)
            case ArithKind.IDENT:
                expr=ArithIdent(LOC,"x")
            case _ if kind.is_unary:
                expr=ArithOperation(kind,ArithValue(1))
            case _:
                expr=ArithOperation(kind,ArithValue(1),ArithValue(2))
        assert expr.kind==kind

def test_every_bool_kind_is_constructible():
    exprs:list[BoolExpr]=[
        BoolValue(True),
        BoolValue(False),
        BoolDefined("x"),
        BoolNot(BoolValue(True)),
        BoolLogic(BoolKind.AND,BoolValue(True),BoolValue(False)),
        BoolLogic(BoolKind.OR,BoolValue(True),BoolValue(False)),
        BoolCompare(BoolKind.EQUAL,ArithValue(1),ArithValue(2)),
        BoolCompare(BoolKind.LESS_THAN,ArithValue(1),ArithValue(2)),
        BoolCompare(BoolKind.GREATER_THAN,ArithValue(1),ArithValue(2)),
    ]
    assert sorted(expr.kind for expr in exprs)==sorted(BoolKind)

def test_env_is_persistent():
    macro=ObjectMacro(LOC,"A",[],Env())
    empty=Env()
    with_a=empty.add("A",macro)

    assert "A" not in empty
    assert with_a.get("A") is macro
    assert len(with_a)==1

    without_a=with_a.remove("A")
    assert "A" in with_a
    assert "A" not in without_a

def test_env_remove_missing_returns_same_env():
    env=Env()
    assert env.remove("nope") is env

def test_macro_captures_definition_env():
    env=Env().add("A",ObjectMacro(LOC,"A",[],Env()))
    b=ObjectMacro(LOC,"B",[NodeIdent(LOC,"A")],env)
    later=env.remove("A").add("B",b)
    assert "A" not in later
    assert "A" in b.env

def test_print(capsys):
    node=NodeConditional(LOC,BoolDefined("X"),[NodeDefine(LOC,"Y",[NodeText(LOC,False,"1")])],[NodeIdent(LOC,"f",[[NodeText(LOC,False,"a")]])])
    node.print()
    out=capsys.readouterr().out
    assert "if: defined X" in out
    assert "define: Y" in out
    assert "call: f" in out
    assert "text: '1'" in out

def test_env_matches_dict_under_adds_and_removes():
    macros={f"M{i}":ObjectMacro(LOC,f"M{i}",[],Env()) for i in range(200)}
    model:dict[str,ObjectMacro]={}
    env=Env()
    # interleave adds, redefinitions and removes in a scattered order
    for step in range(600):
        name=f"M{(step*37)%200}"
        if step%3==2:
            env=env.remove(name)
            model.pop(name,None)
        else:
            env=env.add(name,macros[name])
            model[name]=macros[name]

        assert len(env)==len(model)
    assert list(env)==sorted(model)
    for name in macros:
        assert env.get(name) is model.get(name)

def test_env_stays_balanced():
    env=Env()
    for i in range(4096):
        env=env.add(f"M{i:05d}",ObjectMacro(LOC,f"M{i:05d}",[],Env()))
    assert len(env)==4096
    # a height balanced tree holds at least fib(h) nodes
    assert env.height<=18

    for i in range(0,4096,2):
        env=env.remove(f"M{i:05d}")
    assert len(env)==2048
    assert env.height<=17
    assert "M00001" in env and "M00002" not in env

def test_env_add_leaves_earlier_versions_intact():
    versions=[Env()]
    for i in range(50):
        versions.append(versions[-1].add(f"M{i}",ObjectMacro(LOC,f"M{i}",[],Env())))
    for count,env in enumerate(versions):
        assert len(env)==count
        assert ("M0" in env)==(count>0)
        assert f"M{count}" not in env

def test_env_many_adds_are_fast():
    macro=ObjectMacro(LOC,"M",[],Env())
    start=time.perf_counter()
    env=Env()
    for i in range(50_000):
        env=env.add(f"M{i}",macro)
    for i in range(50_000):
        assert env.get(f"M{i}") is macro
    elapsed=time.perf_counter()-start

    assert len(env)==50_000
    assert elapsed<10.0
