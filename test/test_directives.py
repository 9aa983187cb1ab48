import pytest

from twowaysql.directives import DirectiveCompiler, is_condition
from twowaysql.errors import MalformedDirective, UnknownFunctionName
from twowaysql.functions import ConcatFunction, FunctionRegistry


def param(key, negative=False):
    return {"type": "param", "key": key, "negative": negative}


def literal(value):
    return {"type": "literal", "value": value}


@pytest.fixture
def compiler():
    return DirectiveCompiler(resource_info="test.sql")


@pytest.mark.parametrize(
    "source, expected",
    [
        ("$age", [param("age")]),
        ("age", [param("age")]),
        ("$!age", [param("age", True)]),
        ("!age", [param("age", True)]),
        ("$people[0].name", [param("people[0].name")]),
        ("&flag", [{"type": "presence", "key": "flag", "negative": False}]),
        ("&!flag", [{"type": "presence", "key": "flag", "negative": True}]),
        ("?ids", [{"type": "condition", "key": "ids", "negative": False}]),
        ("@id", [{"type": "required", "key": "id"}]),
        ("'it''s'", [literal("it's")]),
        ('"a"', [literal("a")]),
        (":FOR UPDATE NOWAIT", [literal("FOR UPDATE NOWAIT")]),
        ("($a $b)", [{"type": "group", "chain": [param("a"), param("b")]}]),
    ],
)
def test_terms(compiler, source, expected):
    assert compiler.compile(source) == expected


def test_function_consumes_following_terms(compiler):
    assert compiler.compile("%L '%' $name '%'") == [
        {
            "type": "function",
            "name": "L",
            "negative": False,
            "inside": None,
            "chain": [literal("%"), param("name"), literal("%")],
        }
    ]


def test_function_inside(compiler):
    (node,) = compiler.compile("#IF($a) :text")
    assert node["inside"] == [param("a")]
    assert node["chain"] == [literal("text")]


def test_function_inside_must_be_adjacent(compiler):
    (node,) = compiler.compile("%IF ($a) :text")
    assert node["inside"] is None
    assert node["chain"][0] == {"type": "group", "chain": [param("a")]}


def test_bar_terminates_function_chain(compiler):
    function, after = compiler.compile("%C $a | $b")
    assert function["chain"] == [param("a")]
    assert after == param("b")


def test_bare_sigil_terminates_function_chain(compiler):
    function, after = compiler.compile("%C $a % $b")
    assert function["chain"] == [param("a")]
    assert after == param("b")
    (outer,) = compiler.compile("%ESCLIKE %CONCAT key1 key2%")
    assert outer["chain"] == [
        {
            "type": "function",
            "name": "CONCAT",
            "negative": False,
            "inside": None,
            "chain": [param("key1"), param("key2")],
        }
    ]


def test_nested_functions(compiler):
    (outer,) = compiler.compile("%ESCLIKE %CONCAT key1 key2")
    assert outer["name"] == "ESCLIKE"
    (inner,) = outer["chain"]
    assert inner["name"] == "CONCAT"
    assert inner["chain"] == [param("key1"), param("key2")]


def test_negated_function(compiler):
    (node,) = compiler.compile("%!IF $a")
    assert node["negative"] is True


def test_registry_extension():
    compiler = DirectiveCompiler(FunctionRegistry.default().extend(JOIN=ConcatFunction()))
    (node,) = compiler.compile("%JOIN $a $b")
    assert node["name"] == "JOIN"


@pytest.mark.parametrize(
    "source, error",
    [
        ("", MalformedDirective),
        ("   ", MalformedDirective),
        ("|", MalformedDirective),
        ("%NOPE $a", UnknownFunctionName),
        ("%IF", MalformedDirective),
        ("%IFLN | $a", MalformedDirective),
        ("($a", MalformedDirective),
        ("$a)", MalformedDirective),
        ("'abc", MalformedDirective),
        ("@!id", MalformedDirective),
        ("$a = 1", MalformedDirective),
    ],
)
def test_errors(compiler, source, error):
    with pytest.raises(error) as excinfo:
        compiler.compile(source, lineno=4)
    assert "test.sql, line 4" in str(excinfo.value)


def test_is_condition(compiler):
    assert is_condition(compiler.compile("?id"))
    assert not is_condition(compiler.compile("$id"))
    assert not is_condition([])
