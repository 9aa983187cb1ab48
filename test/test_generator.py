import pyarrow as pa
import pytest

from twowaysql import render
from twowaysql.errors import MissingParameterError
from twowaysql.functions import ConcatFunction, FunctionRegistry, TransformFunction
from twowaysql.generator import SQLGenerator
from twowaysql.params import params, params_on
from twowaysql.parser import parse_template

PEOPLE = """\
SELECT * FROM people
WHERE
  age > /* $age */25
  AND name = /* $name */'x'
"""


def marks(count):
    return ", ".join(["?"] * count)


@pytest.fixture
def generator():
    return SQLGenerator()


def test_literal_passthrough(generator):
    template = parse_template("SELECT id, name FROM people WHERE age >= 18")
    expected = ("SELECT id, name FROM people WHERE age >= 18", [])
    assert generator.generate(template, {}) == expected
    assert generator.generate(template, {}) == expected
    assert generator.generate(template) == expected


def test_lines_are_joined(generator):
    template = parse_template("SELECT *\n  FROM people\n\tWHERE age > 1\n")
    assert generator.generate(template, {}) == ("SELECT * FROM people WHERE age > 1", [])


def test_conditional_drop(generator):
    template = parse_template(
        "select * from people where 1=1\n"
        "  and age > ? -- $age\n"
        "  and name like ? -- $namePart"
    )
    assert generator.generate(template, {"namePart": "%A%"}) == (
        "select * from people where 1=1 and name like ?",
        ["%A%"],
    )
    assert generator.generate(template, {"age": 100, "namePart": "%A%"}) == (
        "select * from people where 1=1 and age > ? and name like ?",
        [100, "%A%"],
    )


def test_leading_delimiter_removed(generator):
    template = parse_template(PEOPLE)
    assert generator.generate(template, {"name": "Mario"}) == (
        "SELECT * FROM people WHERE name = ?",
        ["Mario"],
    )
    assert generator.generate(template, {"age": 3}) == (
        "SELECT * FROM people WHERE age > ?",
        [3],
    )


def test_where_removed_with_all_its_conditions(generator):
    template = parse_template(PEOPLE)
    assert generator.generate(template, {}) == ("SELECT * FROM people", [])


def test_trailing_comma_removed(generator):
    template = parse_template(
        "UPDATE people SET\n"
        "  name = /* $name */'x',\n"
        "  age = /* $age */1\n"
        "WHERE id = /* @id */1"
    )
    assert generator.generate(template, {"name": "M", "id": 7}) == (
        "UPDATE people SET name = ? WHERE id = ?",
        ["M", 7],
    )
    assert generator.generate(template, {"age": 3, "id": 7}) == (
        "UPDATE people SET age = ? WHERE id = ?",
        [3, 7],
    )


def test_required_parameter(generator):
    template = parse_template("SELECT * FROM t WHERE id = /* @id */1", "t.sql")
    assert generator.generate(template, {"id": 0}) == ("SELECT * FROM t WHERE id = ?", [0])
    with pytest.raises(MissingParameterError) as excinfo:
        generator.generate(template, {})
    assert excinfo.value.key == "id"
    assert "t.sql" in str(excinfo.value)


@pytest.mark.parametrize("value", [None, False, [], [None, False], 0, "", True, [1], "x"])
def test_negation_is_complementary(generator, value):
    plain = parse_template("SELECT *\nWHERE\n  flag_on = 1 -- &flag")
    negated = parse_template("SELECT *\nWHERE\n  flag_on = 1 -- &!flag")
    kept_plain = "flag_on" in generator.generate(plain, {"flag": value})[0]
    kept_negated = "flag_on" in generator.generate(negated, {"flag": value})[0]
    assert kept_plain != kept_negated


def test_negated_reference_binds_nothing(generator):
    template = parse_template("SELECT *\nWHERE\n  deleted = 0 -- $!showDeleted")
    assert generator.generate(template, {}) == ("SELECT * WHERE deleted = 0", [])
    assert generator.generate(template, {"showDeleted": True}) == ("SELECT *", [])


def test_list_expansion(generator):
    template = parse_template("SELECT * FROM t WHERE id IN /* $ids */(1, 2)")
    assert generator.generate(template, {"ids": [1, 2, 3]}) == (
        "SELECT * FROM t WHERE id IN (?, ?, ?)",
        [1, 2, 3],
    )


def test_line_comment_list_expansion(generator):
    template = parse_template("SELECT * FROM t WHERE id IN (?) -- $ids")
    assert generator.generate(template, {"ids": ("a", "b")}) == (
        "SELECT * FROM t WHERE id IN (?, ?)",
        ["a", "b"],
    )


def test_conditional_reference(generator):
    template = parse_template("SELECT * FROM t\nWHERE\n  id = /* ?ids */1")
    assert generator.generate(template, {"ids": 5}) == ("SELECT * FROM t WHERE id = ?", [5])
    assert generator.generate(template, {"ids": [1, 2, 3]}) == (
        "SELECT * FROM t WHERE id IN (?, ?, ?)",
        [1, 2, 3],
    )
    assert generator.generate(template, {"ids": []}) == ("SELECT * FROM t", [])


def test_conditional_reference_not_equal(generator):
    template = parse_template("SELECT * FROM t WHERE id <> /* ?ids */1")
    assert generator.generate(template, {"ids": [1, 2]}) == (
        "SELECT * FROM t WHERE id NOT IN (?, ?)",
        [1, 2],
    )


def test_conditional_reference_in_scalar(generator):
    template = parse_template("SELECT * FROM t WHERE id IN /* ?ids */(1)")
    assert generator.generate(template, {"ids": 5}) == (
        "SELECT * FROM t WHERE id IN (?)",
        [5],
    )
    template = parse_template("SELECT * FROM t WHERE id NOT IN /* ?ids */(1)")
    assert generator.generate(template, {"ids": 5}) == (
        "SELECT * FROM t WHERE id NOT IN (?)",
        [5],
    )
    template = parse_template("SELECT * FROM t WHERE id <> /* ?ids */1")
    assert generator.generate(template, {"ids": 5}) == (
        "SELECT * FROM t WHERE id <> ?",
        [5],
    )


def test_negated_conditional_reference_keeps_sample(generator):
    template = parse_template("SELECT * FROM t\nWHERE\n  id = /* ?!id */1")
    assert generator.generate(template, {}) == ("SELECT * FROM t WHERE id = 1", [])
    assert generator.generate(template, {"id": 3}) == ("SELECT * FROM t", [])


def test_chunking(generator):
    ids = list(range(3333))
    template = parse_template("SELECT * FROM t WHERE id IN /* ?ids */(1)")
    sql, values = generator.generate(template, {"ids": ids})
    chunks = " OR ".join(f"id IN ({marks(n)})" for n in (1000, 1000, 1000, 333))
    assert sql == f"SELECT * FROM t WHERE ({chunks})"
    assert values == ids


def test_in_limit_is_configurable():
    template = parse_template("SELECT * FROM t WHERE id = /* ?ids */1")
    sql, values = SQLGenerator(in_limit=2).generate(template, {"ids": [1, 2, 3]})
    assert sql == "SELECT * FROM t WHERE (id IN (?, ?) OR id IN (?))"
    assert values == [1, 2, 3]


def test_arrow_values(generator):
    template = parse_template("SELECT * FROM t WHERE id = /* ?ids */1")
    assert generator.generate(template, {"ids": pa.array([1, 2])}) == (
        "SELECT * FROM t WHERE id IN (?, ?)",
        [1, 2],
    )
    assert generator.generate(template, {"ids": pa.scalar(4)}) == (
        "SELECT * FROM t WHERE id = ?",
        [4],
    )


def test_group_content(generator):
    template = parse_template(
        "SELECT * FROM t\n"
        "WHERE\n"
        "  status = 1\n"
        "  AND (\n"
        "    a = /* $a */1\n"
        "    OR b = /* $b */2\n"
        "  )"
    )
    assert generator.generate(template, {"b": 2}) == (
        "SELECT * FROM t WHERE status = 1 AND (b = ?)",
        [2],
    )
    assert generator.generate(template, {"a": 1, "b": 2}) == (
        "SELECT * FROM t WHERE status = 1 AND (a = ? OR b = ?)",
        [1, 2],
    )
    assert generator.generate(template, {}) == ("SELECT * FROM t WHERE status = 1", [])


def test_function_composition(generator):
    values = {"key1": "50%", "key2": "a_b"}
    for source in (
        "%ESCLIKE %CONCAT key1 key2",
        "%ESCLIKE %CONCAT key1 key2%",
        "%CONCAT %ESCLIKE key1 key2",
    ):
        template = parse_template(f"SELECT * FROM t WHERE a LIKE /* {source} */'x'")
        assert generator.generate(template, values) == (
            "SELECT * FROM t WHERE a LIKE ?",
            ["50#%a#_b"],
        )


def test_like(generator):
    template = parse_template(
        "SELECT * FROM t\nWHERE\n  name LIKE /* %L '%' $part '%' */'%a%'"
    )
    assert generator.generate(template, {"part": "10%"}) == (
        "SELECT * FROM t WHERE name LIKE ? ESCAPE '#'",
        ["%10#%%"],
    )
    assert generator.generate(template, {}) == ("SELECT * FROM t", [])


def test_if(generator):
    template = parse_template("SELECT * FROM t\n/* %IF $lock :FOR UPDATE */")
    assert generator.generate(template, params_on("lock")) == (
        "SELECT * FROM t FOR UPDATE",
        [],
    )
    assert generator.generate(template, {}) == ("SELECT * FROM t", [])


def test_negated_if(generator):
    template = parse_template("SELECT * FROM t\n/* %!IF $all :LIMIT 10 */")
    assert generator.generate(template, {}) == ("SELECT * FROM t LIMIT 10", [])
    assert generator.generate(template, {"all": True}) == ("SELECT * FROM t", [])


def test_ifln_keeps_the_line(generator):
    template = parse_template("SELECT * FROM t /* %IFLN $lock :FOR UPDATE */")
    assert generator.generate(template, {"lock": True}) == (
        "SELECT * FROM t FOR UPDATE",
        [],
    )
    assert generator.generate(template, {}) == ("SELECT * FROM t", [])


def test_empty_ifln_line_counts_as_dropped(generator):
    template = parse_template(
        "SELECT * FROM t\nWHERE\n  /* %IFLN $x :a = 1 */\n  AND b = 2"
    )
    assert generator.generate(template, {}) == ("SELECT * FROM t WHERE b = 2", [])
    assert generator.generate(template, {"x": True}) == (
        "SELECT * FROM t WHERE a = 1 AND b = 2",
        [],
    )


def test_sql_function(generator):
    template = parse_template("SELECT * FROM t\nORDER BY /* %SQL $order */id")
    assert generator.generate(template, {"order": "name DESC"}) == (
        "SELECT * FROM t ORDER BY name DESC",
        [],
    )
    assert generator.generate(template, {}) == ("SELECT * FROM t", [])


def test_literal_directive(generator):
    template = parse_template("SELECT * FROM t /* :ORDER BY id */")
    assert generator.generate(template, {}) == ("SELECT * FROM t ORDER BY id", [])


def test_compact(generator):
    template = parse_template("SELECT * FROM t WHERE id IN /* %COMPACT $ids */(1)")
    assert generator.generate(template, {"ids": [1, None, 2]}) == (
        "SELECT * FROM t WHERE id IN (?, ?)",
        [1, 2],
    )


def test_hints_are_kept(generator):
    template = parse_template("SELECT /*+ INDEX(t idx) */ * FROM t")
    assert generator.generate(template, {}) == ("SELECT /*+ INDEX(t idx) */ * FROM t", [])


def test_empty_as_negative(generator):
    template = parse_template(PEOPLE)
    assert generator.generate(template, {"name": ""}) == (
        "SELECT * FROM people WHERE name = ?",
        [""],
    )
    assert generator.empty_as_negative().generate(template, {"name": ""}) == (
        "SELECT * FROM people",
        [],
    )


def test_as_negative(generator):
    template = parse_template(PEOPLE)
    custom = generator.as_negative(-1)
    assert custom.generate(template, {"age": -1}) == ("SELECT * FROM people", [])
    assert generator.generate(template, {"age": -1}) == (
        "SELECT * FROM people WHERE age > ?",
        [-1],
    )


class UpperFunction(TransformFunction):
    def transform(self, chain, negatives):
        concatenated = ConcatFunction().transform(chain, negatives)
        concatenated.params = [p.upper() for p in concatenated.params]
        return concatenated


def test_custom_function():
    registry = FunctionRegistry.default().extend(UPPER=UpperFunction())
    sql, values = render(
        "SELECT * FROM t WHERE name = /* %UPPER $name */'x'",
        params("name", "mario"),
        registry=registry,
    )
    assert sql == "SELECT * FROM t WHERE name = ?"
    assert values == ["MARIO"]


def test_render_shortcut():
    assert render(PEOPLE, {"age": 30}, "people.sql", negative_values=[30]) == (
        "SELECT * FROM people",
        [],
    )
