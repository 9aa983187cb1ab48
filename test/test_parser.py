import pytest

from twowaysql.errors import (
    MalformedDirective,
    StrayCommentClose,
    UnbalancedParenthesis,
    UnknownFunctionName,
    UnterminatedComment,
    UnterminatedStringLiteral,
)
from twowaysql.nodes import Directive, Group, Line
from twowaysql.parser import TemplateParser, build_block, parse_template


def sqls(block):
    return [line.sql for line in block.lines]


def test_lines_and_indentation():
    template = parse_template(
        "SELECT *\nFROM people\nWHERE\n  age > 1\n  AND name = 'x'\nORDER BY id"
    )
    root = template.block
    assert sqls(root) == ["SELECT *", "FROM people", "WHERE", "ORDER BY id"]
    assert sqls(root.lines[2].block) == ["  age > 1", "  AND name = 'x'"]
    assert root.lines[2].start_lineno == 3
    assert root.lines[0].block is None


def test_blank_lines_are_discarded():
    template = parse_template("SELECT 1\n\n   \nFROM t\n")
    assert sqls(template.block) == ["SELECT 1", "FROM t"]


def test_block_comment_directive_with_value_in_back():
    template = parse_template("age > /* $age */25 AND 1=1")
    line = template.block.lines[0]
    assert line.sql == "age >  AND 1=1"
    (directive,) = line.directives
    assert directive.offset == 6
    assert directive.source == "$age"
    assert directive.fallback == "25"
    assert directive.expression == [{"type": "param", "key": "age", "negative": False}]


@pytest.mark.parametrize(
    "text, fallback",
    [
        ("name = /* $name */'it''s'", "'it''s'"),
        ('name = /* $name */"x"', '"x"'),
        ("id IN /* $ids */(1, (2), 3)", "(1, (2), 3)"),
        ("name = /* $name */ 'x'", None),
    ],
)
def test_value_in_back(text, fallback):
    (directive,) = parse_template(text).block.lines[0].directives
    assert directive.fallback == fallback


def test_line_comment_directive_takes_question_mark():
    line = parse_template("age > ? -- $age").block.lines[0]
    assert line.sql == "age > "
    (directive,) = line.directives
    assert directive.offset == 6
    assert directive.fallback == "?"


def test_line_comment_parenthesized_mark():
    line = parse_template("id IN (?) -- $ids").block.lines[0]
    assert line.sql == "id IN "
    assert line.directives[0].fallback == "(?)"


def test_line_comment_without_mark():
    line = parse_template("tako -- $octopus").block.lines[0]
    assert line.sql == "tako "
    assert line.directives[0].fallback is None


def test_condition_captures_comparison():
    line = parse_template("WHERE ID = /* ?id */1").block.lines[0]
    assert line.sql == "WHERE "
    (directive,) = line.directives
    assert (directive.prefix, directive.operator) == ("ID", "=")
    assert directive.offset == 6

    line = parse_template("WHERE t.ID not  in /* ?ids */(1, 2)").block.lines[0]
    assert line.sql == "WHERE "
    assert (line.directives[0].prefix, line.directives[0].operator) == ("t.ID", "not in")


def test_plain_comments():
    assert parse_template("SELECT 1 -- just a note").block.lines[0].sql == "SELECT 1 "
    assert parse_template("SELECT /** doc */ 1").block.lines[0].sql == "SELECT  1"
    assert parse_template("SELECT /** a /* b */ c */ 1").block.lines[0].sql == "SELECT  1"
    assert parse_template("SELECT /**/ 1").block.lines[0].sql == "SELECT  1"


def test_hints_are_kept():
    line = parse_template("SELECT /*+ INDEX(t idx) */ * FROM t").block.lines[0]
    assert line.sql == "SELECT /*+ INDEX(t idx) */ * FROM t"
    assert line.directives == ()


def test_single_line_parenthesis_is_folded():
    line = parse_template("WHERE (a = /* $a */1)").block.lines[0]
    assert line.sql == "WHERE (a = )"
    assert line.groups == ()
    assert line.directives[0].offset == 11


def test_multi_line_parenthesis_is_a_group():
    template = parse_template("WHERE id IN (\n  1,\n  2\n)")
    (line,) = template.block.lines
    assert line.sql == "WHERE id IN ()"
    assert (line.start_lineno, line.end_lineno) == (1, 4)
    (group,) = line.splices
    assert isinstance(group, Group)
    assert group.offset == 13
    assert sqls(group.block) == ["  1,", "  2"]


def test_splices_are_ordered():
    line = parse_template(
        "a = /* $a */1 AND b IN (\n  /* $b */2\n) AND c = /* $c */3"
    ).block.lines[0]
    assert [type(s) for s in line.splices] == [Directive, Group, Directive]
    offsets = [s.offset for s in line.splices]
    assert offsets == sorted(offsets)


def test_deeper_lines_attach_to_previous_line():
    template = parse_template("A\n    B\n  C\nD")
    a, d = template.block.lines
    assert sqls(a.block) == ["    B", "  C"]
    assert d.sql == "D"


def test_tabs_count_as_four_spaces():
    template = parse_template("A\n\tB\n    C")
    assert sqls(template.block.lines[0].block) == ["\tB", "    C"]


def test_shallower_lines_start_a_new_run():
    template = parse_template("  A\nB")
    assert sqls(template.block) == ["  A", "B"]


def test_closing_parenthesis_line_stays_in_the_block():
    block = build_block(
        [Line("A", 1), Line("    B", 2), Line("  ) C", 3), Line("    D", 4)]
    )
    (a,) = block.lines
    assert sqls(a.block) == ["    B", "  ) C", "    D"]
    assert a.block.lines[1].block is None


def test_dump():
    template = parse_template("SELECT *\nWHERE\n  a = /* $a */1", "q.sql")
    assert template.dump() == "1: SELECT *\n2: WHERE\n    3: a = [$a]"
    assert str(template) == "Template(q.sql, lines=2)"


@pytest.mark.parametrize(
    "text, error",
    [
        ("SELECT (1))", UnbalancedParenthesis),
        ("SELECT (1", UnbalancedParenthesis),
        ("SELECT 'abc", UnterminatedStringLiteral),
        ('SELECT "abc', UnterminatedStringLiteral),
        ("SELECT /* $a", UnterminatedComment),
        ("SELECT /* /* $a */", UnterminatedComment),
        ("SELECT 1 */", StrayCommentClose),
        ("SELECT /* %NOPE $a */1", UnknownFunctionName),
        ("SELECT /* %IF */1", MalformedDirective),
        ("SELECT /* $a) */1", MalformedDirective),
    ],
)
def test_format_errors(text, error):
    with pytest.raises(error):
        parse_template(text, "bad.sql")


def test_unterminated_literal_names_resource():
    with pytest.raises(UnterminatedStringLiteral) as excinfo:
        TemplateParser("octopus.sql").parse("tako -- $octopus\r\nika\r\n'namako\r\numiushi")
    assert "octopus.sql" in str(excinfo.value)
    assert excinfo.value.resource_info == "octopus.sql"
    assert excinfo.value.lineno == 3


def test_extra_close_parenthesis_line():
    with pytest.raises(UnbalancedParenthesis) as excinfo:
        parse_template("SELECT 1\nFROM t)", "t.sql")
    assert excinfo.value.lineno == 2
    assert str(excinfo.value) == "SQL Format Error: too many ')' (t.sql, line 2)"


def test_unclosed_parenthesis_spans_lines():
    with pytest.raises(UnbalancedParenthesis) as excinfo:
        parse_template("SELECT (\n1\n", "t.sql")
    assert (excinfo.value.lineno, excinfo.value.end_lineno) == (1, 3)
