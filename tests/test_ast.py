import pytest

from glot_ast import (
    BinaryExpression,
    IntegerLiteral,
    Operator,
    UnaryExpression,
    unparse,
)
from glot_parser import parse


def test_integer_literal_value():
    assert IntegerLiteral(None, "42").value == 42
    assert IntegerLiteral(Operator.PLUS, "7").value == 7
    assert IntegerLiteral(Operator.MINUS, "007").value == -7


@pytest.mark.parametrize("sign, digits", [
    (None, ""),
    (Operator.MINUS, ""),
    (None, "4a"),
    (None, "٣"),
    (Operator.MULT, "4"),
])
def test_integer_literal_rejects_bad_parts(sign, digits):
    with pytest.raises(ValueError):
        IntegerLiteral(sign, digits)


def test_binary_expression_arity():
    one, two = IntegerLiteral(None, "1"), IntegerLiteral(None, "2")
    with pytest.raises(ValueError):
        BinaryExpression([one], [])
    with pytest.raises(ValueError):
        BinaryExpression([one, two], [])
    with pytest.raises(ValueError):
        BinaryExpression([one, two], [Operator.PLUS, Operator.PLUS])


def test_nodes_are_immutable_and_hashable():
    node = parse("(1 + 2) * (- 3)")
    assert isinstance(node.terms, tuple)
    assert hash(node) == hash(parse("(1+2)*(-  3)"))
    with pytest.raises(AttributeError):
        node.terms = ()


def test_pairs():
    node = parse("1 - 2 * 3")
    assert [(op, t.digits) for op, t in node.pairs()] == [
        (Operator.MINUS, "2"), (Operator.MULT, "3")]


@pytest.mark.parametrize("text, canonical", [
    ("4", "4"),
    ("-4", "-4"),
    ("+4", "+4"),
    ("-  4", "- 4"),
    ("4+2*8", "4 + 2 * 8"),
    ("-(4+2)", "- (4 + 2)"),
    ("((4))", "4"),
    ("(1+2)*3", "(1 + 2) * 3"),
    ("((1+2)*3) - -4", "((1 + 2) * 3) - -4"),
    ("2 * (- 3)", "2 * (- 3)"),
    ("*(- (-1))", "* (- -1)"),
])
def test_unparse_canonical_form(text, canonical):
    assert unparse(parse(text)) == canonical
    assert str(parse(text)) == canonical


@pytest.mark.parametrize("text", [
    "0",
    "- 4",
    "+-4",
    "1 - 2 + 3 * 4 - 5",
    "-(4 + 2) ",
    "(1 + (2 * (3 - 4))) * -5",
    "* (- (+ 6))",
])
def test_reparse_of_unparse_is_equal(text):
    tree = parse(text)
    assert parse(unparse(tree)) == tree


def test_unparse_rejects_foreign_objects():
    with pytest.raises(TypeError):
        unparse("4")


def test_operators_must_be_operator_members():
    one = IntegerLiteral(None, "1")
    with pytest.raises(ValueError):
        BinaryExpression([one, one], ["/"])
    with pytest.raises(ValueError):
        BinaryExpression([one, one], ["+"])
    with pytest.raises(ValueError):
        UnaryExpression("-", one)
