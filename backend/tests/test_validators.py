import pytest

from core.column_builder import ColumnBuilder
from core.validators import check_row, check_value
from models.schema import Column


def definition(**kwargs):
    return ColumnBuilder().build(Column(**kwargs), "t")


def test_email_rule():
    email = definition(name="email", type="email")
    assert check_value(email, "ada@example.com") == []
    assert check_value(email, "not-an-email") == ["email: validation 'isEmail' failed"]


def test_url_and_ip_rules():
    assert check_value(definition(name="site", type="url"), "https://example.com") == []
    assert check_value(definition(name="site", type="url"), "nope") != []
    assert check_value(definition(name="addr", type="ip"), "10.0.0.1") == []
    assert check_value(definition(name="addr", type="ip"), "10.0.0.999") != []


@pytest.mark.parametrize("rules,value,ok", [
    ({"len": [2, 5]}, "abc", True),
    ({"len": [2, 5]}, "abcdef", False),
    ({"min": 1, "max": 10}, 5, True),
    ({"min": 1}, 0, False),
    ({"isIn": [["a", "b"]]}, "a", True),
    ({"isIn": ["a", "b"]}, "c", False),
    ({"notIn": [["x"]]}, "x", False),
    ({"is": "^[a-z]+$"}, "abc", True),
    ({"is": ["^[a-z]+$", "i"]}, "ABC", True),
    ({"not": "[0-9]"}, "abc1", False),
    ({"notEmpty": True}, "   ", False),
    ({"isInt": True}, "-42", True),
    ({"isAlpha": True}, "abc1", False),
    ({"isUppercase": True}, "ABC", True),
    ({"isEmail": False}, "whatever", True),
])
def test_rules(rules, value, ok):
    d = definition(name="v", type="string", validate=rules)
    assert (check_value(d, value) == []) is ok


def test_none_skips_rules():
    d = definition(name="v", type="string", validate={"len": [2, 5]})
    assert check_value(d, None) == []


def test_unknown_rule_is_not_enforced():
    d = definition(name="v", type="string", validate={"isCreditCard": True})
    assert check_value(d, "1234") == []


def test_check_row_required_and_nullability():
    defs = {
        "id": definition(name="id", type="integer", primary_key=True),
        "name": definition(name="name", type="string", nullable=False),
    }
    assert check_row(defs, {"name": None}, partial=True) == ["name: cannot be null"]
    assert check_row(defs, {}, required={"name"}) == ["name: is required"]
    assert check_row(defs, {}, partial=True, required={"name"}) == []
