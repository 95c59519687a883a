import pytest

from story.expressions import check_condition, evaluate, interpolate, interpolate_value

VARIABLES = {"gold": 5, "name": "Hero", "met": True, "angry": False}


@pytest.mark.parametrize("expr, expected", [
    ("met", True),
    ("angry", False),
    ("missing", False),
    ("not angry", True),
    ("gold >= 5", True),
    ("gold > 5", False),
    ("$gold == 5", True),
    ('name == "Hero"', True),
    ("name != Hero", False),
    ("met and gold < 3", False),
    ("met and gold < 3 or not angry", True),
    ("true", True),
])
def test_evaluate(expr, expected):
    assert evaluate(expr, VARIABLES) is expected


def test_type_mismatch_is_false():
    assert evaluate("name > 3", VARIABLES) is False
    assert evaluate("missing < 3", VARIABLES) is False


def test_check_condition():
    assert check_condition("gold >= 3 and not met") is None
    assert check_condition("gold >=") is not None
    assert check_condition("1 + 1") is not None


def test_interpolate():
    assert interpolate("Hi {name}, you have {gold} gold", VARIABLES) == "Hi Hero, you have 5 gold"
    assert interpolate("Hi {$name}", VARIABLES) == "Hi Hero"
    assert interpolate("Hi {stranger}", VARIABLES) == "Hi {stranger}"


def test_interpolate_value_keeps_types():
    params = {"amount": "{gold}", "label": "{name}'s purse", "list": ["{met}"], "n": 1}
    assert interpolate_value(params, VARIABLES) == {
        "amount": 5,
        "label": "Hero's purse",
        "list": [True],
        "n": 1,
    }
