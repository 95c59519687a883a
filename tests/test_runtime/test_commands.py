import pytest

from runtime.commands import normalize


@pytest.mark.parametrize("raw, expected", [
    ("greet", "greet"),
    ("npc.greet", "$character.greet"),
    ("room:npc.greet", "room:$character.greet"),
    ("", ""),
    ("a.b.greet", "$character.greet"),
    ("world:room:npc.greet", "world:room:$character.greet"),
    ("room:greet", "room:greet"),
    ("$character.greet", "$character.greet"),
])
def test_normalize(raw, expected):
    assert normalize(raw) == expected


def test_leading_separators_count_as_absent():
    assert normalize(".greet") == ".greet"
    assert normalize(":npc.greet") == "$character.greet"
