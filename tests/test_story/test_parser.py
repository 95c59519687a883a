"""
Test story script compilation.
"""

import pytest

from conftest import SAMPLE_STORY, write_story
from story.errors import CompileError
from story.graph import (
    CallLine,
    ChoicesLine,
    CommandLine,
    GotoLine,
    InputLine,
    ReturnLine,
    SetLine,
    TextLine,
    load_compiled,
)
from story.parser import StoryParser, compile_story, compile_story_file


def test_parse_sample_story():
    graph = StoryParser().parse_string(SAMPLE_STORY)

    assert graph.passage_names == ["Main", "Shop", "Greeting", "End"]
    assert graph.variables == {"gold": 5, "name": "Hero"}

    main = graph.get_passage("Main")
    assert [line.kind for line in main.lines] == ["text", "command", "choices"]

    text = main.lines[0]
    assert isinstance(text, TextLine)
    assert text.speaker == "Alice"
    assert text.text == "Hello, {name}!"
    assert text.attributes == {"mood": "happy"}

    command = main.lines[1]
    assert isinstance(command, CommandLine)
    assert command.name == "npc.wave"
    assert command.params == {"speed": 2}

    choices = main.lines[2]
    assert isinstance(choices, ChoicesLine)
    assert [o.text for o in choices.options] == ["Shop", "Leave"]
    assert choices.options[0].target == "Shop"
    assert choices.options[0].condition == "gold >= 3"
    assert choices.default == "Leave"
    assert choices.timeout == 5.0


def test_parse_control_lines():
    graph = StoryParser().parse_string(SAMPLE_STORY)

    shop = graph.get_passage("Shop").lines
    assert shop[0] == SetLine(variable="gold", value=3, op="-=")
    assert shop[1] == CallLine(target="Greeting")
    assert shop[3] == GotoLine(target="Main")
    assert isinstance(graph.get_passage("Greeting").lines[-1], ReturnLine)


def test_narration():
    graph = StoryParser().parse_string(
        "# A\n"
        "The wind howls.\n"
        "| Note: this is narration\n"
    )
    lines = graph.get_passage("A").lines
    assert lines[0] == TextLine(text="The wind howls.")
    assert lines[1] == TextLine(text="Note: this is narration")


def test_input_prompts():
    graph = StoryParser().parse_string(
        '# A\n'
        '? name = "Hero", age = 20 ~ 30\n'
        '? nickname\n'
    )
    first, second = graph.get_passage("A").lines
    assert isinstance(first, InputLine)
    assert first.prompts == {"name": "Hero", "age": 20}
    assert first.timeout == 30.0
    assert second.prompts == {"nickname": ""}
    assert second.timeout == 0.0


def test_quoted_command_params():
    graph = StoryParser().parse_string('# A\n!play sound="door open.ogg" volume=0.5 loop=false\n')
    command = graph.get_passage("A").lines[0]
    assert command.params == {"sound": "door open.ogg", "volume": 0.5, "loop": False}


def test_separator_and_comments():
    graph = StoryParser().parse_string(
        "# A\n"
        "// not a line\n"
        "Hi\n"
        "---\n"
        "# B\n"
        "Bye\n"
    )
    assert len(graph.get_passage("A")) == 1
    assert len(graph.get_passage("B")) == 1


@pytest.mark.parametrize("source, message", [
    ("Hello\n", "outside of a passage"),
    ("# A\n# A\n", "duplicate passage"),
    ("# A\n~ 5\n", "timeout without a choice block"),
    ("# A\n>> x -> B\n~ soon\n", "bad timeout"),
    ("# A\n>> x -> B *\n>> y -> B *\n", "more than one default"),
    ("# A\n$gold += lots\n", "needs a number"),
    ("# A\n!cmd novalue\n", "expected key=value"),
])
def test_compile_errors(source, message):
    with pytest.raises(CompileError, match=message):
        StoryParser().parse_string(source, source="test.story")


def test_compile_error_location():
    with pytest.raises(CompileError) as exc_info:
        StoryParser().parse_string("# A\nok\n~ 1\n", source="test.story")
    assert exc_info.value.line == 3
    assert str(exc_info.value).startswith("test.story:3:")


def test_compile_directory(tmp_path):
    write_story(tmp_path / "a.story", "$x = 1\n# A\n-> B\n")
    write_story(tmp_path / "nested" / "b.story", "# B\nHello\n")

    graph = compile_story(tmp_path)
    assert sorted(graph.passage_names) == ["A", "B"]
    assert graph.variables == {"x": 1}


def test_compile_directory_duplicate_passage(tmp_path):
    write_story(tmp_path / "a.story", "# A\nHello\n")
    write_story(tmp_path / "b.story", "# A\nAgain\n")

    with pytest.raises(CompileError, match="already defined"):
        compile_story(tmp_path)


def test_compile_missing_source(tmp_path):
    with pytest.raises(CompileError, match="not found"):
        compile_story(tmp_path / "missing.story")

    with pytest.raises(CompileError, match="no .story files"):
        compile_story(tmp_path)


def test_compile_story_file(tmp_path, story_file):
    output = tmp_path / "out" / "story.json"
    graph = compile_story_file(story_file, output)

    assert output.exists()
    assert load_compiled(output) == graph


def test_undecodable_source(tmp_path):
    path = tmp_path / "main.story"
    path.write_bytes(b'# Main\nAlice: caf\xe9\n')
    with pytest.raises(CompileError, match="cannot read story source"):
        compile_story(path)
