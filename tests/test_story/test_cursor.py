"""
Test stepping through a compiled story.
"""

import pytest

from story.bookmark import Bookmark
from story.cursor import Cursor
from story.errors import ExecutionError
from story.graph import CompiledGraph, Passage, SetLine
from story.lines import Choices, Command, Dialogue, End, Input, InvalidChoice
from story.parser import StoryParser


def make_cursor(graph, passage="Main", step_budget=10000):
    bookmark = Bookmark.default(passage, graph.variables)
    return Cursor(graph, bookmark, step_budget=step_budget)


def compile_text(source):
    return StoryParser().parse_string(source)


def test_walkthrough(graph):
    cursor = make_cursor(graph)

    assert cursor.step() == Dialogue("Alice", "Hello, Hero!", {"mood": "happy"})
    assert cursor.step() == Command("npc.wave", {"speed": 2})
    assert cursor.step() == Choices(["Shop", "Leave"], 5.0)
    assert cursor.awaiting_input

    assert cursor.step("Nope") == InvalidChoice()
    assert cursor.awaiting_input

    # Shop: set, call into Greeting, then return
    assert cursor.step("Shop") == Dialogue("Shopkeeper", "Welcome!")
    assert cursor.bookmark.state["gold"] == 2
    assert len(cursor.bookmark.stack) == 1

    assert cursor.step() == Dialogue("Shopkeeper", "You have 2 gold left.")
    assert cursor.bookmark.stack == []

    # Back in Main; the shop option is hidden now
    assert cursor.step() == Dialogue("Alice", "Hello, Hero!", {"mood": "happy"})
    cursor.step()
    assert cursor.step() == Choices(["Leave"], 5.0)

    # Empty answer takes the default option
    assert cursor.step("") == Dialogue("", "Goodbye.")
    assert cursor.step() == End()
    assert cursor.step() == End()


def test_empty_answer_without_default_is_invalid():
    cursor = make_cursor(compile_text("# Main\n>> a -> Main\n>> b -> Main\n"))
    assert cursor.step() == Choices(["a", "b"])
    assert cursor.step("") == InvalidChoice()


def test_hidden_choice_block_is_skipped():
    cursor = make_cursor(compile_text("# Main\n>> a -> Main [locked]\nAfter\n"))
    assert cursor.step() == Dialogue("", "After")


def test_jump_resets_position_and_stack(graph):
    cursor = make_cursor(graph)
    cursor.bookmark.push_frame("Main", 1)
    cursor.step()

    cursor.jump("Greeting")
    assert cursor.bookmark.position == ("Greeting", 0, 0)
    assert not cursor.awaiting_input
    assert cursor.step() == Dialogue("Shopkeeper", "Welcome!")


def test_jump_clears_pending_choice(graph):
    cursor = make_cursor(graph)
    for _ in range(3):
        cursor.step()
    assert cursor.awaiting_input

    cursor.jump("End")
    assert cursor.step("Shop") == Dialogue("", "Goodbye.")


def test_jump_to_missing_passage(graph):
    cursor = make_cursor(graph)
    with pytest.raises(ExecutionError, match="missing passage"):
        cursor.jump("Nowhere")
    assert cursor.bookmark.passage == "Main"


def test_return_without_caller_ends():
    cursor = make_cursor(compile_text("# Main\nA\n<-\nB\n"))
    assert cursor.step() == Dialogue("", "A")
    assert cursor.step() == End()


def test_single_field_input():
    cursor = make_cursor(compile_text('# Main\n? name = "Hero"\nHi {name}\n'))
    assert cursor.step() == Input({"name": "Hero"})
    assert cursor.step("Mira") == Dialogue("", "Hi Mira")


def test_input_defaults():
    cursor = make_cursor(compile_text('# Main\n? name = "Hero"\nHi {name}\n'))
    cursor.step()
    assert cursor.step("") == Dialogue("", "Hi Hero")


def test_multi_field_input():
    cursor = make_cursor(compile_text('# Main\n? name = "Hero", age = 20 ~ 10\n{name} is {age}\n'))
    assert cursor.step() == Input({"name": "Hero", "age": 20}, 10.0)

    assert cursor.step("not json") == InvalidChoice()
    assert cursor.step('{"age": 31}') == Dialogue("", "Hero is 31")


def test_increment_non_number():
    cursor = make_cursor(compile_text('$name = "x"\n# Main\n$name += 1\n'))
    with pytest.raises(ExecutionError, match="Cannot apply"):
        cursor.step()


def test_step_budget_stops_silent_loops():
    cursor = make_cursor(compile_text("# Main\n-> Loop\n# Loop\n-> Main\n"), step_budget=50)
    with pytest.raises(ExecutionError, match="without output"):
        cursor.step()


def test_missing_passage_in_bookmark(graph):
    cursor = Cursor(graph, Bookmark.default("Gone"))
    with pytest.raises(ExecutionError, match="missing passage 'Gone'"):
        cursor.step()


def test_increment_by_non_number():
    graph = CompiledGraph(passages={
        "Main": Passage(name="Main", lines=[SetLine(variable="gold", value="abc", op="+=")]),
    })
    cursor = Cursor(graph, Bookmark.default("Main", {"gold": 1}))
    with pytest.raises(ExecutionError, match="non-number 'abc'"):
        cursor.step()


@pytest.mark.parametrize("budget, ok", [(3, True), (2, False)])
def test_step_budget_counts_silent_lines(budget, ok):
    graph = compile_text("# Main\n$a = 1\n$b = 2\n$c = 3\nDone\n")
    cursor = make_cursor(graph, step_budget=budget)
    if ok:
        assert cursor.step() == Dialogue("", "Done")
    else:
        with pytest.raises(ExecutionError, match="without output"):
            cursor.step()
        # The line over budget was not run
        assert "c" not in cursor.bookmark.state


def test_pending_choice_survives_new_cursor(graph):
    cursor = make_cursor(graph)
    for _ in range(3):
        cursor.step()
    assert cursor.bookmark.pending

    resumed = Cursor(graph, cursor.bookmark.model_copy(deep=True))
    assert resumed.awaiting_input
    assert resumed.step("Leave") == Dialogue("", "Goodbye.")
    assert not resumed.bookmark.pending


def test_pending_input_survives_new_cursor():
    graph = compile_text('# Main\n? name = "Hero"\nHi {name}\n')
    cursor = make_cursor(graph)
    cursor.step()

    resumed = Cursor(graph, cursor.bookmark.model_copy(deep=True))
    assert resumed.step("Zed") == Dialogue("", "Hi Zed")


def test_stale_pending_flag_is_dropped():
    graph = compile_text("# Main\nHello\n")
    bookmark = Bookmark(passage="Main", line=0, pending=True)

    cursor = Cursor(graph, bookmark)
    assert not cursor.awaiting_input
    assert not bookmark.pending
    assert cursor.step("ignored") == Dialogue("", "Hello")
