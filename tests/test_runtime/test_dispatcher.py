import pytest

from runtime.dispatcher import EventDispatcher, Notification, dispatch, to_document
from runtime.events import RuntimeEvent
from story.lines import Choices, Command, Dialogue, End, Input, InvalidChoice


def test_dialogue():
    notification = dispatch(Dialogue("Alice", "Hi", {"mood": "happy", 3: (1, 2)}))
    assert notification == Notification(RuntimeEvent.DIALOGUE, {
        "speaker": "Alice",
        "text": "Hi",
        "attributes": {"mood": "happy", "3": [1, 2]},
    })


def test_choices():
    notification = dispatch(Choices(["a", "b"], 5))
    assert notification.channel == RuntimeEvent.CHOICES
    assert notification.payload == {"options": ["a", "b"], "timeout": 5.0}


def test_command_includes_normalized_name():
    notification = dispatch(Command("room:npc.greet", {"loud": True}))
    assert notification.channel == RuntimeEvent.COMMAND
    assert notification.payload == {
        "name": "room:npc.greet",
        "normalized_name": "room:$character.greet",
        "params": {"loud": True},
    }


def test_input():
    notification = dispatch(Input({"name": "Hero"}, 10.0))
    assert notification.channel == RuntimeEvent.INPUT_COMMAND
    assert notification.payload == {"prompts": {"name": "Hero"}, "timeout": 10.0}


def test_sentinels_have_no_payload():
    assert dispatch(InvalidChoice()) == Notification(RuntimeEvent.INVALID_CHOICE)
    assert dispatch(End()) == Notification(RuntimeEvent.END)


def test_each_result_has_its_own_channel():
    results = [
        Dialogue("", ""),
        Choices([]),
        Command("x"),
        Input({}),
        InvalidChoice(),
        End(),
    ]
    channels = [dispatch(result).channel for result in results]
    assert len(set(channels)) == len(results)


def test_unknown_result():
    with pytest.raises(TypeError):
        dispatch("not a result")


def test_to_document_keeps_order():
    document = to_document({"b": 1, "a": {"z": None, "y": object}})
    assert list(document) == ["b", "a"]
    assert list(document["a"]) == ["z", "y"]
    assert isinstance(document["a"]["y"], str)


def test_event_dispatcher_sends_to_sink(recording_sink):
    events = EventDispatcher(recording_sink)

    events.emit(Dialogue("Alice", "Hi"))
    events.loaded()
    events.fatal("Story validation failed: x")
    events.end()

    assert recording_sink.channels == [
        RuntimeEvent.DIALOGUE,
        RuntimeEvent.LOADED,
        RuntimeEvent.FATAL,
        RuntimeEvent.END,
    ]
    assert recording_sink.last(RuntimeEvent.FATAL) == {"message": "Story validation failed: x"}
    assert recording_sink.last(RuntimeEvent.LOADED) == {}
