import os
import sys
from pathlib import Path

import pytest

# Ensure project packages can be imported
sys.path.append(os.getcwd())

SAMPLE_STORY = """\
// Test story
$gold = 5
$name = "Hero"

# Main
Alice: Hello, {name}! {mood=happy}
!npc.wave speed=2
>> Shop -> Shop [gold >= 3]
>> Leave -> End *
~ 5

# Shop
$gold -= 3
=> Greeting
Shopkeeper: You have {gold} gold left.
-> Main

# Greeting
Shopkeeper: Welcome!
<-

# End
| Goodbye.
"""


class RecordingSink:
    """NotificationSink that keeps everything it receives."""

    def __init__(self):
        self.notifications = []

    def notify(self, channel, payload):
        self.notifications.append((channel, payload))

    @property
    def channels(self):
        return [channel for channel, _ in self.notifications]

    def last(self, channel):
        for received, payload in reversed(self.notifications):
            if received == channel:
                return payload
        return None


def write_story(path: Path, content: str = SAMPLE_STORY, mtime: float | None = None) -> Path:
    """Write a story file, optionally forcing its modification time."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    from runtime.events import EventBus
    return EventBus()


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def graph():
    """Compiled sample story."""
    from story.parser import StoryParser
    return StoryParser().parse_string(SAMPLE_STORY)


@pytest.fixture
def story_file(tmp_path):
    return write_story(tmp_path / "story" / "main.story", mtime=1_000_000.0)


@pytest.fixture
def runtime_config(tmp_path, story_file):
    """Config that compiles the sample story into tmp_path/build."""
    from runtime.config import RuntimeConfig
    return RuntimeConfig.create(
        source_path=story_file,
        compiled_path=tmp_path / "build" / "story.json",
        bookmark_path=tmp_path / "build" / "bookmark.json",
        default_passage="Main",
        poll_interval=0.5,
    )
