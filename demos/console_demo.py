"""
Console Demo: Dialogue Runtime

Demonstrates:
- Compiling a story on load
- Reacting to runtime notifications through the EventBus
- Choices and input prompts answered from the terminal
- Hot reload: edit demos/story/tavern.story while the demo runs

Controls:
- Enter advances dialogue
- Type an option's text (or its number) to choose it
- Ctrl+C quits
"""

import sys
import logging
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from runtime import DialogueRuntime, EventBus, RuntimeConfig, RuntimeEvent


class ConsoleHost:
    """Prints notifications and remembers what the story is waiting for."""

    def __init__(self, bus: EventBus):
        self.options: list[str] = []
        self.finished = False

        bus.subscribe(RuntimeEvent.DIALOGUE, self.on_dialogue)
        bus.subscribe(RuntimeEvent.CHOICES, self.on_choices)
        bus.subscribe(RuntimeEvent.COMMAND, self.on_command)
        bus.subscribe(RuntimeEvent.INPUT_COMMAND, self.on_input)
        bus.subscribe(RuntimeEvent.INVALID_CHOICE, self.on_invalid)
        bus.subscribe(RuntimeEvent.END, self.on_end)
        bus.subscribe(RuntimeEvent.FATAL, self.on_fatal)

    def on_dialogue(self, event) -> None:
        self.options = []
        speaker = event["speaker"]
        print(f"{speaker}: {event['text']}" if speaker else event["text"])

    def on_choices(self, event) -> None:
        self.options = event["options"]
        for i, option in enumerate(self.options, start=1):
            print(f"  {i}. {option}")

    def on_command(self, event) -> None:
        print(f"  [command {event['normalized_name']} {event['params']}]")

    def on_input(self, event) -> None:
        self.options = []
        for name, default in event["prompts"].items():
            print(f"  {name}? (default: {default})")

    def on_invalid(self, event) -> None:
        print("  That's not one of the options.")

    def on_end(self, event) -> None:
        self.finished = True

    def on_fatal(self, event) -> None:
        print(f"ERROR: {event['message']}")

    def answer(self, text: str) -> str:
        """Allow picking options by number."""
        if text.isdigit() and 1 <= int(text) <= len(self.options):
            return self.options[int(text) - 1]
        return text


def main():
    """Run the console demo."""
    logging.basicConfig(level=logging.WARNING)

    demo_dir = Path(__file__).parent / "story"
    config = RuntimeConfig.create(
        source_path=demo_dir / "tavern.story",
        compiled_path=demo_dir / "build" / "tavern.json",
        bookmark_path=demo_dir / "build" / "bookmark.json",
        default_passage="Main",
        poll_interval=0.0,
        verbosity=1,
    )

    bus = EventBus()
    host = ConsoleHost(bus)

    with DialogueRuntime(bus) as runtime:
        if not runtime.init(config):
            sys.exit(1)

        answer = ""
        while not host.finished:
            runtime.tick(1.0)
            runtime.step(answer)
            try:
                answer = host.answer(input("> ").strip())
            except (EOFError, KeyboardInterrupt):
                break


if __name__ == "__main__":
    main()
