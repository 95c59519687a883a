"""
Story compiler - converts story scripts to a CompiledGraph.

Story scripts use a simple line-oriented text format:

```
// Declarations before the first passage seed the script variables
$gold = 10

# Main
Alice: Welcome back, {player}! {mood=happy}
The tavern is quiet tonight.
!play_sound name="door.ogg" volume=0.5
? player = "Traveler" ~ 30

>> Buy a drink -> Bar [gold >= 5]
>> Leave -> Street *
~ 10

# Bar
$gold -= 5
=> Gossip
-> Main

# Gossip
Bartender: Heard the news?
<-
```

Line forms inside a passage:
- `Speaker: text {key=value ...}`  dialogue with optional attributes
- `text` or `| text`               narration
- `>> text -> target [cond] *`     choice option (`*` marks the default)
- `~ seconds`                      timeout for the choice block above
- `!name key=value ...`            command
- `? var = default, ... ~ seconds` input prompt
- `-> target`, `=> target`, `<-`   goto, call, return
- `$var = value`, `$var += n`      variable assignment
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from story.errors import CompileError
from story.graph import (
    CallLine,
    ChoiceOption,
    ChoicesLine,
    CommandLine,
    CompiledGraph,
    GotoLine,
    InputLine,
    Passage,
    ReturnLine,
    SetLine,
    TextLine,
    save_compiled,
)

logger = logging.getLogger(__name__)

STORY_EXTENSION = ".story"


@dataclass
class _ChoiceBlock:
    """Choice options collected until a non-choice line closes the block."""
    options: list[ChoiceOption] = field(default_factory=list)
    timeout: float = 0.0
    default: Optional[str] = None


def parse_value(text: str) -> Any:
    """Parse a literal as JSON, falling back to the raw string."""
    text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


class StoryParser:
    """
    Parses story scripts from the text format.
    """

    # Regex patterns
    PASSAGE_PATTERN = re.compile(r'^#\s*([\w.-]+)\s*$')
    CHOICE_PATTERN = re.compile(r'^>>\s*(.+?)\s*->\s*([\w.-]+)(?:\s*\[(.+?)\])?\s*(\*)?\s*$')
    TIMEOUT_PATTERN = re.compile(r'^~\s*(\S+)\s*$')
    COMMAND_PATTERN = re.compile(r'^!\s*(\S+)(?:\s+(.*))?$')
    INPUT_PATTERN = re.compile(r'^\?\s*(.+?)(?:\s+~\s*(\S+))?\s*$')
    GOTO_PATTERN = re.compile(r'^->\s*([\w.-]+)\s*$')
    CALL_PATTERN = re.compile(r'^=>\s*([\w.-]+)\s*$')
    RETURN_PATTERN = re.compile(r'^<-\s*$')
    VARIABLE_PATTERN = re.compile(r'^\$(\w+)\s*(=|\+=|-=)\s*(.+)$')
    SPEAKER_PATTERN = re.compile(r'^(\w[\w ]*?):\s+(.+)$')
    ATTRIBUTES_PATTERN = re.compile(r'\s*\{([^{}]*=[^{}]*)\}\s*$')
    PARAM_PATTERN = re.compile(r'([\w.-]+)=("(?:[^"\\]|\\.)*"|\S+)')

    def parse_file(self, path: str | Path) -> CompiledGraph:
        """Parse a single story file."""
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise CompileError(f"cannot read story source: {e}", path=str(path)) from e

        return self.parse_string(content, source=str(path))

    def parse_directory(self, path: str | Path) -> CompiledGraph:
        """Parse and merge every story file under a directory."""
        path = Path(path)
        files = sorted(p for p in path.rglob(f"*{STORY_EXTENSION}") if p.is_file())
        if not files:
            raise CompileError(f"no {STORY_EXTENSION} files found", path=str(path))

        passages: dict[str, Passage] = {}
        origins: dict[str, Path] = {}
        variables: dict[str, Any] = {}
        for file_path in files:
            graph = self.parse_file(file_path)
            for name, passage in graph.passages.items():
                if name in passages:
                    raise CompileError(
                        f"passage {name!r} already defined in {origins[name]}",
                        path=str(file_path),
                    )
                passages[name] = passage
                origins[name] = file_path
            variables.update(graph.variables)

        return CompiledGraph(passages=passages, variables=variables)

    def parse_string(self, content: str, source: str = "<string>") -> CompiledGraph:
        """Parse a story script string."""
        passages: dict[str, Passage] = {}
        variables: dict[str, Any] = {}
        current_name: Optional[str] = None
        current_lines: list[Any] = []
        choices: Optional[_ChoiceBlock] = None

        def close_choices() -> None:
            nonlocal choices
            if choices is not None:
                current_lines.append(ChoicesLine(
                    options=choices.options,
                    timeout=choices.timeout,
                    default=choices.default,
                ))
                choices = None

        def close_passage() -> None:
            nonlocal current_name, current_lines
            close_choices()
            if current_name is not None:
                passages[current_name] = Passage(name=current_name, lines=current_lines)
            current_name = None
            current_lines = []

        for line_no, raw in enumerate(content.split('\n'), start=1):
            line = raw.strip()

            # Skip empty lines and comments
            if not line or line.startswith('//'):
                continue

            # Passage separator
            if line == '---':
                close_passage()
                continue

            # Passage header
            match = self.PASSAGE_PATTERN.match(line)
            if match:
                close_passage()
                name = match.group(1)
                if name in passages:
                    raise CompileError(f"duplicate passage {name!r}", path=source, line=line_no)
                current_name = name
                continue

            # Variable declaration (before first passage)
            match = self.VARIABLE_PATTERN.match(line)
            if match and current_name is None:
                if match.group(2) != '=':
                    raise CompileError(
                        "only '=' is allowed in declarations", path=source, line=line_no
                    )
                variables[match.group(1)] = parse_value(match.group(3))
                continue

            if current_name is None:
                raise CompileError("line outside of a passage", path=source, line=line_no)

            # Choice option
            match = self.CHOICE_PATTERN.match(line)
            if match:
                if choices is None:
                    choices = _ChoiceBlock()
                text = match.group(1)
                choices.options.append(ChoiceOption(
                    text=text,
                    target=match.group(2),
                    condition=match.group(3),
                ))
                if match.group(4):
                    if choices.default is not None:
                        raise CompileError(
                            "choice block has more than one default", path=source, line=line_no
                        )
                    choices.default = text
                continue

            # Choice timeout
            match = self.TIMEOUT_PATTERN.match(line)
            if match:
                if choices is None:
                    raise CompileError("timeout without a choice block", path=source, line=line_no)
                choices.timeout = self._parse_timeout(match.group(1), source, line_no)
                close_choices()
                continue

            close_choices()
            node = self._parse_line(line, source, line_no)
            current_lines.append(node)

        close_passage()
        return CompiledGraph(passages=passages, variables=variables)

    def _parse_line(self, line: str, source: str, line_no: int) -> Any:
        """Parse a non-choice line inside a passage."""
        match = self.VARIABLE_PATTERN.match(line)
        if match:
            value = parse_value(match.group(3))
            op = match.group(2)
            if op != '=' and (isinstance(value, bool) or not isinstance(value, (int, float))):
                raise CompileError(f"'{op}' needs a number, got {value!r}", path=source, line=line_no)
            return SetLine(variable=match.group(1), value=value, op=op)

        match = self.GOTO_PATTERN.match(line)
        if match:
            return GotoLine(target=match.group(1))

        match = self.CALL_PATTERN.match(line)
        if match:
            return CallLine(target=match.group(1))

        if self.RETURN_PATTERN.match(line):
            return ReturnLine()

        match = self.COMMAND_PATTERN.match(line)
        if match:
            params = self._parse_params(match.group(2) or "", source, line_no)
            return CommandLine(name=match.group(1), params=params)

        match = self.INPUT_PATTERN.match(line)
        if match:
            prompts = self._parse_prompts(match.group(1), source, line_no)
            timeout = 0.0
            if match.group(2):
                timeout = self._parse_timeout(match.group(2), source, line_no)
            return InputLine(prompts=prompts, timeout=timeout)

        if line.startswith('|'):
            return TextLine(text=line[1:].strip())

        attributes: dict[str, Any] = {}
        match = self.ATTRIBUTES_PATTERN.search(line)
        if match:
            attributes = self._parse_params(match.group(1), source, line_no)
            line = line[:match.start()]

        match = self.SPEAKER_PATTERN.match(line)
        if match:
            return TextLine(speaker=match.group(1), text=match.group(2).strip(), attributes=attributes)

        return TextLine(text=line.strip(), attributes=attributes)

    def _parse_params(self, text: str, source: str, line_no: int) -> dict[str, Any]:
        """Parse `key=value` pairs. Values are JSON literals or bare strings."""
        params: dict[str, Any] = {}
        pos = 0
        for match in self.PARAM_PATTERN.finditer(text):
            skipped = text[pos:match.start()]
            if skipped.strip():
                raise CompileError(f"expected key=value, got {skipped.strip()!r}", path=source, line=line_no)
            params[match.group(1)] = parse_value(match.group(2))
            pos = match.end()
        if text[pos:].strip():
            raise CompileError(f"expected key=value, got {text[pos:].strip()!r}", path=source, line=line_no)
        return params

    def _parse_prompts(self, text: str, source: str, line_no: int) -> dict[str, Any]:
        """Parse `var = default, var2` input prompt fields."""
        prompts: dict[str, Any] = {}
        for part in text.split(','):
            name, sep, default = part.partition('=')
            name = name.strip()
            if not re.fullmatch(r'\w+', name):
                raise CompileError(f"bad input field {part.strip()!r}", path=source, line=line_no)
            prompts[name] = parse_value(default) if sep else ""
        return prompts

    def _parse_timeout(self, text: str, source: str, line_no: int) -> float:
        try:
            timeout = float(text)
        except ValueError:
            raise CompileError(f"bad timeout {text!r}", path=source, line=line_no) from None
        if timeout < 0:
            raise CompileError(f"negative timeout {timeout}", path=source, line=line_no)
        return timeout


def compile_story(source_path: str | Path) -> CompiledGraph:
    """
    Compile a story file or a directory of story files.

    Raises:
        CompileError: If the source is missing or malformed
    """
    source_path = Path(source_path)
    parser = StoryParser()
    if source_path.is_dir():
        return parser.parse_directory(source_path)
    if not source_path.exists():
        raise CompileError("story source not found", path=str(source_path))
    return parser.parse_file(source_path)


def compile_story_file(input_path: str | Path, output_path: Optional[str | Path] = None) -> CompiledGraph:
    """
    Compile a story script to a compiled JSON artifact.

    Args:
        input_path: Path to a .story file or a directory of them
        output_path: Path to output .json file (default: same name with .json)
    """
    input_path = Path(input_path)
    if output_path is None:
        output_path = input_path.with_suffix('.json')
    else:
        output_path = Path(output_path)

    graph = compile_story(input_path)
    save_compiled(graph, output_path)
    logger.info(f"Compiled {input_path} -> {output_path}")
    return graph
