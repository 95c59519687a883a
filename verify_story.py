"""
Story verification script.

Compiles a story script (file or directory) and validates the result,
optionally writing the compiled artifact.

Usage:
    python verify_story.py path/to/story [compiled.json]

Exit codes:
    0 - Story compiled and validated
    1 - Compile or validation errors
"""

import sys
import logging
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent))

from story import DialogueError, ValidationError, compile_story, save_compiled, validate


def main():
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger("StoryVerification")

    if len(sys.argv) not in (2, 3):
        print(__doc__)
        sys.exit(1)

    source = Path(sys.argv[1])

    try:
        logger.info(f"Compiling {source}...")
        graph = compile_story(source)
        validate(graph)

        if len(sys.argv) == 3:
            save_compiled(graph, sys.argv[2])
            logger.info(f"Wrote {sys.argv[2]}")

        lines = sum(len(passage) for passage in graph.passages.values())
        logger.info(
            f"VERIFICATION SUCCESSFUL: {len(graph.passages)} passages, "
            f"{lines} lines, {len(graph.variables)} variables."
        )

    except ValidationError as e:
        for problem in e.errors:
            logger.error(problem)
        logger.error(f"VERIFICATION FAILED: {len(e.errors)} problems")
        sys.exit(1)
    except DialogueError as e:
        logger.error(f"VERIFICATION FAILED: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
