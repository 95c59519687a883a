"""
Condition expressions and text interpolation.

Conditions guard choice options. The language is deliberately small:

    gold                 truthiness of a variable
    not met_bartender    negation
    gold >= 5            comparison against a JSON literal
    a and b or not c     `and` binds tighter than `or`

Text and command parameters interpolate variables with `{name}`.
"""

from __future__ import annotations

import logging
import operator
import re
from typing import Any, Callable, Mapping, Optional

from story.parser import parse_value

logger = logging.getLogger(__name__)

OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    '==': operator.eq,
    '!=': operator.ne,
    '<=': operator.le,
    '>=': operator.ge,
    '<': operator.lt,
    '>': operator.gt,
}

NAME_PATTERN = re.compile(r'^\$?(\w+)$')
COMPARISON_PATTERN = re.compile(r'^\$?(\w+)\s*(==|!=|<=|>=|<|>)\s*([^=<>!\s].*)$')
OR_PATTERN = re.compile(r'\s+or\s+')
AND_PATTERN = re.compile(r'\s+and\s+')
INTERPOLATION_PATTERN = re.compile(r'\{\$?(\w+)\}')


def check_condition(expr: str) -> Optional[str]:
    """Return a description of the syntax problem in `expr`, or None if it parses."""
    for part in OR_PATTERN.split(expr.strip()):
        for atom in AND_PATTERN.split(part):
            atom = atom.strip()
            while atom.startswith('not '):
                atom = atom[4:].strip()
            if not (NAME_PATTERN.match(atom) or COMPARISON_PATTERN.match(atom)):
                return f"cannot parse condition {atom!r} in {expr!r}"
    return None


def evaluate(expr: str, variables: Mapping[str, Any]) -> bool:
    """Evaluate a condition against the script variables."""
    return any(
        all(_evaluate_atom(atom.strip(), variables) for atom in AND_PATTERN.split(part))
        for part in OR_PATTERN.split(expr.strip())
    )


def _evaluate_atom(atom: str, variables: Mapping[str, Any]) -> bool:
    if atom.startswith('not '):
        return not _evaluate_atom(atom[4:].strip(), variables)

    if atom in ('true', 'false'):
        return atom == 'true'

    match = COMPARISON_PATTERN.match(atom)
    if match:
        left = variables.get(match.group(1))
        right = parse_value(match.group(3))
        try:
            return bool(OPERATORS[match.group(2)](left, right))
        except TypeError:
            logger.warning(f"Condition {atom!r} compares {left!r} with {right!r}, treating as false")
            return False

    match = NAME_PATTERN.match(atom)
    if match:
        return bool(variables.get(match.group(1)))

    logger.warning(f"Unparseable condition {atom!r}, treating as false")
    return False


def interpolate(text: str, variables: Mapping[str, Any]) -> str:
    """Replace `{name}` with variable values. Unknown names are left as written."""
    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return str(variables[name])

    return INTERPOLATION_PATTERN.sub(replace, text)


def interpolate_value(value: Any, variables: Mapping[str, Any]) -> Any:
    """
    Interpolate a parameter value.

    A string that is exactly one `{name}` reference becomes the variable's
    value with its type preserved. Dicts and lists are walked.
    """
    if isinstance(value, str):
        match = INTERPOLATION_PATTERN.fullmatch(value)
        if match and match.group(1) in variables:
            return variables[match.group(1)]
        return interpolate(value, variables)
    if isinstance(value, dict):
        return {key: interpolate_value(item, variables) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate_value(item, variables) for item in value]
    return value
