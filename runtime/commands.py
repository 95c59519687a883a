"""
Command name normalization.

Story commands may be written against a specific character
(`npc.greet`) or namespaced (`tavern:npc.greet`). Hosts register one
handler per member, so the character part is replaced by the
`$character` placeholder to form the dispatch key:

    greet              -> greet
    npc.greet          -> $character.greet
    tavern:npc.greet   -> tavern:$character.greet
"""

from __future__ import annotations

CHARACTER_PLACEHOLDER = "$character"


def normalize(raw: str) -> str:
    """Map a raw command name to its dispatch key."""
    # Separators at index 0 count as absent
    dot = max(raw.rfind('.'), 0)
    colon = max(raw.rfind(':'), 0)

    if not dot:
        return raw

    member = raw[dot + 1:]
    if not colon:
        return f"{CHARACTER_PLACEHOLDER}.{member}"
    return f"{raw[:colon + 1]}{CHARACTER_PLACEHOLDER}.{member}"
