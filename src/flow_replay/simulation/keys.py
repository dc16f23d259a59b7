"""
Key definitions for keyboard event simulation.
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class KeyDefinition:
    """
    Values a KeyboardEvent carries for one key.
    
    Attributes:
        key: KeyboardEvent.key
        code: KeyboardEvent.code
        key_code: Legacy keyCode / which
        char_code: Legacy charCode (keypress only)
    """
    key: str
    code: str
    key_code: int
    char_code: int = 0


SPECIAL_KEYS: Dict[str, KeyDefinition] = {
    "Enter": KeyDefinition("Enter", "Enter", 13, 13),
    "Tab": KeyDefinition("Tab", "Tab", 9),
    "Escape": KeyDefinition("Escape", "Escape", 27),
    "Backspace": KeyDefinition("Backspace", "Backspace", 8),
    "Delete": KeyDefinition("Delete", "Delete", 46),
    "ArrowUp": KeyDefinition("ArrowUp", "ArrowUp", 38),
    "ArrowDown": KeyDefinition("ArrowDown", "ArrowDown", 40),
    "ArrowLeft": KeyDefinition("ArrowLeft", "ArrowLeft", 37),
    "ArrowRight": KeyDefinition("ArrowRight", "ArrowRight", 39),
}

# Keys the recorder keeps as keypress steps
CONTROL_KEYS = frozenset(SPECIAL_KEYS)

# Control keys still recorded while typing in a text field
TEXT_FIELD_CONTROL_KEYS = frozenset({"Enter", "Tab", "Escape"})


def resolve_key(key: str) -> KeyDefinition:
    """
    Look up or derive the event values for a key.
    
    Args:
        key: A KeyboardEvent.key value ('Enter', 'a', '7', ...)
    
    Returns:
        KeyDefinition for the key
    """
    if key in SPECIAL_KEYS:
        return SPECIAL_KEYS[key]
    if not key:
        return KeyDefinition("", "", 0)
    
    first = key[0]
    if first.isalpha() and first.isascii():
        code = f"Key{first.upper()}"
        key_code = ord(first.upper())
    elif first.isdigit() and first.isascii():
        code = f"Digit{first}"
        key_code = ord(first)
    elif first == " ":
        code = "Space"
        key_code = 32
    else:
        code = key
        key_code = ord(first)
    return KeyDefinition(key, code, key_code, ord(first))
