"""
CSS helpers shared by the selector generator and resolver.
"""

import re

# Tokens that identify CSS-in-JS output or utility-first frameworks
_GENERATED_CLASS_PATTERNS = [
    re.compile(r"^\d"),
    re.compile(r"^_"),
    re.compile(r"[:/\[\]()!@%]"),
    re.compile(r"\d{3,}"),
    re.compile(r"^(css|sc|jsx|emotion|styled|svelte|astro)-", re.IGNORECASE),
    re.compile(
        r"^-?(m|mx|my|mt|mb|ml|mr|p|px|py|pt|pb|pl|pr|w|h|min-w|max-w|min-h|max-h|"
        r"gap|space-x|space-y|text|bg|border|rounded|shadow|flex|grid|col|row|"
        r"items|justify|self|z|top|left|right|bottom|inset|opacity|font|leading|"
        r"tracking|cursor|overflow|order|duration|ease|transition)-"
    ),
]

_UNSAFE_ID = re.compile(r"[\s\"'\\#\[\]()<>{}]")


def css_escape(value: str) -> str:
    """Escape an identifier for use in a CSS selector (CSS.escape)."""
    out = []
    for index, ch in enumerate(value):
        code = ord(ch)
        if code == 0:
            out.append("\ufffd")
        elif 0x01 <= code <= 0x1F or code == 0x7F:
            out.append(f"\\{code:x} ")
        elif index == 0 and ch.isdigit() and ch.isascii():
            out.append(f"\\{code:x} ")
        elif index == 1 and ch.isdigit() and ch.isascii() and value[0] == "-":
            out.append(f"\\{code:x} ")
        elif index == 0 and ch == "-" and len(value) == 1:
            out.append("\\-")
        elif code >= 0x80 or ch in "-_" or (ch.isascii() and ch.isalnum()):
            out.append(ch)
        else:
            out.append(f"\\{ch}")
    return "".join(out)


def quote_value(value: str) -> str:
    """Double-quote an attribute value for a CSS attribute selector."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\a ")
    return f'"{escaped}"'


def attribute_selector(name: str, value: str, tag: str = "") -> str:
    return f"{tag}[{name}={quote_value(value)}]"


def is_safe_id(value: str | None) -> bool:
    """Whether an id can be used as a fragment-style selector anchor."""
    return bool(value) and not _UNSAFE_ID.search(value)


def is_meaningful_class(token: str) -> bool:
    """Whether a class token looks hand-written rather than generated."""
    if len(token) < 3:
        return False
    return not any(p.search(token) for p in _GENERATED_CLASS_PATTERNS)


def xpath_literal(value: str) -> str:
    """Quote a string for use inside an XPath expression."""
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{p}"' for p in parts) + ")"
