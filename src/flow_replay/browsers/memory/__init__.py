"""
In-memory browser backend - a pure-Python document and surface.
"""

from flow_replay.browsers.memory.dom import MemoryDocument, MemoryElement, MemoryShadowRoot
from flow_replay.browsers.memory.html import parse_html
from flow_replay.browsers.memory.surface import MemorySurface

__all__ = [
    "MemoryDocument",
    "MemoryElement",
    "MemoryShadowRoot",
    "MemorySurface",
    "parse_html",
]
