"""
Identifier and clock helpers.
"""

import random
import string
import time

_BASE36 = string.digits + string.ascii_lowercase


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_id() -> str:
    """
    Generate an opaque step/flow identifier.
    
    The format is ``<epoch-ms>-<9 base36 chars>``; only uniqueness
    within one store matters.
    """
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"{now_ms()}-{suffix}"
