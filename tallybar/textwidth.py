"""Measuring the on-screen width of text that may hold ANSI escape codes."""

from __future__ import annotations

import re

from wcwidth import wcwidth

_ANSI_RE = re.compile(
    r"[\x1b\x9b]"
    r"(?:[()][012AB]"
    r"|[\[()#;?]*(?:[0-9]{1,4}(?:;[0-9]{0,4})*)?[0-9A-ORZcf-nqry=><])"
)


def strip_ansi(text: str) -> str:
    """Return ``text`` with ANSI escape sequences removed."""
    return _ANSI_RE.sub("", text)


def measure_text_width(text: str) -> int:
    """Return the number of terminal columns ``text`` occupies.

    Escape sequences take no space; wide characters take two columns and
    control or combining characters none.
    """
    return sum(max(wcwidth(char), 0) for char in strip_ansi(text))