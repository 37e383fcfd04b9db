"""Visible-width accounting for terminal text that may carry escape sequences."""

from __future__ import annotations

import re

from rich.cells import cell_len

# Escape sequences that occupy no cells: OSC (iTerm2 images, hyperlinks),
# DCS/APC/PM/SOS strings (Sixel, Kitty graphics), CSI (SGR, cursor
# movement) and two-byte escapes.
ESCAPE_RE = re.compile(
    r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[P_^X].*?\x1b\\"
    r"|\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b[@-Z\\-_]",
    re.DOTALL,
)

RESET = "\x1b[0m"


def strip_escapes(text: str) -> str:
    """Remove terminal escape sequences from text."""
    return ESCAPE_RE.sub("", text)


def visible_width(text: str) -> int:
    """Number of terminal cells the text occupies once escapes are removed."""
    plain = strip_escapes(text).replace("\r", "")
    return cell_len(plain)


def pad_to_width(text: str, width: int) -> str:
    """Right-pad text with spaces up to ``width`` visible cells.

    Text already at or beyond ``width`` is returned unchanged.
    """
    missing = width - visible_width(text)
    if missing <= 0:
        return text
    return text + " " * missing


def split_cells(word: str, width: int) -> list[str]:
    """Split plain text into chunks of at most ``width`` cells.

    A single character wider than ``width`` still gets a chunk of its own.
    """
    chunks: list[str] = []
    current = ""
    current_width = 0
    for char in word:
        char_width = cell_len(char)
        if current and current_width + char_width > width:
            chunks.append(current)
            current = ""
            current_width = 0
        current += char
        current_width += char_width
    if current:
        chunks.append(current)
    return chunks
