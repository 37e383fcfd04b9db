"""Speech bubble layout: word wrapping and border drawing."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

from rich.cells import cell_len

from leftysay.cells import pad_to_width, split_cells, strip_escapes
from leftysay.errors import LayoutOverflow
from leftysay.models import BubbleBlock

logger = logging.getLogger(__name__)

DEFAULT_STYLE = "classic"
MAX_BUBBLE_WIDTH = 60
# "< " and " >" around every content line
BORDER_CELLS = 4
PLACEHOLDER = "..."


@dataclass(frozen=True)
class BubbleStyle:
    """Glyph set for a bubble border.

    ``first``/``last``/``single`` side pairs let a style shape the ends of a
    multi-line bubble differently from the middle rows.
    """

    top_left: str
    top: str
    top_right: str
    bottom_left: str
    bottom: str
    bottom_right: str
    side: tuple[str, str]
    first: tuple[str, str] | None = None
    last: tuple[str, str] | None = None
    single: tuple[str, str] | None = None

    def sides_for(self, index: int, count: int) -> tuple[str, str]:
        """Left and right glyphs for content row ``index`` of ``count``."""
        if count == 1 and self.single:
            return self.single
        if index == 0 and self.first:
            return self.first
        if index == count - 1 and self.last:
            return self.last
        return self.side


STYLES: dict[str, BubbleStyle] = {
    # cowsay-style ASCII bubble
    "classic": BubbleStyle(
        top_left=" ",
        top="_",
        top_right=" ",
        bottom_left=" ",
        bottom="-",
        bottom_right=" ",
        side=("|", "|"),
        first=("/", "\\"),
        last=("\\", "/"),
        single=("<", ">"),
    ),
    "round": BubbleStyle("╭", "─", "╮", "╰", "─", "╯", side=("│", "│")),
    "square": BubbleStyle("┌", "─", "┐", "└", "─", "┘", side=("│", "│")),
    "double": BubbleStyle("╔", "═", "╗", "╚", "═", "╝", side=("║", "║")),
    "ascii": BubbleStyle("+", "-", "+", "+", "-", "+", side=("|", "|")),
}


def get_style(name: str | None) -> BubbleStyle:
    """Look up a bubble style, falling back to classic for unknown names."""
    style = STYLES.get((name or "").strip().lower())
    if style is None:
        logger.debug("Unknown bubble style %r, using %s", name, DEFAULT_STYLE)
        return STYLES[DEFAULT_STYLE]
    return style


def bubble_width_hint(columns: int, reserved: int = 0) -> int:
    """Text width available for the bubble.

    Args:
        columns: Terminal width in cells
        reserved: Cells already claimed by something else on the same rows,
            such as an image placed beside the bubble

    Returns:
        Width for the wrapped text, excluding the border
    """
    return min(columns - reserved - BORDER_CELLS, MAX_BUBBLE_WIDTH)


def wrap_text(message: str, width: int) -> list[str]:
    """Wrap text on whitespace so no line is wider than ``width`` cells.

    Words wider than ``width`` are split across lines rather than dropped.
    Explicit line breaks in the message are kept.
    """
    lines: list[str] = []
    for paragraph in message.splitlines():
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        current = ""
        current_width = 0
        for word in words:
            for piece in split_cells(word, width):
                piece_width = cell_len(piece)
                if not current:
                    current, current_width = piece, piece_width
                elif current_width + 1 + piece_width <= width:
                    current += " " + piece
                    current_width += 1 + piece_width
                else:
                    lines.append(current)
                    current, current_width = piece, piece_width
        lines.append(current)
    return lines


def layout(message: str, width_hint: int, style: str | None = DEFAULT_STYLE) -> BubbleBlock:
    """Wrap a message and draw a bubble around it.

    Args:
        message: Text to show; escape sequences are removed
        width_hint: Maximum width of the wrapped text in cells
        style: Name of the border style

    Returns:
        BubbleBlock whose lines all share the same visible width
    """
    if width_hint < 1:
        warnings.warn(
            f"bubble width {width_hint} is too small, wrapping to one column",
            LayoutOverflow,
            stacklevel=2,
        )
        width_hint = 1

    text = strip_escapes(message).strip()
    wrapped = wrap_text(text, width_hint) if text else [PLACEHOLDER[:width_hint]]

    glyphs = get_style(style)
    inner = max(cell_len(line) for line in wrapped)
    lines = [glyphs.top_left + glyphs.top * (inner + 2) + glyphs.top_right]
    for index, line in enumerate(wrapped):
        left, right = glyphs.sides_for(index, len(wrapped))
        lines.append(f"{left} {pad_to_width(line, inner)} {right}")
    lines.append(glyphs.bottom_left + glyphs.bottom * (inner + 2) + glyphs.bottom_right)

    return BubbleBlock(lines=lines, width=inner + BORDER_CELLS)
