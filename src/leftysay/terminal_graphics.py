"""Terminal graphics protocol detection and format resolution.

Detects support for inline image display in terminal emulators:
- Kitty graphics protocol (Kitty, Ghostty)
- iTerm2 inline images protocol (iTerm2, WezTerm, Konsole)
- Sixel graphics (mlterm, mintty, foot, xterm with Sixel)

Detection reads the environment exactly once into an EnvSignals snapshot;
everything downstream is a pure function of that snapshot.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from leftysay.models import ColorMode, RequestedFormat, normalize_format

DEFAULT_COLUMNS = 80
DEFAULT_ROWS = 24


class ResolvedFormat(Enum):
    """Concrete output protocol handed to the rasterizer."""

    SYMBOLS = "symbols"
    KITTY = "kitty"
    ITERM = "iterm"
    SIXEL = "sixels"

    @property
    def is_pixel(self) -> bool:
        """True for protocols that draw pixels through escape sequences."""
        return self is not ResolvedFormat.SYMBOLS


# Terminals that support the Kitty graphics protocol
KITTY_TERMINALS = frozenset({"kitty", "ghostty"})

# Terminals that support the iTerm2 inline images protocol
ITERM2_TERMINALS = frozenset(
    {
        "iterm.app",
        "iterm2.app",
        "wezterm",
        "konsole",
    }
)

# Terminals that support Sixel graphics
SIXEL_TERMINALS = frozenset(
    {
        "mlterm",
        "mintty",
        "xterm",  # Only with +sixel compile flag, but we can try
        "foot",
    }
)

MULTIPLEXERS = ("tmux", "screen")


@dataclass(frozen=True)
class EnvSignals:
    """Snapshot of the environment variables relevant to terminal probing."""

    term: str = ""
    term_program: str = ""
    colorterm: str = ""
    kitty_window_id: str = ""
    tmux: str = ""
    sty: str = ""
    columns: int | None = None
    lines: int | None = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> EnvSignals:
        """Read a snapshot from ``environ`` (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ
        return cls(
            term=env.get("TERM", "").lower(),
            term_program=env.get("TERM_PROGRAM", "").lower(),
            colorterm=env.get("COLORTERM", "").lower(),
            kitty_window_id=env.get("KITTY_WINDOW_ID", ""),
            tmux=env.get("TMUX", ""),
            sty=env.get("STY", ""),
            columns=_parse_dimension(env.get("COLUMNS")),
            lines=_parse_dimension(env.get("LINES")),
        )

    @property
    def multiplexer(self) -> str | None:
        """Name of the terminal multiplexer we're running under, if any."""
        if self.tmux or self.term.startswith("tmux"):
            return "tmux"
        if self.sty or self.term.startswith("screen"):
            return "screen"
        return None


@dataclass(frozen=True)
class TerminalCapabilities:
    """Terminal size and graphics support."""

    columns: int = DEFAULT_COLUMNS
    rows: int = DEFAULT_ROWS
    supports_kitty: bool = False
    supports_iterm: bool = False
    supports_sixel: bool = False
    multiplexer: str | None = None

    @property
    def supports_images(self) -> bool:
        """Check if the terminal supports any pixel protocol."""
        return self.supports_kitty or self.supports_iterm or self.supports_sixel


def _parse_dimension(value: str | None) -> int | None:
    if not value:
        return None
    try:
        parsed = int(value)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def detect_terminal_capabilities(signals: EnvSignals) -> TerminalCapabilities:
    """Derive terminal capabilities from an environment snapshot.

    Size comes from COLUMNS/LINES when set, otherwise from the controlling
    terminal, falling back to 80x24.

    Args:
        signals: Environment snapshot

    Returns:
        TerminalCapabilities for the current terminal
    """
    if signals.columns and signals.lines:
        columns, rows = signals.columns, signals.lines
    else:
        size = shutil.get_terminal_size((DEFAULT_COLUMNS, DEFAULT_ROWS))
        columns = signals.columns or size.columns
        rows = signals.lines or size.lines

    term = signals.term
    term_program = signals.term_program
    term_base = term.split("-")[0] if "-" in term else term

    supports_kitty = bool(signals.kitty_window_id) or term in ("xterm-kitty", "xterm-ghostty")
    supports_kitty = supports_kitty or term_program in KITTY_TERMINALS

    supports_iterm = term_program in ITERM2_TERMINALS

    supports_sixel = (
        term_program in SIXEL_TERMINALS
        or term in SIXEL_TERMINALS
        or term_base in ("mlterm", "foot")
    )

    return TerminalCapabilities(
        columns=max(columns, 1),
        rows=max(rows, 1),
        supports_kitty=supports_kitty,
        supports_iterm=supports_iterm,
        supports_sixel=supports_sixel,
        multiplexer=signals.multiplexer,
    )


_EXPLICIT_FORMATS = {
    RequestedFormat.SYMBOLS: ResolvedFormat.SYMBOLS,
    RequestedFormat.KITTY: ResolvedFormat.KITTY,
    RequestedFormat.ITERM: ResolvedFormat.ITERM,
    RequestedFormat.SIXELS: ResolvedFormat.SIXEL,
}


def resolve_format(
    requested: RequestedFormat | str, caps: TerminalCapabilities
) -> ResolvedFormat:
    """Pick the output protocol.

    An explicit request always wins, even if the terminal doesn't advertise
    support for it. ``auto`` probes Kitty, then iTerm2, then Sixel, and falls
    back to Unicode symbols.
    """
    if isinstance(requested, str):
        requested = RequestedFormat(normalize_format(requested))
    if requested is not RequestedFormat.AUTO:
        return _EXPLICIT_FORMATS[requested]
    if caps.supports_kitty:
        return ResolvedFormat.KITTY
    if caps.supports_iterm:
        return ResolvedFormat.ITERM
    if caps.supports_sixel:
        return ResolvedFormat.SIXEL
    return ResolvedFormat.SYMBOLS


def resolve_colors(requested: ColorMode, signals: EnvSignals) -> ColorMode:
    """Pick a concrete color depth so cache keys don't depend on chafa's own probing."""
    if requested is not ColorMode.AUTO:
        return requested
    if signals.colorterm in ("truecolor", "24bit"):
        return ColorMode.FULL
    if signals.kitty_window_id or signals.term_program in ITERM2_TERMINALS | KITTY_TERMINALS:
        return ColorMode.FULL
    if "256color" in signals.term:
        return ColorMode.C256
    return ColorMode.C16
