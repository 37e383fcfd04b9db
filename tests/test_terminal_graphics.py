"""Tests for terminal graphics protocol detection and format resolution."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from leftysay.models import ColorMode, RequestedFormat
from leftysay.terminal_graphics import (
    EnvSignals,
    ResolvedFormat,
    TerminalCapabilities,
    detect_terminal_capabilities,
    resolve_colors,
    resolve_format,
)


def detect(env: dict[str, str]) -> TerminalCapabilities:
    """Detect capabilities from a fixed environment with a known size."""
    env = {"COLUMNS": "100", "LINES": "40", **env}
    return detect_terminal_capabilities(EnvSignals.from_environ(env))


class TestResolvedFormat:
    """Tests for the ResolvedFormat enum."""

    def test_format_values(self) -> None:
        """Test that values match chafa's --format arguments."""
        assert ResolvedFormat.SYMBOLS.value == "symbols"
        assert ResolvedFormat.KITTY.value == "kitty"
        assert ResolvedFormat.ITERM.value == "iterm"
        assert ResolvedFormat.SIXEL.value == "sixels"

    def test_is_pixel(self) -> None:
        """Test that only symbols is a text format."""
        assert ResolvedFormat.SYMBOLS.is_pixel is False
        assert ResolvedFormat.KITTY.is_pixel is True
        assert ResolvedFormat.SIXEL.is_pixel is True


class TestEnvSignals:
    """Tests for the environment snapshot."""

    def test_reads_os_environ_once(self) -> None:
        """Test that the snapshot doesn't follow later environment changes."""
        with patch.dict(os.environ, {"TERM": "xterm-kitty"}, clear=True):
            signals = EnvSignals.from_environ()
        with patch.dict(os.environ, {"TERM": "dumb"}, clear=True):
            assert signals.term == "xterm-kitty"

    def test_parses_dimensions(self) -> None:
        """Test that COLUMNS/LINES are parsed, and bad values ignored."""
        signals = EnvSignals.from_environ({"COLUMNS": "120", "LINES": "oops"})
        assert signals.columns == 120
        assert signals.lines is None

    def test_multiplexer(self) -> None:
        """Test tmux and screen detection."""
        assert EnvSignals(tmux="/tmp/tmux-1000/default,1,0").multiplexer == "tmux"
        assert EnvSignals(term="screen-256color").multiplexer == "screen"
        assert EnvSignals(term="xterm-256color").multiplexer is None


class TestDetectTerminalCapabilities:
    """Tests for detect_terminal_capabilities."""

    def test_size_from_env(self) -> None:
        """Test that COLUMNS/LINES set the terminal size."""
        caps = detect({})
        assert (caps.columns, caps.rows) == (100, 40)

    def test_size_fallback(self) -> None:
        """Test fallback to the controlling terminal size."""
        with patch(
            "leftysay.terminal_graphics.shutil.get_terminal_size",
            return_value=os.terminal_size((90, 30)),
        ):
            caps = detect_terminal_capabilities(EnvSignals())
        assert (caps.columns, caps.rows) == (90, 30)

    def test_detect_kitty_via_window_id(self) -> None:
        """Test detection of Kitty via KITTY_WINDOW_ID."""
        caps = detect({"KITTY_WINDOW_ID": "123"})
        assert caps.supports_kitty is True

    def test_detect_kitty_via_term(self) -> None:
        """Test detection of Kitty via TERM."""
        assert detect({"TERM": "xterm-kitty"}).supports_kitty is True

    def test_detect_iterm2(self) -> None:
        """Test detection of iTerm2 via TERM_PROGRAM."""
        caps = detect({"TERM_PROGRAM": "iTerm.app"})
        assert caps.supports_iterm is True
        assert caps.supports_kitty is False

    def test_detect_wezterm(self) -> None:
        """Test detection of WezTerm (supports iTerm2 protocol)."""
        assert detect({"TERM_PROGRAM": "WezTerm"}).supports_iterm is True

    def test_detect_mintty(self) -> None:
        """Test detection of mintty (supports Sixel)."""
        assert detect({"TERM_PROGRAM": "mintty"}).supports_sixel is True

    def test_detect_mlterm(self) -> None:
        """Test detection of mlterm (supports Sixel)."""
        assert detect({"TERM": "mlterm"}).supports_sixel is True

    def test_detect_unknown_terminal(self) -> None:
        """Test fallback for unknown terminals."""
        caps = detect({"TERM": "xterm-256color"})
        assert caps.supports_images is False

    def test_detect_multiplexer(self) -> None:
        """Test that tmux is recorded on the capabilities."""
        caps = detect({"TMUX": "/tmp/tmux", "TERM": "tmux-256color"})
        assert caps.multiplexer == "tmux"

    def test_detect_screen_from_sty(self) -> None:
        """Test that GNU screen is recognized by STY even with a plain TERM."""
        caps = detect({"STY": "12345.pts-0.host", "TERM": "xterm-256color"})
        assert caps.multiplexer == "screen"


class TestResolveFormat:
    """Tests for resolve_format."""

    def test_auto_prefers_iterm_over_sixel(self) -> None:
        """Test that auto picks iTerm when Kitty is unavailable."""
        caps = TerminalCapabilities(supports_kitty=False, supports_iterm=True, supports_sixel=True)
        assert resolve_format("auto", caps) is ResolvedFormat.ITERM

    def test_auto_prefers_kitty(self) -> None:
        """Test that Kitty has the highest priority."""
        caps = TerminalCapabilities(supports_kitty=True, supports_iterm=True, supports_sixel=True)
        assert resolve_format(RequestedFormat.AUTO, caps) is ResolvedFormat.KITTY

    def test_auto_sixel(self) -> None:
        """Test Sixel when it's the only protocol."""
        caps = TerminalCapabilities(supports_sixel=True)
        assert resolve_format(RequestedFormat.AUTO, caps) is ResolvedFormat.SIXEL

    def test_auto_falls_back_to_symbols(self) -> None:
        """Test that symbols is the universal fallback."""
        assert resolve_format(RequestedFormat.AUTO, TerminalCapabilities()) is ResolvedFormat.SYMBOLS

    def test_explicit_overrides_detection(self) -> None:
        """Test that an explicit format wins over detected support."""
        caps = TerminalCapabilities(supports_kitty=True, supports_iterm=True, supports_sixel=True)
        assert resolve_format("symbols", caps) is ResolvedFormat.SYMBOLS

    def test_explicit_not_validated(self) -> None:
        """Test that an unsupported explicit format is still used."""
        assert resolve_format(RequestedFormat.SIXELS, TerminalCapabilities()) is ResolvedFormat.SIXEL

    @pytest.mark.parametrize(
        ("alias", "expected"),
        [("unicode", ResolvedFormat.SYMBOLS), ("iterm2", ResolvedFormat.ITERM), ("sixel", ResolvedFormat.SIXEL)],
    )
    def test_aliases(self, alias: str, expected: ResolvedFormat) -> None:
        """Test that alias spellings resolve to their canonical formats."""
        assert resolve_format(alias, TerminalCapabilities()) is expected


class TestResolveColors:
    """Tests for resolve_colors."""

    def test_explicit_wins(self) -> None:
        """Test that an explicit color mode is kept."""
        signals = EnvSignals(colorterm="truecolor")
        assert resolve_colors(ColorMode.C16, signals) is ColorMode.C16

    def test_truecolor(self) -> None:
        """Test COLORTERM=truecolor."""
        assert resolve_colors(ColorMode.AUTO, EnvSignals(colorterm="truecolor")) is ColorMode.FULL

    def test_256(self) -> None:
        """Test a 256 color TERM."""
        assert resolve_colors(ColorMode.AUTO, EnvSignals(term="xterm-256color")) is ColorMode.C256

    def test_default_16(self) -> None:
        """Test the conservative default."""
        assert resolve_colors(ColorMode.AUTO, EnvSignals(term="xterm")) is ColorMode.C16
