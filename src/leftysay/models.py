"""Data models shared by the rendering pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leftysay.cells import visible_width

DEFAULT_MESSAGE = "Hello from leftysay!"
DEFAULT_MAX_HEIGHT_RATIO = 0.55
DEFAULT_CACHE_MAX_MB = 64
DEFAULT_RENDER_TIMEOUT = 10.0


class RequestedFormat(Enum):
    """Image output format as requested by the user or config."""

    AUTO = "auto"
    SYMBOLS = "symbols"
    KITTY = "kitty"
    ITERM = "iterm"
    SIXELS = "sixels"


class ColorMode(Enum):
    """Color depth passed to the rasterizer."""

    AUTO = "auto"
    FULL = "full"
    C256 = "256"
    C16 = "16"


class LayoutMode(Enum):
    """How the bubble and the image are arranged."""

    VERTICAL = "vertical"
    SIDE_BY_SIDE = "side-by-side"


# Accepted spellings beyond the canonical enum values
FORMAT_ALIASES = {
    "unicode": "symbols",
    "iterm2": "iterm",
    "sixel": "sixels",
}

COLOR_ALIASES = {
    "truecolor": "full",
    "c256": "256",
    "c16": "16",
}


def normalize_format(value: Any) -> Any:
    """Map alias spellings of a format onto the canonical value."""
    if isinstance(value, str):
        value = value.strip().lower()
        return FORMAT_ALIASES.get(value, value)
    return value


def normalize_colors(value: Any) -> Any:
    """Map alias spellings of a color mode onto the canonical value."""
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str):
        value = value.strip().lower()
        return COLOR_ALIASES.get(value, value)
    return value


class RenderRequest(BaseModel):
    """Everything the pipeline needs for one invocation.

    Built once by the CLI from config plus command-line overrides and never
    mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    message: str = DEFAULT_MESSAGE
    image_path: Path | None = None
    bubble_enabled: bool = True
    bubble_style: str = "classic"
    format: RequestedFormat = RequestedFormat.AUTO
    colors: ColorMode = ColorMode.AUTO
    layout_mode: LayoutMode = LayoutMode.VERTICAL
    max_height_ratio: float = Field(default=DEFAULT_MAX_HEIGHT_RATIO, gt=0.0, le=1.0)
    animate: bool = False
    cache_enabled: bool = True
    cache_max_bytes: int = Field(default=DEFAULT_CACHE_MAX_MB * 1024 * 1024, ge=0)
    render_timeout: float = Field(default=DEFAULT_RENDER_TIMEOUT, gt=0.0)

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        return normalize_format(value)

    @field_validator("colors", mode="before")
    @classmethod
    def _normalize_colors(cls, value: Any) -> Any:
        return normalize_colors(value)


@dataclass
class BubbleBlock:
    """Bordered, wrapped message text."""

    lines: list[str] = field(default_factory=list)
    width: int = 0

    @property
    def height(self) -> int:
        return len(self.lines)


@dataclass
class ImageBlock:
    """Rasterizer output split into terminal lines."""

    lines: list[str] = field(default_factory=list)
    width: int = 0

    @property
    def height(self) -> int:
        return len(self.lines)

    @classmethod
    def from_output(cls, output: str, min_width: int = 0) -> ImageBlock:
        """Build a block from captured rasterizer output.

        Lines are kept verbatim, escape sequences included. Trailing blank
        lines are dropped.

        Args:
            output: Captured standard output of the rasterizer
            min_width: Width to declare when the lines have less visible
                content, as with pixel protocols that draw via escapes

        Returns:
            ImageBlock with width measured in visible cells
        """
        lines = output.splitlines()
        while lines and not lines[-1].strip():
            lines.pop()
        width = max((visible_width(line) for line in lines), default=0)
        return cls(lines=lines, width=max(width, min_width))
