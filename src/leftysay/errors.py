"""Exceptions raised by the rendering pipeline."""

from __future__ import annotations


class LeftysayError(Exception):
    """Base class for leftysay errors."""


class RenderError(LeftysayError):
    """The image could not be rendered. Recoverable: the bubble can still be shown."""


class RenderUnavailable(RenderError):
    """The external rasterizer is not installed."""


class RenderFailed(RenderError):
    """The external rasterizer ran but did not produce usable output."""

    def __init__(self, message: str, stderr: str = "") -> None:
        self.stderr = stderr.strip()
        if self.stderr:
            message = f"{message}: {self.stderr}"
        super().__init__(message)


class CacheUnavailable(LeftysayError):
    """Render cache storage cannot be read or written."""


class NoContent(LeftysayError):
    """Neither a bubble nor an image is available to show."""


class LayoutOverflow(UserWarning):
    """Bubble width was too small and the text was wrapped to a single column."""
