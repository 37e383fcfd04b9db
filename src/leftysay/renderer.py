"""Image rasterization through the external ``chafa`` program.

The pipeline only talks to ImageRendererPort, so tests can swap in a fake
without spawning processes.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from pathlib import Path

from leftysay.errors import RenderFailed, RenderUnavailable
from leftysay.models import DEFAULT_RENDER_TIMEOUT, ColorMode, ImageBlock
from leftysay.terminal_graphics import ResolvedFormat

logger = logging.getLogger(__name__)

CHAFA_ENV_VAR = "LEFTYSAY_CHAFA"
ANIMATION_DURATION = 5.0


class ImageRendererPort(ABC):
    """Abstract base class for image rasterizers."""

    @abstractmethod
    def render(
        self,
        image_path: Path,
        resolved_format: ResolvedFormat,
        colors: ColorMode,
        max_cells: tuple[int, int],
    ) -> ImageBlock:
        """Rasterize an image for the terminal.

        Args:
            image_path: Image file to render
            resolved_format: Output protocol
            colors: Color depth
            max_cells: Maximum (width, height) in terminal cells

        Returns:
            ImageBlock holding the rendered lines

        Raises:
            RenderUnavailable: The rasterizer isn't installed
            RenderFailed: The rasterizer errored or produced nothing
        """


def install_hint() -> str:
    """Platform-specific instructions for installing chafa."""
    if sys.platform == "darwin":
        return "Install: brew install chafa"
    if sys.platform.startswith("linux"):
        return "Install: sudo apt install chafa (Debian/Ubuntu) or sudo pacman -S chafa (Arch)"
    return "Install chafa from your package manager"


def find_chafa() -> Path | None:
    """Locate the chafa executable.

    LEFTYSAY_CHAFA takes precedence over the search path.
    """
    override = os.environ.get(CHAFA_ENV_VAR)
    if override:
        return Path(override)
    found = shutil.which("chafa")
    return Path(found) if found else None


class ChafaRenderer(ImageRendererPort):
    """Renderer that shells out to chafa.

    See: https://hpjansson.org/chafa/man/
    """

    def __init__(
        self,
        executable: Path | None = None,
        timeout: float = DEFAULT_RENDER_TIMEOUT,
        passthrough: str | None = None,
    ) -> None:
        self.executable = executable
        self.timeout = timeout
        self.passthrough = passthrough

    def _require_executable(self) -> Path:
        executable = self.executable or find_chafa()
        if executable is None:
            raise RenderUnavailable(f"leftysay requires chafa. {install_hint()}")
        return executable

    def build_command(
        self,
        executable: Path,
        image_path: Path,
        resolved_format: ResolvedFormat,
        colors: ColorMode,
        max_cells: tuple[int, int],
        animate: bool = False,
    ) -> list[str]:
        """Assemble the chafa command line."""
        width, height = max_cells
        cmd = [
            str(executable),
            "--format",
            resolved_format.value,
            "--colors",
            colors.value,
            "--size",
            f"{width}x{height}",
            "--animate",
            "on" if animate else "off",
        ]
        if animate:
            cmd += ["--duration", str(ANIMATION_DURATION)]
        if self.passthrough and resolved_format.is_pixel:
            cmd += ["--passthrough", self.passthrough]
        cmd.append(str(image_path))
        return cmd

    def render(
        self,
        image_path: Path,
        resolved_format: ResolvedFormat,
        colors: ColorMode,
        max_cells: tuple[int, int],
    ) -> ImageBlock:
        """Render an image by running chafa and capturing its output."""
        executable = self._require_executable()
        cmd = self.build_command(executable, image_path, resolved_format, colors, max_cells)
        logger.debug("Running %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise RenderUnavailable(f"chafa not found at {executable}. {install_hint()}") from e
        except subprocess.TimeoutExpired as e:
            logger.error("chafa timed out after %.1fs on %s", self.timeout, image_path)
            raise RenderFailed(f"chafa timed out after {self.timeout:g}s") from e
        except OSError as e:
            raise RenderFailed(f"could not run chafa: {e}") from e

        stderr = result.stderr.decode("utf-8", errors="replace")
        if result.returncode != 0:
            logger.warning("chafa exited with %d: %s", result.returncode, stderr.strip())
            raise RenderFailed(f"chafa exited with status {result.returncode}", stderr)

        output = result.stdout.decode("utf-8", errors="replace")
        if not output.strip():
            raise RenderFailed("chafa produced no output", stderr)

        width, _ = max_cells
        block = ImageBlock.from_output(
            output,
            min_width=width if resolved_format.is_pixel else 0,
        )
        logger.debug("Rendered %s as %dx%d cells", image_path.name, block.width, block.height)
        return block

    def play(
        self,
        image_path: Path,
        resolved_format: ResolvedFormat,
        colors: ColorMode,
        max_cells: tuple[int, int],
    ) -> None:
        """Play an animated image straight to the terminal.

        chafa writes to our stdout; ``--duration`` bounds the playback and the
        timeout leaves some slack on top of it.
        """
        executable = self._require_executable()
        cmd = self.build_command(
            executable, image_path, resolved_format, colors, max_cells, animate=True
        )
        logger.debug("Playing %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                stderr=subprocess.PIPE,
                timeout=ANIMATION_DURATION + self.timeout,
            )
        except FileNotFoundError as e:
            raise RenderUnavailable(f"chafa not found at {executable}. {install_hint()}") from e
        except subprocess.TimeoutExpired as e:
            raise RenderFailed("chafa animation did not finish") from e
        if result.returncode != 0:
            raise RenderFailed(
                f"chafa exited with status {result.returncode}",
                result.stderr.decode("utf-8", errors="replace"),
            )
