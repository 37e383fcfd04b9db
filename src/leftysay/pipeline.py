"""The rendering pipeline: capabilities, bubble and image, then composition."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from leftysay.bubble import BORDER_CELLS, MAX_BUBBLE_WIDTH, bubble_width_hint, layout
from leftysay.cache import RenderCache, fingerprint
from leftysay.compositor import GUTTER, compose
from leftysay.errors import RenderError
from leftysay.models import BubbleBlock, ColorMode, ImageBlock, LayoutMode, RenderRequest
from leftysay.renderer import ImageRendererPort
from leftysay.terminal_graphics import (
    ResolvedFormat,
    TerminalCapabilities,
    resolve_format,
)

logger = logging.getLogger(__name__)

# Smallest image worth drawing next to a bubble
MIN_IMAGE_COLUMNS = 8
# Narrowest terminal that fits that image, the gutter and a one-column bubble
MIN_SIDE_BY_SIDE_COLUMNS = MIN_IMAGE_COLUMNS + GUTTER + BORDER_CELLS + 1


@dataclass
class RenderPlan:
    """Concrete parameters derived from a request and the terminal."""

    resolved_format: ResolvedFormat
    colors: ColorMode
    image_cells: tuple[int, int]
    bubble_width: int
    layout_mode: LayoutMode = LayoutMode.VERTICAL


@dataclass
class RenderResult:
    """Finished output plus anything the caller should report."""

    lines: list[str]
    plan: RenderPlan
    image_error: RenderError | None = None


def max_image_rows(caps: TerminalCapabilities, max_height_ratio: float) -> int:
    """Image height limit: ``floor(ratio * rows)``, at least one row."""
    return max(math.floor(caps.rows * max_height_ratio), 1)


def plan_render(request: RenderRequest, caps: TerminalCapabilities, colors: ColorMode) -> RenderPlan:
    """Split the terminal between bubble and image.

    Vertical layout gives both the full width. Side-by-side layout reserves
    room for the widest bubble (plus gutter) and hands the rest to the image.
    Terminals too narrow for side-by-side get the vertical layout instead.
    """
    resolved_format = resolve_format(request.format, caps)
    rows = max_image_rows(caps, request.max_height_ratio)

    layout_mode = request.layout_mode
    if layout_mode is LayoutMode.SIDE_BY_SIDE and caps.columns < MIN_SIDE_BY_SIDE_COLUMNS:
        logger.info("Terminal is %d columns wide, using vertical layout", caps.columns)
        layout_mode = LayoutMode.VERTICAL

    if layout_mode is LayoutMode.SIDE_BY_SIDE and request.bubble_enabled:
        bubble_columns = min(MAX_BUBBLE_WIDTH + BORDER_CELLS, caps.columns // 2)
        image_columns = max(caps.columns - bubble_columns - GUTTER, MIN_IMAGE_COLUMNS)
        bubble_width = bubble_width_hint(caps.columns, reserved=image_columns + GUTTER)
    else:
        image_columns = caps.columns
        bubble_width = bubble_width_hint(caps.columns)

    return RenderPlan(
        resolved_format=resolved_format,
        colors=colors,
        image_cells=(max(image_columns, 1), rows),
        bubble_width=bubble_width,
        layout_mode=layout_mode,
    )


class Greeter:
    """Runs one greeting through the pipeline."""

    def __init__(self, renderer: ImageRendererPort, cache: RenderCache | None = None) -> None:
        self.renderer = renderer
        self.cache = cache

    def _render_image(self, request: RenderRequest, plan: RenderPlan) -> ImageBlock:
        image_path = request.image_path

        def compute() -> ImageBlock:
            return self.renderer.render(
                image_path, plan.resolved_format, plan.colors, plan.image_cells
            )

        if self.cache is None or not self.cache.enabled or not request.cache_enabled:
            return compute()

        try:
            key = fingerprint(image_path, plan.image_cells, plan.resolved_format, plan.colors)
        except OSError as e:
            # The renderer will report a missing or unreadable image properly
            logger.debug("Cannot fingerprint %s: %s", image_path, e)
            return compute()
        return self.cache.get_or_compute(key, compute, request.cache_max_bytes)

    def _image_within_limits(self, request: RenderRequest, plan: RenderPlan) -> ImageBlock:
        block = self._render_image(request, plan)
        rows = plan.image_cells[1]
        if block.height > rows:
            logger.debug("Clipping image from %d to %d rows", block.height, rows)
            block = ImageBlock(lines=block.lines[:rows], width=block.width)
        return block

    def _layout_bubble(self, request: RenderRequest, plan: RenderPlan) -> BubbleBlock | None:
        if not request.bubble_enabled:
            return None
        return layout(request.message, plan.bubble_width, request.bubble_style)

    def run(
        self, request: RenderRequest, caps: TerminalCapabilities, colors: ColorMode
    ) -> RenderResult:
        """Produce the composed output for a request.

        The bubble and the image are built concurrently. If the image fails
        and the bubble is enabled, the bubble is shown alone and the error is
        returned on the result; otherwise the error propagates.

        Args:
            request: Resolved options
            caps: Terminal capabilities
            colors: Concrete color depth

        Returns:
            RenderResult with the finished lines

        Raises:
            RenderError: The image failed and there is no bubble to fall back to
            NoContent: Nothing to show
        """
        plan = plan_render(request, caps, colors)
        logger.debug(
            "Plan: format=%s colors=%s image=%dx%d bubble_width=%d",
            plan.resolved_format.value,
            plan.colors.value,
            plan.image_cells[0],
            plan.image_cells[1],
            plan.bubble_width,
        )

        image: ImageBlock | None = None
        image_error: RenderError | None = None

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="leftysay") as pool:
            bubble_future = pool.submit(self._layout_bubble, request, plan)
            image_future = None
            if request.image_path is not None:
                image_future = pool.submit(self._image_within_limits, request, plan)

            bubble = bubble_future.result()
            if image_future is not None:
                try:
                    image = image_future.result()
                except RenderError as e:
                    if bubble is None:
                        raise
                    logger.info("Showing bubble without image: %s", e)
                    image_error = e

        lines = compose(bubble, image, request.bubble_enabled, plan.layout_mode)
        return RenderResult(lines=lines, plan=plan, image_error=image_error)
