"""Merge the bubble and the image into the final output lines.

Pure computation: callers print the result.
"""

from __future__ import annotations

from leftysay.cells import RESET, pad_to_width
from leftysay.errors import NoContent
from leftysay.models import BubbleBlock, ImageBlock, LayoutMode

# Blank cells between the image and the bubble in side-by-side layout
GUTTER = 2


def _side_by_side(bubble: BubbleBlock, image: ImageBlock) -> list[str]:
    height = max(bubble.height, image.height)
    # Vertically center the bubble against the image
    top = max((image.height - bubble.height) // 2, 0)
    blank_bubble = " " * bubble.width
    bubble_rows = [blank_bubble] * top + bubble.lines
    bubble_rows += [blank_bubble] * (height - len(bubble_rows))
    image_rows = image.lines + [""] * (height - image.height)

    lines = []
    for image_line, bubble_line in zip(image_rows, bubble_rows):
        if image_line:
            # Reset so image colors don't bleed into the padding
            left = pad_to_width(image_line + RESET, image.width)
        else:
            left = " " * image.width
        lines.append(left + " " * GUTTER + pad_to_width(bubble_line, bubble.width))
    return lines


def compose(
    bubble: BubbleBlock | None,
    image: ImageBlock | None,
    bubble_enabled: bool = True,
    layout_mode: LayoutMode = LayoutMode.VERTICAL,
) -> list[str]:
    """Combine bubble and image into lines ready to print.

    Args:
        bubble: Laid-out bubble, if any
        image: Rendered image, or None when rendering was skipped or failed
        bubble_enabled: Whether the bubble should be shown at all
        layout_mode: Image beside the bubble, or bubble above the image

    Returns:
        Output lines without trailing newlines

    Raises:
        NoContent: There is nothing to show
    """
    if not image or not image.lines:
        image = None
    if not bubble_enabled or bubble is None or not bubble.lines:
        bubble = None

    if bubble is None and image is None:
        raise NoContent("nothing to display: no bubble and no image")
    if bubble is None:
        return list(image.lines)
    if image is None:
        return list(bubble.lines)

    if layout_mode is LayoutMode.SIDE_BY_SIDE:
        return _side_by_side(bubble, image)
    return bubble.lines + image.lines
