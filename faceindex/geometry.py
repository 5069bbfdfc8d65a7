"""Square, clamped face regions from landmark points."""

from __future__ import annotations

import logging
from typing import Sequence

from faceindex.types import ImageRegion, Landmarks, Point, Rect

LOGGER = logging.getLogger("faceindex.geometry")


def square(rect: Rect) -> Rect:
    """Grow the shorter side so width == height; the trailing edge takes the odd pixel."""
    width, height = rect.width, rect.height
    if height > width:
        lead = (height - width) // 2
        trail = height - width - lead
        return Rect(rect.min_x - lead, rect.min_y, rect.max_x + trail, rect.max_y)
    if width > height:
        lead = (width - height) // 2
        trail = width - height - lead
        return Rect(rect.min_x, rect.min_y - lead, rect.max_x, rect.max_y + trail)
    return rect


def shrink_to(rect: Rect, side: int) -> Rect:
    """Shrink a square about its centre to `side`, using the same split as `square`."""
    cut_x = max(0, rect.width - side)
    cut_y = max(0, rect.height - side)
    lead_x, lead_y = cut_x // 2, cut_y // 2
    return Rect(
        rect.min_x + lead_x,
        rect.min_y + lead_y,
        rect.max_x - (cut_x - lead_x),
        rect.max_y - (cut_y - lead_y),
    )


def inside_of(rect: Rect, bounds: Rect) -> Rect:
    """Translate `rect` inward by whatever overflows `bounds`.

    Assumes `rect` is no larger than `bounds`; otherwise the result still
    overflows on the trailing side.
    """
    min_x, min_y, max_x, max_y = rect.as_tuple()
    if bounds.min_x > min_x:
        max_x += bounds.min_x - min_x
        min_x = bounds.min_x
    if bounds.min_y > min_y:
        max_y += bounds.min_y - min_y
        min_y = bounds.min_y
    if max_x > bounds.max_x:
        min_x -= max_x - bounds.max_x
        max_x = bounds.max_x
    if max_y > bounds.max_y:
        min_y -= max_y - bounds.max_y
        max_y = bounds.max_y
    return Rect(min_x, min_y, max_x, max_y)


def normalized_rect(points: Sequence[Point], bounds: Rect) -> Rect:
    """Square region tightly bounding `points`, clamped inside `bounds`.

    When the square is larger than the smallest side of `bounds` it is first
    shrunk about its centre, so the result stays square and contained but no
    longer spans every point.
    """
    rect = square(Rect.from_points(points))
    limit = min(bounds.width, bounds.height)
    if rect.width > limit:
        LOGGER.debug("Square side %d exceeds image side %d; shrinking", rect.width, limit)
        rect = shrink_to(rect, max(0, limit))
    return inside_of(rect, bounds)


def normalize_region(crop_bounds: Rect, landmarks: Landmarks, full: ImageRegion) -> ImageRegion:
    """Crop `full` over the normalized square of landmarks detected on `crop_bounds`."""
    points = landmarks.points_relative_to_full(crop_bounds)
    rect = normalized_rect(points, full.bounds)
    return full.crop(rect)
