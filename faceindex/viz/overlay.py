"""Draw detections and landmark points for diagnostics."""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, Optional, Sequence, Tuple

import cv2
import numpy as np

from faceindex.types import Detection, Point, Rect

LOGGER = logging.getLogger("faceindex.viz.overlay")

POINT_COLOR = (0, 255, 0)


def _label_color(label: Optional[str]) -> Tuple[int, int, int]:
    if not label:
        return (0, 255, 255)
    digest = hashlib.md5(label.encode("utf-8")).digest()
    return tuple(int(x) for x in digest[:3])


def draw_points(
    image: np.ndarray,
    points: Iterable[Point],
    origin: Tuple[int, int] = (0, 0),
    radius: int = 1,
) -> np.ndarray:
    """Return a copy of `image` with `points` marked; `origin` is the image's offset in point space."""
    out = image.copy()
    ox, oy = origin
    for x, y in points:
        cv2.circle(out, (int(x - ox), int(y - oy)), radius, POINT_COLOR, -1)
    return out


def draw_on_crop(crop: np.ndarray, crop_bounds: Rect, points_full: Sequence[Point]) -> np.ndarray:
    """Mark full-frame points on the crop they were detected in."""
    return draw_points(crop, points_full, origin=(crop_bounds.min_x, crop_bounds.min_y))


def draw_detections(
    image: np.ndarray,
    detections: Iterable[Detection],
    label: Optional[str] = None,
) -> np.ndarray:
    out = image.copy()
    color = _label_color(label)
    for det in detections:
        box = det.box
        cv2.rectangle(out, (box.min_x, box.min_y), (box.max_x, box.max_y), color, 2)
        text = f"{label or 'face'} ({det.score:.2f})"
        text_y = max(15, box.min_y - 10)
        cv2.putText(out, text, (box.min_x, text_y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 2)
    return out
