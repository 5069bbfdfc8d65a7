"""Common dataclasses and type aliases used across the faceindex package."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

import numpy as np

Point = Tuple[int, int]


@dataclass(frozen=True)
class Rect:
    """Integer pixel rectangle, half-open on the max side."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    def contains(self, other: "Rect") -> bool:
        return (
            self.min_x <= other.min_x
            and self.min_y <= other.min_y
            and other.max_x <= self.max_x
            and other.max_y <= self.max_y
        )

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return self.min_x, self.min_y, self.max_x, self.max_y

    @classmethod
    def from_points(cls, points: Sequence[Point]) -> "Rect":
        """Tightest rectangle spanning the given points (max edges inclusive of the point)."""
        if not points:
            raise ValueError("Cannot bound an empty point set")
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        return cls(min(xs), min(ys), max(xs), max(ys))


@dataclass
class ImageRegion:
    """Pixels plus the bounds they occupy in the full image's coordinate frame."""

    pixels: np.ndarray
    bounds: Rect

    @classmethod
    def full(cls, image: np.ndarray) -> "ImageRegion":
        height, width = image.shape[:2]
        return cls(pixels=image, bounds=Rect(0, 0, int(width), int(height)))

    def crop(self, rect: Rect) -> "ImageRegion":
        """Copy `rect` out of this region; areas outside the region are zero-filled."""
        width, height = max(0, rect.width), max(0, rect.height)
        out = np.zeros((height, width) + self.pixels.shape[2:], dtype=self.pixels.dtype)
        src = self.bounds
        x1, y1 = max(rect.min_x, src.min_x), max(rect.min_y, src.min_y)
        x2, y2 = min(rect.max_x, src.max_x), min(rect.max_y, src.max_y)
        if x2 > x1 and y2 > y1:
            out[y1 - rect.min_y : y2 - rect.min_y, x1 - rect.min_x : x2 - rect.min_x] = self.pixels[
                y1 - src.min_y : y2 - src.min_y, x1 - src.min_x : x2 - src.min_x
            ]
        return ImageRegion(pixels=out, bounds=rect)


@dataclass
class Detection:
    """Generic detection returned by detectors."""

    box: Rect
    score: float
    class_score: float = 0.0


def above(detections: Iterable[Detection], threshold: float) -> List[Detection]:
    """Keep detections whose score reaches `threshold`, preserving detector order."""
    return [d for d in detections if d.score >= threshold]


@dataclass
class Landmarks:
    """Normalized keypoints laid out as x0, y0, x1, y1, ... in [0, 1]."""

    coords: List[float] = field(default_factory=list)

    @classmethod
    def from_points(cls, points: Iterable[Tuple[float, float]]) -> "Landmarks":
        coords: List[float] = []
        for x, y in points:
            coords.extend((float(x), float(y)))
        return cls(coords=coords)

    def __len__(self) -> int:
        return len(self.coords) // 2

    def _resolve(self, origin_x: int, origin_y: int, width: int, height: int) -> List[Point]:
        points: List[Point] = []
        for i in range(0, len(self.coords) - 1, 2):
            points.append(
                (
                    origin_x + int(width * self.coords[i]),
                    origin_y + int(height * self.coords[i + 1]),
                )
            )
        return points

    def points_relative_to_crop(self, crop_bounds: Rect) -> List[Point]:
        """Pixel points in the crop's own frame (origin at the crop's top-left)."""
        return self._resolve(0, 0, crop_bounds.width, crop_bounds.height)

    def points_relative_to_full(self, crop_bounds: Rect) -> List[Point]:
        """Pixel points in the full image's frame for landmarks computed on a crop."""
        return self._resolve(crop_bounds.min_x, crop_bounds.min_y, crop_bounds.width, crop_bounds.height)


Descriptors = np.ndarray


def as_descriptors(values: Iterable[float]) -> Descriptors:
    return np.asarray(values, dtype=np.float32).reshape(-1)


@dataclass(frozen=True)
class Prediction:
    network: str
    label: str
    score: float


@dataclass
class PredictionItem:
    identifier: str
    predictions: List[Prediction] = field(default_factory=list)


@dataclass
class FaceItem:
    """One detected face instance for an identifier."""

    identifier: str
    network: str
    detection: Detection
    landmarks: Landmarks
    descriptors: Descriptors


def l2_normalize(vec: np.ndarray, eps: float = 1e-6) -> np.ndarray:
    """L2-normalize the input vector."""
    norm = np.linalg.norm(vec)
    if norm < eps:
        return vec
    return vec / norm
