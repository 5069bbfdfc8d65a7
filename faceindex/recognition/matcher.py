"""Euclidean descriptor matcher."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from faceindex.errors import DimensionMismatch

LOGGER = logging.getLogger("faceindex.recognition.matcher")


def descriptor_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """L2 distance between two descriptors of equal length."""
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.shape != vb.shape:
        raise DimensionMismatch(va.shape[0], vb.shape[0])
    diff = va - vb
    return float(np.sqrt(np.sum(diff * diff)))


class DescriptorMatcher:
    """Decides identity matches by descriptor distance under a threshold."""

    def __init__(self, threshold: float = 0.62) -> None:
        self.threshold = threshold

    def distance(self, a: Sequence[float], b: Sequence[float]) -> float:
        return descriptor_distance(a, b)

    def is_match(self, a: Sequence[float], b: Sequence[float]) -> bool:
        return self.distance(a, b) < self.threshold

    def rank(
        self,
        descriptor: Sequence[float],
        gallery: Dict[str, Sequence[float]],
        k: int = 3,
    ) -> List[Tuple[str, float]]:
        """Return the k nearest gallery entries without applying the threshold."""
        scores = [(label, self.distance(descriptor, vec)) for label, vec in gallery.items()]
        scores.sort(key=lambda item: item[1])
        return scores[:k]

    def best_match(
        self,
        descriptor: Sequence[float],
        gallery: Dict[str, Sequence[float]],
    ) -> Optional[Tuple[str, float]]:
        ranked = self.rank(descriptor, gallery, k=1)
        if not ranked:
            return None
        label, distance = ranked[0]
        if distance >= self.threshold:
            LOGGER.debug("Nearest %s at %.3f is above threshold %.3f", label, distance, self.threshold)
            return None
        return label, distance
