"""Offline pass filling the face-distance store from every stored face."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from tqdm import tqdm

from faceindex.errors import DimensionMismatch, check_cancelled
from faceindex.recognition.matcher import DescriptorMatcher
from faceindex.store.base import FaceDistanceStore, FaceStore, pair_key
from faceindex.types import FaceItem

LOGGER = logging.getLogger("faceindex.distances")


@dataclass
class DistanceSummary:
    faces: int = 0
    pairs: int = 0
    skipped: int = 0


def precompute_distances(
    faces: FaceStore,
    distances: FaceDistanceStore,
    matcher: Optional[DescriptorMatcher] = None,
    cancel: Optional[threading.Event] = None,
    progress: bool = True,
) -> DistanceSummary:
    """Store the closest face distance for every pair of distinct identifiers.

    An identifier can own several faces; the pair keeps the minimum over
    their cross product. Faces from different networks are never compared.
    """
    matcher = matcher or DescriptorMatcher()
    items = faces.get_all_faces(cancel=cancel)
    summary = DistanceSummary(faces=len(items))
    best: Dict[Tuple[str, str], Tuple[float, FaceItem, FaceItem]] = {}

    for i, item1 in enumerate(tqdm(items, desc="distances", unit="face", disable=not progress)):
        check_cancelled(cancel, "distance precomputation")
        for item2 in items[i + 1 :]:
            if item1.identifier == item2.identifier or item1.network != item2.network:
                continue
            try:
                distance = matcher.distance(item1.descriptors, item2.descriptors)
            except DimensionMismatch as exc:
                LOGGER.warning("Skipping %s/%s: %s", item1.identifier, item2.identifier, exc)
                summary.skipped += 1
                continue
            key = pair_key(item1, item2)
            if key not in best or distance < best[key][0]:
                best[key] = (distance, item1, item2)

    for distance, item1, item2 in best.values():
        distances.store_face_distance(item1, item2, distance, cancel=cancel)
    summary.pairs = len(best)
    LOGGER.info("Stored %d distances over %d faces (%d skipped)", summary.pairs, summary.faces, summary.skipped)
    return summary
