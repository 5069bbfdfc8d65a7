"""Abstract persistence contracts for predictions, faces and face distances."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from faceindex.types import FaceItem, PredictionItem


class PredictionStore(ABC):
    """Append-only store of classification results keyed by identifier."""

    @abstractmethod
    def get_prediction(self, identifier: str, cancel: Optional[threading.Event] = None) -> Optional[PredictionItem]:
        """Return the item for `identifier`, or None when nothing is stored."""

    @abstractmethod
    def store_prediction(
        self, identifier: str, item: PredictionItem, cancel: Optional[threading.Event] = None
    ) -> None:
        """Insert every prediction of `item` atomically.

        A (identifier, network, label) triple that already exists raises
        ConstraintViolation and leaves no rows from this call behind.
        """

    @abstractmethod
    def search_predictions(
        self, query: str, after: str, n: int, cancel: Optional[threading.Event] = None
    ) -> List[PredictionItem]:
        """Return up to `n` items with identifier > `after` whose labels contain `query`.

        Empty `query` or `after` disable that filter. Items come back in
        ascending identifier order, not by score, so the last identifier is
        the next page's cursor; score ordering applies only to the
        predictions inside each item.
        """


class FaceStore(ABC):
    @abstractmethod
    def store_face(self, item: FaceItem, cancel: Optional[threading.Event] = None) -> None:
        """Append one detected face."""

    @abstractmethod
    def store_faces(
        self, identifier: str, items: List[FaceItem], cancel: Optional[threading.Event] = None
    ) -> None:
        """Insert every face of one image atomically.

        Raises ConstraintViolation, writing nothing, when faces from any of
        the items' networks are already stored for `identifier`.
        """

    @abstractmethod
    def get_faces(self, identifier: str, cancel: Optional[threading.Event] = None) -> List[FaceItem]:
        """Return every face stored for `identifier` (empty when unknown)."""

    @abstractmethod
    def get_all_faces(self, cancel: Optional[threading.Event] = None) -> List[FaceItem]:
        """Scan every stored face. Meant for offline passes."""


class FaceDistanceStore(ABC):
    @abstractmethod
    def store_face_distance(
        self, item1: FaceItem, item2: FaceItem, distance: float, cancel: Optional[threading.Event] = None
    ) -> None:
        """Store the distance for the unordered identifier pair, replacing any previous value."""

    @abstractmethod
    def get_face_distance(
        self, item1: FaceItem, item2: FaceItem, cancel: Optional[threading.Event] = None
    ) -> Optional[float]:
        """Return the stored distance for the pair in either order, or None."""


def pair_key(item1: FaceItem, item2: FaceItem) -> Tuple[str, str]:
    """Order-independent key for a pair of faces."""
    a, b = item1.identifier, item2.identifier
    return (a, b) if a <= b else (b, a)
