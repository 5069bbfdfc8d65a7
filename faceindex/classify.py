"""Classify an image folder through the content-addressed cache and index it by label."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from tqdm import tqdm

from faceindex.cache import ContentAddressedCache
from faceindex.detectors.base import Classifier
from faceindex.errors import ConstraintViolation, StorageError
from faceindex.io_utils import list_images, load_image
from faceindex.store.base import PredictionStore
from faceindex.types import Prediction, PredictionItem

LOGGER = logging.getLogger("faceindex.classify")

LabelIndex = Dict[str, List[Path]]


def _classify_fn(classifier: Optional[Classifier], image: np.ndarray) -> Callable[[], List[Dict[str, Any]]]:
    """Pure classification; the result is what the cache persists."""

    def compute() -> List[Dict[str, Any]]:
        if classifier is None:
            raise RuntimeError("no classifier given")
        return [
            {"network": p.network, "label": p.label, "score": float(p.score)}
            for p in classifier.classify(image)
        ]

    return compute


def _record(store: PredictionStore, identifier: str, predictions: List[Prediction]) -> None:
    if not predictions or store.get_prediction(identifier) is not None:
        return
    try:
        store.store_prediction(identifier, PredictionItem(identifier, predictions))
    except ConstraintViolation:
        LOGGER.debug("Predictions for %s were stored concurrently", identifier)
    except StorageError as exc:
        LOGGER.warning("error storing predictions for %s: %s", identifier, exc)


def inspect_folder(
    folder: Path,
    cache: Optional[ContentAddressedCache] = None,
    classifier: Optional[Classifier] = None,
    store: Optional[PredictionStore] = None,
    loader: Callable[[Path], np.ndarray] = load_image,
    progress: bool = True,
) -> LabelIndex:
    """Return a label -> files index for every image in `folder`.

    Without a classifier only cached results are available; files whose
    result is neither cached nor computable are logged and skipped. When a
    store is given, identifiers it does not know yet get their predictions
    written; a failed write never drops the file from the index.
    """
    if cache is None and classifier is None:
        raise ValueError("cannot inspect without cache or classifier")

    files = list_images(folder)
    index: LabelIndex = {}
    for path in tqdm(files, desc="classify", unit="img", disable=not progress):
        try:
            image = loader(path)
        except (OSError, ValueError) as exc:
            LOGGER.warning("error processing file %s: %s", path, exc)
            continue

        compute = _classify_fn(classifier, image)
        try:
            records = cache.get_or_compute(str(path), compute) if cache is not None else compute()
            predictions = [Prediction(**record) for record in records]
        except Exception as exc:  # noqa: BLE001 - one bad file must not stop the folder
            LOGGER.warning("error classifying %s: %s", path, exc)
            continue

        if store is not None:
            _record(store, str(path), predictions)
        for label in dict.fromkeys(p.label.lower() for p in predictions):
            index.setdefault(label, []).append(path)
    LOGGER.info("Indexed %d files under %d labels", len(files), len(index))
    return index


def find(index: LabelIndex, query: str) -> List[Path]:
    """Exact, case-insensitive label lookup."""
    return list(index.get(query.strip().lower(), []))
