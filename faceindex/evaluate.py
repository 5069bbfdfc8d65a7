"""Labeled-pairs benchmark used to choose the descriptor match threshold."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from faceindex.extract import Extractor
from faceindex.errors import FaceIndexError
from faceindex.io_utils import dump_json, list_images, load_image, load_json
from faceindex.recognition.matcher import DescriptorMatcher, descriptor_distance
from faceindex.types import as_descriptors

LOGGER = logging.getLogger("faceindex.evaluate")

Dataset = Dict[str, List[np.ndarray]]


@dataclass
class PairStats:
    total_match: int = 0
    false_non_match: int = 0
    total_non_match: int = 0
    false_match: int = 0

    @property
    def total(self) -> int:
        return self.total_match + self.total_non_match

    @property
    def false_match_rate(self) -> float:
        return self.false_match / self.total_non_match if self.total_non_match else float("nan")

    @property
    def false_non_match_rate(self) -> float:
        return self.false_non_match / self.total_match if self.total_match else float("nan")

    def as_dict(self) -> Dict[str, float]:
        payload = asdict(self)
        payload["false_match_rate"] = self.false_match_rate
        payload["false_non_match_rate"] = self.false_non_match_rate
        return payload


def extract_dataset(
    root: Path,
    extractor: Extractor,
    loader: Callable[[Path], np.ndarray] = load_image,
    names: Optional[Sequence[str]] = None,
    progress: bool = True,
) -> Dataset:
    """First descriptor of every image under `root/<identity>/`.

    Images with no usable face are dropped; failing images are logged and
    skipped.
    """
    identities = names if names is not None else sorted(p.name for p in root.iterdir() if p.is_dir())
    dataset: Dataset = {}
    for name in tqdm(identities, desc="extract", unit="identity", disable=not progress):
        for path in list_images(root / name):
            try:
                faces = extractor.extract(loader(path))
            except (FaceIndexError, OSError) as exc:
                LOGGER.warning("Skipping %s: %s", path, exc)
                continue
            if faces:
                dataset.setdefault(name, []).append(faces[0].descriptors)
    LOGGER.info("Extracted descriptors for %d identities", len(dataset))
    return dataset


def save_dataset(path: Path, dataset: Dataset) -> None:
    dump_json(path, {name: [d.tolist() for d in descrs] for name, descrs in dataset.items()})


def load_dataset(path: Path) -> Dataset:
    raw = load_json(path)
    return {name: [as_descriptors(d) for d in descrs] for name, descrs in raw.items()}


def iter_pairs(dataset: Dataset, names: Optional[Sequence[str]] = None) -> Iterator[Tuple[bool, float]]:
    """Yield (same_identity, distance) for every ordered pair, self-pairs included."""
    keys = list(names) if names is not None else list(dataset)
    for name1 in keys:
        for d1 in dataset.get(name1, []):
            for name2 in keys:
                for d2 in dataset.get(name2, []):
                    yield name1 == name2, descriptor_distance(d1, d2)


def evaluate_pairs(
    dataset: Dataset,
    matcher: DescriptorMatcher,
    names: Optional[Sequence[str]] = None,
    min_match: Optional[int] = None,
    min_non_match: Optional[int] = None,
) -> PairStats:
    """Count false matches and false non-matches at the matcher's threshold.

    Stops early once both `min_match` and `min_non_match` comparisons have
    been made.
    """
    stats = PairStats()
    for same, distance in iter_pairs(dataset, names):
        match = distance < matcher.threshold
        if same:
            stats.total_match += 1
            if not match:
                stats.false_non_match += 1
        else:
            stats.total_non_match += 1
            if match:
                stats.false_match += 1
        if (
            min_match is not None
            and min_non_match is not None
            and stats.total_match >= min_match
            and stats.total_non_match >= min_non_match
        ):
            LOGGER.info("Stopped at %d non-match and %d match tests", stats.total_non_match, stats.total_match)
            break
    return stats


def sweep_thresholds(
    dataset: Dataset,
    thresholds: Iterable[float],
    names: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Error rates for each candidate threshold over all pairs."""
    pairs = list(iter_pairs(dataset, names))
    same = np.array([p[0] for p in pairs], dtype=bool)
    distances = np.array([p[1] for p in pairs], dtype=np.float64)
    rows = []
    for threshold in thresholds:
        match = distances < threshold
        stats = PairStats(
            total_match=int(same.sum()),
            false_non_match=int((same & ~match).sum()),
            total_non_match=int((~same).sum()),
            false_match=int((~same & match).sum()),
        )
        rows.append({"threshold": float(threshold), **stats.as_dict()})
    return pd.DataFrame(rows)
