"""Runtime configuration for the extraction pipeline, matcher, cache and stores."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from faceindex.io_utils import load_yaml

LOGGER = logging.getLogger("faceindex.config")


@dataclass
class ExtractorConfig:
    detection_threshold: float = 0.6
    landmark_threshold: float = 0.4
    min_face_px: int = 45
    # Threads used to process the detections of a single image.
    detection_workers: int = 1
    # Concurrent calls allowed into each inference collaborator.
    inference_capacity: int = 1


@dataclass
class MatcherConfig:
    # Selected on a labeled-pairs benchmark; see faceindex.evaluate.
    threshold: float = 0.62


@dataclass
class CacheConfig:
    cache_dir: Path = Path(".inception")


@dataclass
class StoreConfig:
    url: str = "sqlite:///faceindex.db"
    echo: bool = False


@dataclass
class ClassifierConfig:
    model_path: Optional[Path] = None
    labels_path: Optional[Path] = None
    threshold: float = 0.1
    image_size: int = 224


@dataclass
class FaceIndexConfig:
    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    matcher: MatcherConfig = field(default_factory=MatcherConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FaceIndexConfig":
        sections = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(sections)
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")
        kwargs = {}
        for name, values in data.items():
            section_type = sections[name].default_factory  # type: ignore[misc]
            kwargs[name] = _build_section(section_type, name, values or {})
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Path) -> "FaceIndexConfig":
        config = cls.from_dict(load_yaml(path))
        LOGGER.debug("Loaded config from %s: %s", path, config)
        return config

    @classmethod
    def load(cls, path: Optional[Path]) -> "FaceIndexConfig":
        """YAML config when `path` exists, built-in defaults otherwise."""
        if path is None or not path.exists():
            LOGGER.info("No config at %s; using defaults", path)
            return cls()
        return cls.from_yaml(path)


def _build_section(section_type, name: str, values: Dict[str, Any]):
    allowed = {f.name: f for f in fields(section_type)}
    unknown = set(values) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown keys in config section {name!r}: {sorted(unknown)}")
    converted = {}
    for key, value in values.items():
        default = getattr(section_type(), key)
        if isinstance(default, Path) or key.endswith("_path") or key.endswith("_dir"):
            converted[key] = Path(value) if value is not None else None
        else:
            converted[key] = value
    return section_type(**converted)
