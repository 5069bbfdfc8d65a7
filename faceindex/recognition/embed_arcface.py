"""ArcFace descriptor backend."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

import cv2
import numpy as np

from faceindex.providers import default_providers, limit_threads
from faceindex.types import Descriptors, l2_normalize

LOGGER = logging.getLogger("faceindex.recognition.embed")

DEFAULT_MODEL = "arcface_r100_v1"
INPUT_SIZE = (112, 112)


def _load_recognition(model_name: str, providers: Sequence[str]):
    try:
        from insightface.model_zoo import get_model
    except ImportError as exc:  # pragma: no cover - import guard
        raise RuntimeError(
            "insightface is required for ArcFaceDescriptor. Install it via `pip install insightface`."
        ) from exc

    model = get_model(model_name, download=True, providers=list(providers))
    if model is None:
        # Model zoo miss; the buffalo_l pack ships an ArcFace recognizer too.
        from insightface.app import FaceAnalysis

        LOGGER.info("%s not in model zoo; using buffalo_l recognition", model_name)
        pack = FaceAnalysis(name="buffalo_l", allowed_modules=["recognition"], providers=list(providers))
        pack.prepare(ctx_id=0)
        model = pack.models.get("recognition")
    if model is None:
        raise RuntimeError(f"Unable to load ArcFace recognition model {model_name}")
    if hasattr(model, "prepare"):
        model.prepare(ctx_id=0)
    return model


class ArcFaceDescriptor:
    """Descriptor capability: 512-d L2-normalized ArcFace embedding of a face crop.

    Crops of any size are resized to the 112x112 network input, so callers
    pass the normalized square region straight from the Extractor.
    """

    def __init__(self, model_path: Optional[str] = None, providers: Optional[Sequence[str]] = None) -> None:
        limit_threads()
        model_name = str(Path(model_path).expanduser()) if model_path else DEFAULT_MODEL
        provider_list = default_providers(providers)
        LOGGER.info("Loading ArcFace model %s providers=%s", model_name, provider_list)
        self.model = _load_recognition(model_name, provider_list)
        self.network = Path(model_name).stem

    def compute(self, image: np.ndarray) -> Descriptors:
        if image.size == 0:
            raise ValueError("empty face crop")
        # InsightFace models take BGR input.
        face = cv2.resize(cv2.cvtColor(image, cv2.COLOR_RGB2BGR), INPUT_SIZE, interpolation=cv2.INTER_LINEAR)
        feat = np.asarray(self.model.get_feat(face), dtype=np.float32).reshape(-1)
        return l2_normalize(feat)
