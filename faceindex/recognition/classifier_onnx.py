"""ImageNet-style classifier backend on ONNX Runtime."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import cv2
import numpy as np

from faceindex.io_utils import load_json
from faceindex.providers import default_providers
from faceindex.types import Prediction

LOGGER = logging.getLogger("faceindex.recognition.classifier")

# Caffe preprocessing: BGR channel order, per-channel mean subtraction, no scaling.
CAFFE_MEAN_BGR = np.array([103.939, 116.779, 123.68], dtype=np.float32)


def load_labels(path: Path) -> List[str]:
    """Read labels from a Keras `imagenet_class_index.json` or a plain JSON list."""
    raw = load_json(path)
    if isinstance(raw, list):
        return [str(v) for v in raw]
    index: Dict[int, str] = {}
    for key, value in raw.items():
        index[int(key)] = value[-1] if isinstance(value, (list, tuple)) else str(value)
    return [index[i] for i in sorted(index)]


def preprocess_caffe(image: np.ndarray, size: int) -> np.ndarray:
    """RGB uint8 image -> 1 x size x size x 3 float32 tensor."""
    resized = cv2.resize(image, (size, size), interpolation=cv2.INTER_LINEAR).astype(np.float32)
    bgr = resized[..., ::-1] - CAFFE_MEAN_BGR
    return np.ascontiguousarray(bgr[None, ...])


class OnnxClassifier:
    """Classifier capability returning labels whose score reaches `threshold`."""

    def __init__(
        self,
        model_path: Path,
        labels_path: Path,
        threshold: float = 0.1,
        image_size: int = 224,
        providers: Optional[Sequence[str]] = None,
    ) -> None:
        try:
            import onnxruntime as ort
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "onnxruntime is required for OnnxClassifier. Install it via `pip install onnxruntime`."
            ) from exc

        self.session = ort.InferenceSession(
            str(model_path), providers=default_providers(providers)
        )
        self.input_name = self.session.get_inputs()[0].name
        self.labels = load_labels(labels_path)
        self.threshold = threshold
        self.image_size = image_size
        self.network = Path(model_path).stem
        LOGGER.info("Loaded classifier %s with %d labels", model_path, len(self.labels))

    def classify(self, image: np.ndarray) -> List[Prediction]:
        tensor = preprocess_caffe(image, self.image_size)
        scores = np.asarray(self.session.run(None, {self.input_name: tensor})[0], dtype=np.float32).reshape(-1)
        if scores.shape[0] != len(self.labels):
            raise ValueError(f"model returned {scores.shape[0]} scores for {len(self.labels)} labels")
        return rank_predictions(self.network, self.labels, scores, self.threshold)


def rank_predictions(network: str, labels: Sequence[str], scores: np.ndarray, threshold: float) -> List[Prediction]:
    order = np.argsort(-scores)
    return [
        Prediction(network=network, label=labels[i], score=float(scores[i]))
        for i in order
        if scores[i] >= threshold
    ]
