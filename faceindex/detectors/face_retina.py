"""RetinaFace detection and landmark backends (InsightFace)."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from faceindex.providers import default_providers, limit_threads
from faceindex.types import Detection, Landmarks, Rect

LOGGER = logging.getLogger("faceindex.detectors.face")


def _load_analysis(providers: Optional[Sequence[str]], det_size: Tuple[int, int], det_thresh: float):
    limit_threads()
    try:
        from insightface.app import FaceAnalysis
    except ImportError as exc:  # pragma: no cover - import guard
        raise RuntimeError(
            "insightface is required for the RetinaFace backends. "
            "Install it via `pip install insightface`."
        ) from exc

    provider_list = default_providers(providers)
    app = FaceAnalysis(name="buffalo_l", allowed_modules=["detection"], providers=provider_list)
    app.prepare(ctx_id=0, det_size=det_size, det_thresh=det_thresh)
    LOGGER.info(
        "Loaded RetinaFace det_size=%s det_thresh=%.2f providers=%s",
        det_size,
        det_thresh,
        provider_list,
    )
    return app


def _faces(app, image: np.ndarray):
    # Pipeline images are RGB; InsightFace expects BGR.
    return app.get(cv2.cvtColor(np.ascontiguousarray(image), cv2.COLOR_RGB2BGR))


class RetinaFaceDetector:
    """Detector capability: every face box RetinaFace finds, in its output order.

    Score filtering is left to the Extractor, so `det_thresh` only trims
    obvious noise.
    """

    def __init__(
        self,
        providers: Optional[Sequence[str]] = None,
        det_size: Tuple[int, int] = (640, 640),
        det_thresh: float = 0.3,
    ) -> None:
        self.app = _load_analysis(providers, det_size, det_thresh)

    def detect(self, image: np.ndarray) -> List[Detection]:
        detections: List[Detection] = []
        for face in _faces(self.app, image):
            x1, y1, x2, y2 = (int(round(float(v))) for v in face.bbox)
            detections.append(Detection(box=Rect(x1, y1, x2, y2), score=float(face.det_score), class_score=1.0))
        return detections


class RetinaFaceLandmarker:
    """Landmark capability: five keypoints of the strongest face in a crop."""

    def __init__(
        self,
        providers: Optional[Sequence[str]] = None,
        det_size: Tuple[int, int] = (160, 160),
        det_thresh: float = 0.1,
    ) -> None:
        self.app = _load_analysis(providers, det_size, det_thresh)

    def detect(self, image: np.ndarray) -> Landmarks:
        faces = [f for f in _faces(self.app, image) if getattr(f, "kps", None) is not None]
        if not faces:
            raise RuntimeError("no keypoints found in crop")
        best = max(faces, key=lambda f: float(f.det_score))
        height, width = image.shape[:2]
        kps = np.asarray(best.kps, dtype=np.float32).reshape(-1, 2)
        norm = np.clip(kps / np.array([width, height], dtype=np.float32), 0.0, 1.0)
        return Landmarks.from_points((float(x), float(y)) for x, y in norm)
