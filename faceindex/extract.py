"""Face extraction pipeline: detect, filter, landmark, normalize, describe."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar

import numpy as np

from faceindex.config import ExtractorConfig
from faceindex.detectors.base import Descriptor, Detector, Landmark
from faceindex.errors import (
    DescriptorError,
    DetectionError,
    LandmarkError,
    NoFaceDetected,
    StageError,
    check_cancelled,
)
from faceindex.geometry import normalize_region
from faceindex.types import (
    Descriptors,
    Detection,
    FaceItem,
    ImageRegion,
    Landmarks,
    Point,
    above,
    as_descriptors,
)

LOGGER = logging.getLogger("faceindex.extract")

T = TypeVar("T")


class InferenceGate:
    """Bounds how many threads may be inside an inference runtime at once."""

    def __init__(self, capacity: int = 1) -> None:
        if capacity < 1:
            raise ValueError("InferenceGate capacity must be >= 1")
        self.capacity = capacity
        self._semaphore = threading.BoundedSemaphore(capacity)

    @contextmanager
    def slot(self) -> Iterator[None]:
        with self._semaphore:
            yield


@dataclass
class ExtractedFace:
    crop: ImageRegion
    descriptors: Descriptors
    detection: Detection
    landmarks: Landmarks

    def __iter__(self):
        # Unpacks as (crop, descriptors).
        return iter((self.crop, self.descriptors))


@dataclass
class LandmarkResult:
    points: List[Point]
    crop: ImageRegion
    detection: Detection
    landmarks: Landmarks


class Extractor:
    """Runs Detector -> Landmark -> normalization -> Descriptor over one image.

    Any collaborator failure aborts the whole call with the matching
    StageError subclass; boxes or crops below `min_face_px` are skipped
    silently.
    """

    def __init__(
        self,
        detector: Detector,
        landmark: Landmark,
        descriptor: Optional[Descriptor] = None,
        config: Optional[ExtractorConfig] = None,
        gate: Optional[InferenceGate] = None,
    ) -> None:
        self.detector = detector
        self.landmark = landmark
        self.descriptor = descriptor
        self.config = config or ExtractorConfig()
        self.gate = gate or InferenceGate(self.config.inference_capacity)

    def extract(self, image: np.ndarray, cancel: Optional[threading.Event] = None) -> List[ExtractedFace]:
        if self.descriptor is None:
            raise ValueError("Extractor.extract requires a Descriptor collaborator")
        full = ImageRegion.full(image)
        detections = above(self._detect(full, cancel), self.config.detection_threshold)
        LOGGER.debug("%d detections above %.2f", len(detections), self.config.detection_threshold)
        results = self._map(lambda det: self._extract_one(full, det, cancel), detections)
        return [face for face in results if face is not None]

    def extract_landmarks(self, image: np.ndarray, cancel: Optional[threading.Event] = None) -> List[LandmarkResult]:
        """Detection + landmark stages only, for diagnostics and overlays."""
        full = ImageRegion.full(image)
        detections = above(self._detect(full, cancel), self.config.landmark_threshold)
        if not detections:
            raise NoFaceDetected()
        results = self._map(lambda det: self._landmarks_one(full, det, cancel), detections)
        return [res for res in results if res is not None]

    def _map(self, fn: Callable[[Detection], T], detections: Sequence[Detection]) -> List[T]:
        workers = max(1, int(self.config.detection_workers))
        if workers == 1 or len(detections) < 2:
            return [fn(det) for det in detections]
        with ThreadPoolExecutor(max_workers=min(workers, len(detections))) as pool:
            # map() re-raises the first failure in detection order.
            return list(pool.map(fn, detections))

    def _too_small(self, width: int, height: int) -> bool:
        return width < self.config.min_face_px or height < self.config.min_face_px

    def _detect(self, full: ImageRegion, cancel: Optional[threading.Event]) -> List[Detection]:
        check_cancelled(cancel, "face detection")
        return self._call(DetectionError, lambda: list(self.detector.detect(full.pixels)))

    def _locate(self, full: ImageRegion, det: Detection, cancel: Optional[threading.Event]):
        if self._too_small(det.box.width, det.box.height):
            LOGGER.debug("Skipping face %s: too small", det.box)
            return None, None
        cropped = full.crop(det.box)
        check_cancelled(cancel, "landmark detection")
        landmarks = self._call(LandmarkError, lambda: self.landmark.detect(cropped.pixels))
        if landmarks is None or len(landmarks) == 0:
            raise LandmarkError("landmark model returned no points")
        return cropped, landmarks

    def _landmarks_one(
        self, full: ImageRegion, det: Detection, cancel: Optional[threading.Event]
    ) -> Optional[LandmarkResult]:
        cropped, landmarks = self._locate(full, det, cancel)
        if cropped is None:
            return None
        return LandmarkResult(
            points=landmarks.points_relative_to_full(cropped.bounds),
            crop=cropped,
            detection=det,
            landmarks=landmarks,
        )

    def _extract_one(
        self, full: ImageRegion, det: Detection, cancel: Optional[threading.Event]
    ) -> Optional[ExtractedFace]:
        cropped, landmarks = self._locate(full, det, cancel)
        if cropped is None:
            return None
        normalized = normalize_region(cropped.bounds, landmarks, full)
        if self._too_small(normalized.bounds.width, normalized.bounds.height):
            LOGGER.debug("Skipping face %s: normalized crop %s too small", det.box, normalized.bounds)
            return None
        check_cancelled(cancel, "descriptor computation")
        descriptors = self._call(
            DescriptorError, lambda: as_descriptors(self.descriptor.compute(normalized.pixels))
        )
        return ExtractedFace(crop=normalized, descriptors=descriptors, detection=det, landmarks=landmarks)

    def _call(self, error_type: type, fn: Callable[[], T]) -> T:
        with self.gate.slot():
            try:
                return fn()
            except StageError:
                raise
            except Exception as exc:
                raise error_type(str(exc)) from exc


def build_default_extractor(
    config: Optional[ExtractorConfig] = None,
    providers: Optional[Sequence[str]] = None,
    arcface_model: Optional[str] = None,
    with_descriptor: bool = True,
) -> Extractor:
    """RetinaFace detector + landmarks and ArcFace descriptors."""
    from faceindex.detectors.face_retina import RetinaFaceDetector, RetinaFaceLandmarker
    from faceindex.recognition.embed_arcface import ArcFaceDescriptor

    descriptor = ArcFaceDescriptor(model_path=arcface_model, providers=providers) if with_descriptor else None
    return Extractor(
        detector=RetinaFaceDetector(providers=providers),
        landmark=RetinaFaceLandmarker(providers=providers),
        descriptor=descriptor,
        config=config,
    )


def to_face_items(identifier: str, network: str, faces: Sequence[ExtractedFace]) -> List[FaceItem]:
    return [
        FaceItem(
            identifier=identifier,
            network=network,
            detection=face.detection,
            landmarks=face.landmarks,
            descriptors=face.descriptors,
        )
        for face in faces
    ]
