"""Capability contracts for the inference collaborators.

Backends only need to provide the listed method; tests use plain stub
classes. Images are numpy arrays (H x W x C, RGB).
"""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable

import numpy as np

from faceindex.types import Descriptors, Detection, Landmarks, Prediction


@runtime_checkable
class Detector(Protocol):
    def detect(self, image: np.ndarray) -> List[Detection]:
        """Return every candidate face in `image`, in the detector's own order."""


@runtime_checkable
class Landmark(Protocol):
    def detect(self, image: np.ndarray) -> Landmarks:
        """Return keypoints normalized to `image`'s width and height."""


@runtime_checkable
class Descriptor(Protocol):
    def compute(self, image: np.ndarray) -> Descriptors:
        """Return a fixed-length embedding for a normalized face crop."""


@runtime_checkable
class Classifier(Protocol):
    network: str

    def classify(self, image: np.ndarray) -> List[Prediction]:
        """Return predictions above the classifier threshold, best first."""
