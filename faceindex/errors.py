"""Exception hierarchy shared by the pipeline, cache and stores."""

from __future__ import annotations


class FaceIndexError(Exception):
    """Base class for all faceindex errors."""


class StageError(FaceIndexError):
    """A collaborator failed inside one extraction stage."""

    stage = "unknown"

    def __init__(self, message: str) -> None:
        super().__init__(f"error {self.stage}: {message}")


class DetectionError(StageError):
    stage = "detecting faces"


class LandmarkError(StageError):
    stage = "detecting landmarks"


class DescriptorError(StageError):
    stage = "computing descriptors"


class DimensionMismatch(FaceIndexError, ValueError):
    def __init__(self, left: int, right: int) -> None:
        super().__init__(
            f"cannot calculate distance between descriptors of dimensions {left} and {right}"
        )
        self.left = left
        self.right = right


class NoFaceDetected(FaceIndexError):
    def __init__(self, message: str = "no face detected") -> None:
        super().__init__(message)


class StorageError(FaceIndexError):
    """Persistence failure (I/O, driver or constraint)."""


class ConstraintViolation(StorageError):
    """A uniqueness constraint rejected the write; nothing was persisted."""


class CacheComputeError(FaceIndexError):
    """The memoized computation failed; the failure is never cached."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"computation for cache key {key} failed: {message}")
        self.key = key


class Cancelled(FaceIndexError):
    def __init__(self, where: str) -> None:
        super().__init__(f"cancelled during {where}")
        self.where = where


def check_cancelled(cancel, where: str) -> None:
    """Raise `Cancelled` when the optional `threading.Event` has been set."""
    if cancel is not None and cancel.is_set():
        raise Cancelled(where)
