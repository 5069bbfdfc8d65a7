import threading

import numpy as np
import pytest

from faceindex.config import ExtractorConfig
from faceindex.errors import Cancelled, DescriptorError, DetectionError, LandmarkError, NoFaceDetected
from faceindex.extract import Extractor, to_face_items
from faceindex.types import Detection, Landmarks, Rect


class StubDetector:
    def __init__(self, detections=None, error=None):
        self.detections = detections or []
        self.error = error

    def detect(self, image):
        if self.error is not None:
            raise self.error
        return list(self.detections)


class StubLandmark:
    """Two corner points spanning 80% of whatever crop it is given."""

    def __init__(self, error=None, empty=False):
        self.error = error
        self.empty = empty
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.empty:
            return Landmarks()
        return Landmarks.from_points([(0.1, 0.1), (0.9, 0.9)])


class StubDescriptor:
    network = "stub"

    def __init__(self, error=None):
        self.error = error

    def compute(self, image):
        if self.error is not None:
            raise self.error
        return [float(image.mean()), float(image.shape[0])]


def _image():
    image = np.zeros((300, 300, 3), dtype=np.uint8)
    image[10:110, 10:110] = 50
    image[150:250, 150:250] = 100
    image[0:100, 190:290] = 200
    return image


FACE_A = Detection(box=Rect(10, 10, 110, 110), score=0.9)
FACE_B = Detection(box=Rect(150, 150, 250, 250), score=0.65)
FACE_C = Detection(box=Rect(190, 0, 290, 100), score=0.5)
TINY = Detection(box=Rect(0, 200, 30, 230), score=0.99)


def _extractor(detections, **kwargs):
    config = kwargs.pop("config", ExtractorConfig())
    return Extractor(
        detector=kwargs.pop("detector", StubDetector(detections)),
        landmark=kwargs.pop("landmark", StubLandmark()),
        descriptor=kwargs.pop("descriptor", StubDescriptor()),
        config=config,
    )


def test_extract_filters_scores_and_small_faces():
    landmark = StubLandmark()
    extractor = _extractor([FACE_A, FACE_C, TINY, FACE_B], landmark=landmark)

    faces = extractor.extract(_image())

    assert [face.detection for face in faces] == [FACE_A, FACE_B]
    # The tiny box is dropped before the landmark model ever runs.
    assert landmark.calls == 2
    assert faces[0].crop.bounds == Rect(20, 20, 100, 100)
    assert faces[0].descriptors.tolist() == [50.0, 80.0]
    assert faces[1].descriptors.tolist() == [100.0, 80.0]


def test_extracted_face_unpacks_to_crop_and_descriptors():
    (face,) = _extractor([FACE_A]).extract(_image())
    crop, descriptors = face
    assert crop.pixels.shape == (80, 80, 3)
    assert descriptors.dtype == np.float32


def test_normalized_crop_below_minimum_is_skipped():
    class NarrowLandmark(StubLandmark):
        def detect(self, image):
            return Landmarks.from_points([(0.4, 0.4), (0.6, 0.6)])

    faces = _extractor([FACE_A], landmark=NarrowLandmark()).extract(_image())
    assert faces == []


def test_no_detections_yields_empty_list():
    assert _extractor([]).extract(_image()) == []


def test_landmark_mode_uses_lower_threshold_and_full_frame_points():
    results = _extractor([FACE_A, FACE_C]).extract_landmarks(_image())

    assert [res.detection for res in results] == [FACE_A, FACE_C]
    assert results[0].points == [(20, 20), (100, 100)]
    assert results[1].points == [(200, 10), (280, 90)]


def test_landmark_mode_without_faces_raises():
    with pytest.raises(NoFaceDetected):
        _extractor([Detection(box=Rect(0, 0, 100, 100), score=0.2)]).extract_landmarks(_image())


def test_detector_failure_is_wrapped():
    extractor = _extractor([], detector=StubDetector(error=RuntimeError("bad model")))
    with pytest.raises(DetectionError) as excinfo:
        extractor.extract(_image())
    assert str(excinfo.value) == "error detecting faces: bad model"
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_landmark_failure_aborts_whole_image():
    extractor = _extractor([FACE_A, FACE_B], landmark=StubLandmark(error=ValueError("oops")))
    with pytest.raises(LandmarkError):
        extractor.extract(_image())


def test_empty_landmarks_are_an_error():
    extractor = _extractor([FACE_A], landmark=StubLandmark(empty=True))
    with pytest.raises(LandmarkError):
        extractor.extract(_image())


def test_descriptor_failure_is_wrapped():
    extractor = _extractor([FACE_A], descriptor=StubDescriptor(error=RuntimeError("nan")))
    with pytest.raises(DescriptorError, match="error computing descriptors"):
        extractor.extract(_image())


def test_extract_requires_descriptor():
    extractor = Extractor(detector=StubDetector([FACE_A]), landmark=StubLandmark())
    with pytest.raises(ValueError):
        extractor.extract(_image())


def test_cancelled_before_detection():
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(Cancelled):
        _extractor([FACE_A]).extract(_image(), cancel=cancel)


def test_parallel_workers_preserve_detection_order():
    config = ExtractorConfig(detection_workers=4, inference_capacity=2)
    detections = [FACE_B, FACE_A, FACE_B, FACE_A]

    faces = _extractor(detections, config=config).extract(_image())

    assert [face.detection for face in faces] == detections
    assert [face.descriptors[0] for face in faces] == [100.0, 50.0, 100.0, 50.0]


def test_to_face_items_carries_identifier_and_network():
    faces = _extractor([FACE_A, FACE_B]).extract(_image())
    items = to_face_items("photos/a.jpg", "stub", faces)
    assert [item.identifier for item in items] == ["photos/a.jpg", "photos/a.jpg"]
    assert items[1].detection == FACE_B
    assert items[0].landmarks.coords == pytest.approx([0.1, 0.1, 0.9, 0.9])
