import threading

import numpy as np
import pytest

from faceindex.distances import precompute_distances
from faceindex.errors import Cancelled
from faceindex.store import SQLStore
from faceindex.types import Detection, FaceItem, Landmarks, Rect


def _face(identifier, descriptors, network="arcface"):
    return FaceItem(
        identifier=identifier,
        network=network,
        detection=Detection(box=Rect(0, 0, 60, 60), score=0.9),
        landmarks=Landmarks(coords=[0.3, 0.3, 0.7, 0.7]),
        descriptors=np.asarray(descriptors, dtype=np.float32),
    )


@pytest.fixture()
def store():
    with SQLStore("sqlite://") as db:
        yield db


def test_keeps_minimum_distance_per_identifier_pair(store):
    store.store_face(_face("a.jpg", [0.0, 0.0]))
    store.store_face(_face("a.jpg", [2.0, 0.0]))
    store.store_face(_face("b.jpg", [3.0, 0.0]))
    store.store_face(_face("c.jpg", [0.0, 4.0]))

    summary = precompute_distances(store, store, progress=False)

    assert summary.faces == 4
    assert summary.pairs == 3
    assert store.get_face_distance(_face("b.jpg", [0]), _face("a.jpg", [0])) == pytest.approx(1.0)
    assert store.get_face_distance(_face("a.jpg", [0]), _face("c.jpg", [0])) == pytest.approx(4.0)
    assert store.get_face_distance(_face("c.jpg", [0]), _face("b.jpg", [0])) == pytest.approx(5.0)


def test_skips_other_networks_and_mismatched_dimensions(store):
    store.store_face(_face("a.jpg", [0.0, 0.0]))
    store.store_face(_face("b.jpg", [1.0, 0.0], network="facenet"))
    store.store_face(_face("c.jpg", [1.0, 0.0, 0.0]))

    summary = precompute_distances(store, store, progress=False)

    assert summary.pairs == 0
    assert summary.skipped == 1
    assert store.get_face_distance(_face("a.jpg", [0]), _face("b.jpg", [0])) is None


def test_cancellation_stops_the_pass(store):
    store.store_face(_face("a.jpg", [0.0, 0.0]))
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(Cancelled):
        precompute_distances(store, store, cancel=cancel, progress=False)
