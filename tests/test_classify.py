import numpy as np
import pytest

from faceindex.cache import ContentAddressedCache
from faceindex.classify import find, inspect_folder
from faceindex.errors import StorageError
from faceindex.recognition.classifier_onnx import load_labels, rank_predictions
from faceindex.store import SQLStore
from faceindex.types import Prediction


class StubClassifier:
    network = "resnet"

    def __init__(self, answers):
        self.answers = answers
        self.calls = 0

    def classify(self, image):
        self.calls += 1
        return [Prediction(self.network, label, score) for label, score in self.answers[int(image[0, 0, 0])]]


def _folder(tmp_path, names):
    folder = tmp_path / "photos"
    folder.mkdir()
    for name in names:
        (folder / name).write_bytes(b"")
    (folder / "notes.txt").write_text("not an image", encoding="utf-8")
    return folder


def _loader(path):
    if path.stem == "broken":
        raise OSError("truncated file")
    return np.full((4, 4, 3), int(path.stem[-1]), dtype=np.uint8)


ANSWERS = {
    1: [("Tabby", 0.6), ("Cat", 0.3)],
    2: [("golden_retriever", 0.9)],
}


def test_inspect_folder_indexes_lowercase_labels(tmp_path):
    folder = _folder(tmp_path, ["img1.jpg", "img2.png", "broken.jpg"])
    classifier = StubClassifier(ANSWERS)

    index = inspect_folder(folder, classifier=classifier, loader=_loader, progress=False)

    assert index == {
        "tabby": [folder / "img1.jpg"],
        "cat": [folder / "img1.jpg"],
        "golden_retriever": [folder / "img2.png"],
    }
    assert classifier.calls == 2
    assert find(index, "  CAT ") == [folder / "img1.jpg"]
    assert find(index, "dog") == []


def test_cached_results_are_reused_without_classifier(tmp_path):
    folder = _folder(tmp_path, ["img1.jpg", "img2.jpg"])
    cache = ContentAddressedCache(tmp_path / ".inception")
    classifier = StubClassifier(ANSWERS)

    first = inspect_folder(folder, cache=cache, classifier=classifier, loader=_loader, progress=False)
    second = inspect_folder(folder, cache=cache, classifier=classifier, loader=_loader, progress=False)
    cache_only = inspect_folder(folder, cache=cache, loader=_loader, progress=False)

    assert first == second == cache_only
    assert classifier.calls == 2


def test_cache_only_skips_uncached_files(tmp_path):
    folder = _folder(tmp_path, ["img1.jpg", "img2.jpg"])
    cache = ContentAddressedCache(tmp_path / ".inception")
    cache.get_or_compute(str(folder / "img1.jpg"), lambda: [{"network": "resnet", "label": "Cat", "score": 0.8}])

    index = inspect_folder(folder, cache=cache, loader=_loader, progress=False)

    assert index == {"cat": [folder / "img1.jpg"]}


def test_inspect_requires_cache_or_classifier(tmp_path):
    with pytest.raises(ValueError):
        inspect_folder(tmp_path, progress=False)


def test_predictions_are_written_to_store(tmp_path):
    folder = _folder(tmp_path, ["img1.jpg"])
    with SQLStore("sqlite://") as store:
        inspect_folder(folder, classifier=StubClassifier(ANSWERS), store=store, loader=_loader, progress=False)
        item = store.get_prediction(str(folder / "img1.jpg"))

    assert [(p.network, p.label) for p in item.predictions] == [("resnet", "Tabby"), ("resnet", "Cat")]


def test_reindexing_with_store_keeps_files_without_cache(tmp_path):
    folder = _folder(tmp_path, ["img1.jpg", "img2.jpg"])
    classifier = StubClassifier(ANSWERS)
    with SQLStore("sqlite://") as store:
        first = inspect_folder(folder, classifier=classifier, store=store, loader=_loader, progress=False)
        second = inspect_folder(folder, classifier=classifier, store=store, loader=_loader, progress=False)
        item = store.get_prediction(str(folder / "img1.jpg"))

    assert second == first
    assert second["cat"] == [folder / "img1.jpg"]
    assert classifier.calls == 4
    assert len(item.predictions) == 2


def test_invalidated_cache_entry_refills_with_store_attached(tmp_path):
    folder = _folder(tmp_path, ["img1.jpg"])
    cache = ContentAddressedCache(tmp_path / ".inception")
    classifier = StubClassifier(ANSWERS)
    with SQLStore("sqlite://") as store:
        first = inspect_folder(folder, cache=cache, classifier=classifier, store=store, loader=_loader, progress=False)
        assert cache.invalidate(str(folder / "img1.jpg"))
        second = inspect_folder(folder, cache=cache, classifier=classifier, store=store, loader=_loader, progress=False)
        third = inspect_folder(folder, cache=cache, classifier=classifier, store=store, loader=_loader, progress=False)

    assert first == second == third == {"tabby": [folder / "img1.jpg"], "cat": [folder / "img1.jpg"]}
    assert cache.contains(str(folder / "img1.jpg"))
    # Only the invalidation forces a second model call.
    assert classifier.calls == 2


def test_store_failure_keeps_file_in_index(tmp_path):
    class FailingStore(SQLStore):
        def store_prediction(self, identifier, item, cancel=None):
            raise StorageError("disk full")

    folder = _folder(tmp_path, ["img1.jpg"])
    with FailingStore("sqlite://") as store:
        index = inspect_folder(folder, classifier=StubClassifier(ANSWERS), store=store, loader=_loader, progress=False)

    assert index["tabby"] == [folder / "img1.jpg"]


def test_repeated_label_indexes_file_once(tmp_path):
    folder = _folder(tmp_path, ["img3.jpg"])
    answers = {3: [("Cat", 0.6), ("cat", 0.2)]}
    index = inspect_folder(folder, classifier=StubClassifier(answers), loader=_loader, progress=False)
    assert index == {"cat": [folder / "img3.jpg"]}


def test_rank_predictions_sorts_and_thresholds():
    scores = np.array([0.05, 0.7, 0.25], dtype=np.float32)
    ranked = rank_predictions("resnet", ["a", "b", "c"], scores, threshold=0.1)
    assert [p.label for p in ranked] == ["b", "c"]
    assert ranked[0].score == pytest.approx(0.7)


def test_load_labels_accepts_keras_index_and_plain_list(tmp_path):
    keras = tmp_path / "imagenet_class_index.json"
    keras.write_text('{"1": ["n02", "goldfish"], "0": ["n01", "tench"]}', encoding="utf-8")
    plain = tmp_path / "labels.json"
    plain.write_text('["tench", "goldfish"]', encoding="utf-8")

    assert load_labels(keras) == ["tench", "goldfish"]
    assert load_labels(plain) == ["tench", "goldfish"]
