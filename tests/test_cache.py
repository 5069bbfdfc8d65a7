import hashlib
import shutil
import threading

import pytest

from faceindex.cache import ContentAddressedCache
from faceindex.errors import CacheComputeError


def test_key_is_sha1_of_key_material(tmp_path):
    cache = ContentAddressedCache(tmp_path / "cache")
    expected = hashlib.sha1(b"photos/a.jpg").hexdigest()
    assert cache.key_for("photos/a.jpg") == expected
    assert cache.path_for("photos/a.jpg") == tmp_path / "cache" / f"{expected}.json"


def test_second_lookup_is_served_from_disk(tmp_path):
    cache = ContentAddressedCache(tmp_path)
    calls = []

    def compute():
        calls.append(1)
        return ["cat", "tabby"]

    assert cache.get_or_compute("a.jpg", compute) == ["cat", "tabby"]
    assert cache.get_or_compute("a.jpg", compute) == ["cat", "tabby"]
    assert len(calls) == 1
    assert cache.contains("a.jpg")

    # A fresh instance over the same directory sees the persisted entry.
    other = ContentAddressedCache(tmp_path)
    assert other.get_or_compute("a.jpg", compute) == ["cat", "tabby"]
    assert len(calls) == 1


def test_failed_compute_is_not_cached(tmp_path):
    cache = ContentAddressedCache(tmp_path)

    def boom():
        raise RuntimeError("model exploded")

    with pytest.raises(CacheComputeError) as excinfo:
        cache.get_or_compute("a.jpg", boom)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert not cache.contains("a.jpg")

    assert cache.get_or_compute("a.jpg", lambda: ["dog"]) == ["dog"]


def test_corrupt_entry_is_treated_as_miss(tmp_path):
    cache = ContentAddressedCache(tmp_path)
    cache.path_for("a.jpg").write_text("{not json", encoding="utf-8")
    assert not cache.contains("a.jpg")
    assert cache.get_or_compute("a.jpg", lambda: ["fixed"]) == ["fixed"]
    assert cache.get_or_compute("a.jpg", lambda: ["other"]) == ["fixed"]


def test_directory_is_created_once_and_write_failures_are_not_fatal(tmp_path):
    cache_dir = tmp_path / "nested" / "cache"
    cache = ContentAddressedCache(cache_dir)
    assert cache_dir.is_dir()

    shutil.rmtree(cache_dir)
    calls = []

    def compute():
        calls.append(1)
        return ["cat"]

    assert cache.get_or_compute("a.jpg", compute) == ["cat"]
    assert not cache_dir.exists()
    assert cache.get_or_compute("a.jpg", compute) == ["cat"]
    assert len(calls) == 2


def test_unserializable_result_is_returned_but_not_cached(tmp_path):
    cache = ContentAddressedCache(tmp_path)

    assert cache.get_or_compute("a.jpg", lambda: {"cat", "tabby"}) == {"cat", "tabby"}
    assert not cache.contains("a.jpg")
    assert list(tmp_path.iterdir()) == []


def test_invalidate_removes_entry(tmp_path):
    cache = ContentAddressedCache(tmp_path)
    cache.get_or_compute("a.jpg", lambda: [1])
    assert cache.invalidate("a.jpg")
    assert not cache.invalidate("a.jpg")
    assert not cache.contains("a.jpg")


def test_concurrent_callers_share_one_computation(tmp_path):
    cache = ContentAddressedCache(tmp_path)
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow():
        calls.append(1)
        started.set()
        release.wait(timeout=5)
        return ["shared"]

    results = []

    def worker():
        results.append(cache.get_or_compute("same.jpg", slow))

    leader = threading.Thread(target=worker)
    leader.start()
    assert started.wait(timeout=5)

    followers = [threading.Thread(target=worker) for _ in range(4)]
    for thread in followers:
        thread.start()
    release.set()
    for thread in [leader, *followers]:
        thread.join(timeout=5)

    assert len(calls) == 1
    assert results == [["shared"]] * 5
