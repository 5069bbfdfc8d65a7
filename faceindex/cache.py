"""Content-addressed on-disk memoization for expensive inference calls."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Dict, Tuple, Union

from faceindex.errors import CacheComputeError
from faceindex.io_utils import ensure_dir

LOGGER = logging.getLogger("faceindex.cache")

KeyMaterial = Union[str, bytes, "os.PathLike[str]"]

_MISS = object()


def _as_bytes(key_material: KeyMaterial) -> bytes:
    if isinstance(key_material, bytes):
        return key_material
    if isinstance(key_material, os.PathLike):
        key_material = os.fspath(key_material)
    if not isinstance(key_material, str):
        raise TypeError(f"Unsupported cache key material: {type(key_material)!r}")
    return key_material.encode("utf-8")


class ContentAddressedCache:
    """JSON results stored under `<cache_dir>/<sha1 hex>.json`.

    Concurrent callers asking for the same key share a single in-flight
    computation and all observe its result or its error.
    """

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = ensure_dir(Path(cache_dir))
        self._lock = threading.Lock()
        self._inflight: Dict[str, Future] = {}

    @staticmethod
    def key_for(key_material: KeyMaterial) -> str:
        return hashlib.sha1(_as_bytes(key_material)).hexdigest()

    def path_for(self, key_material: KeyMaterial) -> Path:
        return self._path(self.key_for(key_material))

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def contains(self, key_material: KeyMaterial) -> bool:
        return self._read(self.key_for(key_material)) is not _MISS

    def invalidate(self, key_material: KeyMaterial) -> bool:
        path = self.path_for(key_material)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def get_or_compute(self, key_material: KeyMaterial, compute_fn: Callable[[], Any]) -> Any:
        key = self.key_for(key_material)
        cached = self._read(key)
        if cached is not _MISS:
            LOGGER.debug("Loaded %r from cache (%s)", key_material, key)
            return cached

        future, leader = self._join(key)
        if not leader:
            LOGGER.debug("Waiting on in-flight computation for %s", key)
            return future.result()

        try:
            # Another leader may have finished between our read and _join.
            value = self._read(key)
            if value is _MISS:
                try:
                    value = compute_fn()
                except Exception as exc:
                    raise CacheComputeError(key, str(exc)) from exc
                try:
                    self._write_atomic(key, json.dumps(value))
                except (OSError, TypeError, ValueError) as exc:
                    LOGGER.warning("Could not persist cache entry %s: %s", key, exc)
            future.set_result(value)
            return value
        except BaseException as exc:
            future.set_exception(exc)
            raise
        finally:
            with self._lock:
                self._inflight.pop(key, None)

    def _join(self, key: str) -> Tuple[Future, bool]:
        with self._lock:
            future = self._inflight.get(key)
            if future is not None:
                return future, False
            future = Future()
            self._inflight[key] = future
            return future, True

    def _read(self, key: str) -> Any:
        path = self._path(key)
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return _MISS
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable cache entry %s: %s", path, exc)
            return _MISS

    def _write_atomic(self, key: str, payload: str) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.cache_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
