# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/state/store.py

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol, Tuple

log = logging.getLogger("clusterize")


class StateStoreError(RuntimeError):
    """Base class for join state store failures."""

class StoreUnavailable(StateStoreError):
    """The backing store could not be reached. Transient; the node retries its boot call."""

class StateNotFound(StateStoreError):
    """No record under the requested key."""

class VersionConflict(StateStoreError):
    """A conditional write lost the race: the record changed since it was read."""

class ConflictRetriesExhausted(StateStoreError):
    """Every optimistic-concurrency attempt hit a conflict."""


class VersionedStore(Protocol):
    """
    Key/value store with conditional writes.

    ``write_if_version`` succeeds only if the stored version still equals
    ``expected_version``; ``expected_version=None`` means "create, the key
    must not exist". Returns the new version, raises VersionConflict otherwise.
    """

    def read(self, key: str) -> Tuple[str, str]: ...

    def write_if_version(self, key: str, value: str, expected_version: Optional[str]) -> str: ...


class InMemoryStateStore:
    """Process-local store. Used by tests and local dry runs."""

    def __init__(self):
        self._data: Dict[str, Tuple[str, int]] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> Tuple[str, str]:
        with self._lock:
            if key not in self._data:
                raise StateNotFound(key)
            value, version = self._data[key]
            return value, str(version)

    def write_if_version(self, key: str, value: str, expected_version: Optional[str]) -> str:
        # the lock only makes compare-and-swap atomic, callers never wait on each other's logic
        with self._lock:
            current = self._data.get(key)
            if expected_version is None:
                if current is not None:
                    raise VersionConflict(f"{key} already exists")
                self._data[key] = (value, 1)
                return "1"
            if current is None:
                raise StateNotFound(key)
            if str(current[1]) != expected_version:
                raise VersionConflict(
                    f"{key}: expected version {expected_version}, found {current[1]}"
                )
            self._data[key] = (value, current[1] + 1)
            return str(current[1] + 1)


class FileStateStore:
    """
    JSON documents under a directory, one ``<key>.json`` per record.

    Each document carries an integer version. The compare-and-swap runs under
    an ``flock`` on ``<key>.lock``; reads go straight to the document, which is
    always replaced atomically.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser()

    def _doc(self, key: str) -> Path:
        return self.root / f"{key}.json"

    @contextmanager
    def _locked(self, key: str) -> Iterator[None]:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.root / f"{key}.lock", os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise StoreUnavailable(f"cannot open lock for {key}: {e}") from e
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def _load(self, key: str) -> Optional[dict]:
        path = self._doc(key)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise StoreUnavailable(f"cannot read {path}: {e}") from e

    def read(self, key: str) -> Tuple[str, str]:
        doc = self._load(key)
        if doc is None:
            raise StateNotFound(key)
        return doc["value"], str(doc["version"])

    def write_if_version(self, key: str, value: str, expected_version: Optional[str]) -> str:
        with self._locked(key):
            doc = self._load(key)
            if expected_version is None:
                if doc is not None:
                    raise VersionConflict(f"{key} already exists")
                version = 1
            else:
                if doc is None:
                    raise StateNotFound(key)
                if str(doc["version"]) != expected_version:
                    raise VersionConflict(
                        f"{key}: expected version {expected_version}, found {doc['version']}"
                    )
                version = int(doc["version"]) + 1

            try:
                with tempfile.NamedTemporaryFile(
                    "w", dir=self.root, prefix=f".{key}.", suffix=".tmp", delete=False, encoding="utf-8"
                ) as tf:
                    json.dump({"version": version, "value": value}, tf)
                os.replace(tf.name, self._doc(key))
            except OSError as e:
                raise StoreUnavailable(f"cannot write {self._doc(key)}: {e}") from e

            log.debug("wrote %s at version %s", key, version)
            return str(version)
