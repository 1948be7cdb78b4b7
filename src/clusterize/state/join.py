# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/state/join.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from pydantic import ValidationError

from ..utils.retry import retry, RetryError
from .models import ClusterJoinState, NodeIdentifier
from .store import (
    ConflictRetriesExhausted,
    StateStoreError,
    VersionConflict,
    VersionedStore,
)

log = logging.getLogger("clusterize")


@dataclass(frozen=True)
class AppendResult:
    state: ClusterJoinState       # the record as committed (or as found, when nothing was written)
    appended: bool                # True only for the call whose write added the node
    node: NodeIdentifier          # the node as recorded in the state, or as requested on overflow

    @property
    def is_member(self) -> bool:
        return self.state.contains(self.node)


class JoinStateStore:
    """
    Join-barrier operations over a VersionedStore.

    All mutation goes through ``conditional_append``: read the record and its
    version, decide, write back only if the version is unchanged, and start
    over on conflict. There is no lock; contention resolves by retrying.
    """

    def __init__(self, store: VersionedStore, *, max_retries: int = 20, retry_delay: float = 0.2):
        self.store = store
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def _load(self, key: str) -> Tuple[ClusterJoinState, str]:
        raw, version = self.store.read(key)
        try:
            return ClusterJoinState.model_validate_json(raw), version
        except ValidationError as e:
            raise StateStoreError(f"join state {key} is corrupt: {e}") from e

    def read(self, key: str) -> ClusterJoinState:
        return self._load(key)[0]

    def create(self, key: str, expected_size: int) -> ClusterJoinState:
        """Create an empty record. Re-running against an existing record returns it unchanged."""
        state = ClusterJoinState(expected_size=expected_size)
        try:
            self.store.write_if_version(key, state.model_dump_json(), None)
            log.info("created join state %s (expected_size=%d)", key, expected_size)
            return state
        except VersionConflict:
            existing = self.read(key)
            if existing.expected_size != expected_size:
                raise StateStoreError(
                    f"join state {key} already exists with expected_size={existing.expected_size}, "
                    f"not {expected_size}"
                )
            log.info("join state %s already exists with %d instances", key, existing.size)
            return existing

    def _append_once(self, key: str, node: NodeIdentifier) -> AppendResult:
        state, version = self._load(key)

        existing = state.find(node)
        if existing is not None:
            return AppendResult(state=state, appended=False, node=existing)
        if state.is_full:
            return AppendResult(state=state, appended=False, node=node)

        updated = state.appended(node)
        self.store.write_if_version(key, updated.model_dump_json(), version)
        return AppendResult(state=updated, appended=True, node=node)

    def conditional_append(
        self,
        key: str,
        node: NodeIdentifier,
        *,
        on_conflict: Optional[Callable[[int, Exception], None]] = None,
    ) -> AppendResult:
        """
        Append *node* unless it is already a member or the record is full.

        The returned state is the one this call committed or observed, so
        "did my append close the barrier" is answered from the same
        read-modify-write and never from a second read.
        """
        attempt = retry(
            attempts=self.max_retries,
            delay=self.retry_delay,
            retry_on=(VersionConflict,),
            on_retry=on_conflict,
            jitter=True,
        )(self._append_once)
        try:
            return attempt(key, node)
        except RetryError as e:
            raise ConflictRetriesExhausted(
                f"could not append {node.instance_name} to {key} after {e.attempts} attempts: {e.last}"
            ) from e
