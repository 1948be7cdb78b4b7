# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from urllib.parse import urlsplit

from ..config.models import StateSettings
from .blob import BlobStateStore, ManagedIdentityToken
from .join import JoinStateStore
from .store import FileStateStore, VersionedStore


def build_versioned_store(settings: StateSettings) -> VersionedStore:
    if settings.backend == "blob":
        url = settings.container_url()
        # a SAS query authorizes by itself, otherwise use the managed identity
        token = None if urlsplit(url).query else ManagedIdentityToken.from_env()
        return BlobStateStore(url, token_provider=token)
    return FileStateStore(settings.path)


def build_join_store(settings: StateSettings) -> JoinStateStore:
    return JoinStateStore(
        build_versioned_store(settings),
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay,
    )
