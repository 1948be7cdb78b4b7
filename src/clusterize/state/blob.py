# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/state/blob.py

from __future__ import annotations

import logging
import os
import time
from typing import Callable, Mapping, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit, quote

import requests

from .store import StateNotFound, StateStoreError, StoreUnavailable, VersionConflict

log = logging.getLogger("clusterize")

STORAGE_RESOURCE = "https://storage.azure.com/"


class ManagedIdentityToken:
    """
    Bearer tokens for blob storage from the function app's managed identity
    (the ``IDENTITY_ENDPOINT`` / ``IDENTITY_HEADER`` pair the host injects).
    Cached until five minutes before expiry.
    """

    def __init__(self, endpoint: str, secret: str, *, resource: str = STORAGE_RESOURCE,
                 timeout: float = 30, session: requests.Session | None = None):
        self.endpoint = endpoint
        self.secret = secret
        self.resource = resource
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._expires_on = 0.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Optional["ManagedIdentityToken"]:
        env = os.environ if environ is None else environ
        endpoint, secret = env.get("IDENTITY_ENDPOINT"), env.get("IDENTITY_HEADER")
        if not endpoint or not secret:
            return None
        return cls(endpoint, secret)

    def __call__(self) -> str:
        if self._token and time.time() < self._expires_on - 300:
            return self._token
        try:
            r = self.session.get(
                self.endpoint,
                params={"resource": self.resource, "api-version": "2019-08-01"},
                headers={"X-IDENTITY-HEADER": self.secret},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StoreUnavailable(f"managed identity token: {e}") from e
        if r.status_code != 200:
            raise StoreUnavailable(f"managed identity token: HTTP {r.status_code} {r.text[:200]}")
        body = r.json()
        self._token = body["access_token"]
        self._expires_on = float(body.get("expires_on") or 0)
        return self._token


class BlobStateStore:
    """
    Join state kept as block blobs in an HTTP blob container.

    ``container_url`` is the container endpoint, optionally carrying a SAS
    query string; without one, pass a ``token_provider`` returning a bearer
    token. Optimistic concurrency uses the blob ``ETag``: updates send
    ``If-Match``, creates send ``If-None-Match: *``.
    """

    API_VERSION = "2021-08-06"

    def __init__(
        self,
        container_url: str,
        *,
        timeout: float = 30,
        session: requests.Session | None = None,
        token_provider: Callable[[], str] | None = None,
    ):
        self.container_url = container_url
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = session or requests.Session()

    def _blob_url(self, key: str) -> str:
        parts = urlsplit(self.container_url)
        path = parts.path.rstrip("/") + "/" + quote(key)
        return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))

    def _request(self, method: str, key: str, **kw) -> requests.Response:
        headers = {"x-ms-version": self.API_VERSION, **kw.pop("headers", {})}
        if self.token_provider is not None:
            headers["Authorization"] = f"Bearer {self.token_provider()}"
        try:
            r = self.session.request(method, self._blob_url(key), headers=headers, timeout=self.timeout, **kw)
        except requests.RequestException as e:
            raise StoreUnavailable(f"{method} {key}: {e}") from e
        if r.status_code >= 500:
            raise StoreUnavailable(f"{method} {key}: HTTP {r.status_code} {r.text[:200]}")
        return r

    def read(self, key: str) -> Tuple[str, str]:
        r = self._request("GET", key)
        if r.status_code == 404:
            raise StateNotFound(key)
        if r.status_code != 200:
            raise StateStoreError(f"GET {key}: HTTP {r.status_code} {r.text[:200]}")
        etag = r.headers.get("ETag")
        if not etag:
            raise StateStoreError(f"GET {key}: response carries no ETag")
        return r.text, etag

    def write_if_version(self, key: str, value: str, expected_version: Optional[str]) -> str:
        headers = {
            "x-ms-blob-type": "BlockBlob",
            "Content-Type": "application/json",
        }
        if expected_version is None:
            headers["If-None-Match"] = "*"
        else:
            headers["If-Match"] = expected_version

        r = self._request("PUT", key, data=value.encode("utf-8"), headers=headers)
        if r.status_code in (409, 412):
            raise VersionConflict(f"PUT {key}: HTTP {r.status_code}")
        if r.status_code == 404:
            raise StateNotFound(key)
        if r.status_code not in (200, 201):
            raise StateStoreError(f"PUT {key}: HTTP {r.status_code} {r.text[:200]}")

        etag = r.headers.get("ETag", "")
        log.debug("wrote blob %s etag=%s", key, etag)
        return etag
