# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/assembly/interface.py

from __future__ import annotations
from typing import Dict, Protocol


class AddressResolver(Protocol):
    def resolve_public_address(self, pool_name: str, node_index: int) -> str:
        """Public address of one pool member. Raise if it has none."""
        ...

    def resolve_private_addresses(self, pool_name: str) -> Dict[str, str]:
        """instance name -> private address for every member of the pool."""
        ...


class ObjectStorageProvisioner(Protocol):
    def create_container(self, account_name: str, container_name: str) -> str:
        """
        Ensure the account and container exist and return an access key.
        Must succeed when they already exist.
        """
        ...


class AccessControl(Protocol):
    def grant_data_access(self, pool_name: str, account_name: str, container_name: str) -> None:
        """Let the pool's identity read and write blobs in the container."""
        ...


class SecretResolver(Protocol):
    def get_secret(self, vault_uri: str, secret_name: str) -> str: ...
