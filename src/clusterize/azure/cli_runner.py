# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/azure/cli_runner.py

from __future__ import annotations

import json
import logging
import re
import subprocess
from typing import Any, Dict, List

log = logging.getLogger("clusterize")

BLOB_DATA_CONTRIBUTOR = "Storage Blob Data Contributor"

_VM_INDEX = re.compile(r"/virtualMachines/(\d+)(/|$)", re.IGNORECASE)


class AzCliError(RuntimeError):
    pass


def vm_index_from_id(resource_id: str) -> int:
    m = _VM_INDEX.search(resource_id or "")
    if not m:
        raise AzCliError(f"no scale-set index in resource id {resource_id!r}")
    return int(m.group(1))


class AzCliRunner:
    """
    A pragmatic wrapper around the `az` CLI, covering what the last node
    needs to assemble the cluster:
      - public / private addresses of scale-set instances
      - storage account + container for tiering, and its key
      - blob data role for the scale set identity
      - key vault secrets
    Testable by mocking subprocess.run.
    """

    def __init__(
        self,
        *,
        subscription_id: str,
        resource_group: str,
        location: str = "",
        env: dict[str, str] | None = None,
    ):
        self.subscription_id = subscription_id
        self.resource_group = resource_group
        self.location = location
        self.env = env or {}

    # ------------------------- internal helpers -------------------------

    def _base(self) -> list[str]:
        cmd = ["az"]
        return cmd

    def _scope(self) -> list[str]:
        args = []
        if self.subscription_id:
            args += ["--subscription", self.subscription_id]
        return args

    def _run(self, argv: List[str], allow_stderr: tuple[str, ...] = ()) -> subprocess.CompletedProcess:
        log.debug("$ %s", " ".join(argv))
        cp = subprocess.run(
            argv,
            check=False,
            text=True,
            capture_output=True,
            env=self.env or None,
        )
        if cp.returncode != 0:
            stderr = getattr(cp, "stderr", "") or ""
            if any(marker in stderr for marker in allow_stderr):
                log.debug("tolerated az failure: %s", stderr.strip())
                return cp
            raise AzCliError(f"az failed (rc={cp.returncode}) for {argv[:4]!r}\n{stderr}")
        return cp

    def _json(self, argv: List[str]) -> Any:
        cp = self._run(argv + ["-o", "json"])
        try:
            return json.loads(cp.stdout or "null")
        except ValueError as e:
            raise AzCliError(f"az returned invalid JSON for {argv[:4]!r}: {e}") from e

    def _tsv(self, argv: List[str]) -> str:
        return (self._run(argv + ["-o", "tsv"]).stdout or "").strip()

    # ------------------------- AddressResolver -------------------------

    def resolve_public_address(self, pool_name: str, node_index: int) -> str:
        argv = self._base() + [
            "vmss", "list-instance-public-ips",
            "-g", self.resource_group, "-n", pool_name,
        ] + self._scope()
        for ip in self._json(argv) or []:
            if vm_index_from_id(ip.get("id", "")) == node_index and ip.get("ipAddress"):
                return ip["ipAddress"]
        raise AzCliError(f"instance {node_index} of {pool_name} has no public ip")

    def resolve_private_addresses(self, pool_name: str) -> Dict[str, str]:
        argv = self._base() + [
            "vmss", "nic", "list",
            "-g", self.resource_group, "--vmss-name", pool_name,
        ] + self._scope()
        out: Dict[str, str] = {}
        for nic in self._json(argv) or []:
            vm_id = (nic.get("virtualMachine") or {}).get("id", "")
            configs = nic.get("ipConfigurations") or []
            primary = next((c for c in configs if c.get("primary")), configs[0] if configs else None)
            if not vm_id or primary is None or not primary.get("privateIPAddress"):
                continue
            # secondary nics of an instance are skipped once its primary address is known
            name = f"{pool_name}_{vm_index_from_id(vm_id)}"
            if nic.get("primary", True) or name not in out:
                out[name] = primary["privateIPAddress"]
        return out

    # ------------------------- ObjectStorageProvisioner -------------------------

    def create_container(self, account_name: str, container_name: str) -> str:
        log.info("Creating storage account %s and container %s", account_name, container_name)
        self._run(self._base() + [
            "storage", "account", "create",
            "-n", account_name, "-g", self.resource_group,
            "--sku", "Standard_LRS", "--kind", "StorageV2",
            "--min-tls-version", "TLS1_2",
        ] + (["-l", self.location] if self.location else []) + self._scope() + ["-o", "none"])

        key = self._tsv(self._base() + [
            "storage", "account", "keys", "list",
            "-n", account_name, "-g", self.resource_group,
            "--query", "[0].value",
        ] + self._scope())
        if not key:
            raise AzCliError(f"storage account {account_name} returned no access key")

        self._run(self._base() + [
            "storage", "container", "create",
            "-n", container_name, "--account-name", account_name, "--account-key", key,
        ] + self._scope() + ["-o", "none"])
        return key

    # ------------------------- AccessControl -------------------------

    def container_scope(self, account_name: str, container_name: str) -> str:
        return (
            f"/subscriptions/{self.subscription_id}/resourceGroups/{self.resource_group}"
            f"/providers/Microsoft.Storage/storageAccounts/{account_name}"
            f"/blobServices/default/containers/{container_name}"
        )

    def grant_data_access(self, pool_name: str, account_name: str, container_name: str) -> None:
        principal = self._tsv(self._base() + [
            "vmss", "show", "-g", self.resource_group, "-n", pool_name,
            "--query", "identity.principalId",
        ] + self._scope())
        if not principal:
            raise AzCliError(f"scale set {pool_name} has no managed identity")

        self._run(
            self._base() + [
                "role", "assignment", "create",
                "--assignee-object-id", principal,
                "--assignee-principal-type", "ServicePrincipal",
                "--role", BLOB_DATA_CONTRIBUTOR,
                "--scope", self.container_scope(account_name, container_name),
            ] + self._scope() + ["-o", "none"],
            allow_stderr=("RoleAssignmentExists",),
        )

    # ------------------------- SecretResolver -------------------------

    def get_secret(self, vault_uri: str, secret_name: str) -> str:
        secret_id = f"{vault_uri.rstrip('/')}/secrets/{secret_name}"
        value = self._tsv(self._base() + [
            "keyvault", "secret", "show", "--id", secret_id, "--query", "value",
        ])
        if not value:
            raise AzCliError(f"secret {secret_name} in {vault_uri} is empty")
        return value
