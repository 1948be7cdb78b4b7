# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from ..observers.dispatcher import EventBus
from ..observers.events import AssemblyCompleted, AssemblyStepFailed, new_ctx
from ..state.models import ClusterJoinState
from .interface import AccessControl, AddressResolver, ObjectStorageProvisioner, SecretResolver
from .models import AssemblyPlan, FormationParams, NodeEntry, TieringConfig

log = logging.getLogger("clusterize")


# assembly steps, in the order they run
RESOLVE_ADDRESSES = "resolve-addresses"
PROVISION_OBJECT_STORAGE = "provision-object-storage"
GRANT_DATA_ACCESS = "grant-data-access"
RESOLVE_ADMIN_PASSWORD = "resolve-admin-password"


class AssemblyError(RuntimeError):
    def __init__(self, step: str, cause: Exception | str):
        self.step = step
        self.cause = cause
        super().__init__(f"{step} failed: {cause}")


class AssemblyPlanner:
    """
    Builds the cluster-formation plan for the node that closed the barrier.

    Side effects (container, role assignment) are not rolled back when a
    later step fails; every step is safe to run again.
    """

    def __init__(
        self,
        *,
        addresses: AddressResolver,
        secrets: SecretResolver,
        object_storage: Optional[ObjectStorageProvisioner] = None,
        access_control: Optional[AccessControl] = None,
        bus: Optional[EventBus] = None,
    ):
        self.addresses = addresses
        self.secrets = secrets
        self.object_storage = object_storage
        self.access_control = access_control
        self.bus = bus or EventBus()

    @contextmanager
    def _step(self, name: str, run_ctx: dict) -> Iterator[None]:
        log.debug("assembly step %s", name)
        try:
            yield
        except AssemblyError:
            raise
        except Exception as e:
            log.error("assembly step %s failed: %s", name, e)
            self.bus.emit(AssemblyStepFailed(step=name, error=str(e), **run_ctx))
            raise AssemblyError(name, e) from e

    def _node_entries(self, state: ClusterJoinState, pool_name: str) -> List[NodeEntry]:
        private = self.addresses.resolve_private_addresses(pool_name)
        entries: List[NodeEntry] = []
        for node in state.nodes():
            address = private.get(node.instance_name)
            if not address:
                raise LookupError(f"no private address for {node.instance_name} in {pool_name}")
            entries.append(NodeEntry(instance_name=node.instance_name, hostname=node.hostname, address=address))
        return entries

    def assemble(
        self,
        state: ClusterJoinState,
        params: FormationParams,
        run_ctx: Optional[dict] = None,
    ) -> AssemblyPlan:
        ctx = run_ctx or new_ctx(cluster=params.cluster_name)
        log.info("This is the last instance in the cluster, creating obs and clusterization script")

        with self._step(RESOLVE_ADDRESSES, ctx):
            nodes = self._node_entries(state, params.pool_name)

        tiering = None
        obs = params.obs
        if obs.enabled:
            access_key = obs.access_key
            if not access_key:
                with self._step(PROVISION_OBJECT_STORAGE, ctx):
                    if self.object_storage is None:
                        raise RuntimeError("tiering requested without an access key and no provisioner configured")
                    access_key = self.object_storage.create_container(obs.name, obs.container_name)
            else:
                log.debug("obs access key supplied, skipping provisioning of %s/%s", obs.name, obs.container_name)

            with self._step(GRANT_DATA_ACCESS, ctx):
                if self.access_control is None:
                    raise RuntimeError("tiering requested and no access-control backend configured")
                self.access_control.grant_data_access(params.pool_name, obs.name, obs.container_name)

            tiering = TieringConfig(
                obs_name=obs.name,
                container_name=obs.container_name,
                access_key=access_key,
                ssd_percent=obs.tiering_ssd_percent,
            )

        with self._step(RESOLVE_ADMIN_PASSWORD, ctx):
            password = self.secrets.get_secret(params.key_vault_uri, params.password_secret_name)

        plan = AssemblyPlan(
            cluster_name=params.cluster_name,
            nodes=nodes,
            username=params.admin_username,
            password=password,
            data_protection=params.data_protection,
            tiering=tiering,
            nvmes_num=params.nvmes_num,
            install_dpdk=params.install_dpdk,
            smbw_enabled=params.smbw_enabled,
            add_frontend=params.add_frontend,
            proxy_url=params.proxy_url,
            weka_home_url=params.weka_home_url,
        )
        self.bus.emit(AssemblyCompleted(hosts=plan.hostnames, tiering=tiering is not None, **ctx))
        return plan
