# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/service.py

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .assembly.interface import AccessControl, AddressResolver, ObjectStorageProvisioner, SecretResolver
from .assembly.models import FormationParams
from .assembly.planner import AssemblyError, AssemblyPlanner
from .azure.cli_runner import AzCliRunner
from .config.models import ClusterizeConfig
from .coordinator import BarrierClosed, JoinCoordinator, Overflow, RegistrationRequest, Waiting
from .observers.dispatcher import EventBus
from .observers.events import InstructionRendered, new_ctx
from .outcomes import Error, FormCluster, InstructionOutcome, ShutDown, Wait
from .script.generator import InstructionScriptGenerator
from .script.report import ReportChannel
from .state.factory import build_join_store
from .state.join import JoinStateStore
from .state.models import InvalidRegistration, NodeIdentifier

log = logging.getLogger("clusterize")

FUNCTION_KEY_SECRET = "function-app-default-key"


class ClusterizeService:
    """
    One registration call, end to end: identify the node, pass the join
    barrier, assemble if this node closed it, and render the script.
    """

    def __init__(
        self,
        cfg: ClusterizeConfig,
        *,
        join_store: JoinStateStore,
        addresses: AddressResolver,
        secrets: SecretResolver,
        object_storage: Optional[ObjectStorageProvisioner] = None,
        access_control: Optional[AccessControl] = None,
        observers: Optional[List] = None,
    ):
        self.cfg = cfg
        self.addresses = addresses
        self.secrets = secrets
        self.bus = EventBus(observers or [])
        self.coordinator = JoinCoordinator(join_store, bus=self.bus)
        self.planner = AssemblyPlanner(
            addresses=addresses,
            secrets=secrets,
            object_storage=object_storage,
            access_control=access_control,
            bus=self.bus,
        )

    @classmethod
    def from_config(cls, cfg: ClusterizeConfig, observers: Optional[List] = None) -> "ClusterizeService":
        az = AzCliRunner(
            subscription_id=cfg.azure.subscription_id,
            resource_group=cfg.azure.resource_group_name,
            location=cfg.azure.location,
        )
        return cls(
            cfg,
            join_store=build_join_store(cfg.state),
            addresses=az,
            secrets=az,
            object_storage=az,
            access_control=az,
            observers=observers,
        )

    def _identify(self, vm_name: str) -> NodeIdentifier:
        node = NodeIdentifier.parse(vm_name)
        try:
            ip = self.addresses.resolve_public_address(self.cfg.vmss_name(), node.index)
        except Exception as e:
            # the public address is informational only
            log.error("Failed to fetch public ip for %s: %s", node.instance_name, e)
            return node
        return node.with_address(ip)

    def _report_channel(self) -> ReportChannel:
        key = self.secrets.get_secret(self.cfg.azure.key_vault_uri, FUNCTION_KEY_SECRET)
        return ReportChannel(base_url=self.cfg.function_base_url(), function_key=key)

    def decide(self, vm_name: str) -> Tuple[InstructionOutcome, Optional[ReportChannel]]:
        """The outcome for *vm_name* and the report channel its script may use."""
        cluster = self.cfg.cluster
        try:
            node = self._identify(vm_name)
        except InvalidRegistration as e:
            log.error("Bad registration %r: %s", vm_name, e)
            return Error(str(e)), None

        ctx = new_ctx(cluster=cluster.cluster_name, node=node.instance_name)
        request = RegistrationRequest(
            node=node,
            cluster_name=cluster.cluster_name,
            expected_size=cluster.hosts_num,
            state_key=self.cfg.state_key(),
        )

        try:
            decision = self.coordinator.register(request, run_ctx=ctx)
        except Exception as e:
            log.error("Failed to register %s: %s", node.instance_name, e)
            return Error(f"failed to register {node.instance_name}: {e}"), None

        if isinstance(decision, Overflow):
            return ShutDown(instance_name=node.instance_name, expected=decision.expected), None

        try:
            channel = self._report_channel()
        except Exception as e:
            log.error("Failed to get function key: %s", e)
            return Error(f"failed to get function key: {e}"), None

        if isinstance(decision, Waiting):
            outcome = Wait(instance_name=node.instance_name, current=decision.current, expected=decision.expected)
            log.info(outcome.message)
            return outcome, channel

        if isinstance(decision, BarrierClosed):
            try:
                plan = self.planner.assemble(decision.state, FormationParams.from_config(self.cfg), run_ctx=ctx)
            except AssemblyError as e:
                return Error(str(e.cause), step=e.step), channel
            return FormCluster(plan), channel

        raise TypeError(f"unhandled join decision {decision!r}")

    def clusterize(self, vm_name: str) -> str:
        outcome, channel = self.decide(vm_name)
        script = InstructionScriptGenerator(channel).render(outcome)
        self.bus.emit(InstructionRendered(
            outcome=outcome.__class__.__name__,
            **new_ctx(cluster=self.cfg.cluster.cluster_name, node=vm_name.split(":")[0] or None if isinstance(vm_name, str) else None),
        ))
        if isinstance(outcome, FormCluster):
            log.info("Clusterization script generated")
        return script
