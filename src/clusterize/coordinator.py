# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/coordinator.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from .observers.dispatcher import EventBus
from .observers.events import (
    new_ctx,
    RegistrationReceived,
    StateConflict,
    NodeAdmitted,
    BarrierClosed as BarrierClosedEvent,
    RegistrationOverflow,
)
from .state.join import JoinStateStore
from .state.models import ClusterJoinState, InvalidRegistration, NodeIdentifier

log = logging.getLogger("clusterize")


@dataclass(frozen=True)
class RegistrationRequest:
    node: NodeIdentifier
    cluster_name: str
    expected_size: int
    state_key: str


# ---------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class Waiting:
    node: NodeIdentifier
    current: int
    expected: int

@dataclass(frozen=True)
class BarrierClosed:
    """This registration filled the pool; the caller must assemble the cluster."""
    node: NodeIdentifier
    state: ClusterJoinState
    reassembly: bool = False    # the assembler re-registered after the barrier had closed

@dataclass(frozen=True)
class Overflow:
    node: NodeIdentifier
    expected: int


JoinDecision = Union[Waiting, BarrierClosed, Overflow]


class JoinCoordinator:
    """
    Admits nodes into the join barrier.

    Holds no state of its own. The node whose append brings the record to
    ``expected_size`` is the assembler; since appends are serialized by the
    store's conditional write, exactly one call sees that transition.
    Splitting append and size check into two store calls would break this.
    """

    def __init__(self, join_store: JoinStateStore, bus: Optional[EventBus] = None):
        self.join_store = join_store
        self.bus = bus or EventBus()

    def register(self, request: RegistrationRequest, run_ctx: Optional[dict] = None) -> JoinDecision:
        node = request.node
        if node is None or not node.instance_name:
            raise InvalidRegistration("registration carries no node identifier")

        ctx = run_ctx or new_ctx(cluster=request.cluster_name, node=node.instance_name)
        self.bus.emit(RegistrationReceived(identifier=node.encode(), **ctx))

        def _on_conflict(attempt: int, exc: Exception) -> None:
            log.debug("conflict appending %s to %s (attempt %d): %s", node.instance_name, request.state_key, attempt, exc)
            self.bus.emit(StateConflict(key=request.state_key, attempt=attempt, **ctx))

        result = self.join_store.conditional_append(request.state_key, node, on_conflict=_on_conflict)
        state = result.state

        if state.expected_size != request.expected_size:
            log.warning(
                "join state %s expects %d nodes, registration says %d; the state wins",
                request.state_key, state.expected_size, request.expected_size,
            )

        if not result.is_member:
            log.warning("%s arrived after the pool of %d was complete", node.instance_name, state.expected_size)
            self.bus.emit(RegistrationOverflow(expected=state.expected_size, **ctx))
            return Overflow(node=node, expected=state.expected_size)

        self.bus.emit(NodeAdmitted(current=state.size, expected=state.expected_size, appended=result.appended, **ctx))

        if state.size == state.expected_size:
            if result.appended:
                self.bus.emit(BarrierClosedEvent(instances=list(state.instances), reassembly=False, **ctx))
                return BarrierClosed(node=result.node, state=state)
            if state.nodes()[-1].instance_name == node.instance_name:
                # the assembler itself came back: its assembly failed or the response was lost
                log.info("%s closed the barrier earlier, assembling again", node.instance_name)
                self.bus.emit(BarrierClosedEvent(instances=list(state.instances), reassembly=True, **ctx))
                return BarrierClosed(node=result.node, state=state, reassembly=True)

        if not result.appended:
            log.info("%s was already registered, state unchanged", node.instance_name)
        return Waiting(node=result.node, current=state.size, expected=state.expected_size)
