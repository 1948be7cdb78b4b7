# src/clusterize/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events of one registration call
    cluster: str      # cluster name
    node: Optional[str]  # instance name of the registering node

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(cluster: str, node: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": str(uuid.uuid4()),
        "cluster": cluster,
        "node": node,
    }


# ---------------------------------------------------------------------
# Join barrier
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RegistrationReceived(BaseEvent):
    identifier: str

@dataclass(frozen=True)
class StateConflict(BaseEvent):
    key: str
    attempt: int

@dataclass(frozen=True)
class NodeAdmitted(BaseEvent):
    current: int
    expected: int
    appended: bool

@dataclass(frozen=True)
class BarrierClosed(BaseEvent):
    instances: List[str]
    reassembly: bool

@dataclass(frozen=True)
class RegistrationOverflow(BaseEvent):
    expected: int


# ---------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class AssemblyStepFailed(BaseEvent):
    step: str
    error: str

@dataclass(frozen=True)
class AssemblyCompleted(BaseEvent):
    hosts: List[str]
    tiering: bool


# ---------------------------------------------------------------------
# Instruction payload
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class InstructionRendered(BaseEvent):
    outcome: str      # "Wait" | "FormCluster" | "ShutDown" | "Error"
