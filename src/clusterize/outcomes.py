# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/outcomes.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .assembly.models import AssemblyPlan


@dataclass(frozen=True)
class Wait:
    """Admitted, barrier still open."""
    instance_name: str
    current: int
    expected: int

    @property
    def message(self) -> str:
        return (
            f"This ({self.instance_name}) is instance {self.current}/{self.expected} "
            f"that is ready for clusterization"
        )


@dataclass(frozen=True)
class FormCluster:
    """This node closed the barrier and carries the plan to form the cluster."""
    plan: AssemblyPlan


@dataclass(frozen=True)
class ShutDown:
    """Surplus node: the pool is already complete."""
    instance_name: str
    expected: int


@dataclass(frozen=True)
class Error:
    cause: str
    step: Optional[str] = None    # assembly step that failed, if any

    @property
    def message(self) -> str:
        return f"{self.step}: {self.cause}" if self.step else self.cause


InstructionOutcome = Union[Wait, FormCluster, ShutDown, Error]
