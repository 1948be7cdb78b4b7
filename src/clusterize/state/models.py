# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/state/models.py

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class InvalidRegistration(ValueError):
    """The registering node did not send a usable identifier."""


@dataclass(frozen=True)
class NodeIdentifier:
    """
    A node as recorded in the join state: ``<instance>:<hostname>[:<public-ip>]``.

    ``instance_name`` is the scale-set instance name (``<vmss>_<index>``) and is
    the node's identity; the hostname is what the clustering binary is given,
    and the public address is only informational.
    """
    instance_name: str
    hostname: str
    public_address: Optional[str] = None

    @classmethod
    def parse(cls, raw: str) -> "NodeIdentifier":
        if raw is not None and not isinstance(raw, str):
            raise InvalidRegistration(f"node identifier must be a string, got {type(raw).__name__}")
        raw = (raw or "").strip()
        parts = raw.split(":", 2)
        instance = parts[0].strip()
        if not instance:
            raise InvalidRegistration(f"node identifier {raw!r} has no instance name")
        hostname = parts[1].strip() if len(parts) > 1 and parts[1].strip() else instance
        address = parts[2].strip() if len(parts) > 2 and parts[2].strip() else None
        return cls(instance_name=instance, hostname=hostname, public_address=address)

    def encode(self) -> str:
        s = f"{self.instance_name}:{self.hostname}"
        if self.public_address:
            s += f":{self.public_address}"
        return s

    def with_address(self, address: Optional[str]) -> "NodeIdentifier":
        return replace(self, public_address=address)

    @property
    def index(self) -> int:
        """Scale-set index encoded as the suffix after the last underscore."""
        _, sep, tail = self.instance_name.rpartition("_")
        if not sep or not tail.isdigit():
            raise InvalidRegistration(
                f"instance name {self.instance_name!r} does not end with a scale-set index"
            )
        return int(tail)

    def __str__(self) -> str:
        return self.encode()


class ClusterJoinState(BaseModel):
    """The shared join record of one cluster."""

    expected_size: int = Field(gt=0)
    instances: List[str] = Field(default_factory=list)   # registration (commit) order

    @model_validator(mode="after")
    def _check_invariants(self):
        names = [NodeIdentifier.parse(i).instance_name for i in self.instances]
        if len(set(names)) != len(names):
            raise ValueError("join state holds duplicate instances")
        if len(names) > self.expected_size:
            raise ValueError(
                f"join state holds {len(names)} instances, more than expected_size={self.expected_size}"
            )
        return self

    def nodes(self) -> List[NodeIdentifier]:
        return [NodeIdentifier.parse(i) for i in self.instances]

    def find(self, node: NodeIdentifier) -> Optional[NodeIdentifier]:
        for n in self.nodes():
            if n.instance_name == node.instance_name:
                return n
        return None

    def contains(self, node: NodeIdentifier) -> bool:
        return self.find(node) is not None

    @property
    def size(self) -> int:
        return len(self.instances)

    @property
    def is_full(self) -> bool:
        return self.size >= self.expected_size

    def appended(self, node: NodeIdentifier) -> "ClusterJoinState":
        """A copy with *node* appended. Callers check membership and capacity first."""
        return ClusterJoinState(
            expected_size=self.expected_size,
            instances=[*self.instances, node.encode()],
        )
