# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/assembly/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..config.models import ClusterizeConfig, DataProtection, ObsSettings


@dataclass(frozen=True)
class NodeEntry:
    instance_name: str
    hostname: str        # name handed to the clustering binary
    address: str         # private address the cluster talks on


@dataclass(frozen=True)
class TieringConfig:
    obs_name: str
    container_name: str
    access_key: str
    ssd_percent: str


@dataclass(frozen=True)
class FormationParams:
    """
    Everything the last node needs besides the join state. Built from the
    config on every registration, only read when the barrier closes.
    """
    cluster_name: str
    pool_name: str                 # scale set holding the backends
    key_vault_uri: str
    nvmes_num: int = 0
    install_dpdk: bool = True
    smbw_enabled: bool = False
    add_frontend: bool = False
    proxy_url: str = ""
    weka_home_url: str = ""
    data_protection: DataProtection = field(default_factory=DataProtection)
    obs: ObsSettings = field(default_factory=ObsSettings)
    password_secret_name: str = "weka-password"
    admin_username: str = "admin"

    @classmethod
    def from_config(cls, cfg: ClusterizeConfig) -> "FormationParams":
        c = cfg.cluster
        return cls(
            cluster_name=c.cluster_name,
            pool_name=cfg.vmss_name(),
            key_vault_uri=cfg.azure.key_vault_uri,
            nvmes_num=c.nvmes_num,
            install_dpdk=c.install_dpdk,
            smbw_enabled=c.smbw_enabled,
            add_frontend=c.add_frontend,
            proxy_url=c.proxy_url,
            weka_home_url=c.weka_home_url,
            data_protection=c.data_protection,
            obs=c.obs,
        )


@dataclass(frozen=True)
class AssemblyPlan:
    cluster_name: str
    nodes: List[NodeEntry]
    username: str
    password: str
    data_protection: DataProtection
    tiering: Optional[TieringConfig] = None
    nvmes_num: int = 0
    install_dpdk: bool = True
    smbw_enabled: bool = False
    add_frontend: bool = False
    proxy_url: str = ""
    weka_home_url: str = ""

    @property
    def hostnames(self) -> List[str]:
        return [n.hostname for n in self.nodes]

    @property
    def ips(self) -> List[str]:
        return [n.address for n in self.nodes]
