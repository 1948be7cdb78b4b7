# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/config/models.py

from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator


class DataProtection(BaseModel):
    # 0 lets the clustering binary pick the stripe width
    stripe_width: int = Field(default=0, ge=0)
    protection_level: int = Field(default=2, ge=0)
    hotspare: int = Field(default=1, ge=0)


class ObsSettings(BaseModel):
    """Object-storage tiering. Only used when the cluster enables it."""

    enabled: bool = False
    name: str = ""                      # storage account name
    container_name: str = ""
    access_key: Optional[str] = None    # None/"" -> provisioned by the assembler
    tiering_ssd_percent: str = "20"

    @model_validator(mode="after")
    def _names_required_when_enabled(self):
        if self.enabled and not (self.name and self.container_name):
            raise ValueError("obs.name and obs.container_name are required when tiering is enabled")
        return self


class ClusterSettings(BaseModel):
    cluster_name: str
    hosts_num: int = Field(gt=0)        # expected pool size, the barrier
    nvmes_num: int = 0
    install_dpdk: bool = True
    smbw_enabled: bool = False
    add_frontend_num: int = 0
    proxy_url: str = ""
    weka_home_url: str = ""
    data_protection: DataProtection = DataProtection()
    obs: ObsSettings = ObsSettings()

    @property
    def add_frontend(self) -> bool:
        return self.add_frontend_num > 0


class AzureSettings(BaseModel):
    subscription_id: str = ""
    resource_group_name: str = ""
    location: str = ""
    prefix: str = ""
    key_vault_uri: str = ""
    function_app_name: str = ""


class StateSettings(BaseModel):
    backend: Literal["file", "blob"] = "file"
    path: str = "~/.clusterize/state"   # file backend directory
    url: Optional[str] = None           # blob backend container URL (may carry a SAS query)
    storage_name: str = ""              # or: storage account and container, URL derived
    container_name: str = ""
    max_retries: int = Field(default=20, gt=0)
    retry_delay: float = Field(default=0.2, ge=0)

    @model_validator(mode="after")
    def _container_required_for_blob(self):
        if self.backend == "blob" and not self.container_url():
            raise ValueError(
                "the blob backend needs state.url or both state.storage_name and state.container_name"
            )
        return self

    def container_url(self) -> Optional[str]:
        if self.url:
            return self.url
        if self.storage_name and self.container_name:
            return f"https://{self.storage_name}.blob.core.windows.net/{self.container_name}"
        return None


class ClusterizeConfig(BaseModel):
    cluster: ClusterSettings
    azure: AzureSettings = AzureSettings()
    state: StateSettings = StateSettings()

    # Helper methods
    def vmss_name(self) -> str:
        """Name of the scale set that holds the backend pool."""
        return f"{self.azure.prefix}-{self.cluster.cluster_name}-vmss"

    def state_key(self) -> str:
        return f"{self.cluster.cluster_name}-state"

    def function_base_url(self) -> str:
        return f"https://{self.azure.function_app_name}.azurewebsites.net/api/"
