# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from typing import Mapping
from .models import ClusterizeConfig

log = logging.getLogger("clusterize")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml using this priority:

    1. CLUSTERIZE_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the cluster config
    """
    env = os.environ.get("CLUSTERIZE_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("CLUSTERIZE_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "secrets.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_config(path: str | Path) -> ClusterizeConfig:
    """
    Load and validate a clusterize YAML config.

    Secrets (obs access key, state SAS URL, ...) can live in a separate
    ``secrets.yaml`` mirroring the config structure; it is deep-merged
    before validation. ``${ENV_VAR}`` placeholders are expanded in both.
    """
    path = Path(path)
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        _deep_merge(data, _load_yaml(secrets_path))
    else:
        log.debug("No secrets.yaml found, proceeding without secrets merge")

    return ClusterizeConfig.model_validate(data)


def _int(environ: Mapping[str, str], key: str) -> int:
    try:
        return int(environ.get(key, ""))
    except ValueError:
        return 0


def _bool(environ: Mapping[str, str], key: str) -> bool:
    return environ.get(key, "").strip().lower() in ("1", "t", "true", "yes")


def load_config_from_env(environ: Mapping[str, str] | None = None) -> ClusterizeConfig:
    """
    Build the config from the function-app environment.

    Numeric and boolean variables that are missing or unparseable are read
    as 0 / False, the same way the app settings have always been treated.
    """
    env = os.environ if environ is None else environ
    g = lambda k, d="": env.get(k, d)  # noqa: E731

    data = {
        "cluster": {
            "cluster_name": g("CLUSTER_NAME"),
            "hosts_num": _int(env, "HOSTS_NUM"),
            "nvmes_num": _int(env, "NVMES_NUM"),
            "install_dpdk": _bool(env, "INSTALL_DPDK"),
            "smbw_enabled": _bool(env, "SMBW_ENABLED"),
            "add_frontend_num": _int(env, "NUM_FRONTEND_CONTAINERS"),
            "proxy_url": g("PROXY_URL"),
            "weka_home_url": g("WEKA_HOME_URL"),
            "data_protection": {
                "stripe_width": _int(env, "STRIPE_WIDTH"),
                "protection_level": _int(env, "PROTECTION_LEVEL"),
                "hotspare": _int(env, "HOTSPARE"),
            },
            "obs": {
                "enabled": _bool(env, "SET_OBS"),
                "name": g("OBS_NAME"),
                "container_name": g("OBS_CONTAINER_NAME"),
                "access_key": g("OBS_ACCESS_KEY") or None,
                "tiering_ssd_percent": g("TIERING_SSD_PERCENT", "20") or "20",
            },
        },
        "azure": {
            "subscription_id": g("SUBSCRIPTION_ID"),
            "resource_group_name": g("RESOURCE_GROUP_NAME"),
            "location": g("LOCATION"),
            "prefix": g("PREFIX"),
            "key_vault_uri": g("KEY_VAULT_URI"),
            "function_app_name": g("FUNCTION_APP_NAME"),
        },
        "state": {
            "backend": g("STATE_BACKEND", "blob"),
            "storage_name": g("STATE_STORAGE_NAME"),
            "container_name": g("STATE_CONTAINER_NAME"),
        },
    }
    if g("STATE_URL"):
        data["state"]["url"] = g("STATE_URL")
    if g("STATE_PATH"):
        data["state"]["path"] = g("STATE_PATH")

    return ClusterizeConfig.model_validate(data)
