# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/handler.py

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from .outcomes import Error
from .script.generator import InstructionScriptGenerator
from .service import ClusterizeService

log = logging.getLogger("clusterize")

BAD_REQUEST = "Bad request"
MISSING_VM = "Cluster name wasn't supplied"


def _response(body: str) -> Dict[str, Any]:
    return {"Outputs": {"res": {"body": body}}, "Logs": None, "ReturnValue": None}


def parse_vm_name(invoke_request: Dict[str, Any]) -> Optional[str]:
    """
    Pull the ``vm`` field out of a custom-handler HTTP invocation:
    ``Data.req`` is the HTTP request as JSON, whose ``Body`` is the posted
    JSON string. Raises ValueError when the envelope cannot be decoded or
    ``vm`` is not a string.
    """
    try:
        req = invoke_request["Data"]["req"]
        if isinstance(req, str):
            req = json.loads(req)
        body = req["Body"]
        data = json.loads(body) if isinstance(body, str) else body
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"undecodable invocation: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("request body is not a JSON object")
    vm = data.get("vm")
    if vm is not None and not isinstance(vm, str):
        raise ValueError(f"vm must be a string, got {type(vm).__name__}")
    return vm or None


def _rejected(message: str) -> Dict[str, Any]:
    # rejected before registration: no report channel, the node just stops
    return _response(InstructionScriptGenerator().render(Error(message)))


def handle(invoke_request: Dict[str, Any], service: ClusterizeService) -> Dict[str, Any]:
    """Answer one function invocation; the body is always an instruction script."""
    try:
        vm_name = parse_vm_name(invoke_request)
    except ValueError as e:
        log.error("%s: %s", BAD_REQUEST, e)
        return _rejected(BAD_REQUEST)

    if not vm_name:
        log.error(MISSING_VM)
        return _rejected(MISSING_VM)

    return _response(service.clusterize(vm_name))
