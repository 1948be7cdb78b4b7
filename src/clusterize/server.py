# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

"""
HTTP entry point for the function app custom handler.

The host forwards each invocation of the ``clusterize`` function as
``POST /clusterize`` with the invocation envelope as JSON and expects the
output envelope back.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Body, FastAPI

from .handler import handle
from .service import ClusterizeService

log = logging.getLogger("clusterize")


def create_app(service: ClusterizeService) -> FastAPI:
    app = FastAPI(
        title="clusterize",
        description="Join barrier for storage cluster bootstrap",
    )

    # sync handler: registration blocks on the store, FastAPI runs it in its threadpool
    @app.post("/clusterize")
    def clusterize(invoke_request: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        return handle(invoke_request, service)

    @app.get("/healthz")
    def healthz() -> Dict[str, str]:
        return {"status": "ok", "cluster": service.cfg.cluster.cluster_name}

    return app
