# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/clusterize/logging/log.py

from __future__ import annotations

import logging
import os
from pathlib import Path
from datetime import datetime, timezone
import uuid

def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "clusterize",
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    Log setup for one CLI invocation (a registration, a state command, or a
    server process). Everything goes to a DEBUG file named after the run id
    under ``CLUSTERIZE_LOG_DIR`` (default ``~/.clusterize/logs``), so a node's
    registration can be traced after the fact; the console gets INFO, or
    DEBUG with ``verbose``.
    """
    run_id = str(uuid.uuid4())

    if base_dir is None:
        base_dir = Path(os.environ.get("CLUSTERIZE_LOG_DIR") or Path.home() / ".clusterize" / "logs")
    base_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        # the server answers registrations on worker threads
        "%(asctime)s | %(levelname)-7s | %(threadName)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # file: full trace of the run
    fh = logging.FileHandler(log_path)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)

    # console: INFO unless --verbose
    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(formatter)

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.debug("clusterize run %s started, pid=%d, log=%s", run_id, os.getpid(), log_path)

    return logger, run_id, log_path
