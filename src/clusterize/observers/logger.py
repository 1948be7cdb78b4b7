from __future__ import annotations
import logging
from .events import BaseEvent

# events that mean the node will not join the cluster from this call
_WARN = {"RegistrationOverflow", "AssemblyStepFailed"}


class LoggerObserver:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        etype = event.__class__.__name__
        msg = ", ".join(f"{k}={v}" for k, v in d.items() if k not in ("ts", "run_id"))

        level = logging.WARNING if etype in _WARN else logging.INFO
        self.logger.log(level, f"[EVENT] {etype}: {msg}")
