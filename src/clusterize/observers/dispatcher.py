# src/clusterize/observers/dispatcher.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .events import BaseEvent
from .interface import Observer

log = logging.getLogger("clusterize")


class EventBus:
    """Fans registration events out to observers, one event at a time."""

    def __init__(self, observers: Optional[Iterable[Observer]] = None):
        self._observers: List[Observer] = list(observers or [])

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception:
                log.warning(
                    "observer %s dropped %s for node %s",
                    type(ob).__name__, event.__class__.__name__, event.node, exc_info=True,
                )
