# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import Protocol

from .events import BaseEvent


class Observer(Protocol):
    """
    Sees every lifecycle event of a registration call, in the order emitted.

    ``notify`` runs inline on the registering request, so it should be quick.
    A failing observer is logged by the bus and never fails the registration.
    """

    def notify(self, event: BaseEvent) -> None: ...
