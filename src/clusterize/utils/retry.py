# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/utils/retry.py

import functools
import random
import time
from typing import Callable, Optional


class RetryError(RuntimeError):
    """Every attempt hit a retryable error; ``last`` is the final one."""

    def __init__(self, message: str, *, attempts: int, last: Optional[Exception]):
        super().__init__(message)
        self.attempts = attempts
        self.last = last


def retry(
    *,
    attempts: int,
    delay: float,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
    jitter: bool = False,
):
    """
    Re-run a read-modify-write until it stops losing races.

    The wrapped call must be safe to repeat from scratch, e.g. a conditional
    append that re-reads the record on every attempt. ``on_retry(attempt, exc)``
    runs after each retryable failure, including the last. With ``jitter``
    the pause is uniform in ``[0, delay]`` so writers that collided once do
    not collide again in lockstep. Other exceptions propagate untouched.
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            last_exc = None
            for attempt in range(1, attempts + 1):
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    last_exc = exc
                    if on_retry:
                        on_retry(attempt, exc)
                if attempt < attempts:
                    time.sleep(random.uniform(0, delay) if jitter else delay)
            raise RetryError(
                f"{fn.__name__} lost {attempts} attempts in a row", attempts=attempts, last=last_exc,
            ) from last_exc
        return wrapper
    return decorator
