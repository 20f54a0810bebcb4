# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Per-request retry bookkeeping, kept beside the request rather than on it."""

from __future__ import annotations

import time
import weakref
from dataclasses import dataclass

from ._types import RequestConfig

__all__ = ["RetryState", "RetryStateTable"]


def _now_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class RetryState:
    """Retry progress of one logical request.

    Attributes:
        retry_count: Resubmissions issued so far.
        last_request_time: Monotonic time of the latest send, in milliseconds.

    """

    retry_count: int = 0
    last_request_time: float | None = None


class RetryStateTable:
    """Side table mapping a ``RequestConfig`` to its ``RetryState``.

    Entries are weakly keyed, so state disappears with the request it
    belongs to.
    """

    __slots__ = ("_states",)

    def __init__(self) -> None:
        self._states: weakref.WeakKeyDictionary[RequestConfig, RetryState] = weakref.WeakKeyDictionary()

    def get(self, config: RequestConfig) -> RetryState:
        """Return the state for *config*, creating a fresh one on first use."""
        state = self._states.get(config)
        if state is None:
            state = RetryState()
            self._states[config] = state
        return state

    def touch(self, config: RequestConfig) -> RetryState:
        """Record the current time as the latest send of *config*."""
        state = self.get(config)
        state.last_request_time = _now_ms()
        return state

    def elapsed(self, config: RequestConfig) -> float | None:
        """Milliseconds since the latest send of *config*, or ``None`` if never sent."""
        last = self.get(config).last_request_time
        if last is None:
            return None
        return _now_ms() - last

    def __contains__(self, config: object) -> bool:
        return config in self._states

    def __len__(self) -> int:
        return len(self._states)
