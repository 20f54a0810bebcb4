# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Exponential backoff with proportional jitter."""

from __future__ import annotations

import random

from ._types import HttpError

__all__ = ["exponential_delay"]

_BASE_DELAY_MS = 100.0
_JITTER_FRACTION = 0.2


def exponential_delay(retry_number: int = 0, error: HttpError | None = None) -> float:
    """Compute the delay before retry number *retry_number*.

    The delay doubles with every retry starting from 100 ms, plus up to 20%
    random jitter so that concurrent callers do not retry in lockstep.

    Args:
        retry_number: Retry count after incrementing (1 for the first retry).
        error: The failure being retried; unused, accepted so the function
            fits the ``retry_delay`` signature.

    Returns:
        Delay in milliseconds, within ``[base, 1.2 * base)`` where
        ``base = 2**retry_number * 100``.

    """
    delay = 2**retry_number * _BASE_DELAY_MS
    return delay + delay * _JITTER_FRACTION * random.random()
