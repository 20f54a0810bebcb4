"""Shared test helpers for after-try tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import httpx

from after_try import ClientDefaults, HttpClient

_T = TypeVar("_T")

BASE_URL = "http://api.test"

Handler = Callable[[httpx.Request], httpx.Response]
"""Type alias for an ``httpx.MockTransport`` handler."""


def run(coro: Coroutine[Any, Any, _T]) -> _T:
    """Drive *coro* to completion on a fresh event loop."""
    return asyncio.run(coro)


def make_client(handler: Handler, **defaults: Any) -> HttpClient:
    """Create an ``HttpClient`` whose pooled sends go to *handler*.

    ``base_url`` defaults to ``BASE_URL``; other *defaults* are
    ``ClientDefaults`` fields.
    """
    defaults.setdefault("base_url", BASE_URL)
    return HttpClient(
        ClientDefaults(**defaults),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class SleepRecorder:
    """Async stand-in for ``asyncio.sleep`` that records and skips the wait."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
