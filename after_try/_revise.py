# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Prepare a failed request for resubmission."""

from __future__ import annotations

from typing import Any

from ._types import _ABSOLUTE_URL, _TRANSPORT_FIELDS, ClientDefaults, RequestConfig

__all__ = ["revise_config"]

# Minimum timeout in milliseconds; 0 means "no timeout" to the client
_MIN_TIMEOUT_MS = 1.0


def _passthrough(data: Any, headers: dict[str, str]) -> Any:
    return data


def _strip_base_url(url: str, base_url: str) -> str:
    """Return *url* relative to *base_url*, or unchanged if it lies outside it.

    The prefix must end at a path boundary: with base ``http://api.test``,
    ``http://api.test/x`` becomes ``/x`` but ``http://api.test.other.com/x``
    and ``http://api.test:8080/x`` are kept whole.
    """
    if not url.startswith(base_url):
        return url
    rest = url[len(base_url) :]
    if not rest or rest.startswith("/") or base_url.endswith("/"):
        return rest
    return url


def revise_config(
    config: RequestConfig,
    defaults: ClientDefaults,
    *,
    elapsed: float | None,
    delay: float,
    should_reset_timeout: bool = False,
) -> RequestConfig:
    """Mutate *config* so that sending it again behaves like the first send.

    - Transports that are the client's own defaults are cleared, so the
      client re-inherits them instead of the request carrying them.
    - Unless *should_reset_timeout*, the timeout shrinks by the time spent
      on the previous send and the upcoming delay, never below 1 ms.
    - The body was transformed on the first send; later sends pass it
      through untouched.
    - An absolute URL under ``base_url`` loses that prefix, otherwise the
      client would prepend it a second time.  URLs that merely share a
      string prefix with ``base_url`` (another host, port, or path) are kept.

    Args:
        config: The request that failed.
        defaults: Client defaults to compare transports against.
        elapsed: Milliseconds since the previous send, or ``None`` if unknown.
        delay: Milliseconds the retry will wait before sending.
        should_reset_timeout: Give the next attempt the full timeout again.

    Returns:
        *config*, revised in place.

    """
    for name in _TRANSPORT_FIELDS:
        value = getattr(config, name)
        if value is not None and value is getattr(defaults, name):
            setattr(config, name, None)

    if not should_reset_timeout and config.timeout and elapsed is not None:
        config.timeout = max(config.timeout - elapsed - delay, _MIN_TIMEOUT_MS)

    config.transform_request = [_passthrough]

    if config.base_url and _ABSOLUTE_URL.match(config.url):
        config.url = _strip_base_url(config.url, config.base_url)

    return config
