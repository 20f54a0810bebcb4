# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Request descriptor, client defaults, and the error raised on failed sends."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

NAMESPACE = "after-try"
"""Key under ``RequestConfig.extensions`` holding per-request retry options."""

BodyTransform = Callable[[Any, dict[str, str]], Any]
"""Signature of a request body transform: ``(data, headers) -> data``."""

_TRANSPORT_FIELDS: tuple[str, ...] = ("transport", "http_transport", "https_transport")

_ABSOLUTE_URL = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


@dataclass
class ClientDefaults:
    """Default configuration of an ``HttpClient``.

    Attributes:
        base_url: Prefix joined onto relative request URLs.
        headers: Headers sent with every request (request headers win).
        timeout: Default timeout in milliseconds; ``None`` or ``0`` disables it.
        transport: Fallback transport used for any scheme.
        http_transport: Transport used for ``http://`` URLs.
        https_transport: Transport used for ``https://`` URLs.
        transform_request: Body transforms applied before each send.

    """

    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    transport: httpx.AsyncBaseTransport | None = None
    http_transport: httpx.AsyncBaseTransport | None = None
    https_transport: httpx.AsyncBaseTransport | None = None
    transform_request: list[BodyTransform] | None = None


@dataclass(eq=False)
class RequestConfig:
    """Mutable descriptor of one logical HTTP request.

    Hashed by identity: the same object is sent again on every retry, and
    per-request bookkeeping is keyed on it.

    Attributes:
        method: HTTP method, any case.
        url: Absolute URL, or a path resolved against ``base_url``.
        base_url: Overrides ``ClientDefaults.base_url``.
        headers: Request headers merged over the client defaults.
        params: Query parameters.
        data: Request body before ``transform_request`` runs.
        timeout: Timeout in milliseconds; ``None`` or ``0`` disables it.
        transport: Per-request transport for any scheme.
        http_transport: Per-request transport for ``http://`` URLs.
        https_transport: Per-request transport for ``https://`` URLs.
        transform_request: Body transforms; ``None`` inherits the defaults.
        extensions: Free-form per-request options keyed by namespace.

    """

    method: str = "GET"
    url: str = ""
    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] | None = None
    data: Any = None
    timeout: float | None = None
    transport: httpx.AsyncBaseTransport | None = None
    http_transport: httpx.AsyncBaseTransport | None = None
    https_transport: httpx.AsyncBaseTransport | None = None
    transform_request: list[BodyTransform] | None = None
    extensions: dict[str, Any] = field(default_factory=dict)

    def apply_defaults(self, defaults: ClientDefaults) -> RequestConfig:
        """Fill unset fields from *defaults* in place and return ``self``."""
        if self.base_url is None:
            self.base_url = defaults.base_url
        if self.timeout is None:
            self.timeout = defaults.timeout
        if self.transform_request is None and defaults.transform_request is not None:
            self.transform_request = list(defaults.transform_request)
        for name in _TRANSPORT_FIELDS:
            if getattr(self, name) is None:
                setattr(self, name, getattr(defaults, name))
        self.headers = {**defaults.headers, **self.headers}
        return self


class HttpError(Exception):
    """Raised when a request fails, either on the wire or with a non-2xx status.

    Attributes:
        config: The request descriptor that was sent, or ``None`` when the
            failure cannot be attributed to a request.
        response: The response, when one was received.
        code: Transport-level error code (e.g. ``"ECONNREFUSED"``), or ``None``.
        request: The ``httpx.Request`` that was built, when available.

    """

    def __init__(
        self,
        message: str,
        *,
        config: RequestConfig | None = None,
        response: httpx.Response | None = None,
        code: str | None = None,
        request: httpx.Request | None = None,
    ) -> None:
        """Initialize with a message and whatever request context is known."""
        self.config = config
        self.response = response
        self.code = code
        self.request = request
        super().__init__(message)

    @property
    def status_code(self) -> int | None:
        """HTTP status of the response, or ``None`` when no response was received."""
        return self.response.status_code if self.response is not None else None
