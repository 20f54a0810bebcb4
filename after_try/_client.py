# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""HTTP client with request/response interceptors, built on ``httpx``.

``HttpClient.request`` runs every send through the same pipeline:

1. fill unset ``RequestConfig`` fields from ``ClientDefaults`` (in place);
2. run request interceptors, in registration order;
3. apply the body transforms and resolve the URL against ``base_url``;
4. send through the selected transport;
5. run response interceptors, each either on the response or on the
   ``HttpError`` produced by a failed send; one returning ``Resubmit``
   starts the pipeline over for the same request.

Transport failures are translated into ``HttpError`` with a symbolic error
code (``ECONNREFUSED``, ``ETIMEDOUT``, ``CERT_HAS_EXPIRED``, ...).
Failures raised before anything is sent, such as an unsupported URL
scheme, are reported as ``ECONNABORTED``.

Sends and transport failures are logged at DEBUG level on the
``after_try.client`` logger.
"""

from __future__ import annotations

import errno
import inspect
import json
import logging
import socket
import ssl
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import httpx

from ._classify import ABORTED_CODE
from ._types import _ABSOLUTE_URL, BodyTransform, ClientDefaults, HttpError, RequestConfig

__all__ = [
    "HttpClient",
    "InterceptorManager",
    "Interceptors",
    "Resubmit",
]

_logger = logging.getLogger("after_try.client")

# OpenSSL X509_V_ERR_* verify codes, by name
_SSL_VERIFY_REASONS: dict[int, str] = {
    2: "UNABLE_TO_GET_ISSUER_CERT",
    9: "CERT_NOT_YET_VALID",
    10: "CERT_HAS_EXPIRED",
    18: "DEPTH_ZERO_SELF_SIGNED_CERT",
    19: "SELF_SIGNED_CERT_IN_CHAIN",
    20: "UNABLE_TO_GET_ISSUER_CERT_LOCALLY",
    21: "UNABLE_TO_VERIFY_LEAF_SIGNATURE",
    22: "CERT_CHAIN_TOO_LONG",
    23: "CERT_REVOKED",
    24: "INVALID_CA",
    25: "PATH_LENGTH_EXCEEDED",
    26: "INVALID_PURPOSE",
    27: "CERT_UNTRUSTED",
    28: "CERT_REJECTED",
    62: "HOSTNAME_MISMATCH",
}


# ---------------------------------------------------------------------------
# Interceptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Interceptor:
    on_fulfilled: Callable[[Any], Any] | None
    on_rejected: Callable[[HttpError], Any] | None


class InterceptorManager:
    """Ordered registry of interceptor handler pairs.

    Handlers may be plain functions or coroutine functions.  For request
    interceptors only ``on_fulfilled`` is called.
    """

    __slots__ = ("_handlers", "_next_handle")

    def __init__(self) -> None:
        self._handlers: dict[int, _Interceptor] = {}
        self._next_handle = 0

    def use(
        self,
        on_fulfilled: Callable[[Any], Any] | None = None,
        on_rejected: Callable[[HttpError], Any] | None = None,
    ) -> int:
        """Register a handler pair and return a handle for ``eject``."""
        handle = self._next_handle
        self._next_handle += 1
        self._handlers[handle] = _Interceptor(on_fulfilled, on_rejected)
        return handle

    def eject(self, handle: int) -> None:
        """Remove a handler pair; unknown handles are ignored."""
        self._handlers.pop(handle, None)

    def __iter__(self) -> Iterator[_Interceptor]:
        # Snapshot, so handlers may eject themselves while running
        return iter(list(self._handlers.values()))

    def __len__(self) -> int:
        return len(self._handlers)


class Interceptors:
    """The request and response interceptor chains of one client."""

    __slots__ = ("request", "response")

    def __init__(self) -> None:
        self.request = InterceptorManager()
        self.response = InterceptorManager()


@dataclass(frozen=True)
class Resubmit:
    """Response-interceptor result asking the client to send *config* again.

    The current attempt ends at the interceptor that returns it; the
    resubmitted attempt runs the full request and response chains.
    """

    config: RequestConfig


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _json_transform(data: Any, headers: dict[str, str]) -> Any:
    """Serialize mappings and lists as JSON, setting ``Content-Type`` if absent."""
    if isinstance(data, (Mapping, list)):
        if not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/json"
        return json.dumps(data).encode()
    return data


_DEFAULT_TRANSFORMS: tuple[BodyTransform, ...] = (_json_transform,)


def _resolve_url(config: RequestConfig) -> str:
    if config.base_url and not _ABSOLUTE_URL.match(config.url):
        if not config.url:
            return config.base_url
        return config.base_url.rstrip("/") + "/" + config.url.lstrip("/")
    return config.url


def _causes(exc: BaseException) -> Iterator[BaseException]:
    """Walk the ``__cause__``/``__context__`` chain of *exc*, excluding *exc*."""
    seen = {id(exc)}
    current = exc.__cause__ or exc.__context__
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _error_code(exc: httpx.TransportError) -> str | None:
    """Translate an httpx transport failure into a symbolic error code."""
    if isinstance(exc, httpx.TimeoutException):
        return "ETIMEDOUT"
    if isinstance(exc, (httpx.UnsupportedProtocol, httpx.LocalProtocolError)):
        # Refused on our side before anything reached the server
        return ABORTED_CODE
    for cause in _causes(exc):
        if isinstance(cause, ssl.SSLCertVerificationError):
            return _SSL_VERIFY_REASONS.get(cause.verify_code, "CERT_REJECTED")
        if isinstance(cause, socket.gaierror):
            return "ENOTFOUND"
        if isinstance(cause, OSError) and cause.errno in errno.errorcode:
            return errno.errorcode[cause.errno]
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.ReadError)):
        return "ECONNRESET"
    return None


def _select_transport(config: RequestConfig, url: httpx.URL) -> httpx.AsyncBaseTransport | None:
    if url.scheme == "https" and config.https_transport is not None:
        return config.https_transport
    if url.scheme == "http" and config.http_transport is not None:
        return config.http_transport
    return config.transport


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class HttpClient:
    """Async HTTP client whose sends pass through interceptor chains.

    Attributes:
        defaults: Default configuration merged into every request.
        interceptors: Request and response interceptor chains.

    """

    def __init__(
        self,
        defaults: ClientDefaults | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Create a client.

        Args:
            defaults: Default configuration; an empty ``ClientDefaults`` if omitted.
            client: ``httpx.AsyncClient`` used when a request names no
                transport.  Created (and owned) by this client if omitted.

        """
        self.defaults = defaults if defaults is not None else ClientDefaults()
        self.interceptors = Interceptors()
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient()

    async def aclose(self) -> None:
        """Close the underlying ``httpx.AsyncClient`` if this client created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpClient:
        """Enter async context manager."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context manager, closing the client."""
        await self.aclose()

    async def request(self, config: RequestConfig) -> httpx.Response:
        """Send *config* through the interceptor pipeline.

        A response interceptor that returns ``Resubmit`` ends the current
        attempt; the named config is then sent again through the whole
        pipeline.  Attempts run one after another in this loop, so a long
        chain of resubmissions does not nest.

        Args:
            config: The request descriptor.  Mutated in place: defaults are
                filled in, ``data`` is replaced by the transformed body, and
                ``url`` by the resolved absolute URL.

        Returns:
            The response, possibly replaced by a response interceptor.

        Raises:
            HttpError: If the send fails or returns a non-2xx status and no
                response interceptor recovers.

        """
        outcome = await self._attempt(config)
        while isinstance(outcome, Resubmit):
            outcome = await self._attempt(outcome.config)
        return outcome

    async def _attempt(self, config: RequestConfig) -> httpx.Response | Resubmit:
        config.apply_defaults(self.defaults)
        for interceptor in self.interceptors.request:
            if interceptor.on_fulfilled is not None:
                config = await _resolve(interceptor.on_fulfilled(config))

        response: httpx.Response | Resubmit | None = None
        error: HttpError | None = None
        try:
            response = await self._dispatch(config)
        except HttpError as exc:
            error = exc

        for interceptor in self.interceptors.response:
            try:
                if error is None:
                    if interceptor.on_fulfilled is not None:
                        response = await _resolve(interceptor.on_fulfilled(response))
                elif interceptor.on_rejected is not None:
                    response = await _resolve(interceptor.on_rejected(error))
                    error = None
            except HttpError as exc:
                error = exc
            if isinstance(response, Resubmit):
                return response

        if error is not None:
            raise error
        if response is None:  # pragma: no cover, an interceptor returned nothing
            raise RuntimeError("response interceptor returned no response")
        return response

    async def _dispatch(self, config: RequestConfig) -> httpx.Response:
        transforms = config.transform_request if config.transform_request is not None else _DEFAULT_TRANSFORMS
        data = config.data
        for transform in transforms:
            data = transform(data, config.headers)
        config.data = data
        if data is not None and not isinstance(data, (bytes, str)):
            raise TypeError(f"request body must be bytes or str after transforms, got {type(data).__name__}")

        config.url = _resolve_url(config)
        timeout = httpx.Timeout(config.timeout / 1000.0) if config.timeout else httpx.Timeout(None)
        request = self._client.build_request(
            config.method.upper(),
            config.url,
            params=config.params,
            headers=config.headers,
            content=data,
            timeout=timeout,
        )
        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug("Sending %s %s (timeout=%s ms)", request.method, request.url, config.timeout)

        transport = _select_transport(config, request.url)
        try:
            if transport is None:
                response = await self._client.send(request)
            else:
                response = await transport.handle_async_request(request)
                response.request = request
                try:
                    await response.aread()
                finally:
                    await response.aclose()
        except httpx.TransportError as exc:
            code = _error_code(exc)
            _logger.debug(
                "Transport error on %s %s: %s (code=%s)",
                request.method,
                request.url,
                exc,
                code,
                extra={"url": str(request.url), "code": code},
            )
            raise HttpError(str(exc) or type(exc).__name__, config=config, code=code, request=request) from exc

        if not 200 <= response.status_code < 300:
            raise HttpError(
                f"Request failed with status code {response.status_code}",
                config=config,
                response=response,
                request=request,
            )
        return response

    # -- Shorthands ----------------------------------------------------------

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request; *kwargs* are ``RequestConfig`` fields."""
        return await self.request(RequestConfig(method="GET", url=url, **kwargs))

    async def head(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a HEAD request; *kwargs* are ``RequestConfig`` fields."""
        return await self.request(RequestConfig(method="HEAD", url=url, **kwargs))

    async def options(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send an OPTIONS request; *kwargs* are ``RequestConfig`` fields."""
        return await self.request(RequestConfig(method="OPTIONS", url=url, **kwargs))

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a DELETE request; *kwargs* are ``RequestConfig`` fields."""
        return await self.request(RequestConfig(method="DELETE", url=url, **kwargs))

    async def post(self, url: str, data: Any = None, **kwargs: Any) -> httpx.Response:
        """Send a POST request with body *data*; *kwargs* are ``RequestConfig`` fields."""
        return await self.request(RequestConfig(method="POST", url=url, data=data, **kwargs))

    async def put(self, url: str, data: Any = None, **kwargs: Any) -> httpx.Response:
        """Send a PUT request with body *data*; *kwargs* are ``RequestConfig`` fields."""
        return await self.request(RequestConfig(method="PUT", url=url, data=data, **kwargs))
