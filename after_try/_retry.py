# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Transparent retry of failed requests through ``HttpClient`` interceptors.

``setup_retry`` installs two interceptors: a request interceptor that
stamps every send, and a response interceptor that, for a retryable
failure with budget left, waits out the backoff and hands the same
``RequestConfig`` back to the client as ``Resubmit``.  The client sends it
again through the same interceptors, one attempt after another, so one
logical request forms a single linear chain however many retries it takes.

Per-request overrides of ``RetryOptions`` go in
``RequestConfig.extensions[NAMESPACE]``, either as a mapping of field
names or as a whole ``RetryOptions``.

Retry attempts are logged at DEBUG level on the ``after_try.retry`` logger.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field

from ._backoff import exponential_delay
from ._classify import IDEMPOTENT_HTTP_METHODS, is_retryable_error
from ._client import HttpClient, Resubmit
from ._revise import revise_config
from ._state import RetryStateTable
from ._types import NAMESPACE, HttpError, RequestConfig

__all__ = [
    "RetryInstallation",
    "RetryOptions",
    "setup_retry",
]

_logger = logging.getLogger("after_try.retry")


@dataclass(frozen=True)
class RetryOptions:
    """Retry policy applied to failed requests.

    Attributes:
        retries: Maximum number of resubmissions per logical request.
        retry_condition: Predicate deciding whether a failure is retried.
            Defaults to ``is_retryable_error()`` over the idempotent methods.
        retry_delay: Milliseconds to wait before the resubmission, called as
            ``retry_delay(retry_count, error)``.  A function of the retry
            count alone, ``retry_delay(retry_count)``, is accepted too.
            ``retry_count`` is the count after increment, starting at 1.
        should_reset_timeout: Give each resubmission the full configured
            timeout instead of what remains of it.

    Raises:
        ValueError: If *retries* < 0.

    """

    retries: int = 3
    retry_condition: Callable[[HttpError], bool] = field(
        default_factory=lambda: is_retryable_error(retriable_methods=IDEMPOTENT_HTTP_METHODS)
    )
    retry_delay: Callable[[int, HttpError], float] | Callable[[int], float] = exponential_delay
    should_reset_timeout: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.retries < 0:
            raise ValueError(f"retries must be >= 0, got {self.retries}")

    def merged_with(self, overrides: RetryOptions | Mapping[str, object] | None) -> RetryOptions:
        """Return these options with per-request *overrides* applied.

        Raises:
            TypeError: If *overrides* names a field ``RetryOptions`` does not have.

        """
        if overrides is None:
            return self
        if isinstance(overrides, RetryOptions):
            return overrides
        return dataclasses.replace(self, **overrides)  # type: ignore[arg-type]


def _compute_delay(
    retry_delay: Callable[[int, HttpError], float] | Callable[[int], float],
    retry_count: int,
    error: HttpError,
) -> float:
    """Call *retry_delay* with the error when it accepts one, else with the count alone."""
    try:
        inspect.signature(retry_delay).bind(retry_count, error)
    except TypeError:
        return retry_delay(retry_count)  # type: ignore[call-arg]
    except ValueError:
        # No signature to inspect (some builtins); assume the full form
        pass
    return retry_delay(retry_count, error)  # type: ignore[call-arg]


@dataclass(frozen=True)
class RetryInstallation:
    """Handle on the interceptors installed by ``setup_retry``.

    Attributes:
        client: The client the interceptors are installed on.
        options: Default retry options.
        states: Retry state of the requests in flight.

    """

    client: HttpClient
    options: RetryOptions
    states: RetryStateTable
    request_handle: int
    response_handle: int

    def eject(self) -> None:
        """Remove both interceptors from the client."""
        self.client.interceptors.request.eject(self.request_handle)
        self.client.interceptors.response.eject(self.response_handle)


def setup_retry(
    client: HttpClient,
    options: RetryOptions | None = None,
    *,
    _sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    **overrides: object,
) -> RetryInstallation:
    """Install retry interceptors on *client*.

    Args:
        client: The client whose failed requests should be retried.
        options: Default retry options; ``RetryOptions()`` if omitted.
        _sleep: Async sleep in seconds (injectable for tests).
        **overrides: ``RetryOptions`` fields overriding *options*.

    Returns:
        A ``RetryInstallation`` whose ``eject()`` uninstalls the interceptors.

    Raises:
        TypeError: If *overrides* names an unknown option.
        ValueError: If the resulting options are invalid.

    """
    defaults = (options or RetryOptions()).merged_with(overrides or None)
    states = RetryStateTable()

    def on_request(config: RequestConfig) -> RequestConfig:
        states.touch(config)
        return config

    async def on_error(error: HttpError) -> Resubmit:
        config = error.config
        if config is None:
            raise error

        policy = defaults.merged_with(config.extensions.get(NAMESPACE))
        state = states.get(config)
        should_retry = policy.retry_condition(error) and state.retry_count < policy.retries
        if not should_retry:
            _logger.debug(
                "Not retrying %s %s after %d retries: %s",
                config.method.upper(),
                config.url,
                state.retry_count,
                error,
            )
            raise error

        state.retry_count += 1
        delay = _compute_delay(policy.retry_delay, state.retry_count, error)
        revise_config(
            config,
            client.defaults,
            elapsed=states.elapsed(config),
            delay=delay,
            should_reset_timeout=policy.should_reset_timeout,
        )
        _logger.debug(
            "%s on %s %s (retry %d/%d), retrying in %.0f ms",
            error,
            config.method.upper(),
            config.url,
            state.retry_count,
            policy.retries,
            delay,
            extra={"retry_count": state.retry_count, "delay_ms": delay},
        )
        await _sleep(delay / 1000.0)
        return Resubmit(config)

    return RetryInstallation(
        client=client,
        options=defaults,
        states=states,
        request_handle=client.interceptors.request.use(on_request),
        response_handle=client.interceptors.response.use(None, on_error),
    )
