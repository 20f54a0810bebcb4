# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Transparent retry of failed HTTP requests for an interceptor-based httpx client.

Typical use::

    from after_try import ClientDefaults, HttpClient, setup_retry

    async with HttpClient(ClientDefaults(base_url="https://api.example.com", timeout=5000)) as client:
        setup_retry(client, retries=3)
        response = await client.get("/items")

Failed idempotent requests (network errors and 5xx responses) are sent
again with exponential backoff; every other failure reaches the caller
unchanged.
"""

from after_try._backoff import exponential_delay
from after_try._classify import (
    ABORTED_CODE,
    HTTP_METHODS,
    IDEMPOTENT_HTTP_METHODS,
    is_network_error,
    is_retry_allowed,
    is_retryable_error,
)
from after_try._client import HttpClient, InterceptorManager, Interceptors, Resubmit
from after_try._retry import RetryInstallation, RetryOptions, setup_retry
from after_try._revise import revise_config
from after_try._state import RetryState, RetryStateTable
from after_try._types import NAMESPACE, ClientDefaults, HttpError, RequestConfig

__all__ = [
    "ABORTED_CODE",
    "ClientDefaults",
    "HTTP_METHODS",
    "HttpClient",
    "HttpError",
    "IDEMPOTENT_HTTP_METHODS",
    "InterceptorManager",
    "Interceptors",
    "NAMESPACE",
    "RequestConfig",
    "Resubmit",
    "RetryInstallation",
    "RetryOptions",
    "RetryState",
    "RetryStateTable",
    "exponential_delay",
    "is_network_error",
    "is_retry_allowed",
    "is_retryable_error",
    "revise_config",
    "setup_retry",
]
