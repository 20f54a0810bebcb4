# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Decide whether a failed request may be sent again.

``is_retryable_error`` builds the default retry condition: the request's
method must be in the retriable set, and the failure must be transient
(a network error or a 5xx response).
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from http import HTTPStatus

from ._types import HttpError

__all__ = [
    "ABORTED_CODE",
    "HTTP_METHODS",
    "IDEMPOTENT_HTTP_METHODS",
    "is_network_error",
    "is_retry_allowed",
    "is_retryable_error",
]

HTTP_METHODS: tuple[str, ...] = ("GET", "HEAD", "OPTIONS", "POST", "PUT", "DELETE")
"""Every method the retry layer knows about, POST included."""

IDEMPOTENT_HTTP_METHODS: tuple[str, ...] = ("GET", "HEAD", "OPTIONS", "PUT", "DELETE")
"""Methods that are safe to repeat; the default retriable set."""

ABORTED_CODE = "ECONNABORTED"
"""Error code of a connection aborted on our side; never retried as a network error."""

# Failure classes that will not go away by sending again: name resolution,
# routing, and certificate problems.
_DENIED_CODES: frozenset[str] = frozenset(
    {
        "ENOTFOUND",
        "ENETUNREACH",
        "UNABLE_TO_GET_ISSUER_CERT",
        "UNABLE_TO_GET_CRL",
        "UNABLE_TO_DECRYPT_CERT_SIGNATURE",
        "UNABLE_TO_DECRYPT_CRL_SIGNATURE",
        "UNABLE_TO_DECODE_ISSUER_PUBLIC_KEY",
        "CERT_SIGNATURE_FAILURE",
        "CRL_SIGNATURE_FAILURE",
        "CERT_NOT_YET_VALID",
        "CERT_HAS_EXPIRED",
        "CRL_NOT_YET_VALID",
        "CRL_HAS_EXPIRED",
        "ERROR_IN_CERT_NOT_BEFORE_FIELD",
        "ERROR_IN_CERT_NOT_AFTER_FIELD",
        "ERROR_IN_CRL_LAST_UPDATE_FIELD",
        "ERROR_IN_CRL_NEXT_UPDATE_FIELD",
        "OUT_OF_MEM",
        "DEPTH_ZERO_SELF_SIGNED_CERT",
        "SELF_SIGNED_CERT_IN_CHAIN",
        "UNABLE_TO_GET_ISSUER_CERT_LOCALLY",
        "UNABLE_TO_VERIFY_LEAF_SIGNATURE",
        "CERT_CHAIN_TOO_LONG",
        "CERT_REVOKED",
        "INVALID_CA",
        "PATH_LENGTH_EXCEEDED",
        "INVALID_PURPOSE",
        "CERT_UNTRUSTED",
        "CERT_REJECTED",
        "HOSTNAME_MISMATCH",
    }
)


def is_retry_allowed(error: HttpError) -> bool:
    """Return ``False`` when the error code names a failure that retrying cannot fix."""
    return error.code not in _DENIED_CODES


def is_network_error(error: HttpError) -> bool:
    """Return ``True`` for a coded transport failure that is safe to retry.

    A network error has no response, carries an error code, was not aborted
    on our side, and is not in the denied set (see ``is_retry_allowed``).
    """
    return error.response is None and bool(error.code) and error.code != ABORTED_CODE and is_retry_allowed(error)


def is_retryable_error(
    *,
    retriable_methods: Collection[str] = IDEMPOTENT_HTTP_METHODS,
) -> Callable[[HttpError], bool]:
    """Build the default retry condition for a set of retriable methods.

    Args:
        retriable_methods: HTTP methods that may be retried.  Pass
            ``HTTP_METHODS`` to also retry POST.  Compared case-insensitively.

    Returns:
        A predicate over ``HttpError`` that is ``True`` when the failed
        request should be sent again.

    Raises:
        TypeError: If *retriable_methods* is not a collection of strings
            (a bare string is rejected too).

    """
    if isinstance(retriable_methods, (str, bytes)) or not isinstance(retriable_methods, Collection):
        raise TypeError(f"retriable_methods must be a collection of method names, got {retriable_methods!r}")
    methods = frozenset(m.upper() for m in retriable_methods)

    def retry_condition(error: HttpError) -> bool:
        config = error.config
        if config is None:
            # Cannot tell which request failed
            return False
        if config.method.upper() not in methods:
            return False
        if is_network_error(error):
            return True
        if error.response is None:
            # Coded failures reaching here were denied or aborted
            return not error.code
        return HTTPStatus.INTERNAL_SERVER_ERROR <= error.response.status_code <= 599

    return retry_condition
