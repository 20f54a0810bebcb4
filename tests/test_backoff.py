"""Tests for exponential_delay."""

from __future__ import annotations

import random

import pytest

from after_try import HttpError, exponential_delay


class TestExponentialDelay:
    """Tests for backoff delay computation."""

    @pytest.mark.parametrize("attempt", range(8))
    def test_within_jitter_bounds(self, attempt: int) -> None:
        """Delay for attempt k lies in [2**k * 100, 2**k * 100 * 1.2)."""
        base = 2**attempt * 100
        for _ in range(200):
            d = exponential_delay(attempt)
            assert base <= d < base * 1.2

    def test_default_attempt(self) -> None:
        """Without arguments the delay is based on attempt 0."""
        for _ in range(50):
            assert 100 <= exponential_delay() < 120

    def test_no_jitter_at_zero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """With a zero random draw the delay is exactly the base."""
        monkeypatch.setattr(random, "random", lambda: 0.0)
        assert exponential_delay(3) == 800.0

    def test_max_jitter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The largest random draw keeps the delay below 1.2x the base."""
        monkeypatch.setattr(random, "random", lambda: 0.999999)
        d = exponential_delay(2)
        assert 479 < d < 480

    def test_grows_with_attempt(self) -> None:
        """The smallest delay of attempt k+1 exceeds the largest of attempt k."""
        for attempt in range(6):
            assert 2 ** (attempt + 1) * 100 > 2**attempt * 100 * 1.2

    def test_accepts_error(self) -> None:
        """The error argument is accepted and does not change the bounds."""
        d = exponential_delay(1, HttpError("boom"))
        assert 200 <= d < 240

    def test_jitter_varies(self) -> None:
        """Concurrent callers do not all get the same delay."""
        delays = {exponential_delay(4) for _ in range(50)}
        assert len(delays) > 1
