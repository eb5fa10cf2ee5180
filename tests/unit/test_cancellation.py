"""Tests for cooperative cancellation tokens."""

from __future__ import annotations

import threading

import pytest

from nlshell.core.cancellation import CancelToken, ensure_token
from nlshell.core.exceptions import OperationCancelledError


class TestCancelToken:
    """CancelToken should stay cancelled with its first reason and wake waiters."""

    def test_starts_live(self) -> None:
        token = CancelToken()
        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel_is_sticky(self) -> None:
        token = CancelToken()
        token.cancel("deadline")
        token.cancel()
        assert token.cancelled is True

    def test_raise_carries_reason_and_operation(self) -> None:
        token = CancelToken()
        token.cancel("deadline exceeded")
        with pytest.raises(OperationCancelledError, match="deadline exceeded") as excinfo:
            token.raise_if_cancelled("scan_directory")
        assert excinfo.value.operation == "scan_directory"

    def test_wait_wakes_on_cancel_from_other_thread(self) -> None:
        token = CancelToken()
        timer = threading.Timer(0.01, token.cancel)
        timer.start()
        try:
            assert token.wait(timeout=5) is True
        finally:
            timer.cancel()

    def test_ensure_token(self) -> None:
        token = CancelToken()
        assert ensure_token(token) is token
        assert ensure_token(None).cancelled is False
