# tests/unit/orchestrator/test_credentials.py — v1
"""Tests for orchestrator/credentials.py — round-robin key assignment."""

from __future__ import annotations

import threading

import pytest

from deeptime.orchestrator.credentials import CredentialRotator


class TestCredentialRotator:
    def test_round_robin_order(self):
        rotator = CredentialRotator(["k1", "k2", "k3"])
        assert [rotator.next() for _ in range(7)] == ["k1", "k2", "k3", "k1", "k2", "k3", "k1"]

    def test_single_key_always_returned(self):
        rotator = CredentialRotator(["only"])
        assert {rotator.next() for _ in range(5)} == {"only"}

    def test_blank_keys_dropped(self):
        rotator = CredentialRotator(["", "k1", ""])
        assert len(rotator) == 1
        assert rotator.size == 1

    def test_empty_pool_rejected(self):
        with pytest.raises(ValueError, match="At least one API key"):
            CredentialRotator([])
        with pytest.raises(ValueError):
            CredentialRotator(["", ""])

    def test_cursor_monotonic(self):
        rotator = CredentialRotator(["a", "b"])
        for expected in range(1, 6):
            rotator.next()
            assert rotator.cursor == expected

    def test_repr_hides_keys(self):
        rotator = CredentialRotator(["secret-key"])
        assert "secret-key" not in repr(rotator)

    def test_threads_get_distinct_cursor_values(self):
        rotator = CredentialRotator(["a", "b", "c", "d"])
        seen: list[str] = []
        lock = threading.Lock()

        def grab():
            for _ in range(100):
                key = rotator.next()
                with lock:
                    seen.append(key)

        threads = [threading.Thread(target=grab) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert rotator.cursor == 800
        assert {k: seen.count(k) for k in "abcd"} == {"a": 200, "b": 200, "c": 200, "d": 200}
