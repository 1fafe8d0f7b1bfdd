"""Tests for identifier generation."""

from __future__ import annotations

import fidelis.ids as ids


class TestGenerateUniqueId:
    def test_prefix_and_upper_case(self) -> None:
        value = ids.generate_unique_id("TXN")
        assert value.startswith("TXN")
        assert value == value.upper()

    def test_no_prefix(self) -> None:
        value = ids.generate_unique_id()
        assert value.isalnum()

    def test_same_millisecond_calls_differ(self, monkeypatch) -> None:
        monkeypatch.setattr(ids.time, "time_ns", lambda: 1_714_557_600_000_000_000)
        generated = {ids.generate_unique_id("CUST") for _ in range(200)}
        assert len(generated) == 200

    def test_base36(self) -> None:
        assert ids._base36(0) == "0"
        assert ids._base36(35) == "z"
        assert ids._base36(36) == "10"
