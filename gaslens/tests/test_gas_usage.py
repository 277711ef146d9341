"""Tests for gaslens.analyzer.gas_usage — per-call gas summaries."""

from __future__ import annotations

from gaslens.analyzer.gas_usage import (
    GasUsageTracker,
    function_name_from_input,
    usage_recommendations,
)


def _trace(gas_used: int, ops: list[str], selector: str = "0xa9059cbb") -> dict:
    return {
        "input": selector + "00" * 64,
        "result": {"gasUsed": gas_used},
        "structLogs": [{"pc": i, "op": op} for i, op in enumerate(ops)],
    }


class TestFunctionName:

    def test_known_selector(self):
        assert function_name_from_input("0xa9059cbb" + "00" * 64) == "transfer"

    def test_unknown_selector(self):
        assert function_name_from_input("0x12345678") == "Function(0x12345678)"

    def test_missing_input(self):
        assert function_name_from_input(None) == "Unknown Function"
        assert function_name_from_input("0x1234") == "Unknown Function"


class TestRecommendations:

    def test_reasonable(self):
        assert usage_recommendations(30_000, 1, 1, 0) == ["Function is reasonably optimized."]

    def test_high_usage(self):
        recs = usage_recommendations(600_000, 25, 11, 6)
        assert recs[0].startswith("High gas usage")
        assert any("storage read" in r for r in recs)
        assert any("storage write" in r for r in recs)
        assert any("external calls" in r for r in recs)

    def test_moderate_and_asymmetric(self):
        recs = usage_recommendations(150_000, 4, 1, 0)
        assert recs[0].startswith("Moderate")
        assert any(r.startswith("Asymmetric") for r in recs)


class TestTracker:

    def test_process_trace(self):
        tracker = GasUsageTracker()
        usage = tracker.process_trace(_trace(50_000, ["SLOAD", "SLOAD", "SSTORE", "CALL", "STATICCALL"]))
        assert usage.function_name == "transfer"
        assert usage.gas_used == 50_000
        assert (usage.sload_count, usage.sstore_count, usage.call_count) == (2, 1, 1)

    def test_last_write_wins(self):
        tracker = GasUsageTracker()
        tracker.process_trace(_trace(10, []))
        tracker.process_trace(_trace(20, []))
        assert [u.gas_used for u in tracker.usage()] == [20]
        assert tracker.usage_for("transfer").gas_used == 20

    def test_invalid_trace(self):
        assert GasUsageTracker().process_trace("garbage") is None
