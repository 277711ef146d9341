"""Tests for gaslens.analyzer.hotspots — gas attribution to source ranges."""

from __future__ import annotations

import logging

import pytest

from gaslens.analyzer.hotspots import (
    GasHotspotAnalyzer,
    detect_pattern,
    recommend,
    suggest_fix,
)
from gaslens.analyzer.source_map import parse_source_map
from gaslens.core.types import GasPattern, Severity


@pytest.fixture
def analyzer(settings) -> GasHotspotAnalyzer:
    return GasHotspotAnalyzer(settings)


class TestDetectPattern:

    def test_two_sloads_repeat(self):
        assert detect_pattern(["SLOAD", "ADD", "SLOAD"]) == GasPattern.REPEATED_SLOAD

    def test_three_sloads_is_multiple(self):
        assert detect_pattern(["SLOAD"] * 3) == GasPattern.MULTIPLE_SLOAD

    def test_sstore_with_many_opcodes(self):
        ops = ["PUSH1", "DUP1", "ADD", "SWAP1", "POP", "SSTORE"]
        assert detect_pattern(ops) == GasPattern.STORAGE_IN_LOOP

    def test_sstore_with_five_opcodes_is_plain(self):
        assert detect_pattern(["PUSH1", "PUSH1", "ADD", "POP", "SSTORE"]) == GasPattern.NONE

    def test_single_sload(self):
        assert detect_pattern(["SLOAD", "ADD"]) == GasPattern.NONE


class TestRecommendations:

    def test_pattern_text(self):
        text = recommend(GasPattern.REPEATED_SLOAD, ["SLOAD", "SLOAD"], 4200)
        assert "4200 gas" in text
        assert "caching" in text

    def test_dominant_class_text(self):
        assert "Storage write" in recommend(GasPattern.NONE, ["SSTORE"], 20000)
        assert "Storage read" in recommend(GasPattern.NONE, ["SLOAD"], 2100)
        assert "External call" in recommend(GasPattern.NONE, ["DELEGATECALL"], 700)
        assert recommend(GasPattern.NONE, ["ADD"], 3).startswith("Gas usage: 3.")

    def test_fix_templates(self):
        assert "cachedValue" in suggest_fix(GasPattern.REPEATED_SLOAD)
        assert "Single write" in suggest_fix(GasPattern.STORAGE_IN_LOOP)
        assert suggest_fix(GasPattern.NONE) is None


class TestAnalyze:

    def test_groups_by_source_range(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        report = analyzer.analyze(sample_bytecode, sample_source_map, sample_source)
        assert len(report.hotspots) == 2

        write, read = report.hotspots
        assert write.opcodes_involved == ("PUSH1", "PUSH1", "SSTORE")
        assert write.gas_used == 20006
        assert write.severity == Severity.CRITICAL
        assert write.pattern == GasPattern.NONE

        assert read.opcodes_involved == ("PUSH1", "SLOAD", "PUSH1", "SLOAD", "ADD")
        assert read.gas_used == 4209
        assert read.severity == Severity.WARNING
        assert read.pattern == GasPattern.REPEATED_SLOAD
        assert read.suggested_fix is not None

    def test_sorted_by_gas_descending(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        report = analyzer.analyze(sample_bytecode, sample_source_map, sample_source)
        gas = [h.gas_used for h in report.hotspots]
        assert gas == sorted(gas, reverse=True)

    def test_positions(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        write = analyzer.analyze(sample_bytecode, sample_source_map, sample_source).hotspots[0]
        offset = sample_source.index("count = 1")
        line_start = sample_source.rfind("\n", 0, offset) + 1
        assert write.start.line == 2
        assert write.start.column == offset - line_start
        assert write.end.column == offset - line_start + len("count = 1")
        assert write.source_range == (offset, offset + 9)

    def test_idempotent(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        first = analyzer.analyze(sample_bytecode, sample_source_map, sample_source).hotspots
        second = analyzer.analyze(sample_bytecode, sample_source_map, sample_source).hotspots
        assert first == second

    def test_accepts_parsed_map(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        parsed = parse_source_map(sample_source_map)
        report = analyzer.analyze(sample_bytecode, parsed, sample_source)
        assert len(report.hotspots) == 2

    @pytest.mark.parametrize("bytecode", ["", "0x", None])
    def test_empty_bytecode(self, analyzer, bytecode, sample_source_map, sample_source):
        report = analyzer.analyze(bytecode, sample_source_map, sample_source)
        assert report.hotspots == []
        assert report.diagnostics.nothing_to_analyze is True

    def test_short_source_map_drops_tail(self, analyzer, sample_bytecode, sample_source):
        report = analyzer.analyze(sample_bytecode, "0:5:0:-;;", sample_source)
        assert len(report.hotspots) == 1
        assert report.hotspots[0].opcodes_involved == ("PUSH1", "PUSH1", "SSTORE")
        assert report.diagnostics.unmapped_instructions == 5

    def test_unmapped_entries_are_counted(self, analyzer, sample_source):
        report = analyzer.analyze("6001600055", "-1:0:-1:-;;", sample_source)
        assert report.hotspots == []
        assert report.diagnostics.unmapped_instructions == 3

    def test_file_filter(self, analyzer, sample_source):
        report = analyzer.analyze("6001600055", "0:5:1:-;;", sample_source, file_index=0)
        assert report.hotspots == []

    def test_unknown_opcodes_do_not_abort(self, analyzer, sample_source):
        report = analyzer.analyze("0c6001600055", "0:5:0:-;;;", sample_source)
        assert report.diagnostics.unknown_opcodes == 1
        assert report.hotspots[0].gas_used == 20006

    def test_thresholds_follow_settings(self, settings, sample_bytecode, sample_source_map, sample_source):
        strict = settings.model_copy(update={
            "severity_warning_threshold": 10,
            "severity_high_threshold": 100,
            "severity_critical_threshold": 4000,
        })
        report = GasHotspotAnalyzer(strict).analyze(sample_bytecode, sample_source_map, sample_source)
        assert all(h.severity == Severity.CRITICAL for h in report.hotspots)

    def test_report_dict(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        data = analyzer.analyze(sample_bytecode, sample_source_map, sample_source).to_dict()
        assert data["summary"]["hotspot_count"] == 2
        assert data["summary"]["by_severity"]["critical"] == 1
        assert data["hotspots"][0]["severity"] == "critical"

    def test_dangling_nibble_marks_report_degraded(self, analyzer):
        report = analyzer.analyze("600", "0:1:0:-", "x")
        assert report.diagnostics.invalid_hex_bytes == 1
        assert report.diagnostics.degraded is True

    def test_completion_log_carries_timing(self, analyzer, caplog, sample_bytecode, sample_source_map, sample_source):
        caplog.set_level(logging.INFO, logger="gaslens.analyzer.hotspots")
        analyzer.analyze(sample_bytecode, sample_source_map, sample_source)
        (record,) = [r for r in caplog.records if r.getMessage().startswith("Gas analysis complete")]
        assert record.hotspot_count == 2
        assert record.duration_ms >= 0


class TestRuntimeRefinement:

    def _trace(self, *steps):
        return {"result": {"gasUsed": 50_000}, "structLogs": [
            {"pc": pc, "op": op, "gas": 100_000, "gasCost": cost, "depth": depth, "stack": []}
            for pc, op, cost, depth in steps
        ]}

    def test_trace_cost_overrides_static(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        trace = self._trace((0, "PUSH1", 3, 1), (2, "PUSH1", 3, 1), (4, "SSTORE", 2900, 1))
        report = analyzer.analyze(sample_bytecode, sample_source_map, sample_source, trace=trace)
        write = next(h for h in report.hotspots if "SSTORE" in h.opcodes_involved)
        assert write.gas_used == 2906
        assert write.severity == Severity.WARNING
        assert write.runtime_refined is True

    def test_repeated_executions_accumulate(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        trace = self._trace((7, "SLOAD", 2100, 1), (10, "SLOAD", 100, 1), (7, "SLOAD", 100, 1))
        report = analyzer.analyze(sample_bytecode, sample_source_map, sample_source, trace=trace)
        read = next(h for h in report.hotspots if "SLOAD" in h.opcodes_involved)
        assert read.gas_used == 3 + 2200 + 3 + 100 + 3

    def test_inner_frames_are_ignored(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        trace = self._trace((4, "SSTORE", 2900, 1), (4, "SSTORE", 5000, 2))
        report = analyzer.analyze(sample_bytecode, sample_source_map, sample_source, trace=trace)
        write = next(h for h in report.hotspots if "SSTORE" in h.opcodes_involved)
        assert write.gas_used == 3 + 3 + 2900

    def test_unknown_pcs_are_counted(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        trace = self._trace((1, "PUSH1", 3, 1), (999, "ADD", 3, 1))
        report = analyzer.analyze(sample_bytecode, sample_source_map, sample_source, trace=trace)
        assert report.diagnostics.unmatched_trace_pcs == 2

    def test_malformed_entries_are_skipped(self, analyzer, sample_bytecode, sample_source_map, sample_source):
        trace = {"structLogs": [None, {"op": "SSTORE"}, {"pc": 4, "op": "SSTORE", "gasCost": 2900}]}
        report = analyzer.analyze(sample_bytecode, sample_source_map, sample_source, trace=trace)
        assert report.diagnostics.skipped_trace_entries == 2
        write = next(h for h in report.hotspots if "SSTORE" in h.opcodes_involved)
        assert write.gas_used == 3 + 3 + 2900
