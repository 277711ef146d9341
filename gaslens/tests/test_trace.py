"""Tests for gaslens.core.trace — struct-log trace parsing."""

from __future__ import annotations

from gaslens.core.trace import StructLog, parse_trace


class TestStructLog:

    def test_hex_fields_are_coerced(self):
        log = StructLog.model_validate({"pc": "0x10", "op": "sload", "gas": "0x64", "gasCost": "2100"})
        assert (log.pc, log.op, log.gas, log.gas_cost) == (16, "SLOAD", 100, 2100)

    def test_integer_stack_words(self):
        log = StructLog.model_validate({"pc": 0, "op": "SSTORE", "stack": [1, "0x2"]})
        assert log.stack == ["0x1", "0x2"]

    def test_null_stack(self):
        assert StructLog.model_validate({"pc": 0, "op": "STOP", "stack": None}).stack == []


class TestParseTrace:

    def test_geth_shape(self):
        parsed = parse_trace({
            "hash": "0xabc",
            "input": "0xa9059cbb",
            "result": {"gasUsed": "0x5208"},
            "structLogs": [{"pc": 0, "op": "PUSH1", "depth": 1}],
        })
        assert parsed.gas_used == 21000
        assert parsed.transaction_hash == "0xabc"
        assert parsed.input_data == "0xa9059cbb"
        assert len(parsed.logs) == 1
        assert parsed.outer_depth == 1

    def test_nested_struct_logs(self):
        parsed = parse_trace({"result": {"gas": 5, "structLogs": [{"pc": 1, "op": "STOP"}]}})
        assert [log.pc for log in parsed.logs] == [1]

    def test_bad_entries_are_counted(self):
        parsed = parse_trace({"structLogs": [1, {"pc": -1, "op": "ADD"}, {"pc": 2, "op": "ADD"}]})
        assert len(parsed.logs) == 1
        assert parsed.diagnostics.skipped_entries == 2
        assert parsed.diagnostics.total_entries == 3

    def test_not_a_list(self):
        parsed = parse_trace({"structLogs": {"pc": 0}})
        assert parsed.logs == []
        assert parsed.diagnostics.malformed is True

    def test_none_trace(self):
        parsed = parse_trace(None)
        assert parsed.logs == []
        assert parsed.diagnostics.malformed is False
        assert parsed.outer_depth is None

    def test_max_entries(self):
        logs = [{"pc": i, "op": "JUMPDEST"} for i in range(10)]
        parsed = parse_trace({"structLogs": logs}, max_entries=4)
        assert len(parsed.logs) == 4
        assert parsed.diagnostics.truncated is True
        assert parsed.diagnostics.skipped_entries == 6
