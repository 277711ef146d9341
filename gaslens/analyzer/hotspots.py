"""Gas hotspot analyzer — attributes gas to exact source ranges.

Fuses decoded opcodes, their source mappings and the static gas table into
a ranked list of hotspots. When an execution trace is supplied, the gas
recorded at each executed program counter replaces the static estimate for
that instruction.

Pipeline:
  bytecode ──► EVMDisassembler ──┐
                                 ├──► per-instruction cost ──► group by
  source map ──► parse_source_map┘        ▲                  (start, end)
                                          │                       │
  trace ──► parse_trace ──► pc → index ───┘                       ▼
                                                   pattern / severity / advice
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from gaslens.analyzer.bytecode import DecodeResult, EVMDisassembler
from gaslens.analyzer.gas_table import gas_cost
from gaslens.analyzer.source_map import (
    SourceMap,
    byte_to_char_offset,
    offset_to_position,
    parse_source_map,
)
from gaslens.core.config import Settings, get_settings
from gaslens.core.trace import ParsedTrace, parse_trace
from gaslens.core.types import GasHotspot, GasPattern, Severity

logger = logging.getLogger(__name__)

EXTERNAL_CALLS = ("CALL", "DELEGATECALL", "STATICCALL", "CALLCODE")

_FIX_CACHE_READ = (
    "uint256 cachedValue = storageVariable; // Cache in memory\n"
    "// Then use cachedValue instead of repeated storage reads"
)
_FIX_SINGLE_WRITE = (
    "uint256 tempValue = 0;\n"
    "for (...) {\n"
    "  tempValue += ...; // Accumulate\n"
    "}\n"
    "storageVariable = tempValue; // Single write"
)


# ── Data Classes ─────────────────────────────────────────────────────────────

@dataclass
class AnalysisDiagnostics:
    """Observable counters for every degraded path of one analysis run."""
    instruction_count: int = 0
    unknown_opcodes: int = 0
    invalid_hex_bytes: int = 0
    truncated_bytecode: bool = False
    source_map_entries: int = 0
    malformed_source_map_entries: int = 0
    unmapped_instructions: int = 0
    trace_entries: int = 0
    skipped_trace_entries: int = 0
    unmatched_trace_pcs: int = 0
    runtime_refined_instructions: int = 0
    nothing_to_analyze: bool = False

    @property
    def degraded(self) -> bool:
        return bool(
            self.unknown_opcodes
            or self.invalid_hex_bytes
            or self.truncated_bytecode
            or self.malformed_source_map_entries
            or self.unmapped_instructions
            or self.skipped_trace_entries
            or self.unmatched_trace_pcs
        )


@dataclass
class HotspotReport:
    """Ranked hotspots plus diagnostics for one analysis run."""
    hotspots: list[GasHotspot] = field(default_factory=list)
    diagnostics: AnalysisDiagnostics = field(default_factory=AnalysisDiagnostics)
    total_gas: int = 0
    analysis_time_sec: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hotspots": [h.model_dump(mode="json") for h in self.hotspots],
            "summary": {
                "hotspot_count": len(self.hotspots),
                "total_gas": self.total_gas,
                "by_severity": {
                    sev.value: sum(1 for h in self.hotspots if h.severity == sev)
                    for sev in Severity
                },
            },
            "diagnostics": asdict(self.diagnostics),
            "analysis_time_sec": round(self.analysis_time_sec, 3),
        }


@dataclass
class _RangeAccumulator:
    start: int
    end: int
    file_index: int
    gas: int = 0
    opcodes: list[str] = field(default_factory=list)
    refined: bool = False


# ── Pattern & advice ─────────────────────────────────────────────────────────

def detect_pattern(mnemonics: Sequence[str], loop_min_opcodes: int = 5) -> GasPattern:
    """Best-effort wasteful-pattern heuristic over a hotspot's opcodes."""
    sloads = sum(1 for m in mnemonics if m == "SLOAD")
    if sloads >= 3:
        return GasPattern.MULTIPLE_SLOAD
    if sloads >= 2:
        return GasPattern.REPEATED_SLOAD
    if "SSTORE" in mnemonics and len(mnemonics) > loop_min_opcodes:
        return GasPattern.STORAGE_IN_LOOP
    return GasPattern.NONE


def recommend(pattern: GasPattern, mnemonics: Sequence[str], gas_used: int) -> str:
    if pattern == GasPattern.REPEATED_SLOAD:
        return (
            f"Repeated SLOAD operations detected ({gas_used} gas). "
            "Consider caching the storage value in a memory variable."
        )
    if pattern == GasPattern.STORAGE_IN_LOOP:
        return (
            f"Storage write in loop detected ({gas_used} gas). "
            "Consider accumulating changes and writing once after the loop."
        )
    if pattern == GasPattern.MULTIPLE_SLOAD:
        return (
            f"Multiple SLOAD operations ({gas_used} gas). "
            "Cache frequently accessed storage variables in memory."
        )
    if "SSTORE" in mnemonics:
        return (
            f"Storage write operation ({gas_used} gas). "
            "Consider if this variable needs to be stored or can be computed."
        )
    if "SLOAD" in mnemonics:
        return f"Storage read operation ({gas_used} gas). If accessed multiple times, cache in memory."
    if any(m in EXTERNAL_CALLS for m in mnemonics):
        return (
            f"External call detected ({gas_used} gas). "
            "Ensure this is necessary and gas limits are appropriate."
        )
    return f"Gas usage: {gas_used}. Review if this operation can be optimized."


def suggest_fix(pattern: GasPattern) -> str | None:
    if pattern in (GasPattern.REPEATED_SLOAD, GasPattern.MULTIPLE_SLOAD):
        return _FIX_CACHE_READ
    if pattern == GasPattern.STORAGE_IN_LOOP:
        return _FIX_SINGLE_WRITE
    return None


# ── Analyzer ─────────────────────────────────────────────────────────────────

class GasHotspotAnalyzer:
    """Ranks source ranges by the gas their instructions cost.

    Usage:
        analyzer = GasHotspotAnalyzer()
        report = analyzer.analyze(bytecode, source_map, source_code, trace)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._disassembler = EVMDisassembler(self._settings.bytecode_max_instructions)

    def analyze(
        self,
        bytecode: str | bytes | None,
        source_map: str | SourceMap | None,
        source_code: str,
        trace: Any = None,
        file_index: int | None = None,
    ) -> HotspotReport:
        """Produce a fresh ranked hotspot list.

        Args:
            bytecode: Hex string (0x-prefixed or not) or raw bytes.
            source_map: solc source map aligned with *bytecode*.
            source_code: Text of the source file the map points into.
            trace: Optional struct-log trace of executing *bytecode*.
            file_index: Only attribute to this source-file index (None = any).

        Returns:
            HotspotReport sorted by descending accumulated gas.
        """
        started = time.monotonic()
        report = HotspotReport()
        diag = report.diagnostics

        decoded = self._disassembler.decode(bytecode)
        diag.instruction_count = len(decoded.opcodes)
        diag.unknown_opcodes = decoded.unknown_count
        diag.invalid_hex_bytes = decoded.invalid_hex_count
        diag.truncated_bytecode = decoded.truncated_push or decoded.instruction_limit_hit

        if decoded.is_empty:
            diag.nothing_to_analyze = True
            logger.info("Empty bytecode; nothing to analyze")
            return report

        smap = source_map if isinstance(source_map, SourceMap) else parse_source_map(source_map)
        diag.source_map_entries = len(smap)
        diag.malformed_source_map_entries = smap.malformed_count

        runtime = self._runtime_costs(trace, decoded, diag) if trace is not None else {}

        groups: dict[tuple[int, int], _RangeAccumulator] = {}
        for idx, op in enumerate(decoded.opcodes):
            refined = idx in runtime
            cost = runtime[idx] if refined else gas_cost(op.mnemonic).base
            if cost <= 0:
                continue

            mapping = smap.get(idx)
            if mapping is None or not mapping.has_source:
                diag.unmapped_instructions += 1
                continue
            if file_index is not None and mapping.file_index != file_index:
                continue

            key = (mapping.start, mapping.end)
            acc = groups.get(key)
            if acc is None:
                acc = groups[key] = _RangeAccumulator(
                    start=mapping.start, end=mapping.end, file_index=mapping.file_index,
                )
            acc.gas += cost
            acc.opcodes.append(op.mnemonic)
            acc.refined = acc.refined or refined

        report.hotspots = sorted(
            (self._build_hotspot(acc, source_code) for acc in groups.values()),
            key=lambda h: (-h.gas_used, h.source_range),
        )
        report.total_gas = sum(h.gas_used for h in report.hotspots)
        report.analysis_time_sec = time.monotonic() - started

        logger.info(
            "Gas analysis complete: %d hotspots, %d gas over %d instructions",
            len(report.hotspots), report.total_gas, diag.instruction_count,
            extra={
                "hotspot_count": len(report.hotspots),
                "duration_ms": round(report.analysis_time_sec * 1000, 2),
            },
        )
        if diag.degraded:
            logger.warning(
                "Analysis degraded: %d unknown opcodes, %d invalid hex bytes, "
                "%d unmapped instructions, %d skipped trace entries",
                diag.unknown_opcodes, diag.invalid_hex_bytes,
                diag.unmapped_instructions, diag.skipped_trace_entries,
            )
        return report

    def _build_hotspot(self, acc: _RangeAccumulator, source_code: str) -> GasHotspot:
        s = self._settings
        pattern = detect_pattern(acc.opcodes, s.storage_in_loop_min_opcodes)
        start_char = byte_to_char_offset(source_code, acc.start)
        end_char = byte_to_char_offset(source_code, acc.end)
        return GasHotspot(
            source_range=(acc.start, acc.end),
            start=offset_to_position(source_code, start_char),
            end=offset_to_position(source_code, end_char),
            file_index=acc.file_index,
            gas_used=acc.gas,
            severity=Severity.from_gas(
                acc.gas,
                s.severity_warning_threshold,
                s.severity_high_threshold,
                s.severity_critical_threshold,
            ),
            opcodes_involved=tuple(acc.opcodes),
            pattern=pattern,
            recommendation=recommend(pattern, acc.opcodes, acc.gas),
            suggested_fix=suggest_fix(pattern),
            runtime_refined=acc.refined,
        )

    def _runtime_costs(
        self,
        trace: Any,
        decoded: DecodeResult,
        diag: AnalysisDiagnostics,
    ) -> dict[int, int]:
        """Sum recorded gas per instruction index at the outermost call frame."""
        parsed: ParsedTrace = trace if isinstance(trace, ParsedTrace) else parse_trace(
            trace, self._settings.trace_max_entries,
        )
        diag.trace_entries = parsed.diagnostics.total_entries
        diag.skipped_trace_entries = parsed.diagnostics.skipped_entries

        depth = parsed.outer_depth
        frame = [log for log in parsed.logs if log.depth == depth]
        pc_index = decoded.pc_index()
        costs: dict[int, int] = {}

        for i, log in enumerate(frame):
            cost = log.gas_cost
            if cost is None:
                # Derive from the remaining-gas delta to the next step in this frame
                if i + 1 >= len(frame) or frame[i + 1].gas > log.gas:
                    diag.skipped_trace_entries += 1
                    continue
                cost = log.gas - frame[i + 1].gas

            idx = pc_index.get(log.pc)
            if idx is None:
                diag.unmatched_trace_pcs += 1
                continue
            costs[idx] = costs.get(idx, 0) + max(cost, 0)

        diag.runtime_refined_instructions = len(costs)
        return costs
