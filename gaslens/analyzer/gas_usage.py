"""Per-call gas usage summaries derived from whole transaction traces."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from gaslens.core.trace import ParsedTrace, parse_trace

logger = logging.getLogger(__name__)

KNOWN_SELECTORS: dict[str, str] = {
    "0xa9059cbb": "transfer",
    "0x095ea7b3": "approve",
    "0x23b872dd": "transferFrom",
    "0x40c10f19": "mint",
    "0x42966c68": "burn",
    "0x70a08231": "balanceOf",
}

UNKNOWN_FUNCTION = "Unknown Function"


@dataclass
class GasUsage:
    function_name: str
    gas_used: int
    sload_count: int = 0
    sstore_count: int = 0
    call_count: int = 0
    recommendations: list[str] = field(default_factory=list)
    timestamp: int = 0


def function_name_from_input(input_data: str | None) -> str:
    if not input_data or len(input_data) < 10:
        return UNKNOWN_FUNCTION
    selector = input_data[:10].lower()
    return KNOWN_SELECTORS.get(selector, f"Function({selector})")


def usage_recommendations(gas_used: int, sloads: int, sstores: int, calls: int) -> list[str]:
    recs: list[str] = []
    if gas_used > 500_000:
        recs.append("High gas usage detected. Consider refactoring to reduce complexity.")
    elif gas_used > 100_000:
        recs.append("Moderate gas usage. Look for optimization opportunities.")

    if sloads > 20:
        recs.append("High storage read count. Cache frequently accessed variables in memory.")
    if sstores > 10:
        recs.append(
            "High storage write count. Batch storage updates or use transient storage when applicable."
        )
    if sloads > sstores * 3:
        recs.append("Asymmetric storage pattern. Consider pre-loading data before operations.")
    if calls > 5:
        recs.append("Multiple external calls detected. Minimize external dependencies if possible.")

    return recs or ["Function is reasonably optimized."]


class GasUsageTracker:
    """Keeps the latest usage summary per function name."""

    def __init__(self) -> None:
        self._usage: dict[str, GasUsage] = {}

    def process_trace(self, trace: Any) -> GasUsage | None:
        parsed = trace if isinstance(trace, ParsedTrace) else parse_trace(trace)
        if parsed.diagnostics.malformed and parsed.gas_used is None:
            logger.warning("Invalid trace data; no gas usage recorded")
            return None

        sloads = sum(1 for log in parsed.logs if log.op == "SLOAD")
        sstores = sum(1 for log in parsed.logs if log.op == "SSTORE")
        calls = sum(1 for log in parsed.logs if log.op in ("CALL", "DELEGATECALL"))
        gas_used = parsed.gas_used or 0

        usage = GasUsage(
            function_name=function_name_from_input(parsed.input_data),
            gas_used=gas_used,
            sload_count=sloads,
            sstore_count=sstores,
            call_count=calls,
            recommendations=usage_recommendations(gas_used, sloads, sstores, calls),
            timestamp=int(time.time() * 1000),
        )
        self._usage[usage.function_name] = usage
        logger.info("Gas usage for %s: %d gas", usage.function_name, gas_used)
        return usage

    def usage(self) -> list[GasUsage]:
        return list(self._usage.values())

    def usage_for(self, function_name: str) -> GasUsage | None:
        return self._usage.get(function_name)

    def clear(self) -> None:
        self._usage.clear()
