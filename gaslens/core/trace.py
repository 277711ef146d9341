"""Execution-trace parsing.

Accepts the ``debug_traceTransaction`` struct-log shape::

    {"result": {"gasUsed": ...},
     "structLogs": [{"pc", "op", "gas", "gasCost", "depth", "stack"}, ...]}

Entries that fail validation are skipped and counted; a trace whose
``structLogs`` is not a list yields no entries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


def _coerce_int(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text)
    return value


class StructLog(BaseModel):
    """One executed instruction."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    pc: int = Field(ge=0)
    op: str
    gas: int = 0
    gas_cost: int | None = Field(default=None, alias="gasCost")
    depth: int = 1
    stack: list[str] = Field(default_factory=list)

    @field_validator("pc", "gas", "gas_cost", "depth", mode="before")
    @classmethod
    def _hex_ints(cls, value: Any) -> Any:
        return _coerce_int(value)

    @field_validator("op", mode="before")
    @classmethod
    def _upper_op(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("stack", mode="before")
    @classmethod
    def _stack_words(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [hex(v) if isinstance(v, int) else v for v in value]
        return value


@dataclass
class TraceDiagnostics:
    """Counters for degraded trace input."""
    total_entries: int = 0
    skipped_entries: int = 0
    truncated: bool = False
    malformed: bool = False


@dataclass
class ParsedTrace:
    """Validated struct logs plus transaction-level fields."""
    logs: list[StructLog] = field(default_factory=list)
    gas_used: int | None = None
    transaction_hash: str | None = None
    input_data: str | None = None
    diagnostics: TraceDiagnostics = field(default_factory=TraceDiagnostics)

    @property
    def outer_depth(self) -> int | None:
        return min((log.depth for log in self.logs), default=None)


def _raw_struct_logs(trace: Any) -> Any:
    if not isinstance(trace, dict):
        return None
    if "structLogs" in trace:
        return trace["structLogs"]
    result = trace.get("result")
    if isinstance(result, dict):
        return result.get("structLogs")
    return None


def _gas_used(trace: dict[str, Any]) -> int | None:
    result = trace.get("result")
    raw = result.get("gasUsed") if isinstance(result, dict) else None
    if raw is None:
        raw = trace.get("gasUsed", trace.get("gas"))
    try:
        return _coerce_int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def parse_trace(trace: Any, max_entries: int | None = None) -> ParsedTrace:
    """Validate struct logs, skipping entries that cannot be interpreted."""
    parsed = ParsedTrace()
    raw_logs = _raw_struct_logs(trace)

    if isinstance(trace, dict):
        parsed.gas_used = _gas_used(trace)
        tx_hash = trace.get("hash") or trace.get("transactionHash")
        parsed.transaction_hash = tx_hash if isinstance(tx_hash, str) else None
        input_data = trace.get("input")
        parsed.input_data = input_data if isinstance(input_data, str) else None

    if not isinstance(raw_logs, list):
        if trace is not None:
            parsed.diagnostics.malformed = True
            logger.warning("Trace has no structLogs list; nothing to interpret")
        return parsed

    diag = parsed.diagnostics
    diag.total_entries = len(raw_logs)
    limit = max_entries if max_entries is not None else len(raw_logs)

    for idx, entry in enumerate(raw_logs):
        if idx >= limit:
            diag.truncated = True
            diag.skipped_entries += len(raw_logs) - idx
            break
        if not isinstance(entry, dict):
            diag.skipped_entries += 1
            continue
        try:
            parsed.logs.append(StructLog.model_validate(entry))
        except (ValidationError, ValueError, TypeError):
            diag.skipped_entries += 1

    if diag.skipped_entries:
        logger.warning(
            "Skipped %d of %d trace entries", diag.skipped_entries, diag.total_entries,
        )
    return parsed
