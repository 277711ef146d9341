"""Shared enums and types used across the engine."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, Field


# ── Enums ────────────────────────────────────────────────────────────────────


class Severity(str, enum.Enum):
    """Gas severity of a hotspot, a pure step function of accumulated gas."""

    OPTIMAL = "optimal"
    WARNING = "warning"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Tour ordering rank: critical first."""
        return _SEVERITY_RANK[self]

    @classmethod
    def from_gas(
        cls,
        gas_used: int,
        warning: int = 1_000,
        high: int = 5_000,
        critical: int = 20_000,
    ) -> "Severity":
        if gas_used < warning:
            return cls.OPTIMAL
        if gas_used < high:
            return cls.WARNING
        if gas_used < critical:
            return cls.HIGH
        return cls.CRITICAL


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.WARNING: 2,
    Severity.OPTIMAL: 3,
}


def calculate_severity(gas_used: int) -> Severity:
    """Classify accumulated gas with the default 1000/5000/20000 boundaries."""
    return Severity.from_gas(gas_used)


class GasPattern(str, enum.Enum):
    """Wasteful patterns recognised at a hotspot.

    Unrecognised values parse to ``NONE`` instead of raising.
    """

    REPEATED_SLOAD = "repeated-sload"
    STORAGE_IN_LOOP = "storage-in-loop"
    MULTIPLE_SLOAD = "multiple-sload"
    NONE = "none"

    @classmethod
    def _missing_(cls, value: object) -> "GasPattern":
        return cls.NONE


class JumpKind(str, enum.Enum):
    """Jump annotation of a source-map entry."""

    INTO = "i"
    OUT = "o"
    REGULAR = "-"

    @classmethod
    def _missing_(cls, value: object) -> "JumpKind":
        return cls.REGULAR


# ── Shared Schemas ───────────────────────────────────────────────────────────


class SourcePosition(BaseModel):
    """Zero-based line/column position in a source text."""

    model_config = {"frozen": True}

    line: int
    column: int


class GasHotspot(BaseModel):
    """A source range carrying accumulated gas and optimization advice."""

    model_config = {"frozen": True}

    source_range: tuple[int, int]
    start: SourcePosition
    end: SourcePosition
    file_index: int = 0
    gas_used: int
    severity: Severity
    opcodes_involved: tuple[str, ...] = ()
    pattern: GasPattern = GasPattern.NONE
    recommendation: str = ""
    suggested_fix: str | None = None
    runtime_refined: bool = False


class StorageVariable(BaseModel):
    """One entry of the compiler's storage layout."""

    model_config = {"frozen": True}

    slot: int
    label: str
    solidity_type: str
    type_label: str = ""
    offset: int = 0
    number_of_bytes: int = 32

    @property
    def slot_hex(self) -> str:
        return hex(self.slot)

    @property
    def is_packed_member(self) -> bool:
        return self.offset > 0 or self.number_of_bytes < 32


class StateChange(BaseModel):
    """A single storage write attributed to a slot and, if known, a variable."""

    model_config = {"frozen": True}

    slot: str
    old_value: str
    new_value: str
    variable_name: str | None = None
    type_info: str | None = None
    operation: str
    program_counter: int = 0
    call_depth: int = 0
    transaction_hash: str | None = None


class StateSnapshot(BaseModel):
    """An ordered group of state changes (one transaction or simulated call)."""

    model_config = {"frozen": True}

    id: int
    timestamp: int
    changes: tuple[StateChange, ...] = ()
    transaction_hash: str | None = None
    context_info: dict[str, Any] = Field(default_factory=dict)


class StateEntry(BaseModel):
    """Current value of one variable (or raw slot) in the state projection."""

    type: str
    value: str
    display_value: str
    previous_value: str
    last_changed: int
    slot: str
    operation: str
