"""Storage state reconstructor.

Builds an append-only history of ``StateSnapshot`` objects from two feeds:

  * execution traces, where only ``SSTORE`` steps are interpreted;
  * the compiler's storage layout, which yields the post-deployment
    snapshot of zero values.

Slots are keyed as minimal lowercase hex (``0x0``, ``0x1f``) and values are
normalized the same way, so padded and unpadded stack words compare equal.
Current state is never stored; it is recomputed by folding the history up
to the requested snapshot.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from gaslens.core.config import Settings, get_settings
from gaslens.core.events import EventHub, EventType
from gaslens.core.trace import parse_trace
from gaslens.core.types import StateChange, StateEntry, StateSnapshot, StorageVariable

logger = logging.getLogger(__name__)

ZERO = "0x0"
ZERO_ADDRESS = "0x" + "0" * 40

TYPE_MAPPING: dict[str, str] = {
    "uint256": "Number (uint256)",
    "uint128": "Number (uint128)",
    "uint64": "Number (uint64)",
    "uint32": "Number (uint32)",
    "uint16": "Number (uint16)",
    "uint8": "Number (uint8)",
    "int256": "Signed Number (int256)",
    "int128": "Signed Number (int128)",
    "int64": "Signed Number (int64)",
    "int32": "Signed Number (int32)",
    "int16": "Signed Number (int16)",
    "int8": "Signed Number (int8)",
    "address": "Ethereum Address",
    "bool": "Boolean",
    "string": "Text String",
    "bytes": "Byte Array",
    "bytes32": "Fixed Bytes (32)",
}


# ── Value helpers ────────────────────────────────────────────────────────────

def normalize_word(value: Any) -> str:
    """Minimal lowercase hex for a stack word, slot or layout slot.

    Strings are read as hex with or without the ``0x`` prefix.

    Raises:
        ValueError: *value* is not a hex string or non-negative int.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a storage word: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"negative storage word: {value}")
        return hex(value)
    if not isinstance(value, str):
        raise ValueError(f"not a storage word: {value!r}")
    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not text:
        raise ValueError("empty storage word")
    return hex(int(text, 16))


def friendly_type(type_label: str) -> str:
    return TYPE_MAPPING.get(type_label, type_label)


def infer_type(value: str) -> str:
    """Coarse type guess from the shape of a raw value."""
    raw = value[2:] if value.startswith("0x") else value
    if raw in ("0", "1"):
        return "Boolean or Number"
    if len(raw) == 40:
        return "Likely Address"
    if len(raw) <= 4:
        return "Small Number"
    return "Number or Bytes"


def default_value_for_type(type_label: str) -> str:
    return ZERO_ADDRESS if type_label == "address" else ZERO


def format_value_for_display(value: str | None, type_info: str | None = None) -> str:
    if not value:
        return "null"
    raw = value[2:] if value.startswith("0x") else value

    if type_info:
        if "Boolean" in type_info:
            return "false" if not raw.strip("0") else "true"
        if "Address" in type_info:
            return "0x" + raw.lower().rjust(40, "0")
        if "Number" in type_info:
            try:
                return str(int(raw, 16))
            except ValueError:
                return value

    if raw in ("0", "1"):
        return raw
    if len(raw) == 40:
        return f"0x{raw.lower()}"
    return value


def _extract(word: int, var: StorageVariable) -> int:
    return (word >> (var.offset * 8)) & ((1 << (var.number_of_bytes * 8)) - 1)


# ── Layout ───────────────────────────────────────────────────────────────────

def parse_storage_layout(layout: Any) -> list[StorageVariable]:
    """Read ``{"storage": [...], "types": {...}}`` or a bare entry list.

    Entries without a usable slot or label are skipped.
    """
    if isinstance(layout, dict):
        entries = layout.get("storage") or []
        types = layout.get("types") or {}
    elif isinstance(layout, list):
        entries, types = layout, {}
    else:
        return []

    variables: list[StorageVariable] = []
    for entry in entries:
        if not isinstance(entry, dict) or "label" not in entry:
            continue
        type_id = str(entry.get("type", ""))
        type_info = types.get(type_id) if isinstance(types, dict) else None
        if isinstance(type_info, dict) and type_info.get("label"):
            label = str(type_info["label"])
        else:
            label = type_id[2:] if type_id.startswith("t_") else type_id
        try:
            slot = int(str(entry.get("slot", "0")), 0)
            number_of_bytes = int((type_info or {}).get("numberOfBytes", 32))
            variables.append(StorageVariable(
                slot=slot,
                label=str(entry["label"]),
                solidity_type=type_id,
                type_label=label,
                offset=int(entry.get("offset", 0) or 0),
                number_of_bytes=min(max(number_of_bytes, 1), 32),
            ))
        except (TypeError, ValueError) as e:
            logger.debug("Skipping storage layout entry %r: %s", entry.get("label"), e)
    return variables


@dataclass
class TraceStateDiagnostics:
    """Counters for one processed trace."""
    trace_entries: int = 0
    skipped_entries: int = 0
    sstore_count: int = 0
    malformed_sstores: int = 0
    noop_writes: int = 0


# ── Collector ────────────────────────────────────────────────────────────────

class StateCollector:
    """Append-only storage history for one contract in one session."""

    def __init__(self, hub: EventHub | None = None, settings: Settings | None = None) -> None:
        self.hub = hub or EventHub()
        self._settings = settings or get_settings()
        self._snapshots: list[StateSnapshot] = []
        self._variables: list[StorageVariable] = []
        self._by_slot: dict[str, list[StorageVariable]] = {}
        self._words: dict[str, int] = {}
        self.contract_name = ""
        self.abi: list[dict[str, Any]] = []
        self.last_diagnostics = TraceStateDiagnostics()

    # ── Layout ──────────────────────────────────────────────────────────

    def load_layout(
        self,
        storage_layout: Any,
        contract_name: str = "",
        abi: list[dict[str, Any]] | None = None,
    ) -> list[StorageVariable]:
        """Replace the slot → variable map and announce the contract."""
        self._variables = parse_storage_layout(storage_layout)
        self._by_slot = {}
        for var in self._variables:
            self._by_slot.setdefault(var.slot_hex, []).append(var)
        self.contract_name = contract_name
        self.abi = list(abi or [])

        logger.info(
            "Loaded storage layout for %s: %d variables",
            contract_name or "<unnamed>", len(self._variables),
            extra={"contract": contract_name},
        )
        self.hub.fire(EventType.CONTRACT_ANALYZED, {
            "contract_name": contract_name,
            "abi": self.abi,
            "storage_variables": list(self._variables),
        })
        return list(self._variables)

    @property
    def storage_variables(self) -> list[StorageVariable]:
        return list(self._variables)

    def variables_at(self, slot: str) -> list[StorageVariable]:
        return list(self._by_slot.get(slot, []))

    # ── Feeds ───────────────────────────────────────────────────────────

    def process_trace(
        self,
        trace: Any,
        transaction_hash: str | None = None,
    ) -> StateSnapshot:
        """Append one snapshot holding the storage writes of *trace*."""
        parsed = parse_trace(trace, self._settings.trace_max_entries)
        diag = TraceStateDiagnostics(
            trace_entries=parsed.diagnostics.total_entries,
            skipped_entries=parsed.diagnostics.skipped_entries,
        )
        tx_hash = transaction_hash or parsed.transaction_hash
        key_on_top = self._settings.state_sstore_key_on_top

        # No-op suppression is per trace; prior values carry over from earlier snapshots
        seen: dict[str, int] = {}
        changes: list[StateChange] = []

        for log in parsed.logs:
            if log.op != "SSTORE":
                continue
            diag.sstore_count += 1
            if len(log.stack) < 2:
                diag.malformed_sstores += 1
                continue
            slot_word, value_word = (
                (log.stack[-1], log.stack[-2]) if key_on_top else (log.stack[-2], log.stack[-1])
            )
            try:
                slot = normalize_word(slot_word)
                value = int(normalize_word(value_word), 16)
            except ValueError:
                diag.malformed_sstores += 1
                continue

            old = seen.get(slot, self._words.get(slot, 0))
            if slot in seen:
                repeated = seen[slot] == value
            else:
                repeated = value == 0 and old == 0
            if repeated:
                diag.noop_writes += 1
                continue
            seen[slot] = value
            changes.extend(self._changes_for_write(
                slot, old, value,
                program_counter=log.pc,
                call_depth=log.depth,
                transaction_hash=tx_hash,
            ))

        context: dict[str, Any] = {"type": "trace"}
        if isinstance(trace, dict):
            context.update({
                "to": trace.get("to"),
                "from": trace.get("from") or "unknown",
                "value": trace.get("value") or ZERO,
            })
        if diag.skipped_entries or diag.malformed_sstores:
            context["skipped_entries"] = diag.skipped_entries + diag.malformed_sstores
            logger.warning(
                "Trace degraded: %d entries skipped, %d malformed SSTORE steps",
                diag.skipped_entries, diag.malformed_sstores,
            )

        self.last_diagnostics = diag
        self._words.update(seen)
        return self._append(changes, tx_hash, context)

    def create_initial_snapshot(self) -> StateSnapshot | None:
        """Zero-valued post-deployment snapshot; None without a layout."""
        if not self._variables:
            return None
        changes = [
            StateChange(
                slot=var.slot_hex,
                old_value=ZERO,
                new_value=default_value_for_type(var.type_label),
                variable_name=var.label,
                type_info=friendly_type(var.type_label),
                operation="INITIAL",
            )
            for var in self._variables
        ]
        for slot in self._by_slot:
            self._words.setdefault(slot, 0)
        return self._append(
            changes, None, {"type": "initial_state", "contract_name": self.contract_name},
        )

    def add_simulated_snapshot(
        self,
        changes: Iterable[StateChange],
        context_info: dict[str, Any] | None = None,
    ) -> StateSnapshot:
        changes = list(changes)
        for change in changes:
            if len(self._by_slot.get(change.slot, [])) <= 1:
                try:
                    self._words[change.slot] = int(normalize_word(change.new_value), 16)
                except ValueError:
                    logger.debug("Simulated value %r is not a storage word", change.new_value)
        return self._append(changes, None, {"type": "simulation", **(context_info or {})})

    # ── Queries ─────────────────────────────────────────────────────────

    def snapshots(self) -> list[StateSnapshot]:
        return list(self._snapshots)

    def get_snapshot(self, snapshot_id: int) -> StateSnapshot | None:
        if 0 <= snapshot_id < len(self._snapshots):
            return self._snapshots[snapshot_id]
        return None

    def current_state(self, snapshot_id: int | None = None) -> dict[str, StateEntry]:
        """Fold changes up to and including *snapshot_id* (default: latest).

        Keyed by variable name, or ``slot_<slot>`` for unattributed slots;
        the last write wins.
        """
        state: dict[str, StateEntry] = {}
        for snapshot in self._snapshots:
            if snapshot_id is not None and snapshot.id > snapshot_id:
                break
            for change in snapshot.changes:
                key = change.variable_name or f"slot_{change.slot}"
                state[key] = StateEntry(
                    type=change.type_info or "unknown",
                    value=change.new_value,
                    display_value=format_value_for_display(change.new_value, change.type_info),
                    previous_value=change.old_value,
                    last_changed=snapshot.id,
                    slot=change.slot,
                    operation=change.operation,
                )
        return state

    def clear(self) -> None:
        """Drop history and layout."""
        self._snapshots = []
        self._variables = []
        self._by_slot = {}
        self._words = {}
        self.contract_name = ""
        self.abi = []
        self.last_diagnostics = TraceStateDiagnostics()

    # ── Internals ───────────────────────────────────────────────────────

    def _changes_for_write(self, slot: str, old: int, new: int, **common: Any) -> list[StateChange]:
        variables = self.variables_at(slot)
        new_hex = hex(new)

        if len(variables) > 1:
            # Packed slot: one change per member whose bytes changed, or every
            # member when the whole word is rewritten unchanged
            touched = [v for v in variables if _extract(old, v) != _extract(new, v)] or variables
            return [
                StateChange(
                    slot=slot,
                    old_value=hex(_extract(old, var)),
                    new_value=hex(_extract(new, var)),
                    variable_name=var.label,
                    type_info=friendly_type(var.type_label),
                    operation="SSTORE",
                    **common,
                )
                for var in touched
            ]

        if variables:
            var = variables[0]
            name, type_info = var.label, friendly_type(var.type_label)
        else:
            # Addresses with leading zero nibbles lose width in minimal hex
            shaped = f"0x{new:040x}" if 153 <= new.bit_length() <= 160 else new_hex
            name, type_info = None, infer_type(shaped)
        return [StateChange(
            slot=slot,
            old_value=hex(old),
            new_value=new_hex,
            variable_name=name,
            type_info=type_info,
            operation="SSTORE",
            **common,
        )]

    def _append(
        self,
        changes: list[StateChange],
        transaction_hash: str | None,
        context_info: dict[str, Any],
    ) -> StateSnapshot:
        snapshot = StateSnapshot(
            id=len(self._snapshots),
            timestamp=int(time.time() * 1000),
            changes=tuple(changes),
            transaction_hash=transaction_hash,
            context_info=context_info,
        )
        self._snapshots.append(snapshot)

        if len(self._snapshots) > self._settings.state_max_snapshots:
            logger.warning(
                "Snapshot history has %d entries (soft limit %d)",
                len(self._snapshots), self._settings.state_max_snapshots,
            )
        logger.debug(
            "Snapshot %d created with %d changes", snapshot.id, len(changes),
            extra={"snapshot_id": snapshot.id, "tx_hash": transaction_hash},
        )
        self.hub.fire(EventType.SNAPSHOT_CREATED, snapshot)
        return snapshot
