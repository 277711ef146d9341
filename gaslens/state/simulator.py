"""Heuristic contract-call simulator.

Does not execute bytecode. It recognises a few common function shapes by
name (transfer, mint, burn, setters) and applies their likely effect to the
current-state projection; anything else bumps the first mutable variable.
Resulting changes are appended to the collector as a simulated snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from gaslens.core.errors import ErrorCode, SimulationError
from gaslens.core.types import StateChange, StateEntry
from gaslens.state.collector import StateCollector, format_value_for_display
from gaslens.state.validation import validate_function_input

logger = logging.getLogger(__name__)

READ_ONLY_MUTABILITY = ("view", "pure")


@dataclass(frozen=True)
class AbiFunction:
    name: str
    inputs: list[dict[str, Any]]
    outputs: list[dict[str, Any]]
    state_mutability: str = "nonpayable"

    @property
    def is_read_only(self) -> bool:
        return self.state_mutability in READ_ONLY_MUTABILITY

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(str(i.get('type', '')) for i in self.inputs)})"


@dataclass
class SimulationResult:
    state_changes: list[StateChange] = field(default_factory=list)
    new_state: dict[str, StateEntry] = field(default_factory=dict)
    errors: list[SimulationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    return int(str(value).strip(), 0)


def _to_word(value: Any) -> str:
    if isinstance(value, bool):
        return hex(int(value))
    if isinstance(value, int):
        return hex(value)
    text = str(value)
    if text.startswith("0x"):
        return text.lower()
    if text.isdigit():
        return hex(int(text))
    return "0x" + text.encode().hex()


def _find_variable(state: dict[str, StateEntry], name: str) -> str | None:
    wanted = name.lower()
    for key in state:
        if key.lower() == wanted:
            return key
    for key in state:
        if wanted in key.lower():
            return key
    return None


def _find_mutable_variable(state: dict[str, StateEntry]) -> str | None:
    for key in state:
        lowered = key.lower()
        if "constant" not in lowered and "immutable" not in lowered:
            return key
    return next(iter(state), None)


class ContractSimulator:
    """Applies name-based call heuristics to a collector's current state.

    Usage:
        sim = ContractSimulator(collector, abi)
        result = sim.simulate("mint", [1000])
    """

    def __init__(self, collector: StateCollector, abi: list[dict[str, Any]] | None = None) -> None:
        self.collector = collector
        self._functions = self._parse_abi(abi if abi is not None else collector.abi)

    @staticmethod
    def _parse_abi(abi: Any) -> list[AbiFunction]:
        if not isinstance(abi, list):
            raise SimulationError(ErrorCode.ABI_INVALID, "ABI must be a list of descriptors")
        return [
            AbiFunction(
                name=str(item.get("name", "")),
                inputs=list(item.get("inputs") or []),
                outputs=list(item.get("outputs") or []),
                state_mutability=item.get("stateMutability") or "nonpayable",
            )
            for item in abi
            if isinstance(item, dict) and item.get("type") == "function"
        ]

    def functions(self) -> list[AbiFunction]:
        return list(self._functions)

    def find_function(self, name: str) -> AbiFunction | None:
        for fn in self._functions:
            if name in (fn.name, fn.signature):
                return fn
        return None

    def simulate(
        self,
        function_name: str,
        inputs: list[Any],
        current_state: dict[str, StateEntry] | None = None,
    ) -> SimulationResult:
        state = dict(current_state if current_state is not None else self.collector.current_state())
        result = SimulationResult(new_state=dict(state))

        fn = self.find_function(function_name)
        if fn is None:
            result.errors.append(SimulationError(
                ErrorCode.FUNCTION_NOT_FOUND, f"Function {function_name} not found in ABI",
            ))
            return result

        for arg, value in zip(fn.inputs, inputs):
            check = validate_function_input(value, str(arg.get("type", "")))
            if not check.valid:
                result.errors.append(SimulationError(
                    ErrorCode.INVALID_INPUT, f"{arg.get('name') or 'input'}: {check.error}",
                ))
        if result.errors:
            return result

        if fn.is_read_only:
            logger.debug("Function %s is %s; no state changes", fn.name, fn.state_mutability)
            return result

        try:
            self._apply(fn.name, inputs, result)
        except (ValueError, TypeError) as e:
            result.errors.append(SimulationError(ErrorCode.INVALID_INPUT, str(e)))
            result.state_changes.clear()
            result.new_state = dict(state)
            return result

        if result.state_changes:
            snapshot = self.collector.add_simulated_snapshot(
                result.state_changes, {"function": fn.name, "inputs": list(inputs)},
            )
            for change in result.state_changes:
                key = change.variable_name or f"slot_{change.slot}"
                result.new_state[key] = result.new_state[key].model_copy(
                    update={"last_changed": snapshot.id},
                )
        logger.info(
            "Simulated %s: %d state changes", fn.name, len(result.state_changes),
        )
        return result

    # ── Heuristics ──────────────────────────────────────────────────────

    def _apply(self, name: str, inputs: list[Any], result: SimulationResult) -> None:
        state = result.new_state
        lowered = name.lower()

        if "transfer" in lowered and len(inputs) >= 2:
            source = _find_variable(state, "balance")
            if source is None:
                return
            to, amount = inputs[0], _to_int(inputs[1])
            self._write(result, source, self._value(state, source) - amount, "TRANSFER_FROM")
            target = f"{to}_balance"
            if target in state:
                self._write(result, target, self._value(state, target) + amount, "TRANSFER_TO")

        elif "mint" in lowered and inputs:
            supply = _find_variable(state, "totalSupply")
            if supply is not None:
                self._write(result, supply, self._value(state, supply) + _to_int(inputs[0]), "MINT")

        elif "burn" in lowered and inputs:
            supply = _find_variable(state, "totalSupply")
            if supply is not None:
                self._write(result, supply, self._value(state, supply) - _to_int(inputs[0]), "BURN")

        elif lowered.startswith("set") and inputs:
            target = _find_variable(state, name[3:])
            if target is not None:
                self._write(result, target, _to_word(inputs[0]), "SET")

        else:
            target = _find_mutable_variable(state)
            if target is not None:
                self._write(result, target, self._value(state, target) + 1, name.upper())

    @staticmethod
    def _value(state: dict[str, StateEntry], key: str) -> int:
        return int(state[key].value, 16)

    @staticmethod
    def _write(result: SimulationResult, key: str, value: int | str, operation: str) -> None:
        if isinstance(value, int):
            if value < 0:
                raise ValueError(f"{key} would underflow")
            value = hex(value)
        entry = result.new_state[key]
        result.state_changes.append(StateChange(
            slot=entry.slot or "0x0",
            old_value=entry.value,
            new_value=value,
            variable_name=None if key.startswith("slot_") else key,
            type_info=entry.type,
            operation=operation,
        ))
        result.new_state[key] = entry.model_copy(update={
            "value": value,
            "display_value": format_value_for_display(value, entry.type),
            "previous_value": entry.value,
            "operation": operation,
        })
