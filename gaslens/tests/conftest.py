"""Shared fixtures for the gaslens test suite."""

from __future__ import annotations

from typing import Any

import pytest

from gaslens.core.config import Settings
from gaslens.core.events import EventHub, EventType
from gaslens.core.types import GasHotspot, Severity, SourcePosition
from gaslens.ingestion.artifacts import CompiledContract


# ── Source & bytecode ────────────────────────────────────────────────────────

SAMPLE_SOURCE = (
    "contract Counter {\n"
    "    uint256 count;\n"
    "    function bump() public { count = 1; }\n"
    "    function twice() public view returns (uint256) { return count + count; }\n"
    "}\n"
)

# pc 0  PUSH1 0x01 | pc 2  PUSH1 0x00 | pc 4  SSTORE      -> "count = 1"
# pc 5  PUSH1 0x00 | pc 7  SLOAD      | pc 8  PUSH1 0x00
# pc 10 SLOAD      | pc 11 ADD        | pc 12 STOP        -> "count + count"
SAMPLE_BYTECODE = "0x60016000556000546000540100"


def _sample_source_map() -> str:
    write = SAMPLE_SOURCE.index("count = 1")
    read = SAMPLE_SOURCE.index("count + count")
    return f"{write}:9:0:-;;;{read}:13:0:-;;;;;"


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def sample_source() -> str:
    return SAMPLE_SOURCE


@pytest.fixture
def sample_bytecode() -> str:
    return SAMPLE_BYTECODE


@pytest.fixture
def sample_source_map() -> str:
    return _sample_source_map()


@pytest.fixture
def sample_layout() -> dict[str, Any]:
    """solc storageLayout with one full slot and two packed members."""
    return {
        "storage": [
            {"astId": 3, "contract": "Token.sol:Token", "label": "totalSupply",
             "offset": 0, "slot": "0", "type": "t_uint256"},
            {"astId": 5, "contract": "Token.sol:Token", "label": "owner",
             "offset": 0, "slot": "1", "type": "t_address"},
            {"astId": 7, "contract": "Token.sol:Token", "label": "paused",
             "offset": 20, "slot": "1", "type": "t_bool"},
            {"astId": 9, "contract": "Token.sol:Token", "label": "balance",
             "offset": 0, "slot": "2", "type": "t_uint256"},
        ],
        "types": {
            "t_uint256": {"encoding": "inplace", "label": "uint256", "numberOfBytes": "32"},
            "t_address": {"encoding": "inplace", "label": "address", "numberOfBytes": "20"},
            "t_bool": {"encoding": "inplace", "label": "bool", "numberOfBytes": "1"},
        },
    }


@pytest.fixture
def sample_abi() -> list[dict[str, Any]]:
    def fn(name: str, inputs: list[tuple[str, str]], mutability: str = "nonpayable") -> dict:
        return {
            "type": "function",
            "name": name,
            "inputs": [{"name": n, "type": t} for n, t in inputs],
            "outputs": [],
            "stateMutability": mutability,
        }

    return [
        {"type": "constructor", "inputs": [], "stateMutability": "nonpayable"},
        fn("mint", [("amount", "uint256")]),
        fn("burn", [("amount", "uint256")]),
        fn("transfer", [("to", "address"), ("amount", "uint256")]),
        fn("setBalance", [("value", "uint256")]),
        fn("pause", []),
        fn("totalSupplyOf", [], "view"),
        {"type": "event", "name": "Transfer", "inputs": []},
    ]


def sstore_step(slot: str, value: str, pc: int = 4, depth: int = 1) -> dict[str, Any]:
    return {"pc": pc, "op": "SSTORE", "gas": 100_000, "gasCost": 20_000,
            "depth": depth, "stack": ["0xdead", slot, value]}


def make_trace(*steps: dict[str, Any], **extra: Any) -> dict[str, Any]:
    return {"structLogs": list(steps), **extra}


@pytest.fixture
def sample_contract(sample_bytecode, sample_source_map, sample_layout, sample_abi) -> CompiledContract:
    return CompiledContract(
        name="Counter",
        abi=sample_abi,
        bytecode=sample_bytecode,
        deployed_bytecode=sample_bytecode,
        source_map=sample_source_map,
        deployed_source_map=sample_source_map,
        storage_layout=sample_layout,
        source_path="Counter.sol",
        file_index=0,
    )


# ── Hotspots & events ────────────────────────────────────────────────────────


def make_hotspot(gas: int, start: int = 0, severity: Severity | None = None) -> GasHotspot:
    return GasHotspot(
        source_range=(start, start + 1),
        start=SourcePosition(line=0, column=start),
        end=SourcePosition(line=0, column=start + 1),
        gas_used=gas,
        severity=severity or Severity.from_gas(gas),
        opcodes_involved=("SLOAD",),
    )


class EventRecorder:
    """Collects every payload fired on a hub, per event type."""

    def __init__(self, hub: EventHub) -> None:
        self.events: dict[EventType, list[Any]] = {e: [] for e in EventType}
        for event in EventType:
            hub.subscribe(event, self.events[event].append)

    def __getitem__(self, event: EventType) -> list[Any]:
        return self.events[event]


@pytest.fixture
def hub() -> EventHub:
    return EventHub()


@pytest.fixture
def recorder(hub: EventHub) -> EventRecorder:
    return EventRecorder(hub)
