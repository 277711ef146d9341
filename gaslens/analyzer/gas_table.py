"""Static gas cost table.

Costs are flat per-opcode approximations. Opcodes marked ``dynamic`` have a
true cost that depends on runtime state (cold/warm access, memory expansion,
value transfer, refunds); for those the base figure is a pessimistic static
stand-in that a runtime trace overrides when one is supplied.
"""

from __future__ import annotations

from dataclasses import dataclass

from gaslens.analyzer.bytecode import OpcodeStats


@dataclass(frozen=True)
class GasCost:
    """Static cost of one opcode."""
    base: int
    dynamic: bool = False


def _dynamic(base: int) -> GasCost:
    return GasCost(base, dynamic=True)


OPCODE_GAS: dict[str, GasCost] = {
    # Arithmetic
    "STOP": GasCost(0), "ADD": GasCost(3), "MUL": GasCost(5), "SUB": GasCost(3),
    "DIV": GasCost(5), "SDIV": GasCost(5), "MOD": GasCost(5), "SMOD": GasCost(5),
    "ADDMOD": GasCost(8), "MULMOD": GasCost(8), "EXP": _dynamic(10),
    "SIGNEXTEND": GasCost(5),
    # Comparison / bitwise
    "LT": GasCost(3), "GT": GasCost(3), "SLT": GasCost(3), "SGT": GasCost(3),
    "EQ": GasCost(3), "ISZERO": GasCost(3), "AND": GasCost(3), "OR": GasCost(3),
    "XOR": GasCost(3), "NOT": GasCost(3), "BYTE": GasCost(3), "SHL": GasCost(3),
    "SHR": GasCost(3), "SAR": GasCost(3),
    # Hash (+6 per word)
    "KECCAK256": _dynamic(30),
    # Environment
    "ADDRESS": GasCost(2), "BALANCE": _dynamic(2600), "ORIGIN": GasCost(2),
    "CALLER": GasCost(2), "CALLVALUE": GasCost(2), "CALLDATALOAD": GasCost(3),
    "CALLDATASIZE": GasCost(2), "CALLDATACOPY": _dynamic(3), "CODESIZE": GasCost(2),
    "CODECOPY": _dynamic(3), "GASPRICE": GasCost(2), "EXTCODESIZE": _dynamic(2600),
    "EXTCODECOPY": _dynamic(2600), "RETURNDATASIZE": GasCost(2),
    "RETURNDATACOPY": _dynamic(3), "EXTCODEHASH": _dynamic(2600),
    # Block
    "BLOCKHASH": GasCost(20), "COINBASE": GasCost(2), "TIMESTAMP": GasCost(2),
    "NUMBER": GasCost(2), "PREVRANDAO": GasCost(2), "GASLIMIT": GasCost(2),
    "CHAINID": GasCost(2), "SELFBALANCE": GasCost(5), "BASEFEE": GasCost(2),
    "BLOBHASH": GasCost(3), "BLOBBASEFEE": GasCost(2),
    # Stack / memory
    "POP": GasCost(2), "MLOAD": _dynamic(3), "MSTORE": _dynamic(3),
    "MSTORE8": _dynamic(3), "MCOPY": _dynamic(3),
    # Storage: cold SLOAD, zero → non-zero SSTORE
    "SLOAD": _dynamic(2100),
    "SSTORE": _dynamic(20000),
    "TLOAD": GasCost(100), "TSTORE": GasCost(100),
    # Flow
    "JUMP": GasCost(8), "JUMPI": GasCost(10), "PC": GasCost(2), "MSIZE": GasCost(2),
    "GAS": GasCost(2), "JUMPDEST": GasCost(1),
    # Push/Dup/Swap
    "PUSH0": GasCost(2),
    **{f"PUSH{i}": GasCost(3) for i in range(1, 33)},
    **{f"DUP{i}": GasCost(3) for i in range(1, 17)},
    **{f"SWAP{i}": GasCost(3) for i in range(1, 17)},
    # Log (+8 per data byte)
    "LOG0": _dynamic(375), "LOG1": _dynamic(750), "LOG2": _dynamic(1125),
    "LOG3": _dynamic(1500), "LOG4": _dynamic(1875),
    # System
    "CREATE": _dynamic(32000), "CREATE2": _dynamic(32000),
    "CALL": _dynamic(700), "CALLCODE": _dynamic(700),
    "DELEGATECALL": _dynamic(700), "STATICCALL": _dynamic(700),
    "RETURN": GasCost(0), "REVERT": GasCost(0), "INVALID": GasCost(0),
    "SELFDESTRUCT": _dynamic(5000),
}

# Names used by older trace producers
_ALIASES = {"SHA3": "KECCAK256", "DIFFICULTY": "PREVRANDAO", "SUICIDE": "SELFDESTRUCT"}

NO_COST = GasCost(0)

TX_BASE_COST = 21000


def gas_cost(mnemonic: str) -> GasCost:
    """Static cost for *mnemonic*; unknown mnemonics cost nothing."""
    name = mnemonic.upper()
    return OPCODE_GAS.get(_ALIASES.get(name, name), NO_COST)


def is_dynamic(mnemonic: str) -> bool:
    return gas_cost(mnemonic).dynamic


def estimate_base_gas(stats: OpcodeStats) -> int:
    """Very rough pessimistic per-call estimate from opcode counts."""
    gas = TX_BASE_COST
    gas += stats.sstore_count * 20000  # new slot
    gas += stats.sload_count * 2100    # cold access
    gas += stats.call_count * 2600
    gas += stats.log_count * 1000
    gas += stats.create_count * 32000
    gas += stats.crypto_ops_count * 30
    return gas
