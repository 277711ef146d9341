"""EVM bytecode decoder.

Turns a hex instruction stream into ordered ``Opcode`` records. Inline push
data is skipped and never decoded as instructions. Decoding is total: bytes
that are not valid hex, trailing nibbles and unassigned opcode values all
decode to ``UNKNOWN`` instead of failing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from gaslens.core.config import get_settings

logger = logging.getLogger(__name__)

UNKNOWN = "UNKNOWN"


# ── EVM Opcode Table ─────────────────────────────────────────────────────────

class Op(Enum):
    """Opcodes the analyzer reasons about directly."""
    STOP = 0x00
    KECCAK256 = 0x20
    MLOAD = 0x51
    MSTORE = 0x52
    MSTORE8 = 0x53
    SLOAD = 0x54
    SSTORE = 0x55
    PUSH0 = 0x5F
    PUSH1 = 0x60
    PUSH32 = 0x7F
    LOG0 = 0xA0
    LOG4 = 0xA4
    CREATE = 0xF0
    CALL = 0xF1
    CALLCODE = 0xF2
    DELEGATECALL = 0xF4
    CREATE2 = 0xF5
    STATICCALL = 0xFA
    SELFDESTRUCT = 0xFF


# Opcode name mapping for every assigned byte value (Cancun)
OPCODE_NAMES: dict[int, str] = {
    0x00: "STOP", 0x01: "ADD", 0x02: "MUL", 0x03: "SUB", 0x04: "DIV",
    0x05: "SDIV", 0x06: "MOD", 0x07: "SMOD", 0x08: "ADDMOD", 0x09: "MULMOD",
    0x0A: "EXP", 0x0B: "SIGNEXTEND",
    0x10: "LT", 0x11: "GT", 0x12: "SLT", 0x13: "SGT", 0x14: "EQ",
    0x15: "ISZERO", 0x16: "AND", 0x17: "OR", 0x18: "XOR", 0x19: "NOT",
    0x1A: "BYTE", 0x1B: "SHL", 0x1C: "SHR", 0x1D: "SAR",
    0x20: "KECCAK256",
    0x30: "ADDRESS", 0x31: "BALANCE", 0x32: "ORIGIN", 0x33: "CALLER",
    0x34: "CALLVALUE", 0x35: "CALLDATALOAD", 0x36: "CALLDATASIZE",
    0x37: "CALLDATACOPY", 0x38: "CODESIZE", 0x39: "CODECOPY",
    0x3A: "GASPRICE", 0x3B: "EXTCODESIZE", 0x3C: "EXTCODECOPY",
    0x3D: "RETURNDATASIZE", 0x3E: "RETURNDATACOPY", 0x3F: "EXTCODEHASH",
    0x40: "BLOCKHASH", 0x41: "COINBASE", 0x42: "TIMESTAMP", 0x43: "NUMBER",
    0x44: "PREVRANDAO", 0x45: "GASLIMIT", 0x46: "CHAINID",
    0x47: "SELFBALANCE", 0x48: "BASEFEE", 0x49: "BLOBHASH", 0x4A: "BLOBBASEFEE",
    0x50: "POP", 0x51: "MLOAD", 0x52: "MSTORE", 0x53: "MSTORE8",
    0x54: "SLOAD", 0x55: "SSTORE", 0x56: "JUMP", 0x57: "JUMPI",
    0x58: "PC", 0x59: "MSIZE", 0x5A: "GAS", 0x5B: "JUMPDEST",
    0x5C: "TLOAD", 0x5D: "TSTORE", 0x5E: "MCOPY", 0x5F: "PUSH0",
    0xF0: "CREATE", 0xF1: "CALL", 0xF2: "CALLCODE", 0xF3: "RETURN",
    0xF4: "DELEGATECALL", 0xF5: "CREATE2", 0xFA: "STATICCALL",
    0xFD: "REVERT", 0xFE: "INVALID", 0xFF: "SELFDESTRUCT",
}
# Fill PUSH range
for _i in range(0x60, 0x80):
    OPCODE_NAMES[_i] = f"PUSH{_i - 0x5F}"
# Fill DUP range
for _i in range(0x80, 0x90):
    OPCODE_NAMES[_i] = f"DUP{_i - 0x7F}"
# Fill SWAP range
for _i in range(0x90, 0xA0):
    OPCODE_NAMES[_i] = f"SWAP{_i - 0x8F}"
# Fill LOG range
for _i in range(0xA0, 0xA5):
    OPCODE_NAMES[_i] = f"LOG{_i - 0xA0}"

# Dense 256-entry lookup used by the decoder
OPCODE_TABLE: tuple[str, ...] = tuple(OPCODE_NAMES.get(b, UNKNOWN) for b in range(256))


# ── Data Classes ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Opcode:
    """A single decoded instruction."""
    offset: int
    mnemonic: str
    immediate_length: int = 0
    value: int | None = None  # raw byte; None when the input was not hex
    immediate: bytes = b""

    @property
    def size(self) -> int:
        return 1 + self.immediate_length

    @property
    def push_value(self) -> int:
        return int.from_bytes(self.immediate, "big") if self.immediate else 0

    def __repr__(self) -> str:
        if self.immediate:
            return f"{self.offset:#06x}: {self.mnemonic} 0x{self.immediate.hex()}"
        return f"{self.offset:#06x}: {self.mnemonic}"


@dataclass
class DecodeResult:
    """Ordered decode output plus counters for degraded input."""
    opcodes: list[Opcode] = field(default_factory=list)
    byte_length: int = 0
    unknown_count: int = 0
    invalid_hex_count: int = 0
    truncated_push: bool = False
    instruction_limit_hit: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.opcodes

    def pc_index(self) -> dict[int, int]:
        """Map program counter (byte offset) → instruction index."""
        return {op.offset: idx for idx, op in enumerate(self.opcodes)}


@dataclass
class OpcodeStats:
    """Opcode counts for a decoded contract."""
    sload_count: int = 0
    sstore_count: int = 0
    call_count: int = 0
    delegate_call_count: int = 0
    static_call_count: int = 0
    log_count: int = 0
    create_count: int = 0
    self_destruct_count: int = 0
    memory_ops_count: int = 0
    crypto_ops_count: int = 0
    total_opcodes: int = 0


# ── Disassembly Engine ───────────────────────────────────────────────────────

def _strip_hex(bytecode: str) -> str:
    bc = "".join(bytecode.split())
    if bc.startswith(("0x", "0X")):
        bc = bc[2:]
    return bc


def _to_byte_values(hex_text: str) -> list[int | None]:
    """Pairwise hex conversion; invalid pairs and a dangling nibble become None."""
    try:
        return list(bytes.fromhex(hex_text))
    except ValueError:
        pass

    values: list[int | None] = []
    for i in range(0, len(hex_text), 2):
        pair = hex_text[i:i + 2]
        if len(pair) < 2:
            values.append(None)
            continue
        try:
            values.append(int(pair, 16) if pair.isascii() and pair.isalnum() else None)
        except ValueError:
            values.append(None)
    return values


class EVMDisassembler:
    """Decodes EVM bytecode into ordered ``Opcode`` records."""

    def __init__(self, max_instructions: int | None = None) -> None:
        self._max_instructions = max_instructions or get_settings().bytecode_max_instructions

    def decode(self, bytecode: str | bytes | None) -> DecodeResult:
        """Decode a hex string (``0x`` prefix optional) or raw bytes."""
        if not bytecode:
            return DecodeResult()

        if isinstance(bytecode, (bytes, bytearray)):
            values: list[int | None] = list(bytecode)
        else:
            values = _to_byte_values(_strip_hex(bytecode))

        result = DecodeResult(byte_length=len(values))
        opcodes = result.opcodes
        i = 0

        while i < len(values):
            if len(opcodes) >= self._max_instructions:
                result.instruction_limit_hit = True
                logger.warning(
                    "Stopped decoding at %d instructions (offset %d of %d bytes)",
                    len(opcodes), i, len(values),
                )
                break

            byte = values[i]
            if byte is None:
                result.invalid_hex_count += 1
                result.unknown_count += 1
                opcodes.append(Opcode(offset=i, mnemonic=UNKNOWN))
                i += 1
                continue

            name = OPCODE_TABLE[byte]
            if name == UNKNOWN:
                result.unknown_count += 1

            if Op.PUSH1.value <= byte <= Op.PUSH32.value:
                # PUSH1 .. PUSH32
                declared = byte - Op.PUSH1.value + 1
                data = values[i + 1: i + 1 + declared]
                if len(data) < declared:
                    result.truncated_push = True
                result.invalid_hex_count += sum(v is None for v in data)
                immediate = bytes(v for v in data if v is not None) if None not in data else b""
                opcodes.append(Opcode(
                    offset=i,
                    mnemonic=name,
                    immediate_length=len(data),
                    value=byte,
                    immediate=immediate,
                ))
                i += 1 + len(data)
            else:
                opcodes.append(Opcode(offset=i, mnemonic=name, value=byte))
                i += 1

        if result.unknown_count or result.invalid_hex_count or result.truncated_push:
            logger.debug(
                "Decoded %d instructions from %d bytes (%d unknown, %d invalid hex, truncated push: %s)",
                len(opcodes), result.byte_length, result.unknown_count,
                result.invalid_hex_count, result.truncated_push,
            )
        return result


def decode_bytecode(bytecode: str | bytes | None) -> DecodeResult:
    """Decode *bytecode* with default settings."""
    return EVMDisassembler().decode(bytecode)


def opcode_stats(opcodes: list[Opcode]) -> OpcodeStats:
    """Count storage, call, log, create, memory and hashing instructions."""
    stats = OpcodeStats(total_opcodes=len(opcodes))
    for op in opcodes:
        v = op.value
        if v == Op.SLOAD.value:
            stats.sload_count += 1
        elif v == Op.SSTORE.value:
            stats.sstore_count += 1
        elif v in (Op.CALL.value, Op.CALLCODE.value):
            stats.call_count += 1
        elif v == Op.DELEGATECALL.value:
            stats.delegate_call_count += 1
        elif v == Op.STATICCALL.value:
            stats.static_call_count += 1
        elif v is not None and Op.LOG0.value <= v <= Op.LOG4.value:
            stats.log_count += 1
        elif v in (Op.CREATE.value, Op.CREATE2.value):
            stats.create_count += 1
        elif v == Op.SELFDESTRUCT.value:
            stats.self_destruct_count += 1
        elif v in (Op.MLOAD.value, Op.MSTORE.value, Op.MSTORE8.value):
            stats.memory_ops_count += 1
        elif v == Op.KECCAK256.value:
            stats.crypto_ops_count += 1
    return stats
