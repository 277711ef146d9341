"""Validators for user-supplied addresses, hashes and function inputs."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_UINT_RE = re.compile(r"^\d+$")
_INT_RE = re.compile(r"^-?\d+$")
_BYTES_RE = re.compile(r"^0x(?:[0-9a-fA-F]{2})*$")
_INT_TYPE_RE = re.compile(r"^(u?)int(\d*)$")
_BYTES_TYPE_RE = re.compile(r"^bytes(\d*)$")

ZERO_ADDRESS = "0x" + "0" * 40


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.valid


OK = ValidationResult(True)


def validate_address(value: str | None) -> ValidationResult:
    if not value:
        return ValidationResult(False, "Address cannot be empty")
    if not _ADDRESS_RE.match(value):
        return ValidationResult(
            False, "Invalid Ethereum address format (must be 0x followed by 40 hex characters)",
        )
    return OK


def validate_tx_hash(value: str | None) -> ValidationResult:
    if not value:
        return ValidationResult(False, "Transaction hash cannot be empty")
    if not _TX_HASH_RE.match(value):
        return ValidationResult(
            False,
            "Invalid transaction hash format (must be 0x followed by 64 hex characters)",
        )
    return OK


def validate_not_zero_address(value: str | None) -> ValidationResult:
    if value is not None and value.lower() == ZERO_ADDRESS:
        return ValidationResult(False, "Cannot use zero address")
    return OK


def _validate_integer(text: str, unsigned: bool, bits: int) -> ValidationResult:
    if unsigned:
        if not _UINT_RE.match(text):
            return ValidationResult(False, "Must be a valid unsigned integer")
        if int(text) >= 1 << bits:
            return ValidationResult(False, f"Value does not fit in uint{bits}")
        return OK
    if not _INT_RE.match(text):
        return ValidationResult(False, "Must be a valid integer")
    n = int(text)
    if not -(1 << (bits - 1)) <= n < 1 << (bits - 1):
        return ValidationResult(False, f"Value does not fit in int{bits}")
    return OK


def validate_function_input(value: Any, abi_type: str) -> ValidationResult:
    """Check one function argument against its ABI type.

    Types without a specific rule (tuples, arrays, strings) only need to be
    non-empty.
    """
    if value is None or value == "":
        return ValidationResult(False, "Input cannot be empty")
    text = str(value).lower() if isinstance(value, bool) else str(value).strip()

    match = _INT_TYPE_RE.match(abi_type)
    if match:
        return _validate_integer(text, match.group(1) == "u", int(match.group(2) or 256))
    if abi_type == "address":
        return validate_address(text)
    if abi_type == "bool":
        if text.lower() not in ("true", "false", "0", "1"):
            return ValidationResult(False, "Must be true, false, 0, or 1")
        return OK
    match = _BYTES_TYPE_RE.match(abi_type)
    if match:
        if not _BYTES_RE.match(text):
            return ValidationResult(False, "Must be 0x-prefixed hex bytes")
        size = match.group(1)
        if size and len(text) - 2 > int(size) * 2:
            return ValidationResult(False, f"At most {size} bytes allowed")
    return OK
