"""solc source-map interpreter.

A source map is a ``;``-separated list of ``start:length:file:jump:modifierDepth``
entries, one per instruction. Any field, or the whole entry, may be omitted,
in which case it inherits the value of the immediately preceding entry. The
first entry inherits from ``0:0:0:-:0``.

Parsing is a left fold over the entries carrying the last known mapping.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from itertools import accumulate

from gaslens.core.types import JumpKind, SourcePosition

logger = logging.getLogger(__name__)

_ENTRY_RE = re.compile(r"^(-?\d*)(:(-?\d*)(:(-?\d*)(:([io-]?)(:(\d*))?)?)?)?$")


@dataclass(frozen=True)
class SourceMapping:
    """Source location of one instruction."""
    start: int
    length: int
    file_index: int
    jump: JumpKind = JumpKind.REGULAR
    modifier_depth: int = 0

    @property
    def end(self) -> int:
        return self.start + self.length

    @property
    def has_source(self) -> bool:
        """solc uses -1 for compiler-generated code with no source range."""
        return self.start >= 0 and self.file_index >= 0


ROOT_MAPPING = SourceMapping(start=0, length=0, file_index=0)


@dataclass
class SourceMap:
    """Dense per-instruction mapping table."""
    entries: list[SourceMapping] = field(default_factory=list)
    malformed_count: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, index: int) -> SourceMapping | None:
        """Mapping for instruction *index*, or None past the end of the map."""
        if 0 <= index < len(self.entries):
            return self.entries[index]
        return None


def _int_field(parts: list[str], i: int, current: int) -> int:
    if i < len(parts) and parts[i]:
        try:
            return int(parts[i])
        except ValueError:
            return current
    return current


def _apply_entry(previous: SourceMapping, entry: str) -> SourceMapping:
    """Fold step: overlay the fields present in *entry* onto *previous*."""
    if not entry:
        return previous
    parts = entry.split(":")
    jump = JumpKind(parts[3]) if len(parts) > 3 and parts[3] else previous.jump
    return replace(
        previous,
        start=_int_field(parts, 0, previous.start),
        length=_int_field(parts, 1, previous.length),
        file_index=_int_field(parts, 2, previous.file_index),
        jump=jump,
        modifier_depth=_int_field(parts, 4, previous.modifier_depth),
    )


def parse_source_map(source_map: str | None) -> SourceMap:
    """Decode a compressed solc source map into one entry per instruction."""
    if not source_map:
        return SourceMap()

    raw_entries = source_map.strip().split(";")
    malformed = sum(1 for e in raw_entries if e and not _ENTRY_RE.match(e))
    if malformed:
        logger.warning("Source map has %d malformed entries; their fields were inherited", malformed)

    entries = list(accumulate(raw_entries, _apply_entry, initial=ROOT_MAPPING))[1:]
    return SourceMap(entries=entries, malformed_count=malformed)


def offset_to_position(source_code: str, offset: int) -> SourcePosition:
    """Convert a character offset into a zero-based (line, column) position.

    Offsets past the end of the text clamp to the end.
    """
    line = 0
    column = 0
    for ch in source_code[:max(offset, 0)]:
        if ch == "\n":
            line += 1
            column = 0
        else:
            column += 1
    return SourcePosition(line=line, column=column)


def byte_to_char_offset(source_code: str, byte_offset: int) -> int:
    """solc offsets count UTF-8 bytes; convert one to a character offset."""
    if source_code.isascii():
        return byte_offset
    return len(source_code.encode("utf-8")[:max(byte_offset, 0)].decode("utf-8", errors="ignore"))
