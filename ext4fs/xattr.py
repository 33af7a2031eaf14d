"""Extended attribute blocks.

Extended attributes live in a separate data block referenced by the
inode's ``file_acl`` field. The block starts with an ``XattrHeader``,
followed by a table of ``XattrEntry`` records kept sorted by name. Values
are stored from the end of the block, growing towards the entry table.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar

from .block import BLOCK_SIZE, Block

_HEADER = struct.Struct("<IIIII3I")
_ENTRY_HEADER = struct.Struct("<BBHIII")

#: Longest attribute name an entry can hold once its prefix is removed.
MAX_NAME_LEN = 255

_PREFIXES: tuple[tuple[str, int], ...] = (
    ("user.", 1),
    ("system.posix_acl_access.", 2),
    ("system.posix_acl_default.", 3),
    ("trusted.", 4),
    ("security.", 6),
    ("system.", 7),
)
_INDEX_TO_PREFIX: dict[int, str] = {index: prefix for prefix, index in _PREFIXES}


def _match_name(name: str) -> tuple[int, bytes]:
    """Split a full attribute name into its name index and the remainder."""
    for prefix, index in _PREFIXES:
        if name.startswith(prefix):
            return index, name[len(prefix) :].encode("utf-8")
    return 0, name.encode("utf-8")


def _aligned_entry_size(name_len: int) -> int:
    return (_ENTRY_HEADER.size + name_len + 3) // 4 * 4


def _cmp(a: object, b: object) -> int:
    return (a > b) - (a < b)  # type: ignore[operator]


@dataclass
class XattrHeader:
    """The header at the start of an extended attribute block."""

    XATTR_MAGIC: ClassVar[int] = 0xEA020000
    SIZE: ClassVar[int] = _HEADER.size

    magic: int = XATTR_MAGIC
    refcount: int = 1
    blocks: int = 1
    hash: int = 0
    checksum: int = 0
    reserved: tuple[int, int, int] = field(default=(0, 0, 0))

    def to_bytes(self) -> bytes:
        return _HEADER.pack(
            self.magic,
            self.refcount,
            self.blocks,
            self.hash,
            self.checksum,
            *self.reserved,
        )


@dataclass
class XattrEntry:
    """An entry of the attribute table.

    ``name_bytes`` holds the name with its well-known prefix removed; the
    prefix is recorded as ``name_index``.
    """

    HEADER_SIZE: ClassVar[int] = _ENTRY_HEADER.size

    name_index: int
    name_bytes: bytes
    value_offset: int
    value_size: int
    value_inum: int = 0
    hash: int = 0

    def __post_init__(self) -> None:
        self.name_bytes = bytes(self.name_bytes)
        if len(self.name_bytes) > MAX_NAME_LEN:
            raise ValueError(
                f"attribute name of {len(self.name_bytes)} bytes exceeds {MAX_NAME_LEN}"
            )

    @classmethod
    def from_bytes(cls, data: bytes) -> XattrEntry:
        if len(data) < cls.HEADER_SIZE:
            raise ValueError("not enough data for an attribute entry")
        name_len, name_index, value_offset, value_inum, value_size, hash_ = (
            _ENTRY_HEADER.unpack_from(data)
        )
        start = cls.HEADER_SIZE
        name = bytes(data[start : start + name_len])
        if len(name) < name_len:
            raise ValueError("attribute entry name runs past the data")
        return cls(name_index, name, value_offset, value_size, value_inum, hash_)

    def to_bytes(self) -> bytes:
        """Encode the entry header and name, without alignment padding."""
        header = _ENTRY_HEADER.pack(
            len(self.name_bytes),
            self.name_index,
            self.value_offset,
            self.value_inum,
            self.value_size,
            self.hash,
        )
        return header + self.name_bytes

    @property
    def name(self) -> str:
        """The full attribute name, prefix included."""
        prefix = _INDEX_TO_PREFIX.get(self.name_index, "")
        return prefix + self.name_bytes.decode("utf-8", errors="surrogateescape")

    @staticmethod
    def required_size(name: str) -> int:
        """Bytes needed for an entry called ``name``, 4-byte aligned."""
        _, stripped = _match_name(name)
        return _aligned_entry_size(len(stripped))

    def used_size(self) -> int:
        return _aligned_entry_size(len(self.name_bytes))

    def compare_name(self, name: str) -> int:
        """Order this entry against ``name``: negative, zero or positive.

        Entries sort by name index, then name length, then name bytes.
        """
        index, stripped = _match_name(name)
        return (
            _cmp(self.name_index, index)
            or _cmp(len(self.name_bytes), len(stripped))
            or _cmp(self.name_bytes, stripped)
        )


class XattrBlock:
    """A data block holding the extended attributes of an inode."""

    def __init__(self, block: Block) -> None:
        self._block = block

    @property
    def block(self) -> Block:
        return self._block

    def _entries(self):
        """Yield ``(offset, entry)`` for each entry of the table."""
        data = self._block.data
        offset = XattrHeader.SIZE
        while offset < BLOCK_SIZE and data[offset] != 0:
            entry = self._block.read_offset_as(offset, XattrEntry)
            yield offset, entry
            offset += entry.used_size()

    def _table_end(self) -> tuple[int, int]:
        """Return the end of the entry table and the lowest value offset."""
        p_entry = XattrHeader.SIZE
        p_value = BLOCK_SIZE
        for offset, entry in self._entries():
            p_entry = offset + entry.used_size()
            p_value = entry.value_offset
        return p_entry, p_value

    def init(self) -> None:
        """Write a fresh header at the start of the block."""
        self._block.write_offset_as(0, XattrHeader())

    def get(self, name: str) -> bytes | None:
        """Return the value of attribute ``name``, or None."""
        for _, entry in self._entries():
            if entry.compare_name(name) == 0:
                start = entry.value_offset
                return bytes(self._block.data[start : start + entry.value_size])
        return None

    def list(self) -> list[str]:
        """Return the names of all attributes, in table order."""
        return [entry.name for _, entry in self._entries()]

    def insert(self, name: str, value: bytes) -> bool:
        """Insert an attribute, keeping the table sorted.

        Return False when the block has no room for it.
        """
        index, stripped = _match_name(name)
        if len(stripped) > MAX_NAME_LEN:
            raise ValueError(
                f"attribute name of {len(stripped)} bytes exceeds {MAX_NAME_LEN}"
            )
        value = bytes(value)
        data = self._block.data

        p_entry = XattrHeader.SIZE
        p_value = BLOCK_SIZE
        ins_pos: tuple[int, int] | None = None
        for offset, entry in self._entries():
            if ins_pos is None and entry.compare_name(name) > 0:
                ins_pos = (offset, p_value)
            p_value = entry.value_offset
            p_entry = offset + entry.used_size()
        ins_entry_pos, ins_value_pos = ins_pos if ins_pos else (p_entry, p_value)

        entry_size = _aligned_entry_size(len(stripped))
        value_size = len(value)
        # One byte is kept free so that the table stays terminated.
        if p_value - p_entry < entry_size + value_size + 1:
            return False

        # Shift the following entries up and their values down.
        data[ins_entry_pos + entry_size : p_entry + entry_size] = data[
            ins_entry_pos:p_entry
        ]
        data[ins_entry_pos : ins_entry_pos + entry_size] = bytes(entry_size)
        data[p_value - value_size : ins_value_pos - value_size] = data[
            p_value:ins_value_pos
        ]
        data[ins_value_pos - value_size : ins_value_pos] = bytes(value_size)

        moved = ins_entry_pos + entry_size
        while moved < p_entry + entry_size:
            entry = self._block.read_offset_as(moved, XattrEntry)
            entry.value_offset -= value_size
            self._block.write_offset_as(moved, entry)
            moved += entry.used_size()

        new_entry = XattrEntry(index, stripped, ins_value_pos - value_size, value_size)
        self._block.write_offset_as(ins_entry_pos, new_entry)
        self._block.write_offset(ins_value_pos - value_size, value)
        return True

    def remove(self, name: str) -> bool:
        """Remove attribute ``name``; False if there is none."""
        data = self._block.data
        target: XattrEntry | None = None
        rem_entry_pos = 0
        for offset, entry in self._entries():
            if entry.compare_name(name) == 0:
                target = entry
                rem_entry_pos = offset
                break
        if target is None:
            return False
        p_entry, p_value = self._table_end()

        rem_entry_size = target.used_size()
        rem_value_pos = target.value_offset
        rem_value_size = target.value_size

        # Shift the following entries down and their values up.
        data[rem_entry_pos : p_entry - rem_entry_size] = data[
            rem_entry_pos + rem_entry_size : p_entry
        ]
        data[p_entry - rem_entry_size : p_entry] = bytes(rem_entry_size)
        data[p_value + rem_value_size : rem_value_pos + rem_value_size] = data[
            p_value:rem_value_pos
        ]
        data[p_value : p_value + rem_value_size] = bytes(rem_value_size)

        moved = rem_entry_pos
        while moved < p_entry - rem_entry_size:
            entry = self._block.read_offset_as(moved, XattrEntry)
            entry.value_offset += rem_value_size
            self._block.write_offset_as(moved, entry)
            moved += entry.used_size()
        return True