"""Directory blocks: linear arrays of directory entries."""

from __future__ import annotations

import logging
import struct
from collections.abc import Iterator
from dataclasses import dataclass
from typing import ClassVar

from .block import BLOCK_SIZE, Block
from .crc import CRC32_INIT, crc32
from .filetype import FileType

logger = logging.getLogger(__name__)

_ENTRY_HEADER = struct.Struct("<IHBB")
_TAIL = struct.Struct("<IHBBI")

#: Longest name a directory entry can hold, in bytes.
MAX_NAME_LEN = 255


def _file_type(code: int) -> FileType:
    try:
        return FileType(code)
    except ValueError:
        return FileType.UNKNOWN


@dataclass
class DirEntry:
    """A directory entry: inode number, record length, name and type."""

    inode: int
    rec_len: int
    name_bytes: bytes = b""
    file_type: FileType = FileType.UNKNOWN

    def __post_init__(self) -> None:
        self.name_bytes = bytes(self.name_bytes)
        if len(self.name_bytes) > MAX_NAME_LEN:
            raise ValueError(
                f"name of {len(self.name_bytes)} bytes exceeds {MAX_NAME_LEN}"
            )

    @classmethod
    def from_bytes(cls, data: bytes) -> DirEntry:
        """Decode an entry; unknown type codes read as ``FileType.UNKNOWN``."""
        if len(data) < _ENTRY_HEADER.size:
            raise ValueError("not enough data for a directory entry")
        inode, rec_len, name_len, code = _ENTRY_HEADER.unpack_from(data)
        start = _ENTRY_HEADER.size
        name = bytes(data[start : start + name_len])
        if len(name) < name_len:
            raise ValueError("directory entry name runs past the data")
        return cls(inode, rec_len, name, _file_type(code))

    def to_bytes(self) -> bytes:
        """Encode the header and name, without alignment padding."""
        header = _ENTRY_HEADER.pack(
            self.inode, self.rec_len, len(self.name_bytes), int(self.file_type)
        )
        return header + self.name_bytes

    @property
    def name(self) -> str:
        return self.name_bytes.decode("utf-8", errors="surrogateescape")

    @staticmethod
    def required_size(name_len: int) -> int:
        """Bytes needed for an entry with a name of ``name_len``, 4-aligned."""
        return (_ENTRY_HEADER.size + name_len + 3) // 4 * 4

    def used_size(self) -> int:
        return self.required_size(len(self.name_bytes))

    def compare_name(self, name: str) -> bool:
        """Check whether the stored name, zero padded, starts with ``name``."""
        wanted = name.encode("utf-8")
        padded = self.name_bytes.ljust(MAX_NAME_LEN, b"\0")
        return padded[: len(wanted)] == wanted

    def unused(self) -> bool:
        return self.inode == 0

    def set_unused(self) -> None:
        self.inode = 0


@dataclass
class DirEntryTail:
    """The checksum record at the end of a directory block."""

    SIZE: ClassVar[int] = _TAIL.size

    reserved_zero1: int = 0
    rec_len: int = 12
    reserved_zero2: int = 0
    reserved_ft: int = 0xDE
    checksum: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> DirEntryTail:
        if len(data) < cls.SIZE:
            raise ValueError("not enough data for a directory entry tail")
        return cls(*_TAIL.unpack_from(data))

    def to_bytes(self) -> bytes:
        return _TAIL.pack(
            self.reserved_zero1,
            self.rec_len,
            self.reserved_zero2,
            self.reserved_ft,
            self.checksum,
        )

    def set_checksum(self, uuid: bytes, ino: int, ino_gen: int, block: Block) -> None:
        csum = crc32(CRC32_INIT, uuid)
        csum = crc32(csum, ino.to_bytes(4, "little"))
        csum = crc32(csum, ino_gen.to_bytes(4, "little"))
        self.checksum = crc32(csum, block.data[: self.SIZE])


_TAIL_OFFSET = BLOCK_SIZE - DirEntryTail.SIZE


class DirBlock:
    """A data block holding a linear array of directory entries."""

    def __init__(self, block: Block) -> None:
        self._block = block

    @property
    def block(self) -> Block:
        return self._block

    def _entry_at(self, offset: int) -> DirEntry:
        return self._block.read_offset_as(offset, DirEntry)

    def _entries(self) -> Iterator[tuple[int, DirEntry]]:
        offset = 0
        while offset < BLOCK_SIZE:
            entry = self._entry_at(offset)
            yield offset, entry
            if entry.rec_len == 0:
                raise ValueError(f"directory entry at {offset} has zero length")
            offset += entry.rec_len

    def init(self) -> None:
        """Write one empty unused entry spanning the block, then the tail."""
        entry = DirEntry(0, _TAIL_OFFSET, b"", FileType.UNKNOWN)
        self._block.write_offset_as(0, entry)
        self._block.write_offset_as(_TAIL_OFFSET, DirEntryTail())

    def get(self, name: str) -> int | None:
        """Return the inode number of the entry called ``name``, or None."""
        for _, entry in self._entries():
            if not entry.unused() and entry.compare_name(name):
                return entry.inode
        return None

    def list(self) -> list[DirEntry]:
        """Return every entry in use, in block order."""
        entries = []
        for _, entry in self._entries():
            if not entry.unused():
                logger.debug("Dir entry: %r %d", entry.name, entry.inode)
                entries.append(entry)
        return entries

    def insert(self, name: str, inode: int, file_type: FileType) -> bool:
        """Add an entry by splitting one with enough slack.

        Return False when no entry has room for it.
        """
        name_bytes = name.encode("utf-8")
        if len(name_bytes) > MAX_NAME_LEN:
            raise ValueError(f"name of {len(name_bytes)} bytes exceeds {MAX_NAME_LEN}")
        required = DirEntry.required_size(len(name_bytes))
        for offset, entry in self._entries():
            used = entry.used_size()
            free = entry.rec_len - used
            if free < required:
                continue
            entry.rec_len = used
            self._block.write_offset_as(offset, entry)
            new_entry = DirEntry(inode, free, name_bytes, file_type)
            self._block.write_offset_as(offset + used, new_entry)
            return True
        return False

    def remove(self, name: str) -> bool:
        """Mark the entry called ``name`` unused; False if there is none."""
        for offset, entry in self._entries():
            if not entry.unused() and entry.compare_name(name):
                entry.set_unused()
                self._block.write_offset_as(offset, entry)
                return True
        return False

    def set_checksum(self, uuid: bytes, ino: int, ino_gen: int) -> None:
        """Compute the block checksum and store it in the tail."""
        tail = self._block.read_offset_as(_TAIL_OFFSET, DirEntryTail)
        tail.set_checksum(uuid, ino, ino_gen, self._block)
        self._block.write_offset_as(_TAIL_OFFSET, tail)