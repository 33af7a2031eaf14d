"""Extent tree nodes: header, index entries and leaf extents.

Every node starts with an ``ExtentHeader``. An interior node (depth > 0)
is followed by ``ExtentIndex`` entries pointing at lower nodes. A leaf node
(depth 0) is followed by ``Extent`` entries pointing at data blocks. The
root node lives in the 60-byte ``i_block`` area of the inode. Every other
node fills a whole data block.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import ClassVar, NamedTuple

logger = logging.getLogger(__name__)

_HEADER = struct.Struct("<HHHHI")
_EXTENT = struct.Struct("<IHHI")
_INDEX = struct.Struct("<IIHH")

#: Size in bytes of a node header and of each entry that follows it.
HEADER_SIZE = _HEADER.size
ENTRY_SIZE = _EXTENT.size


def _need(data: bytes | memoryview, size: int, what: str) -> None:
    if len(data) < size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")


@dataclass
class ExtentHeader:
    """Header at the start of every extent tree node."""

    EXTENT_MAGIC: ClassVar[int] = 0xF30A
    SIZE: ClassVar[int] = HEADER_SIZE

    entries_count: int = 0
    max_entries_count: int = 0
    depth: int = 0
    generation: int = 0
    magic: int = EXTENT_MAGIC

    @classmethod
    def from_bytes(cls, data: bytes | memoryview) -> ExtentHeader:
        _need(data, cls.SIZE, "extent header")
        magic, entries, max_entries, depth, generation = _HEADER.unpack_from(data)
        return cls(entries, max_entries, depth, generation, magic)

    def to_bytes(self) -> bytes:
        return _HEADER.pack(
            self.magic,
            self.entries_count,
            self.max_entries_count,
            self.depth,
            self.generation,
        )


@dataclass
class ExtentIndex:
    """Interior node entry: the blocks from ``start_lblock`` on live under ``leaf``."""

    SIZE: ClassVar[int] = ENTRY_SIZE

    start_lblock: int = 0
    leaf: int = 0
    padding: int = 0

    @classmethod
    def from_bytes(cls, data: bytes | memoryview) -> ExtentIndex:
        _need(data, cls.SIZE, "extent index")
        first_block, leaf_lo, leaf_hi, padding = _INDEX.unpack_from(data)
        return cls(first_block, (leaf_hi << 32) | leaf_lo, padding)

    def to_bytes(self) -> bytes:
        return _INDEX.pack(
            self.start_lblock & 0xFFFFFFFF,
            self.leaf & 0xFFFFFFFF,
            (self.leaf >> 32) & 0xFFFF,
            self.padding,
        )


@dataclass
class Extent:
    """Leaf entry mapping a run of logical blocks to physical blocks.

    ``raw_len`` is the on-disk length field: values above 32768 mark an
    unwritten extent whose real length is ``raw_len - 32768``.
    """

    INIT_MAX_LEN: ClassVar[int] = 32768
    SIZE: ClassVar[int] = ENTRY_SIZE

    start_lblock: int = 0
    start_pblock: int = 0
    raw_len: int = 0

    @classmethod
    def from_bytes(cls, data: bytes | memoryview) -> Extent:
        _need(data, cls.SIZE, "extent")
        first_block, raw_len, start_hi, start_lo = _EXTENT.unpack_from(data)
        return cls(first_block, (start_hi << 32) | start_lo, raw_len)

    def to_bytes(self) -> bytes:
        return _EXTENT.pack(
            self.start_lblock & 0xFFFFFFFF,
            self.raw_len & 0xFFFF,
            (self.start_pblock >> 32) & 0xFFFF,
            self.start_pblock & 0xFFFFFFFF,
        )

    @property
    def block_count(self) -> int:
        """Number of blocks actually covered by the extent."""
        if self.raw_len <= self.INIT_MAX_LEN:
            return self.raw_len
        return self.raw_len - self.INIT_MAX_LEN

    @block_count.setter
    def block_count(self, count: int) -> None:
        self.raw_len = count & 0xFFFF

    def is_unwritten(self) -> bool:
        return self.raw_len > self.INIT_MAX_LEN

    def mark_unwritten(self) -> None:
        self.raw_len |= self.INIT_MAX_LEN

    @staticmethod
    def can_append(ex1: Extent, ex2: Extent) -> bool:
        """Check whether ``ex2`` directly continues ``ex1`` and can be merged."""
        total = ex1.block_count + ex2.block_count
        if ex1.start_pblock + ex1.block_count != ex2.start_pblock:
            return False
        if ex1.is_unwritten() and total > 65535:
            return False
        if total > Extent.INIT_MAX_LEN:
            return False
        return ex1.start_lblock + ex1.block_count == ex2.start_lblock


class SearchResult(NamedTuple):
    """Outcome of a leaf search: the covering entry, or where to insert."""

    found: bool
    index: int


class ExtentNode:
    """A view of an extent tree node over a byte buffer.

    The buffer is the 60-byte inode root or a whole data block. Writes go
    straight into it, so it must be writable for the mutating methods.
    """

    def __init__(self, raw_data: bytearray | memoryview | bytes) -> None:
        view = memoryview(raw_data)
        _need(view, HEADER_SIZE, "extent node")
        self._raw = view

    @property
    def capacity(self) -> int:
        """Number of entry slots that fit in the buffer."""
        return (len(self._raw) - HEADER_SIZE) // ENTRY_SIZE

    @property
    def header(self) -> ExtentHeader:
        return ExtentHeader.from_bytes(self._raw[:HEADER_SIZE])

    @header.setter
    def header(self, header: ExtentHeader) -> None:
        self._raw[:HEADER_SIZE] = header.to_bytes()

    def _offset(self, pos: int) -> int:
        if not 0 <= pos < self.capacity:
            raise IndexError(f"entry {pos} outside node of {self.capacity} slots")
        return HEADER_SIZE + pos * ENTRY_SIZE

    def _slot(self, pos: int) -> memoryview:
        offset = self._offset(pos)
        return self._raw[offset : offset + ENTRY_SIZE]

    def _move(self, start: int, end: int, dest: int) -> None:
        """Copy entries ``[start, end)`` so that they begin at ``dest``."""
        if start >= end:
            return
        self._offset(start)
        self._offset(end - 1)
        self._offset(dest)
        self._offset(dest + end - start - 1)
        src = HEADER_SIZE + start * ENTRY_SIZE
        dst = HEADER_SIZE + dest * ENTRY_SIZE
        length = (end - start) * ENTRY_SIZE
        chunk = bytes(self._raw[src : src + length])
        self._raw[dst : dst + length] = chunk

    def _bump_count(self, delta: int) -> None:
        header = self.header
        header.entries_count += delta
        self.header = header

    def extent_at(self, pos: int) -> Extent:
        return Extent.from_bytes(self._slot(pos))

    def set_extent_at(self, pos: int, extent: Extent) -> None:
        offset = self._offset(pos)
        self._raw[offset : offset + ENTRY_SIZE] = extent.to_bytes()

    def extent_index_at(self, pos: int) -> ExtentIndex:
        return ExtentIndex.from_bytes(self._slot(pos))

    def set_extent_index_at(self, pos: int, extent_index: ExtentIndex) -> None:
        offset = self._offset(pos)
        self._raw[offset : offset + ENTRY_SIZE] = extent_index.to_bytes()

    def search_extent(self, lblock: int) -> SearchResult:
        """Find the leaf extent covering ``lblock``.

        When found, ``index`` is that extent. Otherwise ``index`` is where a
        new extent should go; an unwritten extent covering ``lblock`` counts
        as not found, with its own position returned.
        """
        count = self.header.entries_count
        i = 0
        while i < count:
            extent = self.extent_at(i)
            if extent.start_lblock > lblock:
                break
            if extent.start_lblock + extent.block_count > lblock:
                return SearchResult(not extent.is_unwritten(), i)
            i += 1
        return SearchResult(False, i)

    def search_extent_index(self, lblock: int) -> int:
        """Return the position of the index entry whose subtree covers ``lblock``."""
        count = self.header.entries_count
        i = 0
        while i < count and self.extent_index_at(i).start_lblock <= lblock:
            i += 1
        if i == 0:
            raise LookupError(f"no extent index covers logical block {lblock}")
        return i - 1

    def init(self, depth: int, generation: int) -> None:
        """Write an empty header sized for this buffer."""
        self.header = ExtentHeader(0, self.capacity, depth, generation)

    def insert_extent(self, extent: Extent, pos: int) -> list[Extent]:
        """Insert ``extent`` at ``pos`` in this leaf node.

        Return an empty list when it fits. When the node is full of written
        extents, it keeps the left part and the extents of the right part,
        the new one included if it falls there, are returned in order for a
        new node.
        """
        header = self.header
        count = header.entries_count
        if pos < self.capacity and self.extent_at(pos).is_unwritten():
            self.set_extent_at(pos, extent)
            if pos >= count:
                self._bump_count(1)
            return []
        if count < header.max_entries_count:
            self._move(pos, count, pos + 1)
            self.set_extent_at(pos, extent)
            self._bump_count(1)
            return []
        unwritten = next(
            (i for i in range(count) if self.extent_at(i).is_unwritten()), None
        )
        if unwritten is not None:
            # Reuse the unwritten slot by shifting the entries between it and pos.
            if unwritten < pos:
                self._move(unwritten + 1, pos, unwritten)
                self.set_extent_at(pos - 1, extent)
            else:
                self._move(pos, unwritten, pos + 1)
                self.set_extent_at(pos, extent)
            return []
        split: list[Extent] = []
        mid = count * 2 // 3
        for i in range(mid, count):
            if i == pos:
                split.append(extent)
            split.append(self.extent_at(i))
        if pos == count:
            split.append(extent)
        header.entries_count = mid
        self.header = header
        if pos < mid:
            self.insert_extent(extent, pos)
        return split

    def insert_extent_index(self, extent_index: ExtentIndex, pos: int) -> list[ExtentIndex]:
        """Insert ``extent_index`` at ``pos`` in this interior node.

        Return an empty list when it fits, or the right part of a split
        node, as for ``insert_extent``.
        """
        header = self.header
        count = header.entries_count
        if count < header.max_entries_count:
            self._move(pos, count, pos + 1)
            self.set_extent_index_at(pos, extent_index)
            self._bump_count(1)
            return []
        split: list[ExtentIndex] = []
        mid = count * 2 // 3
        for i in range(mid, count):
            if i == pos:
                split.append(extent_index)
            split.append(self.extent_index_at(i))
        if pos == count:
            split.append(extent_index)
        header.entries_count = mid
        self.header = header
        if pos < mid:
            self.insert_extent_index(extent_index, pos)
        return split

    def log_contents(self) -> None:
        """Write the header and every entry to the debug log."""
        header = self.header
        logger.debug("Extent header %r", header)
        for i in range(header.entries_count):
            if header.depth == 0:
                ext = self.extent_at(i)
                logger.debug(
                    "extent[%d] start_lblock=%d, start_pblock=%d, len=%d",
                    i,
                    ext.start_lblock,
                    ext.start_pblock,
                    ext.block_count,
                )
            else:
                idx = self.extent_index_at(i)
                logger.debug(
                    "extent_index[%d] start_lblock=%d, leaf=%d",
                    i,
                    idx.start_lblock,
                    idx.leaf,
                )