"""Block group descriptors.

A block group is laid out as: super block, group descriptors, reserved GDT
blocks, block bitmap, inode bitmap, inode table and data blocks. Only the
64-byte descriptor format is supported.
"""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass
from typing import ClassVar

from .bitmap import Bitmap
from .crc import CRC32_INIT, crc32

_FORMAT = struct.Struct("<IIIHHHHIHHHHIIIHHHHIHHI")


@dataclass
class BlockGroupDesc:
    """The 64-byte block group descriptor, field for field as on disk."""

    SIZE: ClassVar[int] = _FORMAT.size

    block_bitmap_lo: int = 0
    inode_bitmap_lo: int = 0
    inode_table_first_block_lo: int = 0
    free_blocks_count_lo: int = 0
    free_inodes_count_lo: int = 0
    used_dirs_count_lo: int = 0
    flags: int = 0
    exclude_bitmap_lo: int = 0
    block_bitmap_csum_lo: int = 0
    inode_bitmap_csum_lo: int = 0
    itable_unused_lo: int = 0
    checksum: int = 0
    block_bitmap_hi: int = 0
    inode_bitmap_hi: int = 0
    inode_table_first_block_hi: int = 0
    free_blocks_count_hi: int = 0
    free_inodes_count_hi: int = 0
    used_dirs_count_hi: int = 0
    itable_unused_hi: int = 0
    exclude_bitmap_hi: int = 0
    block_bitmap_csum_hi: int = 0
    inode_bitmap_csum_hi: int = 0
    reserved: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> BlockGroupDesc:
        """Decode a descriptor from the first 64 bytes of ``data``."""
        if len(data) < cls.SIZE:
            raise ValueError(
                f"block group descriptor needs {cls.SIZE} bytes, got {len(data)}"
            )
        return cls(*_FORMAT.unpack_from(data))

    def to_bytes(self) -> bytes:
        """Encode the descriptor in its on-disk form."""
        return _FORMAT.pack(*astuple(self))

    @property
    def block_bitmap_block(self) -> int:
        return (self.block_bitmap_hi << 32) | self.block_bitmap_lo

    @property
    def inode_bitmap_block(self) -> int:
        return (self.inode_bitmap_hi << 32) | self.inode_bitmap_lo

    @property
    def inode_table_first_block(self) -> int:
        return (self.inode_table_first_block_hi << 32) | self.inode_table_first_block_lo

    @property
    def itable_unused(self) -> int:
        return (self.itable_unused_hi << 16) | self.itable_unused_lo

    @itable_unused.setter
    def itable_unused(self, count: int) -> None:
        self.itable_unused_lo = count & 0xFFFF
        self.itable_unused_hi = (count >> 16) & 0xFFFF

    @property
    def used_dirs_count(self) -> int:
        return (self.used_dirs_count_hi << 16) | self.used_dirs_count_lo

    @used_dirs_count.setter
    def used_dirs_count(self, count: int) -> None:
        self.used_dirs_count_lo = count & 0xFFFF
        self.used_dirs_count_hi = (count >> 16) & 0xFFFF

    @property
    def free_inodes_count(self) -> int:
        return (self.free_inodes_count_hi << 16) | self.free_inodes_count_lo

    @free_inodes_count.setter
    def free_inodes_count(self, count: int) -> None:
        self.free_inodes_count_lo = count & 0xFFFF
        self.free_inodes_count_hi = (count >> 16) & 0xFFFF

    @property
    def free_blocks_count(self) -> int:
        # The high half is combined at bit 32, as the writer below stores it.
        return (self.free_blocks_count_hi << 32) | self.free_blocks_count_lo

    @free_blocks_count.setter
    def free_blocks_count(self, count: int) -> None:
        self.free_blocks_count_lo = count & 0xFFFF
        self.free_blocks_count_hi = (count >> 32) & 0xFFFF

    @staticmethod
    def _bitmap_csum(uuid: bytes, bitmap: Bitmap) -> int:
        return crc32(crc32(CRC32_INIT, uuid), bitmap.as_bytes())

    def set_inode_bitmap_csum(self, uuid: bytes, bitmap: Bitmap) -> None:
        """Store the checksum of an inode bitmap."""
        csum = self._bitmap_csum(uuid, bitmap)
        self.inode_bitmap_csum_lo = csum & 0xFFFF
        self.block_bitmap_csum_hi = csum >> 16

    def set_block_bitmap_csum(self, uuid: bytes, bitmap: Bitmap) -> None:
        """Store the checksum of a block bitmap."""
        csum = self._bitmap_csum(uuid, bitmap)
        self.block_bitmap_csum_lo = csum & 0xFFFF
        self.block_bitmap_csum_hi = csum >> 16


@dataclass
class BlockGroupRef:
    """A block group descriptor together with its group id."""

    id: int
    desc: BlockGroupDesc

    def set_checksum(self, uuid: bytes) -> None:
        """Compute and store the descriptor checksum."""
        checksum = crc32(CRC32_INIT, uuid)
        checksum = crc32(checksum, self.id.to_bytes(4, "little"))
        checksum = crc32(checksum, self.desc.to_bytes())
        self.desc.checksum = checksum & 0xFFFF