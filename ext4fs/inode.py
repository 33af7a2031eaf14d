"""Inodes, inode modes and file attributes.

The inode table is a linear array of inodes. Inode ``n`` lives in group
``(n - 1) // inodes_per_group`` at index ``(n - 1) % inodes_per_group``.
There is no inode 0. Only the large (256-byte record) inode layout is
supported.
"""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass, field
from enum import IntFlag
from typing import ClassVar

from .block import BLOCK_SIZE, INODE_BLOCK_SIZE
from .crc import CRC32_INIT, crc32
from .extent import ExtentNode
from .filetype import FileType

_FORMAT = struct.Struct("<HHIIIIIHHIII60sIIII6HHHIIIIIII")

#: Size of the ``i_block`` area holding the extent tree root.
I_BLOCK_SIZE = 60
#: Size of the original ext2 inode, which ``extra_isize`` is counted beyond.
GOOD_OLD_INODE_SIZE = 128


class InodeMode(IntFlag):
    """File type and permission bits of an inode."""

    PERM_MASK = 0xFFF
    USER_READ = 0x100
    USER_WRITE = 0x80
    USER_EXEC = 0x40
    GROUP_READ = 0x20
    GROUP_WRITE = 0x10
    GROUP_EXEC = 0x8
    OTHER_READ = 0x4
    OTHER_WRITE = 0x2
    OTHER_EXEC = 0x1
    TYPE_MASK = 0xF000
    FIFO = 0x1000
    CHARDEV = 0x2000
    DIRECTORY = 0x4000
    BLOCKDEV = 0x6000
    FILE = 0x8000
    SOFTLINK = 0xA000
    SOCKET = 0xC000
    ALL_RWX = 0o777
    ALL_RW = 0o666

    @classmethod
    def from_type_and_perm(cls, file_type: FileType, perm: int) -> InodeMode:
        """Build a mode from a file type and permission bits.

        Types without a mode encoding become regular files.
        """
        type_bits = _TYPE_TO_MODE.get(file_type, 0x8000)
        return cls(type_bits | (int(perm) & 0xFFF))

    def perm(self) -> InodeMode:
        """The permission bits alone."""
        return InodeMode(int(self) & 0xFFF)

    def file_type(self) -> FileType:
        """The file type encoded in the type bits."""
        return _MODE_TO_TYPE.get(int(self) & 0xF000, FileType.UNKNOWN)


_TYPE_TO_MODE: dict[FileType, int] = {
    FileType.REGULAR_FILE: 0x8000,
    FileType.DIRECTORY: 0x4000,
    FileType.CHARACTER_DEV: 0x2000,
    FileType.BLOCK_DEV: 0x6000,
    FileType.FIFO: 0x1000,
    FileType.SOCKET: 0xC000,
    FileType.SYM_LINK: 0xA000,
}
_MODE_TO_TYPE: dict[int, FileType] = {v: k for k, v in _TYPE_TO_MODE.items()}


@dataclass
class Inode:
    """An on-disk inode, field for field.

    Fields split into low and high halves on disk are exposed combined
    through properties (``mode``, ``uid``, ``gid``, ``size``,
    ``block_count``, ``xattr_block``).
    """

    SIZE: ClassVar[int] = _FORMAT.size
    FLAG_EXTENTS: ClassVar[int] = 0x00080000

    raw_mode: int = 0
    uid_lo: int = 0
    size_lo: int = 0
    atime: int = 0
    ctime: int = 0
    mtime: int = 0
    dtime: int = 0
    gid_lo: int = 0
    link_count: int = 0
    blocks_lo: int = 0
    flags: int = 0
    osd1: int = 0
    block: bytearray = field(default_factory=lambda: bytearray(I_BLOCK_SIZE))
    generation: int = 0
    file_acl: int = 0
    size_hi: int = 0
    faddr: int = 0
    blocks_hi: int = 0
    file_acl_hi: int = 0
    uid_hi: int = 0
    gid_hi: int = 0
    checksum_lo: int = 0
    osd2_reserved: int = 0
    extra_isize: int = _FORMAT.size - GOOD_OLD_INODE_SIZE
    checksum_hi: int = 0
    ctime_extra: int = 0
    mtime_extra: int = 0
    atime_extra: int = 0
    crtime: int = 0
    crtime_extra: int = 0
    version_hi: int = 0
    projid: int = 0

    def __post_init__(self) -> None:
        self.block = bytearray(self.block)
        if len(self.block) != I_BLOCK_SIZE:
            raise ValueError(
                f"i_block must be {I_BLOCK_SIZE} bytes, got {len(self.block)}"
            )

    @classmethod
    def from_bytes(cls, data: bytes) -> Inode:
        """Decode an inode from the first ``SIZE`` bytes of ``data``."""
        if len(data) < cls.SIZE:
            raise ValueError(f"inode needs {cls.SIZE} bytes, got {len(data)}")
        return cls(*_FORMAT.unpack_from(data))

    def to_bytes(self) -> bytes:
        """Encode the inode in its on-disk form."""
        values = list(astuple(self))
        values[12] = bytes(self.block)
        return _FORMAT.pack(*values)

    @property
    def mode(self) -> InodeMode:
        return InodeMode(self.raw_mode)

    @mode.setter
    def mode(self, mode: int) -> None:
        self.raw_mode = int(mode) & 0xFFFF

    @property
    def file_type(self) -> FileType:
        return self.mode.file_type()

    @property
    def perm(self) -> InodeMode:
        return self.mode.perm()

    def is_file(self) -> bool:
        return self.file_type == FileType.REGULAR_FILE

    def is_dir(self) -> bool:
        return self.file_type == FileType.DIRECTORY

    def is_softlink(self) -> bool:
        return self.file_type == FileType.SYM_LINK

    @property
    def uid(self) -> int:
        return self.uid_lo | (self.uid_hi << 16)

    @uid.setter
    def uid(self, uid: int) -> None:
        self.uid_lo = uid & 0xFFFF
        self.uid_hi = (uid >> 16) & 0xFFFF

    @property
    def gid(self) -> int:
        return self.gid_lo | (self.gid_hi << 16)

    @gid.setter
    def gid(self, gid: int) -> None:
        self.gid_lo = gid & 0xFFFF
        self.gid_hi = (gid >> 16) & 0xFFFF

    @property
    def size(self) -> int:
        return self.size_lo | (self.size_hi << 32)

    @size.setter
    def size(self, size: int) -> None:
        self.size_lo = size & 0xFFFFFFFF
        self.size_hi = (size >> 32) & 0xFFFFFFFF

    @property
    def block_count(self) -> int:
        """Number of 512-byte units used, not filesystem blocks."""
        return self.blocks_lo | (self.blocks_hi << 32)

    @block_count.setter
    def block_count(self, count: int) -> None:
        self.blocks_lo = count & 0xFFFFFFFF
        self.blocks_hi = (count >> 32) & 0xFFFF

    @property
    def fs_block_count(self) -> int:
        """Number of filesystem blocks used."""
        return self.block_count * INODE_BLOCK_SIZE // BLOCK_SIZE

    @fs_block_count.setter
    def fs_block_count(self, count: int) -> None:
        self.block_count = count * BLOCK_SIZE // INODE_BLOCK_SIZE

    @property
    def xattr_block(self) -> int:
        return (self.file_acl_hi << 32) | self.file_acl

    @xattr_block.setter
    def xattr_block(self, block: int) -> None:
        self.file_acl = block & 0xFFFFFFFF
        self.file_acl_hi = (block >> 32) & 0xFFFF

    def extent_root(self) -> ExtentNode:
        """The extent tree root node, a live view of ``i_block``."""
        return ExtentNode(self.block)

    def extent_init(self) -> None:
        """Mark the inode as extent mapped and write an empty root node."""
        self.flags |= self.FLAG_EXTENTS
        self.extent_root().init(0, 0)


@dataclass
class InodeRef:
    """An inode together with its inode number."""

    id: int
    inode: Inode

    def set_checksum(self, uuid: bytes) -> None:
        """Compute the inode checksum and store it in the inode."""
        checksum = crc32(CRC32_INIT, uuid)
        checksum = crc32(checksum, self.id.to_bytes(4, "little"))
        checksum = crc32(checksum, self.inode.generation.to_bytes(4, "little"))
        checksum = crc32(checksum, self.inode.to_bytes())
        self.inode.checksum_lo = checksum & 0xFFFF
        self.inode.checksum_hi = (checksum >> 16) & 0xFFFF


@dataclass
class FileAttr:
    """Attributes of a file as reported to callers."""

    ino: int
    size: int
    atime: int
    mtime: int
    ctime: int
    crtime: int
    blocks: int
    ftype: FileType
    perm: InodeMode
    links: int
    uid: int
    gid: int