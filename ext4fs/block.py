"""Data blocks and the block device interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

#: Filesystem block size in bytes.
BLOCK_SIZE = 4096
#: Unit of the inode block counter, in bytes.
INODE_BLOCK_SIZE = 512


class AsBytes(Protocol):
    """An object with a fixed on-disk byte representation."""

    def to_bytes(self) -> bytes: ...


_T = TypeVar("_T")


@dataclass
class Block:
    """A filesystem block: its physical id and raw contents."""

    id: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BLOCK_SIZE))

    def __post_init__(self) -> None:
        self.data = bytearray(self.data)
        if len(self.data) != BLOCK_SIZE:
            raise ValueError(
                f"block data must be {BLOCK_SIZE} bytes, got {len(self.data)}"
            )

    def copy(self) -> Block:
        return Block(self.id, bytearray(self.data))

    def _check_range(self, offset: int, size: int) -> None:
        if offset < 0 or size < 0 or offset + size > len(self.data):
            raise IndexError(
                f"range [{offset}, {offset + size}) outside block of {len(self.data)} bytes"
            )

    def read_offset(self, offset: int, size: int) -> bytes:
        """Return ``size`` bytes starting at ``offset``."""
        self._check_range(offset, size)
        return bytes(self.data[offset : offset + size])

    def write_offset(self, offset: int, data: bytes) -> None:
        """Overwrite the block contents at ``offset`` with ``data``."""
        self._check_range(offset, len(data))
        self.data[offset : offset + len(data)] = data

    def read_offset_as(self, offset: int, cls: type[_T]) -> _T:
        """Decode an object of ``cls`` from the bytes starting at ``offset``."""
        if not 0 <= offset <= len(self.data):
            raise IndexError(f"offset {offset} outside block")
        return cls.from_bytes(bytes(self.data[offset:]))  # type: ignore[attr-defined]

    def write_offset_as(self, offset: int, value: AsBytes) -> None:
        """Encode ``value`` and write it at ``offset``."""
        self.write_offset(offset, value.to_bytes())


class BlockDevice(ABC):
    """A device that reads and writes whole blocks."""

    @abstractmethod
    def read_block(self, block_id: int) -> Block:
        """Read the block with the given physical id."""

    @abstractmethod
    def write_block(self, block: Block) -> None:
        """Write a block to the device at ``block.id``."""