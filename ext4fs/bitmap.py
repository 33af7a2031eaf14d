"""Bit map view over a mutable byte buffer."""

from __future__ import annotations


class Bitmap:
    """A view of the first ``nbits`` bits of a writable byte buffer.

    Changes are made in place in the underlying buffer.
    """

    def __init__(self, data: bytearray | memoryview, nbits: int) -> None:
        nbytes = (nbits + 7) // 8
        if nbytes > len(data):
            raise ValueError(
                f"buffer of {len(data)} bytes cannot hold {nbits} bits"
            )
        self._data = memoryview(data)[:nbytes]

    def __len__(self) -> int:
        return len(self._data) * 8

    def as_bytes(self) -> bytes:
        """Return the bytes covered by the bitmap."""
        return bytes(self._data)

    def is_bit_clear(self, bit: int) -> bool:
        return self._data[bit // 8] & (1 << (bit % 8)) == 0

    def set_bit(self, bit: int) -> None:
        self._data[bit // 8] |= 1 << (bit % 8)

    def clear_bit(self, bit: int) -> None:
        self._data[bit // 8] &= ~(1 << (bit % 8)) & 0xFF

    def first_clear_bit(self, start: int, end: int) -> int | None:
        """Return the first clear bit in ``[start, end)``, or None."""
        end = min(end, len(self))
        return next((i for i in range(start, end) if self.is_bit_clear(i)), None)

    def find_and_set_first_clear_bit(self, start: int, end: int) -> int | None:
        """Find the first clear bit in ``[start, end)`` and set it."""
        bit = self.first_clear_bit(start, end)
        if bit is not None:
            self.set_bit(bit)
        return bit