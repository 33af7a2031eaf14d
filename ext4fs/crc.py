"""CRC32C (Castagnoli) checksum as used by ext4 metadata."""

from __future__ import annotations

from collections.abc import Iterable

_POLY_REFLECTED = 0x82F63B78

#: Conventional seed for ext4 metadata checksums.
CRC32_INIT = 0xFFFFFFFF


def _make_table() -> tuple[int, ...]:
    table = []
    for n in range(256):
        c = n
        for _ in range(8):
            c = (c >> 1) ^ _POLY_REFLECTED if c & 1 else c >> 1
        table.append(c)
    return tuple(table)


_TABLE = _make_table()


def crc32(crc_init: int, data: Iterable[int]) -> int:
    """Continue a CRC32C computation from ``crc_init`` over ``data``.

    No final inversion is applied, so calls can be chained.
    """
    crc = crc_init & 0xFFFFFFFF
    for byte in data:
        crc = _TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc