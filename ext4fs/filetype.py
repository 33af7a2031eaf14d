"""File type codes, matching the ext4 directory entry encoding."""

from __future__ import annotations

from enum import IntEnum


class FileType(IntEnum):
    """Type of a file as stored in directory entries."""

    UNKNOWN = 0
    REGULAR_FILE = 1
    DIRECTORY = 2
    CHARACTER_DEV = 3
    BLOCK_DEV = 4
    FIFO = 5
    SOCKET = 6
    SYM_LINK = 7