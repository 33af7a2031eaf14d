"""The ext4 super block."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar


def _f(fmt: str, default: Any = 0) -> Any:
    return field(default=default, metadata={"fmt": fmt})


def _arity(fmt: str) -> int:
    """Number of struct values a field format produces."""
    if fmt.endswith("s") or len(fmt) == 1:
        return 1
    return int(fmt[:-1])


@dataclass
class SuperBlock:
    """The 1024-byte super block, field for field as on disk."""

    SB_MAGIC: ClassVar[int] = 0xEF53

    inode_count: int = _f("I")
    block_count_lo: int = _f("I")
    reserved_block_count_lo: int = _f("I")
    free_block_count_lo: int = _f("I")
    free_inode_count: int = _f("I")
    first_data_block: int = _f("I")
    log_block_size: int = _f("I")
    log_cluster_size: int = _f("I")
    blocks_per_group: int = _f("I")
    frags_per_group: int = _f("I")
    inodes_per_group: int = _f("I")
    mount_time: int = _f("I")
    write_time: int = _f("I")
    mount_count: int = _f("H")
    max_mount_count: int = _f("H")
    magic: int = _f("H")
    state: int = _f("H")
    errors: int = _f("H")
    minor_rev_level: int = _f("H")
    last_check_time: int = _f("I")
    check_interval: int = _f("I")
    creator_os: int = _f("I")
    rev_level: int = _f("I")
    def_resuid: int = _f("H")
    def_resgid: int = _f("H")
    first_inode: int = _f("I")
    inode_size: int = _f("H")
    block_group_index: int = _f("H")
    features_compatible: int = _f("I")
    features_incompatible: int = _f("I")
    features_read_only: int = _f("I")
    uuid: bytes = _f("16s", bytes(16))
    volume_name: bytes = _f("16s", bytes(16))
    last_mounted: bytes = _f("64s", bytes(64))
    algorithm_usage_bitmap: int = _f("I")
    s_prealloc_blocks: int = _f("B")
    s_prealloc_dir_blocks: int = _f("B")
    s_reserved_gdt_blocks: int = _f("H")
    journal_uuid: bytes = _f("16s", bytes(16))
    journal_inode_number: int = _f("I")
    journal_dev: int = _f("I")
    last_orphan: int = _f("I")
    hash_seed: tuple[int, ...] = _f("4I", (0,) * 4)
    default_hash_version: int = _f("B")
    journal_backup_type: int = _f("B")
    desc_size: int = _f("H")
    default_mount_opts: int = _f("I")
    first_meta_bg: int = _f("I")
    mkfs_time: int = _f("I")
    journal_blocks: tuple[int, ...] = _f("17I", (0,) * 17)
    block_count_hi: int = _f("I")
    reserved_blocks_count_hi: int = _f("I")
    free_blocks_count_hi: int = _f("I")
    min_extra_isize: int = _f("H")
    want_extra_isize: int = _f("H")
    flags: int = _f("I")
    raid_stride: int = _f("H")
    mmp_interval: int = _f("H")
    mmp_block: int = _f("Q")
    raid_stripe_width: int = _f("I")
    log_groups_per_flex: int = _f("B")
    checksum_type: int = _f("B")
    reserved_pad: int = _f("H")
    kbytes_written: int = _f("Q")
    snapshot_inum: int = _f("I")
    snapshot_id: int = _f("I")
    snapshot_r_blocks_count: int = _f("Q")
    snapshot_list: int = _f("I")
    error_count: int = _f("I")
    first_error_time: int = _f("I")
    first_error_ino: int = _f("I")
    first_error_block: int = _f("Q")
    first_error_func: bytes = _f("32s", bytes(32))
    first_error_line: int = _f("I")
    last_error_time: int = _f("I")
    last_error_ino: int = _f("I")
    last_error_line: int = _f("I")
    last_error_block: int = _f("Q")
    last_error_func: bytes = _f("32s", bytes(32))
    mount_opts: bytes = _f("64s", bytes(64))
    usr_quota_inum: int = _f("I")
    grp_quota_inum: int = _f("I")
    overhead_clusters: int = _f("I")
    backup_bgs: tuple[int, ...] = _f("2I", (0,) * 2)
    encrypt_algos: bytes = _f("4s", bytes(4))
    encrypt_pw_salt: bytes = _f("16s", bytes(16))
    lpf_ino: int = _f("I")
    padding: tuple[int, ...] = _f("100I", (0,) * 100)
    checksum: int = _f("I")

    @classmethod
    def from_bytes(cls, data: bytes) -> SuperBlock:
        """Decode a super block from the first 1024 bytes of ``data``."""
        if len(data) < _STRUCT.size:
            raise ValueError(
                f"super block needs {_STRUCT.size} bytes, got {len(data)}"
            )
        flat = iter(_STRUCT.unpack_from(data))
        values = {}
        for name, fmt in _LAYOUT:
            count = _arity(fmt)
            if count == 1:
                values[name] = next(flat)
            else:
                values[name] = tuple(next(flat) for _ in range(count))
        return cls(**values)

    def to_bytes(self) -> bytes:
        """Encode the super block in its on-disk form."""
        flat: list[Any] = []
        for name, fmt in _LAYOUT:
            value = getattr(self, name)
            if _arity(fmt) == 1:
                flat.append(value)
            else:
                flat.extend(value)
        return _STRUCT.pack(*flat)

    def check_magic(self) -> bool:
        return self.magic == self.SB_MAGIC

    @property
    def free_inodes_count(self) -> int:
        return self.free_inode_count

    @free_inodes_count.setter
    def free_inodes_count(self, count: int) -> None:
        self.free_inode_count = count

    @property
    def block_count(self) -> int:
        """Total number of blocks."""
        return self.block_count_lo | (self.block_count_hi << 32)

    @property
    def extra_size(self) -> int:
        return self.want_extra_isize

    @property
    def free_blocks_count(self) -> int:
        return self.free_block_count_lo | (self.free_blocks_count_hi << 32)

    @free_blocks_count.setter
    def free_blocks_count(self, free_blocks: int) -> None:
        self.free_block_count_lo = free_blocks & 0xFFFFFFFF
        self.free_blocks_count_hi = (free_blocks >> 32) & 0xFFFFFFFF

    def block_group_count(self) -> int:
        """The number of block groups."""
        return -(-self.block_count // self.blocks_per_group) & 0xFFFFFFFF

    def inode_count_in_group(self, bgid: int) -> int:
        """The number of inodes in block group ``bgid``."""
        bg_count = self.block_group_count()
        if bgid < bg_count:
            return self.inodes_per_group
        return self.inode_count - (bg_count - 1) * self.inodes_per_group


_LAYOUT: tuple[tuple[str, str], ...] = tuple(
    (f.name, f.metadata["fmt"]) for f in fields(SuperBlock)
)
_STRUCT = struct.Struct("<" + "".join(fmt for _, fmt in _LAYOUT))