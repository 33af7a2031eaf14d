import pytest
from hypothesis import given
from hypothesis import strategies as st

from ext4fs.block import BLOCK_SIZE, INODE_BLOCK_SIZE
from ext4fs.extent import Extent, ExtentHeader
from ext4fs.filetype import FileType
from ext4fs.inode import Inode, InodeMode, InodeRef

TYPED = [
    FileType.REGULAR_FILE,
    FileType.DIRECTORY,
    FileType.CHARACTER_DEV,
    FileType.BLOCK_DEV,
    FileType.FIFO,
    FileType.SOCKET,
    FileType.SYM_LINK,
]


def _sample_inode() -> Inode:
    inode = Inode()
    inode.mode = InodeMode.from_type_and_perm(FileType.REGULAR_FILE, InodeMode.ALL_RW)
    inode.uid = 0x12345678
    inode.gid = 0x0001_0002
    inode.size = 0x1_0000_0010
    inode.atime = 11
    inode.mtime = 22
    inode.generation = 7
    inode.link_count = 1
    return inode


@pytest.mark.parametrize("file_type", TYPED)
def test_mode_file_type_round_trip(file_type):
    mode = InodeMode.from_type_and_perm(file_type, InodeMode.ALL_RWX)
    assert mode.file_type() == file_type
    assert mode.perm() == InodeMode.ALL_RWX


def test_from_type_and_perm_values():
    mode = InodeMode.from_type_and_perm(FileType.DIRECTORY, InodeMode.ALL_RWX)
    assert mode == InodeMode.DIRECTORY | InodeMode.ALL_RWX


def test_from_type_and_perm_unknown_is_file_and_masks_perm():
    mode = InodeMode.from_type_and_perm(FileType.UNKNOWN, InodeMode.SOCKET | InodeMode.ALL_RW)
    assert mode == InodeMode.FILE | InodeMode.ALL_RW
    assert mode.file_type() == FileType.REGULAR_FILE


def test_zero_mode_has_unknown_type():
    assert InodeMode(0).file_type() == FileType.UNKNOWN


def test_inode_type_predicates():
    inode = Inode()
    inode.mode = InodeMode.from_type_and_perm(FileType.DIRECTORY, InodeMode.ALL_RWX)
    assert inode.is_dir()
    assert not inode.is_file()
    inode.mode = InodeMode.from_type_and_perm(FileType.SYM_LINK, InodeMode.ALL_RWX)
    assert inode.is_softlink()
    assert not inode.is_dir()
    inode.mode = InodeMode.from_type_and_perm(FileType.REGULAR_FILE, InodeMode.ALL_RW)
    assert inode.is_file()
    assert inode.perm == InodeMode.ALL_RW


def test_uid_gid_split():
    inode = Inode()
    inode.uid = 0x12345678
    inode.gid = 0xABCD0001
    assert (inode.uid_lo, inode.uid_hi) == (0x5678, 0x1234)
    assert (inode.gid_lo, inode.gid_hi) == (0x0001, 0xABCD)
    assert inode.uid == 0x12345678
    assert inode.gid == 0xABCD0001


@given(st.integers(min_value=0, max_value=2**64 - 1))
def test_size_round_trip(size):
    inode = Inode()
    inode.size = size
    assert inode.size == size
    assert Inode.from_bytes(inode.to_bytes()).size == size


@given(st.integers(min_value=0, max_value=2**48 - 1))
def test_block_count_round_trip(count):
    inode = Inode()
    inode.block_count = count
    assert inode.block_count == count


@given(st.integers(min_value=0, max_value=2**40))
def test_fs_block_count_relation(count):
    inode = Inode()
    inode.fs_block_count = count
    assert inode.fs_block_count == count
    assert inode.block_count * INODE_BLOCK_SIZE == count * BLOCK_SIZE


def test_xattr_block_round_trip():
    inode = Inode()
    inode.xattr_block = 0x0000_1234_8765_4321
    assert inode.file_acl == 0x8765_4321
    assert inode.file_acl_hi == 0x1234
    assert inode.xattr_block == 0x0000_1234_8765_4321


def test_default_inode_layout():
    inode = Inode()
    assert len(inode.to_bytes()) == Inode.SIZE
    assert inode.extra_isize == Inode.SIZE - 128
    assert Inode.SIZE == 160


def test_bytes_round_trip():
    inode = _sample_inode()
    data = inode.to_bytes()
    again = Inode.from_bytes(data)
    assert again == inode
    assert again.to_bytes() == data


def test_mode_is_first_two_bytes_little_endian():
    inode = Inode()
    inode.mode = InodeMode.FILE | InodeMode.ALL_RW
    assert inode.to_bytes()[:2] == int(InodeMode.FILE | InodeMode.ALL_RW).to_bytes(2, "little")


def test_from_bytes_too_short():
    with pytest.raises(ValueError):
        Inode.from_bytes(bytes(Inode.SIZE - 1))


def test_wrong_block_length_rejected():
    with pytest.raises(ValueError):
        Inode(block=bytearray(10))


def test_extent_init():
    inode = Inode()
    inode.flags = 0x1
    inode.extent_init()
    assert inode.flags == 0x1 | Inode.FLAG_EXTENTS
    header = inode.extent_root().header
    assert header.magic == ExtentHeader.EXTENT_MAGIC
    assert header.entries_count == 0
    assert header.depth == 0
    assert header.max_entries_count == 4


def test_extent_root_writes_into_inode():
    inode = Inode()
    inode.extent_init()
    extent = Extent(start_lblock=0, start_pblock=500, raw_len=3)
    assert inode.extent_root().insert_extent(extent, 0) == []
    again = Inode.from_bytes(inode.to_bytes())
    root = again.extent_root()
    assert root.header.entries_count == 1
    assert root.extent_at(0) == extent


def test_set_checksum_only_touches_checksum_fields():
    inode = _sample_inode()
    original = Inode.from_bytes(inode.to_bytes())
    ref = InodeRef(12, inode)
    ref.set_checksum(bytes(range(16)))
    inode.checksum_lo = 0
    inode.checksum_hi = 0
    assert inode == original


def test_set_checksum_deterministic_and_depends_on_id():
    uuid = bytes(range(16))
    a = InodeRef(12, _sample_inode())
    b = InodeRef(12, _sample_inode())
    c = InodeRef(13, _sample_inode())
    for ref in (a, b, c):
        ref.set_checksum(uuid)
    assert (a.inode.checksum_lo, a.inode.checksum_hi) == (
        b.inode.checksum_lo,
        b.inode.checksum_hi,
    )
    assert (a.inode.checksum_lo, a.inode.checksum_hi) != (
        c.inode.checksum_lo,
        c.inode.checksum_hi,
    )
    assert a.inode.checksum_hi <= 0xFFFF