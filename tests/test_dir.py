import pytest
from hypothesis import given
from hypothesis import strategies as st

from ext4fs.block import BLOCK_SIZE, Block
from ext4fs.crc import CRC32_INIT, crc32
from ext4fs.dir import DirBlock, DirEntry, DirEntryTail
from ext4fs.filetype import FileType

UUID = bytes(range(16))


def _fresh_block() -> DirBlock:
    dir_block = DirBlock(Block(3))
    dir_block.init()
    return dir_block


@given(st.integers(min_value=0, max_value=255))
def test_required_size_is_aligned_and_sufficient(name_len):
    size = DirEntry.required_size(name_len)
    assert size % 4 == 0
    assert 8 + name_len <= size < 8 + name_len + 4


@given(
    st.integers(min_value=0, max_value=2**32 - 1),
    st.integers(min_value=0, max_value=2**16 - 1),
    st.binary(max_size=255),
    st.sampled_from(list(FileType)),
)
def test_entry_round_trip(inode, rec_len, name, file_type):
    entry = DirEntry(inode, rec_len, name, file_type)
    encoded = entry.to_bytes()
    assert len(encoded) == 8 + len(name)
    assert DirEntry.from_bytes(encoded + b"\xaa" * 4) == entry


def test_entry_name_too_long():
    with pytest.raises(ValueError):
        DirEntry(1, 12, b"x" * 256)


def test_unknown_type_code_reads_as_unknown():
    raw = DirEntry(5, 12, b"ab", FileType.DIRECTORY).to_bytes()
    corrupted = raw[:7] + b"\xde" + raw[8:]
    assert DirEntry.from_bytes(corrupted).file_type is FileType.UNKNOWN


def test_unused_flag():
    entry = DirEntry(9, 12, b"x", FileType.REGULAR_FILE)
    assert not entry.unused()
    entry.set_unused()
    assert entry.unused()
    assert entry.inode == 0


def test_compare_name_matches_stored_prefix():
    entry = DirEntry(1, 16, b"abc", FileType.REGULAR_FILE)
    assert entry.compare_name("abc")
    assert entry.compare_name("ab")
    assert not entry.compare_name("abcd")
    assert not entry.compare_name("abd")


def test_init_layout():
    dir_block = _fresh_block()
    tail_offset = BLOCK_SIZE - DirEntryTail.SIZE
    first = DirEntry.from_bytes(dir_block.block.data)
    assert first.unused()
    assert first.rec_len == tail_offset
    tail = DirEntryTail.from_bytes(dir_block.block.data[tail_offset:])
    assert tail.rec_len == 12
    assert tail.reserved_ft == 0xDE
    assert dir_block.list() == []
    assert dir_block.get("anything") is None


def test_insert_and_get():
    dir_block = _fresh_block()
    assert dir_block.insert("hello", 12, FileType.REGULAR_FILE)
    assert dir_block.get("hello") == 12
    entries = dir_block.list()
    assert [(e.name, e.inode, e.file_type) for e in entries] == [
        ("hello", 12, FileType.REGULAR_FILE)
    ]


def test_insert_keeps_order_and_record_lengths_cover_block():
    dir_block = _fresh_block()
    names = ["a", "bb", "ccc", "dddd"]
    for inode, name in enumerate(names, start=20):
        assert dir_block.insert(name, inode, FileType.DIRECTORY)
    assert [e.name for e in dir_block.list()] == names
    assert [dir_block.get(n) for n in names] == [20, 21, 22, 23]
    total = sum(e.rec_len for _, e in dir_block._entries())
    assert total == BLOCK_SIZE


def test_insert_until_full():
    dir_block = _fresh_block()
    inserted = 0
    while inserted < 10_000 and dir_block.insert(f"file{inserted:05d}", inserted + 1, FileType.REGULAR_FILE):
        inserted += 1
    assert inserted < 10_000
    assert not dir_block.insert("more-files", 1, FileType.REGULAR_FILE)
    assert len(dir_block.list()) == inserted
    assert dir_block.get("file00000") == 1


def test_remove():
    dir_block = _fresh_block()
    dir_block.insert("keep", 7, FileType.REGULAR_FILE)
    dir_block.insert("gone", 8, FileType.REGULAR_FILE)
    assert dir_block.remove("gone")
    assert dir_block.get("gone") is None
    assert not dir_block.remove("gone")
    assert [e.name for e in dir_block.list()] == ["keep"]


def test_zero_record_length_is_an_error():
    dir_block = DirBlock(Block(1))
    with pytest.raises(ValueError):
        dir_block.get("x")


def test_block_checksum():
    dir_block = _fresh_block()
    dir_block.insert("name", 2, FileType.REGULAR_FILE)
    expected = crc32(
        CRC32_INIT,
        UUID
        + (11).to_bytes(4, "little")
        + (3).to_bytes(4, "little")
        + bytes(dir_block.block.data[:12]),
    )
    dir_block.set_checksum(UUID, 11, 3)
    tail = DirEntryTail.from_bytes(dir_block.block.data[BLOCK_SIZE - DirEntryTail.SIZE :])
    assert tail.checksum == expected
    assert tail.reserved_ft == 0xDE


def test_tail_round_trip():
    tail = DirEntryTail(checksum=0xDEADBEEF)
    assert DirEntryTail.from_bytes(tail.to_bytes()) == tail
    assert len(tail.to_bytes()) == DirEntryTail.SIZE