# ext4fs

Pure-Python views over the on-disk structures of an ext4 filesystem. The
package works on raw 4096-byte blocks held in memory and decodes, edits and
re-encodes the records inside them. It has no dependencies outside the
standard library.

## Modules

- `ext4fs.crc` – `crc32(crc_init, data)`, the CRC32C (Castagnoli) checksum
  used by ext4 metadata, without final inversion so calls can be chained.
  `CRC32_INIT` is the usual seed.
- `ext4fs.bitmap` – `Bitmap`, a view over the first `nbits` bits of a
  writable buffer, with `set_bit`, `clear_bit`, `is_bit_clear`,
  `first_clear_bit` and `find_and_set_first_clear_bit`.
- `ext4fs.block` – `Block` (a block id plus 4096 bytes, with
  `read_offset`/`write_offset` and `read_offset_as`/`write_offset_as`),
  the abstract `BlockDevice` that storage backends implement, and the
  constants `BLOCK_SIZE` and `INODE_BLOCK_SIZE`.
- `ext4fs.cache` – `BlockCache`, a set-associative LRU write-back cache
  (256 sets of 8 blocks) in front of a `BlockDevice`.
- `ext4fs.filetype` – the `FileType` enumeration shared by inodes and
  directory entries.
- `ext4fs.super_block` – `SuperBlock`, the 1024-byte super block, with
  `from_bytes`/`to_bytes`, `check_magic`, `block_group_count` and
  `inode_count_in_group`.
- `ext4fs.block_group` – `BlockGroupDesc` (64-byte descriptors only) and
  `BlockGroupRef`, with bitmap and descriptor checksums.
- `ext4fs.inode` – `Inode` (256-byte record layout), `InodeMode`,
  `InodeRef` (inode checksum) and `FileAttr`.
- `ext4fs.extent` – `ExtentHeader`, `Extent`, `ExtentIndex` and
  `ExtentNode`, a view over an extent tree node (the inode root or a whole
  block) that can search, insert and split.
- `ext4fs.dir` – `DirEntry`, `DirEntryTail` and `DirBlock` for linear
  directory blocks.
- `ext4fs.xattr` – `XattrHeader`, `XattrEntry` and `XattrBlock` for
  extended attribute blocks, with the table kept sorted by name.
- `ext4fs.mount_point` – `MountPoint`, a name and a mounted flag.

## Installation

    pip install .

## Examples

An in-memory block device with a cache in front of it:

    from ext4fs.block import Block, BlockDevice
    from ext4fs.cache import BlockCache

    class MemoryDevice(BlockDevice):
        def __init__(self):
            self.blocks = {}

        def read_block(self, block_id):
            return self.blocks.get(block_id, Block(block_id))

        def write_block(self, block):
            self.blocks[block.id] = Block(block.id, bytes(block.data))

    cache = BlockCache(MemoryDevice())
    block = cache.read_block(7)
    block.write_offset(0, b"hello")
    cache.write_block(block)
    cache.flush_all()

A directory block:

    from ext4fs.block import Block
    from ext4fs.dir import DirBlock
    from ext4fs.filetype import FileType

    dir_block = DirBlock(Block(100))
    dir_block.init()
    dir_block.insert("notes.txt", 12, FileType.REGULAR_FILE)
    assert dir_block.get("notes.txt") == 12
    dir_block.remove("notes.txt")

Extended attributes:

    from ext4fs.block import Block
    from ext4fs.xattr import XattrBlock

    xattrs = XattrBlock(Block(200))
    xattrs.init()
    xattrs.insert("user.colour", b"blue")
    assert xattrs.get("user.colour") == b"blue"
    assert xattrs.list() == ["user.colour"]

An inode with an extent tree root:

    from ext4fs.extent import Extent
    from ext4fs.filetype import FileType
    from ext4fs.inode import Inode, InodeMode

    inode = Inode()
    inode.mode = InodeMode.from_type_and_perm(FileType.REGULAR_FILE, InodeMode.ALL_RW)
    inode.extent_init()
    root = inode.extent_root()
    root.insert_extent(Extent(0, 1000, 8), 0)
    assert root.search_extent(3).found
    assert inode.is_file()

Checksums:

    from ext4fs.crc import CRC32_INIT, crc32

    checksum = crc32(CRC32_INIT, b"some metadata")

## What the package does not do

It handles single structures and single blocks. It does not mount a
filesystem image, resolve paths, allocate blocks or inodes across groups,
walk a multi-level extent tree on disk, read or write file contents, or
replay a journal. Those would be built on top of `BlockDevice`,
`BlockCache` and the structures above.

## Running the tests

    pip install ".[test]"
    pytest