from ext4fs.block import BLOCK_SIZE, Block, BlockDevice
from ext4fs.cache import CACHE_ASSOC, CACHE_SIZE, BlockCache


class MemDevice(BlockDevice):
    def __init__(self):
        self.blocks = {}
        self.reads = []
        self.writes = []

    def read_block(self, block_id):
        self.reads.append(block_id)
        stored = self.blocks.get(block_id)
        return Block(block_id, stored if stored is not None else bytearray(BLOCK_SIZE))

    def write_block(self, block):
        self.writes.append(block.id)
        self.blocks[block.id] = bytes(block.data)


def make_block(block_id, marker):
    block = Block(block_id)
    block.write_offset(0, marker)
    return block


def same_set_ids(count, base=3):
    return [base + i * CACHE_SIZE for i in range(count)]


def test_read_miss_then_hit():
    dev = MemDevice()
    dev.blocks[7] = bytes([9]) * BLOCK_SIZE
    cache = BlockCache(dev)
    first = cache.read_block(7)
    second = cache.read_block(7)
    assert first == second
    assert first.read_offset(0, 1) == bytes([9])
    assert dev.reads == [7]


def test_write_is_deferred_until_flush_all():
    dev = MemDevice()
    cache = BlockCache(dev)
    cache.write_block(make_block(4, b"abc"))
    assert dev.writes == []
    assert cache.read_block(4).read_offset(0, 3) == b"abc"
    cache.flush_all()
    assert dev.writes == [4]
    assert dev.blocks[4][:3] == b"abc"


def test_flush_all_writes_only_once():
    dev = MemDevice()
    cache = BlockCache(dev)
    cache.write_block(make_block(4, b"abc"))
    cache.flush_all()
    cache.flush_all()
    assert dev.writes == [4]


def test_flush_single_block():
    dev = MemDevice()
    cache = BlockCache(dev)
    cache.write_block(make_block(11, b"xy"))
    cache.write_block(make_block(12, b"zw"))
    cache.flush(11)
    assert dev.writes == [11]
    cache.flush(11)
    assert dev.writes == [11]


def test_write_hit_overwrites_cached_data():
    dev = MemDevice()
    cache = BlockCache(dev)
    cache.read_block(5)
    cache.write_block(make_block(5, b"new"))
    assert cache.read_block(5).read_offset(0, 3) == b"new"
    assert dev.reads == [5]


def test_returned_block_is_a_copy():
    dev = MemDevice()
    cache = BlockCache(dev)
    block = cache.read_block(2)
    block.write_offset(0, b"\x01")
    assert cache.read_block(2).read_offset(0, 1) == b"\x00"


def test_eviction_writes_back_dirty_block():
    dev = MemDevice()
    cache = BlockCache(dev)
    ids = same_set_ids(CACHE_ASSOC + 1)
    for block_id in ids:
        cache.write_block(make_block(block_id, b"d"))
    assert dev.writes == [ids[0]]
    assert dev.blocks[ids[0]][:1] == b"d"


def test_lru_keeps_recently_used_block():
    dev = MemDevice()
    cache = BlockCache(dev)
    ids = same_set_ids(CACHE_ASSOC + 1)
    for block_id in ids[:CACHE_ASSOC]:
        cache.read_block(block_id)
    cache.read_block(ids[0])
    cache.read_block(ids[CACHE_ASSOC])
    reads_before = len(dev.reads)
    cache.read_block(ids[0])
    assert len(dev.reads) == reads_before
    cache.read_block(ids[1])
    assert dev.reads[-1] == ids[1]


def test_blocks_in_other_sets_do_not_evict():
    dev = MemDevice()
    cache = BlockCache(dev)
    ids = list(range(CACHE_ASSOC + 1))
    for block_id in ids:
        cache.write_block(make_block(block_id, b"q"))
    assert dev.writes == []


def test_flush_of_uncached_block_writes_back_lru_when_set_full():
    dev = MemDevice()
    cache = BlockCache(dev)
    ids = same_set_ids(CACHE_ASSOC + 1)
    for block_id in ids[:CACHE_ASSOC]:
        cache.write_block(make_block(block_id, b"f"))
    cache.flush(ids[CACHE_ASSOC])
    assert dev.writes == [ids[0]]
    cache.flush_all()
    assert sorted(dev.writes) == sorted(ids[:CACHE_ASSOC])