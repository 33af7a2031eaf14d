"""Set-associative LRU write-back block cache."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass

from .block import Block, BlockDevice

logger = logging.getLogger(__name__)

#: Number of cache sets.
CACHE_SIZE = 0x100
#: Number of slots in each set.
CACHE_ASSOC = 8


@dataclass
class _Slot:
    block: Block
    dirty: bool = False


class BlockCache:
    """LRU write-back cache in front of a block device.

    Blocks map to set ``block_id % CACHE_SIZE``; each set holds up to
    ``CACHE_ASSOC`` blocks and evicts the least recently used one.
    """

    def __init__(self, block_dev: BlockDevice) -> None:
        self._dev = block_dev
        self._lock = threading.Lock()
        # Each set maps block id to slot, least recently used first.
        self._sets: list[OrderedDict[int, _Slot]] = [
            OrderedDict() for _ in range(CACHE_SIZE)
        ]

    def _set_for(self, block_id: int) -> OrderedDict[int, _Slot]:
        return self._sets[block_id % CACHE_SIZE]

    def _make_room(self, cache_set: OrderedDict[int, _Slot]) -> None:
        if len(cache_set) < CACHE_ASSOC:
            return
        _, victim = cache_set.popitem(last=False)
        if victim.dirty:
            self._dev.write_block(victim.block)

    def read_block(self, block_id: int) -> Block:
        """Read a block, loading it from the device on a miss."""
        logger.debug("Reading block %d", block_id)
        with self._lock:
            cache_set = self._set_for(block_id)
            slot = cache_set.get(block_id)
            if slot is not None:
                cache_set.move_to_end(block_id)
                return slot.block.copy()
            self._make_room(cache_set)
            logger.debug("Loading block %d from disk", block_id)
            block = self._dev.read_block(block_id)
            cache_set[block_id] = _Slot(block.copy())
            return block

    def write_block(self, block: Block) -> None:
        """Store a block in the cache and mark it dirty."""
        logger.debug("Writing block %d", block.id)
        with self._lock:
            cache_set = self._set_for(block.id)
            slot = cache_set.get(block.id)
            if slot is not None:
                cache_set.move_to_end(block.id)
                slot.block = block.copy()
                slot.dirty = True
                return
            self._make_room(cache_set)
            cache_set[block.id] = _Slot(block.copy(), dirty=True)

    def flush(self, block_id: int) -> None:
        """Write a block back to the device if it is cached and dirty.

        If the block is not cached, the set's least recently used slot is
        touched instead: it is written back when dirty and becomes the most
        recently used.
        """
        with self._lock:
            cache_set = self._set_for(block_id)
            slot = cache_set.get(block_id)
            if slot is not None:
                cache_set.move_to_end(block_id)
            elif len(cache_set) >= CACHE_ASSOC:
                lru_id = next(iter(cache_set))
                slot = cache_set[lru_id]
                cache_set.move_to_end(lru_id)
            if slot is not None and slot.dirty:
                self._dev.write_block(slot.block)
                slot.dirty = False

    def flush_all(self) -> None:
        """Write every dirty block back to the device."""
        with self._lock:
            for cache_set in self._sets:
                for slot in cache_set.values():
                    if slot.dirty:
                        logger.info("Flushing block %d to disk", slot.block.id)
                        self._dev.write_block(slot.block)
                        slot.dirty = False