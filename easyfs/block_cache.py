"""In-memory caching of device blocks with a small global cache manager."""

from __future__ import annotations

import struct
import threading

from .block_dev import BLOCK_SZ, BlockDevice

BLOCK_CACHE_SIZE = 16
"""Number of blocks the global cache manager keeps in memory."""


class BlockCache:
    """One block loaded into memory, written back to its device on sync.

    Use ``with cache:`` to hold the block; a held block is never evicted.
    """

    def __init__(self, block_id: int, block_device: BlockDevice) -> None:
        data = block_device.read_block(block_id)
        if len(data) != BLOCK_SZ:
            raise ValueError(f"device returned {len(data)} bytes for a block")
        self.block_id = block_id
        self.block_device = block_device
        self.modified = False
        self._data = bytearray(data)
        self._lock = threading.RLock()
        self._pins = 0

    def __enter__(self) -> BlockCache:
        self._lock.acquire()
        self._pins += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._pins -= 1
        self._lock.release()

    @property
    def in_use(self) -> bool:
        """Whether the block is currently held through ``with``."""
        return self._pins > 0

    @staticmethod
    def _check(offset: int, length: int) -> None:
        if offset < 0 or length < 0 or offset + length > BLOCK_SZ:
            raise ValueError(
                f"range [{offset}, {offset + length}) outside a {BLOCK_SZ}-byte block"
            )

    def read(self, offset: int, length: int) -> bytes:
        """Return ``length`` bytes starting at ``offset``."""
        self._check(offset, length)
        with self._lock:
            return bytes(self._data[offset : offset + length])

    def write(self, offset: int, data: bytes) -> None:
        """Overwrite bytes starting at ``offset`` and mark the block dirty."""
        self._check(offset, len(data))
        with self._lock:
            self.modified = True
            self._data[offset : offset + len(data)] = data

    def read_u32s(self, offset: int, count: int) -> list[int]:
        """Return ``count`` little-endian 32-bit unsigned integers from ``offset``."""
        self._check(offset, 4 * count)
        with self._lock:
            return list(struct.unpack_from(f"<{count}I", self._data, offset))

    def write_u32(self, offset: int, value: int) -> None:
        """Store one little-endian 32-bit unsigned integer at ``offset``."""
        self.write(offset, struct.pack("<I", value))

    def sync(self) -> None:
        """Write the block back to its device if it was modified."""
        with self._lock:
            if self.modified:
                self.modified = False
                self.block_device.write_block(self.block_id, bytes(self._data))


class BlockCacheManager:
    """A bounded first-in first-out set of block caches."""

    def __init__(self, capacity: int = BLOCK_CACHE_SIZE) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._queue: list[BlockCache] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._queue)

    def get_block_cache(self, block_id: int, block_device: BlockDevice) -> BlockCache:
        """Return the cache of a block, loading it and evicting an idle one if full."""
        with self._lock:
            for cache in self._queue:
                if cache.block_id == block_id and cache.block_device is block_device:
                    return cache
            if len(self._queue) >= self.capacity:
                victim = next((c for c in self._queue if not c.in_use), None)
                if victim is None:
                    raise RuntimeError("Run out of BlockCache!")
                self._queue.remove(victim)
                victim.sync()
            cache = BlockCache(block_id, block_device)
            self._queue.append(cache)
            return cache

    def sync_all(self) -> None:
        """Write every modified cached block back to its device."""
        with self._lock:
            caches = list(self._queue)
        for cache in caches:
            cache.sync()


_MANAGER = BlockCacheManager(BLOCK_CACHE_SIZE)


def get_block_cache(block_id: int, block_device: BlockDevice) -> BlockCache:
    """Return the block cache for ``block_id`` on ``block_device`` from the global manager."""
    return _MANAGER.get_block_cache(block_id, block_device)


def block_cache_sync_all() -> None:
    """Sync every block held by the global manager."""
    _MANAGER.sync_all()