import pytest

from easyfs.block_cache import (
    BlockCache,
    BlockCacheManager,
    block_cache_sync_all,
    get_block_cache,
)
from easyfs.block_dev import BLOCK_SZ, MemoryBlockDevice


def test_cache_loads_block_contents():
    device = MemoryBlockDevice(2)
    payload = bytes(range(256)) * 2
    device.write_block(1, payload)
    cache = BlockCache(1, device)
    assert cache.read(0, BLOCK_SZ) == payload
    assert cache.modified is False


def test_write_is_deferred_until_sync():
    device = MemoryBlockDevice(2)
    cache = BlockCache(0, device)
    cache.write(10, b"hello")
    assert cache.modified is True
    assert device.read_block(0) == bytes(BLOCK_SZ)
    cache.sync()
    assert cache.modified is False
    assert device.read_block(0)[10:15] == b"hello"


def test_sync_without_changes_does_not_write():
    device = MemoryBlockDevice(1)
    cache = BlockCache(0, device)
    device.write_block(0, b"\x01" * BLOCK_SZ)
    cache.sync()
    assert device.read_block(0) == b"\x01" * BLOCK_SZ


@pytest.mark.parametrize("offset,length", [(-1, 1), (BLOCK_SZ - 3, 4), (0, BLOCK_SZ + 1)])
def test_out_of_block_access_rejected(offset, length):
    cache = BlockCache(0, MemoryBlockDevice(1))
    with pytest.raises(ValueError):
        cache.read(offset, length)
    if offset >= 0:
        with pytest.raises(ValueError):
            cache.write(offset, bytes(length))


def test_u32_round_trip_little_endian():
    cache = BlockCache(0, MemoryBlockDevice(1))
    cache.write_u32(8, 0x3B800001)
    assert cache.read(8, 4) == b"\x01\x00\x80\x3b"
    assert cache.read_u32s(8, 1) == [0x3B800001]


def test_read_u32s_many():
    cache = BlockCache(0, MemoryBlockDevice(1))
    values = [7, 0xFFFFFFFF, 0, 12345]
    for index, value in enumerate(values):
        cache.write_u32(4 * index, value)
    assert cache.read_u32s(0, len(values)) == values
    assert len(cache.read_u32s(0, BLOCK_SZ // 4)) == BLOCK_SZ // 4


def test_manager_returns_same_cache_for_same_block():
    device = MemoryBlockDevice(4)
    manager = BlockCacheManager(4)
    first = manager.get_block_cache(2, device)
    assert manager.get_block_cache(2, device) is first
    assert len(manager) == 1


def test_manager_distinguishes_devices():
    manager = BlockCacheManager(4)
    a, b = MemoryBlockDevice(1), MemoryBlockDevice(1)
    assert manager.get_block_cache(0, a) is not manager.get_block_cache(0, b)
    assert len(manager) == 2


def test_manager_evicts_and_syncs_oldest_idle():
    device = MemoryBlockDevice(4)
    manager = BlockCacheManager(2)
    first = manager.get_block_cache(0, device)
    first.write(0, b"data")
    manager.get_block_cache(1, device)
    manager.get_block_cache(2, device)
    assert len(manager) == 2
    assert device.read_block(0)[:4] == b"data"
    assert manager.get_block_cache(0, device) is not first


def test_manager_skips_held_caches():
    device = MemoryBlockDevice(4)
    manager = BlockCacheManager(2)
    held = manager.get_block_cache(0, device)
    with held:
        manager.get_block_cache(1, device)
        manager.get_block_cache(2, device)
        assert manager.get_block_cache(0, device) is held


def test_manager_runs_out_when_all_held():
    device = MemoryBlockDevice(4)
    manager = BlockCacheManager(2)
    with manager.get_block_cache(0, device), manager.get_block_cache(1, device):
        with pytest.raises(RuntimeError):
            manager.get_block_cache(2, device)


def test_manager_sync_all():
    device = MemoryBlockDevice(3)
    manager = BlockCacheManager(3)
    for block_id in range(3):
        manager.get_block_cache(block_id, device).write(0, bytes([block_id + 1]))
    manager.sync_all()
    assert [device.read_block(i)[0] for i in range(3)] == [1, 2, 3]


def test_invalid_capacity():
    with pytest.raises(ValueError):
        BlockCacheManager(0)


def test_global_cache_and_sync_all():
    device = MemoryBlockDevice(2)
    cache = get_block_cache(1, device)
    assert get_block_cache(1, device) is cache
    cache.write(100, b"xyz")
    block_cache_sync_all()
    assert device.read_block(1)[100:103] == b"xyz"