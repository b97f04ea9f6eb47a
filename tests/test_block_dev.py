import pytest

from easyfs.block_dev import (
    BLOCK_SZ,
    BlockDevice,
    FileBlockDevice,
    MemoryBlockDevice,
)


def test_blocks_read_are_512_bytes():
    device = MemoryBlockDevice(2)
    assert len(device.read_block(0)) == 512
    assert BLOCK_SZ == 512


def test_block_device_is_abstract():
    with pytest.raises(TypeError):
        BlockDevice()


def test_memory_device_starts_zeroed():
    device = MemoryBlockDevice(4)
    assert device.read_block(3) == bytes(BLOCK_SZ)


def test_memory_device_write_read_every_block():
    device = MemoryBlockDevice(512)
    for i in range(512):
        block = bytes([i % 256]) * BLOCK_SZ
        device.write_block(i, block)
        assert device.read_block(i) == block


def test_memory_device_blocks_are_independent():
    device = MemoryBlockDevice(3)
    device.write_block(1, b"\xaa" * BLOCK_SZ)
    assert device.read_block(0) == bytes(BLOCK_SZ)
    assert device.read_block(2) == bytes(BLOCK_SZ)


@pytest.mark.parametrize("block_id", [-1, 4, 100])
def test_memory_device_out_of_range(block_id):
    device = MemoryBlockDevice(4)
    with pytest.raises(IndexError):
        device.read_block(block_id)
    with pytest.raises(IndexError):
        device.write_block(block_id, bytes(BLOCK_SZ))


@pytest.mark.parametrize("size", [0, BLOCK_SZ - 1, BLOCK_SZ + 1])
def test_memory_device_rejects_incomplete_block(size):
    device = MemoryBlockDevice(2)
    with pytest.raises(ValueError):
        device.write_block(0, bytes(size))


def test_file_device_round_trip(tmp_path):
    path = tmp_path / "fs.img"
    path.write_bytes(bytes(BLOCK_SZ * 8))
    with path.open("r+b") as f:
        device = FileBlockDevice(f)
        payload = bytes(range(256)) * 2
        device.write_block(5, payload)
        assert device.read_block(5) == payload
        assert device.read_block(4) == bytes(BLOCK_SZ)
    raw = path.read_bytes()
    assert raw[5 * BLOCK_SZ : 6 * BLOCK_SZ] == payload


def test_file_device_short_read(tmp_path):
    path = tmp_path / "short.img"
    path.write_bytes(bytes(BLOCK_SZ + 10))
    with path.open("r+b") as f:
        device = FileBlockDevice(f)
        with pytest.raises(EOFError):
            device.read_block(1)


def test_file_device_rejects_incomplete_block(tmp_path):
    path = tmp_path / "fs.img"
    path.write_bytes(bytes(BLOCK_SZ * 2))
    with path.open("r+b") as f:
        device = FileBlockDevice(f)
        with pytest.raises(ValueError):
            device.write_block(0, b"abc")