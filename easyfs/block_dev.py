"""Block devices that read and write data in units of fixed-size blocks."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import BinaryIO

BLOCK_SZ = 512
"""Size of one block in bytes."""


class BlockDevice(ABC):
    """A device addressed in whole blocks of ``BLOCK_SZ`` bytes."""

    @abstractmethod
    def read_block(self, block_id: int) -> bytes:
        """Return the ``BLOCK_SZ`` bytes stored in block ``block_id``."""

    @abstractmethod
    def write_block(self, block_id: int, data: bytes) -> None:
        """Store ``data`` (exactly ``BLOCK_SZ`` bytes) in block ``block_id``."""


def _check_block_data(data: bytes) -> None:
    if len(data) != BLOCK_SZ:
        raise ValueError(
            f"Not a complete block: expected {BLOCK_SZ} bytes, got {len(data)}"
        )


class FileBlockDevice(BlockDevice):
    """A block device backed by a seekable binary file opened for reading and writing."""

    def __init__(self, file: BinaryIO) -> None:
        self.file = file
        self._lock = threading.Lock()

    def read_block(self, block_id: int) -> bytes:
        if block_id < 0:
            raise IndexError(f"block id {block_id} is negative")
        with self._lock:
            self.file.seek(block_id * BLOCK_SZ)
            data = self.file.read(BLOCK_SZ)
        if len(data) != BLOCK_SZ:
            raise EOFError(f"Not a complete block: block {block_id} is short")
        return bytes(data)

    def write_block(self, block_id: int, data: bytes) -> None:
        if block_id < 0:
            raise IndexError(f"block id {block_id} is negative")
        _check_block_data(data)
        with self._lock:
            self.file.seek(block_id * BLOCK_SZ)
            written = self.file.write(bytes(data))
        if written is not None and written != BLOCK_SZ:
            raise OSError(f"Not a complete block: wrote {written} bytes")


class MemoryBlockDevice(BlockDevice):
    """A block device held entirely in memory, initially zero-filled."""

    def __init__(self, total_blocks: int) -> None:
        if total_blocks < 0:
            raise ValueError("total_blocks must not be negative")
        self.total_blocks = total_blocks
        self._storage = bytearray(total_blocks * BLOCK_SZ)
        self._lock = threading.Lock()

    def _span(self, block_id: int) -> slice:
        if not 0 <= block_id < self.total_blocks:
            raise IndexError(
                f"block id {block_id} out of range 0..{self.total_blocks}"
            )
        start = block_id * BLOCK_SZ
        return slice(start, start + BLOCK_SZ)

    def read_block(self, block_id: int) -> bytes:
        span = self._span(block_id)
        with self._lock:
            return bytes(self._storage[span])

    def write_block(self, block_id: int, data: bytes) -> None:
        span = self._span(block_id)
        _check_block_data(data)
        with self._lock:
            self._storage[span] = data