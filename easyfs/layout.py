"""On-disk structures: the super block, disk inodes and directory entries."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, Iterator

from .block_cache import get_block_cache
from .block_dev import BLOCK_SZ, BlockDevice

EFS_MAGIC = 0x3B800001
"""Magic number identifying a formatted file system."""

INODE_DIRECT_COUNT = 28
"""Number of direct block pointers in a disk inode."""

NAME_LENGTH_LIMIT = 27
"""Longest name, in bytes, that a directory entry can hold."""

INODE_INDIRECT1_COUNT = BLOCK_SZ // 4
"""Number of block pointers held by one indirect block."""

INODE_INDIRECT2_COUNT = INODE_INDIRECT1_COUNT * INODE_INDIRECT1_COUNT
"""Number of data blocks reachable through the doubly indirect block."""

DIRECT_BOUND = INODE_DIRECT_COUNT
INDIRECT1_BOUND = DIRECT_BOUND + INODE_INDIRECT1_COUNT
INDIRECT2_BOUND = INDIRECT1_BOUND + INODE_INDIRECT2_COUNT

DIRENT_SZ = 32
"""Size of a directory entry in bytes."""

_SUPER_BLOCK_FORMAT = struct.Struct("<6I")
_DISK_INODE_FORMAT = struct.Struct(f"<I{INODE_DIRECT_COUNT}IIIB3x")
_DIRENT_FORMAT = struct.Struct(f"<{NAME_LENGTH_LIMIT + 1}sI")

SUPER_BLOCK_SIZE = _SUPER_BLOCK_FORMAT.size
DISK_INODE_SIZE = _DISK_INODE_FORMAT.size
"""Size of a disk inode in bytes; a block holds a whole number of them."""


@dataclass
class SuperBlock:
    """Describes how the blocks of a file system are divided into areas."""

    total_blocks: int
    inode_bitmap_blocks: int
    inode_area_blocks: int
    data_bitmap_blocks: int
    data_area_blocks: int
    magic: int = field(default=EFS_MAGIC, repr=False)

    def is_valid(self) -> bool:
        """Whether the magic number marks a formatted file system."""
        return self.magic == EFS_MAGIC

    def to_bytes(self) -> bytes:
        """Serialise to the on-disk layout."""
        return _SUPER_BLOCK_FORMAT.pack(
            self.magic,
            self.total_blocks,
            self.inode_bitmap_blocks,
            self.inode_area_blocks,
            self.data_bitmap_blocks,
            self.data_area_blocks,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> SuperBlock:
        """Parse the on-disk layout; trailing bytes beyond the structure are ignored."""
        if len(data) < SUPER_BLOCK_SIZE:
            raise ValueError(
                f"super block needs {SUPER_BLOCK_SIZE} bytes, got {len(data)}"
            )
        magic, total, ibm, iarea, dbm, darea = _SUPER_BLOCK_FORMAT.unpack_from(data)
        return cls(total, ibm, iarea, dbm, darea, magic=magic)


class DiskInodeType(IntEnum):
    """Kind of object a disk inode describes."""

    FILE = 0
    DIRECTORY = 1


def _take(blocks: Iterator[int]) -> int:
    try:
        return next(blocks)
    except StopIteration:
        raise ValueError("not enough new blocks supplied") from None


def _spans(start: int, end: int) -> Iterator[tuple[int, int, int]]:
    """Yield (block index, offset in block, length) covering [start, end)."""
    while start < end:
        block_index, inner = divmod(start, BLOCK_SZ)
        chunk = min(BLOCK_SZ - inner, end - start)
        yield block_index, inner, chunk
        start += chunk


def _read_u32(block_device: BlockDevice, block_id: int, index: int) -> int:
    cache = get_block_cache(block_id, block_device)
    with cache:
        return cache.read_u32s(4 * index, 1)[0]


@dataclass
class DiskInode:
    """An inode as stored on disk, with direct and indirect block pointers."""

    size: int = 0
    direct: list[int] = field(default_factory=lambda: [0] * INODE_DIRECT_COUNT)
    indirect1: int = 0
    indirect2: int = 0
    type_: DiskInodeType = DiskInodeType.FILE

    def __post_init__(self) -> None:
        if len(self.direct) != INODE_DIRECT_COUNT:
            raise ValueError(
                f"direct must hold {INODE_DIRECT_COUNT} pointers, got {len(self.direct)}"
            )
        self.type_ = DiskInodeType(self.type_)

    def is_dir(self) -> bool:
        """Whether this inode is a directory."""
        return self.type_ is DiskInodeType.DIRECTORY

    def is_file(self) -> bool:
        """Whether this inode is a regular file."""
        return self.type_ is DiskInodeType.FILE

    @staticmethod
    def _data_blocks(size: int) -> int:
        return (size + BLOCK_SZ - 1) // BLOCK_SZ

    def data_blocks(self) -> int:
        """Number of data blocks needed for the current size."""
        return self._data_blocks(self.size)

    @staticmethod
    def total_blocks(size: int) -> int:
        """Number of blocks, indirect ones included, needed to hold ``size`` bytes."""
        data_blocks = DiskInode._data_blocks(size)
        total = data_blocks
        if data_blocks > INODE_DIRECT_COUNT:
            total += 1
        if data_blocks > INDIRECT1_BOUND:
            total += 1
            total += (
                data_blocks - INDIRECT1_BOUND + INODE_INDIRECT1_COUNT - 1
            ) // INODE_INDIRECT1_COUNT
        return total

    def blocks_num_needed(self, new_size: int) -> int:
        """Number of blocks that must be allocated to grow to ``new_size``."""
        if new_size < self.size:
            raise ValueError(f"new size {new_size} is smaller than {self.size}")
        return self.total_blocks(new_size) - self.total_blocks(self.size)

    def get_block_id(self, inner_id: int, block_device: BlockDevice) -> int:
        """Device block id of the ``inner_id``-th data block of this inode."""
        if not 0 <= inner_id < INDIRECT2_BOUND:
            raise IndexError(f"inner block id {inner_id} out of range")
        if inner_id < INODE_DIRECT_COUNT:
            return self.direct[inner_id]
        if inner_id < INDIRECT1_BOUND:
            return _read_u32(block_device, self.indirect1, inner_id - INODE_DIRECT_COUNT)
        first, second = divmod(inner_id - INDIRECT1_BOUND, INODE_INDIRECT1_COUNT)
        indirect1 = _read_u32(block_device, self.indirect2, first)
        return _read_u32(block_device, indirect1, second)

    def increase_size(
        self, new_size: int, new_blocks: Iterable[int], block_device: BlockDevice
    ) -> None:
        """Grow to ``new_size``, wiring in ``new_blocks`` as data and indirect blocks."""
        current = self.data_blocks()
        self.size = new_size
        total = self.data_blocks()
        blocks = iter(new_blocks)

        while current < min(total, INODE_DIRECT_COUNT):
            self.direct[current] = _take(blocks)
            current += 1

        if total <= INODE_DIRECT_COUNT:
            return
        if current == INODE_DIRECT_COUNT:
            self.indirect1 = _take(blocks)
        current -= INODE_DIRECT_COUNT
        total -= INODE_DIRECT_COUNT

        cache = get_block_cache(self.indirect1, block_device)
        with cache:
            while current < min(total, INODE_INDIRECT1_COUNT):
                cache.write_u32(4 * current, _take(blocks))
                current += 1

        if total <= INODE_INDIRECT1_COUNT:
            return
        if current == INODE_INDIRECT1_COUNT:
            self.indirect2 = _take(blocks)
        current -= INODE_INDIRECT1_COUNT
        total -= INODE_INDIRECT1_COUNT

        a0, b0 = divmod(current, INODE_INDIRECT1_COUNT)
        a1, b1 = divmod(total, INODE_INDIRECT1_COUNT)
        indirect2 = get_block_cache(self.indirect2, block_device)
        with indirect2:
            while a0 < a1 or (a0 == a1 and b0 < b1):
                if b0 == 0:
                    indirect2.write_u32(4 * a0, _take(blocks))
                child_id = indirect2.read_u32s(4 * a0, 1)[0]
                child = get_block_cache(child_id, block_device)
                with child:
                    child.write_u32(4 * b0, _take(blocks))
                b0 += 1
                if b0 == INODE_INDIRECT1_COUNT:
                    b0 = 0
                    a0 += 1

    def clear_size(self, block_device: BlockDevice) -> list[int]:
        """Shrink to zero and return every block, indirect ones included, it held."""
        released: list[int] = []
        data_blocks = self.data_blocks()
        self.size = 0

        direct_count = min(data_blocks, INODE_DIRECT_COUNT)
        released.extend(self.direct[:direct_count])
        self.direct[:direct_count] = [0] * direct_count

        if data_blocks <= INODE_DIRECT_COUNT:
            return released
        released.append(self.indirect1)
        data_blocks -= INODE_DIRECT_COUNT

        cache = get_block_cache(self.indirect1, block_device)
        with cache:
            released.extend(
                cache.read_u32s(0, min(data_blocks, INODE_INDIRECT1_COUNT))
            )
        self.indirect1 = 0

        if data_blocks <= INODE_INDIRECT1_COUNT:
            return released
        released.append(self.indirect2)
        data_blocks -= INODE_INDIRECT1_COUNT

        if data_blocks > INODE_INDIRECT2_COUNT:
            raise ValueError("inode holds more blocks than its layout allows")
        a1, b1 = divmod(data_blocks, INODE_INDIRECT1_COUNT)
        indirect2 = get_block_cache(self.indirect2, block_device)
        with indirect2:
            entries = indirect2.read_u32s(0, a1 + (1 if b1 else 0))
            for entry in entries[:a1]:
                released.append(entry)
                child = get_block_cache(entry, block_device)
                with child:
                    released.extend(child.read_u32s(0, INODE_INDIRECT1_COUNT))
            if b1:
                released.append(entries[a1])
                child = get_block_cache(entries[a1], block_device)
                with child:
                    released.extend(child.read_u32s(0, b1))
        self.indirect2 = 0
        return released

    def read_at(self, offset: int, length: int, block_device: BlockDevice) -> bytes:
        """Read up to ``length`` bytes from ``offset``, stopping at the end of the data."""
        if offset < 0 or length < 0:
            raise ValueError("offset and length must not be negative")
        end = min(offset + length, self.size)
        parts = []
        for block_index, inner, chunk in _spans(offset, end):
            cache = get_block_cache(self.get_block_id(block_index, block_device), block_device)
            with cache:
                parts.append(cache.read(inner, chunk))
        return b"".join(parts)

    def write_at(self, offset: int, data: bytes, block_device: BlockDevice) -> int:
        """Write ``data`` at ``offset`` within the current size; return bytes written.

        The size must already have been increased to cover the write.
        """
        end = min(offset + len(data), self.size)
        if offset < 0 or offset > end:
            raise ValueError(f"offset {offset} lies beyond the size {self.size}")
        view = memoryview(bytes(data))
        written = 0
        for block_index, inner, chunk in _spans(offset, end):
            cache = get_block_cache(self.get_block_id(block_index, block_device), block_device)
            with cache:
                cache.write(inner, view[written : written + chunk])
            written += chunk
        return written

    def to_bytes(self) -> bytes:
        """Serialise to the on-disk layout."""
        return _DISK_INODE_FORMAT.pack(
            self.size, *self.direct, self.indirect1, self.indirect2, int(self.type_)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> DiskInode:
        """Parse the on-disk layout of exactly ``DISK_INODE_SIZE`` bytes."""
        if len(data) != DISK_INODE_SIZE:
            raise ValueError(f"disk inode needs {DISK_INODE_SIZE} bytes, got {len(data)}")
        values = _DISK_INODE_FORMAT.unpack(data)
        direct_end = 1 + INODE_DIRECT_COUNT
        return cls(
            size=values[0],
            direct=list(values[1:direct_end]),
            indirect1=values[direct_end],
            indirect2=values[direct_end + 1],
            type_=DiskInodeType(values[direct_end + 2]),
        )


@dataclass(frozen=True)
class DirEntry:
    """A directory entry linking a name to an inode number."""

    name: str = ""
    inode_id: int = 0

    def to_bytes(self) -> bytes:
        """Serialise to ``DIRENT_SZ`` bytes with a NUL-terminated name."""
        encoded = self.name.encode("utf-8")
        if len(encoded) > NAME_LENGTH_LIMIT:
            raise ValueError(
                f"name {self.name!r} longer than {NAME_LENGTH_LIMIT} bytes"
            )
        if b"\0" in encoded:
            raise ValueError("name must not contain NUL")
        return _DIRENT_FORMAT.pack(encoded, self.inode_id)

    @classmethod
    def from_bytes(cls, data: bytes) -> DirEntry:
        """Parse ``DIRENT_SZ`` bytes; the name ends at the first NUL."""
        if len(data) != DIRENT_SZ:
            raise ValueError(f"directory entry needs {DIRENT_SZ} bytes, got {len(data)}")
        raw_name, inode_id = _DIRENT_FORMAT.unpack(data)
        if b"\0" not in raw_name:
            raise ValueError("directory entry name is not terminated")
        name = raw_name[: raw_name.index(b"\0")].decode("utf-8")
        return cls(name, inode_id)