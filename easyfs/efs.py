"""The file system proper: area layout, inode and data block allocation."""

from __future__ import annotations

import threading

from .bitmap import Bitmap
from .block_cache import block_cache_sync_all, get_block_cache
from .block_dev import BLOCK_SZ, BlockDevice
from .layout import (
    DISK_INODE_SIZE,
    SUPER_BLOCK_SIZE,
    DiskInode,
    DiskInodeType,
    SuperBlock,
)
from .vfs import Inode

_ZERO_BLOCK = bytes(BLOCK_SZ)
_INODES_PER_BLOCK = BLOCK_SZ // DISK_INODE_SIZE


class EasyFileSystem:
    """A file system of super block, inode bitmap, inode area, data bitmap and data area."""

    def __init__(
        self,
        block_device: BlockDevice,
        inode_bitmap: Bitmap,
        data_bitmap: Bitmap,
        inode_area_start_block: int,
        data_area_start_block: int,
    ) -> None:
        self.block_device = block_device
        self.inode_bitmap = inode_bitmap
        self.data_bitmap = data_bitmap
        self.inode_area_start_block = inode_area_start_block
        self.data_area_start_block = data_area_start_block
        self.lock = threading.RLock()

    def __repr__(self) -> str:
        return (
            f"EasyFileSystem(inode_area_start_block={self.inode_area_start_block}, "
            f"data_area_start_block={self.data_area_start_block})"
        )

    @classmethod
    def create(
        cls, block_device: BlockDevice, total_blocks: int, inode_bitmap_blocks: int
    ) -> EasyFileSystem:
        """Format ``block_device`` and return the new, empty file system."""
        inode_bitmap = Bitmap(1, inode_bitmap_blocks)
        inode_num = inode_bitmap.maximum()
        inode_area_blocks = (inode_num * DISK_INODE_SIZE + BLOCK_SZ - 1) // BLOCK_SZ
        inode_total_blocks = inode_bitmap_blocks + inode_area_blocks
        data_total_blocks = total_blocks - 1 - inode_total_blocks
        if data_total_blocks < 0:
            raise ValueError(
                f"{total_blocks} blocks cannot hold {inode_total_blocks} inode blocks"
            )
        data_bitmap_blocks = (data_total_blocks + 4096) // 4097
        data_area_blocks = data_total_blocks - data_bitmap_blocks
        data_bitmap = Bitmap(1 + inode_total_blocks, data_bitmap_blocks)
        efs = cls(
            block_device,
            inode_bitmap,
            data_bitmap,
            inode_area_start_block=1 + inode_bitmap_blocks,
            data_area_start_block=1 + inode_total_blocks + data_bitmap_blocks,
        )

        for block_id in range(total_blocks):
            cache = get_block_cache(block_id, block_device)
            with cache:
                cache.write(0, _ZERO_BLOCK)

        super_block = SuperBlock(
            total_blocks,
            inode_bitmap_blocks,
            inode_area_blocks,
            data_bitmap_blocks,
            data_area_blocks,
        )
        cache = get_block_cache(0, block_device)
        with cache:
            cache.write(0, super_block.to_bytes())

        if efs.alloc_inode() != 0:
            raise RuntimeError("root inode was not allocated as inode 0")
        root_block_id, root_offset = efs.get_disk_inode_pos(0)
        cache = get_block_cache(root_block_id, block_device)
        with cache:
            cache.write(root_offset, DiskInode(type_=DiskInodeType.DIRECTORY).to_bytes())
        block_cache_sync_all()
        return efs

    @classmethod
    def open(cls, block_device: BlockDevice) -> EasyFileSystem:
        """Open a file system previously formatted on ``block_device``."""
        cache = get_block_cache(0, block_device)
        with cache:
            super_block = SuperBlock.from_bytes(cache.read(0, SUPER_BLOCK_SIZE))
        if not super_block.is_valid():
            raise ValueError("Error loading EFS!")
        inode_total_blocks = super_block.inode_bitmap_blocks + super_block.inode_area_blocks
        return cls(
            block_device,
            Bitmap(1, super_block.inode_bitmap_blocks),
            Bitmap(1 + inode_total_blocks, super_block.data_bitmap_blocks),
            inode_area_start_block=1 + super_block.inode_bitmap_blocks,
            data_area_start_block=1 + inode_total_blocks + super_block.data_bitmap_blocks,
        )

    def root_inode(self) -> Inode:
        """Return the root directory."""
        with self.lock:
            block_id, block_offset = self.get_disk_inode_pos(0)
        return Inode(block_id, block_offset, self, self.block_device)

    def get_disk_inode_pos(self, inode_id: int) -> tuple[int, int]:
        """Return (block id, byte offset) of the disk inode numbered ``inode_id``."""
        block_index, slot = divmod(inode_id, _INODES_PER_BLOCK)
        return self.inode_area_start_block + block_index, slot * DISK_INODE_SIZE

    def get_data_block_id(self, data_block_id: int) -> int:
        """Return the device block id of the ``data_block_id``-th data block."""
        return self.data_area_start_block + data_block_id

    def alloc_inode(self) -> int:
        """Allocate an inode number."""
        inode_id = self.inode_bitmap.alloc(self.block_device)
        if inode_id is None:
            raise RuntimeError("no free inode left")
        return inode_id

    def alloc_data(self) -> int:
        """Allocate a data block and return its device block id."""
        bit = self.data_bitmap.alloc(self.block_device)
        if bit is None:
            raise RuntimeError("no free data block left")
        return bit + self.data_area_start_block

    def dealloc_data(self, block_id: int) -> None:
        """Zero the data block ``block_id`` and return it to the free pool."""
        cache = get_block_cache(block_id, self.block_device)
        with cache:
            cache.write(0, _ZERO_BLOCK)
        self.data_bitmap.dealloc(self.block_device, block_id - self.data_area_start_block)