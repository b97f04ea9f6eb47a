"""Inodes as seen by users of the file system: files and the directory tree."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from .block_cache import block_cache_sync_all, get_block_cache
from .block_dev import BlockDevice
from .layout import DIRENT_SZ, DISK_INODE_SIZE, DirEntry, DiskInode, DiskInodeType

if TYPE_CHECKING:
    from .efs import EasyFileSystem


class Inode:
    """A handle on one disk inode of a mounted file system."""

    def __init__(
        self,
        block_id: int,
        block_offset: int,
        fs: EasyFileSystem,
        block_device: BlockDevice,
    ) -> None:
        self.block_id = block_id
        self.block_offset = block_offset
        self.fs = fs
        self.block_device = block_device

    def __repr__(self) -> str:
        return f"Inode(block_id={self.block_id}, block_offset={self.block_offset})"

    def _read_disk_inode(self) -> DiskInode:
        cache = get_block_cache(self.block_id, self.block_device)
        with cache:
            return DiskInode.from_bytes(cache.read(self.block_offset, DISK_INODE_SIZE))

    @contextmanager
    def _modify_disk_inode(self) -> Iterator[DiskInode]:
        cache = get_block_cache(self.block_id, self.block_device)
        with cache:
            disk_inode = DiskInode.from_bytes(cache.read(self.block_offset, DISK_INODE_SIZE))
            yield disk_inode
            cache.write(self.block_offset, disk_inode.to_bytes())

    def _entries(self, disk_inode: DiskInode) -> Iterator[DirEntry]:
        for index in range(disk_inode.size // DIRENT_SZ):
            raw = disk_inode.read_at(index * DIRENT_SZ, DIRENT_SZ, self.block_device)
            if len(raw) != DIRENT_SZ:
                raise OSError("truncated directory entry")
            yield DirEntry.from_bytes(raw)

    def _find_inode_id(self, name: str, disk_inode: DiskInode) -> int | None:
        if not disk_inode.is_dir():
            raise NotADirectoryError("inode is not a directory")
        return next(
            (entry.inode_id for entry in self._entries(disk_inode) if entry.name == name),
            None,
        )

    def _child(self, inode_id: int) -> Inode:
        block_id, block_offset = self.fs.get_disk_inode_pos(inode_id)
        return Inode(block_id, block_offset, self.fs, self.block_device)

    def _increase_size(self, new_size: int, disk_inode: DiskInode) -> None:
        if new_size < disk_inode.size:
            return
        needed = disk_inode.blocks_num_needed(new_size)
        new_blocks = [self.fs.alloc_data() for _ in range(needed)]
        disk_inode.increase_size(new_size, new_blocks, self.block_device)

    def find(self, name: str) -> Inode | None:
        """Return the entry called ``name`` in this directory, or None."""
        with self.fs.lock:
            inode_id = self._find_inode_id(name, self._read_disk_inode())
            return None if inode_id is None else self._child(inode_id)

    def create(self, name: str) -> Inode | None:
        """Create an empty file called ``name``; return None if it already exists."""
        with self.fs.lock:
            if self._find_inode_id(name, self._read_disk_inode()) is not None:
                return None
            DirEntry(name).to_bytes()
            new_inode_id = self.fs.alloc_inode()
            block_id, block_offset = self.fs.get_disk_inode_pos(new_inode_id)
            cache = get_block_cache(block_id, self.block_device)
            with cache:
                cache.write(block_offset, DiskInode(type_=DiskInodeType.FILE).to_bytes())
            with self._modify_disk_inode() as root:
                file_count = root.size // DIRENT_SZ
                self._increase_size((file_count + 1) * DIRENT_SZ, root)
                root.write_at(
                    file_count * DIRENT_SZ,
                    DirEntry(name, new_inode_id).to_bytes(),
                    self.block_device,
                )
            block_cache_sync_all()
            return Inode(block_id, block_offset, self.fs, self.block_device)

    def ls(self) -> list[str]:
        """Return the names in this directory in creation order."""
        with self.fs.lock:
            return [entry.name for entry in self._entries(self._read_disk_inode())]

    def read_at(self, offset: int, length: int) -> bytes:
        """Read up to ``length`` bytes starting at ``offset``."""
        with self.fs.lock:
            return self._read_disk_inode().read_at(offset, length, self.block_device)

    def write_at(self, offset: int, data: bytes) -> int:
        """Write ``data`` at ``offset``, growing the file as needed; return bytes written."""
        with self.fs.lock:
            with self._modify_disk_inode() as disk_inode:
                self._increase_size(offset + len(data), disk_inode)
                written = disk_inode.write_at(offset, data, self.block_device)
            block_cache_sync_all()
            return written

    def clear(self) -> None:
        """Truncate to zero length and free every block the inode held."""
        with self.fs.lock:
            with self._modify_disk_inode() as disk_inode:
                size = disk_inode.size
                released = disk_inode.clear_size(self.block_device)
                if len(released) != DiskInode.total_blocks(size):
                    raise RuntimeError("released block count does not match the size")
                for block_id in released:
                    self.fs.dealloc_data(block_id)
            block_cache_sync_all()