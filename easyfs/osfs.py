"""Open files with an offset, on top of file system inodes."""

from __future__ import annotations

import threading
from enum import IntFlag

from .vfs import Inode

_READ_CHUNK = 512


class OpenFlags(IntFlag):
    """Flags accepted when opening a file."""

    RDONLY = 0
    WRONLY = 1 << 0
    RDWR = 1 << 1
    CREATE = 1 << 9
    TRUNC = 1 << 10

    def read_write(self) -> tuple[bool, bool]:
        """Return (readable, writable) without checking the flags for consistency."""
        if not self:
            return True, False
        if self & OpenFlags.WRONLY:
            return False, True
        return True, True


class StatMode(IntFlag):
    """Kind of an inode as reported by stat."""

    NULL = 0
    DIR = 0o040000
    FILE = 0o100000


class OSInode:
    """An open file: an inode with a current offset and access rights."""

    def __init__(self, readable: bool, writable: bool, inode: Inode) -> None:
        self.readable = readable
        self.writable = writable
        self.inode = inode
        self.offset = 0
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"OSInode(readable={self.readable}, writable={self.writable}, "
            f"offset={self.offset})"
        )

    def read_all(self) -> bytes:
        """Read from the current offset to the end of the file."""
        with self._lock:
            parts = []
            while chunk := self.inode.read_at(self.offset, _READ_CHUNK):
                self.offset += len(chunk)
                parts.append(chunk)
            return b"".join(parts)

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes at the current offset and advance it."""
        with self._lock:
            data = self.inode.read_at(self.offset, size)
            self.offset += len(data)
            return data

    def write(self, data: bytes) -> int:
        """Write ``data`` at the current offset and advance it; return bytes written."""
        with self._lock:
            written = self.inode.write_at(self.offset, data)
            if written != len(data):
                raise OSError(f"short write: {written} of {len(data)} bytes")
            self.offset += written
            return written

    def clear(self) -> None:
        """Truncate the underlying file to zero length."""
        with self._lock:
            self.inode.clear()


def open_file(root: Inode, name: str, flags: OpenFlags | int) -> OSInode | None:
    """Open ``name`` in the directory ``root``; return None if it cannot be opened."""
    flags = OpenFlags(flags)
    readable, writable = flags.read_write()
    if flags & OpenFlags.CREATE:
        inode = root.find(name)
        if inode is not None:
            inode.clear()
        else:
            inode = root.create(name)
            if inode is None:
                return None
        return OSInode(readable, writable, inode)
    inode = root.find(name)
    if inode is None:
        return None
    if flags & OpenFlags.TRUNC:
        inode.clear()
    return OSInode(readable, writable, inode)


def list_apps(root: Inode) -> None:
    """Print the names held in the directory ``root``."""
    print("/**** APPS ****")
    for app in root.ls():
        print(app)
    print("**************/")