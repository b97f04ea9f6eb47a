"""A small block-based file system: block devices and cache, on-disk layout, inodes, open-file handles, an image packer and Sv39 address helpers."""

__version__ = "0.1.0"

__all__ = [
    "address",
    "bitmap",
    "block_cache",
    "block_dev",
    "efs",
    "layout",
    "osfs",
    "packer",
    "vfs",
]