"""Pack a directory of application binaries into a file system image."""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from .block_dev import BLOCK_SZ, FileBlockDevice
from .efs import EasyFileSystem

IMAGE_NAME = "fs.img"
"""Name of the image file written into the target directory."""

IMAGE_BLOCKS = 16 * 2048
"""Size of the image in blocks: 16 MiB."""

INODE_BITMAP_BLOCKS = 1
"""Blocks given to the inode bitmap, enough for 4095 files besides the root."""


def _app_name(file_name: str) -> str:
    """Strip everything from the first dot of ``file_name``."""
    dot = file_name.find(".")
    if dot < 0:
        raise ValueError(f"{file_name!r} has no extension")
    return file_name[:dot]


def _app_names(source: str | os.PathLike[str]) -> list[str]:
    apps = [_app_name(name) for name in sorted(os.listdir(source))]
    seen: set[str] = set()
    for app in apps:
        if app in seen:
            raise FileExistsError(f"application {app!r} appears more than once")
        seen.add(app)
    return apps


def pack(source: str | os.PathLike[str], target: str | os.PathLike[str]) -> list[str]:
    """Build ``fs.img`` in ``target`` holding one file per entry of ``source``.

    Each entry of ``source`` names an application by its file name up to the
    first dot; the application's contents are read from the file of that name
    in ``target``. Returns the names of the files placed in the image.
    """
    apps = _app_names(source)
    image_path = os.path.join(target, IMAGE_NAME)
    flags = os.O_RDWR | os.O_CREAT | getattr(os, "O_BINARY", 0)
    fd = os.open(image_path, flags, 0o644)
    with os.fdopen(fd, "r+b") as image:
        image.truncate(IMAGE_BLOCKS * BLOCK_SZ)
        device = FileBlockDevice(image)
        efs = EasyFileSystem.create(device, IMAGE_BLOCKS, INODE_BITMAP_BLOCKS)
        root = efs.root_inode()
        for app in apps:
            data = Path(os.path.join(target, app)).read_bytes()
            inode = root.create(app)
            if inode is None:
                raise FileExistsError(f"application {app!r} already in the image")
            inode.write_at(0, data)
    return apps


def main(argv: list[str] | None = None) -> None:
    """Command-line entry point of the image packer."""
    parser = argparse.ArgumentParser(description="EasyFileSystem packer")
    parser.add_argument(
        "-s",
        "--source",
        required=True,
        help="Executable source dir (with trailing separator)",
    )
    parser.add_argument(
        "-t",
        "--target",
        required=True,
        help="Executable target dir (with trailing separator)",
    )
    args = parser.parse_args(argv)
    print(f"src_path = {args.source}\ntarget_path = {args.target}")
    pack(args.source, args.target)