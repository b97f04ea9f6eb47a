# easyfs

A small, self-contained file system that lives on a block device of
512-byte blocks. A formatted device is divided into a super block, an
inode bitmap, an inode area, a data bitmap and a data area. Each file is
addressed through 28 direct block pointers, one single indirect block and
one double indirect block. The root directory is flat and holds file
entries whose names are at most 27 bytes of UTF-8.

The package has no dependencies beyond the Python standard library and
needs Python 3.10 or later.

## Installing

```
pip install .
```

## Packing a directory into an image

`easyfs-pack` formats a 16 MiB image, 32768 blocks with one inode bitmap
block, and writes it to `fs.img` in the target directory. An existing
`fs.img` is overwritten.

```
easyfs-pack --source build/apps --target build
```

Both `--source` and `--target` are required. The tool works like this:

- It lists the entries of the source directory in sorted order.
- For each entry, it takes the name up to the first dot as the name of a
  file in the image.
- It reads that file's contents from the file with the same bare name in
  the target directory.

An entry without a dot raises `ValueError`. Two entries that reduce to the
same name raise `FileExistsError`. The tool prints the two paths before it
starts.

You can do the same from Python with `easyfs.packer.pack(source, target)`.
It returns the list of names placed in the image.

## Using the library

```python
from easyfs.block_dev import MemoryBlockDevice
from easyfs.efs import EasyFileSystem

device = MemoryBlockDevice(4096)
fs = EasyFileSystem.create(device, 4096, 1)
root = fs.root_inode()

hello = root.create("hello")
hello.write_at(0, b"Hello, world!")
print(root.ls())             # ['hello']
print(hello.read_at(0, 64))  # b'Hello, world!'
```

How the `Inode` methods behave:

- `Inode.create(name)` returns `None` if the name already exists.
- `Inode.find(name)` returns `None` if nothing has that name.
- `Inode.write_at` grows the file as needed.
- `Inode.clear` truncates the file to zero and frees its blocks.
- Calling `find`, `create` or `ls` on a file rather than the directory
  raises `NotADirectoryError`.

You can reopen an existing image from a file:

```python
from easyfs.block_dev import FileBlockDevice
from easyfs.efs import EasyFileSystem

with open("build/fs.img", "r+b") as image:
    fs = EasyFileSystem.open(FileBlockDevice(image))
    for name in fs.root_inode().ls():
        print(name)
```

If the device does not hold a formatted file system, `EasyFileSystem.open`
raises `ValueError`.

### Block cache

All blocks go through one module-level cache of 16 blocks, kept
first-in first-out. Blocks are keyed by block id and device object.

`Inode.create`, `Inode.write_at`, `Inode.clear` and
`EasyFileSystem.create` write every modified cached block back before they
return. If you write through `BlockCache` yourself, call
`easyfs.block_cache.block_cache_sync_all()` before closing the underlying
file.

A block held with `with cache:` is never evicted. If all 16 blocks are held
at once, `RuntimeError("Run out of BlockCache!")` is raised. For a cache of
your own, use `BlockCacheManager(capacity)`.

### File handles with an offset

`easyfs.osfs` provides `OSInode`, a file handle that keeps its own offset,
and `open_file`, which opens a name in a directory:

```python
from easyfs.osfs import OpenFlags, open_file

handle = open_file(root, "notes", OpenFlags.CREATE | OpenFlags.RDWR)
handle.write(b"first line\n")
```

`open_file` handles the flags as follows:

- With `CREATE`, an existing file is truncated; otherwise a new file is
  created.
- Without `CREATE`, a missing file gives `None`, and `TRUNC` truncates an
  existing one.

`OpenFlags.read_write()` reports `(readable, writable)`:

| Flags | Readable | Writable |
| --- | --- | --- |
| `RDONLY` | yes | no |
| any set containing `WRONLY` | no | yes |
| anything else | yes | yes |

`OSInode` methods:

- `read(size)` reads from the current offset and advances it.
- `read_all()` reads to the end of the file.
- `write(data)` writes at the current offset and advances it.
- `clear()` truncates the file.

`list_apps(root)` prints the directory listing between two banner lines.

### Address helpers

`easyfs.address` holds Sv39 address and page-number values, along with
kernel memory-layout constants such as `PAGE_SIZE` and
`KERNEL_DIRECT_OFFSET`. The values are `VirtAddr`, `PhysAddr`,
`KernelAddr`, `VirtPageNum` and `PhysPageNum`.

- Construction checks that the value is canonical and raises `ValueError`
  if not.
- `floor`, `ceil`, `page_offset` and `aligned` give page arithmetic.
- `VirtPageNum.indexes()` gives the three page-table indexes.
- `PhysAddr.to_kernel()` and `KernelAddr.to_phys()` convert across the
  kernel's direct mapping.
- `SimpleRange(start, end)` (also named `VPNRange`) iterates over the
  half-open range of page numbers.

### Modules

- `easyfs.block_dev`: `BlockDevice`, `FileBlockDevice`, `MemoryBlockDevice`, `BLOCK_SZ`
- `easyfs.block_cache`: `BlockCache`, `BlockCacheManager`, `get_block_cache`, `block_cache_sync_all`
- `easyfs.bitmap`: `Bitmap`
- `easyfs.layout`: `SuperBlock`, `DiskInode`, `DiskInodeType`, `DirEntry`
- `easyfs.efs`: `EasyFileSystem`
- `easyfs.vfs`: `Inode`
- `easyfs.osfs`: `OpenFlags`, `StatMode`, `OSInode`, `open_file`, `list_apps`
- `easyfs.packer`: `pack`, `main`
- `easyfs.address`: `VirtAddr`, `PhysAddr`, `KernelAddr`, `VirtPageNum`, `PhysPageNum`, `SimpleRange`

## What it does not do

- It cannot mount an image into the host's file tree. Images are read and
  written only through the Python API and `easyfs-pack`.
- There are no subdirectories. Every file lives in the root directory.
- There are no deletion, renaming or permissions. A file can be emptied
  with `clear`, but its directory entry and inode stay.
- The address helpers are plain values. There are no page tables, frame
  allocator or memory mapping behind them.

## Running the tests

```
pip install .[test]
pytest
```