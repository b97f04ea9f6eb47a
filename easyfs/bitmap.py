"""Allocation bitmaps stored in consecutive device blocks."""

from __future__ import annotations

from .block_cache import get_block_cache
from .block_dev import BLOCK_SZ, BlockDevice

BLOCK_BITS = BLOCK_SZ * 8
"""Number of bits held by one bitmap block."""

_FULL_BLOCK = (1 << BLOCK_BITS) - 1


class Bitmap:
    """A bitmap spanning ``blocks`` blocks starting at ``start_block_id``.

    Bit ``i`` of a block is bit ``i % 8`` of byte ``i // 8``, so the block
    read as one little-endian integer has bit ``i`` at position ``i``.
    """

    def __init__(self, start_block_id: int, blocks: int) -> None:
        self.start_block_id = start_block_id
        self.blocks = blocks

    def __repr__(self) -> str:
        return f"Bitmap(start_block_id={self.start_block_id}, blocks={self.blocks})"

    def alloc(self, block_device: BlockDevice) -> int | None:
        """Set the lowest clear bit and return its index, or None if all are set."""
        for block_pos in range(self.blocks):
            cache = get_block_cache(self.start_block_id + block_pos, block_device)
            with cache:
                value = int.from_bytes(cache.read(0, BLOCK_SZ), "little")
                free = ~value & _FULL_BLOCK
                if not free:
                    continue
                bit = (free & -free).bit_length() - 1
                byte_pos, inner = divmod(bit, 8)
                current = cache.read(byte_pos, 1)[0]
                cache.write(byte_pos, bytes([current | (1 << inner)]))
                return block_pos * BLOCK_BITS + bit
        return None

    def dealloc(self, block_device: BlockDevice, bit: int) -> None:
        """Clear ``bit``; raise ValueError if it is not currently set."""
        if not 0 <= bit < self.maximum():
            raise ValueError(f"bit {bit} outside bitmap of {self.maximum()} bits")
        block_pos, inner_bit = divmod(bit, BLOCK_BITS)
        byte_pos, inner = divmod(inner_bit, 8)
        cache = get_block_cache(self.start_block_id + block_pos, block_device)
        with cache:
            current = cache.read(byte_pos, 1)[0]
            if not current & (1 << inner):
                raise ValueError(f"bit {bit} is not allocated")
            cache.write(byte_pos, bytes([current & ~(1 << inner)]))

    def maximum(self) -> int:
        """Return the number of bits the bitmap can allocate."""
        return self.blocks * BLOCK_BITS