"""SV39 physical and virtual addresses and page numbers, with kernel layout constants."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Generic, Iterator, TypeVar

USIZE_MAX = (1 << 64) - 1
"""Largest value of a 64-bit machine word."""

USER_STACK_SIZE = 1024 * 16
"""Size of a user application's stack."""
KERNEL_STACK_SIZE = 4096 * 16
"""Size of a kernel stack."""
KERNEL_HEAP_SIZE = 0x100_0000
"""Size of the kernel heap."""
PRE_ALLOC_PAGES = 8
"""Pages allocated ahead when setting up user resources."""
PAGE_SIZE = 0x1000
"""Size of a page: 4 KiB."""
PAGE_SIZE_BITS = 0xC
"""Number of bits of the offset within a page."""
MAX_SYSCALL_NUM = 500
"""Largest system call number."""
TRAMPOLINE = USIZE_MAX - PAGE_SIZE + 1
"""Virtual address of the trampoline page."""
CLOCK_FREQ = 12500000
"""Clock frequency in Hz."""
KERNEL_DIRECT_OFFSET = 0xFFFF_FFC0_0000_0000
"""Offset at which physical memory is mapped into the kernel's address space."""
MEMORY_END = 0x13FFFFFFF + KERNEL_DIRECT_OFFSET
"""Kernel address of the end of physical memory."""
MMIO = ((0x10001000, 0x1000),)
"""Base and size of the memory-mapped control registers of the block device."""
KERNEL_PGNUM_OFFSET = KERNEL_DIRECT_OFFSET >> PAGE_SIZE_BITS
"""Page-number offset of the direct mapping: vpn = ppn + offset."""
USER_HEAP_SIZE = 0x400_0000
"""Size of a user heap."""
USER_SPACE_SIZE = 0x30_0000_0000
"""Total size of a user address space."""
THREAD_MAX_NUM = 3000
"""Largest number of threads."""
USER_TRAP_CONTEXT_TOP = USER_SPACE_SIZE
"""Top of the user address space layout."""
USER_STACK_TOP = USER_TRAP_CONTEXT_TOP - PAGE_SIZE * THREAD_MAX_NUM
"""Top of the user stacks."""
MMAP_TOP = (
    USER_TRAP_CONTEXT_TOP
    - PAGE_SIZE * THREAD_MAX_NUM
    - USER_STACK_SIZE * THREAD_MAX_NUM
    - PAGE_SIZE
)
"""Top of the memory-mapped area."""
KSTACK_TOP = USIZE_MAX - PAGE_SIZE + 1
"""Top of the kernel stacks."""

PA_WIDTH_SV39 = 56
VA_WIDTH_SV39 = 39
PPN_WIDTH_SV39 = PA_WIDTH_SV39 - PAGE_SIZE_BITS
VPN_WIDTH_SV39 = VA_WIDTH_SV39 - PAGE_SIZE_BITS


def _signed(value: int) -> int:
    """Interpret a machine word as a two's-complement signed integer."""
    return value - (1 << 64) if value >> 63 else value


def _sign_extended(value: int, width: int) -> bool:
    """Whether every bit from ``width`` upwards is equal, as for a canonical value."""
    return _signed(value) >> width in (0, -1)


def _page_offset(value: int) -> int:
    return value & (PAGE_SIZE - 1)


@dataclass(frozen=True, order=True, repr=False)
class _Word:
    """A machine word with a kind; constructing it checks the value is valid."""

    value: int
    _LABEL: ClassVar[str] = ""

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"{type(self).__name__} needs an int, got {self.value!r}")
        if not 0 <= self.value <= USIZE_MAX:
            raise ValueError(f"{self.value:#x} does not fit in a machine word")
        self._validate()

    def _validate(self) -> None:
        pass

    @classmethod
    def _raw(cls, value: int):
        """Build without validation, wrapping to a machine word."""
        obj = object.__new__(cls)
        object.__setattr__(obj, "value", value & USIZE_MAX)
        return obj

    def _offset(self, delta: int):
        result = self.value + delta
        if not 0 <= result <= USIZE_MAX:
            raise OverflowError(f"{type(self).__name__} arithmetic out of range")
        return type(self)._raw(result)

    def __repr__(self) -> str:
        return f"{self._LABEL}:{self.value:#x}"


class _Address(_Word):
    def _operand(self, other: object) -> int | None:
        if type(other) is type(self):
            return other.value  # type: ignore[attr-defined]
        if isinstance(other, int) and not isinstance(other, bool):
            return other
        return None

    def __add__(self, other: object):
        operand = self._operand(other)
        if operand is None:
            return NotImplemented
        return self._offset(operand)

    def __sub__(self, other: object):
        operand = self._operand(other)
        if operand is None:
            return NotImplemented
        return self._offset(-operand)

    def _floor_number(self) -> int:
        return self.value // PAGE_SIZE

    def _ceil_number(self) -> int:
        return ((self.value - 1 + PAGE_SIZE) & USIZE_MAX) // PAGE_SIZE


class _PageNumber(_Word):
    def _successor(self):
        return type(self)._raw(self.value + 1)


class VirtAddr(_Address):
    """A virtual address; it must be canonical for 39-bit virtual addressing."""

    _LABEL = "VA"

    def _validate(self) -> None:
        if not _sign_extended(self.value, VA_WIDTH_SV39):
            raise ValueError(f"invalid va: {self.value:#x}")

    def floor(self) -> VirtPageNum:
        """Number of the page containing the address."""
        return VirtPageNum._raw(self._floor_number())

    def ceil(self) -> VirtPageNum:
        """Number of the first page starting at or after the address."""
        return VirtPageNum._raw(self._ceil_number())

    def page_offset(self) -> int:
        """Offset of the address within its page."""
        return _page_offset(self.value)

    def aligned(self) -> bool:
        """Whether the address is page-aligned."""
        return self.page_offset() == 0

    def as_usize(self) -> int:
        """The address as a machine word, sign-extended from bit 38."""
        if self.value >= 1 << (VA_WIDTH_SV39 - 1):
            return self.value | (~((1 << VA_WIDTH_SV39) - 1) & USIZE_MAX)
        return self.value


class PhysAddr(_Address):
    """A physical address of at most 56 bits."""

    _LABEL = "PA"

    def _validate(self) -> None:
        if not _sign_extended(self.value, PA_WIDTH_SV39):
            raise ValueError(f"invalid pa: {self.value:#x}")

    def floor(self) -> PhysPageNum:
        """Number of the frame containing the address."""
        return PhysPageNum._raw(self._floor_number())

    def ceil(self) -> PhysPageNum:
        """Number of the first frame starting at or after the address."""
        return PhysPageNum._raw(self._ceil_number())

    def page_offset(self) -> int:
        """Offset of the address within its frame."""
        return _page_offset(self.value)

    def aligned(self) -> bool:
        """Whether the address is page-aligned."""
        return self.page_offset() == 0

    def to_kernel(self) -> KernelAddr:
        """The kernel address at which this physical address is mapped."""
        return KernelAddr(self.value + KERNEL_DIRECT_OFFSET)


class KernelAddr(_Word):
    """An address in the kernel's direct mapping of physical memory."""

    _LABEL = "KA"

    def to_phys(self) -> PhysAddr:
        """The physical address this kernel address maps."""
        if self.value < KERNEL_DIRECT_OFFSET:
            raise ValueError(f"{self!r} lies below the direct mapping")
        return PhysAddr._raw(self.value - KERNEL_DIRECT_OFFSET)


class VirtPageNum(_PageNumber):
    """A virtual page number."""

    _LABEL = "VPN"

    def _validate(self) -> None:
        top = self.value >> (VPN_WIDTH_SV39 - 1)
        if top not in (0, (1 << (52 - VPN_WIDTH_SV39 + 1)) - 1):
            raise ValueError(f"invalid vpn: {self.value:#x}")

    def indexes(self) -> tuple[int, int, int]:
        """Page-table indexes of the three levels, root level first."""
        vpn = self.value
        return ((vpn >> 18) & 511, (vpn >> 9) & 511, vpn & 511)

    def to_addr(self) -> VirtAddr:
        """Address of the start of the page."""
        return VirtAddr._raw(self.value << PAGE_SIZE_BITS)


class PhysPageNum(_PageNumber):
    """A physical page (frame) number."""

    _LABEL = "PPN"

    def _validate(self) -> None:
        if not _sign_extended(self.value, PPN_WIDTH_SV39):
            raise ValueError(f"invalid ppn: {self.value:#x}")

    def to_addr(self) -> PhysAddr:
        """Address of the start of the frame."""
        return PhysAddr._raw(self.value << PAGE_SIZE_BITS)


P = TypeVar("P", VirtPageNum, PhysPageNum)


class SimpleRange(Generic[P]):
    """The half-open range of page numbers [start, end)."""

    def __init__(self, start: P, end: P) -> None:
        if not isinstance(start, _PageNumber) or type(start) is not type(end):
            raise TypeError("a range needs two page numbers of the same kind")
        if start > end:
            raise ValueError(f"start {start!r} > end {end!r}!")
        self.start = start
        self.end = end

    def __iter__(self) -> Iterator[P]:
        current = self.start
        while current != self.end:
            yield current
            current = current._successor()

    def __len__(self) -> int:
        return self.end.value - self.start.value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SimpleRange):
            return NotImplemented
        return (self.start, self.end) == (other.start, other.end)

    def __repr__(self) -> str:
        return f"SimpleRange({self.start!r}, {self.end!r})"


VPNRange = SimpleRange
"""A range of virtual page numbers."""