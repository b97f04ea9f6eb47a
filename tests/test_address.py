import pytest

from easyfs.address import (
    KERNEL_DIRECT_OFFSET,
    KERNEL_PGNUM_OFFSET,
    MEMORY_END,
    PAGE_SIZE,
    USIZE_MAX,
    KernelAddr,
    PhysAddr,
    PhysPageNum,
    SimpleRange,
    VirtAddr,
    VirtPageNum,
)

ADDRESSES = [0, 1, PAGE_SIZE - 1, PAGE_SIZE, 0x12345678, KERNEL_DIRECT_OFFSET + 0x2001]


@pytest.mark.parametrize("value", ADDRESSES)
def test_virt_floor_and_offset_rebuild_address(value):
    addr = VirtAddr(value)
    assert addr.floor().to_addr().value + addr.page_offset() == value
    assert addr.page_offset() < PAGE_SIZE


@pytest.mark.parametrize("value", ADDRESSES)
def test_virt_ceil_relative_to_floor(value):
    addr = VirtAddr(value)
    gap = addr.ceil().value - addr.floor().value
    if addr.aligned():
        assert gap == 0
    else:
        assert gap == 1


@pytest.mark.parametrize("value", [0, PAGE_SIZE + 7, MEMORY_END - KERNEL_DIRECT_OFFSET])
def test_phys_floor_ceil_invariants(value):
    addr = PhysAddr(value)
    assert addr.floor().to_addr().value + addr.page_offset() == value
    assert addr.ceil() >= addr.floor()
    assert addr.ceil().to_addr().value >= value


def test_as_usize_lower_half_unchanged():
    assert VirtAddr(0x1234).as_usize() == 0x1234


def test_as_usize_sign_extends_upper_half():
    value = (1 << 38) | 5
    result = VirtAddr(value).as_usize()
    assert result & ((1 << 39) - 1) == value
    assert result >> 63 == 1
    assert VirtAddr(result).as_usize() == result


def test_kernel_virtual_address_is_canonical():
    assert VirtAddr(KERNEL_DIRECT_OFFSET).as_usize() == KERNEL_DIRECT_OFFSET


@pytest.mark.parametrize(
    "cls, value",
    [
        (VirtAddr, 1 << 39),
        (PhysAddr, 1 << 56),
        (PhysPageNum, 1 << 44),
        (VirtPageNum, 1 << 26),
        (VirtAddr, -1),
        (PhysAddr, USIZE_MAX + 1),
    ],
)
def test_invalid_values_rejected(cls, value):
    with pytest.raises(ValueError):
        cls(value)


def test_non_integer_rejected():
    with pytest.raises(TypeError):
        VirtAddr("4096")


def test_high_vpn_accepted_and_shifted():
    vpn = VirtPageNum(USIZE_MAX >> 12)
    assert vpn.to_addr().value == (USIZE_MAX >> 12) << 12


def test_kernel_round_trip():
    pa = PhysAddr(0x8020_0000)
    ka = pa.to_kernel()
    assert ka.value == 0x8020_0000 + KERNEL_DIRECT_OFFSET
    assert ka.to_phys() == pa


def test_kernel_below_direct_mapping_raises():
    with pytest.raises(ValueError):
        KernelAddr(0).to_phys()


def test_repr_formats():
    assert repr(VirtAddr(0x1000)) == "VA:0x1000"
    assert repr(KernelAddr(0x10)) == "KA:0x10"
    assert repr(PhysPageNum(0)).startswith("PPN:")


def test_address_arithmetic():
    assert VirtAddr(0x1000) + 0x10 == VirtAddr(0x1010)
    assert VirtAddr(0x1010) - VirtAddr(0x10) == VirtAddr(0x1000)
    a, b = PhysAddr(0x3000), PhysAddr(0x500)
    assert (a + b) - b == a


def test_address_arithmetic_overflow():
    with pytest.raises(OverflowError):
        PhysAddr(0) - 1


def test_ordering_and_kinds():
    assert VirtPageNum(1) < VirtPageNum(2)
    assert (VirtAddr(1) == PhysAddr(1)) is False
    with pytest.raises(TypeError):
        VirtAddr(1) < PhysAddr(2)


def test_range_iterates_consecutive_pages():
    pages = list(SimpleRange(VirtPageNum(3), VirtPageNum(7)))
    assert pages == [VirtPageNum(i) for i in range(3, 7)]
    assert len(SimpleRange(VirtPageNum(3), VirtPageNum(7))) == len(pages)


def test_empty_range():
    assert list(SimpleRange(PhysPageNum(5), PhysPageNum(5))) == []


def test_range_start_after_end_raises():
    with pytest.raises(ValueError):
        SimpleRange(VirtPageNum(8), VirtPageNum(2))


def test_range_mixed_kinds_raises():
    with pytest.raises(TypeError):
        SimpleRange(VirtPageNum(1), PhysPageNum(2))


def test_range_from_addresses():
    start = VirtAddr(PAGE_SIZE + 1)
    end = VirtAddr(4 * PAGE_SIZE - 1)
    pages = list(SimpleRange(start.floor(), end.ceil()))
    assert pages[0] == start.floor()
    assert pages[-1].to_addr().value <= end.value
    assert len(pages) == end.ceil().value - start.floor().value