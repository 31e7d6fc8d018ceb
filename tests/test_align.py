import pytest

from rawalloc.align import (
    MAX_ALIGNMENT,
    align_offset,
    alignment_for,
    ilog2,
    ilog2_ceil,
    is_aligned,
    is_power_of_two,
    is_valid_alignment,
)


@pytest.mark.parametrize(
    "address, alignment, expected",
    [
        (0, 1, 0),
        (0, 16, 0),
        (1, 1, 0),
        (1, 16, 15),
        (8, 4, 0),
        (8, 8, 0),
        (8, 16, 8),
        (16, 16, 0),
        (1025, 16, 15),
    ],
)
def test_align_offset(address, alignment, expected):
    assert align_offset(address, alignment) == expected


@pytest.mark.parametrize(
    "address, alignment, expected",
    [
        (0, 1, True),
        (0, 8, True),
        (0, 16, True),
        (1, 1, True),
        (1, 16, False),
        (8, 1, True),
        (8, 4, True),
        (8, 8, True),
        (8, 16, False),
        (16, 1, True),
        (16, 8, True),
        (16, 16, True),
        (1025, 1, True),
        (1025, 16, False),
    ],
)
def test_is_aligned(address, alignment, expected):
    assert is_aligned(address, alignment) is expected


def test_alignment_for():
    assert MAX_ALIGNMENT >= 8
    assert alignment_for(1) == 1
    assert alignment_for(2) == 2
    assert alignment_for(3) == 2
    assert alignment_for(4) == 4
    assert alignment_for(5) == 4
    assert alignment_for(6) == 4
    assert alignment_for(7) == 4
    assert alignment_for(8) == 8
    assert alignment_for(9) == 8
    assert alignment_for(100) == MAX_ALIGNMENT


@pytest.mark.parametrize("alignment", [0, 3, 6, 12, -4])
def test_invalid_alignment_rejected(alignment):
    assert not is_valid_alignment(alignment)
    with pytest.raises(ValueError):
        align_offset(8, alignment)
    with pytest.raises(ValueError):
        is_aligned(8, alignment)


def test_valid_alignments():
    assert all(is_valid_alignment(1 << i) for i in range(20))


def test_align_offset_produces_aligned_address():
    for address in range(0, 200):
        for shift in range(6):
            alignment = 1 << shift
            offset = align_offset(address, alignment)
            assert 0 <= offset < alignment
            assert is_aligned(address + offset, alignment)


def test_is_power_of_two():
    assert is_power_of_two(1)
    assert is_power_of_two(1024)
    assert not is_power_of_two(3)
    assert not is_power_of_two(1023)


def test_ilog2_small():
    for i in range(16):
        power = 1 << i
        for x in range(power, 2 * power):
            assert ilog2(x) == i


def test_ilog2_large():
    assert ilog2(1 << 32) == 32
    assert ilog2((1 << 32) + 44) == 32
    assert ilog2((1 << 32) + 2048) == 32
    assert ilog2(1 << 48) == 48
    assert ilog2((1 << 48) + 44) == 48
    assert ilog2((1 << 48) + 2048) == 48
    assert ilog2(1 << 63) == 63
    assert ilog2((1 << 63) + 44) == 63
    assert ilog2((1 << 63) + 2063) == 63


def test_ilog2_ceil_small():
    for i in range(16):
        power = 1 << i
        assert ilog2_ceil(power) == i
        for x in range(power + 1, 2 * power):
            assert ilog2_ceil(x) == i + 1


def test_ilog2_ceil_large():
    assert ilog2_ceil(1 << 32) == 32
    assert ilog2_ceil((1 << 32) + 44) == 33
    assert ilog2_ceil((1 << 32) + 2048) == 33
    assert ilog2_ceil(1 << 48) == 48
    assert ilog2_ceil((1 << 48) + 44) == 49
    assert ilog2_ceil((1 << 48) + 2048) == 49
    assert ilog2_ceil(1 << 63) == 63
    assert ilog2_ceil((1 << 63) + 44) == 64
    assert ilog2_ceil((1 << 63) + 2063) == 64


def test_ilog2_of_zero_rejected():
    with pytest.raises(ValueError):
        ilog2(0)
    with pytest.raises(ValueError):
        ilog2_ceil(0)