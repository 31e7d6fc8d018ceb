import pytest

from rawalloc.align import MAX_ALIGNMENT, is_aligned
from rawalloc.aligned_allocator import AlignedAllocator, make_aligned_allocator
from rawalloc.static_allocator import StaticAllocator, StaticAllocatorStorage


class Recorder:
    """A plain allocator that records the calls it receives."""

    def __init__(self, max_alignment=64):
        self.calls = []
        self._next = 0x1000
        self._max_alignment = max_alignment

    def allocate_node(self, size, alignment):
        self.calls.append(("allocate_node", size, alignment))
        address = self._next
        self._next += size + alignment
        return address

    def deallocate_node(self, ptr, size, alignment):
        self.calls.append(("deallocate_node", ptr, size, alignment))

    def max_node_size(self):
        return 4096

    def max_alignment(self):
        return self._max_alignment


class ComposableRecorder(Recorder):
    def __init__(self, succeed=True):
        super().__init__()
        self.succeed = succeed

    def try_allocate_node(self, size, alignment):
        self.calls.append(("try_allocate_node", size, alignment))
        return 0x4000 if self.succeed else None

    def try_deallocate_node(self, ptr, size, alignment):
        self.calls.append(("try_deallocate_node", ptr, size, alignment))
        return self.succeed


def test_alignment_is_raised_to_minimum():
    rec = Recorder()
    alloc = AlignedAllocator(8, rec)
    alloc.allocate_node(10, 1)
    assert rec.calls[-1] == ("allocate_node", 10, 8)


def test_larger_alignment_is_kept():
    rec = Recorder()
    alloc = AlignedAllocator(8, rec)
    alloc.allocate_node(10, 32)
    assert rec.calls[-1] == ("allocate_node", 10, 32)


def test_deallocate_uses_adjusted_alignment():
    rec = Recorder()
    alloc = AlignedAllocator(16, rec)
    ptr = alloc.allocate_node(4, 2)
    alloc.deallocate_node(ptr, 4, 2)
    assert rec.calls[-1] == ("deallocate_node", ptr, 4, 16)


def test_array_falls_back_to_node():
    rec = Recorder()
    alloc = AlignedAllocator(16, rec)
    ptr = alloc.allocate_array(3, 5, 1)
    assert rec.calls[-1] == ("allocate_node", 15, 16)
    alloc.deallocate_array(ptr, 3, 5, 1)
    assert rec.calls[-1] == ("deallocate_node", ptr, 15, 16)


def test_max_values_are_forwarded():
    rec = Recorder(max_alignment=32)
    alloc = AlignedAllocator(4, rec)
    assert alloc.max_node_size() == rec.max_node_size()
    assert alloc.max_array_size() == rec.max_node_size()
    assert alloc.max_alignment() == 32


def test_min_alignment_above_maximum_is_rejected():
    with pytest.raises(ValueError):
        AlignedAllocator(128, Recorder(max_alignment=64))


def test_set_min_alignment():
    rec = Recorder()
    alloc = AlignedAllocator(4, rec)
    alloc.min_alignment = 32
    assert alloc.min_alignment == 32
    alloc.allocate_node(1, 1)
    assert rec.calls[-1] == ("allocate_node", 1, 32)
    with pytest.raises(ValueError):
        alloc.min_alignment = 128
    assert alloc.min_alignment == 32


def test_try_allocate_forwards_with_adjusted_alignment():
    rec = ComposableRecorder()
    alloc = AlignedAllocator(16, rec)
    assert alloc.try_allocate_node(8, 2) == 0x4000
    assert rec.calls[-1] == ("try_allocate_node", 8, 16)
    assert alloc.try_allocate_array(2, 4, 1) == 0x4000
    assert rec.calls[-1] == ("try_allocate_node", 8, 16)


def test_try_deallocate_reports_result():
    rec = ComposableRecorder(succeed=False)
    alloc = AlignedAllocator(16, rec)
    assert alloc.try_allocate_node(8, 2) is None
    assert alloc.try_deallocate_node(0x4000, 8, 2) is False
    assert rec.calls[-1] == ("try_deallocate_node", 0x4000, 8, 16)
    assert alloc.try_deallocate_array(0x4000, 2, 4, 1) is False


def test_try_on_non_composable_raises():
    alloc = AlignedAllocator(8, Recorder())
    with pytest.raises(TypeError):
        alloc.try_allocate_node(8, 1)
    with pytest.raises(TypeError):
        alloc.try_deallocate_node(0x1000, 8, 1)


def test_with_static_allocator_results_are_aligned():
    storage = StaticAllocatorStorage(1024)
    alloc = AlignedAllocator(64, StaticAllocator(storage))
    for size in (1, 3, 17):
        node = alloc.allocate_node(size, 1)
        assert is_aligned(node, 64)
        assert storage.contains(node)


def test_make_aligned_allocator():
    rec = Recorder()
    alloc = make_aligned_allocator(MAX_ALIGNMENT, rec)
    assert alloc.allocator is rec
    assert alloc.min_alignment == MAX_ALIGNMENT
    alloc.allocate_node(2, 1)
    assert rec.calls[-1] == ("allocate_node", 2, MAX_ALIGNMENT)