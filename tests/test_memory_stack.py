import pytest

from rawalloc.align import MAX_ALIGNMENT, is_aligned
from rawalloc.debug import DebugConfig, DebugMagic
from rawalloc.memory import NULL, Memory
from rawalloc.memory_stack import FixedMemoryStack

CONFIGS = [
    DebugConfig(fill=True, fence_size=8),
    DebugConfig(fill=True, fence_size=0),
    DebugConfig.release(),
]


@pytest.fixture(params=CONFIGS)
def config(request):
    with request.param.use() as active:
        yield active


def test_default_stack_is_empty():
    stack = FixedMemoryStack()
    assert stack.top == NULL
    assert stack.allocate(1024, 10, 1) is None


def test_starts_at_memory_base():
    mem = Memory(1024)
    stack = FixedMemoryStack(mem)
    assert stack.top == mem.base


def test_alignment_for_allocate(config):
    mem = Memory(1024)
    stack = FixedMemoryStack(mem)
    end = stack.top + 1024

    for size, alignment in [(13, 1), (10, 2), (10, MAX_ALIGNMENT), (10, 2 * MAX_ALIGNMENT)]:
        ptr = stack.allocate(end, size, alignment)
        assert ptr is not None
        assert is_aligned(ptr, alignment)
        assert mem.contains(ptr)


def test_allocate_and_unwind(config):
    mem = Memory(1024)
    stack = FixedMemoryStack(mem)
    end = stack.top + 1024
    fence = config.debug_fence_size

    assert stack.allocate(end, 10, 1) is not None
    diff = stack.top - mem.base
    assert diff == 2 * fence + 10

    assert stack.allocate(end, 16, 1) is not None
    diff2 = stack.top - mem.base
    assert diff2 == 2 * fence + 16 + diff

    stack.unwind(mem.base + diff)
    assert stack.top == mem.base + diff

    top = stack.top
    assert stack.allocate(end, 1024, 1) is None
    assert stack.top == top


def test_move(config):
    mem = Memory(1024)
    end = mem.base + 1024

    other = FixedMemoryStack(mem)
    assert other.top == mem.base

    stack = other.take()
    assert stack.top == mem.base
    assert other.top == NULL

    assert other.allocate(end, 10, 1) is None
    assert stack.allocate(end, 10, 1) is not None
    top = stack.top

    other = stack.take()
    assert other.top == top
    assert stack.allocate(end, 10, 1) is None
    assert other.allocate(end, 10, 1) is not None


def test_allocate_fills_fences_and_node():
    mem = Memory(64)
    stack = FixedMemoryStack(mem)
    with DebugConfig(fill=True, fence_size=8).use():
        ptr = stack.allocate(mem.end, 10, 1)
        assert ptr == mem.base + 8
        assert mem.read(mem.base, 8) == bytes([DebugMagic.FENCE_MEMORY]) * 8
        assert mem.read(ptr, 10) == bytes([DebugMagic.NEW_MEMORY]) * 10
        assert mem.read(ptr + 10, 8) == bytes([DebugMagic.FENCE_MEMORY]) * 8

        stack.unwind(mem.base)
        assert stack.top == mem.base
        assert mem.read(mem.base, 26) == bytes([DebugMagic.FREED_MEMORY]) * 26


def test_alignment_padding_is_marked():
    mem = Memory(64)
    stack = FixedMemoryStack(mem)
    with DebugConfig(fill=True, fence_size=0).use():
        stack.allocate(mem.end, 1, 1)
        ptr = stack.allocate(mem.end, 4, 8)
    assert ptr == mem.base + 8
    assert mem.read(mem.base + 1, 7) == bytes([DebugMagic.ALIGNMENT_MEMORY]) * 7


def test_no_fill_leaves_memory_untouched():
    mem = Memory(32)
    stack = FixedMemoryStack(mem)
    with DebugConfig.release().use():
        ptr = stack.allocate(mem.end, 16, 1)
        stack.unwind(mem.base)
    assert ptr == mem.base
    assert mem.read(mem.base, 32) == bytes(32)


def test_explicit_fence_size_overrides_config():
    mem = Memory(64)
    stack = FixedMemoryStack(mem)
    with DebugConfig.release().use():
        ptr = stack.allocate(mem.end, 4, 1, fence_size=4)
    assert ptr == mem.base + 4
    assert stack.top == mem.base + 12


def test_exact_fit_succeeds_and_one_more_fails():
    mem = Memory(16)
    stack = FixedMemoryStack(mem)
    with DebugConfig.release().use():
        assert stack.allocate(mem.end, 16, 1) == mem.base
        assert stack.allocate(mem.end, 1, 1) is None
    assert stack.top == mem.end


def test_bump_return_returns_old_top():
    mem = Memory(16)
    stack = FixedMemoryStack(mem)
    with DebugConfig(fill=True, fence_size=0).use():
        old = stack.bump_return(4)
        stack.bump(2)
    assert old == mem.base
    assert stack.top == mem.base + 6
    assert mem.read(mem.base, 4) == bytes([DebugMagic.NEW_MEMORY]) * 4
    assert mem.read(mem.base + 4, 2) == bytes(2)