"""Allocators that carve their memory out of one fixed-size storage."""

from __future__ import annotations

import copy
from dataclasses import dataclass

from .align import MAX_ALIGNMENT, is_aligned
from .debug import debug_check_pointer
from .errors import LOG_PREFIX, AllocatorInfo, OutOfFixedMemory
from .memory import NULL, Memory
from .memory_stack import FixedMemoryStack

SIZE_MAX = (1 << 64) - 1
"""The largest value of an unsigned machine word."""


@dataclass(frozen=True)
class MemoryBlock:
    """A contiguous block of memory handed out by a block allocator."""

    memory: int
    size: int

    @property
    def end(self) -> int:
        """The address one past the last byte of the block."""
        return self.memory + self.size

    def contains(self, address: int) -> bool:
        """Return whether ``address`` lies inside the block."""
        return self.memory <= address < self.end


class StaticAllocatorStorage(Memory):
    """Fixed storage whose start is aligned for any fundamental type."""

    def __init__(self, size: int, base: int = 0x1000) -> None:
        if base <= NULL or not is_aligned(base, MAX_ALIGNMENT):
            raise ValueError(
                f"storage base {base:#x} must be a positive multiple of {MAX_ALIGNMENT}"
            )
        super().__init__(size, base)


class StaticAllocator:
    """Allocates nodes from a storage by bumping a pointer; deallocation does nothing.

    A storage must not be shared between several allocators.
    """

    def __init__(self, storage: StaticAllocatorStorage) -> None:
        self._storage = storage
        self._stack = FixedMemoryStack(storage)
        self._end = storage.end

    @property
    def storage(self) -> StaticAllocatorStorage:
        """The storage the allocations come from."""
        return self._storage

    @property
    def info(self) -> AllocatorInfo:
        """Identifies this allocator in error reports."""
        return AllocatorInfo(f"{LOG_PREFIX}::static_allocator", self)

    def allocate_node(self, size: int, alignment: int) -> int:
        """Return the address of ``size`` bytes aligned to ``alignment``.

        Raises :class:`OutOfFixedMemory` when the storage is exhausted.
        """
        memory = self._stack.allocate(self._end, size, alignment)
        if memory is None:
            raise OutOfFixedMemory(self.info, size)
        return memory

    def deallocate_node(self, node: int, size: int, alignment: int) -> None:
        """Do nothing: memory cannot be given back to a static allocator."""

    def max_node_size(self) -> int:
        """Return the capacity remaining in the storage."""
        return self._end - self._stack.top

    def max_alignment(self) -> int:
        """Return the largest possible value; alignment is only limited by the storage size."""
        return SIZE_MAX


class StaticBlockAllocator:
    """Hands out equally sized blocks from a storage, released in reverse order."""

    def __init__(self, block_size: int, storage: StaticAllocatorStorage) -> None:
        if block_size <= 0:
            raise ValueError(f"block size must be positive, got {block_size}")
        if block_size > len(storage):
            raise ValueError(
                f"block size {block_size} exceeds storage size {len(storage)}"
            )
        if len(storage) % block_size != 0:
            raise ValueError(
                f"storage size {len(storage)} is not a multiple of block size {block_size}"
            )
        self._storage: StaticAllocatorStorage | None = storage
        self._cur = storage.base
        self._end = storage.end
        self._block_size = block_size

    @property
    def storage(self) -> StaticAllocatorStorage | None:
        """The storage the blocks come from, ``None`` once moved from."""
        return self._storage

    @property
    def info(self) -> AllocatorInfo:
        """Identifies this allocator in error reports."""
        return AllocatorInfo(f"{LOG_PREFIX}::static_block_allocator", self)

    def allocate_block(self) -> MemoryBlock:
        """Return the next block of :meth:`next_block_size` bytes.

        Raises :class:`OutOfFixedMemory` when the storage is exhausted.
        """
        if self._cur + self._block_size > self._end:
            raise OutOfFixedMemory(self.info, self._block_size)
        block = MemoryBlock(self._cur, self._block_size)
        self._cur += self._block_size
        return block

    def deallocate_block(self, block: MemoryBlock) -> None:
        """Give back the most recently allocated block."""
        debug_check_pointer(lambda: block.memory + block.size == self._cur,
                            self.info, block.memory)
        self._cur -= self._block_size

    def next_block_size(self) -> int:
        """Return the size of every block, as given on construction."""
        return self._block_size

    def take(self) -> StaticBlockAllocator:
        """Move ownership of the storage into a new object, leaving this one empty."""
        moved = copy.copy(self)
        self._storage = None
        self._cur = self._end = NULL
        self._block_size = 0
        return moved