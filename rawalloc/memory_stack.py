"""A bump allocator over a fixed region that cannot grow."""

from __future__ import annotations

from .align import align_offset
from .debug import DebugConfig, DebugMagic, debug_fill
from .memory import NULL, Memory


class FixedMemoryStack:
    """Hands out memory by advancing a top address; the end is tracked by the caller."""

    def __init__(self, memory: Memory | None = None, top: int | None = None) -> None:
        self._memory = memory
        if top is None:
            top = memory.base if memory is not None else NULL
        self._cur = top

    @property
    def memory(self) -> Memory | None:
        """The region the stack works on."""
        return self._memory

    @property
    def top(self) -> int:
        """The current top address, ``NULL`` for an empty stack."""
        return self._cur

    def _fill(self, address: int, size: int, magic: DebugMagic) -> None:
        if self._memory is not None:
            debug_fill(self._memory, address, size, magic)

    def bump(self, offset: int, magic: DebugMagic | None = None) -> None:
        """Advance the top by ``offset``, marking the bytes with ``magic`` if given."""
        if magic is not None:
            self._fill(self._cur, offset, magic)
        self._cur += offset

    def bump_return(self, offset: int, magic: DebugMagic = DebugMagic.NEW_MEMORY) -> int:
        """Advance the top like :meth:`bump` and return the old top."""
        memory = self._cur
        self._fill(memory, offset, magic)
        self._cur += offset
        return memory

    def allocate(self, end: int, size: int, alignment: int,
                 fence_size: int | None = None) -> int | None:
        """Allocate ``size`` aligned bytes with fences; ``None`` if they do not fit before ``end``."""
        if self._cur == NULL:
            return None
        if fence_size is None:
            fence_size = DebugConfig.current().debug_fence_size
        remaining = end - self._cur
        offset = align_offset(self._cur + fence_size, alignment)
        if fence_size + offset + size + fence_size > remaining:
            return None
        return self.allocate_unchecked(size, offset, fence_size)

    def allocate_unchecked(self, size: int, align_offset: int,
                           fence_size: int | None = None) -> int:
        """Allocate without a size check; takes the alignment offset, not the alignment."""
        if fence_size is None:
            fence_size = DebugConfig.current().debug_fence_size
        self.bump(fence_size, DebugMagic.FENCE_MEMORY)
        self.bump(align_offset, DebugMagic.ALIGNMENT_MEMORY)
        memory = self.bump_return(size)
        self.bump(fence_size, DebugMagic.FENCE_MEMORY)
        return memory

    def unwind(self, top: int) -> None:
        """Reset the top to an older position, marking what lies above it as freed."""
        self._fill(top, self._cur - top, DebugMagic.FREED_MEMORY)
        self._cur = top

    def take(self) -> FixedMemoryStack:
        """Move the stack's state into a new object, leaving this one empty."""
        moved = FixedMemoryStack(self._memory, self._cur)
        self._memory = None
        self._cur = NULL
        return moved