"""Allocators built on a simulated page-granular virtual address space."""

from __future__ import annotations

import bisect
import mmap
import threading
from collections.abc import Iterator

from .debug import (
    DebugConfig,
    GlobalLeakChecker,
    debug_check_pointer,
    debug_fill_free,
    debug_fill_new,
    debug_handle_memory_leak,
    handle_failed_assert,
)
from .errors import LOG_PREFIX, AllocatorInfo, OutOfFixedMemory, OutOfMemory
from .memory import Memory
from .static_allocator import SIZE_MAX, MemoryBlock

VIRTUAL_MEMORY_PAGE_SIZE = mmap.PAGESIZE
"""The size of one page of virtual memory."""

_FIRST_ADDRESS = 1 << 32
_ADDRESS_LIMIT = 1 << 47


class _Region(Memory):
    """A reserved range of pages; only committed pages can be accessed."""

    def __init__(self, base: int, no_pages: int) -> None:
        super().__init__(0, base)
        self._size = no_pages * VIRTUAL_MEMORY_PAGE_SIZE
        self._pages: dict[int, bytearray] = {}

    def __len__(self) -> int:
        return self._size

    @property
    def end(self) -> int:
        return self.base + self._size

    def page_range(self, address: int, no_pages: int) -> range | None:
        if no_pages <= 0 or address % VIRTUAL_MEMORY_PAGE_SIZE or not self.contains(address):
            return None
        first = (address - self.base) // VIRTUAL_MEMORY_PAGE_SIZE
        if first + no_pages > self._size // VIRTUAL_MEMORY_PAGE_SIZE:
            return None
        return range(first, first + no_pages)

    def commit(self, pages: range) -> None:
        for page in pages:
            self._pages.setdefault(page, bytearray(VIRTUAL_MEMORY_PAGE_SIZE))

    def decommit(self, pages: range) -> None:
        for page in pages:
            self._pages.pop(page, None)

    def _chunks(self, address: int, size: int) -> Iterator[tuple[bytearray, int, int]]:
        if size < 0:
            raise ValueError(f"negative access size {size}")
        offset = address - self.base
        if offset < 0 or offset + size > self._size:
            raise IndexError(
                f"access of {size} bytes at {address:#x} outside "
                f"[{self.base:#x}, {self.end:#x})"
            )
        while size > 0:
            page, within = divmod(offset, VIRTUAL_MEMORY_PAGE_SIZE)
            data = self._pages.get(page)
            if data is None:
                raise PermissionError(f"access to uncommitted page at {address:#x}")
            count = min(VIRTUAL_MEMORY_PAGE_SIZE - within, size)
            yield data, within, count
            offset += count
            size -= count

    def read(self, address: int, size: int) -> bytes:
        return b"".join(bytes(d[w:w + n]) for d, w, n in list(self._chunks(address, size)))

    def write(self, address: int, data: bytes) -> None:
        position = 0
        for chunk, within, count in list(self._chunks(address, len(data))):
            chunk[within:within + count] = data[position:position + count]
            position += count

    def fill(self, address: int, size: int, value: int) -> None:
        if not 0 <= value <= 0xFF:
            raise ValueError(f"byte value {value} out of range")
        for chunk, within, count in list(self._chunks(address, size)):
            chunk[within:within + count] = bytes([value]) * count


class _AddressSpace:
    """The simulated process address space holding every reservation."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._regions: dict[int, _Region] = {}
        self._bases: list[int] = []
        self._next = _FIRST_ADDRESS

    def reserve(self, no_pages: int) -> int | None:
        if no_pages <= 0:
            return None
        size = no_pages * VIRTUAL_MEMORY_PAGE_SIZE
        with self._lock:
            if self._next + size > _ADDRESS_LIMIT:
                return None
            base = self._next
            # leave an unreserved guard page between reservations
            self._next += size + VIRTUAL_MEMORY_PAGE_SIZE
            self._regions[base] = _Region(base, no_pages)
            bisect.insort(self._bases, base)
        return base

    def find(self, address: int) -> _Region | None:
        with self._lock:
            index = bisect.bisect_right(self._bases, address) - 1
            if index < 0:
                return None
            region = self._regions[self._bases[index]]
        return region if region.contains(address) else None

    def release(self, address: int) -> bool:
        with self._lock:
            if self._regions.pop(address, None) is None:
                return False
            self._bases.remove(address)
        return True


_space = _AddressSpace()


def virtual_memory_reserve(no_pages: int) -> int | None:
    """Reserve ``no_pages`` inaccessible pages; return their address or ``None``."""
    return _space.reserve(no_pages)


def virtual_memory_release(address: int, no_pages: int) -> None:
    """Release the reservation starting at ``address``."""
    if not _space.release(address):
        handle_failed_assert("cannot release pages")


def virtual_memory_commit(address: int, no_pages: int) -> int | None:
    """Make reserved pages usable; return ``address`` or ``None`` on failure."""
    region = _space.find(address)
    pages = region.page_range(address, no_pages) if region is not None else None
    if pages is None:
        return None
    region.commit(pages)
    return address


def virtual_memory_decommit(address: int, no_pages: int) -> None:
    """Return committed pages to the reserved state, discarding their contents."""
    region = _space.find(address)
    pages = region.page_range(address, no_pages) if region is not None else None
    if pages is None:
        handle_failed_assert("cannot decommit memory")
        return
    region.decommit(pages)


def _calc_no_pages(size: int) -> int:
    full, rest = divmod(size, VIRTUAL_MEMORY_PAGE_SIZE)
    fences = 2 if DebugConfig.current().debug_fence_size else 1
    return full + (rest != 0) + fences


class VirtualMemoryAllocator(GlobalLeakChecker):
    """Gives every node its own pages of virtual memory; aligned to the page size."""

    @classmethod
    def handle_leak(cls, amount: int) -> None:
        """Report leaked bytes as coming from the virtual memory allocator."""
        debug_handle_memory_leak(
            AllocatorInfo(f"{LOG_PREFIX}::virtual_memory_allocator"), amount
        )

    def allocate_node(self, size: int, alignment: int) -> int:
        """Reserve and commit pages for ``size`` bytes; raise :class:`OutOfMemory` on failure."""
        no_pages = _calc_no_pages(size)
        pages = virtual_memory_reserve(no_pages)
        if pages is None or virtual_memory_commit(pages, no_pages) is None:
            raise OutOfMemory(
                AllocatorInfo(f"{LOG_PREFIX}::virtual_memory_allocator"),
                no_pages * VIRTUAL_MEMORY_PAGE_SIZE,
            )
        self.on_allocate(size)
        region = _space.find(pages)
        return debug_fill_new(region, pages, size, VIRTUAL_MEMORY_PAGE_SIZE)

    def deallocate_node(self, node: int, size: int, alignment: int) -> None:
        """Decommit and release the pages of a node."""
        region = _space.find(node)
        if region is None:
            handle_failed_assert("cannot release pages")
            return
        pages = debug_fill_free(region, node, size, VIRTUAL_MEMORY_PAGE_SIZE)
        self.on_deallocate(size)
        no_pages = _calc_no_pages(size)
        virtual_memory_decommit(pages, no_pages)
        virtual_memory_release(pages, no_pages)

    def max_node_size(self) -> int:
        """Return the largest possible value."""
        return SIZE_MAX

    def max_alignment(self) -> int:
        """Return the page size."""
        return VIRTUAL_MEMORY_PAGE_SIZE


class VirtualBlockAllocator:
    """Reserves room for a fixed number of blocks and commits them one at a time.

    Blocks must be given back in reverse order.
    """

    def __init__(self, block_size: int, no_blocks: int) -> None:
        if block_size <= 0 or block_size % VIRTUAL_MEMORY_PAGE_SIZE:
            raise ValueError(
                f"block size {block_size} must be a positive multiple of the page size "
                f"{VIRTUAL_MEMORY_PAGE_SIZE}"
            )
        if no_blocks <= 0:
            raise ValueError(f"number of blocks must be positive, got {no_blocks}")
        self._block_size = block_size
        total_size = block_size * no_blocks
        begin = virtual_memory_reserve(total_size // VIRTUAL_MEMORY_PAGE_SIZE)
        if begin is None:
            raise OutOfMemory(self.info, total_size)
        self._begin: int | None = begin
        self._cur = begin
        self._end = begin + total_size

    @property
    def info(self) -> AllocatorInfo:
        """Identifies this allocator in error reports."""
        return AllocatorInfo(f"{LOG_PREFIX}::virtual_block_allocator", self)

    def allocate_block(self) -> MemoryBlock:
        """Commit and return the next block; raise :class:`OutOfFixedMemory` when none is left."""
        if self._begin is None or self._end - self._cur < self._block_size:
            raise OutOfFixedMemory(self.info, self._block_size)
        memory = virtual_memory_commit(self._cur, self._block_size // VIRTUAL_MEMORY_PAGE_SIZE)
        if memory is None:
            raise OutOfFixedMemory(self.info, self._block_size)
        self._cur += self._block_size
        return MemoryBlock(memory, self._block_size)

    def deallocate_block(self, block: MemoryBlock) -> None:
        """Decommit the most recently allocated block."""
        debug_check_pointer(lambda: block.memory == self._cur - self._block_size,
                            self.info, block.memory)
        self._cur -= self._block_size
        virtual_memory_decommit(self._cur, self._block_size // VIRTUAL_MEMORY_PAGE_SIZE)

    def next_block_size(self) -> int:
        """Return the size of every block."""
        return self._block_size

    def capacity_left(self) -> int:
        """Return how many more blocks can be allocated."""
        return (self._end - self._cur) // self._block_size

    def close(self) -> None:
        """Release the whole reservation; further calls do nothing."""
        if self._begin is not None:
            begin, self._begin = self._begin, None
            virtual_memory_release(begin, (self._end - begin) // VIRTUAL_MEMORY_PAGE_SIZE)
            self._cur = self._end

    def __enter__(self) -> VirtualBlockAllocator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()