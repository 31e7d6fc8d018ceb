# rawalloc

Raw allocators, a fixed memory stack, allocation-size checks and debugging aids.
Everything works over a simulated, byte-addressable address space. Allocators
hand out integer addresses into `Memory` regions. Because the memory is
simulated, you can read back alignment, fences and debug fills directly.

## Install

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `rawalloc.align`

Alignment arithmetic:

- `is_valid_alignment`
- `align_offset`
- `is_aligned`
- `alignment_for`
- `is_power_of_two`
- `ilog2` (floor of the base-2 logarithm)
- `ilog2_ceil` (ceiling of the base-2 logarithm)

`MAX_ALIGNMENT` is 16. `align_offset` and `is_aligned` raise `ValueError` for an
alignment that is not a non-zero power of two. `ilog2` and `ilog2_ceil` raise
`ValueError` for values below 1.

### `rawalloc.memory`

`Memory(size, base=0x1000)` is a contiguous byte region. It has these methods:

- `read`, `write` and `fill`
- `read_int` and `write_int`, which store 8-byte little-endian pointers
- `contains`

Accesses outside the region raise `IndexError`. An access through the null
address raises `ValueError`.

Helper functions work on intrusive lists stored inside a `Memory`:

- `list_get_next` and `list_set_next`
- `xor_list_get_other`, `xor_list_set`, `xor_list_change`, `xor_list_iter_next`
  and `xor_list_insert`

`xor_list_iter_next` returns the new `(cur, prev)` pair.

### `rawalloc.errors`

`AllocatorInfo(name, allocator)` identifies an allocator. Two infos are equal
when they refer to the same allocator.

The exceptions all derive from `MemoryError`:

- `OutOfMemory`, with the subclass `OutOfFixedMemory`
- `BadAllocationSize`, with the subclasses `BadNodeSize`, `BadArraySize` and
  `BadAlignment`

`OutOfMemory` and `BadAllocationSize` each call a handler when they are created.
Replace the handler with `set_handler`; passing `None` restores the default.
`get_handler` returns the current one. The default handlers write a line to
standard error.

`check_allocation_size(exc_type, passed, supported, info)` raises `exc_type`
when `passed` exceeds `supported`. `supported` may be a number or a callable.

### `rawalloc.debug`

- `DebugMagic` gives the byte values used to mark memory: new, freed, fence,
  alignment and internal.
- `DebugConfig` chooses which aids are active: filling, fence size, leak
  checks, pointer checks and double-free checks.
  - The default config is `DebugConfig.debug()`, with every aid on and 8-byte
    fences.
  - `DebugConfig.rel_with_deb_info()` and `DebugConfig.release()` give lighter
    settings.
  - Use `with config.use():` to activate a config for a block, or
    `config.install()` to activate it until changed.
- Fill functions: `debug_fill`, `debug_is_filled`, `debug_fill_new`,
  `debug_fill_free` and `debug_fill_internal`.
- Checks:
  - `debug_check_pointer` and `debug_check_double_dealloc` raise
    `InvalidPointerError`.
  - `debug_handle_memory_leak` raises `MemoryLeakError`.
  - `handle_failed_assert` raises `AssertionFailure`.
  - `handle_warning` issues a `RuntimeWarning`.
- Leak checkers:
  - `NoLeakChecker` tracks nothing.
  - `ObjectLeakChecker` reports an imbalance on `close()`. It also works as a
    context manager.
  - `GlobalLeakChecker` keeps one balance per subclass. It reports a leak when
    the last `counter()` context closes.

### `rawalloc.memory_stack`

`FixedMemoryStack` is a bump allocator over a `Memory` that cannot grow. It has
these methods:

- `bump` and `bump_return`
- `allocate(end, size, alignment, fence_size=None)`, which returns `None` when
  the request does not fit
- `allocate_unchecked`
- `unwind`
- `take`, which moves the state into a new object and leaves the original empty

### `rawalloc.static_allocator`

- `StaticAllocatorStorage` is a `Memory` whose base is aligned to
  `MAX_ALIGNMENT`.
- `StaticAllocator` bump-allocates nodes from a storage.
  - `deallocate_node` does nothing.
  - `max_node_size()` is the capacity left in the storage.
  - When the storage is exhausted it raises `OutOfFixedMemory`.
- `StaticBlockAllocator` hands out equally sized `MemoryBlock`s from a storage.
  - Blocks must be given back in reverse order.
  - The storage size must be a multiple of the block size.

### `rawalloc.aligned_allocator`

`AlignedAllocator` forwards to another allocator and raises every alignment to
at least `min_alignment`. Create one with `make_aligned_allocator`.

- The `try_*` methods need an underlying allocator that has `try_allocate_node`.
  With any other allocator they raise `TypeError`.
- If the minimum alignment exceeds the allocator's `max_alignment()`, the
  constructor raises `ValueError`.

### `rawalloc.memory_resource`

- `MemoryResource` is an abstract base with `allocate`, `deallocate` and
  `is_equal`. Subclasses implement `do_allocate`, `do_deallocate` and
  `do_is_equal`.
- `MemoryResourceAdapter` turns an allocator into a resource. A request larger
  than the allocator's `max_node_size()` becomes an array of maximum-size nodes.
- `MemoryResourceAllocator` turns a resource into an allocator. Two of them
  compare equal when they share a resource.

### `rawalloc.virtual_memory`

These functions work on a simulated page-granular address space:

- `virtual_memory_reserve`
- `virtual_memory_commit`
- `virtual_memory_decommit`
- `virtual_memory_release`

The page size is `VIRTUAL_MEMORY_PAGE_SIZE`. Accessing a page that is not
committed raises `PermissionError`.

`VirtualMemoryAllocator` gives each node its own committed pages. It aligns
nodes to the page size and tracks a global balance through `GlobalLeakChecker`.

`VirtualBlockAllocator(block_size, no_blocks)` reserves room for `no_blocks`
blocks and commits one block at a time. `capacity_left()` gives the number of
blocks still available, and `close()` releases the reservation. It also works as
a context manager.

## Example

```python
from rawalloc.align import is_aligned
from rawalloc.aligned_allocator import make_aligned_allocator
from rawalloc.debug import DebugConfig
from rawalloc.errors import OutOfFixedMemory
from rawalloc.static_allocator import StaticAllocator, StaticAllocatorStorage

with DebugConfig.release().use():
    storage = StaticAllocatorStorage(64)
    alloc = StaticAllocator(storage)

    node = alloc.allocate_node(10, 1)
    assert alloc.max_node_size() == 54

    aligned = make_aligned_allocator(16, alloc)
    ptr = aligned.allocate_node(8, 1)
    assert is_aligned(ptr, 16)

    try:
        alloc.allocate_node(100, 1)
    except OutOfFixedMemory as exc:
        print("failed to allocate", exc.failed_allocation_size, "bytes")
```

With the default debug configuration every node is surrounded by 8-byte fences,
so less room is left after each allocation.

## What it does not do

This package does not manage real process memory. Addresses are plain integers
into simulated regions.

It has none of the following:

- memory pools or free-list allocators
- growing arenas or block allocators that grow
- a per-thread temporary allocator
- standard-container adapters