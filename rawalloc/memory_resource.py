"""Adapters between allocators and polymorphic memory resources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from .align import MAX_ALIGNMENT

SIZE_MAX = (1 << 64) - 1
"""The largest value of an unsigned machine word."""


def _max_node_size(allocator: Any) -> int:
    method = getattr(allocator, "max_node_size", None)
    return method() if method is not None else SIZE_MAX


class MemoryResource(ABC):
    """Abstract source of raw memory with virtual allocation functions."""

    def allocate(self, size: int, alignment: int = MAX_ALIGNMENT) -> Any:
        """Allocate ``size`` bytes aligned to ``alignment``."""
        return self.do_allocate(size, alignment)

    def deallocate(self, ptr: Any, size: int, alignment: int = MAX_ALIGNMENT) -> None:
        """Give back memory obtained from :meth:`allocate`."""
        self.do_deallocate(ptr, size, alignment)

    def is_equal(self, other: MemoryResource) -> bool:
        """Return whether memory from one resource may be given back to the other."""
        return self.do_is_equal(other)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MemoryResource):
            return NotImplemented
        return self is other or self.is_equal(other)

    __hash__ = None  # type: ignore[assignment]

    @abstractmethod
    def do_allocate(self, size: int, alignment: int) -> Any:
        """Perform an allocation."""

    @abstractmethod
    def do_deallocate(self, ptr: Any, size: int, alignment: int) -> None:
        """Perform a deallocation."""

    @abstractmethod
    def do_is_equal(self, other: MemoryResource) -> bool:
        """Compare with another resource."""


class MemoryResourceAdapter(MemoryResource):
    """Makes an allocator usable as a :class:`MemoryResource`."""

    def __init__(self, allocator: Any) -> None:
        self._allocator = allocator

    def get_allocator(self) -> Any:
        """Return the wrapped allocator."""
        return self._allocator

    def _array_shape(self, size: int) -> tuple[int, int] | None:
        limit = _max_node_size(self._allocator)
        if size <= limit:
            return None
        count, rest = divmod(size, limit)
        return count + (rest != 0), limit

    def do_allocate(self, size: int, alignment: int) -> Any:
        """Allocate a node, or an array of maximum-size nodes if ``size`` is too big."""
        shape = self._array_shape(size)
        if shape is None:
            return self._allocator.allocate_node(size, alignment)
        count, node_size = shape
        method = getattr(self._allocator, "allocate_array", None)
        if method is None:
            return self._allocator.allocate_node(count * node_size, alignment)
        return method(count, node_size, alignment)

    def do_deallocate(self, ptr: Any, size: int, alignment: int) -> None:
        """Give back memory in the same way :meth:`do_allocate` obtained it."""
        shape = self._array_shape(size)
        if shape is None:
            self._allocator.deallocate_node(ptr, size, alignment)
            return
        count, node_size = shape
        method = getattr(self._allocator, "deallocate_array", None)
        if method is None:
            self._allocator.deallocate_node(ptr, count * node_size, alignment)
        else:
            method(ptr, count, node_size, alignment)

    def do_is_equal(self, other: MemoryResource) -> bool:
        """Equal only to itself."""
        return self is other


class MemoryResourceAllocator:
    """An allocator that draws its memory from a :class:`MemoryResource`.

    Copies share the resource, so it may be used directly as a reference.
    """

    is_shared: ClassVar[bool] = True

    def __init__(self, resource: MemoryResource) -> None:
        if resource is None:
            raise ValueError("a memory resource is required")
        self._resource = resource

    @property
    def resource(self) -> MemoryResource:
        """The resource used; never ``None``."""
        return self._resource

    def allocate_node(self, size: int, alignment: int) -> Any:
        """Allocate a node from the resource."""
        return self._resource.allocate(size, alignment)

    def deallocate_node(self, ptr: Any, size: int, alignment: int) -> None:
        """Give a node back to the resource."""
        self._resource.deallocate(ptr, size, alignment)

    def max_alignment(self) -> int:
        """Return the largest possible value; the resource decides."""
        return SIZE_MAX

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MemoryResourceAllocator):
            return NotImplemented
        return self._resource is other._resource

    def __hash__(self) -> int:
        return id(self._resource)