"""An allocator adapter that enforces a minimum alignment."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .align import MAX_ALIGNMENT

_SIZE_MAX = (1 << 64) - 1


def _max_node_size(allocator: Any) -> int:
    method = getattr(allocator, "max_node_size", None)
    return method() if method is not None else _SIZE_MAX


def _max_array_size(allocator: Any) -> int:
    method = getattr(allocator, "max_array_size", None)
    return method() if method is not None else _max_node_size(allocator)


def _max_alignment(allocator: Any) -> int:
    method = getattr(allocator, "max_alignment", None)
    return method() if method is not None else MAX_ALIGNMENT


class AlignedAllocator:
    """Forwards to another allocator, raising every alignment to at least a minimum."""

    def __init__(self, min_alignment: int, allocator: Any) -> None:
        self._allocator = allocator
        self._check_min_alignment(min_alignment)
        self._min_alignment = min_alignment

    def _check_min_alignment(self, min_alignment: int) -> None:
        limit = self.max_alignment()
        if min_alignment > limit:
            raise ValueError(
                f"minimum alignment {min_alignment} exceeds maximum alignment {limit}"
            )

    def _adjust(self, alignment: int) -> int:
        return max(alignment, self._min_alignment)

    def _composable(self, name: str) -> Callable[..., Any] | None:
        method = getattr(self._allocator, name, None)
        if method is None and getattr(self._allocator, "try_allocate_node", None) is None:
            raise TypeError(f"{type(self._allocator).__name__} is not a composable allocator")
        return method

    @property
    def allocator(self) -> Any:
        """The underlying allocator."""
        return self._allocator

    @property
    def min_alignment(self) -> int:
        """The minimum alignment of every allocation."""
        return self._min_alignment

    @min_alignment.setter
    def min_alignment(self, value: int) -> None:
        self._check_min_alignment(value)
        self._min_alignment = value

    def allocate_node(self, size: int, alignment: int) -> Any:
        """Allocate a node with at least the minimum alignment."""
        return self._allocator.allocate_node(size, self._adjust(alignment))

    def allocate_array(self, count: int, size: int, alignment: int) -> Any:
        """Allocate an array with at least the minimum alignment."""
        alignment = self._adjust(alignment)
        method = getattr(self._allocator, "allocate_array", None)
        if method is None:
            return self._allocator.allocate_node(count * size, alignment)
        return method(count, size, alignment)

    def deallocate_node(self, ptr: Any, size: int, alignment: int) -> None:
        """Give back a node allocated by :meth:`allocate_node`."""
        self._allocator.deallocate_node(ptr, size, self._adjust(alignment))

    def deallocate_array(self, ptr: Any, count: int, size: int, alignment: int) -> None:
        """Give back an array allocated by :meth:`allocate_array`."""
        alignment = self._adjust(alignment)
        method = getattr(self._allocator, "deallocate_array", None)
        if method is None:
            self._allocator.deallocate_node(ptr, count * size, alignment)
        else:
            method(ptr, count, size, alignment)

    def try_allocate_node(self, size: int, alignment: int) -> Any:
        """Try to allocate a node; ``None`` on failure. Needs a composable allocator."""
        method = self._composable("try_allocate_node")
        return method(size, self._adjust(alignment))

    def try_allocate_array(self, count: int, size: int, alignment: int) -> Any:
        """Try to allocate an array; ``None`` on failure. Needs a composable allocator."""
        alignment = self._adjust(alignment)
        method = self._composable("try_allocate_array")
        if method is None:
            return self._allocator.try_allocate_node(count * size, alignment)
        return method(count, size, alignment)

    def try_deallocate_node(self, ptr: Any, size: int, alignment: int) -> bool:
        """Try to give back a node; return whether it was accepted."""
        method = self._composable("try_deallocate_node")
        if method is None:
            raise TypeError(f"{type(self._allocator).__name__} cannot try to deallocate")
        return bool(method(ptr, size, self._adjust(alignment)))

    def try_deallocate_array(self, ptr: Any, count: int, size: int, alignment: int) -> bool:
        """Try to give back an array; return whether it was accepted."""
        alignment = self._adjust(alignment)
        method = self._composable("try_deallocate_array")
        if method is not None:
            return bool(method(ptr, count, size, alignment))
        node_method = self._composable("try_deallocate_node")
        if node_method is None:
            raise TypeError(f"{type(self._allocator).__name__} cannot try to deallocate")
        return bool(node_method(ptr, count * size, alignment))

    def max_node_size(self) -> int:
        """Return the underlying allocator's maximum node size."""
        return _max_node_size(self._allocator)

    def max_array_size(self) -> int:
        """Return the underlying allocator's maximum array size."""
        return _max_array_size(self._allocator)

    def max_alignment(self) -> int:
        """Return the underlying allocator's maximum alignment."""
        return _max_alignment(self._allocator)


def make_aligned_allocator(min_alignment: int, allocator: Any) -> AlignedAllocator:
    """Return an :class:`AlignedAllocator` wrapping ``allocator``."""
    return AlignedAllocator(min_alignment, allocator)