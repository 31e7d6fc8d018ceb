"""Exceptions raised when an allocator runs out of memory or gets a bad request."""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

LOG_PREFIX = "rawalloc"
"""Prefix of the names given to the package's allocators."""

OutOfMemoryHandler = Callable[["AllocatorInfo", int], None]
BadAllocationSizeHandler = Callable[["AllocatorInfo", int, int], None]

_handler_lock = threading.Lock()


@dataclass(frozen=True, eq=False)
class AllocatorInfo:
    """Names an allocator and identifies the object behind it.

    Two infos are equal when they refer to the same allocator; the name
    is only for reporting.
    """

    name: str
    allocator: Any = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AllocatorInfo):
            return NotImplemented
        return self.allocator is other.allocator or self.allocator == other.allocator

    def __hash__(self) -> int:
        try:
            return hash(self.allocator)
        except TypeError:
            return id(self.allocator)


def _describe(info: AllocatorInfo) -> str:
    return f"Allocator {info.name} (at {info.allocator!r})"


def _default_out_of_memory_handler(info: AllocatorInfo, amount: int) -> None:
    sys.stderr.write(
        f"[{LOG_PREFIX}] {_describe(info)} ran out of memory trying to allocate "
        f"{amount} bytes.\n"
    )


def _default_bad_allocation_size_handler(
    info: AllocatorInfo, passed: int, supported: int
) -> None:
    sys.stderr.write(
        f"[{LOG_PREFIX}] {_describe(info)} received invalid size/alignment {passed}, "
        f"max supported is {supported}.\n"
    )


class OutOfMemory(MemoryError):
    """Raised when a low-level allocator runs out of memory.

    Creating it calls the current handler first, which may log the
    failure or raise something else instead.
    """

    _handler: ClassVar[OutOfMemoryHandler] = _default_out_of_memory_handler
    message: ClassVar[str] = "low-level allocator is out of memory"

    def __init__(self, info: AllocatorInfo, amount: int) -> None:
        OutOfMemory.get_handler()(info, amount)
        super().__init__(self.message)
        self._info = info
        self._amount = amount

    @classmethod
    def set_handler(cls, handler: OutOfMemoryHandler | None) -> OutOfMemoryHandler:
        """Install ``handler`` (``None`` restores the default); return the previous one."""
        with _handler_lock:
            old = OutOfMemory._handler
            OutOfMemory._handler = handler or _default_out_of_memory_handler
        return old

    @classmethod
    def get_handler(cls) -> OutOfMemoryHandler:
        """Return the current handler; never ``None``."""
        with _handler_lock:
            return OutOfMemory._handler

    @property
    def allocator(self) -> AllocatorInfo:
        """The info of the allocator that failed."""
        return self._info

    @property
    def failed_allocation_size(self) -> int:
        """The number of bytes that could not be allocated."""
        return self._amount


class OutOfFixedMemory(OutOfMemory):
    """Raised when an allocator with a fixed amount of memory is exhausted."""

    message: ClassVar[str] = "fixed size allocator is out of memory"


class BadAllocationSize(MemoryError):
    """Raised when a size or alignment exceeds what an allocator supports.

    Creating it calls the current handler first, which may log the
    failure or raise something else instead.
    """

    _handler: ClassVar[BadAllocationSizeHandler] = _default_bad_allocation_size_handler
    message: ClassVar[str] = "allocation size exceeds supported maximum of allocator"

    def __init__(self, info: AllocatorInfo, passed: int, supported: int) -> None:
        BadAllocationSize.get_handler()(info, passed, supported)
        super().__init__(self.message)
        self._info = info
        self._passed = passed
        self._supported = supported

    @classmethod
    def set_handler(
        cls, handler: BadAllocationSizeHandler | None
    ) -> BadAllocationSizeHandler:
        """Install ``handler`` (``None`` restores the default); return the previous one."""
        with _handler_lock:
            old = BadAllocationSize._handler
            BadAllocationSize._handler = handler or _default_bad_allocation_size_handler
        return old

    @classmethod
    def get_handler(cls) -> BadAllocationSizeHandler:
        """Return the current handler; never ``None``."""
        with _handler_lock:
            return BadAllocationSize._handler

    @property
    def allocator(self) -> AllocatorInfo:
        """The info of the allocator that rejected the request."""
        return self._info

    @property
    def passed_value(self) -> int:
        """The size or alignment that was too big."""
        return self._passed

    @property
    def supported_value(self) -> int:
        """An upper bound on the supported size or alignment."""
        return self._supported


class BadNodeSize(BadAllocationSize):
    """Raised when a node size exceeds ``max_node_size()``."""

    message: ClassVar[str] = "allocation node size exceeds supported maximum of allocator"


class BadArraySize(BadAllocationSize):
    """Raised when an array size exceeds ``max_array_size()``."""

    message: ClassVar[str] = "allocation array size exceeds supported maximum of allocator"


class BadAlignment(BadAllocationSize):
    """Raised when an alignment exceeds ``max_alignment()``."""

    message: ClassVar[str] = "allocation alignment exceeds supported maximum of allocator"


def check_allocation_size(
    exc_type: type[BadAllocationSize],
    passed: int,
    supported: int | Callable[[], int],
    info: AllocatorInfo,
) -> None:
    """Raise ``exc_type`` if ``passed`` exceeds ``supported``.

    ``supported`` may be a number or a callable returning one.
    """
    limit = supported() if callable(supported) else supported
    if passed > limit:
        raise exc_type(info, passed, limit)