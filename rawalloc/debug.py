"""Debug filling, pointer checks, leak checking and assertion handlers."""

from __future__ import annotations

import threading
import warnings
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, ClassVar

from .errors import LOG_PREFIX, AllocatorInfo
from .memory import Memory


class DebugMagic(IntEnum):
    """Byte values used to mark memory in its different states."""

    INTERNAL_MEMORY = 0xAB
    INTERNAL_FREED_MEMORY = 0xFB
    NEW_MEMORY = 0xCD
    FREED_MEMORY = 0xDD
    ALIGNMENT_MEMORY = 0xED
    FENCE_MEMORY = 0xFD


@dataclass(frozen=True)
class DebugConfig:
    """Which debugging aids are active."""

    fill: bool = True
    fence_size: int = 8
    leak_check: bool = True
    pointer_check: bool = True
    double_dealloc_check: bool = True

    def __post_init__(self) -> None:
        if self.fence_size < 0:
            raise ValueError(f"negative fence size {self.fence_size}")

    @property
    def debug_fence_size(self) -> int:
        """The fence size in effect; fences need filling to be enabled."""
        return self.fence_size if self.fill else 0

    @classmethod
    def debug(cls) -> DebugConfig:
        """Every check enabled, with 8-byte fences."""
        return cls()

    @classmethod
    def rel_with_deb_info(cls) -> DebugConfig:
        """Filling and leak and pointer checks, no fences or double-free checks."""
        return cls(fill=True, fence_size=0, leak_check=True, pointer_check=True,
                   double_dealloc_check=False)

    @classmethod
    def release(cls) -> DebugConfig:
        """Every debugging aid disabled."""
        return cls(fill=False, fence_size=0, leak_check=False, pointer_check=False,
                   double_dealloc_check=False)

    @staticmethod
    def current() -> DebugConfig:
        """Return the configuration in effect."""
        return _config.get()

    def install(self) -> DebugConfig:
        """Make this the configuration in effect; return the previous one."""
        previous = _config.get()
        _config.set(self)
        return previous

    @contextmanager
    def use(self) -> Iterator[DebugConfig]:
        """Make this the configuration in effect for the duration of a block."""
        token = _config.set(self)
        try:
            yield self
        finally:
            _config.reset(token)


_config: ContextVar[DebugConfig] = ContextVar("rawalloc_debug_config", default=DebugConfig())


class AssertionFailure(AssertionError):
    """Raised when an internal consistency check fails."""


class InvalidPointerError(Exception):
    """Raised when a pointer handed back to an allocator does not belong to it."""

    def __init__(self, info: AllocatorInfo, ptr: Any) -> None:
        super().__init__(f"deallocation function of allocator {info.name} received invalid pointer {ptr!r}")
        self.info = info
        self.ptr = ptr


class MemoryLeakError(Exception):
    """Raised when an allocator is released with memory still allocated."""

    def __init__(self, info: AllocatorInfo, amount: int) -> None:
        if amount > 0:
            text = f"allocator {info.name} leaked {amount} bytes"
        else:
            text = f"allocator {info.name} has deallocated {-amount} bytes more than allocated"
        super().__init__(text)
        self.info = info
        self.amount = amount


def debug_fill(memory: Memory, address: int, size: int, magic: DebugMagic) -> None:
    """Fill ``size`` bytes at ``address`` with ``magic`` if filling is enabled."""
    if size and DebugConfig.current().fill:
        memory.fill(address, size, int(magic))


def debug_is_filled(memory: Memory, address: int, size: int, magic: DebugMagic) -> int | None:
    """Return the address of the first byte not equal to ``magic``, or ``None``.

    Always ``None`` when filling is disabled.
    """
    if not DebugConfig.current().fill:
        return None
    data = memory.read(address, size)
    return next((address + i for i, byte in enumerate(data) if byte != magic), None)


def _fence(fence_size: int | None) -> int:
    configured = DebugConfig.current().debug_fence_size
    if not configured:
        return 0
    return configured if fence_size is None else fence_size


def debug_fill_new(memory: Memory, address: int, node_size: int,
                   fence_size: int | None = None) -> int:
    """Mark a fresh node surrounded by fences; return the address after the front fence."""
    if not DebugConfig.current().fill:
        return address
    fence = _fence(fence_size)
    debug_fill(memory, address, fence, DebugMagic.FENCE_MEMORY)
    debug_fill(memory, address + fence, node_size, DebugMagic.NEW_MEMORY)
    debug_fill(memory, address + fence + node_size, fence, DebugMagic.FENCE_MEMORY)
    return address + fence


def debug_fill_free(memory: Memory, address: int, node_size: int,
                    fence_size: int | None = None) -> int:
    """Mark a node as freed; return the address where its front fence starts."""
    if not DebugConfig.current().fill:
        return address
    debug_fill(memory, address, node_size, DebugMagic.FREED_MEMORY)
    return address - _fence(fence_size)


def debug_fill_internal(memory: Memory, address: int, size: int, free: bool) -> None:
    """Mark memory used for an allocator's own bookkeeping."""
    magic = DebugMagic.INTERNAL_FREED_MEMORY if free else DebugMagic.INTERNAL_MEMORY
    debug_fill(memory, address, size, magic)


def debug_handle_invalid_ptr(info: AllocatorInfo, ptr: Any) -> None:
    """Report a pointer that does not belong to the allocator."""
    raise InvalidPointerError(info, ptr)


def debug_check_pointer(condition: Callable[[], bool], info: AllocatorInfo, ptr: Any) -> None:
    """Report ``ptr`` as invalid if pointer checks are on and ``condition()`` is false."""
    if DebugConfig.current().pointer_check and not condition():
        debug_handle_invalid_ptr(info, ptr)


def debug_check_double_dealloc(condition: Callable[[], bool], info: AllocatorInfo,
                               ptr: Any) -> None:
    """Like :func:`debug_check_pointer`, but only when the costlier double-free check is on."""
    if DebugConfig.current().double_dealloc_check:
        debug_check_pointer(condition, info, ptr)


def debug_handle_memory_leak(info: AllocatorInfo, amount: int) -> None:
    """Report ``amount`` bytes leaked by an allocator."""
    raise MemoryLeakError(info, amount)


def handle_failed_assert(msg: str) -> None:
    """Report a failed internal assertion."""
    raise AssertionFailure(msg)


def handle_warning(msg: str) -> None:
    """Report a suspicious but recoverable situation."""
    warnings.warn(msg, RuntimeWarning, stacklevel=2)


class NoLeakChecker:
    """A leak checker that checks nothing."""

    @property
    def allocated(self) -> int:
        """Always zero: nothing is tracked."""
        return 0

    def on_allocate(self, size: int) -> None:
        """Ignore an allocation."""

    def on_deallocate(self, size: int) -> None:
        """Ignore a deallocation."""


class ObjectLeakChecker:
    """Tracks the balance of one allocator object and reports it on close."""

    def __init__(self, info: AllocatorInfo | None = None,
                 handler: Callable[[int], None] | None = None) -> None:
        leak_info = info or AllocatorInfo(f"{LOG_PREFIX}::leak_checker", self)
        self._handler = handler or (lambda amount: debug_handle_memory_leak(leak_info, amount))
        self._allocated = 0

    @property
    def allocated(self) -> int:
        """Bytes allocated and not yet deallocated."""
        return self._allocated

    def on_allocate(self, size: int) -> None:
        """Record an allocation of ``size`` bytes."""
        self._allocated += size

    def on_deallocate(self, size: int) -> None:
        """Record a deallocation of ``size`` bytes."""
        self._allocated -= size

    def close(self) -> None:
        """Report any imbalance to the handler and reset the count."""
        amount, self._allocated = self._allocated, 0
        if amount != 0:
            self._handler(amount)

    def __enter__(self) -> ObjectLeakChecker:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class GlobalLeakChecker:
    """Tracks a balance shared by every instance of a class.

    Each subclass has its own balance.  The leak is reported when the
    last open :meth:`counter` closes.
    """

    _counters: ClassVar[int] = 0
    _allocated: ClassVar[int] = 0
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._counters = 0
        cls._allocated = 0
        cls._lock = threading.Lock()

    @classmethod
    def handle_leak(cls, amount: int) -> None:
        """Report ``amount`` leaked bytes; subclasses may override."""
        debug_handle_memory_leak(AllocatorInfo(f"{LOG_PREFIX}::{cls.__name__}"), amount)

    @classmethod
    def allocated(cls) -> int:
        """Bytes allocated and not yet deallocated across all instances."""
        with cls._lock:
            return cls._allocated

    def on_allocate(self, size: int) -> None:
        """Record an allocation of ``size`` bytes."""
        cls = type(self)
        with cls._lock:
            cls._allocated += size

    def on_deallocate(self, size: int) -> None:
        """Record a deallocation of ``size`` bytes."""
        cls = type(self)
        with cls._lock:
            cls._allocated -= size

    @classmethod
    @contextmanager
    def counter(cls) -> Iterator[type[GlobalLeakChecker]]:
        """Keep the balance open; the last one to close reports any leak."""
        with cls._lock:
            cls._counters += 1
        try:
            yield cls
        finally:
            with cls._lock:
                cls._counters -= 1
                amount = cls._allocated if cls._counters == 0 else 0
            if amount != 0:
                cls.handle_leak(amount)