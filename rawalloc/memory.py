"""A simulated byte-addressable region and intrusive list helpers on it."""

from __future__ import annotations

POINTER_SIZE = 8
"""Size in bytes of a stored address."""

NULL = 0
"""The null address."""

_POINTER_MASK = (1 << (8 * POINTER_SIZE)) - 1


class Memory:
    """A contiguous block of bytes starting at a non-zero base address."""

    def __init__(self, size: int, base: int = 0x1000) -> None:
        if size < 0:
            raise ValueError(f"negative memory size {size}")
        if base <= NULL:
            raise ValueError("base address must be positive")
        self._data = bytearray(size)
        self.base = base

    def __len__(self) -> int:
        return len(self._data)

    @property
    def end(self) -> int:
        """The address one past the last byte."""
        return self.base + len(self._data)

    def contains(self, address: int) -> bool:
        """Return whether ``address`` lies within this region."""
        return self.base <= address < self.end

    def _slice(self, address: int, size: int) -> slice:
        if address == NULL:
            raise ValueError("access through null address")
        if size < 0:
            raise ValueError(f"negative access size {size}")
        start = address - self.base
        if start < 0 or start + size > len(self._data):
            raise IndexError(
                f"access of {size} bytes at {address:#x} outside "
                f"[{self.base:#x}, {self.end:#x})"
            )
        return slice(start, start + size)

    def read(self, address: int, size: int) -> bytes:
        """Return ``size`` bytes starting at ``address``."""
        return bytes(self._data[self._slice(address, size)])

    def write(self, address: int, data: bytes) -> None:
        """Store ``data`` starting at ``address``."""
        self._data[self._slice(address, len(data))] = data

    def fill(self, address: int, size: int, value: int) -> None:
        """Set ``size`` bytes starting at ``address`` to the byte ``value``."""
        if not 0 <= value <= 0xFF:
            raise ValueError(f"byte value {value} out of range")
        self._data[self._slice(address, size)] = bytes([value]) * size

    def read_int(self, address: int) -> int:
        """Read a stored pointer-sized unsigned integer."""
        return int.from_bytes(self.read(address, POINTER_SIZE), "little")

    def write_int(self, address: int, value: int) -> None:
        """Store a pointer-sized unsigned integer."""
        self.write(address, value.to_bytes(POINTER_SIZE, "little"))


def list_get_next(memory: Memory, address: int) -> int:
    """Return the next pointer stored in the node at ``address``."""
    return memory.read_int(address)


def list_set_next(memory: Memory, address: int, ptr: int) -> None:
    """Store ``ptr`` as the next pointer of the node at ``address``."""
    memory.write_int(address, ptr)


def xor_list_get_other(memory: Memory, address: int, prev_or_next: int) -> int:
    """Given one neighbour of the node at ``address``, return the other."""
    return (memory.read_int(address) ^ prev_or_next) & _POINTER_MASK


def xor_list_set(memory: Memory, address: int, prev: int, next: int) -> None:
    """Store both neighbours of the node at ``address``; order does not matter."""
    memory.write_int(address, (prev ^ next) & _POINTER_MASK)


def xor_list_change(memory: Memory, address: int, old_ptr: int, new_ptr: int) -> None:
    """Replace neighbour ``old_ptr`` of the node at ``address`` with ``new_ptr``."""
    other = xor_list_get_other(memory, address, old_ptr)
    xor_list_set(memory, address, other, new_ptr)


def xor_list_iter_next(memory: Memory, cur: int, prev: int) -> tuple[int, int]:
    """Advance one step; return the new ``(cur, prev)`` pair."""
    return xor_list_get_other(memory, cur, prev), cur


def xor_list_insert(memory: Memory, new_node: int, prev: int, next: int) -> None:
    """Link ``new_node`` between the adjacent nodes ``prev`` and ``next``."""
    xor_list_set(memory, new_node, prev, next)
    xor_list_change(memory, prev, next, new_node)
    xor_list_change(memory, next, prev, new_node)