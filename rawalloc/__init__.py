"""Raw allocators, a fixed memory stack, allocation checks and debug aids over simulated memory."""

__version__ = "0.1.0"

__all__ = [
    "align",
    "memory",
    "errors",
    "debug",
    "memory_stack",
    "static_allocator",
    "aligned_allocator",
    "memory_resource",
    "virtual_memory",
]