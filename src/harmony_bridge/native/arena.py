"""
Engine-side allocation for engines implemented in Python.

A Python engine has to hand out real C memory with the same ownership rules as
``libopenai_harmony``: the buffer stays valid until the caller returns it
through ``harmony_free_tokens``/``harmony_free_string``. ``BufferArena`` keeps
those buffers alive and rejects frees of unknown or already freed addresses.
"""

from __future__ import annotations

import ctypes
import threading
from typing import Any, Sequence

from harmony_bridge.errors import BufferOwnershipError
from harmony_bridge.native.library import TokenPointer


def _address_of(pointer: Any) -> int:
    if isinstance(pointer, int):
        return pointer
    return ctypes.cast(pointer, ctypes.c_void_p).value or 0


class BufferArena:
    """Tracks token arrays and C strings handed out by a Python engine."""

    def __init__(self) -> None:
        self._tokens: dict[int, tuple[ctypes.Array, int]] = {}
        self._strings: dict[int, ctypes.Array] = {}
        self._lock = threading.Lock()
        self.allocated = 0
        self.freed = 0

    def alloc_tokens(self, values: Sequence[int]) -> tuple[Any, int]:
        """Allocate a ``uint32_t`` array; returns ``(pointer, length)``.

        An empty sequence yields a null pointer and length zero.
        """
        if not values:
            return TokenPointer(), 0
        array = (ctypes.c_uint32 * len(values))(*values)
        address = ctypes.addressof(array)
        with self._lock:
            self._tokens[address] = (array, len(values))
            self.allocated += 1
        return ctypes.cast(array, TokenPointer), len(values)

    def free_tokens(self, pointer: Any, length: int) -> None:
        address = _address_of(pointer)
        with self._lock:
            entry = self._tokens.pop(address, None)
            if entry is None:
                raise BufferOwnershipError(f"Token buffer 0x{address:x} is not owned by this engine")
            self.freed += 1
        if entry[1] != length:
            raise BufferOwnershipError(
                f"Token buffer 0x{address:x} freed with length {length}, allocated {entry[1]}"
            )

    def alloc_string(self, data: bytes) -> int:
        """Allocate a NUL-terminated copy of ``data`` and return its address."""
        buffer = ctypes.create_string_buffer(data)
        address = ctypes.addressof(buffer)
        with self._lock:
            self._strings[address] = buffer
            self.allocated += 1
        return address

    def free_string(self, address: Any) -> None:
        address = _address_of(address)
        with self._lock:
            if self._strings.pop(address, None) is None:
                raise BufferOwnershipError(f"String 0x{address:x} is not owned by this engine")
            self.freed += 1

    @property
    def outstanding_tokens(self) -> int:
        with self._lock:
            return len(self._tokens)

    @property
    def outstanding_strings(self) -> int:
        with self._lock:
            return len(self._strings)

    @property
    def outstanding(self) -> int:
        return self.outstanding_tokens + self.outstanding_strings


class ResourceTable:
    """Maps opaque integer addresses to Python engine objects."""

    def __init__(self) -> None:
        self._objects: dict[int, tuple[ctypes.Array, Any]] = {}
        self._lock = threading.Lock()

    def register(self, obj: Any) -> int:
        # A one-byte allocation gives each resource a unique, non-null address.
        anchor = ctypes.create_string_buffer(1)
        address = ctypes.addressof(anchor)
        with self._lock:
            self._objects[address] = (anchor, obj)
        return address

    def lookup(self, address: Any) -> Any:
        address = _address_of(address)
        with self._lock:
            entry = self._objects.get(address)
        if entry is None:
            raise BufferOwnershipError(f"Unknown engine resource 0x{address:x}")
        return entry[1]

    def unregister(self, address: Any) -> Any:
        address = _address_of(address)
        with self._lock:
            entry = self._objects.pop(address, None)
        if entry is None:
            raise BufferOwnershipError(f"Engine resource 0x{address:x} freed twice or never created")
        return entry[1]

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)
