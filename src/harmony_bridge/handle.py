"""
Encoder handle lifecycle.

An ``EncoderHandle`` is the only way to reach an engine encoder. It can only be
produced by :func:`create_encoder` and is invalidated exactly once by
:func:`release_encoder`. Each handle carries its own lock: operations on one
handle are serialized, and release never overlaps another operation on it.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator

from harmony_bridge.errors import InvalidHandleError
from harmony_bridge.logging import get_logger

logger = get_logger(__name__)

_FACTORY_KEY = object()


class HandleState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LIVE = "live"
    RELEASED = "released"


class EncoderHandle:
    """Opaque capability for one engine encoder instance."""

    __slots__ = ("_lib", "_address", "_state", "_lock", "__weakref__")

    def __init__(self, key: object, lib: Any, address: int | None) -> None:
        if key is not _FACTORY_KEY:
            raise TypeError("EncoderHandle instances can only be created by create_encoder()")
        self._lib = lib
        self._address = address or 0
        self._state = HandleState.LIVE if self._address else HandleState.UNINITIALIZED
        self._lock = threading.Lock()

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def is_live(self) -> bool:
        return self._state is HandleState.LIVE

    @property
    def lib(self) -> Any:
        return self._lib

    @contextmanager
    def acquire(self) -> Iterator[int]:
        """Hold the handle for one engine call; yields the raw encoder address."""
        with self._lock:
            if self._state is not HandleState.LIVE:
                raise InvalidHandleError(f"Encoder handle is {self._state.value}")
            yield self._address

    def __repr__(self) -> str:
        return f"EncoderHandle(state={self._state.value})"

    def __copy__(self) -> "EncoderHandle":
        return self

    def __deepcopy__(self, memo: dict) -> "EncoderHandle":
        return self

    def __reduce__(self) -> Any:
        raise TypeError("EncoderHandle cannot be pickled")


def create_encoder(lib: Any) -> EncoderHandle:
    """
    Construct an engine encoder and wrap it in a handle.

    A null resource from the engine yields an ``UNINITIALIZED`` handle; every
    operation on it fails with :class:`InvalidHandleError`.
    """
    address = lib.harmony_encoding_new()
    handle = EncoderHandle(_FACTORY_KEY, lib, address)
    if handle.is_live:
        logger.debug("Created Harmony encoder handle")
    else:
        logger.debug("Harmony engine returned a null encoder")
    return handle


def release_encoder(handle: EncoderHandle) -> None:
    """Release the engine encoder behind ``handle``; a no-op unless it is live."""
    with handle._lock:
        if handle._state is not HandleState.LIVE:
            return
        handle._state = HandleState.RELEASED
        address, handle._address = handle._address, 0
        handle._lib.harmony_encoding_free(address)
    logger.debug("Released Harmony encoder handle")
