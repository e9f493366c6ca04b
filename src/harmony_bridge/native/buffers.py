"""
Marshaling between Python values and engine buffers.

Every buffer the engine hands back is owned by the engine and has to go back
through its own free routine. The context managers here own that release so
the operations never clean up at individual return statements.
"""

from __future__ import annotations

import ctypes
import operator
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

from harmony_bridge.errors import ConversionError, EngineError, MarshalingError
from harmony_bridge.logging import get_logger
from harmony_bridge.native.library import TokenPointer

logger = get_logger(__name__)

MAX_TOKEN_ID = 0xFFFFFFFF


class TokenBuffer:
    """Out-parameters for an engine call that produces a token array."""

    __slots__ = ("pointer", "length")

    def __init__(self) -> None:
        self.pointer = TokenPointer()
        self.length = ctypes.c_size_t(0)

    def out_args(self) -> tuple[Any, Any]:
        """Return the ``tokens_out``/``tokens_len`` arguments for the engine call."""
        return ctypes.pointer(self.pointer), ctypes.pointer(self.length)


@contextmanager
def engine_tokens(lib: Any) -> Iterator[TokenBuffer]:
    """Yield a :class:`TokenBuffer` and free whatever the engine stored in it."""
    buffer = TokenBuffer()
    try:
        yield buffer
    finally:
        if buffer.pointer:
            lib.harmony_free_tokens(buffer.pointer, buffer.length.value)


@contextmanager
def engine_string(lib: Any, address: Optional[int]) -> Iterator[Optional[int]]:
    """Own an engine-allocated C string for the duration of the block."""
    try:
        yield address
    finally:
        if address:
            lib.harmony_free_string(address)


def check_result(lib: Any, result: Any, operation: str) -> None:
    """
    Translate a ``HarmonyResult`` into the bridge's error channel.

    The error message buffer is released whether or not the call failed.
    """
    with engine_string(lib, result.error_message) as address:
        message = None
        if address:
            message = ctypes.string_at(address).decode("utf-8", errors="replace")
    if not result.success:
        logger.debug("Engine reported failure in %s: %s", operation, message)
        raise EngineError(operation, message)


def to_engine_text(text: object, field: str = "text") -> bytes:
    """Convert caller text to the NUL-terminated UTF-8 form the engine expects."""
    if not isinstance(text, str):
        raise ConversionError(f"{field} must be a str, got {type(text).__name__}")
    if "\x00" in text:
        raise ConversionError(f"{field} contains an embedded NUL character")
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ConversionError(f"{field} is not encodable as UTF-8: {exc}") from exc


def from_engine_text(raw: bytes) -> str:
    """Decode engine output; invalid UTF-8 is an error, never replaced."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ConversionError(f"Engine returned invalid UTF-8: {exc}") from exc


def to_engine_tokens(tokens: Sequence[int]) -> ctypes.Array:
    """Copy caller tokens into a ``uint32_t`` array, rejecting out-of-range values."""
    values: list[int] = []
    for position, token in enumerate(tokens):
        if isinstance(token, bool):
            raise ConversionError(f"Token at index {position} is a bool, not an integer")
        try:
            value = operator.index(token)
        except TypeError as exc:
            raise ConversionError(
                f"Token at index {position} is not an integer: {token!r}"
            ) from exc
        if value < 0 or value > MAX_TOKEN_ID:
            raise ConversionError(f"Token at index {position} out of uint32 range: {value}")
        values.append(value)
    return (ctypes.c_uint32 * len(values))(*values)


def copy_tokens(buffer: TokenBuffer) -> list[int]:
    """Copy an engine token array into a new Python list."""
    length = buffer.length.value
    if not buffer.pointer:
        if length:
            raise MarshalingError(f"Engine returned a null token buffer with length {length}")
        return []
    try:
        return buffer.pointer[:length]
    except (MemoryError, ValueError, OverflowError) as exc:
        raise MarshalingError(f"Failed to copy {length} engine tokens: {exc}") from exc
