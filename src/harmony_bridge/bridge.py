"""
Encoder operations across the engine boundary.

Each operation validates the handle, converts its inputs, makes exactly one
engine call, copies the engine's output into Python objects and releases every
engine buffer before returning. Failures surface as :mod:`harmony_bridge.errors`
exceptions; no operation returns a partially filled result.
"""

from __future__ import annotations

import ctypes
from typing import Optional, Sequence

from harmony_bridge.errors import EngineError
from harmony_bridge.handle import EncoderHandle
from harmony_bridge.logging import get_logger
from harmony_bridge.native.buffers import (
    check_result,
    copy_tokens,
    engine_string,
    engine_tokens,
    from_engine_text,
    to_engine_text,
    to_engine_tokens,
)
from harmony_bridge.types import OptionalText, Present, TokenSequence, optional_text

logger = get_logger(__name__)


def _engine_optional(value: OptionalText, field: str) -> Optional[bytes]:
    if isinstance(value, Present):
        return to_engine_text(value.text, field)
    return None


def encode_plain(handle: EncoderHandle, text: str) -> TokenSequence:
    """Encode ``text`` without Harmony formatting."""
    lib = handle.lib
    with handle.acquire() as encoder:
        c_text = to_engine_text(text, "text")
        with engine_tokens(lib) as buffer:
            result = lib.harmony_encoding_encode_plain(encoder, c_text, *buffer.out_args())
            check_result(lib, result, "encode_plain")
            return copy_tokens(buffer)


def render_prompt(
    handle: EncoderHandle,
    system_message: object,
    user_message: str,
    assistant_prefix: object,
) -> TokenSequence:
    """
    Render a structured Harmony prompt.

    ``system_message`` and ``assistant_prefix`` accept ``None``/``ABSENT`` for an
    absent argument, or a ``str``/``Present`` (empty text included) for a present
    one. Absent arguments reach the engine as null pointers.
    """
    system = optional_text(system_message, field="system_message")
    prefix = optional_text(assistant_prefix, field="assistant_prefix")
    lib = handle.lib
    with handle.acquire() as encoder:
        c_user = to_engine_text(user_message, "user_message")
        c_system = _engine_optional(system, "system_message")
        c_prefix = _engine_optional(prefix, "assistant_prefix")
        with engine_tokens(lib) as buffer:
            result = lib.harmony_encoding_render_prompt(
                encoder,
                c_system,
                c_user,
                c_prefix,
                *buffer.out_args(),
            )
            check_result(lib, result, "render_prompt")
            return copy_tokens(buffer)


def decode(handle: EncoderHandle, tokens: Sequence[int]) -> str:
    """Decode a token sequence back to text."""
    lib = handle.lib
    with handle.acquire() as encoder:
        native_tokens = to_engine_tokens(tokens)
        address = lib.harmony_encoding_decode(encoder, native_tokens, len(native_tokens))
        with engine_string(lib, address):
            if not address:
                raise EngineError("decode", "engine returned no text")
            return from_engine_text(ctypes.string_at(address))


def stop_tokens(handle: EncoderHandle) -> TokenSequence:
    """Return the tokens that end an assistant turn."""
    lib = handle.lib
    with handle.acquire() as encoder:
        with engine_tokens(lib) as buffer:
            result = lib.harmony_encoding_stop_tokens(encoder, *buffer.out_args())
            check_result(lib, result, "stop_tokens")
            return copy_tokens(buffer)
