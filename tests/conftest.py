"""
Pytest configuration and shared fixtures for harmony-bridge tests.

``FakeHarmonyLibrary`` stands in for libopenai_harmony. It hands out real
ctypes buffers through a ``BufferArena`` so tests can check that every buffer
the engine allocates is returned through the engine's free routines.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import pytest

from harmony_bridge.handle import create_encoder, release_encoder
from harmony_bridge.logging import PACKAGE_LOGGER
from harmony_bridge.native.arena import BufferArena, ResourceTable
from harmony_bridge.native.library import HarmonyResult

BYTE_OFFSET = 1000

SPECIAL_TOKENS = {
    199999: b"<|endoftext|>",
    200002: b"<|return|>",
    200006: b"<|start|>",
    200007: b"<|end|>",
    200008: b"<|message|>",
    200012: b"<|call|>",
}
START, END, MESSAGE = 200006, 200007, 200008
STOP_TOKENS = [200002, 199999, 200012]

_UNSET = object()


class FakeHarmonyLibrary:
    """Deterministic engine: one token per UTF-8 byte plus a few special tokens."""

    def __init__(self) -> None:
        self.arena = BufferArena()
        self.resources = ResourceTable()
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, str] = {}
        self.null_encoder = False
        self.decode_output: Any = _UNSET
        self.success_message: Optional[str] = None
        self.null_pointer_length: Optional[int] = None
        self.destructor_calls = 0

    # -- helpers -----------------------------------------------------------
    @staticmethod
    def encode_bytes(data: bytes) -> list[int]:
        return [BYTE_OFFSET + b for b in data]

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    @property
    def engine_calls(self) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if not call[0].startswith("free_")]

    def _finish(self, operation: str, tokens: list[int], tokens_out: Any, tokens_len: Any) -> HarmonyResult:
        if operation in self.failures:
            message = self.arena.alloc_string(self.failures[operation].encode("utf-8"))
            return HarmonyResult(False, message)
        if self.null_pointer_length is not None:
            tokens_len[0] = self.null_pointer_length
            return HarmonyResult(True, None)
        pointer, length = self.arena.alloc_tokens(tokens)
        tokens_out[0] = pointer
        tokens_len[0] = length
        message = None
        if self.success_message is not None:
            message = self.arena.alloc_string(self.success_message.encode("utf-8"))
        return HarmonyResult(True, message)

    # -- engine surface ----------------------------------------------------
    def harmony_encoding_new(self) -> Optional[int]:
        self.calls.append(("new",))
        if self.null_encoder:
            return None
        return self.resources.register(object())

    def harmony_encoding_free(self, wrapper: int) -> None:
        self.calls.append(("destruct", wrapper))
        self.destructor_calls += 1
        self.resources.unregister(wrapper)

    def harmony_encoding_encode_plain(self, wrapper, text, tokens_out, tokens_len):
        self.resources.lookup(wrapper)
        self.calls.append(("encode_plain", text))
        return self._finish("encode_plain", self.encode_bytes(text), tokens_out, tokens_len)

    def harmony_encoding_render_prompt(
        self, wrapper, system_msg, user_msg, assistant_prefix, tokens_out, tokens_len
    ):
        self.resources.lookup(wrapper)
        self.calls.append(("render_prompt", system_msg, user_msg, assistant_prefix))
        tokens: list[int] = []
        if system_msg is not None:
            tokens += [START, *self.encode_bytes(b"system"), MESSAGE, *self.encode_bytes(system_msg), END]
        tokens += [START, *self.encode_bytes(b"user"), MESSAGE, *self.encode_bytes(user_msg), END]
        tokens += [START, *self.encode_bytes(b"assistant")]
        if assistant_prefix is not None:
            tokens += [MESSAGE, *self.encode_bytes(assistant_prefix)]
        return self._finish("render_prompt", tokens, tokens_out, tokens_len)

    def harmony_encoding_decode(self, wrapper, tokens, tokens_len):
        self.resources.lookup(wrapper)
        values = list(tokens[:tokens_len]) if tokens_len else []
        self.calls.append(("decode", tuple(values)))
        if self.decode_output is not _UNSET:
            if self.decode_output is None:
                return None
            return self.arena.alloc_string(self.decode_output)
        data = bytearray()
        for value in values:
            if value in SPECIAL_TOKENS:
                data += SPECIAL_TOKENS[value]
            elif BYTE_OFFSET <= value < BYTE_OFFSET + 256:
                data.append(value - BYTE_OFFSET)
            else:
                return None
        return self.arena.alloc_string(bytes(data))

    def harmony_encoding_stop_tokens(self, wrapper, tokens_out, tokens_len):
        self.resources.lookup(wrapper)
        self.calls.append(("stop_tokens",))
        return self._finish("stop_tokens", list(STOP_TOKENS), tokens_out, tokens_len)

    def harmony_free_string(self, address):
        self.calls.append(("free_string", address))
        self.arena.free_string(address)

    def harmony_free_tokens(self, tokens, length):
        self.calls.append(("free_tokens", length))
        self.arena.free_tokens(tokens, length)


@pytest.fixture
def fake_library() -> FakeHarmonyLibrary:
    """Returns a fresh instrumented engine."""
    return FakeHarmonyLibrary()


@pytest.fixture
def handle(fake_library: FakeHarmonyLibrary):
    """Returns a live encoder handle; released after the test."""
    encoder_handle = create_encoder(fake_library)
    yield encoder_handle
    release_encoder(encoder_handle)


@pytest.fixture
def assert_no_leaks(fake_library: FakeHarmonyLibrary):
    """Fails the test if any engine buffer is still outstanding at the end."""
    yield
    assert fake_library.arena.outstanding == 0
    assert fake_library.arena.allocated == fake_library.arena.freed


@pytest.fixture
def restore_logging():
    """Restores logger levels and root handlers changed by a test."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    root = logging.getLogger()
    package_level = package_logger.level
    handlers = list(root.handlers)
    handler_levels = [handler.level for handler in handlers]
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler, level in zip(handlers, handler_levels):
        handler.setLevel(level)
    package_logger.setLevel(package_level)
