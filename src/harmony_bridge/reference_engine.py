"""
Harmony engine implemented on top of the ``openai_harmony`` Python package.

``ReferenceHarmonyLibrary`` exposes the same function surface as
``libopenai_harmony`` (see ``native.library``), including its ownership rules:
results come back in engine-owned buffers that the bridge has to free. This lets
the bridge run where only the openai-harmony wheel is installed.
"""

from __future__ import annotations

from typing import Any, Optional

from openai_harmony import (
    Conversation,
    HarmonyEncodingName,
    Message,
    Role,
    SystemContent,
    load_harmony_encoding,
)

from harmony_bridge.logging import get_logger
from harmony_bridge.native.arena import BufferArena, ResourceTable
from harmony_bridge.native.library import HarmonyResult

logger = get_logger(__name__)


def _text(raw: Optional[bytes]) -> Optional[str]:
    if raw is None:
        return None
    return raw.decode("utf-8")


class ReferenceHarmonyLibrary:
    """Python implementation of the Harmony engine C surface."""

    def __init__(
        self,
        encoding_name: HarmonyEncodingName = HarmonyEncodingName.HARMONY_GPT_OSS,
        arena: BufferArena | None = None,
    ) -> None:
        self.encoding_name = encoding_name
        self.arena = arena or BufferArena()
        self.resources = ResourceTable()

    def _fail(self, exc: Exception) -> HarmonyResult:
        message = self.arena.alloc_string(str(exc).replace("\x00", " ").encode("utf-8"))
        return HarmonyResult(False, message)

    def _store_tokens(self, tokens: list[int], tokens_out: Any, tokens_len: Any) -> HarmonyResult:
        pointer, length = self.arena.alloc_tokens(tokens)
        tokens_out[0] = pointer
        tokens_len[0] = length
        return HarmonyResult(True, None)

    def harmony_encoding_new(self) -> Optional[int]:
        try:
            encoding = load_harmony_encoding(self.encoding_name)
        except Exception as exc:  # the C constructor signals failure with NULL
            logger.error("Failed to load Harmony encoding %s: %s", self.encoding_name, exc)
            return None
        return self.resources.register(encoding)

    def harmony_encoding_free(self, wrapper: int) -> None:
        self.resources.unregister(wrapper)

    def harmony_encoding_encode_plain(
        self, wrapper: int, text: bytes, tokens_out: Any, tokens_len: Any
    ) -> HarmonyResult:
        encoding = self.resources.lookup(wrapper)
        try:
            tokens = encoding.encode(_text(text), allowed_special="all")
        except Exception as exc:
            return self._fail(exc)
        return self._store_tokens(list(tokens), tokens_out, tokens_len)

    def harmony_encoding_render_prompt(
        self,
        wrapper: int,
        system_msg: Optional[bytes],
        user_msg: bytes,
        assistant_prefix: Optional[bytes],
        tokens_out: Any,
        tokens_len: Any,
    ) -> HarmonyResult:
        encoding = self.resources.lookup(wrapper)
        try:
            messages = []
            if system_msg is not None:
                system_content = SystemContent.new().with_model_identity(_text(system_msg))
                messages.append(Message.from_role_and_content(Role.SYSTEM, system_content))
            messages.append(Message.from_role_and_content(Role.USER, _text(user_msg)))
            tokens = list(
                encoding.render_conversation_for_completion(
                    Conversation.from_messages(messages), Role.ASSISTANT
                )
            )
            if assistant_prefix is not None:
                tokens.extend(encoding.encode(_text(assistant_prefix), allowed_special="all"))
        except Exception as exc:
            return self._fail(exc)
        return self._store_tokens(tokens, tokens_out, tokens_len)

    def harmony_encoding_decode(self, wrapper: int, tokens: Any, tokens_len: int) -> Optional[int]:
        encoding = self.resources.lookup(wrapper)
        token_list = list(tokens[:tokens_len]) if tokens_len else []
        try:
            decode_bytes = getattr(encoding, "decode_bytes", None)
            if callable(decode_bytes):
                data = bytes(decode_bytes(token_list))
            else:
                data = encoding.decode(token_list).encode("utf-8")
        except Exception as exc:  # the C decoder signals failure with NULL
            logger.debug("Reference decode failed: %s", exc)
            return None
        if b"\x00" in data:
            # a C string cannot carry the text past the NUL
            logger.debug("Reference decode produced an embedded NUL byte")
            return None
        return self.arena.alloc_string(data)

    def harmony_encoding_stop_tokens(
        self, wrapper: int, tokens_out: Any, tokens_len: Any
    ) -> HarmonyResult:
        encoding = self.resources.lookup(wrapper)
        try:
            tokens = list(encoding.stop_tokens())
        except Exception as exc:
            return self._fail(exc)
        return self._store_tokens(tokens, tokens_out, tokens_len)

    def harmony_free_string(self, address: int) -> None:
        self.arena.free_string(address)

    def harmony_free_tokens(self, tokens: Any, length: int) -> None:
        self.arena.free_tokens(tokens, length)
