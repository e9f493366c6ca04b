"""
High-level Harmony encoder API.

``HarmonyEngine`` owns the link to an engine library and hands out
``HarmonyEncoder`` objects. An encoder wraps one :class:`EncoderHandle` and
releases it on ``close()``, on leaving a ``with`` block, or when collected.

Example:
    >>> engine = HarmonyEngine.from_config(BridgeConfig(engine="reference"))
    >>> with engine.create_encoder() as encoder:
    ...     prompt = encoder.render_prompt(user_message="Hello")
    ...     text = encoder.decode(prompt.tokens)
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Optional, Sequence

from harmony_bridge import bridge
from harmony_bridge.config import BridgeConfig
from harmony_bridge.errors import HarmonyError
from harmony_bridge.handle import EncoderHandle, create_encoder, release_encoder
from harmony_bridge.logging import configure_debug_file_logging, get_logger, set_package_level
from harmony_bridge.native.library import load_engine
from harmony_bridge.reasoning import HarmonyReasoningContext, HarmonyReasoningLevel
from harmony_bridge.tokens import HarmonyTokens, HarmonyTokenType, describe_structured_prompt
from harmony_bridge.types import optional_text, optional_value

logger = get_logger(__name__)

_PREVIEW_CHARS = 50


def _preview(text: str) -> str:
    return text[:_PREVIEW_CHARS] + ("..." if len(text) > _PREVIEW_CHARS else "")


class HarmonyEngine:
    """Entry point to a Harmony engine library."""

    _instance: Optional["HarmonyEngine"] = None
    _instance_lock = threading.Lock()

    def __init__(self, library: Any = None, *, config: Optional[BridgeConfig] = None) -> None:
        self.config = config or BridgeConfig()
        self.library = library if library is not None else load_engine(self.config)
        self._verbose = self.config.verbose

    @classmethod
    def from_config(cls, config: Optional[BridgeConfig] = None) -> "HarmonyEngine":
        """Apply the config's logging settings and load its engine."""
        config = config or BridgeConfig()
        if config.debug_log_path:
            configure_debug_file_logging(
                Path(config.debug_log_path), console_level=config.log_level
            )
        else:
            set_package_level(config.log_level)
        return cls(config=config)

    @classmethod
    def get_instance(cls, config: Optional[BridgeConfig] = None) -> "HarmonyEngine":
        """
        Return the process-wide engine, building it from ``config`` on first use.

        Later calls return the same engine and ignore ``config``.
        """
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls.from_config(config)
            return cls._instance

    def configure(self, verbose: bool = False) -> None:
        self._verbose = verbose
        if verbose:
            logger.info("Configuring Harmony engine (verbose)")

    def is_verbose(self) -> bool:
        return self._verbose

    def create_encoder(self) -> "HarmonyEncoder":
        handle = create_encoder(self.library)
        if not handle.is_live:
            release_encoder(handle)
            raise HarmonyError("Failed to create Harmony encoder - required for GPT-OSS models")
        if self._verbose:
            logger.info("Created Harmony encoder")
        return HarmonyEncoder(handle, verbose=self._verbose)


class HarmonyEncoder:
    """Tokenization and prompt formatting on one engine encoder."""

    def __init__(self, handle: EncoderHandle, verbose: bool = False) -> None:
        if not isinstance(handle, EncoderHandle):
            raise TypeError("HarmonyEncoder requires an EncoderHandle from create_encoder()")
        self._handle = handle
        self._verbose = verbose

    @property
    def handle(self) -> EncoderHandle:
        return self._handle

    @property
    def closed(self) -> bool:
        return not self._handle.is_live

    def encode_plain(self, text: str) -> HarmonyTokens:
        """Encode plain text without Harmony formatting."""
        if self._verbose:
            logger.info('Encoding plain text: "%s"', _preview(text))
        tokens = bridge.encode_plain(self._handle, text)
        return HarmonyTokens(tokens=tokens, text=text, type=HarmonyTokenType.PLAIN)

    def render_prompt(
        self,
        system_message: Optional[str] = None,
        *,
        user_message: str,
        assistant_prefix: Optional[str] = None,
    ) -> HarmonyTokens:
        """Render a structured prompt; ``None`` means the part is absent, ``""`` is empty."""
        system = optional_value(optional_text(system_message, field="system_message"))
        prefix = optional_value(optional_text(assistant_prefix, field="assistant_prefix"))
        if self._verbose:
            logger.info("Rendering Harmony prompt")
            if system is not None:
                logger.info('   System: "%s"', _preview(system))
            logger.info('   User: "%s"', _preview(user_message))
            if prefix is not None:
                logger.info('   Assistant prefix: "%s"', prefix)

        tokens = bridge.render_prompt(self._handle, system_message, user_message, assistant_prefix)
        return HarmonyTokens(
            tokens=tokens,
            text=describe_structured_prompt(system, user_message, prefix),
            type=HarmonyTokenType.STRUCTURED_PROMPT,
            system_message=system,
            user_message=user_message,
            assistant_prefix=prefix,
        )

    def decode(self, tokens: Sequence[int] | HarmonyTokens) -> str:
        """Decode tokens back to text."""
        if isinstance(tokens, HarmonyTokens):
            tokens = tokens.tokens
        return bridge.decode(self._handle, tokens)

    def get_stop_tokens(self) -> list[int]:
        return bridge.stop_tokens(self._handle)

    def create_reasoning_context(
        self,
        task: str,
        context: Optional[str] = None,
        reasoning_level: HarmonyReasoningLevel = HarmonyReasoningLevel.MEDIUM,
    ) -> HarmonyReasoningContext:
        if self.closed:
            raise HarmonyError("Encoder has been closed")
        return HarmonyReasoningContext(
            encoder=self,
            task=task,
            context=context,
            reasoning_level=reasoning_level,
            verbose=self._verbose,
        )

    def close(self) -> None:
        if self._handle.is_live:
            release_encoder(self._handle)
            if self._verbose:
                logger.info("Harmony encoder closed")

    def __enter__(self) -> "HarmonyEncoder":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self) -> None:
        handle = getattr(self, "_handle", None)
        if handle is not None:
            release_encoder(handle)

    def __repr__(self) -> str:
        status = "closed" if self.closed else "active"
        return f"HarmonyEncoder(status={status})"
