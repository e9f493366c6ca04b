"""
harmony-bridge: safe Python binding for the Harmony encoding engine.
"""

from harmony_bridge.bridge import decode, encode_plain, render_prompt, stop_tokens
from harmony_bridge.config import BridgeConfig, load_bridge_config
from harmony_bridge.engine import HarmonyEncoder, HarmonyEngine
from harmony_bridge.errors import (
    BufferOwnershipError,
    ConversionError,
    EngineError,
    HarmonyError,
    InvalidHandleError,
    LibraryLoadError,
    MarshalingError,
)
from harmony_bridge.handle import EncoderHandle, HandleState, create_encoder, release_encoder
from harmony_bridge.reasoning import (
    HarmonyReasoningContext,
    HarmonyReasoningLevel,
    HarmonyReasoningStep,
)
from harmony_bridge.tokens import HarmonyTokens, HarmonyTokenType
from harmony_bridge.types import ABSENT, Absent, OptionalText, Present

__version__ = "0.1.0"

__all__ = [
    "ABSENT",
    "Absent",
    "BridgeConfig",
    "BufferOwnershipError",
    "ConversionError",
    "EncoderHandle",
    "EngineError",
    "HandleState",
    "HarmonyEncoder",
    "HarmonyEngine",
    "HarmonyError",
    "HarmonyReasoningContext",
    "HarmonyReasoningLevel",
    "HarmonyReasoningStep",
    "HarmonyTokenType",
    "HarmonyTokens",
    "InvalidHandleError",
    "LibraryLoadError",
    "MarshalingError",
    "OptionalText",
    "Present",
    "create_encoder",
    "decode",
    "encode_plain",
    "load_bridge_config",
    "release_encoder",
    "render_prompt",
    "stop_tokens",
]
