from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class HarmonyTokenType(str, Enum):
    PLAIN = "plain"
    STRUCTURED_PROMPT = "structured_prompt"
    REASONING_CONTEXT = "reasoning_context"
    MULTI_MODAL = "multi_modal"


@dataclass(frozen=True)
class HarmonyTokens:
    """Tokens produced by an encoder together with the text they came from."""

    tokens: List[int]
    text: str
    type: HarmonyTokenType
    system_message: Optional[str] = None
    user_message: Optional[str] = None
    assistant_prefix: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.tokens)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokens": list(self.tokens),
            "text": self.text,
            "type": self.type.value,
            "system_message": self.system_message,
            "user_message": self.user_message,
            "assistant_prefix": self.assistant_prefix,
            "metadata": dict(self.metadata),
        }


def describe_structured_prompt(
    system_message: Optional[str],
    user_message: str,
    assistant_prefix: Optional[str],
) -> str:
    """Human-readable summary of a rendered prompt's parts."""
    parts = []
    if system_message is not None:
        parts.append(f"System: {system_message}\n\n")
    parts.append(f"User: {user_message}\n\n")
    if assistant_prefix is not None:
        parts.append(f"Assistant: {assistant_prefix}")
    else:
        parts.append("Assistant:")
    return "".join(parts)
