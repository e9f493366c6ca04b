"""
Structured reasoning contexts built on top of an encoder.

A context accumulates reasoning steps for a task and renders them into a
Harmony prompt whose system message carries the task, context, reasoning level
and the steps taken so far.
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from harmony_bridge.logging import get_logger
from harmony_bridge.tokens import HarmonyTokens, HarmonyTokenType

if TYPE_CHECKING:
    from harmony_bridge.engine import HarmonyEncoder

logger = get_logger(__name__)

REASONING_USER_MESSAGE = "Please continue with structured reasoning for this task."
REASONING_ASSISTANT_PREFIX = "I'll think through this step by step:\n\n<thinking>"


class HarmonyReasoningLevel(Enum):
    LOW = "Basic reasoning with simple steps"
    MEDIUM = "Structured reasoning with analysis"
    HIGH = "Deep reasoning with detailed analysis and verification"

    @property
    def description(self) -> str:
        return self.value


@dataclass(frozen=True)
class HarmonyReasoningStep:
    step_number: int
    thought: str
    analysis: Optional[str] = None
    conclusion: Optional[str] = None
    timestamp: int = 0  # milliseconds since the epoch


class HarmonyReasoningContext:
    """Manages the steps of one structured thinking process."""

    def __init__(
        self,
        encoder: "HarmonyEncoder",
        task: str,
        context: Optional[str] = None,
        reasoning_level: HarmonyReasoningLevel = HarmonyReasoningLevel.MEDIUM,
        verbose: bool = False,
    ) -> None:
        self._encoder = encoder
        self.task = task
        self.context = context
        self.reasoning_level = reasoning_level
        self._verbose = verbose
        self._steps: List[HarmonyReasoningStep] = []

    def add_reasoning_step(
        self,
        thought: str,
        analysis: Optional[str] = None,
        conclusion: Optional[str] = None,
    ) -> HarmonyReasoningStep:
        step = HarmonyReasoningStep(
            step_number=len(self._steps) + 1,
            thought=thought,
            analysis=analysis,
            conclusion=conclusion,
            timestamp=int(time.time() * 1000),
        )
        self._steps.append(step)
        if self._verbose:
            logger.info("Reasoning step %d: %s", step.step_number, thought[:60])
        return step

    @property
    def reasoning_steps(self) -> List[HarmonyReasoningStep]:
        return list(self._steps)

    def build_system_message(self) -> str:
        lines = [
            "You are an AI assistant capable of structured reasoning.",
            "",
            f"Task: {self.task}",
        ]
        if self.context is not None:
            lines.append(f"Context: {self.context}")
        lines.append(f"Reasoning Level: {self.reasoning_level.description}")
        lines.append("")
        if self._steps:
            lines.append("Previous Reasoning Steps:")
            for step in self._steps:
                lines.append(f"{step.step_number}. {step.thought}")
                if step.analysis is not None:
                    lines.append(f"   Analysis: {step.analysis}")
                if step.conclusion is not None:
                    lines.append(f"   Conclusion: {step.conclusion}")
            lines.append("")
        return "\n".join(lines) + "\n"

    def generate_structured_prompt(self) -> HarmonyTokens:
        rendered = self._encoder.render_prompt(
            system_message=self.build_system_message(),
            user_message=REASONING_USER_MESSAGE,
            assistant_prefix=REASONING_ASSISTANT_PREFIX,
        )
        return dataclasses.replace(
            rendered,
            type=HarmonyTokenType.REASONING_CONTEXT,
            metadata={
                "task": self.task,
                "reasoning_level": self.reasoning_level.name,
                "steps": str(len(self._steps)),
            },
        )
