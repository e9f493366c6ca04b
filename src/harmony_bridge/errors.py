"""
Exception hierarchy for the Harmony bridge.

Every failure at the engine boundary is converted into one of these before the
operation returns. Callers either get a complete payload or an exception.
"""

from __future__ import annotations

from typing import Optional


class HarmonyError(Exception):
    """Base class for all Harmony bridge errors."""


class InvalidHandleError(HarmonyError):
    """Operation attempted on a null or released encoder handle."""


class ConversionError(HarmonyError):
    """Text or tokens could not be represented on the other side of the boundary."""


class EngineError(HarmonyError):
    """The engine reported a failure for an operation."""

    def __init__(self, operation: str, message: Optional[str] = None) -> None:
        self.operation = operation
        self.message = message
        text = f"Harmony engine failed in {operation}"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)


class MarshalingError(HarmonyError):
    """An engine buffer could not be copied into a Python container."""


class LibraryLoadError(HarmonyError):
    """The native engine library could not be found or linked."""


class BufferOwnershipError(HarmonyError):
    """An engine-owned buffer or resource was freed twice or never allocated."""
