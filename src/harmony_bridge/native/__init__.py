from harmony_bridge.native.arena import BufferArena, ResourceTable
from harmony_bridge.native.library import (
    ENGINE_FUNCTIONS,
    HarmonyResult,
    find_library,
    load_engine,
    load_library,
)

__all__ = [
    "BufferArena",
    "ENGINE_FUNCTIONS",
    "HarmonyResult",
    "ResourceTable",
    "find_library",
    "load_engine",
    "load_library",
]
