"""
Link to the native Harmony engine library.

The library is loaded once per process; every function of the engine surface
gets explicit ``argtypes``/``restype`` declarations here. Functions that hand
back engine-owned memory are declared as returning ``c_void_p`` so the raw
address survives for the matching free call.
"""

from __future__ import annotations

import ctypes
import os
import platform
import threading
from pathlib import Path
from typing import Any, Optional

from harmony_bridge.errors import LibraryLoadError
from harmony_bridge.logging import get_logger

logger = get_logger(__name__)

LIBRARY_ENV_VAR = "HARMONY_BRIDGE_LIBRARY"

TokenPointer = ctypes.POINTER(ctypes.c_uint32)


class HarmonyResult(ctypes.Structure):
    """Tagged outcome of a fallible engine call (``HarmonyResult`` in harmony_ffi.h)."""

    _fields_ = [
        ("success", ctypes.c_bool),
        # Raw address; the message must be released with harmony_free_string.
        ("error_message", ctypes.c_void_p),
    ]


_SIGNATURES: dict[str, tuple[list[Any], Any]] = {
    "harmony_encoding_new": ([], ctypes.c_void_p),
    "harmony_encoding_free": ([ctypes.c_void_p], None),
    "harmony_encoding_encode_plain": (
        [
            ctypes.c_void_p,
            ctypes.c_char_p,
            ctypes.POINTER(TokenPointer),
            ctypes.POINTER(ctypes.c_size_t),
        ],
        HarmonyResult,
    ),
    "harmony_encoding_render_prompt": (
        [
            ctypes.c_void_p,
            ctypes.c_char_p,
            ctypes.c_char_p,
            ctypes.c_char_p,
            ctypes.POINTER(TokenPointer),
            ctypes.POINTER(ctypes.c_size_t),
        ],
        HarmonyResult,
    ),
    "harmony_encoding_decode": (
        [ctypes.c_void_p, TokenPointer, ctypes.c_size_t],
        ctypes.c_void_p,
    ),
    "harmony_encoding_stop_tokens": (
        [
            ctypes.c_void_p,
            ctypes.POINTER(TokenPointer),
            ctypes.POINTER(ctypes.c_size_t),
        ],
        HarmonyResult,
    ),
    "harmony_free_string": ([ctypes.c_void_p], None),
    "harmony_free_tokens": ([TokenPointer, ctypes.c_size_t], None),
}

ENGINE_FUNCTIONS = tuple(_SIGNATURES)


def _library_names() -> list[str]:
    system = platform.system()
    if system == "Windows":
        return ["openai_harmony.dll"]
    if system == "Darwin":
        return ["libopenai_harmony.dylib"]
    return ["libopenai_harmony.so"]


def _search_paths() -> list[Path]:
    package_dir = Path(__file__).resolve().parent.parent
    paths = [
        package_dir / "lib",
        package_dir.parent / "lib",
        package_dir.parent.parent / "lib",
        Path("/usr/local/lib"),
        Path("/usr/lib"),
    ]
    env_var = "DYLD_LIBRARY_PATH" if platform.system() == "Darwin" else "LD_LIBRARY_PATH"
    for path_str in os.environ.get(env_var, "").split(os.pathsep):
        if path_str:
            paths.append(Path(path_str))
    return paths


def find_library(library_path: str | Path | None = None) -> str:
    """
    Locate the Harmony engine shared library.

    Lookup order: the explicit ``library_path``, the ``HARMONY_BRIDGE_LIBRARY``
    environment variable, package-adjacent ``lib`` directories, system library
    directories and ``LD_LIBRARY_PATH``/``DYLD_LIBRARY_PATH``.

    Raises:
        LibraryLoadError: If no candidate exists.
    """
    explicit = library_path or os.getenv(LIBRARY_ENV_VAR)
    if explicit:
        candidate = Path(explicit).expanduser()
        if candidate.is_file():
            return str(candidate)
        raise LibraryLoadError(f"Harmony library not found at {candidate}")

    searched = _search_paths()
    for directory in searched:
        for name in _library_names():
            candidate = directory / name
            if candidate.is_file():
                return str(candidate)

    raise LibraryLoadError(
        "Could not find the Harmony engine library. Searched in: "
        f"{[str(p) for p in searched]}. Set {LIBRARY_ENV_VAR} to its path."
    )


def declare_signatures(lib: ctypes.CDLL) -> ctypes.CDLL:
    """Attach argtypes/restype for the whole engine surface to ``lib``."""
    for name, (argtypes, restype) in _SIGNATURES.items():
        try:
            func = getattr(lib, name)
        except AttributeError as exc:
            raise LibraryLoadError(f"Harmony library is missing symbol {name}") from exc
        func.argtypes = argtypes
        func.restype = restype
    return lib


_LIB_INSTANCE: Optional[ctypes.CDLL] = None
_LIB_LOCK = threading.Lock()


def load_library(library_path: str | Path | None = None) -> ctypes.CDLL:
    """
    Return the process-wide engine library, loading it on first use.

    Later calls return the already linked library regardless of ``library_path``.
    """
    global _LIB_INSTANCE
    with _LIB_LOCK:
        if _LIB_INSTANCE is None:
            path = find_library(library_path)
            try:
                lib = ctypes.CDLL(path)
            except OSError as exc:
                raise LibraryLoadError(f"Failed to load Harmony library {path}: {exc}") from exc
            _LIB_INSTANCE = declare_signatures(lib)
            logger.debug("Loaded Harmony engine library from %s", path)
        return _LIB_INSTANCE


def load_engine(config: Any = None) -> Any:
    """
    Return the engine library selected by a :class:`BridgeConfig`.

    ``engine="native"`` links ``libopenai_harmony``; ``engine="reference"``
    builds the openai_harmony backed :class:`ReferenceHarmonyLibrary`.
    """
    engine = getattr(config, "engine", "native")
    if engine == "reference":
        from harmony_bridge.reference_engine import ReferenceHarmonyLibrary

        return ReferenceHarmonyLibrary()
    if engine != "native":
        raise LibraryLoadError(f"Unknown Harmony engine {engine!r}")
    return load_library(getattr(config, "library_path", None))
