"""
Tests for locating and linking the native engine library.
"""
from __future__ import annotations

from pathlib import Path

import pytest

from harmony_bridge.config import BridgeConfig
from harmony_bridge.errors import LibraryLoadError
from harmony_bridge.native import library
from harmony_bridge.native.library import (
    ENGINE_FUNCTIONS,
    HarmonyResult,
    declare_signatures,
    find_library,
    load_engine,
    load_library,
)


class _Function:
    argtypes = None
    restype = None


class _FakeCDLL:
    def __init__(self, missing: str | None = None) -> None:
        for name in ENGINE_FUNCTIONS:
            if name != missing:
                setattr(self, name, _Function())


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.delenv("HARMONY_BRIDGE_LIBRARY", raising=False)
    monkeypatch.delenv("LD_LIBRARY_PATH", raising=False)
    monkeypatch.delenv("DYLD_LIBRARY_PATH", raising=False)
    monkeypatch.setattr(library, "_search_paths", lambda: [])


class TestFindLibrary:
    """Test library discovery."""

    def test_explicit_path(self, tmp_path: Path, clean_env):
        lib_path = tmp_path / "libcustom.so"
        lib_path.write_bytes(b"")
        assert find_library(lib_path) == str(lib_path)

    def test_explicit_path_missing(self, tmp_path: Path, clean_env):
        with pytest.raises(LibraryLoadError, match="not found"):
            find_library(tmp_path / "missing.so")

    def test_env_var(self, tmp_path: Path, clean_env, monkeypatch):
        lib_path = tmp_path / "libenv.so"
        lib_path.write_bytes(b"")
        monkeypatch.setenv("HARMONY_BRIDGE_LIBRARY", str(lib_path))
        assert find_library() == str(lib_path)

    def test_search_paths(self, tmp_path: Path, clean_env, monkeypatch):
        lib_path = tmp_path / library._library_names()[0]
        lib_path.write_bytes(b"")
        monkeypatch.setattr(library, "_search_paths", lambda: [tmp_path / "empty", tmp_path])
        assert find_library() == str(lib_path)

    def test_not_found_lists_search_paths(self, tmp_path: Path, clean_env, monkeypatch):
        monkeypatch.setattr(library, "_search_paths", lambda: [tmp_path])
        with pytest.raises(LibraryLoadError, match="HARMONY_BRIDGE_LIBRARY"):
            find_library()

    def test_ld_library_path_is_searched(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("LD_LIBRARY_PATH", str(tmp_path))
        monkeypatch.setenv("DYLD_LIBRARY_PATH", str(tmp_path))
        assert tmp_path in library._search_paths()


class TestLoadLibrary:
    """Test linking and signature declaration."""

    def test_declare_signatures(self):
        lib = _FakeCDLL()
        declare_signatures(lib)
        assert lib.harmony_encoding_encode_plain.restype is HarmonyResult
        assert lib.harmony_encoding_free.restype is None
        # Pointer-returning functions keep raw addresses.
        assert lib.harmony_encoding_decode.restype.__name__ == "c_void_p"
        assert lib.harmony_encoding_new.restype.__name__ == "c_void_p"

    def test_missing_symbol(self):
        with pytest.raises(LibraryLoadError, match="harmony_free_tokens"):
            declare_signatures(_FakeCDLL(missing="harmony_free_tokens"))

    def test_invalid_library_file(self, tmp_path: Path, clean_env, monkeypatch):
        monkeypatch.setattr(library, "_LIB_INSTANCE", None)
        lib_path = tmp_path / "libbroken.so"
        lib_path.write_bytes(b"not a shared object")
        with pytest.raises(LibraryLoadError, match="Failed to load"):
            load_library(lib_path)

    def test_loaded_once(self, monkeypatch):
        sentinel = object()
        monkeypatch.setattr(library, "_LIB_INSTANCE", sentinel)
        assert load_library("/nonexistent") is sentinel


class TestLoadEngine:
    """Test engine selection from config."""

    def test_unknown_engine(self):
        class Config:
            engine = "gpu"

        with pytest.raises(LibraryLoadError, match="gpu"):
            load_engine(Config())

    def test_native_engine_uses_library(self, monkeypatch):
        sentinel = object()
        monkeypatch.setattr(library, "_LIB_INSTANCE", sentinel)
        assert load_engine(BridgeConfig()) is sentinel

    def test_reference_engine(self):
        pytest.importorskip("openai_harmony")
        from harmony_bridge.reference_engine import ReferenceHarmonyLibrary

        assert isinstance(load_engine(BridgeConfig(engine="reference")), ReferenceHarmonyLibrary)
