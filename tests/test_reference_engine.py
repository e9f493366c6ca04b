"""
Tests for the openai_harmony backed engine.

Skipped when openai_harmony is not installed or its vocabulary cannot be loaded.
"""
from __future__ import annotations

import pytest

pytest.importorskip("openai_harmony")

from harmony_bridge import bridge  # noqa: E402
from harmony_bridge.errors import EngineError  # noqa: E402
from harmony_bridge.handle import create_encoder, release_encoder  # noqa: E402
from harmony_bridge.reference_engine import ReferenceHarmonyLibrary  # noqa: E402


@pytest.fixture(scope="module")
def reference_library():
    lib = ReferenceHarmonyLibrary()
    handle = create_encoder(lib)
    if not handle.is_live:
        pytest.skip("Harmony encoding could not be loaded (vocabulary unavailable)")
    release_encoder(handle)
    return lib


@pytest.fixture
def reference_handle(reference_library):
    handle = create_encoder(reference_library)
    yield handle
    release_encoder(handle)
    assert reference_library.arena.outstanding == 0


class TestReferenceEngine:
    """Exercise the full bridge against the real Harmony encoding."""

    def test_scenario(self, reference_library):
        handle = create_encoder(reference_library)
        assert bridge.encode_plain(handle, "hello")
        stops = bridge.stop_tokens(handle)
        assert stops
        assert isinstance(bridge.decode(handle, stops), str)
        release_encoder(handle)
        assert len(reference_library.resources) == 0

    def test_encode_decode(self, reference_handle):
        tokens = bridge.encode_plain(reference_handle, "Hello, world!")
        assert bridge.decode(reference_handle, tokens) == "Hello, world!"

    def test_render_prompt_absent_vs_empty_system(self, reference_handle):
        absent = bridge.render_prompt(reference_handle, None, "hi", None)
        empty = bridge.render_prompt(reference_handle, "", "hi", None)
        assert absent != empty

    def test_assistant_prefix_is_appended(self, reference_handle):
        base = bridge.render_prompt(reference_handle, None, "hi", None)
        prefixed = bridge.render_prompt(reference_handle, None, "hi", "Sure")
        assert prefixed[: len(base)] == base
        assert len(prefixed) > len(base)

    def test_stop_tokens_idempotent(self, reference_handle):
        assert bridge.stop_tokens(reference_handle) == bridge.stop_tokens(reference_handle)


class _NulEncoding:
    def decode_bytes(self, tokens):
        return b"before\x00after"


class TestReferenceDecodeFailures:
    """Decode failures that do not need the Harmony vocabulary."""

    def test_embedded_nul_is_a_failure_not_truncation(self, monkeypatch):
        monkeypatch.setattr(
            "harmony_bridge.reference_engine.load_harmony_encoding", lambda name: _NulEncoding()
        )
        lib = ReferenceHarmonyLibrary()
        handle = create_encoder(lib)
        with pytest.raises(EngineError, match="engine returned no text"):
            bridge.decode(handle, [1, 2])
        release_encoder(handle)
        assert lib.arena.outstanding == 0
