"""Pytest configuration and fixtures for hookspeak tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hookspeak.cache import AudioCacheStore, EvictionPolicy


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path) -> None:
    """Keep tests away from the real config/cache dirs and API keys."""
    for var in (
        "OPENAI_API_KEY",
        "ELEVENLABS_API_KEY",
        "OPENAI_TTS_VOICE",
        "ELEVENLABS_VOICE_ID",
        "HOOKSPEAK_PROVIDER",
        "HOOKSPEAK_FALLBACK",
        "HOOKSPEAK_CACHE_DIR",
        "HOOKSPEAK_CACHE_ENABLED",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache-home"))


@pytest.fixture
def cache_dir(tmp_path) -> Path:
    return tmp_path / "audio-cache"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(cache_dir, clock) -> AudioCacheStore:
    """Cache store on a temp directory with a controllable clock."""
    return AudioCacheStore(cache_dir, EvictionPolicy(), clock=clock)
