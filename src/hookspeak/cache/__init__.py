"""Content-addressed audio cache for hookspeak."""

import os
from pathlib import Path

from .keys import generate_key, normalize_text
from .models import (
    CacheEntry,
    CacheMetadata,
    CacheStats,
    EvictionPolicy,
    extension_for_format,
)
from .store import AudioCacheStore

__all__ = [
    "AudioCacheStore",
    "CacheEntry",
    "CacheMetadata",
    "CacheStats",
    "EvictionPolicy",
    "default_cache_dir",
    "extension_for_format",
    "generate_key",
    "normalize_text",
]


def default_cache_dir() -> Path:
    """Get the XDG-compliant cache directory path.

    Priority:
    1. $XDG_CACHE_HOME/hookspeak/
    2. ~/.cache/hookspeak/

    The directory is not created here; AudioCacheStore creates it.

    Returns:
        Path to the cache directory
    """
    cache_home = os.environ.get("XDG_CACHE_HOME")
    if cache_home:
        return Path(cache_home) / "hookspeak"
    return Path.home() / ".cache" / "hookspeak"
