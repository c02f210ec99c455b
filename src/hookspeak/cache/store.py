"""File-based audio cache store.

Each entry is two linked files under the cache directory::

    <cache_dir>/entries/<key>.json   # descriptor (CacheMetadata + key)
    <cache_dir>/audio/<key>.<ext>    # payload

Nothing is shared between invocations except this directory, so every write
goes to a temp file in the target directory and is moved into place with
``os.replace``. The payload is always renamed before its descriptor, which
means a reader never finds a descriptor pointing at a half-written payload.
"""

import json
import logging
import os
import tempfile
import time
from collections.abc import Callable, Iterator
from pathlib import Path

from ..errors import CacheCorruptionError
from .models import (
    CacheEntry,
    CacheMetadata,
    CacheStats,
    EvictionPolicy,
    extension_for_format,
)

logger = logging.getLogger(__name__)

ENTRIES_DIR = "entries"
AUDIO_DIR = "audio"
STATS_FILE = "stats.json"
TEMP_PREFIX = ".tmp-"

# Temp files and payloads without a descriptor older than this are leftovers
# from killed writers.
STALE_FILE_SECONDS = 60 * 60


def atomic_write(path: Path, data: bytes) -> None:
    """Write bytes to path so readers see either the old file or the new one.

    Args:
        path: Destination file
        data: Content to write

    Raises:
        OSError: If the write or rename fails (the temp file is removed)
    """
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=TEMP_PREFIX, suffix=path.suffix
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class AudioCacheStore:
    """Content-addressed store for synthesized audio.

    The store is an explicit handle: construct it with a resolved directory
    and limits and pass it to whoever needs it.

    Example:
        store = AudioCacheStore(Path("~/.cache/hookspeak").expanduser())
        key = generate_key("Build finished", "tts-1", "alloy", 1.0)

        entry = store.get(key)
        if entry is None:
            audio = await provider.synthesize(request)
            store.set(key, audio, "openai", "alloy", "tts-1", 1.0, "mp3")
    """

    def __init__(
        self,
        cache_dir: Path,
        policy: EvictionPolicy | None = None,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            cache_dir: Root directory of the cache
            policy: Size/age/count bounds (defaults: 100MB, 7 days, 1000 entries)
            enabled: When False, every lookup misses and writes are dropped
            clock: Time source in epoch seconds

        A directory that cannot be created disables the store instead of
        raising, so callers keep working without a cache.
        """
        self.cache_dir = Path(cache_dir)
        self.entries_dir = self.cache_dir / ENTRIES_DIR
        self.audio_dir = self.cache_dir / AUDIO_DIR
        self.stats_path = self.cache_dir / STATS_FILE
        self.policy = policy or EvictionPolicy()
        self.enabled = enabled
        self._clock = clock

        if self.enabled:
            try:
                self._ensure_dirs()
            except OSError as e:
                logger.warning(
                    f"Cache directory {self.cache_dir} is unusable, "
                    f"continuing without cache: {e}"
                )
                self.enabled = False

    def _ensure_dirs(self) -> None:
        self.entries_dir.mkdir(parents=True, exist_ok=True)
        self.audio_dir.mkdir(parents=True, exist_ok=True)

    def descriptor_path(self, key: str) -> Path:
        return self.entries_dir / f"{key}.json"

    def audio_path(self, key: str, extension: str) -> Path:
        return self.audio_dir / f"{key}{extension}"

    # Lookups

    def get(self, key: str) -> CacheEntry | None:
        """Look up an entry and record a hit or miss.

        A descriptor whose payload is missing or truncated is treated as a
        miss and the descriptor is removed. Entries older than the policy's
        max age are reported as a miss but left for eviction to delete.

        Args:
            key: Cache key from generate_key()

        Returns:
            The cache entry on a hit, None on a miss
        """
        if not self.enabled:
            return None

        entry = self._live_entry(key)
        self._record_lookup(hit=entry is not None)
        return entry

    def load(self, key: str) -> tuple[CacheEntry, bytes] | None:
        """Look up an entry and read its payload, recording a hit or miss.

        The hit is counted only once the payload has been read and matches
        the descriptor, so a payload that vanished after the descriptor was
        checked counts as a miss.

        Args:
            key: Cache key from generate_key()

        Returns:
            (entry, audio bytes) on a hit, None on a miss
        """
        if not self.enabled:
            return None

        entry = self._live_entry(key)
        audio_bytes = self.read_payload(entry) if entry is not None else None
        self._record_lookup(hit=audio_bytes is not None)
        if audio_bytes is None:
            return None
        return entry, audio_bytes

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._lookup(key)
        if entry is not None and self._is_expired(entry.metadata):
            logger.debug(f"Cache entry {key[:16]} expired, treating as miss")
            return None
        return entry

    def peek(self, key: str) -> CacheEntry | None:
        """Look up an entry without touching the hit/miss counters."""
        if not self.enabled:
            return None
        return self._lookup(key)

    def _lookup(self, key: str) -> CacheEntry | None:
        descriptor_path = self.descriptor_path(key)
        try:
            raw = descriptor_path.read_bytes()
        except FileNotFoundError:
            logger.debug(f"Cache miss: no descriptor for {key[:16]}")
            return None

        try:
            metadata = self._parse_descriptor(raw)
            audio_path = self.audio_path(key, metadata.extension)
            self._check_payload(audio_path, metadata)
        except CacheCorruptionError as e:
            logger.warning(f"Cache corruption for {key[:16]}: {e}")
            self._discard_descriptor(descriptor_path, raw)
            return None

        return CacheEntry(key=key, audio_path=audio_path, metadata=metadata)

    def read_payload(self, entry: CacheEntry) -> bytes | None:
        """Read the payload of an entry returned by get() or peek().

        Returns:
            Audio bytes, or None if the payload vanished or is truncated
        """
        try:
            data = entry.audio_path.read_bytes()
        except FileNotFoundError:
            logger.warning(f"Cache payload disappeared: {entry.audio_path}")
            return None

        if len(data) != entry.metadata.size_bytes:
            logger.warning(
                f"Cache payload size mismatch for {entry.key[:16]}: "
                f"expected {entry.metadata.size_bytes}, got {len(data)}"
            )
            return None
        return data

    @staticmethod
    def _parse_descriptor(raw: bytes) -> CacheMetadata:
        try:
            data = json.loads(raw.decode("utf-8"))
            if not isinstance(data, dict):
                raise ValueError("descriptor is not an object")
            return CacheMetadata.from_dict(data)
        except ValueError as e:
            raise CacheCorruptionError(f"unreadable descriptor: {e}", e) from e

    @staticmethod
    def _check_payload(audio_path: Path, metadata: CacheMetadata) -> None:
        try:
            size = audio_path.stat().st_size
        except FileNotFoundError as e:
            raise CacheCorruptionError(f"payload missing: {audio_path.name}", e) from e
        if size != metadata.size_bytes:
            raise CacheCorruptionError(
                f"payload truncated: {audio_path.name} has {size} bytes, "
                f"descriptor says {metadata.size_bytes}"
            )

    def _discard_descriptor(self, descriptor_path: Path, raw: bytes) -> None:
        """Remove a bad descriptor unless a writer replaced it meanwhile."""
        try:
            if descriptor_path.read_bytes() == raw:
                descriptor_path.unlink(missing_ok=True)
                logger.debug(f"Removed orphaned descriptor {descriptor_path.name}")
        except OSError as e:
            logger.debug(f"Could not remove descriptor {descriptor_path.name}: {e}")

    def _is_expired(self, metadata: CacheMetadata, now: float | None = None) -> bool:
        now = self._clock() if now is None else now
        age_ms = (now - metadata.created_at) * 1000
        return age_ms > self.policy.max_age_ms

    # Writes

    def set(
        self,
        key: str,
        audio_bytes: bytes,
        provider: str,
        voice: str,
        model: str,
        speed: float,
        audio_format: str,
    ) -> CacheEntry | None:
        """Store a payload and its descriptor, then run an eviction pass.

        Args:
            key: Cache key from generate_key()
            audio_bytes: Audio payload
            provider: Provider that produced the audio
            voice: Voice used
            model: Model used
            speed: Speaking rate used
            audio_format: Format of the payload; decides the file extension

        Returns:
            The stored entry, or None if the store is disabled or the payload
            was not cacheable

        Raises:
            OSError: If writing to the cache directory fails
        """
        if not self.enabled:
            return None

        if not audio_bytes:
            logger.debug(f"Not caching empty payload for {key[:16]}")
            return None

        if len(audio_bytes) > self.policy.max_size_bytes:
            logger.info(
                f"Not caching {len(audio_bytes)} byte payload: larger than "
                f"max_size_bytes={self.policy.max_size_bytes}"
            )
            return None

        self._ensure_dirs()
        extension = extension_for_format(audio_format)
        previous = self._read_metadata_quietly(key)

        audio_path = self.audio_path(key, extension)
        atomic_write(audio_path, audio_bytes)

        metadata = CacheMetadata(
            provider=provider,
            voice=voice,
            model=model,
            speed=float(speed),
            format=audio_format,
            extension=extension,
            created_at=self._clock(),
            size_bytes=len(audio_bytes),
        )
        descriptor = {"key": key, **metadata.to_dict()}
        atomic_write(
            self.descriptor_path(key), json.dumps(descriptor, indent=2).encode("utf-8")
        )

        if previous is not None and previous.extension != extension:
            self.audio_path(key, previous.extension).unlink(missing_ok=True)

        logger.info(
            f"Cached {len(audio_bytes)} bytes as {audio_path.name} "
            f"({provider}/{voice or 'default'})"
        )

        self.evict(protect=key)
        return CacheEntry(key=key, audio_path=audio_path, metadata=metadata)

    def _read_metadata_quietly(self, key: str) -> CacheMetadata | None:
        try:
            return self._parse_descriptor(self.descriptor_path(key).read_bytes())
        except (OSError, CacheCorruptionError):
            return None

    # Eviction and maintenance

    def evict(
        self, policy: EvictionPolicy | None = None, protect: str | None = None
    ) -> int:
        """Remove entries until the policy's bounds hold.

        Expired entries go first, then the oldest by creation time. This
        ranks by write time, not last access, so a popular old phrase is
        evicted as early as one that was never reused.

        Concurrent evictions may pick the same victims; deleting a file that
        is already gone is a no-op.

        Args:
            policy: Bounds to enforce (defaults to the store's policy)
            protect: Key that must survive this pass (the entry just written)

        Returns:
            Number of entries removed
        """
        if not self.entries_dir.exists():
            return 0

        policy = policy or self.policy
        now = self._clock()
        removed = 0

        live: list[tuple[str, CacheMetadata]] = []
        for key, metadata in self._scan(remove_corrupt=True):
            if metadata is None:
                removed += 1
                continue
            if key != protect and (now - metadata.created_at) * 1000 > policy.max_age_ms:
                self._remove_entry(key, metadata.extension)
                removed += 1
                continue
            live.append((key, metadata))

        # Oldest first; the protected key sorts last so it is never a victim.
        live.sort(key=lambda item: (item[0] == protect, item[1].created_at))

        count = len(live)
        total_size = sum(metadata.size_bytes for _, metadata in live)
        for key, metadata in live:
            if count <= policy.max_entries and total_size <= policy.max_size_bytes:
                break
            if key == protect:
                break
            self._remove_entry(key, metadata.extension)
            count -= 1
            total_size -= metadata.size_bytes
            removed += 1

        self._sweep_stale_files(now)

        if removed:
            logger.info(
                f"Evicted {removed} cache entries "
                f"({count} entries, {total_size} bytes remain)"
            )
        return removed

    def _scan(
        self, remove_corrupt: bool = False
    ) -> Iterator[tuple[str, CacheMetadata | None]]:
        """Yield (key, metadata) for each descriptor on disk.

        Corrupt descriptors yield None metadata when remove_corrupt is set
        (after removing them) and are skipped otherwise.
        """
        try:
            descriptor_paths = sorted(self.entries_dir.glob("*.json"))
        except FileNotFoundError:
            return

        for descriptor_path in descriptor_paths:
            if descriptor_path.name.startswith(TEMP_PREFIX):
                continue
            key = descriptor_path.stem
            try:
                raw = descriptor_path.read_bytes()
            except FileNotFoundError:
                continue
            try:
                metadata = self._parse_descriptor(raw)
            except CacheCorruptionError as e:
                logger.warning(f"Skipping corrupt cache descriptor {key[:16]}: {e}")
                if remove_corrupt:
                    self._discard_descriptor(descriptor_path, raw)
                    yield key, None
                continue
            yield key, metadata

    def _remove_entry(self, key: str, extension: str) -> None:
        # Descriptor first: a reader then sees a plain miss, not an orphan.
        self.descriptor_path(key).unlink(missing_ok=True)
        self.audio_path(key, extension).unlink(missing_ok=True)

    def _sweep_stale_files(self, now: float) -> None:
        """Remove temp files and descriptor-less payloads left by dead writers."""
        for directory in (self.cache_dir, self.entries_dir, self.audio_dir):
            try:
                paths = list(directory.iterdir())
            except FileNotFoundError:
                continue
            for path in paths:
                if not path.is_file():
                    continue
                if not path.name.startswith(TEMP_PREFIX):
                    if directory is not self.audio_dir:
                        continue
                    if self.descriptor_path(path.stem).exists():
                        continue
                try:
                    if now - path.stat().st_mtime > STALE_FILE_SECONDS:
                        path.unlink(missing_ok=True)
                        logger.debug(f"Removed stale cache file {path.name}")
                except FileNotFoundError:
                    continue

    def clear(self) -> int:
        """Remove every entry, leftover temp file and the hit/miss counters.

        Returns:
            Number of entries (descriptors) removed
        """
        removed = 0
        for directory in (self.entries_dir, self.audio_dir):
            try:
                paths = list(directory.iterdir())
            except FileNotFoundError:
                continue
            for path in paths:
                if (
                    directory is self.entries_dir
                    and path.suffix == ".json"
                    and not path.name.startswith(TEMP_PREFIX)
                ):
                    removed += 1
                path.unlink(missing_ok=True)

        self.stats_path.unlink(missing_ok=True)
        logger.info(f"Cleared {removed} cache entries from {self.cache_dir}")
        return removed

    # Introspection

    def entries(self) -> list[CacheEntry]:
        """List readable entries, newest first. Corrupt descriptors are skipped."""
        found = [
            CacheEntry(
                key=key,
                audio_path=self.audio_path(key, metadata.extension),
                metadata=metadata,
            )
            for key, metadata in self._scan()
            if metadata is not None
        ]
        found.sort(key=lambda entry: entry.metadata.created_at, reverse=True)
        return found

    def get_stats(self) -> CacheStats:
        """Compute statistics from the descriptors and counters on disk."""
        if not self.enabled:
            return CacheStats(0, 0, 0, 0, None, None)

        entries = self.entries()
        hits, misses = self._read_counters()
        created = [entry.metadata.created_datetime for entry in entries]

        return CacheStats(
            entry_count=len(entries),
            total_size_bytes=sum(entry.metadata.size_bytes for entry in entries),
            hit_count=hits,
            miss_count=misses,
            oldest_entry_at=min(created) if created else None,
            newest_entry_at=max(created) if created else None,
        )

    def _read_counters(self) -> tuple[int, int]:
        try:
            data = json.loads(self.stats_path.read_text(encoding="utf-8"))
            return max(int(data["hits"]), 0), max(int(data["misses"]), 0)
        except FileNotFoundError:
            return 0, 0
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.debug(f"Ignoring unreadable cache counters: {e}")
            return 0, 0

    def _record_lookup(self, hit: bool) -> None:
        """Bump the on-disk hit or miss counter.

        Concurrent lookups may lose an increment; the counters are advisory.
        """
        hits, misses = self._read_counters()
        if hit:
            hits += 1
        else:
            misses += 1
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            atomic_write(
                self.stats_path,
                json.dumps({"hits": hits, "misses": misses}).encode("utf-8"),
            )
        except OSError as e:
            logger.debug(f"Failed to update cache counters: {e}")
