"""Persistent LRU cache for rendered images.

Each entry is one JSON file in the cache directory, named after the key.
Writes go to a temporary file in the same directory and are published with
os.replace, so concurrent readers see either the old entry or the new one.
The file's mtime is the entry's last-used time.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from leftysay.errors import CacheUnavailable
from leftysay.models import ColorMode, ImageBlock
from leftysay.terminal_graphics import ResolvedFormat

logger = logging.getLogger(__name__)

ENTRY_SUFFIX = ".json"
TEMP_PREFIX = ".tmp-"
CACHE_FORMAT_VERSION = 1
_READ_CHUNK = 1024 * 1024
# Temp files older than this belong to a writer that died mid-write
STALE_TEMP_SECONDS = 60


def hash_file(path: Path) -> str:
    """SHA-256 of a file's contents."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(_READ_CHUNK):
            digest.update(chunk)
    return digest.hexdigest()


def fingerprint(
    image_path: Path,
    max_cells: tuple[int, int],
    resolved_format: ResolvedFormat,
    colors: ColorMode,
) -> str:
    """Cache key for a render.

    Derived from the image contents rather than its path or mtime, so a file
    replaced in place never hits a stale entry.

    Raises:
        OSError: The image can't be read
    """
    width, height = max_cells
    key_data = ":".join(
        [
            f"v{CACHE_FORMAT_VERSION}",
            hash_file(image_path),
            f"{width}x{height}",
            resolved_format.value,
            colors.value,
        ]
    )
    return hashlib.sha256(key_data.encode()).hexdigest()


@dataclass
class CacheEntry:
    """A stored render as seen on disk."""

    key: str
    path: Path
    size_bytes: int
    last_used: float


class RenderCache:
    """Size-bounded, least-recently-used store of ImageBlocks."""

    def __init__(self, directory: Path, max_bytes: int, enabled: bool = True) -> None:
        self.directory = directory
        self.max_bytes = max_bytes
        self.enabled = enabled

    def _entry_path(self, key: str) -> Path:
        return self.directory / f"{key}{ENTRY_SUFFIX}"

    @staticmethod
    def _serialize(block: ImageBlock) -> bytes:
        payload = {
            "version": CACHE_FORMAT_VERSION,
            "width": block.width,
            "lines": block.lines,
        }
        return json.dumps(payload).encode("utf-8")

    @staticmethod
    def _deserialize(data: bytes) -> ImageBlock:
        payload = json.loads(data.decode("utf-8"))
        if payload.get("version") != CACHE_FORMAT_VERSION:
            raise ValueError(f"unsupported cache entry version {payload.get('version')!r}")
        lines = payload["lines"]
        if not isinstance(lines, list) or not all(isinstance(line, str) for line in lines):
            raise ValueError("cache entry lines must be a list of strings")
        return ImageBlock(lines=lines, width=int(payload["width"]))

    def load(self, key: str) -> ImageBlock | None:
        """Read an entry and mark it as recently used.

        Returns:
            The cached block, or None on a miss

        Raises:
            CacheUnavailable: The entry exists but can't be read
        """
        path = self._entry_path(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheUnavailable(f"cannot read cache entry {path}: {e}") from e

        try:
            block = self._deserialize(data)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Discarding corrupt cache entry %s: %s", path.name, e)
            self._discard(path)
            return None

        try:
            os.utime(path)
        except OSError as e:
            # Entry stays readable; it just ages out sooner
            logger.debug("Could not touch cache entry %s: %s", path.name, e)
        return block

    def entries(self) -> list[CacheEntry]:
        """All stored entries, least recently used first."""
        try:
            paths = list(self.directory.glob(f"*{ENTRY_SUFFIX}"))
        except OSError as e:
            raise CacheUnavailable(f"cannot list cache directory {self.directory}: {e}") from e

        found = []
        for path in paths:
            try:
                stat = path.stat()
            except FileNotFoundError:
                # Evicted by another process while we were listing
                continue
            except OSError as e:
                raise CacheUnavailable(f"cannot stat cache entry {path}: {e}") from e
            found.append(
                CacheEntry(
                    key=path.stem,
                    path=path,
                    size_bytes=stat.st_size,
                    last_used=stat.st_mtime,
                )
            )
        found.sort(key=lambda entry: (entry.last_used, entry.key))
        return found

    def total_bytes(self) -> int:
        """Combined size of all stored entries."""
        return sum(entry.size_bytes for entry in self.entries())

    def store(self, key: str, block: ImageBlock, max_bytes: int | None = None) -> bool:
        """Store an entry, evicting least recently used ones to make room.

        Args:
            key: Cache key
            block: Rendered image to store
            max_bytes: Budget for this write; defaults to the cache's own

        Returns:
            True if the entry was written, False if it can never fit

        Raises:
            CacheUnavailable: The cache directory can't be written
        """
        budget = self.max_bytes if max_bytes is None else max_bytes
        data = self._serialize(block)
        if len(data) > budget:
            logger.debug("Render of %d bytes exceeds cache budget %d", len(data), budget)
            return False

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheUnavailable(f"cannot create cache directory {self.directory}: {e}") from e

        target = self._entry_path(key)
        self._evict_for(len(data), budget, exclude=target)
        self._atomic_write(target, data)
        return True

    def _evict_for(self, incoming: int, budget: int, exclude: Path) -> None:
        entries = [entry for entry in self.entries() if entry.path != exclude]
        total = sum(entry.size_bytes for entry in entries)
        for entry in entries:
            if total + incoming <= budget:
                break
            logger.debug("Evicting cache entry %s (%d bytes)", entry.key, entry.size_bytes)
            self._discard(entry.path)
            total -= entry.size_bytes

    def _atomic_write(self, target: Path, data: bytes) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=self.directory)
        except OSError as e:
            raise CacheUnavailable(f"cannot write to cache directory {self.directory}: {e}") from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except OSError as e:
            self._discard(tmp_path)
            raise CacheUnavailable(f"cannot write cache entry {target}: {e}") from e

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug("Could not remove %s: %s", path, e)

    def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], ImageBlock],
        max_bytes: int | None = None,
    ) -> ImageBlock:
        """Return the cached block for ``key`` or compute and store it.

        Storage problems never prevent rendering: they are logged and the
        block is computed without caching. Errors from ``compute_fn``
        propagate unchanged. ``max_bytes`` overrides the budget for the store.
        """
        if not self.enabled:
            return compute_fn()

        try:
            cached = self.load(key)
        except CacheUnavailable as e:
            logger.warning("Render cache unavailable, rendering without it: %s", e)
            return compute_fn()

        if cached is not None:
            logger.debug("Render cache hit for %s", key[:12])
            return cached

        logger.debug("Render cache miss for %s", key[:12])
        block = compute_fn()
        try:
            self.store(key, block, max_bytes)
        except CacheUnavailable as e:
            logger.warning("Could not store render in cache: %s", e)
        return block

    def clear(self) -> int:
        """Remove all entries and leftover temporary files.

        Returns:
            Number of entries removed
        """
        if not self.directory.exists():
            return 0
        removed = 0
        for entry in self.entries():
            self._discard(entry.path)
            removed += 1
        for tmp_path in self.directory.glob(f"{TEMP_PREFIX}*"):
            try:
                age = time.time() - tmp_path.stat().st_mtime
            except FileNotFoundError:
                continue
            if age > STALE_TEMP_SECONDS:
                self._discard(tmp_path)
        return removed
