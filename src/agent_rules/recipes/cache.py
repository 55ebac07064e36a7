"""On-disk cache of downloaded recipe files.

Storage location: ~/.agent-rules-cache/ (one per user, shared by projects)
Files: raw recipe files as downloaded, plus cache-metadata.json

Every public method degrades to "absent", "invalid" or ``False`` on
filesystem errors instead of raising; callers fall through to the next
source.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .formats import SUPPORTED_EXTENSIONS, read_recipe_directory
from .types import CachedFile, CacheInfo, CacheMetadata, CacheUsage, RecipeFileInfo

logger = logging.getLogger(__name__)

METADATA_FILENAME = "cache-metadata.json"
SUBDIR_METADATA_FILENAME = "metadata.json"


class CacheIOError(OSError):
    """Filesystem failure while reading or writing the cache."""


def now_ms() -> int:
    return int(time.time() * 1000)


def _parse_timestamp_ms(value: Any) -> int:
    """Accept epoch milliseconds or an ISO-8601 string."""
    if isinstance(value, bool):
        raise TypeError("timestamp must not be a boolean")
    if isinstance(value, int | float):
        return int(value)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return int(parsed.timestamp() * 1000)
    raise TypeError(f"Unsupported timestamp: {value!r}")


class CacheStore:
    """Cache of recipe files plus refresh metadata.

    Contract:
    - Inputs: raw file content (already serialized), expiration windows
    - Outputs: parsed recipe mappings keyed by file stem, validity flags
    - Side Effects: writes under ``root`` only
    - Errors: none raised; failures are logged and reported as absent data
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def metadata_path(self) -> Path:
        return self.root / METADATA_FILENAME

    def ensure_root(self) -> bool:
        """Create the cache root if needed. Returns False if that failed."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            logger.warning(f"Could not create cache directory {self.root}: {e}")
            return False

    # =========================================================================
    # Metadata
    # =========================================================================

    def read_metadata(self) -> CacheMetadata | None:
        """Load metadata, or None if it is missing or corrupt."""
        try:
            data = json.loads(self.metadata_path.read_text(encoding="utf-8"))
            return CacheMetadata.from_dict(data)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.warning(f"Ignoring corrupt cache metadata: {e}")
            return None

    def write_metadata(self, file_list: list[RecipeFileInfo]) -> bool:
        """Overwrite metadata from the full current file list.

        The file is written to a temporary sibling and moved into place so a
        reader never sees a half-written document.
        """
        metadata = CacheMetadata(last_update=now_ms(), recipe_files=list(file_list))
        try:
            self._write_atomic(self.metadata_path, json.dumps(metadata.to_dict(), indent=2))
            return True
        except CacheIOError as e:
            logger.warning(f"Could not update cache metadata: {e}")
            return False

    def is_valid(self, expiration_ms: int) -> bool:
        """True if metadata exists and is younger than ``expiration_ms``."""
        metadata = self.read_metadata()
        if metadata is None:
            return False
        return now_ms() - metadata.last_update < expiration_ms

    # =========================================================================
    # Recipe files
    # =========================================================================

    def read_all(self) -> dict[str, Any]:
        """Parse every cached recipe file, skipping ones that fail."""
        if not self.root.is_dir():
            return {}
        try:
            return read_recipe_directory(
                self.root, exclude=(METADATA_FILENAME,), label="cached recipe"
            )
        except OSError as e:
            logger.warning(f"Could not read recipe cache {self.root}: {e}")
            return {}

    def write_many(self, files: list[CachedFile]) -> bool:
        """Replace the cached recipe set with ``files`` and refresh metadata.

        Content is written verbatim. Recipe files from an earlier refresh that
        are not part of this batch are removed so the cache mirrors the batch.
        """
        if not self.ensure_root():
            return False

        keep = {f.name for f in files}
        written: list[RecipeFileInfo] = []

        for stale in self._recipe_files():
            if stale.name not in keep:
                try:
                    stale.unlink()
                except OSError as e:
                    logger.warning(f"Could not remove stale cache entry {stale.name}: {e}")

        for cached in files:
            if Path(cached.name).name != cached.name:
                logger.warning(f"Refusing to cache recipe outside the cache root: {cached.name!r}")
                continue
            try:
                self._write_atomic(self.root / cached.name, cached.content)
                written.append(RecipeFileInfo(name=cached.name, content_hash=cached.content_hash))
            except CacheIOError as e:
                logger.warning(f"Could not cache recipe {cached.name}: {e}")

        logger.debug(f"Cached {len(written)} recipe file(s) in {self.root}")
        return self.write_metadata(written)

    def clear(self) -> bool:
        """Delete everything under the cache root.

        Returns:
            True if the cache is now empty (including when it never existed)
        """
        if not self.root.exists():
            return True
        try:
            for entry in self.root.iterdir():
                if entry.is_dir() and not entry.is_symlink():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
            logger.info(f"Recipe cache cleared: {self.root}")
            return True
        except OSError as e:
            logger.warning(f"Could not clear recipe cache: {e}")
            return False

    def info(self, expiration_ms: int) -> CacheInfo:
        metadata = self.read_metadata()
        if metadata is None:
            return CacheInfo(exists=False, cache_dir=str(self.root))

        age_ms = now_ms() - metadata.last_update
        return CacheInfo(
            exists=True,
            cache_dir=str(self.root),
            last_update=datetime.fromtimestamp(metadata.last_update / 1000, tz=UTC),
            age_ms=age_ms,
            is_valid=age_ms < expiration_ms,
            recipe_count=len(metadata.recipe_files),
        )

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def usage_report(self) -> CacheUsage:
        """Size of each top-level entry under the root, recursively.

        Entries that cannot be read are left out of the report.
        """
        usage = CacheUsage()
        try:
            entries = list(self.root.iterdir())
        except OSError:
            return usage

        for entry in entries:
            try:
                size = _tree_size(entry) if entry.is_dir() else entry.stat().st_size
            except OSError as e:
                logger.debug(f"Skipping {entry} in usage report: {e}")
                continue
            usage.per_entry_size_bytes[entry.name] = size
            usage.total_size_bytes += size

        return usage

    def prune_older_than(self, retention_ms: int) -> list[str]:
        """Delete cache subdirectories whose recorded update is too old.

        Only subdirectories with a readable ``metadata.json`` are considered;
        anything with missing or unreadable metadata is left alone.

        Returns:
            Names of the removed directories
        """
        cutoff = now_ms() - retention_ms
        removed: list[str] = []

        try:
            entries = [e for e in self.root.iterdir() if e.is_dir()]
        except OSError:
            return removed

        for entry in entries:
            try:
                data = json.loads((entry / SUBDIR_METADATA_FILENAME).read_text(encoding="utf-8"))
                updated = data.get("lastUpdated", data.get("lastUpdate"))
                last_update = _parse_timestamp_ms(updated)
            except (OSError, ValueError, TypeError, AttributeError):
                continue

            if last_update < cutoff:
                try:
                    shutil.rmtree(entry)
                    removed.append(entry.name)
                except OSError as e:
                    logger.warning(f"Could not prune cache directory {entry.name}: {e}")

        if removed:
            logger.info(f"Pruned {len(removed)} old cache director{'y' if len(removed) == 1 else 'ies'}")
        return removed

    # =========================================================================
    # Internals
    # =========================================================================

    def _recipe_files(self) -> list[Path]:
        try:
            return [
                p
                for p in self.root.iterdir()
                if p.is_file()
                and p.suffix.lower() in SUPPORTED_EXTENSIONS
                and p.name != METADATA_FILENAME
            ]
        except OSError:
            return []

    def _write_atomic(self, path: Path, content: str) -> None:
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise CacheIOError(f"Failed to write {path.name}: {e}") from e


def _tree_size(directory: Path) -> int:
    """Recursive byte count; unreadable parts count as zero."""
    total = 0
    try:
        entries = list(directory.iterdir())
    except OSError:
        return 0
    for entry in entries:
        try:
            if entry.is_dir() and not entry.is_symlink():
                total += _tree_size(entry)
            else:
                total += entry.stat().st_size
        except OSError:
            continue
    return total


def format_bytes(size: int) -> str:
    """Human readable byte count (e.g. ``1.5 KB``)."""
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"
