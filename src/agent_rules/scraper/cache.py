"""Aggregate cache for scraped recipes.

Storage location: ~/.agent-rules-windsurf/recipes.json
Format: {"timestamp": ISO-8601, "recipes": {key: recipe}}

Kept apart from the main recipe cache: different directory, different
expiration, no shared validation logic.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from ..recipes.types import CacheInfo, Recipe, RecipeCollection
from ..recipes.validation import validate_recipe

logger = logging.getLogger(__name__)

CACHE_FILENAME = "recipes.json"


@dataclass
class ScrapeSnapshot:
    timestamp: datetime
    recipes: RecipeCollection

    def age_ms(self, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        return int((now - self.timestamp).total_seconds() * 1000)


class ScrapeCache:
    """Single-file cache of the last scrape."""

    def __init__(self, directory: Path, expiration_ms: int) -> None:
        self.directory = directory
        self.expiration_ms = expiration_ms

    @property
    def path(self) -> Path:
        return self.directory / CACHE_FILENAME

    def read(self) -> ScrapeSnapshot | None:
        """Load the cached aggregate regardless of age, or None if unusable."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            timestamp = datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))
            raw_recipes = dict(data["recipes"])
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable scrape cache {self.path}: {e}")
            return None

        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)

        recipes: RecipeCollection = {}
        for key, item in raw_recipes.items():
            if not validate_recipe(item):
                logger.debug(f"Skipping cached scraped recipe {key}: missing required fields")
                continue
            try:
                recipes[key] = Recipe.from_dict(item)
            except ValidationError as e:
                logger.debug(f"Skipping cached scraped recipe {key}: {e}")

        return ScrapeSnapshot(timestamp=timestamp, recipes=recipes)

    def is_fresh(self, snapshot: ScrapeSnapshot) -> bool:
        return snapshot.age_ms() < self.expiration_ms

    def write(self, recipes: RecipeCollection) -> bool:
        payload = {
            "timestamp": datetime.now(UTC).isoformat(),
            "recipes": {key: recipe.to_dict() for key, recipe in recipes.items()},
        }
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            return True
        except OSError as e:
            logger.warning(f"Could not write scrape cache: {e}")
            return False

    def delete(self) -> None:
        """Remove the aggregate file so the next read misses."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete scrape cache: {e}")

    def clear(self) -> bool:
        try:
            shutil.rmtree(self.directory)
            return True
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning(f"Could not clear scrape cache: {e}")
            return False

    def info(self) -> CacheInfo:
        snapshot = self.read()
        if snapshot is None:
            return CacheInfo(exists=False, cache_dir=str(self.directory))
        age_ms = snapshot.age_ms()
        return CacheInfo(
            exists=True,
            cache_dir=str(self.directory),
            last_update=snapshot.timestamp,
            age_ms=age_ms,
            is_valid=age_ms < self.expiration_ms,
            recipe_count=len(snapshot.recipes),
        )
