"""Recipe resolution with tiered fallback.

Resolution order for ``load_recipes`` (first non-empty tier wins):
1. Cache, if it is still valid (skipped on force refresh)
2. Remote repository; validated results are written back to the cache
3. Cache again, regardless of age
4. Bundled local recipes (when ``fallback_to_local`` is enabled)

Availability beats freshness: a network failure never surfaces as an error,
only as older data. The resolver never raises; with nothing found anywhere
it returns an empty collection.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..config import RecipeSourceConfig
from .cache import CacheStore
from .formats import FormatError, parse_content
from .local import LocalRecipeSource
from .remote import ConnectionReport, FetchError, RemoteFetcher
from .types import CachedFile, CacheInfo, Recipe, RecipeCollection, RecipeSummary, RecipeTier
from .validation import validate_recipe

logger = logging.getLogger(__name__)


def search_recipes(query: str, recipes: Mapping[str, Recipe | dict[str, Any]]) -> list[str]:
    """Keys of recipes whose text contains ``query`` (case-insensitive).

    Matches against name, description, category and a JSON rendering of the
    tech stack and tags. Results keep the collection's order; no ranking.
    """
    needle = query.lower()
    matches = []

    for key, recipe in recipes.items():
        data = recipe.to_dict() if isinstance(recipe, Recipe) else recipe
        searchable = " ".join(
            [
                str(data.get("name") or ""),
                str(data.get("description") or ""),
                str(data.get("category") or ""),
                json.dumps(data.get("techStack") or {}, ensure_ascii=False),
                json.dumps(data.get("tags") or [], ensure_ascii=False),
            ]
        ).lower()
        if needle in searchable:
            matches.append(key)

    return matches


def _content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class RecipeResolver:
    """Loads recipes from cache, remote repository or bundled files.

    Collaborators default to ones built from ``config``; tests and callers
    may pass their own.

    Usage:
        resolver = RecipeResolver(RecipeSourceConfig.from_env())
        recipes = await resolver.load_recipes()
        keys = resolver.search("react", recipes)
    """

    def __init__(
        self,
        config: RecipeSourceConfig | None = None,
        *,
        cache: CacheStore | None = None,
        fetcher: RemoteFetcher | None = None,
        local: LocalRecipeSource | None = None,
    ) -> None:
        self._config = config or RecipeSourceConfig()
        self._cache = cache or CacheStore(self._config.cache_root)
        self._fetcher = fetcher or RemoteFetcher(self._config)
        self._local = local or LocalRecipeSource()
        self.last_tier = RecipeTier.NONE

    @property
    def config(self) -> RecipeSourceConfig:
        return self._config

    @property
    def cache(self) -> CacheStore:
        return self._cache

    def update_config(self, **changes: Any) -> RecipeSourceConfig:
        """Apply config changes and return the new effective config.

        The cache store and fetcher are rebuilt so the next call uses the new
        endpoints and cache root.
        """
        self._config = self._config.update(**changes)
        self._cache = CacheStore(self._config.cache_root)
        self._fetcher = RemoteFetcher(self._config)
        return self._config

    # =========================================================================
    # Resolution
    # =========================================================================

    async def load_recipes(self, force_refresh: bool = False) -> RecipeCollection:
        """Resolve the current recipe collection.

        Args:
            force_refresh: Skip the valid-cache shortcut and go to the remote first

        Returns:
            Mapping of recipe key to Recipe; empty if no tier had any
        """
        if not force_refresh and self._cache.is_valid(self._config.cache_expiration_ms):
            recipes = self._accept(self._cache.read_all(), "cache")
            if recipes:
                logger.info(f"Loaded {len(recipes)} recipe(s) from cache")
                self.last_tier = RecipeTier.CACHE
                return recipes

        recipes = await self._fetch_and_cache_remote()
        if recipes:
            self.last_tier = RecipeTier.REMOTE
            return recipes

        logger.info("Falling back to cached recipes")
        recipes = self._accept(self._cache.read_all(), "cache")
        if recipes:
            self.last_tier = RecipeTier.STALE_CACHE
            return recipes

        if self._config.fallback_to_local:
            logger.info("Falling back to local recipes")
            recipes = self._accept(self._local.read_all(), "local")
            if recipes:
                self.last_tier = RecipeTier.LOCAL
                return recipes

        logger.warning("No recipes could be loaded from any source")
        self.last_tier = RecipeTier.NONE
        return {}

    async def refresh(self) -> RecipeCollection:
        """Force a refresh from the remote repository."""
        return await self.load_recipes(force_refresh=True)

    async def _fetch_and_cache_remote(self) -> RecipeCollection:
        """Download, validate and cache every remote recipe file.

        One file failing (network, format, validation) only drops that file.
        The cache is only rewritten when at least one recipe validated, so an
        unusable refresh leaves older cached data in place.
        """
        try:
            listing = await self._fetcher.list_recipe_files()
        except Exception as e:
            logger.warning(f"Could not list remote recipes: {e}")
            return {}

        if not listing:
            return {}

        logger.info(f"Fetching {len(listing)} recipe(s) from remote repository")
        recipes: RecipeCollection = {}
        to_cache: list[CachedFile] = []

        for file_info in listing:
            try:
                content = await self._fetcher.download_recipe_file(file_info.name)
                data = parse_content(content, file_info.name)
            except (FetchError, FormatError) as e:
                logger.warning(f"Could not load recipe {file_info.name}: {e}")
                continue
            except Exception as e:
                logger.warning(f"Unexpected error loading recipe {file_info.name}: {e}")
                continue

            recipe = self._to_recipe(data, file_info.name)
            if recipe is None:
                continue

            recipes[Path(file_info.name).stem] = recipe
            to_cache.append(
                CachedFile(
                    name=file_info.name,
                    content=content,
                    content_hash=file_info.content_hash or _content_hash(content),
                )
            )

        if to_cache:
            self._cache.write_many(to_cache)
            logger.info(f"Loaded {len(recipes)} recipe(s) from remote repository")

        return recipes

    def _accept(self, raw: Mapping[str, Any], tier: str) -> RecipeCollection:
        """Apply the validation gate to a tier's raw parsed files."""
        recipes: RecipeCollection = {}
        for key, data in raw.items():
            recipe = self._to_recipe(data, f"{tier}:{key}")
            if recipe is not None:
                recipes[key] = recipe
        return recipes

    @staticmethod
    def _to_recipe(data: Any, label: str) -> Recipe | None:
        if not validate_recipe(data):
            logger.warning(f"Invalid recipe structure in {label}, skipping")
            return None
        try:
            return Recipe.from_dict(data)
        except ValidationError as e:
            logger.warning(f"Invalid recipe field types in {label}, skipping: {e}")
            return None

    # =========================================================================
    # Queries
    # =========================================================================

    def search(self, query: str, recipes: Mapping[str, Recipe | dict[str, Any]]) -> list[str]:
        return search_recipes(query, recipes)

    async def get_recipe(self, key: str) -> Recipe | None:
        recipes = await self.load_recipes()
        return recipes.get(key)

    async def list_recipes(self) -> list[RecipeSummary]:
        recipes = await self.load_recipes()
        return [
            RecipeSummary(
                key=key,
                name=recipe.name,
                description=recipe.description,
                category=recipe.category,
                tags=list(recipe.tags),
            )
            for key, recipe in recipes.items()
        ]

    # =========================================================================
    # Cache and diagnostics
    # =========================================================================

    def get_cache_info(self) -> CacheInfo:
        return self._cache.info(self._config.cache_expiration_ms)

    def clear_cache(self) -> bool:
        return self._cache.clear()

    async def test_connection(self) -> ConnectionReport:
        return await self._fetcher.test_connection()
