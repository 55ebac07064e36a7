"""Scraped recipes from the public rules directory page.

A secondary pipeline, independent from ``RecipeResolver``:
fetch page -> extract rule blocks -> classify -> cache for 7 days.

When the live fetch fails the last cached aggregate is returned even if it
has expired; only with no cache at all is the result empty.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import httpx

from ..config import REQUEST_TIMEOUT_SECONDS, ScraperConfig
from ..recipes.remote import FetchError, FetchTimeoutError
from ..recipes.types import CacheInfo, Recipe, RecipeCollection, RecipeSummary
from ..recipes.validation import validate_recipe
from .cache import ScrapeCache
from .classify import classify
from .extract import extract_rule_blocks

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; Agent-Rules-Generator-Scraper/1.0)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

KEY_PREFIX = "windsurf"


class DirectoryScraper:
    """Fetches, classifies and caches recipes scraped from the directory page.

    Usage:
        scraper = DirectoryScraper(ScraperConfig.from_env())
        recipes = await scraper.fetch_recipes()
    """

    def __init__(
        self,
        config: ScraperConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        cache: ScrapeCache | None = None,
    ) -> None:
        self.config = config or ScraperConfig()
        self._transport = transport
        self.cache = cache or ScrapeCache(self.config.cache_dir, self.config.cache_expiration_ms)

    async def fetch_page(self, url: str | None = None) -> str:
        """GET the directory page.

        Raises:
            FetchError: On timeout, transport failure or non-2xx
        """
        url = url or self.config.page_url
        try:
            async with httpx.AsyncClient(
                headers=BROWSER_HEADERS,
                timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS),
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"Timeout fetching {url}", url=url) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(f"Request to {url} failed: {e}", url=url) from e

        if not response.is_success:
            raise FetchError(
                f"HTTP {response.status_code} from {url}", url=url, status_code=response.status_code
            )
        return response.text

    async def scrape(self) -> RecipeCollection:
        """Fetch and classify the page without touching the cache.

        Raises:
            FetchError: If the page cannot be fetched
        """
        page = await self.fetch_page()
        scraped_at = datetime.now(UTC)
        blocks = extract_rule_blocks(page)
        logger.info(f"Found {len(blocks)} rule set(s) on {self.config.page_url}")

        recipes: RecipeCollection = {}
        for block in blocks:
            recipe = classify(block, url=self.config.page_url, scraped_at=scraped_at)
            if not validate_recipe(recipe.to_dict()):
                logger.warning(
                    f"Dropping scraped rule set {block.index} ({block.title}): "
                    "no recognised tech stack"
                )
                continue
            recipes[f"{KEY_PREFIX}-{block.index}"] = recipe
        return recipes

    async def fetch_recipes(self) -> RecipeCollection:
        """Cached recipes if fresh, else a live scrape, else stale cache."""
        snapshot = self.cache.read()
        if snapshot is not None and self.cache.is_fresh(snapshot):
            return snapshot.recipes

        try:
            recipes = await self.scrape()
        except FetchError as e:
            logger.warning(f"Failed to fetch directory recipes: {e}")
            return snapshot.recipes if snapshot is not None else {}

        if not recipes and snapshot is not None and snapshot.recipes:
            logger.warning("Directory page had no rule sets; keeping cached recipes")
            return snapshot.recipes

        self.cache.write(recipes)
        return recipes

    async def refresh(self) -> RecipeCollection:
        """Drop the cached aggregate and scrape again."""
        self.cache.delete()
        return await self.fetch_recipes()

    async def get_recipe(self, key: str) -> Recipe | None:
        recipes = await self.fetch_recipes()
        return recipes.get(key)

    async def list_recipes(self) -> list[RecipeSummary]:
        recipes = await self.fetch_recipes()
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

    async def search(self, query: str, recipes: RecipeCollection | None = None) -> list[str]:
        """Keys whose name, description, category, stack or rule text match.

        Searches ``recipes`` when given, otherwise the current collection.
        """
        needle = query.lower()
        if recipes is None:
            recipes = await self.fetch_recipes()
        matches = []
        for key, recipe in recipes.items():
            searchable = " ".join(
                [
                    recipe.name,
                    recipe.description,
                    recipe.category,
                    " ".join(f"{k} {v}" for k, v in recipe.tech_stack.items()),
                    recipe.windsurf_rules or "",
                ]
            ).lower()
            if needle in searchable:
                matches.append(key)
        return matches

    def get_cache_info(self) -> CacheInfo:
        return self.cache.info()

    def clear_cache(self) -> bool:
        return self.cache.clear()
