"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from agent_rules.config import RecipeSourceConfig
from agent_rules.recipes.cache import CacheStore


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def make_recipe() -> Callable[..., dict[str, Any]]:
    """Factory for valid recipe mappings in on-disk (camelCase) form."""

    def factory(name: str = "React App", **overrides: Any) -> dict[str, Any]:
        recipe: dict[str, Any] = {
            "name": name,
            "description": f"{name} starter recipe",
            "category": "Web Application",
            "techStack": {"frontend": "React", "language": "TypeScript"},
            "tags": ["react", "typescript"],
        }
        recipe.update(overrides)
        return recipe

    return factory


@pytest.fixture
def source_config(tmp_path: Path) -> RecipeSourceConfig:
    """Config pointing at a temporary cache and a fake remote host."""
    return RecipeSourceConfig(
        listing_url="https://api.example.test/repos/acme/recipes/contents/recipes",
        raw_content_base_url="https://raw.example.test/acme/recipes/main/recipes",
        rate_limit_url="https://api.example.test/rate_limit",
        cache_root=tmp_path / "cache",
    )


@pytest.fixture
def cache_store(source_config: RecipeSourceConfig) -> CacheStore:
    return CacheStore(source_config.cache_root)


@pytest.fixture
def seed_cache(cache_store: CacheStore) -> Callable[[str, Any], Path]:
    """Write a raw recipe file straight into the cache directory."""

    def seed(filename: str, recipe: Any) -> Path:
        cache_store.ensure_root()
        path = cache_store.root / filename
        path.write_text(json.dumps(recipe), encoding="utf-8")
        return path

    return seed
