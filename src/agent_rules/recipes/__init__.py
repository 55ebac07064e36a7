"""Recipe acquisition, caching and search.

Public API:
    RecipeResolver - Tiered cache/remote/local resolution
    CacheStore - On-disk recipe cache
    RemoteFetcher - Remote repository client and diagnostics
    LocalRecipeSource - Bundled recipes
    Recipe - Recipe model
    search_recipes - Substring search over a collection
    validate_recipe - Required-field check
"""

from __future__ import annotations

from .cache import CacheStore
from .formats import FormatError, detect_format_from_content, parse_content, serialize_content
from .local import LocalRecipeSource
from .remote import FetchError, FetchTimeoutError, RemoteFetcher
from .resolver import RecipeResolver, search_recipes
from .types import CacheInfo, Recipe, RecipeCollection, RecipeSummary, RecipeTier
from .validation import check_recipe, validate_recipe

__all__ = [
    "CacheInfo",
    "CacheStore",
    "FetchError",
    "FetchTimeoutError",
    "FormatError",
    "LocalRecipeSource",
    "Recipe",
    "RecipeCollection",
    "RecipeResolver",
    "RecipeSummary",
    "RecipeTier",
    "RemoteFetcher",
    "check_recipe",
    "detect_format_from_content",
    "parse_content",
    "search_recipes",
    "serialize_content",
    "validate_recipe",
]
