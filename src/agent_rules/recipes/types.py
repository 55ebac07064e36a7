"""Shared types for recipe acquisition and caching."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

REQUIRED_FIELDS = ("name", "description", "category", "techStack")


class RecipeTier(Enum):
    """Where a resolved recipe collection came from."""

    CACHE = "cache"
    REMOTE = "remote"
    STALE_CACHE = "stale-cache"
    LOCAL = "local"
    NONE = "none"


class RecipeSource(BaseModel):
    """Provenance block attached to scraped recipes."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    url: str
    scraped_at: str = Field(alias="scrapedAt")
    index: int


class Recipe(BaseModel):
    """A named technology-stack preset.

    Field names follow Python conventions; aliases keep the camelCase keys
    used in recipe files. Unknown keys (version, author, ...) are kept.
    Scalar text fields and tags are coerced to strings; only a non-mapping
    techStack fails validation.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    description: str
    category: str
    tech_stack: dict[str, Any] = Field(alias="techStack")
    tags: list[str] = Field(default_factory=list)
    windsurf_rules: str | None = Field(default=None, alias="windsurfRules")
    agent_rules: str | None = Field(default=None, alias="agentRules")
    # Malformed provenance is kept as-is rather than rejecting the recipe.
    source: RecipeSource | Any = Field(default=None, union_mode="left_to_right")

    @field_validator("name", "description", "category", "windsurf_rules", "agent_rules", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _as_tag_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, list | tuple):
            return [str(tag) for tag in value]
        return [str(value)]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Recipe:
        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk (camelCase) form."""
        return self.model_dump(by_alias=True, exclude_none=True)


RecipeCollection = dict[str, Recipe]


@dataclass
class RecipeFileInfo:
    """A recipe file as listed by the remote host."""

    name: str
    content_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "contentHash": self.content_hash}


@dataclass
class CachedFile:
    """Raw recipe file content ready to be written to the cache."""

    name: str
    content: str
    content_hash: str | None = None


@dataclass
class CacheMetadata:
    """Contents of the cache metadata file.

    Attributes:
        last_update: Epoch milliseconds of the last successful refresh
        recipe_files: Files written by that refresh
    """

    last_update: int
    recipe_files: list[RecipeFileInfo] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastUpdate": self.last_update,
            "recipeFiles": [f.to_dict() for f in self.recipe_files],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheMetadata:
        """Parse metadata, raising ValueError/TypeError/KeyError on bad shapes."""
        last_update = data["lastUpdate"]
        if isinstance(last_update, bool) or not isinstance(last_update, int | float):
            raise TypeError(f"lastUpdate must be a number, got {type(last_update).__name__}")
        files = [
            RecipeFileInfo(name=str(entry["name"]), content_hash=entry.get("contentHash"))
            for entry in data.get("recipeFiles", [])
        ]
        return cls(last_update=int(last_update), recipe_files=files)


@dataclass
class CacheInfo:
    """Status of a cache for display and health checks."""

    exists: bool
    cache_dir: str
    last_update: datetime | None = None
    age_ms: int | None = None
    is_valid: bool = False
    recipe_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "exists": self.exists,
            "cache_dir": self.cache_dir,
            "last_update": self.last_update.isoformat() if self.last_update else None,
            "age_ms": self.age_ms,
            "is_valid": self.is_valid,
            "recipe_count": self.recipe_count,
        }


@dataclass
class CacheUsage:
    """Disk usage of a cache tree, in bytes."""

    total_size_bytes: int = 0
    per_entry_size_bytes: dict[str, int] = field(default_factory=dict)


@dataclass
class RecipeSummary:
    """Short listing entry for a recipe."""

    key: str
    name: str
    description: str
    category: str
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "tags": self.tags,
        }
