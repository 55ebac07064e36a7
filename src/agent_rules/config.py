"""Configuration values for recipe sources and the directory scraper.

Configs are immutable. Callers that want different settings ask for a new
value via ``update()`` and hand it to the component that needs it, so the
resolver and any settings screen never share mutable process state.

Environment overrides:
    AGENT_RULES_CACHE_DIR      - main recipe cache root
    AGENT_RULES_REPOSITORY     - remote repository as owner/repo
    AGENT_RULES_CACHE_HOURS    - main cache expiration in hours
    AGENT_RULES_WINDSURF_DIR   - scrape cache directory
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_REPOSITORY = "ubuntupunk/agent-rules-recipes"
DEFAULT_BRANCH = "main"
DEFAULT_RECIPES_PATH = "recipes"

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

DEFAULT_CACHE_EXPIRATION_MS = 24 * HOUR_MS
DEFAULT_SCRAPE_EXPIRATION_MS = 7 * DAY_MS

DEFAULT_RATE_LIMIT_URL = "https://api.github.com/rate_limit"
DEFAULT_DIRECTORY_URL = "https://windsurf.com/editor/directory"

REQUEST_TIMEOUT_SECONDS = 10.0


def listing_url_for(repository: str, path: str = DEFAULT_RECIPES_PATH) -> str:
    """Build the contents-API listing URL for a repository."""
    return f"https://api.github.com/repos/{repository}/contents/{path}"


def raw_url_for(
    repository: str, branch: str = DEFAULT_BRANCH, path: str = DEFAULT_RECIPES_PATH
) -> str:
    """Build the raw-content base URL for a repository."""
    return f"https://raw.githubusercontent.com/{repository}/{branch}/{path}"


def default_cache_root() -> Path:
    """Per-user cache root, shared by every project on the machine."""
    return Path.home() / ".agent-rules-cache"


def default_scrape_dir() -> Path:
    return Path.home() / ".agent-rules-windsurf"


@dataclass(frozen=True)
class RecipeSourceConfig:
    """Where recipes come from and how long cached copies stay fresh.

    Attributes:
        listing_url: Directory-listing endpoint for recipe files
        raw_content_base_url: Base URL that raw recipe files are served under
        rate_limit_url: Endpoint reporting the remote host's rate limit
        cache_root: Cache directory for downloaded recipes
        cache_expiration_ms: Age after which the cache is stale
        fallback_to_local: Whether bundled recipes are used as the last tier
        token_env_var: Environment variable holding an optional bearer token
    """

    listing_url: str = listing_url_for(DEFAULT_REPOSITORY)
    raw_content_base_url: str = raw_url_for(DEFAULT_REPOSITORY)
    rate_limit_url: str = DEFAULT_RATE_LIMIT_URL
    cache_root: Path = field(default_factory=default_cache_root)
    cache_expiration_ms: int = DEFAULT_CACHE_EXPIRATION_MS
    fallback_to_local: bool = True
    token_env_var: str = "GITHUB_TOKEN"

    def update(self, **changes: Any) -> RecipeSourceConfig:
        """Return a new config with the given fields replaced.

        Raises:
            ValueError: If a key is not a config field or a value is invalid
        """
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown config field(s): {', '.join(sorted(unknown))}")

        if "cache_root" in changes and not isinstance(changes["cache_root"], Path):
            changes["cache_root"] = Path(changes["cache_root"]).expanduser()

        if "cache_expiration_ms" in changes and int(changes["cache_expiration_ms"]) <= 0:
            raise ValueError("cache_expiration_ms must be greater than 0")

        return replace(self, **changes)

    def with_repository(self, repository: str, branch: str = DEFAULT_BRANCH) -> RecipeSourceConfig:
        """Point listing and raw URLs at another ``owner/repo``."""
        if "/" not in repository.strip("/"):
            raise ValueError(f"Repository must be in owner/repo form: {repository}")
        repository = repository.strip("/")
        return self.update(
            listing_url=listing_url_for(repository),
            raw_content_base_url=raw_url_for(repository, branch),
        )

    def token(self) -> str | None:
        """Read the optional bearer credential from the environment."""
        return os.getenv(self.token_env_var) or None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["cache_root"] = str(self.cache_root)
        data["has_token"] = self.token() is not None
        return data

    @classmethod
    def from_env(cls) -> RecipeSourceConfig:
        """Defaults with environment overrides applied."""
        config = cls()

        if cache_dir := os.getenv("AGENT_RULES_CACHE_DIR"):
            config = config.update(cache_root=Path(cache_dir).expanduser())

        if repository := os.getenv("AGENT_RULES_REPOSITORY"):
            config = config.with_repository(repository)

        if hours := os.getenv("AGENT_RULES_CACHE_HOURS"):
            try:
                config = config.update(cache_expiration_ms=int(float(hours) * HOUR_MS))
            except ValueError:
                logger.warning(f"Ignoring invalid AGENT_RULES_CACHE_HOURS value: {hours}")

        return config


@dataclass(frozen=True)
class ScraperConfig:
    """Settings for the directory-page scraper and its own cache."""

    page_url: str = DEFAULT_DIRECTORY_URL
    cache_dir: Path = field(default_factory=default_scrape_dir)
    cache_expiration_ms: int = DEFAULT_SCRAPE_EXPIRATION_MS

    def update(self, **changes: Any) -> ScraperConfig:
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown config field(s): {', '.join(sorted(unknown))}")
        if "cache_dir" in changes and not isinstance(changes["cache_dir"], Path):
            changes["cache_dir"] = Path(changes["cache_dir"]).expanduser()
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> ScraperConfig:
        config = cls()
        if scrape_dir := os.getenv("AGENT_RULES_WINDSURF_DIR"):
            config = config.update(cache_dir=Path(scrape_dir).expanduser())
        return config
