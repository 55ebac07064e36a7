"""Remote recipe repository client.

Talks to a GitHub-style contents API for the file listing and to a raw
content host for file bodies. All requests use a fixed 10 second timeout and
are never retried; the resolver's fallback tiers take the place of retries.

The listing call is a soft operation (empty list on any failure). Downloads
and rate-limit checks raise ``FetchError``. ``test_connection`` never raises.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx

from .. import __version__
from ..config import REQUEST_TIMEOUT_SECONDS, RecipeSourceConfig
from .formats import is_supported_format
from .types import RecipeFileInfo

logger = logging.getLogger(__name__)

USER_AGENT = f"agent-rules-generator/{__version__}"
LOW_RATE_LIMIT_THRESHOLD = 100


class FetchError(Exception):
    """Network or HTTP failure while talking to the remote host."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        filename: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.filename = filename
        self.status_code = status_code


class FetchTimeoutError(FetchError):
    """The remote host did not answer within the request timeout."""


@dataclass
class CheckResult:
    """Outcome of one diagnostic check."""

    success: bool
    duration_ms: int = 0
    status_code: int | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "duration_ms": self.duration_ms}
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.error:
            data["error"] = self.error
        data.update(self.details)
        return data


@dataclass
class RateLimitStatus:
    limit: int
    remaining: int
    reset_time: datetime | None = None

    @property
    def is_low(self) -> bool:
        return self.remaining < LOW_RATE_LIMIT_THRESHOLD

    def to_dict(self) -> dict[str, Any]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_time": self.reset_time.isoformat() if self.reset_time else None,
        }


@dataclass
class ConnectionReport:
    """Aggregate result of ``RemoteFetcher.test_connection``."""

    success: bool
    listing_endpoint: str
    raw_endpoint: str
    tests: dict[str, CheckResult] = field(default_factory=dict)
    rate_limit: RateLimitStatus | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "listing_endpoint": self.listing_endpoint,
            "raw_endpoint": self.raw_endpoint,
            "tests": {name: result.to_dict() for name, result in self.tests.items()},
            "rate_limit": self.rate_limit.to_dict() if self.rate_limit else None,
            "warnings": self.warnings,
        }


class RemoteFetcher:
    """Fetches recipe listings and files from the configured repository.

    Usage:
        fetcher = RemoteFetcher(RecipeSourceConfig())
        files = await fetcher.list_recipe_files()
        content = await fetcher.download_recipe_file(files[0].name)

    Args:
        config: Source configuration (endpoints, credential variable)
        transport: Optional httpx transport, used by tests to stub the network
    """

    def __init__(
        self,
        config: RecipeSourceConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS),
            follow_redirects=True,
            transport=self._transport,
        )

    def _api_headers(self, *, with_token: bool) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if with_token and (token := self.config.token()):
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _get(
        self,
        url: str,
        *,
        api: bool = False,
        authenticated: bool = False,
        filename: str | None = None,
    ) -> httpx.Response:
        """GET a URL, converting transport failures and non-2xx into FetchError.

        ``api`` adds the contents-API Accept header; ``authenticated`` also adds
        the bearer token, which only the listing request carries.
        """
        headers = self._api_headers(with_token=authenticated) if api else None
        label = filename or url

        try:
            async with self._client() as client:
                response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(
                f"Request timeout fetching {label}", url=url, filename=filename
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(
                f"Request to {url} failed: {e}", url=url, filename=filename
            ) from e

        if not response.is_success:
            raise FetchError(
                f"HTTP {response.status_code} {response.reason_phrase} from {url}",
                url=url,
                filename=filename,
                status_code=response.status_code,
            )
        return response

    async def list_recipe_files(self) -> list[RecipeFileInfo]:
        """List recipe files in the remote directory.

        Returns:
            Recipe files with a supported extension, or an empty list if the
            endpoint is unreachable or answers with an unexpected shape
        """
        try:
            response = await self._get(self.config.listing_url, api=True, authenticated=True)
            entries = response.json()
        except (FetchError, ValueError) as e:
            logger.warning(f"Could not fetch recipe list from remote repository: {e}")
            return []

        if not isinstance(entries, list):
            logger.warning("Remote recipe listing has an unexpected shape, ignoring it")
            return []

        files = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            name = entry.get("name")
            if entry.get("type", "file") != "file" or not isinstance(name, str):
                continue
            if not is_supported_format(name):
                continue
            if Path(name).name != name or "\\" in name:
                logger.warning(f"Ignoring remote recipe with unsafe name: {name!r}")
                continue
            files.append(
                RecipeFileInfo(name=name, content_hash=entry.get("sha") or entry.get("contentHash"))
            )

        logger.debug(f"Remote listing returned {len(files)} recipe file(s)")
        return files

    def raw_url(self, name: str) -> str:
        return f"{self.config.raw_content_base_url.rstrip('/')}/{name}"

    async def download_recipe_file(self, name: str) -> str:
        """Fetch the raw content of one recipe file.

        Raises:
            FetchError: On non-2xx, transport failure or timeout
        """
        url = self.raw_url(name)
        try:
            response = await self._get(url, filename=name)
        except FetchTimeoutError:
            raise
        except FetchError as e:
            raise FetchError(
                f"Failed to download file {name}: {e}",
                url=url,
                filename=name,
                status_code=e.status_code,
            ) from e
        return response.text

    # =========================================================================
    # Diagnostics
    # =========================================================================

    async def check_reachability(self, url: str) -> CheckResult:
        """HEAD request against ``url``; reports status and timing, never raises."""
        started = time.monotonic()
        try:
            async with self._client() as client:
                response = await client.head(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return CheckResult(
                success=False,
                duration_ms=_elapsed_ms(started),
                error=str(e) or type(e).__name__,
            )

        return CheckResult(
            success=response.is_success,
            duration_ms=_elapsed_ms(started),
            status_code=response.status_code,
        )

    async def check_rate_limit(self) -> RateLimitStatus:
        """Read the remote host's rate-limit status.

        Raises:
            FetchError: If the endpoint cannot be read or answers oddly
        """
        response = await self._get(self.config.rate_limit_url, api=True)
        try:
            core = response.json()["resources"]["core"]
            reset = core.get("reset")
            return RateLimitStatus(
                limit=int(core["limit"]),
                remaining=int(core["remaining"]),
                reset_time=datetime.fromtimestamp(reset, tz=UTC) if reset else None,
            )
        except (ValueError, KeyError, TypeError) as e:
            raise FetchError(
                f"Unexpected rate limit response: {e}", url=self.config.rate_limit_url
            ) from e

    async def test_connection(self) -> ConnectionReport:
        """Run every check plus one real list and download cycle."""
        report = ConnectionReport(
            success=False,
            listing_endpoint=self.config.listing_url,
            raw_endpoint=self.config.raw_content_base_url,
        )

        report.tests["listing_reachable"] = await self.check_reachability(self.config.listing_url)

        started = time.monotonic()
        files = await self.list_recipe_files()
        report.tests["list_recipes"] = CheckResult(
            success=bool(files),
            duration_ms=_elapsed_ms(started),
            error=None if files else "No recipe files found",
            details={"file_count": len(files)},
        )

        if files:
            name = files[0].name
            # The raw host serves files only, not directories.
            report.tests["raw_reachable"] = await self.check_reachability(self.raw_url(name))

            started = time.monotonic()
            try:
                content = await self.download_recipe_file(name)
                report.tests["download"] = CheckResult(
                    success=True,
                    duration_ms=_elapsed_ms(started),
                    details={"file": name, "size": len(content.encode("utf-8"))},
                )
            except FetchError as e:
                report.tests["download"] = CheckResult(
                    success=False,
                    duration_ms=_elapsed_ms(started),
                    status_code=e.status_code,
                    error=str(e),
                    details={"file": name},
                )

        try:
            report.rate_limit = await self.check_rate_limit()
            if report.rate_limit.is_low:
                report.warnings.append(
                    f"Rate limit is running low ({report.rate_limit.remaining}/"
                    f"{report.rate_limit.limit}); set {self.config.token_env_var} for higher limits"
                )
        except FetchError as e:
            report.warnings.append(f"Could not read rate limit: {e}")

        report.success = all(result.success for result in report.tests.values())
        return report


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
