"""Tests for the agent-rules CLI."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from click.testing import CliRunner

from agent_rules import cli
from agent_rules.config import ScraperConfig
from agent_rules.recipes.remote import CheckResult, ConnectionReport, RemoteFetcher
from agent_rules.recipes.resolver import RecipeResolver
from agent_rules.scraper.directory import DirectoryScraper

PAGE = "<code># Vue\n- Use vue single file components with typescript everywhere</code>"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def offline_fetcher():
    fetcher = MagicMock(spec=RemoteFetcher)
    fetcher.list_recipe_files = AsyncMock(return_value=[])
    fetcher.download_recipe_file = AsyncMock()
    return fetcher


@pytest.fixture
def resolver(monkeypatch, source_config, offline_fetcher) -> RecipeResolver:
    """Resolver with no network; falls through to bundled recipes."""
    instance = RecipeResolver(source_config, fetcher=offline_fetcher)
    monkeypatch.setattr(cli, "_resolver", lambda: instance)
    return instance


@pytest.fixture
def scraper(monkeypatch, tmp_path) -> DirectoryScraper:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=PAGE))
    instance = DirectoryScraper(
        ScraperConfig(page_url="https://directory.example.test", cache_dir=tmp_path / "ws"),
        transport=transport,
    )
    monkeypatch.setattr(cli, "_scraper", lambda: instance)
    return instance


class TestRecipeCommands:
    def test_list_table(self, runner, resolver):
        result = runner.invoke(cli.main, ["recipes", "list"])

        assert result.exit_code == 0
        assert "react-typescript-web-app" in result.output
        assert "Total: 3 recipe(s)" in result.output

    def test_list_json(self, runner, resolver):
        result = runner.invoke(cli.main, ["recipes", "list", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["python-fastapi-service"]["techStack"]["backend"] == "FastAPI"

    def test_search(self, runner, resolver):
        result = runner.invoke(cli.main, ["recipes", "search", "fastapi"])

        assert result.exit_code == 0
        assert "python-fastapi-service" in result.output
        assert "react-typescript-web-app" not in result.output

    def test_search_no_match(self, runner, resolver):
        result = runner.invoke(cli.main, ["recipes", "search", "cobol"])

        assert result.exit_code == 0
        assert "No recipes match 'cobol'" in result.output

    def test_show_yaml(self, runner, resolver):
        result = runner.invoke(cli.main, ["recipes", "show", "node-cli-tool"])

        assert result.exit_code == 0
        assert "name: Node.js CLI Tool" in result.output

    def test_show_missing(self, runner, resolver):
        result = runner.invoke(cli.main, ["recipes", "show", "missing"])

        assert result.exit_code == 1
        assert "Recipe not found: missing" in result.output

    def test_refresh_with_nothing_available(
        self, runner, monkeypatch, source_config, offline_fetcher
    ):
        config = source_config.update(fallback_to_local=False)
        instance = RecipeResolver(config, fetcher=offline_fetcher)
        monkeypatch.setattr(cli, "_resolver", lambda: instance)

        result = runner.invoke(cli.main, ["recipes", "refresh"])

        assert result.exit_code == 1

    def test_validate_directory(self, runner, tmp_path, make_recipe):
        (tmp_path / "good.json").write_text(json.dumps(make_recipe()), encoding="utf-8")

        result = runner.invoke(cli.main, ["recipes", "validate", str(tmp_path)])

        assert result.exit_code == 0
        assert "1/1 recipe(s) valid" in result.output

    def test_validate_invalid_file(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("name: Bad\n", encoding="utf-8")

        result = runner.invoke(cli.main, ["recipes", "validate", str(path)])

        assert result.exit_code == 1
        assert "Missing required field: techStack" in result.output

    def test_validate_remote(self, runner, resolver):
        result = runner.invoke(cli.main, ["recipes", "validate", "--remote"])

        assert result.exit_code == 0
        assert "3/3 recipe(s) valid" in result.output

    def test_validate_needs_target(self, runner):
        result = runner.invoke(cli.main, ["recipes", "validate"])

        assert result.exit_code == 2


class TestCacheCommands:
    def test_info_json(self, runner, resolver, scraper):
        result = runner.invoke(cli.main, ["cache", "info", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["recipes"]["exists"] is False
        assert data["windsurf"]["exists"] is False

    def test_clear_requires_confirmation(self, runner, resolver):
        result = runner.invoke(cli.main, ["cache", "clear"], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled." in result.output

    def test_clear_yes(self, runner, resolver, scraper):
        resolver.cache.ensure_root()
        (resolver.cache.root / "old.json").write_text("{}", encoding="utf-8")

        result = runner.invoke(cli.main, ["cache", "clear", "--yes", "--windsurf"])

        assert result.exit_code == 0
        assert "Recipe cache: cleared" in result.output
        assert "Windsurf cache: cleared" in result.output
        assert not (resolver.cache.root / "old.json").exists()

    def test_usage(self, runner, resolver):
        resolver.cache.ensure_root()
        (resolver.cache.root / "a.json").write_bytes(b"x" * 2048)

        result = runner.invoke(cli.main, ["cache", "usage"])

        assert result.exit_code == 0
        assert "Total cache size: 2 KB" in result.output
        assert "a.json: 2 KB" in result.output

    def test_prune(self, runner, resolver):
        old = resolver.cache.root / "project-a"
        old.mkdir(parents=True)
        (old / "metadata.json").write_text(
            json.dumps({"lastUpdated": "2020-01-01T00:00:00Z"}), encoding="utf-8"
        )

        result = runner.invoke(cli.main, ["cache", "prune", "--days", "30"])

        assert result.exit_code == 0
        assert "Removed project-a" in result.output
        assert not old.exists()


class TestRepoCommands:
    def test_config_json(self, runner, monkeypatch, tmp_path):
        monkeypatch.setenv("AGENT_RULES_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("AGENT_RULES_REPOSITORY", "acme/recipes")
        monkeypatch.delenv("AGENT_RULES_CACHE_HOURS", raising=False)

        result = runner.invoke(cli.main, ["repo", "config", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["cache_root"] == str(tmp_path)
        assert "acme/recipes" in data["listing_url"]

    def test_connection_failure_exits_nonzero(self, runner, resolver, offline_fetcher):
        offline_fetcher.test_connection = AsyncMock(
            return_value=ConnectionReport(
                success=False,
                listing_endpoint="https://api.example.test",
                raw_endpoint="https://raw.example.test",
                tests={"listing_reachable": CheckResult(success=False, error="refused")},
            )
        )

        result = runner.invoke(cli.main, ["repo", "test"])

        assert result.exit_code == 1
        assert "FAIL listing_reachable" in result.output

    def test_connection_json(self, runner, resolver, offline_fetcher):
        offline_fetcher.test_connection = AsyncMock(
            return_value=ConnectionReport(
                success=True,
                listing_endpoint="https://api.example.test",
                raw_endpoint="https://raw.example.test",
                tests={"listing_reachable": CheckResult(success=True, status_code=200)},
            )
        )

        result = runner.invoke(cli.main, ["repo", "test", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output)["tests"]["listing_reachable"]["status_code"] == 200


class TestWindsurfCommands:
    def test_list_json(self, runner, scraper):
        result = runner.invoke(cli.main, ["windsurf", "list", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["windsurf-1"]["techStack"] == {"frontend": "Vue", "language": "TypeScript"}

    def test_search(self, runner, scraper):
        result = runner.invoke(cli.main, ["windsurf", "search", "single file"])

        assert result.exit_code == 0
        assert "windsurf-1" in result.output

    def test_search_fetches_once_without_cache(self, runner, monkeypatch, tmp_path):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, text=PAGE)

        instance = DirectoryScraper(
            ScraperConfig(page_url="https://directory.example.test", cache_dir=tmp_path / "ws"),
            transport=httpx.MockTransport(handler),
        )
        monkeypatch.setattr(instance.cache, "write", lambda recipes: False)
        monkeypatch.setattr(cli, "_scraper", lambda: instance)

        result = runner.invoke(cli.main, ["windsurf", "search", "vue"])

        assert result.exit_code == 0
        assert "windsurf-1" in result.output
        assert len(calls) == 1

    def test_show_missing(self, runner, scraper):
        result = runner.invoke(cli.main, ["windsurf", "show", "windsurf-5"])

        assert result.exit_code == 1

    def test_refresh(self, runner, scraper):
        result = runner.invoke(cli.main, ["windsurf", "refresh"])

        assert result.exit_code == 0
        assert "Scraped 1 recipe(s)" in result.output
        assert scraper.cache.read().timestamp <= datetime.now(UTC)
