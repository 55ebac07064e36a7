"""Agent Rules CLI.

Non-interactive access to recipe resolution, caches and diagnostics.

Usage:
    agent-rules recipes list              # List recipes (cache/remote/local)
    agent-rules recipes search <query>    # Search recipes
    agent-rules recipes show <key>        # Show one recipe
    agent-rules recipes refresh           # Force refresh from remote
    agent-rules recipes validate [path]   # Lint recipe files

    agent-rules cache info                # Show recipe and scrape cache status
    agent-rules cache clear               # Delete cached recipes
    agent-rules cache usage               # Disk usage of the recipe cache
    agent-rules cache prune --days 30     # Remove old cache subdirectories

    agent-rules repo test                 # Test repository connection
    agent-rules repo config               # Show effective configuration

    agent-rules windsurf list             # List scraped directory recipes
    agent-rules windsurf search <query>   # Search scraped recipes
    agent-rules windsurf show <key>       # Show one scraped recipe
    agent-rules windsurf refresh          # Re-scrape the directory page
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from .config import DAY_MS, HOUR_MS, RecipeSourceConfig, ScraperConfig
from .recipes.cache import format_bytes
from .recipes.formats import serialize_content
from .recipes.resolver import RecipeResolver
from .recipes.types import CacheInfo, Recipe, RecipeCollection
from .recipes.validation import ValidationReport, check_directory, check_file, check_recipe

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"
FORMAT_YAML = "yaml"


def format_datetime(dt: datetime | str | None) -> str:
    """Format datetime for display."""
    if dt is None:
        return "N/A"
    if isinstance(dt, str):
        try:
            dt = datetime.fromisoformat(dt.rstrip("Z"))
        except ValueError:
            return dt
    return dt.strftime("%Y-%m-%d %H:%M")


def truncate(text: str | None, max_len: int = 50) -> str:
    """Truncate text for display."""
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _resolver() -> RecipeResolver:
    return RecipeResolver(RecipeSourceConfig.from_env())


def _scraper():
    from .scraper import DirectoryScraper

    return DirectoryScraper(ScraperConfig.from_env())


def _format_option(func):
    return click.option(
        "--format",
        "-f",
        "output_format",
        type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
        default=FORMAT_TABLE,
        help="Output format",
    )(func)


def _document_format_option(func):
    return click.option(
        "--format",
        "-f",
        "output_format",
        type=click.Choice([FORMAT_YAML, FORMAT_JSON]),
        default=FORMAT_YAML,
        help="Output format",
    )(func)


def _echo_recipe_table(recipes: RecipeCollection) -> None:
    click.echo(f"{'Key':<32} {'Name':<36} {'Category':<18}")
    click.echo("-" * 88)
    for key, recipe in recipes.items():
        click.echo(f"{truncate(key, 32):<32} {truncate(recipe.name, 36):<36} {truncate(recipe.category, 18):<18}")
    click.echo(f"\nTotal: {len(recipes)} recipe(s)")


def _echo_recipes(recipes: RecipeCollection, output_format: str) -> None:
    if output_format == FORMAT_JSON:
        payload = {key: recipe.to_dict() for key, recipe in recipes.items()}
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    if not recipes:
        click.echo("No recipes available.")
        return
    _echo_recipe_table(recipes)


def _echo_recipe(key: str, recipe: Recipe, output_format: str) -> None:
    suffix = ".json" if output_format == FORMAT_JSON else ".yaml"
    click.echo(f"# {key}", err=True)
    click.echo(serialize_content(recipe.to_dict(), f"recipe{suffix}"), nl=False)


def _echo_cache_info(label: str, info: CacheInfo) -> None:
    click.echo(f"{label}:")
    if not info.exists:
        click.echo("  No cache found")
        click.echo(f"  Directory: {info.cache_dir}")
        return
    hours = round((info.age_ms or 0) / HOUR_MS)
    click.echo(f"  Directory:    {info.cache_dir}")
    click.echo(f"  Last updated: {format_datetime(info.last_update)}")
    click.echo(f"  Recipes:      {info.recipe_count}")
    click.echo(f"  Age:          {hours} hour(s)")
    click.echo(f"  Valid:        {'Yes' if info.is_valid else 'No (expired)'}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose: bool) -> None:
    """Agent Rules - recipe library for AI assistant configuration files."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


# =============================================================================
# Recipe Commands
# =============================================================================


@main.group()
def recipes() -> None:
    """Browse and refresh recipes."""


@recipes.command("list")
@click.option("--refresh", is_flag=True, help="Fetch from the remote repository first")
@_format_option
def recipes_list(refresh: bool, output_format: str) -> None:
    """List available recipes.

    Examples:

        agent-rules recipes list
        agent-rules recipes list --refresh --format json
    """
    resolver = _resolver()
    collection = asyncio.run(resolver.load_recipes(force_refresh=refresh))
    _echo_recipes(collection, output_format)
    if collection and output_format == FORMAT_TABLE:
        click.echo(f"Source: {resolver.last_tier.value}", err=True)


@recipes.command("search")
@click.argument("query")
@_format_option
def recipes_search(query: str, output_format: str) -> None:
    """Search recipes by name, description, category, stack and tags."""
    resolver = _resolver()
    collection = asyncio.run(resolver.load_recipes())
    keys = resolver.search(query, collection)

    if not keys and output_format == FORMAT_TABLE:
        click.echo(f"No recipes match '{query}'.")
        return
    _echo_recipes({key: collection[key] for key in keys}, output_format)


@recipes.command("show")
@click.argument("key")
@_document_format_option
def recipes_show(key: str, output_format: str) -> None:
    """Show one recipe (YAML by default, JSON with --format json)."""
    recipe = asyncio.run(_resolver().get_recipe(key))
    if recipe is None:
        click.echo(f"Recipe not found: {key}", err=True)
        sys.exit(1)
    _echo_recipe(key, recipe, output_format)


@recipes.command("refresh")
def recipes_refresh() -> None:
    """Force a refresh from the remote repository."""
    resolver = _resolver()
    collection = asyncio.run(resolver.refresh())
    if not collection:
        click.echo("No recipes available.", err=True)
        sys.exit(1)
    click.echo(f"Loaded {len(collection)} recipe(s) from {resolver.last_tier.value}")


@recipes.command("validate")
@click.argument("path", required=False, type=click.Path(exists=True, path_type=Path))
@click.option("--remote", is_flag=True, help="Validate the recipes the resolver returns")
@click.option("--verbose", "show_warnings", is_flag=True, help="Show warnings too")
def recipes_validate(path: Path | None, remote: bool, show_warnings: bool) -> None:
    """Validate recipe files for structure and content.

    Examples:

        agent-rules recipes validate my-recipe.yaml
        agent-rules recipes validate ./recipes
        agent-rules recipes validate --remote
    """
    reports: list[ValidationReport] = []

    if remote:
        collection = asyncio.run(_resolver().load_recipes())
        for key, recipe in collection.items():
            report = check_recipe(recipe.to_dict(), f"remote.{key}")
            report.key = key
            reports.append(report)
    elif path is None:
        raise click.UsageError("Pass a PATH or --remote")
    elif path.is_dir():
        reports = check_directory(path)
    else:
        reports = check_file(path)

    invalid = 0
    for report in reports:
        status = "OK  " if report.valid else "FAIL"
        click.echo(f"{status} {report.source}")
        for error in report.errors:
            click.echo(f"     error: {error}")
        if show_warnings:
            for warning in report.warnings:
                click.echo(f"     warning: {warning}")
        invalid += 0 if report.valid else 1

    click.echo(f"\n{len(reports) - invalid}/{len(reports)} recipe(s) valid")
    if invalid:
        sys.exit(1)


# =============================================================================
# Cache Commands
# =============================================================================


@main.group()
def cache() -> None:
    """Inspect and manage recipe caches."""


@cache.command("info")
@_format_option
def cache_info(output_format: str) -> None:
    """Show status of the recipe cache and the scrape cache."""
    recipe_info = _resolver().get_cache_info()
    scrape_info = _scraper().get_cache_info()

    if output_format == FORMAT_JSON:
        payload = {"recipes": recipe_info.to_dict(), "windsurf": scrape_info.to_dict()}
        click.echo(json.dumps(payload, indent=2))
        return

    _echo_cache_info("Recipe cache", recipe_info)
    click.echo()
    _echo_cache_info("Windsurf cache", scrape_info)


@cache.command("clear")
@click.option("--windsurf", "include_windsurf", is_flag=True, help="Also clear the scrape cache")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def cache_clear(include_windsurf: bool, yes: bool) -> None:
    """Delete cached recipes."""
    if not yes and not click.confirm("Clear the recipe cache?"):
        click.echo("Cancelled.")
        return

    ok = _resolver().clear_cache()
    click.echo(f"Recipe cache: {'cleared' if ok else 'failed'}")

    if include_windsurf:
        scrape_ok = _scraper().clear_cache()
        click.echo(f"Windsurf cache: {'cleared' if scrape_ok else 'failed'}")
        ok = ok and scrape_ok

    if not ok:
        sys.exit(1)


@cache.command("usage")
def cache_usage() -> None:
    """Show disk usage of the recipe cache."""
    usage = _resolver().cache.usage_report()
    click.echo(f"Total cache size: {format_bytes(usage.total_size_bytes)}")
    for name, size in sorted(usage.per_entry_size_bytes.items()):
        click.echo(f"  {name}: {format_bytes(size)}")


@cache.command("prune")
@click.option("--days", default=30, show_default=True, help="Retention period in days")
def cache_prune(days: int) -> None:
    """Remove cache subdirectories not updated within the retention period."""
    removed = _resolver().cache.prune_older_than(days * DAY_MS)
    if not removed:
        click.echo("Nothing to prune.")
        return
    for name in removed:
        click.echo(f"Removed {name}")


# =============================================================================
# Repository Commands
# =============================================================================


@main.group()
def repo() -> None:
    """Remote repository settings and diagnostics."""


@repo.command("test")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def repo_test(output_json: bool) -> None:
    """Test connectivity to the recipe repository."""
    report = asyncio.run(_resolver().test_connection())

    if output_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.echo(f"Listing endpoint: {report.listing_endpoint}")
        click.echo(f"Raw endpoint:     {report.raw_endpoint}")
        for name, result in report.tests.items():
            click.echo(f"  {'PASS' if result.success else 'FAIL'} {name} ({result.duration_ms}ms)")
            if result.error:
                click.echo(f"       {result.error}")
        if report.rate_limit:
            click.echo(f"Rate limit: {report.rate_limit.remaining}/{report.rate_limit.limit}")
        for warning in report.warnings:
            click.echo(f"Warning: {warning}", err=True)

    if not report.success:
        sys.exit(1)


@repo.command("config")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def repo_config(output_json: bool) -> None:
    """Show the effective source configuration."""
    config = RecipeSourceConfig.from_env()
    data = config.to_dict()

    if output_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"Listing URL:      {config.listing_url}")
    click.echo(f"Raw URL:          {config.raw_content_base_url}")
    click.echo(f"Cache directory:  {config.cache_root}")
    click.echo(f"Cache expiration: {config.cache_expiration_ms / HOUR_MS:g} hours")
    click.echo(f"Fallback to local: {'Yes' if config.fallback_to_local else 'No'}")
    click.echo(f"Token:            {'set' if data['has_token'] else 'not set'} (${config.token_env_var})")


# =============================================================================
# Windsurf Directory Commands
# =============================================================================


@main.group()
def windsurf() -> None:
    """Recipes scraped from the Windsurf rules directory."""


@windsurf.command("list")
@_format_option
def windsurf_list(output_format: str) -> None:
    """List scraped recipes."""
    collection = asyncio.run(_scraper().fetch_recipes())
    _echo_recipes(collection, output_format)


@windsurf.command("search")
@click.argument("query")
@_format_option
def windsurf_search(query: str, output_format: str) -> None:
    """Search scraped recipes, including their rule text."""

    async def run() -> RecipeCollection:
        scraper = _scraper()
        collection = await scraper.fetch_recipes()
        keys = await scraper.search(query, collection)
        return {key: collection[key] for key in keys}

    matches = asyncio.run(run())
    if not matches and output_format == FORMAT_TABLE:
        click.echo(f"No scraped recipes match '{query}'.")
        return
    _echo_recipes(matches, output_format)


@windsurf.command("show")
@click.argument("key")
@_document_format_option
def windsurf_show(key: str, output_format: str) -> None:
    """Show one scraped recipe."""
    recipe = asyncio.run(_scraper().get_recipe(key))
    if recipe is None:
        click.echo(f"Scraped recipe not found: {key}", err=True)
        sys.exit(1)
    _echo_recipe(key, recipe, output_format)


@windsurf.command("refresh")
def windsurf_refresh() -> None:
    """Re-scrape the directory page, ignoring the cache."""
    collection = asyncio.run(_scraper().refresh())
    click.echo(f"Scraped {len(collection)} recipe(s)")


if __name__ == "__main__":
    main()
