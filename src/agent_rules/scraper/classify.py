"""Keyword classification of scraped rule text into recipes.

Classification is driven by ordered rule tables. Each field takes the value
of the first rule for that field whose predicate matches; later rules for an
already-set field are ignored. Extend the tables to teach the classifier new
technologies.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from ..config import DEFAULT_DIRECTORY_URL
from ..recipes.types import Recipe, RecipeSource
from .extract import RuleBlock

SOURCE_TYPE = "windsurf-directory"
SCRAPED_TAGS = ("windsurf", "scraped", "directory")
DEFAULT_CATEGORY = "Web Application"

Predicate = Callable[[str], bool]


def contains(*keywords: str) -> Predicate:
    """Predicate matching lower-cased text that contains any keyword."""

    def predicate(text: str) -> bool:
        return any(keyword in text for keyword in keywords)

    return predicate


@dataclass(frozen=True)
class Rule:
    predicate: Predicate
    field: str
    value: str


CATEGORY_RULES: tuple[Rule, ...] = (
    Rule(contains("cli", "command"), "category", "CLI Tool"),
    Rule(contains("mobile", "react native", "expo"), "category", "Mobile App"),
    Rule(contains("electron", "desktop"), "category", "Desktop App"),
    Rule(contains("api", "backend", "server"), "category", "API/Backend"),
    Rule(contains("library", "package", "npm"), "category", "Library/Package"),
)

TECH_STACK_RULES: tuple[Rule, ...] = (
    Rule(contains("react"), "frontend", "React"),
    Rule(contains("vue"), "frontend", "Vue"),
    Rule(contains("angular"), "frontend", "Angular"),
    Rule(contains("svelte"), "frontend", "Svelte"),
    Rule(contains("express"), "backend", "Express"),
    Rule(contains("fastapi"), "backend", "FastAPI"),
    Rule(contains("django"), "backend", "Django"),
    Rule(contains("spring"), "backend", "Spring Boot"),
    Rule(contains("node"), "backend", "Node.js"),
    Rule(contains("typescript"), "language", "TypeScript"),
    Rule(contains("javascript"), "language", "JavaScript"),
    Rule(contains("python"), "language", "Python"),
    Rule(contains("java"), "language", "Java"),
    Rule(contains("rust"), "language", "Rust"),
    Rule(contains("prisma"), "database", "Prisma"),
    Rule(contains("postgresql", "postgres"), "database", "PostgreSQL"),
    Rule(contains("mongodb", "mongo"), "database", "MongoDB"),
    Rule(contains("mysql"), "database", "MySQL"),
    Rule(contains("sqlite"), "database", "SQLite"),
    Rule(contains("react native"), "mobileFramework", "React Native"),
    Rule(contains("expo"), "mobileFramework", "Expo"),
    Rule(contains("matplotlib"), "tools", "Matplotlib, Data Science"),
)


def apply_rules(text: str, rules: Iterable[Rule]) -> dict[str, str]:
    """Evaluate rules first-match-wins per field over lower-cased ``text``."""
    lowered = text.lower()
    result: dict[str, str] = {}
    for rule in rules:
        if rule.field not in result and rule.predicate(lowered):
            result[rule.field] = rule.value
    return result


def classify(
    block: RuleBlock,
    *,
    url: str = DEFAULT_DIRECTORY_URL,
    scraped_at: datetime | None = None,
) -> Recipe:
    """Turn a rule block into a recipe with provenance attached."""
    scraped_at = scraped_at or datetime.now(UTC)
    category = apply_rules(block.content, CATEGORY_RULES).get("category", DEFAULT_CATEGORY)

    return Recipe(
        name=block.title,
        description=f"Windsurf rules extracted from directory - {block.title}",
        category=category,
        tech_stack=apply_rules(block.content, TECH_STACK_RULES),
        tags=list(SCRAPED_TAGS),
        windsurf_rules=block.content,
        source=RecipeSource(
            type=SOURCE_TYPE,
            url=url,
            scraped_at=scraped_at.isoformat(),
            index=block.index,
        ),
    )
