"""Best-effort recipes scraped from the public rules directory page.

Public API:
    DirectoryScraper - Fetch, classify and cache scraped recipes
    ScrapeCache - Aggregate cache with its own expiration
    extract_rule_blocks - Pull rule-like code blocks out of a page
    classify - Turn a rule block into a Recipe
"""

from __future__ import annotations

from .cache import ScrapeCache, ScrapeSnapshot
from .classify import CATEGORY_RULES, TECH_STACK_RULES, Rule, apply_rules, classify
from .directory import DirectoryScraper
from .extract import RuleBlock, extract_rule_blocks

__all__ = [
    "CATEGORY_RULES",
    "DirectoryScraper",
    "Rule",
    "RuleBlock",
    "ScrapeCache",
    "ScrapeSnapshot",
    "TECH_STACK_RULES",
    "apply_rules",
    "classify",
    "extract_rule_blocks",
]
