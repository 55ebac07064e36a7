"""Rule-text extraction from a directory page.

This is a pattern match over ``<code>`` blocks, not an HTML parser. A block
is kept when its decoded text is long enough and looks like rule text
(headings, list items or imperative phrasing).
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass

MIN_BLOCK_LENGTH = 50
RULE_MARKERS = ("# ", "## ", "- ", "Use ", "Follow ", "Prefer ")

# How far back from a code block to look for a heading that names it.
HEADING_LOOKBEHIND = 2000

_CODE_BLOCK = re.compile(r"<code[^>]*>(.*?)</code>", re.DOTALL | re.IGNORECASE)
_HEADING = re.compile(r"<h([1-6])[^>]*>(.*?)</h\1>", re.DOTALL | re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")

# (keyword, title prefix); first keyword found in the block wins.
KEYWORD_TITLES: tuple[tuple[str, str], ...] = (
    ("react", "React Project Rules"),
    ("vue", "Vue Project Rules"),
    ("python", "Python Project Rules"),
    ("typescript", "TypeScript Project Rules"),
    ("expo", "Expo React Native Rules"),
    ("prisma", "Prisma Database Rules"),
    ("matplotlib", "Python Data Science Rules"),
)


@dataclass
class RuleBlock:
    """One rule set found on the page."""

    title: str
    content: str
    index: int


def _strip_tags(fragment: str) -> str:
    return html.unescape(_TAG.sub("", fragment)).strip()


def looks_like_rules(text: str) -> bool:
    return len(text) > MIN_BLOCK_LENGTH and any(marker in text for marker in RULE_MARKERS)


def _heading_before(page: str, position: int) -> str | None:
    window = page[max(0, position - HEADING_LOOKBEHIND) : position]
    headings = _HEADING.findall(window)
    if not headings:
        return None
    title = " ".join(_strip_tags(headings[-1][1]).split())
    return title or None


def guess_title(content: str, index: int) -> str:
    lowered = content.lower()
    for keyword, title in KEYWORD_TITLES:
        if keyword in lowered:
            return f"{title} {index}"
    return f"Rules {index}"


def extract_rule_blocks(page: str) -> list[RuleBlock]:
    """Find rule-like code blocks in a page.

    Blocks whose decoded text exactly matches an earlier block are skipped.
    Near-duplicates are kept.

    Returns:
        Blocks in page order, indexed from 1
    """
    blocks: list[RuleBlock] = []
    seen: set[str] = set()

    for match in _CODE_BLOCK.finditer(page):
        content = _strip_tags(match.group(1))
        if not looks_like_rules(content) or content in seen:
            continue
        seen.add(content)

        index = len(blocks) + 1
        title = _heading_before(page, match.start()) or guess_title(content, index)
        blocks.append(RuleBlock(title=title, content=content, index=index))

    return blocks
