"""
Search input helpers: query parsing, cleanup and relevance scoring
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
import re

MAX_QUERY_LENGTH = 100

_EXACT_PHRASE = re.compile(r'"([^"]+)"')
_TAG = re.compile(r"#(\w+)")
_USER = re.compile(r"@(\w+)")


@dataclass
class ParsedQuery:
    """Search box input split into its parts"""
    keywords: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    users: List[str] = field(default_factory=list)
    exact_phrases: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Free text to match against titles and descriptions"""
        return " ".join(self.exact_phrases + self.keywords)


def parse_search_query(query: str) -> ParsedQuery:
    """
    Parse '"exact phrase" #tag @user keywords'

    Quoted phrases are taken first, then tags, then user mentions; whatever
    remains is split on whitespace into keywords.
    """
    result = ParsedQuery()

    result.exact_phrases = _EXACT_PHRASE.findall(query)
    query = _EXACT_PHRASE.sub(" ", query)

    result.tags = _TAG.findall(query)
    query = _TAG.sub(" ", query)

    result.users = _USER.findall(query)
    query = _USER.sub(" ", query)

    result.keywords = query.split()
    return result


def sanitize_search_query(query: str) -> str:
    """Collapse whitespace, drop angle brackets, cap the length"""
    query = re.sub(r"\s+", " ", query.strip())
    return query.replace("<", "").replace(">", "")[:MAX_QUERY_LENGTH]


def is_valid_search_query(query: str) -> bool:
    query = (query or "").strip()
    if not 2 <= len(query) <= MAX_QUERY_LENGTH:
        return False
    # At least one letter or digit
    return any(ch.isalnum() for ch in query)


def highlight_search_query(text: str, query: str, marker: str = "**") -> str:
    """Wrap case-insensitive occurrences of query in marker"""
    if not text or not query:
        return text
    pattern = re.compile(f"({re.escape(query)})", re.IGNORECASE)
    return pattern.sub(lambda m: f"{marker}{m.group(1)}{marker}", text)


def calculate_relevance_score(
    title: str,
    query: str,
    description: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
) -> int:
    """Title matches weigh most, then exact tag matches, description, partial tags"""
    needle = query.lower()
    score = 0

    if needle in title.lower():
        score += 10
        if title.lower() == needle:
            score += 20

    if description and needle in description.lower():
        score += 5

    for tag in tags or []:
        if needle in tag.lower():
            score += 3
        if tag.lower() == needle:
            score += 7

    return score
