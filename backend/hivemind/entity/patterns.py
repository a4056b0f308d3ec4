"""Pattern classifier: text blob -> raw (type, substring, offset) matches.

Each entity type owns one or more compiled patterns. Every pattern is run
exhaustively with ``finditer`` (non-overlapping within that pattern), and
matches are NOT mutually exclusive across types: a string can come back as
both ``url`` and ``social_url``. The one cross-type rule is that a domain
whose span lies inside an email or URL match is dropped, so ``acme.com`` in
``john@acme.com`` is not reported a second time as a standalone domain.
Name runs lose any leading stopwords ("Dear", "Yesterday", ...) before they
are reported, so "Dear John Smith" yields ``John Smith`` at its own offset.

Where a pattern has a capture group, group 1 is the reported value.

The classifier is pure: the same text and table version always produce the
same matches. No network, no dictionaries beyond the tables in this file.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from hivemind.db.models import EntityType

PATTERN_TABLE_VERSION = "2"

# Regex DoS guard: text beyond this many characters is not scanned.
DEFAULT_MAX_INPUT_CHARS = 100 * 1024


@dataclass(frozen=True)
class Match:
    """A raw classifier hit, before normalization and validation."""

    entity_type: EntityType
    raw: str
    start: int
    end: int


_SOCIAL_HOSTS = (
    r"(?:facebook|fb)\.com/[A-Za-z0-9.]+",
    r"(?:twitter|x)\.com/[A-Za-z0-9_]+",
    r"instagram\.com/[A-Za-z0-9_.]+",
    r"linkedin\.com/(?:in|company)/[A-Za-z0-9-]+",
    r"tiktok\.com/@?[A-Za-z0-9_.]+",
    r"github\.com/[A-Za-z0-9-]+",
    r"reddit\.com/(?:u|user)/[A-Za-z0-9_-]+",
    r"t\.me/[A-Za-z0-9_]+",
)

_RAW_TABLE: dict[EntityType, tuple[str, ...]] = {
    EntityType.EMAIL: (
        r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}",
    ),
    EntityType.PHONE: (
        # North American: +1 (202) 555-1234, 202.555.1234
        r"(?<![\w+])(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b",
        # International with explicit country code: +44 20 7946 0958
        r"(?<![\w+])\+[1-9]\d{0,2}(?:[-.\s]?\(?\d{1,4}\)?){2,5}\b",
    ),
    EntityType.IP_V4: (
        r"\b(?:(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\.){3}(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\b",
    ),
    EntityType.IP_V6: (
        r"(?<![:\w])(?:[0-9A-Fa-f]{1,4}:){7}[0-9A-Fa-f]{1,4}(?![:\w])",
        r"(?<![:\w])(?:[0-9A-Fa-f]{1,4}:){1,6}:[0-9A-Fa-f]{1,4}(?![:\w])",
    ),
    EntityType.URL: (
        r"https?://[^\s<>\"'{}|\\^`\[\]]+",
    ),
    EntityType.DOMAIN: (
        r"\b(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,}\b",
    ),
    EntityType.USERNAME: (
        r"(?<![\w.@/])@[A-Za-z0-9_]+",
    ),
    EntityType.HASHTAG: (
        r"(?<![\w&#])#[A-Za-z]\w{1,50}",
    ),
    EntityType.BITCOIN_ADDRESS: (
        r"\b(?:[13][a-km-zA-HJ-NP-Z1-9]{25,34}|bc1[a-zA-HJ-NP-Z0-9]{25,39})\b",
    ),
    EntityType.ETHEREUM_ADDRESS: (
        r"\b0x[a-fA-F0-9]{40}\b",
    ),
    EntityType.CREDIT_CARD: (
        r"\b(?:4\d{3}|5[1-5]\d{2}|6011|3[47]\d{2})[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b",
    ),
    EntityType.SSN: (
        r"\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b",
    ),
    EntityType.DATE: (
        r"\b\d{4}[/.-]\d{1,2}[/.-]\d{1,2}\b",
        r"\b\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}\b",
        r"\b(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+\d{1,2},?\s+\d{4}\b",
    ),
    EntityType.COORDINATE: (
        r"(?<![\w.])[-+]?\d{1,2}\.\d{2,},\s*[-+]?\d{1,3}\.\d{2,}\b",
    ),
    EntityType.MAC_ADDRESS: (
        r"\b(?:[0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}\b",
    ),
    EntityType.UUID: (
        r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\b",
    ),
    EntityType.HASH: (
        r"\b[a-fA-F0-9]{32,64}\b",
    ),
    EntityType.NAME: (
        r"\b[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+){1,3}\b",
    ),
    EntityType.SOCIAL_URL: tuple(
        rf"https?://(?:www\.)?{host}" for host in _SOCIAL_HOSTS
    ),
}

# Capitalized words that open a run but are never part of a person's name.
NAME_LEADING_STOPWORDS = frozenset({
    "The", "This", "That", "These", "Those", "With", "From", "About", "More",
    "And", "But", "For", "Our", "Your", "Their", "His", "Her", "When", "Where",
    "What", "Why", "How", "Who", "All", "Any", "Some", "If", "In", "On", "At",
    "By", "To", "Of", "As", "Read", "Click", "Sign", "Log", "Contact", "Dear",
    "Yesterday", "Today", "Tomorrow", "Tonight", "Hello", "Hi", "Hey",
    "Thanks", "Please", "Call", "Email", "Ask", "Meet", "Also", "Then", "Now",
})
NAME_MIN_TOKENS = 2
NAME_MAX_TOKENS = 3

_TOKEN = re.compile(r"\S+")

# Types whose match spans swallow embedded domains.
_DOMAIN_CONTAINERS = frozenset({EntityType.EMAIL, EntityType.URL})


def _compile(table: dict[EntityType, tuple[str, ...]]) -> dict[EntityType, tuple[re.Pattern[str], ...]]:
    """Pre-compile the raw pattern table. Social and date patterns ignore case."""
    compiled: dict[EntityType, tuple[re.Pattern[str], ...]] = {}
    for entity_type, patterns in table.items():
        flags = re.IGNORECASE if entity_type in (EntityType.SOCIAL_URL, EntityType.DATE) else 0
        compiled[entity_type] = tuple(re.compile(p, flags) for p in patterns)
    return compiled


PATTERN_TABLE = _compile(_RAW_TABLE)


def _matches_for(
    text: str, entity_type: EntityType, patterns: tuple[re.Pattern[str], ...],
) -> list[Match]:
    results: list[Match] = []
    for pattern in patterns:
        for m in pattern.finditer(text):
            group = 1 if pattern.groups else 0
            results.append(Match(entity_type, m.group(group), m.start(group), m.end(group)))
    return results


def trim_name(match: Match) -> Match | None:
    """Drop leading stopword tokens from a capitalized run.

    The remaining run is cut to ``NAME_MAX_TOKENS`` and its offsets are
    shifted to match. Returns None when fewer than ``NAME_MIN_TOKENS`` remain.
    """
    tokens = list(_TOKEN.finditer(match.raw))
    while tokens and tokens[0].group() in NAME_LEADING_STOPWORDS:
        tokens.pop(0)
    tokens = tokens[:NAME_MAX_TOKENS]
    if len(tokens) < NAME_MIN_TOKENS:
        return None
    lo, hi = tokens[0].start(), tokens[-1].end()
    return Match(match.entity_type, match.raw[lo:hi], match.start + lo, match.start + hi)


def _inside(match: Match, containers: list[Match]) -> bool:
    return any(c.start <= match.start and match.end <= c.end for c in containers)


def classify(
    text: str,
    table: dict[EntityType, tuple[re.Pattern[str], ...]] | None = None,
    max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
) -> list[Match]:
    """Return every raw match of every entity type in ``text``.

    Parameters
    ----------
    text : str
        The text blob to scan.
    table : dict, optional
        Compiled pattern table; defaults to ``PATTERN_TABLE``.
    max_input_chars : int
        Text beyond this length is ignored.

    Returns
    -------
    list[Match]
        Matches ordered by start offset, then by type table order.
    """
    if not text:
        return []
    if table is None:
        table = PATTERN_TABLE
    text = text[:max_input_chars]

    by_type: dict[EntityType, list[Match]] = {}
    for entity_type, patterns in table.items():
        by_type[entity_type] = _matches_for(text, entity_type, patterns)

    if EntityType.NAME in by_type:
        trimmed = (trim_name(m) for m in by_type[EntityType.NAME])
        by_type[EntityType.NAME] = [m for m in trimmed if m is not None]

    containers = [m for t in _DOMAIN_CONTAINERS for m in by_type.get(t, [])]
    if EntityType.DOMAIN in by_type and containers:
        by_type[EntityType.DOMAIN] = [
            m for m in by_type[EntityType.DOMAIN] if not _inside(m, containers)
        ]

    order = {t: i for i, t in enumerate(table)}
    matches = [m for found in by_type.values() for m in found]
    matches.sort(key=lambda m: (m.start, order[m.entity_type]))
    return matches
