"""Per-type normalization and validation of classifier matches.

Pipeline position: classify -> normalize -> validate -> store.

Normalization produces the canonical value used for deduplication:
- phone: digits only
- email: lowercase
- username: strip leading '@', lowercase
- domain: strip scheme and leading 'www.', lowercase
- ipv4: leading zeros dropped per octet

Validation rejects candidates that only look like the type. A value that
fails validation is dropped silently; extraction is best-effort.
"""

from __future__ import annotations

import ipaddress
import re

from nameparser import HumanName

from hivemind.db.models import EntityType
from hivemind.entity.patterns import NAME_LEADING_STOPWORDS

DEFAULT_CONTEXT_RADIUS = 30
ELLIPSIS = "..."

HASH_LENGTHS = frozenset({32, 40, 64})
USERNAME_MIN = 3
USERNAME_MAX = 30
PHONE_MIN_DIGITS = 7

_EMAIL_SHAPE = re.compile(r"^[^\s@]+@[^\s@]+\.[A-Za-z]{2,}$")
_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_URL_TRAILING = ".,;:!?)]}'\""

# File names look like domains to the pattern; these suffixes are never TLDs we care about.
_FILE_SUFFIXES = frozenset({
    "pdf", "jpg", "jpeg", "png", "gif", "svg", "exe", "zip", "txt", "doc",
    "docx", "xls", "xlsx", "html", "htm", "php", "js", "css", "json", "xml",
    "csv", "py", "mp3", "mp4",
})

_NAME_STOP_TOKENS = frozenset({
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
    "Sunday", "January", "February", "March", "April", "June", "July",
    "August", "September", "October", "November", "December",
    "Street", "Avenue", "Road", "Inc", "Ltd", "Corp", "Llc", "University",
    "Company", "Department", "Policy", "Privacy", "Terms", "Service",
    "Services", "News", "Home", "Page", "Copyright", "Reserved",
})
_NAME_STOP_PHRASES = frozenset({
    "united states", "united kingdom", "new york", "los angeles",
    "san francisco", "hong kong", "new zealand", "south africa",
    "middle east", "north america", "south america", "european union",
    "white house", "supreme court", "last updated", "learn more",
    "see also", "all rights", "social media", "open source",
})


# -- Normalization ------------------------------------------------------------

def _digits(value: str) -> str:
    return re.sub(r"\D", "", value)


def normalize(raw: str, entity_type: EntityType) -> str:
    """Return the canonical form of a raw match for its type."""
    value = raw.strip()
    if entity_type == EntityType.PHONE:
        return _digits(value)
    if entity_type == EntityType.EMAIL:
        return value.lower()
    if entity_type == EntityType.USERNAME:
        return value.lstrip("@").lower()
    if entity_type == EntityType.DOMAIN:
        value = _SCHEME.sub("", value)
        if value.lower().startswith("www."):
            value = value[4:]
        return value.rstrip("/").lower()
    if entity_type in (EntityType.URL, EntityType.SOCIAL_URL):
        return value.rstrip(_URL_TRAILING)
    if entity_type in (
        EntityType.HASH, EntityType.HASHTAG, EntityType.UUID,
        EntityType.ETHEREUM_ADDRESS, EntityType.IP_V6,
    ):
        return value.lower()
    if entity_type == EntityType.IP_V4:
        parts = value.split(".")
        if all(part.isdigit() for part in parts):
            return ".".join(str(int(part)) for part in parts)
        return value
    if entity_type == EntityType.MAC_ADDRESS:
        return value.replace("-", ":").lower()
    if entity_type == EntityType.CREDIT_CARD:
        return _digits(value)
    if entity_type == EntityType.SSN:
        digits = _digits(value)
        return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}" if len(digits) == 9 else digits
    if entity_type == EntityType.COORDINATE:
        return ",".join(part.strip() for part in value.split(","))
    if entity_type == EntityType.NAME:
        return " ".join(value.split())
    return value


# -- Validation ---------------------------------------------------------------

def _valid_ipv4(value: str) -> bool:
    parts = value.split(".")
    if len(parts) != 4:
        return False
    for part in parts:
        if not part.isdigit() or not 0 <= int(part) <= 255:
            return False
    return True


def _valid_ipv6(value: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(value), ipaddress.IPv6Address)
    except ValueError:
        return False


def _luhn(digits: str) -> bool:
    total = 0
    for i, ch in enumerate(reversed(digits)):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def _valid_ssn(value: str) -> bool:
    digits = _digits(value)
    if len(digits) != 9:
        return False
    area, group, serial = digits[:3], digits[3:5], digits[5:]
    if area in ("000", "666") or area.startswith("9"):
        return False
    return group != "00" and serial != "0000"


def _valid_coordinate(value: str) -> bool:
    try:
        lat_s, lon_s = value.split(",")
        lat, lon = float(lat_s), float(lon_s)
    except ValueError:
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def _valid_domain(value: str) -> bool:
    if "." not in value or len(value) > 253:
        return False
    tld = value.rsplit(".", 1)[1]
    return tld.isalpha() and tld not in _FILE_SUFFIXES


def _valid_name(value: str) -> bool:
    """Accept plausible two/three-token capitalized names."""
    tokens = value.split()
    if not 2 <= len(tokens) <= 3:
        return False
    if tokens[0] in NAME_LEADING_STOPWORDS:
        return False
    if any(token in _NAME_STOP_TOKENS for token in tokens):
        return False
    lowered = value.lower()
    if any(phrase in lowered for phrase in _NAME_STOP_PHRASES):
        return False
    parsed = HumanName(value)
    return bool(parsed.first) and bool(parsed.last)


def validate(value: str, entity_type: EntityType) -> bool:
    """Return True when a canonical value is acceptable for its type."""
    if not value:
        return False
    if entity_type == EntityType.PHONE:
        return len(_digits(value)) >= PHONE_MIN_DIGITS
    if entity_type == EntityType.EMAIL:
        return bool(_EMAIL_SHAPE.match(value))
    if entity_type == EntityType.USERNAME:
        return USERNAME_MIN <= len(value) <= USERNAME_MAX
    if entity_type == EntityType.IP_V4:
        return _valid_ipv4(value)
    if entity_type == EntityType.IP_V6:
        return _valid_ipv6(value)
    if entity_type == EntityType.HASH:
        return len(value) in HASH_LENGTHS
    if entity_type == EntityType.DOMAIN:
        return _valid_domain(value)
    if entity_type == EntityType.CREDIT_CARD:
        return 13 <= len(value) <= 19 and value.isdigit() and _luhn(value)
    if entity_type == EntityType.SSN:
        return _valid_ssn(value)
    if entity_type == EntityType.COORDINATE:
        return _valid_coordinate(value)
    if entity_type == EntityType.NAME:
        return _valid_name(value)
    return True


# -- Context ------------------------------------------------------------------

def extract_context(
    text: str, start: int, end: int, radius: int = DEFAULT_CONTEXT_RADIUS,
) -> str:
    """Return the text surrounding ``text[start:end]``.

    The window spans ``radius`` characters on each side. A side cut short of
    the text boundary is marked with an ellipsis. Internal whitespace is
    collapsed to single spaces.
    """
    lo = max(0, start - radius)
    hi = min(len(text), end + radius)
    window = " ".join(text[lo:hi].split())
    if lo > 0:
        window = ELLIPSIS + window
    if hi < len(text):
        window = window + ELLIPSIS
    return window
