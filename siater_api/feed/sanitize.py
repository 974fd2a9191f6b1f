from __future__ import annotations

import html
import re

from bs4 import BeautifulSoup

_DECIMAL_PREFIX_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_INTEGER_PREFIX_RE = re.compile(r"^[+-]?\d+")

SAFE_TAGS = frozenset(
    {
        "a", "b", "blockquote", "br", "em", "h1", "h2", "h3", "h4", "h5", "h6",
        "hr", "i", "li", "ol", "p", "span", "strong", "sub", "sup", "table",
        "tbody", "td", "th", "thead", "tr", "u", "ul",
    }
)
SAFE_ATTRIBUTES = {"a": frozenset({"href", "title"})}
_DROPPED_WITH_CONTENT = ("script", "style", "iframe", "object", "embed")


def to_decimal(value: str) -> float:
    """Parse a supplier decimal ("12,50") the lenient way: leading number or 0.0."""

    normalized = value.strip().replace(",", ".")
    match = _DECIMAL_PREFIX_RE.match(normalized)
    if match is None:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def to_integer(value: str) -> int:
    match = _INTEGER_PREFIX_RE.match(value.strip())
    return int(match.group(0)) if match else 0


def strip_markup(value: str) -> str:
    text = html.unescape(value)
    if "<" not in text:
        return text.strip()
    soup = BeautifulSoup(text, "html.parser")
    for element in soup(_DROPPED_WITH_CONTENT):
        element.decompose()
    return " ".join(soup.get_text(separator=" ").split())


def clean_rich_text(value: str) -> str:
    """Decode entities and keep only a small formatting subset of HTML."""

    text = html.unescape(value)
    if "<" not in text:
        return text.strip()
    soup = BeautifulSoup(text, "html.parser")
    for element in soup(_DROPPED_WITH_CONTENT):
        element.decompose()
    for tag in soup.find_all(True):
        if tag.name not in SAFE_TAGS:
            tag.unwrap()
            continue
        allowed = SAFE_ATTRIBUTES.get(tag.name, frozenset())
        tag.attrs = {
            name: attr_value
            for name, attr_value in tag.attrs.items()
            if name in allowed and not _is_script_url(attr_value)
        }
    return str(soup).strip()


def _is_script_url(value: object) -> bool:
    return isinstance(value, str) and value.strip().lower().startswith("javascript:")
