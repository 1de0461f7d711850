# site_reader/noise_filter.py
"""
Removal of cookie, consent and privacy boilerplate from extracted page text.

Text is split into blank-line-delimited sections. A section is dropped when
it is short and mentions consent language at all, or when it mentions
consent language repeatedly whatever its length. Surviving sections get
their whitespace collapsed and are joined with a blank line.
"""
from __future__ import annotations

import re
from typing import Final, List, Pattern

__all__ = ("NOISE_PATTERN", "SHORT_SECTION_LIMIT", "clean", "is_noise", "split_sections")

SHORT_SECTION_LIMIT: Final[int] = 1200
REPEATED_MATCHES: Final[int] = 2

NOISE_PATTERN: Final[Pattern[str]] = re.compile(
    r"\b(?:"
    r"cookies?"
    r"|gdpr"
    r"|privacy\s+policy"
    r"|privacy\s+settings"
    r"|consent"
    r"|accept\s+all"
    r"|reject\s+all"
    r"|manage\s+preferences"
    r"|personali[sz]ed\s+ads"
    r"|we\s+value\s+your\s+privacy"
    r"|tracking\s+technologies"
    r")",
    re.IGNORECASE,
)

_SECTION_BREAK = re.compile(r"\n[ \t\f\v]*\n\s*")
_WHITESPACE = re.compile(r"\s+")


def split_sections(text: str) -> List[str]:
    """Split *text* on blank lines; return trimmed, non-empty sections."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return [s.strip() for s in _SECTION_BREAK.split(normalized) if s.strip()]


def is_noise(section: str) -> bool:
    """True if *section* reads as a cookie/consent banner."""
    matches = len(NOISE_PATTERN.findall(section))
    if matches == 0:
        return False
    if len(section) <= SHORT_SECTION_LIMIT:
        return True
    return matches >= REPEATED_MATCHES


def clean(text: str) -> str:
    """Return *text* without boilerplate sections and with collapsed whitespace."""
    if not text:
        return ""
    kept = [
        _WHITESPACE.sub(" ", section).strip()
        for section in split_sections(text)
        if not is_noise(section)
    ]
    return "\n\n".join(s for s in kept if s).strip()
