from __future__ import annotations

import logging
import re
from typing import List, Optional

from .models import PostalResult
from .normalization import remove_chars, tokens
from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

POSTAL_LENGTH = 6
POSTAL_TAIL_WINDOW = 3
CANADA_TOKEN = "CANADA"

_POSTAL_CANDIDATE = re.compile(r"^[A-Z0-9]{6}$")


def format_postal_code(candidate: Optional[str]) -> Optional[str]:
    """``M5V3L9`` -> ``M5V 3L9``; anything that is not 6 alphanumerics is discarded."""
    if not candidate or not _POSTAL_CANDIDATE.match(candidate):
        if candidate:
            logger.debug("Discarding postal candidate %r", candidate)
        return None
    return f"{candidate[:3]} {candidate[3:]}"


def clean_raw_postal_code(raw: Optional[str]) -> Optional[str]:
    """``h2x-1y4`` -> ``H2X1Y4``; kept unformatted, only the length is checked."""
    if not isinstance(raw, str) or not raw:
        return None
    compact = remove_chars(raw.upper(), " -")
    if len(compact) != POSTAL_LENGTH:
        return None
    return compact


class PostalCodeCountryResolver:
    def __init__(self, vocabulary: Vocabulary = DEFAULT_VOCABULARY):
        self.vocabulary = vocabulary

    def _postal_after_province(self, words: List[str]) -> Optional[str]:
        tail = words[-POSTAL_TAIL_WINDOW:]
        index = next(
            (idx for idx, word in enumerate(tail) if word in self.vocabulary.province_codes),
            None,
        )
        if index is None:
            return None
        after = tail[index + 1 :]
        if len(after) == 2:
            combo = after[0] + after[1]
        elif len(after) == 1:
            combo = after[0]
        else:
            return None
        return format_postal_code(combo)

    @staticmethod
    def _postal_after_country(words: List[str]) -> Optional[str]:
        if CANADA_TOKEN not in words:
            return None
        index = words.index(CANADA_TOKEN)
        first = words[index + 1] if index + 1 < len(words) else ""
        second = words[index + 2] if index + 2 < len(words) else ""
        if len(first) == 3 and len(second) == 3:
            combo = first + second
        elif len(first) == POSTAL_LENGTH:
            combo = first
        else:
            return None
        return format_postal_code(combo)

    def extract_postal_code(self, address: Optional[str]) -> Optional[str]:
        words = tokens((address or "").strip().upper())
        if not words:
            return None
        return self._postal_after_province(words) or self._postal_after_country(words)

    def resolve_country(self, address: Optional[str]) -> Optional[str]:
        text = (address or "").strip().upper()
        if not text:
            return None
        for alias, country in self.vocabulary.country_aliases.items():
            if alias in text:
                return country
        return None

    def resolve(self, address: Optional[str], raw_postal_code: Optional[str] = None) -> PostalResult:
        return PostalResult(
            address_consolidated=address or None,
            postal_code_extracted=self.extract_postal_code(address),
            postal_code_cleaned=clean_raw_postal_code(raw_postal_code),
            country=self.resolve_country(address),
        )


__all__ = [
    "PostalCodeCountryResolver",
    "clean_raw_postal_code",
    "format_postal_code",
]
