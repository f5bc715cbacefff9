from __future__ import annotations

import logging
import re
from typing import List, Optional

from .models import MarkerResult
from .normalization import collapse_whitespace, contains_phrase, remove_chars, tokens
from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

LEADING_MARKER = ">"
REPRESENTATIVE_PUNCTUATION = ":,.()-_"
ACCOUNT_MATCH_PUNCTUATION = "().,-_"

_HAS_LETTER = re.compile(r"[A-Z]")
_HAS_DIGIT = re.compile(r"[0-9]")
_ALNUM_ONLY = re.compile(r"^[A-Z0-9]+$")


class SpecialMarkerEngine:
    """
    Strip trailing codes and ``>`` prefixes, then separate representative
    lines (``ATTN``, ``C/O``...) from name candidates and pull account-type
    phrases out of the names that remain.
    """

    def __init__(self, vocabulary: Vocabulary = DEFAULT_VOCABULARY):
        self.vocabulary = vocabulary

    def trailing_code(self, fragment: Optional[str]) -> Optional[str]:
        words = tokens((fragment or "").strip().upper())
        if not words:
            return None
        last = words[-1]
        is_listed = last in self.vocabulary.special_codes
        is_code_pattern = len(last) <= 5 and (
            bool(_HAS_LETTER.search(last) and _HAS_DIGIT.search(last)) or "*" in last
        )
        # long pure-alphanumeric tails are company suffixes, not codes
        is_corporate_like = len(last) > 4 and bool(_ALNUM_ONLY.match(last))
        if (is_listed or is_code_pattern) and not is_corporate_like:
            return last
        return None

    @staticmethod
    def leading_marker(fragment: Optional[str]) -> Optional[str]:
        text = (fragment or "").strip()
        return LEADING_MARKER if text.startswith(LEADING_MARKER) else None

    def is_representative(self, text: Optional[str]) -> bool:
        if not text:
            return False
        words = remove_chars(text.strip(), REPRESENTATIVE_PUNCTUATION).upper().split(" ")
        return any(
            contains_phrase(words, indicator)
            for indicator in self.vocabulary.representative_indicators
        )

    def account_types(self, text: Optional[str]) -> List[str]:
        if not text:
            return []
        cleaned = remove_chars(text, ACCOUNT_MATCH_PUNCTUATION).upper()
        return [keyword for keyword in self.vocabulary.account_types if keyword in cleaned]

    @staticmethod
    def strip_account_types(text: str, matches: List[str]) -> str:
        stripped = text.upper()
        # longest first so "SPOUSAL PLAN" is not cut down to "PLAN"
        for keyword in sorted(matches, key=len, reverse=True):
            stripped = stripped.replace(keyword, "")
        return collapse_whitespace(stripped)

    def extract(self, fragment: Optional[str]) -> MarkerResult:
        original = fragment or ""
        upper = original.strip().upper()
        after = self.trailing_code(upper)
        before = self.leading_marker(upper)

        working = upper[1:] if before else upper
        words = working.split(" ")
        if after is not None and words and words[-1] == after:
            words = words[:-1]
        working = " ".join(words).strip()

        if self.is_representative(working):
            logger.debug("Representative fragment: %s", working)
            return MarkerResult(
                fragment=original,
                text=None,
                special_marker_after=after,
                special_marker_before=before,
                representative=working,
            )

        matches = self.account_types(working)
        return MarkerResult(
            fragment=original,
            text=self.strip_account_types(working, matches) if matches else working,
            special_marker_after=after,
            special_marker_before=before,
            account_type=", ".join(matches) if matches else None,
        )


__all__ = ["SpecialMarkerEngine"]
