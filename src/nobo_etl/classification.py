from __future__ import annotations

import re
from typing import Optional

from .models import CompanyDecision, TitleResult
from .normalization import contains_phrase, first_phrase
from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

SHORT_CODE_MAX_LENGTH = 8

_HAS_LETTER = re.compile(r"[A-Z]")
_HAS_DIGIT = re.compile(r"[0-9]")


class CompanyClassifier:
    def __init__(self, vocabulary: Vocabulary = DEFAULT_VOCABULARY):
        self.vocabulary = vocabulary

    def has_company_keyword(self, name: Optional[str]) -> bool:
        words = (name or "").upper().split(" ")
        return any(contains_phrase(words, keyword) for keyword in self.vocabulary.company_keywords)

    @staticmethod
    def is_short_code(name: Optional[str]) -> bool:
        """Nominee / street-name account codes such as ``4F3AB``."""
        upper = (name or "").upper()
        return (
            0 < len(upper) <= SHORT_CODE_MAX_LENGTH
            and bool(_HAS_DIGIT.search(upper))
            and bool(_HAS_LETTER.search(upper))
        )

    def company_tag(self, name: Optional[str]) -> Optional[str]:
        words = (name or "").upper().split(" ")
        return first_phrase(words, self.vocabulary.company_keywords)

    def classify(self, name: Optional[str]) -> CompanyDecision:
        is_company = self.has_company_keyword(name) or self.is_short_code(name)
        return CompanyDecision(is_company=is_company, company_tag=self.company_tag(name))


class TitleExtractor:
    def __init__(self, vocabulary: Vocabulary = DEFAULT_VOCABULARY):
        self.titles = vocabulary.titles_longest_first

    def detect(self, name: Optional[str]) -> Optional[str]:
        upper = (name or "").upper()
        return next((title for title in self.titles if upper.startswith(title)), None)

    def extract(self, name: Optional[str]) -> TitleResult:
        title = self.detect(name)
        if title is None:
            return TitleResult(name=name, title=None)
        # the title and the single separator after it
        return TitleResult(name=(name or "")[len(title) + 1 :].strip(), title=title)


__all__ = ["CompanyClassifier", "SHORT_CODE_MAX_LENGTH", "TitleExtractor"]
