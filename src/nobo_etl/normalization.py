from __future__ import annotations

import logging
import os
import re
import unicodedata
from io import StringIO
from typing import Any, Iterable, List, Optional, Sequence

import pandas as pd
from email_validator import EmailNotValidError, validate_email

logger = logging.getLogger(__name__)

_NON_ADDRESS_CHARS = re.compile(r"[^A-Z0-9 ]")
_WHITESPACE = re.compile(r"\s+")
_NUMERIC_TOKEN = re.compile(r"^[+-]?\d+(?:\.\d+)?$")


def clean_address_text(text: Optional[str]) -> Optional[str]:
    """
    Uppercase, strip diacritics and punctuation, collapse whitespace.

    ``&`` becomes ``AND`` before punctuation is dropped. Returns ``None`` for
    ``None`` so that empty slots stay distinguishable from blank ones.
    """
    if text is None:
        return None
    s = str(text).upper().replace("&", " AND")
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = _NON_ADDRESS_CHARS.sub("", s)
    return _WHITESPACE.sub(" ", s).strip()


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def tokens(text: Optional[str]) -> List[str]:
    return [token for token in (text or "").split(" ") if token]


def contains_phrase(words: Sequence[str], phrase: str) -> bool:
    """Whole-word test; a multi-word phrase must appear as a contiguous run."""
    needle = phrase.split()
    if not needle:
        return False
    width = len(needle)
    return any(list(words[i : i + width]) == needle for i in range(len(words) - width + 1))


def first_phrase(words: Sequence[str], phrases: Iterable[str]) -> Optional[str]:
    return next((phrase for phrase in phrases if contains_phrase(words, phrase)), None)


def parses_as_number(token: Optional[str]) -> bool:
    # plain decimal digits only; NAN and INF are words here
    return bool(token) and _NUMERIC_TOKEN.match(token) is not None


def remove_chars(text: str, chars: str) -> str:
    return text.translate({ord(ch): None for ch in chars})


def validate_email_safe(raw: Optional[str], check_deliverability: bool = False) -> Optional[str]:
    candidate = _coerce_to_string(raw)
    if not candidate:
        return None
    try:
        result = validate_email(candidate, check_deliverability=check_deliverability)
    except EmailNotValidError as exc:
        logger.debug("Discarding invalid email %r: %s", candidate, exc)
        return None
    return result.normalized


def read_csv_with_optional_header(
    path: Optional[str], header_starts_with: Optional[str] = None
) -> pd.DataFrame:
    if not path:
        return pd.DataFrame()
    if not header_starts_with:
        return pd.read_csv(path, dtype=str, keep_default_na=False)
    with open(path, "r", encoding="utf-8", errors="ignore") as handle:
        lines = handle.read().splitlines()
    header_idx: Optional[int] = None
    for index, line in enumerate(lines[:100]):
        if line.strip().upper().startswith(header_starts_with.upper()):
            header_idx = index
            break
    if header_idx is None:
        return pd.read_csv(path, dtype=str, keep_default_na=False)
    return pd.read_csv(StringIO("\n".join(lines[header_idx:])), dtype=str, keep_default_na=False)


def _coerce_to_string(value: Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def safe_get(row: Any, key: str) -> str:
    try:
        return _coerce_to_string(row.get(key, ""))
    except (AttributeError, KeyError, TypeError):
        try:
            if hasattr(row, "__contains__") and key in row:
                return _coerce_to_string(row[key])
            return ""
        except (KeyError, TypeError, AttributeError):
            return ""


def warn_missing(path: Optional[str], label: str) -> bool:
    if not path or not os.path.exists(path):
        logger.warning("%s path missing: %s", label, path)
        return True
    return False


def join_non_empty(values: Iterable[Optional[str]], delimiter: str) -> Optional[str]:
    kept = [value for value in values if value]
    return delimiter.join(kept) if kept else None


def unique_in_order(values: Iterable[Any]) -> List[str]:
    seen = set()
    out: List[str] = []
    for value in values:
        if isinstance(value, str) and value and value not in seen:
            seen.add(value)
            out.append(value)
    return out
