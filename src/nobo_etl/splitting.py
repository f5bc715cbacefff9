from __future__ import annotations

from typing import List, Optional, Sequence

from .models import CompositeId, NameFragment

SPLIT_TOKEN = "|"


def normalize_connectors(
    text: Optional[str], connectors: Sequence[str], token: str = SPLIT_TOKEN
) -> str:
    """
    Uppercase ``text`` and replace every connector phrase with ``token``.

    Replacements accumulate in list order, each one applied to the output of
    the previous, so longer phrases must come before their substrings.
    """
    state = (text or "").upper()
    for connector in connectors:
        state = state.replace(connector, token)
    return state


def clean_piece(piece: str) -> str:
    return piece.strip().rstrip(".").strip()


class NameFragmentSplitter:
    def __init__(self, connectors: Sequence[str], token: str = SPLIT_TOKEN):
        self.connectors = tuple(connectors)
        self.token = token

    def split_text(self, text: Optional[str]) -> List[str]:
        normalized = normalize_connectors(text, self.connectors, self.token)
        return [clean_piece(piece) for piece in normalized.split(self.token)]

    def expand(self, parent: CompositeId, text: Optional[str]) -> List[NameFragment]:
        return number_pieces(parent, self.split_text(text))


def number_pieces(parent: CompositeId, pieces: Sequence[str]) -> List[NameFragment]:
    """Assign 1-based levels in occurrence order and extend the parent key."""
    return [
        NameFragment(
            row_id=parent.row_id,
            composite_id=parent.child(level),
            text=piece,
            level=level,
        )
        for level, piece in enumerate(pieces, start=1)
    ]


def split_on_delimiter(text: Optional[str], delimiter: str) -> List[str]:
    return [piece.strip() for piece in (text or "").split(delimiter)]


__all__ = [
    "NameFragmentSplitter",
    "SPLIT_TOKEN",
    "clean_piece",
    "normalize_connectors",
    "number_pieces",
    "split_on_delimiter",
]
