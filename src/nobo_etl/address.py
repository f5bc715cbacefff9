from __future__ import annotations

from typing import List, Optional, Sequence

from .models import ADDRESS_SLOT_COUNT, AddressSlot, RawInvestorRecord
from .normalization import clean_address_text, contains_phrase, parses_as_number, tokens
from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

NAME_BLOB_DELIMITER = " | "


class AddressFieldClassifier:
    def __init__(self, vocabulary: Vocabulary = DEFAULT_VOCABULARY):
        self.vocabulary = vocabulary

    def is_address(self, text: Optional[str]) -> bool:
        cleaned = clean_address_text(text)
        if not cleaned:
            return False
        words = tokens(cleaned)
        if any(ch.isdigit() for ch in cleaned):
            return True
        if any(contains_phrase(words, word) for word in self.vocabulary.address_words):
            return True
        if any(contains_phrase(words, code) for code in self.vocabulary.province_codes):
            return True
        return parses_as_number(words[0] if words else None)

    def classify_slots(self, record: RawInvestorRecord) -> List[AddressSlot]:
        slots: List[AddressSlot] = []
        seen_address = False
        for index in range(1, ADDRESS_SLOT_COUNT + 1):
            raw = record.address_line(index)
            local = self.is_address(raw)
            # once an address line is seen, every later line is address content
            seen_address = seen_address or local
            slots.append(
                AddressSlot(
                    index=index,
                    raw=raw,
                    cleaned=clean_address_text(raw),
                    is_address=local,
                    is_address_final=seen_address,
                )
            )
        return slots

    @staticmethod
    def harvest_name_blob(record: RawInvestorRecord, slots: Sequence[AddressSlot]) -> str:
        parts = [record.name] + [slot.raw for slot in slots if not slot.is_address_final]
        return NAME_BLOB_DELIMITER.join(part for part in parts if part)

    @staticmethod
    def consolidate_address(slots: Sequence[AddressSlot]) -> str:
        return " ".join(slot.cleaned for slot in slots if slot.is_address_final and slot.cleaned)


__all__ = ["AddressFieldClassifier", "NAME_BLOB_DELIMITER"]
