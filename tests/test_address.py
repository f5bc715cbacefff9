from nobo_etl.address import AddressFieldClassifier
from nobo_etl.common import clean_address_text
from nobo_etl.models import RawInvestorRecord


def _record(name, *lines):
    padded = tuple(lines) + (None,) * (7 - len(lines))
    return RawInvestorRecord(row_id=1, name=name, address_lines=padded)


def test_clean_address_text_is_idempotent():
    cleaned = clean_address_text("Café & Bar, 12-B Rue St-Denis")
    assert cleaned == "CAFE AND BAR 12B RUE STDENIS"
    assert clean_address_text(cleaned) == cleaned
    assert clean_address_text(None) is None


def test_is_address_rules():
    classifier = AddressFieldClassifier()
    assert classifier.is_address("123 Main St") is True
    assert classifier.is_address("Suite Alpha") is True
    assert classifier.is_address("Toronto ON") is True
    assert classifier.is_address("Central Hong Kong") is True
    assert classifier.is_address("Hongkong Garden") is False
    assert classifier.is_address("Jane Doe") is False
    assert classifier.is_address("Nan Li") is False
    assert classifier.is_address("Infinity Trust") is False
    assert classifier.is_address("Inf Holdings") is False
    assert classifier.is_address("12.5 Main St") is True
    assert classifier.is_address("") is False
    assert classifier.is_address(None) is False


def test_address_flags_are_monotonic():
    classifier = AddressFieldClassifier()
    record = _record("JOHN DOE", "ATTN: MARY", "123 MAIN ST", "TORONTO")
    slots = classifier.classify_slots(record)
    assert [slot.is_address for slot in slots[:3]] == [False, True, False]
    assert [slot.is_address_final for slot in slots] == [False] + [True] * 6
    # empty slots never count as address content on their own
    assert all(slot.is_address is False for slot in slots[3:])


def test_name_blob_and_consolidated_address():
    classifier = AddressFieldClassifier()
    record = _record("JOHN DOE", "ATTN: MARY", "123 Main St.", "Toronto ON M5V 3L9")
    slots = classifier.classify_slots(record)
    assert classifier.harvest_name_blob(record, slots) == "JOHN DOE | ATTN: MARY"
    assert classifier.consolidate_address(slots) == "123 MAIN ST TORONTO ON M5V 3L9"


def test_name_blob_skips_missing_name():
    classifier = AddressFieldClassifier()
    record = _record(None, "ACME CAPITAL INC", "1 BAY ST")
    slots = classifier.classify_slots(record)
    assert classifier.harvest_name_blob(record, slots) == "ACME CAPITAL INC"
