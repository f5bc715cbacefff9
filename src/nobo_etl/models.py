from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

ADDRESS_SLOT_COUNT = 7

COMPANY = "COMPANY"
INDIVIDUAL = "INDIVIDUAL"

RAW_FIELDS = ("row_id", "name", "postal_code", "email", "language", "share_count")


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        if value != value:  # NaN from pandas
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    return text or None


def address_field(index: int) -> str:
    return f"address_line_{index}"


@dataclass(frozen=True)
class RawInvestorRecord:
    row_id: int
    name: Optional[str] = None
    address_lines: Tuple[Optional[str], ...] = (None,) * ADDRESS_SLOT_COUNT
    postal_code: Optional[str] = None
    email: Optional[str] = None
    language: Optional[str] = None
    share_count: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.row_id, bool) or int(self.row_id) < 1:
            raise ValueError(f"row_id must be a positive integer, got {self.row_id!r}")
        if len(self.address_lines) != ADDRESS_SLOT_COUNT:
            raise ValueError(
                f"expected {ADDRESS_SLOT_COUNT} address lines, got {len(self.address_lines)}"
            )

    @classmethod
    def from_mapping(cls, payload: Dict[str, Any]) -> "RawInvestorRecord":
        if payload.get("row_id") in (None, ""):
            raise ValueError("row_id is required")
        lines = tuple(
            _optional_text(payload.get(address_field(idx)))
            for idx in range(1, ADDRESS_SLOT_COUNT + 1)
        )
        known = set(RAW_FIELDS) | {address_field(idx) for idx in range(1, ADDRESS_SLOT_COUNT + 1)}
        extra = {key: value for key, value in payload.items() if key not in known}
        return cls(
            row_id=int(payload["row_id"]),
            name=_optional_text(payload.get("name")),
            address_lines=lines,
            postal_code=_optional_text(payload.get("postal_code")),
            email=_optional_text(payload.get("email")),
            language=_optional_text(payload.get("language")),
            share_count=_optional_text(payload.get("share_count")),
            extra=extra,
        )

    def address_line(self, index: int) -> Optional[str]:
        return self.address_lines[index - 1]


@dataclass(frozen=True)
class AddressSlot:
    index: int
    raw: Optional[str]
    cleaned: Optional[str]
    is_address: bool
    is_address_final: bool = False


@dataclass(frozen=True)
class MarkerResult:
    fragment: str
    text: Optional[str]
    special_marker_after: Optional[str] = None
    special_marker_before: Optional[str] = None
    representative: Optional[str] = None
    account_type: Optional[str] = None

    @property
    def is_representative(self) -> bool:
        return self.representative is not None


@dataclass(frozen=True)
class CompositeId:
    """
    Hierarchical key ``row_id[_level1[_level2[_level3]]]``.

    Each stage appends exactly one level to its parent's key, so a leaf key
    can be decomposed without consulting the intermediate tables.
    """

    parts: Tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.parts:
            raise ValueError("composite id needs at least a row_id")
        if any(part < 1 for part in self.parts):
            raise ValueError(f"composite id parts must be positive: {self.parts!r}")

    @classmethod
    def parse(cls, value: str) -> "CompositeId":
        text = str(value).strip()
        try:
            return cls(tuple(int(part) for part in text.split("_")))
        except ValueError as exc:
            raise ValueError(f"malformed composite id: {value!r}") from exc

    @classmethod
    def root(cls, row_id: int) -> "CompositeId":
        return cls((int(row_id),))

    def child(self, level: int) -> "CompositeId":
        return CompositeId(self.parts + (int(level),))

    @property
    def row_id(self) -> int:
        return self.parts[0]

    @property
    def depth(self) -> int:
        return len(self.parts) - 1

    def level(self, depth: int) -> Optional[int]:
        return self.parts[depth] if depth < len(self.parts) else None

    def __str__(self) -> str:
        return "_".join(str(part) for part in self.parts)


@dataclass(frozen=True)
class NameFragment:
    row_id: int
    composite_id: CompositeId
    text: str
    level: int


@dataclass(frozen=True)
class CompanyDecision:
    is_company: bool
    company_tag: Optional[str] = None

    @property
    def investor_type(self) -> str:
        return COMPANY if self.is_company else INDIVIDUAL


@dataclass(frozen=True)
class TitleResult:
    name: Optional[str]
    title: Optional[str] = None


@dataclass(frozen=True)
class PostalResult:
    address_consolidated: Optional[str]
    postal_code_extracted: Optional[str] = None
    postal_code_cleaned: Optional[str] = None
    country: Optional[str] = None

    @property
    def postal_code_consolidated(self) -> Optional[str]:
        return self.postal_code_cleaned or self.postal_code_extracted

    @property
    def postal_code_fsa(self) -> Optional[str]:
        postal = self.postal_code_consolidated
        return postal[:3] if postal else None

    @property
    def is_canadian(self) -> bool:
        # a postal code alone is taken as evidence of Canadian origin
        return self.country == "CANADA" or self.postal_code_consolidated is not None

    @property
    def country_consolidated(self) -> Optional[str]:
        return "CANADA" if self.is_canadian else self.country

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address_consolidated": self.address_consolidated,
            "postal_code_consolidated": self.postal_code_consolidated,
            "postal_code_fsa": self.postal_code_fsa,
            "country_consolidated": self.country_consolidated,
            "is_canadian": self.is_canadian,
        }
