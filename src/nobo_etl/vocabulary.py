from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

ADDRESS_WORDS = (
    "ST",
    "STREET",
    "AVE",
    "AVENUE",
    "BLVD",
    "ROAD",
    "RD",
    "PL",
    "PLACE",
    "DR",
    "DRIVE",
    "UNIT",
    "PKWY",
    "PARKWAY",
    "LANE",
    "LN",
    "CRT",
    "COURT",
    "CRES",
    "CRESCENT",
    "BAY",
    "STR",
    "HOUSE",
    "FLOOR",
    "WAY",
    "TERRACE",
    "TRAIL",
    "COVE",
    "APT",
    "SUITE",
    "BOX",
    "RR",
    "SQUARE",
    "HONG KONG",
    "HONG KONG HONG KONG",
)

PROVINCE_CODES = ("AB", "BC", "MB", "NB", "NL", "NS", "NT", "NU", "ON", "PE", "QC", "SK", "YT")

SPECIAL_CODES = (
    "4E9",
    "4F3",
    "2C1",
    "A/S",
    "C/O",
    "CO",
    "TR",
    "RR",
    "ITF",
    "FBO",
    "U/A",
    "U/T",
    "**",
    "*",
)

REPRESENTATIVE_INDICATORS = ("ATTN", "C/O", "CO", "FOR", "A/S", "IN TRUST FOR", "AS", "ATT")

ACCOUNT_TYPES = (
    "JTWROS",
    "JT/WROS",
    "SPOUSAL",
    "SPOUSAL PLAN",
    "TRUST",
    "RRSP",
    "TFSA",
    "ESTATE OF",
    "ESTATE",
    "DIVIDEND REINVESTMENT",
    "REINVESTMENT",
    "DIVIDEND",
)

# Order is tag precedence.
COMPANY_KEYWORDS = (
    "INC",
    "LTD",
    "CORP",
    "ENTERPRISES",
    "INVESTMENTS",
    "LLP",
    "L P",
    "FOUND",
    "CAPITAL",
    "CORPORATION",
    "FOUNDATION",
    "VALUE",
    "FUND",
    "LP",
)

TITLES = ("MADAM", "MISS", "MRS", "DR", "SIR", "MS", "MR")

# Most specific phrase first; replacements accumulate left to right.
LEVEL1_CONNECTORS = (" AND / OR ", " AND/OR ", " AND OR ", " AND/O ", " ANDOR ", " OR ")
LEVEL2_CONNECTORS = (" AND/OR ", " AND OR ", " ANDOR ", " AND ", " OR ")

# Iteration order decides which alias wins.
COUNTRY_ALIASES = {
    "CANADA": "CANADA",
    "USA": "UNITED STATES",
    "UNITED STATES": "UNITED STATES",
    "UK": "UNITED KINGDOM",
    "UNITED KINGDOM": "UNITED KINGDOM",
    "GERMANY": "GERMANY",
    "AUSTRALIA": "AUSTRALIA",
    "UAE": "UNITED ARAB EMIRATES",
    "UNITED ARAB EMIRATES": "UNITED ARAB EMIRATES",
    "HONG KONG": "HONG KONG",
    "BRAZIL": "BRAZIL",
    "FRANCE": "FRANCE",
    "JAPAN": "JAPAN",
    "CHINA": "CHINA",
    "SPAIN": "SPAIN",
    "INDIA": "INDIA",
    "CAYMAN": "CAYMAN ISLANDS",
    "ABU DHABI": "UNITED ARAB EMIRATES",
    "QATAR": "QATAR",
    "SWITZERLAND": "SWITZERLAND",
    "NETHERLANDS": "NETHERLANDS",
}


def _upper_tuple(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(str(value).upper() for value in values if str(value).strip())


@dataclass(frozen=True)
class Vocabulary:
    address_words: Tuple[str, ...] = ADDRESS_WORDS
    province_codes: Tuple[str, ...] = PROVINCE_CODES
    special_codes: Tuple[str, ...] = SPECIAL_CODES
    representative_indicators: Tuple[str, ...] = REPRESENTATIVE_INDICATORS
    account_types: Tuple[str, ...] = ACCOUNT_TYPES
    company_keywords: Tuple[str, ...] = COMPANY_KEYWORDS
    titles: Tuple[str, ...] = TITLES
    level1_connectors: Tuple[str, ...] = LEVEL1_CONNECTORS
    level2_connectors: Tuple[str, ...] = LEVEL2_CONNECTORS
    country_aliases: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(COUNTRY_ALIASES))
    )

    @property
    def titles_longest_first(self) -> Tuple[str, ...]:
        # sorted() is stable, so equal-length titles keep their listed order
        return tuple(sorted(self.titles, key=len, reverse=True))

    @classmethod
    def from_overrides(cls, overrides: Optional[Dict[str, Any]]) -> "Vocabulary":
        """
        Build a vocabulary where each provided key replaces the default table.

        Unknown keys are rejected so that a typo in ``config.yaml`` does not
        silently fall back to the defaults.
        """
        overrides = dict(overrides or {})
        known = {name for name in cls.__dataclass_fields__}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown vocabulary table(s): {', '.join(unknown)}")

        values: Dict[str, Any] = {}
        for name, value in overrides.items():
            if value is None:
                continue
            if name == "country_aliases":
                values[name] = MappingProxyType(
                    {str(alias).upper(): str(country).upper() for alias, country in value.items()}
                )
            elif name.endswith("_connectors"):
                # connectors carry their surrounding spaces
                values[name] = tuple(str(item).upper() for item in value if str(item))
            else:
                values[name] = _upper_tuple(value)
        return cls(**values)


DEFAULT_VOCABULARY = Vocabulary()

__all__ = [
    "ACCOUNT_TYPES",
    "ADDRESS_WORDS",
    "COMPANY_KEYWORDS",
    "COUNTRY_ALIASES",
    "DEFAULT_VOCABULARY",
    "LEVEL1_CONNECTORS",
    "LEVEL2_CONNECTORS",
    "PROVINCE_CODES",
    "REPRESENTATIVE_INDICATORS",
    "SPECIAL_CODES",
    "TITLES",
    "Vocabulary",
]
