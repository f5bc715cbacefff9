from __future__ import annotations

import argparse
import csv
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .address import NAME_BLOB_DELIMITER, AddressFieldClassifier
from .classification import CompanyClassifier, TitleExtractor
from .common import ensure_investor_record, load_config
from .config_loader import PipelineConfig
from .hierarchy import (
    HierarchyPivotMerger,
    account_type_summary,
    investor_type_summary,
)
from .logging_utils import configure_logging
from .markers import SpecialMarkerEngine
from .models import (
    ADDRESS_SLOT_COUNT,
    COMPANY,
    INDIVIDUAL,
    CompositeId,
    RawInvestorRecord,
    address_field,
)
from .normalization import (
    read_csv_with_optional_header,
    safe_get,
    validate_email_safe,
    warn_missing,
)
from .postal import PostalCodeCountryResolver
from .splitting import NameFragmentSplitter, number_pieces, split_on_delimiter

logger = logging.getLogger(__name__)

ROSTER_HEADERS = {
    "NAME": "name",
    "POSTAL CODE": "postal_code",
    "E-MAIL ADDRESS": "email",
    "EMAIL": "email",
    "LANGUAGE": "language",
    "NUMBER OF SHARES": "share_count",
    "INVESTOR_ROW_ID": "row_id",
    "ROW_ID": "row_id",
}
ROSTER_HEADERS.update({f"ADDRESS {idx}": address_field(idx) for idx in range(1, 8)})

LEAF_COLUMNS = ["composite_id", "investor", "investor_type_final", "company_tag", "title_extracted"]

OUTPUT_COLUMNS = [
    "composite_id",
    "row_id",
    "level1",
    "level2",
    "level3",
    "investor_position",
    "investor",
    "investor_type_final",
    "company_tag",
    "title_extracted",
]
SUMMARY_COLUMNS = [
    "investor_master",
    "account_type_consolidated",
    "representative_consolidated",
    "special_markers",
    "investor_type_consolidated",
    "investor_count",
    "address_consolidated",
    "postal_code_consolidated",
    "postal_code_fsa",
    "country_consolidated",
    "is_canadian",
    "email_consolidated",
    "language",
    "share_count",
]

AMPERSAND_ENTITY = "&amp;"


@dataclass
class PipelineResult:
    address: pd.DataFrame
    fragments: pd.DataFrame
    level1: pd.DataFrame
    level2: pd.DataFrame
    leaves: pd.DataFrame
    master: pd.DataFrame


def _field_name(header: str) -> str:
    key = (header or "").strip().upper()
    if key in ROSTER_HEADERS:
        return ROSTER_HEADERS[key]
    return re.sub(r"[^a-z0-9]+", "_", key.lower()).strip("_")


def _ensure_unique_row_ids(records: Sequence[RawInvestorRecord]) -> None:
    seen = set()
    duplicates = []
    for record in records:
        if record.row_id in seen:
            duplicates.append(record.row_id)
        seen.add(record.row_id)
    if duplicates:
        listed = ", ".join(str(value) for value in sorted(set(duplicates))[:5])
        raise ValueError(f"duplicate row_id detected in roster: {listed}")


def load_investor_roster(
    path: Optional[str], header_starts_with: Optional[str] = None
) -> List[RawInvestorRecord]:
    if not path:
        return []
    if warn_missing(path, "Investor roster"):
        return []
    df = read_csv_with_optional_header(path, header_starts_with=header_starts_with)
    df = df.rename(columns={column: _field_name(column) for column in df.columns})
    if "name" not in df.columns:
        raise ValueError(f"roster {path} has no NAME column")

    records: List[RawInvestorRecord] = []
    for idx, row in enumerate(df.to_dict("records"), start=1):
        payload: Dict[str, Any] = {column: safe_get(row, column) for column in df.columns}
        if not payload.get("row_id"):
            payload["row_id"] = idx
        records.append(RawInvestorRecord.from_mapping(payload))
    _ensure_unique_row_ids(records)
    logger.info("Loaded %d investor rows from %s", len(records), path)
    return records


def stage_address_detection(
    records: Sequence[RawInvestorRecord], classifier: AddressFieldClassifier
) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for record in records:
        slots = classifier.classify_slots(record)
        row: Dict[str, Any] = {"row_id": record.row_id, "name": record.name}
        for slot in slots:
            row[f"address_{slot.index}"] = slot.cleaned
        for slot in slots:
            row[f"is_address_{slot.index}"] = slot.is_address
        for slot in slots:
            row[f"is_address_{slot.index}_final"] = slot.is_address_final
        row["name_blob"] = classifier.harvest_name_blob(record, slots)
        row["address_consolidated"] = classifier.consolidate_address(slots)
        row["postal_code"] = record.postal_code
        row["email"] = record.email
        row["language"] = record.language
        row["share_count"] = record.share_count
        row.update({key: value for key, value in record.extra.items() if key not in row})
        rows.append(row)
    logger.info("Address detection: %d rows", len(rows))
    return pd.DataFrame(rows)


def stage_name_fragments(address: pd.DataFrame, engine: SpecialMarkerEngine) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for record in address.to_dict("records"):
        pieces = split_on_delimiter(record.get("name_blob"), NAME_BLOB_DELIMITER)
        for part_index, piece in enumerate(pieces, start=1):
            result = engine.extract(piece)
            rows.append(
                {
                    "row_id": record["row_id"],
                    "part_index": part_index,
                    "fragment_raw": result.fragment,
                    "special_marker_after": result.special_marker_after,
                    "special_marker_before": result.special_marker_before,
                    "representative": result.representative,
                    "account_type": result.account_type,
                    "name_part": result.text,
                }
            )
    logger.info("Name fragments: %d fragments", len(rows))
    return pd.DataFrame(
        rows,
        columns=[
            "row_id",
            "part_index",
            "fragment_raw",
            "special_marker_after",
            "special_marker_before",
            "representative",
            "account_type",
            "name_part",
        ],
    )


def stage_level1(
    fragments: pd.DataFrame, splitter: NameFragmentSplitter, max_parts: int
) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for row_id, chunk in fragments.groupby("row_id", sort=False):
        by_position = dict(zip(chunk["part_index"], chunk["name_part"]))
        dropped = [
            part
            for position, part in by_position.items()
            if position > max_parts and isinstance(part, str) and part
        ]
        if dropped:
            logger.debug(
                "Row %s: dropping %d name parts beyond position %d", row_id, len(dropped), max_parts
            )
        aggregated = " ".join(
            by_position[position]
            for position in range(1, max_parts + 1)
            if isinstance(by_position.get(position), str) and by_position[position]
        )
        for fragment in splitter.expand(CompositeId.root(int(row_id)), aggregated):
            rows.append(
                {
                    "composite_1": str(fragment.composite_id),
                    "row_id": fragment.row_id,
                    "level1": fragment.level,
                    "investor_name": fragment.text,
                }
            )
    logger.info("Level-1 split: %d names", len(rows))
    return pd.DataFrame(rows, columns=["composite_1", "row_id", "level1", "investor_name"])


def stage_level2(
    level1: pd.DataFrame, splitter: NameFragmentSplitter, classifier: CompanyClassifier
) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for record in level1.to_dict("records"):
        parent = CompositeId.parse(record["composite_1"])
        for fragment in splitter.expand(parent, record["investor_name"]):
            decision = classifier.classify(fragment.text)
            rows.append(
                {
                    "composite_2": str(fragment.composite_id),
                    "row_id": fragment.row_id,
                    "investor_name": fragment.text,
                    "company_tag": decision.company_tag,
                    "investor_type": decision.investor_type,
                }
            )
    frame = pd.DataFrame(
        rows, columns=["composite_2", "row_id", "investor_name", "company_tag", "investor_type"]
    )
    logger.info(
        "Level-2 split: %d names (%d company)",
        len(frame),
        int((frame["investor_type"] == COMPANY).sum()) if not frame.empty else 0,
    )
    return frame


def stage_company_branch(level2: pd.DataFrame) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for record in level2[level2["investor_type"] == COMPANY].to_dict("records"):
        rows.append(
            {
                # companies are not split further
                "composite_id": str(CompositeId.parse(record["composite_2"]).child(1)),
                "investor": record["investor_name"],
                "investor_type_final": COMPANY,
                "company_tag": record["company_tag"],
                "title_extracted": None,
            }
        )
    return pd.DataFrame(rows, columns=LEAF_COLUMNS)


def stage_individual_branch(level2: pd.DataFrame, extractor: TitleExtractor) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for record in level2[level2["investor_type"] == INDIVIDUAL].to_dict("records"):
        name = (record["investor_name"] or "").replace(AMPERSAND_ENTITY, "&")
        parent = CompositeId.parse(record["composite_2"])
        for fragment in number_pieces(parent, split_on_delimiter(name, "&")):
            result = extractor.extract(fragment.text)
            rows.append(
                {
                    "composite_id": str(fragment.composite_id),
                    "investor": result.name,
                    "investor_type_final": INDIVIDUAL,
                    "company_tag": None,
                    "title_extracted": result.title,
                }
            )
    return pd.DataFrame(rows, columns=LEAF_COLUMNS)


def stage_union(company: pd.DataFrame, individual: pd.DataFrame) -> pd.DataFrame:
    frames = [frame for frame in (company, individual) if not frame.empty]
    if not frames:
        return pd.DataFrame(columns=LEAF_COLUMNS)
    return pd.concat(frames, ignore_index=True)


def stage_address_consolidation(
    address: pd.DataFrame,
    resolver: PostalCodeCountryResolver,
    check_deliverability: bool = False,
) -> pd.DataFrame:
    internal = {"name", "name_blob", "postal_code", "email", "address_consolidated"}
    internal.update(f"address_{idx}" for idx in range(1, ADDRESS_SLOT_COUNT + 1))
    internal.update(f"is_address_{idx}" for idx in range(1, ADDRESS_SLOT_COUNT + 1))
    internal.update(f"is_address_{idx}_final" for idx in range(1, ADDRESS_SLOT_COUNT + 1))

    rows: List[Dict[str, Any]] = []
    for record in address.to_dict("records"):
        result = resolver.resolve(
            safe_get(record, "address_consolidated") or None,
            safe_get(record, "postal_code") or None,
        )
        row: Dict[str, Any] = {"row_id": record["row_id"]}
        row.update(result.to_dict())
        row["email_consolidated"] = validate_email_safe(
            safe_get(record, "email"), check_deliverability=check_deliverability
        )
        row.update({key: value for key, value in record.items() if key not in internal and key not in row})
        rows.append(row)
    frame = pd.DataFrame(rows)
    logger.info(
        "Address consolidation: %d rows, %d with postal code",
        len(frame),
        int(frame["postal_code_consolidated"].notna().sum()) if not frame.empty else 0,
    )
    return frame


def stage_master(
    leaves: pd.DataFrame,
    fragments: pd.DataFrame,
    consolidated_address: pd.DataFrame,
    merger: HierarchyPivotMerger,
) -> pd.DataFrame:
    decomposed = merger.decompose_leaves(leaves)
    if decomposed.empty:
        return pd.DataFrame(columns=OUTPUT_COLUMNS + SUMMARY_COLUMNS)
    master = merger.merge(
        decomposed,
        [
            account_type_summary(fragments),
            investor_type_summary(decomposed),
            consolidated_address,
        ],
    )
    duplicates = master[master["composite_id"].duplicated(keep=False)]
    if not duplicates.empty:
        duplicate_ids = ", ".join(sorted(duplicates["composite_id"].unique())[:5])
        raise ValueError(f"duplicate composite_id detected in master output: {duplicate_ids}")

    position_columns = [col for col in master.columns if re.fullmatch(r"investor_\d+", col)]
    ordered = OUTPUT_COLUMNS + position_columns + SUMMARY_COLUMNS
    ordered = [col for col in ordered if col in master.columns]
    passthrough = [col for col in master.columns if col not in ordered]
    return master[ordered + passthrough]


def run_pipeline(
    records: Sequence[RawInvestorRecord], config: Optional[PipelineConfig] = None
) -> PipelineResult:
    vocabulary = config.vocabulary if config else None
    max_parts = config.stages.max_aggregated_parts if config else 3
    delimiter = config.stages.master_delimiter if config else " | "
    check_deliverability = config.validation.email_dns_mx_check if config else False
    components: Dict[str, Any] = {} if vocabulary is None else {"vocabulary": vocabulary}

    records = [ensure_investor_record(record) for record in records]
    _ensure_unique_row_ids(records)
    address_classifier = AddressFieldClassifier(**components)
    marker_engine = SpecialMarkerEngine(**components)
    company_classifier = CompanyClassifier(**components)
    title_extractor = TitleExtractor(**components)
    resolver = PostalCodeCountryResolver(**components)
    active_vocabulary = address_classifier.vocabulary
    level1_splitter = NameFragmentSplitter(active_vocabulary.level1_connectors)
    level2_splitter = NameFragmentSplitter(active_vocabulary.level2_connectors)

    address = stage_address_detection(records, address_classifier)
    if address.empty:
        empty = pd.DataFrame()
        return PipelineResult(
            address=address,
            fragments=empty,
            level1=empty,
            level2=empty,
            leaves=pd.DataFrame(columns=LEAF_COLUMNS),
            master=pd.DataFrame(columns=OUTPUT_COLUMNS + SUMMARY_COLUMNS),
        )
    fragments = stage_name_fragments(address, marker_engine)
    level1 = stage_level1(fragments, level1_splitter, max_parts)
    level2 = stage_level2(level1, level2_splitter, company_classifier)
    leaves = stage_union(
        stage_company_branch(level2), stage_individual_branch(level2, title_extractor)
    )
    consolidated_address = stage_address_consolidation(address, resolver, check_deliverability)
    master = stage_master(leaves, fragments, consolidated_address, HierarchyPivotMerger(delimiter))
    logger.info("Investor master: %d investors from %d rows", len(master), len(address))
    return PipelineResult(
        address=address,
        fragments=fragments,
        level1=level1,
        level2=level2,
        leaves=leaves,
        master=master,
    )


def build(args: argparse.Namespace, config: Optional[PipelineConfig] = None) -> PipelineResult:
    config = config or load_config(args)
    records = load_investor_roster(
        config.inputs.investors_csv, header_starts_with=config.inputs.header_starts_with
    )
    return run_pipeline(records, config)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Normalize a NOBO investor roster into an investor master table."
    )
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config.")
    parser.add_argument("--investors-csv", type=str, default=None)
    parser.add_argument("--header-starts-with", type=str, default=None)
    parser.add_argument("--out-dir", type=str, default=None)
    parser.add_argument("--max-aggregated-parts", type=int, default=None)
    parser.add_argument("--email-dns-mx", action="store_true", default=None)
    parser.add_argument("--log-level", type=str, default=None, help="Override logging level")
    args = parser.parse_args()

    config = load_config(args)
    configure_logging(config, level_override=args.log_level)
    result = build(args, config=config)

    out_dir = config.outputs.dir
    out_dir.mkdir(parents=True, exist_ok=True)
    master_path = out_dir / "investor_master.csv"
    fragments_path = out_dir / "investor_fragments.csv"
    result.master.to_csv(str(master_path), index=False, encoding="utf-8", quoting=csv.QUOTE_ALL)
    result.fragments.to_csv(
        str(fragments_path), index=False, encoding="utf-8", quoting=csv.QUOTE_ALL
    )

    logger.info("Saved: %s", master_path)
    logger.info("Saved: %s", fragments_path)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
