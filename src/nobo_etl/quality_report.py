import argparse
import csv
import logging
import os
from typing import Any, Dict, List

import pandas as pd

from .common import load_config
from .logging_utils import configure_logging

logger = logging.getLogger(__name__)

POSTAL_SCORE = 40
COUNTRY_SCORE = 30
EMAIL_SCORE = 20
NAME_SCORE = 10


def pct(n, d):
    return round((n / d * 100.0), 2) if d else 0.0


def _present(value: object) -> int:
    return 1 if isinstance(value, str) and value.strip() else 0


def score_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Coverage flags and a 0-100 score for one roster row of the master table."""
    has_postal = _present(row.get("postal_code_consolidated"))
    has_country = _present(row.get("country_consolidated"))
    has_email = _present(row.get("email_consolidated"))
    has_name = _present(row.get("investor_master"))
    try:
        investor_count = int(row.get("investor_count") or 0)
    except ValueError:
        investor_count = 0
    return {
        "row_id": str(row.get("row_id", "")),
        "investor_master": row.get("investor_master", ""),
        "investor_type_consolidated": row.get("investor_type_consolidated", ""),
        "has_postal_code": has_postal,
        "has_country": has_country,
        "has_email": has_email,
        "has_account_type": _present(row.get("account_type_consolidated")),
        "has_representative": _present(row.get("representative_consolidated")),
        "investor_count": investor_count,
        "quality_score": has_postal * POSTAL_SCORE
        + has_country * COUNTRY_SCORE
        + has_email * EMAIL_SCORE
        + has_name * NAME_SCORE,
    }


def build_report(master: pd.DataFrame) -> pd.DataFrame:
    records: List[Dict[str, Any]] = []
    if master.empty:
        return pd.DataFrame(records)
    # the master table repeats row-level columns on every leaf
    for _, chunk in master.groupby("row_id", sort=False):
        records.append(score_row(chunk.iloc[0].to_dict()))
    return pd.DataFrame(records)


def summarize(report: pd.DataFrame, master: pd.DataFrame) -> Dict[str, Any]:
    total = len(report)
    types = master["investor_type_final"] if "investor_type_final" in master.columns else []
    leaves = len(master)
    companies = sum(1 for value in types if value == "COMPANY")
    return {
        "rows_total": total,
        "investors_total": leaves,
        "has_postal_code_pct": pct(int(report["has_postal_code"].sum()), total) if total else 0.0,
        "has_country_pct": pct(int(report["has_country"].sum()), total) if total else 0.0,
        "has_email_pct": pct(int(report["has_email"].sum()), total) if total else 0.0,
        "company_pct": pct(companies, leaves),
        "individual_pct": pct(leaves - companies, leaves),
    }


def main():
    parser = argparse.ArgumentParser(description="Score coverage of the investor master table.")
    parser.add_argument("--config", type=str, default=None)
    parser.add_argument("--master-csv", type=str, default=None)
    parser.add_argument("--out-dir", type=str, default=None)
    parser.add_argument("--log-level", type=str, default=None, help="Override logging level")

    args = parser.parse_args()
    config = load_config(args)
    configure_logging(config, level_override=args.log_level)

    out_dir = str(config.outputs.dir)
    master_csv = args.master_csv or os.path.join(out_dir, "investor_master.csv")
    master = pd.read_csv(master_csv, dtype=str, keep_default_na=False, quoting=csv.QUOTE_ALL)

    report = build_report(master)
    out_report = os.path.join(out_dir, "investor_quality_report.csv")
    report.to_csv(out_report, index=False, encoding="utf-8", quoting=csv.QUOTE_ALL)
    logger.info("Scored %d roster rows from %s", len(report), master_csv)

    print(summarize(report, master))
    print(f"Saved: {out_report}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
