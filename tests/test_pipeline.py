import logging
import sys
from types import SimpleNamespace

import pandas as pd
import pytest

from nobo_etl import pipeline as pl
from nobo_etl.common import read_csv_with_optional_header, safe_get, warn_missing
from nobo_etl.models import RawInvestorRecord

ROSTER_HEADER = (
    "NAME,ADDRESS 1,ADDRESS 2,ADDRESS 3,ADDRESS 4,ADDRESS 5,ADDRESS 6,ADDRESS 7,"
    "POSTAL CODE,E-MAIL ADDRESS,LANGUAGE,NUMBER OF SHARES,ACCOUNT NO"
)


def _args(**overrides):
    values = dict(
        config=None,
        investors_csv=None,
        header_starts_with=None,
        out_dir=None,
        max_aggregated_parts=None,
        email_dns_mx=None,
        log_level=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _write_roster(tmp_path, rows):
    content = "\n".join(["NOBO list as of 2024-03-31", "", ROSTER_HEADER] + rows + [""])
    path = tmp_path / "nobo.csv"
    path.write_text(content, encoding="utf-8")
    return path


def test_safe_get_and_warn_missing(tmp_path):
    row = {"A": "  value  ", "B": None}
    assert safe_get(row, "A") == "value"
    assert safe_get(row, "B") == ""
    assert warn_missing(str(tmp_path / "nope.csv"), "Test") is True


def test_read_csv_with_optional_header(tmp_path):
    path = _write_roster(tmp_path, ["JOHN DOE,1 MAIN ST,,,,,,,,,E,10,X1"])
    df = read_csv_with_optional_header(str(path), header_starts_with="name,")
    assert isinstance(df, pd.DataFrame)
    assert df.iloc[0]["NAME"] == "JOHN DOE"


def test_load_investor_roster_maps_headers(tmp_path):
    path = _write_roster(
        tmp_path,
        [
            "JOHN DOE,1 MAIN ST,,,,,,,m5v3l9,john.doe@gmail.com,E,10,X1",
            "JANE ROE,2 BAY ST,,,,,,,,,F,20,X2",
        ],
    )
    records = pl.load_investor_roster(str(path), header_starts_with="NAME,")
    assert [record.row_id for record in records] == [1, 2]
    first = records[0]
    assert first.name == "JOHN DOE"
    assert first.address_line(1) == "1 MAIN ST"
    assert first.address_line(2) is None
    assert first.postal_code == "m5v3l9"
    assert first.share_count == "10"
    assert first.extra == {"account_no": "X1"}


def test_load_investor_roster_missing_path_is_empty(tmp_path):
    assert pl.load_investor_roster(str(tmp_path / "missing.csv")) == []
    assert pl.load_investor_roster(None) == []


def test_load_investor_roster_requires_name(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("HOLDER,ADDRESS 1\nJOHN,1 MAIN ST\n", encoding="utf-8")
    with pytest.raises(ValueError, match="NAME"):
        pl.load_investor_roster(str(path), header_starts_with=None)


def test_duplicate_row_ids_rejected():
    records = [RawInvestorRecord(row_id=1, name="A"), RawInvestorRecord(row_id=1, name="B")]
    with pytest.raises(ValueError, match="duplicate row_id"):
        pl.run_pipeline(records)


def test_joint_individuals_end_to_end():
    record = RawInvestorRecord(
        row_id=1,
        name="JOHN DOE AND JANE DOE",
        address_lines=("123 MAIN ST",) + (None,) * 6,
    )
    master = pl.run_pipeline([record]).master
    assert list(master["composite_id"]) == ["1_1_1_1", "1_1_2_1"]
    assert list(master["investor"]) == ["JOHN DOE", "JANE DOE"]
    assert set(master["investor_type_final"]) == {"INDIVIDUAL"}
    assert master["title_extracted"].isna().all()
    assert master["account_type_consolidated"].isna().all()
    assert set(master["investor_master"]) == {"JOHN DOE | JANE DOE"}
    assert set(master["address_consolidated"]) == {"123 MAIN ST"}


def test_run_pipeline_accepts_mappings():
    master = pl.run_pipeline(
        [{"row_id": 3, "name": "DR JANE DOE & MR JOHN DOE", "address_line_1": "1 BAY ST"}]
    ).master
    assert list(master["composite_id"]) == ["3_1_1_1", "3_1_1_2"]
    assert list(master["investor"]) == ["JANE DOE", "JOHN DOE"]
    assert list(master["title_extracted"]) == ["DR", "MR"]
    assert list(master["investor_position"]) == [1, 2]


def test_run_pipeline_empty_input():
    result = pl.run_pipeline([])
    assert result.master.empty
    assert "composite_id" in result.master.columns


def test_max_aggregated_parts_limits_name_parts():
    record = RawInvestorRecord(
        row_id=1,
        name="ALPHA",
        address_lines=("BETA", "GAMMA", "DELTA", "1 MAIN ST", None, None, None),
    )
    config = pl.load_config(_args(max_aggregated_parts=2))
    result = pl.run_pipeline([record], config)
    assert list(result.fragments["part_index"]) == [1, 2, 3, 4]
    assert list(result.level1["investor_name"]) == ["ALPHA BETA"]


def test_dropped_name_parts_are_logged(caplog):
    caplog.set_level(logging.DEBUG, logger="nobo_etl.pipeline")
    record = RawInvestorRecord(
        row_id=7,
        name="ALPHA",
        address_lines=("BETA", "GAMMA", "DELTA", "1 MAIN ST", None, None, None),
    )
    pl.run_pipeline([record], pl.load_config(_args(max_aggregated_parts=2)))
    assert "Row 7: dropping 2 name parts beyond position 2" in caplog.text


def test_missing_email_and_postal_mixed_with_present_ones():
    records = [
        RawInvestorRecord(
            row_id=1,
            name="JOHN DOE",
            address_lines=("1 MAIN ST",) + (None,) * 6,
            postal_code="m5v3l9",
            email="john.doe@gmail.com",
        ),
        RawInvestorRecord(
            row_id=2,
            name="JANE ROE",
            address_lines=("2 BAY ST",) + (None,) * 6,
            postal_code=None,
            email=None,
        ),
    ]
    master = pl.run_pipeline(records).master.set_index("composite_id")
    assert master.loc["1_1_1_1", "email_consolidated"] == "john.doe@gmail.com"
    assert master.loc["1_1_1_1", "postal_code_consolidated"] == "M5V3L9"
    assert pd.isna(master.loc["2_1_1_1", "email_consolidated"])
    assert pd.isna(master.loc["2_1_1_1", "postal_code_consolidated"])


def test_nan_like_words_stay_in_the_name():
    record = RawInvestorRecord(
        row_id=1,
        name="JOHN DOE",
        address_lines=("NAN LI", "123 MAIN ST") + (None,) * 5,
    )
    master = pl.run_pipeline([record]).master
    assert list(master["investor"]) == ["JOHN DOE NAN LI"]
    assert list(master["address_consolidated"]) == ["123 MAIN ST"]


def test_each_level2_name_takes_exactly_one_branch():
    record = RawInvestorRecord(
        row_id=1,
        name="ACME CAPITAL INC AND JOHN DOE & JANE DOE",
        address_lines=("1 BAY ST",) + (None,) * 6,
    )
    result = pl.run_pipeline([record])
    assert list(result.level2["investor_type"]) == ["COMPANY", "INDIVIDUAL"]

    leaves = result.leaves
    company = leaves[leaves["investor_type_final"] == "COMPANY"]
    individual = leaves[leaves["investor_type_final"] == "INDIVIDUAL"]
    assert list(company["composite_id"]) == ["1_1_1_1"]
    assert list(individual["composite_id"]) == ["1_1_2_1", "1_1_2_2"]

    individual_parents = {composite.rsplit("_", 1)[0] for composite in individual["composite_id"]}
    assert individual_parents.isdisjoint(
        composite.rsplit("_", 1)[0] for composite in company["composite_id"]
    )
    assert len(result.level2) == len(company) + len(individual_parents)


def test_build_from_csv(tmp_path):
    path = _write_roster(
        tmp_path,
        [
            "JOHN DOE AND JANE DOE,123 MAIN ST,TORONTO ON M5V 3L9,,,,,,,john.doe@gmail.com,E,100,A1",
            "ACME CAPITAL INC,ATTN: BOB,1 BAY ST,,,,,,m5j2t3,not-an-email,F,50,A2",
            "4F3AB SPOUSAL PLAN 4E9,10 DOWNING ST,LONDON UNITED KINGDOM,,,,,,,,E,5,A3",
        ],
    )
    result = pl.build(_args(investors_csv=str(path), out_dir=str(tmp_path)))
    master = result.master.set_index("composite_id")

    assert list(master.index) == ["1_1_1_1", "1_1_2_1", "2_1_1_1", "3_1_1_1"]
    assert list(master.columns[:9]) == pl.OUTPUT_COLUMNS[1:]
    assert master.columns[-1] == "account_no"

    john = master.loc["1_1_1_1"]
    assert john["investor_master"] == "JOHN DOE | JANE DOE"
    assert john["postal_code_consolidated"] == "M5V 3L9"
    assert john["postal_code_fsa"] == "M5V"
    assert john["country_consolidated"] == "CANADA"
    assert john["email_consolidated"] == "john.doe@gmail.com"
    assert john["investor_count"] == 2

    acme = master.loc["2_1_1_1"]
    assert acme["investor_type_final"] == "COMPANY"
    assert acme["company_tag"] == "INC"
    assert acme["representative_consolidated"] == "ATTN: BOB"
    assert acme["postal_code_consolidated"] == "M5J2T3"
    assert acme["postal_code_fsa"] == "M5J"
    assert pd.isna(acme["email_consolidated"])
    assert acme["account_no"] == "A2"

    nominee = master.loc["3_1_1_1"]
    assert nominee["investor"] == "4F3AB"
    assert nominee["investor_type_final"] == "COMPANY"
    assert nominee["account_type_consolidated"] == "SPOUSAL, SPOUSAL PLAN"
    assert nominee["special_markers"] == "4E9"
    assert nominee["country_consolidated"] == "UNITED KINGDOM"
    assert not nominee["is_canadian"]


def test_duplicate_composite_ids_rejected(monkeypatch):
    record = RawInvestorRecord(row_id=1, name="JOHN DOE", address_lines=("1 MAIN ST",) + (None,) * 6)

    original = pl.stage_company_branch

    def doubled(level2):
        rows = original(level2.assign(investor_type="COMPANY"))
        return pd.concat([rows, rows], ignore_index=True)

    monkeypatch.setattr(pl, "stage_company_branch", doubled)
    with pytest.raises(ValueError, match="duplicate composite_id"):
        pl.run_pipeline([record])


def test_main_writes_master_csv(tmp_path, monkeypatch):
    path = _write_roster(tmp_path, ["JOHN DOE & JANE DOE,1 MAIN ST,,,,,,,,,E,10,X1"])
    monkeypatch.setattr(
        sys, "argv", ["nobo-consolidate", "--investors-csv", str(path), "--out-dir", str(tmp_path)]
    )

    assert pl.main() == 0

    master = pd.read_csv(tmp_path / "investor_master.csv", dtype=str, keep_default_na=False)
    assert list(master["composite_id"]) == ["1_1_1_1", "1_1_1_2"]
    assert list(master["investor_master"]) == ["JOHN DOE | JANE DOE"] * 2
    assert (tmp_path / "investor_fragments.csv").exists()
