from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .models import CompositeId
from .normalization import join_non_empty, unique_in_order

logger = logging.getLogger(__name__)

MASTER_DELIMITER = " | "
LEAF_DEPTH = 3


def decompose(composite_id: str) -> Tuple[int, int, int, int]:
    """Split a leaf key into ``(row_id, level1, level2, level3)``."""
    parsed = CompositeId.parse(composite_id)
    if parsed.depth != LEAF_DEPTH:
        raise ValueError(f"expected a level-{LEAF_DEPTH} composite id, got {composite_id!r}")
    row_id, level1, level2, level3 = parsed.parts
    return row_id, level1, level2, level3


def investor_position(level1: int, level2: int, level3: int) -> int:
    # coarse rank used only to spread a row's names over pivot slots
    return level1 + (1 if level2 > 1 else 0) + (1 if level3 > 1 else 0)


def position_column(position: int) -> str:
    return f"investor_{position}"


class HierarchyPivotMerger:
    def __init__(self, delimiter: str = MASTER_DELIMITER):
        self.delimiter = delimiter

    def decompose_leaves(self, leaves: pd.DataFrame) -> pd.DataFrame:
        rows: List[Dict[str, object]] = []
        for record in leaves.to_dict("records"):
            row_id, level1, level2, level3 = decompose(record["composite_id"])
            rows.append(
                {
                    **record,
                    "row_id": row_id,
                    "level1": level1,
                    "level2": level2,
                    "level3": level3,
                    "investor_position": investor_position(level1, level2, level3),
                }
            )
        frame = pd.DataFrame(rows, columns=_decomposed_columns(leaves))
        if frame.empty:
            return frame
        return frame.sort_values(["row_id", "level1", "level2", "level3"]).reset_index(drop=True)

    def pivot_positions(self, decomposed: pd.DataFrame) -> Dict[int, Dict[int, str]]:
        slots: Dict[int, Dict[int, str]] = OrderedDict()
        for record in decomposed.to_dict("records"):
            row_slots = slots.setdefault(int(record["row_id"]), {})
            position = int(record["investor_position"])
            name = record.get("investor")
            name = name if isinstance(name, str) else ""
            if position in row_slots:
                logger.debug(
                    "Row %s: position %s shared by %r and %r",
                    record["row_id"],
                    position,
                    row_slots[position],
                    name,
                )
                row_slots[position] = join_non_empty([row_slots[position], name], self.delimiter) or ""
            else:
                row_slots[position] = name
        return slots

    def master_table(self, decomposed: pd.DataFrame) -> pd.DataFrame:
        slots = self.pivot_positions(decomposed)
        capacity = max((max(row.keys()) for row in slots.values() if row), default=0)
        columns = [position_column(pos) for pos in range(1, capacity + 1)]
        rows: List[Dict[str, object]] = []
        for row_id, row_slots in slots.items():
            values = [row_slots.get(pos, "") for pos in range(1, capacity + 1)]
            row: Dict[str, object] = {"row_id": row_id}
            row.update(dict(zip(columns, values)))
            row["investor_master"] = join_non_empty(values, self.delimiter)
            rows.append(row)
        return pd.DataFrame(rows, columns=["row_id", *columns, "investor_master"])

    def merge(
        self,
        decomposed: pd.DataFrame,
        side_tables: Iterable[pd.DataFrame],
    ) -> pd.DataFrame:
        merged = decomposed.merge(self.master_table(decomposed), on="row_id", how="left")
        for table in side_tables:
            merged = merged.merge(table, on="row_id", how="left")
        return merged


def _decomposed_columns(leaves: pd.DataFrame) -> List[str]:
    lead = ["composite_id", "row_id", "level1", "level2", "level3", "investor_position"]
    return lead + [col for col in leaves.columns if col not in lead]


def account_type_summary(fragments: pd.DataFrame) -> pd.DataFrame:
    """Per-row account types, representatives and markers from the fragment stage."""
    rows: List[Dict[str, Optional[object]]] = []
    for row_id, chunk in fragments.groupby("row_id", sort=False):
        account_types: List[str] = []
        for value in chunk["account_type"]:
            if isinstance(value, str) and value:
                account_types.extend(part.strip() for part in str(value).split(","))
        markers = list(chunk["special_marker_before"]) + list(chunk["special_marker_after"])
        rows.append(
            {
                "row_id": row_id,
                "account_type_consolidated": join_non_empty(unique_in_order(account_types), ", "),
                "representative_consolidated": join_non_empty(
                    unique_in_order(chunk["representative"]), MASTER_DELIMITER
                ),
                "special_markers": join_non_empty(unique_in_order(markers), ", "),
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            "row_id",
            "account_type_consolidated",
            "representative_consolidated",
            "special_markers",
        ],
    )


def investor_type_summary(leaves: pd.DataFrame) -> pd.DataFrame:
    rows: List[Dict[str, object]] = []
    for row_id, chunk in leaves.groupby("row_id", sort=False):
        types = sorted(
            {value for value in chunk["investor_type_final"] if isinstance(value, str) and value}
        )
        rows.append(
            {
                "row_id": row_id,
                "investor_type_consolidated": ", ".join(types) or None,
                "investor_count": len(chunk),
            }
        )
    return pd.DataFrame(rows, columns=["row_id", "investor_type_consolidated", "investor_count"])


__all__ = [
    "HierarchyPivotMerger",
    "MASTER_DELIMITER",
    "account_type_summary",
    "decompose",
    "investor_position",
    "investor_type_summary",
]
