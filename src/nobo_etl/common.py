from __future__ import annotations

from typing import Any

from .config_loader import PipelineConfig, load_pipeline_config
from .models import CompositeId, PostalResult, RawInvestorRecord
from .normalization import (
    clean_address_text,
    join_non_empty,
    read_csv_with_optional_header,
    safe_get,
    unique_in_order,
    validate_email_safe,
    warn_missing,
)
from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

__all__ = [
    "CompositeId",
    "DEFAULT_VOCABULARY",
    "PipelineConfig",
    "PostalResult",
    "RawInvestorRecord",
    "Vocabulary",
    "clean_address_text",
    "ensure_investor_record",
    "join_non_empty",
    "load_config",
    "load_pipeline_config",
    "read_csv_with_optional_header",
    "safe_get",
    "unique_in_order",
    "validate_email_safe",
    "warn_missing",
]


def load_config(args: Any) -> PipelineConfig:
    return load_pipeline_config(args)


def ensure_investor_record(obj: Any) -> RawInvestorRecord:
    if isinstance(obj, RawInvestorRecord):
        return obj
    if isinstance(obj, dict):
        return RawInvestorRecord.from_mapping(obj)
    raise TypeError(f"Unsupported investor payload type: {type(obj)!r}")
