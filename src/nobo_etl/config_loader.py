from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml  # type: ignore[import-untyped]

from .vocabulary import Vocabulary

DEFAULT_HEADER_STARTS_WITH = "NAME,"


@dataclass
class InputsConfig:
    investors_csv: Optional[str] = None
    header_starts_with: Optional[str] = DEFAULT_HEADER_STARTS_WITH


@dataclass
class OutputsConfig:
    dir: Path


@dataclass
class StagesConfig:
    max_aggregated_parts: int = 3
    master_delimiter: str = " | "


@dataclass
class ValidationConfig:
    email_dns_mx_check: bool = False


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class PipelineConfig:
    inputs: InputsConfig
    outputs: OutputsConfig
    stages: StagesConfig = field(default_factory=StagesConfig)
    vocabulary: Vocabulary = field(default_factory=Vocabulary)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _load_yaml(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_pipeline_config(args: argparse.Namespace) -> PipelineConfig:
    config_data = _load_yaml(getattr(args, "config", None))
    inputs_cfg = config_data.get("inputs", {}) or {}
    outputs_cfg = config_data.get("outputs", {}) or {}
    stages_cfg = config_data.get("pipeline", {}) or {}
    vocabulary_cfg = config_data.get("vocabulary", {}) or {}
    validation_cfg = config_data.get("validation", {}) or {}
    logging_cfg = config_data.get("logging", {}) or {}

    inputs = InputsConfig(
        investors_csv=getattr(args, "investors_csv", None) or inputs_cfg.get("investors_csv"),
        header_starts_with=getattr(args, "header_starts_with", None)
        or inputs_cfg.get("header_starts_with", DEFAULT_HEADER_STARTS_WITH),
    )

    outputs_dir = Path(getattr(args, "out_dir", None) or outputs_cfg.get("dir") or os.getcwd())
    outputs = OutputsConfig(dir=outputs_dir)

    max_parts = getattr(args, "max_aggregated_parts", None) or stages_cfg.get(
        "max_aggregated_parts", 3
    )
    if int(max_parts) < 1:
        raise ValueError(f"max_aggregated_parts must be >= 1, got {max_parts!r}")
    stages = StagesConfig(
        max_aggregated_parts=int(max_parts),
        master_delimiter=stages_cfg.get("master_delimiter", " | "),
    )

    validation = ValidationConfig(
        email_dns_mx_check=getattr(args, "email_dns_mx", None)
        or validation_cfg.get("email_dns_mx_check", False),
    )

    arg_level = getattr(args, "log_level", None)
    effective_level = (arg_level or logging_cfg.get("level") or "WARNING").upper()
    logging_config = LoggingConfig(level=effective_level)

    return PipelineConfig(
        inputs=inputs,
        outputs=outputs,
        stages=stages,
        vocabulary=Vocabulary.from_overrides(vocabulary_cfg),
        validation=validation,
        logging=logging_config,
    )
