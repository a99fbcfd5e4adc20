# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: Configuration Loader
# ═══════════════════════════════════════════════════════════════════════

"""
config_loader.py - YAML/JSON Configuration Loader

Methods:
- ConfigLoader.load_yaml(): Load YAML configuration files
- ConfigLoader.load_json(): Load JSON configuration files
- load_pipeline_config(): YAML file -> validated PipelineConfig, with
  environment overrides applied

Environment overrides:
- DWH_CONFIG_PATH:  config file to load (default config/pipeline_config.yaml)
- DWH_SOURCE_DIR:   directory holding the crm/ and erp/ extracts
- DWH_DATABASE_URL: SQLAlchemy URL of the warehouse store

Usage:
    config = load_pipeline_config()
    config.database_url  # 'sqlite:///data/warehouse.db'
"""

from __future__ import annotations

import json
import os
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from warehouse.Extract import DEFAULT_SOURCE_FILES

PathLike = Union[str, Path]

DEFAULT_CONFIG_PATH = Path('config') / 'pipeline_config.yaml'
DEFAULT_DATABASE_URL = 'sqlite:///data/warehouse.db'

ENV_CONFIG_PATH = 'DWH_CONFIG_PATH'
ENV_SOURCE_DIR = 'DWH_SOURCE_DIR'
ENV_DATABASE_URL = 'DWH_DATABASE_URL'


class ConfigLoader:
    """Configuration loader for YAML/JSON files.

    Responsibilities:
    - Read YAML/JSON files from disk and return dicts
    - Raise FileNotFoundError for missing paths
    """

    @staticmethod
    def _ensure_exists(path: PathLike) -> Path:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Config file not found: {p}")
        if not p.is_file():
            raise FileNotFoundError(f"Config path is not a file: {p}")
        return p

    @staticmethod
    def load_yaml(path: PathLike) -> dict[str, Any]:
        """Load a YAML file and return a dictionary (empty file -> {})."""
        p = ConfigLoader._ensure_exists(path)
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data or {}

    @staticmethod
    def load_json(path: PathLike) -> dict[str, Any]:
        """Load a JSON file and return a dictionary."""
        p = ConfigLoader._ensure_exists(path)
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            return {"_": data}
        return data


# ========================================
# PIPELINE CONFIG MODEL
# ========================================

def _default_allowed_values() -> Dict[str, List[str]]:
    return {
        'marital_status': ['Single', 'Married', 'n/a'],
        'gender': ['Female', 'Male', 'n/a'],
        'product_line': ['Mountain', 'Road', 'Other Sales', 'Touring', 'n/a'],
        'maintenance': ['Yes', 'No'],
    }


class ValidationSettings(BaseModel):
    """Bounds and allowed value sets used by the integrity validator"""
    model_config = ConfigDict(extra="ignore")

    birthdate_min: date = date(1924, 1, 1)
    raw_sales_date_min: int = 19000101
    raw_sales_date_max: int = 20500101
    # Enumeration -> allowed values; an enumeration without an entry is
    # only reported in distinct_values
    allowed_values: Dict[str, List[str]] = Field(default_factory=_default_allowed_values)
    max_sample_keys: int = 20


class PipelineConfig(BaseModel):
    """Validated pipeline configuration"""
    model_config = ConfigDict(extra="ignore")

    source_dir: Path = Path('datasets')
    source_files: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_SOURCE_FILES))
    delimiter: str = ','
    database_url: str = DEFAULT_DATABASE_URL
    batch_size: int = Field(default=10000, gt=0)
    schema_sample_size: int = Field(default=100, ge=0)
    run_history_dir: Optional[Path] = None
    validation: ValidationSettings = Field(default_factory=ValidationSettings)


def apply_env_overrides(data: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Return a copy of ``data`` with DWH_SOURCE_DIR / DWH_DATABASE_URL applied."""
    environ = os.environ if environ is None else environ
    data = dict(data)
    if environ.get(ENV_SOURCE_DIR):
        data['source_dir'] = environ[ENV_SOURCE_DIR]
    if environ.get(ENV_DATABASE_URL):
        data['database_url'] = environ[ENV_DATABASE_URL]
    return data


def load_pipeline_config(path: Optional[PathLike] = None,
                         environ: Optional[Mapping[str, str]] = None) -> PipelineConfig:
    """
    Load and validate the pipeline configuration

    Args:
        path: Config file (default: $DWH_CONFIG_PATH or config/pipeline_config.yaml)
        environ: Environment mapping (default: os.environ)

    Returns:
        PipelineConfig

    Raises:
        FileNotFoundError: Config file missing
        pydantic.ValidationError: Config values of the wrong type
    """
    environ = os.environ if environ is None else environ
    config_path = Path(path or environ.get(ENV_CONFIG_PATH) or DEFAULT_CONFIG_PATH)
    loader = ConfigLoader.load_json if config_path.suffix == '.json' else ConfigLoader.load_yaml
    data = apply_env_overrides(loader(config_path), environ)
    return PipelineConfig.model_validate(data)
