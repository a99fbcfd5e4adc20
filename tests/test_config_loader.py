"""
Tests for configuration loading
"""

import json
from datetime import date
from pathlib import Path

import pytest
from pydantic import ValidationError

from warehouse.config_loader import (
    DEFAULT_DATABASE_URL,
    ConfigLoader,
    PipelineConfig,
    apply_env_overrides,
    load_pipeline_config,
)

REPO_CONFIG = Path(__file__).parent.parent / 'config' / 'pipeline_config.yaml'


class TestConfigLoader:

    def test_load_yaml(self):
        data = ConfigLoader.load_yaml(REPO_CONFIG)
        assert data['database_url'] == DEFAULT_DATABASE_URL
        assert data['source_files']['crm_cust_info'] == 'crm/cust_info.csv'

    def test_load_json(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'batch_size': 5}), encoding='utf-8')
        assert ConfigLoader.load_json(path) == {'batch_size': 5}

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text('', encoding='utf-8')
        assert ConfigLoader.load_yaml(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load_yaml(tmp_path / 'nope.yaml')

    def test_directory_is_not_a_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load_yaml(tmp_path)


class TestPipelineConfig:

    def test_repo_config(self):
        config = load_pipeline_config(REPO_CONFIG, environ={})
        assert config.source_dir == Path('datasets')
        assert config.batch_size == 10000
        assert config.validation.birthdate_min == date(1924, 1, 1)
        assert config.validation.raw_sales_date_max == 20500101
        assert 'Germany' in config.validation.allowed_values['country']
        assert config.validation.allowed_values['maintenance'] == ['Yes', 'No']

    def test_defaults(self):
        config = PipelineConfig()
        assert config.database_url == DEFAULT_DATABASE_URL
        assert config.run_history_dir is None
        assert 'country' not in config.validation.allowed_values

    def test_env_overrides(self, tmp_path):
        environ = {
            'DWH_SOURCE_DIR': str(tmp_path / 'extracts'),
            'DWH_DATABASE_URL': 'sqlite:///other.db',
        }
        config = load_pipeline_config(REPO_CONFIG, environ=environ)
        assert config.source_dir == tmp_path / 'extracts'
        assert config.database_url == 'sqlite:///other.db'

    def test_config_path_from_env(self, tmp_path):
        path = tmp_path / 'custom.yaml'
        path.write_text('batch_size: 7\n', encoding='utf-8')
        config = load_pipeline_config(environ={'DWH_CONFIG_PATH': str(path)})
        assert config.batch_size == 7
        assert config.source_files['erp_px_cat_g1v2'] == 'erp/px_cat_g1v2.csv'

    def test_empty_env_values_ignored(self):
        data = apply_env_overrides({'database_url': 'sqlite:///a.db'}, {'DWH_DATABASE_URL': ''})
        assert data['database_url'] == 'sqlite:///a.db'

    def test_invalid_batch_size(self, tmp_path):
        path = tmp_path / 'bad.yaml'
        path.write_text('batch_size: 0\n', encoding='utf-8')
        with pytest.raises(ValidationError):
            load_pipeline_config(path, environ={})

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_pipeline_config(tmp_path / 'missing.yaml', environ={})
