"""
warehouse - CRM/ERP medallion data warehouse

Phase modules:
- Extract.py:   raw stream adapter (bronze input)
- Transform.py: entity cleanser (bronze -> silver)
- StarSchema.py: dimension & fact builders (silver -> gold)
- Load.py:      warehouse store (atomic-swap publish)
- Pipeline.py:  full-reload run driver

Reusable helpers:
- cleaning_utils: standardization rules & field repairs
- config_loader:  YAML/JSON config -> PipelineConfig
- utils/:         validation, bulk loading, schema checks, run tracking
"""

__version__ = "1.0.0"
