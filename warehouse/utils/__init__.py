"""
Warehouse Utilities Package - generic engines used by the phase modules

- validation_utils: integrity validator (IntegrityValidator, ValidationReport)
- bulk_loader: batched DataFrame inserts (BulkLoader)
- schema_validation: pydantic row schemas for silver/gold relations
- execution_tracker: stage results and run summary

Import the modules directly, e.g.:
    from warehouse.utils.validation_utils import IntegrityValidator
"""
