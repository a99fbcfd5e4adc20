# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: RUN DRIVER
# ═══════════════════════════════════════════════════════════════════════

"""
Pipeline.py - Full-reload run driver

Stages (strictly in order, each fully materialized before the next):
1. bronze          - extract the six raw streams, publish bronze_*
2. silver          - cleanse, publish silver_*
3. gold_dimensions - build and publish gold_dim_customers / gold_dim_products
4. gold_facts      - build and publish gold_fact_sales
5. quality_checks  - integrity validation, publish gold_dq_violations

Each stage yields a StageResult. The first failed stage aborts the run and
the remaining stages are marked SKIPPED; relations published by earlier
stages stay as they are. Integrity violations never fail the run.

Usage:
    from warehouse.Pipeline import run_full_pipeline
    run_full_pipeline()
"""

import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from warehouse.config_loader import PipelineConfig, load_pipeline_config
from warehouse.Extract import RawExtractor
from warehouse.Load import WarehouseStore
from warehouse.StarSchema import DimensionBuilder, FactBuilder
from warehouse.Transform import DataTransformer
from warehouse.utils.execution_tracker import (
    FailureCause,
    PipelineAbortedError,
    PipelineRunSummary,
    StageResult,
    StageStatus,
)
from warehouse.utils.validation_utils import IntegrityValidator, ValidationReport

logger = logging.getLogger(__name__)

VIOLATIONS_TABLE = 'gold_dq_violations'


class WarehousePipeline:
    """
    Full-reload pipeline over one configuration

    ``processing_time`` stamps dwh_create_date and bounds the birthdate
    rules; two runs with the same raw input and processing_time publish
    identical relations.
    """

    STAGES = ['bronze', 'silver', 'gold_dimensions', 'gold_facts', 'quality_checks']

    def __init__(self,
                 config: PipelineConfig,
                 processing_time: Optional[datetime] = None,
                 store: Optional[WarehouseStore] = None):
        self.config = config
        self.processing_time = processing_time or datetime.now().replace(microsecond=0)
        self.store = store or WarehouseStore(
            config.database_url,
            batch_size=config.batch_size,
            schema_sample_size=config.schema_sample_size,
        )

        self.raw: Dict[str, pd.DataFrame] = {}
        self.silver: Dict[str, pd.DataFrame] = {}
        self.gold: Dict[str, pd.DataFrame] = {}
        self.report: Optional[ValidationReport] = None
        self.transformer: Optional[DataTransformer] = None

    # ========================================
    # STAGES (each returns rows produced)
    # ========================================
    def stage_bronze(self) -> int:
        extractor = RawExtractor(self.config.source_dir,
                                 source_files=self.config.source_files,
                                 delimiter=self.config.delimiter)
        self.raw = extractor.extract_all()
        return self.store.publish_layer('bronze', self.raw)

    def stage_silver(self) -> int:
        self.transformer = DataTransformer(self.processing_time)
        self.silver = self.transformer.transform_all(self.raw)
        return self.store.publish_layer('silver', self.silver)

    def stage_gold_dimensions(self) -> int:
        self.gold['dim_customers'] = DimensionBuilder.build_customers(
            self.silver['crm_cust_info'], self.silver['erp_cust_az12'], self.silver['erp_loc_a101'])
        self.gold['dim_products'] = DimensionBuilder.build_products(
            self.silver['crm_prd_info'], self.silver['erp_px_cat_g1v2'])
        dimensions = {name: self.gold[name] for name in ('dim_customers', 'dim_products')}
        return self.store.publish_layer('gold', dimensions)

    def stage_gold_facts(self) -> int:
        self.gold['fact_sales'] = FactBuilder.build_sales(
            self.silver['crm_sales_details'], self.gold['dim_products'], self.gold['dim_customers'])
        return self.store.publish_layer('gold', {'fact_sales': self.gold['fact_sales']})

    def stage_quality_checks(self) -> int:
        validator = IntegrityValidator(self.config.validation, processing_time=self.processing_time)
        self.report = validator.validate(self.silver, self.gold, raw=self.raw)
        self.store.publish(VIOLATIONS_TABLE, self.report.to_frame())
        return len(self.report.violations)

    def _stage_functions(self) -> List[Tuple[str, Callable[[], int]]]:
        return [(name, getattr(self, f'stage_{name}')) for name in self.STAGES]

    # ========================================
    # DRIVER
    # ========================================
    def run_stage(self, name: str, func: Callable[[], int]) -> StageResult:
        """Run one stage, capturing any structural error as a FailureCause"""
        logger.info("=" * 70)
        logger.info(f"▶ STAGE: {name}")
        logger.info("=" * 70)
        start = time.perf_counter()
        try:
            rows = func()
        except Exception as e:
            duration = time.perf_counter() - start
            cause = FailureCause.from_exception(name, e)
            logger.exception(f"❌ {cause.describe()}")
            return StageResult(name, StageStatus.FAILED, duration_seconds=duration, failure=cause)
        duration = time.perf_counter() - start
        logger.info(f"✅ Stage {name} complete: {rows:,} rows in {duration:.2f}s")
        return StageResult(name, StageStatus.SUCCESS, rows=rows, duration_seconds=duration)

    def run(self, raise_on_failure: bool = False) -> PipelineRunSummary:
        """
        Execute all stages in order

        Args:
            raise_on_failure: Raise PipelineAbortedError instead of only
                reporting the failure in the summary

        Returns:
            PipelineRunSummary
        """
        summary = PipelineRunSummary(
            run_id=f"dwh_{self.processing_time:%Y%m%d_%H%M%S}",
            start_time=datetime.now(),
        )
        logger.info(f"▶ Full reload started (run {summary.run_id}, "
                    f"processing time {self.processing_time.isoformat()})")

        aborted = False
        try:
            for name, func in self._stage_functions():
                if aborted:
                    logger.warning(f"⚠️ Stage {name} skipped")
                    summary.record(StageResult(name, StageStatus.SKIPPED))
                    continue
                result = self.run_stage(name, func)
                summary.record(result)
                aborted = not result.succeeded
        finally:
            self.store.disconnect()

        if self.report is not None:
            summary.violation_count = len(self.report.violations)

        summary.finalize()
        summary.log_summary()
        if self.config.run_history_dir is not None:
            summary.save_to_csv(self.config.run_history_dir)

        if summary.failure is not None and raise_on_failure:
            raise PipelineAbortedError(summary.failure)
        return summary


def run_full_pipeline(raise_on_failure: bool = False) -> bool:
    """
    Run the full reload with the configuration from DWH_CONFIG_PATH
    (default config/pipeline_config.yaml)

    Returns:
        True when every stage succeeded
    """
    try:
        config = load_pipeline_config()
    except (FileNotFoundError, ValueError) as e:
        cause = FailureCause.from_exception('configuration', e)
        logger.error(f"❌ {cause.describe()}")
        if raise_on_failure:
            raise PipelineAbortedError(cause) from e
        return False
    summary = WarehousePipeline(config).run(raise_on_failure=raise_on_failure)
    return summary.succeeded
