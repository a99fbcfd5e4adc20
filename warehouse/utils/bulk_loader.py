# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: Bulk Loader Utility
# ═══════════════════════════════════════════════════════════════════════

"""
Bulk Load Utility - Batch database loading

Provides:
- Bulk insert with configurable batch sizes
- Memory-efficient chunked processing
- Progress tracking and logging

A failed batch aborts the load: the caller writes into a staging table
and only publishes it once every batch has landed.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import pandas as pd
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class BulkLoader:
    """
    Batch loader over a SQLAlchemy engine

    Features:
    - Batch processing with configurable chunk size
    - Automatic table creation from DataFrame schema (first batch)
    - Progress callbacks for monitoring
    """

    def __init__(self, engine: Engine, batch_size: int = 10000):
        """
        Initialize bulk loader

        Args:
            engine: SQLAlchemy Engine of the target store
            batch_size: Number of rows per batch insert
        """
        self.engine = engine
        self.batch_size = batch_size
        self.stats: Dict[str, Any] = {}

    def _insert_method(self) -> Optional[str]:
        # SQLite caps bound parameters per statement; multi-row INSERT elsewhere
        return None if self.engine.dialect.name == 'sqlite' else 'multi'

    def bulk_load(self,
                  df: pd.DataFrame,
                  table_name: str,
                  if_exists: str = 'replace',
                  dtype: Optional[Dict] = None,
                  progress_callback: Optional[Callable[[int, int], None]] = None) -> Dict[str, Any]:
        """
        Bulk load DataFrame to database table

        Args:
            df: DataFrame to load
            table_name: Target table name
            if_exists: How to handle an existing table on the first batch
                ('fail', 'replace', 'append')
            dtype: Optional SQLAlchemy column type mapping
            progress_callback: Optional callback(loaded_rows, total_rows)

        Returns:
            Load statistics dictionary

        Raises:
            SQLAlchemyError: A batch failed to insert
        """
        logger.info(f"   ▶ Bulk load to {table_name}: {len(df):,} rows, batch size {self.batch_size:,}")

        self.stats = {
            'table_name': table_name,
            'total_rows': len(df),
            'loaded_rows': 0,
            'batches_processed': 0,
            'start_time': datetime.now(),
            'end_time': None,
        }

        method = self._insert_method()
        total_batches = max((len(df) + self.batch_size - 1) // self.batch_size, 1)

        try:
            # An empty frame still creates the (empty) table
            starts = range(0, len(df), self.batch_size) if len(df) else [0]
            for batch_num, start_idx in enumerate(starts, 1):
                batch_df = df.iloc[start_idx:start_idx + self.batch_size]
                batch_if_exists = if_exists if batch_num == 1 else 'append'

                batch_df.to_sql(
                    name=table_name,
                    con=self.engine,
                    if_exists=batch_if_exists,
                    index=False,
                    dtype=dtype,
                    method=method,
                )

                self.stats['loaded_rows'] += len(batch_df)
                self.stats['batches_processed'] += 1

                if progress_callback:
                    progress_callback(self.stats['loaded_rows'], self.stats['total_rows'])

                if total_batches > 1:
                    pct = (self.stats['loaded_rows'] / self.stats['total_rows']) * 100
                    logger.info(f"      Batch {batch_num}/{total_batches}: {len(batch_df):,} rows ({pct:.1f}%)")

        except SQLAlchemyError as e:
            logger.error(f"❌ Bulk load to {table_name} failed: {e}")
            self.stats['end_time'] = datetime.now()
            self.stats['error'] = str(e)
            raise

        self.stats['end_time'] = datetime.now()
        duration = (self.stats['end_time'] - self.stats['start_time']).total_seconds()
        self.stats['duration_seconds'] = duration
        logger.info(f"   ✅ {self.stats['loaded_rows']:,} rows loaded in {duration:.2f}s")
        return self.stats
