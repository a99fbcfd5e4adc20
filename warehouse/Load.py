# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: LOAD PHASE
# ═══════════════════════════════════════════════════════════════════════

"""
Load.py - Warehouse Store

Responsibilities:
- Connect to the warehouse store (SQLite by default, PostgreSQL via URL)
- Publish each entity set by atomic swap: write <table>__staging, then in
  one transaction drop the live table and rename staging into place
- Check a sample of every silver/gold frame against its row schema
  (findings are logged as warnings only)
- Read published relations back

Table naming: <layer>_<entity>, e.g. bronze_crm_cust_info,
silver_crm_prd_info, gold_dim_customers, gold_fact_sales, gold_dq_violations

Uses utils:
- bulk_loader (batched inserts into the staging table)
- schema_validation (sample-based pydantic row checks)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from warehouse.utils.bulk_loader import BulkLoader
from warehouse.utils.schema_validation import dataframe_rows, validate_dataframe

logger = logging.getLogger(__name__)

STAGING_SUFFIX = '__staging'


def _enable_sqlite_transactions(engine: Engine):
    """
    Let SQLAlchemy own BEGIN on pysqlite so DDL (DROP / ALTER ... RENAME)
    runs inside the swap transaction.
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class WarehouseStore:
    """
    Warehouse store handler

    Every publish fully replaces the live relation; readers see either the
    previous or the new contents, never an empty table.
    """

    def __init__(self,
                 database_url: str,
                 batch_size: int = 10000,
                 schema_sample_size: int = 100):
        """
        Initialize store

        Args:
            database_url: SQLAlchemy URL (e.g. sqlite:///data/warehouse.db)
            batch_size: Rows per insert batch
            schema_sample_size: Rows checked against the row schema (0 = off)
        """
        self.database_url = database_url
        self.batch_size = batch_size
        self.schema_sample_size = schema_sample_size
        self.engine: Optional[Engine] = None
        self.load_stats: Dict[str, Dict[str, Any]] = {}
        self.schema_findings: Dict[str, Dict[str, Any]] = {}

        logger.info(f"▶ WarehouseStore initialized ({make_url(database_url).get_backend_name()})")

    def connect(self) -> Engine:
        """Establish the database connection"""
        if self.engine is None:
            url = make_url(self.database_url)
            try:
                if url.get_backend_name() == 'sqlite':
                    if url.database and url.database != ':memory:':
                        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
                    self.engine = create_engine(url)
                    _enable_sqlite_transactions(self.engine)
                else:
                    self.engine = create_engine(
                        url,
                        pool_size=5,
                        max_overflow=10,
                        pool_pre_ping=True
                    )
                with self.engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                logger.info("✅ Database connection established")
            except SQLAlchemyError as e:
                logger.error(f"❌ Database connection failed: {e}")
                self.engine = None
                raise
        return self.engine

    def disconnect(self):
        """Close database connection"""
        if self.engine:
            self.engine.dispose()
            self.engine = None
            logger.info("Database connection closed")

    def _quote(self, name: str) -> str:
        return self.connect().dialect.identifier_preparer.quote(name)

    # ========================================
    # Schema checks
    # ========================================
    def check_schema(self, table_name: str, df: pd.DataFrame) -> Dict[str, Any]:
        """Validate a sample of ``df`` against the row schema of ``table_name``"""
        if self.schema_sample_size <= 0:
            return {"status": "skipped", "error_count": 0, "errors": []}
        validation = validate_dataframe(table_name, dataframe_rows(df, self.schema_sample_size))
        self.schema_findings[table_name] = validation
        if validation["status"] == "fail":
            first = validation["errors"][0]
            logger.warning(f"   ⚠️ {table_name}: {validation['error_count']} schema findings "
                           f"in sample (e.g. row {first['row_index']} {first['field']}: {first['message']})")
        return validation

    # ========================================
    # Publish (atomic swap)
    # ========================================
    def publish(self, table_name: str, df: pd.DataFrame) -> Dict[str, Any]:
        """
        Replace ``table_name`` with the contents of ``df``

        Args:
            table_name: Live relation name
            df: Full contents of the relation

        Returns:
            Load statistics

        Raises:
            SQLAlchemyError: Staging write or swap failed (live table untouched)
        """
        engine = self.connect()
        staging = f"{table_name}{STAGING_SUFFIX}"
        start_time = datetime.now()

        self.check_schema(table_name, df)

        loader = BulkLoader(engine, batch_size=self.batch_size)
        loader.bulk_load(df, staging, if_exists='replace')

        with engine.begin() as conn:
            conn.execute(text(f"DROP TABLE IF EXISTS {self._quote(table_name)}"))
            conn.execute(text(f"ALTER TABLE {self._quote(staging)} RENAME TO {self._quote(table_name)}"))

        stats = {
            'table': table_name,
            'rows': len(df),
            'duration_seconds': (datetime.now() - start_time).total_seconds(),
        }
        self.load_stats[table_name] = stats
        logger.info(f"   ✅ Published {table_name}: {len(df):,} rows")
        return stats

    def publish_layer(self, layer: str, frames: Dict[str, pd.DataFrame]) -> int:
        """
        Publish every frame of a layer as <layer>_<entity>

        Returns:
            Total rows published
        """
        logger.info(f"▶ Publishing {layer} layer ({len(frames)} relations)")
        total = 0
        for entity, df in frames.items():
            total += self.publish(f"{layer}_{entity}", df)['rows']
        return total

    # ========================================
    # Read back
    # ========================================
    def list_tables(self) -> List[str]:
        return sorted(inspect(self.connect()).get_table_names())

    def table_exists(self, table_name: str) -> bool:
        return table_name in self.list_tables()

    def read_table(self, table_name: str, parse_dates: Optional[List[str]] = None) -> pd.DataFrame:
        """
        Read a published relation

        Raises:
            ValueError: Relation does not exist
        """
        engine = self.connect()
        if not self.table_exists(table_name):
            raise ValueError(f"Table not found: {table_name}")
        with engine.connect() as conn:
            return pd.read_sql(text(f"SELECT * FROM {self._quote(table_name)}"), conn,
                               parse_dates=parse_dates)
