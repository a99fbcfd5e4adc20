# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: EXTRACT PHASE (Bronze layer input)
# ═══════════════════════════════════════════════════════════════════════

"""
Extract.py - Raw Stream Adapter

Responsibilities:
- Read the six delimited raw extracts (header row skipped)
- Lower-case column names so CRM and ERP headers line up with the raw schemas
- Coerce each column to its raw type (numbers, dates, nullable text);
  only empty fields are null, literal "NA" or "NULL" text is kept as read
- Fail fast when a source file or a required column is missing

Source Files (relative to the configured source directory):
- crm/cust_info.csv      -> crm_cust_info      (RawCustomerProfile)
- crm/prd_info.csv       -> crm_prd_info       (RawProductCatalogEntry)
- crm/sales_details.csv  -> crm_sales_details  (RawSalesLine)
- erp/loc_a101.csv       -> erp_loc_a101       (RawLocationRecord)
- erp/cust_az12.csv      -> erp_cust_az12      (RawErpCustomerDetail)
- erp/px_cat_g1v2.csv    -> erp_px_cat_g1v2    (RawCategoryEntry)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)


# ========================================
# RAW SCHEMAS
# ========================================
# column -> raw type ('int', 'float', 'text', 'date', 'timestamp')

RAW_SCHEMAS: Dict[str, Dict[str, str]] = {
    'crm_cust_info': {
        'cst_id': 'int',
        'cst_key': 'text',
        'cst_firstname': 'text',
        'cst_lastname': 'text',
        'cst_marital_status': 'text',
        'cst_gndr': 'text',
        'cst_create_date': 'date',
    },
    'crm_prd_info': {
        'prd_id': 'int',
        'prd_key': 'text',
        'prd_nm': 'text',
        'prd_cost': 'float',
        'prd_line': 'text',
        'prd_start_dt': 'timestamp',
        'prd_end_dt': 'timestamp',
    },
    'crm_sales_details': {
        'sls_ord_num': 'text',
        'sls_prd_key': 'text',
        'sls_cust_id': 'int',
        'sls_order_dt': 'int',
        'sls_ship_dt': 'int',
        'sls_due_dt': 'int',
        'sls_sales': 'float',
        'sls_quantity': 'int',
        'sls_price': 'float',
    },
    'erp_loc_a101': {
        'cid': 'text',
        'cntry': 'text',
    },
    'erp_cust_az12': {
        'cid': 'text',
        'bdate': 'date',
        'gen': 'text',
    },
    'erp_px_cat_g1v2': {
        'id': 'text',
        'cat': 'text',
        'subcat': 'text',
        'maintenance': 'text',
    },
}

DEFAULT_SOURCE_FILES: Dict[str, str] = {
    'crm_cust_info': 'crm/cust_info.csv',
    'crm_prd_info': 'crm/prd_info.csv',
    'crm_sales_details': 'crm/sales_details.csv',
    'erp_loc_a101': 'erp/loc_a101.csv',
    'erp_cust_az12': 'erp/cust_az12.csv',
    'erp_px_cat_g1v2': 'erp/px_cat_g1v2.csv',
}


def coerce_raw_types(df: pd.DataFrame, schema: Dict[str, str]) -> pd.DataFrame:
    """
    Cast raw columns to their raw types without rejecting any row.

    Unparseable numbers and dates become null; text stays text with
    blanks preserved (trimming belongs to the cleansing layer).
    """
    df = df.copy()
    for column, kind in schema.items():
        if kind == 'int':
            numbers = pd.to_numeric(df[column], errors='coerce')
            df[column] = numbers.where(numbers == numbers.round()).astype('Int64')
        elif kind == 'float':
            df[column] = pd.to_numeric(df[column], errors='coerce').astype(float)
        elif kind in ('date', 'timestamp'):
            df[column] = pd.to_datetime(df[column], errors='coerce', format='mixed')
        else:
            df[column] = df[column].astype(object).where(df[column].notna(), None)
    return df[list(schema.keys())]


class RawExtractor:
    """
    Raw Extraction Handler

    Reads each raw stream into a DataFrame shaped like its raw schema.
    """

    def __init__(self,
                 source_dir: Path,
                 source_files: Optional[Dict[str, str]] = None,
                 delimiter: str = ','):
        """
        Initialize extractor

        Args:
            source_dir: Directory holding the crm/ and erp/ extracts
            source_files: Optional override of entity -> relative file path
            delimiter: Field delimiter of the extracts
        """
        self.source_dir = Path(source_dir)
        self.source_files = dict(DEFAULT_SOURCE_FILES)
        if source_files:
            self.source_files.update(source_files)
        self.delimiter = delimiter
        self.extraction_stats: Dict[str, Dict[str, Any]] = {}

        logger.info(f"▶ RawExtractor initialized (source: {self.source_dir})")

    def validate_source_files(self) -> Dict[str, bool]:
        """Return entity -> file exists"""
        status = {}
        for entity, relative_path in self.source_files.items():
            exists = (self.source_dir / relative_path).is_file()
            status[entity] = exists
            if not exists:
                logger.warning(f"   ❌ {relative_path} NOT FOUND")
        return status

    def extract_entity(self, entity: str) -> Tuple[pd.DataFrame, Dict[str, Any]]:
        """
        Extract a single raw entity

        Args:
            entity: Raw relation name (e.g. 'crm_cust_info')

        Returns:
            Tuple of (DataFrame, stats_dict)

        Raises:
            ValueError: Unknown entity
            FileNotFoundError: Source file missing
            KeyError: Source file lacks a raw-schema column
        """
        if entity not in RAW_SCHEMAS:
            raise ValueError(f"Unknown raw entity: {entity}")

        file_path = self.source_dir / self.source_files[entity]
        if not file_path.is_file():
            raise FileNotFoundError(f"Raw extract not found: {file_path}")

        start_time = datetime.now()
        df = pd.read_csv(file_path, sep=self.delimiter, dtype=str,
                         keep_default_na=False, na_values=[''])
        df.columns = [str(col).strip().lower() for col in df.columns]

        schema = RAW_SCHEMAS[entity]
        missing = [col for col in schema if col not in df.columns]
        if missing:
            raise KeyError(f"{file_path.name} is missing columns: {missing}")

        df = coerce_raw_types(df, schema)

        stats = {
            'entity': entity,
            'file': str(file_path),
            'rows': len(df),
            'duration_seconds': (datetime.now() - start_time).total_seconds(),
        }
        self.extraction_stats[entity] = stats
        logger.info(f"   ✅ {entity}: {len(df):,} rows from {file_path.name}")
        return df, stats

    def extract_all(self) -> Dict[str, pd.DataFrame]:
        """Extract all six raw entities in a fixed order"""
        logger.info("▶ Extracting raw extracts...")
        return {entity: self.extract_entity(entity)[0] for entity in RAW_SCHEMAS}
