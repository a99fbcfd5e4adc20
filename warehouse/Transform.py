# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: TRANSFORM PHASE (Bronze -> Silver)
# ═══════════════════════════════════════════════════════════════════════

"""
Transform.py - Entity Cleanser

Responsibilities:
- Clean each of the six raw entities with entity-specific rules
- Deduplicate customers (latest creation date wins)
- Standardize codes to labels, normalize keys, validate dates
- Derive product end dates from the next start date of the same product
- Stamp every cleansed row with the run's processing time (dwh_create_date)

Policy: never reject a row. Malformed values are repaired to a sentinel
('n/a', null or 0) and counted in the per-entity stats. The only rows that
disappear are customer rows without an id and superseded customer
duplicates.

Entities Processed:
1. crm_cust_info     - null-id drop, dedup, trim names, marital status, gender
2. crm_prd_info      - key split, cost fill, product line, start/end dates
3. crm_sales_details - YYYYMMDD dates, amount and price repair
4. erp_cust_az12     - NAS prefix, future birthdates, gender
5. erp_loc_a101      - id separators, country names
6. erp_px_cat_g1v2   - passthrough (no transformation)

Uses:
- cleaning_utils (StandardizationRules, FieldRepairs)
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from warehouse.cleaning_utils import FieldRepairs, StandardizationRules

logger = logging.getLogger(__name__)

PROVENANCE_COLUMN = 'dwh_create_date'
_POSITION = '_input_position'


def _stamp(df: pd.DataFrame, processing_time: datetime) -> pd.DataFrame:
    df[PROVENANCE_COLUMN] = pd.Timestamp(processing_time)
    return df


def _changed(before: pd.Series, after: pd.Series) -> int:
    """Count positions where a repair changed the value (null -> null is unchanged)."""
    before = before.reset_index(drop=True)
    after = after.reset_index(drop=True)
    both_null = before.isna() & after.isna()
    return int((~both_null & (before.astype(object) != after.astype(object))).sum())


# ========================================
# ENTITY CLEANERS
# ========================================

class CustomerProfileCleaner:
    """
    crm_cust_info cleaning
    - Drop rows without a customer id
    - Keep the latest record per customer id
    - Trim first/last name
    - Marital status and gender codes -> labels
    """

    OUTPUT_COLUMNS = [
        'cst_id', 'cst_key', 'cst_firstname', 'cst_lastname',
        'cst_marital_status', 'cst_gndr', 'cst_create_date', PROVENANCE_COLUMN,
    ]

    @staticmethod
    def deduplicate(df: pd.DataFrame) -> pd.DataFrame:
        """
        Keep one row per cst_id: the most recent cst_create_date.

        Ties (equal or null dates) keep the first row seen in input order.
        Survivors keep their input order.
        """
        ranked = df.assign(**{_POSITION: range(len(df))})
        ranked = ranked.sort_values(
            ['cst_id', 'cst_create_date', _POSITION],
            ascending=[True, False, True],
            na_position='last',
            kind='mergesort',
        )
        latest = ranked.drop_duplicates(subset=['cst_id'], keep='first')
        return latest.sort_values(_POSITION, kind='mergesort').drop(columns=[_POSITION])

    @staticmethod
    def clean(df: pd.DataFrame, processing_time: datetime) -> Tuple[pd.DataFrame, Dict[str, Any]]:
        logger.info("▶ Cleaning crm_cust_info")

        stats = {'input_rows': len(df)}

        with_id = df[df['cst_id'].notna()]
        stats['null_ids_dropped'] = len(df) - len(with_id)

        df_clean = CustomerProfileCleaner.deduplicate(with_id).reset_index(drop=True)
        stats['duplicates_removed'] = len(with_id) - len(df_clean)

        df_clean['cst_firstname'] = FieldRepairs.trim_text(df_clean['cst_firstname'])
        df_clean['cst_lastname'] = FieldRepairs.trim_text(df_clean['cst_lastname'])

        df_clean['cst_marital_status'] = FieldRepairs.map_codes(
            df_clean['cst_marital_status'], StandardizationRules.marital_status)
        df_clean['cst_gndr'] = FieldRepairs.map_codes(
            df_clean['cst_gndr'], StandardizationRules.crm_gender)
        df_clean['cst_create_date'] = FieldRepairs.to_date(df_clean['cst_create_date'])

        df_clean = _stamp(df_clean, processing_time)[CustomerProfileCleaner.OUTPUT_COLUMNS]

        stats['output_rows'] = len(df_clean)
        logger.info(f"   ✅ Removed {stats['null_ids_dropped']} null ids, "
                    f"{stats['duplicates_removed']} duplicates")
        logger.info(f"✅ crm_cust_info: {stats['input_rows']:,} → {stats['output_rows']:,} rows")
        return df_clean, stats


class ProductCatalogCleaner:
    """
    crm_prd_info cleaning
    - Split composite key into cat_id / prd_key
    - Null cost -> 0
    - Product line code -> label
    - Start timestamp -> date, end date = next start date - 1 day
    """

    OUTPUT_COLUMNS = [
        'prd_id', 'cat_id', 'prd_key', 'prd_nm', 'prd_cost',
        'prd_line', 'prd_start_dt', 'prd_end_dt', PROVENANCE_COLUMN,
    ]

    @staticmethod
    def derive_end_dates(df: pd.DataFrame, partition: str = 'prd_key') -> pd.Series:
        """
        End date of each version = start date of the next version with the
        same ``partition`` value minus one day; the latest version stays
        open (NaT).

        Versions are ordered by (prd_start_dt, prd_id, input order).
        """
        ordered = df.assign(**{_POSITION: range(len(df))})
        ordered = ordered.sort_values(
            [partition, 'prd_start_dt', 'prd_id', _POSITION],
            na_position='last',
            kind='mergesort',
        )
        next_start = ordered.groupby(partition, dropna=False, sort=False)['prd_start_dt'].shift(-1)
        end_dates = next_start - pd.Timedelta(days=1)
        return end_dates.reindex(df.index)

    @staticmethod
    def clean(df: pd.DataFrame, processing_time: datetime) -> Tuple[pd.DataFrame, Dict[str, Any]]:
        logger.info("▶ Cleaning crm_prd_info")

        stats = {'input_rows': len(df)}
        df_clean = df.reset_index(drop=True).copy()

        # versions are chained on the full composite key, before the split
        df_clean['prd_start_dt'] = FieldRepairs.to_date(df_clean['prd_start_dt'])
        df_clean['prd_end_dt'] = ProductCatalogCleaner.derive_end_dates(df_clean)
        stats['open_ended_versions'] = int(df_clean['prd_end_dt'].isna().sum())

        split = df_clean['prd_key'].map(StandardizationRules.split_product_key)
        df_clean['cat_id'] = split.map(lambda parts: parts[0])
        df_clean['prd_key'] = split.map(lambda parts: parts[1])

        stats['null_costs_filled'] = int(pd.to_numeric(df_clean['prd_cost'], errors='coerce').isna().sum())
        df_clean['prd_cost'] = FieldRepairs.fill_missing_cost(df_clean['prd_cost'])

        df_clean['prd_line'] = FieldRepairs.map_codes(df_clean['prd_line'], StandardizationRules.product_line)

        df_clean = _stamp(df_clean, processing_time)[ProductCatalogCleaner.OUTPUT_COLUMNS]

        stats['output_rows'] = len(df_clean)
        logger.info(f"   ✅ Filled {stats['null_costs_filled']} null costs, "
                    f"{stats['open_ended_versions']} current product versions")
        logger.info(f"✅ crm_prd_info: {stats['input_rows']:,} → {stats['output_rows']:,} rows")
        return df_clean, stats


class SalesLineCleaner:
    """
    crm_sales_details cleaning
    - Order/ship/due YYYYMMDD integers -> dates (invalid -> null)
    - Recompute sales amount when missing, non-positive or inconsistent
    - Derive unit price when missing or non-positive
    """

    DATE_COLUMNS = ['sls_order_dt', 'sls_ship_dt', 'sls_due_dt']

    OUTPUT_COLUMNS = [
        'sls_ord_num', 'sls_prd_key', 'sls_cust_id',
        'sls_order_dt', 'sls_ship_dt', 'sls_due_dt',
        'sls_sales', 'sls_quantity', 'sls_price', PROVENANCE_COLUMN,
    ]

    @staticmethod
    def clean(df: pd.DataFrame, processing_time: datetime) -> Tuple[pd.DataFrame, Dict[str, Any]]:
        logger.info("▶ Cleaning crm_sales_details")

        stats = {'input_rows': len(df), 'invalid_dates_nulled': 0}
        raw = df.reset_index(drop=True)
        df_clean = raw.copy()

        for column in SalesLineCleaner.DATE_COLUMNS:
            df_clean[column] = FieldRepairs.parse_yyyymmdd_series(raw[column])
            stats['invalid_dates_nulled'] += int((raw[column].notna() & df_clean[column].isna()).sum())

        # Both repairs read the raw columns
        df_clean['sls_sales'] = FieldRepairs.repair_sales_amount(
            raw['sls_sales'], raw['sls_quantity'], raw['sls_price'])
        df_clean['sls_price'] = FieldRepairs.repair_unit_price(
            raw['sls_price'], raw['sls_sales'], raw['sls_quantity'])

        stats['amounts_recomputed'] = _changed(pd.to_numeric(raw['sls_sales'], errors='coerce'),
                                               df_clean['sls_sales'])
        stats['prices_derived'] = _changed(pd.to_numeric(raw['sls_price'], errors='coerce'),
                                           df_clean['sls_price'])

        df_clean = _stamp(df_clean, processing_time)[SalesLineCleaner.OUTPUT_COLUMNS]

        stats['output_rows'] = len(df_clean)
        logger.info(f"   ✅ Nulled {stats['invalid_dates_nulled']} invalid dates, "
                    f"recomputed {stats['amounts_recomputed']} amounts, "
                    f"derived {stats['prices_derived']} prices")
        logger.info(f"✅ crm_sales_details: {stats['input_rows']:,} → {stats['output_rows']:,} rows")
        return df_clean, stats


class ErpCustomerCleaner:
    """
    erp_cust_az12 cleaning
    - Strip 'NAS' prefix from cid
    - Future birthdates -> null
    - Gender values -> labels
    """

    OUTPUT_COLUMNS = ['cid', 'bdate', 'gen', PROVENANCE_COLUMN]

    @staticmethod
    def clean(df: pd.DataFrame, processing_time: datetime) -> Tuple[pd.DataFrame, Dict[str, Any]]:
        logger.info("▶ Cleaning erp_cust_az12")

        stats = {'input_rows': len(df)}
        df_clean = df.reset_index(drop=True).copy()

        df_clean['cid'] = df_clean['cid'].map(StandardizationRules.strip_prefix)

        birthdates = FieldRepairs.to_date(df_clean['bdate'])
        df_clean['bdate'] = FieldRepairs.null_future_dates(birthdates, processing_time)
        stats['future_birthdates_nulled'] = int((birthdates.notna() & df_clean['bdate'].isna()).sum())

        df_clean['gen'] = FieldRepairs.map_codes(df_clean['gen'], StandardizationRules.erp_gender)

        df_clean = _stamp(df_clean, processing_time)[ErpCustomerCleaner.OUTPUT_COLUMNS]

        stats['output_rows'] = len(df_clean)
        logger.info(f"✅ erp_cust_az12: {stats['input_rows']:,} → {stats['output_rows']:,} rows "
                    f"({stats['future_birthdates_nulled']} future birthdates nulled)")
        return df_clean, stats


class LocationCleaner:
    """
    erp_loc_a101 cleaning
    - Remove '-' from cid
    - Country codes -> names, blank -> n/a
    """

    OUTPUT_COLUMNS = ['cid', 'cntry', PROVENANCE_COLUMN]

    @staticmethod
    def clean(df: pd.DataFrame, processing_time: datetime) -> Tuple[pd.DataFrame, Dict[str, Any]]:
        logger.info("▶ Cleaning erp_loc_a101")

        stats = {'input_rows': len(df)}
        df_clean = df.reset_index(drop=True).copy()

        df_clean['cid'] = df_clean['cid'].map(StandardizationRules.strip_separators)
        df_clean['cntry'] = FieldRepairs.map_codes(df_clean['cntry'], StandardizationRules.country)

        df_clean = _stamp(df_clean, processing_time)[LocationCleaner.OUTPUT_COLUMNS]

        stats['output_rows'] = len(df_clean)
        logger.info(f"✅ erp_loc_a101: {stats['input_rows']:,} → {stats['output_rows']:,} rows")
        return df_clean, stats


class CategoryCleaner:
    """
    erp_px_cat_g1v2: intentionally a passthrough. The source is already
    clean; only the provenance timestamp is added.
    """

    OUTPUT_COLUMNS = ['id', 'cat', 'subcat', 'maintenance', PROVENANCE_COLUMN]

    @staticmethod
    def clean(df: pd.DataFrame, processing_time: datetime) -> Tuple[pd.DataFrame, Dict[str, Any]]:
        logger.info("▶ Copying erp_px_cat_g1v2 (passthrough)")
        df_clean = _stamp(df.reset_index(drop=True).copy(), processing_time)
        df_clean = df_clean[CategoryCleaner.OUTPUT_COLUMNS]
        stats = {'input_rows': len(df), 'output_rows': len(df_clean)}
        logger.info(f"✅ erp_px_cat_g1v2: {stats['output_rows']:,} rows")
        return df_clean, stats


# ========================================
# MAIN TRANSFORMATION ORCHESTRATOR
# ========================================

CLEANERS = {
    'crm_cust_info': CustomerProfileCleaner,
    'crm_prd_info': ProductCatalogCleaner,
    'crm_sales_details': SalesLineCleaner,
    'erp_cust_az12': ErpCustomerCleaner,
    'erp_loc_a101': LocationCleaner,
    'erp_px_cat_g1v2': CategoryCleaner,
}


class DataTransformer:
    """
    Silver layer transformation handler

    Runs the six cleaners over a set of raw frames. Deterministic: the same
    raw frames and processing_time always give identical output.
    """

    def __init__(self, processing_time: Optional[datetime] = None):
        """
        Args:
            processing_time: Reference time for provenance stamps and the
                future-birthdate rule (default: now, truncated to seconds)
        """
        self.processing_time = processing_time or datetime.now().replace(microsecond=0)
        self.cleaned_tables: Dict[str, pd.DataFrame] = {}
        self.cleaning_stats: Dict[str, Dict[str, Any]] = {}

    def transform_entity(self, entity: str, df: pd.DataFrame) -> pd.DataFrame:
        if entity not in CLEANERS:
            raise ValueError(f"Unknown entity: {entity}")
        cleaned, stats = CLEANERS[entity].clean(df, self.processing_time)
        self.cleaned_tables[entity] = cleaned
        self.cleaning_stats[entity] = stats
        return cleaned

    def transform_all(self, raw_data: Dict[str, pd.DataFrame]) -> Dict[str, pd.DataFrame]:
        """
        Clean all six raw entities

        Raises:
            KeyError: A raw entity is missing from ``raw_data``
        """
        logger.info("=" * 70)
        logger.info("SILVER LAYER: Cleansing all entities")
        logger.info("=" * 70)

        missing = [entity for entity in CLEANERS if entity not in raw_data]
        if missing:
            raise KeyError(f"Raw entities missing: {missing}")

        for entity in CLEANERS:
            self.transform_entity(entity, raw_data[entity])

        total_rows = sum(len(df) for df in self.cleaned_tables.values())
        logger.info(f"✅ SILVER COMPLETE: {len(self.cleaned_tables)} entities, {total_rows:,} rows")
        return dict(self.cleaned_tables)

    def get_transformation_summary(self) -> pd.DataFrame:
        """One row per entity: input rows, output rows, rows removed"""
        records = []
        for entity, stats in self.cleaning_stats.items():
            records.append({
                'Entity': entity,
                'Input_Rows': stats.get('input_rows', 0),
                'Output_Rows': stats.get('output_rows', 0),
                'Rows_Removed': stats.get('input_rows', 0) - stats.get('output_rows', 0),
            })
        return pd.DataFrame(records)
