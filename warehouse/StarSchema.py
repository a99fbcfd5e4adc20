# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: GOLD LAYER (Star Schema)
# ═══════════════════════════════════════════════════════════════════════

"""
StarSchema.py - Dimension & Fact Builders

Builds the business-ready star schema from the cleansed (silver) entities:
- dim_customers: CRM customers enriched with ERP birthdate/gender and location
- dim_products:  current product versions enriched with category data
- fact_sales:    sales lines with customer/product surrogate keys resolved

All joins are left-outer: a missing enrichment or dimension match yields
nulls, never a dropped row. Surrogate keys are dense ranks over a total
order, so the same silver input always yields the same keys.
"""

import logging
from typing import List, Optional, Sequence

import pandas as pd

from warehouse.cleaning_utils import NOT_AVAILABLE

logger = logging.getLogger(__name__)

CUSTOMER_DIMENSION_COLUMNS = [
    'customer_key', 'customer_id', 'customer_number', 'first_name', 'last_name',
    'country', 'marital_status', 'gender', 'birthdate', 'create_date',
]

PRODUCT_DIMENSION_COLUMNS = [
    'product_key', 'product_id', 'product_number', 'product_name', 'category_id',
    'category', 'subcategory', 'maintenance', 'cost', 'product_line', 'start_date',
]

SALES_FACT_COLUMNS = [
    'order_number', 'product_key', 'customer_key', 'order_date', 'shipping_date',
    'due_date', 'sales_amount', 'quantity', 'price',
]


def assign_surrogate_key(df: pd.DataFrame,
                         order_by: Sequence[str],
                         key_column: str,
                         tie_break: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Assign a dense, gap-free surrogate key starting at 1.

    Rows are stably sorted by ``order_by`` then ``tie_break`` (nulls last),
    and every distinct combination of those columns gets the next integer.
    Rows that are equal on all ordering columns share a key.

    Args:
        df: Frame to key (not modified)
        order_by: Business ordering columns
        key_column: Name of the surrogate key column (inserted first)
        tie_break: Extra columns that make the order total

    Returns:
        New frame sorted by surrogate key, with a fresh RangeIndex
    """
    columns: List[str] = list(order_by) + list(tie_break or [])
    ordered = df.sort_values(columns, na_position='last', kind='mergesort').reset_index(drop=True)
    if ordered.empty:
        keys = pd.Series([], dtype='int64')
    else:
        keys = ordered.groupby(columns, sort=False, dropna=False).ngroup() + 1
    ordered.insert(0, key_column, keys.astype('int64'))
    return ordered


def _joinable(df: pd.DataFrame, key: str) -> pd.DataFrame:
    """Drop null join keys (null never matches null in a join)."""
    return df[df[key].notna()]


def _first_per_key(df: pd.DataFrame, key: str) -> pd.DataFrame:
    return _joinable(df, key).drop_duplicates(subset=[key], keep='first')


# ========================================
# DIMENSION BUILDER
# ========================================

class DimensionBuilder:
    """Builds the customer and product dimensions"""

    @staticmethod
    def resolve_gender(crm_gender: pd.Series, erp_gender: pd.Series) -> pd.Series:
        """CRM gender wins unless it is 'n/a'; then ERP gender, default 'n/a'."""
        fallback = erp_gender.where(erp_gender.notna(), NOT_AVAILABLE)
        use_crm = crm_gender.notna() & (crm_gender != NOT_AVAILABLE)
        return crm_gender.where(use_crm, fallback).astype(object)

    @staticmethod
    def build_customers(customers: pd.DataFrame,
                        erp_customers: pd.DataFrame,
                        locations: pd.DataFrame) -> pd.DataFrame:
        """
        Build dim_customers

        Args:
            customers: silver crm_cust_info
            erp_customers: silver erp_cust_az12
            locations: silver erp_loc_a101

        Returns:
            DataFrame with CUSTOMER_DIMENSION_COLUMNS
        """
        logger.info("▶ Building dim_customers")

        erp = _joinable(erp_customers, 'cid')[['cid', 'bdate', 'gen']].rename(columns={'cid': 'erp_cid'})
        loc = _joinable(locations, 'cid')[['cid', 'cntry']].rename(columns={'cid': 'loc_cid'})

        joined = customers.merge(erp, how='left', left_on='cst_key', right_on='erp_cid')
        joined = joined.merge(loc, how='left', left_on='cst_key', right_on='loc_cid')

        dim = pd.DataFrame({
            'customer_id': joined['cst_id'],
            'customer_number': joined['cst_key'],
            'first_name': joined['cst_firstname'],
            'last_name': joined['cst_lastname'],
            'country': joined['cntry'],
            'marital_status': joined['cst_marital_status'],
            'gender': DimensionBuilder.resolve_gender(joined['cst_gndr'], joined['gen']),
            'birthdate': joined['bdate'],
            'create_date': joined['cst_create_date'],
        })

        if len(dim) != len(customers):
            logger.warning(f"⚠️ Enrichment fan-out: {len(customers):,} customers → {len(dim):,} rows")

        dim = assign_surrogate_key(dim, order_by=['customer_id'], key_column='customer_key')
        dim = dim[CUSTOMER_DIMENSION_COLUMNS]
        logger.info(f"✅ dim_customers: {len(dim):,} rows")
        return dim

    @staticmethod
    def build_products(products: pd.DataFrame, categories: pd.DataFrame) -> pd.DataFrame:
        """
        Build dim_products (current versions only: prd_end_dt is null)

        Args:
            products: silver crm_prd_info
            categories: silver erp_px_cat_g1v2

        Returns:
            DataFrame with PRODUCT_DIMENSION_COLUMNS
        """
        logger.info("▶ Building dim_products")

        current = products[products['prd_end_dt'].isna()]
        logger.info(f"   Current versions: {len(current):,} of {len(products):,}")

        cat = _joinable(categories, 'id')[['id', 'cat', 'subcat', 'maintenance']]
        joined = current.merge(cat, how='left', left_on='cat_id', right_on='id')

        dim = pd.DataFrame({
            'product_id': joined['prd_id'],
            'product_number': joined['prd_key'],
            'product_name': joined['prd_nm'],
            'category_id': joined['cat_id'],
            'category': joined['cat'],
            'subcategory': joined['subcat'],
            'maintenance': joined['maintenance'],
            'cost': joined['prd_cost'],
            'product_line': joined['prd_line'],
            'start_date': joined['prd_start_dt'],
        })

        # product_id breaks (start_date, product_number) ties
        dim = assign_surrogate_key(dim,
                                   order_by=['start_date', 'product_number'],
                                   key_column='product_key',
                                   tie_break=['product_id'])
        dim = dim[PRODUCT_DIMENSION_COLUMNS]
        logger.info(f"✅ dim_products: {len(dim):,} rows")
        return dim


# ========================================
# FACT BUILDER
# ========================================

class FactBuilder:
    """Builds fact_sales against the dimensions"""

    @staticmethod
    def build_sales(sales: pd.DataFrame,
                    dim_products: pd.DataFrame,
                    dim_customers: pd.DataFrame) -> pd.DataFrame:
        """
        Build fact_sales

        Unmatched sales lines keep a null surrogate key. When a dimension
        carries a natural key more than once, the lowest surrogate key is
        used so the fact keeps one row per sales line.

        Args:
            sales: silver crm_sales_details
            dim_products: gold dim_products
            dim_customers: gold dim_customers

        Returns:
            DataFrame with SALES_FACT_COLUMNS
        """
        logger.info("▶ Building fact_sales")

        product_lookup = _first_per_key(dim_products[['product_number', 'product_key']], 'product_number')
        customer_lookup = _first_per_key(dim_customers[['customer_id', 'customer_key']], 'customer_id')

        joined = sales.merge(product_lookup, how='left', left_on='sls_prd_key', right_on='product_number')
        joined = joined.merge(customer_lookup, how='left', left_on='sls_cust_id', right_on='customer_id')

        fact = pd.DataFrame({
            'order_number': joined['sls_ord_num'],
            'product_key': joined['product_key'].astype('Int64'),
            'customer_key': joined['customer_key'].astype('Int64'),
            'order_date': joined['sls_order_dt'],
            'shipping_date': joined['sls_ship_dt'],
            'due_date': joined['sls_due_dt'],
            'sales_amount': joined['sls_sales'],
            'quantity': joined['sls_quantity'],
            'price': joined['sls_price'],
        })[SALES_FACT_COLUMNS]

        unresolved = int((fact['product_key'].isna() | fact['customer_key'].isna()).sum())
        if unresolved:
            logger.warning(f"⚠️ {unresolved:,} sales lines without a dimension match")
        logger.info(f"✅ fact_sales: {len(fact):,} rows")
        return fact
