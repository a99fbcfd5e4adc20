# ═══════════════════════════════════════════════════════════════════════
# SILVER LAYER: Standardization Rules & Field Repairs
# ═══════════════════════════════════════════════════════════════════════

"""
cleaning_utils.py - Reusable Standardization Rules

Leaf module of the cleansing layer. Everything here is a pure function of
its input: no I/O, no clock, no hidden state.

StandardizationRules (scalar, one value in -> one value out):
- normalize_code(): trim + upper-case, blank -> None
- marital_status(): S/M -> Single/Married, else n/a
- crm_gender(): F/M -> Female/Male, else n/a
- erp_gender(): F/FEMALE/M/MALE -> Female/Male, else n/a
- product_line(): M/R/S/T -> Mountain/Road/Other Sales/Touring, else n/a
- country(): DE -> Germany, US/USA -> United States, blank -> n/a
- strip_prefix(), strip_separators(), split_product_key()
- parse_yyyymmdd(): 8-digit integer date -> date, anything else -> None

FieldRepairs (vectorised, one Series in -> one Series out):
- Each method is one named "repair" of the always-repair / never-reject
  policy and can be tested or swapped on its own.

Usage:
    from warehouse.cleaning_utils import StandardizationRules, FieldRepairs
    StandardizationRules.marital_status(' s ')   # 'Single'
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

NOT_AVAILABLE = "n/a"

MARITAL_STATUS_CODES = {
    "S": "Single",
    "M": "Married",
}

CRM_GENDER_CODES = {
    "F": "Female",
    "M": "Male",
}

ERP_GENDER_CODES = {
    "F": "Female",
    "FEMALE": "Female",
    "M": "Male",
    "MALE": "Male",
}

PRODUCT_LINE_CODES = {
    "M": "Mountain",
    "R": "Road",
    "S": "Other Sales",
    "T": "Touring",
}

COUNTRY_CODES = {
    "DE": "Germany",
    "US": "United States",
    "USA": "United States",
}

ERP_CUSTOMER_PREFIX = "NAS"
LOCATION_ID_SEPARATOR = "-"
CATEGORY_ID_LENGTH = 5
PRODUCT_KEY_OFFSET = 6


def _as_float(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").astype(float)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


class StandardizationRules:
    """Scalar code -> label rules shared by the entity cleaners."""

    @staticmethod
    def normalize_code(value: Any) -> Optional[str]:
        """Trim and upper-case a raw code. Null or blank becomes None."""
        if _is_missing(value):
            return None
        text = str(value).strip().upper()
        return text or None

    @staticmethod
    def map_code(value: Any, mapping: Mapping[str, str], default: str = NOT_AVAILABLE) -> str:
        """Look a normalized code up in ``mapping``; unknown codes get ``default``."""
        code = StandardizationRules.normalize_code(value)
        if code is None:
            return default
        return mapping.get(code, default)

    @staticmethod
    def marital_status(value: Any) -> str:
        return StandardizationRules.map_code(value, MARITAL_STATUS_CODES)

    @staticmethod
    def crm_gender(value: Any) -> str:
        return StandardizationRules.map_code(value, CRM_GENDER_CODES)

    @staticmethod
    def erp_gender(value: Any) -> str:
        return StandardizationRules.map_code(value, ERP_GENDER_CODES)

    @staticmethod
    def product_line(value: Any) -> str:
        return StandardizationRules.map_code(value, PRODUCT_LINE_CODES)

    @staticmethod
    def country(value: Any) -> str:
        """
        Standardize a country code or name.

        Known codes are expanded, blank/null becomes 'n/a', any other value
        passes through trimmed (original casing kept).
        """
        if _is_missing(value):
            return NOT_AVAILABLE
        trimmed = str(value).strip()
        if not trimmed:
            return NOT_AVAILABLE
        return COUNTRY_CODES.get(trimmed.upper(), trimmed)

    @staticmethod
    def trim(value: Any) -> Optional[str]:
        if _is_missing(value):
            return None
        return str(value).strip()

    @staticmethod
    def strip_prefix(value: Any, prefix: str = ERP_CUSTOMER_PREFIX) -> Optional[str]:
        """Remove a literal leading ``prefix`` when present."""
        if _is_missing(value):
            return None
        text = str(value)
        if text.startswith(prefix):
            return text[len(prefix):]
        return text

    @staticmethod
    def strip_separators(value: Any, separator: str = LOCATION_ID_SEPARATOR) -> Optional[str]:
        if _is_missing(value):
            return None
        return str(value).replace(separator, "")

    @staticmethod
    def split_product_key(value: Any) -> Tuple[Optional[str], Optional[str]]:
        """
        Split a composite catalog key into (category id, product key).

        The first five characters are the category id with '-' replaced by
        '_'; everything after the sixth character is the product key.

            >>> StandardizationRules.split_product_key('AB-CD-1234')
            ('AB_CD', '1234')
        """
        if _is_missing(value):
            return None, None
        text = str(value)
        category_id = text[:CATEGORY_ID_LENGTH].replace("-", "_")
        product_key = text[PRODUCT_KEY_OFFSET:]
        return category_id, product_key

    @staticmethod
    def parse_yyyymmdd(value: Any) -> Optional[date]:
        """
        Parse an 8-digit integer date (YYYYMMDD).

        Returns None for null, zero, a digit count other than 8, or a
        digit string that is not a calendar date.
        """
        if _is_missing(value):
            return None
        try:
            number = int(value)
        except (TypeError, ValueError):
            return None
        if number == 0 or len(str(number)) != 8:
            return None
        try:
            return datetime.strptime(str(number), "%Y%m%d").date()
        except ValueError:
            return None


class FieldRepairs:
    """Vectorised repair steps applied by the cleaners."""

    @staticmethod
    def trim_text(series: pd.Series) -> pd.Series:
        return series.map(StandardizationRules.trim)

    @staticmethod
    def map_codes(series: pd.Series, rule) -> pd.Series:
        """Apply a scalar StandardizationRules method element-wise."""
        return series.map(rule).astype(object)

    @staticmethod
    def fill_missing_cost(series: pd.Series) -> pd.Series:
        return _as_float(series).fillna(0)

    @staticmethod
    def parse_yyyymmdd_series(series: pd.Series) -> pd.Series:
        """Parse a YYYYMMDD integer column; invalid entries become NaT."""
        numbers = _as_float(series)
        digits = numbers.map(lambda v: len(str(int(v))) if pd.notna(v) else 0)
        valid = numbers.notna() & (numbers != 0) & (digits == 8)
        text = numbers.where(valid).map(lambda v: str(int(v)) if pd.notna(v) else None)
        return pd.to_datetime(text, format="%Y%m%d", errors="coerce")

    @staticmethod
    def to_date(series: pd.Series) -> pd.Series:
        """Cast timestamps to midnight dates; unparseable values become NaT."""
        return pd.to_datetime(series, errors="coerce").dt.normalize()

    @staticmethod
    def null_future_dates(series: pd.Series, processing_time: datetime) -> pd.Series:
        dates = pd.to_datetime(series, errors="coerce")
        return dates.where(~(dates > pd.Timestamp(processing_time)))

    @staticmethod
    def repair_sales_amount(sales: pd.Series, quantity: pd.Series, price: pd.Series) -> pd.Series:
        """
        Recompute amount as quantity * |price| when the raw amount is null,
        non-positive, or differs from quantity * |price|.

        A mismatch only counts when quantity * |price| is computable, so a
        positive amount with a missing price is kept as-is.
        """
        sales = _as_float(sales)
        expected = _as_float(quantity) * _as_float(price).abs()
        mismatch = expected.notna() & (sales != expected)
        needs_repair = sales.isna() | (sales <= 0) | mismatch
        return expected.where(needs_repair, sales).astype(float)

    @staticmethod
    def repair_unit_price(price: pd.Series, sales: pd.Series, quantity: pd.Series) -> pd.Series:
        """Derive price as sales / quantity when the raw price is null or non-positive."""
        price = _as_float(price)
        quantity = _as_float(quantity)
        derived = _as_float(sales) / quantity.replace(0, np.nan)
        needs_repair = price.isna() | (price <= 0)
        return derived.where(needs_repair, price).astype(float)
