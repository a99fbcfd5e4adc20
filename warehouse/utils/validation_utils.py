# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: Integrity Validation
# ═══════════════════════════════════════════════════════════════════════

"""
Validation Utilities - Integrity Validator

Read-only checks over the produced model. Nothing here mutates its input
or raises for a data finding: every failed check becomes an
IntegrityViolation in the returned ValidationReport.

Dimensional checks (severity 'error'):
- Surrogate-key uniqueness in dim_customers and dim_products
- Referential completeness of fact_sales against both dimensions

Cleansed-layer checks (severity 'warning'):
- Primary keys unique and non-null (crm_cust_info, crm_prd_info)
- No leading/trailing whitespace in key text fields
- Product cost non-null and non-negative
- Product start date <= end date
- Order date <= ship date and <= due date
- Sales amount = quantity * price, all three strictly positive
- Birthdates within [birthdate_min, processing time]
- Enumerations within their configured allowed values

Raw-layer check (severity 'warning'):
- Raw sales dates are 8-digit values within the configured bounds
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from warehouse.config_loader import ValidationSettings

logger = logging.getLogger(__name__)

SEVERITY_ERROR = 'error'
SEVERITY_WARNING = 'warning'

# enumeration -> (silver entity, column)
ENUMERATIONS = {
    'marital_status': ('crm_cust_info', 'cst_marital_status'),
    'gender': ('erp_cust_az12', 'gen'),
    'product_line': ('crm_prd_info', 'prd_line'),
    'maintenance': ('erp_px_cat_g1v2', 'maintenance'),
    'country': ('erp_loc_a101', 'cntry'),
}

# entity -> text columns that must be trimmed
TRIMMED_TEXT_COLUMNS = {
    'crm_cust_info': ['cst_key', 'cst_firstname', 'cst_lastname'],
    'crm_prd_info': ['prd_nm'],
    'erp_px_cat_g1v2': ['cat', 'subcat', 'maintenance'],
}

RAW_SALES_DATE_COLUMNS = ['sls_order_dt', 'sls_ship_dt', 'sls_due_dt']


def _json_safe(value: Any) -> Any:
    if value is None or (not isinstance(value, (list, tuple, dict)) and pd.isna(value)):
        return None
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    return value


@dataclass
class IntegrityViolation:
    """One failed check"""
    check: str
    relation: str
    severity: str
    message: str
    count: int
    keys: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'check_name': self.check,
            'relation': self.relation,
            'severity': self.severity,
            'violation_count': self.count,
            'message': self.message,
            'sample_keys': json.dumps(self.keys),
        }


@dataclass
class ValidationReport:
    """Outcome of a validator pass"""
    violations: List[IntegrityViolation] = field(default_factory=list)
    distinct_values: Dict[str, List[Any]] = field(default_factory=dict)
    checks_run: int = 0

    @property
    def errors(self) -> List[IntegrityViolation]:
        return [v for v in self.violations if v.severity == SEVERITY_ERROR]

    @property
    def warnings(self) -> List[IntegrityViolation]:
        return [v for v in self.violations if v.severity == SEVERITY_WARNING]

    @property
    def is_clean(self) -> bool:
        return not self.violations

    def checks_failed(self) -> List[str]:
        return [v.check for v in self.violations]

    def to_frame(self) -> pd.DataFrame:
        """Violations as a DataFrame (persisted as gold_dq_violations)"""
        columns = ['check_name', 'relation', 'severity', 'violation_count', 'message', 'sample_keys']
        return pd.DataFrame([v.to_dict() for v in self.violations], columns=columns)


class IntegrityValidator:
    """
    Integrity checks over the cleansed and dimensional layers

    Usage:
        report = IntegrityValidator().validate(silver, gold, raw=bronze)
        for violation in report.errors: ...
    """

    def __init__(self,
                 settings: Optional[ValidationSettings] = None,
                 processing_time: Optional[datetime] = None):
        self.settings = settings or ValidationSettings()
        self.processing_time = processing_time or datetime.now()
        self._report = ValidationReport()

    # ========================================
    # Check helpers
    # ========================================
    def _flag(self, check: str, relation: str, severity: str,
              mask: pd.Series, df: pd.DataFrame, key_columns: Sequence[str], message: str):
        """Record a violation when ``mask`` selects any row of ``df``"""
        self._report.checks_run += 1
        mask = mask.fillna(False).astype(bool)
        count = int(mask.sum())
        if count == 0:
            return
        offending = df.loc[mask, list(key_columns)].head(self.settings.max_sample_keys)
        keys = [{col: _json_safe(row[col]) for col in key_columns} for _, row in offending.iterrows()]
        self._report.violations.append(IntegrityViolation(
            check=check, relation=relation, severity=severity,
            message=message, count=count, keys=keys,
        ))
        log = logger.error if severity == SEVERITY_ERROR else logger.warning
        log(f"   ❌ {check} ({relation}): {count:,} rows - {message}")

    def check_unique_key(self, df: pd.DataFrame, relation: str, key: str,
                         severity: str, allow_null: bool = False):
        """Flag every row whose key is duplicated (or null, unless allowed)"""
        mask = df[key].duplicated(keep=False)
        if not allow_null:
            mask = mask | df[key].isna()
        self._flag(f'unique_{key}', relation, severity, mask, df, [key],
                   f"{key} must be unique{'' if allow_null else ' and non-null'}")

    def check_trimmed(self, df: pd.DataFrame, relation: str, columns: Sequence[str], key: str):
        for column in columns:
            text = df[column]
            as_text = text.astype(str)
            mask = text.notna() & (as_text != as_text.str.strip())
            self._flag(f'trimmed_{column}', relation, SEVERITY_WARNING, mask, df,
                       [key, column], f"{column} has leading/trailing whitespace")

    # ========================================
    # Dimensional layer
    # ========================================
    def validate_dimensional(self, gold: Dict[str, pd.DataFrame], silver: Dict[str, pd.DataFrame]):
        customers = gold['dim_customers']
        products = gold['dim_products']
        fact = gold['fact_sales']

        self.check_unique_key(customers, 'dim_customers', 'customer_key', SEVERITY_ERROR)
        self.check_unique_key(products, 'dim_products', 'product_key', SEVERITY_ERROR)

        product_ok = fact['product_key'].notna() & fact['product_key'].isin(products['product_key'])
        customer_ok = fact['customer_key'].notna() & fact['customer_key'].isin(customers['customer_key'])
        mask = ~(product_ok & customer_ok)

        # fact_sales is built row-for-row from crm_sales_details
        sales = silver.get('crm_sales_details')
        diagnosis = fact[['order_number']].copy()
        if sales is not None and len(sales) == len(fact):
            diagnosis['product_number'] = sales['sls_prd_key'].to_numpy()
            diagnosis['customer_id'] = sales['sls_cust_id'].to_numpy()
        else:
            diagnosis['product_number'] = None
            diagnosis['customer_id'] = None
        diagnosis['product_key'] = fact['product_key']
        diagnosis['customer_key'] = fact['customer_key']

        self._flag('fact_referential_completeness', 'fact_sales', SEVERITY_ERROR,
                   pd.Series(mask.to_numpy(), index=diagnosis.index), diagnosis,
                   ['order_number', 'product_number', 'customer_id'],
                   "sales line without a matching customer or product dimension row")

    # ========================================
    # Cleansed layer
    # ========================================
    def validate_cleansed(self, silver: Dict[str, pd.DataFrame]):
        settings = self.settings

        customers = silver['crm_cust_info']
        self.check_unique_key(customers, 'crm_cust_info', 'cst_id', SEVERITY_WARNING)

        products = silver['crm_prd_info']
        self.check_unique_key(products, 'crm_prd_info', 'prd_id', SEVERITY_WARNING)

        for entity, columns in TRIMMED_TEXT_COLUMNS.items():
            key = 'cst_id' if entity == 'crm_cust_info' else 'prd_id' if entity == 'crm_prd_info' else 'id'
            self.check_trimmed(silver[entity], entity, columns, key)

        cost = pd.to_numeric(products['prd_cost'], errors='coerce')
        self._flag('cost_non_negative', 'crm_prd_info', SEVERITY_WARNING,
                   cost.isna() | (cost < 0), products, ['prd_id', 'prd_cost'],
                   "prd_cost is null or negative")

        self._flag('product_date_order', 'crm_prd_info', SEVERITY_WARNING,
                   products['prd_end_dt'] < products['prd_start_dt'], products,
                   ['prd_id', 'prd_start_dt', 'prd_end_dt'], "prd_end_dt before prd_start_dt")

        sales = silver['crm_sales_details']
        late_order = (sales['sls_order_dt'] > sales['sls_ship_dt']) | (sales['sls_order_dt'] > sales['sls_due_dt'])
        self._flag('sales_date_order', 'crm_sales_details', SEVERITY_WARNING,
                   late_order, sales, ['sls_ord_num', 'sls_order_dt', 'sls_ship_dt', 'sls_due_dt'],
                   "order date after ship or due date")

        amount = pd.to_numeric(sales['sls_sales'], errors='coerce').astype(float)
        quantity = pd.to_numeric(sales['sls_quantity'], errors='coerce').astype(float)
        price = pd.to_numeric(sales['sls_price'], errors='coerce').astype(float)
        computable = amount.notna() & quantity.notna() & price.notna()
        consistent = pd.Series(
            np.isclose(amount.fillna(0).to_numpy(), (quantity * price).fillna(0).to_numpy()),
            index=sales.index,
        )
        bad_amount = ~computable | ~consistent | (amount <= 0) | (quantity <= 0) | (price <= 0)
        self._flag('sales_amount_consistency', 'crm_sales_details', SEVERITY_WARNING,
                   bad_amount, sales, ['sls_ord_num', 'sls_sales', 'sls_quantity', 'sls_price'],
                   "sales amount must equal quantity * price, all strictly positive")

        erp = silver['erp_cust_az12']
        bdate = pd.to_datetime(erp['bdate'], errors='coerce')
        out_of_range = (bdate < pd.Timestamp(settings.birthdate_min)) | (bdate > pd.Timestamp(self.processing_time))
        self._flag('birthdate_range', 'erp_cust_az12', SEVERITY_WARNING,
                   out_of_range, erp, ['cid', 'bdate'],
                   f"birthdate outside [{settings.birthdate_min}, processing time]")

        for name, (entity, column) in ENUMERATIONS.items():
            values = silver[entity][column]
            distinct = sorted({_json_safe(v) for v in values.dropna().unique()}, key=str)
            if values.isna().any():
                distinct.append(None)
            self._report.distinct_values[name] = distinct

            allowed = settings.allowed_values.get(name)
            if allowed is None:
                continue
            unexpected = values.notna() & ~values.isin(allowed)
            self._flag(f'allowed_{name}', entity, SEVERITY_WARNING,
                       unexpected, silver[entity], [column],
                       f"{column} outside allowed values {allowed}")

    # ========================================
    # Raw layer
    # ========================================
    def validate_raw(self, bronze: Dict[str, pd.DataFrame]):
        sales = bronze.get('crm_sales_details')
        if sales is None:
            return
        low, high = self.settings.raw_sales_date_min, self.settings.raw_sales_date_max
        for column in RAW_SALES_DATE_COLUMNS:
            values = pd.to_numeric(sales[column], errors='coerce').astype(float)
            digits = values.map(lambda v: len(str(int(v))) if pd.notna(v) and v > 0 else 0)
            bad = values.notna() & ((values <= 0) | (digits != 8) | (values > high) | (values < low))
            self._flag(f'raw_{column}_range', 'crm_sales_details', SEVERITY_WARNING,
                       bad, sales, ['sls_ord_num', column],
                       f"{column} not an 8-digit date within [{low}, {high}]")

    # ========================================
    # Entry point
    # ========================================
    def validate(self,
                 cleansed: Dict[str, pd.DataFrame],
                 dimensional: Dict[str, pd.DataFrame],
                 raw: Optional[Dict[str, pd.DataFrame]] = None) -> ValidationReport:
        """
        Run every check

        Args:
            cleansed: silver entity -> DataFrame
            dimensional: gold relation -> DataFrame
            raw: optional bronze entity -> DataFrame

        Returns:
            ValidationReport (violations are advisory)
        """
        logger.info("▶ Running integrity checks")
        self._report = ValidationReport()

        self.validate_dimensional(dimensional, cleansed)
        self.validate_cleansed(cleansed)
        if raw is not None:
            self.validate_raw(raw)

        report = self._report
        if report.is_clean:
            logger.info(f"✅ {report.checks_run} checks passed, no violations")
        else:
            logger.warning(f"⚠️ {report.checks_run} checks, {len(report.errors)} errors, "
                           f"{len(report.warnings)} warnings")
        return report
