# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: Row Schema Validation (Pydantic)
# ═══════════════════════════════════════════════════════════════════════

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, ValidationError


class CustomerProfileSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cst_id: int
    cst_key: Optional[str] = None
    cst_firstname: Optional[str] = None
    cst_lastname: Optional[str] = None
    cst_marital_status: str
    cst_gndr: str
    cst_create_date: Optional[datetime] = None
    dwh_create_date: datetime


class ProductCatalogSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prd_id: Optional[int] = None
    cat_id: Optional[str] = None
    prd_key: Optional[str] = None
    prd_nm: Optional[str] = None
    prd_cost: float
    prd_line: str
    prd_start_dt: Optional[datetime] = None
    prd_end_dt: Optional[datetime] = None
    dwh_create_date: datetime


class SalesLineSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sls_ord_num: Optional[str] = None
    sls_prd_key: Optional[str] = None
    sls_cust_id: Optional[int] = None
    sls_order_dt: Optional[datetime] = None
    sls_ship_dt: Optional[datetime] = None
    sls_due_dt: Optional[datetime] = None
    sls_sales: Optional[float] = None
    sls_quantity: Optional[int] = None
    sls_price: Optional[float] = None
    dwh_create_date: datetime


class ErpCustomerSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cid: Optional[str] = None
    bdate: Optional[datetime] = None
    gen: str
    dwh_create_date: datetime


class LocationSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cid: Optional[str] = None
    cntry: str
    dwh_create_date: datetime


class CategorySchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    cat: Optional[str] = None
    subcat: Optional[str] = None
    maintenance: Optional[str] = None
    dwh_create_date: datetime


class CustomerDimensionSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    customer_key: int
    customer_id: int
    customer_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    country: Optional[str] = None
    marital_status: str
    gender: str
    birthdate: Optional[datetime] = None
    create_date: Optional[datetime] = None


class ProductDimensionSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    product_key: int
    product_id: Optional[int] = None
    product_number: Optional[str] = None
    product_name: Optional[str] = None
    category_id: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    maintenance: Optional[str] = None
    cost: float
    product_line: str
    start_date: Optional[datetime] = None


class SalesFactSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    order_number: Optional[str] = None
    product_key: Optional[int] = None
    customer_key: Optional[int] = None
    order_date: Optional[datetime] = None
    shipping_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    sales_amount: Optional[float] = None
    quantity: Optional[int] = None
    price: Optional[float] = None


MODEL_MAP: Dict[str, Type[BaseModel]] = {
    "silver_crm_cust_info": CustomerProfileSchema,
    "silver_crm_prd_info": ProductCatalogSchema,
    "silver_crm_sales_details": SalesLineSchema,
    "silver_erp_cust_az12": ErpCustomerSchema,
    "silver_erp_loc_a101": LocationSchema,
    "silver_erp_px_cat_g1v2": CategorySchema,
    "gold_dim_customers": CustomerDimensionSchema,
    "gold_dim_products": ProductDimensionSchema,
    "gold_fact_sales": SalesFactSchema,
}


def _clean_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT or value is pd.NA:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        return value.item()
    return value


def dataframe_rows(df: pd.DataFrame, sample_size: Optional[int] = None) -> List[Dict[str, Any]]:
    """DataFrame -> list of plain dicts with nulls as None (optionally the first N rows)"""
    sample = df if sample_size is None else df.head(sample_size)
    return [
        {column: _clean_value(value) for column, value in record.items()}
        for record in sample.astype(object).to_dict(orient="records")
    ]


def validate_dataframe(
    table_key: str,
    rows: List[Dict[str, Any]],
) -> Dict[str, Any]:
    model = MODEL_MAP.get(table_key)
    if not model:
        return {
            "status": "skipped",
            "error_count": 0,
            "errors": [],
        }

    errors: List[Dict[str, Any]] = []
    for row_index, row in enumerate(rows):
        try:
            model.model_validate(row)
        except ValidationError as exc:
            for err in exc.errors():
                errors.append({
                    "row_index": row_index,
                    "field": ".".join(str(part) for part in err.get("loc", [])),
                    "message": err.get("msg", "validation error"),
                    "type": err.get("type", "validation_error"),
                })

    status = "pass" if not errors else "fail"
    return {
        "status": status,
        "error_count": len(errors),
        "errors": errors,
    }
