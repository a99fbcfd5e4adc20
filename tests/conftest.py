"""
Shared fixtures: a small CRM/ERP extract set written as CSV files

The rows cover the cleansing boundaries:
- a customer duplicated with an older record, a customer without an id
- untrimmed names, lower-case and padded codes
- a product with three versions (end dates derived), a product with no cost
- sales dates of 0 and of 7 digits, a zero amount, a negative price
- a sales line matching no customer and no product
- an ERP birthdate in the future
"""

from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from warehouse.Extract import DEFAULT_SOURCE_FILES, RawExtractor
from warehouse.StarSchema import DimensionBuilder, FactBuilder
from warehouse.Transform import DataTransformer

PROCESSING_TIME = datetime(2026, 1, 15, 12, 0, 0)

RAW_ROWS = {
    'crm_cust_info': (
        ['cst_id', 'cst_key', 'cst_firstname', 'cst_lastname', 'cst_marital_status', 'cst_gndr', 'cst_create_date'],
        [
            ['1', 'AW00011000', ' Jon ', 'Yang ', 'M', 'M', '2025-10-06'],
            ['2', 'AW00011001', 'Old', 'Huang', 'S', '', '2025-01-01'],
            ['2', 'AW00011001', ' Eugene', 'Huang', 'S', 'F', '2025-10-06'],
            ['3', 'AW00011002', 'Ruben', 'Torres', ' s ', '', '2025-10-06'],
            ['', 'AW00011999', 'No', 'Id', 'M', 'M', '2025-10-06'],
            ['4', 'AW00011003', 'Christy', 'Zhu', 'X', 'f', ''],
        ],
    ),
    'crm_prd_info': (
        ['prd_id', 'prd_key', 'prd_nm', 'prd_cost', 'prd_line', 'prd_start_dt', 'prd_end_dt'],
        [
            ['210', 'CO-RF-FR-R92B-58', 'HL Road Frame - Black- 58', '', 'R', '2003-07-01', ''],
            ['211', 'CO-RF-FR-R92R-58', 'HL Road Frame - Red- 58', '1431', 'R ', '2003-07-01', ''],
            ['212', 'AC-HE-HL-U509-R', 'Sport-100 Helmet- Red', '12', 'S', '2011-07-01', '2007-12-28'],
            ['213', 'AC-HE-HL-U509-R', 'Sport-100 Helmet- Red', '14', 's', '2012-07-01', '2008-12-27'],
            ['214', 'AC-HE-HL-U509-R', 'Sport-100 Helmet- Red', '13', 'S', '2013-07-01', ''],
        ],
    ),
    'crm_sales_details': (
        ['sls_ord_num', 'sls_prd_key', 'sls_cust_id', 'sls_order_dt', 'sls_ship_dt', 'sls_due_dt',
         'sls_sales', 'sls_quantity', 'sls_price'],
        [
            ['SO43697', 'FR-R92R-58', '1', '20101229', '20110105', '20110110', '3578', '1', '3578'],
            ['SO43698', 'HL-U509-R', '2', '20101229', '20110105', '0', '0', '3', '10'],
            ['SO43699', 'HL-U509-R', '3', '20101229', '2011010', '20110110', '30', '3', '-10'],
            ['SO43700', 'FR-R92B-58', '4', '20101229', '20110105', '20110110', '', '2', ''],
            ['SO43701', 'XX-UNKNOWN', '99', '20240115', '20240120', '20240125', '50', '2', '25'],
        ],
    ),
    'erp_loc_a101': (
        ['CID', 'CNTRY'],
        [
            ['AW-00011000', 'US'],
            ['AW-00011001', 'DE'],
            ['AW-00011002', ''],
            ['AW-00011003', 'Australia '],
        ],
    ),
    'erp_cust_az12': (
        ['CID', 'BDATE', 'GEN'],
        [
            ['NASAW00011000', '1971-10-06', 'Male'],
            ['AW00011002', '1976-05-10', ' M '],
            ['NASAW00011003', '2099-01-01', 'female'],
        ],
    ),
    'erp_px_cat_g1v2': (
        ['ID', 'CAT', 'SUBCAT', 'MAINTENANCE'],
        [
            ['CO_RF', 'Components', 'Road Frames', 'Yes'],
            ['AC_HE', 'Accessories', 'Helmets', 'Yes'],
        ],
    ),
}


def write_source_files(source_dir: Path) -> Path:
    """Write every raw extract under source_dir (crm/ and erp/ subfolders)"""
    for entity, (header, rows) in RAW_ROWS.items():
        path = source_dir / DEFAULT_SOURCE_FILES[entity]
        path.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(rows, columns=header).to_csv(path, index=False)
    return source_dir


@pytest.fixture
def processing_time():
    return PROCESSING_TIME


@pytest.fixture
def source_dir(tmp_path):
    return write_source_files(tmp_path / 'datasets')


@pytest.fixture
def raw_frames(source_dir):
    return RawExtractor(source_dir).extract_all()


@pytest.fixture
def silver_frames(raw_frames, processing_time):
    return DataTransformer(processing_time).transform_all(raw_frames)


@pytest.fixture
def gold_frames(silver_frames):
    dim_customers = DimensionBuilder.build_customers(
        silver_frames['crm_cust_info'], silver_frames['erp_cust_az12'], silver_frames['erp_loc_a101'])
    dim_products = DimensionBuilder.build_products(
        silver_frames['crm_prd_info'], silver_frames['erp_px_cat_g1v2'])
    return {
        'dim_customers': dim_customers,
        'dim_products': dim_products,
        'fact_sales': FactBuilder.build_sales(
            silver_frames['crm_sales_details'], dim_products, dim_customers),
    }
