"""
Unit tests for the integrity validator and row schemas
"""

import json
from datetime import datetime

import pandas as pd
import pytest

from warehouse.config_loader import ValidationSettings
from warehouse.utils.schema_validation import dataframe_rows, validate_dataframe
from warehouse.utils.validation_utils import (
    SEVERITY_ERROR,
    SEVERITY_WARNING,
    IntegrityValidator,
    ValidationReport,
)


@pytest.fixture
def validator(processing_time):
    return IntegrityValidator(ValidationSettings(), processing_time=processing_time)


def _by_check(report: ValidationReport):
    return {violation.check: violation for violation in report.violations}


class TestDimensionalChecks:

    def test_fixture_findings(self, validator, silver_frames, gold_frames):
        report = validator.validate(silver_frames, gold_frames)
        assert [v.check for v in report.errors] == ['fact_referential_completeness']

        violation = report.errors[0]
        assert violation.relation == 'fact_sales'
        assert violation.count == 1
        assert violation.keys == [{
            'order_number': 'SO43701',
            'product_number': 'XX-UNKNOWN',
            'customer_id': 99,
        }]

    def test_duplicate_surrogate_keys(self, validator, silver_frames, gold_frames):
        customers = gold_frames['dim_customers'].copy()
        customers.loc[1, 'customer_key'] = 1
        gold = dict(gold_frames, dim_customers=customers)
        violations = _by_check(validator.validate(silver_frames, gold))
        assert violations['unique_customer_key'].severity == SEVERITY_ERROR
        assert violations['unique_customer_key'].count == 2

    def test_key_missing_from_dimension(self, validator, silver_frames, gold_frames):
        products = gold_frames['dim_products']
        gold = dict(gold_frames, dim_products=products[products['product_key'] != 3])
        violation = _by_check(validator.validate(silver_frames, gold))['fact_referential_completeness']
        # SO43698, SO43699 point at product key 3, SO43701 has none
        assert violation.count == 3

    def test_clean_model_has_no_errors(self, validator, silver_frames, gold_frames):
        fact = gold_frames['fact_sales']
        sales = silver_frames['crm_sales_details']
        keep = fact['order_number'] != 'SO43701'
        gold = dict(gold_frames, fact_sales=fact[keep].reset_index(drop=True))
        silver = dict(silver_frames, crm_sales_details=sales[keep].reset_index(drop=True))
        report = validator.validate(silver, gold)
        assert report.errors == []

    def test_inputs_not_mutated(self, validator, silver_frames, gold_frames):
        before = {name: df.copy() for name, df in gold_frames.items()}
        validator.validate(silver_frames, gold_frames)
        for name, df in gold_frames.items():
            pd.testing.assert_frame_equal(df, before[name])


class TestCleansedChecks:

    def test_fixture_warnings(self, validator, silver_frames, gold_frames):
        violations = _by_check(validator.validate(silver_frames, gold_frames))
        amount = violations['sales_amount_consistency']
        assert amount.severity == SEVERITY_WARNING
        assert amount.count == 1
        assert amount.keys[0]['sls_ord_num'] == 'SO43700'
        assert 'unique_cst_id' not in violations
        assert 'cost_non_negative' not in violations

    def test_duplicate_and_null_primary_key(self, validator, silver_frames, gold_frames):
        customers = silver_frames['crm_cust_info'].copy()
        customers['cst_id'] = pd.array([1, 1, None, 4], dtype='Int64')
        silver = dict(silver_frames, crm_cust_info=customers)
        assert _by_check(validator.validate(silver, gold_frames))['unique_cst_id'].count == 3

    def test_untrimmed_text(self, validator, silver_frames, gold_frames):
        products = silver_frames['crm_prd_info'].copy()
        products.loc[0, 'prd_nm'] = ' padded '
        silver = dict(silver_frames, crm_prd_info=products)
        assert _by_check(validator.validate(silver, gold_frames))['trimmed_prd_nm'].count == 1

    def test_negative_cost_and_date_order(self, validator, silver_frames, gold_frames):
        products = silver_frames['crm_prd_info'].copy()
        products.loc[0, 'prd_cost'] = -1.0
        products.loc[1, 'prd_end_dt'] = pd.Timestamp('2000-01-01')
        silver = dict(silver_frames, crm_prd_info=products)
        violations = _by_check(validator.validate(silver, gold_frames))
        assert violations['cost_non_negative'].count == 1
        assert violations['product_date_order'].count == 1

    def test_sales_date_order(self, validator, silver_frames, gold_frames):
        sales = silver_frames['crm_sales_details'].copy()
        sales.loc[0, 'sls_ship_dt'] = pd.Timestamp('2000-01-01')
        silver = dict(silver_frames, crm_sales_details=sales)
        assert _by_check(validator.validate(silver, gold_frames))['sales_date_order'].count == 1

    def test_birthdate_range(self, validator, silver_frames, gold_frames):
        erp = silver_frames['erp_cust_az12'].copy()
        erp.loc[0, 'bdate'] = pd.Timestamp('1900-05-05')
        silver = dict(silver_frames, erp_cust_az12=erp)
        violation = _by_check(validator.validate(silver, gold_frames))['birthdate_range']
        assert violation.count == 1
        assert violation.keys == [{'cid': 'AW00011000', 'bdate': '1900-05-05T00:00:00'}]

    def test_unexpected_enumeration(self, validator, silver_frames, gold_frames):
        customers = silver_frames['crm_cust_info'].copy()
        customers.loc[0, 'cst_marital_status'] = 'Divorced'
        silver = dict(silver_frames, crm_cust_info=customers)
        assert _by_check(validator.validate(silver, gold_frames))['allowed_marital_status'].count == 1

    def test_distinct_values_reported(self, validator, silver_frames, gold_frames):
        report = validator.validate(silver_frames, gold_frames)
        assert report.distinct_values['country'] == ['Australia', 'Germany', 'United States', 'n/a']
        assert report.distinct_values['marital_status'] == ['Married', 'Single', 'n/a']
        assert report.distinct_values['maintenance'] == ['Yes']

    def test_country_checked_when_configured(self, processing_time, silver_frames, gold_frames):
        settings = ValidationSettings(allowed_values={'country': ['Germany', 'United States', 'n/a']})
        report = IntegrityValidator(settings, processing_time).validate(silver_frames, gold_frames)
        assert _by_check(report)['allowed_country'].count == 1


class TestRawChecks:

    def test_raw_sales_dates(self, validator, raw_frames, silver_frames, gold_frames):
        violations = _by_check(validator.validate(silver_frames, gold_frames, raw=raw_frames))
        assert violations['raw_sls_due_dt_range'].keys == [{'sls_ord_num': 'SO43698', 'sls_due_dt': 0}]
        assert violations['raw_sls_ship_dt_range'].keys == [{'sls_ord_num': 'SO43699', 'sls_ship_dt': 2011010}]
        assert 'raw_sls_order_dt_range' not in violations

    def test_raw_date_bounds(self, processing_time, raw_frames, silver_frames, gold_frames):
        raw = dict(raw_frames)
        sales = raw['crm_sales_details'].copy()
        sales.loc[0, 'sls_order_dt'] = 20600101
        raw['crm_sales_details'] = sales
        report = IntegrityValidator(ValidationSettings(), processing_time).validate(
            silver_frames, gold_frames, raw=raw)
        assert _by_check(report)['raw_sls_order_dt_range'].count == 1


class TestValidationReport:

    def test_to_frame(self, validator, silver_frames, gold_frames):
        frame = validator.validate(silver_frames, gold_frames).to_frame()
        assert list(frame.columns) == [
            'check_name', 'relation', 'severity', 'violation_count', 'message', 'sample_keys']
        row = frame[frame['check_name'] == 'fact_referential_completeness'].iloc[0]
        assert json.loads(row['sample_keys'])[0]['order_number'] == 'SO43701'

    def test_empty_report_frame(self):
        frame = ValidationReport().to_frame()
        assert frame.empty
        assert 'check_name' in frame.columns


class TestRowSchemas:

    def test_silver_sample_passes(self, silver_frames):
        for entity, df in silver_frames.items():
            result = validate_dataframe(f'silver_{entity}', dataframe_rows(df))
            assert result['status'] == 'pass', (entity, result['errors'])

    def test_gold_sample_passes(self, gold_frames):
        for name, df in gold_frames.items():
            result = validate_dataframe(f'gold_{name}', dataframe_rows(df))
            assert result['status'] == 'pass', (name, result['errors'])

    def test_missing_required_field(self):
        rows = [{'cst_id': None, 'cst_marital_status': 'Single', 'cst_gndr': 'Male',
                 'dwh_create_date': datetime(2026, 1, 1)}]
        result = validate_dataframe('silver_crm_cust_info', rows)
        assert result['status'] == 'fail'
        assert result['errors'][0]['field'] == 'cst_id'

    def test_unknown_table_skipped(self):
        assert validate_dataframe('bronze_crm_cust_info', [{}])['status'] == 'skipped'
