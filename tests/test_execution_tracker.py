"""
Tests for stage results and the run summary
"""

import json
from datetime import datetime

import pandas as pd
import pytest
from sqlalchemy.exc import OperationalError

from warehouse.utils.execution_tracker import (
    FailureCause,
    PipelineAbortedError,
    PipelineRunSummary,
    StageResult,
    StageStatus,
    error_code_for,
)


class TestErrorCodes:

    @pytest.mark.parametrize('exc, code', [
        (OperationalError('SELECT 1', {}, Exception('locked')), 1),
        (FileNotFoundError('crm/cust_info.csv'), 2),
        (KeyError('cst_id'), 3),
        (TypeError('bad type'), 3),
        (ValueError('bad value'), 3),
        (RuntimeError('boom'), 9),
    ])
    def test_error_code_for(self, exc, code):
        assert error_code_for(exc) == code

    def test_failure_cause_from_exception(self):
        cause = FailureCause.from_exception('silver', KeyError('cst_id'))
        assert cause.stage == 'silver'
        assert cause.state == 'silver'
        assert cause.error_type == 'KeyError'
        assert cause.error_code == 3
        assert 'silver' in cause.describe()

    def test_aborted_error_carries_cause(self):
        cause = FailureCause.from_exception('bronze', FileNotFoundError('missing'))
        error = PipelineAbortedError(cause)
        assert error.cause is cause
        assert 'bronze' in str(error)


class TestPipelineRunSummary:

    @pytest.fixture
    def failed_summary(self):
        summary = PipelineRunSummary(run_id='dwh_test', start_time=datetime(2026, 1, 15, 12, 0, 0))
        summary.record(StageResult('bronze', StageStatus.SUCCESS, rows=10, duration_seconds=0.5))
        summary.record(StageResult('silver', StageStatus.FAILED,
                                   failure=FailureCause.from_exception('silver', ValueError('bad'))))
        summary.record(StageResult('gold_dimensions', StageStatus.SKIPPED))
        summary.finalize()
        return summary

    def test_failed_run(self, failed_summary):
        assert not failed_summary.succeeded
        assert failed_summary.failure.stage == 'silver'

        record = failed_summary.to_dict()
        assert record['Status'] == 'FAILED'
        assert record['Stages_Succeeded'] == 1
        assert record['Stages_Failed'] == 1
        assert record['Stages_Skipped'] == 1
        assert record['Error_Code'] == 3
        assert [s['stage'] for s in json.loads(record['Stage_Details'])] == [
            'bronze', 'silver', 'gold_dimensions']

    def test_successful_run(self):
        summary = PipelineRunSummary(run_id='dwh_ok', start_time=datetime.now())
        summary.record(StageResult('bronze', StageStatus.SUCCESS, rows=1))
        summary.violation_count = 4
        summary.finalize()
        assert summary.succeeded
        assert summary.failure is None
        assert summary.to_dict()['Violation_Count'] == 4

    def test_empty_run_is_not_success(self):
        assert not PipelineRunSummary(run_id='dwh_none', start_time=datetime.now()).succeeded

    def test_stage_frame(self, failed_summary):
        frame = failed_summary.stage_frame()
        assert list(frame['status']) == ['SUCCESS', 'FAILED', 'SKIPPED']

    def test_save_to_csv_appends(self, failed_summary, tmp_path):
        failed_summary.save_to_csv(tmp_path)
        path = failed_summary.save_to_csv(tmp_path)
        history = pd.read_csv(path)
        assert len(history) == 2
        assert list(history['Run_ID']) == ['dwh_test', 'dwh_test']
