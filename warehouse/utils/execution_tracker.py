# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: Run Execution Tracker
# ═══════════════════════════════════════════════════════════════════════

"""
Pipeline Execution Tracker

Structured per-stage results for the run driver:
- StageStatus: SUCCESS / FAILED / SKIPPED
- FailureCause: stage, error type, message, numeric error code, state code
- StageResult: status, rows, duration, failure cause
- PipelineRunSummary: aggregated run outcome (dict / DataFrame / CSV history)
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class StageStatus(str, Enum):
    SUCCESS = 'SUCCESS'
    FAILED = 'FAILED'
    SKIPPED = 'SKIPPED'


# Numeric error codes reported for structural failures
ERROR_CODE_STORAGE = 1
ERROR_CODE_SOURCE_MISSING = 2
ERROR_CODE_SCHEMA = 3
ERROR_CODE_UNEXPECTED = 9


def error_code_for(exc: BaseException) -> int:
    """Map an exception to its numeric error code"""
    if isinstance(exc, SQLAlchemyError):
        return ERROR_CODE_STORAGE
    if isinstance(exc, FileNotFoundError):
        return ERROR_CODE_SOURCE_MISSING
    if isinstance(exc, (KeyError, TypeError, ValueError)):
        return ERROR_CODE_SCHEMA
    return ERROR_CODE_UNEXPECTED


@dataclass(frozen=True)
class FailureCause:
    """Why a stage failed"""
    stage: str
    error_type: str
    message: str
    error_code: int
    state: str

    @classmethod
    def from_exception(cls, stage: str, exc: BaseException) -> 'FailureCause':
        return cls(
            stage=stage,
            error_type=type(exc).__name__,
            message=str(exc),
            error_code=error_code_for(exc),
            state=stage,
        )

    def describe(self) -> str:
        return (f"stage '{self.stage}' failed: {self.error_type}: {self.message} "
                f"(error code {self.error_code}, state {self.state})")


@dataclass
class StageResult:
    """Outcome of one pipeline stage"""
    stage: str
    status: StageStatus
    rows: int = 0
    duration_seconds: float = 0.0
    failure: Optional[FailureCause] = None

    @property
    def succeeded(self) -> bool:
        return self.status is StageStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stage': self.stage,
            'status': self.status.value,
            'rows': self.rows,
            'duration_seconds': round(self.duration_seconds, 3),
            'error_code': self.failure.error_code if self.failure else None,
            'error_message': self.failure.message if self.failure else None,
        }


class PipelineAbortedError(RuntimeError):
    """Raised when a run aborts on a structural error"""

    def __init__(self, cause: FailureCause):
        super().__init__(cause.describe())
        self.cause = cause


@dataclass
class PipelineRunSummary:
    """
    Aggregated outcome of one pipeline run

    The run succeeds when every stage succeeded. Integrity violations are
    reported in ``violation_count`` but never change the status.
    """
    run_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    stages: List[StageResult] = field(default_factory=list)
    violation_count: int = 0

    @property
    def succeeded(self) -> bool:
        return bool(self.stages) and all(stage.succeeded for stage in self.stages)

    @property
    def failure(self) -> Optional[FailureCause]:
        for stage in self.stages:
            if stage.failure is not None:
                return stage.failure
        return None

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def record(self, result: StageResult):
        self.stages.append(result)

    def finalize(self):
        self.end_time = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        failure = self.failure
        return {
            'Run_ID': self.run_id,
            'Start_Time': self.start_time.isoformat(),
            'End_Time': self.end_time.isoformat() if self.end_time else None,
            'Duration_Seconds': round(self.duration_seconds, 3),
            'Status': StageStatus.SUCCESS.value if self.succeeded else StageStatus.FAILED.value,
            'Stages_Succeeded': sum(1 for s in self.stages if s.status is StageStatus.SUCCESS),
            'Stages_Failed': sum(1 for s in self.stages if s.status is StageStatus.FAILED),
            'Stages_Skipped': sum(1 for s in self.stages if s.status is StageStatus.SKIPPED),
            'Failed_Stage': failure.stage if failure else None,
            'Error_Code': failure.error_code if failure else None,
            'Error_Message': failure.message if failure else None,
            'Violation_Count': self.violation_count,
            'Stage_Details': json.dumps([s.to_dict() for s in self.stages]),
        }

    def stage_frame(self) -> pd.DataFrame:
        """One row per stage"""
        return pd.DataFrame([s.to_dict() for s in self.stages])

    def save_to_csv(self, output_dir: Path) -> Path:
        """
        Append this run to the run-history CSV

        Args:
            output_dir: Directory holding pipeline_run_history.csv

        Returns:
            Path of the CSV file
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        csv_path = output_dir / 'pipeline_run_history.csv'

        summary_df = pd.DataFrame([self.to_dict()])
        if csv_path.exists():
            existing_df = pd.read_csv(csv_path)
            summary_df = pd.concat([existing_df, summary_df], ignore_index=True)

        summary_df.to_csv(csv_path, index=False)
        logger.info(f"✅ Run summary saved to {csv_path}")
        return csv_path

    def log_summary(self):
        """Log a human-readable run summary"""
        logger.info("=" * 70)
        logger.info("PIPELINE RUN SUMMARY")
        logger.info("=" * 70)
        logger.info(f"Run ID:      {self.run_id}")
        logger.info(f"Duration:    {self.duration_seconds:.2f} seconds")
        for stage in self.stages:
            logger.info(f"  {stage.stage:<16} {stage.status.value:<8} "
                        f"{stage.rows:>10,} rows  {stage.duration_seconds:8.2f}s")
        logger.info(f"Violations:  {self.violation_count}")
        failure = self.failure
        if failure is None:
            logger.info("Status:      SUCCESS")
        else:
            logger.error(f"Status:      FAILED ({failure.describe()})")
        logger.info("=" * 70)
