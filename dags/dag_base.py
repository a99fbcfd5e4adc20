# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: DAG BASE MODULE
# ═══════════════════════════════════════════════════════════════════════

"""
dag_base.py - Shared DAG Configuration and Utilities

Provides:
- Common DAG default arguments (no retries: a failed run is re-triggered
  by an operator after the cause is fixed)
- Failure/success callbacks that log the run outcome
- Path constants for the config and source directories
"""

import logging
import os
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

# ========================================
# DAG DEFAULT ARGUMENTS
# ========================================

DEFAULT_ARGS = {
    'owner': 'dwh',
    'depends_on_past': False,
    'email_on_failure': False,
    'email_on_retry': False,
    'retries': 0,
    'execution_timeout': timedelta(hours=2),
}

START_DATE = datetime(2025, 1, 1)

# Manual trigger only, one run at a time against the store
DAG_CONFIG = {
    'start_date': START_DATE,
    'schedule': None,
    'catchup': False,
    'max_active_runs': 1,
    'tags': ['dwh', 'full_reload', 'medallion'],
}

# ========================================
# PATHS
# ========================================

AIRFLOW_HOME = os.environ.get('AIRFLOW_HOME', '/opt/airflow')
CONFIG_PATH = os.environ.get('DWH_CONFIG_PATH', f'{AIRFLOW_HOME}/config/pipeline_config.yaml')


# ========================================
# CALLBACKS
# ========================================

def log_failure(context):
    """Log the failed task and its exception"""
    dag_id = context['dag'].dag_id
    task_id = context['task'].task_id
    exception = context.get('exception', 'Unknown error')
    logger.error(f"❌ DWH run failed: {dag_id}.{task_id}: {exception}")


def log_success(context):
    """Log a completed run"""
    logger.info(f"✅ DWH run complete: {context['dag'].dag_id} ({context.get('run_id')})")
