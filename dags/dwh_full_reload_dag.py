# ═══════════════════════════════════════════════════════════════════════
# DWH PIPELINE: FULL RELOAD DAG
# ═══════════════════════════════════════════════════════════════════════

"""
dwh_full_reload_dag.py - Bronze → Silver → Gold full reload

One task wrapping warehouse.Pipeline.run_full_pipeline. The stage trace
(durations, row counts, failure cause) lands in the task log.
Schedule: manual trigger, no retries.
"""

import os

from airflow import DAG
from airflow.operators.python import PythonOperator

from dag_base import CONFIG_PATH, DAG_CONFIG, DEFAULT_ARGS, log_failure, log_success


def run_full_reload(**context):
    """Run the full pipeline; a failed stage fails the task"""
    from warehouse.Pipeline import run_full_pipeline

    os.environ.setdefault('DWH_CONFIG_PATH', CONFIG_PATH)
    run_full_pipeline(raise_on_failure=True)


with DAG(
    dag_id='dwh_full_reload',
    default_args=DEFAULT_ARGS,
    description='Full reload of the CRM/ERP warehouse (bronze, silver, gold, quality checks)',
    on_success_callback=log_success,
    **DAG_CONFIG,
) as dag:

    full_reload = PythonOperator(
        task_id='run_full_pipeline',
        python_callable=run_full_reload,
        on_failure_callback=log_failure,
    )
