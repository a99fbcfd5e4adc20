"""
Entry point: python -m warehouse

Runs the full reload with the configuration from DWH_CONFIG_PATH
(default config/pipeline_config.yaml). Exit code 0 on success, 1 on failure.
"""

import logging
import sys

from warehouse.Pipeline import run_full_pipeline


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return 0 if run_full_pipeline() else 1


if __name__ == '__main__':
    sys.exit(main())
