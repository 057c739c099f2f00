"""
Run the Growth Curve Simulation Study
=====================================

Runs the full factorial Monte Carlo study and writes the summary table and
run metadata.

Usage:
    python scripts/run_study.py
    python scripts/run_study.py --config config/study_config.json --n_replications 100
    python scripts/run_study.py --workers 4 --output_dir results/

Outputs (in --output_dir):
    summary.csv          One row per (condition, model) with bias diagnostics
    study_metadata.json  Settings, failure counts and flagged conditions
"""

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from growthsim.config_schema import StudyConfig, config_from_dict, load_study_config
from growthsim.exceptions import GrowthSimError
from growthsim.utils.logging_config import get_logger, setup_logging
from growthsim.validation.monte_carlo import run_study

DEFAULT_CONFIG = PROJECT_ROOT / 'config' / 'study_config.json'
DEFAULT_OUTPUT = PROJECT_ROOT / 'results'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Run the growth curve Monte Carlo study')
    parser.add_argument('--config', type=Path, default=DEFAULT_CONFIG,
                        help=f'Study configuration JSON (default: {DEFAULT_CONFIG.name}; '
                             'built-in defaults if the file does not exist)')
    parser.add_argument('--n_replications', type=int, default=None,
                        help='Replications per condition (overrides config)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Base random seed (overrides config)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Parallel worker processes (overrides config)')
    parser.add_argument('--output_dir', type=Path, default=DEFAULT_OUTPUT,
                        help='Directory for summary.csv and study_metadata.json')
    parser.add_argument('--log_level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Console log level (default: INFO)')
    parser.add_argument('--log_file', default=None,
                        help='Optional log file (detailed format)')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=getattr(logging, args.log_level), log_file=args.log_file)
    logger = get_logger('growthsim.run_study')

    overrides = {
        'n_replications': args.n_replications,
        'seed': args.seed,
        'n_workers': args.workers,
    }

    try:
        if args.config.exists():
            config = load_study_config(args.config, overrides)
        else:
            logger.warning("Config %s not found, using built-in defaults", args.config)
            defaults = StudyConfig().to_dict()
            defaults['study'].update({k: v for k, v in overrides.items() if v is not None})
            config = config_from_dict(defaults)

        result = run_study(config, output_dir=args.output_dir)
    except GrowthSimError as e:
        logger.error("Study failed: %s", e)
        return 1

    if result.flagged_conditions:
        logger.warning("Conditions above the failure threshold: %s",
                       result.flagged_conditions)
    return 0


if __name__ == '__main__':
    sys.exit(main())
