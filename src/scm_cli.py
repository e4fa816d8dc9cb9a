#!/usr/bin/env python3
"""
SCM Input CLI

Resolve the configuration of a single-column model experiment, then load its
case initialization/forcing data and reference profile.

Usage examples:
    # Resolve ../case_config/twpice.yaml and load the case data
    python scm_cli.py twpice

    # Override case_config values on the command line
    python scm_cli.py twpice dt=300.0 case_name='arm_sgp_summer_1997' sfc_flux_spec=.true.

    # Use other directories and write a log file
    python scm_cli.py --config-dir ./case_config --input-dir ./processed_case_input \\
        --log-file ./logs/twpice.log twpice
"""

import argparse
import sys
from typing import List, Optional

from case_input_loader import CaseInputLoader
from config_manager import ConfigResolver
from logging_utils import ProcessingLogger, SCMError, setup_scm_logging
from reference_profiles import ReferenceProfileProvider


def create_parser():
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Single-column model input preprocessor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s twpice
  %(prog)s twpice dt=300.0 n_columns=2 case_name='twpice'
        """
    )
    parser.add_argument(
        '--config-dir',
        default='../case_config',
        help='Directory containing <experiment>.yaml files (default: ../case_config)'
    )
    parser.add_argument(
        '--input-dir',
        default='../processed_case_input',
        help='Directory containing case and reference profile files (default: ../processed_case_input)'
    )
    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Console log level (default: INFO)'
    )
    parser.add_argument(
        '--log-file',
        help='Optional log file (captures DEBUG messages)'
    )
    parser.add_argument(
        'experiment_name',
        nargs='?',
        help='Experiment name; reads <config-dir>/<experiment_name>.yaml'
    )
    parser.add_argument(
        'overrides',
        nargs=argparse.REMAINDER,
        help="case_config overrides of the form var1='string' var2=d.d var3=i"
    )
    return parser


def run(args, prog: str = 'scm-input') -> int:
    """Resolve the configuration and load the case input. Returns an exit code."""
    logger = setup_scm_logging(args.log_level, args.log_file)
    processing_logger = ProcessingLogger(logger)

    invocation = [prog]
    if args.experiment_name is not None:
        invocation.append(args.experiment_name)
    invocation.extend(args.overrides)

    try:
        config = ConfigResolver(config_dir=args.config_dir).resolve(invocation)
        processing_logger.log_processing_start(config.experiment_name, config.to_dict())

        dataset = CaseInputLoader(args.input_dir, processing_logger).load(
            config.case_name, config.sfc_flux_spec
        )
        profile = ReferenceProfileProvider(args.input_dir, processing_logger).get_profile(
            config.reference_profile_choice
        )
    except SCMError as e:
        logger.error(f"{type(e).__name__}: {e}")
        for key, value in e.context.items():
            logger.debug(f"  {key}: {value}")
        logger.error("Stopping...")
        return 1

    logger.debug(f"Case dataset:\n{dataset.to_xarray()}")
    logger.debug(f"Reference profile:\n{profile.to_xarray()}")

    processing_logger.log_processing_complete({
        'case_levels': dataset.input_nlev,
        'case_times': dataset.input_ntimes,
        'reference_profile': profile.name,
        'reference_levels': profile.nlev,
    })
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    return run(args, parser.prog)


if __name__ == '__main__':
    sys.exit(main())
