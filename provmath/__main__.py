"""
Main entry point for provmath.

Runs the province indicator analysis and prints a text report.
"""

import argparse
import logging
import sys
from typing import List, Optional

from provmath.components.config import LOG_LEVELS, Config, load_config_file
from provmath.errors import ProvmathError
from provmath.pipeline import AnalysisPipeline, format_report

logger = logging.getLogger('provmath')


def setup_logging(level: str = 'INFO') -> None:
    """
    Set up logging.

    Unknown level names fall back to WARNING.

    Args:
        level: Logging level
    """
    name = str(level).upper()
    logging.basicConfig(
        level=getattr(logging, name) if name in LOG_LEVELS else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler()
        ]
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='PCA and k-means analysis of provincial indicators'
    )

    parser.add_argument(
        '--config',
        help='Path to configuration file (JSON or YAML)'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (defaults to logging.level from the configuration)'
    )

    parser.add_argument(
        '--input',
        help='Delimited input file (defaults to the bundled Argentina dataset)'
    )

    parser.add_argument(
        '--output-dir',
        help='Directory for observations.csv, loadings.csv and summary.json'
    )

    parser.add_argument('--k', type=int, help='Number of clusters')
    parser.add_argument('--restarts', type=int, help='Number of k-means restarts')
    parser.add_argument('--max-iter', type=int, help='Maximum k-means iterations per restart')
    parser.add_argument('--seed', type=int, help='Random seed for k-means initialization')
    parser.add_argument('--components', type=int, help='Number of leading components to cluster on')

    parser.add_argument(
        '--backend',
        choices=['lapack', 'power'],
        help='Eigen-solver backend for PCA'
    )

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict:
    """
    Turn command line arguments into configuration overrides.

    Values from --config come first; explicit flags win over them.
    """
    overrides = {}

    if args.config:
        overrides.update(load_config_file(args.config))

    def put(section, key, value):
        if value is not None:
            overrides.setdefault(section, {})[key] = value

    put('input', 'path', args.input)
    put('output', 'dir', args.output_dir)
    put('pca', 'backend', args.backend)
    put('kmeans', 'k', args.k)
    put('kmeans', 'restarts', args.restarts)
    put('kmeans', 'max-iter', args.max_iter)
    put('kmeans', 'seed', args.seed)
    put('kmeans', 'components', args.components)

    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Process exit status
    """
    args = parse_args(argv)

    try:
        config = Config(build_overrides(args))
    except ProvmathError as e:
        setup_logging(args.log_level or 'WARNING')
        logger.error(f"Analysis aborted: {e}")
        return 1

    setup_logging(args.log_level or config.get('logging.level'))

    try:
        result = AnalysisPipeline(config).run()
    except ProvmathError as e:
        logger.error(f"Analysis aborted: {e}")
        return 1

    print(format_report(result))
    return 0


if __name__ == '__main__':
    sys.exit(main())
