#!/usr/bin/env python3
"""Main entry point for process descriptor tooling."""

import argparse
import logging
import os
import sys
from typing import List, Optional

from ecosystem import capacity, formats, launcher, presets
from ecosystem.config import DeploymentConfig
from ecosystem.exceptions import DescriptorError
from ecosystem.roles import role_of

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='INFO',
        help='Set the logging level'
    )

    # Only render and plan read deployment settings
    settings = argparse.ArgumentParser(add_help=False)
    settings.add_argument(
        '--config', help='Path to deployment configuration file (YAML)'
    )

    overrides = argparse.ArgumentParser(add_help=False)
    overrides.add_argument(
        '--script', help='Entry point shared by all apps (overrides config)'
    )
    overrides.add_argument(
        '--node-env', help='Value of NODE_ENV (overrides config)'
    )
    overrides.add_argument(
        '--max-memory-restart',
        help='Memory ceiling such as 1000M (overrides config)'
    )

    parser = argparse.ArgumentParser(
        description='Validate and render process manager descriptor files.'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    validate = subparsers.add_parser(
        'validate', parents=[common], help='Validate descriptor files'
    )
    validate.add_argument('paths', nargs='+', help='Descriptor files')
    validate.add_argument(
        '--max-memory-percent',
        type=float,
        default=80.0,
        help='Share of host memory the memory ceilings may add up to'
    )

    render = subparsers.add_parser(
        'render', parents=[common, settings, overrides],
        help='Write deployment variant files'
    )
    render.add_argument(
        'variants',
        nargs='*',
        help=f"Variants to render: {', '.join(presets.VARIANTS)} "
        "(default: all)",
        metavar='VARIANT'
    )
    render.add_argument(
        '--format',
        choices=formats.FORMATS,
        default=formats.JS,
        help='Output file format'
    )
    render.add_argument(
        '--output-dir', help='Directory to write to (overrides config)'
    )

    list_parser = subparsers.add_parser(
        'list', parents=[common], help='List the apps of a descriptor file'
    )
    list_parser.add_argument('path', help='Descriptor file')

    plan = subparsers.add_parser(
        'plan', parents=[common, settings],
        help='Show the processes a descriptor file asks for'
    )
    plan.add_argument('path', help='Descriptor file')
    plan.add_argument(
        '--interpreter', help='Runtime that executes the script'
    )

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> DeploymentConfig:
    """Combine the optional config file with command line overrides.

    Raises:
        FileNotFoundError: If the config file does not exist
        DescriptorError: If the resulting configuration is invalid
    """
    config = None
    if args.config:
        config = DeploymentConfig.from_yaml(args.config)
    return DeploymentConfig.from_args_and_config(args, config)


def run_validate(args: argparse.Namespace) -> int:
    """Validate each descriptor file."""
    failed = 0
    for path in args.paths:
        try:
            descriptor_set = formats.load(path)
        except (DescriptorError, FileNotFoundError) as e:
            logger.error("%s", e)
            failed += 1
            continue
        capacity.check_host(descriptor_set, args.max_memory_percent)
        logger.info(
            "%s is valid: %s", path, ', '.join(descriptor_set.names())
        )

    if failed:
        logger.error("%d of %d files are invalid", failed, len(args.paths))
        return 1
    return 0


def run_render(args: argparse.Namespace, config: DeploymentConfig) -> int:
    """Write the requested deployment variants."""
    variants = args.variants or list(presets.VARIANTS)
    # Build every set first so an invalid variant writes nothing
    rendered = [
        (presets.default_filename(variant, args.format),
         presets.build(variant, config))
        for variant in variants
    ]
    logger.info("Output directory: %s", config.output_dir)
    for filename, descriptor_set in rendered:
        formats.dump(descriptor_set, os.path.join(config.output_dir, filename))
    return 0


def run_list(args: argparse.Namespace) -> int:
    """Print one line per app."""
    descriptor_set = formats.load(args.path)
    for app in descriptor_set:
        print(
            f"{app.name:<20} {app.exec_mode.value:<8} {app.instances:>3}  "
            f"{role_of(app).value:<9} {app.max_memory_restart}"
        )
    return 0


def run_plan(args: argparse.Namespace, config: DeploymentConfig) -> int:
    """Print one line per process."""
    descriptor_set = formats.load(args.path)
    plans = launcher.plan(descriptor_set, interpreter=config.interpreter)
    for item in plans:
        print(item.describe())
    logger.info(
        "%d processes across %d apps", len(plans), len(descriptor_set)
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format=LOG_FORMAT)

    try:
        if args.command == 'validate':
            return run_validate(args)
        if args.command == 'list':
            return run_list(args)
        config = load_config(args)
        if args.command == 'render':
            return run_render(args, config)
        return run_plan(args, config)
    except (DescriptorError, FileNotFoundError) as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == '__main__':
    sys.exit(main())
