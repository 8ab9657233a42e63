#!/usr/bin/env python3
"""
Fedora 2 UMDM/UMAM Export Tool - Main CLI Entry Point

This script provides the command-line interface for exporting UMDM objects
and their UMAM parts from a Fedora 2 repository into a directory tree with an
``export.csv`` index, driven by a JSON-lines manifest.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config_loader import ConfigLoader, get_nested
from exporters import CSVExportWriter, ObjectHandler
from foxml import ResolutionContext
from logger import LOGGER_NAME, log_config, log_section, setup_logging
from orchestrator import ExportError, ExportOrchestrator, ExportReport

__version__ = "1.0.0"

DEFAULT_CONFIG_PATH = 'config.yaml'
DEFAULT_INDEX_FILE = 'export.csv'


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Export Fedora 2 UMDM objects and their UMAM parts to a directory tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export using config.yaml in the current directory
  python migrate.py --manifest umdm.jsonl --output-dir ./export

  # Fetch datastreams from a running repository
  python migrate.py --manifest umdm.jsonl --resolver network --fedora-host fedora.example.edu:8080

  # Read datastreams from a copy of the legacy datastream store
  python migrate.py --manifest umdm.jsonl --resolver legacy_fs --datastream-root /data/datastreams

  # Dry-run mode (preview)
  python migrate.py --manifest umdm.jsonl --dry-run

  # Verbose logging
  python migrate.py --manifest umdm.jsonl -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help=f'Path to configuration YAML file (default: {DEFAULT_CONFIG_PATH} when present)'
    )

    parser.add_argument(
        '--manifest',
        type=str,
        help='Path to the JSON-lines UMDM manifest'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Root directory of the export tree'
    )

    parser.add_argument(
        '--resolver',
        choices=['network', 'legacy_fs'],
        help='Datastream resolver (default: network)'
    )

    parser.add_argument(
        '--fedora-host',
        type=str,
        help='Fedora host[:port] used by the network resolver and for local.fedora.server URLs'
    )

    parser.add_argument(
        '--datastream-root',
        type=str,
        help='Root of the legacy datastream store used by the legacy_fs resolver'
    )

    parser.add_argument(
        '--foxml-base-dir',
        type=str,
        help='Base directory for relative FOXML paths in the manifest'
    )

    parser.add_argument(
        '--versions',
        choices=['latest', 'all'],
        help='Export only the latest version of each datastream, or all versions'
    )

    parser.add_argument(
        '--overwrite',
        action='store_true',
        help='Allow writing into object directories that already contain files'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Write a JSON export report to this path'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='List the objects and locations that would be exported, without writing'
    )

    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write log messages to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def load_configuration(args: argparse.Namespace) -> dict:
    """
    Build the effective configuration from the config file and CLI arguments.

    Raises:
        FileNotFoundError: If an explicitly requested config file is missing
        ValueError: If the configuration is invalid
    """
    config_path = args.config
    if config_path is None and Path(DEFAULT_CONFIG_PATH).exists():
        config_path = DEFAULT_CONFIG_PATH

    config = ConfigLoader.load(config_path) if config_path else {}
    config = ConfigLoader.merge_with_args(config, args)
    config = ConfigLoader.with_defaults(config)
    ConfigLoader.validate(config)
    return config


def run_dry_run(orchestrator: ExportOrchestrator, logger: logging.Logger) -> int:
    """Print the objects a run would export."""
    logger.info("Dry-run mode: listing planned objects")

    print("\n" + "=" * 60)
    print("EXPORT PREVIEW (DRY RUN)")
    print("=" * 60)

    umdm_count = 0
    umam_count = 0
    for planned in orchestrator.plan():
        if planned.parent_pid is None:
            umdm_count += 1
            print(f"  {planned.pid} -> {planned.location}")
        else:
            umam_count += 1
            print(f"    {planned.pid} -> {planned.location}")

    print("-" * 60)
    print(f"UMDM objects: {umdm_count}")
    print(f"UMAM objects: {umam_count}")
    print("=" * 60)

    logger.info("Dry-run complete. No changes made.")
    return 0


def run_export(config: dict, logger: logging.Logger) -> int:
    """Execute the export pipeline and return the process exit code."""
    manifest_path = Path(get_nested(config, 'migration.manifest'))
    target_dir = Path(get_nested(config, 'export.output_directory'))
    index_file = Path(get_nested(config, 'export.index_file') or target_dir / DEFAULT_INDEX_FILE)
    datastream_versions = get_nested(config, 'export.datastream_versions')
    dry_run = get_nested(config, 'migration.dry_run', False)
    report_path = get_nested(config, 'migration.report_path')
    resolver_type = get_nested(config, 'resolver.type')

    context = ResolutionContext.from_config(config, logger=logging.getLogger(f'{LOGGER_NAME}.resolution'))
    try:
        try:
            manifest = open(manifest_path, 'rb')
        except OSError as e:
            logger.error(f"Cannot open manifest {manifest_path}: {e}")
            return 2

        with manifest:
            orchestrator_args = dict(
                target_dir=target_dir,
                handler=ObjectHandler(
                    metadata_file=get_nested(config, 'export.object_metadata_file'),
                    overwrite=get_nested(config, 'export.overwrite', False)
                ),
                manifest=manifest,
                resolution_context=context,
                foxml_base_dir=get_nested(config, 'source.foxml_base_dir'),
                datastream_versions=datastream_versions,
                fetch_external_content=get_nested(config, 'export.fetch_external_content', True),
                show_progress=get_nested(config, 'migration.progress_bars', True)
            )

            if dry_run:
                orchestrator = ExportOrchestrator(export_writer=None, **orchestrator_args)
                try:
                    return run_dry_run(orchestrator, logger)
                except ExportError as e:
                    logger.error(f"Dry run failed: {e}")
                    return 1

            target_dir.mkdir(parents=True, exist_ok=True)
            with CSVExportWriter(index_file) as writer:
                orchestrator = ExportOrchestrator(export_writer=writer, **orchestrator_args)
                try:
                    orchestrator.run()
                    exit_code = 0
                except ExportError:
                    exit_code = 1
    finally:
        context.close()

    report_generator = ExportReport()
    report = report_generator.generate_report(orchestrator.stats, target_dir, index_file, resolver_type)
    print("\n" + report_generator.format_console_report(report))

    if report_path:
        report_generator.export_json_report(report, report_path)

    if exit_code:
        logger.error("Export failed; see the log for the failing object")
    else:
        logger.info("Export completed successfully")
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(verbosity=args.verbose, log_file=args.log_file)
        logger = logging.getLogger(f'{LOGGER_NAME}.cli')

        log_section("Fedora 2 UMDM/UMAM Export Tool")
        logger.info(f"Version: {__version__}")

        config = load_configuration(args)

        # Reconfigure with file settings; CLI verbosity was merged into logging.level
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level')
        )
        log_config(config)

        return run_export(config, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        logging.getLogger(LOGGER_NAME).exception("Unexpected error")
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
