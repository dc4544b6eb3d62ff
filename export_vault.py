#!/usr/bin/env python3
"""
Vault Graph Exporter - Main CLI Entry Point

This script provides the command-line interface for exporting a note, or a
folder of notes, together with every note and attachment it links to, from an
Obsidian-style vault into a self-contained output directory.
"""

import argparse
import logging
import sys

import yaml

from config_loader import ConfigLoader, LINK_STYLES, get_nested
from logger import log_config, log_section, setup_logging
from orchestrator import ExportOrchestrator, ExportReport

# Version
__version__ = "1.0.0"


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Export a document subgraph from a vault with deduplicated attachments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export one note and everything it links to
  vault-export "Projects/Index.md" --vault ~/Vault

  # Export a whole folder into a chosen directory
  vault-export Projects --vault ~/Vault --output-dir /tmp/projects-export

  # Relative links for plain markdown renderers, with a JSON report
  vault-export Index.md --link-style relative --report export-report.json

  # Verbose logging
  vault-export Index.md -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        'input',
        help='Seed document or folder, absolute or relative to the vault root'
    )

    parser.add_argument(
        '--vault',
        type=str,
        help='Vault root directory (default: vault.root from config, else current directory)'
    )

    parser.add_argument(
        '--config',
        type=str,
        help='Path to configuration YAML file (default: vault-export.yaml if present)'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Output directory (default: input name under the current directory)'
    )

    parser.add_argument(
        '--attachments-dir',
        type=str,
        help='Global attachments directory relative to the vault root (default: _attachments)'
    )

    parser.add_argument(
        '--link-style',
        choices=list(LINK_STYLES),
        help='Rewritten link form: bare names or paths relative to each document'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Write a JSON export report to this path'
    )

    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def run_export(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """
    Run the export and print the console report.

    Returns:
        Exit code
    """
    orchestrator = ExportOrchestrator(config)
    report = orchestrator.run(args.input)

    print(ExportReport().format_console_report(report))

    if report['summary']['unresolved']:
        logger.warning(f"{report['summary']['unresolved']} link(s) could not be resolved")
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        # Minimal logging while the configuration loads
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger('vault_exporter.cli')

        log_section("Vault Graph Exporter")
        logger.info(f"Version: {__version__}")

        config = ConfigLoader.load(args.config)
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level')
        )
        log_config(config)

        return run_export(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except yaml.YAMLError as e:
        print(f"ERROR: Invalid configuration file: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130
    except OSError as e:
        print(f"ERROR: Export failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
