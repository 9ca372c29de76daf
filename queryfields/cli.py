# File: queryfields/cli.py
"""
queryfields - Command-Line Interface
=====================================

Built with the standard-library ``argparse`` module.

Usage examples::

    # Scan a package and write mixins next to the annotated classes
    queryfields -s src/app -o src

    # C# partial classes from a manifest
    queryfields -m queries.yaml -o Generated --language csharp --namespace Shop.Data

    # Print the rendered files instead of writing them
    queryfields -s src/app --stdout

    # Validate only (no file output)
    queryfields -s src/app --validate-only

Exit codes:
    0 — success
    1 — validation error
    2 — generation error
    3 — export error
    4 — input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("queryfields")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``queryfields`` logger.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
            datefmt="%H:%M:%S",
        )
    )

    root_logger: logging.Logger = logging.getLogger("queryfields")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from queryfields import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="queryfields",
        description=(
            "Generate CRUD SQL constants for classes marked with a field list.\n\n"
            "Each marked class gets a companion fragment holding its column "
            "and parameter lists plus select, insert, update, patch, delete "
            "and undelete statements."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -s src/app -o src\n"
            "  %(prog)s -m queries.yaml -o Generated --language csharp\n"
            "  %(prog)s -s src/app --validate-only\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"queryfields {__version__}",
    )

    # --- Input ---
    input_group = parser.add_mutually_exclusive_group(required=True)
    input_group.add_argument(
        "-s", "--source",
        action="append",
        default=None,
        metavar="PATH",
        help="Python file or directory to scan (repeatable).",
    )
    input_group.add_argument(
        "-m", "--manifest",
        type=str,
        default=None,
        metavar="PATH",
        help="JSON/YAML manifest listing entities instead of scanning.",
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="JSON/YAML file with generation settings.",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="DIR",
        help=(
            "Output directory for generated files. "
            "Required unless --validate-only or --stdout is set."
        ),
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only run validation; write nothing.",
    )
    mode_group.add_argument(
        "--stdout",
        action="store_true",
        default=False,
        help="Print the generated files instead of writing them.",
    )

    # --- Config overrides ---
    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "-l", "--language",
        type=str,
        default=None,
        choices=["python", "csharp"],
        help="Target language of the generated fragments.",
    )
    config_group.add_argument(
        "--namespace",
        type=str,
        default=None,
        metavar="NAME",
        help="C# namespace for the marker and partial classes.",
    )
    config_group.add_argument(
        "--module-suffix",
        type=str,
        default=None,
        metavar="SUFFIX",
        help="Suffix of generated Python modules (default: _queries).",
    )
    config_group.add_argument(
        "--coerce-malformed",
        action="store_true",
        default=False,
        help="Replace non-string marker arguments with '' instead of failing.",
    )

    # --- Behaviour flags ---
    behaviour_group = parser.add_argument_group("behaviour flags")
    behaviour_group.add_argument(
        "--clean",
        action="store_true",
        default=False,
        help=(
            "Clean output directory before writing. Refused when the output "
            "directory is or contains a source path or the manifest."
        ),
    )
    behaviour_group.add_argument(
        "--no-strict",
        action="store_true",
        default=False,
        help="Skip invalid entities instead of aborting.",
    )
    behaviour_group.add_argument(
        "--fail-on-warnings",
        action="store_true",
        default=False,
        help="Treat validation warnings as errors.",
    )
    behaviour_group.add_argument(
        "--no-manifest",
        action="store_true",
        default=False,
        help="Do not write manifest.json.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Config file settings, then CLI flags on top."""
    from queryfields.generator import load_config_file

    overrides: Dict[str, Any] = {}
    if args.config is not None:
        overrides.update(load_config_file(Path(args.config).resolve()))

    if args.language is not None:
        overrides["language"] = args.language
    if args.namespace is not None:
        overrides["namespace"] = args.namespace
    if args.module_suffix is not None:
        overrides["module_suffix"] = args.module_suffix
    if args.coerce_malformed:
        overrides["coerce_malformed_fields"] = True

    return overrides


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_files(files: Dict[str, str]) -> None:
    for rel_path in sorted(files):
        sys.stdout.write(f"# ==> {rel_path} <==\n")
        sys.stdout.write(files[rel_path])
        sys.stdout.write("\n")


def _exit_code_for(report: Any) -> int:
    if report.success:
        return EXIT_SUCCESS
    if report.input_errors:
        return EXIT_INPUT_ERROR
    if report.validation_errors:
        return EXIT_VALIDATION_ERROR
    if report.generation_errors:
        return EXIT_GENERATION_ERROR
    if report.export_errors:
        return EXIT_EXPORT_ERROR
    return EXIT_GENERATION_ERROR


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _run(args: argparse.Namespace, output_dir: Optional[Path]) -> int:
    """Run the pipeline for the parsed arguments; returns the exit code."""
    from queryfields.generator import GenerationReport, QueryGenerator, build_config

    try:
        overrides: Dict[str, Any] = _build_config_overrides(args)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Failed to load config: %s", exc)
        return EXIT_INPUT_ERROR

    generator: QueryGenerator = QueryGenerator(
        strict_validation=not args.no_strict,
        fail_on_warnings=args.fail_on_warnings,
        clean_output=args.clean,
        write_manifest=not args.no_manifest,
        validate_only=args.validate_only,
    )

    if args.manifest is not None:
        report: GenerationReport = generator.generate_from_manifest(
            Path(args.manifest).resolve(),
            output_dir,
            config_overrides=overrides or None,
        )
    else:
        try:
            config = build_config(overrides)
        except ValueError as exc:
            logger.error("%s", exc)
            return EXIT_INPUT_ERROR
        report = generator.generate_from_sources(
            [Path(p) for p in args.source], output_dir, config=config
        )

    if args.validate_only:
        if report.validation is not None:
            print(report.validation.format_report(include_info=True))
        for err in report.input_errors:
            print(f"  ✗ {err}")
    elif args.stdout:
        _print_files(report.files)
        print(report.summary(), file=sys.stderr)
    else:
        print(report.summary())

    return _exit_code_for(report)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    try:
        args: argparse.Namespace = parser.parse_args(argv)
    except SystemExit as exc:
        # argparse exits with 2 on bad usage, which is our generation code.
        if exc.code not in (0, None):
            sys.exit(EXIT_INPUT_ERROR)
        raise

    if args.quiet:
        _setup_logging(0)
        logging.getLogger("queryfields").setLevel(logging.ERROR)
    else:
        _setup_logging(args.verbose)

    output_dir: Optional[Path] = None
    if not (args.validate_only or args.stdout):
        if args.output is None:
            logger.error(
                "Output directory is required for generation. "
                "Use -o/--output, --stdout or --validate-only."
            )
            parser.print_usage(sys.stderr)
            sys.exit(EXIT_INPUT_ERROR)
        output_dir = Path(args.output).resolve()

    logger.info("Input:   %s", args.manifest or ", ".join(args.source))
    logger.info("Output:  %s", output_dir or "(none)")
    logger.info("Strict:  %s", not args.no_strict)

    exit_code: int = _run(args, output_dir)

    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)

    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]
