import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .core.config import get_settings
from .core.constants import DELEGATE_STRATEGIES, EXIT_FAILURE, EXIT_SUCCESS, EXIT_USAGE
from .core.diagnostics import ProfileError, log_diagnostics
from .core.emitter import ProfileRegistry, load_profile
from .core.pipeline import RunStatus, convert_sources, discover_sources, write_units


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=True,
    )


logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with the configuration/usage code."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="testloom",
        description="testloom - convert Selenium WebDriver Java tests to Playwright",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Load TESTLOOM_* settings from this .env file"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    convert = sub.add_parser("convert", help="Convert a source tree")
    convert.add_argument("src", help="Directory holding the Java test sources")
    convert.add_argument("out", help="Output directory for the converted project")
    convert.add_argument(
        "--profile",
        type=str,
        default=None,
        help="Target profile name or path to a profile YAML file"
    )
    convert.add_argument(
        "--delegate-strategy",
        type=str,
        default=None,
        choices=list(DELEGATE_STRATEGIES),
        help="Override the profile's delegate strategy"
    )
    convert.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parse/extract worker threads"
    )
    convert.add_argument(
        "--dry-run",
        action="store_true",
        help="Convert and report without writing files"
    )
    convert.add_argument(
        "--report",
        type=str,
        default=None,
        help="Write the run report as JSON to this file"
    )
    convert.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )

    profiles = sub.add_parser("profiles", help="List the built-in target profiles")
    profiles.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    return parser


def _list_profiles() -> int:
    for info in ProfileRegistry.list_profiles():
        print(
            f"{info['name']:<20} {info['display_name']} "
            f"(language: {info['language']}, delegate strategy: {info['delegate_strategy']})"
        )
    return EXIT_SUCCESS


def _convert(args: argparse.Namespace, settings) -> int:
    if not os.path.isdir(args.src):
        logger.error(f"Source directory not found: {args.src}")
        return EXIT_USAGE
    if args.workers is not None and args.workers < 1:
        logger.error("--workers must be at least 1")
        return EXIT_USAGE

    profile = load_profile(args.profile or settings.profile)
    strategy = args.delegate_strategy or settings.delegate_strategy
    workers = args.workers or settings.workers
    logger.info(f"Converting {args.src} -> {args.out} with profile '{profile.name}'")

    sources = discover_sources(args.src)
    if not sources:
        logger.error(f"No Java sources found under {args.src}")
        return EXIT_FAILURE

    report = convert_sources(sources, profile, delegate_strategy=strategy, workers=workers)
    log_diagnostics(report.diagnostics)

    exit_code = report.exit_code
    if report.units and not args.dry_run:
        try:
            write_units(report.units, args.out)
        except (OSError, ValueError) as e:
            logger.error(f"Writing output failed, nothing was written: {e}")
            exit_code = EXIT_FAILURE

    if args.report:
        with open(args.report, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2)

    print(f"\n  Status: {report.status.value}")
    print(f"  Converted: {len(report.converted)}  Failed: {len(report.failed)}")
    for name, reason in sorted(report.failed.items()):
        print(f"    {name}: {reason}")
    if args.dry_run:
        for unit in report.units:
            print(f"  would write {unit.output_path}")
    elif report.units and exit_code != EXIT_FAILURE:
        print(f"  Output: {os.path.abspath(args.out)}\n")
    if report.status == RunStatus.FAILURE:
        return EXIT_FAILURE
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for testloom."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings(args.env_file)
    except ProfileError as e:
        setup_logging()
        logger.error(e.message)
        return EXIT_USAGE

    setup_logging(args.log_level or settings.log_level)

    try:
        if args.command == "profiles":
            return _list_profiles()
        return _convert(args, settings)
    except ProfileError as e:
        logger.error(e.message)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
