from __future__ import annotations

import argparse
import logging
from typing import List, Optional, Sequence

from .engine import RunOptions, run_features
from .errors import ConfigLoadError, DiscoveryError
from .lib.env import PATHS
from .logging_utils import LogSettings, configure_logging
from .registry import FeatureDescriptor, discover, select_features
from .report import EXIT_OK, EXIT_STRUCTURAL, RunReport, render_catalog, render_report, save_report, summarize
from .settings import LOGGING_SECTION, ConfigDocument, load_document

logger = logging.getLogger(__name__)


def run(
    *,
    features_dir: str = PATHS.features_dir,
    config_path: Optional[str] = PATHS.config_default,
    include: Optional[Sequence[str]] = None,
    exclude: Optional[Sequence[str]] = None,
    options: Optional[RunOptions] = None,
    report_path: Optional[str] = None,
) -> RunReport:
    """Discover, select and run features; returns the run report.

    Raises DiscoveryError when the features directory is missing. Logging is
    expected to be configured by the caller.
    """

    opts = options or RunOptions()

    try:
        document = load_document(config_path)
    except ConfigLoadError as e:
        logger.warning("Ignoring configuration document: %s", e)
        document = ConfigDocument.empty()

    catalog = discover(features_dir)
    selected = select_features(catalog, include=include, exclude=exclude)

    results = run_features(selected, document, opts) if selected else {}
    report = summarize(results, selected)

    if report_path:
        save_report(report_path, report)
        logger.info("Report written to %s", report_path)
    return report


def _log_settings(args: argparse.Namespace) -> LogSettings:
    try:
        section = load_document(args.config).section(LOGGING_SECTION)
    except ConfigLoadError:
        # Reported once logging is up, by run().
        section = {}
    return LogSettings.from_section(section).override(
        path=args.log,
        level=args.log_level,
        timestamps=False if args.no_timestamps else None,
    )


def _print_catalog(features_dir: str, include: List[str], exclude: List[str]) -> int:
    try:
        catalog = discover(features_dir)
    except DiscoveryError as e:
        logger.error("%s", e)
        return EXIT_STRUCTURAL
    selected: List[FeatureDescriptor] = select_features(catalog, include=include, exclude=exclude)
    print(render_catalog(selected))
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="vmprep", description="Prepare a freshly provisioned Windows VM.")
    p.add_argument("--features-dir", default=PATHS.features_dir, help="Directory of feature units")
    p.add_argument("--config", default=PATHS.config_default, help="Configuration document (yaml|json)")
    p.add_argument("--include", action="append", default=[], help="Only run these features (comma separated, repeatable)")
    p.add_argument("--exclude", action="append", default=[], help="Skip these features (comma separated, repeatable)")
    p.add_argument("--list", action="store_true", help="Print the feature catalog and exit")
    p.add_argument("--dry-run", action="store_true", help="Report what would run without running it")
    p.add_argument("--stop-on-error", action="store_true", help="Stop at the first failed feature")
    p.add_argument("--enforce-dependencies", action="store_true", help="Skip features whose depends_on did not succeed")
    p.add_argument("--log", default=None, help="Append log lines to this file")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    p.add_argument("--no-timestamps", action="store_true", help="Omit timestamps from log lines")
    p.add_argument("--report-json", default=None, help="Write the run report as JSON")

    args = p.parse_args(argv)

    configure_logging(_log_settings(args))

    if args.list:
        return _print_catalog(args.features_dir, args.include, args.exclude)

    options = RunOptions(
        dry_run=bool(args.dry_run),
        continue_on_error=not args.stop_on_error,
        enforce_dependencies=bool(args.enforce_dependencies),
    )

    try:
        report = run(
            features_dir=args.features_dir,
            config_path=args.config,
            include=args.include,
            exclude=args.exclude,
            options=options,
            report_path=args.report_json,
        )
    except DiscoveryError as e:
        logger.error("%s", e)
        return EXIT_STRUCTURAL

    print(render_report(report))
    if not report.results:
        logger.error("No features selected to run")
    return report.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
