from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, ImportProfile, load_builtin_profile, load_profile
from ..logging.init import enable_debug, log_summary, setup_logging
from ..logging.report import ValidationReport
from ..models.correction_rule import CorrectionRule
from ..models.validation_error import ErrorKind, ValidationError
from ..services.bulk_corrections import resolve_errors
from ..services.correction_memory import (
    CorrectionRulesError,
    add_rule,
    apply_rules,
    create_rule,
    read_rules_file,
    record_usage,
    write_rules_file,
)
from ..services.orchestrator import validate
from ..services.progress import ProgressTracker
from ..services.summary import render_summary_line, summarize
from ..source.reader import SourceReadError, check_column_status, read_rows

"""CLI entrypoint.

    python -m pupil_import.cli FILE [FILE ...] [--type T] [--profile P]
        [--rules RULES.json] [--export-rules OUT.json] [--report] [--debug]

Per file: read -> validate -> replay correction rules (resolving the findings
they fix) -> per-file INFO line. One SUMMARY line at the end.

Exit codes:
    0  no open error-severity findings (warnings may remain)
    2  open errors remain
    1  fatal: bad profile, bad rules file, unreadable input
"""

EXIT_SUCCESS = 0
EXIT_OPEN_ERRORS = 2
EXIT_FATAL = 1

DEFAULT_IMPORT_TYPE = "schueler"


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env via python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="pupil-import",
        description="Validate LehrerOffice exports before importing them into PUPIL",
    )
    p.add_argument("files", nargs="+", type=Path, help="CSV or Excel files to validate")
    p.add_argument("--type", dest="import_type", help="Import type (default: $PUPIL_IMPORT_TYPE or schueler)")
    p.add_argument("--profile", type=Path, help="Import profile YAML (default: built-in profile of --type)")
    p.add_argument("--rules", type=Path, help="Correction rules file to replay")
    p.add_argument("--export-rules", type=Path, help="Write the (updated) correction rules here")
    p.add_argument("--report", action="store_true", help="Write all findings to logs/validation-*.jsonl")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _resolve_profile(args: argparse.Namespace) -> ImportProfile:
    profile_path = args.profile or (
        Path(os.environ["PUPIL_IMPORT_PROFILE"]) if os.getenv("PUPIL_IMPORT_PROFILE") else None
    )
    if profile_path is not None:
        profile = load_profile(profile_path)
        if args.import_type and args.import_type != profile.import_type:
            raise ConfigError(
                f"profile validation failed: {profile_path} is for '{profile.import_type}', not '{args.import_type}'"
            )
        return profile
    return load_builtin_profile(args.import_type or os.getenv("PUPIL_IMPORT_TYPE") or DEFAULT_IMPORT_TYPE)


def _learn_rules(
    rules: list[CorrectionRule], errors: list[ValidationError], import_type: str
) -> list[CorrectionRule]:
    # diacritic findings carry their fix; remember them for the next export
    for e in errors:
        if e.kind is ErrorKind.DIACRITIC and e.corrected_value and e.corrected_value != e.value:
            rules = add_rule(rules, create_rule(e.column, e.value, e.corrected_value, import_type))
    return rules


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] from tests must not fall back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        enable_debug()

    try:
        profile = _resolve_profile(args)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    logger.info(f"import type: {profile.import_type} ({profile.name}), {len(profile.columns)} columns")

    rules: list[CorrectionRule] = []
    if args.rules is not None:
        try:
            rules = read_rules_file(args.rules, profile.import_type)
        except CorrectionRulesError as e:
            logger.error(f"rules: {e}")
            return EXIT_FATAL
        logger.info(f"loaded {len(rules)} correction rules from {args.rules}")

    settings = profile.settings()
    report = ValidationReport() if args.report else None
    start = time.perf_counter()
    all_errors: list[ValidationError] = []
    total_rows = 0

    with ProgressTracker(args.files) as progress:
        for path in progress:
            try:
                sheet = read_rows(path)
            except SourceReadError as e:
                logger.error(f"{path.name}: {e}")
                return EXIT_FATAL

            status = check_column_status(sheet.headers, profile.columns)
            if status.missing_required:
                logger.warning(f"{path.name}: missing required columns: {', '.join(status.missing_required)}")
            if status.extra:
                logger.debug(f"{path.name}: columns not in profile: {', '.join(status.extra)}")

            errors = validate(sheet.rows, profile.columns, profile.format_rules, settings=settings)
            if rules:
                applied = apply_rules(rules, sheet.rows, errors)
                resolved = resolve_errors(errors, applied.corrections)
                rules = record_usage(rules, applied.corrections)
                logger.info(
                    f"{path.name}: rules applied={applied.stats.total_applied} resolved={resolved}"
                )
            for e in errors:
                if e.is_open:
                    logger.debug(f"{path.name} row={e.row} column={e.column}: {e.message}")

            file_summary = summarize(errors)
            logger.info(
                f"file={path.name} rows={len(sheet.rows)} errors={file_summary.errors} "
                f"warnings={file_summary.warnings} open={file_summary.open}"
            )
            if report is not None:
                report.extend(path.name, errors)
            rules = _learn_rules(rules, errors, profile.import_type) if args.export_rules else rules

            total_rows += len(sheet.rows)
            all_errors.extend(errors)
            progress.record(open_errors=file_summary.open_errors, warnings=file_summary.warnings)

    if report is not None:
        logger.info(f"report: {report.flush()}")
    if args.export_rules is not None:
        exported_from = args.files[0].name if len(args.files) == 1 else f"{len(args.files)} Dateien"
        write_rules_file(args.export_rules, rules, profile.import_type, exported_from)
        logger.info(f"exported {len(rules)} correction rules to {args.export_rules}")

    summary = summarize(all_errors)
    log_summary(render_summary_line(len(args.files), total_rows, summary, time.perf_counter() - start))

    if summary.open_errors > 0:
        return EXIT_OPEN_ERRORS
    return EXIT_SUCCESS
