# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Operator CLI for parsing, classifying and reorganizing protocol questions."""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, TextIO

from rich.console import Console
from rich.logging import RichHandler
from rich.style import Style
from rich.table import Table

from pqmap.annotation import annotate_review_areas
from pqmap.classifier import ClassificationReport, TaxonomyClassifier
from pqmap.database import SQLiteHierarchyStore
from pqmap.handoff import (
    DriftReport,
    HandoffError,
    diff_question_sets,
    merge_question_sets,
    read_questions,
    write_questions,
)
from pqmap.migration import (
    MigrationOrchestrator,
    MigrationPreconditionError,
    MigrationResult,
    MigrationStepError,
)
from pqmap.model import AcceptedQuestion
from pqmap.parser import ParseResult, parse_document
from pqmap.seeding import seed_questions
from pqmap.settings import LOOKAHEAD_WINDOW, MIN_HEADER_LENGTH, ParserSettings
from pqmap.store import StoreError
from pqmap.taxonomy import ANS_CATEGORIES

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure application logging with Rich handler.

    Args:
        level: Logging severity threshold.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser instance.
    """
    parser = argparse.ArgumentParser(prog="pqmap")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_parser = subparsers.add_parser("parse")
    parse_parser.add_argument("--input", required=True, help="Extracted document text file.")
    parse_parser.add_argument("--output", required=True, help="Hand-off JSON file to write.")
    parse_parser.add_argument(
        "--lookahead",
        action="store_true",
        help="Confirm boundary markers by looking ahead for question content.",
    )
    parse_parser.add_argument(
        "--min-header-length",
        type=int,
        default=MIN_HEADER_LENGTH,
        help="Shortest question text accepted.",
    )
    parse_parser.add_argument(
        "--window",
        type=int,
        default=LOOKAHEAD_WINDOW,
        help="Lines scanned after a boundary marker in look-ahead mode.",
    )
    parse_parser.add_argument(
        "--format", choices=("table", "json"), default="table", help="Summary format."
    )

    diff_parser = subparsers.add_parser("diff")
    diff_parser.add_argument("--previous", required=True, help="Earlier hand-off JSON file.")
    diff_parser.add_argument("--current", required=True, help="Latest hand-off JSON file.")
    diff_parser.add_argument(
        "--format", choices=("table", "json"), default="table", help="Output format."
    )

    seed_parser = subparsers.add_parser("seed")
    seed_parser.add_argument("--db", required=True, help="SQLite database path.")
    seed_parser.add_argument(
        "--input", required=True, action="append", help="Hand-off JSON file (repeatable)."
    )

    classify_parser = subparsers.add_parser("classify")
    classify_parser.add_argument(
        "--input", required=True, action="append", help="Hand-off JSON file (repeatable)."
    )
    classify_parser.add_argument(
        "--format", choices=("table", "json"), default="table", help="Output format."
    )

    reorganize_parser = subparsers.add_parser("reorganize")
    reorganize_parser.add_argument("--db", required=True, help="SQLite database path.")
    reorganize_parser.add_argument(
        "--input", required=True, action="append", help="Hand-off JSON file (repeatable)."
    )

    annotate_parser = subparsers.add_parser("annotate")
    annotate_parser.add_argument("--db", required=True, help="SQLite database path.")
    return parser


def run(argv: list[str], stdout: TextIO, stderr: TextIO) -> int:
    """Run CLI command.

    Args:
        argv: CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        logger.warning(f"Argument parsing failed (argv={argv})")
        return 2
    handlers = {
        "parse": _run_parse,
        "diff": _run_diff,
        "seed": _run_seed,
        "classify": _run_classify,
        "reorganize": _run_reorganize,
        "annotate": _run_annotate,
    }
    handler = handlers.get(args.command)
    if handler is None:
        logger.warning(f"Unsupported command (command={args.command})")
        stderr.write(f"Unsupported command: {args.command}\n")
        return 2
    return handler(args=args, stdout=stdout, stderr=stderr)


def _run_parse(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    """Run parse command.

    Args:
        args: Parsed CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    try:
        settings = ParserSettings(
            min_header_length=args.min_header_length, lookahead_window=args.window
        )
    except ValueError as exc:
        logger.warning(f"Invalid parser settings (error={exc})")
        stderr.write(f"Invalid parser settings: {exc}\n")
        return 2
    input_path = Path(args.input)
    try:
        raw_text = input_path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning(f"Failed to read input (path={input_path} error={exc})")
        stderr.write(f"Failed to read input: {input_path}\n")
        return 2

    result = parse_document(raw_text, settings=settings, lookahead=args.lookahead)
    try:
        write_questions(result.questions, Path(args.output))
    except OSError as exc:
        logger.warning(f"Failed to write hand-off file (output_path={args.output} error={exc})")
        stderr.write(f"Failed to write hand-off file: {args.output}\n")
        return 2

    if args.format == "json":
        _write_json(_parse_payload(result), stdout)
    else:
        _write_parse_table(result, stdout)
    return 0


def _run_diff(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    """Run diff command.

    Args:
        args: Parsed CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    previous = _load_questions([args.previous], stderr)
    current = _load_questions([args.current], stderr)
    if previous is None or current is None:
        return 2
    report = diff_question_sets(previous, current)
    if args.format == "json":
        _write_json(asdict(report), stdout)
    else:
        _write_drift_table(report, stdout)
    return 0


def _run_seed(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    """Run seed command.

    Args:
        args: Parsed CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    questions = _load_questions(args.input, stderr)
    if questions is None:
        return 2
    store = SQLiteHierarchyStore(Path(args.db))
    try:
        with store.session() as session:
            result = seed_questions(session, questions)
    except StoreError as exc:
        logger.error(f"Seed failed and was rolled back (db={args.db} error={exc})")
        stderr.write(f"Seed failed: {exc}\n")
        return 1

    console = _console(stdout)
    _print_line(
        console,
        f"Questionnaire {result.questionnaire_code} "
        f"({'created' if result.questionnaire_created else 'existing'}): "
        f"{result.created} created, {len(result.skipped)} skipped, "
        f"{len(result.errored)} errored, {result.categories_created} categories created",
    )
    if result.errored:
        _print_line(console, f"Errored: {', '.join(result.errored)}")
    _write_counts_table(result.by_category, "category", console)
    return 0


def _run_classify(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    """Run classify command.

    Args:
        args: Parsed CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    questions = _load_questions(args.input, stderr)
    if questions is None:
        return 2
    report = TaxonomyClassifier().classify_all(questions)
    if args.format == "json":
        _write_json(
            {
                "decisions": [asdict(decision) for decision in report.decisions],
                "by_category": report.by_category,
                "unclassified": report.unclassified,
                "low_confidence": report.low_confidence,
            },
            stdout,
        )
    else:
        _write_classification_table(report, stdout)
    return 0


def _run_reorganize(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    """Run reorganize command.

    Args:
        args: Parsed CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    questions = _load_questions(args.input, stderr)
    if questions is None:
        return 2
    report = TaxonomyClassifier().classify_all(questions)
    orchestrator = MigrationOrchestrator(SQLiteHierarchyStore(Path(args.db)))
    try:
        result = orchestrator.run(questions, report)
    except MigrationPreconditionError as exc:
        logger.error(f"Migration not started (db={args.db} error={exc})")
        stderr.write(f"Migration not started: {exc}\n")
        return 1
    except MigrationStepError as exc:
        stderr.write(f"Migration rolled back: {exc}\n")
        for number, name in enumerate(exc.completed_steps, start=1):
            stderr.write(f"  step {number} completed before rollback: {name}\n")
        return 1
    except StoreError as exc:
        logger.error(f"Migration failed and was rolled back (db={args.db} error={exc})")
        stderr.write(f"Migration rolled back: {exc}\n")
        return 1
    _write_migration_summary(result, stdout)
    return 0


def _run_annotate(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    """Run annotate command.

    Args:
        args: Parsed CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    store = SQLiteHierarchyStore(Path(args.db))
    try:
        with store.session() as session:
            result = annotate_review_areas(session)
    except StoreError as exc:
        logger.error(f"Annotation failed and was rolled back (db={args.db} error={exc})")
        stderr.write(f"Annotation failed: {exc}\n")
        return 1
    console = _console(stdout)
    _write_counts_table(
        {
            "categories updated": result.categories_updated,
            "categories skipped": result.categories_skipped,
            "questions updated": result.questions_updated,
            "questions mapped by content": result.questions_content_mapped,
            "questions skipped": result.questions_skipped,
            "assessments updated": result.assessments_updated,
        },
        "counter",
        console,
    )
    for warning in result.warnings:
        stderr.write(f"warning: {warning}\n")
    return 0


def _load_questions(paths: list[str], stderr: TextIO) -> list[AcceptedQuestion] | None:
    """Read and merge hand-off files.

    Args:
        paths: Hand-off JSON file paths; earlier files win on duplicate keys.
        stderr: Standard error stream.

    Returns:
        Merged questions, or ``None`` when a file is unreadable or malformed.
    """
    question_sets: list[list[AcceptedQuestion]] = []
    for path in paths:
        try:
            question_sets.append(read_questions(Path(path)))
        except (OSError, HandoffError) as exc:
            logger.warning(f"Failed to load hand-off file (path={path} error={exc})")
            stderr.write(f"Failed to load hand-off file: {path}\n")
            return None
    return merge_question_sets(*question_sets)


def _console(stdout: TextIO) -> Console:
    return Console(file=stdout, force_terminal=False, color_system="truecolor")


def _print_line(console: Console, text: str) -> None:
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def _write_json(payload: Any, stdout: TextIO) -> None:
    """Write a JSON payload to stdout.

    Args:
        payload: JSON-serializable payload.
        stdout: Standard output stream.
    """
    _console(stdout).print(
        json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def _parse_payload(result: ParseResult) -> dict[str, Any]:
    return {
        "lines": result.line_count,
        "candidates": result.candidate_count,
        "accepted": len(result.questions),
        "rejected": result.rejected,
        "duplicates": result.duplicates,
        "by_critical_element": result.by_critical_element,
        "priority": result.priority_count,
    }


def _write_counts_table(counts: dict[str, int], label: str, console: Console) -> None:
    table = Table(show_header=True)
    table.add_column(label)
    table.add_column("count", justify="right")
    for key, value in counts.items():
        table.add_row(str(key), str(value))
    console.print(table)


def _write_parse_table(result: ParseResult, stdout: TextIO) -> None:
    console = _console(stdout)
    _write_counts_table(
        {
            "lines": result.line_count,
            "candidates": result.candidate_count,
            "rejected": len(result.rejected),
            "duplicates": len(result.duplicates),
            "accepted": len(result.questions),
            "priority": result.priority_count,
        },
        "parse",
        console,
    )
    _write_counts_table(result.by_critical_element, "critical element", console)


def _write_drift_table(report: DriftReport, stdout: TextIO) -> None:
    console = _console(stdout)
    if not report.has_drift:
        _print_line(console, "No drift between hand-off files.")
        return
    table = Table(show_header=True, show_lines=True, expand=True)
    table.add_column("item_key")
    table.add_column("change")
    table.add_column("similarity", justify="right")
    table.add_column("current_text", ratio=4, overflow="fold")
    for key in report.added:
        table.add_row(key, "added", "", "")
    for key in report.removed:
        table.add_row(key, "removed", "", "")
    for changed in report.changed:
        table.add_row(
            changed.item_key, "changed", f"{changed.similarity:.2f}", changed.current_text
        )
    console.print(table)


def _write_classification_table(report: ClassificationReport, stdout: TextIO) -> None:
    console = _console(stdout)
    table = Table(show_header=True)
    table.add_column("category")
    table.add_column("review_area")
    table.add_column("questions", justify="right")
    counts = report.by_category
    for category in ANS_CATEGORIES:
        table.add_row(category.code, category.review_area, str(counts.get(category.review_area, 0)))
    console.print(table)
    _write_counts_table(report.by_provenance, "provenance", console)
    if report.unclassified:
        console.rule("unclassified", style=Style(color="yellow"), characters="-")
        _print_line(console, ", ".join(report.unclassified))
    if report.low_confidence:
        console.rule("low confidence", style=Style(color="yellow"), characters="-")
        _print_line(console, ", ".join(report.low_confidence))


def _write_migration_summary(result: MigrationResult, stdout: TextIO) -> None:
    console = _console(stdout)
    _print_line(
        console,
        f"Questionnaire {result.previous_code} -> {result.new_code}: "
        f"{result.responses_found} responses deleted, "
        f"{result.findings_found} findings unlinked",
    )
    steps = Table(show_header=True)
    steps.add_column("step", justify="right")
    steps.add_column("name")
    steps.add_column("rows", justify="right")
    for step in result.steps:
        steps.add_row(str(step.number), step.name, str(step.count))
    console.print(steps)

    table = Table(show_header=True)
    table.add_column("category")
    table.add_column("before", justify="right")
    table.add_column("after", justify="right")
    for code in [*result.before, *[c for c in result.after if c not in result.before]]:
        table.add_row(code, str(result.before.get(code, 0)), str(result.after.get(code, 0)))
    console.print(table)
    if result.unclassified:
        console.rule("unclassified (not migrated)", style=Style(color="yellow"), characters="-")
        _print_line(console, ", ".join(result.unclassified))


def main() -> None:
    """Run the CLI application and exit."""
    configure_logging()
    exit_code = run(sys.argv[1:], stdout=sys.stdout, stderr=sys.stderr)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
