#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Check translation keys used in source code against the locale files.

Usage:
    keysync check [--format human|json|both] [--output FILE] [--baseline]
    keysync compare <base_language> [language]
    keysync sync [--dry-run]
    keysync rename <old_key> <new_key> [--dry-run]
    keysync baseline reset

Example:
    keysync check --format json
    keysync compare en
    keysync compare en nl
    keysync check --baseline

Exit codes: 0 ok, 1 issues found, 2 configuration or usage error.
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

import structlog

from . import __version__
from .baseline import BaselineReport, reset_baseline, update_baseline
from .config import SyncConfig, load_config
from .exceptions import ConfigError, KeySyncError, MalformedLocaleError
from .keys import explain_invalid
from .locale_store import read_locale_trees, write_locale_tree
from .pipeline import rename_key_usage, scan_project
from .reconcile import ReconciliationReport, missing_additions, patch_locale, reconcile
from .tree import flatten

logger = structlog.get_logger()

SAMPLE_LIMIT = 12


def setup_logging(debug: bool = False) -> None:
    """Configure structured logging on stderr, stdout is left for reports."""
    level = logging.DEBUG if debug else logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.basicConfig(level=level, handlers=[handler], force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            (
                structlog.dev.ConsoleRenderer(colors=False)
                if debug
                else structlog.processors.JSONRenderer()
            ),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _print_sample(title: str, lines: List[str], out) -> None:
    print(f"\n{title} ({len(lines)})", file=out)
    for line in lines[:SAMPLE_LIMIT]:
        print(f"- {line}", file=out)
    if len(lines) > SAMPLE_LIMIT:
        print(f"- ... +{len(lines) - SAMPLE_LIMIT} more", file=out)


def print_report(report: ReconciliationReport, root: str, out=None) -> None:
    out = out or sys.stdout
    print(f"keysync check for {root}", file=out)

    rows = []
    for name, locale_report in report.locales.items():
        if locale_report.failed:
            rows.append((f"{name}: failed", 1))
            continue
        rows.append((f"{name}: missing", len(locale_report.missing)))
        rows.append((f"{name}: unused", len(locale_report.unused)))
        rows.append((f"{name}: empty", len(locale_report.present_but_empty)))
        rows.append((f"{name}: divergent", len(locale_report.divergent)))
    rows.append(("Invalid keys", len(report.invalid)))
    rows.append(("Dynamic usages", len(report.dynamic)))
    rows.append(("Hardcoded text", len(report.hardcoded)))

    width = max(len(label) for label, _ in rows)
    print("", file=out)
    for label, value in rows:
        print(f"{label.ljust(width)} : {value}", file=out)

    for name, locale_report in report.locales.items():
        if locale_report.failed:
            print(f"\n{name}: {locale_report.error}", file=out)
            continue
        _print_sample(
            f"Missing in {name}",
            [f"{f.key} (used {f.count}x in {', '.join(f.files)})" for f in locale_report.missing],
            out,
        )
        _print_sample(f"Unused in {name}", [f.key for f in locale_report.unused], out)
        _print_sample(f"Empty in {name}", [f.key for f in locale_report.present_but_empty], out)
        if name != report.default_locale:
            _print_sample(
                f"In {report.default_locale} but not in {name}",
                [f.key for f in locale_report.divergent],
                out,
            )
        if locale_report.collisions:
            _print_sample(
                f"Colliding keys in {name}",
                [f"{prefix} <-> {key}" for prefix, key in locale_report.collisions],
                out,
            )

    _print_sample("Invalid keys", [f"{f.key} -> {f.reason}" for f in report.invalid], out)
    _print_sample("Dynamic usages", [f"{r.location()} {r.key}" for r in report.dynamic], out)
    _print_sample(
        "Hardcoded text", [f"{h.file}:{h.line} {h.text!r}" for h in report.hardcoded], out
    )
    print("\nResult: PASS" if report.ok else "\nResult: FAIL", file=out)


def _run_reconcile(config: SyncConfig, args) -> Tuple[ReconciliationReport, Dict[str, Any]]:
    scan_result = scan_project(config.scan, max_workers=args.workers)
    trees, errors = read_locale_trees(config)
    report = reconcile(scan_result.keys, trees, config.default_locale, errors, scan_result.hardcoded)
    return report, trees


def print_baseline(baseline: BaselineReport, out=None) -> None:
    out = out or sys.stdout
    if not baseline.has_previous:
        print(f"\nBaseline recorded in {baseline.path}", file=out)
        return

    print(f"\nCompared with baseline from {baseline.previous_updated_at}", file=out)
    changed = {key: value for key, value in baseline.delta.items() if value}
    for key, value in changed.items():
        print(f"- {key}: {value:+d}", file=out)
    _print_sample("New issues", list(baseline.new_issues), out)
    _print_sample("Resolved issues", list(baseline.resolved_issues), out)


def cmd_check(config: SyncConfig, args) -> int:
    report, _ = _run_reconcile(config, args)
    data: Dict[str, Any] = report.to_dict()
    baseline = update_baseline(config.root, report) if args.baseline else None
    if baseline is not None:
        data["baseline"] = baseline.to_dict()

    out = open(args.output, "w", encoding="utf-8") if args.output else sys.stdout
    try:
        if args.format in ("human", "both"):
            print_report(report, config.scan.root, out)
            if baseline is not None:
                print_baseline(baseline, out)
        if args.format in ("json", "both"):
            if args.format == "both":
                print("\nJSON output:", file=out)
            print(json.dumps(data, ensure_ascii=False, indent=2), file=out)
    finally:
        if args.output:
            out.close()
            print(f"Results written to {args.output}")

    if baseline is not None:
        return 1 if baseline.new_issues else 0
    return 0 if report.ok else 1


def cmd_compare(config: SyncConfig, args) -> int:
    trees, errors = read_locale_trees(config)
    base = args.base_language
    others = [args.language] if args.language else [name for name in config.locales if name != base]

    for name in [base] + others:
        if name not in config.locales:
            print(f"Error: locale {name} is not configured", file=sys.stderr)
            return 2
        if name in errors:
            print(f"Error: {errors[name]}", file=sys.stderr)
            return 1

    try:
        base_keys = set(flatten(trees[base], base))
        different = False
        for other in others:
            other_keys = set(flatten(trees[other], other))
            only_in_other = other_keys - base_keys
            only_in_base = base_keys - other_keys
            different = different or bool(only_in_other or only_in_base)

            print("=" * 30)
            print(f"Comparing {base} with {other}:")
            print(f"Keys in {other} but not in {base}:")
            for key in sorted(only_in_other):
                print(f"  {key}")
            print(f"\nKeys in {base} but not in {other}:")
            for key in sorted(only_in_base):
                print(f"  {key}")
            print()
    except MalformedLocaleError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    return 1 if different else 0


def cmd_sync(config: SyncConfig, args) -> int:
    report, trees = _run_reconcile(config, args)
    status = 0

    for locale, additions in missing_additions(report).items():
        if not additions:
            continue
        try:
            result = patch_locale(trees[locale], additions, locale)
        except MalformedLocaleError as e:
            print(f"{locale}: {e.message}", file=sys.stderr)
            status = 1
            continue

        for key in result.skipped:
            print(f"{locale}: skipped {key}, it collides with an existing key", file=sys.stderr)
        if not result.applied:
            continue

        print(f"{locale}: {len(result.applied)} key(s) added")
        for key in result.applied:
            print(f"  + {key}")
        if not args.dry_run:
            write_locale_tree(config, locale, result.tree)

    for locale in report.failed:
        print(f"{locale}: skipped, {report[locale].error}", file=sys.stderr)
        status = 1
    return status


def cmd_rename(config: SyncConfig, args) -> int:
    reason = explain_invalid(args.new_key)
    if reason:
        print(f"Error: invalid key '{args.new_key}': {reason}", file=sys.stderr)
        return 2

    result = rename_key_usage(config.scan, args.old_key, args.new_key, dry_run=args.dry_run)
    for path in result.changed_files:
        print(f"  {path}")
    print(
        f"{result.replacements} replacement(s) in {len(result.changed_files)} file(s), "
        f"{result.files_scanned} scanned"
    )
    return 0


def cmd_baseline(config: SyncConfig, args) -> int:
    existed, path = reset_baseline(config.root)
    print(f"Baseline {path} removed" if existed else f"No baseline at {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="keysync", description="Keep translation keys and locale files in sync")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Config file (default: keysync.yml in the current directory)")
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    parser.add_argument("--workers", type=int, default=None, help="Parallel file workers (default: CPU count)")

    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Report missing, unused, empty and divergent keys")
    check.add_argument("--format", choices=("human", "json", "both"), default="human")
    check.add_argument("--json", dest="format", action="store_const", const="json", help="Shortcut for --format json")
    check.add_argument("--output", help="Write the report to this file")
    check.add_argument(
        "--baseline", action="store_true", help="Compare with the stored baseline, fail only on new issues"
    )
    check.set_defaults(handler=cmd_check)

    compare = sub.add_parser("compare", help="Compare locale key sets")
    compare.add_argument("base_language")
    compare.add_argument("language", nargs="?")
    compare.set_defaults(handler=cmd_compare)

    sync = sub.add_parser("sync", help="Add missing keys to every locale file")
    sync.add_argument("--dry-run", action="store_true", help="Report only; no writes")
    sync.set_defaults(handler=cmd_sync)

    rename = sub.add_parser("rename", help="Rename a key in source files")
    rename.add_argument("old_key")
    rename.add_argument("new_key")
    rename.add_argument("--dry-run", action="store_true", help="Report only; no writes")
    rename.set_defaults(handler=cmd_rename)

    baseline = sub.add_parser("baseline", help="Manage the stored issue baseline")
    baseline.add_argument("action", choices=("reset",))
    baseline.set_defaults(handler=cmd_baseline)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    try:
        return args.handler(config, args)
    except KeySyncError as e:
        logger.error("Command failed", command=args.command, **e.to_dict())
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
