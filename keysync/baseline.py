"""
Issue baseline: remember the issues of the last recorded check so later
runs can report what is new instead of everything.

The baseline is ``.keysync/baseline.json`` next to the config file:

    {
      "schemaVersion": 1,
      "updatedAt": "2026-01-01T12:00:00+00:00",
      "summary": {"missing": 2, ..., "totalIssues": 5},
      "issues": ["missing:nl:auth.title", "unused:en:legacy", ...]
    }

A missing or unreadable baseline is treated as no previous run.
"""

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import structlog

from .reconcile import ReconciliationReport

logger = structlog.get_logger()

BASELINE_DIRECTORY = ".keysync"
BASELINE_FILENAME = "baseline.json"
SCHEMA_VERSION = 1


def baseline_path(root: str) -> str:
    return os.path.join(root, BASELINE_DIRECTORY, BASELINE_FILENAME)


def issue_ids(report: ReconciliationReport) -> List[str]:
    """Stable identifiers for every issue in ``report``.

    Line numbers are left out of hardcoded text ids so that unrelated edits
    above a string do not make it look new.
    """
    ids = set()
    for locale, locale_report in report.locales.items():
        if locale_report.failed:
            ids.add(f"failed:{locale}")
            continue
        for kind, findings in (
            ("missing", locale_report.missing),
            ("unused", locale_report.unused),
            ("empty", locale_report.present_but_empty),
            ("divergent", locale_report.divergent),
        ):
            ids.update(f"{kind}:{locale}:{f.key}" for f in findings)
        ids.update(f"collision:{locale}:{prefix}:{key}" for prefix, key in locale_report.collisions)
    ids.update(f"invalid:{f.key}" for f in report.invalid)
    ids.update(f"hardcoded:{h.file}:{h.kind}:{h.text}" for h in report.hardcoded)
    return sorted(ids)


@dataclass(frozen=True)
class Baseline:
    updated_at: str
    summary: Dict[str, int]
    issues: Tuple[str, ...]


@dataclass(frozen=True)
class BaselineReport:
    path: str
    has_previous: bool
    previous_updated_at: Optional[str]
    current_updated_at: str
    delta: Dict[str, int]
    new_issues: Tuple[str, ...] = ()
    resolved_issues: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "hasPrevious": self.has_previous,
            "previousUpdatedAt": self.previous_updated_at,
            "currentUpdatedAt": self.current_updated_at,
            "delta": self.delta,
            "newIssues": list(self.new_issues),
            "resolvedIssues": list(self.resolved_issues),
        }


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def read_baseline(root: str) -> Optional[Baseline]:
    filename = baseline_path(root)
    if not os.path.exists(filename):
        return None

    try:
        with open(filename, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable baseline", path=filename, error=str(e))
        return None

    if (
        not isinstance(data, dict)
        or data.get("schemaVersion") != SCHEMA_VERSION
        or not isinstance(data.get("updatedAt"), str)
        or not isinstance(data.get("summary"), dict)
        or not all(_is_count(v) for v in data["summary"].values())
        or not isinstance(data.get("issues", []), list)
    ):
        logger.warning("Ignoring baseline with an unknown layout", path=filename)
        return None

    issues = tuple(str(issue) for issue in data.get("issues", []))
    return Baseline(data["updatedAt"], dict(data["summary"]), issues)


def _relative(root: str, filename: str) -> str:
    return os.path.relpath(filename, root).replace(os.sep, "/")


def update_baseline(root: str, report: ReconciliationReport) -> BaselineReport:
    """Compare ``report`` with the stored baseline, then store ``report`` as the new baseline."""
    previous = read_baseline(root)
    summary = report.summary()
    issues = issue_ids(report)
    now = datetime.now(timezone.utc).isoformat()

    if previous is None:
        delta = {key: 0 for key in summary}
        new_issues: Tuple[str, ...] = ()
        resolved: Tuple[str, ...] = ()
    else:
        delta = {key: value - previous.summary.get(key, 0) for key, value in summary.items()}
        known = set(previous.issues)
        new_issues = tuple(issue for issue in issues if issue not in known)
        resolved = tuple(sorted(known - set(issues)))

    filename = baseline_path(root)
    directory = os.path.dirname(filename)
    os.makedirs(directory, exist_ok=True)
    payload = {"schemaVersion": SCHEMA_VERSION, "updatedAt": now, "summary": summary, "issues": issues}

    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".baseline.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")
        os.replace(tmp_path, filename)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    logger.info("Baseline updated", path=filename, new=len(new_issues), resolved=len(resolved))
    return BaselineReport(
        path=_relative(root, filename),
        has_previous=previous is not None,
        previous_updated_at=previous.updated_at if previous else None,
        current_updated_at=now,
        delta=delta,
        new_issues=new_issues,
        resolved_issues=resolved,
    )


def reset_baseline(root: str) -> Tuple[bool, str]:
    """Delete the stored baseline. Returns whether it existed and its relative path."""
    filename = baseline_path(root)
    try:
        os.remove(filename)
        existed = True
    except FileNotFoundError:
        existed = False
    logger.info("Baseline reset", path=filename, existed=existed)
    return existed, _relative(root, filename)
