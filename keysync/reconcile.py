"""
Compare extracted keys against locale trees.

For every locale the report lists keys used in code but absent from the
locale (missing), keys in the locale that code never uses (unused), keys
with an empty value, and keys the default locale has but this one lacks
(divergent). A locale whose tree cannot be flattened fails on its own;
the other locales are still reconciled.
"""

import copy
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import structlog

from .exceptions import MalformedLocaleError
from .extractor import ExtractedKeySet, UsageRecord
from .hardcoded import HardcodedText
from .keys import explain_invalid
from .tree import find_prefix_collisions, flatten, set_path

logger = structlog.get_logger()


@dataclass(frozen=True)
class KeyFinding:
    key: str
    count: int = 0
    files: Tuple[str, ...] = ()
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"key": self.key, "count": self.count, "files": list(self.files)}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class LocaleReport:
    locale: str
    missing: Tuple[KeyFinding, ...] = ()
    unused: Tuple[KeyFinding, ...] = ()
    present_but_empty: Tuple[KeyFinding, ...] = ()
    divergent: Tuple[KeyFinding, ...] = ()
    collisions: Tuple[Tuple[str, str], ...] = ()
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def issue_count(self) -> int:
        return (
            len(self.missing)
            + len(self.unused)
            + len(self.present_but_empty)
            + len(self.divergent)
            + len(self.collisions)
        )

    @property
    def ok(self) -> bool:
        return not self.failed and self.issue_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "locale": self.locale,
            "missing": [f.to_dict() for f in self.missing],
            "unused": [f.to_dict() for f in self.unused],
            "presentButEmpty": [f.to_dict() for f in self.present_but_empty],
            "divergent": [f.to_dict() for f in self.divergent],
            "collisions": [list(pair) for pair in self.collisions],
            "error": self.error,
        }


@dataclass(frozen=True)
class ReconciliationReport:
    default_locale: str
    locales: Mapping[str, LocaleReport]
    invalid: Tuple[KeyFinding, ...] = ()
    dynamic: Tuple[UsageRecord, ...] = ()
    hardcoded: Tuple[HardcodedText, ...] = ()

    def __getitem__(self, locale: str) -> LocaleReport:
        return self.locales[locale]

    @property
    def failed(self) -> List[str]:
        return [name for name, report in self.locales.items() if report.failed]

    @property
    def ok(self) -> bool:
        return not self.invalid and all(report.ok for report in self.locales.values())

    def summary(self) -> Dict[str, int]:
        """Issue counts across all locales. Dynamic usages and hardcoded text
        are counted but are not part of ``totalIssues``."""
        reports = self.locales.values()
        counts = {
            "missing": sum(len(r.missing) for r in reports),
            "unused": sum(len(r.unused) for r in reports),
            "presentButEmpty": sum(len(r.present_but_empty) for r in reports),
            "divergent": sum(len(r.divergent) for r in reports),
            "collisions": sum(len(r.collisions) for r in reports),
            "failedLocales": len(self.failed),
            "invalid": len(self.invalid),
        }
        counts["totalIssues"] = sum(counts.values())
        counts["dynamic"] = len(self.dynamic)
        counts["hardcoded"] = len(self.hardcoded)
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "defaultLocale": self.default_locale,
            "summary": self.summary(),
            "failed": self.failed,
            "locales": {name: report.to_dict() for name, report in self.locales.items()},
            "invalid": [f.to_dict() for f in self.invalid],
            "dynamic": [
                {"expression": r.key, "file": r.file, "line": r.line, "column": r.column}
                for r in self.dynamic
            ],
            "hardcodedTexts": [h.to_dict() for h in self.hardcoded],
        }


def _findings(keys: Iterable[str], extracted: ExtractedKeySet) -> Tuple[KeyFinding, ...]:
    return tuple(
        KeyFinding(key, extracted.count(key), tuple(extracted.files(key))) for key in sorted(keys)
    )


def reconcile(
    extracted: ExtractedKeySet,
    locale_trees: Mapping[str, Any],
    default_locale: str,
    load_errors: Optional[Mapping[str, str]] = None,
    hardcoded: Iterable[HardcodedText] = (),
) -> ReconciliationReport:
    """Reconcile extracted keys with every locale tree.

    Args:
        extracted: Aggregated keys from a scan
        locale_trees: Locale code to parsed tree
        default_locale: Locale whose key set the others must contain
        load_errors: Locales that could not be loaded, with the reason
        hardcoded: Hardcoded text candidates to carry in the report

    Returns:
        A new report; inputs are not modified
    """
    errors: Dict[str, str] = dict(load_errors or {})
    flat_by_locale: Dict[str, Dict[str, str]] = {}

    for locale, tree in locale_trees.items():
        if locale in errors:
            continue
        try:
            flat_by_locale[locale] = flatten(tree, locale)
        except MalformedLocaleError as e:
            logger.warning("Locale tree is malformed", locale=locale, error=e.message)
            errors[locale] = e.message

    used = extracted.valid_keys
    default_keys: Optional[Set[str]] = None
    if default_locale in flat_by_locale:
        default_keys = set(flat_by_locale[default_locale])
    else:
        logger.warning("Default locale unavailable, divergent keys not computed", locale=default_locale)

    reports: Dict[str, LocaleReport] = {}
    ordered = list(locale_trees) + [name for name in errors if name not in locale_trees]
    for locale in ordered:
        if locale in errors:
            reports[locale] = LocaleReport(locale, error=errors[locale])
            continue

        flat = flat_by_locale[locale]
        locale_keys = set(flat)
        divergent: Set[str] = set()
        if default_keys is not None and locale != default_locale:
            divergent = default_keys - locale_keys

        reports[locale] = LocaleReport(
            locale,
            missing=_findings(used - locale_keys, extracted),
            unused=_findings(locale_keys - used, extracted),
            present_but_empty=_findings((k for k, v in flat.items() if v == ""), extracted),
            divergent=_findings(divergent, extracted),
            collisions=tuple(find_prefix_collisions(locale_keys)),
        )
        logger.debug(
            "Locale reconciled",
            locale=locale,
            missing=len(reports[locale].missing),
            unused=len(reports[locale].unused),
        )

    invalid = tuple(
        KeyFinding(
            key,
            extracted.count(key),
            tuple(extracted.files(key)),
            explain_invalid(key) or "Key contains unsupported characters",
        )
        for key in sorted(extracted.invalid)
    )

    return ReconciliationReport(
        default_locale=default_locale,
        locales=MappingProxyType(reports),
        invalid=invalid,
        dynamic=extracted.dynamic,
        hardcoded=tuple(hardcoded),
    )


def _copy_tree(node: Any) -> Any:
    if isinstance(node, MappingABC):
        return {key: _copy_tree(value) for key, value in node.items()}
    return copy.deepcopy(node)


def _normalize_key(key: str) -> str:
    return ".".join(part for part in key.split(".") if part)


@dataclass(frozen=True)
class PatchResult:
    tree: Dict[str, Any]
    applied: Tuple[str, ...] = ()
    skipped: Tuple[str, ...] = ()


def patch_locale(locale_tree: Any, additions: Mapping[str, str], locale: Optional[str] = None) -> PatchResult:
    """Merge ``additions`` into a copy of ``locale_tree`` and say what changed.

    Keys are normalized the way they are written (empty segments dropped)
    before they are compared with the tree, so ``a..b`` and ``a.b.`` are
    treated as ``a.b``. Existing non-empty values are never overwritten, so
    applying the same additions twice gives the same tree. Additions that
    would turn an existing leaf into an object (or the reverse) are skipped.

    Raises:
        MalformedLocaleError: the tree cannot be flattened
    """
    existing = {_normalize_key(key): value for key, value in flatten(locale_tree, locale).items()}
    leaves = set(existing)
    branches = {prefix for key in leaves for prefix in _prefixes(key)}

    patched = _copy_tree(locale_tree)
    applied: Dict[str, None] = {}
    skipped: List[str] = []
    for raw_key, value in additions.items():
        key = _normalize_key(raw_key)
        if not key:
            logger.warning("Skipping addition with an empty key", locale=locale, key=raw_key)
            skipped.append(raw_key)
            continue
        if existing.get(key) or (key in existing and not value):
            continue

        if key in branches or any(p in leaves for p in _prefixes(key)):
            logger.warning("Skipping addition that collides with an existing key", locale=locale, key=raw_key)
            skipped.append(raw_key)
            continue

        if set_path(patched, key, value):
            existing[key] = value
            leaves.add(key)
            branches.update(_prefixes(key))
            applied[key] = None

    return PatchResult(patched, tuple(applied), tuple(skipped))


def apply_patch(locale_tree: Any, additions: Mapping[str, str], locale: Optional[str] = None) -> Dict[str, Any]:
    """Return a copy of ``locale_tree`` with ``additions`` merged in. See patch_locale."""
    return patch_locale(locale_tree, additions, locale).tree


def _prefixes(key: str) -> List[str]:
    parts = key.split(".")
    return [".".join(parts[:end]) for end in range(1, len(parts))]


def missing_additions(report: ReconciliationReport, placeholder: str = "") -> Dict[str, Dict[str, str]]:
    """Additions that bring each locale up to date: missing plus divergent keys."""
    additions = {}
    for locale, locale_report in report.locales.items():
        if locale_report.failed:
            continue
        keys = {f.key for f in locale_report.missing} | {f.key for f in locale_report.divergent}
        additions[locale] = {key: placeholder for key in sorted(keys)}
    return additions
