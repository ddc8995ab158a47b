"""Find the translation keys a codebase uses and keep locale files in sync with them."""

__version__ = "0.1.0"

from .extractor import ExtractedKeySet, UsageRecord, aggregate, extract
from .hardcoded import HardcodedText, find_hardcoded_text
from .keys import explain_invalid, is_likely_key
from .reconcile import ReconciliationReport, apply_patch, reconcile
from .scanner import scan
from .tree import flatten, unflatten

__all__ = [
    "ExtractedKeySet",
    "HardcodedText",
    "ReconciliationReport",
    "UsageRecord",
    "aggregate",
    "apply_patch",
    "explain_invalid",
    "extract",
    "find_hardcoded_text",
    "flatten",
    "is_likely_key",
    "reconcile",
    "scan",
    "unflatten",
]
