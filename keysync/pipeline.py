"""
Scan pipeline: walk the source tree, extract keys from each file on a
thread pool, then aggregate in path order so the result does not depend on
scheduling.
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from .config import ScanConfig
from .exceptions import ScanCancelled
from .extractor import ExtractedKeySet, UsageRecord, aggregate, extract, replace_key_literals
from .hardcoded import HardcodedText, find_hardcoded_text, is_hardcoded_candidate_file
from .scanner import normalize_path, scan

logger = structlog.get_logger()

Signature = Tuple[int, int]
FileUsage = Tuple[Tuple[UsageRecord, ...], Tuple[HardcodedText, ...]]


class UsageCache:
    """Per-file extraction results, reused while a file's mtime and size are unchanged.

    Safe to share between worker threads and between scan passes. Each
    scan_project pass prunes entries for files it no longer sees.
    """

    def __init__(self):
        self._entries: Dict[tuple, Tuple[Signature, FileUsage]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def entry_key(path: str, display_path: str, scan_config: ScanConfig) -> tuple:
        return (
            os.path.realpath(path),
            display_path,
            scan_config.accessors,
            scan_config.attributes,
            scan_config.hardcoded,
        )

    def get(
        self, path: str, display_path: str, scan_config: ScanConfig, signature: Signature
    ) -> Optional[FileUsage]:
        with self._lock:
            entry = self._entries.get(self.entry_key(path, display_path, scan_config))
            if entry is not None and entry[0] == signature:
                self.hits += 1
                return entry[1]
            self.misses += 1
            return None

    def put(
        self,
        path: str,
        display_path: str,
        scan_config: ScanConfig,
        signature: Signature,
        records: Tuple[UsageRecord, ...],
        texts: Tuple[HardcodedText, ...] = (),
    ) -> None:
        with self._lock:
            self._entries[self.entry_key(path, display_path, scan_config)] = (signature, (records, texts))

    def prune(self, keep: Iterable[tuple]) -> int:
        """Drop every entry whose key is not in ``keep``. Returns the number dropped."""
        keep = set(keep)
        with self._lock:
            stale = [key for key in self._entries if key not in keep]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass(frozen=True)
class ScanResult:
    root: str
    files: Tuple[str, ...]
    skipped: Tuple[str, ...]
    records: Tuple[UsageRecord, ...]
    keys: ExtractedKeySet
    hardcoded: Tuple[HardcodedText, ...] = ()


def _read_text(path: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Skipping unreadable file", path=path, error=str(e))
        return None


def _display_path(path: str, root: str) -> str:
    return normalize_path(os.path.relpath(path, root))


def scan_project(
    scan_config: ScanConfig,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
    cache: Optional[UsageCache] = None,
) -> ScanResult:
    """Extract every key usage under ``scan_config.root``.

    Args:
        scan_config: Root, include/exclude globs and accessor names
        max_workers: Thread pool size, defaults to the number of CPUs
        cancel_event: When set, no further files are read and the scan
            raises instead of returning a partial result
        cache: Reuse extraction results for unchanged files

    Hardcoded JSX text is collected from .tsx and .jsx files unless
    ``scan_config.hardcoded`` is off.

    Raises:
        ScanCancelled: cancel_event was set before the scan finished
    """
    root = os.path.abspath(scan_config.root)

    def cancelled() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    def work(path: str) -> Tuple[str, Optional[FileUsage], bool]:
        display = _display_path(path, root)
        if cancelled():
            return display, None, False

        try:
            stat = os.stat(path)
        except OSError as e:
            logger.warning("Skipping file that cannot be stat'ed", path=display, error=str(e))
            return display, None, True
        signature = (stat.st_mtime_ns, stat.st_size)

        if cache is not None:
            cached = cache.get(path, display, scan_config, signature)
            if cached is not None:
                return display, cached, True

        text = _read_text(path)
        if text is None:
            return display, None, True

        records = tuple(extract(display, text, scan_config.accessors, scan_config.attributes))
        texts: Tuple[HardcodedText, ...] = ()
        if scan_config.hardcoded and is_hardcoded_candidate_file(display):
            texts = tuple(find_hardcoded_text(display, text))
        if cache is not None:
            cache.put(path, display, scan_config, signature, records, texts)
        return display, (records, texts), True

    files = []
    for path in scan(root, scan_config.include, scan_config.exclude):
        if cancelled():
            raise ScanCancelled(processed=0)
        files.append(path)

    workers = max(1, max_workers or os.cpu_count() or 1)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        outcomes = list(executor.map(work, files))

    processed = sum(1 for _, _, done in outcomes if done)
    if cancelled():
        logger.info("Scan cancelled", root=root, processed=processed, total=len(files))
        raise ScanCancelled(processed=processed)

    if cache is not None:
        dropped = cache.prune(
            UsageCache.entry_key(path, _display_path(path, root), scan_config) for path in files
        )
        if dropped:
            logger.debug("Pruned stale cache entries", dropped=dropped)

    outcomes.sort(key=lambda outcome: outcome[0])
    scanned: List[str] = []
    skipped: List[str] = []
    records: List[UsageRecord] = []
    hardcoded: List[HardcodedText] = []
    for display, usage, _ in outcomes:
        if usage is None:
            skipped.append(display)
            continue
        scanned.append(display)
        records.extend(usage[0])
        hardcoded.extend(usage[1])

    keys = aggregate(records)
    logger.info(
        "Scan complete",
        root=root,
        files=len(scanned),
        skipped=len(skipped),
        keys=len(keys),
        dynamic=len(keys.dynamic),
        hardcoded=len(hardcoded),
        cache_hits=cache.hits if cache is not None else 0,
    )
    return ScanResult(
        root=root,
        files=tuple(scanned),
        skipped=tuple(skipped),
        records=tuple(records),
        keys=keys,
        hardcoded=tuple(hardcoded),
    )


@dataclass(frozen=True)
class RenameResult:
    changed_files: Tuple[str, ...]
    files_scanned: int
    replacements: int


def rename_key_usage(scan_config: ScanConfig, old_key: str, new_key: str, dry_run: bool = False) -> RenameResult:
    """Rewrite literal usages of ``old_key`` in every scanned source file."""
    if not old_key or not new_key or old_key == new_key:
        return RenameResult((), 0, 0)

    root = os.path.abspath(scan_config.root)
    changed = []
    files_scanned = 0
    replacements = 0

    for path in scan(root, scan_config.include, scan_config.exclude):
        text = _read_text(path)
        if text is None:
            continue
        files_scanned += 1

        updated, count = replace_key_literals(
            text, old_key, new_key, scan_config.accessors, scan_config.attributes
        )
        if count == 0 or updated == text:
            continue

        replacements += count
        changed.append(_display_path(path, root))
        if not dry_run:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(updated)
        logger.info("Key usage renamed", path=changed[-1], replacements=count, dry_run=dry_run)

    return RenameResult(tuple(sorted(changed)), files_scanned, replacements)
