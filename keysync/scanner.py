"""Walk a source tree and yield the files that should be scanned for keys."""

import os
import re
from typing import Iterable, Iterator, List, Optional, Pattern

import structlog

logger = structlog.get_logger()

DEFAULT_IGNORED_DIRS = frozenset(
    [
        "node_modules",
        ".git",
        "dist",
        "build",
        "out",
        ".next",
        ".nuxt",
        ".turbo",
        "coverage",
        "storybook-static",
        ".keysync",
    ]
)


def normalize_path(path: str) -> str:
    normalized = path.replace(os.sep, "/").replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def compile_glob(pattern: str) -> Pattern:
    """Translate a glob into a regex matched against relative POSIX paths.

    ``**/`` matches zero or more directories, ``**`` anything, ``*`` anything
    but a separator and ``?`` one non-separator character.
    """
    glob = normalize_path(pattern.strip())
    regex = "^"
    index = 0
    while index < len(glob):
        if glob.startswith("**/", index):
            regex += "(?:.*/)?"
            index += 3
            continue
        if glob.startswith("**", index):
            regex += ".*"
            index += 2
            continue

        char = glob[index]
        if char == "*":
            regex += "[^/]*"
        elif char == "?":
            regex += "[^/]"
        else:
            regex += re.escape(char)
        index += 1

    return re.compile(regex + "$")


def _compile_all(patterns: Optional[Iterable[str]]) -> List[Pattern]:
    if not patterns:
        return []
    return [compile_glob(p) for p in patterns if p and p.strip()]


class ScanMatcher:
    """Include/exclude filter. An empty include list accepts everything."""

    def __init__(self, include: Optional[Iterable[str]] = None, exclude: Optional[Iterable[str]] = None):
        self.includes = _compile_all(include)
        self.excludes = _compile_all(exclude)

    def __call__(self, relative_path: str) -> bool:
        path = normalize_path(relative_path)
        if any(p.match(path) for p in self.excludes):
            return False
        if self.includes and not any(p.match(path) for p in self.includes):
            return False
        return True


class SourceScan:
    """Restartable, deterministic iteration over matching files.

    Each ``iter()`` walks the tree again. Entries are visited in name order
    and every real directory or file is visited at most once, so symlink
    loops terminate.
    """

    def __init__(self, root_dir: str, matcher: ScanMatcher, ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS):
        self.root_dir = os.path.abspath(root_dir)
        self.matcher = matcher
        self.ignored_dirs = frozenset(ignored_dirs)

    def __iter__(self) -> Iterator[str]:
        visited = set()
        stack = [self.root_dir]

        while stack:
            directory = stack.pop()
            real_dir = os.path.realpath(directory)
            if real_dir in visited:
                logger.debug("Skipping already visited directory", path=directory)
                continue
            visited.add(real_dir)

            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                logger.warning("Cannot list directory", path=directory, error=str(e))
                continue

            subdirs = []
            for entry in entries:
                try:
                    if entry.is_dir():
                        if entry.name not in self.ignored_dirs:
                            subdirs.append(entry.path)
                        continue
                    if not entry.is_file():
                        if entry.is_symlink():
                            logger.warning("Skipping broken symlink", path=entry.path)
                        continue
                except OSError as e:
                    logger.warning("Cannot stat entry", path=entry.path, error=str(e))
                    continue

                real_file = os.path.realpath(entry.path)
                if real_file in visited:
                    continue

                relative = normalize_path(os.path.relpath(entry.path, self.root_dir))
                if self.matcher(relative):
                    visited.add(real_file)
                    yield entry.path

            # reversed so the stack pops subdirectories in name order
            stack.extend(reversed(subdirs))


def scan(
    root_dir: str,
    include: Optional[Iterable[str]] = None,
    exclude: Optional[Iterable[str]] = None,
    ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS,
) -> SourceScan:
    """Files under ``root_dir`` matching an include pattern and no exclude pattern.

    Exclusion always wins. Paths are absolute. The filesystem is only read.
    """
    return SourceScan(root_dir, ScanMatcher(include, exclude), ignored_dirs)
