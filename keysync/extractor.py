"""
Lexical extraction of translation keys from source text.

No parser is involved: the text is searched for accessor calls such as
``t("auth.login.title")`` and for key attributes such as
``i18nKey="auth.login.title"``. The first argument is read with a small
quote-aware scanner. Anything that is not a plain string literal (variables,
concatenation, template interpolation) becomes a dynamic usage record,
which is kept for review but never treated as a key.
"""

import bisect
import re
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Pattern, Sequence, Tuple

from .keys import is_valid_key

DEFAULT_ACCESSORS = ("t", "translate")
DEFAULT_ATTRIBUTES = ("i18nKey",)

QUOTES = "'\"`"
# Template literals may span lines; give up on one that runs this long
MAX_TEMPLATE_SCAN = 2048
SNIPPET_LENGTH = 80

DEFINITION_BEFORE = re.compile(r"\b(?:function|def|fun|func)\s+$")


@dataclass(frozen=True)
class UsageRecord:
    """One occurrence of a key (or of a dynamic key expression) in a file.

    For dynamic records ``key`` holds a short snippet of the expression.
    Line and column are 1-based, offset is the character index of the call.
    """

    key: str
    file: str
    line: int
    column: int
    offset: int
    dynamic: bool = False

    def location(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(frozen=True)
class _Site:
    offset: int
    dynamic: bool
    value: str
    span: Optional[Tuple[int, int]] = None


@lru_cache(maxsize=32)
def _name_pattern(names: Tuple[str, ...], suffix: str) -> Pattern:
    alternatives = "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True))
    return re.compile(r"(?<![\w$])(?:%s)%s" % (alternatives, suffix))


def _skip_space(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _closing_quote(text: str, start: int) -> Optional[int]:
    """Index of the quote closing the literal opened at ``start``, or None."""
    quote = text[start]
    limit = len(text) if quote != "`" else min(len(text), start + MAX_TEMPLATE_SCAN)
    pos = start + 1
    while pos < limit:
        char = text[pos]
        if char == "\\":
            pos += 2
            continue
        if char == quote:
            return pos
        if char == "\n" and quote != "`":
            return None
        pos += 1
    return None


def _snippet(text: str, pos: int) -> str:
    end = pos
    while end < len(text) and end - pos < SNIPPET_LENGTH and text[end] not in ")\n":
        end += 1
    return text[pos:end].strip()


def _read_literal(text: str, pos: int) -> Tuple[Optional[str], Optional[Tuple[int, int]], int]:
    """Read a string literal at ``pos``.

    Returns (body, body_span, index after the closing quote); body is None
    for an unterminated literal and "${" marks an interpolated template.
    """
    end = _closing_quote(text, pos)
    if end is None:
        return None, None, pos
    body = text[pos + 1:end]
    if text[pos] == "`" and "${" in body:
        return "${", None, end + 1
    return body, (pos + 1, end), end + 1


def _call_sites(text: str, accessor_names: Tuple[str, ...]) -> Iterator[_Site]:
    for match in _name_pattern(accessor_names, r"\(").finditer(text):
        start = match.start()
        if DEFINITION_BEFORE.search(text, max(0, start - 16), start):
            continue

        pos = _skip_space(text, match.end())
        if pos >= len(text) or text[pos] == ")":
            continue

        if text[pos] not in QUOTES:
            yield _Site(start, True, _snippet(text, pos))
            continue

        body, span, after = _read_literal(text, pos)
        if body is None:
            continue
        if span is None:
            yield _Site(start, True, _snippet(text, pos))
            continue

        after = _skip_space(text, after)
        if after < len(text) and text[after] in "),":
            yield _Site(start, False, body, span)
        else:
            # "a" + b, cond ? "a" : "b" and friends
            yield _Site(start, True, _snippet(text, pos))


def _attribute_sites(text: str, attribute_names: Tuple[str, ...]) -> Iterator[_Site]:
    for match in _name_pattern(attribute_names, r"\s*=\s*").finditer(text):
        start = match.start()
        pos = match.end()
        if pos >= len(text):
            continue

        braced = text[pos] == "{"
        if braced:
            pos = _skip_space(text, pos + 1)
            if pos >= len(text):
                continue
            if text[pos] not in QUOTES:
                yield _Site(start, True, _snippet(text, pos))
                continue
        elif text[pos] not in "'\"":
            continue

        body, span, after = _read_literal(text, pos)
        if body is None:
            continue
        if braced:
            after = _skip_space(text, after)
            closed = after < len(text) and text[after] == "}"
        else:
            closed = True
        if span is None or not closed:
            yield _Site(start, True, _snippet(text, pos))
            continue
        yield _Site(start, False, body, span)


def _sites(text: str, accessor_names: Iterable[str], attribute_names: Iterable[str]) -> List[_Site]:
    sites = []
    accessors = tuple(accessor_names)
    attributes = tuple(attribute_names)
    if accessors:
        sites.extend(_call_sites(text, accessors))
    if attributes:
        sites.extend(_attribute_sites(text, attributes))
    sites.sort(key=lambda s: s.offset)
    return sites


def extract(
    file_path: str,
    file_text: str,
    accessor_names: Iterable[str] = DEFAULT_ACCESSORS,
    attribute_names: Iterable[str] = DEFAULT_ATTRIBUTES,
) -> List[UsageRecord]:
    """Find every key usage in one file's text, ordered by position."""
    line_starts = [0] + [m.end() for m in re.finditer(r"\n", file_text)]
    records = []

    for site in _sites(file_text, accessor_names, attribute_names):
        key = site.value if site.dynamic else site.value.strip()
        if not key:
            continue
        line_index = bisect.bisect_right(line_starts, site.offset) - 1
        records.append(
            UsageRecord(
                key=key,
                file=file_path,
                line=line_index + 1,
                column=site.offset - line_starts[line_index] + 1,
                offset=site.offset,
                dynamic=site.dynamic,
            )
        )

    return records


def replace_key_literals(
    file_text: str,
    old_key: str,
    new_key: str,
    accessor_names: Iterable[str] = DEFAULT_ACCESSORS,
    attribute_names: Iterable[str] = DEFAULT_ATTRIBUTES,
) -> Tuple[str, int]:
    """Rewrite literal usages of ``old_key`` to ``new_key``, keeping the quotes.

    Returns:
        The updated text and the number of replacements
    """
    if not old_key or not new_key or old_key == new_key:
        return file_text, 0

    spans = [
        site.span
        for site in _sites(file_text, accessor_names, attribute_names)
        if not site.dynamic and site.value.strip() == old_key
    ]

    parts = []
    cursor = 0
    for start, end in spans:
        parts.append(file_text[cursor:start])
        parts.append(new_key)
        cursor = end
    parts.append(file_text[cursor:])
    return "".join(parts), len(spans)


@dataclass(frozen=True)
class ExtractedKeySet:
    """Deduplicated keys from one scan pass with every occurrence kept."""

    usages: Mapping[str, Tuple[UsageRecord, ...]]
    invalid: FrozenSet[str]
    dynamic: Tuple[UsageRecord, ...]

    @property
    def keys(self) -> FrozenSet[str]:
        return frozenset(self.usages)

    @property
    def valid_keys(self) -> FrozenSet[str]:
        return frozenset(k for k in self.usages if k not in self.invalid)

    def count(self, key: str) -> int:
        return len(self.usages.get(key, ()))

    def files(self, key: str) -> List[str]:
        return sorted({record.file for record in self.usages.get(key, ())})

    def __contains__(self, key: object) -> bool:
        return key in self.usages

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.usages))

    def __len__(self) -> int:
        return len(self.usages)


def aggregate(all_records: Iterable[UsageRecord]) -> ExtractedKeySet:
    """Group records by key.

    Keys that fail validation stay in the set (they are used) and are listed
    in ``invalid``. Dynamic records are kept apart.
    """
    ordered: Sequence[UsageRecord] = sorted(all_records, key=lambda r: (r.file, r.offset))
    grouped: Dict[str, List[UsageRecord]] = {}
    dynamic = []

    for record in ordered:
        if record.dynamic:
            dynamic.append(record)
            continue
        grouped.setdefault(record.key, []).append(record)

    return ExtractedKeySet(
        usages=MappingProxyType({key: tuple(records) for key, records in sorted(grouped.items())}),
        invalid=frozenset(key for key in grouped if not is_valid_key(key)),
        dynamic=tuple(dynamic),
    )
