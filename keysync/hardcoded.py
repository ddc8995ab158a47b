"""
Find user-visible text in JSX that is not run through a translation call.

Two shapes are matched lexically: text between tags (``<p>Visible text</p>``)
and literal values of text-carrying attributes (``placeholder="Search"``).
Candidates that look like keys, code, URLs or type names are dropped. The
results are suggestions for review, not errors.
"""

import os
import re
from dataclasses import dataclass
from typing import Dict, List

from .keys import is_likely_key

HARDCODED_EXTENSIONS = (".tsx", ".jsx")
TEXT_ATTRIBUTES = (
    "title",
    "label",
    "placeholder",
    "alt",
    "aria-label",
    "helperText",
    "tooltip",
    "description",
)

JSX_TEXT = re.compile(r">\s*([A-Za-z][A-Za-z0-9 .,!?'’\"-]+)\s*<")
JSX_ATTRIBUTE = re.compile(
    r"\b(?:%s)\s*=\s*[\"'`]([^\"'`]+)[\"'`]" % "|".join(re.escape(name) for name in TEXT_ATTRIBUTES)
)

WHITESPACE_RUN = re.compile(r"\s+")
KEY_SEPARATOR = re.compile(r"[.:/]")
LITERAL_WORD = re.compile(r"^(?:true|false|null|undefined)$", re.IGNORECASE)
URL_OR_PATH = re.compile(r"^(?:https?:|/|#)", re.IGNORECASE)
CODE_PUNCTUATION = re.compile(r"[=;(){}|]|=>")
CODE_KEYWORD = re.compile(r"\b(?:return|const|let|var|function|import|export)\b")
TYPE_WORD = re.compile(
    r"\b(?:void|promise|string|number|boolean|record|unknown|any|extends|infer)\b", re.IGNORECASE
)


@dataclass(frozen=True)
class HardcodedText:
    file: str
    line: int
    kind: str  # "jsx_text" or "jsx_attribute"
    text: str

    def to_dict(self) -> Dict[str, object]:
        return {"file": self.file, "line": self.line, "kind": self.kind, "text": self.text}


def collapse_whitespace(value: str) -> str:
    return WHITESPACE_RUN.sub(" ", value).strip()


def is_likely_hardcoded_text(value: str) -> bool:
    text = collapse_whitespace(value)
    if len(text) < 3 or not re.search(r"[A-Za-z]", text):
        return False

    # Plain words such as "Save" stay candidates, dotted keys do not
    if is_likely_key(text) and KEY_SEPARATOR.search(text):
        return False

    if LITERAL_WORD.match(text) or URL_OR_PATH.match(text):
        return False
    if CODE_PUNCTUATION.search(text) or CODE_KEYWORD.search(text) or TYPE_WORD.search(text):
        return False
    return True


def is_hardcoded_candidate_file(path: str) -> bool:
    return os.path.splitext(path)[1] in HARDCODED_EXTENSIONS


def find_hardcoded_text(file_path: str, file_text: str) -> List[HardcodedText]:
    """Return hardcoded text candidates in one file, ordered by line then text.

    Line numbers are 1-based and point at the match start, which for tag
    text is the closing ``>`` of the opening tag.
    """
    found = {}
    for kind, pattern in (("jsx_text", JSX_TEXT), ("jsx_attribute", JSX_ATTRIBUTE)):
        for match in pattern.finditer(file_text):
            text = collapse_whitespace(match.group(1))
            if not is_likely_hardcoded_text(text):
                continue
            line = file_text.count("\n", 0, match.start()) + 1
            found.setdefault((line, kind, text), HardcodedText(file_path, line, kind, text))

    return [found[key] for key in sorted(found, key=lambda k: (k[0], k[2], k[1]))]
