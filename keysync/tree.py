"""
Conversion between nested locale trees and flat dotted-key maps.

A locale tree mirrors the on-disk file: objects are branches, strings are
leaves. Other scalars are accepted on read and stringified when flattened.

    >>> flatten({"auth": {"login": {"title": "Sign in"}}})
    {'auth.login.title': 'Sign in'}
    >>> unflatten({"auth.login.title": "Sign in"})
    {'auth': {'login': {'title': 'Sign in'}}}
"""

import enum
import json
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .exceptions import MalformedLocaleError


class NodeKind(enum.Enum):
    BRANCH = "branch"
    STRING = "string"
    SCALAR = "scalar"
    ARRAY = "array"
    INVALID = "invalid"


def classify(value: Any) -> NodeKind:
    """Tag a tree value with the kind of node it is."""
    if isinstance(value, Mapping):
        return NodeKind.BRANCH
    if isinstance(value, str):
        return NodeKind.STRING
    if value is None or isinstance(value, (bool, int, float)):
        return NodeKind.SCALAR
    if isinstance(value, (list, tuple)):
        return NodeKind.ARRAY
    return NodeKind.INVALID


def _stringify(value: Any, kind: NodeKind, path: str, locale: Optional[str]) -> str:
    if kind is NodeKind.SCALAR:
        if value is None or isinstance(value, bool):
            return json.dumps(value)
        return str(value)

    # Arrays are opaque leaves, numeric index segments are never produced
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise MalformedLocaleError(f"Array value cannot be stringified ({e})", path, locale) from e


def flatten(tree: Any, locale: Optional[str] = None) -> Dict[str, str]:
    """Flatten a locale tree into a dotted key map.

    Args:
        tree: Parsed locale file, must be an object at the root
        locale: Locale code, only used in error messages

    Returns:
        One entry per leaf, in depth-first order

    Raises:
        MalformedLocaleError: root is not an object or a leaf cannot be
            turned into a string
    """
    if classify(tree) is not NodeKind.BRANCH:
        raise MalformedLocaleError(
            f"Locale root must be an object, got {type(tree).__name__}", "", locale
        )

    result: Dict[str, str] = {}

    def visit(node: Mapping, prefix: str) -> None:
        for key, value in node.items():
            full_key = f"{prefix}.{key}" if prefix else str(key)
            kind = classify(value)
            if kind is NodeKind.BRANCH:
                visit(value, full_key)
            elif kind is NodeKind.STRING:
                result[full_key] = value
            elif kind is NodeKind.INVALID:
                raise MalformedLocaleError(
                    f"Unsupported value of type {type(value).__name__}", full_key, locale
                )
            else:
                result[full_key] = _stringify(value, kind, full_key, locale)

    visit(tree, "")
    return result


def set_path(tree: Dict[str, Any], key: str, value: Any) -> bool:
    """Write ``value`` at dotted ``key`` inside ``tree``, in place.

    Intermediate segments that hold a leaf are replaced with a new object.
    A leaf never replaces an existing object, so when two keys collide by
    prefix the deeper path wins regardless of write order.

    Returns:
        False when nothing was written (empty key or blocked by a branch)
    """
    parts = [part for part in key.split(".") if part]
    if not parts:
        return False

    cursor = tree
    for part in parts[:-1]:
        if not isinstance(cursor.get(part), dict):
            cursor[part] = {}
        cursor = cursor[part]

    leaf = parts[-1]
    if isinstance(cursor.get(leaf), dict) and classify(value) is not NodeKind.BRANCH:
        return False
    cursor[leaf] = value
    return True


def unflatten(flat: Mapping) -> Dict[str, Any]:
    """Build a nested tree from a dotted key map.

    Lossy when keys collide by prefix (``a.b`` and ``a.b.c``): only the
    deeper key survives. Use find_prefix_collisions to detect this first.
    """
    root: Dict[str, Any] = {}
    for key, value in flat.items():
        set_path(root, key, value)
    return root


def find_prefix_collisions(keys: Iterable[str]) -> List[Tuple[str, str]]:
    """Return sorted (prefix, descendant) pairs of keys that cannot coexist in a tree."""
    key_set = set(keys)
    collisions = []
    for key in key_set:
        parts = key.split(".")
        for end in range(1, len(parts)):
            prefix = ".".join(parts[:end])
            if prefix in key_set:
                collisions.append((prefix, key))
    return sorted(collisions)
