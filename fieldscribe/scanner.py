"""Attribute tree scanner.

Walks a record's attribute tree and yields dot paths of string leaves whose
path matches a keyword pattern. Everything here is a pure function over a
snapshot of the tree: no host access, no mutation.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, Iterator, Optional, Pattern, Union

from fieldscribe.types import ValueKind, classify, has_text

logger = logging.getLogger(__name__)

# Maximum key depth visited below the tree root.
MAX_SCAN_DEPTH = 6

# Prefix that turns a tree-relative path into a record-relative one.
DEFAULT_PREFIX = "system"

# Single-best-field vocabulary (biography, bio, description, summary, notes).
BIOGRAPHY_PATTERN = re.compile(r"(bio|descr|summary|notes)", re.IGNORECASE)

# Extended vocabulary for multi-field aggregation.
NARRATIVE_KEYWORDS = (
    "biography",
    "bio",
    "backstory",
    "appearance",
    "description",
    "notes",
    "summary",
    "allies",
    "enemies",
    "beliefs",
    "catchphrases",
    "dislikes",
    "likes",
    "organizations",
    "anathema",
    "edicts",
    "attitude",
    "birthplace",
    "campaignnotes",
    "personality",
    "traits",
    "background",
    "history",
    "origin",
    "motivation",
    "goals",
    "fears",
    "secrets",
    "relationships",
    "family",
    "mentor",
    "rival",
    "companion",
)

PatternLike = Union[str, Pattern[str], None]


def narrative_pattern(keywords: tuple = NARRATIVE_KEYWORDS) -> Pattern[str]:
    """Compile a case-insensitive alternation over ``keywords``."""
    return re.compile("|".join(re.escape(k) for k in keywords), re.IGNORECASE)


def _compile(pattern: PatternLike) -> Optional[Pattern[str]]:
    if pattern is None:
        return None
    if isinstance(pattern, str):
        return re.compile(pattern, re.IGNORECASE)
    return pattern


def walk_string_leaves(
    tree: Any, max_depth: int = MAX_SCAN_DEPTH
) -> Iterator[tuple[tuple[str, ...], str]]:
    """Yield ``(key_path, value)`` for every string leaf in ``tree``.

    Mappings are entered only while the key path is shorter than
    ``max_depth``. Non-mapping trees yield nothing.
    """
    if classify(tree) is not ValueKind.NODE:
        return
    yield from _walk(tree, (), max_depth)


def _walk(
    node: Mapping, base: tuple[str, ...], max_depth: int
) -> Iterator[tuple[tuple[str, ...], str]]:
    for key, value in node.items():
        keys = base + (str(key),)
        kind = classify(value)
        if kind is ValueKind.TEXT:
            yield keys, value
        elif kind is ValueKind.NODE and len(keys) < max_depth:
            yield from _walk(value, keys, max_depth)


def _join(prefix: str, keys: tuple[str, ...]) -> str:
    path = ".".join(keys)
    return f"{prefix}.{path}" if prefix else path


def scan(
    tree: Any,
    pattern: PatternLike = BIOGRAPHY_PATTERN,
    max_depth: int = MAX_SCAN_DEPTH,
    prefix: str = DEFAULT_PREFIX,
) -> list[str]:
    """Find candidate paths holding narrative text.

    Emits ``prefix.key...`` for every string leaf with non-whitespace
    content whose full path matches ``pattern``. The result has set
    semantics but keeps discovery order, which ranking uses for ties.

    Args:
        tree: The attribute tree (usually ``record.system``).
        pattern: Regex or regex string matched case-insensitively.
        max_depth: Key depth bound.
        prefix: Path prefix for emitted paths.

    Returns:
        Unique paths in discovery order.
    """
    regex = _compile(pattern)
    seen: dict[str, None] = {}
    for keys, value in walk_string_leaves(tree, max_depth):
        if not has_text(value):
            continue
        path = _join(prefix, keys)
        if regex is None or regex.search(path):
            seen.setdefault(path)
    return list(seen)


def discover_string_paths(
    tree: Any,
    pattern: PatternLike = None,
    max_depth: int = MAX_SCAN_DEPTH,
    prefix: str = DEFAULT_PREFIX,
) -> list[dict[str, str]]:
    """List every string leaf (empty ones included) as ``{"path": ...}``.

    This is the candidate builder handed to semantic matchers, and the
    source of writable slots: an empty string field is still a place the
    host's schema accepts text.
    """
    regex = _compile(pattern)
    results = []
    for keys, _value in walk_string_leaves(tree, max_depth):
        path = _join(prefix, keys)
        if regex is None or regex.search(path):
            results.append({"path": path})
    logger.debug("Discovered %d string paths", len(results))
    return results
