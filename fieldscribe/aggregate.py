"""Multi-field narrative discovery and aggregation.

Where the resolvers look for the single best field, this module collects
every narrative-looking string on a record (appearance, backstory, allies,
edicts...), orders them by how central they are to a character write-up,
drops fields the sheet marks hidden, and stitches the rest into one HTML
document, optionally converted to Markdown.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, List, Optional

from fieldscribe.normalize import html_to_markdown
from fieldscribe.paths import get_property
from fieldscribe.protocols import MarkupConverter
from fieldscribe.scanner import MAX_SCAN_DEPTH, NARRATIVE_KEYWORDS, walk_string_leaves
from fieldscribe.types import AggregationOptions, AggregationResult, FieldRecord, has_text

logger = logging.getLogger(__name__)

FIELD_PRIORITY = {
    "biography": 1000,
    "bio": 1000,
    "backstory": 900,
    "appearance": 800,
    "description": 700,
    "personality": 600,
    "traits": 500,
    "background": 400,
    "history": 300,
    "notes": 200,
    "summary": 100,
}

# Leaf keys that hold the text of their parent field (``biography.value``).
VALUE_KEYS = ("value", "public")

SECTION_SEPARATOR = "\n\n"

_VALUE_SUFFIX_RE = re.compile(r"\.(value|public)$")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _is_narrative_key(key: str, keywords: tuple) -> bool:
    lowered = key.lower()
    return any(k in lowered for k in keywords)


def discover_all(
    record: Any,
    max_depth: int = MAX_SCAN_DEPTH,
    keywords: tuple = NARRATIVE_KEYWORDS,
) -> List[FieldRecord]:
    """Find every non-empty narrative string on ``record.system``.

    A leaf qualifies when its key contains a keyword, or when it is a
    value-like key (``value``/``public``) under a keyword-named parent, in
    which case the parent names the field. No ranking is applied.
    """
    tree = get_property(record, "system")
    found: List[FieldRecord] = []
    for keys, value in walk_string_leaves(tree, max_depth):
        if not has_text(value):
            continue
        key = keys[-1]
        if _is_narrative_key(key, keywords):
            field_name = key
        elif key.lower() in VALUE_KEYS and len(keys) > 1 and _is_narrative_key(keys[-2], keywords):
            field_name = keys[-2]
        else:
            continue
        found.append(
            FieldRecord(path="system." + ".".join(keys), value=value.strip(), field_name=field_name)
        )
    return found


def field_priority(field: FieldRecord) -> int:
    return FIELD_PRIORITY.get(field.field_name.lower(), 0)


def sort_fields(fields: List[FieldRecord]) -> List[FieldRecord]:
    """Order by priority, highest first; ties keep discovery order."""
    return sorted(fields, key=lambda f: -field_priority(f))


def visibility_path(path: str) -> str:
    """Path of the visibility mapping that governs ``path``.

    ``x.biography.value`` -> ``x.biography.visibility``; otherwise the
    sibling ``visibility`` key next to the field.
    """
    if _VALUE_SUFFIX_RE.search(path):
        return _VALUE_SUFFIX_RE.sub(".visibility", path)
    parent, _, _ = path.rpartition(".")
    return f"{parent}.visibility" if parent else "visibility"


def is_hidden(record: Any, field: FieldRecord) -> bool:
    """True only when the visibility flag for the field is explicitly False."""
    visibility = get_property(record, visibility_path(field.path))
    if not isinstance(visibility, Mapping):
        return False
    name = field.field_name
    for key in (name.lower(), name):
        if key in visibility:
            return visibility[key] is False
    return False


def mirror_key(field: FieldRecord) -> tuple:
    """Identity shared by the value/public leaves of one dual field."""
    return (_VALUE_SUFFIX_RE.sub("", field.path), field.value.strip())


def display_name(field_name: str) -> str:
    """``campaignNotes`` -> ``Campaign Notes``; ``public_notes`` -> ``Public Notes``."""
    spaced = _CAMEL_RE.sub(" ", field_name).replace("_", " ")
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split())


def is_markup(text: str) -> bool:
    return "<" in text or ">" in text


def concatenate_fields(
    fields: List[FieldRecord],
    record: Any = None,
    options: Optional[AggregationOptions] = None,
) -> str:
    """Sort, filter and join fields into one HTML document.

    Visibility is only consulted when a record is given.
    """
    options = options or AggregationOptions()
    parts: List[str] = []
    emitted: set = set()
    for field in sort_fields(fields):
        if options.preserve_visibility and record is not None and is_hidden(record, field):
            logger.debug("Skipping hidden field %s", field.path)
            continue
        value = field.value.strip()
        if not value or mirror_key(field) in emitted:
            continue
        emitted.add(mirror_key(field))
        if options.include_field_labels:
            parts.append(f"<h4>{display_name(field.field_name)}</h4>")
        parts.append(value if is_markup(value) else f"<p>{value}</p>")
    return SECTION_SEPARATOR.join(parts)


def aggregate(
    record: Any,
    options: Optional[AggregationOptions] = None,
    converter: MarkupConverter = html_to_markdown,
    max_depth: int = MAX_SCAN_DEPTH,
) -> AggregationResult:
    """Discover, order, filter and concatenate a record's narrative fields.

    Args:
        record: Host record with a ``system`` tree.
        options: AggregationOptions; defaults enable labels, visibility and
            conversion.
        converter: HTML to lightweight markup function.
        max_depth: Scanner depth bound.

    Returns:
        AggregationResult. Empty texts and fields when nothing is found.
    """
    options = options or AggregationOptions()
    fields = discover_all(record, max_depth=max_depth)
    if not fields:
        return AggregationResult()

    structured = concatenate_fields(fields, record=record, options=options)
    converted = converter(structured) if options.convert_to_format and structured else ""
    logger.debug(
        "Aggregated %d fields into %d chars for record %s",
        len(fields),
        len(structured),
        get_property(record, "id"),
    )
    return AggregationResult(structured_text=structured, converted_text=converted, fields=fields)
