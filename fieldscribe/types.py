"""
Shared types for fieldscribe.

These dataclasses are the vocabulary between the scanner, the resolvers and
the aggregator. Hosts never see most of them; they get a ResolutionResult
back from a write and an AggregationResult back from an aggregation.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# === Attribute values ===


class ValueKind(str, Enum):
    """Variant of a value found in an attribute tree."""

    TEXT = "text"  # str leaf
    SCALAR = "scalar"  # number, bool or None leaf
    NODE = "node"  # nested mapping
    OTHER = "other"  # lists and anything else the scanner ignores


def classify(value: Any) -> ValueKind:
    """Classify an attribute tree value."""
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, Mapping):
        return ValueKind.NODE
    if value is None or isinstance(value, (bool, int, float)):
        return ValueKind.SCALAR
    return ValueKind.OTHER


def has_text(value: Any) -> bool:
    """True when value is a string with non-whitespace content."""
    return isinstance(value, str) and bool(value.strip())


class RecordKind(str, Enum):
    """Broad record families the profile adapter distinguishes."""

    ACTOR = "actor"
    ITEM = "item"


# === Resolution ===


@dataclass(frozen=True)
class Candidate:
    """An attribute path considered for read or write, with its score."""

    path: str
    score: int
    order: int = 0  # discovery/declaration position, used for tie-breaks


class AttemptOutcome(str, Enum):
    """Result of one write attempt against one candidate path."""

    VERIFIED = "verified"  # read-back matched the payload
    REJECTED = "rejected"  # host update raised
    UNVERIFIED = "unverified"  # update went through but read-back differed


@dataclass(frozen=True)
class WriteAttempt:
    """One candidate write and what came of it."""

    path: str
    outcome: AttemptOutcome
    error: Optional[str] = None
    semantic: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome is AttemptOutcome.VERIFIED


@dataclass
class ResolutionResult:
    """Outcome of a read or write resolution.

    ok=True implies path is set and was verified (writes) or held content
    (reads). paths_tried is the ordered trail of attempted paths.
    """

    ok: bool
    path: Optional[str] = None
    paths_tried: List[str] = field(default_factory=list)
    attempts: List[WriteAttempt] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"ok": self.ok, "paths_tried": list(self.paths_tried)}
        if self.path is not None:
            result["path"] = self.path
        return result


# === Aggregation ===


@dataclass(frozen=True)
class FieldRecord:
    """One discovered narrative leaf, captured at discovery time."""

    path: str
    value: str
    field_name: str


@dataclass
class AggregationOptions:
    """Switches for aggregate()."""

    include_field_labels: bool = True  # add a heading per field
    preserve_visibility: bool = True  # honor sibling visibility flags
    convert_to_format: bool = True  # run the markup converter on the result


@dataclass
class AggregationResult:
    """Concatenated narrative document and the fields it was built from."""

    structured_text: str = ""
    converted_text: str = ""
    fields: List[FieldRecord] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.structured_text
