"""
fieldscribe - schema-agnostic narrative fields for host records.

Finds, reads, writes and aggregates biography-like text on records whose
attribute layout depends on the rule system that defined them.
"""

from .aggregate import aggregate, discover_all
from .profiles import ProfileAdapter
from .resolver import NarrativeResolver
from .semantic import EmbeddingMatcher, HttpMatcher, SemanticFallback
from .types import AggregationOptions, AggregationResult, FieldRecord, ResolutionResult

try:
    from importlib.metadata import version

    __version__ = version("fieldscribe")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "AggregationOptions",
    "AggregationResult",
    "EmbeddingMatcher",
    "FieldRecord",
    "HttpMatcher",
    "NarrativeResolver",
    "ProfileAdapter",
    "ResolutionResult",
    "SemanticFallback",
    "aggregate",
    "discover_all",
]
