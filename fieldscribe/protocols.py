"""
fieldscribe Protocol Definitions
================================

The interface contracts between fieldscribe and the things it does not own.

Collaborators and their roles:
- Record:           a host-managed entity (character, item...). Exposes id,
                    type, name, img and an attribute tree under ``system``.
- RecordHost:       the host persistence layer. Applies partial patches to
                    records and may coerce or redistribute values.
- SemanticMatcher:  an external matcher that picks the best candidate path
                    for a concept vocabulary.
- Embedder:         text-to-vector provider used by the embedding matcher.
- MarkupConverter:  pure function from HTML to a lightweight markup.

Error handling philosophy:
- Per-candidate write failures are absorbed and recorded, never raised
- Semantic matcher failures degrade to "no suggestion"
- Malformed attribute trees yield no candidates
- Invalid configuration raises ConfigError
- Invalid arguments raise ValueError
"""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

# =============================================================================
# ERRORS
# =============================================================================


class FieldscribeError(Exception):
    """Base for all fieldscribe errors."""

    pass


class HostUpdateError(FieldscribeError):
    """Raised by hosts when a patch cannot be applied to a record."""

    def __init__(self, record_id: Optional[str], message: str) -> None:
        super().__init__(message)
        self.record_id = record_id


class SemanticMatcherError(FieldscribeError):
    """Raised when the semantic matcher is unreachable or answers garbage."""

    def __init__(self, error_class: str, message: str) -> None:
        super().__init__(message)
        self.error_class = error_class


class ConfigError(FieldscribeError):
    """Raised when a configuration file or value is invalid."""

    pass


# =============================================================================
# HOST CONTRACTS
# =============================================================================


@runtime_checkable
class Record(Protocol):
    """A host-owned entity with a nested attribute tree.

    Paths such as ``system.details.biography.value`` are resolved relative
    to the record itself, so ``system`` must be reachable as an attribute.
    """

    id: Optional[str]
    type: Optional[str]
    name: Optional[str]
    img: Optional[str]
    system: Mapping[str, Any]


@runtime_checkable
class RecordHost(Protocol):
    """Host persistence API.

    ``update`` applies a partial patch (a nested dict rooted at the record,
    e.g. ``{"system": {"notes": "..."}}``). It may coerce values, drop
    fields that are not part of the record's schema, or raise.
    """

    async def update(self, record: Any, patch: dict[str, Any]) -> None: ...


class EmbeddedCollection(Protocol):
    """Sub-document collection on a container-style document."""

    @property
    def contents(self) -> Sequence[Any]: ...


class ContainerDocument(Protocol):
    """A document holding pages (journal-like)."""

    pages: Optional[EmbeddedCollection]

    async def update(self, data: dict[str, Any]) -> Any: ...

    async def create_embedded_documents(
        self, document_name: str, entries: list[dict[str, Any]]
    ) -> Any: ...


# =============================================================================
# SEMANTIC MATCHING
# =============================================================================


@runtime_checkable
class SemanticMatcher(Protocol):
    """External matcher scoring candidate paths against concepts.

    Returns at most one best candidate (a dict with at least ``path``) or
    None. Implementations may raise; callers treat that as no suggestion.
    """

    async def suggest_best_string_path(
        self,
        candidates: Sequence[Mapping[str, Any]],
        concepts: Sequence[str],
    ) -> Optional[dict[str, Any]]: ...

    def discover_string_paths(
        self, tree: Any, pattern: Any = None
    ) -> list[dict[str, str]]: ...


@runtime_checkable
class Embedder(Protocol):
    """Narrow embedding interface used by EmbeddingMatcher."""

    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]: ...

    @property
    def dimension(self) -> int: ...

    @property
    def embedding_provider_id(self) -> str:
        """Stable ID for the embedding source, e.g. 'ngram-v1'."""
        ...


# Pure HTML -> lightweight markup conversion.
MarkupConverter = Callable[[str], str]

# Host configuration flag. Access may raise when the host namespace is gone.
FeatureFlag = Callable[[], bool]
