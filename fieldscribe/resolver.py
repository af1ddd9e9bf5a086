"""Read and write resolution for a record's main narrative field.

Both directions share one candidate pipeline: a fixed list of well-known
paths, unioned with paths discovered by scanning the record's attribute
tree, ranked by the deterministic scorer. Reads return the first candidate
with content. Writes patch candidates one at a time, in rank order, and
only report success after reading the payload back from the record.

When the deterministic candidates are exhausted, a resolver holding a
SemanticFallback asks it for one more path (at most once per call).
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional, Sequence

from fieldscribe.aggregate import aggregate
from fieldscribe.config import FieldscribeConfig
from fieldscribe.logging_config import log_aggregate, log_read, log_write
from fieldscribe.normalize import html_to_markdown
from fieldscribe.paths import get_property, set_property
from fieldscribe.protocols import Embedder, FeatureFlag, MarkupConverter, RecordHost
from fieldscribe.scanner import BIOGRAPHY_PATTERN, MAX_SCAN_DEPTH, discover_string_paths, scan
from fieldscribe.scoring import rank, unique
from fieldscribe.semantic import (
    BIOGRAPHY_CONCEPTS,
    EmbeddingMatcher,
    HttpMatcher,
    SemanticFallback,
)
from fieldscribe.types import (
    AggregationOptions,
    AggregationResult,
    AttemptOutcome,
    ResolutionResult,
    WriteAttempt,
    has_text,
)

logger = logging.getLogger(__name__)

BIOGRAPHY_CONTAINER = "system.details.biography"
BIOGRAPHY_VALUE_PATH = "system.details.biography.value"
BIOGRAPHY_PUBLIC_PATH = "system.details.biography.public"

_OTHER_WELL_KNOWN_PATHS = (
    "system.biography",
    "system.description.value",
    "system.description",
    "system.notes",
    "system.summary",
    "system.details.description",
    "system.traits.biography",
)

# Reads prefer the player-visible value over the public mirror.
READ_PATHS = (
    BIOGRAPHY_VALUE_PATH,
    BIOGRAPHY_PUBLIC_PATH,
    BIOGRAPHY_CONTAINER,
) + _OTHER_WELL_KNOWN_PATHS

# Writes default to the public mirror, which most non-player sheets show.
WRITE_PATHS = (
    BIOGRAPHY_PUBLIC_PATH,
    BIOGRAPHY_VALUE_PATH,
    BIOGRAPHY_CONTAINER,
) + _OTHER_WELL_KNOWN_PATHS

PLAYER_CHARACTER_TYPES = frozenset({"character"})

_BIOGRAPHY_CONTAINER_RE = re.compile(r"^system\.details\.biography(\.|$)")


def is_biography_container(path: str) -> bool:
    """True for the dual value/public biography group and anything below it."""
    return bool(_BIOGRAPHY_CONTAINER_RE.match(path or ""))


def _tree(record: Any) -> Any:
    return get_property(record, "system")


def read_candidates(record: Any, max_depth: int = MAX_SCAN_DEPTH) -> list[str]:
    """Ranked read candidates: well-known paths plus discovered ones."""
    discovered = scan(_tree(record), BIOGRAPHY_PATTERN, max_depth)
    return rank(list(READ_PATHS) + discovered)


def write_candidates(record: Any, max_depth: int = MAX_SCAN_DEPTH) -> list[str]:
    """Ranked write candidates.

    Player characters put the editable ``value`` variant ahead of the
    public mirror. Discovery adds both populated fields and empty string
    slots, since an empty field is still one the host's schema accepts.
    """
    static = list(WRITE_PATHS)
    if str(get_property(record, "type") or "").lower() in PLAYER_CHARACTER_TYPES:
        static = [BIOGRAPHY_VALUE_PATH, BIOGRAPHY_PUBLIC_PATH] + [
            p for p in static if not is_biography_container(p)
        ]
    tree = _tree(record)
    discovered = scan(tree, BIOGRAPHY_PATTERN, max_depth)
    slots = [c["path"] for c in discover_string_paths(tree, BIOGRAPHY_PATTERN, max_depth)]
    return rank(static + discovered + slots)


def build_patch(path: str, payload: str) -> dict[str, Any]:
    """Minimal patch writing ``payload`` at ``path``.

    The biography group is written as a pair: both ``value`` and ``public``
    get the payload so every sheet variant displays it.
    """
    patch: dict[str, Any] = {}
    if is_biography_container(path):
        set_property(patch, BIOGRAPHY_PUBLIC_PATH, payload)
        set_property(patch, BIOGRAPHY_VALUE_PATH, payload)
    else:
        set_property(patch, path, payload)
    return patch


def verify_write(record: Any, path: str, payload: str) -> bool:
    """Read back after a write.

    Accepts the canonical value field, the canonical public field, or the
    attempted path holding exactly ``payload``. The first two tolerate hosts
    that redistribute writes across mirrored fields; they can also match a
    stale identical value, which is accepted.
    """
    for checked in (BIOGRAPHY_VALUE_PATH, BIOGRAPHY_PUBLIC_PATH, path):
        value = get_property(record, checked)
        if isinstance(value, str) and value == payload:
            if checked != path:
                logger.debug("Write to %s verified via %s", path, checked)
            return True
    return False


def _coerce_payload(payload: Any) -> str:
    return "" if payload is None else str(payload)


class NarrativeResolver:
    """Finds, reads and writes a record's main narrative field.

    Args:
        host: Persistence API used for writes.
        semantic: Optional SemanticFallback consulted when deterministic
            candidates are exhausted.
        max_depth: Scanner depth bound.
        concepts: Concept vocabulary for the semantic matcher.
        record_events: Append read/write outcomes to the field-event log.
    """

    def __init__(
        self,
        host: RecordHost,
        *,
        semantic: Optional[SemanticFallback] = None,
        max_depth: int = MAX_SCAN_DEPTH,
        concepts: Sequence[str] = BIOGRAPHY_CONCEPTS,
        record_events: bool = False,
    ) -> None:
        self._host = host
        self._semantic = semantic
        self._max_depth = max_depth
        self._concepts = tuple(concepts)
        self._record_events = record_events

    @classmethod
    def from_config(
        cls,
        host: RecordHost,
        config: FieldscribeConfig,
        *,
        embedder: Optional[Embedder] = None,
        flag: Optional[FeatureFlag] = None,
    ) -> "NarrativeResolver":
        """Build a resolver from configuration.

        A remote matcher is used when ``matcher_url`` is set, otherwise the
        in-process embedding matcher. ``flag`` overrides the configured
        switch with a live host setting.
        """
        semantic = None
        if config.semantic_mapping_enabled or flag is not None:
            if config.matcher_url:
                matcher = HttpMatcher(
                    config.matcher_url,
                    api_key=config.matcher_api_key,
                    timeout=config.matcher_timeout,
                )
            else:
                matcher = EmbeddingMatcher(embedder)
            enabled = flag if flag is not None else config.semantic_mapping_enabled
            semantic = SemanticFallback(matcher, enabled=enabled)
        return cls(host, semantic=semantic, max_depth=config.max_depth)

    @property
    def semantic(self) -> Optional[SemanticFallback]:
        return self._semantic

    def _semantic_enabled(self) -> bool:
        return self._semantic is not None and self._semantic.is_enabled()

    # ---- Read ----

    def resolve_read_path(self, record: Any) -> Optional[str]:
        """Deterministic part of read_best: the first candidate with content."""
        for path in read_candidates(record, self._max_depth):
            if has_text(get_property(record, path)):
                return path
        return None

    async def read_best(self, record: Any) -> str:
        """Return the record's best narrative text, or ``""``.

        Never mutates the record.
        """
        path = self.resolve_read_path(record)
        if path is not None:
            value = get_property(record, path)
            self._log_read(record, path, value, semantic=False)
            return value

        if not self._semantic_enabled():
            self._log_read(record, None, "", semantic=False)
            return ""

        candidates = unique(
            read_candidates(record, self._max_depth)
            + self._semantic.discover(_tree(record), BIOGRAPHY_PATTERN)
        )
        suggested = await self._semantic.suggest(candidates, self._concepts)
        if suggested is not None:
            value = get_property(record, suggested)
            if has_text(value):
                self._log_read(record, suggested, value, semantic=True)
                return value
        self._log_read(record, None, "", semantic=True)
        return ""

    # ---- Write ----

    async def _attempt(
        self, record: Any, path: str, payload: str, *, semantic: bool = False
    ) -> WriteAttempt:
        try:
            await self._host.update(record, build_patch(path, payload))
        except Exception as exc:
            logger.debug("Write to %s rejected: %s", path, exc)
            return WriteAttempt(
                path=path,
                outcome=AttemptOutcome.REJECTED,
                error=f"{type(exc).__name__}: {exc}",
                semantic=semantic,
            )
        if verify_write(record, path, payload):
            return WriteAttempt(path=path, outcome=AttemptOutcome.VERIFIED, semantic=semantic)
        logger.debug("Write to %s did not read back", path)
        return WriteAttempt(path=path, outcome=AttemptOutcome.UNVERIFIED, semantic=semantic)

    async def write_best(self, record: Any, payload: Any) -> ResolutionResult:
        """Write ``payload`` to the best field that verifiably keeps it.

        Never raises for host or matcher failures; a total failure comes
        back as ``ok=False`` with the attempted paths.
        """
        safe = _coerce_payload(payload)
        result = ResolutionResult(ok=False)

        candidates = write_candidates(record, self._max_depth)
        for path in candidates:
            attempt = await self._attempt(record, path, safe)
            result.paths_tried.append(path)
            result.attempts.append(attempt)
            if attempt.ok:
                result.ok = True
                result.path = path
                return self._finish_write(record, result)

        if self._semantic_enabled():
            pool = unique(candidates + self._semantic.discover(_tree(record), BIOGRAPHY_PATTERN))
            suggested = await self._semantic.suggest(pool, self._concepts)
            if suggested is not None:
                attempt = await self._attempt(record, suggested, safe, semantic=True)
                if suggested not in result.paths_tried:
                    result.paths_tried.append(suggested)
                result.attempts.append(attempt)
                if attempt.ok:
                    result.ok = True
                    result.path = suggested

        if not result.ok:
            logger.info(
                "No verified narrative field on record %s after %d attempts",
                get_property(record, "id"),
                len(result.attempts),
            )
        return self._finish_write(record, result)

    async def write_aggregated(
        self,
        record: Any,
        options: Optional[AggregationOptions] = None,
        converter: MarkupConverter = html_to_markdown,
    ) -> tuple[ResolutionResult, AggregationResult]:
        """Aggregate all narrative fields and write the result back.

        Returns ``ok=False`` with no attempts when nothing was found.
        """
        aggregated = aggregate(record, options, converter, max_depth=self._max_depth)
        if self._record_events:
            log_aggregate(
                str(get_property(record, "id")),
                len(aggregated.fields),
                len(aggregated.structured_text),
                bool(aggregated.converted_text),
            )
        if aggregated.empty:
            return ResolutionResult(ok=False), aggregated
        result = await self.write_best(record, aggregated.structured_text)
        return result, aggregated

    # ---- Event log ----

    def _finish_write(self, record: Any, result: ResolutionResult) -> ResolutionResult:
        if self._record_events:
            log_write(str(get_property(record, "id")), result.ok, result.path, result.paths_tried)
        return result

    def _log_read(self, record: Any, path: Optional[str], value: str, *, semantic: bool) -> None:
        if self._record_events:
            log_read(str(get_property(record, "id")), path, len(value), semantic)
