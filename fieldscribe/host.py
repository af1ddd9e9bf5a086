"""In-memory reference host.

A small stand-in for a real persistence layer, used by tests and by
embedders that keep records in plain dicts. It behaves like a typical
schema-backed host: in strict mode, patch entries for paths the record's
tree does not already have are dropped silently, and an optional coercion
hook can rewrite values on the way in.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from fieldscribe.paths import flatten_patch, get_property, has_property, set_property
from fieldscribe.protocols import HostUpdateError

logger = logging.getLogger(__name__)

Coercer = Callable[[str, Any], Any]


@dataclass
class MemoryRecord:
    """Plain record: identifier, type tag and attribute tree."""

    id: Optional[str] = None
    type: Optional[str] = None
    name: Optional[str] = None
    img: Optional[str] = None
    system: Dict[str, Any] = field(default_factory=dict)
    document_name: str = "Actor"


class InMemoryHost:
    """RecordHost applying patches to MemoryRecord-like objects.

    Args:
        strict: Drop patch entries whose path does not exist on the record.
        coerce: Optional ``(path, value) -> value`` applied to each entry.
        readonly_paths: Paths whose writes raise HostUpdateError.
    """

    def __init__(
        self,
        *,
        strict: bool = True,
        coerce: Optional[Coercer] = None,
        readonly_paths: Optional[List[str]] = None,
    ) -> None:
        self.strict = strict
        self.coerce = coerce
        self.readonly_paths = set(readonly_paths or [])
        self.updates: List[Dict[str, Any]] = []

    async def update(self, record: Any, patch: Dict[str, Any]) -> None:
        entries = flatten_patch(patch)
        for path, _value in entries:
            if path in self.readonly_paths:
                raise HostUpdateError(getattr(record, "id", None), f"{path} is read-only")

        self.updates.append(patch)
        for path, value in entries:
            if not path.startswith("system."):
                logger.debug("Ignoring non-system patch entry %s", path)
                continue
            tree_path = path[len("system.") :]
            if self.strict:
                if not has_property(record.system, tree_path):
                    logger.debug("Dropping %s: not part of the record schema", path)
                    continue
                if isinstance(get_property(record.system, tree_path), Mapping):
                    logger.debug("Dropping %s: cannot replace a field group", path)
                    continue
            if self.coerce is not None:
                value = self.coerce(path, value)
            set_property(record.system, tree_path, value)
