"""Schema profile adapter.

Cheap, read-only accessors over the handful of record layouts we know by
name. No discovery, no semantic matching, no writes: each profile lists
the fixed paths where a description lives and the first one holding text
wins. Unknown profiles use a generic list.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from fieldscribe.config import FieldscribeConfig
from fieldscribe.paths import get_property
from fieldscribe.types import RecordKind, has_text

logger = logging.getLogger(__name__)

GENERIC_PROFILE = "generic"

# Description paths relative to ``record.system``, keyed by profile, then by
# record type ("*" applies to types without their own list).
ACTOR_DESCRIPTION_PATHS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "dnd5e": {
        "*": (
            "details.biography.value",
            "details.biography.public",
            "description.value",
        ),
    },
    "pf2e": {
        "character": (
            "details.biography.backstory",
            "details.publicNotes",
            "description.value",
        ),
        "npc": (
            "details.publicNotes",
            "details.notes.description",
            "description.value",
        ),
        "*": (
            "details.biography.backstory",
            "details.publicNotes",
            "details.notes.description",
            "description.value",
        ),
    },
    GENERIC_PROFILE: {
        "*": (
            "details.biography.value",
            "details.biography.public",
            "description.value",
            "details.description",
            "details.publicNotes",
            "description",
        ),
    },
}

ITEM_DESCRIPTION_PATHS: Tuple[str, ...] = ("description.value", "description")


def record_kind(record: Any) -> RecordKind:
    """Item when the host calls the document an Item, actor otherwise."""
    document_name = get_property(record, "document_name") or get_property(record, "documentName")
    document_name = str(document_name or "")
    return RecordKind.ITEM if document_name.lower() == "item" else RecordKind.ACTOR


class ProfileAdapter:
    """Normalize name/image/description across profiles.

    Args:
        profile_id: Rule-system identifier, e.g. ``"dnd5e"``. Case-insensitive;
            None or unknown ids use the generic layout.
    """

    def __init__(self, profile_id: Optional[str] = None) -> None:
        self.profile_id = str(profile_id or "").strip().lower() or GENERIC_PROFILE

    @classmethod
    def from_config(cls, config: FieldscribeConfig) -> "ProfileAdapter":
        """Adapter for the configured profile; generic when none is set."""
        return cls(config.profile)

    @property
    def known_profile(self) -> bool:
        return self.profile_id in ACTOR_DESCRIPTION_PATHS

    def actor_description_paths(self, record_type: Optional[str] = None) -> Tuple[str, ...]:
        layouts = ACTOR_DESCRIPTION_PATHS.get(
            self.profile_id, ACTOR_DESCRIPTION_PATHS[GENERIC_PROFILE]
        )
        key = str(record_type or "").lower()
        return layouts.get(key, layouts["*"])

    # ---- Kind-dispatching accessors ----

    def name(self, record: Any) -> str:
        if record_kind(record) is RecordKind.ITEM:
            return self.item_name(record)
        return self.actor_name(record)

    def image(self, record: Any) -> str:
        if record_kind(record) is RecordKind.ITEM:
            return self.item_image(record)
        return self.actor_image(record)

    def description(self, record: Any) -> str:
        if record_kind(record) is RecordKind.ITEM:
            return self.item_description(record)
        return self.actor_description(record)

    # ---- Actors ----

    def actor_name(self, record: Any) -> str:
        return str(get_property(record, "name") or "")

    def actor_image(self, record: Any) -> str:
        return str(get_property(record, "img") or "")

    def actor_description(self, record: Any) -> str:
        tree = get_property(record, "system") or {}
        for path in self.actor_description_paths(get_property(record, "type")):
            value = get_property(tree, path)
            if has_text(value):
                logger.debug("Profile %s description from %s", self.profile_id, path)
                return value
        logger.debug(
            "Profile %s found no description for record %s",
            self.profile_id,
            get_property(record, "id"),
        )
        return ""

    # ---- Items ----

    def item_name(self, record: Any) -> str:
        return str(get_property(record, "name") or "")

    def item_image(self, record: Any) -> str:
        return str(get_property(record, "img") or "")

    def item_description(self, record: Any) -> str:
        tree = get_property(record, "system") or {}
        for path in ITEM_DESCRIPTION_PATHS:
            value = get_property(tree, path)
            if isinstance(value, str):
                return value
        return ""
