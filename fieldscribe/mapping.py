"""Deterministic mapping from host records to export payloads.

Builds the flat payloads an external archive expects (characters, items,
factions) from the profile adapter's cheap accessors. Nothing here writes
to the record.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fieldscribe.documents import journal_text
from fieldscribe.paths import get_property
from fieldscribe.profiles import ProfileAdapter


@dataclass
class MappedPayload:
    """Target type, payload fields and labels for one exported record."""

    target_type: str
    payload: Dict[str, Any]
    labels: List[str] = field(default_factory=list)


def map_character(
    record: Any, adapter: Optional[ProfileAdapter] = None, role: str = "npc"
) -> MappedPayload:
    """Map an actor to a Character payload. ``role`` is ``"pc"`` or ``"npc"``."""
    adapter = adapter or ProfileAdapter()
    is_pc = str(role).lower() == "pc"
    image = adapter.actor_image(record) or str(get_property(record, "imgSrc") or "")
    return MappedPayload(
        target_type="Character",
        payload={
            "title": adapter.actor_name(record),
            "description": adapter.actor_description(record),
            "portraitUrl": image or None,
        },
        labels=["PC" if is_pc else "NPC"],
    )


def map_item(record: Any, adapter: Optional[ProfileAdapter] = None) -> MappedPayload:
    adapter = adapter or ProfileAdapter()
    return MappedPayload(
        target_type="Item",
        payload={
            "name": adapter.item_name(record),
            "description": adapter.item_description(record),
            "imageUrl": adapter.item_image(record) or None,
        },
    )


def map_faction(journal: Any) -> MappedPayload:
    return MappedPayload(
        target_type="Faction",
        payload={
            "name": str(get_property(journal, "name") or ""),
            "description": journal_text(journal),
            "imageUrl": None,
        },
    )
