"""
Pytest fixtures and test configuration for fieldscribe tests.
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from fieldscribe.host import InMemoryHost, MemoryRecord


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Keep config and log files out of the real home directory."""
    monkeypatch.setenv("FIELDSCRIBE_DATA_DIR", str(tmp_path))
    for name in (
        "FIELDSCRIBE_SEMANTIC_MAPPING",
        "FIELDSCRIBE_MATCHER_URL",
        "FIELDSCRIBE_MATCHER_API_KEY",
        "FIELDSCRIBE_MATCHER_TIMEOUT",
        "FIELDSCRIBE_MAX_DEPTH",
        "FIELDSCRIBE_PROFILE",
        "FIELDSCRIBE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture(autouse=True)
def clean_fieldscribe_logger():
    """Remove all handlers from the fieldscribe logger before/after each test."""
    logger = logging.getLogger("fieldscribe")
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)


@pytest.fixture
def host():
    """Strict in-memory host: unknown paths are dropped silently."""
    return InMemoryHost()


@pytest.fixture
def dnd_npc():
    """NPC with the dual value/public biography group, both empty."""
    return MemoryRecord(
        id="npc-1",
        type="npc",
        name="Grizzle",
        img="tokens/grizzle.png",
        system={
            "details": {"biography": {"value": "", "public": ""}},
            "attributes": {"hp": {"value": 7, "max": 7}},
        },
    )


@pytest.fixture
def dnd_character():
    """Player character with the dual biography group, both empty."""
    return MemoryRecord(
        id="pc-1",
        type="character",
        name="Ayla",
        system={"details": {"biography": {"value": "", "public": ""}}},
    )


@pytest.fixture
def pf2e_character():
    """Record with a rich pf2e-style biography block."""
    return MemoryRecord(
        id="pf-1",
        type="character",
        name="Seelah",
        system={
            "details": {
                "biography": {
                    "appearance": "Tall, with a scarred jaw.",
                    "backstory": "Orphaned during the siege.",
                    "allies": "The Knights of Lastwall",
                    "campaignNotes": "Owes the party a favor.",
                    "visibility": {"appearance": True, "backstory": True, "allies": False},
                },
                "publicNotes": "",
            },
            "attributes": {"hp": {"value": 20}},
        },
    )


@pytest.fixture
def matcher():
    """SemanticMatcher double that suggests nothing by default."""
    m = MagicMock()
    m.suggest_best_string_path = AsyncMock(return_value=None)
    m.discover_string_paths = MagicMock(return_value=[])
    return m
