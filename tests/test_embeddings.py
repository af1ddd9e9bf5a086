"""Tests for fieldscribe.embeddings providers and vector helpers."""

import math
import sys
import types
from unittest.mock import MagicMock

import pytest

from fieldscribe.embeddings import (
    HASH_EMBEDDING_DIM,
    HashEmbedder,
    OpenAIEmbedder,
    cosine_similarity,
    mean_vector,
    tokenize_label,
)
from fieldscribe.protocols import Embedder, SemanticMatcherError


class TestTokenizeLabel:
    def test_paths_and_camel_case(self):
        assert tokenize_label("system.details.publicNotes") == [
            "system",
            "details",
            "public",
            "notes",
        ]

    def test_separators(self):
        assert tokenize_label("campaign_notes-v2 x") == ["campaign", "notes", "v2", "x"]

    def test_empty(self):
        assert tokenize_label("") == []
        assert tokenize_label(None) == []


class TestHashEmbedder:
    """Tests for the local n-gram embedder."""

    def test_satisfies_protocol(self):
        assert isinstance(HashEmbedder(), Embedder)

    def test_dimension(self):
        assert HashEmbedder().dimension == HASH_EMBEDDING_DIM
        assert len(HashEmbedder(dimension=16).embed("biography")) == 16

    def test_invalid_dimension(self):
        with pytest.raises(ValueError):
            HashEmbedder(dimension=0)

    def test_unit_length(self):
        vec = HashEmbedder().embed("system.details.biography.value")
        assert math.isclose(math.sqrt(sum(v * v for v in vec)), 1.0, rel_tol=1e-9)

    def test_deterministic(self):
        assert HashEmbedder().embed("notes") == HashEmbedder().embed("notes")

    def test_empty_text_is_zero_vector(self):
        assert HashEmbedder(dimension=8).embed("") == [0.0] * 8

    def test_related_labels_are_closer(self):
        embedder = HashEmbedder()
        concept = embedder.embed("biography")
        near = embedder.embed("system.details.biography")
        far = embedder.embed("system.attributes.hp")
        assert cosine_similarity(concept, near) > cosine_similarity(concept, far)

    def test_batch(self):
        embedder = HashEmbedder()
        assert embedder.embed_batch(["a", "b"]) == [embedder.embed("a"), embedder.embed("b")]


class TestVectorHelpers:
    def test_cosine(self):
        assert math.isclose(cosine_similarity([1.0, 0.0], [2.0, 0.0]), 1.0, rel_tol=1e-6)
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0

    def test_cosine_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_mean_vector(self):
        assert mean_vector([[1.0, 3.0], [3.0, 5.0]]) == [2.0, 4.0]
        assert mean_vector([]) == []


@pytest.fixture
def fake_openai(monkeypatch):
    """Install a stand-in ``openai`` module exposing an OpenAI client class."""
    client = MagicMock()
    module = types.ModuleType("openai")
    module.OpenAI = MagicMock(return_value=client)
    monkeypatch.setitem(sys.modules, "openai", module)
    return module, client


class TestOpenAIEmbedder:
    """Tests for OpenAIEmbedder with the SDK mocked out."""

    def test_requires_api_key(self, fake_openai, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="API key"):
            OpenAIEmbedder()

    def test_reads_env_key(self, fake_openai, monkeypatch):
        module, _client = fake_openai
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        embedder = OpenAIEmbedder()
        module.OpenAI.assert_called_once_with(api_key="sk-test")
        assert embedder.embedding_provider_id == "openai/text-embedding-3-small"
        assert embedder.dimension == 1536

    def test_embed_batch(self, fake_openai):
        _module, client = fake_openai
        client.embeddings.create.return_value = MagicMock(
            data=[MagicMock(embedding=[0.1, 0.2]), MagicMock(embedding=[0.3, 0.4])]
        )
        embedder = OpenAIEmbedder(api_key="sk-test")
        assert embedder.embed_batch(["a", "b"]) == [[0.1, 0.2], [0.3, 0.4]]
        client.embeddings.create.assert_called_once_with(
            model="text-embedding-3-small", input=["a", "b"]
        )
        client.embeddings.create.return_value = MagicMock(data=[MagicMock(embedding=[1.0])])
        assert embedder.embed("a") == [1.0]

    def test_api_errors_are_wrapped(self, fake_openai):
        _module, client = fake_openai
        client.embeddings.create.side_effect = ConnectionError("offline")
        embedder = OpenAIEmbedder(api_key="sk-test")
        with pytest.raises(SemanticMatcherError) as exc_info:
            embedder.embed("a")
        assert exc_info.value.error_class == "ConnectionError"

    def test_missing_sdk(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "openai", None)
        with pytest.raises(ImportError, match="pip install"):
            OpenAIEmbedder(api_key="sk-test")
