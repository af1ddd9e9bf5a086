"""Embedding providers for the semantic matcher.

HashEmbedder is local and dependency-free: character n-grams hashed into a
fixed number of buckets. It is crude but deterministic, which is what the
fallback needs when no model is configured. OpenAIEmbedder wraps the
``openai`` SDK, imported lazily so the module loads without it.
"""

from __future__ import annotations

import hashlib
import logging
import math
import os
import re
from typing import Optional

from fieldscribe.protocols import SemanticMatcherError

logger = logging.getLogger(__name__)

HASH_EMBEDDING_DIM = 384
NGRAM_SIZES = (2, 3, 4)

_SPLIT_RE = re.compile(r"[._\-\s]+|(?<=[a-z])(?=[A-Z])")


def tokenize_label(text: str) -> list[str]:
    """Split a path or label into lowercase words.

    ``system.details.publicNotes`` -> ``["system", "details", "public", "notes"]``
    """
    return [t.lower() for t in _SPLIT_RE.split(str(text or "")) if t]


class HashEmbedder:
    """Deterministic n-gram hashing embedder."""

    def __init__(self, dimension: int = HASH_EMBEDDING_DIM) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def embedding_provider_id(self) -> str:
        return "ngram-v1"

    def _bucket(self, gram: str) -> int:
        digest = hashlib.md5(gram.encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "little") % self._dimension

    def embed(self, text: str) -> list[float]:
        vec = [0.0] * self._dimension
        for word in tokenize_label(text):
            padded = f" {word} "
            vec[self._bucket("w:" + word)] += 1.0
            for n in NGRAM_SIZES:
                for i in range(len(padded) - n + 1):
                    vec[self._bucket(padded[i : i + n])] += 1.0
        norm = math.sqrt(sum(v * v for v in vec))
        if norm == 0:
            return vec
        return [v / norm for v in vec]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(t) for t in texts]


class OpenAIEmbedder:
    """Embedder backed by the OpenAI embeddings API.

    Requires the ``openai`` package::

        pip install fieldscribe[openai]
    """

    def __init__(
        self,
        model_id: str = "text-embedding-3-small",
        *,
        api_key: Optional[str] = None,
        dimension: int = 1536,
    ) -> None:
        try:
            import openai as _openai  # noqa: F811
        except ImportError:
            raise ImportError(
                "The 'openai' package is required for OpenAIEmbedder. "
                "Install it with: pip install openai"
            ) from None

        resolved_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not resolved_key:
            raise ValueError("An API key is required. Pass api_key= or set OPENAI_API_KEY.")

        self._model_id = model_id
        self._dimension = dimension
        self._client = _openai.OpenAI(api_key=resolved_key)

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def embedding_provider_id(self) -> str:
        return f"openai/{self._model_id}"

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        try:
            response = self._client.embeddings.create(model=self._model_id, input=texts)
        except Exception as exc:
            logger.debug("OpenAI embeddings call failed: %s", exc, exc_info=True)
            raise SemanticMatcherError(
                type(exc).__name__, f"OpenAI embeddings error: {exc}"
            ) from exc
        return [list(item.embedding) for item in response.data]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity over the common prefix of two vectors."""
    length = min(len(a), len(b))
    dot = na = nb = 0.0
    for i in range(length):
        dot += a[i] * b[i]
        na += a[i] * a[i]
        nb += b[i] * b[i]
    return dot / (math.sqrt(na) * math.sqrt(nb) + 1e-8)


def mean_vector(vectors: list[list[float]]) -> list[float]:
    """Element-wise mean; empty input gives an empty vector."""
    if not vectors:
        return []
    dim = len(vectors[0])
    total = [0.0] * dim
    for vec in vectors:
        for i in range(min(dim, len(vec))):
            total[i] += vec[i]
    return [v / len(vectors) for v in total]
