"""Semantic fallback for field resolution.

When the deterministic scorer runs out of candidates, a resolver may ask
an external matcher for one best-guess path. Three pieces live here:

- SemanticFallback: the guarded client the resolvers call. Checks the
  feature flag, calls the matcher at most once per request, and turns every
  failure into "no suggestion".
- EmbeddingMatcher: in-process matcher. Averages the concept embeddings and
  picks the candidate whose label is closest by cosine similarity.
- HttpMatcher: async client for a remote matching service.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import httpx

from fieldscribe.config import validate_matcher_url
from fieldscribe.embeddings import HashEmbedder, cosine_similarity, mean_vector
from fieldscribe.paths import split_path
from fieldscribe.protocols import Embedder, FeatureFlag, SemanticMatcher, SemanticMatcherError
from fieldscribe.scanner import PatternLike, discover_string_paths

logger = logging.getLogger(__name__)

# Concepts used for biography-like resolution.
BIOGRAPHY_CONCEPTS = ("biography", "backstory", "description", "notes")

DEFAULT_MATCHER_TIMEOUT = 5.0


class SemanticFallback:
    """Guarded access to a SemanticMatcher.

    Args:
        matcher: The matcher to consult.
        enabled: A bool, or a zero-argument callable reading the host's
            "semantic mapping enabled" flag. A callable that raises counts
            as disabled.
    """

    def __init__(
        self,
        matcher: SemanticMatcher,
        enabled: Union[bool, FeatureFlag] = True,
    ) -> None:
        self._matcher = matcher
        self._enabled = enabled

    @property
    def matcher(self) -> SemanticMatcher:
        return self._matcher

    def is_enabled(self) -> bool:
        """Read the feature flag; unavailable configuration means disabled."""
        flag = self._enabled
        if not callable(flag):
            return bool(flag)
        try:
            return bool(flag())
        except Exception as exc:
            logger.debug("Semantic mapping flag unavailable, treating as disabled: %s", exc)
            return False

    def discover(self, tree: Any, pattern: PatternLike = None) -> list[str]:
        """Extra candidate paths from the matcher's own discovery."""
        try:
            found = self._matcher.discover_string_paths(tree, pattern)
        except Exception as exc:
            logger.warning("Semantic candidate discovery failed: %s", exc)
            return []
        return [
            c["path"] for c in found if isinstance(c, Mapping) and isinstance(c.get("path"), str)
        ]

    async def suggest(
        self,
        paths: Iterable[str],
        concepts: Sequence[str] = BIOGRAPHY_CONCEPTS,
    ) -> Optional[str]:
        """Ask the matcher for the best path among ``paths``.

        Returns the suggested path, or None when disabled, when there are no
        candidates, or when the matcher fails or returns nothing usable.
        """
        if not self.is_enabled():
            return None
        candidates = [{"path": p} for p in dict.fromkeys(paths)]
        if not candidates:
            return None
        try:
            best = await self._matcher.suggest_best_string_path(candidates, list(concepts))
        except Exception as exc:
            logger.warning("Semantic matcher failed, continuing without suggestion: %s", exc)
            return None
        if not isinstance(best, Mapping):
            return None
        path = best.get("path")
        if not isinstance(path, str) or not split_path(path):
            return None
        logger.debug("Semantic matcher suggested %s (score=%s)", path, best.get("score"))
        return path


class EmbeddingMatcher:
    """SemanticMatcher backed by an Embedder.

    Concepts and candidate labels are embedded in one batch; the concept
    vectors are averaged and each candidate is scored by cosine similarity
    against that mean. Embedding runs in a worker thread so a slow provider
    does not block the event loop.
    """

    def __init__(self, embedder: Optional[Embedder] = None) -> None:
        self._embedder = embedder or HashEmbedder()

    @property
    def embedding_provider_id(self) -> str:
        return self._embedder.embedding_provider_id

    async def suggest_best_string_path(
        self,
        candidates: Sequence[Mapping[str, Any]],
        concepts: Sequence[str],
    ) -> Optional[dict[str, Any]]:
        if not candidates:
            return None
        labels = [str(c.get("label") or c.get("path") or "") for c in candidates]
        texts = list(concepts) + labels
        vectors = await asyncio.to_thread(self._embedder.embed_batch, texts)

        concept_vec = mean_vector(vectors[: len(concepts)])
        if not concept_vec:
            return None

        best: Optional[dict[str, Any]] = None
        for candidate, vec in zip(candidates, vectors[len(concepts) :]):
            similarity = cosine_similarity(concept_vec, vec)
            if best is None or similarity > best["score"]:
                best = {**candidate, "score": similarity}
        return best

    def discover_string_paths(self, tree: Any, pattern: PatternLike = None) -> list[dict[str, str]]:
        return discover_string_paths(tree, pattern)


class HttpMatcher:
    """SemanticMatcher that delegates to a remote service over HTTP.

    Protocol: ``POST {base_url}/suggest`` with
    ``{"candidates": [{"path": ...}], "concepts": [...]}``; the service
    answers with the best candidate object or ``null``.

    Args:
        base_url: Service root. Plain http is only accepted for localhost.
        api_key: Optional bearer token.
        timeout: Request timeout in seconds.
        client: Pre-built ``httpx.AsyncClient`` (tests, connection reuse).
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_MATCHER_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        validated = validate_matcher_url(base_url)
        if not validated:
            raise ValueError(f"Refusing semantic matcher URL: {base_url!r}")
        self._base_url = validated
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post(self, client: httpx.AsyncClient, body: dict[str, Any]) -> httpx.Response:
        return await client.post(
            f"{self._base_url}/suggest",
            json=body,
            headers=self._headers(),
            timeout=self._timeout,
        )

    async def suggest_best_string_path(
        self,
        candidates: Sequence[Mapping[str, Any]],
        concepts: Sequence[str],
    ) -> Optional[dict[str, Any]]:
        if not candidates:
            return None
        body = {"candidates": [dict(c) for c in candidates], "concepts": list(concepts)}
        try:
            if self._client is not None:
                response = await self._post(self._client, body)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise SemanticMatcherError(
                "http_status", f"Matcher returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SemanticMatcherError("transport", f"Matcher request failed: {exc}") from exc
        except ValueError as exc:
            raise SemanticMatcherError("decode", "Matcher returned invalid JSON") from exc

        if data is None:
            return None
        if not isinstance(data, dict) or not isinstance(data.get("path"), str):
            raise SemanticMatcherError("protocol", "Matcher response has no string 'path'")
        return data

    def discover_string_paths(self, tree: Any, pattern: PatternLike = None) -> list[dict[str, str]]:
        return discover_string_paths(tree, pattern)
