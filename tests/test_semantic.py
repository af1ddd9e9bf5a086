"""Tests for the semantic fallback client and matchers."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from fieldscribe.embeddings import HashEmbedder
from fieldscribe.protocols import SemanticMatcher, SemanticMatcherError
from fieldscribe.semantic import (
    BIOGRAPHY_CONCEPTS,
    EmbeddingMatcher,
    HttpMatcher,
    SemanticFallback,
)


class TestSemanticFallback:
    """Tests for SemanticFallback."""

    def test_bool_flag(self, matcher):
        assert SemanticFallback(matcher).is_enabled()
        assert not SemanticFallback(matcher, enabled=False).is_enabled()

    def test_callable_flag(self, matcher):
        assert SemanticFallback(matcher, enabled=lambda: True).is_enabled()
        assert not SemanticFallback(matcher, enabled=lambda: 0).is_enabled()

    def test_raising_flag_is_disabled(self, matcher):
        def unavailable():
            raise RuntimeError("settings namespace not ready")

        assert not SemanticFallback(matcher, enabled=unavailable).is_enabled()

    @pytest.mark.asyncio
    async def test_suggest_dedupes_candidates(self, matcher):
        matcher.suggest_best_string_path.return_value = {"path": "system.notes", "score": 0.9}
        fallback = SemanticFallback(matcher)
        path = await fallback.suggest(["system.notes", "system.bio", "system.notes"])
        assert path == "system.notes"
        candidates, concepts = matcher.suggest_best_string_path.await_args.args
        assert candidates == [{"path": "system.notes"}, {"path": "system.bio"}]
        assert concepts == list(BIOGRAPHY_CONCEPTS)

    @pytest.mark.asyncio
    async def test_suggest_disabled(self, matcher):
        fallback = SemanticFallback(matcher, enabled=False)
        assert await fallback.suggest(["system.notes"]) is None
        matcher.suggest_best_string_path.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_suggest_without_candidates(self, matcher):
        assert await SemanticFallback(matcher).suggest([]) is None
        matcher.suggest_best_string_path.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "answer", [None, "system.notes", {"score": 1.0}, {"path": ""}, {"path": ".."}]
    )
    async def test_unusable_answers(self, matcher, answer):
        matcher.suggest_best_string_path.return_value = answer
        assert await SemanticFallback(matcher).suggest(["system.notes"]) is None

    @pytest.mark.asyncio
    async def test_matcher_error(self, matcher):
        matcher.suggest_best_string_path.side_effect = SemanticMatcherError("transport", "down")
        assert await SemanticFallback(matcher).suggest(["system.notes"]) is None

    def test_discover_keeps_string_paths(self, matcher):
        matcher.discover_string_paths.return_value = [
            {"path": "system.lore"},
            {"path": 3},
            "system.bad",
        ]
        assert SemanticFallback(matcher).discover({"lore": ""}) == ["system.lore"]

    def test_discover_error(self, matcher):
        matcher.discover_string_paths.side_effect = RuntimeError("boom")
        assert SemanticFallback(matcher).discover({}) == []


class TestEmbeddingMatcher:
    """Tests for the in-process embedding matcher."""

    def test_satisfies_protocol(self):
        assert isinstance(EmbeddingMatcher(), SemanticMatcher)

    @pytest.mark.asyncio
    async def test_prefers_biography_label(self):
        matcher = EmbeddingMatcher(HashEmbedder())
        best = await matcher.suggest_best_string_path(
            [{"path": "system.hp"}, {"path": "system.biography"}], BIOGRAPHY_CONCEPTS
        )
        assert best["path"] == "system.biography"
        assert isinstance(best["score"], float)

    @pytest.mark.asyncio
    async def test_uses_label_when_present(self):
        embedder = MagicMock()
        embedder.embed_batch = MagicMock(return_value=[[1.0, 0.0], [0.0, 1.0], [1.0, 0.0]])
        matcher = EmbeddingMatcher(embedder)
        best = await matcher.suggest_best_string_path(
            [{"path": "system.a", "label": "Hit points"}, {"path": "system.b"}], ["biography"]
        )
        assert best["path"] == "system.b"
        embedder.embed_batch.assert_called_once_with(["biography", "Hit points", "system.b"])

    @pytest.mark.asyncio
    async def test_no_candidates(self):
        assert await EmbeddingMatcher().suggest_best_string_path([], BIOGRAPHY_CONCEPTS) is None

    @pytest.mark.asyncio
    async def test_no_concepts(self):
        matcher = EmbeddingMatcher()
        assert await matcher.suggest_best_string_path([{"path": "system.bio"}], []) is None

    def test_discover_string_paths(self):
        paths = EmbeddingMatcher().discover_string_paths({"lore": "", "hp": 3}, None)
        assert paths == [{"path": "system.lore"}]

    def test_provider_id(self):
        assert EmbeddingMatcher().embedding_provider_id == "ngram-v1"


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpMatcher:
    """Tests for HttpMatcher against a mocked transport."""

    @pytest.mark.asyncio
    async def test_posts_candidates_and_concepts(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"path": "system.notes", "score": 0.7})

        matcher = HttpMatcher("https://match.example.com/", api_key="k", client=_client(handler))
        best = await matcher.suggest_best_string_path([{"path": "system.notes"}], ["notes"])

        assert best == {"path": "system.notes", "score": 0.7}
        assert seen["url"] == "https://match.example.com/suggest"
        assert seen["auth"] == "Bearer k"
        assert seen["body"] == {"candidates": [{"path": "system.notes"}], "concepts": ["notes"]}

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=None)

        matcher = HttpMatcher("http://localhost:8765", client=_client(handler))
        assert await matcher.suggest_best_string_path([{"path": "system.a"}], ["a"]) is None
        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_empty_candidates_skip_request(self):
        handler = MagicMock(side_effect=AssertionError("no request expected"))
        matcher = HttpMatcher("https://match.example.com", client=_client(handler))
        assert await matcher.suggest_best_string_path([], ["notes"]) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response, error_class",
        [
            (httpx.Response(503, text="busy"), "http_status"),
            (httpx.Response(200, content=b"not json"), "decode"),
            (httpx.Response(200, json={"score": 1}), "protocol"),
            (httpx.Response(200, json=["system.notes"]), "protocol"),
        ],
    )
    async def test_bad_responses(self, response, error_class):
        matcher = HttpMatcher("https://match.example.com", client=_client(lambda r: response))
        with pytest.raises(SemanticMatcherError) as exc_info:
            await matcher.suggest_best_string_path([{"path": "system.notes"}], ["notes"])
        assert exc_info.value.error_class == error_class

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        matcher = HttpMatcher("https://match.example.com", client=_client(handler))
        with pytest.raises(SemanticMatcherError) as exc_info:
            await matcher.suggest_best_string_path([{"path": "system.notes"}], ["notes"])
        assert exc_info.value.error_class == "transport"

    @pytest.mark.asyncio
    async def test_errors_degrade_through_fallback(self):
        matcher = HttpMatcher(
            "https://match.example.com", client=_client(lambda r: httpx.Response(500))
        )
        assert await SemanticFallback(matcher).suggest(["system.notes"]) is None

    @pytest.mark.parametrize(
        "url",
        ["http://match.example.com", "ftp://localhost", "https://", ""],
    )
    def test_rejects_unsafe_urls(self, url):
        with pytest.raises(ValueError):
            HttpMatcher(url)

    def test_accepts_local_http(self):
        assert HttpMatcher("http://127.0.0.1:9000/").base_url == "http://127.0.0.1:9000"

    @pytest.mark.asyncio
    async def test_uses_own_client_when_none_given(self, monkeypatch):
        response = httpx.Response(
            200,
            json={"path": "system.bio"},
            request=httpx.Request("POST", "https://match.example.com/suggest"),
        )
        post = AsyncMock(return_value=response)
        monkeypatch.setattr(httpx.AsyncClient, "post", post)
        matcher = HttpMatcher("https://match.example.com")
        best = await matcher.suggest_best_string_path([{"path": "system.bio"}], ["bio"])
        assert best == {"path": "system.bio"}
        post.assert_awaited_once()
