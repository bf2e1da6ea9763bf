from unittest.mock import AsyncMock, patch

import pytest

from rag_engine.errors import RerankProviderError
from rag_engine.models import ScoredChunk
from rag_engine.reranker import HuggingFaceReranker


@pytest.fixture
def candidates(make_chunk):
    return [
        ScoredChunk(make_chunk(1, [1.0], text="first"), 0.9),
        ScoredChunk(make_chunk(2, [1.0], text="second"), 0.8),
        ScoredChunk(make_chunk(3, [1.0], text="third"), 0.7),
    ]


@pytest.mark.asyncio
async def test_rerank_replaces_scores_filters_and_sorts(candidates):
    reranker = HuggingFaceReranker(threshold=0.5)
    with patch.object(reranker, "request_scores", AsyncMock(return_value=[0.2, 0.95, 0.6])) as request:
        results = await reranker.rerank("query", candidates)

    request.assert_awaited_once_with("query", ["first", "second", "third"])
    assert [r.chunk.id for r in results] == [2, 3]
    assert [r.score for r in results] == [0.95, 0.6]


@pytest.mark.asyncio
async def test_rerank_truncates_to_top_k(candidates):
    reranker = HuggingFaceReranker(threshold=0.0)
    with patch.object(reranker, "request_scores", AsyncMock(return_value=[0.3, 0.2, 0.1])):
        results = await reranker.rerank("query", candidates, top_k=2)

    assert [r.chunk.id for r in results] == [1, 2]


@pytest.mark.asyncio
async def test_score_count_mismatch_falls_back_to_input(candidates):
    reranker = HuggingFaceReranker()
    with patch.object(reranker, "request_scores", AsyncMock(return_value=[0.9, 0.8])):
        results = await reranker.rerank("query", candidates)

    assert results == candidates


@pytest.mark.asyncio
async def test_provider_error_falls_back_to_input(candidates):
    reranker = HuggingFaceReranker()
    failing = AsyncMock(side_effect=RerankProviderError("Reranker HTTP 503: loading"))
    with patch.object(reranker, "request_scores", failing):
        results = await reranker.rerank("query", candidates)

    assert results == candidates


@pytest.mark.asyncio
async def test_empty_candidates():
    reranker = HuggingFaceReranker()
    with patch.object(reranker, "request_scores", AsyncMock()) as request:
        assert await reranker.rerank("query", []) == []
    request.assert_not_awaited()
