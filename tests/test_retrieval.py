import math
from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_engine.errors import VectorDimensionMismatchError
from rag_engine.models import ScoredChunk
from rag_engine.retrieval import (
    ContentClass,
    VectorSearchService,
    cosine_similarity,
    extract_keywords,
    lexical_boost,
    rank_candidates,
)


def search_engine(chunks, **kwargs):
    store = MagicMock()
    store.load_all_chunks.return_value = chunks
    kwargs.setdefault("use_lexical_boost", False)
    return VectorSearchService(store, **kwargs)


class TestCosineSimilarity:
    def test_identical_and_orthogonal(self):
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_zero_vector_scores_zero(self):
        assert cosine_similarity([0, 0], [1, 1]) == 0.0

    def test_dimension_mismatch_raises(self):
        with pytest.raises(VectorDimensionMismatchError) as exc:
            cosine_similarity([1, 0, 0], [1, 0])
        assert exc.value.details == {"left": 3, "right": 2}


class TestLexicalBoost:
    def test_keywords_drop_stop_words_and_short_tokens(self):
        assert extract_keywords("How do I configure the Ollama URL?") == {"configure", "ollama", "url"}
        assert extract_keywords("как настроить сервер") == {"настроить", "сервер"}

    def test_boost_scales_with_matched_fraction(self):
        keywords = extract_keywords("configure ollama")
        assert lexical_boost(keywords, "unrelated text") == 1.0
        assert lexical_boost(keywords, "Configure it") == pytest.approx(1.25)
        assert lexical_boost(keywords, "configure OLLAMA now") == pytest.approx(1.5)
        assert lexical_boost(frozenset(), "anything") == 1.0


def test_rank_candidates_threshold_is_inclusive_and_stable(make_chunk):
    a, b, c, d = (make_chunk(i, [1.0]) for i in range(4))
    scored = [ScoredChunk(a, 0.7), ScoredChunk(b, 0.65), ScoredChunk(c, 0.7), ScoredChunk(d, 0.6499)]

    ranked = rank_candidates(scored, 0.65)

    assert [r.chunk.id for r in ranked] == [0, 2, 1]


@pytest.mark.asyncio
async def test_search_is_deterministic_and_sorted(make_chunk):
    chunks = [
        make_chunk(1, [1.0, 0.0]),
        make_chunk(2, [0.8, 0.6]),
        make_chunk(3, [1.0, 0.0]),
        make_chunk(4, [0.0, 1.0]),
    ]
    engine = search_engine(chunks, text_threshold=0.5)

    first = await engine.search([1.0, 0.0], content_class=ContentClass.TEXT, top_k=10)
    second = await engine.search([1.0, 0.0], content_class=ContentClass.TEXT, top_k=10)

    assert [r.chunk.id for r in first] == [1, 3, 2]
    assert [r.chunk.id for r in second] == [1, 3, 2]
    assert first[2].score == pytest.approx(0.8)


@pytest.mark.asyncio
async def test_threshold_depends_on_content_class(make_chunk):
    # cos = 0.5 sits between the code and text thresholds
    chunk = make_chunk(1, [0.5, math.sqrt(0.75)])
    engine = search_engine([chunk], text_threshold=0.65, code_threshold=0.45)

    assert await engine.search([1.0, 0.0], content_class=ContentClass.TEXT) == []
    assert len(await engine.search([1.0, 0.0], content_class="code")) == 1
    # untagged queries use the lower threshold
    assert len(await engine.search([1.0, 0.0])) == 1


@pytest.mark.asyncio
async def test_top_k_is_capped(make_chunk):
    chunks = [make_chunk(i, [1.0, 0.0]) for i in range(15)]
    engine = search_engine(chunks, max_top_k=10)

    assert len(await engine.search([1.0, 0.0], top_k=50)) == 10
    assert len(await engine.search([1.0, 0.0], top_k=0)) == 1


@pytest.mark.asyncio
async def test_lexical_boost_reorders_results(make_chunk):
    chunks = [
        make_chunk(1, [0.9, math.sqrt(0.19)], text="general notes"),
        make_chunk(2, [0.8, 0.6], text="how to configure ollama"),
    ]
    engine = search_engine(chunks, text_threshold=0.5, use_lexical_boost=True)

    results = await engine.search([1.0, 0.0], query_text="configure ollama", content_class=ContentClass.TEXT)

    assert [r.chunk.id for r in results] == [2, 1]
    assert results[0].score == pytest.approx(1.2)


@pytest.mark.asyncio
async def test_mismatched_chunk_scores_zero_without_failing_search(make_chunk):
    chunks = [make_chunk(1, [1.0, 0.0, 0.0]), make_chunk(2, [1.0, 0.0])]
    engine = search_engine(chunks)

    results = await engine.search([1.0, 0.0], content_class=ContentClass.CODE)

    assert [r.chunk.id for r in results] == [2]


@pytest.mark.asyncio
async def test_search_returns_empty_on_store_failure():
    store = MagicMock()
    store.load_all_chunks.side_effect = RuntimeError("database is locked")
    engine = VectorSearchService(store)

    assert await engine.search([1.0, 0.0]) == []


@pytest.mark.asyncio
async def test_reranker_sees_limited_pool_and_output_is_truncated(make_chunk):
    chunks = [make_chunk(i, [1.0, 0.0]) for i in range(30)]
    reranker = MagicMock()
    reranker.rerank = AsyncMock(side_effect=lambda query, pool, top_k=None: list(pool))
    engine = search_engine(chunks, reranker=reranker, candidates_before_rerank=20)

    results = await engine.search([1.0, 0.0], query_text="query", top_k=5, use_reranking=True)

    pool = reranker.rerank.await_args.args[1]
    assert len(pool) == 20
    assert len(results) == 5


@pytest.mark.asyncio
async def test_reranking_skipped_without_query_text(make_chunk):
    reranker = MagicMock()
    reranker.rerank = AsyncMock()
    engine = search_engine([make_chunk(1, [1.0, 0.0])], reranker=reranker)

    results = await engine.search([1.0, 0.0], use_reranking=True)

    assert len(results) == 1
    reranker.rerank.assert_not_awaited()
