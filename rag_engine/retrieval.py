"""
Vector search over stored chunks.

Every chunk is scored against the query embedding with cosine similarity,
optionally boosted by keyword overlap with the query text, filtered by a
threshold that depends on the content class, and truncated to top-K.
"""
import re
from enum import Enum
from time import perf_counter
from typing import FrozenSet, List, Optional, Sequence

import numpy as np

from .config import (
    CODE_SIMILARITY_THRESHOLD,
    DEFAULT_TOP_K,
    MAX_TOP_K,
    TEXT_SIMILARITY_THRESHOLD,
    TOP_K_BEFORE_RERANK,
    USE_LEXICAL_BOOST,
)
from .errors import VectorDimensionMismatchError
from .logging_config import logger
from .models import DocumentChunk, ScoredChunk
from .vector_store import VectorStore

LEXICAL_BOOST_WEIGHT = 0.5  # max multiplier 1.5x when every keyword matches
MIN_KEYWORD_LENGTH = 3

_TOKEN = re.compile(r"\w+", re.UNICODE)

STOP_WORDS: FrozenSet[str] = frozenset("""
    a an and are as at be but by can do does for from has have how i in is it its
    me my not of on or that the their them there these this those to was what when
    where which who why will with you your
    и в во не что он на я с со как а то все она так его но да ты к у же вы за бы
    по только ее мне было вот от меня еще нет о из ему теперь когда даже ну ли если
    уже или ни быть был него до вас нибудь опять уж вам ведь там потом себя ничего
    ей может они тут где есть надо ней для мы тебя их чем была сам чтоб без будто
    чего раз тоже себе под будет ж тогда кто этот того потому этого какой совсем ним
    здесь этом один почти мой тем чтобы нее сейчас были куда зачем всех никогда можно
    при наконец два об другой хоть после над больше тот через эти нас про всего них
    какая много разве три эту моя впрочем хорошо свою этой перед иногда лучше чуть
    том нельзя такой им более всегда конечно всю между
""".split())


class ContentClass(str, Enum):
    CODE = "code"
    TEXT = "text"


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    cos(θ) = (A·B) / (||A|| × ||B||), from -1 to 1; a zero vector scores 0.

    Raises:
        VectorDimensionMismatchError: If the vectors have different lengths
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise VectorDimensionMismatchError(a.size, b.size)

    denominator = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denominator <= 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


def tokenize(text: str) -> FrozenSet[str]:
    return frozenset(t.lower() for t in _TOKEN.findall(text))


def extract_keywords(query: str) -> FrozenSet[str]:
    """Query tokens minus stop-words and tokens shorter than three characters."""
    return frozenset(
        t for t in tokenize(query)
        if len(t) >= MIN_KEYWORD_LENGTH and t not in STOP_WORDS
    )


def lexical_boost(keywords: FrozenSet[str], chunk_text: str) -> float:
    """Multiplier in [1, 1.5] from the fraction of query keywords found in the chunk."""
    if not keywords:
        return 1.0
    matched = len(keywords & tokenize(chunk_text))
    return 1.0 + LEXICAL_BOOST_WEIGHT * (matched / len(keywords))


def rank_candidates(scored: Sequence[ScoredChunk], threshold: float) -> List[ScoredChunk]:
    """Keep scores >= threshold, highest first; ties keep their input order."""
    kept = [c for c in scored if c.score >= threshold]
    return sorted(kept, key=lambda c: c.score, reverse=True)


class VectorSearchService:
    """
    Ranks stored chunks against a query embedding.

    Args:
        store: Vector store to load chunks from
        reranker: Optional cross-encoder reranker (anything with ``async rerank``)
        text_threshold: Minimum score for prose queries
        code_threshold: Minimum score for code queries (code embeddings cluster less tightly)
        max_top_k: Hard ceiling on results regardless of the requested top_k
        candidates_before_rerank: How many candidates the reranker sees
        use_lexical_boost: Multiply vector scores by the keyword-overlap boost
    """

    def __init__(
        self,
        store: VectorStore,
        reranker=None,
        text_threshold: float = TEXT_SIMILARITY_THRESHOLD,
        code_threshold: float = CODE_SIMILARITY_THRESHOLD,
        max_top_k: int = MAX_TOP_K,
        candidates_before_rerank: int = TOP_K_BEFORE_RERANK,
        use_lexical_boost: bool = USE_LEXICAL_BOOST,
    ):
        self.store = store
        self.reranker = reranker
        self.text_threshold = text_threshold
        self.code_threshold = code_threshold
        self.max_top_k = max_top_k
        self.candidates_before_rerank = candidates_before_rerank
        self.use_lexical_boost = use_lexical_boost

    def threshold_for(self, content_class: Optional[ContentClass]) -> float:
        if content_class is None:
            # untagged queries must still surface code
            return min(self.text_threshold, self.code_threshold)
        if ContentClass(content_class) is ContentClass.CODE:
            return self.code_threshold
        return self.text_threshold

    def score_chunks(
        self,
        query_embedding: Sequence[float],
        chunks: Sequence[DocumentChunk],
        query_text: Optional[str] = None,
    ) -> List[ScoredChunk]:
        keywords = extract_keywords(query_text) if (query_text and self.use_lexical_boost) else frozenset()
        scored = []
        for chunk in chunks:
            try:
                score = cosine_similarity(query_embedding, chunk.embedding)
            except VectorDimensionMismatchError as e:
                logger.warning("Vector dimension mismatch", chunk_id=chunk.id, **e.details)
                score = 0.0
            if keywords:
                score *= lexical_boost(keywords, chunk.chunk_text)
            scored.append(ScoredChunk(chunk, score))
        return scored

    async def search(
        self,
        query_embedding: Sequence[float],
        query_text: Optional[str] = None,
        content_class: Optional[ContentClass] = None,
        top_k: int = DEFAULT_TOP_K,
        use_reranking: bool = False,
    ) -> List[ScoredChunk]:
        """
        Search for the chunks most similar to the query embedding.

        Parameters:
        query_embedding: Embedding vector of the user query
        query_text: Original query text (needed for lexical boost and reranking)
        content_class: "code" or "text"; selects the similarity threshold
        top_k: Number of results wanted, capped at max_top_k
        use_reranking: Apply the cross-encoder reranker when one is configured

        Returns:
        Scored chunks sorted by score (descending); empty on any failure
        """
        limit = max(1, min(top_k, self.max_top_k))
        t = perf_counter()
        try:
            chunks = self.store.load_all_chunks()
            if not chunks:
                logger.warning("No chunks found in database")
                return []

            threshold = self.threshold_for(content_class)
            candidates = rank_candidates(self.score_chunks(query_embedding, chunks, query_text), threshold)
            logger.info(
                "Scored chunks",
                loaded=len(chunks),
                candidates=len(candidates),
                threshold=threshold,
            )

            if use_reranking and self.reranker is not None and query_text:
                pool = candidates[:self.candidates_before_rerank]
                results = await self.reranker.rerank(query_text, pool, top_k=limit) if pool else []
                results = results[:limit]
            else:
                if use_reranking:
                    logger.warning(
                        "Reranking requested but unavailable, using vector search only",
                        has_reranker=self.reranker is not None,
                        has_query_text=bool(query_text),
                    )
                results = candidates[:limit]
        except Exception as e:
            logger.error("Error during vector search", exc_info=e)
            return []

        logger.info(
            "Vector search finished",
            results=len(results),
            top_scores=[round(r.score, 4) for r in results[:5]],
            time_ms=round((perf_counter() - t) * 1000, 2),
        )
        return results
