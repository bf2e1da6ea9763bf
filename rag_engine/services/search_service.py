"""
Search service.
Embeds a query, ranks stored chunks and assembles a cited context block.
"""
from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, List, Optional

from ..config import DEFAULT_TOP_K, EMBED_MODEL, MAX_CONTEXT_TOKENS
from ..context import ContextBlock, assemble_context
from ..errors import EmbeddingProviderError
from ..logging_config import logger
from ..models import ScoredChunk
from ..retrieval import ContentClass, VectorSearchService
from ..utils.helpers import dedupe_sources


@dataclass
class RetrievalResult:
    results: List[ScoredChunk] = field(default_factory=list)
    context: ContextBlock = field(default_factory=ContextBlock)
    sources: List[Dict] = field(default_factory=list)


class SearchService:
    def __init__(
        self,
        embedder,
        search_engine: VectorSearchService,
        embedding_model: str = EMBED_MODEL,
        context_budget: int = MAX_CONTEXT_TOKENS,
    ):
        self.embedder = embedder
        self.search_engine = search_engine
        self.embedding_model = embedding_model
        self.context_budget = context_budget

    async def retrieve_context(
        self,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        content_class: Optional[ContentClass] = None,
        use_reranking: bool = False,
        token_budget: Optional[int] = None,
    ) -> RetrievalResult:
        """
        Retrieve the chunks relevant to a query and pack them into a context.

        An embedding failure yields an empty result rather than an error, the
        same way a failed search does.
        """
        t = perf_counter()
        try:
            query_embedding = await self.embedder.embed(self.embedding_model, query)
        except EmbeddingProviderError as e:
            logger.error("Failed to embed query", error=e.message, **e.details)
            return RetrievalResult()

        results = await self.search_engine.search(
            query_embedding,
            query_text=query,
            content_class=content_class,
            top_k=top_k,
            use_reranking=use_reranking,
        )
        context = assemble_context(results, token_budget or self.context_budget)

        logger.info(
            "Retrieved context",
            query=query[:50],
            results=len(results),
            context_tokens=context.total_tokens,
            time_ms=round((perf_counter() - t) * 1000, 2),
        )
        return RetrievalResult(results=results, context=context, sources=dedupe_sources(results))
