"""
Cross-encoder reranking of search candidates.

Reranking is best-effort: any provider problem returns the candidates
unchanged so it can never be the reason a search fails.
"""
from typing import List, Optional, Sequence

import aiohttp

from .config import (
    HF_API_KEY,
    RERANK_THRESHOLD,
    RERANK_TIMEOUT_SECONDS,
    RERANKER_MODEL,
    RERANKER_URL,
)
from .errors import RerankProviderError
from .logging_config import logger
from .models import ScoredChunk


class HuggingFaceReranker:
    """
    Reranker backed by a Hugging Face inference endpoint.

    The default model (BAAI/bge-reranker-v2-m3) is multilingual.
    """

    def __init__(
        self,
        api_url: str = RERANKER_URL,
        model: str = RERANKER_MODEL,
        api_key: Optional[str] = HF_API_KEY,
        threshold: float = RERANK_THRESHOLD,
        timeout_seconds: float = RERANK_TIMEOUT_SECONDS,
    ):
        self.api_url = api_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.threshold = threshold
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def rerank(
        self,
        query: str,
        candidates: Sequence[ScoredChunk],
        top_k: Optional[int] = None,
    ) -> List[ScoredChunk]:
        """
        Re-score candidates with the cross-encoder.

        Returns:
            Candidates with reranker scores, filtered by threshold, sorted and
            truncated to top_k; or the original candidates on any failure
        """
        if not candidates:
            logger.warning("No candidates to rerank")
            return []

        logger.info("Reranking candidates", count=len(candidates), model=self.model)

        try:
            scores = await self.request_scores(query, [c.chunk.chunk_text for c in candidates])
        except Exception as e:
            logger.error("Reranking failed, falling back to vector scores", error=str(e))
            return list(candidates)

        if len(scores) != len(candidates):
            logger.error(
                "Invalid reranker response, falling back to vector scores",
                expected=len(candidates),
                received=len(scores),
            )
            return list(candidates)

        reranked = [ScoredChunk(c.chunk, score) for c, score in zip(candidates, scores)]
        kept = [c for c in reranked if c.score >= self.threshold]
        # sorted() is stable, so equal scores keep their vector-search order
        kept = sorted(kept, key=lambda c: c.score, reverse=True)
        if top_k is not None:
            kept = kept[:top_k]

        logger.info("Reranking complete", kept=len(kept), candidates=len(candidates))
        return kept

    async def request_scores(self, query: str, texts: List[str]) -> List[float]:
        """
        Ask the cross-encoder for one relevance score per text.

        Raises:
            RerankProviderError: On HTTP errors or a malformed body
        """
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(
                f"{self.api_url}/{self.model}",
                json={"inputs": {"source_sentence": query, "sentences": texts}},
                headers=headers,
            ) as resp:
                data = await resp.json(content_type=None)
                if resp.status >= 400:
                    detail = data.get("error") if isinstance(data, dict) else data
                    raise RerankProviderError(f"Reranker HTTP {resp.status}: {detail}")

        if isinstance(data, dict):
            if data.get("error"):
                raise RerankProviderError(f"Reranker API error: {data['error']}")
            data = data.get("scores")

        if not isinstance(data, list):
            raise RerankProviderError("Reranker response has no score list")
        try:
            return [float(s) for s in data]
        except (TypeError, ValueError) as e:
            raise RerankProviderError(f"Reranker returned non-numeric scores: {e}") from e
