"""
Search API route.
"""
from fastapi import APIRouter, Depends

from ..config import USE_RERANKING
from ..dependencies import get_search_service
from ..schemas import SearchBody, SearchResponse, SearchResult, Source
from ..services.search_service import SearchService

router = APIRouter(prefix="/api", tags=["search"])


@router.post("/search", response_model=SearchResponse)
async def search(body: SearchBody, service: SearchService = Depends(get_search_service)):
    """
    Rank stored chunks against a query and return them with an assembled,
    citation-tagged context block.
    """
    use_reranking = USE_RERANKING if body.use_reranking is None else body.use_reranking
    retrieved = await service.retrieve_context(
        body.query,
        top_k=body.top_k,
        content_class=body.content_class,
        use_reranking=use_reranking,
        token_budget=body.token_budget,
    )

    return SearchResponse(
        results=[
            SearchResult(
                chunk_id=r.chunk.id,
                document_id=r.chunk.document_id,
                document_name=r.chunk.document_name,
                chunk_index=r.chunk.chunk_index,
                score=round(r.score, 4),
                token_count=r.chunk.token_count,
                text=r.chunk.chunk_text,
            )
            for r in retrieved.results
        ],
        context=retrieved.context.text,
        cited_chunk_ids=retrieved.context.cited_chunk_ids,
        context_tokens=retrieved.context.total_tokens,
        sources=[Source(**s) for s in retrieved.sources],
    )
