"""
Utility helper functions.
"""
from typing import Dict, List, Sequence

from ..models import ScoredChunk

PREVIEW_CHARS = 200


def make_preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    preview = text[:limit].strip()
    if len(text) > limit:
        preview += "..."
    return preview


def dedupe_sources(results: Sequence[ScoredChunk]) -> List[Dict]:
    """
    Deduplicate source documents from ranked chunks.

    For each document, keeps the highest scoring chunk and includes a
    preview of its content. Returns sources sorted by score (descending).

    Args:
        results: Scored chunks, as returned by the search engine

    Returns:
        List of sources with document_id, document_name, chunk_id, score and preview

    Example:
        Two chunks of guide.md scored 0.8 and 0.6 and one chunk of faq.md scored
        0.7 give two sources: guide.md (0.8) then faq.md (0.7).
    """
    best: Dict[int, ScoredChunk] = {}

    for result in results:
        doc_id = result.chunk.document_id
        # Keep highest score for each document
        if doc_id not in best or result.score > best[doc_id].score:
            best[doc_id] = result

    sources = []
    for result in sorted(best.values(), key=lambda r: r.score, reverse=True):
        sources.append({
            "document_id": result.chunk.document_id,
            "document_name": result.chunk.document_name,
            "chunk_id": result.chunk.id,
            "score": round(result.score, 3),
            "preview": make_preview(result.chunk.chunk_text),
        })

    return sources
