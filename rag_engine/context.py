"""
Token-budgeted context assembly with citation tags.
"""
from dataclasses import dataclass, field
from typing import List, Sequence

from .config import MAX_CONTEXT_TOKENS
from .logging_config import logger
from .models import DocumentChunk, ScoredChunk


@dataclass
class ContextBlock:
    text: str = ""
    cited_chunk_ids: List[int] = field(default_factory=list)
    total_tokens: int = 0


def citation_tag(chunk: DocumentChunk) -> str:
    """Stable reference token a consumer can quote back, e.g. ``[doc_12 | guide.md]``."""
    if chunk.document_name:
        return f"[doc_{chunk.id} | {chunk.document_name}]"
    return f"[doc_{chunk.id}]"


def assemble_context(ranked: Sequence[ScoredChunk], token_budget: int = MAX_CONTEXT_TOKENS) -> ContextBlock:
    """
    Pack ranked chunks into the token budget, in rank order.

    Stops at the first chunk that would overflow the budget: later, smaller
    chunks are not used to fill the gap and no chunk is cut to fit.
    """
    selected: List[DocumentChunk] = []
    total_tokens = 0

    for scored in ranked:
        chunk = scored.chunk
        if total_tokens + chunk.token_count > token_budget:
            logger.debug("Reached token limit", selected=len(selected), budget=token_budget)
            break
        selected.append(chunk)
        total_tokens += chunk.token_count

    text = "\n\n".join(f"{citation_tag(c)}\n{c.chunk_text}" for c in selected)
    logger.info("Built context", chunks=len(selected), total_tokens=total_tokens)

    return ContextBlock(
        text=text,
        cited_chunk_ids=[c.id for c in selected],
        total_tokens=total_tokens,
    )
