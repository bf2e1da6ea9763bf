"""
Pydantic schemas for request/response validation.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from .config import DEFAULT_TOP_K, MAX_TOP_K
from .progress import IngestionStatus
from .retrieval import ContentClass


class UploadResponse(BaseModel):
    ok: bool = True
    request_id: str


class ProgressResponse(BaseModel):
    """Progress of a background ingestion request."""
    request_id: str
    current: int
    total: int
    percentage: int
    status: IngestionStatus
    error: Optional[str] = None
    document_id: Optional[int] = None


class DocumentResponse(BaseModel):
    id: int
    file_name: str
    display_name: str
    file_hash: str
    file_size_bytes: int
    total_chunks: int
    stored_chunks: int
    embedding_model: str
    created_at: int
    updated_at: int


class SearchBody(BaseModel):
    """Request body for searching the knowledge base."""
    query: str = Field(..., min_length=1, description="The search query")
    top_k: int = Field(DEFAULT_TOP_K, ge=1, le=MAX_TOP_K, description="Number of chunks to retrieve")
    content_class: Optional[ContentClass] = Field(None, description="'code' or 'text'; selects the similarity threshold")
    use_reranking: Optional[bool] = Field(None, description="Override the USE_RERANKING setting")
    token_budget: Optional[int] = Field(None, ge=1, description="Context token budget")


class SearchResult(BaseModel):
    chunk_id: int
    document_id: int
    document_name: str
    chunk_index: int
    score: float
    token_count: int
    text: str


class Source(BaseModel):
    """A source document cited by the search results."""
    document_id: int
    document_name: str
    chunk_id: int
    score: float
    preview: str


class SearchResponse(BaseModel):
    results: List[SearchResult]
    context: str
    cited_chunk_ids: List[int]
    context_tokens: int
    sources: List[Source]
