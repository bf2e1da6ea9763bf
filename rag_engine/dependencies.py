"""
FastAPI dependency providers.
Each component is built once and shared; tests swap them through
``app.dependency_overrides``.
"""
from functools import lru_cache

from .chunking import Chunker
from .config import EMBED_MODEL
from .db import engine
from .embedding import get_embedding_provider
from .progress import ProgressTracker
from .reranker import HuggingFaceReranker
from .retrieval import VectorSearchService
from .services.ingestion_service import IngestionPipeline
from .services.search_service import SearchService
from .vector_store import VectorStore


@lru_cache()
def get_vector_store() -> VectorStore:
    return VectorStore(engine)


@lru_cache()
def get_progress_tracker() -> ProgressTracker:
    return ProgressTracker()


@lru_cache()
def get_embedder():
    return get_embedding_provider()


@lru_cache()
def get_ingestion_pipeline() -> IngestionPipeline:
    return IngestionPipeline(
        store=get_vector_store(),
        embedder=get_embedder(),
        chunker=Chunker(),
        embedding_model=EMBED_MODEL,
    )


@lru_cache()
def get_search_service() -> SearchService:
    search_engine = VectorSearchService(get_vector_store(), reranker=HuggingFaceReranker())
    return SearchService(get_embedder(), search_engine, embedding_model=EMBED_MODEL)
