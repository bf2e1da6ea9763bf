"""
Shared test fixtures.

Provides: in-memory SQLite store with the real schema, fake embedding
providers, and a helper to build stored chunks for ranking tests.
"""
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest

from rag_engine.db import create_db_engine
from rag_engine.db.migrations import run_sql_migrations
from rag_engine.errors import ProviderUnreachableError
from rag_engine.models import DocumentChunk
from rag_engine.vector_store import VectorStore


class FakeEmbedder:
    """
    Deterministic embedder.

    Texts listed in ``vectors`` get that vector; anything else gets
    ``default``. ``fail_on_call`` makes the n-th call (1-based) raise.
    """

    def __init__(
        self,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        default: Sequence[float] = (1.0, 0.0, 0.0),
        fail_on_call: Optional[int] = None,
    ):
        self.vectors = vectors or {}
        self.default = list(default)
        self.fail_on_call = fail_on_call
        self.calls: List[str] = []

    async def embed(self, model: str, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise ProviderUnreachableError("Failed to connect to Ollama", {"model": model})
        return list(self.vectors.get(text, self.default))


@pytest.fixture
def db_engine():
    engine = create_db_engine("sqlite:///:memory:")
    run_sql_migrations(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(db_engine):
    return VectorStore(db_engine)


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def make_chunk():
    """Factory for in-memory DocumentChunk objects."""
    def _make(
        chunk_id: int,
        embedding: Sequence[float],
        text: str = "chunk text",
        document_id: int = 1,
        token_count: int = 10,
        document_name: str = "doc.md",
    ) -> DocumentChunk:
        return DocumentChunk(
            id=chunk_id,
            document_id=document_id,
            chunk_index=chunk_id,
            chunk_text=text,
            embedding=np.asarray(embedding, dtype=np.float32),
            token_count=token_count,
            created_at=0,
            document_name=document_name,
        )
    return _make


@pytest.fixture
def write_file(tmp_path):
    """Write a file under tmp_path and return its path as a string."""
    def _write(name: str, content) -> str:
        path = tmp_path / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return str(path)
    return _write
