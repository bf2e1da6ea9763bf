from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from rag_engine.chunking import Chunker
from rag_engine.context import ContextBlock
from rag_engine.dependencies import (
    get_ingestion_pipeline,
    get_progress_tracker,
    get_search_service,
    get_vector_store,
)
from rag_engine.main import app
from rag_engine.models import ScoredChunk
from rag_engine.progress import ProgressTracker
from rag_engine.retrieval import ContentClass
from rag_engine.services.ingestion_service import IngestionPipeline
from rag_engine.services.search_service import RetrievalResult

from conftest import FakeEmbedder

MARKDOWN = b"# Alpha\nalpha text\n\n# Beta\nbeta text\n\n# Gamma\ngamma text\n"


@pytest.fixture
def tracker():
    return ProgressTracker()


@pytest.fixture
def client(store, tracker, tmp_path, monkeypatch):
    monkeypatch.setattr("rag_engine.routes.documents.UPLOAD_DIR", str(tmp_path / "uploads"))
    pipeline = IngestionPipeline(store, FakeEmbedder(), Chunker())

    app.dependency_overrides[get_vector_store] = lambda: store
    app.dependency_overrides[get_progress_tracker] = lambda: tracker
    app.dependency_overrides[get_ingestion_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_upload_ingests_in_background(client, tmp_path):
    response = client.post(
        "/api/documents/upload",
        files={"file": ("notes.md", MARKDOWN, "text/markdown")},
        data={"display_name": "Team Notes"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True

    progress = client.get(f"/api/documents/progress/{body['request_id']}")
    assert progress.status_code == 200
    assert progress.json()["status"] == "completed"
    assert progress.json()["percentage"] == 100

    documents = client.get("/api/documents").json()
    assert len(documents) == 1
    assert documents[0]["display_name"] == "Team Notes"
    assert documents[0]["stored_chunks"] == 3
    assert documents[0]["id"] == progress.json()["document_id"]
    # the uploaded copy is removed once ingested
    assert list((tmp_path / "uploads").iterdir()) == []


def test_upload_rejects_unsupported_type(client):
    response = client.post("/api/documents/upload", files={"file": ("tool.exe", b"MZ", "application/octet-stream")})

    assert response.status_code == 400
    assert "File type .exe is not supported" in response.json()["detail"]


def test_upload_rejects_empty_file(client):
    response = client.post("/api/documents/upload", files={"file": ("empty.txt", b"", "text/plain")})

    assert response.status_code == 400


def test_upload_rejects_oversized_file(client, monkeypatch):
    monkeypatch.setattr("rag_engine.routes.documents.MAX_FILE_SIZE_BYTES", 8)

    response = client.post("/api/documents/upload", files={"file": ("big.txt", b"0123456789", "text/plain")})

    assert response.status_code == 400
    assert "too large" in response.json()["detail"]


def test_unknown_progress_is_404(client):
    assert client.get("/api/documents/progress/does-not-exist").status_code == 404


def test_delete_document(client, store):
    doc_id = store.create_document("a.md", "/tmp/a.md", "hash-a", 10, 1, "m")

    response = client.delete(f"/api/documents/{doc_id}")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "deleted": doc_id}

    assert client.delete(f"/api/documents/{doc_id}").status_code == 404


def test_search_endpoint(client, make_chunk):
    chunk = make_chunk(5, [1.0], text="install with pip", document_id=2, document_name="guide.md", token_count=4)
    scored = [ScoredChunk(chunk, 0.87654)]
    service = MagicMock()
    service.retrieve_context = AsyncMock(return_value=RetrievalResult(
        results=scored,
        context=ContextBlock(text="[doc_5 | guide.md]\ninstall with pip", cited_chunk_ids=[5], total_tokens=4),
        sources=[{"document_id": 2, "document_name": "guide.md", "chunk_id": 5, "score": 0.877, "preview": "install with pip"}],
    ))
    app.dependency_overrides[get_search_service] = lambda: service

    response = client.post("/api/search", json={"query": "how to install", "top_k": 3, "content_class": "code"})

    assert response.status_code == 200
    body = response.json()
    assert body["results"][0]["chunk_id"] == 5
    assert body["results"][0]["score"] == 0.8765
    assert body["cited_chunk_ids"] == [5]
    assert body["context"].startswith("[doc_5 | guide.md]")
    assert body["sources"][0]["document_name"] == "guide.md"

    kwargs = service.retrieve_context.await_args.kwargs
    assert kwargs["top_k"] == 3
    assert kwargs["content_class"] is ContentClass.CODE


def test_search_validates_body(client):
    assert client.post("/api/search", json={"query": ""}).status_code == 422
    assert client.post("/api/search", json={"query": "q", "top_k": 11}).status_code == 422
