import numpy as np
import pytest

from rag_engine.db.migrations import run_sql_migrations
from rag_engine.errors import DuplicateDocumentError
from rag_engine.vector_store import blob_to_embedding, embedding_to_blob


def create(store, file_hash="h1", name="guide.md", total_chunks=2, display_name=None):
    return store.create_document(
        file_name=name,
        file_path=f"/tmp/{name}",
        file_hash=file_hash,
        file_size_bytes=123,
        total_chunks=total_chunks,
        embedding_model="nomic-embed-text",
        display_name=display_name,
    )


def test_blob_is_big_endian_float32():
    blob = embedding_to_blob([1.0, -2.5])
    assert blob == b"\x3f\x80\x00\x00\xc0\x20\x00\x00"
    assert blob_to_embedding(blob).tolist() == [1.0, -2.5]


def test_migrations_are_idempotent(db_engine):
    assert run_sql_migrations(db_engine) == 1


def test_create_and_find_document(store):
    doc_id = create(store, display_name="User Guide")

    doc = store.find_by_hash("h1")
    assert doc.id == doc_id
    assert doc.display_name == "User Guide"
    assert doc.total_chunks == 2
    assert store.get_document(doc_id).file_name == "guide.md"
    assert store.find_by_hash("missing") is None


def test_display_name_defaults_to_file_name(store):
    doc_id = create(store)
    assert store.get_document(doc_id).display_name == "guide.md"


def test_duplicate_hash_raises(store):
    create(store, file_hash="same")
    with pytest.raises(DuplicateDocumentError) as exc:
        create(store, file_hash="same", name="copy.md")
    assert exc.value.file_hash == "same"


def test_save_and_load_chunks(store):
    doc_id = create(store)
    store.save_chunk(doc_id, 0, "first", [0.1, 0.2, 0.3], 5)
    store.save_chunk(doc_id, 1, "second", [0.4, 0.5, 0.6], 7)

    chunks = store.get_chunks_by_document(doc_id)
    assert [c.chunk_text for c in chunks] == ["first", "second"]
    assert chunks[1].token_count == 7
    assert chunks[0].document_name == "guide.md"
    np.testing.assert_allclose(chunks[1].embedding, [0.4, 0.5, 0.6], rtol=1e-6)
    assert store.count_chunks(doc_id) == 2


def test_delete_cascades_to_chunks(store):
    doc_id = create(store)
    store.save_chunk(doc_id, 0, "first", [0.1, 0.2], 5)

    assert store.delete_document(doc_id) is True
    assert store.get_document(doc_id) is None
    assert store.count_chunks(doc_id) == 0
    assert store.delete_document(doc_id) is False


def test_load_all_chunks_orders_newest_document_first(store):
    old_id = create(store, file_hash="old", name="old.md")
    new_id = create(store, file_hash="new", name="new.md")
    store.save_chunk(old_id, 0, "old-0", [1.0], 1)
    store.save_chunk(new_id, 1, "new-1", [1.0], 1)
    store.save_chunk(new_id, 0, "new-0", [1.0], 1)

    chunks = store.load_all_chunks()
    assert [c.chunk_text for c in chunks] == ["new-0", "new-1", "old-0"]
    assert [d.id for d in store.get_all_documents()] == [new_id, old_id]
