"""
SQL-backed storage for documents and their embedded chunks.

Pure data access: no ranking happens here. Retrieval bulk-loads every chunk
and scores it in memory, so there is no similarity index to maintain.
"""
import json
import time
from typing import List, Optional, Sequence

import numpy as np
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from .errors import DuplicateDocumentError
from .logging_config import logger
from .models import DocumentChunk, DocumentInfo

# big-endian float32, 4 bytes per dimension
_BLOB_DTYPE = np.dtype(">f4")

_DOCUMENT_COLUMNS = """
    id, file_name, file_path, display_name, file_hash, file_size_bytes,
    total_chunks, embedding_model, created_at, updated_at
"""


def _now_millis() -> int:
    return int(time.time() * 1000)


def embedding_to_blob(embedding: Sequence[float]) -> bytes:
    return np.asarray(embedding, dtype=_BLOB_DTYPE).tobytes()


def blob_to_embedding(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=_BLOB_DTYPE).astype(np.float32)


def _row_to_document(row) -> DocumentInfo:
    return DocumentInfo(
        id=row["id"],
        file_name=row["file_name"],
        file_path=row["file_path"],
        display_name=row["display_name"] or row["file_name"],
        file_hash=row["file_hash"],
        file_size_bytes=row["file_size_bytes"],
        total_chunks=row["total_chunks"],
        embedding_model=row["embedding_model"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_chunk(row) -> DocumentChunk:
    return DocumentChunk(
        id=row["id"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        chunk_text=row["chunk_text"],
        embedding=blob_to_embedding(row["embedding_blob"]),
        token_count=row["token_count"],
        created_at=row["created_at"],
        document_name=row.get("document_name") or "",
    )


class VectorStore:
    """Documents and chunks stored through a SQLAlchemy engine."""

    def __init__(self, engine: Engine):
        self.engine = engine

    # ==================== Documents ====================

    def find_by_hash(self, file_hash: str) -> Optional[DocumentInfo]:
        with self.engine.begin() as conn:
            row = conn.execute(
                sa_text(f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE file_hash = :h"),
                {"h": file_hash},
            ).mappings().first()
        return _row_to_document(row) if row else None

    def get_document(self, document_id: int) -> Optional[DocumentInfo]:
        with self.engine.begin() as conn:
            row = conn.execute(
                sa_text(f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = :id"),
                {"id": document_id},
            ).mappings().first()
        return _row_to_document(row) if row else None

    def create_document(
        self,
        file_name: str,
        file_path: str,
        file_hash: str,
        file_size_bytes: int,
        total_chunks: int,
        embedding_model: str,
        display_name: Optional[str] = None,
    ) -> int:
        """
        Insert a document row and return its id.

        Raises:
            DuplicateDocumentError: If a document with the same hash already exists
        """
        now = _now_millis()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    sa_text("""
                        INSERT INTO documents(file_name, file_path, display_name, file_hash,
                                              file_size_bytes, total_chunks, embedding_model,
                                              created_at, updated_at)
                        VALUES(:fn, :fp, :dn, :fh, :sz, :tc, :em, :now, :now)
                    """),
                    {
                        "fn": file_name,
                        "fp": file_path,
                        "dn": display_name or file_name,
                        "fh": file_hash,
                        "sz": file_size_bytes,
                        "tc": total_chunks,
                        "em": embedding_model,
                        "now": now,
                    },
                )
                document_id = result.lastrowid
        except IntegrityError as e:
            raise DuplicateDocumentError(file_hash) from e

        logger.info("Created document", document_id=document_id, file_name=file_name, chunks=total_chunks)
        return document_id

    def delete_document(self, document_id: int) -> bool:
        """
        Delete a document and all of its chunks.

        Returns:
            True if the document existed
        """
        with self.engine.begin() as conn:
            # ON DELETE CASCADE covers this too; explicit delete keeps engines without FK support correct
            conn.execute(
                sa_text("DELETE FROM document_chunks WHERE document_id = :id"),
                {"id": document_id},
            )
            result = conn.execute(
                sa_text("DELETE FROM documents WHERE id = :id"),
                {"id": document_id},
            )
            deleted = result.rowcount > 0

        if deleted:
            logger.info("Deleted document", document_id=document_id)
        return deleted

    def get_all_documents(self) -> List[DocumentInfo]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                sa_text(f"SELECT {_DOCUMENT_COLUMNS} FROM documents ORDER BY created_at DESC, id DESC")
            ).mappings().all()
        return [_row_to_document(r) for r in rows]

    # ==================== Chunks ====================

    def save_chunk(
        self,
        document_id: int,
        chunk_index: int,
        chunk_text: str,
        embedding: Sequence[float],
        token_count: int,
    ) -> int:
        values = [float(v) for v in embedding]
        with self.engine.begin() as conn:
            result = conn.execute(
                sa_text("""
                    INSERT INTO document_chunks(document_id, chunk_index, chunk_text, embedding_json,
                                                embedding_blob, token_count, created_at)
                    VALUES(:doc, :idx, :content, :emb_json, :emb_blob, :tokens, :now)
                """),
                {
                    "doc": document_id,
                    "idx": chunk_index,
                    "content": chunk_text,
                    "emb_json": json.dumps(values),
                    "emb_blob": embedding_to_blob(values),
                    "tokens": token_count,
                    "now": _now_millis(),
                },
            )
            chunk_id = result.lastrowid

        logger.debug("Saved chunk", document_id=document_id, chunk_index=chunk_index, tokens=token_count)
        return chunk_id

    def get_chunks_by_document(self, document_id: int) -> List[DocumentChunk]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                sa_text("""
                    SELECT c.id, c.document_id, c.chunk_index, c.chunk_text, c.embedding_blob,
                           c.token_count, c.created_at,
                           COALESCE(d.display_name, d.file_name) AS document_name
                    FROM document_chunks c
                    JOIN documents d ON d.id = c.document_id
                    WHERE c.document_id = :id
                    ORDER BY c.chunk_index ASC
                """),
                {"id": document_id},
            ).mappings().all()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks(self, document_id: int) -> int:
        with self.engine.begin() as conn:
            return conn.execute(
                sa_text("SELECT COUNT(*) FROM document_chunks WHERE document_id = :id"),
                {"id": document_id},
            ).scalar_one()

    def load_all_chunks(self) -> List[DocumentChunk]:
        """
        Load every stored chunk in one query.

        Ordered newest document first, then by position in the document, so
        ranking ties resolve the same way on every call.
        """
        with self.engine.begin() as conn:
            rows = conn.execute(
                sa_text("""
                    SELECT c.id, c.document_id, c.chunk_index, c.chunk_text, c.embedding_blob,
                           c.token_count, c.created_at,
                           COALESCE(d.display_name, d.file_name) AS document_name
                    FROM document_chunks c
                    JOIN documents d ON d.id = c.document_id
                    ORDER BY d.created_at DESC, d.id DESC, c.chunk_index ASC
                """)
            ).mappings().all()
        return [_row_to_chunk(r) for r in rows]
