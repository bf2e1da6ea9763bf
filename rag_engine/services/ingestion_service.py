"""
Document ingestion service.
Validates a file, chunks it, embeds every chunk and stores the result,
reporting progress as it goes.
"""
import hashlib
import os
from time import perf_counter
from typing import Callable, Optional

from ..chunking import Chunker, strategy_for_extension
from ..config import EMBED_MODEL, MAX_FILE_SIZE_BYTES
from ..errors import (
    DuplicateDocumentError,
    EmptyFileError,
    FileTooLargeError,
    SourceFileNotFoundError,
    UnreadableFileError,
)
from ..logging_config import logger
from ..progress import ProgressTracker
from ..text_extraction import extract_text
from ..vector_store import VectorStore

ProgressCallback = Callable[[int, int], None]


def _file_extension(path: str) -> str:
    return os.path.splitext(path)[1].lower().lstrip(".")


def compute_file_hash(data: bytes) -> str:
    """SHA-256 hex digest of the raw file bytes."""
    return hashlib.sha256(data).hexdigest()


class IngestionPipeline:
    """
    Turns a file on disk into a stored document with embedded chunks.

    Args:
        store: Vector store that receives the document and its chunks
        embedder: Embedding provider (anything with ``async embed(model, text)``)
        chunker: Chunker used to split the extracted text
        embedding_model: Model name passed to the provider and recorded on the document
        max_file_size_bytes: Files above this size are rejected
    """

    def __init__(
        self,
        store: VectorStore,
        embedder,
        chunker: Optional[Chunker] = None,
        embedding_model: str = EMBED_MODEL,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
    ):
        self.store = store
        self.embedder = embedder
        self.chunker = chunker or Chunker()
        self.embedding_model = embedding_model
        self.max_file_size_bytes = max_file_size_bytes

    def validate_file(self, path: str) -> int:
        """
        Check a file can be ingested and return its size in bytes.

        Raises:
            SourceFileNotFoundError, UnreadableFileError, EmptyFileError,
            FileTooLargeError, UnsupportedFileTypeError
        """
        if not os.path.isfile(path):
            raise SourceFileNotFoundError(f"File not found: {path}", {"path": path})
        if not os.access(path, os.R_OK):
            raise UnreadableFileError(f"File is not readable: {path}", {"path": path})

        size = os.path.getsize(path)
        if size == 0:
            raise EmptyFileError(f"File is empty: {path}", {"path": path})
        if size > self.max_file_size_bytes:
            raise FileTooLargeError(
                f"File is too large: {size} bytes (max {self.max_file_size_bytes // (1024 * 1024)} MB)",
                {"path": path, "size_bytes": size, "max_bytes": self.max_file_size_bytes},
            )

        strategy_for_extension(_file_extension(path))
        return size

    async def ingest(
        self,
        path: str,
        display_name: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Ingest one file and return the stored document id.

        Re-ingesting identical content replaces the earlier document. If any
        chunk fails to embed or store, the partially written document is
        deleted before the error is re-raised.
        """
        t = perf_counter()
        file_size = self.validate_file(path)
        file_name = os.path.basename(path)
        extension = _file_extension(path)

        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise UnreadableFileError(f"Failed to read {file_name}: {e}", {"path": path}) from e

        text = extract_text(data, extension, display_name or file_name)
        if not text.strip():
            raise EmptyFileError(f"No extractable text in {display_name or file_name}", {"path": path})

        file_hash = compute_file_hash(data)
        existing = self.store.find_by_hash(file_hash)
        if existing is not None:
            logger.info("Replacing document with identical content", document_id=existing.id, file_hash=file_hash)
            self.store.delete_document(existing.id)

        chunks = self.chunker.split(text, extension)
        if not chunks:
            raise EmptyFileError(f"No chunks produced from {display_name or file_name}", {"path": path})
        total = len(chunks)
        logger.info("Created chunks", file_name=file_name, chunk_count=total)

        document_id = self._create_document(file_name, path, file_hash, file_size, total, display_name)

        try:
            for index, chunk in enumerate(chunks):
                embedding = await self.embedder.embed(self.embedding_model, chunk.text)
                self.store.save_chunk(document_id, index, chunk.text, embedding, chunk.token_count)
                if on_progress is not None:
                    on_progress(index + 1, total)
        except Exception as e:
            logger.error("Ingestion failed, rolling back document", document_id=document_id, error=str(e))
            try:
                self.store.delete_document(document_id)
            except Exception as rollback_error:
                logger.error("Rollback failed", document_id=document_id, error=str(rollback_error))
            raise

        logger.info(
            "Document ingested",
            document_id=document_id,
            file_name=file_name,
            chunks=total,
            time_ms=round((perf_counter() - t) * 1000, 2),
        )
        return document_id

    def _create_document(self, file_name, path, file_hash, file_size, total, display_name) -> int:
        kwargs = dict(
            file_name=file_name,
            file_path=path,
            file_hash=file_hash,
            file_size_bytes=file_size,
            total_chunks=total,
            embedding_model=self.embedding_model,
            display_name=display_name,
        )
        try:
            return self.store.create_document(**kwargs)
        except DuplicateDocumentError as e:
            # identical content was stored concurrently; newest upload wins
            conflicting = self.store.find_by_hash(e.file_hash)
            logger.warning(
                "Concurrent ingestion of identical content",
                file_hash=e.file_hash,
                conflicting_id=conflicting.id if conflicting else None,
            )
            if conflicting is not None:
                self.store.delete_document(conflicting.id)
            return self.store.create_document(**kwargs)


async def run_ingestion(
    pipeline: IngestionPipeline,
    tracker: ProgressTracker,
    request_id: str,
    path: str,
    display_name: Optional[str] = None,
) -> None:
    """
    Background unit of work for one upload.

    Outcome goes to the progress tracker; the uploaded file is removed
    whether ingestion succeeds or not.
    """
    try:
        document_id = await pipeline.ingest(
            path,
            display_name=display_name,
            on_progress=lambda current, total: tracker.update(request_id, current, total),
        )
        tracker.complete(request_id, document_id)
    except Exception as e:
        logger.error("Background ingestion failed", request_id=request_id, exc_info=e)
        tracker.fail(request_id, str(e))
    finally:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove uploaded file", path=path, error=str(e))
