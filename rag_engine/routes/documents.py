"""
Document management API routes.
Handles document upload, ingestion progress, listing, and deletion.
"""
import os
import shutil
import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile

from ..chunking import strategy_for_extension
from ..config import MAX_FILE_SIZE_BYTES, UPLOAD_DIR
from ..dependencies import get_ingestion_pipeline, get_progress_tracker, get_vector_store
from ..errors import UnsupportedFileTypeError
from ..logging_config import logger
from ..progress import ProgressTracker
from ..schemas import DocumentResponse, ProgressResponse, UploadResponse
from ..services.ingestion_service import IngestionPipeline, run_ingestion
from ..vector_store import VectorStore

router = APIRouter(prefix="/api", tags=["documents"])


# ==================== Document Upload ====================

@router.post("/documents/upload", response_model=UploadResponse)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    display_name: Optional[str] = Form(None),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
    tracker: ProgressTracker = Depends(get_progress_tracker),
):
    """
    Upload one document for background ingestion.

    Supported formats: TXT, MD, PDF, DOCX

    Process:
    1. Reject unsupported, empty or oversized files up front
    2. Save the upload to the upload directory
    3. Start ingestion in the background (chunk, embed, store)

    Returns:
        The request id to poll at /api/documents/progress/{request_id}
    """
    filename = os.path.basename(file.filename or "")
    extension = os.path.splitext(filename)[1].lower().lstrip(".")
    try:
        strategy_for_extension(extension)
    except UnsupportedFileTypeError as e:
        logger.warning("Rejected upload", filename=filename, reason=e.message)
        raise HTTPException(status_code=400, detail=e.message)

    # Check file size before reading
    file.file.seek(0, os.SEEK_END)
    size_bytes = file.file.tell()
    file.file.seek(0)

    if size_bytes == 0:
        raise HTTPException(status_code=400, detail=f"File '{filename}' is empty.")
    if size_bytes > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=400,
            detail=(
                f"File '{filename}' is too large. "
                f"Max size is {MAX_FILE_SIZE_BYTES // (1024 * 1024)} MB."
            ),
        )

    request_id = str(uuid.uuid4())
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    path = os.path.join(UPLOAD_DIR, f"{request_id}.{extension}")
    with open(path, "wb") as out:
        shutil.copyfileobj(file.file, out)

    tracker.start(request_id)
    background_tasks.add_task(run_ingestion, pipeline, tracker, request_id, path, display_name or filename)

    logger.info("Upload accepted", request_id=request_id, filename=filename, size_bytes=size_bytes)
    return UploadResponse(ok=True, request_id=request_id)


@router.get("/documents/progress/{request_id}", response_model=ProgressResponse)
async def get_progress(request_id: str, tracker: ProgressTracker = Depends(get_progress_tracker)):
    progress = tracker.get(request_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="Unknown or expired request id")

    return ProgressResponse(
        request_id=progress.request_id,
        current=progress.current,
        total=progress.total,
        percentage=progress.percentage,
        status=progress.status,
        error=progress.error,
        document_id=progress.document_id,
    )


# ==================== Document Listing ====================

@router.get("/documents", response_model=List[DocumentResponse])
async def list_documents(store: VectorStore = Depends(get_vector_store)):
    """
    Returns all documents with their stored chunk counts, newest first.
    """
    documents = [
        DocumentResponse(
            id=d.id,
            file_name=d.file_name,
            display_name=d.display_name,
            file_hash=d.file_hash,
            file_size_bytes=d.file_size_bytes,
            total_chunks=d.total_chunks,
            stored_chunks=store.count_chunks(d.id),
            embedding_model=d.embedding_model,
            created_at=d.created_at,
            updated_at=d.updated_at,
        )
        for d in store.get_all_documents()
    ]
    logger.info("Listed documents", count=len(documents))
    return documents


# ==================== Document Deletion ====================

@router.delete("/documents/{document_id}")
async def delete_document(document_id: int, store: VectorStore = Depends(get_vector_store)):
    """
    Deletes a document and all its chunks.

    Returns:
        Success confirmation with deleted document ID
    """
    if not store.delete_document(document_id):
        logger.warning("Document not found for deletion", document_id=document_id)
        raise HTTPException(status_code=404, detail="Document not found")

    return {"ok": True, "deleted": document_id}
