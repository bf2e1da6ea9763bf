"""
Error types raised by the ingestion and retrieval engine.

Validation and embedding errors are fatal to a single ingestion only.
Dimension mismatches and reranker failures are caught where they happen
and degrade the result instead of propagating.
"""
from typing import Any, Dict, Iterable, Optional


class RagEngineError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class UnsupportedFileTypeError(RagEngineError):
    def __init__(self, extension: str, supported: Iterable[str]):
        supported = sorted(supported)
        listed = ", ".join(f".{ext}" for ext in supported)
        super().__init__(
            f"File type .{extension} is not supported. Supported types: {listed}",
            {"extension": extension, "supported": supported},
        )


# ==================== File validation ====================

class FileValidationError(RagEngineError):
    """A file was rejected before any chunking or storage happened."""


class SourceFileNotFoundError(FileValidationError):
    pass


class UnreadableFileError(FileValidationError):
    pass


class EmptyFileError(FileValidationError):
    pass


class FileTooLargeError(FileValidationError):
    pass


# ==================== Embedding provider ====================

class EmbeddingProviderError(RagEngineError):
    """The embedding provider could not produce a vector."""


class ProviderUnreachableError(EmbeddingProviderError):
    pass


class ModelNotLoadedError(EmbeddingProviderError):
    pass


class InputTooLongError(EmbeddingProviderError):
    pass


# ==================== Ranking / storage ====================

class VectorDimensionMismatchError(RagEngineError):
    def __init__(self, left: int, right: int):
        super().__init__(
            f"Vector dimension mismatch: {left} != {right}",
            {"left": left, "right": right},
        )


class RerankProviderError(RagEngineError):
    pass


class DuplicateDocumentError(RagEngineError):
    """Another document with the same content hash was stored concurrently."""

    def __init__(self, file_hash: str):
        super().__init__(f"Document with hash {file_hash} already exists", {"file_hash": file_hash})
        self.file_hash = file_hash
