from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class ChunkMetadata:
    heading_path: Tuple[str, ...] = ()
    level: int = 0  # 0 = body text, 1-6 = heading depth
    start_line: Optional[int] = None  # 1-based


@dataclass(frozen=True)
class TextChunk:
    """Chunker output: text plus its token estimate, before embedding."""
    text: str
    token_count: int
    metadata: ChunkMetadata = field(default_factory=ChunkMetadata)


@dataclass
class DocumentInfo:
    id: int
    file_name: str
    file_path: str
    display_name: str
    file_hash: str
    file_size_bytes: int
    total_chunks: int
    embedding_model: str
    created_at: int  # epoch millis
    updated_at: int


@dataclass
class DocumentChunk:
    id: int
    document_id: int
    chunk_index: int
    chunk_text: str
    embedding: np.ndarray = field(repr=False, compare=False)
    token_count: int
    created_at: int
    document_name: str = ""  # owning document's display name, used for citations


@dataclass
class ScoredChunk:
    chunk: DocumentChunk
    score: float
