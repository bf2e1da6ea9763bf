"""
In-memory progress records for background ingestion requests.

Records for finished requests (completed or failed) are kept for a short
TTL so a polling client can observe the final state, then evicted.
"""
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Optional

from .config import PROGRESS_TTL_SECONDS
from .logging_config import logger


class IngestionStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class IngestionProgress:
    request_id: str
    current: int = 0
    total: int = 0
    status: IngestionStatus = IngestionStatus.PROCESSING
    error: Optional[str] = None
    document_id: Optional[int] = None
    finished_at: Optional[float] = None

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 0
        return int(self.current / self.total * 100)


class ProgressTracker:
    """Thread-safe progress map with TTL eviction of finished entries."""

    def __init__(
        self,
        ttl_seconds: float = PROGRESS_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, IngestionProgress] = {}
        self._lock = threading.Lock()

    def start(self, request_id: str) -> IngestionProgress:
        entry = IngestionProgress(request_id=request_id)
        with self._lock:
            self._evict_expired()
            self._entries[request_id] = entry
        return entry

    def update(self, request_id: str, current: int, total: int) -> None:
        with self._lock:
            entry = self._entries.get(request_id)
            if entry is None or entry.status is not IngestionStatus.PROCESSING:
                return
            self._entries[request_id] = replace(entry, current=current, total=total)

    def complete(self, request_id: str, document_id: int) -> None:
        with self._lock:
            entry = self._entries.get(request_id) or IngestionProgress(request_id=request_id)
            self._entries[request_id] = replace(
                entry,
                current=entry.total,
                status=IngestionStatus.COMPLETED,
                document_id=document_id,
                finished_at=self._clock(),
            )

    def fail(self, request_id: str, error: str) -> None:
        with self._lock:
            entry = self._entries.get(request_id) or IngestionProgress(request_id=request_id)
            self._entries[request_id] = replace(
                entry,
                status=IngestionStatus.FAILED,
                error=error,
                finished_at=self._clock(),
            )

    def get(self, request_id: str) -> Optional[IngestionProgress]:
        with self._lock:
            self._evict_expired()
            return self._entries.get(request_id)

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [
            rid for rid, entry in self._entries.items()
            if entry.finished_at is not None and now - entry.finished_at >= self.ttl_seconds
        ]
        for rid in expired:
            del self._entries[rid]
        if expired:
            logger.debug("Evicted finished progress records", count=len(expired))
