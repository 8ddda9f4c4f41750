# vectorkit/batch.py
# SPDX-License-Identifier: Apache-2.0
"""
Concurrent batch operations.

Items are split into ordered chunks and each chunk runs through the
client (and so through the full middleware pipeline) on a fixed-size
worker pool. A failing chunk is recorded against its index and never
stops the batch; the caller receives a `BatchResult` summary.

`on_progress` is called on the calling thread after every chunk, in
completion order, with cumulative counts.

Usage
-----
    result = client.batch.upsert_async("docs", vectors, chunk_size=100, concurrency=4,
                                       on_progress=lambda p: print(p.percentage))
    if not result.success:
        for err in result.errors:
            print(err.chunk_index, err.error)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, TypeVar

from vectorkit.errors import ValidationError

if TYPE_CHECKING:
    from vectorkit.client import Client

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ChunkError:
    chunk_index: int
    error: BaseException
    size: int = 0

    def asdict(self) -> Dict[str, Any]:
        return {
            "chunk_index": self.chunk_index,
            "size": self.size,
            "error": type(self.error).__name__,
            "message": str(self.error),
        }


@dataclass(frozen=True)
class BatchProgress:
    """Cumulative progress after a chunk completes."""
    processed: int
    total: int
    succeeded_count: int
    failed_count: int
    current_chunk: int
    completed_chunks: int
    total_chunks: int

    @property
    def percentage(self) -> float:
        return round(self.processed * 100.0 / self.total, 2) if self.total else 100.0


@dataclass
class BatchResult:
    """
    Summary of a batch run.

    Attributes:
        operation: "upsert", "delete" or "fetch"
        total: Number of input items
        chunks: Number of chunks dispatched
        succeeded_count: Items in chunks that succeeded
        failed_count: Items in chunks that failed
        errors: Per-chunk failures, ordered by chunk index
        results: Per-chunk results by chunk index (None for failed chunks)
        vectors: Merged fetch results (fetch only)
    """
    operation: str
    total: int = 0
    chunks: int = 0
    succeeded_count: int = 0
    failed_count: int = 0
    errors: List[ChunkError] = field(default_factory=list)
    results: List[Any] = field(default_factory=list)
    vectors: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.failed_count == 0

    @property
    def partial_success(self) -> bool:
        return self.succeeded_count > 0 and self.failed_count > 0

    def asdict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "total": self.total,
            "chunks": self.chunks,
            "succeeded_count": self.succeeded_count,
            "failed_count": self.failed_count,
            "errors": [e.asdict() for e in self.errors],
        }


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchProcessor:
    def __init__(self, client: "Client", *, chunk_size: int = 100, concurrency: int = 4) -> None:
        self.client = client
        self.chunk_size = chunk_size
        self.concurrency = concurrency

    def upsert_async(
        self,
        index: str,
        vectors: Sequence[Any],
        *,
        namespace: Optional[str] = None,
        chunk_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        on_progress: Optional[Callable[[BatchProgress], Any]] = None,
    ) -> BatchResult:
        """Upsert `vectors` in concurrent chunks."""
        return self._run(
            "upsert",
            list(vectors),
            lambda chunk: self.client.upsert(index, chunk, namespace=namespace),
            chunk_size=chunk_size,
            concurrency=concurrency,
            on_progress=on_progress,
        )

    def delete_async(
        self,
        index: str,
        ids: Sequence[str],
        *,
        namespace: Optional[str] = None,
        chunk_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        on_progress: Optional[Callable[[BatchProgress], Any]] = None,
    ) -> BatchResult:
        """Delete `ids` in concurrent chunks."""
        return self._run(
            "delete",
            list(ids),
            lambda chunk: self.client.delete(index, ids=chunk, namespace=namespace),
            chunk_size=chunk_size,
            concurrency=concurrency,
            on_progress=on_progress,
        )

    def fetch_async(
        self,
        index: str,
        ids: Sequence[str],
        *,
        namespace: Optional[str] = None,
        chunk_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        on_progress: Optional[Callable[[BatchProgress], Any]] = None,
    ) -> BatchResult:
        """Fetch `ids` in concurrent chunks; found vectors are merged into `result.vectors`."""
        result = self._run(
            "fetch",
            list(ids),
            lambda chunk: self.client.fetch(index, chunk, namespace=namespace),
            chunk_size=chunk_size,
            concurrency=concurrency,
            on_progress=on_progress,
        )
        for chunk_result in result.results:
            if chunk_result:
                result.vectors.update(chunk_result)
        return result

    def _run(
        self,
        operation: str,
        items: List[Any],
        work: Callable[[List[Any]], Any],
        *,
        chunk_size: Optional[int],
        concurrency: Optional[int],
        on_progress: Optional[Callable[[BatchProgress], Any]],
    ) -> BatchResult:
        chunk_size = self.chunk_size if chunk_size is None else chunk_size
        concurrency = self.concurrency if concurrency is None else concurrency
        if not isinstance(chunk_size, int) or chunk_size < 1:
            raise ValidationError("chunk_size must be a positive integer")
        if not isinstance(concurrency, int) or concurrency < 1:
            raise ValidationError("concurrency must be a positive integer")

        chunks = chunked(items, chunk_size)
        result = BatchResult(
            operation=operation,
            total=len(items),
            chunks=len(chunks),
            results=[None] * len(chunks),
        )
        if not chunks:
            return result

        errors: Dict[int, ChunkError] = {}
        completed = 0
        with ThreadPoolExecutor(
            max_workers=min(concurrency, len(chunks)),
            thread_name_prefix=f"vectorkit-{operation}",
        ) as pool:
            futures = {pool.submit(work, chunk): i for i, chunk in enumerate(chunks)}
            for future in as_completed(futures):
                i = futures[future]
                size = len(chunks[i])
                try:
                    result.results[i] = future.result()
                except Exception as exc:  # noqa: BLE001
                    logger.warning(
                        "batch %s chunk %d/%d failed: %s",
                        operation,
                        i,
                        len(chunks),
                        exc,
                    )
                    errors[i] = ChunkError(chunk_index=i, error=exc, size=size)
                    result.failed_count += size
                else:
                    result.succeeded_count += size
                completed += 1

                if on_progress is not None:
                    progress = BatchProgress(
                        processed=result.succeeded_count + result.failed_count,
                        total=result.total,
                        succeeded_count=result.succeeded_count,
                        failed_count=result.failed_count,
                        current_chunk=i,
                        completed_chunks=completed,
                        total_chunks=len(chunks),
                    )
                    try:
                        on_progress(progress)
                    except Exception as exc:  # noqa: BLE001
                        logger.warning("batch %s progress callback failed: %s", operation, exc)

        result.errors = [errors[i] for i in sorted(errors)]
        logger.debug(
            "batch %s finished: %d succeeded, %d failed in %d chunks",
            operation,
            result.succeeded_count,
            result.failed_count,
            result.chunks,
        )
        return result


__all__ = ["BatchProcessor", "BatchResult", "BatchProgress", "ChunkError", "chunked"]
