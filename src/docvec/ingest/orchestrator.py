"""Vectorization queue: one document at a time, FIFO, with a guarded state machine.

    PENDING ──submit──▶ QUEUED ──▶ PROCESSING ──▶ COMPLETED
       ▲                                  │
       └────────reprocess──── FAILED ◀────┘

Every state change goes through ``_transition()``, which rejects illegal
moves and mirrors the new state to the text source so FAILED messages
survive restarts. Queue and processing-set mutations happen either in
synchronous code (no ``await`` between check and set) or while holding the
processing mutex.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from docvec.db.models import ExtractionStatus, TaskState
from docvec.db.repository import TextSource
from docvec.db.vector_store import VectorStore
from docvec.exceptions import ChunkingError, DocumentNotFoundError, InvalidTransitionError
from docvec.ingest.chunker import TextChunker
from docvec.rag.llm_client import EmbeddingClient
from docvec.rag.retry import RetryPolicy

logger = logging.getLogger(__name__)

_ALLOWED: dict[TaskState, frozenset[TaskState]] = {
    TaskState.PENDING: frozenset({TaskState.QUEUED}),
    TaskState.QUEUED: frozenset({TaskState.PROCESSING}),
    TaskState.PROCESSING: frozenset({TaskState.COMPLETED, TaskState.FAILED}),
    TaskState.COMPLETED: frozenset(),
    TaskState.FAILED: frozenset({TaskState.PENDING}),
}


@dataclass
class ProcessingTask:
    document_id: str
    state: TaskState = TaskState.PENDING
    retry_count: int = 0
    message: str | None = None


@dataclass
class Progress:
    """Snapshot of the current batch for UI polling."""

    processed: int
    failed: int
    total: int
    queued: int
    current: str | None = None

    @property
    def done(self) -> bool:
        return self.queued == 0 and self.current is None


class Orchestrator:
    """Owns ProcessingTasks and drives chunk → embed → store for each document.

    Args:
        source: Upstream document records (text + extraction status).
        store: Destination for chunk+vector records.
        embedder: Embedding client; all provider calls go through its limiter.
        chunker: Text chunker (defaults to ``TextChunker()``).
        retry: Backoff policy wrapped around every embedding batch.
        on_state_change: Called with the task after every state change.
    """

    def __init__(
        self,
        source: TextSource,
        store: VectorStore,
        embedder: EmbeddingClient,
        chunker: TextChunker | None = None,
        retry: RetryPolicy | None = None,
        on_state_change: Callable[[ProcessingTask], None] | None = None,
    ) -> None:
        self._source = source
        self._store = store
        self._embedder = embedder
        self._chunker = chunker or TextChunker()
        self._retry = retry or RetryPolicy()
        self._on_state_change = on_state_change

        self._tasks: dict[str, ProcessingTask] = {}
        self._queue: deque[str] = deque()
        self._processing: set[str] = set()
        self._mutex = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._worker: asyncio.Task | None = None
        self._stopping = False

        self._processed = 0
        self._failed = 0
        self._total = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_idle(self) -> bool:
        return not self._queue and not self._processing

    def task(self, document_id: str) -> ProcessingTask | None:
        return self._tasks.get(document_id)

    def progress(self) -> Progress:
        return Progress(
            processed=self._processed,
            failed=self._failed,
            total=self._total,
            queued=len(self._queue),
            current=next(iter(self._processing), None),
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, document_id: str) -> bool:
        """Queue *document_id* if it is eligible. Returns True if it was queued.

        Eligible: extraction COMPLETED, not vectorized, and not already
        queued, processing, completed or failed in this session. A FAILED
        document only re-enters through ``reprocess()``.

        Raises:
            DocumentNotFoundError: If the text source does not know the id.
        """
        task = self._tasks.get(document_id)
        if task is not None and task.state != TaskState.PENDING:
            logger.debug("Not queuing %s: already %s", document_id, task.state.value)
            return False

        document = self._source.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document '{document_id}' not found.")
        if document.extraction_status != ExtractionStatus.COMPLETED or document.is_vectorized:
            return False
        if task is None and document.vector_status == TaskState.FAILED:
            return False

        if self.is_idle:
            # First submission after the previous batch finished.
            self._processed = self._failed = self._total = 0

        if task is None:
            task = ProcessingTask(document_id=document_id)
            self._tasks[document_id] = task
        self._transition(task, TaskState.QUEUED)
        self._queue.append(document_id)
        self._total += 1
        self._wakeup.set()
        logger.info("Queued document %s (%d waiting)", document_id, len(self._queue))
        return True

    def scan(self) -> int:
        """Queue every eligible upstream document. Returns the number queued."""
        return sum(1 for document_id in self._source.list_eligible_ids() if self.submit(document_id))

    def reprocess(self, document_id: str) -> bool:
        """Reset a FAILED (or never-processed) document and queue it again.

        Old vectors are deleted best-effort first.

        Raises:
            DocumentNotFoundError: If the document does not exist.
            InvalidTransitionError: If the document is queued, processing,
                or already vectorized.
        """
        document = self._source.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document '{document_id}' not found.")

        task = self._tasks.get(document_id)
        if task is None:
            state = TaskState.FAILED if document.vector_status == TaskState.FAILED else TaskState.PENDING
            if document.is_vectorized:
                state = TaskState.COMPLETED
            task = ProcessingTask(document_id=document_id, state=state)
            self._tasks[document_id] = task

        if task.state == TaskState.FAILED:
            task.retry_count = 0
            self._transition(task, TaskState.PENDING)
        elif task.state != TaskState.PENDING:
            raise InvalidTransitionError(
                f"Cannot reprocess document '{document_id}' in state {task.state.value}."
            )

        self._store.delete(document_id)
        return self.submit(document_id)

    def remove(self, document_id: str) -> None:
        """Forget *document_id*: drop it from the queue and delete its vectors.

        Raises:
            InvalidTransitionError: If the document is being processed.
        """
        if document_id in self._processing:
            raise InvalidTransitionError(
                f"Cannot remove document '{document_id}' while it is being processed."
            )
        if document_id in self._queue:
            self._queue.remove(document_id)
            self._total -= 1
        self._tasks.pop(document_id, None)
        self._store.delete(document_id)
        if self._source.get_document(document_id) is not None:
            self._source.mark_vectorized(document_id, False)
        logger.info("Removed vectors of document %s", document_id)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def drain(self) -> Progress:
        """Process queued documents one at a time until the queue is empty."""
        while self._queue and not self._stopping:
            await self._process_next()
        return self.progress()

    def start(self) -> None:
        """Start a background worker that drains the queue whenever work is submitted."""
        if self._worker is not None and not self._worker.done():
            return
        self._stopping = False
        self._worker = asyncio.get_running_loop().create_task(self._run())
        if self._queue:
            self._wakeup.set()

    async def stop(self) -> None:
        """Stop the background worker after the current document finishes."""
        if self._worker is None:
            return
        self._stopping = True
        self._wakeup.set()
        await self._worker
        self._worker = None
        self._stopping = False

    async def _run(self) -> None:
        while not self._stopping:
            await self._wakeup.wait()
            self._wakeup.clear()
            await self.drain()

    async def _process_next(self) -> None:
        async with self._mutex:
            if not self._queue:
                return
            document_id = self._queue.popleft()
            task = self._tasks.get(document_id)
            if task is None or task.state != TaskState.QUEUED:
                return

            self._transition(task, TaskState.PROCESSING)
            self._processing.add(document_id)
            try:
                chunk_count = await self._vectorize(task)
                self._source.mark_vectorized(document_id)
            except asyncio.CancelledError:
                self._failed += 1
                logger.warning("Vectorization of document %s cancelled", document_id)
                self._transition(task, TaskState.FAILED, "cancelled")
                raise
            except Exception as exc:
                self._failed += 1
                message = str(exc) or type(exc).__name__
                logger.error("Vectorization of document %s failed: %s", document_id, message)
                self._transition(task, TaskState.FAILED, message)
            else:
                self._processed += 1
                logger.info("Vectorized document %s (%d chunks)", document_id, chunk_count)
                self._transition(task, TaskState.COMPLETED)
            finally:
                self._processing.discard(document_id)

    async def _vectorize(self, task: ProcessingTask) -> int:
        document = self._source.get_document(task.document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document '{task.document_id}' no longer exists.")

        texts = self._chunker.chunk(document.text)
        if not texts:
            raise ChunkingError(f"Document '{document.name}' produced no chunks.")
        chunks = self._chunker.make_chunks(document.id, document.name, texts)

        def _count_retry(attempt: int, exc: BaseException) -> None:
            task.retry_count += 1

        batches = list(self._embedder.iter_batches(texts))
        vectors: list[list[float]] = []
        for n, batch in enumerate(batches, start=1):
            vectors.extend(
                await self._retry.run(
                    self._embedder.embed_batch,
                    batch,
                    on_retry=_count_retry,
                    context=f"{document.name} batch {n}/{len(batches)}",
                )
            )

        for chunk, vector in zip(chunks, vectors):
            chunk.embedding = vector
        self._store.save(document.id, chunks)
        return len(chunks)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(
        self, task: ProcessingTask, new_state: TaskState, message: str | None = None
    ) -> None:
        if new_state not in _ALLOWED[task.state]:
            raise InvalidTransitionError(
                f"Illegal transition {task.state.value} → {new_state.value} "
                f"for document '{task.document_id}'."
            )
        task.state = new_state
        task.message = message

        try:
            self._source.set_vector_state(task.document_id, new_state, message)
        except Exception as exc:
            logger.warning(
                "Could not persist state %s for document %s: %s",
                new_state.value,
                task.document_id,
                exc,
            )

        if self._on_state_change is not None:
            try:
                self._on_state_change(task)
            except Exception:
                logger.exception("on_state_change callback failed for %s", task.document_id)
