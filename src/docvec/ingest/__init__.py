"""docvec ingest pipeline: chunker and vectorization orchestrator."""

from docvec.ingest.chunker import TextChunker, chunk_text
from docvec.ingest.orchestrator import Orchestrator, ProcessingTask, Progress

__all__ = [
    "Orchestrator",
    "ProcessingTask",
    "Progress",
    "TextChunker",
    "chunk_text",
]
