"""Domain models for the docvec database layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ExtractionStatus(str, Enum):
    """Upstream text-extraction status; written by the extractor only."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TaskState(str, Enum):
    """Vectorization state of a document."""

    PENDING = "PENDING"
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class Document:
    id: str
    name: str
    text: str = ""
    extraction_status: ExtractionStatus = ExtractionStatus.PENDING
    is_vectorized: bool = False
    vector_status: TaskState | None = None
    vector_error: str | None = None
    created_at: str | None = None


@dataclass
class ChunkMetadata:
    document_id: str
    document_name: str
    chunk_index: int


@dataclass
class DocumentChunk:
    """A contiguous slice of a document's text plus its (optional) embedding."""

    id: str
    content: str
    metadata: ChunkMetadata
    embedding: list[float] | None = field(default=None)

    @staticmethod
    def make_id(document_id: str, chunk_index: int) -> str:
        return f"{document_id}_chunk_{chunk_index}"

    def to_dict(self) -> dict:
        """Serialise to the wire shape used by the notebook front end."""
        data: dict = {
            "id": self.id,
            "content": self.content,
            "metadata": {
                "documentId": self.metadata.document_id,
                "documentName": self.metadata.document_name,
                "chunkIndex": self.metadata.chunk_index,
            },
        }
        if self.embedding is not None:
            data["embedding"] = list(self.embedding)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> DocumentChunk:
        meta = data["metadata"]
        embedding = data.get("embedding")
        return cls(
            id=data["id"],
            content=data["content"],
            metadata=ChunkMetadata(
                document_id=meta["documentId"],
                document_name=meta["documentName"],
                chunk_index=int(meta["chunkIndex"]),
            ),
            embedding=[float(x) for x in embedding] if embedding is not None else None,
        )
