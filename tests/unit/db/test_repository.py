"""Tests for the document Repository."""

from __future__ import annotations

import pytest

from docvec.db.models import Document, ExtractionStatus, TaskState
from docvec.db.repository import Repository
from docvec.exceptions import DocumentNotFoundError


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


def _doc(id="doc-1", name="paper.md", text="Some text.", status=ExtractionStatus.COMPLETED):
    return Document(id=id, name=name, text=text, extraction_status=status)


# ------------------------------------------------------------------
# Documents
# ------------------------------------------------------------------


def test_add_and_get_document(repo):
    repo.add_document(_doc())
    result = repo.get_document("doc-1")
    assert result is not None
    assert result.name == "paper.md"
    assert result.text == "Some text."
    assert result.extraction_status == ExtractionStatus.COMPLETED
    assert result.is_vectorized is False
    assert result.vector_status is None
    assert result.created_at is not None


def test_get_document_not_found(repo):
    assert repo.get_document("nonexistent") is None


def test_get_document_by_name_returns_latest(repo):
    repo.add_document(_doc(id="old", name="a.md"))
    repo.add_document(_doc(id="new", name="a.md"))
    assert repo.get_document_by_name("a.md").id == "new"
    assert repo.get_document_by_name("missing.md") is None


def test_list_documents_in_insertion_order(repo):
    for i in range(3):
        repo.add_document(_doc(id=f"d{i}"))
    assert [d.id for d in repo.list_documents()] == ["d0", "d1", "d2"]


def test_get_text(repo):
    repo.add_document(_doc(text="hello"))
    assert repo.get_text("doc-1") == "hello"


def test_get_text_unknown_raises(repo):
    with pytest.raises(DocumentNotFoundError):
        repo.get_text("nope")


def test_delete_document(repo):
    repo.add_document(_doc())
    repo.delete_document("doc-1")
    assert repo.get_document("doc-1") is None


# ------------------------------------------------------------------
# Vectorization state
# ------------------------------------------------------------------


def test_set_vector_state_and_error_persist(repo):
    repo.add_document(_doc())
    repo.set_vector_state("doc-1", TaskState.FAILED, "Embedding request failed: 401")
    doc = repo.get_document("doc-1")
    assert doc.vector_status == TaskState.FAILED
    assert doc.vector_error == "Embedding request failed: 401"

    repo.set_vector_state("doc-1", TaskState.PENDING)
    doc = repo.get_document("doc-1")
    assert doc.vector_status == TaskState.PENDING
    assert doc.vector_error is None


def test_mark_vectorized_roundtrip(repo):
    repo.add_document(_doc())
    repo.mark_vectorized("doc-1")
    assert repo.get_document("doc-1").is_vectorized is True
    repo.mark_vectorized("doc-1", False)
    assert repo.get_document("doc-1").is_vectorized is False


def test_set_extraction_status(repo):
    repo.add_document(_doc(status=ExtractionStatus.PROCESSING))
    repo.set_extraction_status("doc-1", ExtractionStatus.COMPLETED)
    assert repo.get_document("doc-1").extraction_status == ExtractionStatus.COMPLETED


# ------------------------------------------------------------------
# Eligibility
# ------------------------------------------------------------------


def test_list_eligible_ids(repo):
    repo.add_document(_doc(id="ready"))
    repo.add_document(_doc(id="extracting", status=ExtractionStatus.PROCESSING))
    repo.add_document(_doc(id="extract-failed", status=ExtractionStatus.FAILED))
    repo.add_document(_doc(id="done"))
    repo.mark_vectorized("done")
    repo.add_document(_doc(id="vec-failed"))
    repo.set_vector_state("vec-failed", TaskState.FAILED, "boom")
    repo.add_document(_doc(id="reset"))
    repo.set_vector_state("reset", TaskState.PENDING)

    assert repo.list_eligible_ids() == ["ready", "reset"]
