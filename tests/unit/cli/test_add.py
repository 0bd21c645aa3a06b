"""Tests for docvec add."""

from __future__ import annotations

from typer.testing import CliRunner

from docvec.cli.main import app
from docvec.db.models import ExtractionStatus

runner = CliRunner()


def test_add_single_file(project, read_repo):
    (project / "notes.md").write_text("# Notes\n\nApples are red.", encoding="utf-8")
    result = runner.invoke(app, ["add", "--source", "notes.md"])
    assert result.exit_code == 0, result.output
    assert "Added notes.md" in result.output

    docs = read_repo(lambda repo: repo.list_documents())
    assert len(docs) == 1
    assert docs[0].name == "notes.md"
    assert docs[0].text.startswith("# Notes")
    assert docs[0].extraction_status == ExtractionStatus.COMPLETED
    assert docs[0].is_vectorized is False


def test_add_with_custom_name(project, read_repo):
    (project / "a.txt").write_text("text", encoding="utf-8")
    result = runner.invoke(app, ["add", "-s", "a.txt", "--name", "Paper A"])
    assert result.exit_code == 0
    assert read_repo(lambda repo: repo.get_document_by_name("Paper A")) is not None


def test_add_unchanged_file_is_skipped(project, read_repo):
    (project / "a.txt").write_text("same", encoding="utf-8")
    runner.invoke(app, ["add", "-s", "a.txt"])
    result = runner.invoke(app, ["add", "-s", "a.txt"])
    assert result.exit_code == 0
    assert "Unchanged" in result.output
    assert len(read_repo(lambda repo: repo.list_documents())) == 1


def test_add_changed_file_creates_new_document(project, read_repo):
    path = project / "a.txt"
    path.write_text("v1", encoding="utf-8")
    runner.invoke(app, ["add", "-s", "a.txt"])
    path.write_text("v2", encoding="utf-8")
    runner.invoke(app, ["add", "-s", "a.txt"])
    assert read_repo(lambda repo: repo.get_document_by_name("a.txt").text) == "v2"


def test_add_multiple_sources(project, read_repo):
    for name in ("a.txt", "b.txt"):
        (project / name).write_text(name, encoding="utf-8")
    result = runner.invoke(app, ["add", "-s", "a.txt", "-s", "b.txt"])
    assert result.exit_code == 0
    assert [d.name for d in read_repo(lambda repo: repo.list_documents())] == ["a.txt", "b.txt"]


def test_add_no_source_exits_1(project):
    result = runner.invoke(app, ["add"])
    assert result.exit_code == 1
    assert "--source" in result.output


def test_add_name_with_multiple_sources_exits_1(project):
    result = runner.invoke(app, ["add", "-s", "a.txt", "-s", "b.txt", "--name", "x"])
    assert result.exit_code == 1
    assert "--name" in result.output


def test_add_missing_file_exits_1(project):
    result = runner.invoke(app, ["add", "-s", "missing.txt"])
    assert result.exit_code == 1
    assert "Cannot read" in result.output


def test_add_binary_file_exits_1(project, read_repo):
    (project / "blob.bin").write_bytes(b"\xff\xfe\x00\x81")
    result = runner.invoke(app, ["add", "-s", "blob.bin"])
    assert result.exit_code == 1
    assert "UTF-8" in result.output
    assert read_repo(lambda repo: repo.list_documents()) == []
