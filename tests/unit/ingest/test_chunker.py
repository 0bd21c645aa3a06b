"""Tests for TextChunker: strategies, coverage and termination."""

from __future__ import annotations

import pytest

from docvec.db.models import DocumentChunk
from docvec.ingest.chunker import TextChunker, chunk_text


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _assert_covers(text: str, spans: list[tuple[int, int]]) -> None:
    """Every non-whitespace character of *text* lies inside some span."""
    covered = [False] * len(text)
    for start, end in spans:
        for i in range(start, end):
            covered[i] = True
    missing = [i for i, ch in enumerate(text) if not ch.isspace() and not covered[i]]
    assert missing == []


def _paragraphs(n: int, size: int) -> str:
    return "\n\n".join(f"P{i} " + "x" * (size - 3 - len(str(i))) for i in range(n))


# ------------------------------------------------------------------
# Construction
# ------------------------------------------------------------------


def test_invalid_max_chunk_size():
    with pytest.raises(ValueError, match="max_chunk_size"):
        TextChunker(max_chunk_size=0)


def test_invalid_overlap_size():
    with pytest.raises(ValueError, match="overlap_size"):
        TextChunker(overlap_size=-1)


def test_defaults():
    chunker = TextChunker()
    assert chunker.max_chunk_size == 2000
    assert chunker.overlap_size == 200


# ------------------------------------------------------------------
# Empty input
# ------------------------------------------------------------------


@pytest.mark.parametrize("text", ["", "   ", "\n\n\t  \n"])
def test_empty_or_whitespace_returns_empty(text):
    assert TextChunker().chunk(text) == []
    assert TextChunker().chunk_spans(text) == []


def test_short_text_single_chunk():
    assert TextChunker(100, 10).chunk("Hello world.") == ["Hello world."]


# ------------------------------------------------------------------
# Semantic split
# ------------------------------------------------------------------


def test_semantic_split_on_markdown_headings():
    text = "Intro line.\n# Title\nBody one.\n## Methods\nBody two.\n## Results\nBody three.\n"
    chunks = TextChunker(1000, 50).chunk(text)
    assert chunks == [
        "Intro line.\n",
        "# Title\nBody one.\n",
        "## Methods\nBody two.\n",
        "## Results\nBody three.\n",
    ]


def test_semantic_split_on_chinese_section_labels():
    text = "摘要内容。\n实验部分\n实验描述。\n结果与讨论\n讨论内容。\n结论\n总结。\n"
    chunks = TextChunker(1000, 50).chunk(text)
    assert chunks[0] == "摘要内容。\n"
    assert chunks[1].startswith("实验部分")
    assert chunks[2].startswith("结果与讨论")
    assert chunks[3].startswith("结论")


def test_semantic_split_on_table_and_figure_captions():
    text = "Lead.\nTable 1 Yields\nrow\nFig. 2 Spectrum\nnote\n图 3 结构\n说明\n"
    chunks = TextChunker(1000, 0).chunk(text)
    assert [c.split("\n")[0] for c in chunks] == ["Lead.", "Table 1 Yields", "Fig. 2 Spectrum", "图 3 结构"]


def test_single_boundary_does_not_trigger_semantic_split():
    # One heading is below the minimum boundary count: paragraph packing instead.
    text = "# Only heading\n\nShort paragraph."
    assert TextChunker(1000, 0).chunk(text) == [text]


def test_too_many_boundaries_falls_back():
    text = "\n".join(f"# H{i}\nbody" for i in range(25))
    chunker = TextChunker(10_000, 0)
    # 25 boundaries is above the limit; the whole text fits in one packed chunk.
    assert chunker.chunk(text) == [text]


def test_oversized_section_sliced_into_overlapping_windows():
    body = "y" * 250
    text = f"# A\n{body}\n# B\nshort\n"
    chunker = TextChunker(100, 20)
    spans = chunker.chunk_spans(text)
    section_a = [s for s in spans if s[1] <= text.index("# B")]
    assert len(section_a) >= 3
    for (s1, e1), (s2, _) in zip(section_a, section_a[1:]):
        assert e1 - s2 == 20
    assert all(e - s <= 100 for s, e in spans)
    _assert_covers(text, spans)


# ------------------------------------------------------------------
# Paragraph / sentence packing
# ------------------------------------------------------------------


def test_paragraph_packing_respects_max_size():
    text = _paragraphs(10, 60)
    chunker = TextChunker(200, 30)
    chunks = chunker.chunk(text)
    assert len(chunks) > 1
    assert all(len(c) <= 200 for c in chunks)


def test_paragraph_packing_carries_overlap():
    text = _paragraphs(10, 60)
    chunker = TextChunker(200, 30)
    spans = chunker.chunk_spans(text)
    chunks = chunker.chunk(text)
    for (s1, e1), (s2, e2), prev, nxt in zip(spans, spans[1:], chunks, chunks[1:]):
        shared = e1 - s2
        assert 0 < shared <= 30
        assert prev.endswith(nxt[:shared])


def test_sentence_split_used_for_long_flat_text():
    sentences = [f"Sentence number {i} is here." for i in range(40)]
    text = " ".join(sentences)  # a single paragraph
    chunker = TextChunker(120, 0)
    chunks = chunker.chunk(text)
    assert len(chunks) > 1
    # Without overlap, each chunk ends on a sentence boundary (or the text end).
    for chunk in chunks[:-1]:
        assert chunk.rstrip().endswith(".")


def test_chinese_sentence_terminators():
    text = "这是第一句。这是第二句！这是第三句？" * 20
    chunks = TextChunker(40, 0).chunk(text)
    assert all(len(c) <= 40 for c in chunks)
    assert all(c[-1] in "。！？" for c in chunks[:-1])


def test_oversized_unit_is_sliced():
    text = "z" * 450
    chunker = TextChunker(100, 10)
    chunks = chunker.chunk(text)
    assert all(len(c) <= 100 for c in chunks)
    _assert_covers(text, chunker.chunk_spans(text))


# ------------------------------------------------------------------
# Properties
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "text",
    [
        _paragraphs(12, 90),
        "word " * 900,
        "# A\n" + "a" * 500 + "\n## B\n" + "b. " * 200 + "\n## C\nend",
        "第一句。" * 300,
    ],
)
def test_coverage_no_text_lost(text):
    chunker = TextChunker(150, 40)
    spans = chunker.chunk_spans(text)
    _assert_covers(text, spans)
    for start, end in spans:
        assert end - start <= 150
        assert text[start:end].strip()


def test_chunks_are_in_document_order():
    text = _paragraphs(15, 70)
    spans = TextChunker(180, 40).chunk_spans(text)
    starts = [s for s, _ in spans]
    assert starts == sorted(starts)
    assert len(set(starts)) == len(starts)


def test_termination_overlap_larger_than_chunk_size():
    text = "a" * 10_000
    chunker = TextChunker(max_chunk_size=100, overlap_size=150)
    chunks = chunker.chunk(text)
    assert chunks
    assert all(0 < len(c) <= 100 for c in chunks)
    _assert_covers(text, chunker.chunk_spans(text))


def test_termination_overlap_larger_than_chunk_size_in_sections():
    text = "# One\n" + "a" * 5_000 + "\n# Two\n" + "b" * 5_000
    chunker = TextChunker(max_chunk_size=100, overlap_size=150)
    spans = chunker.chunk_spans(text)
    assert spans
    assert all(e - s <= 100 for s, e in spans)
    _assert_covers(text, spans)


def test_termination_with_paragraphs_and_overlap_equal_to_size():
    text = _paragraphs(50, 150)
    chunker = TextChunker(max_chunk_size=100, overlap_size=100)
    spans = chunker.chunk_spans(text)
    assert all(e - s <= 100 for s, e in spans)
    _assert_covers(text, spans)


# ------------------------------------------------------------------
# make_chunks / chunk_text
# ------------------------------------------------------------------


def test_make_chunks_sequential_ids_and_metadata():
    chunks = TextChunker().make_chunks("doc1", "Paper.pdf", ["a", "b", "c"])
    assert [c.id for c in chunks] == ["doc1_chunk_0", "doc1_chunk_1", "doc1_chunk_2"]
    assert [c.metadata.chunk_index for c in chunks] == [0, 1, 2]
    assert all(c.metadata.document_name == "Paper.pdf" for c in chunks)
    assert all(c.embedding is None for c in chunks)
    assert all(isinstance(c, DocumentChunk) for c in chunks)


def test_chunk_text_wrapper_matches_class():
    text = _paragraphs(8, 80)
    assert chunk_text(text, 200, 20) == TextChunker(200, 20).chunk(text)
