"""Text chunker: semantic boundaries, then paragraphs/sentences, then fixed windows.

Every chunk is an exact slice of the input text. ``chunk_spans()`` exposes the
``(start, end)`` offsets so callers (and tests) can check that consecutive
chunks only share the declared overlap and that no non-whitespace text is
lost.
"""

from __future__ import annotations

import logging
import re

from docvec.db.models import ChunkMetadata, DocumentChunk

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_SIZE = 2000
DEFAULT_OVERLAP_SIZE = 200

# Upper bound on windows cut from a single segment.
MAX_WINDOWS_PER_SEGMENT = 10_000

# Semantic split is used only when the number of boundaries is in this range.
_MIN_BOUNDARIES = 2
_MAX_BOUNDARIES = 19

# Line starts that open a new semantic section.
_BOUNDARY_RE = re.compile(
    r"|".join(
        (
            # Markdown headings
            r"^#{1,6}[ \t]+\S",
            # Section labels on their own line, optionally numbered
            r"^[ \t]*(?:\d+\.?[ \t]*)?"
            r"(?:experimental(?:[ \t]+section)?|(?:materials[ \t]+and[ \t]+)?methods"
            r"|results(?:[ \t]+and[ \t]+discussion)?|discussion|conclusions?|references)"
            r"[ \t]*:?[ \t]*$",
            r"^[ \t]*(?:实验部分|结果与讨论|结论|参考文献)[ \t]*$",
            # Table / figure captions
            r"^[ \t]*(?:table|fig\.|figure)[ \t]*\d+",
            r"^[ \t]*[表图][ \t]*\d+",
        )
    ),
    re.MULTILINE | re.IGNORECASE,
)

_PARAGRAPH_SEP_RE = re.compile(r"\n\s*\n")
_SENTENCE_END_RE = re.compile(r"[.!?。！？]+\s*")

Span = tuple[int, int]


class TextChunker:
    """Split document text into ordered, overlapping chunks.

    Strategies, in priority order:

    1. Semantic boundaries (headings, section labels, table/figure captions)
       when there are between 2 and 19 of them. Oversized sections are cut
       into overlapping windows.
    2. Paragraphs greedily packed up to ``max_chunk_size``; the trailing
       ``overlap_size`` characters of a chunk open the next one.
    3. Sentences, packed the same way, when the text has fewer than three
       paragraphs and is longer than ``max_chunk_size``.
    4. Fixed windows of ``max_chunk_size`` with no overlap.

    Args:
        max_chunk_size: Maximum chunk length in characters.
        overlap_size: Characters shared by consecutive chunks.

    Raises:
        ValueError: If ``max_chunk_size < 1`` or ``overlap_size < 0``.
    """

    def __init__(
        self,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        overlap_size: int = DEFAULT_OVERLAP_SIZE,
    ) -> None:
        if max_chunk_size < 1:
            raise ValueError("max_chunk_size must be >= 1")
        if overlap_size < 0:
            raise ValueError("overlap_size must be >= 0")
        self.max_chunk_size = max_chunk_size
        self.overlap_size = overlap_size

    def chunk(self, text: str) -> list[str]:
        """Return the chunks of *text* in document order. Empty text → ``[]``."""
        return [text[start:end] for start, end in self.chunk_spans(text)]

    def chunk_spans(self, text: str) -> list[Span]:
        """Return ``(start, end)`` offsets of each chunk of *text*."""
        if not text.strip():
            return []

        spans = self._semantic_spans(text)
        if spans:
            logger.debug("Semantic split produced %d chunks", len(spans))
        else:
            spans = self._packed_spans(text)
        if not spans:
            spans = self._window_spans(text, 0, len(text), overlap=0)
            logger.debug("Fixed-window split produced %d chunks", len(spans))

        return [(s, e) for s, e in spans if text[s:e].strip()]

    def make_chunks(
        self, document_id: str, document_name: str, texts: list[str]
    ) -> list[DocumentChunk]:
        """Wrap chunk texts as DocumentChunk records with sequential indices."""
        return [
            DocumentChunk(
                id=DocumentChunk.make_id(document_id, i),
                content=t,
                metadata=ChunkMetadata(
                    document_id=document_id, document_name=document_name, chunk_index=i
                ),
            )
            for i, t in enumerate(texts)
        ]

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _semantic_spans(self, text: str) -> list[Span]:
        """Split on semantic boundaries; ``[]`` if the boundary count is out of range."""
        boundaries = sorted({m.start() for m in _BOUNDARY_RE.finditer(text)})
        if not _MIN_BOUNDARIES <= len(boundaries) <= _MAX_BOUNDARIES:
            return []

        cuts = boundaries if boundaries[0] == 0 else [0, *boundaries]
        cuts.append(len(text))

        spans: list[Span] = []
        for start, end in zip(cuts, cuts[1:]):
            if not text[start:end].strip():
                continue
            if end - start <= self.max_chunk_size:
                spans.append((start, end))
            else:
                spans.extend(self._window_spans(text, start, end, self.overlap_size))
        return spans

    def _packed_spans(self, text: str) -> list[Span]:
        """Greedy paragraph packing, or sentence packing for long, flat text."""
        units = _split_units(text, _PARAGRAPH_SEP_RE)
        paragraphs = sum(1 for s, e in units if text[s:e].strip())
        if paragraphs < 3 and len(text) > self.max_chunk_size:
            units = _split_units(text, _SENTENCE_END_RE)
            logger.debug("Sentence split over %d units", len(units))
        else:
            logger.debug("Paragraph split over %d units", len(units))
        return self._pack(units)

    def _pack(self, units: list[Span]) -> list[Span]:
        """Greedily merge contiguous *units* into chunks of at most ``max_chunk_size``.

        Units longer than the limit are first cut into non-overlapping pieces.
        When a chunk is closed, its trailing ``overlap_size`` characters are
        carried into the next chunk, shrunk if needed so that the carried tail
        plus the next unit still fits. A carried tail is never emitted on its
        own.
        """
        limit = self.max_chunk_size
        pieces: list[Span] = []
        for start, end in units:
            if end - start <= limit:
                pieces.append((start, end))
            else:
                pieces.extend(self._window_spans_unchecked(start, end, overlap=0))
        if not pieces:
            return []

        spans: list[Span] = []
        chunk_start = chunk_end = pieces[0][0]
        for piece_start, piece_end in pieces:
            if piece_end - chunk_start > limit and chunk_end > chunk_start:
                spans.append((chunk_start, chunk_end))
                chunk_start = max(
                    chunk_end - self.overlap_size,
                    chunk_start + 1,
                    piece_end - limit,
                )
            chunk_end = piece_end
        if chunk_end > chunk_start:
            spans.append((chunk_start, chunk_end))
        return spans

    def _window_spans(self, text: str, start: int, end: int, overlap: int) -> list[Span]:
        """Cut ``text[start:end]`` into windows, skipping whitespace-only ones."""
        return [
            (s, e)
            for s, e in self._window_spans_unchecked(start, end, overlap)
            if text[s:e].strip()
        ]

    def _window_spans_unchecked(self, start: int, end: int, overlap: int) -> list[Span]:
        spans: list[Span] = []
        pos = start
        while pos < end:
            window_end = min(pos + self.max_chunk_size, end)
            spans.append((pos, window_end))
            if window_end >= end:
                break
            if len(spans) >= MAX_WINDOWS_PER_SEGMENT:
                logger.warning(
                    "Window limit (%d) reached; truncating segment at offset %d of %d",
                    MAX_WINDOWS_PER_SEGMENT,
                    window_end,
                    end,
                )
                break
            # Always advance by at least one character.
            pos = max(window_end - overlap, pos + 1)
        return spans


def chunk_text(
    text: str,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    overlap_size: int = DEFAULT_OVERLAP_SIZE,
) -> list[str]:
    """Convenience wrapper around ``TextChunker(max_chunk_size, overlap_size).chunk()``."""
    return TextChunker(max_chunk_size, overlap_size).chunk(text)


def _split_units(text: str, separator: re.Pattern[str]) -> list[Span]:
    """Split *text* into contiguous spans, each ending just after a separator match."""
    units: list[Span] = []
    pos = 0
    for match in separator.finditer(text):
        if match.end() > pos:
            units.append((pos, match.end()))
            pos = match.end()
    if pos < len(text):
        units.append((pos, len(text)))
    return units
