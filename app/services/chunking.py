"""
Text chunking for remote model calls.

Two variants are provided:

  * ``TextChunker.chunk``       : bounded by approximate model tokens
                                   (``ceil(chars / 4)``), used for summarisation.
  * ``TextChunker.chunk_for_qa``: bounded by characters, used for
                                   conversational Q&A over a document.

Splitting strategy for ``chunk`` (in priority order):
  1. Primary  : sentence terminators (. ! ?), greedily accumulated
  2. Secondary: paragraph boundaries (blank line) when no terminator is found
  3. Tertiary : word accumulation for an oversized paragraph
  4. Last-resort: the first ``max_units * 4`` characters of the input

Words are never split.  Chunking is deterministic.
"""
from __future__ import annotations

import logging
import math
import re
from typing import List, Optional

from app.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Token estimation (character approximation, no tokenizer dependency)
# ---------------------------------------------------------------------------

CHARS_PER_UNIT = 4


def estimate_units(text: str) -> int:
    """Approximate model token count: one unit per four characters."""
    return math.ceil(len(text) / CHARS_PER_UNIT)


# ---------------------------------------------------------------------------
# Text splitting helpers
# ---------------------------------------------------------------------------

_TERMINATOR_RE = re.compile(r"[.!?]+")


def split_sentences(text: str) -> List[str]:
    """Split on runs of sentence terminators, dropping blank fragments."""
    return [s.strip() for s in _TERMINATOR_RE.split(text) if s.strip()]


def _split_paragraphs(text: str) -> List[str]:
    """Split on blank-line paragraph boundaries."""
    return [p.strip() for p in text.split("\n\n") if p.strip()]


# ---------------------------------------------------------------------------
# TextChunker
# ---------------------------------------------------------------------------

class TextChunker:
    """
    Splits raw document text into ordered, non-empty, bounded chunks.

    Defaults come from settings (SUMMARY_MAX_UNITS, QA_CHUNK_CHARS) but every
    public method accepts an explicit bound.
    """

    def __init__(
        self,
        max_units: Optional[int] = None,
        qa_chunk_chars: Optional[int] = None,
    ) -> None:
        self.max_units = max_units or settings.SUMMARY_MAX_UNITS
        self.qa_chunk_chars = qa_chunk_chars or settings.QA_CHUNK_CHARS

    # ------------------------------------------------------------------
    # Token-bounded variant (summarisation)
    # ------------------------------------------------------------------

    def chunk(self, text: str, max_units: Optional[int] = None) -> List[str]:
        """
        Split *text* into chunks of at most *max_units* estimated tokens.

        A single sentence or word larger than the bound is kept whole in a
        chunk of its own.  Returns ``[]`` only for empty input.
        """
        limit = self.max_units if max_units is None else max_units
        if limit <= 0:
            raise ValueError("max_units must be positive")
        if not text:
            return []

        chunks: List[str] = []
        if _TERMINATOR_RE.search(text):
            chunks = self._accumulate_sentences(split_sentences(text), limit)

        if not chunks:
            chunks = self._chunk_paragraphs(text, limit * CHARS_PER_UNIT)

        if not chunks:
            logger.debug("Chunker produced nothing, returning leading slice")
            chunks = [text[: limit * CHARS_PER_UNIT]]

        logger.info("Split %d chars into %d chunks (max %d units)", len(text), len(chunks), limit)
        return chunks

    @staticmethod
    def _accumulate_sentences(sentences: List[str], limit: int) -> List[str]:
        chunks: List[str] = []
        current: List[str] = []
        current_units = 0

        for sentence in sentences:
            units = estimate_units(sentence)
            if current and current_units + units > limit:
                chunks.append(" ".join(current))
                current = []
                current_units = 0
            current.append(sentence + ".")
            current_units += units

        if current:
            chunks.append(" ".join(current))
        return chunks

    @staticmethod
    def _chunk_paragraphs(text: str, max_chars: int) -> List[str]:
        """
        Accumulate paragraphs up to *max_chars*; oversized paragraphs are
        broken on word boundaries.
        """
        chunks: List[str] = []
        current = ""

        for paragraph in _split_paragraphs(text):
            if len(paragraph) > max_chars:
                if current:
                    chunks.append(current)
                    current = ""
                chunks.extend(_split_words(paragraph, max_chars))
                continue

            if current and len(current) + 2 + len(paragraph) > max_chars:
                chunks.append(current)
                current = paragraph
            else:
                current = f"{current}\n\n{paragraph}" if current else paragraph

        if current:
            chunks.append(current)
        return chunks

    # ------------------------------------------------------------------
    # Character-bounded variant (Q&A)
    # ------------------------------------------------------------------

    def chunk_for_qa(self, text: str, max_chars: Optional[int] = None) -> List[str]:
        """
        Split *text* into chunks of at most *max_chars* characters along
        sentence boundaries, sentences rejoined with ``". "``.  A longer single
        sentence stands alone.  Falls back to fixed-width slices when the text
        has no sentence terminators.
        """
        limit = self.qa_chunk_chars if max_chars is None else max_chars
        if limit <= 0:
            raise ValueError("max_chars must be positive")
        if not text:
            return []

        chunks: List[str] = []
        if _TERMINATOR_RE.search(text):
            current = ""
            for sentence in split_sentences(text):
                if current and len(current) + 2 + len(sentence) > limit:
                    chunks.append(current)
                    current = sentence
                else:
                    current = f"{current}. {sentence}" if current else sentence
            if current:
                chunks.append(current)

        if not chunks:
            chunks = [text[i: i + limit] for i in range(0, len(text), limit)]
            chunks = [c for c in chunks if c.strip()] or [text[:limit]]

        return chunks


def _split_words(paragraph: str, max_chars: int) -> List[str]:
    """Greedy word accumulation; a word longer than *max_chars* stands alone."""
    pieces: List[str] = []
    current = ""
    for word in paragraph.split():
        candidate = f"{current} {word}" if current else word
        if len(candidate) > max_chars and current:
            pieces.append(current)
            current = word
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces
