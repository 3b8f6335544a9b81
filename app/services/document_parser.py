"""
File text extraction for uploaded documents (PDF, DOCX, TXT).

``DocumentParser.extract_text`` is total: a missing, empty, unreadable or
unsupported file yields an empty string, which the analysis pipeline treats
as "no content" and answers through its fallbacks.  ``parse_document``
raises instead, for callers that want to report the reason.
"""
from __future__ import annotations

import io
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import aiofiles
import fitz  # PyMuPDF
import pytesseract
from docx import Document as DocxDocument
from PIL import Image

from app.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class ParsedDocument:
    """
    Output of the DocumentParser.

    Attributes:
        full_text: Whitespace-normalised text of the whole document.
        metadata:  Dict with keys: file_type, page_count, word_count,
                   ocr_pages, title, author.
    """

    full_text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class ExtractionError(RuntimeError):
    """The file could not be turned into text."""


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class DocumentParser:
    """Extracts plain text from PDF, DOCX and TXT files."""

    def __init__(self) -> None:
        if settings.TESSERACT_CMD:
            pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD

    async def extract_text(self, file_path: str, file_name: str) -> str:
        """
        Return the document text, or ``""`` when nothing can be extracted.

        Args:
            file_path: Path of the stored file on disk.
            file_name: Original file name; its extension selects the parser.
        """
        try:
            parsed = await self.parse_document(file_path, Path(file_name).suffix)
        except (ExtractionError, ValueError) as exc:
            logger.warning("Text extraction failed for %r: %s", file_name, exc)
            return ""
        logger.info(
            "Extracted %d chars from %r (%s)",
            len(parsed.full_text),
            file_name,
            parsed.metadata.get("file_type"),
        )
        return parsed.full_text

    async def parse_document(self, file_path: str, file_type: str) -> ParsedDocument:
        """
        Parse a document file into a ParsedDocument.

        Raises:
            ValueError:      Unsupported file type.
            ExtractionError: Missing, empty, encrypted or unreadable file.
        """
        if not os.path.exists(file_path):
            raise ExtractionError(f"File not found: {file_path}")
        if os.path.getsize(file_path) == 0:
            raise ExtractionError(f"File is empty: {file_path}")

        ft = file_type.lower().lstrip(".")
        if ft == "pdf":
            return await self._parse_pdf(file_path)
        elif ft == "docx":
            return await self._parse_docx(file_path)
        elif ft == "txt":
            return await self._parse_txt(file_path)
        else:
            raise ValueError(f"Unsupported file type: {file_type!r}")

    # ------------------------------------------------------------------
    # TXT
    # ------------------------------------------------------------------

    async def _parse_txt(self, file_path: str) -> ParsedDocument:
        try:
            async with aiofiles.open(file_path, "r", encoding="utf-8") as fh:
                text = await fh.read()
        except UnicodeDecodeError as exc:
            raise ExtractionError(f"Text file is not valid UTF-8: {exc}") from exc

        return ParsedDocument(
            full_text=text.strip(),
            metadata={"file_type": "txt", "word_count": len(text.split())},
        )

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    async def _parse_pdf(self, file_path: str) -> ParsedDocument:
        """Parse a PDF using PyMuPDF with OCR fallback for image-only pages."""
        try:
            doc = fitz.open(file_path)
        except Exception as exc:
            raise ExtractionError(f"Cannot open PDF file: {exc}") from exc

        try:
            if doc.needs_pass:
                raise ExtractionError(
                    "PDF is password-protected. Please provide an unlocked copy."
                )

            raw_meta = doc.metadata or {}
            page_texts: List[str] = []
            ocr_pages = 0

            for page in doc:
                text = page.get_text("text")
                if not text.strip():
                    # Image-only page: full-page OCR
                    text = await self._ocr_page(page)
                    if text.strip():
                        ocr_pages += 1
                if text.strip():
                    page_texts.append(text)

            page_count = doc.page_count
        finally:
            doc.close()

        full_text = clean_extracted_text("\n\n".join(page_texts))
        return ParsedDocument(
            full_text=full_text,
            metadata={
                "file_type": "pdf",
                "page_count": page_count,
                "word_count": len(full_text.split()),
                "ocr_pages": ocr_pages,
                "title": raw_meta.get("title", ""),
                "author": raw_meta.get("author", ""),
            },
        )

    async def _ocr_page(self, page: fitz.Page) -> str:
        """Render an entire page at 2× scale and run Tesseract OCR."""
        try:
            pix = page.get_pixmap(matrix=fitz.Matrix(2, 2))
            img = Image.open(io.BytesIO(pix.tobytes("png")))
            return pytesseract.image_to_string(img)
        except Exception as exc:
            logger.warning(f"Full-page OCR failed on page {page.number + 1}: {exc}")
            return ""

    # ------------------------------------------------------------------
    # DOCX
    # ------------------------------------------------------------------

    async def _parse_docx(self, file_path: str) -> ParsedDocument:
        """Parse a DOCX file: paragraphs in order, then tables."""
        try:
            doc = DocxDocument(file_path)
        except Exception as exc:
            raise ExtractionError(f"Cannot open DOCX file: {exc}") from exc

        parts: List[str] = [p.text.strip() for p in doc.paragraphs if p.text.strip()]

        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                non_empty = [c for c in cells if c]
                if non_empty:
                    parts.append(" | ".join(non_empty))

        core = doc.core_properties
        full_text = clean_extracted_text("\n".join(parts))
        return ParsedDocument(
            full_text=full_text,
            metadata={
                "file_type": "docx",
                "page_count": None,   # python-docx cannot report rendered page count
                "word_count": len(full_text.split()),
                "ocr_pages": 0,
                "title": core.title or "",
                "author": core.author or "",
            },
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

def clean_extracted_text(text: str) -> str:
    """Collapse runs of spaces/tabs and blank lines; keep single newlines."""
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
