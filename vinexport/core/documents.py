"""Text extraction and chunking for document inputs."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PyPDF2 import PdfReader

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_CHARS = 6000
MIN_CHUNK_CHARS = 1500


@dataclass(frozen=True)
class PageText:
    """Text layer of one PDF page (1-based page number)."""

    page: int
    text: str


@dataclass(frozen=True)
class TextChunk:
    """Consecutive pages joined into one provider-sized block."""

    page_start: int
    page_end: int
    text: str

    def as_prompt(self) -> str:
        """Chunk text prefixed with its page range."""
        return f'Pages {self.page_start}-{self.page_end}\n"""{self.text}"""'


def extract_pdf_pages(data: bytes) -> list[PageText]:
    """Extract the text layer of every page of a PDF."""
    reader = PdfReader(io.BytesIO(data))
    pages = []
    for number, page in enumerate(reader.pages, start=1):
        pages.append(PageText(page=number, text=page.extract_text() or ""))
    return pages


def document_pages(data: bytes, filename: str = "") -> list[PageText]:
    """Pages of a PDF that carry text, or an empty list when there is no usable text layer.

    Scanned PDFs and unreadable files yield no pages; PDF-capable providers
    still receive the binary document.
    """
    try:
        pages = extract_pdf_pages(data)
    except Exception as e:
        logger.warning(f"Could not read text from {filename or 'PDF'}: {e}")
        return []

    pages = [page for page in pages if page.text.strip()]
    if not pages:
        logger.info(f"No text layer in {filename or 'PDF'}")
    return pages


def chunk_by_pages(
    pages: list[PageText],
    max_chars: int = DEFAULT_CHUNK_CHARS,
    min_chunk: int = MIN_CHUNK_CHARS,
) -> list[TextChunk]:
    """Group consecutive pages into chunks of at most ``max_chars``.

    A page starts a new chunk only when appending it would exceed
    ``max_chars`` and the current chunk already holds ``min_chunk``
    characters. A trailing chunk smaller than ``min_chunk`` is folded into
    the previous one when the result stays within 120% of ``max_chars``.
    Text past ``max_chars`` in a flushed chunk is cut off.

    Args:
        pages: Page texts in document order
        max_chars: Target chunk size in characters
        min_chunk: Smallest chunk worth sending on its own

    Returns:
        Chunks in document order, each with its page range
    """
    chunks: list[TextChunk] = []
    if not pages:
        return chunks

    text = ""
    start = end = pages[0].page

    def flush() -> None:
        if text.strip():
            chunks.append(TextChunk(page_start=start, page_end=end, text=text.strip()[:max_chars]))

    for page in pages:
        candidate = f"{text}\n{page.text}" if text else page.text
        if len(candidate) > max_chars and len(text) >= min_chunk:
            flush()
            text = page.text
            start = end = page.page
        else:
            text = candidate
            end = page.page
    flush()

    if len(chunks) >= 2:
        last, previous = chunks[-1], chunks[-2]
        if len(last.text) < min_chunk and len(previous.text) + len(last.text) <= max_chars * 1.2:
            chunks[-2:] = [
                TextChunk(
                    page_start=previous.page_start,
                    page_end=last.page_end,
                    text=f"{previous.text}\n{last.text}".strip(),
                )
            ]

    return chunks
