"""Document chunking pipeline.

Splits crawled pages into fixed-size, overlapping character windows for
embedding.
"""

import logging
from typing import Iterable, List, Tuple
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentChunk:
    """A window of a document's text; identified by (source_url, ordinal)."""
    source_url: str
    text: str
    ordinal: int

    @property
    def key(self) -> Tuple[str, int]:
        return self.source_url, self.ordinal


@dataclass(frozen=True)
class Document:
    """Text of one crawled page ready for chunking."""
    source_url: str
    title: str
    text: str


class DocumentChunker:
    """Chunks documents into overlapping windows."""

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200):
        """Initialize chunker.

        Args:
            chunk_size: Size of each chunk in characters
            chunk_overlap: Characters shared by consecutive chunks; must be
                smaller than chunk_size or the window never advances
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap cannot be negative")
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @property
    def step(self) -> int:
        return self.chunk_size - self.chunk_overlap

    def split(self, text: str, source_url: str) -> List[DocumentChunk]:
        """Split text into windows of `chunk_size` advancing by `step`.

        The last window ends exactly at the end of the text. Dropping the
        first `chunk_overlap` characters of every chunk but the first and
        joining the rest gives back the original text.
        """
        chunks = []
        if not text:
            return chunks

        start = 0
        ordinal = 0
        length = len(text)
        while True:
            end = min(start + self.chunk_size, length)
            chunks.append(DocumentChunk(source_url=source_url, text=text[start:end], ordinal=ordinal))
            if end >= length:
                break
            start += self.step
            ordinal += 1

        return chunks

    def split_document(self, document: Document) -> List[DocumentChunk]:
        return self.split(document.text, document.source_url)


def chunk_documents(documents: Iterable[Document], chunker: DocumentChunker) -> List[DocumentChunk]:
    """Chunk every document, preserving document order."""
    chunks = []
    for document in documents:
        document_chunks = chunker.split_document(document)
        logger.debug(f"Split {document.source_url} into {len(document_chunks)} chunks")
        chunks.extend(document_chunks)
    return chunks
