# In-memory vector index over document chunks
# Built once per load cycle, then only read

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from pipelines.chunker import DocumentChunk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexEntry:
    chunk: DocumentChunk
    vector: np.ndarray


@dataclass(frozen=True)
class SearchHit:
    chunk: DocumentChunk
    score: float


def cosine_similarity(matrix: np.ndarray, vector: np.ndarray) -> np.ndarray:
    """Cosine similarity between every row of `matrix` and `vector`"""
    row_norms = np.linalg.norm(matrix, axis=1)
    vector_norm = np.linalg.norm(vector)
    denominator = row_norms * vector_norm
    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    nonzero = denominator > 0
    scores[nonzero] = (matrix[nonzero] @ vector) / denominator[nonzero]
    return scores


class VectorIndex:
    """Immutable similarity index over (chunk, vector) entries"""

    def __init__(self, entries: Sequence[IndexEntry]):
        self._entries = tuple(entries)
        if self._entries:
            matrix = np.vstack([np.asarray(e.vector, dtype=np.float32) for e in self._entries])
        else:
            matrix = np.zeros((0, 0), dtype=np.float32)
        matrix.setflags(write=False)
        self._matrix = matrix

    @classmethod
    def from_chunks(cls, chunks: Sequence[DocumentChunk], vectors: np.ndarray) -> "VectorIndex":
        if len(chunks) != len(vectors):
            raise ValueError(f"Got {len(vectors)} vectors for {len(chunks)} chunks")
        return cls([IndexEntry(chunk=c, vector=v) for c, v in zip(chunks, vectors)])

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def dimension(self) -> int:
        return self._matrix.shape[1] if len(self._entries) else 0

    @property
    def entries(self) -> Sequence[IndexEntry]:
        return self._entries

    def search(self, query_vector: np.ndarray, top_k: int = 3) -> List[SearchHit]:
        """Top-k chunks by cosine similarity.

        Higher scores first; equal scores are ordered by chunk ordinal, then by
        insertion order.
        """
        if not self._entries or top_k <= 0:
            return []

        query = np.asarray(query_vector, dtype=np.float32).ravel()
        if query.shape[0] != self.dimension:
            raise ValueError(f"Query dimension {query.shape[0]} does not match index dimension {self.dimension}")

        scores = cosine_similarity(self._matrix, query)
        order = sorted(
            range(len(self._entries)),
            key=lambda i: (-scores[i], self._entries[i].chunk.ordinal, i)
        )
        return [SearchHit(chunk=self._entries[i].chunk, score=float(scores[i])) for i in order[:top_k]]
