import re
import zlib
from typing import List
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest

from config.settings import Settings


class HashingEmbedder:
    """Deterministic bag-of-words embedder for tests."""

    dimension = 32

    def __init__(self):
        self.document_calls = 0
        self.query_calls = 0

    def _vector(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimension, dtype=np.float32)
        for word in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(word.encode("utf-8")) % self.dimension] += 1.0
        return vector

    def embed_documents(self, texts: List[str]) -> np.ndarray:
        self.document_calls += 1
        if not texts:
            return np.zeros((0, self.dimension), dtype=np.float32)
        return np.vstack([self._vector(text) for text in texts])

    def embed_query(self, text: str) -> np.ndarray:
        self.query_calls += 1
        return self._vector(text)


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def mock_llm():
    """Configured language model whose completions are scripted per test."""
    llm = Mock()
    llm.is_configured = True
    llm.complete = AsyncMock(return_value="resposta do modelo")
    return llm


@pytest.fixture
def degraded_settings():
    """Settings without a model key and without a startup crawl."""
    return Settings(openai_api_key="", build_index_on_startup=False, personality_seed=7)


@pytest.fixture
def configured_settings():
    return Settings(openai_api_key="sk-test", build_index_on_startup=False, personality_seed=7)


LOREM = (
    "Lorem ipsum dolor sit amet, consectetur adipiscing elit, sed do eiusmod tempor "
    "incididunt ut labore et dolore magna aliqua. Ut enim ad minim veniam, quis nostrud "
    "exercitation ullamco laboris nisi ut aliquip ex ea commodo consequat."
)


def html_page(title: str, body: str = LOREM, links=(), wrapper: str = "article") -> str:
    anchors = "".join(f'<a href="{href}">link</a>' for href in links)
    return (
        f"<html><head><title>{title}</title><script>var tracking = 1;</script></head>"
        f"<body><nav>{anchors}</nav><{wrapper}><h1>{title}</h1><p>{body}</p></{wrapper}></body></html>"
    )
