# Embedding providers for the knowledge index
# Local sentence transformers or the OpenAI embeddings endpoint

import logging
from typing import List, Optional, Protocol

import numpy as np
import openai
from sentence_transformers import SentenceTransformer

from config.settings import Settings, EmbeddingProviderType

logger = logging.getLogger(__name__)

# Inputs per request accepted by the embeddings endpoint
OPENAI_BATCH_SIZE = 100


class EmbeddingProvider(Protocol):
    """Given text, return a fixed-length vector."""

    def embed_documents(self, texts: List[str]) -> np.ndarray:
        ...

    def embed_query(self, text: str) -> np.ndarray:
        ...


class SentenceTransformerEmbeddings:
    """Embeddings computed locally with sentence-transformers"""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self.model = None
        self._load_model()

    def _load_model(self):
        """Load the sentence transformer model"""
        try:
            logger.info(f"Loading embedding model: {self.model_name}")
            self.model = SentenceTransformer(self.model_name)
            logger.info(f"Model loaded successfully. Embedding dimension: {self.model.get_sentence_embedding_dimension()}")
        except Exception as e:
            logger.error(f"Failed to load embedding model: {e}")
            raise

    def embed_documents(self, texts: List[str]) -> np.ndarray:
        """Generate embeddings for multiple texts efficiently"""
        if self.model is None:
            raise RuntimeError("Model not loaded")
        cleaned_texts = [text.strip() if text else "" for text in texts]
        embeddings = self.model.encode(cleaned_texts, convert_to_numpy=True)
        return np.asarray(embeddings, dtype=np.float32)

    def embed_query(self, text: str) -> np.ndarray:
        """Generate embedding for a single text"""
        return self.embed_documents([text])[0]


class OpenAIEmbeddings:
    """Embeddings from the OpenAI API"""

    def __init__(self, api_key: str, model: str = "text-embedding-ada-002", timeout: float = 30.0):
        self.model_name = model
        self.client = openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def embed_documents(self, texts: List[str]) -> np.ndarray:
        vectors = []
        for start in range(0, len(texts), OPENAI_BATCH_SIZE):
            batch = [text.strip() or " " for text in texts[start:start + OPENAI_BATCH_SIZE]]
            response = self.client.embeddings.create(model=self.model_name, input=batch)
            vectors.extend(item.embedding for item in sorted(response.data, key=lambda d: d.index))
        return np.asarray(vectors, dtype=np.float32)

    def embed_query(self, text: str) -> np.ndarray:
        return self.embed_documents([text])[0]


def create_embedding_provider(settings: Settings) -> Optional[EmbeddingProvider]:
    """Build the configured provider, or None when it cannot be used"""
    if settings.embedding_provider == EmbeddingProviderType.LOCAL:
        return SentenceTransformerEmbeddings(settings.local_embedding_model)

    if not settings.is_llm_configured:
        logger.warning("OpenAI embeddings selected but no API key configured")
        return None

    return OpenAIEmbeddings(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        timeout=settings.llm_timeout_seconds,
    )
