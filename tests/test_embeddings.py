"""Unit tests for the embedding providers.

Tests cover:
- SentenceTransformerEmbeddings model loading and encoding
- OpenAIEmbeddings request batching and ordering
- Provider selection from settings
"""

from types import SimpleNamespace
from unittest.mock import Mock, patch

import numpy as np
import pytest

from config.settings import EmbeddingProviderType, Settings
from indexer.embeddings import (
    OPENAI_BATCH_SIZE,
    OpenAIEmbeddings,
    SentenceTransformerEmbeddings,
    create_embedding_provider,
)


class TestSentenceTransformerEmbeddings:
    """Test suite for the local embedding provider."""

    @pytest.fixture
    def mock_sentence_transformer(self):
        mock_model = Mock()
        mock_model.encode.return_value = np.array([[0.1, 0.2, 0.3], [0.4, 0.5, 0.6]])
        mock_model.get_sentence_embedding_dimension.return_value = 3
        return mock_model

    def test_initialization_loads_model(self, mock_sentence_transformer):
        with patch('indexer.embeddings.SentenceTransformer', return_value=mock_sentence_transformer) as mock_st:
            provider = SentenceTransformerEmbeddings('custom-model')

        mock_st.assert_called_once_with('custom-model')
        assert provider.model is mock_sentence_transformer

    def test_load_failure_propagates(self):
        with patch('indexer.embeddings.SentenceTransformer', side_effect=OSError("model not found")):
            with pytest.raises(OSError):
                SentenceTransformerEmbeddings('missing-model')

    def test_embed_documents(self, mock_sentence_transformer):
        with patch('indexer.embeddings.SentenceTransformer', return_value=mock_sentence_transformer):
            provider = SentenceTransformerEmbeddings()

        embeddings = provider.embed_documents([" first ", "second"])

        assert embeddings.shape == (2, 3)
        assert embeddings.dtype == np.float32
        mock_sentence_transformer.encode.assert_called_once_with(["first", "second"], convert_to_numpy=True)

    def test_embed_query_returns_single_vector(self, mock_sentence_transformer):
        mock_sentence_transformer.encode.return_value = np.array([[0.1, 0.2, 0.3]])
        with patch('indexer.embeddings.SentenceTransformer', return_value=mock_sentence_transformer):
            provider = SentenceTransformerEmbeddings()

        vector = provider.embed_query("O que é Pix?")

        assert vector.shape == (3,)


def embedding_response(batch, offset=0):
    """Fake embeddings response, returned out of order."""
    data = [SimpleNamespace(index=i, embedding=[float(offset + i), 1.0]) for i in range(len(batch))]
    return SimpleNamespace(data=list(reversed(data)))


class TestOpenAIEmbeddings:
    """Test suite for the OpenAI embedding provider."""

    @pytest.fixture
    def mock_client(self):
        client = Mock()
        client.embeddings.create.side_effect = lambda model, input: embedding_response(input)
        return client

    def test_client_configuration(self):
        with patch('indexer.embeddings.openai.OpenAI') as mock_openai:
            OpenAIEmbeddings(api_key="sk-test", model="text-embedding-3-small", timeout=5.0)

        mock_openai.assert_called_once_with(api_key="sk-test", timeout=5.0, max_retries=0)

    def test_results_follow_input_order(self, mock_client):
        with patch('indexer.embeddings.openai.OpenAI', return_value=mock_client):
            provider = OpenAIEmbeddings(api_key="sk-test")

        vectors = provider.embed_documents(["a", "b", "c"])

        np.testing.assert_allclose(vectors[:, 0], [0.0, 1.0, 2.0])
        mock_client.embeddings.create.assert_called_once_with(
            model="text-embedding-ada-002", input=["a", "b", "c"]
        )

    def test_large_inputs_are_batched(self, mock_client):
        with patch('indexer.embeddings.openai.OpenAI', return_value=mock_client):
            provider = OpenAIEmbeddings(api_key="sk-test")

        vectors = provider.embed_documents([f"chunk {i}" for i in range(OPENAI_BATCH_SIZE + 5)])

        assert vectors.shape == (OPENAI_BATCH_SIZE + 5, 2)
        batch_sizes = [len(call.kwargs["input"]) for call in mock_client.embeddings.create.call_args_list]
        assert batch_sizes == [OPENAI_BATCH_SIZE, 5]

    def test_blank_text_is_replaced(self, mock_client):
        with patch('indexer.embeddings.openai.OpenAI', return_value=mock_client):
            provider = OpenAIEmbeddings(api_key="sk-test")

        provider.embed_query("   ")

        assert mock_client.embeddings.create.call_args.kwargs["input"] == [" "]


class TestCreateEmbeddingProvider:
    def test_openai_without_key_gives_none(self):
        assert create_embedding_provider(Settings(openai_api_key="")) is None

    def test_openai_with_key(self):
        with patch('indexer.embeddings.openai.OpenAI'):
            provider = create_embedding_provider(Settings(openai_api_key="sk-test",
                                                          embedding_model="text-embedding-3-small"))

        assert isinstance(provider, OpenAIEmbeddings)
        assert provider.model_name == "text-embedding-3-small"

    def test_local_provider(self):
        settings = Settings(embedding_provider=EmbeddingProviderType.LOCAL,
                            local_embedding_model="paraphrase-multilingual-MiniLM-L12-v2")
        with patch('indexer.embeddings.SentenceTransformer') as mock_st:
            provider = create_embedding_provider(settings)

        assert isinstance(provider, SentenceTransformerEmbeddings)
        mock_st.assert_called_once_with("paraphrase-multilingual-MiniLM-L12-v2")
