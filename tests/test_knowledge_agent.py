"""Tests for retrieval-augmented answering and its fallbacks."""

import pytest

from agents.knowledge import (
    APOLOGY_ANSWER,
    DIRECT_SYSTEM_INSTRUCTION,
    GROUNDED_SYSTEM_INSTRUCTION,
    INSUFFICIENT_INFORMATION_ANSWER,
    KnowledgeAgent,
    build_context,
)
from agents.llm import LLMError
from indexer.vector_store import SearchHit, VectorIndex
from pipelines.chunker import DocumentChunk
from pipelines.indexer import IndexSnapshot, KnowledgeBase

SOURCE = "https://help.example.com/"

TEXTS = [
    "Pix é um meio de pagamento instantâneo disponível 24 horas.",
    "A maquininha aceita cartões de débito e crédito.",
    "Transferências via Pix não têm tarifa para pessoa física.",
    "O rendimento da conta é calculado diariamente.",
    "Boletos podem ser pagos pelo aplicativo.",
]


@pytest.fixture
def knowledge_base(embedder):
    chunks = [DocumentChunk(source_url=SOURCE + f"article-{i}", text=text, ordinal=0)
              for i, text in enumerate(TEXTS)]
    index = VectorIndex.from_chunks(chunks, embedder.embed_documents(TEXTS))
    return KnowledgeBase(IndexSnapshot(index=index, sources=(SOURCE,)))


def test_build_context_annotates_sources():
    hits = [SearchHit(DocumentChunk("https://a.example.com/", "texto a", 0), 0.9),
            SearchHit(DocumentChunk("https://b.example.com/", "texto b", 1), 0.5)]

    assert build_context(hits) == (
        "[Fonte: https://a.example.com/]\ntexto a\n\n"
        "[Fonte: https://b.example.com/]\ntexto b"
    )


class TestKnowledgeAgent:
    @pytest.mark.asyncio
    async def test_grounded_answer_uses_top_k_context(self, mock_llm, embedder, knowledge_base):
        mock_llm.complete.return_value = "Pix é um pagamento instantâneo."
        agent = KnowledgeAgent(mock_llm, embedder, knowledge_base, top_k=3)

        result = await agent.answer("O que é Pix?")

        assert result.success
        assert result.answer == "Pix é um pagamento instantâneo."
        assert result.sources == [SOURCE]

        system_instruction, prompt = mock_llm.complete.await_args.args
        assert system_instruction == GROUNDED_SYSTEM_INSTRUCTION
        assert prompt.count("[Fonte:") == 3
        assert prompt.endswith("Pergunta: O que é Pix?")
        assert embedder.query_calls == 1

    @pytest.mark.asyncio
    async def test_without_index_returns_insufficient_information(self, mock_llm, embedder):
        agent = KnowledgeAgent(mock_llm, embedder, KnowledgeBase())

        result = await agent.answer("O que é Pix?")

        assert not result.success
        assert result.answer == INSUFFICIENT_INFORMATION_ANSWER
        assert result.sources == []
        mock_llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_without_model_returns_insufficient_information(self, embedder, knowledge_base):
        result = await KnowledgeAgent(None, embedder, knowledge_base).answer("O que é Pix?")

        assert not result.success
        assert result.answer == INSUFFICIENT_INFORMATION_ANSWER

    @pytest.mark.asyncio
    async def test_grounded_failure_falls_back_to_direct_answer(self, mock_llm, embedder, knowledge_base):
        mock_llm.complete.side_effect = [LLMError("context rejected"), "Resposta direta."]
        agent = KnowledgeAgent(mock_llm, embedder, knowledge_base)

        result = await agent.answer("O que é Pix?")

        assert result.success
        assert result.answer == "Resposta direta."
        assert result.sources == []
        assert mock_llm.complete.await_args.args == (DIRECT_SYSTEM_INSTRUCTION, "O que é Pix?")

    @pytest.mark.asyncio
    async def test_embedding_failure_falls_back_to_direct_answer(self, mock_llm, embedder, knowledge_base):
        def broken(text):
            raise RuntimeError("embedding service down")

        embedder.embed_query = broken
        mock_llm.complete.return_value = "Resposta direta."

        result = await KnowledgeAgent(mock_llm, embedder, knowledge_base).answer("O que é Pix?")

        assert result.success
        assert result.sources == []
        mock_llm.complete.assert_awaited_once_with(DIRECT_SYSTEM_INSTRUCTION, "O que é Pix?")

    @pytest.mark.asyncio
    async def test_both_calls_failing_returns_apology(self, mock_llm, embedder, knowledge_base):
        mock_llm.complete.side_effect = LLMError("provider down")

        result = await KnowledgeAgent(mock_llm, embedder, knowledge_base).answer("O que é Pix?")

        assert not result.success
        assert result.answer == APOLOGY_ANSWER
        assert mock_llm.complete.await_count == 2
