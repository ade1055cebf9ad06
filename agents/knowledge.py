"""Knowledge agent: answers questions from the crawled help center.

Answer tiers, tried in order for each question:

- Grounded: embed the question, take the top-k chunks from the published
  index and ask the model to answer only from that context. Sources are the
  knowledge base URLs loaded into the index.
- Direct: if grounded answering fails, ask the model without context.
  No sources are cited.
- Apology: if the direct call fails too, return a fixed apology with
  ``success=False``.

Without an index (the model provider was not configured, or the build
failed) the agent returns a fixed "insufficient information" answer.
"""

import asyncio
import logging
import time
from typing import List, Optional

from indexer.embeddings import EmbeddingProvider
from indexer.vector_store import SearchHit
from observability.logging import get_structured_logger, elapsed_ms
from pipelines.indexer import KnowledgeBase
from .llm import LLMClient
from .types import AgentResult

logger = logging.getLogger(__name__)
decision_log = get_structured_logger(__name__, component="KnowledgeAgent")

GROUNDED_SYSTEM_INSTRUCTION = (
    "Você é um assistente de suporte. Responda à pergunta do usuário usando apenas o "
    "contexto fornecido. Se a resposta não estiver no contexto, diga que não sabe em vez de "
    "inventar. Responda no mesmo idioma da pergunta."
)

DIRECT_SYSTEM_INSTRUCTION = (
    "Você é um assistente prestativo. Responda de forma breve e clara, "
    "no mesmo idioma da pergunta."
)

INSUFFICIENT_INFORMATION_ANSWER = (
    "Desculpe, não tenho informações suficientes para responder a essa pergunta no momento."
)

APOLOGY_ANSWER = (
    "Desculpe, ocorreu um erro ao processar sua pergunta. Tente novamente mais tarde."
)


def build_context(hits: List[SearchHit]) -> str:
    """Retrieved chunk texts, each annotated with its source URL."""
    return "\n\n".join(f"[Fonte: {hit.chunk.source_url}]\n{hit.chunk.text}" for hit in hits)


def build_grounded_prompt(question: str, hits: List[SearchHit]) -> str:
    return f"Contexto:\n{build_context(hits)}\n\nPergunta: {question}"


class KnowledgeAgent:
    """Retrieval-augmented answering over the knowledge index."""

    def __init__(self,
                 llm: Optional[LLMClient],
                 embedder: Optional[EmbeddingProvider],
                 knowledge_base: KnowledgeBase,
                 top_k: int = 3):
        self.llm = llm
        self.embedder = embedder
        self.knowledge_base = knowledge_base
        self.top_k = top_k

    async def answer(self, question: str,
                     conversation_id: Optional[str] = None,
                     user_id: Optional[str] = None) -> AgentResult:
        start = time.perf_counter()
        snapshot = self.knowledge_base.snapshot

        if snapshot is None or self.embedder is None or self.llm is None:
            decision_log.record("insufficient_information", "No knowledge index available",
                                conversation_id=conversation_id, user_id=user_id,
                                execution_time_ms=elapsed_ms(start))
            return AgentResult(success=False, answer=INSUFFICIENT_INFORMATION_ANSWER,
                               execution_time_ms=elapsed_ms(start))

        try:
            query_vector = await asyncio.to_thread(self.embedder.embed_query, question)
            hits = snapshot.index.search(query_vector, self.top_k)
            answer = await self.llm.complete(GROUNDED_SYSTEM_INSTRUCTION,
                                             build_grounded_prompt(question, hits))
        except Exception as e:
            decision_log.record("fallback_taken", f"Grounded answer failed, asking model directly: {e}",
                                level=logging.WARNING, conversation_id=conversation_id,
                                user_id=user_id, execution_time_ms=elapsed_ms(start))
            return await self._answer_directly(question, start, conversation_id, user_id)

        decision_log.record("grounded_answer", "KnowledgeAgent execution",
                            conversation_id=conversation_id, user_id=user_id,
                            execution_time_ms=elapsed_ms(start), chunks=len(hits),
                            answer_length=len(answer), sources=list(snapshot.sources))
        return AgentResult(success=True, answer=answer, sources=list(snapshot.sources),
                           execution_time_ms=elapsed_ms(start))

    async def _answer_directly(self, question: str, start: float,
                               conversation_id: Optional[str],
                               user_id: Optional[str]) -> AgentResult:
        try:
            answer = await self.llm.complete(DIRECT_SYSTEM_INSTRUCTION, question)
        except Exception as e:
            decision_log.record("static_apology", f"Direct answer failed: {e}",
                                level=logging.ERROR, conversation_id=conversation_id,
                                user_id=user_id, execution_time_ms=elapsed_ms(start))
            return AgentResult(success=False, answer=APOLOGY_ANSWER,
                               execution_time_ms=elapsed_ms(start))

        decision_log.record("direct_answer", "KnowledgeAgent answered without context",
                            conversation_id=conversation_id, user_id=user_id,
                            execution_time_ms=elapsed_ms(start))
        return AgentResult(success=True, answer=answer, execution_time_ms=elapsed_ms(start))
