"""Chat orchestration: route a message, run one handler, compose the reply."""

import logging
import time
from typing import Awaitable, Callable, Dict, Optional, Tuple

from config.settings import Settings
from indexer.embeddings import EmbeddingProvider, create_embedding_provider
from observability.logging import get_structured_logger, elapsed_ms
from pipelines.chunker import DocumentChunker
from pipelines.crawler import WebCrawler
from pipelines.indexer import IndexSnapshot, KnowledgeBase
from .calculator import MathAgent
from .knowledge import KnowledgeAgent
from .llm import LLMClient
from .personality import PersonalityDecorator
from .router import RouterAgent
from .types import AgentResult, AgentType, ChatResponse, WorkflowStep

logger = logging.getLogger(__name__)
decision_log = get_structured_logger(__name__, component="ChatService")

FAILURE_RESPONSE = (
    "Desculpe, não consegui processar sua mensagem agora. Tente novamente em instantes."
)

Handler = Callable[..., Awaitable[AgentResult]]


class EmbeddingUnavailableError(RuntimeError):
    """The knowledge index cannot be built without an embedding capability."""


class ChatOrchestrator:
    """Sequences router, handler and response decoration for one message."""

    def __init__(self,
                 router: RouterAgent,
                 knowledge_agent: KnowledgeAgent,
                 math_agent: MathAgent,
                 personality: Optional[PersonalityDecorator] = None):
        self.router = router
        self.knowledge_agent = knowledge_agent
        self.math_agent = math_agent
        self.personality = personality or PersonalityDecorator()
        self._handlers: Dict[AgentType, Tuple[str, Handler]] = {
            AgentType.KNOWLEDGE: ("KnowledgeAgent", knowledge_agent.answer),
            AgentType.MATH: ("MathAgent", math_agent.evaluate),
        }

    @property
    def knowledge_base(self) -> KnowledgeBase:
        return self.knowledge_agent.knowledge_base

    @property
    def degraded(self) -> bool:
        """True when no language model is available."""
        return not self.math_agent.uses_model

    async def handle(self, message: str,
                     user_id: Optional[str] = None,
                     conversation_id: Optional[str] = None) -> ChatResponse:
        """Answer one chat message.

        Raises ValueError for an empty message. Handler failures never
        propagate: the caller always gets a response object.
        """
        if not message or not message.strip():
            raise ValueError("message must not be empty")

        start = time.perf_counter()
        workflow = []

        try:
            decision = self.router.route(message, conversation_id=conversation_id, user_id=user_id)
            workflow.append(WorkflowStep(agent="RouterAgent", decision=decision.agent.value))

            agent_name, handler = self._handlers[decision.agent]
            workflow.append(WorkflowStep(agent=agent_name))
            result = await handler(message, conversation_id=conversation_id, user_id=user_id)
        except Exception as e:
            decision_log.record("chat_failed", f"Error processing chat message: {e}",
                                level=logging.ERROR, conversation_id=conversation_id,
                                user_id=user_id, execution_time_ms=elapsed_ms(start),
                                error_type=type(e).__name__)
            return ChatResponse(response=FAILURE_RESPONSE,
                                source_agent_response=FAILURE_RESPONSE,
                                agent_workflow=workflow)

        response = self.personality.decorate(result.answer)
        decision_log.record("chat_completed", "Chat message processed",
                            conversation_id=conversation_id, user_id=user_id,
                            execution_time_ms=elapsed_ms(start),
                            decision=" → ".join(step.agent for step in workflow),
                            success=result.success)
        return ChatResponse(response=response,
                            source_agent_response=result.answer,
                            agent_workflow=workflow)


def build_orchestrator(settings: Settings,
                       knowledge_base: Optional[KnowledgeBase] = None,
                       embedder: Optional[EmbeddingProvider] = None,
                       llm: Optional[LLMClient] = None) -> ChatOrchestrator:
    """Wire the agents from settings.

    Without a configured model the agents run in degraded mode: no embedder
    is created, the knowledge agent answers from static text and the math
    agent uses its local evaluator.
    """
    llm = llm or LLMClient(settings)
    if embedder is None and llm.is_configured:
        embedder = create_embedding_provider(settings)
    if not llm.is_configured:
        logger.warning("Language model not configured; running in degraded mode")

    knowledge_agent = KnowledgeAgent(
        llm=llm if llm.is_configured else None,
        embedder=embedder,
        knowledge_base=knowledge_base or KnowledgeBase(),
        top_k=settings.knowledge_top_k,
    )
    return ChatOrchestrator(
        router=RouterAgent(),
        knowledge_agent=knowledge_agent,
        math_agent=MathAgent(llm),
        personality=PersonalityDecorator(seed=settings.personality_seed),
    )


async def rebuild_knowledge_index(settings: Settings, orchestrator: ChatOrchestrator) -> IndexSnapshot:
    """Crawl the configured URLs and publish a fresh index.

    Raises EmbeddingUnavailableError in degraded mode.
    """
    embedder = orchestrator.knowledge_agent.embedder
    if embedder is None:
        raise EmbeddingUnavailableError("No embedding provider configured; cannot build the knowledge index")

    chunker = DocumentChunker(settings.knowledge_chunk_size, settings.knowledge_chunk_overlap)
    async with WebCrawler(max_pages=settings.crawl_max_pages,
                          timeout_ms=settings.crawl_timeout_ms) as crawler:
        return await orchestrator.knowledge_base.rebuild(
            settings.knowledge_base_urls, crawler, chunker, embedder
        )
