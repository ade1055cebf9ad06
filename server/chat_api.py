from contextlib import asynccontextmanager
from typing import List, Optional
import logging

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from agents.orchestrator import (
    ChatOrchestrator,
    EmbeddingUnavailableError,
    build_orchestrator,
    rebuild_knowledge_index
)
from config.settings import Settings, load_settings
from pipelines.indexer import IndexBuildError, IndexBuildInProgressError
from server.security import PromptSanitizer, UnsafeInputError

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be empty")
        return value


class AgentWorkflowStep(BaseModel):
    agent: str
    decision: Optional[str] = None


class ChatReply(BaseModel):
    response: str
    source_agent_response: str
    agent_workflow: List[AgentWorkflowStep]


def create_app(settings: Optional[Settings] = None,
               orchestrator: Optional[ChatOrchestrator] = None,
               sanitizer: Optional[PromptSanitizer] = None) -> FastAPI:
    """Build the chat API.

    On startup the knowledge index is built unless disabled or the model
    provider is unconfigured. A failed build leaves the service answering
    without an index and `/ready` reporting 503.
    """
    settings = settings or load_settings()
    orchestrator = orchestrator or build_orchestrator(settings)
    sanitizer = sanitizer or PromptSanitizer()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not settings.build_index_on_startup:
            logger.info("Knowledge index build on startup disabled")
        elif orchestrator.degraded:
            logger.warning("Skipping knowledge index build: language model not configured")
        else:
            try:
                snapshot = await rebuild_knowledge_index(settings, orchestrator)
                logger.info(f"Knowledge index ready with {snapshot.chunk_count} chunks")
            except (IndexBuildError, EmbeddingUnavailableError) as e:
                logger.critical(f"Knowledge index unavailable, serving without retrieval: {e}")
        yield

    app = FastAPI(title="Helpdesk Agents API", version=API_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "message": "Helpdesk Agents API",
            "version": API_VERSION,
            "docs": "/docs",
            "health": "/health"
        }

    @app.get("/health")
    async def health():
        snapshot = orchestrator.knowledge_base.snapshot
        return {
            "status": "ok",
            "degraded": orchestrator.degraded,
            "index_ready": snapshot is not None,
            "indexed_chunks": snapshot.chunk_count if snapshot else 0
        }

    @app.get("/ready")
    async def ready():
        if not orchestrator.knowledge_base.is_ready:
            return JSONResponse(status_code=503, content={"status": "not_ready"})
        return {"status": "ready"}

    @app.post("/chat", response_model=ChatReply, response_model_exclude_none=True)
    async def chat(request: ChatRequest):
        try:
            message = sanitizer.process_user_input(request.message)
        except UnsafeInputError as e:
            logger.warning(f"Security violation detected: {e}")
            raise HTTPException(status_code=400, detail="Input contains potentially harmful content")

        if not message:
            raise HTTPException(status_code=422, detail="message must not be empty")

        reply = await orchestrator.handle(
            message,
            user_id=request.user_id,
            conversation_id=request.conversation_id
        )
        return reply.to_dict()

    @app.post("/knowledge/rebuild")
    async def rebuild_knowledge():
        try:
            snapshot = await rebuild_knowledge_index(settings, orchestrator)
        except EmbeddingUnavailableError as e:
            raise HTTPException(status_code=503, detail=str(e))
        except IndexBuildInProgressError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except IndexBuildError as e:
            raise HTTPException(status_code=502, detail=str(e))

        return {
            "status": "rebuilt",
            "chunks": snapshot.chunk_count,
            "sources": list(snapshot.sources)
        }

    return app


def main():
    """Run the API with uvicorn."""
    import uvicorn
    from observability.logging import setup_logging

    settings = load_settings()
    setup_logging(level=settings.log_level, use_json=settings.log_json)
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
