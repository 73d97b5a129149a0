"""FastAPI application for the Woodshop Assistant.

Provides the streaming chat endpoint and the media endpoint that turns a
completed answer into video references and related products.
"""

import json
import os
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from src.rag_pipeline.config import get_config
from src.rag_pipeline.errors import ChatRequestFailed
from src.rag_pipeline.pipeline import ChatPipeline
from src.rag_pipeline.schemas import ChatRequest, RelevanceLabel
from src.utils.clients import open_dependencies
from src.utils.logging import get_logger

logger = get_logger(__name__)

# Check if we're in production
is_production = os.getenv("ENVIRONMENT") == "production"

if not is_production:
    # Development: prioritize .env file
    project_root = Path(__file__).resolve().parent.parent.parent
    dotenv_path = project_root / ".env"
    load_dotenv(dotenv_path, override=True)
else:
    # Production: use cloud platform env vars only
    load_dotenv()

GENERIC_ERROR_MESSAGE = "Sorry, something went wrong while answering your question. Please try again."


# ==============================================================================
# Lifespan Management
# ==============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[misc]
    """Lifecycle manager for the FastAPI application.

    Opens the shared clients once, builds the pipeline on app.state, and
    releases the clients on shutdown.
    """
    logger.info("application_startup_started")

    config = get_config()

    try:
        async with open_dependencies(config) as deps:
            app.state.pipeline = ChatPipeline.from_deps(deps, config)
            logger.info("application_startup_completed")

            yield  # Application runs here

            logger.info("application_shutdown_started")
            app.state.pipeline = None
    except Exception:
        logger.exception("application_lifespan_failed")
        raise

    logger.info("application_shutdown_completed")


# ==============================================================================
# FastAPI Application Setup
# ==============================================================================

app = FastAPI(
    title="Woodshop Assistant API",
    description="Woodworking RAG assistant with streamed answers, video deep links and product matches",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_pipeline(request: Request) -> ChatPipeline:
    """Resolve the pipeline built during startup.

    Raises:
        HTTPException: 503 if the application has not finished starting.
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        logger.error("pipeline_unavailable")
        raise HTTPException(status_code=503, detail="Assistant is not ready")
    return pipeline


# ==============================================================================
# Request/Response Models
# ==============================================================================


class MediaRequest(BaseModel):
    """Request model for the media endpoint."""

    answer: str
    relevance: RelevanceLabel | None = None


# ==============================================================================
# Helper Functions
# ==============================================================================


def encode_chunk(data: dict[str, Any]) -> bytes:
    """Encode one newline-delimited JSON chunk of the chat stream."""
    return json.dumps(data).encode("utf-8") + b"\n"


# ==============================================================================
# API Endpoints
# ==============================================================================


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint.

    Returns:
        Health status and timestamp.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": {
            "pipeline": getattr(request.app.state, "pipeline", None) is not None,
        },
    }


@app.post("/api/chat")
async def chat_endpoint(
    request: ChatRequest,
    pipeline: ChatPipeline = Depends(get_pipeline),
):
    """Chat endpoint streaming the answer as newline-delimited JSON.

    Each chunk is {"text": <delta>}. The last line is either
    {"text": <full answer>, "relevance": <label>, "complete": true} or, when
    the request failed, {"error": ..., "reason": ..., "partial": bool,
    "complete": true}.
    """
    logger.info(
        "chat_request_received",
        question_length=len(request.question),
        history_turns=len(request.history),
    )

    run = pipeline.start(request)

    async def stream_response():
        """Inner async generator for streaming the pipeline output."""
        try:
            async for chunk in run.stream():
                yield encode_chunk({"text": chunk})
        except ChatRequestFailed as e:
            yield encode_chunk(
                {
                    "error": GENERIC_ERROR_MESSAGE,
                    "reason": e.reason,
                    "partial": e.is_cut_off,
                    "complete": True,
                }
            )
            return

        yield encode_chunk(
            {
                "text": run.answer_text,
                "relevance": run.label.value if run.label else None,
                "complete": True,
            }
        )

    return StreamingResponse(stream_response(), media_type="text/plain")


@app.post("/api/chat/media")
async def media_endpoint(
    request: MediaRequest,
    pipeline: ChatPipeline = Depends(get_pipeline),
):
    """Compute video references and related products for a completed answer.

    Returns:
        {"videoReferences": {ordinal: VideoReference}, "relatedProducts": [Product]}
    """
    media = await pipeline.collect_media(request.answer, request.relevance)
    return media.model_dump(by_alias=True)
