"""
Deck Generation Service - main entry point.

Exposes the generation pipeline over HTTP and WebSocket:

- POST /api/generate   run the pipeline, return {document, record}
- POST /api/recover    run only the RecoveryEngine on raw model text
- GET  /strategies     strategy catalog
- WS   /ws             generate/cancel with per-stage status messages
"""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything reads settings
load_dotenv()

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from starlette.requests import HTTPConnection

# Configure Logfire early in startup
from src.utils.logfire_config import configure_logfire, instrument_agents
if configure_logfire():
    instrument_agents()

from src.agents.generation_pipeline import GenerationPipeline, PipelineContext
from src.core.errors import PipelineError, PipelineErrorCode
from src.handlers.websocket import WebSocketHandler
from src.models.generation import GenerationRequest
from src.utils.logger import setup_logger
from config.settings import get_settings

# Initialize
logger = setup_logger(__name__)
settings = get_settings()

ERROR_STATUS = {
    PipelineErrorCode.CLASSIFICATION_EXHAUSTED: 422,
    PipelineErrorCode.SERVICE_UNAVAILABLE: 503,
    PipelineErrorCode.EMPTY_GENERATION: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting Deck Generation API...")

    if not settings.API_ENABLED:
        logger.warning("API_ENABLED is set to False - generation endpoints are DISABLED")
        yield
        logger.info("Shutting down Deck Generation API (was disabled)...")
        return

    try:
        settings.validate_settings()
        logger.info("Settings validated")
    except ValueError as e:
        logger.error(f"FATAL: {str(e)}")
        raise RuntimeError("Cannot start with invalid configuration. See logs for details.") from e

    app.state.context = PipelineContext.from_settings(settings)
    logger.info(f"Pipeline ready with {len(app.state.context.registry)} strategies")

    yield
    logger.info("Shutting down Deck Generation API...")


app = FastAPI(
    title="Deck Generation API",
    version="1.0.0",
    description="Topic in, slide deck document out",
    lifespan=lifespan
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_context(connection: HTTPConnection) -> PipelineContext:
    """Shared PipelineContext built at startup."""
    if not settings.API_ENABLED:
        raise HTTPException(status_code=503, detail="Service is disabled")
    context = getattr(connection.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Pipeline is not initialized")
    return context


class RecoverBody(BaseModel):
    raw: str = Field(..., description="Raw text service output")


@app.post("/api/generate")
async def generate(request: GenerationRequest, context: PipelineContext = Depends(get_context)):
    """Run the full pipeline for one request."""
    try:
        result = await GenerationPipeline(context).run(request)
    except PipelineError as e:
        raise HTTPException(
            status_code=ERROR_STATUS.get(e.code, 500),
            detail={**e.to_dict(), "record": e.record.to_dict() if e.record else None},
        ) from e

    return {"document": result.document.to_wire(), "record": result.record.to_dict()}


@app.post("/api/recover")
async def recover(body: RecoverBody, context: PipelineContext = Depends(get_context)):
    """Recover a document from raw model output. Never fails."""
    outcome = context.recovery_engine.recover_with_outcome(body.raw)
    return {
        "document": outcome.document.to_wire(),
        "level": int(outcome.level),
        "actions": outcome.actions,
    }


@app.get("/strategies")
async def list_strategies(context: PipelineContext = Depends(get_context)):
    """List registered strategies."""
    strategies = context.registry.describe()
    return {"total": len(strategies), "strategies": strategies}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Generate decks over a WebSocket. See WebSocketHandler for the protocol."""
    if not settings.API_ENABLED:
        logger.warning("WebSocket connection rejected - API is disabled")
        await websocket.close(code=1013, reason="Service temporarily unavailable - API disabled")
        return

    context = getattr(websocket.app.state, "context", None)
    if context is None:
        logger.error("WebSocket connection before pipeline initialization")
        await websocket.close(code=1011, reason="Server error during initialization")
        return

    await WebSocketHandler(context).handle_connection(websocket)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy" if settings.API_ENABLED else "disabled",
        "api_enabled": settings.API_ENABLED,
        "service": "deck-generation-core",
        "version": "1.0.0",
        "environment": settings.APP_ENV,
        "pipeline_ready": getattr(app.state, "context", None) is not None,
    }


# API info endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Deck Generation API",
        "description": "Classify a topic, pick a strategy, generate and recover a slide deck",
        "version": "1.0.0",
        "endpoints": {
            "generate": "POST /api/generate",
            "recover": "POST /api/recover",
            "strategies": "/strategies",
            "websocket": "/ws",
            "health": "/health",
        },
    }


if __name__ == "__main__":
    port = int(os.getenv("PORT", str(settings.API_PORT)))
    log_level = "debug" if settings.DEBUG else "info"

    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=port,
        log_level=log_level,
        reload=settings.DEBUG
    )
