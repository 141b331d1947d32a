"""
Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from reelrecall.core.config import Settings, settings
from reelrecall.core.env_validation import validate_or_raise
from reelrecall.core.exceptions import ConfigurationError, TransientServiceError
from reelrecall.core.logging import get_logger, setup_logging
from reelrecall.core.rate_limit import WindowRateLimiter
from reelrecall.services.ingestion import IngestionService
from reelrecall.services.llm import AnthropicLanguageModel
from reelrecall.services.notifier import LoggingNotifier, WebhookNotifier
from reelrecall.services.processors.chunker import VideoChunkBuilder
from reelrecall.services.processors.embedder import EmbeddingService
from reelrecall.services.rag.aggregator import CrossChunkAggregator
from reelrecall.services.rag.generator import AnswerGenerator
from reelrecall.services.rag.query_service import QueryEnhancer
from reelrecall.services.rag.reranker import HybridReranker
from reelrecall.services.rag.retriever import MultiStageRetriever
from reelrecall.services.rag.search_service import SearchService
from reelrecall.services.vector_store import create_vector_store
from reelrecall.services.video_analysis import HttpVideoAnalyzer
from reelrecall.tasks.ingestion_queue import IngestionJobQueue

# Setup logging
setup_logging()
logger = get_logger(__name__)

VERSION = "0.1.0"


async def init_services(app: FastAPI, config: Settings) -> None:
    """
    Build the shared service graph and attach it to ``app.state``.

    The embedding client (and its rate limiter) is shared by ingestion and
    search.
    """
    embedder = EmbeddingService(
        api_key=config.OPENAI_API_KEY,
        rate_limiter=WindowRateLimiter(
            max_requests=config.EMBEDDING_RATE_LIMIT_REQUESTS,
            window_seconds=config.EMBEDDING_RATE_LIMIT_WINDOW_SECONDS,
            block=config.EMBEDDING_RATE_LIMIT_BLOCK,
        ),
    )

    vector_store = create_vector_store(config)
    await vector_store.verify()

    llm = AnthropicLanguageModel(api_key=config.ANTHROPIC_API_KEY) if config.ANTHROPIC_API_KEY else None
    if llm is None:
        logger.warning("language_model_disabled", reason="ANTHROPIC_API_KEY not set")

    if config.MESSAGE_WEBHOOK_URL:
        notifier = WebhookNotifier(
            message_url=config.MESSAGE_WEBHOOK_URL,
            video_url=config.VIDEO_WEBHOOK_URL,
        )
    else:
        notifier = LoggingNotifier()

    analyzer = HttpVideoAnalyzer(config.VIDEO_ANALYSIS_URL) if config.VIDEO_ANALYSIS_URL else None

    search_service = SearchService(
        enhancer=QueryEnhancer(llm),
        embedder=embedder,
        retriever=MultiStageRetriever(vector_store),
        aggregator=CrossChunkAggregator(),
        reranker=HybridReranker(),
    )

    ingestion = IngestionService(
        chunk_builder=VideoChunkBuilder(),
        embedder=embedder,
        vector_store=vector_store,
        analyzer=analyzer,
    )

    app.state.embedder = embedder
    app.state.vector_store = vector_store
    app.state.llm = llm
    app.state.notifier = notifier
    app.state.analyzer = analyzer
    app.state.search_service = search_service
    app.state.answer_generator = AnswerGenerator(search_service, llm)
    app.state.ingestion_queue = IngestionJobQueue(ingestion, vector_store, notifier)


async def close_services(app: FastAPI) -> None:
    """Stop the queue, then release client resources."""
    state = app.state
    await state.ingestion_queue.shutdown()

    await state.embedder.shutdown()
    await state.vector_store.close()
    await state.notifier.close()
    if state.llm is not None:
        await state.llm.close()
    if state.analyzer is not None:
        await state.analyzer.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan events.
    Handles startup and shutdown tasks.
    """
    # Startup
    logger.info(
        "starting_application",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        version=VERSION,
    )

    validate_or_raise(settings)
    await init_services(app, settings)

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await close_services(app)


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Retrieval-augmented memory for short-form videos",
    version=VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check(request: Request) -> JSONResponse:
    """
    Health check endpoint for monitoring.
    Includes vector store connectivity check.
    """
    vector_store = getattr(request.app.state, "vector_store", None)
    store_healthy = False
    if vector_store is not None:
        try:
            await vector_store.describe()
            store_healthy = True
        except TransientServiceError as e:
            logger.warning("vector_store_health_check_failed", error=str(e))

    queue = getattr(request.app.state, "ingestion_queue", None)

    return JSONResponse(
        status_code=200 if store_healthy else 503,
        content={
            "status": "healthy" if store_healthy else "unhealthy",
            "app_name": settings.APP_NAME,
            "environment": settings.APP_ENV,
            "version": VERSION,
            "vector_db_type": settings.VECTOR_DB_TYPE,
            "vector_store": "connected" if store_healthy else "disconnected",
            "queued_jobs": queue.pending_count if queue is not None else 0,
        }
    )


@app.get("/", tags=["root"])
async def root() -> JSONResponse:
    """
    Root endpoint.
    """
    return JSONResponse(
        content={
            "message": f"Welcome to {settings.APP_NAME} API",
            "version": VERSION,
            "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
        }
    )


# Include API routers
from reelrecall.api import api_router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error(
        "configuration_error",
        error=exc.message,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(status_code=500, content={"error": exc.to_dict()})


@app.exception_handler(TransientServiceError)
async def transient_exception_handler(request: Request, exc: TransientServiceError) -> JSONResponse:
    logger.warning(
        "upstream_service_unavailable",
        error=exc.message,
        error_code=exc.error_code,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(status_code=503, content={"error": exc.to_dict()})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled errors.
    """
    logger.error(
        "unhandled_exception",
        error=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
            }
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "reelrecall.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
