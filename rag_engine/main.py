"""
Main FastAPI application entry point.
Responsibilities: App setup, router registration, startup/shutdown hooks.
"""
import os

from fastapi import FastAPI

from .routes import documents, search
from .config import EMBED_MODEL, OLLAMA_PULL_ON_STARTUP, UPLOAD_DIR
from .db.migrations import run_sql_migrations
from .dependencies import get_embedder
from .embedding import OllamaEmbeddingProvider, SentenceTransformerEmbeddingProvider
from .ollama_boot import ensure_embedding_model
from .logging_config import logger

# -------------------------------------------------
# App setup
# -------------------------------------------------

app = FastAPI(title="RAG Engine", version="1.0.0")

# Register routers
app.include_router(documents.router)
app.include_router(search.router)


@app.on_event("startup")
async def startup_event():
    """Initialize database, upload directory and embedding model on startup."""
    try:
        logger.info("Running database migrations...")
        run_sql_migrations()
        logger.info("Database migrations completed")

        os.makedirs(UPLOAD_DIR, exist_ok=True)

        embedder = get_embedder()
        if isinstance(embedder, SentenceTransformerEmbeddingProvider):
            logger.info("Preloading embedding model...", model=EMBED_MODEL)
            embedder.preload_model(EMBED_MODEL)
            logger.info("Embedding model ready")
        elif isinstance(embedder, OllamaEmbeddingProvider) and OLLAMA_PULL_ON_STARTUP:
            logger.info("Ensuring Ollama embedding model is available...", model=EMBED_MODEL)
            await ensure_embedding_model(EMBED_MODEL, embedder.base_url)

    except Exception as e:
        logger.error("Startup initialization error", exc_info=e)
        # Continue anyway - search and listing still work without the model


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Application shutting down")
