"""Collection fallback API.

Drives collection render sessions for a browser host:
- Classification and identifier resolution
- Unsupported-render detection from reported signals
- Fallback embed URLs, retries and policy preflight
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from collection_fallback import __version__
from collection_fallback.api.routes import collections, embeds
from collection_fallback.collection.sessions import get_session_store
from collection_fallback.config import get_settings
from collection_fallback.detection.signals import get_signal_registry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: load settings and failure markers
    logger.info("Loading settings...")
    settings = get_settings()
    logger.info(
        f"Embedding via {settings.embed_host}, "
        f"detection timeout {settings.detection_timeout_seconds}s"
    )

    logger.info("Loading signal definitions...")
    signals = get_signal_registry()
    logger.info(f"Loaded {len(signals.definitions.failure_phrases)} failure phrases")

    logger.info("Collection fallback API ready")
    yield
    # Shutdown: unmount whatever is still mounted
    store = get_session_store()
    logger.info(f"Shutting down, unmounting {store.count()} sessions")
    store.clear()


# Create FastAPI app
app = FastAPI(
    title="Collection Fallback API",
    description="""
## Collection Fallback

Detects collection views the wrapped renderer cannot display and
substitutes an embedded external view.

### Key Endpoints

- `POST /v1/collections/resolve` - Classify a request and resolve its ids
- `POST /v1/collections/sessions` - Mount a request
- `POST /v1/collections/sessions/{id}/surface` - Report a surface change
- `POST /v1/collections/sessions/{id}/diagnostics` - Report a diagnostic message
- `POST /v1/collections/sessions/{id}/frame/{load|error|access}` - Frame events
- `GET /v1/embeds/{content_id}/variants` - Candidate embed URLs
- `POST /v1/embeds/preflight` - Check the target's framing headers
""",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers with /v1 prefix
app.include_router(collections.router, prefix="/v1")
app.include_router(embeds.router, prefix="/v1")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Collection Fallback API",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "collections": "/v1/collections",
            "embeds": "/v1/embeds",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    settings = get_settings()
    signals = get_signal_registry()
    return {
        "status": "healthy",
        "sessions_active": get_session_store().count(),
        "embed_host": settings.embed_host,
        "failure_phrases_loaded": len(signals.definitions.failure_phrases),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "collection_fallback.api.main:app",
        host="0.0.0.0",
        port=8001,
        reload=True,
    )
