from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import uvicorn
import logging

from gallery.storage.base import BlobStore, MetadataStore
from gallery.storage.dynamodb import DynamoMetadataStore
from gallery.storage.s3 import S3BlobStore
from gallery.settings import settings
from gallery.routers.gallery import router as gallery_router
from gallery.exceptions import add_exception_handlers, generic_exception_handler

logging.basicConfig(level=settings.log_level)
log = logging.getLogger("gallery-api")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Builds the S3 and DynamoDB stores unless they were injected, and
        closes the ones it built.
    """
    owned = []
    if app.state.blob_store is None:
        app.state.blob_store = S3BlobStore()
        owned.append(app.state.blob_store)
    if app.state.metadata_store is None:
        app.state.metadata_store = DynamoMetadataStore()
        owned.append(app.state.metadata_store)
    yield
    # Cleanup resources
    for store in owned:
        store.close()

async def preflight(request: Request, call_next):
    """Answers every OPTIONS request before routing.

    Unhandled errors are rendered here so their 500 response still passes
    through the CORS layer.
    """
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)
    try:
        return await call_next(request)
    except Exception as exc:
        return await generic_exception_handler(request, exc)

def create_app(
    blob_store: Optional[BlobStore] = None,
    metadata_store: Optional[MetadataStore] = None,
) -> FastAPI:
    """Builds the API around the given stores."""
    app = FastAPI(
        title=settings.app_title,
        lifespan=lifespan,
        description="Image Gallery API",
    )
    app.state.blob_store = blob_store
    app.state.metadata_store = metadata_store

    # Add exception handlers
    add_exception_handlers(app)

    # Preflight first, then CORS headers on regular responses
    app.middleware("http")(preflight)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add the routers
    app.include_router(gallery_router)

    # Check Health
    @app.get("/")
    def read_root():
        """
            Default end point

        """
        return "Gallery API is running."

    return app

app = create_app()

if __name__ == "__main__":
    uvicorn.run("gallery.main:app", host="0.0.0.0", port=8000, reload=True)
