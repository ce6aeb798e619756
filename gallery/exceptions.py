"""
    Centralized exception handling for the FastAPI application.
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

log = logging.getLogger(__name__)

class APIException(Exception):
    """Base class for API exceptions."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.detail)

class StoreNotConfiguredException(APIException):
    """Exception for a store that was never handed to the application."""
    def __init__(self, store_name: str):
        super().__init__(status_code=500, detail=f"{store_name} is not configured.")

class NoImagesProvidedException(APIException):
    """Exception for uploads without any usable file."""
    def __init__(self, detail: str = "No images provided"):
        super().__init__(status_code=400, detail=detail)

class ImageNotFoundException(APIException):
    """Exception for when an image is not found."""
    def __init__(self, image_id: str):
        super().__init__(status_code=404, detail=f"Image with ID '{image_id}' not found.")

class GroupNotFoundException(APIException):
    """Exception for when a group is not found."""
    def __init__(self, group: str):
        super().__init__(status_code=404, detail=f"Group '{group}' not found.")

class BlobNotFoundException(APIException):
    """Exception for when no stored object matches a requested key."""
    def __init__(self, key: str):
        super().__init__(status_code=404, detail=f"Image '{key}' not found.")

class UploadVerificationException(APIException):
    """Exception for an upload whose readback is missing or empty."""
    def __init__(self, key: str):
        super().__init__(status_code=500, detail=f"Upload failed: verification failed for {key}")

class BlobStoreException(APIException):
    """Exception for blob store (S3) failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

class MetadataStoreException(APIException):
    """Exception for metadata store (DynamoDB) failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    if exc.status_code >= 500:
        log.error(f"API Exception: {exc.detail}", exc_info=exc)
    else:
        log.info(f"API Exception: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handles routing and HTTP exceptions, keeping headers such as Allow."""
    log.info(f"HTTP Exception: {exc.status_code} {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error(f"Unhandled Exception: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": str(exc) or "An unexpected error occurred."},
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
