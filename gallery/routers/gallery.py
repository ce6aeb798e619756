from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.datastructures import UploadFile
from starlette.concurrency import run_in_threadpool
from typing import List
import logging

from gallery.storage.base import BlobStore, MetadataStore
from gallery.dependencies.dependencies import get_blob_store, get_metadata_store
from gallery.gallery_service.service import (
    delete_group,
    delete_image,
    fetch_image,
    list_gallery,
    list_groups,
    save_images,
    serving_content_type,
)
from gallery.gallery_service.models import GalleryResponse, ImagePayload, SuccessResponse, UploadResponse
from gallery.exceptions import NoImagesProvidedException
from gallery.settings import settings

log = logging.getLogger(__name__)

router = APIRouter(
    prefix=settings.api_prefix,
    tags=["gallery"]
)

@router.post("/upload", response_model=UploadResponse)
async def upload_images(
    request: Request,
    blob_store: BlobStore = Depends(get_blob_store),
    metadata_store: MetadataStore = Depends(get_metadata_store),
):
    """Uploads one or more images (repeated `images` field) into a group."""
    form = await request.form()
    group = form.get("group")
    if not isinstance(group, str) or not group:
        group = settings.default_group

    items = form.getlist("images")
    if not items:
        raise NoImagesProvidedException("No images provided")

    payloads = []
    for item in items:
        if not isinstance(item, UploadFile):
            log.warning("Skipping non-file value in images field")
            continue
        payloads.append(ImagePayload(
            filename=item.filename,
            content_type=item.content_type,
            data=await item.read(),
        ))
    if not payloads:
        raise NoImagesProvidedException("No valid images provided")

    # Store calls are blocking boto3 requests
    images = await run_in_threadpool(save_images, blob_store, metadata_store, payloads, group=group)
    return UploadResponse(success=True, images=images)

@router.get("/gallery", response_model=GalleryResponse)
def get_gallery(metadata_store: MetadataStore = Depends(get_metadata_store)):
    """Lists every image, newest first."""
    return GalleryResponse(images=list_gallery(metadata_store))

@router.get("/groups", response_model=List[str])
def get_groups(metadata_store: MetadataStore = Depends(get_metadata_store)):
    """Lists group labels in ascending order."""
    return list_groups(metadata_store)

@router.delete("/delete/{image_id}", response_model=SuccessResponse)
def remove_image(
    image_id: str,
    blob_store: BlobStore = Depends(get_blob_store),
    metadata_store: MetadataStore = Depends(get_metadata_store),
):
    """Deletes an image and its metadata."""
    delete_image(blob_store, metadata_store, image_id)
    return SuccessResponse(success=True)

@router.delete("/delete-group/{group:path}", response_model=SuccessResponse)
def remove_group(
    group: str,
    blob_store: BlobStore = Depends(get_blob_store),
    metadata_store: MetadataStore = Depends(get_metadata_store),
):
    """Deletes every image in a group."""
    delete_group(blob_store, metadata_store, group)
    return SuccessResponse(success=True)

@router.get("/image/{key:path}")
def serve_image(key: str, blob_store: BlobStore = Depends(get_blob_store)):
    """Streams stored image bytes, falling back to legacy key names."""
    blob = fetch_image(blob_store, key)

    headers = {"Cache-Control": settings.image_cache_control}
    if blob.size:
        headers["Content-Length"] = str(blob.size)
    if blob.etag:
        headers["ETag"] = blob.etag

    return StreamingResponse(
        blob.iter_chunks(),
        media_type=serving_content_type(blob),
        headers=headers,
    )
