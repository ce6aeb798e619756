from datetime import datetime, timezone
from typing import Iterable, List, Optional
import logging
import time
import uuid

from pydantic import ValidationError

from gallery.storage.base import BlobObject, BlobStore, MetadataStore
from gallery.gallery_service import keys
from gallery.gallery_service.models import ImagePayload, ImageRecord
from gallery.settings import settings
from gallery.exceptions import (
    BlobNotFoundException,
    GroupNotFoundException,
    ImageNotFoundException,
    NoImagesProvidedException,
    UploadVerificationException,
)

log = logging.getLogger(__name__)

def new_image_id(sequence: int) -> str:
    """Timestamp, position in the batch and a random suffix. Not checked for collisions."""
    return f"{int(time.time() * 1000)}-{sequence}-{uuid.uuid4().hex[:10]}"

def _load_ids(metadata_store: MetadataStore, key: str) -> Optional[List[str]]:
    value = metadata_store.get(key)
    if value is None:
        return None
    return list(value)

def _append_id(metadata_store: MetadataStore, key: str, image_id: str):
    # Read-modify-write; concurrent writers to the same key can lose an append.
    ids = _load_ids(metadata_store, key) or []
    if image_id not in ids:
        ids.append(image_id)
    metadata_store.put(key, ids)

def load_record(metadata_store: MetadataStore, image_id: str) -> Optional[ImageRecord]:
    value = metadata_store.get(keys.image_key(image_id))
    if value is None:
        return None
    try:
        return ImageRecord.model_validate(value)
    except ValidationError as e:
        log.warning(f"Ignoring malformed record for image {image_id}: {e}")
        return None

def save_image(
    blob_store: BlobStore,
    metadata_store: MetadataStore,
    payload: ImagePayload,
    group: str,
    sequence: int = 0,
) -> ImageRecord:
    """Stores one image in the blob store and records it in the metadata store."""
    image_id = new_image_id(sequence)
    content_type = keys.resolve_content_type(payload.content_type, payload.data, payload.filename)
    key = keys.storage_key(image_id, keys.resolve_extension(payload.filename, content_type))

    blob_store.put(key, payload.data, content_type=content_type, cache_control=settings.upload_cache_control)

    # Readback before any metadata is written for this file
    stored = blob_store.head(key)
    if stored is None or stored.size == 0:
        log.error(f"Upload verification failed for {key}")
        raise UploadVerificationException(key)

    record = ImageRecord(
        id=image_id,
        storage_key=key,
        url=keys.image_url(settings.api_prefix, key),
        group=group,
        uploaded_at=datetime.now(timezone.utc),
        size=len(payload.data),
        content_type=content_type,
    )
    metadata_store.put(keys.image_key(image_id), record.to_store())
    _append_id(metadata_store, keys.group_key(group), image_id)
    _append_id(metadata_store, keys.INDEX_KEY, image_id)

    log.info("Saved image %s in group %s", image_id, group)
    return record

def save_images(
    blob_store: BlobStore,
    metadata_store: MetadataStore,
    payloads: List[ImagePayload],
    group: Optional[str] = None,
) -> List[ImageRecord]:
    """Saves every payload in order. The first failure aborts the rest of the batch."""
    if not payloads:
        raise NoImagesProvidedException("No valid images provided")
    group = group or settings.default_group
    return [
        save_image(blob_store, metadata_store, payload, group, sequence)
        for sequence, payload in enumerate(payloads)
    ]

def list_gallery(metadata_store: MetadataStore) -> List[ImageRecord]:
    """Returns every indexed image, newest first. Ids without a record are skipped."""
    images = []
    for image_id in _load_ids(metadata_store, keys.INDEX_KEY) or []:
        record = load_record(metadata_store, image_id)
        if record is None:
            continue
        images.append(record.model_copy(update={"url": keys.image_url(settings.api_prefix, record.storage_key)}))
    images.sort(key=lambda image: image.uploaded_at, reverse=True)
    return images

def list_groups(metadata_store: MetadataStore, default_group: Optional[str] = None) -> List[str]:
    default_group = default_group or settings.default_group
    groups = set()
    for key in metadata_store.list_keys(keys.GROUP_KEY_PREFIX):
        label = key[len(keys.GROUP_KEY_PREFIX):]
        if label and label != default_group:
            groups.add(label)

    if metadata_store.get(keys.group_key(default_group)) is not None:
        groups.add(default_group)
    return sorted(groups)

def delete_image(blob_store: BlobStore, metadata_store: MetadataStore, image_id: str) -> bool:
    """Removes an image from both stores, its group list and the index."""
    record = load_record(metadata_store, image_id)
    if record is None:
        raise ImageNotFoundException(image_id)

    blob_store.delete(record.storage_key)
    metadata_store.delete(keys.image_key(image_id))

    group_key = keys.group_key(record.group)
    group_ids = _load_ids(metadata_store, group_key)
    if group_ids is not None:
        remaining = [i for i in group_ids if i != image_id]
        if remaining:
            metadata_store.put(group_key, remaining)
        else:
            metadata_store.delete(group_key)

    index = _load_ids(metadata_store, keys.INDEX_KEY)
    if index is not None:
        metadata_store.put(keys.INDEX_KEY, [i for i in index if i != image_id])

    log.info("Deleted image %s", image_id)
    return True

def delete_group(blob_store: BlobStore, metadata_store: MetadataStore, group: str) -> bool:
    """Removes every image in ``group``; the index is rewritten once at the end."""
    group_key = keys.group_key(group)
    group_ids = _load_ids(metadata_store, group_key)
    if group_ids is None:
        raise GroupNotFoundException(group)

    for image_id in group_ids:
        record = load_record(metadata_store, image_id)
        if record is None:
            continue
        blob_store.delete(record.storage_key)
        metadata_store.delete(keys.image_key(image_id))

    metadata_store.delete(group_key)

    removed = set(group_ids)
    index = _load_ids(metadata_store, keys.INDEX_KEY)
    if index is not None:
        metadata_store.put(keys.INDEX_KEY, [i for i in index if i not in removed])

    log.info("Deleted group %s with %d images", group, len(group_ids))
    return True

def fetch_image(blob_store: BlobStore, key: str, legacy_prefixes: Optional[Iterable[str]] = None) -> BlobObject:
    """Returns the first stored object among the candidate keys for ``key``."""
    if legacy_prefixes is None:
        legacy_prefixes = settings.legacy_key_prefixes
    for candidate in keys.candidate_keys(key, legacy_prefixes):
        blob = blob_store.get(candidate)
        if blob is not None:
            if candidate != key:
                log.debug("Resolved %s through legacy key %s", key, candidate)
            return blob
    raise BlobNotFoundException(key)

def serving_content_type(blob: BlobObject) -> str:
    if not keys.is_generic(blob.content_type):
        return blob.content_type
    return keys.content_type_for_extension(keys.extension_of(blob.key))
