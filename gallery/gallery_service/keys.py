"""Key naming for both stores, plus MIME/extension helpers.

Metadata keys:

- ``image:{id}``    one JSON image record
- ``group:{label}`` JSON list of image ids in that group
- ``gallery:index`` JSON list of every known image id

Blob keys are ``{id}.{extension}``. Objects written by earlier deployments
may live under one of the legacy prefixes; :func:`candidate_keys` yields the
keys to try, in order, when serving an image.
"""
from io import BytesIO
from typing import Callable, Iterable, List, Optional
from urllib.parse import quote

from PIL import Image

IMAGE_KEY_PREFIX = "image:"
GROUP_KEY_PREFIX = "group:"
INDEX_KEY = "gallery:index"

DEFAULT_EXTENSION = "jpg"
DEFAULT_CONTENT_TYPE = "image/jpeg"
GENERIC_CONTENT_TYPES = {"application/octet-stream", "binary/octet-stream"}

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "bmp": "image/bmp",
}

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/bmp": "bmp",
}


def image_key(image_id: str) -> str:
    return f"{IMAGE_KEY_PREFIX}{image_id}"


def group_key(group: str) -> str:
    return f"{GROUP_KEY_PREFIX}{group}"


def storage_key(image_id: str, extension: str) -> str:
    return f"{image_id}.{extension}"


def image_url(api_prefix: str, key: str) -> str:
    return f"{api_prefix}/image/{quote(key)}"


def extension_of(filename: Optional[str]) -> Optional[str]:
    """Return the lower-cased text after the last dot, or None."""
    if not filename or "." not in filename:
        return None
    ext = filename.rsplit(".", 1)[1].strip().lower()
    return ext or None


def content_type_for_extension(ext: Optional[str]) -> str:
    return CONTENT_TYPES.get((ext or "").lower(), DEFAULT_CONTENT_TYPE)


def is_generic(content_type: Optional[str]) -> bool:
    return not content_type or content_type.split(";")[0].strip().lower() in GENERIC_CONTENT_TYPES


def sniff_content_type(data: bytes) -> Optional[str]:
    """Identify the image format from its header bytes."""
    try:
        with Image.open(BytesIO(data)) as img:
            return Image.MIME.get(img.format)
    except Exception:
        # Detection only picks a MIME type; oversized or broken headers fall through
        return None


def resolve_content_type(declared: Optional[str], data: bytes, filename: Optional[str]) -> str:
    if not is_generic(declared):
        return declared
    return sniff_content_type(data) or content_type_for_extension(extension_of(filename))


def resolve_extension(filename: Optional[str], content_type: Optional[str]) -> str:
    ext = extension_of(filename)
    if ext:
        return ext
    if content_type:
        return EXTENSIONS.get(content_type.split(";")[0].strip().lower(), DEFAULT_EXTENSION)
    return DEFAULT_EXTENSION


# -------------------------
# Legacy key strategies
# -------------------------
KeyStrategy = Callable[[str], Optional[str]]


def as_requested(key: str) -> Optional[str]:
    return key


def with_prefix(prefix: str) -> KeyStrategy:
    def strategy(key: str) -> Optional[str]:
        if key.startswith(prefix):
            return None
        return prefix + key
    return strategy


def without_prefix(prefix: str) -> KeyStrategy:
    def strategy(key: str) -> Optional[str]:
        if not key.startswith(prefix):
            return None
        return key[len(prefix):]
    return strategy


def key_strategies(legacy_prefixes: Iterable[str]) -> List[KeyStrategy]:
    prefixes = [p for p in legacy_prefixes if p]
    return (
        [as_requested]
        + [with_prefix(p) for p in prefixes]
        + [without_prefix(p) for p in prefixes]
    )


def candidate_keys(key: str, legacy_prefixes: Iterable[str]) -> List[str]:
    """Keys to try for ``key``, in order, without duplicates."""
    candidates = []
    for strategy in key_strategies(legacy_prefixes):
        candidate = strategy(key)
        if candidate and candidate not in candidates:
            candidates.append(candidate)
    return candidates
