from fastapi import Request
from gallery.storage.base import BlobStore, MetadataStore
from gallery.exceptions import StoreNotConfiguredException

def get_blob_store(request: Request) -> BlobStore:
    """Dependency provider for the blob store"""
    store = getattr(request.app.state, "blob_store", None)
    if store is None:
        raise StoreNotConfiguredException("Blob store")
    return store

def get_metadata_store(request: Request) -> MetadataStore:
    """Dependency provider for the metadata store"""
    store = getattr(request.app.state, "metadata_store", None)
    if store is None:
        raise StoreNotConfiguredException("Metadata store")
    return store
