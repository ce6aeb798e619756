from typing import List, Optional
from datetime import datetime, timezone
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

class ImageRecord(BaseModel):
    """Metadata for one uploaded image.

    Serialized with camelCase keys. Records written by the older deployment
    use ``fileName`` and ``type``; both are still accepted when reading.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    storage_key: str = Field(
        validation_alias=AliasChoices("storageKey", "fileName"),
        serialization_alias="storageKey",
    )
    url: str = ""
    group: str
    uploaded_at: datetime = Field(
        validation_alias=AliasChoices("uploadedAt"),
        serialization_alias="uploadedAt",
    )
    size: int
    content_type: str = Field(
        validation_alias=AliasChoices("contentType", "type"),
        serialization_alias="contentType",
    )

    @field_validator("uploaded_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are UTC so every record sorts against every other
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_store(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

class ImagePayload(BaseModel):
    """One file part of an upload request."""
    filename: Optional[str] = None
    content_type: Optional[str] = None
    data: bytes

class UploadResponse(BaseModel):
    success: bool = True
    images: List[ImageRecord]

class GalleryResponse(BaseModel):
    images: List[ImageRecord]

class SuccessResponse(BaseModel):
    success: bool = True
