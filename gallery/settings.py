from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional

class Settings(BaseSettings):
    aws_region: str = Field("us-east-1")
    s3_bucket: str = Field("gallery-images")
    dynamodb_table: str = Field("GalleryMetadata")
    aws_endpoint_url: Optional[str] = Field(None)

    aws_access_key_id: str = Field("test")
    aws_secret_access_key: str = Field("test")

    app_title: str = Field("Gallery API")
    api_prefix: str = Field("/api")
    log_level: str = Field("INFO")

    # Label used when an upload carries no group
    default_group: str = Field("Ungrouped")

    upload_cache_control: str = Field("public, max-age=31536000")
    image_cache_control: str = Field("public, max-age=3600")

    # Storage prefixes used by earlier deployments, tried when a key misses
    legacy_key_prefixes: List[str] = Field(default_factory=lambda: ["images/", "gallery/"])

    model_config = SettingsConfigDict(env_file=".env", extra="allow")

settings = Settings()
