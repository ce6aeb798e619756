import boto3
from typing import List, Optional
from botocore.exceptions import BotoCoreError, ClientError
from gallery.settings import settings
from gallery.storage.base import BlobObject, BlobStore
from gallery.exceptions import BlobStoreException
import logging

log = logging.getLogger(__name__)

MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}

def _is_missing(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in MISSING_OBJECT_CODES

# -------------------------
# S3 Blob Store
# -------------------------
class S3BlobStore(BlobStore):
    def __init__(self, bucket: Optional[str] = None):
        self.bucket = bucket or settings.s3_bucket
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.client = session.client("s3", **kwargs)
        log.info("Initialized S3 client for bucket %s", self.bucket)

        # Ensure bucket exists at initialization
        self.ensure_bucket()

    def ensure_bucket(self):
        try:
            self.client.head_bucket(Bucket=self.bucket)
            log.debug("Bucket %s already exists", self.bucket)
        except ClientError as e:
            if _is_missing(e):
                self.client.create_bucket(Bucket=self.bucket)
                log.info("Created bucket %s", self.bucket)
            else:
                log.error("Failed to check/create bucket: %s", e)
                raise

    def put(self, key: str, data: bytes, content_type: str, cache_control: Optional[str] = None):
        kwargs = {"Bucket": self.bucket, "Key": key, "Body": data, "ContentType": content_type}
        if cache_control:
            kwargs["CacheControl"] = cache_control
        try:
            self.client.put_object(**kwargs)
        except (BotoCoreError, ClientError) as e:
            log.error(f"S3 put_object failed for {key}: {e}")
            raise BlobStoreException(f"Failed to store image {key}: {e}")
        log.debug("Uploaded %s to s3://%s/%s", key, self.bucket, key)

    def head(self, key: str) -> Optional[BlobObject]:
        try:
            resp = self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                return None
            log.error(f"S3 head_object failed for {key}: {e}")
            raise BlobStoreException(f"Failed to read image {key}: {e}")
        except BotoCoreError as e:
            log.error(f"S3 head_object failed for {key}: {e}")
            raise BlobStoreException(f"Failed to read image {key}: {e}")
        return self._to_blob(key, resp)

    def get(self, key: str) -> Optional[BlobObject]:
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                return None
            log.error(f"S3 get_object failed for {key}: {e}")
            raise BlobStoreException(f"Failed to read image {key}: {e}")
        except BotoCoreError as e:
            log.error(f"S3 get_object failed for {key}: {e}")
            raise BlobStoreException(f"Failed to read image {key}: {e}")
        return self._to_blob(key, resp, body=resp["Body"])

    def delete(self, key: str):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            log.error(f"S3 delete_object failed for {key}: {e}")
            raise BlobStoreException(f"Failed to delete image {key}: {e}")
        log.debug("Deleted s3://%s/%s", self.bucket, key)

    def list(self, prefix: str = "") -> List[BlobObject]:
        objects = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    objects.append(BlobObject(
                        key=item["Key"],
                        size=int(item.get("Size", 0)),
                        etag=item.get("ETag"),
                        last_modified=item.get("LastModified"),
                    ))
        except (BotoCoreError, ClientError) as e:
            log.error(f"S3 list_objects_v2 failed for prefix {prefix!r}: {e}")
            raise BlobStoreException(f"Failed to list images: {e}")
        return objects

    def close(self):
        log.info("Closed S3 client")

    @staticmethod
    def _to_blob(key: str, resp, body=None) -> BlobObject:
        return BlobObject(
            key=key,
            size=int(resp.get("ContentLength", 0)),
            content_type=resp.get("ContentType"),
            etag=resp.get("ETag"),
            cache_control=resp.get("CacheControl"),
            last_modified=resp.get("LastModified"),
            body=body,
        )
