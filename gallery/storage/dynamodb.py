import boto3
import json
from typing import Any, List, Optional
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError
from gallery.settings import settings
from gallery.storage.base import MetadataStore
from gallery.exceptions import MetadataStoreException
import logging

log = logging.getLogger(__name__)

KEY_ATTRIBUTE = "store_key"
VALUE_ATTRIBUTE = "payload"

# -------------------------
# DynamoDB Metadata Store
# -------------------------
class DynamoMetadataStore(MetadataStore):
    """Key-value store over a single table: one item per key, value kept as a JSON string."""

    def __init__(self, table_name: Optional[str] = None):
        self.table_name = table_name or settings.dynamodb_table
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.resource = session.resource("dynamodb", **kwargs)
        log.info("Initialized DynamoDB resource for table %s", self.table_name)

        # Ensure table exists at initialization
        self.ensure_table()
        self.table = self.resource.Table(self.table_name)

    # Refer here: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/create_table.html
    def ensure_table(self):
        try:
            table = self.resource.Table(self.table_name)
            table.load()
        except ClientError:
            table = self.resource.create_table(
                TableName=self.table_name,
                KeySchema=[{"AttributeName": KEY_ATTRIBUTE, "KeyType": "HASH"}],
                AttributeDefinitions=[
                    {"AttributeName": KEY_ATTRIBUTE, "AttributeType": "S"},
                ],
                ProvisionedThroughput={"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
            )
            table.wait_until_exists()
            log.info("Created table %s", self.table_name)

    def get(self, key: str) -> Optional[Any]:
        try:
            resp = self.table.get_item(Key={KEY_ATTRIBUTE: key})
        except (BotoCoreError, ClientError) as e:
            log.error(f"DynamoDB get_item failed for {key}: {e}")
            raise MetadataStoreException(f"Failed to read {key}: {e}")
        item = resp.get("Item")
        if item is None:
            return None
        try:
            return json.loads(item[VALUE_ATTRIBUTE])
        except (TypeError, ValueError) as e:
            log.error(f"Undecodable value stored under {key}: {e}")
            raise MetadataStoreException(f"Failed to decode {key}: {e}")

    def put(self, key: str, value: Any):
        try:
            self.table.put_item(Item={KEY_ATTRIBUTE: key, VALUE_ATTRIBUTE: json.dumps(value)})
        except (BotoCoreError, ClientError) as e:
            log.error(f"DynamoDB put_item failed for {key}: {e}")
            raise MetadataStoreException(f"Failed to write {key}: {e}")
        log.debug("Stored metadata %s", key)

    def delete(self, key: str):
        try:
            self.table.delete_item(Key={KEY_ATTRIBUTE: key})
        except (BotoCoreError, ClientError) as e:
            log.error(f"DynamoDB delete_item failed for {key}: {e}")
            raise MetadataStoreException(f"Failed to delete {key}: {e}")
        log.debug("Deleted metadata %s", key)

    def list_keys(self, prefix: str = "") -> List[str]:
        scan_kwargs = {"ProjectionExpression": KEY_ATTRIBUTE}
        if prefix:
            scan_kwargs["FilterExpression"] = Attr(KEY_ATTRIBUTE).begins_with(prefix)
        keys = []
        try:
            while True:
                resp = self.table.scan(**scan_kwargs)
                keys.extend(item[KEY_ATTRIBUTE] for item in resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key
        except (BotoCoreError, ClientError) as e:
            log.error(f"DynamoDB scan failed for prefix {prefix!r}: {e}")
            raise MetadataStoreException(f"Failed to list keys: {e}")
        return keys

    def close(self):
        log.info("Closed DynamoDB resource")
