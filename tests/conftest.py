import os
import pytest
from moto import mock_aws
from fastapi.testclient import TestClient

# Set test environment variables BEFORE importing gallery modules
os.environ["TESTING"] = "true"

# Dummy AWS credentials for moto
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["S3_BUCKET"] = "gallery-test-bucket"
os.environ["DYNAMODB_TABLE"] = "GalleryTest"
# Clear the AWS_ENDPOINT_URL so moto mocks are used instead of localstack
os.environ.pop("AWS_ENDPOINT_URL", None)

from gallery.main import create_app
from gallery.storage.s3 import S3BlobStore
from gallery.storage.dynamodb import DynamoMetadataStore


@pytest.fixture(scope="function")
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"


@pytest.fixture(scope="function")
def stores(aws_credentials):
    """S3 bucket and DynamoDB table, created by the stores inside moto."""
    with mock_aws():
        yield S3BlobStore(), DynamoMetadataStore()


@pytest.fixture(scope="function")
def blob_store(stores):
    return stores[0]


@pytest.fixture(scope="function")
def metadata_store(stores):
    return stores[1]


@pytest.fixture(scope="function")
def test_client(blob_store, metadata_store):
    app = create_app(blob_store=blob_store, metadata_store=metadata_store)
    with TestClient(app) as client:
        yield client
