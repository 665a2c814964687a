"""Unit tests conftest.

Provides moto-backed AWS resources shared by the library and Lambda tests.
Each fixture runs inside a single mock_aws context, so tables, buckets and
keys created by different fixtures in one test are visible to each other.
"""

import sys

import boto3
import pytest
from moto import mock_aws

CONTENT_TABLE = "test-content"
ASSETS_TABLE = "test-assets"
CREDENTIALS_TABLE = "test-credentials"
CONFIGURATION_TABLE = "test-configuration"
MEDIA_BUCKET = "test-media"


def pytest_sessionstart(session):
    """Drop a cached Lambda 'index' module from a previous run."""
    if "index" in sys.modules:
        del sys.modules["index"]


@pytest.fixture
def aws():
    """Start moto for the duration of a test."""
    with mock_aws():
        yield


@pytest.fixture
def content_table(aws):
    """Content table with the source document index."""
    dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
    table = dynamodb.create_table(
        TableName=CONTENT_TABLE,
        KeySchema=[{"AttributeName": "record_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "record_id", "AttributeType": "N"},
            {"AttributeName": "source_key", "AttributeType": "S"},
            {"AttributeName": "created_at", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "SourceDocumentIndex",
                "KeySchema": [
                    {"AttributeName": "source_key", "KeyType": "HASH"},
                    {"AttributeName": "created_at", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    return table


@pytest.fixture
def assets_table(aws):
    dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
    return dynamodb.create_table(
        TableName=ASSETS_TABLE,
        KeySchema=[{"AttributeName": "asset_id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "asset_id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def credentials_table(aws):
    dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
    return dynamodb.create_table(
        TableName=CREDENTIALS_TABLE,
        KeySchema=[{"AttributeName": "identifier", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "identifier", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def configuration_table(aws):
    dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
    return dynamodb.create_table(
        TableName=CONFIGURATION_TABLE,
        KeySchema=[{"AttributeName": "Configuration", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "Configuration", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def media_bucket(aws):
    s3 = boto3.client("s3", region_name="us-east-1")
    s3.create_bucket(Bucket=MEDIA_BUCKET)
    return MEDIA_BUCKET


@pytest.fixture
def kms_key_id(aws):
    kms = boto3.client("kms", region_name="us-east-1")
    return kms.create_key(Description="docbridge test key")["KeyMetadata"]["KeyId"]
