"""DynamoDB connection and the glucose records table."""

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from llu_sync.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

# user_id + UTC ISO-8601 reading time; one item per user and instant
GLUCOSE_RECORDS_KEY_SCHEMA = [
    {"AttributeName": "user_id", "KeyType": "HASH"},
    {"AttributeName": "timestamp", "KeyType": "RANGE"},
]
GLUCOSE_RECORDS_ATTRIBUTES = [
    {"AttributeName": "user_id", "AttributeType": "S"},
    {"AttributeName": "timestamp", "AttributeType": "S"},
]


class DynamoDBClient:
    """boto3 client and resource bound to the configured region and endpoint."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        secret_key = self.settings.aws_secret_access_key
        connection = {
            "region_name": self.settings.aws_region,
            "endpoint_url": self.settings.dynamodb_endpoint,
            "aws_access_key_id": self.settings.aws_access_key_id,
            "aws_secret_access_key": secret_key.get_secret_value() if secret_key else None,
        }
        self.client = boto3.client("dynamodb", **connection)
        self.resource = boto3.resource("dynamodb", **connection)

    @property
    def table_name(self) -> str:
        return self.settings.dynamodb_table

    def glucose_records(self):
        """Table resource for the glucose records table."""
        return self.resource.Table(self.table_name)

    def create_glucose_records_table(self, wait: bool = True) -> Dict[str, Any]:
        """
        Create the glucose records table, or describe it if it already exists.

        Args:
            wait: Block until the table is active

        Returns:
            Dict: create_table or describe_table response
        """
        try:
            response = self.client.create_table(
                TableName=self.table_name,
                KeySchema=GLUCOSE_RECORDS_KEY_SCHEMA,
                AttributeDefinitions=GLUCOSE_RECORDS_ATTRIBUTES,
                BillingMode="PAY_PER_REQUEST",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceInUseException":
                logger.error(f"Error creating table {self.table_name}: {e}")
                raise
            logger.info(f"Table {self.table_name} already exists.")
            return self.client.describe_table(TableName=self.table_name)

        if wait:
            self.client.get_waiter("table_exists").wait(TableName=self.table_name)
        logger.info(f"Created table {self.table_name}")
        return response


_dynamodb_client: Optional[DynamoDBClient] = None


def get_dynamodb_client() -> DynamoDBClient:
    """Process-wide DynamoDB client."""
    global _dynamodb_client
    if _dynamodb_client is None:
        _dynamodb_client = DynamoDBClient()
    return _dynamodb_client
