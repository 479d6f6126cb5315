"""Health data store for blood glucose records."""

import logging
from typing import List, Optional

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from llu_sync.data.dynamodb import DynamoDBClient, get_dynamodb_client
from llu_sync.models.glucose import BloodGlucoseRecord

logger = logging.getLogger(__name__)


class HealthStore:
    """Blood glucose records in DynamoDB, keyed by user and reading time."""

    def __init__(self, dynamodb: Optional[DynamoDBClient] = None):
        """Initialize the store."""
        self.dynamodb = dynamodb or get_dynamodb_client()
        self.table = self.dynamodb.glucose_records()

    def insert(self, record: BloodGlucoseRecord) -> BloodGlucoseRecord:
        """
        Insert one glucose record.

        A record for an instant that is already stored replaces it; the store
        does no deduplication beyond its key.

        Args:
            record: The record to insert

        Returns:
            BloodGlucoseRecord: The inserted record
        """
        item = record.to_dynamodb_item()
        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            logger.error(f"Error inserting glucose record: {e}")
            raise
        logger.info(
            "Inserted glucose record",
            extra={
                "log_type": "health_record_insert",
                "timestamp": item["timestamp"],
                "value_mg_per_dl": record.value_mg_per_dl,
            },
        )
        return record

    def latest(self, user_id: str) -> Optional[BloodGlucoseRecord]:
        """
        Get the most recent record for a user.

        Args:
            user_id: The user ID

        Returns:
            Optional[BloodGlucoseRecord]: The newest record, or None
        """
        records = self.recent(user_id, limit=1)
        return records[0] if records else None

    def recent(self, user_id: str, limit: int = 10) -> List[BloodGlucoseRecord]:
        """
        Get the newest records for a user, newest first.

        Args:
            user_id: The user ID
            limit: Maximum number of records to return

        Returns:
            List[BloodGlucoseRecord]: The records
        """
        try:
            result = self.table.query(
                KeyConditionExpression=Key("user_id").eq(user_id),
                ScanIndexForward=False,
                Limit=limit,
            )
        except ClientError as e:
            logger.error(f"Error querying glucose records: {e}")
            raise
        return [BloodGlucoseRecord.from_dynamodb_item(item) for item in result.get("Items", [])]


_health_store: Optional[HealthStore] = None


def get_health_store() -> HealthStore:
    """
    Get a singleton instance of the health store.

    Returns:
        HealthStore: The health store
    """
    global _health_store
    if _health_store is None:
        _health_store = HealthStore()
    return _health_store
