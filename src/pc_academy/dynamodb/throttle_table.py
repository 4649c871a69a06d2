import logging
import time
import typing
from datetime import datetime, timedelta, timezone

import boto3
from botocore.exceptions import ClientError

from pc_academy.utils.base_types import UserId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


ThrottleType = typing.Literal[
    "QUIZ_EXPLANATION_CHATBOT_API_CALL",
    "COMPONENT_QUERY_CHATBOT_API_CALL",
    "CONFIG_ANALYSIS_CHATBOT_API_CALL",
]
LimitType = typing.Literal["USER_INTERVAL_LIMIT", "USER_DAILY_LIMIT", "GLOBAL_DAILY_LIMIT"]

USER_MIN_INTERVAL_SECONDS = 10
USER_DAILY_LIMIT_CALLS = 50
GLOBAL_DAILY_LIMIT_CALLS = 2000

LAST_CALL_PERIOD = "LAST_CALL"
DAILY_COUNT_PERIOD_PREFIX = "DAILY_COUNT#"


class ThrottleRateLimitExceededException(Exception):
    def __init__(self, limit_type: LimitType, message: str) -> None:
        self.limit_type = limit_type
        self.message = message
        super().__init__(message)


class ThrottledActionContext:
    """
    Checks the limits on enter and counts the call on a clean exit.

    A call that raises inside the block (for example an AI outage) is not counted
    against the user.
    """

    def __init__(self, throttle_table: "ThrottleTable", user_id: UserId, throttle_type: ThrottleType):
        self.throttle_table = throttle_table
        self.user_id = user_id
        self.throttle_type: ThrottleType = throttle_type

        self.now_epoch: int = 0
        self.date_str: str = ""
        self.limits_passed = False

    def __enter__(self) -> "ThrottledActionContext":
        self.now_epoch = int(time.time())
        self.date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        last_call = self.throttle_table.get_last_call_timestamp(self.user_id, self.throttle_type)
        if last_call is not None and (self.now_epoch - last_call) < USER_MIN_INTERVAL_SECONDS:
            _LOGGER.warning(f"User {self.user_id} called {self.throttle_type} again too soon.")
            raise ThrottleRateLimitExceededException("USER_INTERVAL_LIMIT", "Please wait a few seconds and try again.")

        user_daily_count = self.throttle_table.get_user_daily_count(self.user_id, self.throttle_type, self.date_str)
        if user_daily_count >= USER_DAILY_LIMIT_CALLS:
            _LOGGER.warning(f"User {self.user_id} reached the daily limit for {self.throttle_type}.")
            raise ThrottleRateLimitExceededException("USER_DAILY_LIMIT", "You've reached today's AI assistant limit.")

        if self.throttle_table.get_global_daily_count(self.throttle_type, self.date_str) >= GLOBAL_DAILY_LIMIT_CALLS:
            _LOGGER.warning(f"Global daily limit of {GLOBAL_DAILY_LIMIT_CALLS} reached for {self.throttle_type}.")
            raise ThrottleRateLimitExceededException("GLOBAL_DAILY_LIMIT", "The AI assistant is busy today.")

        self.limits_passed = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if not self.limits_passed:
            return False
        if exc_type is not None:
            _LOGGER.info(f"{self.throttle_type} failed for {self.user_id}, not counted: {exc_val}")
            return False

        ttl_epoch = self.throttle_table.get_ttl_for_day(self.date_str)
        try:
            self.throttle_table.set_last_call_timestamp(self.user_id, self.throttle_type, self.now_epoch)
            self.throttle_table.increment_user_daily_count(self.user_id, self.throttle_type, self.date_str, ttl_epoch)
            if (
                self.throttle_table.increment_global_daily_count(
                    self.throttle_type, self.date_str, ttl_epoch, GLOBAL_DAILY_LIMIT_CALLS
                )
                is None
            ):
                _LOGGER.warning(f"Global limit for {self.throttle_type} was reached by a concurrent request.")
        except ClientError as e:
            # A failed count never fails the call
            _LOGGER.error(f"Failed to record {self.throttle_type} call for {self.user_id}: {e}", exc_info=True)
        return False


class ThrottleTable:
    """
    Usage counters for AI calls (PK: throttleKey, SK: period).

    Per-user items are keyed 'USER#{userId}#{type}', global items 'GLOBAL#{type}'.
    Daily items carry a 'ttl' attribute so DynamoDB expires them.
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)
        _LOGGER.info(f"ThrottleTable initialized for table: {table_name}")

    @staticmethod
    def _user_key(user_id: UserId, throttle_type: ThrottleType) -> str:
        return f"USER#{user_id}#{throttle_type}"

    @staticmethod
    def _global_key(throttle_type: ThrottleType) -> str:
        return f"GLOBAL#{throttle_type}"

    @staticmethod
    def get_ttl_for_day(date_str: str) -> int:
        """One hour past the end of the given UTC day."""
        start_of_day = datetime.strptime(date_str, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        return int((start_of_day + timedelta(days=1, hours=1)).timestamp())

    def _get_count(self, throttle_key: str, date_str: str) -> int:
        try:
            response = self.table.get_item(
                Key={"throttleKey": throttle_key, "period": f"{DAILY_COUNT_PERIOD_PREFIX}{date_str}"}
            )
        except ClientError as e:
            _LOGGER.error(f"Error reading count for {throttle_key} on {date_str}: {e.response['Error']['Message']}")
            raise
        item = response.get("Item")
        return int(item["callCount"]) if item and "callCount" in item else 0

    def get_last_call_timestamp(self, user_id: UserId, throttle_type: ThrottleType) -> typing.Optional[int]:
        throttle_key = self._user_key(user_id, throttle_type)
        try:
            response = self.table.get_item(Key={"throttleKey": throttle_key, "period": LAST_CALL_PERIOD})
        except ClientError as e:
            _LOGGER.error(f"Error reading last call for {throttle_key}: {e.response['Error']['Message']}")
            raise
        item = response.get("Item")
        return int(item["lastCallTimestamp"]) if item and "lastCallTimestamp" in item else None

    def get_user_daily_count(self, user_id: UserId, throttle_type: ThrottleType, date_str: str) -> int:
        return self._get_count(self._user_key(user_id, throttle_type), date_str)

    def get_global_daily_count(self, throttle_type: ThrottleType, date_str: str) -> int:
        return self._get_count(self._global_key(throttle_type), date_str)

    def set_last_call_timestamp(self, user_id: UserId, throttle_type: ThrottleType, timestamp_epoch: int) -> None:
        self.table.update_item(
            Key={"throttleKey": self._user_key(user_id, throttle_type), "period": LAST_CALL_PERIOD},
            UpdateExpression="SET lastCallTimestamp = :ts",
            ExpressionAttributeValues={":ts": timestamp_epoch},
        )

    def increment_user_daily_count(
        self, user_id: UserId, throttle_type: ThrottleType, date_str: str, ttl_epoch: int
    ) -> int:
        response = self.table.update_item(
            Key={
                "throttleKey": self._user_key(user_id, throttle_type),
                "period": f"{DAILY_COUNT_PERIOD_PREFIX}{date_str}",
            },
            UpdateExpression="ADD callCount :inc SET #ttl = :ttl",
            ExpressionAttributeNames={"#ttl": "ttl"},
            ExpressionAttributeValues={":inc": 1, ":ttl": ttl_epoch},
            ReturnValues="UPDATED_NEW",
        )
        return int(response["Attributes"]["callCount"])

    def increment_global_daily_count(
        self, throttle_type: ThrottleType, date_str: str, ttl_epoch: int, limit: int
    ) -> typing.Optional[int]:
        """
        :return: the new count, or None when the count had already reached 'limit'.
        """
        throttle_key = self._global_key(throttle_type)
        try:
            response = self.table.update_item(
                Key={"throttleKey": throttle_key, "period": f"{DAILY_COUNT_PERIOD_PREFIX}{date_str}"},
                UpdateExpression="ADD callCount :inc SET #ttl = :ttl",
                ConditionExpression="attribute_not_exists(callCount) OR callCount < :limit",
                ExpressionAttributeNames={"#ttl": "ttl"},
                ExpressionAttributeValues={":inc": 1, ":ttl": ttl_epoch, ":limit": limit},
                ReturnValues="UPDATED_NEW",
            )
            return int(response["Attributes"]["callCount"])
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.warning(f"Global count for {throttle_key} on {date_str} is already at {limit}.")
                return None
            _LOGGER.error(f"Error incrementing {throttle_key} on {date_str}: {e.response['Error']['Message']}")
            raise

    def throttle_action(self, user_id: UserId, throttle_type: ThrottleType) -> ThrottledActionContext:
        """
        Returns a context manager guarding one AI call.

        :raises ThrottleRateLimitExceededException: from __enter__ when a limit is reached.
        """
        return ThrottledActionContext(self, user_id, throttle_type)
