import time
import typing
from datetime import datetime, timezone

import boto3
import pytest
from moto import mock_aws

from pc_academy.dynamodb.throttle_table import (
    DAILY_COUNT_PERIOD_PREFIX,
    GLOBAL_DAILY_LIMIT_CALLS,
    USER_DAILY_LIMIT_CALLS,
    USER_MIN_INTERVAL_SECONDS,
    ThrottleRateLimitExceededException,
    ThrottleTable,
)
from pc_academy.utils.base_types import UserId

REGION = "us-west-1"
TABLE_NAME = "ThrottleTable"
ACTION = "COMPONENT_QUERY_CHATBOT_API_CALL"
USER = UserId("alice@example.com")


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


@pytest.fixture
def dynamodb_table_object(aws_credentials) -> typing.Iterator:
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name=REGION)
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {"AttributeName": "throttleKey", "KeyType": "HASH"},
                {"AttributeName": "period", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "throttleKey", "AttributeType": "S"},
                {"AttributeName": "period", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        table.wait_until_exists()
        yield table


@pytest.fixture
def throttle_table(dynamodb_table_object) -> ThrottleTable:
    return ThrottleTable(TABLE_NAME)


def test_fresh_user_has_no_usage(throttle_table: ThrottleTable) -> None:
    assert throttle_table.get_last_call_timestamp(USER, ACTION) is None
    assert throttle_table.get_user_daily_count(USER, ACTION, _today()) == 0
    assert throttle_table.get_global_daily_count(ACTION, _today()) == 0


def test_increment_user_daily_count_sets_ttl(throttle_table: ThrottleTable) -> None:
    date_str = _today()
    ttl = ThrottleTable.get_ttl_for_day(date_str)

    assert throttle_table.increment_user_daily_count(USER, ACTION, date_str, ttl) == 1
    assert throttle_table.increment_user_daily_count(USER, ACTION, date_str, ttl) == 2

    item = throttle_table.table.get_item(
        Key={"throttleKey": f"USER#{USER}#{ACTION}", "period": f"{DAILY_COUNT_PERIOD_PREFIX}{date_str}"}
    )["Item"]
    assert item["ttl"] == ttl


def test_ttl_is_an_hour_past_end_of_day() -> None:
    expected = int(datetime(2026, 3, 2, 1, tzinfo=timezone.utc).timestamp())
    assert ThrottleTable.get_ttl_for_day("2026-03-01") == expected


def test_global_count_stops_at_limit(throttle_table: ThrottleTable) -> None:
    date_str = _today()
    ttl = ThrottleTable.get_ttl_for_day(date_str)

    assert throttle_table.increment_global_daily_count(ACTION, date_str, ttl, 2) == 1
    assert throttle_table.increment_global_daily_count(ACTION, date_str, ttl, 2) == 2
    assert throttle_table.increment_global_daily_count(ACTION, date_str, ttl, 2) is None
    assert throttle_table.get_global_daily_count(ACTION, date_str) == 2


def test_successful_action_is_counted(throttle_table: ThrottleTable) -> None:
    with throttle_table.throttle_action(USER, ACTION):
        pass

    assert throttle_table.get_last_call_timestamp(USER, ACTION) is not None
    assert throttle_table.get_user_daily_count(USER, ACTION, _today()) == 1
    assert throttle_table.get_global_daily_count(ACTION, _today()) == 1


def test_failed_action_is_not_counted(throttle_table: ThrottleTable) -> None:
    with pytest.raises(RuntimeError):
        with throttle_table.throttle_action(USER, ACTION):
            raise RuntimeError("AI call failed")

    assert throttle_table.get_last_call_timestamp(USER, ACTION) is None
    assert throttle_table.get_user_daily_count(USER, ACTION, _today()) == 0


def test_repeat_call_within_interval_is_refused(throttle_table: ThrottleTable) -> None:
    throttle_table.set_last_call_timestamp(USER, ACTION, int(time.time()) - USER_MIN_INTERVAL_SECONDS // 2)

    with pytest.raises(ThrottleRateLimitExceededException) as exc_info:
        with throttle_table.throttle_action(USER, ACTION):
            pytest.fail("limit should be checked before the block runs")

    assert exc_info.value.limit_type == "USER_INTERVAL_LIMIT"
    assert throttle_table.get_user_daily_count(USER, ACTION, _today()) == 0


def test_call_after_interval_is_allowed(throttle_table: ThrottleTable) -> None:
    throttle_table.set_last_call_timestamp(USER, ACTION, int(time.time()) - USER_MIN_INTERVAL_SECONDS - 1)

    with throttle_table.throttle_action(USER, ACTION):
        pass

    assert throttle_table.get_user_daily_count(USER, ACTION, _today()) == 1


def test_user_daily_limit(throttle_table: ThrottleTable) -> None:
    date_str = _today()
    ttl = ThrottleTable.get_ttl_for_day(date_str)
    for _ in range(USER_DAILY_LIMIT_CALLS):
        throttle_table.increment_user_daily_count(USER, ACTION, date_str, ttl)

    with pytest.raises(ThrottleRateLimitExceededException) as exc_info:
        with throttle_table.throttle_action(USER, ACTION):
            pytest.fail("limit should be checked before the block runs")

    assert exc_info.value.limit_type == "USER_DAILY_LIMIT"


def test_limits_are_per_action(throttle_table: ThrottleTable) -> None:
    throttle_table.set_last_call_timestamp(USER, ACTION, int(time.time()))

    with throttle_table.throttle_action(USER, "CONFIG_ANALYSIS_CHATBOT_API_CALL"):
        pass

    assert throttle_table.get_user_daily_count(USER, "CONFIG_ANALYSIS_CHATBOT_API_CALL", _today()) == 1


def test_global_daily_limit(throttle_table: ThrottleTable) -> None:
    date_str = _today()
    throttle_table.table.put_item(
        Item={
            "throttleKey": f"GLOBAL#{ACTION}",
            "period": f"{DAILY_COUNT_PERIOD_PREFIX}{date_str}",
            "callCount": GLOBAL_DAILY_LIMIT_CALLS,
        }
    )

    with pytest.raises(ThrottleRateLimitExceededException) as exc_info:
        with throttle_table.throttle_action(UserId("bob@example.com"), ACTION):
            pytest.fail("limit should be checked before the block runs")

    assert exc_info.value.limit_type == "GLOBAL_DAILY_LIMIT"
