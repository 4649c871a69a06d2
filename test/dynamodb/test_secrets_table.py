import typing

import boto3
import pytest
from moto import mock_aws

from pc_academy.dynamodb.secrets_table import SecretsTable

REGION = "us-west-1"
TABLE_NAME = "SecretsTable"


@pytest.fixture
def dynamodb_table_object(aws_credentials) -> typing.Iterator:
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name=REGION)
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[{"AttributeName": "secretKey", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "secretKey", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        table.wait_until_exists()
        table.put_item(Item={"secretKey": "JWT_SECRET", "secretValue": "jwt-secret"})
        table.put_item(Item={"secretKey": "GEMINI_API_KEY", "secretValue": "gemini-key"})
        yield table


def test_get_secrets(dynamodb_table_object) -> None:
    secrets_table = SecretsTable(TABLE_NAME)
    assert secrets_table.get_jwt_secret_key() == "jwt-secret"
    assert secrets_table.get_gemini_api_key() == "gemini-key"


def test_secrets_are_cached(dynamodb_table_object) -> None:
    secrets_table = SecretsTable(TABLE_NAME)
    assert secrets_table.get_jwt_secret_key() == "jwt-secret"

    dynamodb_table_object.put_item(Item={"secretKey": "JWT_SECRET", "secretValue": "rotated"})
    assert secrets_table.get_jwt_secret_key() == "jwt-secret"

    SecretsTable.clear_cache()
    assert secrets_table.get_jwt_secret_key() == "rotated"


def test_missing_secret_raises_key_error(dynamodb_table_object) -> None:
    with pytest.raises(KeyError):
        SecretsTable(TABLE_NAME).get_secret("NOPE")
