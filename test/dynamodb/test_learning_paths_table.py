import logging
import typing

import boto3
import pytest
from moto import mock_aws

from pc_academy.dynamodb.learning_paths_table import LearningPathsTable
from test_utils.curriculum import gpu_path, make_path, pc_basics_path, tools_path

REGION = "us-west-1"
TABLE_NAME = "LearningPathsTable"
TABLE_LOGGER = "pc_academy.dynamodb.learning_paths_table"


@pytest.fixture
def dynamodb_table_object(aws_credentials) -> typing.Iterator:
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name=REGION)
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[{"AttributeName": "pathId", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "pathId", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        table.wait_until_exists()
        yield table


@pytest.fixture
def paths_table(dynamodb_table_object) -> LearningPathsTable:
    return LearningPathsTable(TABLE_NAME)


def test_put_and_get_path(paths_table: LearningPathsTable) -> None:
    paths_table.put_path(pc_basics_path())

    path = paths_table.get_path("pc-basics")
    assert path == pc_basics_path()
    assert path.modules[0].lessons[1].order == 1
    assert path.has_quiz


def test_get_missing_path(paths_table: LearningPathsTable) -> None:
    assert paths_table.get_path("missing") is None


def test_list_paths_sorted_by_order(paths_table: LearningPathsTable) -> None:
    for path in (tools_path(), pc_basics_path(), gpu_path()):
        paths_table.put_path(path)

    assert [path.pathId for path in paths_table.list_paths()] == ["pc-basics", "gpu", "tools"]


def test_invalid_items_are_skipped(paths_table: LearningPathsTable, dynamodb_table_object) -> None:
    paths_table.put_path(gpu_path())
    dynamodb_table_object.put_item(Item={"pathId": "broken", "modules": "not-a-list"})

    assert [path.pathId for path in paths_table.list_paths()] == ["gpu"]
    assert paths_table.get_path("broken") is None


def test_leading_empty_modules() -> None:
    assert pc_basics_path().leading_empty_module_ids() == []
    assert make_path("p", {"intro": [], "setup": [], "m1": ["l1"], "m2": []}).leading_empty_module_ids() == [
        "intro",
        "setup",
    ]
    assert make_path("p", {"m1": [], "m2": []}).leading_empty_module_ids() == []


def test_put_path_warns_only_when_first_lesson_is_stranded(paths_table: LearningPathsTable, caplog) -> None:
    def warnings() -> list[logging.LogRecord]:
        return [r for r in caplog.records if r.name == TABLE_LOGGER and r.levelno >= logging.WARNING]

    with caplog.at_level(logging.WARNING, logger=TABLE_LOGGER):
        paths_table.put_path(pc_basics_path())
        paths_table.get_path("pc-basics")
    assert warnings() == []

    with caplog.at_level(logging.WARNING, logger=TABLE_LOGGER):
        paths_table.put_path(make_path("stranded", {"intro": [], "m1": ["l1"]}))
    assert len(warnings()) == 1
    assert "['intro']" in warnings()[0].getMessage()
