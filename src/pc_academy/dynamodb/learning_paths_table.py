import decimal
import logging
import typing

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from pc_academy.models.curriculum_models import LearningPath
from pc_academy.utils.base_types import PathId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


def _from_dynamodb(value: typing.Any) -> typing.Any:
    """boto3 returns every number as Decimal; curriculum numbers are all integers."""
    if isinstance(value, decimal.Decimal):
        return int(value)
    if isinstance(value, list):
        return [_from_dynamodb(v) for v in value]
    if isinstance(value, dict):
        return {k: _from_dynamodb(v) for k, v in value.items()}
    return value


class LearningPathsTable:
    """
    Read-mostly store of the curriculum: one item per learning path, including its
    modules, lessons and quiz.

    Table Schema:
      - PK: pathId
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def _parse_path(self, item_data: dict[str, typing.Any]) -> typing.Optional[LearningPath]:
        try:
            path = LearningPath.model_validate(_from_dynamodb(item_data))
        except ValidationError as ve:
            _LOGGER.error(f"Invalid learning path item (pathId: {item_data.get('pathId')}): {ve}", exc_info=True)
            return None
        return path

    def get_path(self, path_id: PathId) -> typing.Optional[LearningPath]:
        try:
            response = self.table.get_item(Key={"pathId": path_id})
        except ClientError as e:
            _LOGGER.error(f"Failed to get learning path {path_id}: {e.response['Error']['Message']}")
            raise

        item_data = response.get("Item")
        if not item_data:
            _LOGGER.info(f"Learning path {path_id} not found.")
            return None
        return self._parse_path(item_data)

    def list_paths(self) -> list[LearningPath]:
        """All learning paths, sorted by their order key then pathId."""
        paths: list[LearningPath] = []
        scan_kwargs: dict[str, typing.Any] = {}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item_data in response.get("Items", []):
                    path = self._parse_path(item_data)
                    if path:
                        paths.append(path)
                if "LastEvaluatedKey" not in response:
                    break
                scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except ClientError as e:
            _LOGGER.error(f"Failed to scan learning paths: {e.response['Error']['Message']}")
            raise

        paths.sort(key=lambda p: (p.order if p.order is not None else 0, p.pathId))
        return paths

    def put_path(self, path: LearningPath) -> LearningPath:
        leading_empty = path.leading_empty_module_ids()
        if leading_empty:
            _LOGGER.warning(
                f"Learning path '{path.pathId}' starts with empty modules {leading_empty}; "
                "its first lesson has no predecessor and stays locked for signed-in users."
            )
        try:
            self.table.put_item(Item=path.model_dump(exclude_none=True))
            _LOGGER.info(f"Saved learning path {path.pathId}.")
            return path
        except ClientError as e:
            _LOGGER.error(f"Failed to save learning path {path.pathId}: {e.response['Error']['Message']}", exc_info=True)
            raise
