import logging
import typing

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from pc_academy.models.community_models import CommunityBuildModel
from pc_academy.utils.base_types import BuildId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class CommunityBuildsTable:
    """
    Builds shared on the community board.

    Table Schema:
      - PK: buildId
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def create_build(self, build: CommunityBuildModel) -> CommunityBuildModel:
        try:
            self.table.put_item(
                Item=build.model_dump(exclude_none=True),
                ConditionExpression="attribute_not_exists(buildId)",
            )
            _LOGGER.info(f"Created build {build.buildId} for {build.uploaderEmail}.")
            return build
        except ClientError as e:
            _LOGGER.error(f"Error creating build {build.buildId}: {e.response['Error']['Message']}", exc_info=True)
            raise

    def get_build(self, build_id: BuildId) -> typing.Optional[CommunityBuildModel]:
        try:
            response = self.table.get_item(Key={"buildId": build_id})
        except ClientError as e:
            _LOGGER.error(f"Error getting build {build_id}: {e.response['Error']['Message']}")
            raise

        item_data = response.get("Item")
        if not item_data:
            return None
        return CommunityBuildModel.model_validate(item_data)

    def list_builds(self) -> list[CommunityBuildModel]:
        """All builds, newest first."""
        builds: list[CommunityBuildModel] = []
        scan_kwargs: dict[str, typing.Any] = {}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item_data in response.get("Items", []):
                    try:
                        builds.append(CommunityBuildModel.model_validate(item_data))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid build item {item_data.get('buildId')}. Error: {ve}")
                if "LastEvaluatedKey" not in response:
                    break
                scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except ClientError as e:
            _LOGGER.error(f"Error scanning builds: {e.response['Error']['Message']}")
            raise

        builds.sort(key=lambda build: build.createdAt, reverse=True)
        return builds

    def replace_build(self, build: CommunityBuildModel) -> bool:
        """
        Overwrites an existing build, but only if it still belongs to `build.uploaderEmail`.

        :returns: False when the build is gone or owned by someone else
        """
        try:
            self.table.put_item(
                Item=build.model_dump(exclude_none=True),
                ConditionExpression="attribute_exists(buildId) AND uploaderEmail = :uploaderEmail",
                ExpressionAttributeValues={":uploaderEmail": build.uploaderEmail},
            )
            _LOGGER.info(f"Updated build {build.buildId}.")
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.warning(f"Build {build.buildId} not updated: missing or not owned by {build.uploaderEmail}.")
                return False
            _LOGGER.error(f"Error updating build {build.buildId}: {e.response['Error']['Message']}", exc_info=True)
            raise

    def delete_build(self, build_id: BuildId, uploader_email: str) -> bool:
        """:returns: False when the build is gone or owned by someone else"""
        try:
            self.table.delete_item(
                Key={"buildId": build_id},
                ConditionExpression="attribute_exists(buildId) AND uploaderEmail = :uploaderEmail",
                ExpressionAttributeValues={":uploaderEmail": uploader_email},
            )
            _LOGGER.info(f"Deleted build {build_id}.")
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.warning(f"Build {build_id} not deleted: missing or not owned by {uploader_email}.")
                return False
            _LOGGER.error(f"Error deleting build {build_id}: {e.response['Error']['Message']}", exc_info=True)
            raise
