import logging
import typing
from datetime import datetime, timezone

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import ValidationError

from pc_academy.models.user_progress_models import UserPathScoreModel
from pc_academy.utils.base_types import IsoTimestamp, PathId, UserId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class UserPathScoresTable:
    """
    Data Abstraction Layer for the best quiz result of each user on each learning path.

    Table Schema:
      - PK: userId (user's email address)
      - SK: pathId

    highestScore never decreases: it is only raised by a conditional write.
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def get_path_score(self, user_id: typing.Optional[UserId], path_id: PathId) -> typing.Optional[UserPathScoreModel]:
        if not user_id:
            return None

        try:
            response = self.table.get_item(Key={"userId": user_id, "pathId": path_id})
            item_data = response.get("Item")
            if item_data:
                return UserPathScoreModel.model_validate(item_data)
            return None
        except ClientError as e:
            _LOGGER.error(f"Failed to get score for user {user_id}, path {path_id}: {e.response['Error']['Message']}")
            raise
        except ValidationError as ve:
            _LOGGER.error(f"Failed to validate score item for user {user_id}, path {path_id}: {ve}", exc_info=True)
            return None

    def get_highest_score_for_path(self, user_id: typing.Optional[UserId], path_id: PathId) -> typing.Optional[int]:
        """
        :return: The best score the user ever achieved on this path, or None if never attempted.
        """
        path_score = self.get_path_score(user_id, path_id)
        return path_score.highestScore if path_score else None

    def record_quiz_attempt(self, user_id: UserId, path_id: PathId, score: int, total_possible: int) -> int:
        """
        Records an attempt: always rewrites the attempt metadata, and raises highestScore
        only if this attempt beat it.

        :return: The highest score stored after this attempt.
        """
        timestamp = IsoTimestamp(datetime.now(timezone.utc).isoformat())
        key = {"userId": user_id, "pathId": path_id}

        try:
            response = self.table.update_item(
                Key=key,
                UpdateExpression=(
                    "SET #totalPossibleScore = :totalPossible, #lastAttemptScore = :score, "
                    "#lastAttemptTimestamp = :ts, #highestScore = if_not_exists(#highestScore, :score)"
                ),
                ExpressionAttributeNames={
                    "#totalPossibleScore": "totalPossibleScore",
                    "#lastAttemptScore": "lastAttemptScore",
                    "#lastAttemptTimestamp": "lastAttemptTimestamp",
                    "#highestScore": "highestScore",
                },
                ExpressionAttributeValues={":totalPossible": total_possible, ":score": score, ":ts": timestamp},
                ReturnValues="ALL_NEW",
            )
            stored_highest = int(response["Attributes"]["highestScore"])
        except ClientError as e:
            _LOGGER.error(
                f"Error recording attempt for user {user_id}, path {path_id}: {e.response['Error']['Message']}",
                exc_info=True,
            )
            raise

        if score <= stored_highest:
            _LOGGER.info(f"Attempt of {score} for user {user_id}, path {path_id}; highest stays {stored_highest}.")
            return stored_highest

        try:
            self.table.update_item(
                Key=key,
                UpdateExpression="SET #highestScore = :score",
                ConditionExpression="#highestScore < :score",
                ExpressionAttributeNames={"#highestScore": "highestScore"},
                ExpressionAttributeValues={":score": score},
            )
            _LOGGER.info(f"New highest score {score} for user {user_id}, path {path_id} (was {stored_highest}).")
            return score
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                # A concurrent attempt stored an even higher score first.
                _LOGGER.info(f"Highest score for user {user_id}, path {path_id} was raised concurrently.")
                current = self.get_highest_score_for_path(user_id, path_id)
                return current if current is not None else score
            _LOGGER.error(
                f"Error raising highest score for user {user_id}, path {path_id}: {e.response['Error']['Message']}",
                exc_info=True,
            )
            raise

    def get_all_scores_for_user(self, user_id: typing.Optional[UserId]) -> list[UserPathScoreModel]:
        """
        Retrieves every path score item of a user by querying on the partition key.
        """
        if not user_id:
            return []

        scores: list[UserPathScoreModel] = []
        query_kwargs: dict[str, typing.Any] = {"KeyConditionExpression": Key("userId").eq(user_id)}
        try:
            while True:
                response = self.table.query(**query_kwargs)
                for item_data in response.get("Items", []):
                    try:
                        scores.append(UserPathScoreModel.model_validate(item_data))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid score item for user {user_id}: {item_data}. Error: {ve}")
                if "LastEvaluatedKey" not in response:
                    break
                query_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except ClientError as e:
            _LOGGER.error(f"Failed to query path scores for user {user_id}: {e.response['Error']['Message']}")
            raise
        return scores

    def get_highest_scores_by_path(self, user_id: typing.Optional[UserId]) -> dict[PathId, int]:
        return {score.pathId: score.highestScore for score in self.get_all_scores_for_user(user_id)}
