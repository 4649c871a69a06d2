import logging
import typing
from datetime import datetime, timezone

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from pc_academy.models.user_progress_models import (
    UserProgressModel,
    make_composite_lesson_key,
    split_composite_lesson_key,
)
from pc_academy.utils.base_types import IsoTimestamp, LessonId, ModuleId, PathId, QuestionId, UserId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class UserProgressTable:
    """
    Data Abstraction Layer for per-user lesson completion and incorrect-answer records.

    Table Schema:
      - PK: userId (user's email address)
      - completedLessons: String Set of "pathId/moduleId/lessonId"
      - incorrectlyAnsweredQuestions: Map of pathId -> String Set of questionId

    Every operation accepts a missing user id and behaves as if the record were empty.
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def get_progress(self, user_id: typing.Optional[UserId]) -> typing.Optional[UserProgressModel]:
        """
        Retrieves a user's progress record from DynamoDB.

        :param user_id: The ID of the user.
        :return: UserProgressModel instance if found, else None.
        """
        if not user_id:
            return None

        try:
            response = self.table.get_item(Key={"userId": user_id})
            item_data = response.get("Item")
            if item_data:
                return UserProgressModel.model_validate(item_data)
            _LOGGER.debug(f"No progress found for user_id: {user_id}")
            return None
        except ClientError as e:
            _LOGGER.error(f"Failed to get progress for user_id {user_id}: {e.response['Error']['Message']}")
            raise
        except ValidationError as ve:
            _LOGGER.error(f"Failed to validate progress data for user_id {user_id}: {ve}", exc_info=True)
            return None

    def is_lesson_completed(
        self,
        user_id: typing.Optional[UserId],
        path_id: PathId,
        module_id: ModuleId,
        lesson_id: LessonId,
    ) -> bool:
        progress = self.get_progress(user_id)
        if not progress:
            return False
        return make_composite_lesson_key(path_id, module_id, lesson_id) in progress.completedLessons

    def toggle_lesson_completion(
        self,
        user_id: typing.Optional[UserId],
        path_id: PathId,
        module_id: ModuleId,
        lesson_id: LessonId,
    ) -> typing.Optional[bool]:
        """
        Flips the completion state of a lesson, creating the progress record on first use.

        :return: The new state (True = now completed), or None if there is no user.
        """
        if not user_id:
            _LOGGER.info("toggle_lesson_completion called without a user; ignoring.")
            return None

        composite_key = make_composite_lesson_key(path_id, module_id, lesson_id)
        timestamp = IsoTimestamp(datetime.now(timezone.utc).isoformat())
        currently_completed = self.is_lesson_completed(user_id, path_id, module_id, lesson_id)

        if currently_completed:
            update_expression = "SET #lastUpdated = :ts DELETE #completedLessons :lessonKey"
        else:
            update_expression = (
                "SET #lastUpdated = :ts, #createdAt = if_not_exists(#createdAt, :ts) ADD #completedLessons :lessonKey"
            )

        expression_attribute_names = {"#completedLessons": "completedLessons", "#lastUpdated": "lastUpdated"}
        if not currently_completed:
            expression_attribute_names["#createdAt"] = "createdAt"

        try:
            self.table.update_item(
                Key={"userId": user_id},
                UpdateExpression=update_expression,
                ExpressionAttributeNames=expression_attribute_names,
                ExpressionAttributeValues={":lessonKey": {composite_key}, ":ts": timestamp},
            )
        except ClientError as e:
            _LOGGER.error(
                f"Error toggling {composite_key} for user_id {user_id}: {e.response['Error']['Message']}",
                exc_info=True,
            )
            raise

        new_state = not currently_completed
        _LOGGER.info(f"Lesson {composite_key} for user {user_id} is now {'completed' if new_state else 'incomplete'}.")
        return new_state

    def get_completed_lesson_ids_for_path(self, user_id: typing.Optional[UserId], path_id: PathId) -> set[LessonId]:
        """
        Projects the completed composite keys of one path down to their lesson ids.
        """
        progress = self.get_progress(user_id)
        if not progress:
            return set()

        lesson_ids: set[LessonId] = set()
        for composite_key in progress.completedLessons:
            parts = split_composite_lesson_key(composite_key)
            if parts is None:
                _LOGGER.warning(f"Skipping malformed completion key '{composite_key}' for user {user_id}")
                continue
            key_path_id, _, lesson_id = parts
            if key_path_id == path_id:
                lesson_ids.add(lesson_id)
        return lesson_ids

    def get_completed_lessons_count_for_path(self, user_id: typing.Optional[UserId], path_id: PathId) -> int:
        return len(self.get_completed_lesson_ids_for_path(user_id, path_id))

    def record_incorrect_answer(self, user_id: typing.Optional[UserId], path_id: PathId, question_id: QuestionId) -> None:
        self.record_incorrect_answers(user_id, path_id, [question_id])

    def record_incorrect_answers(
        self,
        user_id: typing.Optional[UserId],
        path_id: PathId,
        question_ids: typing.Iterable[QuestionId],
    ) -> None:
        """
        Adds question ids to the user's incorrect set for a path. Ids already present are no-ops.
        This is a get-modify-write on the path's entry of the map.
        """
        new_ids = set(question_ids)
        if not user_id or not new_ids:
            return

        timestamp = IsoTimestamp(datetime.now(timezone.utc).isoformat())
        progress = self.get_progress(user_id)

        expression_attribute_names = {"#iaq": "incorrectlyAnsweredQuestions", "#lastUpdated": "lastUpdated"}
        expression_attribute_values: dict[str, typing.Any] = {":ts": timestamp}

        if progress is None or not progress.incorrectlyAnsweredQuestions:
            # The map attribute does not exist yet; create it with this path only.
            update_expression = (
                "SET #iaq = :incorrectMap, #lastUpdated = :ts, #createdAt = if_not_exists(#createdAt, :ts)"
            )
            expression_attribute_names["#createdAt"] = "createdAt"
            expression_attribute_values[":incorrectMap"] = {path_id: new_ids}
        else:
            existing = progress.incorrectlyAnsweredQuestions.get(path_id, set())
            if new_ids <= existing:
                _LOGGER.debug(f"Incorrect answers {new_ids} already recorded for user {user_id}, path {path_id}.")
                return
            update_expression = "SET #iaq.#pathId = :questionIds, #lastUpdated = :ts"
            expression_attribute_names["#pathId"] = path_id
            expression_attribute_values[":questionIds"] = existing | new_ids

        try:
            self.table.update_item(
                Key={"userId": user_id},
                UpdateExpression=update_expression,
                ExpressionAttributeNames=expression_attribute_names,
                ExpressionAttributeValues=expression_attribute_values,
            )
            _LOGGER.info(f"Recorded {len(new_ids)} incorrect answer(s) for user {user_id}, path {path_id}.")
        except ClientError as e:
            _LOGGER.error(
                f"Error recording incorrect answers for user {user_id}, path {path_id}: "
                f"{e.response['Error']['Message']}",
                exc_info=True,
            )
            raise

    def get_incorrectly_answered_questions(self, user_id: typing.Optional[UserId]) -> dict[PathId, set[QuestionId]]:
        progress = self.get_progress(user_id)
        if not progress:
            return {}
        return progress.incorrectlyAnsweredQuestions
