import logging
import typing

from botocore.exceptions import ClientError

from pc_academy.cloudwatch.metrics import MetricsManager
from pc_academy.dynamodb.learning_paths_table import LearningPathsTable
from pc_academy.dynamodb.user_path_scores_table import UserPathScoresTable
from pc_academy.dynamodb.user_progress_table import UserProgressTable
from pc_academy.models.curriculum_models import (
    CurriculumLookupError,
    LearningPath,
    LearningPathDetailModel,
    LearningPathSummaryModel,
    LessonDetailModel,
    LessonRefModel,
    LessonSummaryModel,
    PublicLearningPathModel,
)
from pc_academy.models.session_models import UserSession
from pc_academy.models.user_progress_models import LessonCompletionResponseModel
from pc_academy.progress.unlock_policy import filter_known_lesson_ids, get_lesson_states, is_lesson_unlocked
from pc_academy.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_method,
    get_path,
    get_path_parts,
    get_user_session_from_event,
)
from pc_academy.utils.aws_env_vars import (
    get_learning_paths_table_name,
    get_user_path_scores_table_name,
    get_user_progress_table_name,
)
from pc_academy.utils.base_types import LessonId, ModuleId, PathId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


def _lesson_sequence(path: LearningPath) -> list[LessonRefModel]:
    return [
        LessonRefModel(moduleId=module.id, lessonId=lesson.id)
        for module in path.ordered_modules
        for lesson in module.ordered_lessons
    ]


class LearningProgressApiHandler:
    """
    Serves the curriculum together with the caller's progress, and gates lessons
    behind their predecessors for signed-in users.
    """

    def __init__(
        self,
        learning_paths_table: LearningPathsTable,
        progress_table: UserProgressTable,
        path_scores_table: UserPathScoresTable,
        metrics_manager: MetricsManager,
    ):
        self.learning_paths_table = learning_paths_table
        self.progress_table = progress_table
        self.path_scores_table = path_scores_table
        self.metrics_manager = metrics_manager

    def _completed_lesson_ids(self, session: typing.Optional[UserSession], path: LearningPath) -> set[LessonId]:
        if session is None:
            return set()
        stored = self.progress_table.get_completed_lesson_ids_for_path(session.userId, path.pathId)
        return filter_known_lesson_ids(path, stored)

    def _handle_list_paths(self, event: dict, session: typing.Optional[UserSession]) -> dict:
        summaries = []
        for path in self.learning_paths_table.list_paths():
            summaries.append(
                LearningPathSummaryModel(
                    pathId=path.pathId,
                    title=path.title,
                    description=path.description,
                    imageUrl=path.imageUrl,
                    lessonCount=path.lesson_count,
                    completedLessonsCount=len(self._completed_lesson_ids(session, path)),
                    hasQuiz=path.has_quiz,
                ).model_dump(exclude_none=True)
            )
        return format_lambda_response(200, {"paths": summaries}, event=event)

    def _handle_get_path(self, event: dict, session: typing.Optional[UserSession], path_id: PathId) -> dict:
        path = self.learning_paths_table.get_path(path_id)
        if path is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Learning path '{path_id}' not found.", event=event)

        completed = self._completed_lesson_ids(session, path)
        lessons = [
            LessonSummaryModel(moduleId=module_id, lessonId=lesson.id, title=lesson.title, state=state.value)
            for module_id, lesson, state in get_lesson_states(path, completed, is_anonymous=session is None)
        ]
        highest_score = self.path_scores_table.get_highest_score_for_path(session.userId, path_id) if session else None

        detail = LearningPathDetailModel(
            path=PublicLearningPathModel.from_path(path),
            completedLessonIds=sorted(completed),
            lessons=lessons,
            highestScore=highest_score,
        )
        return format_lambda_response(200, detail.model_dump(exclude_none=True), event=event)

    def _lesson_locked_response(self, event: dict, path_id: PathId) -> dict:
        self.metrics_manager.put_metric("LessonLockedRedirect", 1)
        return create_error_response(
            ErrorCode.LESSON_LOCKED,
            "Please complete the previous lessons first.",
            extra={"redirectTo": f"/learning-paths/{path_id}"},
            event=event,
        )

    def _handle_get_lesson(
        self,
        event: dict,
        session: typing.Optional[UserSession],
        path_id: PathId,
        module_id: ModuleId,
        lesson_id: LessonId,
    ) -> dict:
        path = self.learning_paths_table.get_path(path_id)
        if path is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Learning path '{path_id}' not found.", event=event)
        try:
            module_index, lesson_index = path.locate_lesson(module_id, lesson_id)
        except CurriculumLookupError as e:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, str(e), event=event)

        completed = self._completed_lesson_ids(session, path)
        if not is_lesson_unlocked(path, module_index, lesson_index, completed, is_anonymous=session is None):
            _LOGGER.info(f"Lesson {path_id}/{module_id}/{lesson_id} is locked for {session.userId if session else None}.")
            return self._lesson_locked_response(event, path_id)

        sequence = _lesson_sequence(path)
        position = sequence.index(LessonRefModel(moduleId=module_id, lessonId=lesson_id))
        detail = LessonDetailModel(
            pathId=path_id,
            moduleId=module_id,
            lesson=path.get_lesson(module_id, lesson_id),
            completed=lesson_id in completed,
            previousLesson=sequence[position - 1] if position > 0 else None,
            nextLesson=sequence[position + 1] if position + 1 < len(sequence) else None,
        )
        return format_lambda_response(200, detail.model_dump(exclude_none=True), event=event)

    def _handle_toggle_completion(
        self,
        event: dict,
        session: typing.Optional[UserSession],
        path_id: PathId,
        module_id: ModuleId,
        lesson_id: LessonId,
    ) -> dict:
        if session is None:
            return create_error_response(
                ErrorCode.AUTHENTICATION_FAILED, "Sign in to track lesson progress.", event=event
            )

        path = self.learning_paths_table.get_path(path_id)
        if path is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Learning path '{path_id}' not found.", event=event)
        try:
            module_index, lesson_index = path.locate_lesson(module_id, lesson_id)
        except CurriculumLookupError as e:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, str(e), event=event)

        completed = self._completed_lesson_ids(session, path)
        # Un-completing is always allowed; completing needs the lesson to be open
        if lesson_id not in completed and not is_lesson_unlocked(path, module_index, lesson_index, completed):
            return self._lesson_locked_response(event, path_id)

        new_state = self.progress_table.toggle_lesson_completion(session.userId, path_id, module_id, lesson_id)
        self.metrics_manager.put_metric("LessonCompletionToggled", 1)

        completed_count = len(completed) + (1 if new_state else -1)
        response = LessonCompletionResponseModel(
            pathId=path_id,
            moduleId=module_id,
            lessonId=lesson_id,
            completed=bool(new_state),
            completedLessonsCount=max(completed_count, 0),
        )
        return format_lambda_response(200, response.model_dump(), event=event)

    def handle(self, event: dict) -> dict:
        session = get_user_session_from_event(event)
        http_method = get_method(event).upper()
        path_parts = get_path_parts(event)

        _LOGGER.info(f"LearningProgressApiHandler: {http_method} {get_path(event)} for user: {session.userId if session else 'anonymous'}")

        try:
            if not path_parts or path_parts[0] != "learning-paths":
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

            if http_method == "GET" and len(path_parts) == 1:
                return self._handle_list_paths(event, session)
            elif http_method == "GET" and len(path_parts) == 2:
                return self._handle_get_path(event, session, PathId(path_parts[1]))
            elif len(path_parts) >= 6 and path_parts[2] == "modules" and path_parts[4] == "lessons":
                path_id, module_id, lesson_id = PathId(path_parts[1]), ModuleId(path_parts[3]), LessonId(path_parts[5])
                if http_method == "GET" and len(path_parts) == 6:
                    return self._handle_get_lesson(event, session, path_id, module_id, lesson_id)
                if http_method == "PUT" and len(path_parts) == 7 and path_parts[6] == "completion":
                    return self._handle_toggle_completion(event, session, path_id, module_id, lesson_id)

            _LOGGER.warning(f"Unsupported path or method for learning paths: {http_method} {get_path(event)}")
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except ClientError as e:
            _LOGGER.error(f"Data store error in LearningProgressApiHandler: {e}", exc_info=True)
            self.metrics_manager.put_metric("StoreFailure", 1)
            return create_error_response(ErrorCode.STORE_UNAVAILABLE, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in LearningProgressApiHandler: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def learning_progress_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    metrics_manager = MetricsManager()
    metrics_manager.set_dimension("Handler", "LearningProgress")

    try:
        api_handler = LearningProgressApiHandler(
            learning_paths_table=LearningPathsTable(get_learning_paths_table_name()),
            progress_table=UserProgressTable(get_user_progress_table_name()),
            path_scores_table=UserPathScoresTable(get_user_path_scores_table_name()),
            metrics_manager=metrics_manager,
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in learning_progress_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Critical error in global handler setup: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
    finally:
        metrics_manager.flush()
