import json
import logging
import typing

from botocore.exceptions import ClientError
from pydantic import ValidationError

from pc_academy.cloudwatch.metrics import MetricsManager
from pc_academy.dynamodb.leaderboard_table import LeaderboardTable
from pc_academy.dynamodb.learning_paths_table import LearningPathsTable
from pc_academy.dynamodb.secrets_table import SecretsTable
from pc_academy.dynamodb.throttle_table import ThrottleRateLimitExceededException, ThrottleTable
from pc_academy.dynamodb.user_path_scores_table import UserPathScoresTable
from pc_academy.dynamodb.user_progress_table import UserProgressTable
from pc_academy.models.assistant_models import QuizExplanationResponseModel
from pc_academy.models.session_models import UserSession
from pc_academy.models.user_progress_models import (
    IncorrectAnswersResponseModel,
    IncorrectPathReviewModel,
    IncorrectQuestionReviewModel,
    QuizSubmissionInputModel,
)
from pc_academy.progress.quiz_submission_service import QuizNotAvailableError, QuizSubmissionService
from pc_academy.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_event_body,
    get_method,
    get_path,
    get_path_parts,
    get_user_session_from_event,
)
from pc_academy.utils.aws_env_vars import (
    get_leaderboard_table_name,
    get_learning_paths_table_name,
    get_secrets_table_name,
    get_throttle_table_name,
    get_user_path_scores_table_name,
    get_user_progress_table_name,
)
from pc_academy.utils.base_types import PathId, QuestionId
from pc_academy.utils.chatbot_utils import ChatBotApiError, ChatBotWrapper

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class QuizApiHandler:
    def __init__(
        self,
        quiz_submission_service: QuizSubmissionService,
        learning_paths_table: LearningPathsTable,
        progress_table: UserProgressTable,
        secrets_table: SecretsTable,
        throttle_table: ThrottleTable,
        chatbot_wrapper: ChatBotWrapper,
        metrics_manager: MetricsManager,
    ):
        self.quiz_submission_service = quiz_submission_service
        self.learning_paths_table = learning_paths_table
        self.progress_table = progress_table
        self.secrets_table = secrets_table
        self.throttle_table = throttle_table
        self.chatbot_wrapper = chatbot_wrapper
        self.metrics_manager = metrics_manager

    def _handle_submission(self, event: dict, session: typing.Optional[UserSession], path_id: PathId) -> dict:
        try:
            raw_body = event.get("body")
            if not raw_body:
                return create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event)
            submission = QuizSubmissionInputModel.model_validate_json(get_event_body(event))
        except ValidationError as e:
            _LOGGER.error(f"Quiz submission body validation error: {e.errors()}", exc_info=True)
            return create_error_response(
                ErrorCode.VALIDATION_ERROR, details=e.errors(include_url=False, include_context=False), event=event
            )
        except json.JSONDecodeError:
            _LOGGER.error("Quiz submission body is not valid JSON.", exc_info=True)
            return create_error_response(ErrorCode.VALIDATION_ERROR, event=event)

        try:
            result = self.quiz_submission_service.submit_quiz(session, path_id, submission.selectedAnswers)
        except QuizNotAvailableError as e:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, e.message, event=event)

        self.metrics_manager.put_metric("QuizSubmitted", 1)
        return format_lambda_response(200, result.model_dump(exclude_none=True), event=event)

    def _handle_incorrect_answers(self, event: dict, session: typing.Optional[UserSession]) -> dict:
        if session is None:
            return create_error_response(
                ErrorCode.AUTHENTICATION_FAILED, "Sign in to review incorrect answers.", event=event
            )

        incorrect_by_path = self.progress_table.get_incorrectly_answered_questions(session.userId)
        reviews: list[IncorrectPathReviewModel] = []
        if incorrect_by_path:
            for path in self.learning_paths_table.list_paths():
                question_ids = incorrect_by_path.get(path.pathId)
                if not question_ids or path.quiz is None:
                    continue
                # Keep quiz order; ids of removed questions are dropped
                questions = [
                    IncorrectQuestionReviewModel(
                        questionId=question.id,
                        text=question.text,
                        options=question.options,
                        correctOptionId=question.correctOptionId,
                    )
                    for question in path.quiz.questions
                    if question.id in question_ids
                ]
                if questions:
                    reviews.append(IncorrectPathReviewModel(pathId=path.pathId, pathTitle=path.title, questions=questions))

        response = IncorrectAnswersResponseModel(paths=reviews)
        return format_lambda_response(200, response.model_dump(exclude_none=True), event=event)

    def _handle_explanation(
        self, event: dict, session: typing.Optional[UserSession], path_id: PathId, question_id: QuestionId
    ) -> dict:
        if session is None:
            return create_error_response(
                ErrorCode.AUTHENTICATION_FAILED, "Sign in to get AI explanations.", event=event
            )

        path = self.learning_paths_table.get_path(path_id)
        question = path.quiz.get_question(question_id) if path and path.quiz else None
        if question is None:
            return create_error_response(
                ErrorCode.RESOURCE_NOT_FOUND, f"Question '{question_id}' not found in '{path_id}'.", event=event
            )

        with self.throttle_table.throttle_action(session.userId, "QUIZ_EXPLANATION_CHATBOT_API_CALL"):
            explanation = self.chatbot_wrapper.call_quiz_explanation_api(
                chatbot_api_key=self.secrets_table.get_gemini_api_key(),
                question=question,
            )
        self.metrics_manager.put_metric("QuizExplanationGenerated", 1)
        response = QuizExplanationResponseModel(
            pathId=path_id,
            questionId=question_id,
            correctOptionId=question.correctOptionId,
            explanation=explanation,
        )
        return format_lambda_response(200, response.model_dump(), event=event)

    def handle(self, event: dict) -> dict:
        session = get_user_session_from_event(event)
        http_method = get_method(event).upper()
        path_parts = get_path_parts(event)

        _LOGGER.info(f"QuizApiHandler: {http_method} {get_path(event)} for user: {session.userId if session else 'anonymous'}")

        try:
            if len(path_parts) >= 2 and path_parts[0] == "quizzes":
                if http_method == "GET" and path_parts[1:] == ["incorrect-answers"]:
                    return self._handle_incorrect_answers(event, session)
                if http_method == "POST" and len(path_parts) == 3 and path_parts[2] == "submissions":
                    return self._handle_submission(event, session, PathId(path_parts[1]))
                if (
                    http_method == "POST"
                    and len(path_parts) == 5
                    and path_parts[2] == "questions"
                    and path_parts[4] == "explanation"
                ):
                    return self._handle_explanation(event, session, PathId(path_parts[1]), QuestionId(path_parts[3]))

            _LOGGER.warning(f"Unsupported path or method for quizzes: {http_method} {get_path(event)}")
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except ThrottleRateLimitExceededException as te:
            _LOGGER.warning(f"Throttling limit hit for quiz explanation: {te.limit_type} - {te.message}")
            self.metrics_manager.put_metric("ThrottledRequest", 1)
            return create_error_response(ErrorCode.RATE_LIMIT_EXCEEDED, te.message, event=event)
        except ChatBotApiError as ce:
            _LOGGER.error(f"AI Service communication error during quiz explanation: {str(ce)}", exc_info=True)
            self.metrics_manager.put_metric("ChatBotApiFailure", 1)
            return create_error_response(ErrorCode.AI_SERVICE_UNAVAILABLE, event=event)
        except ClientError as e:
            _LOGGER.error(f"Data store error in QuizApiHandler: {e}", exc_info=True)
            self.metrics_manager.put_metric("StoreFailure", 1)
            return create_error_response(ErrorCode.STORE_UNAVAILABLE, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in QuizApiHandler: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def quiz_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    metrics_manager = MetricsManager()
    metrics_manager.set_dimension("Handler", "Quiz")

    try:
        learning_paths_table = LearningPathsTable(get_learning_paths_table_name())
        progress_table = UserProgressTable(get_user_progress_table_name())
        quiz_submission_service = QuizSubmissionService(
            learning_paths_table=learning_paths_table,
            progress_table=progress_table,
            path_scores_table=UserPathScoresTable(get_user_path_scores_table_name()),
            leaderboard_table=LeaderboardTable(get_leaderboard_table_name()),
        )
        api_handler = QuizApiHandler(
            quiz_submission_service=quiz_submission_service,
            learning_paths_table=learning_paths_table,
            progress_table=progress_table,
            secrets_table=SecretsTable(get_secrets_table_name()),
            throttle_table=ThrottleTable(get_throttle_table_name()),
            chatbot_wrapper=ChatBotWrapper(),
            metrics_manager=metrics_manager,
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in quiz_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Critical error in global handler setup: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
    finally:
        metrics_manager.flush()
