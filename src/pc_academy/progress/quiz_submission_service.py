import logging
import typing

from pc_academy.dynamodb.leaderboard_table import LeaderboardTable
from pc_academy.dynamodb.learning_paths_table import LearningPathsTable
from pc_academy.dynamodb.user_path_scores_table import UserPathScoresTable
from pc_academy.dynamodb.user_progress_table import UserProgressTable
from pc_academy.models.session_models import UserSession
from pc_academy.models.user_progress_models import QuizSubmissionResultModel
from pc_academy.progress.score_aggregator import (
    POINTS_PER_QUESTION,
    aggregate_leaderboard_score,
    get_eligible_path_ids,
    score_quiz,
)
from pc_academy.utils.base_types import OptionId, PathId, QuestionId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class QuizNotAvailableError(LookupError):
    def __init__(self, path_id: PathId, message: str) -> None:
        self.path_id = path_id
        self.message = message
        super().__init__(message)


class QuizSubmissionService:
    """
    Scores a quiz attempt and, for signed-in users, persists its consequences:
    incorrect answers, the per-path highest score, and the leaderboard total.
    """

    def __init__(
        self,
        learning_paths_table: LearningPathsTable,
        progress_table: UserProgressTable,
        path_scores_table: UserPathScoresTable,
        leaderboard_table: LeaderboardTable,
        points_per_question: int = POINTS_PER_QUESTION,
    ) -> None:
        self.learning_paths_table = learning_paths_table
        self.progress_table = progress_table
        self.path_scores_table = path_scores_table
        self.leaderboard_table = leaderboard_table
        self.points_per_question = points_per_question

    def recompute_leaderboard_score(self, session: UserSession) -> int:
        """
        Recomputes the user's total from every per-path record and rewrites the leaderboard entry.
        """
        eligible_path_ids = get_eligible_path_ids(self.learning_paths_table.list_paths())
        highest_by_path = self.path_scores_table.get_highest_scores_by_path(session.userId)
        total = aggregate_leaderboard_score(highest_by_path, eligible_path_ids)
        self.leaderboard_table.put_entry(session, total)
        return total

    def submit_quiz(
        self,
        session: typing.Optional[UserSession],
        path_id: PathId,
        selected_answers: typing.Mapping[QuestionId, OptionId],
    ) -> QuizSubmissionResultModel:
        """
        :raises QuizNotAvailableError: if the path does not exist or has no quiz questions.
        :raises ClientError: if a store write fails; writes already made are not rolled back,
            but none of them can lower a stored highest score.
        """
        path = self.learning_paths_table.get_path(path_id)
        if path is None:
            raise QuizNotAvailableError(path_id, f"Learning path '{path_id}' not found.")
        if not path.has_quiz or path.quiz is None:
            raise QuizNotAvailableError(path_id, f"Learning path '{path_id}' has no quiz.")

        questions = path.quiz.questions
        quiz_score = score_quiz(questions, selected_answers, self.points_per_question)
        result = QuizSubmissionResultModel(
            pathId=path_id,
            score=quiz_score.score,
            totalPossibleScore=quiz_score.total_possible,
            correctCount=quiz_score.correct_count,
            questionCount=len(questions),
            incorrectQuestionIds=quiz_score.incorrect_question_ids,
            recorded=False,
        )

        if session is None:
            _LOGGER.info(f"Anonymous quiz submission for path {path_id}: {quiz_score.score}; not recorded.")
            return result

        _LOGGER.info(
            f"User {session.userId} scored {quiz_score.score}/{quiz_score.total_possible} on path {path_id}."
        )
        self.progress_table.record_incorrect_answers(session.userId, path_id, quiz_score.incorrect_question_ids)
        highest = self.path_scores_table.record_quiz_attempt(
            session.userId, path_id, quiz_score.score, quiz_score.total_possible
        )
        leaderboard_score = self.recompute_leaderboard_score(session)

        result.recorded = True
        result.highestScore = highest
        result.leaderboardScore = leaderboard_score
        return result
