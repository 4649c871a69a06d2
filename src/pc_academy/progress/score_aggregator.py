import typing

from pc_academy.models.curriculum_models import LearningPath, QuizQuestion
from pc_academy.utils.base_types import OptionId, PathId, QuestionId

POINTS_PER_QUESTION = 10


class QuizScore(typing.NamedTuple):
    score: int
    incorrect_question_ids: list[QuestionId]
    correct_count: int
    total_possible: int


def score_quiz(
    questions: typing.Sequence[QuizQuestion],
    selected_answers: typing.Mapping[QuestionId, OptionId],
    points_per_question: int = POINTS_PER_QUESTION,
) -> QuizScore:
    """
    Scores one quiz attempt. Unanswered questions count as incorrect.
    Incorrect ids are returned in question order.
    """
    correct_count = 0
    incorrect_question_ids: list[QuestionId] = []
    for question in questions:
        if selected_answers.get(question.id) == question.correctOptionId:
            correct_count += 1
        else:
            incorrect_question_ids.append(question.id)

    return QuizScore(
        score=correct_count * points_per_question,
        incorrect_question_ids=incorrect_question_ids,
        correct_count=correct_count,
        total_possible=len(questions) * points_per_question,
    )


def get_eligible_path_ids(paths: typing.Iterable[LearningPath]) -> set[PathId]:
    """Paths that count towards the leaderboard: those with a non-empty quiz."""
    return {path.pathId for path in paths if path.has_quiz}


def aggregate_leaderboard_score(
    per_path_highest_scores: typing.Mapping[PathId, int],
    eligible_path_ids: typing.Iterable[PathId],
) -> int:
    """
    Sums the highest score of every eligible path; a path never attempted contributes 0.
    Scores of paths outside the eligible set are ignored.
    """
    return sum(per_path_highest_scores.get(path_id, 0) for path_id in set(eligible_path_ids))
