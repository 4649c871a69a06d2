import typing

import pydantic
from pydantic import BaseModel, Field

from pc_academy.models.curriculum_models import QuizOption
from pc_academy.utils.base_types import (
    CompositeLessonKey,
    IsoTimestamp,
    LessonId,
    ModuleId,
    OptionId,
    PathId,
    QuestionId,
    UserId,
)


def make_composite_lesson_key(path_id: PathId, module_id: ModuleId, lesson_id: LessonId) -> CompositeLessonKey:
    return CompositeLessonKey(f"{path_id}/{module_id}/{lesson_id}")


def split_composite_lesson_key(key: str) -> typing.Optional[tuple[PathId, ModuleId, LessonId]]:
    parts = key.split("/")
    if len(parts) != 3:
        return None
    return PathId(parts[0]), ModuleId(parts[1]), LessonId(parts[2])


class UserProgressModel(BaseModel):
    """One item per user in the progress table (PK: userId)."""

    userId: UserId
    completedLessons: set[CompositeLessonKey] = Field(default_factory=set)
    # pathId -> questionIds answered incorrectly at least once
    incorrectlyAnsweredQuestions: dict[PathId, set[QuestionId]] = Field(default_factory=dict)
    createdAt: typing.Optional[IsoTimestamp] = None
    lastUpdated: typing.Optional[IsoTimestamp] = None


class UserPathScoreModel(BaseModel):
    """One item per user per path in the path scores table (PK: userId, SK: pathId)."""

    userId: UserId
    pathId: PathId
    highestScore: int = Field(default=0, ge=0)
    totalPossibleScore: int = Field(default=0, ge=0)
    lastAttemptScore: typing.Optional[int] = None
    lastAttemptTimestamp: typing.Optional[IsoTimestamp] = None

    @pydantic.field_validator("highestScore", "totalPossibleScore", "lastAttemptScore", mode="before")
    @classmethod
    def coerce_decimal(cls, v: typing.Any) -> typing.Any:
        # boto3 returns DynamoDB numbers as decimal.Decimal
        if v is None:
            return None
        return int(v)


class LeaderboardEntryModel(BaseModel):
    """One item per user in the leaderboard table (PK: userId)."""

    userId: UserId
    displayName: str
    score: int = Field(default=0, ge=0)
    avatarUrl: str = ""
    lastUpdatedAt: IsoTimestamp

    @pydantic.field_validator("score", mode="before")
    @classmethod
    def coerce_decimal(cls, v: typing.Any) -> typing.Any:
        return int(v) if v is not None else 0


class RankedLeaderboardEntryModel(LeaderboardEntryModel):
    rank: int


class LeaderboardResponseModel(BaseModel):
    entries: list[RankedLeaderboardEntryModel]


class LessonCompletionResponseModel(BaseModel):
    pathId: PathId
    moduleId: ModuleId
    lessonId: LessonId
    completed: bool
    completedLessonsCount: int


class QuizSubmissionInputModel(BaseModel):
    # questionId -> selected optionId; unanswered questions are simply absent
    selectedAnswers: dict[QuestionId, OptionId] = Field(default_factory=dict)

    class Config:
        extra = "forbid"


class QuizSubmissionResultModel(BaseModel):
    pathId: PathId
    score: int
    totalPossibleScore: int
    correctCount: int
    questionCount: int
    incorrectQuestionIds: list[QuestionId]
    recorded: bool = Field(description="False when the caller is anonymous and nothing was persisted")
    highestScore: typing.Optional[int] = None
    leaderboardScore: typing.Optional[int] = None


class IncorrectQuestionReviewModel(BaseModel):
    questionId: QuestionId
    text: str
    options: list[QuizOption]
    correctOptionId: OptionId


class IncorrectPathReviewModel(BaseModel):
    pathId: PathId
    pathTitle: str
    questions: list[IncorrectQuestionReviewModel]


class IncorrectAnswersResponseModel(BaseModel):
    paths: list[IncorrectPathReviewModel]
