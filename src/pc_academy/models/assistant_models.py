import pydantic
from pydantic import BaseModel

from pc_academy.utils.base_types import OptionId, PathId, QuestionId


class ComponentQueryRequestModel(BaseModel):
    """Request body of POST /assistant/component-query."""

    query: str = pydantic.Field(min_length=1)

    class Config:
        extra = "forbid"


class ComponentQueryResponseModel(BaseModel):
    answer: str


class ConfigAnalysisRequestModel(BaseModel):
    """Request body of POST /assistant/config-analysis."""

    pcConfig: str = pydantic.Field(min_length=1, description="Free-text list of the user's PC components")

    class Config:
        extra = "forbid"


class ConfigAnalysisResponseModel(BaseModel):
    isPcRelated: bool
    analysis: str


class QuizExplanationResponseModel(BaseModel):
    pathId: PathId
    questionId: QuestionId
    correctOptionId: OptionId
    explanation: str
