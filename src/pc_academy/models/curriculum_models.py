import typing

import pydantic

from pc_academy.utils.base_types import LessonId, ModuleId, OptionId, PathId, QuestionId


class CurriculumLookupError(LookupError):
    """A path, module or lesson id does not exist in the curriculum."""


class QuizOption(pydantic.BaseModel):
    id: OptionId
    text: str


class QuizQuestion(pydantic.BaseModel):
    id: QuestionId
    text: str
    options: list[QuizOption] = pydantic.Field(default_factory=list)
    correctOptionId: OptionId


class Quiz(pydantic.BaseModel):
    title: str
    questions: list[QuizQuestion] = pydantic.Field(default_factory=list)

    def get_question(self, question_id: QuestionId) -> typing.Optional[QuizQuestion]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


class Lesson(pydantic.BaseModel):
    id: LessonId
    title: str
    description: str = ""
    content: typing.Optional[str] = None
    order: typing.Optional[int] = pydantic.Field(
        default=None, description="Sequence key within the module; defaults to list position"
    )


class Module(pydantic.BaseModel):
    id: ModuleId
    title: str
    order: typing.Optional[int] = pydantic.Field(
        default=None, description="Sequence key within the path; defaults to list position"
    )
    lessons: list[Lesson] = pydantic.Field(default_factory=list)

    @property
    def ordered_lessons(self) -> list[Lesson]:
        return _sort_by_order(self.lessons)


class LearningPath(pydantic.BaseModel):
    """
    A course track as stored in the learning paths table (one item per path).

    Modules and lessons carry explicit 'order' keys. Lists are re-sorted by
    (order, list position) so an item without an order keeps its array position.
    """

    pathId: PathId
    title: str
    description: str = ""
    imageUrl: typing.Optional[str] = None
    order: typing.Optional[int] = None
    modules: list[Module] = pydantic.Field(default_factory=list)
    quiz: typing.Optional[Quiz] = None

    @property
    def ordered_modules(self) -> list[Module]:
        return _sort_by_order(self.modules)

    @property
    def has_quiz(self) -> bool:
        return self.quiz is not None and len(self.quiz.questions) > 0

    @property
    def lesson_count(self) -> int:
        return sum(len(module.lessons) for module in self.modules)

    def all_lesson_ids(self) -> set[LessonId]:
        return {lesson.id for module in self.modules for lesson in module.lessons}

    def leading_empty_module_ids(self) -> list[ModuleId]:
        """
        Empty modules in front of the path's first lesson. When there are any, that
        lesson has no predecessor and can never unlock for a signed-in user.
        """
        leading: list[ModuleId] = []
        for module in self.ordered_modules:
            if module.lessons:
                return leading
            leading.append(module.id)
        return []

    def locate_lesson(self, module_id: ModuleId, lesson_id: LessonId) -> tuple[int, int]:
        """
        Returns the (module index, lesson index) of a lesson in sequence order.

        :raises CurriculumLookupError: if the module or lesson is not part of this path.
        """
        for module_index, module in enumerate(self.ordered_modules):
            if module.id != module_id:
                continue
            for lesson_index, lesson in enumerate(module.ordered_lessons):
                if lesson.id == lesson_id:
                    return module_index, lesson_index
            raise CurriculumLookupError(f"Lesson '{lesson_id}' not found in module '{module_id}' of '{self.pathId}'")
        raise CurriculumLookupError(f"Module '{module_id}' not found in path '{self.pathId}'")

    def get_lesson(self, module_id: ModuleId, lesson_id: LessonId) -> Lesson:
        module_index, lesson_index = self.locate_lesson(module_id, lesson_id)
        return self.ordered_modules[module_index].ordered_lessons[lesson_index]


_Ordered = typing.TypeVar("_Ordered", Module, Lesson)


def _sort_by_order(items: list[_Ordered]) -> list[_Ordered]:
    indexed = list(enumerate(items))
    indexed.sort(key=lambda pair: (pair[1].order if pair[1].order is not None else pair[0], pair[0]))
    return [item for _, item in indexed]


class LessonSummaryModel(pydantic.BaseModel):
    moduleId: ModuleId
    lessonId: LessonId
    title: str
    state: typing.Literal["LOCKED", "UNLOCKED", "COMPLETED"]


class LearningPathSummaryModel(pydantic.BaseModel):
    """Response item for GET /learning-paths."""

    pathId: PathId
    title: str
    description: str
    imageUrl: typing.Optional[str] = None
    lessonCount: int
    completedLessonsCount: int
    hasQuiz: bool


class PublicQuizQuestionModel(pydantic.BaseModel):
    id: QuestionId
    text: str
    options: list[QuizOption]


class PublicQuizModel(pydantic.BaseModel):
    title: str
    questions: list[PublicQuizQuestionModel]


class PublicLessonModel(pydantic.BaseModel):
    id: LessonId
    title: str
    description: str


class PublicModuleModel(pydantic.BaseModel):
    id: ModuleId
    title: str
    lessons: list[PublicLessonModel]


class PublicLearningPathModel(pydantic.BaseModel):
    """
    Overview of a path that is safe to send to any caller.

    Lesson content is left out because only the lesson route checks the unlock
    state, and answer keys are left out because quizzes are scored server side.
    Modules and lessons are listed in sequence order.
    """

    pathId: PathId
    title: str
    description: str
    imageUrl: typing.Optional[str] = None
    modules: list[PublicModuleModel]
    quiz: typing.Optional[PublicQuizModel] = None

    @classmethod
    def from_path(cls, path: LearningPath) -> "PublicLearningPathModel":
        quiz = None
        if path.quiz is not None:
            quiz = PublicQuizModel(
                title=path.quiz.title,
                questions=[
                    PublicQuizQuestionModel(id=question.id, text=question.text, options=question.options)
                    for question in path.quiz.questions
                ],
            )
        return cls(
            pathId=path.pathId,
            title=path.title,
            description=path.description,
            imageUrl=path.imageUrl,
            modules=[
                PublicModuleModel(
                    id=module.id,
                    title=module.title,
                    lessons=[
                        PublicLessonModel(id=lesson.id, title=lesson.title, description=lesson.description)
                        for lesson in module.ordered_lessons
                    ],
                )
                for module in path.ordered_modules
            ],
            quiz=quiz,
        )


class LearningPathDetailModel(pydantic.BaseModel):
    """Response for GET /learning-paths/{pathId}."""

    path: PublicLearningPathModel
    completedLessonIds: list[LessonId]
    lessons: list[LessonSummaryModel]
    highestScore: typing.Optional[int] = None


class LessonRefModel(pydantic.BaseModel):
    moduleId: ModuleId
    lessonId: LessonId


class LessonDetailModel(pydantic.BaseModel):
    pathId: PathId
    moduleId: ModuleId
    lesson: Lesson
    completed: bool
    previousLesson: typing.Optional[LessonRefModel] = None
    nextLesson: typing.Optional[LessonRefModel] = None
