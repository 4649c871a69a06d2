"""
Sequential lesson gating.

A lesson is open once the lesson immediately before it (in path order) is
completed. The first lesson of a path is always open, and nothing is gated for
anonymous callers since their progress is not tracked.
"""

import enum
import logging
import typing

from pc_academy.models.curriculum_models import LearningPath, Lesson
from pc_academy.utils.base_types import LessonId, ModuleId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class LessonState(str, enum.Enum):
    LOCKED = "LOCKED"
    UNLOCKED = "UNLOCKED"
    COMPLETED = "COMPLETED"


def find_preceding_lesson(path: LearningPath, module_index: int, lesson_index: int) -> typing.Optional[Lesson]:
    """
    Returns the lesson immediately before (module_index, lesson_index), skipping empty modules.

    :raises IndexError: if the indices do not address a lesson of the path.
    """
    modules = path.ordered_modules
    if module_index < 0 or module_index >= len(modules):
        raise IndexError(f"Module index {module_index} out of range for path '{path.pathId}'")
    lessons = modules[module_index].ordered_lessons
    if lesson_index < 0 or lesson_index >= len(lessons):
        raise IndexError(f"Lesson index {lesson_index} out of range for module '{modules[module_index].id}'")

    if lesson_index > 0:
        return lessons[lesson_index - 1]

    for previous_index in range(module_index - 1, -1, -1):
        previous_lessons = modules[previous_index].ordered_lessons
        if previous_lessons:
            return previous_lessons[-1]
    return None


def is_lesson_unlocked(
    path: LearningPath,
    module_index: int,
    lesson_index: int,
    completed_lesson_ids: typing.AbstractSet[LessonId],
    *,
    is_anonymous: bool = False,
) -> bool:
    """
    :param completed_lesson_ids: lesson ids (not composite keys) completed in this path.
    :param is_anonymous: True when the caller has no identity; gating is then disabled.
    :return: True if the lesson may be opened.
    """
    if is_anonymous:
        return True

    if module_index == 0 and lesson_index == 0:
        # still validate the indices
        find_preceding_lesson(path, module_index, lesson_index)
        return True

    preceding = find_preceding_lesson(path, module_index, lesson_index)
    if preceding is None:
        # Every earlier module is empty; the curriculum should not be authored this way.
        _LOGGER.warning(
            f"No preceding lesson for module index {module_index} in path '{path.pathId}'; treating as locked."
        )
        return False

    return preceding.id in completed_lesson_ids


def is_lesson_unlocked_by_id(
    path: LearningPath,
    module_id: ModuleId,
    lesson_id: LessonId,
    completed_lesson_ids: typing.AbstractSet[LessonId],
    *,
    is_anonymous: bool = False,
) -> bool:
    """
    :raises CurriculumLookupError: if the module or lesson is not part of the path.
    """
    module_index, lesson_index = path.locate_lesson(module_id, lesson_id)
    return is_lesson_unlocked(path, module_index, lesson_index, completed_lesson_ids, is_anonymous=is_anonymous)


def get_lesson_state(
    path: LearningPath,
    module_index: int,
    lesson_index: int,
    completed_lesson_ids: typing.AbstractSet[LessonId],
    *,
    is_anonymous: bool = False,
) -> LessonState:
    lesson = path.ordered_modules[module_index].ordered_lessons[lesson_index]
    if lesson.id in completed_lesson_ids:
        return LessonState.COMPLETED
    if is_lesson_unlocked(path, module_index, lesson_index, completed_lesson_ids, is_anonymous=is_anonymous):
        return LessonState.UNLOCKED
    return LessonState.LOCKED


def get_lesson_states(
    path: LearningPath,
    completed_lesson_ids: typing.AbstractSet[LessonId],
    *,
    is_anonymous: bool = False,
) -> list[tuple[ModuleId, Lesson, LessonState]]:
    """All lessons of the path in sequence order, each with its state for this user."""
    states = []
    for module_index, module in enumerate(path.ordered_modules):
        for lesson_index, lesson in enumerate(module.ordered_lessons):
            state = get_lesson_state(
                path, module_index, lesson_index, completed_lesson_ids, is_anonymous=is_anonymous
            )
            states.append((module.id, lesson, state))
    return states


def filter_known_lesson_ids(path: LearningPath, lesson_ids: typing.Iterable[LessonId]) -> set[LessonId]:
    """Drops completion records that point at lessons no longer in the curriculum."""
    known = path.all_lesson_ids()
    return {lesson_id for lesson_id in lesson_ids if lesson_id in known}
