#!/usr/bin/env python3
import pytest

from pc_academy.models.curriculum_models import CurriculumLookupError
from pc_academy.progress.unlock_policy import (
    LessonState,
    filter_known_lesson_ids,
    find_preceding_lesson,
    get_lesson_state,
    get_lesson_states,
    is_lesson_unlocked,
    is_lesson_unlocked_by_id,
)
from test_utils.curriculum import make_path, pc_basics_path


def test_first_lesson_is_always_unlocked() -> None:
    path = pc_basics_path()
    assert is_lesson_unlocked(path, 0, 0, set())


def test_second_lesson_needs_first() -> None:
    path = pc_basics_path()
    assert not is_lesson_unlocked(path, 0, 1, set())
    assert is_lesson_unlocked(path, 0, 1, {"l1"})


def test_first_lesson_of_module_needs_last_lesson_of_previous_module() -> None:
    path = make_path("p", {"m1": ["a", "b"], "m2": ["c"]})
    assert not is_lesson_unlocked(path, 1, 0, {"a"})
    assert is_lesson_unlocked(path, 1, 0, {"b"})


def test_empty_module_is_skipped() -> None:
    path = pc_basics_path()
    # m3 (index 2) follows the empty m2; its predecessor is l2 in m1
    assert find_preceding_lesson(path, 2, 0).id == "l2"
    assert not is_lesson_unlocked(path, 2, 0, {"l1"})
    assert is_lesson_unlocked(path, 2, 0, {"l1", "l2"})


def test_only_preceding_lesson_matters() -> None:
    path = make_path("p", {"m1": ["a", "b", "c"]})
    # c only needs b, even if a is not completed
    assert is_lesson_unlocked(path, 0, 2, {"b"})


def test_no_preceding_lesson_after_empty_modules_is_locked() -> None:
    path = make_path("p", {"empty1": [], "empty2": [], "m3": ["x"]})
    assert find_preceding_lesson(path, 2, 0) is None
    assert not is_lesson_unlocked(path, 2, 0, {"anything"})


def test_anonymous_caller_is_never_gated() -> None:
    path = pc_basics_path()
    assert is_lesson_unlocked(path, 2, 0, set(), is_anonymous=True)


def test_indices_out_of_range_raise() -> None:
    path = pc_basics_path()
    with pytest.raises(IndexError):
        is_lesson_unlocked(path, 5, 0, set())
    with pytest.raises(IndexError):
        is_lesson_unlocked(path, 0, 7, set())
    with pytest.raises(IndexError):
        find_preceding_lesson(path, 1, 0)  # m2 is empty


def test_order_keys_override_list_position() -> None:
    path = make_path("p", {"m1": ["a", "b"]})
    path.modules[0].lessons[0].order = 5
    # sequence is now b, a
    assert is_lesson_unlocked(path, 0, 0, set())
    assert path.ordered_modules[0].ordered_lessons[0].id == "b"
    assert not is_lesson_unlocked(path, 0, 1, set())
    assert is_lesson_unlocked(path, 0, 1, {"b"})


def test_is_lesson_unlocked_by_id() -> None:
    path = pc_basics_path()
    assert is_lesson_unlocked_by_id(path, "m3", "l3", {"l2"})
    assert not is_lesson_unlocked_by_id(path, "m3", "l3", set())
    with pytest.raises(CurriculumLookupError):
        is_lesson_unlocked_by_id(path, "m3", "nope", set())
    with pytest.raises(CurriculumLookupError):
        is_lesson_unlocked_by_id(path, "nope", "l3", set())


def test_get_lesson_state() -> None:
    path = pc_basics_path()
    assert get_lesson_state(path, 0, 0, set()) == LessonState.UNLOCKED
    assert get_lesson_state(path, 0, 0, {"l1"}) == LessonState.COMPLETED
    assert get_lesson_state(path, 0, 1, set()) == LessonState.LOCKED


def test_completed_lesson_stays_completed_when_predecessor_is_undone() -> None:
    path = pc_basics_path()
    assert get_lesson_state(path, 0, 1, {"l2"}) == LessonState.COMPLETED


def test_get_lesson_states() -> None:
    path = pc_basics_path()
    states = get_lesson_states(path, {"l1"})
    assert [(module_id, lesson.id, state) for module_id, lesson, state in states] == [
        ("m1", "l1", LessonState.COMPLETED),
        ("m1", "l2", LessonState.UNLOCKED),
        ("m3", "l3", LessonState.LOCKED),
    ]


def test_get_lesson_states_anonymous() -> None:
    states = get_lesson_states(pc_basics_path(), set(), is_anonymous=True)
    assert all(state == LessonState.UNLOCKED for _, _, state in states)


def test_filter_known_lesson_ids() -> None:
    path = pc_basics_path()
    assert filter_known_lesson_ids(path, ["l1", "removed-lesson", "l3"]) == {"l1", "l3"}
