import pydantic
import pytest

from pc_academy.models.community_models import (
    COMPONENT_TYPES,
    BuildComponentModel,
    CommunityBuildInputModel,
    ImageUploadModel,
    normalize_components,
    order_primary_first,
)


def _image() -> ImageUploadModel:
    return ImageUploadModel(contentType="image/png", data="iVBORw0KGgo=")


def test_normalize_components_fills_every_type_in_order() -> None:
    components = normalize_components(
        [BuildComponentModel(type="GPU", name="RTX 4070"), BuildComponentModel(type="CPU", name="  ")]
    )
    assert [component.type for component in components] == list(COMPONENT_TYPES)
    by_type = {component.type: component.name for component in components}
    assert by_type["GPU"] == "RTX 4070"
    assert by_type["CPU"] == "Unknown"
    assert by_type["Case Fans"] == "Unknown"


def test_normalize_components_last_duplicate_wins() -> None:
    components = normalize_components(
        [BuildComponentModel(type="RAM", name="16GB"), BuildComponentModel(type="RAM", name="32GB")]
    )
    assert {c.type: c.name for c in components}["RAM"] == "32GB"


def test_unknown_component_type_is_rejected() -> None:
    with pytest.raises(pydantic.ValidationError):
        BuildComponentModel(type="Monitor", name="27 inch")


def test_order_primary_first() -> None:
    assert order_primary_first(["a", "b", "c"], 2) == ["c", "a", "b"]
    assert order_primary_first(["a", "b", "c"], 0) == ["a", "b", "c"]
    assert order_primary_first(["a", "b"], 9) == ["a", "b"]
    assert order_primary_first([], 0) == []


def test_build_input_requires_an_image() -> None:
    with pytest.raises(pydantic.ValidationError):
        CommunityBuildInputModel(buildName="My rig", studentName="Alice")


def test_build_input_limits_image_count() -> None:
    with pytest.raises(pydantic.ValidationError):
        CommunityBuildInputModel(
            buildName="My rig",
            studentName="Alice",
            existingImageUrls=["u1", "u2", "u3"],
            newImages=[_image(), _image(), _image()],
        )


def test_build_input_description_default() -> None:
    request = CommunityBuildInputModel(buildName="My rig", studentName="Alice", newImages=[_image()], description=" ")
    assert request.description_or_default == "No description provided."
