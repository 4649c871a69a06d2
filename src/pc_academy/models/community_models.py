import typing

import pydantic
from pydantic import BaseModel

from pc_academy.utils.base_types import BuildId, CommentId, IsoTimestamp, PostId

ComponentType = typing.Literal["CPU", "Motherboard", "Cooler", "RAM", "Storage", "GPU", "PSU", "Case", "Case Fans"]
COMPONENT_TYPES: tuple[str, ...] = typing.get_args(ComponentType)

UNKNOWN_COMPONENT_NAME = "Unknown"
DEFAULT_BUILD_DESCRIPTION = "No description provided."
MAX_IMAGES_PER_ITEM = 5


class ImageUploadModel(BaseModel):
    """A new image sent inline with a build or post, base64-encoded."""

    contentType: str
    data: str = pydantic.Field(min_length=1)


class BuildComponentModel(BaseModel):
    type: ComponentType
    name: str = UNKNOWN_COMPONENT_NAME


def normalize_components(components: typing.Iterable[BuildComponentModel]) -> list[BuildComponentModel]:
    """
    Returns exactly one component per type, in the fixed type order.
    Missing or blank names become "Unknown"; a repeated type keeps its last name.
    """
    names: dict[str, str] = {}
    for component in components:
        names[component.type] = component.name.strip()
    return [
        BuildComponentModel(type=component_type, name=names.get(component_type) or UNKNOWN_COMPONENT_NAME)
        for component_type in COMPONENT_TYPES
    ]


def order_primary_first(image_urls: list[str], primary_index: int) -> list[str]:
    """Moves the primary image to the front; an out-of-range index keeps the first image primary."""
    if not image_urls:
        return []
    if primary_index < 0 or primary_index >= len(image_urls):
        primary_index = 0
    ordered = list(image_urls)
    primary = ordered.pop(primary_index)
    return [primary] + ordered


class CommunityBuildInputModel(BaseModel):
    """
    Request body for creating or updating a build. The image list is `existingImageUrls`
    followed by the uploads in `newImages`; `primaryImageIndex` points into that list.
    """

    buildName: str = pydantic.Field(min_length=1)
    studentName: str = pydantic.Field(min_length=1)
    description: typing.Optional[str] = None
    components: list[BuildComponentModel] = pydantic.Field(default_factory=list)
    existingImageUrls: list[str] = pydantic.Field(default_factory=list)
    newImages: list[ImageUploadModel] = pydantic.Field(default_factory=list)
    primaryImageIndex: int = pydantic.Field(default=0, ge=0)

    class Config:
        extra = "forbid"

    @pydantic.model_validator(mode="after")
    def check_image_count(self) -> "CommunityBuildInputModel":
        total = len(self.existingImageUrls) + len(self.newImages)
        if total == 0:
            raise ValueError("At least one image is required.")
        if total > MAX_IMAGES_PER_ITEM:
            raise ValueError(f"At most {MAX_IMAGES_PER_ITEM} images are allowed.")
        return self

    @property
    def description_or_default(self) -> str:
        if self.description and self.description.strip():
            return self.description.strip()
        return DEFAULT_BUILD_DESCRIPTION


class CommunityBuildModel(BaseModel):
    buildId: BuildId
    buildName: str
    studentName: str
    description: str = DEFAULT_BUILD_DESCRIPTION
    imageUrls: list[str] = pydantic.Field(default_factory=list, description="Primary image first")
    components: list[BuildComponentModel] = pydantic.Field(default_factory=list)
    uploaderEmail: str
    createdAt: IsoTimestamp
    updatedAt: typing.Optional[IsoTimestamp] = None


class CommunityBuildListResponseModel(BaseModel):
    builds: list[CommunityBuildModel]


class DiscussionCommentModel(BaseModel):
    commentId: CommentId
    authorEmail: str
    authorDisplayName: str
    text: str
    createdAt: IsoTimestamp


class DiscussionPostInputModel(BaseModel):
    title: str = pydantic.Field(min_length=1)
    content: str = pydantic.Field(min_length=1)
    newImages: list[ImageUploadModel] = pydantic.Field(default_factory=list, max_length=MAX_IMAGES_PER_ITEM)
    primaryImageIndex: int = pydantic.Field(default=0, ge=0)

    class Config:
        extra = "forbid"


class DiscussionPostModel(BaseModel):
    postId: PostId
    title: str
    content: str
    authorEmail: str
    authorDisplayName: str
    imageUrls: list[str] = pydantic.Field(default_factory=list)
    comments: list[DiscussionCommentModel] = pydantic.Field(default_factory=list)
    createdAt: IsoTimestamp


class DiscussionPostListResponseModel(BaseModel):
    posts: list[DiscussionPostModel]


class CommentInputModel(BaseModel):
    text: str = pydantic.Field(min_length=1)

    class Config:
        extra = "forbid"
