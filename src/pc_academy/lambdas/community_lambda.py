import json
import logging
import typing
import uuid
from datetime import datetime, timezone

from botocore.exceptions import ClientError
from pydantic import ValidationError

from pc_academy.cloudwatch.metrics import MetricsManager
from pc_academy.dynamodb.community_builds_table import CommunityBuildsTable
from pc_academy.dynamodb.discussion_posts_table import DiscussionPostsTable
from pc_academy.models.community_models import (
    CommentInputModel,
    CommunityBuildInputModel,
    CommunityBuildListResponseModel,
    CommunityBuildModel,
    DiscussionCommentModel,
    DiscussionPostInputModel,
    DiscussionPostListResponseModel,
    DiscussionPostModel,
    normalize_components,
    order_primary_first,
)
from pc_academy.models.session_models import UserSession
from pc_academy.s3.image_bucket import ImageBucket, InvalidImageError
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
    get_aws_region,
    get_community_builds_table_name,
    get_discussion_posts_table_name,
    get_images_bucket_name,
)
from pc_academy.utils.base_types import BuildId, CommentId, IsoTimestamp, PostId
from pc_academy.utils.input_validator import InputValidator, SuspiciousInputError

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

_ModelT = typing.TypeVar("_ModelT", CommunityBuildInputModel, DiscussionPostInputModel, CommentInputModel)


def _now() -> IsoTimestamp:
    return IsoTimestamp(datetime.now(timezone.utc).isoformat())


class _BadRequest(Exception):
    def __init__(self, response: dict) -> None:
        super().__init__("bad request")
        self.response = response


class CommunityApiHandler:
    """
    Community build board and discussion forum.

    Reads are public; every write needs a signed-in user, and builds can only be
    changed or removed by their uploader.
    """

    def __init__(
        self,
        builds_table: CommunityBuildsTable,
        posts_table: DiscussionPostsTable,
        image_bucket: ImageBucket,
        metrics_manager: MetricsManager,
    ):
        self.builds_table = builds_table
        self.posts_table = posts_table
        self.image_bucket = image_bucket
        self.metrics_manager = metrics_manager

    def _parse_body(self, event: dict, model: type[_ModelT]) -> _ModelT:
        """:raises _BadRequest: carrying the VALIDATION_ERROR response"""
        raw_body = event.get("body")
        if not raw_body:
            raise _BadRequest(create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event))
        try:
            return model.model_validate_json(get_event_body(event))
        except ValidationError as e:
            _LOGGER.error(f"{model.__name__} validation error: {e.errors()}", exc_info=True)
            raise _BadRequest(
                create_error_response(
                    ErrorCode.VALIDATION_ERROR,
                    details=e.errors(include_url=False, include_context=False),
                    event=event,
                )
            )
        except json.JSONDecodeError:
            raise _BadRequest(create_error_response(ErrorCode.VALIDATION_ERROR, event=event))

    def _build_from_input(
        self,
        build_id: BuildId,
        request: CommunityBuildInputModel,
        session: UserSession,
        created_at: IsoTimestamp,
        updated_at: typing.Optional[IsoTimestamp] = None,
    ) -> CommunityBuildModel:
        InputValidator.validate_build(
            request.buildName,
            request.studentName,
            request.description or "",
            [component.name for component in request.components],
        )
        new_urls = self.image_bucket.upload_images(f"builds/{build_id}", request.newImages)
        return CommunityBuildModel(
            buildId=build_id,
            buildName=request.buildName.strip(),
            studentName=request.studentName.strip(),
            description=request.description_or_default,
            imageUrls=order_primary_first(request.existingImageUrls + new_urls, request.primaryImageIndex),
            components=normalize_components(request.components),
            uploaderEmail=session.email,
            createdAt=created_at,
            updatedAt=updated_at,
        )

    def _handle_list_builds(self, event: dict) -> dict:
        response = CommunityBuildListResponseModel(builds=self.builds_table.list_builds())
        return format_lambda_response(200, response.model_dump(exclude_none=True), event=event)

    def _handle_create_build(self, event: dict, session: UserSession) -> dict:
        request = self._parse_body(event, CommunityBuildInputModel)
        if request.existingImageUrls:
            return create_error_response(
                ErrorCode.VALIDATION_ERROR, "New builds can only reference uploaded images.", event=event
            )

        build = self._build_from_input(BuildId(str(uuid.uuid4())), request, session, _now())
        self.builds_table.create_build(build)
        self.metrics_manager.put_metric("BuildCreated", 1)
        return format_lambda_response(201, build.model_dump(exclude_none=True), event=event)

    def _handle_update_build(self, event: dict, session: UserSession, build_id: BuildId) -> dict:
        existing = self.builds_table.get_build(build_id)
        if existing is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Build '{build_id}' not found.", event=event)
        if existing.uploaderEmail != session.email:
            return create_error_response(ErrorCode.AUTHORIZATION_FAILED, "Only the uploader can edit a build.", event=event)

        request = self._parse_body(event, CommunityBuildInputModel)
        unknown_urls = set(request.existingImageUrls) - set(existing.imageUrls)
        if unknown_urls:
            return create_error_response(
                ErrorCode.VALIDATION_ERROR, "existingImageUrls must be images of this build.", event=event
            )

        build = self._build_from_input(build_id, request, session, existing.createdAt, _now())
        if not self.builds_table.replace_build(build):
            return create_error_response(ErrorCode.AUTHORIZATION_FAILED, "Only the uploader can edit a build.", event=event)
        return format_lambda_response(200, build.model_dump(exclude_none=True), event=event)

    def _handle_delete_build(self, event: dict, session: UserSession, build_id: BuildId) -> dict:
        existing = self.builds_table.get_build(build_id)
        if existing is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Build '{build_id}' not found.", event=event)
        if existing.uploaderEmail != session.email or not self.builds_table.delete_build(build_id, session.email):
            return create_error_response(
                ErrorCode.AUTHORIZATION_FAILED, "Only the uploader can delete a build.", event=event
            )
        self.metrics_manager.put_metric("BuildDeleted", 1)
        return format_lambda_response(204, None, event=event)

    def _handle_list_posts(self, event: dict) -> dict:
        response = DiscussionPostListResponseModel(posts=self.posts_table.list_posts())
        return format_lambda_response(200, response.model_dump(exclude_none=True), event=event)

    def _handle_get_post(self, event: dict, post_id: PostId) -> dict:
        post = self.posts_table.get_post(post_id)
        if post is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Post '{post_id}' not found.", event=event)
        return format_lambda_response(200, post.model_dump(exclude_none=True), event=event)

    def _handle_create_post(self, event: dict, session: UserSession) -> dict:
        request = self._parse_body(event, DiscussionPostInputModel)
        InputValidator.validate_post(request.title, request.content)

        post_id = PostId(str(uuid.uuid4()))
        image_urls = self.image_bucket.upload_images(f"discussions/{post_id}", request.newImages)
        post = DiscussionPostModel(
            postId=post_id,
            title=request.title.strip(),
            content=request.content,
            authorEmail=session.email,
            authorDisplayName=session.leaderboard_name,
            imageUrls=order_primary_first(image_urls, request.primaryImageIndex),
            comments=[],
            createdAt=_now(),
        )
        self.posts_table.create_post(post)
        self.metrics_manager.put_metric("DiscussionPostCreated", 1)
        return format_lambda_response(201, post.model_dump(exclude_none=True), event=event)

    def _handle_add_comment(self, event: dict, session: UserSession, post_id: PostId) -> dict:
        request = self._parse_body(event, CommentInputModel)
        InputValidator.validate_comment(request.text)

        comment = DiscussionCommentModel(
            commentId=CommentId(str(uuid.uuid4())),
            authorEmail=session.email,
            authorDisplayName=session.leaderboard_name,
            text=request.text,
            createdAt=_now(),
        )
        post = self.posts_table.add_comment(post_id, comment)
        if post is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Post '{post_id}' not found.", event=event)
        return format_lambda_response(201, post.model_dump(exclude_none=True), event=event)

    def _route(self, event: dict, http_method: str, parts: list[str], session: typing.Optional[UserSession]) -> dict:
        is_write = http_method in ("POST", "PUT", "DELETE")
        if is_write and session is None:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, "Sign in to post to the community.", event=event)

        if parts[:2] == ["community", "builds"]:
            if len(parts) == 2 and http_method == "GET":
                return self._handle_list_builds(event)
            if len(parts) == 2 and http_method == "POST":
                return self._handle_create_build(event, session)
            if len(parts) == 3 and http_method == "PUT":
                return self._handle_update_build(event, session, BuildId(parts[2]))
            if len(parts) == 3 and http_method == "DELETE":
                return self._handle_delete_build(event, session, BuildId(parts[2]))
        elif parts[:1] == ["discussions"]:
            if len(parts) == 1 and http_method == "GET":
                return self._handle_list_posts(event)
            if len(parts) == 1 and http_method == "POST":
                return self._handle_create_post(event, session)
            if len(parts) == 2 and http_method == "GET":
                return self._handle_get_post(event, PostId(parts[1]))
            if len(parts) == 3 and parts[2] == "comments" and http_method == "POST":
                return self._handle_add_comment(event, session, PostId(parts[1]))

        _LOGGER.warning(f"Unsupported path or method for community: {http_method} {get_path(event)}")
        return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

    def handle(self, event: dict) -> dict:
        session = get_user_session_from_event(event)
        http_method = get_method(event).upper()
        _LOGGER.info(f"CommunityApiHandler: {http_method} {get_path(event)} for user: {session.userId if session else 'anonymous'}")

        try:
            return self._route(event, http_method, get_path_parts(event), session)
        except _BadRequest as br:
            return br.response
        except SuspiciousInputError as se:
            self.metrics_manager.put_metric("SuspiciousInputRejected", 1)
            return create_error_response(ErrorCode.SUSPICIOUS_INPUT, str(se), event=event)
        except InvalidImageError as ie:
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(ie), event=event)
        except ClientError as e:
            _LOGGER.error(f"Data store error in CommunityApiHandler: {e}", exc_info=True)
            self.metrics_manager.put_metric("StoreFailure", 1)
            return create_error_response(ErrorCode.STORE_UNAVAILABLE, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in CommunityApiHandler: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def community_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    metrics_manager = MetricsManager()
    metrics_manager.set_dimension("Handler", "Community")

    try:
        api_handler = CommunityApiHandler(
            builds_table=CommunityBuildsTable(get_community_builds_table_name()),
            posts_table=DiscussionPostsTable(get_discussion_posts_table_name()),
            image_bucket=ImageBucket(get_images_bucket_name(), get_aws_region()),
            metrics_manager=metrics_manager,
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in community_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Critical error in global handler setup: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
    finally:
        metrics_manager.flush()
