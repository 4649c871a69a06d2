import logging
import typing

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from pc_academy.models.community_models import DiscussionCommentModel, DiscussionPostModel
from pc_academy.utils.base_types import PostId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class DiscussionPostsTable:
    """
    Discussion forum posts. Comments live inside their post as an append-only list.

    Table Schema:
      - PK: postId
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def create_post(self, post: DiscussionPostModel) -> DiscussionPostModel:
        try:
            self.table.put_item(
                Item=post.model_dump(exclude_none=True),
                ConditionExpression="attribute_not_exists(postId)",
            )
            _LOGGER.info(f"Created discussion post {post.postId} by {post.authorEmail}.")
            return post
        except ClientError as e:
            _LOGGER.error(f"Error creating post {post.postId}: {e.response['Error']['Message']}", exc_info=True)
            raise

    def get_post(self, post_id: PostId) -> typing.Optional[DiscussionPostModel]:
        try:
            response = self.table.get_item(Key={"postId": post_id})
        except ClientError as e:
            _LOGGER.error(f"Error getting post {post_id}: {e.response['Error']['Message']}")
            raise

        item_data = response.get("Item")
        return DiscussionPostModel.model_validate(item_data) if item_data else None

    def list_posts(self) -> list[DiscussionPostModel]:
        """All posts, newest first."""
        posts: list[DiscussionPostModel] = []
        scan_kwargs: dict[str, typing.Any] = {}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item_data in response.get("Items", []):
                    try:
                        posts.append(DiscussionPostModel.model_validate(item_data))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid post item {item_data.get('postId')}. Error: {ve}")
                if "LastEvaluatedKey" not in response:
                    break
                scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except ClientError as e:
            _LOGGER.error(f"Error scanning posts: {e.response['Error']['Message']}")
            raise

        posts.sort(key=lambda post: post.createdAt, reverse=True)
        return posts

    def add_comment(self, post_id: PostId, comment: DiscussionCommentModel) -> typing.Optional[DiscussionPostModel]:
        """
        Appends a comment to the post.

        :returns: the updated post, or None if the post does not exist
        """
        try:
            response = self.table.update_item(
                Key={"postId": post_id},
                UpdateExpression="SET #comments = list_append(if_not_exists(#comments, :emptyList), :newComments)",
                ConditionExpression="attribute_exists(postId)",
                ExpressionAttributeNames={"#comments": "comments"},
                ExpressionAttributeValues={
                    ":emptyList": [],
                    ":newComments": [comment.model_dump(exclude_none=True)],
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.info(f"Comment not added: post {post_id} not found.")
                return None
            _LOGGER.error(f"Error adding comment to post {post_id}: {e.response['Error']['Message']}", exc_info=True)
            raise

        _LOGGER.info(f"Added comment {comment.commentId} to post {post_id}.")
        return DiscussionPostModel.model_validate(response["Attributes"])
