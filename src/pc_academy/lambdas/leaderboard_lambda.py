import logging
import typing

from botocore.exceptions import ClientError

from pc_academy.dynamodb.leaderboard_table import LeaderboardTable
from pc_academy.models.user_progress_models import LeaderboardResponseModel
from pc_academy.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_method,
    get_pagination_limit,
    get_path,
    get_query_string_parameters,
)
from pc_academy.utils.aws_env_vars import get_leaderboard_table_name

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

MAX_LEADERBOARD_LIMIT = 100


class LeaderboardApiHandler:
    def __init__(self, leaderboard_table: LeaderboardTable):
        self.leaderboard_table = leaderboard_table

    def handle(self, event: dict) -> dict:
        http_method = get_method(event).upper()
        path = get_path(event)

        try:
            if http_method == "GET" and path.rstrip("/") == "/leaderboard":
                limit = get_pagination_limit(get_query_string_parameters(event), default=MAX_LEADERBOARD_LIMIT)
                limit = max(1, min(limit, MAX_LEADERBOARD_LIMIT))
                entries = self.leaderboard_table.list_entries(limit=limit)
                return format_lambda_response(
                    200, LeaderboardResponseModel(entries=entries).model_dump(exclude_none=True), event=event
                )

            _LOGGER.warning(f"Unsupported path or method for leaderboard: {http_method} {path}")
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except ClientError as e:
            _LOGGER.error(f"Data store error reading leaderboard: {e}", exc_info=True)
            return create_error_response(ErrorCode.STORE_UNAVAILABLE, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in LeaderboardApiHandler: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def leaderboard_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    try:
        api_handler = LeaderboardApiHandler(leaderboard_table=LeaderboardTable(get_leaderboard_table_name()))
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in leaderboard_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during LeaderboardApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
