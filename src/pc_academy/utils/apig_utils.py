import base64
import enum
import json
import logging
import re
import typing

from pc_academy.models.session_models import UserSession

_LOGGER = logging.getLogger(__name__)


QueryParams = typing.NewType("QueryParams", dict[str, str])


class ErrorCode(enum.Enum):
    """Error codes returned to API clients, with their HTTP status and default message."""

    VALIDATION_ERROR = (400, "Invalid request data")
    SUSPICIOUS_INPUT = (400, "Input rejected by content checks")
    AUTHENTICATION_FAILED = (401, "User identification failed")
    AUTHORIZATION_FAILED = (403, "Access denied")
    LESSON_LOCKED = (403, "Complete the previous lessons first")
    RESOURCE_NOT_FOUND = (404, "Resource not found or method not allowed")
    METHOD_NOT_ALLOWED = (405, "Method not allowed")
    RATE_LIMIT_EXCEEDED = (429, "Too many requests, please try again later")
    INTERNAL_ERROR = (500, "Internal server error")
    STORE_UNAVAILABLE = (503, "Data store temporarily unavailable, please retry")
    AI_SERVICE_UNAVAILABLE = (503, "AI service temporarily unavailable")

    def __init__(self, status_code: int, default_message: str) -> None:
        self.status_code = status_code
        self.default_message = default_message


def get_event_body(event: dict) -> bytes:
    if "isBase64Encoded" in event and event["isBase64Encoded"]:
        return base64.b64decode(event["body"])
    else:
        return event["body"].encode("utf-8")


def get_method(event: dict) -> str:
    return event.get("requestContext", {}).get("http", {}).get("method", "UNKNOWN")


def get_path(event: dict) -> str:
    return event.get("requestContext", {}).get("http", {}).get("path", "")


def get_path_parts(event: dict) -> list[str]:
    path = get_path(event).strip("/")
    return path.split("/") if path else []


def get_query_string_parameters(event: dict) -> QueryParams:
    return event.get("queryStringParameters") or {}


def get_pagination_limit(query_params: typing.Optional[QueryParams], default: int = 50) -> int:
    limit = default
    if query_params and "limit" in query_params:
        try:
            limit = int(query_params["limit"])
        except (ValueError, TypeError):
            _LOGGER.warning(f"Invalid limit query param: {query_params.get('limit')}")
    return limit


def get_user_session_from_event(event: dict[str, typing.Any]) -> typing.Optional[UserSession]:
    """
    Builds the caller's session from the claims the Lambda authorizer places in the
    'lambda' key of the request context. Returns None for anonymous requests.
    """
    try:
        claims = event.get("requestContext", {}).get("authorizer", {}).get("lambda", {})
        if claims:
            session = UserSession.from_claims(claims)
            if session:
                return session

        _LOGGER.debug("No identity claims found in authorizer's lambda context.")
        return None
    except Exception as e:
        _LOGGER.error("Error extracting user session from event: %s", str(e))
        return None


def get_allowed_origin(event: dict[str, typing.Any]) -> str:
    """
    Validates the Origin header against allowed patterns and returns it if valid.

    Allowed Origins:
    - localhost/127.0.0.1 (any port) - for local development
    - *.web.app / *.firebaseapp.com / *.vercel.app - hosted front ends

    :returns: The origin if valid, otherwise "null" (which causes browser to deny the response)
    """
    origin = event.get("headers", {}).get("origin", "")

    # No origin header present (e.g., curl/Postman testing, direct API calls)
    if not origin:
        return "*"

    if origin.startswith("http://localhost:") or origin.startswith("http://127.0.0.1:"):
        return origin

    allowed_patterns = [r"^https://.*\.web\.app$", r"^https://.*\.firebaseapp\.com$", r"^https://.*\.vercel\.app$"]
    for pattern in allowed_patterns:
        if re.match(pattern, origin):
            return origin

    _LOGGER.warning(f"Origin not in allowed patterns: {origin}")
    return "null"


def format_lambda_response(
    status_code: int,
    body: typing.Any,
    *,
    event: typing.Optional[dict[str, typing.Any]] = None,
    additional_headers: typing.Optional[dict[str, str]] = None,
) -> dict[str, typing.Any]:
    """
    Formats API Gateway proxy responses with CORS headers.
    """
    allowed_origin = get_allowed_origin(event) if event else "*"

    headers = {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": allowed_origin,
        "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Amz-Date,X-Api-Key,X-Amz-Security-Token",
        "Access-Control-Allow-Methods": "OPTIONS,GET,PUT,POST,DELETE",
    }
    if additional_headers:
        headers.update(additional_headers)

    return {
        "statusCode": status_code,
        "headers": headers,
        "body": json.dumps(body, default=str) if body is not None else None,
    }


def create_error_response(
    error_code: ErrorCode,
    message: typing.Optional[str] = None,
    *,
    details: typing.Any = None,
    extra: typing.Optional[dict[str, typing.Any]] = None,
    event: typing.Optional[dict[str, typing.Any]] = None,
) -> dict[str, typing.Any]:
    body: dict[str, typing.Any] = {
        "message": message or error_code.default_message,
        "errorCode": error_code.name,
    }
    if details is not None:
        body["details"] = details
    if extra:
        body.update(extra)
    return format_lambda_response(error_code.status_code, body, event=event)
