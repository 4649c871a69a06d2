import logging
import os
import typing

from pc_academy.cloudwatch.metrics import MetricsManager
from pc_academy.dynamodb.secrets_table import SecretsTable
from pc_academy.utils.apig_utils import format_lambda_response
from pc_academy.utils.aws_env_vars import get_secrets_table_name
from pc_academy.utils.jwt_utils import JwtWrapper

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

ANONYMOUS_PRINCIPAL = "anonymous"

# Claims forwarded to handlers; they rebuild the UserSession from these
FORWARDED_CLAIMS = ("sub", "email", "name", "picture")


def _generate_iam_policy(principal_id: str, effect: str, resource: str, context: dict) -> dict:
    """
    Generates the IAM policy required by API Gateway Lambda authorizers.
    The 'resource' should be the ARN of the API Gateway endpoint.
    """
    return {
        "principalId": principal_id,
        "policyDocument": {
            "Version": "2012-10-17",
            "Statement": [{"Action": "execute-api:Invoke", "Effect": effect, "Resource": resource}],
        },
        "context": context,
    }


def _get_bearer_token(event: dict) -> typing.Optional[str]:
    """
    :returns: the token, "" for a malformed header, or None when no header is present
    """
    headers = event.get("headers") or {}
    authorization = headers.get("authorization") or headers.get("Authorization")
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


class AuthorizerLambda:
    """
    Verifies the bearer JWT on every request.

    Learning content is public, so a request with no Authorization header is
    allowed through anonymously with an empty context. A header that is present
    but malformed, expired or badly signed is denied.
    """

    def __init__(
        self,
        jwt_wrapper: JwtWrapper,
        secrets_table: SecretsTable,
        metrics_manager: MetricsManager,
    ) -> None:
        self.jwt_wrapper = jwt_wrapper
        self.secrets_table = secrets_table
        self.metrics_manager = metrics_manager

    def handle(self, event: dict) -> dict:
        try:
            region = os.environ.get("AWS_REGION")
            aws_account_id = event["methodArn"].split(":")[4]
            api_id = event["requestContext"]["apiId"]
            stage = event["requestContext"]["stage"]
            resource_arn = f"arn:aws:execute-api:{region}:{aws_account_id}:{api_id}/{stage}/*"
        except (KeyError, IndexError):
            _LOGGER.error("Could not construct resource ARN from event.", exc_info=True)
            return _generate_iam_policy("user", "Deny", "arn:aws:execute-api:*:*:*/*/*", {})

        token = _get_bearer_token(event)
        if token is None:
            _LOGGER.info("No Authorization header; allowing anonymous access.")
            self.metrics_manager.put_metric("AnonymousRequest", 1)
            return _generate_iam_policy(ANONYMOUS_PRINCIPAL, "Allow", resource_arn, {})
        if not token:
            _LOGGER.warning("Authorization header malformed.")
            self.metrics_manager.put_metric("AuthorizationFailure", 1)
            return _generate_iam_policy("user", "Deny", resource_arn, {})

        try:
            payload = self.jwt_wrapper.verify_token(token, self.secrets_table)
        except Exception as e:
            _LOGGER.error(f"Error during token validation: {e}", exc_info=True)
            payload = None

        if not payload or "sub" not in payload:
            _LOGGER.warning("Token is invalid or expired.")
            self.metrics_manager.put_metric("AuthorizationFailure", 1)
            return _generate_iam_policy("user", "Deny", resource_arn, {})

        user_email = str(payload["sub"])
        _LOGGER.info(f"Token validated successfully for user: {user_email}")
        self.metrics_manager.put_metric("AuthorizationSuccess", 1)
        context = {claim: str(payload[claim]) for claim in FORWARDED_CLAIMS if payload.get(claim)}
        return _generate_iam_policy(user_email, "Allow", resource_arn, context)


def authorizer_lambda_handler(event: dict, context: typing.Any) -> dict:
    _LOGGER.info("Authorizer lambda handler invoked.")
    metrics_manager = MetricsManager()
    metrics_manager.set_dimension("Handler", "Authorizer")

    try:
        handler = AuthorizerLambda(
            jwt_wrapper=JwtWrapper(),
            secrets_table=SecretsTable(get_secrets_table_name()),
            metrics_manager=metrics_manager,
        )
        return handler.handle(event)
    except Exception as e:
        _LOGGER.critical(f"Critical error in authorizer_lambda_handler: {e}", exc_info=True)
        return format_lambda_response(500, {"message": "Internal Server Error in Auth Handler"})
    finally:
        metrics_manager.flush()
