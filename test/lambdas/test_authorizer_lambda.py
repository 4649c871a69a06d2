#!/usr/bin/env python3
from unittest.mock import Mock

import pytest

from pc_academy.lambdas.authorizer_lambda import AuthorizerLambda
from pc_academy.models.session_models import UserSession
from pc_academy.utils.jwt_utils import JwtWrapper

SESSION = UserSession(
    userId="alice@example.com", email="alice@example.com", displayName="Alice", avatarUrl="https://x/a.png"
)
RESOURCE_ARN = "arn:aws:execute-api:us-west-1:598791268315:k3txasuuei/$default/*"


def _secrets() -> Mock:
    secrets_table = Mock()
    secrets_table.get_jwt_secret_key.return_value = "hey"
    return secrets_table


def _event(authorization=None) -> dict:
    event = {
        "version": "1.0",
        "type": "REQUEST",
        "methodArn": "arn:aws:execute-api:us-west-1:598791268315:k3txasuuei/$default/PUT/learning-paths",
        "headers": {},
        "requestContext": {"apiId": "k3txasuuei", "stage": "$default"},
    }
    if authorization is not None:
        event["headers"]["authorization"] = authorization
    return event


@pytest.fixture
def metrics_manager() -> Mock:
    return Mock()


@pytest.fixture
def authorizer(metrics_manager) -> AuthorizerLambda:
    return AuthorizerLambda(jwt_wrapper=JwtWrapper(), secrets_table=_secrets(), metrics_manager=metrics_manager)


def test_valid_token_is_allowed_with_claims(authorizer, metrics_manager) -> None:
    token = JwtWrapper().create_access_token(SESSION, _secrets())

    result = authorizer.handle(_event(f"Bearer {token}"))

    assert result["principalId"] == "alice@example.com"
    statement = result["policyDocument"]["Statement"][0]
    assert statement["Action"] == "execute-api:Invoke"
    assert statement["Effect"] == "Allow"
    assert statement["Resource"] == RESOURCE_ARN
    assert result["context"] == {
        "sub": "alice@example.com",
        "email": "alice@example.com",
        "name": "Alice",
        "picture": "https://x/a.png",
    }
    assert UserSession.from_claims(result["context"]) == SESSION
    metrics_manager.put_metric.assert_called_once_with("AuthorizationSuccess", 1)


def test_no_header_is_anonymous(authorizer) -> None:
    result = authorizer.handle(_event())
    assert result["principalId"] == "anonymous"
    assert result["policyDocument"]["Statement"][0]["Effect"] == "Allow"
    assert result["context"] == {}


def test_invalid_token_is_denied(authorizer, metrics_manager) -> None:
    result = authorizer.handle(_event("Bearer not-a-jwt"))
    assert result["policyDocument"]["Statement"][0]["Effect"] == "Deny"
    metrics_manager.put_metric.assert_called_once_with("AuthorizationFailure", 1)


def test_malformed_header_is_denied(authorizer) -> None:
    assert authorizer.handle(_event("Basic abc"))["policyDocument"]["Statement"][0]["Effect"] == "Deny"
    assert authorizer.handle(_event("Bearer"))["policyDocument"]["Statement"][0]["Effect"] == "Deny"


def test_unbuildable_resource_arn_is_denied(authorizer) -> None:
    event = _event()
    del event["methodArn"]
    result = authorizer.handle(event)
    assert result["policyDocument"]["Statement"][0]["Effect"] == "Deny"
    assert result["policyDocument"]["Statement"][0]["Resource"] == "arn:aws:execute-api:*:*:*/*/*"
