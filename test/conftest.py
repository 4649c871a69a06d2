"""
Pytest configuration and fixtures for all tests.

This file contains fixtures that are automatically available to all test files.
"""

import os
import typing

import pytest

from pc_academy.dynamodb.secrets_table import SecretsTable


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """
    Sets up environment variables required for all tests.

    Handlers read their table and bucket names from the environment at runtime.
    """
    os.environ["AWS_REGION"] = "us-west-1"

    os.environ["USER_PROGRESS_TABLE_NAME"] = "test-user-progress-table"
    os.environ["USER_PATH_SCORES_TABLE_NAME"] = "test-user-path-scores-table"
    os.environ["LEADERBOARD_TABLE_NAME"] = "test-leaderboard-table"
    os.environ["LEARNING_PATHS_TABLE_NAME"] = "test-learning-paths-table"
    os.environ["COMMUNITY_BUILDS_TABLE_NAME"] = "test-community-builds-table"
    os.environ["DISCUSSION_POSTS_TABLE_NAME"] = "test-discussion-posts-table"
    os.environ["SECRETS_TABLE_NAME"] = "test-secrets-table"
    os.environ["THROTTLE_TABLE_NAME"] = "test-throttle-table"

    os.environ["IMAGES_BUCKET_NAME"] = "test-images-bucket"

    # Stops aws_embedded_metrics from probing for a CloudWatch agent
    os.environ["AWS_EMF_ENVIRONMENT"] = "Local"

    yield


@pytest.fixture(scope="function")
def aws_credentials() -> typing.Iterator[None]:
    """
    Mocks AWS credentials for moto (AWS mocking library).

    Used by table and bucket tests that run inside moto's mock_aws context manager.
    """
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-west-1"
    yield
    del os.environ["AWS_ACCESS_KEY_ID"]
    del os.environ["AWS_SECRET_ACCESS_KEY"]
    del os.environ["AWS_SECURITY_TOKEN"]
    del os.environ["AWS_SESSION_TOKEN"]
    del os.environ["AWS_DEFAULT_REGION"]


@pytest.fixture(autouse=True)
def clear_secrets_cache() -> typing.Iterator[None]:
    """SecretsTable caches per process; tests must not see each other's secrets."""
    SecretsTable.clear_cache()
    yield
    SecretsTable.clear_cache()
