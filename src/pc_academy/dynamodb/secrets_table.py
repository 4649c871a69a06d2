import logging
import typing

import boto3
from botocore.exceptions import ClientError

_LOGGER = logging.getLogger(__name__)

JWT_SECRET_KEY = "JWT_SECRET"
GEMINI_API_KEY = "GEMINI_API_KEY"


class SecretsTable:
    """
    Read-only access to application secrets stored in DynamoDB.

    Table Schema:
      - PK: secretKey (e.g. "JWT_SECRET", "GEMINI_API_KEY")
      - secretValue: the secret itself

    Values are cached per container, so a warm Lambda reads each secret once.
    """

    _cache: typing.ClassVar[dict[str, str]] = {}

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def get_secret(self, secret_key: str) -> str:
        """
        :raises KeyError: if the secret is missing, empty, or the table cannot be read.
        """
        cached = self._cache.get(secret_key)
        if cached is not None:
            return cached

        try:
            _LOGGER.info(f"Fetching secret '{secret_key}' from DynamoDB.")
            response = self.table.get_item(Key={"secretKey": secret_key})
        except ClientError as e:
            _LOGGER.error(f"Error retrieving secret {secret_key}: {e}")
            raise KeyError(f"Failed to retrieve secret '{secret_key}' from DynamoDB") from e

        secret_value = (response.get("Item") or {}).get("secretValue")
        if not secret_value:
            _LOGGER.error(f"Secret not found or empty: {secret_key}")
            raise KeyError(f"Secret '{secret_key}' not found in secrets table")

        self._cache[secret_key] = secret_value
        return secret_value

    def get_jwt_secret_key(self) -> str:
        return self.get_secret(JWT_SECRET_KEY)

    def get_gemini_api_key(self) -> str:
        return self.get_secret(GEMINI_API_KEY)

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()
