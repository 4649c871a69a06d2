import typing
from datetime import datetime, timedelta, timezone

import jwt

from pc_academy.dynamodb.secrets_table import SecretsTable
from pc_academy.models.session_models import UserSession

ACCESS_TOKEN_EXPIRE_HOURS = 6
JWT_ALGORITHM = "HS256"


class JwtWrapper:
    def __init__(self) -> None:
        pass

    def create_access_token(self, session: UserSession, secrets_table: SecretsTable) -> str:
        """Issues a token whose claims rebuild the same UserSession in the authorizer."""
        expire = datetime.now(timezone.utc) + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
        to_encode: dict[str, typing.Any] = {"exp": expire, "sub": session.email, "email": session.email}
        if session.displayName:
            to_encode["name"] = session.displayName
        if session.avatarUrl:
            to_encode["picture"] = session.avatarUrl
        return jwt.encode(to_encode, secrets_table.get_jwt_secret_key(), algorithm=JWT_ALGORITHM)

    def verify_token(self, token: str, secrets_table: SecretsTable) -> typing.Optional[dict]:
        try:
            jwt_secret = secrets_table.get_jwt_secret_key()
            return jwt.decode(token, jwt_secret, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError:
            return None
        except KeyError:
            return None
