import typing

import pydantic

from pc_academy.utils.base_types import UserId


def make_user_id(email: str) -> UserId:
    """Progress and score records are partitioned by email; '/' is not allowed in the key."""
    return UserId(email.replace("/", "_"))


class UserSession(pydantic.BaseModel):
    """
    Identity of the caller for a single request, built once from the authorizer context
    and passed explicitly to every store operation.
    """

    userId: UserId = pydantic.Field(description="Partition key for all of the user's records")
    email: str
    displayName: typing.Optional[str] = None
    avatarUrl: typing.Optional[str] = None

    @property
    def leaderboard_name(self) -> str:
        if self.displayName:
            return self.displayName
        return self.email.split("@")[0]

    @classmethod
    def from_claims(cls, claims: dict[str, typing.Any]) -> typing.Optional["UserSession"]:
        email = claims.get("email") or claims.get("sub")
        if not email:
            return None
        return cls(
            userId=make_user_id(str(email)),
            email=str(email),
            displayName=claims.get("name") or None,
            avatarUrl=claims.get("picture") or None,
        )
