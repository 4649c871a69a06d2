import logging
import typing
from datetime import datetime, timezone

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from pc_academy.models.session_models import UserSession
from pc_academy.models.user_progress_models import LeaderboardEntryModel, RankedLeaderboardEntryModel
from pc_academy.utils.base_types import IsoTimestamp

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class LeaderboardTable:
    """
    Data Abstraction Layer for the leaderboard: one denormalised entry per user.

    Table Schema:
      - PK: userId (user's email address)

    Each entry is written only by its owner, on quiz submission.
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def put_entry(self, session: UserSession, score: int) -> LeaderboardEntryModel:
        """
        Overwrites the caller's entry with a freshly recomputed total score.
        """
        entry = LeaderboardEntryModel(
            userId=session.userId,
            displayName=session.leaderboard_name,
            score=score,
            avatarUrl=session.avatarUrl or "",
            lastUpdatedAt=IsoTimestamp(datetime.now(timezone.utc).isoformat()),
        )
        try:
            self.table.put_item(Item=entry.model_dump(exclude_none=True))
            _LOGGER.info(f"Leaderboard entry for {session.userId} set to {score}.")
            return entry
        except ClientError as e:
            _LOGGER.error(
                f"Error writing leaderboard entry for {session.userId}: {e.response['Error']['Message']}",
                exc_info=True,
            )
            raise

    def get_entry(self, user_id: str) -> typing.Optional[LeaderboardEntryModel]:
        try:
            response = self.table.get_item(Key={"userId": user_id})
            item_data = response.get("Item")
            return LeaderboardEntryModel.model_validate(item_data) if item_data else None
        except ClientError as e:
            _LOGGER.error(f"Error reading leaderboard entry for {user_id}: {e.response['Error']['Message']}")
            raise

    def list_entries(self, limit: typing.Optional[int] = None) -> list[RankedLeaderboardEntryModel]:
        """
        Returns all entries ordered by score (desc), then lastUpdatedAt (desc), ranked from 1.
        """
        entries: list[LeaderboardEntryModel] = []
        scan_kwargs: dict[str, typing.Any] = {}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item_data in response.get("Items", []):
                    try:
                        entries.append(LeaderboardEntryModel.model_validate(item_data))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid leaderboard item {item_data}. Error: {ve}")
                if "LastEvaluatedKey" not in response:
                    break
                scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except ClientError as e:
            _LOGGER.error(f"Error scanning leaderboard: {e.response['Error']['Message']}")
            raise

        entries.sort(key=lambda entry: (entry.score, entry.lastUpdatedAt), reverse=True)
        if limit is not None:
            entries = entries[:limit]

        return [
            RankedLeaderboardEntryModel(**entry.model_dump(), rank=index + 1) for index, entry in enumerate(entries)
        ]
