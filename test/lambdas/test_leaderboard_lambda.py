#!/usr/bin/env python3
from unittest.mock import Mock

from botocore.exceptions import ClientError

from pc_academy.lambdas.leaderboard_lambda import LeaderboardApiHandler
from pc_academy.models.user_progress_models import RankedLeaderboardEntryModel
from test_utils.apig_events import make_event, response_body


def _entry(user_id: str, score: int, rank: int) -> RankedLeaderboardEntryModel:
    return RankedLeaderboardEntryModel(
        userId=user_id,
        displayName=user_id.split("@")[0],
        score=score,
        lastUpdatedAt="2024-05-01T00:00:00+00:00",
        rank=rank,
    )


def test_get_leaderboard() -> None:
    leaderboard_table = Mock()
    leaderboard_table.list_entries.return_value = [_entry("b@example.com", 90, 1), _entry("a@example.com", 20, 2)]

    response = LeaderboardApiHandler(leaderboard_table).handle(make_event("GET", "/leaderboard"))

    assert response["statusCode"] == 200
    entries = response_body(response)["entries"]
    assert [(e["displayName"], e["score"], e["rank"]) for e in entries] == [("b", 90, 1), ("a", 20, 2)]
    leaderboard_table.list_entries.assert_called_once_with(limit=100)


def test_get_leaderboard_limit_is_clamped() -> None:
    leaderboard_table = Mock()
    leaderboard_table.list_entries.return_value = []
    handler = LeaderboardApiHandler(leaderboard_table)

    handler.handle(make_event("GET", "/leaderboard", query={"limit": "10"}))
    leaderboard_table.list_entries.assert_called_with(limit=10)

    handler.handle(make_event("GET", "/leaderboard", query={"limit": "5000"}))
    leaderboard_table.list_entries.assert_called_with(limit=100)


def test_leaderboard_store_failure() -> None:
    leaderboard_table = Mock()
    leaderboard_table.list_entries.side_effect = ClientError({"Error": {"Code": "500", "Message": "boom"}}, "Scan")

    response = LeaderboardApiHandler(leaderboard_table).handle(make_event("GET", "/leaderboard"))

    assert response["statusCode"] == 503


def test_leaderboard_wrong_method() -> None:
    response = LeaderboardApiHandler(Mock()).handle(make_event("POST", "/leaderboard"))
    assert response["statusCode"] == 404
