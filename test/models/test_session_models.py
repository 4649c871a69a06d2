from pc_academy.models.session_models import UserSession, make_user_id


def test_make_user_id_replaces_slashes() -> None:
    assert make_user_id("a/b@example.com") == "a_b@example.com"


def test_from_claims() -> None:
    session = UserSession.from_claims(
        {"sub": "alice@example.com", "email": "alice@example.com", "name": "Alice", "picture": "https://x/p.png"}
    )
    assert session.userId == "alice@example.com"
    assert session.leaderboard_name == "Alice"
    assert session.avatarUrl == "https://x/p.png"


def test_from_claims_uses_sub_when_email_missing() -> None:
    session = UserSession.from_claims({"sub": "bob@example.com"})
    assert session.email == "bob@example.com"
    assert session.leaderboard_name == "bob"


def test_from_claims_without_identity() -> None:
    assert UserSession.from_claims({}) is None
