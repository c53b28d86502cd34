from __future__ import annotations

import re
from datetime import UTC, datetime
from uuid import uuid4

_SLUG = re.compile(r"[^a-z0-9]+")


def now_utc() -> datetime:
    return datetime.now(UTC)


def _token(length: int = 8) -> str:
    return uuid4().hex[:length]


def _slug(name: str) -> str:
    return _SLUG.sub("-", name.lower()).strip("-")[:16] or "team"


def new_game_id(home_team: str, away_team: str) -> str:
    """Readable game id, `away-at-home-<token>`."""
    return f"{_slug(away_team)}-at-{_slug(home_team)}-{_token(6)}"


def new_play_id(game_id: str, play_number: int) -> str:
    # play numbers are reused after a rollback, the token keeps seals distinct
    return f"{game_id}.p{play_number:03d}.{_token()}"


def new_event_id(game_id: str, event_type: str) -> str:
    return f"{game_id}.{event_type}.{_token()}"
