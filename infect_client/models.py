"""Wire models for the game server broadcasts."""
from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class SessionError(RuntimeError):
    """Base class for client session failures."""


class InvalidPayloadError(SessionError):
    """Raised when an inbound event payload does not match its schema."""

    def __init__(self, event: str, detail: str) -> None:
        super().__init__(f"invalid {event} payload: {detail}")
        self.event = event


class Team(str, enum.Enum):
    ZOMBIES = "zombies"
    HUMANS = "humans"


class PlayerRow(BaseModel):
    """One player's line in the scoreboard."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    team: Team
    score: int = 0
    total_score: int = Field(0, alias="totalScore")


class GameSnapshot(BaseModel):
    """
    Full authoritative game state pushed by the server.

    Snapshots are immutable and always replace the previous one. ``game_id``
    0 means no real epoch has been observed yet.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    game_id: int = Field(0, alias="gameId", ge=0)
    game_over: bool = Field(False, alias="gameOver")
    players: tuple[PlayerRow, ...] = ()

    @field_validator("players")
    @classmethod
    def _unique_ids(cls, players: tuple[PlayerRow, ...]) -> tuple[PlayerRow, ...]:
        seen: set[str] = set()
        for row in players:
            if row.user_id in seen:
                raise ValueError(f"duplicate userId {row.user_id!r}")
            seen.add(row.user_id)
        return players

    def find_player(self, user_id: Optional[str]) -> Optional[PlayerRow]:
        if not user_id:
            return None
        for row in self.players:
            if row.user_id == user_id:
                return row
        return None


class Notification(BaseModel):
    """Ephemeral text targeted at a single player."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: str = Field(..., alias="userId")
    message: str


EMPTY_SNAPSHOT = GameSnapshot()


def parse_snapshot(data: Any) -> GameSnapshot:
    try:
        return GameSnapshot.model_validate(data)
    except ValidationError as exc:
        raise InvalidPayloadError("state", str(exc)) from exc


def parse_notification(data: Any) -> Notification:
    try:
        return Notification.model_validate(data)
    except ValidationError as exc:
        raise InvalidPayloadError("notification", str(exc)) from exc


__all__ = [
    "EMPTY_SNAPSHOT",
    "GameSnapshot",
    "InvalidPayloadError",
    "Notification",
    "PlayerRow",
    "SessionError",
    "Team",
    "parse_notification",
    "parse_snapshot",
]
