"""View state definitions shared by the controller and the local UI."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .models import GameSnapshot, PlayerRow, Team


class ViewPhase(str, enum.Enum):
    """
    What the player's screen shows:

    1. NOT_JOINED - No stored id, "Scan your QR to join"
    2. LOADING    - Id stored but the server has not listed us yet
    3. JOINED     - Our row is in the current snapshot
    4. GAME_OVER  - Current snapshot says the game ended
    """
    NOT_JOINED = "not_joined"
    LOADING = "loading"
    JOINED = "joined"
    GAME_OVER = "game_over"


TEAM_ICONS = {
    Team.ZOMBIES: "\U0001f9df\u200d\u2642\ufe0f",
    Team.HUMANS: "\U0001f9d1\u200d\u2695\ufe0f",
}


@dataclass(frozen=True)
class GameView:
    """Snapshot of everything the presentation layer needs."""

    phase: ViewPhase
    user_id: Optional[str] = None
    player: Optional[PlayerRow] = None
    game_id: int = 0
    error: Optional[str] = None

    @property
    def banner(self) -> str:
        if self.phase is ViewPhase.GAME_OVER:
            return "GAME OVER"
        if self.phase is ViewPhase.NOT_JOINED:
            return "Scan your QR to join"
        if self.phase is ViewPhase.LOADING or self.player is None:
            return "Loading"
        icon = TEAM_ICONS[self.player.team]
        return f"{icon} Score: {self.player.score} \U0001f522 {self.player.total_score}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "userId": self.user_id,
            "gameId": self.game_id,
            "player": self.player.model_dump(by_alias=True, mode="json") if self.player else None,
            "banner": self.banner,
            "error": self.error,
        }


def derive_view(identity: Optional[str], snapshot: GameSnapshot, error: Optional[str] = None) -> GameView:
    """Single place where the player's own row is looked up."""
    player = snapshot.find_player(identity)
    if snapshot.game_over:
        phase = ViewPhase.GAME_OVER
    elif not identity:
        phase = ViewPhase.NOT_JOINED
    elif player is None:
        phase = ViewPhase.LOADING
    else:
        phase = ViewPhase.JOINED
    return GameView(phase=phase, user_id=identity, player=player, game_id=snapshot.game_id, error=error)


@dataclass
class ControllerEvent:
    """Event payload distributed to UI clients over the local WebSocket."""

    type: str
    data: Dict[str, Any]
    phase: ViewPhase
    error: Optional[str] = None


__all__ = ["ControllerEvent", "GameView", "TEAM_ICONS", "ViewPhase", "derive_view"]
