"""Epoch-based admission of server snapshots."""
from __future__ import annotations

from typing import Optional

from .models import EMPTY_SNAPSHOT, GameSnapshot


def admit(incoming: GameSnapshot, current: GameSnapshot) -> GameSnapshot:
    """
    Return the snapshot that should become current.

    The first snapshot after a reset (current epoch 0) is always taken.
    After that only snapshots for the same epoch are taken, so a late
    broadcast from a finished game cannot overwrite a newer one.
    """
    if current.game_id == 0 or incoming.game_id == current.game_id:
        return incoming
    return current


def reset() -> GameSnapshot:
    """Local epoch-0 view used when the player asks to join a new game."""
    return EMPTY_SNAPSHOT


def is_orphaned(identity: Optional[str], snapshot: GameSnapshot) -> bool:
    """True when a real game is current and the server no longer lists us."""
    if not identity or snapshot.game_id == 0:
        return False
    return snapshot.find_player(identity) is None


__all__ = ["admit", "is_orphaned", "reset"]
