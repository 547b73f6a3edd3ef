"""Scan debounce state machine between the QR decoder and the game server."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanAction:
    """Outbound action produced from an accepted decode event."""

    kind: Literal["join", "scan"]
    user_id: str
    target_id: Optional[str] = None


@dataclass(frozen=True)
class DebounceState:
    cooldown_active: bool = False
    flash_active: bool = False


StateCallback = Callable[[DebounceState], None]


class ScanDebouncer:
    """
    Turns a decoder that fires on every frame into at most one action per
    cooldown window.

    Both flags are armed together when a decode is accepted and expire on
    their own timers. Each flag holds one timer handle; re-arming cancels
    the previous handle first.
    """

    def __init__(
        self,
        *,
        cooldown_ms: int = 2000,
        flash_ms: int = 150,
        on_change: Optional[StateCallback] = None,
    ) -> None:
        self.cooldown_ms = cooldown_ms
        self.flash_ms = flash_ms
        self._on_change = on_change

        self._cooldown_active = False
        self._flash_active = False
        self._cooldown_handle: Optional[asyncio.TimerHandle] = None
        self._flash_handle: Optional[asyncio.TimerHandle] = None
        self._closed = False

    @property
    def state(self) -> DebounceState:
        return DebounceState(cooldown_active=self._cooldown_active, flash_active=self._flash_active)

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, text: str, identity: Optional[str]) -> Optional[ScanAction]:
        """Feed one decode event; returns the action to emit, if any."""
        if self._closed or self._cooldown_active:
            return None

        text = (text or "").strip()
        if not text:
            return None

        if not identity:
            action = ScanAction(kind="join", user_id=text)
        elif text == identity:
            logger.debug("Ignoring scan of own code")
            return None
        else:
            action = ScanAction(kind="scan", user_id=identity, target_id=text)

        self._arm()
        return action

    def close(self) -> None:
        """Cancel pending timers and reset both flags."""
        self._closed = True
        self._cancel(self._cooldown_handle)
        self._cancel(self._flash_handle)
        self._cooldown_handle = None
        self._flash_handle = None
        changed = self._cooldown_active or self._flash_active
        self._cooldown_active = False
        self._flash_active = False
        if changed:
            self._notify()

    def _arm(self) -> None:
        loop = asyncio.get_running_loop()

        self._cancel(self._cooldown_handle)
        self._cooldown_active = True
        self._cooldown_handle = loop.call_later(self.cooldown_ms / 1000, self._expire_cooldown)

        self._cancel(self._flash_handle)
        self._flash_active = True
        self._flash_handle = loop.call_later(self.flash_ms / 1000, self._expire_flash)

        self._notify()

    def _expire_cooldown(self) -> None:
        self._cooldown_handle = None
        self._cooldown_active = False
        self._notify()

    def _expire_flash(self) -> None:
        self._flash_handle = None
        self._flash_active = False
        self._notify()

    @staticmethod
    def _cancel(handle: Optional[asyncio.TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()

    def _notify(self) -> None:
        if not self._on_change:
            return
        try:
            self._on_change(self.state)
        except Exception:
            logger.exception("Debounce state callback failed")


__all__ = ["DebounceState", "ScanAction", "ScanDebouncer"]
