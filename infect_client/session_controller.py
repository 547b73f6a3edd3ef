"""Session orchestration for the scanning client."""
from __future__ import annotations

import asyncio
from asyncio import QueueEmpty
import logging
import secrets
import string
from typing import Dict, List, Optional

from . import reconciler
from .backend.channel import SessionChannel
from .config import Settings, get_settings
from .identity import IdentityStore
from .models import GameSnapshot, Notification, PlayerRow, SessionError
from .sensors.debounce import DebounceState, ScanDebouncer
from .sensors.qr_camera import QrCameraFeed
from .state import ControllerEvent, GameView, derive_view

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_identity(length: int = 8) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


class SessionController:
    """
    Owns the player's identity, the server channel and the current snapshot.

    One instance per active view. Everything runs on the event loop, so
    state is mutated without locks. ``stop()`` is final: timers are
    cancelled, the channel is closed and later events are ignored.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        identity_store: Optional[IdentityStore] = None,
        channel: Optional[SessionChannel] = None,
        camera: Optional[QrCameraFeed] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._identity = identity_store or IdentityStore(self.settings.identity_path)
        self._snapshot: GameSnapshot = reconciler.reset()
        self._errors: Dict[str, str] = {}
        self._ui_subscribers: List[asyncio.Queue[ControllerEvent]] = []
        self._last_view: Optional[GameView] = None
        self._started = False
        self._stopped = False

        self._debouncer = ScanDebouncer(
            cooldown_ms=self.settings.scan.cooldown_ms,
            flash_ms=self.settings.scan.flash_ms,
            on_change=self._handle_debounce_change,
        )
        self._channel = channel or SessionChannel(
            self.settings,
            on_state=self.handle_state,
            on_notification=self.handle_notification,
            on_status=self._handle_channel_status,
        )
        self._camera = camera
        if self._camera is None and self.settings.camera.enabled:
            self._camera = QrCameraFeed(
                self.settings.camera,
                on_decoded=self.handle_decoded,
                on_error=self._handle_camera_error,
            )

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    async def start(self) -> None:
        if self._stopped:
            logger.warning("Session controller already stopped; create a new one")
            return
        if self._started:
            return
        logger.info("Starting session controller (identity=%s)", self._identity.get() or "-")
        self._started = True
        try:
            await self._channel.open()
            if self._camera:
                await self._camera.start()
        except Exception:
            await self.stop()
            raise
        self._publish_view()

    async def stop(self) -> None:
        if self._stopped:
            return
        logger.info("Stopping session controller")
        self._stopped = True
        self._debouncer.close()

        if self._camera:
            try:
                await self._camera.stop()
            except Exception as e:
                logger.warning("Error stopping camera: %s", e)

        try:
            await self._channel.close()
        except Exception as e:
            logger.warning("Error closing game server channel: %s", e)

        logger.info("Session controller stopped")

    async def __aenter__(self) -> "SessionController":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------

    @property
    def identity(self) -> Optional[str]:
        return self._identity.get()

    @property
    def snapshot(self) -> GameSnapshot:
        return self._snapshot

    @property
    def debounce_state(self) -> DebounceState:
        return self._debouncer.state

    @property
    def stopped(self) -> bool:
        return self._stopped

    def player_row(self) -> Optional[PlayerRow]:
        return self._snapshot.find_player(self._identity.get())

    def view(self) -> GameView:
        error = next(iter(self._errors.values()), None)
        return derive_view(self._identity.get(), self._snapshot, error)

    def register_ui(self) -> asyncio.Queue[ControllerEvent]:
        queue: asyncio.Queue[ControllerEvent] = asyncio.Queue(maxsize=self.settings.performance.ui_event_queue_size)
        self._ui_subscribers.append(queue)
        return queue

    def unregister_ui(self, queue: asyncio.Queue[ControllerEvent]) -> None:
        if queue in self._ui_subscribers:
            self._ui_subscribers.remove(queue)

    # ------------------------------------------------------------
    # Player actions
    # ------------------------------------------------------------

    async def handle_decoded(self, text: str) -> None:
        """Decoder callback; may be invoked on every camera frame."""
        if self._stopped:
            return
        action = self._debouncer.offer(text, self._identity.get())
        if action is None:
            return

        if action.kind == "join":
            logger.info("Joining as %s", action.user_id)
            self._identity.set(action.user_id)
            await self._channel.join(action.user_id)
        else:
            logger.info("Scanned %s", action.target_id)
            await self._channel.scan(action.user_id, action.target_id)
        self._publish_view()

    async def join(self, user_id: Optional[str] = None) -> str:
        """Join with an explicit id, the stored id, or a freshly generated one."""
        if self._stopped:
            raise SessionError("session controller is stopped")
        identity = (user_id or "").strip() or self._identity.get()
        if not identity:
            identity = generate_identity(self.settings.scan.generated_id_length)
            logger.info("Generated player id %s", identity)
        self._identity.set(identity)
        await self._channel.join(identity)
        self._publish_view()
        return identity

    async def leave(self) -> None:
        if self._stopped:
            return
        identity = self._identity.get()
        if not identity:
            return
        logger.info("Leaving game as %s", identity)
        await self._channel.leave(identity)
        self._identity.clear()
        self._snapshot = reconciler.reset()
        self._publish_view()

    async def join_new_game(self) -> None:
        """Drop back to epoch 0 and rejoin so the next broadcast is taken as-is."""
        if self._stopped:
            return
        logger.info("Joining new game (leaving epoch %d)", self._snapshot.game_id)
        self._snapshot = reconciler.reset()
        identity = self._identity.get()
        if identity:
            await self._channel.join(identity)
        self._publish_view()

    # ------------------------------------------------------------
    # Server events
    # ------------------------------------------------------------

    async def handle_state(self, snapshot: GameSnapshot) -> None:
        if self._stopped:
            return
        admitted = reconciler.admit(snapshot, self._snapshot)
        if admitted is not snapshot:
            logger.debug("Rejected snapshot for epoch %d (current %d)", snapshot.game_id, admitted.game_id)
            return
        self._snapshot = admitted

        identity = self._identity.get()
        if reconciler.is_orphaned(identity, snapshot):
            logger.info("Player %s not in game %d; clearing stored id", identity, snapshot.game_id)
            self._identity.clear()
        self._publish_view()

    async def handle_notification(self, notification: Notification) -> None:
        if self._stopped:
            return
        identity = self._identity.get()
        if not identity or notification.user_id != identity:
            return
        logger.info("Notification: %s", notification.message)
        self._broadcast(
            ControllerEvent(
                type="notification",
                data={"message": notification.message},
                phase=self.view().phase,
            )
        )

    async def _handle_channel_status(self, connected: bool, error: Optional[str]) -> None:
        if self._stopped:
            return
        self._set_error("channel", None if connected else (error or "Disconnected"))
        identity = self._identity.get()
        if connected and identity:
            # rejoin after a reload or a transport reconnect
            await self._channel.join(identity)

    async def _handle_camera_error(self, error: Optional[str]) -> None:
        if self._stopped:
            return
        self._set_error("camera", error)

    def _handle_debounce_change(self, state: DebounceState) -> None:
        self._broadcast(
            ControllerEvent(
                type="scan_feedback",
                data={"cooldown": state.cooldown_active, "flash": state.flash_active},
                phase=self.view().phase,
            )
        )

    # ------------------------------------------------------------
    # UI fan-out
    # ------------------------------------------------------------

    def _set_error(self, source: str, error: Optional[str]) -> None:
        if error:
            self._errors[source] = error
        else:
            self._errors.pop(source, None)
        self._publish_view()

    def _publish_view(self) -> None:
        view = self.view()
        if view == self._last_view:
            return
        self._last_view = view
        self._broadcast(ControllerEvent(type="view", data=view.to_dict(), phase=view.phase, error=view.error))

    def _broadcast(self, event: ControllerEvent) -> None:
        """Broadcast event to all UI subscribers, dropping the oldest when full."""
        for queue in list(self._ui_subscribers):
            try:
                if queue.full():
                    try:
                        queue.get_nowait()
                    except QueueEmpty:
                        pass
                queue.put_nowait(event)
            except Exception as e:
                logger.warning("Failed to broadcast event to subscriber: %s", e)


__all__ = ["SessionController", "generate_identity"]
