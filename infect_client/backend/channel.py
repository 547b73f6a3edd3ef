"""Duplex event channel to the game server."""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import websockets

from ..config import Settings
from ..models import GameSnapshot, InvalidPayloadError, Notification, parse_notification, parse_snapshot

logger = logging.getLogger(__name__)

StateHandler = Callable[[GameSnapshot], Awaitable[None]]
NotificationHandler = Callable[[Notification], Awaitable[None]]
StatusHandler = Callable[[bool, Optional[str]], Awaitable[None]]


class SessionChannel:
    """
    Owns the single websocket to the game server.

    Frames are JSON objects ``{"type": <event>, "data": <payload>}``.
    Reconnection is left to the ``websockets`` connect iterator; the channel
    only reports status changes so the UI can show an error while offline.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        on_state: StateHandler,
        on_notification: NotificationHandler,
        on_status: Optional[StatusHandler] = None,
    ) -> None:
        self.settings = settings
        self._on_state = on_state
        self._on_notification = on_notification
        self._on_status = on_status
        self._conn: Optional[websockets.ClientConnection] = None
        self._listener_task: Optional[asyncio.Task[None]] = None
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        if self._listener_task and not self._listener_task.done():
            return
        self._closed = False
        logger.info("Connecting to game server %s", self.settings.server_ws_url)
        self._listener_task = asyncio.create_task(self._run(), name="game-ws-listener")

    async def close(self) -> None:
        self._closed = True
        task = self._listener_task
        self._listener_task = None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning("Error during listener task cleanup: %s", e)
        if self._conn:
            try:
                await self._conn.close()
            except Exception as e:
                logger.warning("Error closing websocket connection: %s", e)
            self._conn = None
        logger.info("Game server channel closed")

    # ------------------------------------------------------------
    # Outbound actions (fire-and-forget)
    # ------------------------------------------------------------

    async def join(self, user_id: str) -> None:
        await self._send("join", {"userId": user_id})

    async def scan(self, user_id: str, target_id: str) -> None:
        await self._send("scan", {"userId": user_id, "targetId": target_id})

    async def leave(self, user_id: str) -> None:
        await self._send("leave", {"userId": user_id})

    async def _send(self, event: str, data: dict[str, Any]) -> None:
        if self._closed:
            logger.debug("Dropping %s - channel closed", event)
            return
        if not self._conn:
            logger.warning("Cannot send %s - game server not connected", event)
            return
        try:
            await self._conn.send(json.dumps({"type": event, "data": data}))
        except websockets.ConnectionClosed:
            logger.warning("Cannot send %s - websocket connection closed", event)
        except Exception as e:
            logger.error("Failed to send %s: %s", event, e)

    # ------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------

    async def _run(self) -> None:
        try:
            async for conn in websockets.connect(self.settings.server_ws_url):
                self._conn = conn
                logger.info("Game server connected")
                await self._report(True, None)
                try:
                    async for message in conn:
                        await self.dispatch(message)
                    logger.info("Game server closed the connection")
                    await self._report(False, "Connection closed, reconnecting")
                except websockets.ConnectionClosedError as exc:
                    logger.warning("Game server connection lost: %s", exc)
                    await self._report(False, "Connection lost, reconnecting")
                finally:
                    self._conn = None
        except asyncio.CancelledError:  # cooperative cancel
            raise
        except Exception as exc:
            logger.exception("Game server channel gave up")
            await self._report(False, f"Cannot reach game server: {exc}")
        finally:
            self._conn = None

    async def dispatch(self, message: str | bytes) -> None:
        """Decode one frame and hand it to the matching handler."""
        try:
            frame = json.loads(message)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Invalid JSON from game server: %r", message)
            return
        if not isinstance(frame, dict):
            logger.warning("Unexpected frame from game server: %r", frame)
            return

        event = frame.get("type")
        data = frame.get("data")
        try:
            if event == "state":
                await self._on_state(parse_snapshot(data))
            elif event == "notification":
                await self._on_notification(parse_notification(data))
            elif event == "ping":
                await self._send("pong", data if isinstance(data, dict) else {})
            else:
                logger.debug("Ignoring unknown event %r", event)
        except InvalidPayloadError as exc:
            logger.warning("Dropping frame: %s", exc)
        except Exception as e:
            logger.exception("Error in %s handler: %s", event, e)

    async def _report(self, connected: bool, error: Optional[str]) -> None:
        if self._closed or not self._on_status:
            return
        try:
            await self._on_status(connected, error)
        except Exception:
            logger.exception("Channel status handler failed")


__all__ = ["SessionChannel"]
