"""FastAPI entry-point serving the client view to the local UI."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
import uvicorn

from .config import Settings, get_settings
from .logging_config import configure_logging
from .models import SessionError
from .session_controller import SessionController

logger = logging.getLogger(__name__)


class JoinRequest(BaseModel):
    user_id: Optional[str] = Field(None, alias="userId")


class DecodeRequest(BaseModel):
    text: str


def create_app(
    *,
    settings: Optional[Settings] = None,
    controller: Optional[SessionController] = None,
    setup_logging: bool = False,
) -> FastAPI:
    settings = settings or get_settings()
    if setup_logging:
        configure_logging(settings.log_level, settings.log_directory, settings.log_retention_days)
    manager = controller or SessionController(settings=settings)

    app = FastAPI(title="infect-client", version="0.1.0")
    app.state.controller = manager

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
        """Catch-all exception handler to prevent application crashes."""
        logger.exception("Unhandled exception in %s: %s", request.url.path, exc)
        return PlainTextResponse(
            f"Internal server error: {str(exc)}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Validation error in %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc)},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def on_startup() -> None:
        try:
            await manager.start()
            logger.info("Application started successfully")
        except Exception as e:
            logger.exception("Failed to start session controller: %s", e)
            # Don't re-raise - the view reports the failure

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        try:
            await manager.stop()
            logger.info("Application shutdown complete")
        except Exception as e:
            logger.exception("Error during shutdown: %s", e)

    @app.get("/healthz")
    async def healthcheck() -> JSONResponse:
        return JSONResponse({"status": "ok", "phase": manager.view().phase.value})

    @app.get("/view")
    async def current_view() -> JSONResponse:
        return JSONResponse(manager.view().to_dict())

    @app.post("/actions/join")
    async def join(payload: Optional[JoinRequest] = None) -> JSONResponse:
        try:
            user_id = await manager.join(payload.user_id if payload else None)
        except SessionError as e:
            return JSONResponse({"status": "error", "message": str(e)}, status_code=409)
        return JSONResponse({"status": "ok", "userId": user_id, "view": manager.view().to_dict()})

    @app.post("/actions/leave")
    async def leave() -> JSONResponse:
        await manager.leave()
        return JSONResponse({"status": "ok", "view": manager.view().to_dict()})

    @app.post("/actions/join-new-game")
    async def join_new_game() -> JSONResponse:
        await manager.join_new_game()
        return JSONResponse({"status": "ok", "view": manager.view().to_dict()})

    @app.post("/debug/decode")
    async def debug_decode(payload: DecodeRequest) -> JSONResponse:
        """Feed a decoded QR text as if the camera had seen it."""
        await manager.handle_decoded(payload.text)
        state = manager.debounce_state
        return JSONResponse({
            "status": "ok",
            "cooldown": state.cooldown_active,
            "view": manager.view().to_dict(),
        })

    @app.websocket("/ws/ui")
    async def ui_socket(ws: WebSocket) -> None:
        await ws.accept()
        queue = manager.register_ui()

        async def pump() -> None:
            while True:
                event = await queue.get()
                payload = {
                    "type": event.type,
                    "phase": event.phase.value,
                    "data": event.data,
                }
                if event.error:
                    payload["error"] = event.error
                await ws.send_json(payload)

        view = manager.view()
        await ws.send_json({"type": "view", "phase": view.phase.value, "data": view.to_dict()})
        sender = asyncio.create_task(pump(), name="ui-ws-sender")
        try:
            # UI -> controller messages are not used; read only to notice the disconnect
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    break
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.debug("UI websocket closed: %s", e)
        finally:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug("UI websocket sender stopped: %s", e)
            manager.unregister_ui(queue)
    return app


def run() -> None:
    settings = get_settings()
    application = create_app(settings=settings, setup_logging=True)
    uvicorn.run(application, host=settings.controller_host, port=settings.controller_port, log_config=None)


if __name__ == "__main__":
    run()
