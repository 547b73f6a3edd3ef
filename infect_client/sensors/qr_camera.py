"""
Camera feed that decodes QR codes with OpenCV.

Every decoded frame is passed on; duplicate suppression is the debouncer's
job, not this module's.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np

# Optional deps
try:
    import cv2  # type: ignore
except Exception:
    cv2 = None

from ..config import CameraSettings

logger = logging.getLogger(__name__)

DecodedCallback = Callable[[str], Awaitable[None]]
ErrorCallback = Callable[[Optional[str]], Awaitable[None]]


class QrCameraFeed:
    """
    Reads frames from a local camera and reports decoded QR text.

    All device calls run on one dedicated worker thread, so the capture is
    never released while a read is still in flight.
    """

    def __init__(
        self,
        settings: CameraSettings,
        *,
        on_decoded: DecodedCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self.settings = settings
        self.enable_hardware = cv2 is not None
        self._on_decoded = on_decoded
        self._on_error = on_error
        self._cap = None
        self._detector = None
        self._loop_task: Optional[asyncio.Task[None]] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        """Start the capture loop."""
        if self._loop_task:
            return
        if not self.enable_hardware:
            logger.warning("OpenCV not available - camera disabled")
            await self._report("Camera unavailable: OpenCV is not installed")
            return

        self._stop_event.clear()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="qr-camera")
        self._loop_task = asyncio.create_task(self._capture_loop(), name="qr-camera-loop")
        logger.info("QR camera feed started (camera_id=%d)", self.settings.camera_id)

    async def stop(self) -> None:
        """Stop the capture loop and release the device."""
        if not self._loop_task:
            return
        self._stop_event.set()
        try:
            await self._loop_task
        except asyncio.CancelledError:
            pass
        self._loop_task = None
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None
        logger.info("QR camera feed stopped")

    def _open(self) -> bool:
        self._cap = cv2.VideoCapture(self.settings.camera_id)
        if not self._cap.isOpened():
            logger.error("Failed to open camera %d", self.settings.camera_id)
            self._cap = None
            return False
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.settings.resolution_width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.settings.resolution_height)
        self._detector = cv2.QRCodeDetector()
        return True

    def _release(self) -> None:
        if self._cap:
            self._cap.release()
            self._cap = None
        self._detector = None

    def _read_and_decode(self) -> Optional[str]:
        """Grab one frame and decode it; runs in an executor thread."""
        if not self._cap or not self._cap.isOpened():
            return None
        ret, frame = self._cap.read()
        if not ret or frame is None:
            return None
        return self.decode_frame(frame)

    def decode_frame(self, frame: np.ndarray) -> Optional[str]:
        if self._detector is None:
            return None
        try:
            text, points, _ = self._detector.detectAndDecode(frame)
        except cv2.error as e:
            logger.debug("QR decode error: %s", e)
            return None
        if points is None or not text:
            return None
        return text

    async def _capture_loop(self) -> None:
        loop = asyncio.get_running_loop()
        interval = 1.0 / max(self.settings.fps, 1)
        try:
            opened = await loop.run_in_executor(self._executor, self._open)
            if not opened:
                await self._report(f"Cannot open camera {self.settings.camera_id}")
                return
            await self._report(None)
            while not self._stop_event.is_set():
                text = await loop.run_in_executor(self._executor, self._read_and_decode)
                if text:
                    try:
                        await self._on_decoded(text)
                    except Exception:
                        logger.exception("Decoded-text callback failed")
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("QR camera loop crashed")
            await self._report(f"Camera error: {exc}")
        finally:
            # queued behind any read still running on the worker thread
            await loop.run_in_executor(self._executor, self._release)

    async def _report(self, error: Optional[str]) -> None:
        if not self._on_error:
            return
        try:
            await self._on_error(error)
        except Exception:
            logger.exception("Camera error callback failed")


__all__ = ["QrCameraFeed"]
