"""Durable storage for the local player id."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class IdentityStore:
    """
    Keeps the player id in a single text file so it survives restarts.

    Any ``OSError`` or an undecodable file switches the store to
    memory-only mode for the rest of the process; the id is then lost on
    restart but callers never see the failure.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = Path(path).expanduser() if path is not None else None
        self._memory: Optional[str] = None
        self._loaded = False

    @property
    def durable(self) -> bool:
        return self._path is not None

    def get(self) -> Optional[str]:
        if self._loaded or self._path is None:
            return self._memory
        try:
            if self._path.exists():
                value = self._path.read_text(encoding="utf-8").strip()
                self._memory = value or None
        except (OSError, UnicodeDecodeError) as exc:
            self._degrade("read", exc)
        self._loaded = True
        return self._memory

    def set(self, identity: str) -> None:
        if not identity:
            raise ValueError("identity must be a non-empty string")
        self._memory = identity
        self._loaded = True
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(identity, encoding="utf-8")
        except OSError as exc:
            self._degrade("write", exc)

    def clear(self) -> None:
        self._memory = None
        self._loaded = True
        if self._path is None:
            return
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            self._degrade("clear", exc)

    def _degrade(self, op: str, exc: Exception) -> None:
        logger.warning("Identity storage %s failed (%s); keeping id in memory only", op, exc)
        self._path = None


__all__ = ["IdentityStore"]
