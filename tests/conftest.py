import os
import sys
from typing import Any, Dict, List, Tuple

import pytest

# Ensure the project root (containing the `infect_client` package) is on sys.path
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from infect_client.config import ScanSettings, Settings
from infect_client.identity import IdentityStore
from infect_client.session_controller import SessionController


class RecordingChannel:
    """Stands in for SessionChannel and records every outbound action."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, Dict[str, Any]]] = []
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def join(self, user_id: str) -> None:
        self.sent.append(('join', {'userId': user_id}))

    async def scan(self, user_id: str, target_id: str) -> None:
        self.sent.append(('scan', {'userId': user_id, 'targetId': target_id}))

    async def leave(self, user_id: str) -> None:
        self.sent.append(('leave', {'userId': user_id}))


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        _env_file=None,
        identity_path=None,
        log_directory=tmp_path / 'logs',
        scan=ScanSettings(cooldown_ms=100, flash_ms=30),
    )


@pytest.fixture()
def channel():
    return RecordingChannel()


@pytest.fixture()
def identity_store():
    return IdentityStore(None)


@pytest.fixture()
def controller(settings, channel, identity_store):
    return SessionController(settings=settings, identity_store=identity_store, channel=channel)
