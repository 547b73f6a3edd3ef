import pytest
from fastapi.testclient import TestClient

from infect_client.config import ScanSettings, Settings
from infect_client.main import create_app


@pytest.fixture()
def settings(tmp_path):
    # long window so consecutive requests land inside one cooldown
    return Settings(
        _env_file=None,
        identity_path=None,
        log_directory=tmp_path / 'logs',
        scan=ScanSettings(cooldown_ms=5000, flash_ms=30),
    )


@pytest.fixture()
def client(settings, controller):
    app = create_app(settings=settings, controller=controller)
    with TestClient(app) as test_client:
        yield test_client


def test_healthz_reports_phase(client):
    res = client.get('/healthz')
    assert res.status_code == 200
    assert res.json() == {'status': 'ok', 'phase': 'not_joined'}


def test_decode_joins_then_suppresses(client, channel):
    res = client.post('/debug/decode', json={'text': 'abc'})
    body = res.json()
    assert body['cooldown'] is True
    assert body['view']['phase'] == 'loading'
    assert body['view']['banner'] == 'Loading'

    client.post('/debug/decode', json={'text': 'abc'})
    assert channel.sent == [('join', {'userId': 'abc'})]


def test_join_with_explicit_id(client, channel):
    res = client.post('/actions/join', json={'userId': 'player-7'})
    assert res.status_code == 200
    assert res.json()['userId'] == 'player-7'
    assert channel.sent == [('join', {'userId': 'player-7'})]


def test_leave_and_join_new_game(client, channel):
    client.post('/actions/join', json={'userId': 'abc'})
    res = client.post('/actions/join-new-game')
    assert res.json()['view']['gameId'] == 0
    res = client.post('/actions/leave')
    assert res.json()['view']['phase'] == 'not_joined'
    assert [name for name, _ in channel.sent] == ['join', 'join', 'leave']


def test_invalid_decode_body(client):
    res = client.post('/debug/decode', json={})
    assert res.status_code == 422


def test_ui_socket_sends_current_view(client):
    with client.websocket_connect('/ws/ui') as ws:
        first = ws.receive_json()
        assert first['type'] == 'view'
        assert first['data']['banner'] == 'Scan your QR to join'


def test_shutdown_closes_channel(settings, controller, channel):
    app = create_app(settings=settings, controller=controller)
    with TestClient(app):
        assert channel.opened
    assert channel.closed
    assert controller.stopped
