from infect_client.models import EMPTY_SNAPSHOT, GameSnapshot
from infect_client.state import ViewPhase, derive_view


def test_banner_for_joined_player():
    snapshot = GameSnapshot.model_validate({
        'gameId': 1,
        'gameOver': False,
        'players': [{'userId': 'abc', 'team': 'zombies', 'score': 3, 'totalScore': 10}],
    })
    view = derive_view('abc', snapshot)
    assert view.phase is ViewPhase.JOINED
    assert view.banner.endswith('Score: 3 \U0001f522 10')
    assert view.banner.startswith('\U0001f9df')


def test_game_over_without_row():
    snapshot = GameSnapshot.model_validate({'gameId': 1, 'gameOver': True, 'players': []})
    view = derive_view(None, snapshot)
    assert view.phase is ViewPhase.GAME_OVER
    assert view.player is None


def test_to_dict_uses_wire_names():
    view = derive_view('abc', EMPTY_SNAPSHOT, error='offline')
    data = view.to_dict()
    assert data['phase'] == 'loading'
    assert data['userId'] == 'abc'
    assert data['player'] is None
    assert data['error'] == 'offline'
