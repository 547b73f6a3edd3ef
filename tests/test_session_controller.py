import asyncio

import pytest

from infect_client.models import GameSnapshot, Notification, SessionError, Team
from infect_client.state import ViewPhase


def state(game_id, players=(), game_over=False):
    return GameSnapshot.model_validate({'gameId': game_id, 'gameOver': game_over, 'players': list(players)})


def row(user_id, team='humans', score=0, total=0):
    return {'userId': user_id, 'team': team, 'score': score, 'totalScore': total}


def drain(queue):
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


async def test_first_scan_joins_then_bootstrap_state_admitted(controller, channel):
    await controller.start()
    assert controller.view().phase is ViewPhase.NOT_JOINED

    await controller.handle_decoded('abc')
    assert channel.sent == [('join', {'userId': 'abc'})]
    assert controller.identity == 'abc'
    assert controller.view().phase is ViewPhase.LOADING

    await controller.handle_state(state(1, [row('abc')]))
    view = controller.view()
    assert view.phase is ViewPhase.JOINED
    assert view.player.score == 0
    assert view.player.team is Team.HUMANS
    await controller.stop()


async def test_repeated_decodes_emit_single_scan(controller, channel, identity_store):
    identity_store.set('me')
    await controller.start()
    for _ in range(10):
        await controller.handle_decoded('victim')
    assert channel.sent == [('scan', {'userId': 'me', 'targetId': 'victim'})]

    await asyncio.sleep(0.15)
    await controller.handle_decoded('victim')
    assert channel.sent[-1] == ('scan', {'userId': 'me', 'targetId': 'victim'})
    assert len(channel.sent) == 2
    await controller.stop()


async def test_self_scan_never_emitted(controller, channel, identity_store):
    identity_store.set('me')
    await controller.start()
    await controller.handle_decoded('me')
    assert channel.sent == []
    await controller.stop()


async def test_game_over_then_join_new_game(controller, channel, identity_store):
    identity_store.set('abc')
    await controller.start()
    await controller.handle_state(state(1, [row('abc')]))
    await controller.handle_state(state(1, [row('abc', 'zombies', 3, 10)], game_over=True))

    view = controller.view()
    assert view.phase is ViewPhase.GAME_OVER
    assert view.player.score == 3
    assert view.banner == 'GAME OVER'

    await controller.join_new_game()
    assert controller.snapshot.game_id == 0
    assert channel.sent[-1] == ('join', {'userId': 'abc'})

    await controller.handle_state(state(2, [row('abc', 'humans')]))
    assert controller.view().phase is ViewPhase.JOINED
    assert controller.snapshot.game_id == 2
    await controller.stop()


async def test_late_broadcast_from_previous_epoch_rejected(controller, identity_store):
    identity_store.set('abc')
    await controller.start()
    current = state(2, [row('abc', score=5)])
    await controller.handle_state(current)
    await controller.handle_state(state(1, [row('abc', score=1)]))
    assert controller.snapshot is current
    assert controller.player_row().score == 5
    await controller.stop()


async def test_orphaned_identity_cleared(controller, identity_store):
    identity_store.set('p1')
    await controller.start()
    await controller.handle_state(state(5))
    assert controller.identity is None
    assert identity_store.get() is None
    assert controller.view().phase is ViewPhase.NOT_JOINED
    await controller.stop()


async def test_duplicate_state_publishes_once(controller, identity_store):
    identity_store.set('abc')
    queue = controller.register_ui()
    await controller.start()
    drain(queue)

    snapshot = state(1, [row('abc')])
    await controller.handle_state(snapshot)
    await controller.handle_state(snapshot)
    views = [e for e in drain(queue) if e.type == 'view']
    assert len(views) == 1
    assert controller.snapshot is snapshot
    await controller.stop()


async def test_notifications_for_other_players_ignored(controller, identity_store):
    identity_store.set('me')
    queue = controller.register_ui()
    await controller.start()
    drain(queue)

    await controller.handle_notification(Notification(userId='someone', message='nope'))
    await controller.handle_notification(Notification(userId='me', message='you converted a human'))
    events = drain(queue)
    assert [e.data['message'] for e in events if e.type == 'notification'] == ['you converted a human']
    await controller.stop()


async def test_leave_clears_identity_and_resets(controller, channel, identity_store):
    identity_store.set('abc')
    await controller.start()
    await controller.handle_state(state(3, [row('abc')]))
    await controller.leave()
    assert channel.sent[-1] == ('leave', {'userId': 'abc'})
    assert controller.identity is None
    assert controller.snapshot.game_id == 0
    assert controller.view().phase is ViewPhase.NOT_JOINED
    await controller.stop()


async def test_join_generates_identity(controller, channel):
    await controller.start()
    user_id = await controller.join()
    assert len(user_id) == 8
    assert user_id.isalnum()
    assert channel.sent == [('join', {'userId': user_id})]
    await controller.stop()


async def test_channel_status_drives_error_and_rejoin(controller, channel, identity_store):
    identity_store.set('abc')
    await controller.start()
    await controller._handle_channel_status(False, 'Connection lost, reconnecting')
    assert controller.view().error == 'Connection lost, reconnecting'

    await controller._handle_channel_status(True, None)
    assert controller.view().error is None
    assert channel.sent == [('join', {'userId': 'abc'})]
    await controller.stop()


async def test_stopped_controller_ignores_everything(controller, channel, identity_store):
    identity_store.set('me')
    async with controller:
        assert channel.opened
    assert channel.closed
    assert controller.stopped

    await controller.handle_decoded('victim')
    await controller.handle_state(state(1, [row('me')]))
    await controller.join_new_game()
    assert channel.sent == []
    assert controller.snapshot.game_id == 0
    with pytest.raises(SessionError):
        await controller.join('x')
