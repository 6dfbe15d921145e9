import pytest

from tambola.errors import InvalidState
from tambola.services.game.rooms import RoomState
from tambola.services.game.scheduler import DrawTimer, SocketIOTimers


def _timed_room(service, interval=5):
    room = service.create_room('mod', 'Maya')
    service.join_room('sid-alice', room.code, 'alice')
    service.start_game('mod', room.code, ['Full House'], mode='timed', interval=interval)
    return room


def test_timed_draws_pause_and_resume(service, timers, broadcaster):
    room = _timed_room(service)
    timers.advance(10)
    assert timers.fired_at == [5, 10]
    assert len(room.calls.called) == 2

    timers.advance(2)
    service.pause('mod', room.code)
    assert room.state is RoomState.PAUSED
    assert timers.live() == []
    timers.advance(2)
    assert len(room.calls.called) == 2

    service.resume('mod', room.code)
    assert broadcaster.named('auto-resumed')
    timers.advance(4.5)
    assert len(room.calls.called) == 2
    timers.advance(0.5)
    assert timers.fired_at == [5, 10, 19]
    assert len(room.calls.called) == 3

    service.stop('mod', room.code)
    timers.advance(60)
    assert len(room.calls.called) == 3
    assert timers.live() == []


def test_restart_keeps_single_live_timer(service, timers):
    room = _timed_room(service)
    timers.advance(5)
    service.stop('mod', room.code)
    service.start_game('mod', room.code, ['Full House'], mode='auto', interval=2)
    assert len(timers.live()) == 1
    assert timers.live()[0] is room.timer

    with pytest.raises(InvalidState):
        service.resume('mod', room.code)
    assert len(timers.live()) == 1

    timers.advance(4)
    assert len(room.calls.called) == 2


def test_stale_callback_does_not_draw(service, timers):
    room = _timed_room(service)
    stale = room.timer
    service.pause('mod', room.code)
    stale.callback(stale)
    assert room.calls.called == []

    service.resume('mod', room.code)
    stale.callback(stale)
    assert room.calls.called == []
    assert not room.timer.cancelled


def test_moderator_disconnect_pauses_timed_game(service, timers, broadcaster):
    room = _timed_room(service)
    timers.advance(5)
    service.disconnect('mod')
    assert room.state is RoomState.PAUSED
    (paused,) = broadcaster.named('auto-paused')
    assert paused[3] == {'reason': 'moderator-disconnected'}
    assert broadcaster.named('admin-disconnected')[0][3]['state'] == 'paused'

    timers.advance(30)
    assert len(room.calls.called) == 1

    service.join_room('mod-2', room.code, 'Maya')
    service.resume('mod-2', room.code)
    timers.advance(10)
    assert len(room.calls.called) == 3


def test_default_interval_applies(service, timers):
    room = service.create_room('mod', 'Maya')
    service.start_game('mod', room.code, ['Full House'], mode='timed')
    assert room.interval == 5.0
    assert timers.started[-1].interval == 5.0


def test_timed_game_runs_to_exhaustion(service, timers, broadcaster):
    room = _timed_room(service, interval=1)
    timers.advance(200)
    assert len(room.calls.called) == 90
    assert room.state is RoomState.FINISHED
    assert len(broadcaster.named('auto-finished')) == 1
    assert timers.live() == []
    assert room.timer is None


def test_cancelled_timer_never_fires():
    fired = []
    timer = DrawTimer(1, fired.append, 'room=TEST')
    timer.fire()
    timer.cancel()
    timer.fire()
    assert fired == [timer]
    assert timer.fired == 1


class FakeSocketIO:
    def __init__(self):
        self.tasks = []
        self.slept = 0

    def start_background_task(self, target, *args):
        self.tasks.append((target, args))

    def sleep(self, seconds):
        self.slept += seconds


def test_socketio_worker_fires_until_cancelled():
    sio = FakeSocketIO()
    timers = SocketIOTimers(sio)

    def callback(timer):
        if timer.fired == 3:
            timer.cancel()

    timer = timers.start(2, callback, 'room=TEST')
    (target, args), = sio.tasks
    target(*args)
    assert timer.fired == 3
    assert timer.cancelled
    assert sio.slept == 6


def test_socketio_worker_cancels_on_error():
    sio = FakeSocketIO()
    timers = SocketIOTimers(sio)

    def callback(timer):
        raise RuntimeError('boom')

    timer = timers.start(1, callback, 'room=TEST')
    timers._worker(timer)
    assert timer.cancelled
    assert timer.fired == 1
