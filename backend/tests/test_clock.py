import time

from improvboard.services.clock import RoundClock
from improvboard.services.defaults import stopped_timer
from improvboard.services.store import StateStore, TIMER_TICK_EVENT


def test_start_then_pause_after_real_second():
    clock = RoundClock(StateStore())
    started = clock.start(90)
    assert started.value['status'] == 'started'
    assert started.value['remainingSec'] == 90
    time.sleep(1.1)
    paused = clock.pause()
    assert paused.value['status'] == 'paused'
    assert 1 <= paused.value['remainingSec'] <= 89
    assert paused.value['startedAt'] is None


def test_stored_remaining_is_not_counted_down_while_started(board, fake_clock):
    board.clock.start(60)
    fake_clock.advance(10)
    assert board.get_state()['timer']['remainingSec'] == 60
    assert board.clock.read()['remainingSec'] == 50


def test_tick_publishes_view_without_writing(board, recorder, fake_clock):
    board.clock.start(30)
    recorder.clear()
    fake_clock.advance(5)
    assert board.clock.tick()
    assert recorder.named(TIMER_TICK_EVENT)[-1]['remainingSec'] == 25
    assert recorder.named('updateState') == []
    # repeated ticks do not subtract elapsed time twice
    fake_clock.advance(1)
    board.clock.tick()
    assert recorder.named(TIMER_TICK_EVENT)[-1]['remainingSec'] == 24


def test_tick_auto_stops_at_zero(board, fake_clock):
    board.clock.start(3)
    fake_clock.advance(4)
    board.clock.tick()
    assert board.get_state()['timer'] == stopped_timer()


def test_pause_resume_keeps_remaining(board, fake_clock):
    board.clock.start(20)
    fake_clock.advance(5)
    board.clock.pause()
    fake_clock.advance(100)
    assert board.clock.read()['remainingSec'] == 15
    board.clock.resume()
    fake_clock.advance(3)
    assert board.clock.read()['remainingSec'] == 12


def test_pause_and_resume_are_noops_in_wrong_state(board, recorder):
    assert not board.clock.pause()
    assert not board.clock.resume()
    assert recorder.events == []


def test_stop_is_idempotent(board, fake_clock):
    board.clock.start(45)
    fake_clock.advance(2)
    first = board.clock.stop().value
    second = board.clock.stop().value
    assert first == second == {'status': 'stopped', 'durationSec': 0, 'remainingSec': 0, 'startedAt': None}


def test_set_remaining_reanchors_running_timer(board, fake_clock):
    board.clock.start(60)
    fake_clock.advance(30)
    board.clock.set_remaining(50)
    assert board.clock.read()['remainingSec'] == 50
    fake_clock.advance(2)
    assert board.clock.read()['remainingSec'] == 48


def test_set_duration_rejects_negative(board):
    assert not board.clock.set_duration(-1)
    assert not board.clock.start('soon')
