from improvboard.errors import UnknownMatchError, UnknownTimerError
from improvboard.services.matches import MATCH_EVENT, TIMER_EVENT, match_room


def _match(board, forced_id=None):
    return board.matches.create_match({'name': 'Semi final', 'teams': [{'id': 'team1'}, {'id': 'team2'}]},
                                      forced_id=forced_id).value


def test_create_match_uses_forced_id_when_free(board):
    assert _match(board, 'match_abc') == 'match_abc'
    match = board.matches.get_match('match_abc')
    assert match['status'] == 'setup'
    assert match['score'] == {'team1': 0, 'team2': 0}
    assert match['timer'] is None


def test_forced_id_collision_substitutes_generated_id(board):
    _match(board, 'match_abc')
    other = _match(board, 'match_abc')
    assert other != 'match_abc'
    assert other.startswith('match_')
    assert len(board.matches.list_matches()) == 2


def test_set_score_is_absolute_and_adjust_is_delta(board, recorder):
    match_id = _match(board)
    board.matches.set_score(match_id, 4, 2)
    board.matches.set_score(match_id, 1, 3)
    assert board.matches.get_match(match_id)['score'] == {'team1': 1, 'team2': 3}
    board.matches.adjust_score(match_id, 'team2', 2)
    assert board.matches.get_match(match_id)['score'] == {'team1': 1, 'team2': 5}
    updates = [room for event, _, room in recorder.events if event == MATCH_EVENT]
    assert set(updates) == {match_room(match_id)}


def test_penalties_are_timestamped_entries(board, fake_clock):
    match_id = _match(board)
    board.matches.add_penalty(match_id, 'team1', 'minor')
    fake_clock.advance(3)
    board.matches.add_penalty(match_id, 'team1', 'major')
    entries = board.matches.get_match(match_id)['penalties']['team1']
    assert [e['kind'] for e in entries] == ['minor', 'major']
    assert entries[1]['at'] - entries[0]['at'] == 3000


def test_unknown_match_is_silent(board, recorder):
    recorder.clear()
    outcome = board.matches.adjust_score('nope', 'team1', 1)
    assert isinstance(outcome.error, UnknownMatchError)
    assert not board.matches.start_timer('nope', 60)
    assert recorder.events == []


def test_timer_counts_down_from_anchor_until_expired(board, tasks, recorder):
    match_id = _match(board)
    timer = board.matches.start_timer(match_id, 2).value
    assert timer['status'] == 'running'
    assert len(tasks.tasks) == 1
    recorder.clear()

    tasks.run()  # fake sleep advances the clock 100ms per tick

    ticks = recorder.named(TIMER_EVENT)
    assert len(ticks) == 20
    assert ticks[0]['remaining'] == 2
    assert ticks[-1]['remaining'] == 0
    assert ticks[-1]['status'] == 'expired'
    assert all(t['timerId'] == timer['timerId'] for t in ticks)
    # expiry also sends the full match
    assert recorder.named(MATCH_EVENT)[-1]['timer']['status'] == 'expired'


def test_restart_cancels_previous_loop(board, tasks, recorder):
    match_id = _match(board)
    first = board.matches.start_timer(match_id, 5).value
    second = board.matches.start_timer(match_id, 5).value
    assert first['timerId'] != second['timerId']
    recorder.clear()
    tasks.run(0)
    assert recorder.named(TIMER_EVENT) == []


def test_pause_resume_stop_need_matching_timer_id(board, tasks, fake_clock):
    match_id = _match(board)
    timer = board.matches.start_timer(match_id, 10).value
    outcome = board.matches.pause_timer(match_id, 'timer_other')
    assert isinstance(outcome.error, UnknownTimerError)
    assert board.matches.get_match(match_id)['timer']['status'] == 'running'

    fake_clock.advance(3.5)
    paused = board.matches.pause_timer(match_id, timer['timerId']).value
    assert paused['status'] == 'paused'
    assert paused['remaining'] == 7

    # the loop started before the pause is stale now
    tasks.run(0)
    assert board.matches.get_match(match_id)['timer']['status'] == 'paused'

    resumed = board.matches.resume_timer(match_id, timer['timerId']).value
    assert resumed['status'] == 'running'
    assert len(tasks.tasks) == 2

    stopped = board.matches.stop_timer(match_id, timer['timerId']).value
    assert stopped['status'] == 'stopped'
    assert stopped['remaining'] == 0


def test_set_duration_leaves_timer_paused(board, tasks):
    match_id = _match(board)
    timer = board.matches.start_timer(match_id, 10).value
    updated = board.matches.set_timer_duration(match_id, timer['timerId'], 45).value
    assert (updated['status'], updated['duration'], updated['remaining']) == ('paused', 45, 45)
    board.matches.resume_timer(match_id, timer['timerId'])
    assert board.matches.get_match(match_id)['timer']['remaining'] == 45


def test_start_paused_does_not_spawn(board, tasks):
    match_id = _match(board)
    timer = board.matches.start_timer(match_id, 30, auto_start=False).value
    assert timer['status'] == 'paused'
    assert tasks.tasks == []


def test_set_status(board):
    match_id = _match(board)
    assert board.matches.set_status(match_id, 'active')
    assert not board.matches.set_status(match_id, 'halftime')
    assert board.matches.get_match(match_id)['status'] == 'active'
