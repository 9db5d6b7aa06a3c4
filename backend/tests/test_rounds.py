import pytest

from improvboard.errors import GameFinishedError, NoActiveRoundError, NoStagedRoundError
from improvboard.services.defaults import new_round_config, placeholder_round


def _config(round_type='shortform', number=1, **extra):
    config = new_round_config(round_type, number)
    config.update(extra)
    return config


def _results(team1=0, team2=0, penalties=None, notes=None):
    payload = {'points': {'team1': team1, 'team2': team2}}
    if penalties is not None:
        payload['penalties'] = penalties
    if notes is not None:
        payload['notes'] = notes
    return payload


def test_initial_board_is_between_rounds(board):
    rounds = board.get_state()['rounds']
    assert rounds['isBetweenRounds'] is True
    assert rounds['current'] == placeholder_round()
    assert rounds['gameStatus'] == 'notStarted'


def test_start_round_rejects_invalid_config(board, recorder):
    assert not board.rounds.start_round(_config(minPlayers=0))
    assert not board.rounds.start_round(_config(maxPlayers=1, minPlayers=3))
    assert not board.rounds.start_round(_config(timeLimit=0))
    assert not board.rounds.start_round(_config(round_type='opera'))
    assert recorder.events == []


def test_save_results_without_active_round_fails(board):
    outcome = board.rounds.save_round_results(_results(1, 2))
    assert not outcome
    assert isinstance(outcome.error, NoActiveRoundError)
    assert board.rounds.history() == []


def test_save_results_appends_exactly_one_record(board):
    board.rounds.start_round(_config(number=7))
    before = len(board.rounds.history())
    assert board.rounds.save_round_results(_results(3, 1, notes='tight one'))
    history = board.rounds.history()
    assert len(history) == before + 1
    assert history[-1]['number'] == before + 1
    assert history[-1]['notes'] == 'tight one'


def test_penalty_tally_is_kept_verbatim(board):
    penalties = {'team1': {'major': 2, 'minor': 1}, 'team2': {'major': 0, 'minor': 3}}
    board.rounds.start_round(_config())
    board.rounds.save_round_results(_results(penalties=penalties))
    assert board.rounds.history()[-1]['penalties'] == penalties


def test_round_mode_adds_points_to_scores(board):
    board.rounds.start_round(_config())
    board.rounds.save_round_results(_results(3, 2))
    board.rounds.start_round(_config(number=2))
    board.rounds.save_round_results(_results(1, 4))
    state = board.get_state()
    assert (state['team1']['score'], state['team2']['score']) == (4, 6)
    assert state['rounds']['gameStatus'] == 'live'


def test_manual_mode_leaves_scores_and_goes_between_rounds(board):
    board.ledger.set_scoring_mode('manual')
    board.rounds.enqueue_upcoming(_config('musical'))
    board.rounds.start_round(_config())
    board.rounds.save_round_results(_results(5, 5))
    state = board.get_state()
    assert state['team1']['score'] == 0
    assert state['rounds']['isBetweenRounds'] is True
    assert len(state['rounds']['upcoming']) == 1


def test_queue_beats_draft_on_auto_advance(board):
    draft = _config('narrative', theme='draft')
    board.rounds.set_next_round_draft(draft)
    board.rounds.enqueue_upcoming(_config('musical', theme='queued'))
    board.rounds.start_round(_config())
    board.rounds.save_round_results(_results(1, 0))
    rounds = board.get_state()['rounds']
    assert rounds['current']['theme'] == 'queued'
    assert rounds['current']['number'] == 2
    assert rounds['upcoming'] == []
    assert rounds['nextRoundDraft'] == draft
    assert rounds['isBetweenRounds'] is False


def test_draft_used_when_queue_empty_and_then_cleared(board):
    board.rounds.set_next_round_draft(_config('character', theme='draft'))
    board.rounds.start_round(_config())
    board.rounds.save_round_results(_results())
    rounds = board.get_state()['rounds']
    assert rounds['current']['theme'] == 'draft'
    assert rounds['nextRoundDraft'] is None


def test_nothing_staged_goes_between_rounds(board):
    board.rounds.start_round(_config())
    board.rounds.save_round_results(_results())
    rounds = board.get_state()['rounds']
    assert rounds['isBetweenRounds'] is True
    assert rounds['current'] == placeholder_round()


def test_start_game_without_staged_round_still_goes_live(board):
    outcome = board.rounds.start_game()
    assert not outcome
    assert isinstance(outcome.error, NoStagedRoundError)
    rounds = board.get_state()['rounds']
    assert rounds['gameStatus'] == 'live'
    assert rounds['isBetweenRounds'] is True


def test_start_game_consumes_queue_head(board):
    board.rounds.stage_plan([_config('musical', theme='one'), _config('longform', theme='two')])
    outcome = board.rounds.start_game()
    assert outcome
    rounds = board.get_state()['rounds']
    assert rounds['current']['theme'] == 'one'
    assert rounds['current']['number'] == 1
    assert [c['theme'] for c in rounds['upcoming']] == ['two']


def test_start_game_in_manual_mode_only_goes_live(board):
    board.ledger.set_scoring_mode('manual')
    assert board.rounds.start_game()
    rounds = board.get_state()['rounds']
    assert rounds['gameStatus'] == 'live'
    assert rounds['isBetweenRounds'] is True


def test_finish_game_hands_full_snapshot_to_renderer(recorder):
    from improvboard.services import Board
    rendered = []
    b = Board(report_renderer=lambda snapshot: rendered.append(snapshot) or 'report.html')
    b.rounds.start_round(_config())
    b.rounds.save_round_results(_results(2, 1))
    b.rounds.enqueue_upcoming(_config('musical'))
    assert b.rounds.finish_game()
    assert len(rendered) == 1
    assert len(rendered[0]['rounds']['history']) == 1
    assert rendered[0]['team1']['score'] == 2
    rounds = b.get_state()['rounds']
    assert rounds['gameStatus'] == 'finished'
    assert rounds['upcoming'] == []
    assert rounds['nextRoundDraft'] is None
    assert rounds['isBetweenRounds'] is True


def test_report_failure_is_swallowed():
    from improvboard.services import Board

    def broken(snapshot):
        raise RuntimeError('template missing')

    b = Board(report_renderer=broken)
    assert b.rounds.finish_game()
    assert b.get_state()['rounds']['gameStatus'] == 'finished'


def test_finished_game_cannot_restart_until_reset(board):
    board.rounds.finish_game()
    outcome = board.rounds.start_game()
    assert isinstance(outcome.error, GameFinishedError)
    assert board.get_state()['rounds']['gameStatus'] == 'finished'
    board.rounds.reset_game()
    assert board.get_state()['rounds']['gameStatus'] == 'notStarted'


def test_finished_game_rejects_round_start_and_results(board, recorder):
    board.rounds.start_round(_config())
    board.rounds.save_round_results(_results(team1=2))
    board.rounds.finish_game()
    recorder.clear()

    started = board.rounds.start_round(_config(number=2))
    assert isinstance(started.error, GameFinishedError)
    saved = board.rounds.save_round_results(_results(team1=5))
    assert isinstance(saved.error, GameFinishedError)

    rounds = board.get_state()['rounds']
    assert rounds['gameStatus'] == 'finished'
    assert rounds['isBetweenRounds'] is True
    assert len(rounds['history']) == 1
    assert board.get_state()['team1']['score'] == 2
    assert recorder.named('updateState') == []


def test_invalid_queue_head_falls_back_to_draft(board):
    board.store.update({'rounds': {'upcoming': [_config(minPlayers=0)]}})
    board.rounds.set_next_round_draft(_config('custom', theme='draft'))
    board.rounds.start_round(_config())
    board.rounds.save_round_results(_results())
    rounds = board.get_state()['rounds']
    assert rounds['current']['theme'] == 'draft'
    assert len(rounds['upcoming']) == 1


def test_create_next_round_does_not_mutate(board, recorder):
    board.rounds.start_round(_config())
    board.rounds.save_round_results(_results())
    recorder.clear()
    outcome = board.rounds.create_next_round('musical')
    assert outcome.value['number'] == 2
    assert outcome.value['type'] == 'musical'
    assert recorder.events == []
    assert not board.rounds.create_next_round('opera')


def test_queue_management(board):
    board.rounds.enqueue_upcoming(_config('musical'))
    board.rounds.enqueue_upcoming(_config('longform'))
    assert not board.rounds.remove_upcoming(5)
    removed = board.rounds.remove_upcoming(0)
    assert removed.value['type'] == 'musical'
    assert [c['type'] for c in board.get_state()['rounds']['upcoming']] == ['longform']
    board.rounds.clear_upcoming()
    assert board.get_state()['rounds']['upcoming'] == []


def test_stage_plan_rejects_bad_round_and_keeps_queue(board):
    board.rounds.enqueue_upcoming(_config('musical'))
    assert not board.rounds.stage_plan([_config(), _config(timeLimit=-5)])
    assert len(board.get_state()['rounds']['upcoming']) == 1


def test_round_setting_toggle(board):
    assert board.rounds.update_round_setting('showTheme', False)
    assert board.get_state()['rounds']['settings']['showTheme'] is False
    assert not board.rounds.update_round_setting('', True)


def test_reset_rounds_clears_history(board):
    board.rounds.start_round(_config())
    board.rounds.save_round_results(_results())
    board.rounds.reset_rounds()
    rounds = board.get_state()['rounds']
    assert rounds['history'] == []
    assert rounds['isBetweenRounds'] is True


@pytest.mark.parametrize('points', [None, {'team1': 'x'}, 'lots'])
def test_bad_points_rejected(board, points):
    board.rounds.start_round(_config())
    assert not board.rounds.save_round_results({'points': points})
    assert board.rounds.history() == []


@pytest.mark.parametrize('points', [{'team1': 2.7}, {'team1': True}, {'team2': '1.5'}])
def test_fractional_or_boolean_points_rejected(board, points):
    board.rounds.start_round(_config())
    outcome = board.rounds.save_round_results({'points': points})
    assert not outcome
    assert board.rounds.history() == []
    assert board.get_state()['rounds']['isBetweenRounds'] is False


def test_whole_float_points_accepted(board):
    board.rounds.start_round(_config())
    assert board.rounds.save_round_results({'points': {'team1': 2.0, 'team2': None}})
    assert board.rounds.history()[0]['points'] == {'team1': 2, 'team2': 0}


def test_boolean_penalty_counts_rejected(board):
    board.rounds.start_round(_config())
    outcome = board.rounds.save_round_results(_results(penalties={'team1': {'major': True, 'minor': 0}}))
    assert not outcome
    assert board.rounds.history() == []
