from flask import current_app
from flask_socketio import emit, join_room, leave_room
from improvboard import NAMESPACE, get_board, socketio
from improvboard.services.matches import match_room
from improvboard.services.store import STATE_EVENT
from typing import Any, Dict


def _data(data) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _reply(event: str, outcome):
    """Ack for the sender. On failure the sender also gets the full snapshot back."""
    if not outcome:
        current_app.logger.info(f"[socket-rejected] event={event} reason={outcome.message}")
        emit(STATE_EVENT, get_board().get_state())
        return {'ok': False, 'error': outcome.message}
    value = outcome.value
    return {'ok': True, 'value': value if isinstance(value, (dict, list, str, int, float, bool)) else None}


# ---- connection ----

def handle_connect():
    emit(STATE_EVENT, get_board().get_state())


def handle_get_state(data=None):
    emit(STATE_EVENT, get_board().get_state())


# ---- teams and scores ----

def handle_update_team(data=None):
    data = _data(data)
    return _reply('updateTeam', get_board().ledger.update_team(data.get('teamId'), data.get('updates')))


def handle_update_score(data=None):
    data = _data(data)
    action = data.get('action')
    if isinstance(action, (int, float)) and not isinstance(action, bool):
        action = 'increment' if action > 0 else 'decrement'
    return _reply('updateScore', get_board().ledger.update_score(data.get('teamId'), action))


def handle_update_penalty(data=None):
    data = _data(data)
    kind = data.get('type') or data.get('kind')
    return _reply('updatePenalty', get_board().ledger.update_penalty(data.get('teamId'), kind))


def handle_reset_penalties(data=None):
    return _reply('resetPenalties', get_board().ledger.reset_penalties(_data(data).get('teamId')))


def handle_set_scoring_mode(data=None):
    return _reply('setScoringMode', get_board().ledger.set_scoring_mode(_data(data).get('mode')))


def handle_reset_all(data=None):
    keep = _data(data).get('keepTeamNames', True)
    return _reply('resetAll', get_board().reset_all(keep_team_names=bool(keep)))


# ---- rounds ----

def handle_start_round(data=None):
    return _reply('startRound', get_board().rounds.start_round(_data(data).get('config')))


def handle_end_round(data=None):
    return _reply('endRound', get_board().rounds.save_round_results(_data(data)))


def handle_update_round_setting(data=None):
    data = _data(data)
    return _reply('updateRoundSetting', get_board().rounds.update_round_setting(data.get('target'), data.get('visible')))


def handle_reset_rounds(data=None):
    return _reply('resetRounds', get_board().rounds.reset_rounds())


def handle_create_next_round(data=None):
    round_type = data if isinstance(data, str) else _data(data).get('type', 'shortform')
    return _reply('createNextRound', get_board().rounds.create_next_round(round_type))


def handle_set_next_round_draft(data=None):
    return _reply('setNextRoundDraft', get_board().rounds.set_next_round_draft(_data(data).get('config')))


def handle_clear_next_round_draft(data=None):
    return _reply('clearNextRoundDraft', get_board().rounds.clear_next_round_draft())


def handle_enqueue_upcoming(data=None):
    return _reply('enqueueUpcoming', get_board().rounds.enqueue_upcoming(_data(data).get('config')))


def handle_remove_upcoming(data=None):
    return _reply('removeUpcoming', get_board().rounds.remove_upcoming(_data(data).get('index')))


def handle_clear_upcoming(data=None):
    return _reply('clearUpcoming', get_board().rounds.clear_upcoming())


def handle_start_game(data=None):
    return _reply('startGame', get_board().rounds.start_game())


def handle_finish_game(data=None):
    outcome = get_board().rounds.finish_game()
    if outcome:
        return {'ok': True}
    return _reply('finishGame', outcome)


def handle_reset_game(data=None):
    return _reply('resetGame', get_board().rounds.reset_game())


# ---- templates and playlists ----

def handle_save_template(data=None):
    return _reply('saveTemplate', get_board().templates.save_template(_data(data)))


def handle_update_template(data=None):
    data = _data(data)
    return _reply('updateTemplate', get_board().templates.update_template(data.get('id'), data.get('updates')))


def handle_delete_template(data=None):
    template_id = data if isinstance(data, str) else _data(data).get('id')
    return _reply('deleteTemplate', get_board().templates.delete_template(template_id))


def handle_create_playlist(data=None):
    return _reply('createPlaylist', get_board().templates.create_playlist(_data(data)))


def handle_update_playlist(data=None):
    data = _data(data)
    return _reply('updatePlaylist', get_board().templates.update_playlist(data.get('id'), data.get('updates')))


def handle_delete_playlist(data=None):
    playlist_id = data if isinstance(data, str) else _data(data).get('id')
    return _reply('deletePlaylist', get_board().templates.delete_playlist(playlist_id))


def handle_start_playlist(data=None):
    playlist_id = data if isinstance(data, str) else _data(data).get('id')
    return _reply('startPlaylist', get_board().templates.start_playlist(playlist_id))


def handle_stop_playlist(data=None):
    return _reply('stopPlaylist', get_board().templates.stop_playlist())


def handle_next_in_playlist(data=None):
    return _reply('nextInPlaylist', get_board().templates.next_in_playlist())


def handle_previous_in_playlist(data=None):
    return _reply('previousInPlaylist', get_board().templates.previous_in_playlist())


# ---- board clock ----

def handle_start_timer(data=None):
    return _reply('startTimer', get_board().clock.start(_data(data).get('durationSec')))


def handle_pause_timer(data=None):
    return _reply('pauseTimer', get_board().clock.pause())


def handle_resume_timer(data=None):
    return _reply('resumeTimer', get_board().clock.resume())


def handle_stop_timer(data=None):
    return _reply('stopTimer', get_board().clock.stop())


def handle_set_timer(data=None):
    data = _data(data)
    clock = get_board().clock
    if 'durationSec' in data:
        return _reply('setTimer', clock.set_duration(data['durationSec']))
    return _reply('setTimer', clock.set_remaining(data.get('remainingSec')))


def handle_release_remote(data=None):
    return _reply('releaseRemote', get_board().remote.release())


# ---- matches ----

def handle_join_match(data=None):
    match_id = _data(data).get('matchId')
    if not match_id:
        emit('error', {'message': 'matchId is required'})
        return {'ok': False, 'error': 'matchId is required'}
    join_room(match_room(match_id))
    match = get_board().matches.get_match(match_id)
    if match:
        emit('matchStateUpdate', match)
    emit('joinedMatch', {'room': match_room(match_id)})
    return {'ok': True, 'value': match_id}


def handle_leave_match(data=None):
    match_id = _data(data).get('matchId')
    if match_id:
        leave_room(match_room(match_id))
    return {'ok': bool(match_id)}


def handle_create_match(data=None):
    data = _data(data)
    outcome = get_board().matches.create_match(data, forced_id=data.get('matchId'))
    join_room(match_room(outcome.value))
    emit('matchStateUpdate', get_board().matches.get_match(outcome.value))
    return {'ok': True, 'value': outcome.value}


def handle_match_score(data=None):
    data = _data(data)
    matches = get_board().matches
    if 'team' in data:
        return _match_reply(matches.adjust_score(data.get('matchId'), data.get('team'), data.get('points')))
    return _match_reply(matches.set_score(data.get('matchId'), data.get('team1'), data.get('team2')))


def handle_match_penalty(data=None):
    data = _data(data)
    return _match_reply(get_board().matches.add_penalty(data.get('matchId'), data.get('team'), data.get('kind')))


def handle_match_status(data=None):
    data = _data(data)
    return _match_reply(get_board().matches.set_status(data.get('matchId'), data.get('status')))


def handle_match_timer_start(data=None):
    data = _data(data)
    return _match_reply(get_board().matches.start_timer(
        data.get('matchId'),
        data.get('duration'),
        timer_type=data.get('type') or 'round',
        auto_start=data.get('autoStart', True) is not False,
    ))


def handle_match_timer_pause(data=None):
    data = _data(data)
    return _match_reply(get_board().matches.pause_timer(data.get('matchId'), data.get('timerId')))


def handle_match_timer_resume(data=None):
    data = _data(data)
    return _match_reply(get_board().matches.resume_timer(data.get('matchId'), data.get('timerId')))


def handle_match_timer_stop(data=None):
    data = _data(data)
    return _match_reply(get_board().matches.stop_timer(data.get('matchId'), data.get('timerId')))


def handle_match_timer_set(data=None):
    data = _data(data)
    return _match_reply(get_board().matches.set_timer_duration(data.get('matchId'), data.get('timerId'), data.get('duration')))


def _match_reply(outcome):
    # Match operations never fall back to the board snapshot.
    if not outcome:
        return {'ok': False, 'error': outcome.message}
    return {'ok': True, 'value': outcome.value}


HANDLERS = {
    'connect': handle_connect,
    'getState': handle_get_state,
    'updateTeam': handle_update_team,
    'updateScore': handle_update_score,
    'updatePenalty': handle_update_penalty,
    'resetPenalties': handle_reset_penalties,
    'setScoringMode': handle_set_scoring_mode,
    'resetAll': handle_reset_all,
    'startRound': handle_start_round,
    'endRound': handle_end_round,
    'updateRoundSetting': handle_update_round_setting,
    'resetRounds': handle_reset_rounds,
    'createNextRound': handle_create_next_round,
    'setNextRoundDraft': handle_set_next_round_draft,
    'clearNextRoundDraft': handle_clear_next_round_draft,
    'enqueueUpcoming': handle_enqueue_upcoming,
    'removeUpcoming': handle_remove_upcoming,
    'clearUpcoming': handle_clear_upcoming,
    'startGame': handle_start_game,
    'finishGame': handle_finish_game,
    'resetGame': handle_reset_game,
    'saveTemplate': handle_save_template,
    'updateTemplate': handle_update_template,
    'deleteTemplate': handle_delete_template,
    'createPlaylist': handle_create_playlist,
    'updatePlaylist': handle_update_playlist,
    'deletePlaylist': handle_delete_playlist,
    'startPlaylist': handle_start_playlist,
    'stopPlaylist': handle_stop_playlist,
    'nextInPlaylist': handle_next_in_playlist,
    'previousInPlaylist': handle_previous_in_playlist,
    'startTimer': handle_start_timer,
    'pauseTimer': handle_pause_timer,
    'resumeTimer': handle_resume_timer,
    'stopTimer': handle_stop_timer,
    'setTimer': handle_set_timer,
    'releaseRemote': handle_release_remote,
    'joinMatch': handle_join_match,
    'leaveMatch': handle_leave_match,
    'createMatch': handle_create_match,
    'matchScore': handle_match_score,
    'matchPenalty': handle_match_penalty,
    'matchStatus': handle_match_status,
    'matchTimerStart': handle_match_timer_start,
    'matchTimerPause': handle_match_timer_pause,
    'matchTimerResume': handle_match_timer_resume,
    'matchTimerStop': handle_match_timer_stop,
    'matchTimerSet': handle_match_timer_set,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in HANDLERS.items():
        socketio.on_event(event, handler, namespace=NAMESPACE)
        if testing:
            socketio.on_event(event, handler, namespace='/')
