"""Initial values and shape checks for the scoreboard snapshot.

The snapshot is plain JSON-compatible data (dicts, lists, strings, numbers)
using the camelCase keys the control and display clients expect.
"""
import copy
from typing import Any, Dict, Optional

TEAM_IDS = ('team1', 'team2')
PENALTY_KINDS = ('major', 'minor')
SCORING_MODES = ('round', 'manual')
GAME_STATUSES = ('notStarted', 'live', 'finished')
ROUND_TYPES = ('shortform', 'longform', 'musical', 'character', 'narrative', 'challenge', 'custom')

_INITIAL_TEAMS = {
    'team1': {
        'id': 'team1',
        'name': 'Blue Team',
        'color': '#3b82f6',
        'score': 0,
        'penalties': {'major': 0, 'minor': 0},
    },
    'team2': {
        'id': 'team2',
        'name': 'Red Team',
        'color': '#ef4444',
        'score': 0,
        'penalties': {'major': 0, 'minor': 0},
    },
}

_ROUND_SETTINGS = {
    'showRoundNumber': True,
    'showTheme': True,
    'showType': True,
    'showMixedStatus': True,
    'showPlayerLimits': True,
    'showTimeLimit': True,
    'showRoundHistory': True,
}


def initial_teams() -> Dict[str, Dict[str, Any]]:
    return copy.deepcopy(_INITIAL_TEAMS)


def new_round_config(round_type: str = 'shortform', number: int = 1) -> Dict[str, Any]:
    return {
        'number': number,
        'isMixed': False,
        'theme': '',
        'type': round_type,
        'minPlayers': 2,
        'maxPlayers': 8,
        'timeLimit': None,
    }


def placeholder_round() -> Dict[str, Any]:
    """The between-rounds `current` value."""
    return new_round_config('shortform', 1)


def initial_round_state() -> Dict[str, Any]:
    return {
        'current': placeholder_round(),
        'history': [],
        'isBetweenRounds': True,
        'templates': [],
        'playlists': [],
        'activePlaylist': None,
        'settings': dict(_ROUND_SETTINGS),
        'gameStatus': 'notStarted',
        'nextRoundDraft': None,
        'upcoming': [],
    }


def stopped_timer() -> Dict[str, Any]:
    return {'status': 'stopped', 'durationSec': 0, 'remainingSec': 0, 'startedAt': None}


def local_remote_control() -> Dict[str, Any]:
    return {'source': None, 'locked': False}


def initial_state() -> Dict[str, Any]:
    state = initial_teams()
    state.update({
        'scoringMode': 'round',
        'remoteControl': local_remote_control(),
        'timer': stopped_timer(),
        'rounds': initial_round_state(),
    })
    return state


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_round_config(config: Optional[Dict[str, Any]]) -> bool:
    """True when `config` can become the current round.

    number > 0, a known type, 1 <= minPlayers <= maxPlayers and a time limit
    that is either unset or strictly positive.
    """
    if not isinstance(config, dict):
        return False
    number = config.get('number')
    if not _is_int(number) or number <= 0:
        return False
    if config.get('type') not in ROUND_TYPES:
        return False
    min_players = config.get('minPlayers')
    max_players = config.get('maxPlayers')
    if not _is_int(min_players) or not _is_int(max_players):
        return False
    if min_players < 1 or max_players < min_players:
        return False
    time_limit = config.get('timeLimit')
    if time_limit is not None and (not isinstance(time_limit, (int, float)) or isinstance(time_limit, bool) or time_limit <= 0):
        return False
    return True


def normalize_round_config(config: Dict[str, Any], number: Optional[int] = None) -> Dict[str, Any]:
    """Copy `config` with defaults filled in and, optionally, a new number."""
    base = new_round_config()
    base.update({k: v for k, v in (config or {}).items() if k != 'id'})
    if number is not None:
        base['number'] = number
    return base
