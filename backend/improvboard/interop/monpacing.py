"""Translate Mon-Pacing plans and events into board operations.

Every remote write first marks the board as remotely driven. Payloads are
validated before anything else happens.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from improvboard.errors import InvalidPayloadError, Outcome
from improvboard.services import Board
from improvboard.services.defaults import ROUND_TYPES
from .validation import ValidationResult, validate_event, validate_plan

logger = logging.getLogger(__name__)

DEFAULT_DURATION_SEC = 180

_CATEGORY_HEURISTICS = (
    ('music', 'musical'),
    ('long', 'longform'),
    ('narrative', 'narrative'),
    ('character', 'character'),
    ('short', 'shortform'),
)


def int_color_to_hex(color) -> Optional[str]:
    """Flutter ARGB int -> '#rrggbb'. Strings are assumed to be CSS already."""
    if isinstance(color, str):
        return color
    if isinstance(color, int) and not isinstance(color, bool):
        return f"#{color & 0xFFFFFF:06x}"
    return None


def map_category_to_round_type(category: Optional[str], category_map: Optional[Dict[str, str]] = None) -> str:
    if not category:
        return 'custom'
    lowered = category.lower()
    for key, round_type in (category_map or {}).items():
        if key.lower() == lowered and round_type in ROUND_TYPES:
            return round_type
    for needle, round_type in _CATEGORY_HEURISTICS:
        if needle in lowered:
            return round_type
    return 'challenge'


def map_round_to_config(mp_round: Optional[Dict[str, Any]], number: int,
                        category_map: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    mp_round = mp_round if isinstance(mp_round, dict) else {}
    durations = mp_round.get('durationsInSeconds')
    if isinstance(durations, list) and durations:
        duration = durations[0]
    else:
        duration = mp_round.get('durationSec', DEFAULT_DURATION_SEC)
    if not isinstance(duration, (int, float)) or isinstance(duration, bool) or duration <= 0:
        duration = DEFAULT_DURATION_SEC
    theme = mp_round.get('theme')
    return {
        'number': number,
        'type': map_category_to_round_type(mp_round.get('category'), category_map),
        'isMixed': str(mp_round.get('type') or '').lower() == 'mixed',
        'theme': theme if isinstance(theme, str) else (mp_round.get('title') or ''),
        'minPlayers': 2,
        'maxPlayers': 8,
        'timeLimit': int(duration),
    }


def config_to_round(config: Dict[str, Any]) -> Dict[str, Any]:
    """Board round config -> Mon-Pacing improvisation shape."""
    return {
        'type': 'mixed' if config.get('isMixed') else 'compared',
        'category': config.get('type'),
        'theme': config.get('theme') or '',
        'durationsInSeconds': [config['timeLimit']] if config.get('timeLimit') else [],
    }


def _team_key(value) -> str:
    """Pacing team references (1/2, 'A'/'B', 'team1'/'team2') -> board team id."""
    if value in (2, '2', 'B', 'b', 'team2'):
        return 'team2'
    return 'team1'


def _invalid(validation: ValidationResult) -> Outcome:
    return Outcome.failure(InvalidPayloadError('; '.join(validation.errors), validation.errors))


class MonPacingGateway:
    def __init__(
        self,
        board: Board,
        source: str = 'mon-pacing',
        category_map: Optional[Callable[[], Dict[str, str]]] = None,
        audit: Optional[Callable[[str, bool, Dict[str, Any]], Any]] = None,
    ):
        self.board = board
        self.source = source
        self._category_map = category_map or dict
        self._audit = audit

    def _categories(self) -> Dict[str, str]:
        try:
            return self._category_map() or {}
        except Exception:
            logger.error('[category-map-fail] using heuristics only', exc_info=True)
            return {}

    def _log(self, kind: str, ok: bool, data: Dict[str, Any]) -> None:
        logger.info(f"[interop] kind={kind} ok={ok}")
        if self._audit is None:
            return
        try:
            self._audit(kind, ok, data)
        except Exception:
            logger.error(f"[interop-log-fail] kind={kind}", exc_info=True)

    # ---- plan ----

    def import_plan(self, body: Any, match_id: Optional[str] = None) -> Outcome:
        """Apply team identity and stage every round of a running order.

        With a bound `match_id` the match registry gets a matching entry;
        the id actually used is reported back.
        """
        validation = validate_plan(body)
        if not validation:
            return _invalid(validation)
        self.board.remote.mark_remote(self.source)

        teams = body.get('teams') or []
        if len(teams) >= 2:
            self.board.ledger.apply_team_identity([
                {'name': t.get('name'), 'color': int_color_to_hex(t.get('color'))} for t in teams[:2]
            ])

        category_map = self._categories()
        configs = [map_round_to_config(r, i + 1, category_map) for i, r in enumerate(body.get('rounds') or [])]
        staged = self.board.rounds.stage_plan(configs)
        if not staged:
            self._log('plan', False, {'rounds': len(configs)})
            return staged

        result = {'importedRounds': len(configs), 'matchId': None}
        if match_id:
            result['matchId'] = self._ensure_match(match_id, body)
        self._log('plan', True, {'teams': len(teams), 'rounds': len(configs), 'matchId': result['matchId']})
        return Outcome.success(result)

    def _ensure_match(self, match_id: str, body: Dict[str, Any]) -> str:
        if self.board.matches.get_match(match_id):
            return match_id
        state = self.board.get_state()
        created = self.board.matches.create_match({
            'name': body.get('name') or 'Mon-Pacing Match',
            'teams': [
                {'id': team_id, 'name': state[team_id]['name'], 'color': state[team_id]['color']}
                for team_id in ('team1', 'team2')
            ],
        }, forced_id=match_id)
        return created.value

    def export_plan(self) -> Dict[str, Any]:
        state = self.board.get_state()
        rounds = state['rounds']
        staged: List[Dict[str, Any]] = list(rounds.get('upcoming') or [])
        if rounds.get('nextRoundDraft'):
            staged.append(rounds['nextRoundDraft'])
        return {
            'teams': [
                {'name': state['team1']['name'], 'color': state['team1']['color']},
                {'name': state['team2']['name'], 'color': state['team2']['color']},
            ],
            'rounds': [config_to_round(c) for c in staged],
        }

    # ---- board events ----

    def handle_event(self, body: Any) -> Outcome:
        validation = validate_event(body)
        if not validation:
            return _invalid(validation)
        event_type = body['type'].strip().lower()
        payload = body.get('payload') or {}
        self.board.remote.mark_remote(self.source)

        handler = getattr(self, f"_on_{event_type}", None)
        if handler is None:
            logger.warning(f"[interop-unknown-event] type={event_type}")
            self._log(event_type, False, payload)
            return Outcome.failure(InvalidPayloadError('Unknown event type'))
        outcome = handler(payload)
        self._log(event_type, bool(outcome), payload)
        return outcome

    def _on_start_round(self, payload: Dict[str, Any]) -> Outcome:
        number = payload.get('number')
        if not isinstance(number, int) or isinstance(number, bool) or number < 1:
            number = len(self.board.rounds.history()) + 1
        config = map_round_to_config(payload.get('round'), number, self._categories())
        return self.board.rounds.start_round(config)

    def _on_end_round(self, payload: Dict[str, Any]) -> Outcome:
        raw_points = payload.get('points') if isinstance(payload.get('points'), dict) else {}
        points = {team_id: raw_points.get(team_id) for team_id in ('team1', 'team2')}
        penalties = {team_id: {'major': 0, 'minor': 0} for team_id in ('team1', 'team2')}
        raw_penalties = payload.get('penalties') if isinstance(payload.get('penalties'), list) else []
        for entry in raw_penalties:
            if not isinstance(entry, dict) or str(entry.get('teamId')) not in ('1', '2'):
                continue
            kind = 'major' if entry.get('major') else 'minor'
            penalties[_team_key(str(entry['teamId']))][kind] += 1
        return self.board.rounds.save_round_results({
            'points': points,
            'penalties': penalties,
            'notes': payload.get('notes'),
        })

    def _on_penalty(self, payload: Dict[str, Any]) -> Outcome:
        kind = 'major' if payload.get('major') else 'minor'
        return self.board.ledger.update_penalty(_team_key(payload.get('teamId')), kind)

    def _on_score(self, payload: Dict[str, Any]) -> Outcome:
        delta = payload.get('delta')
        if delta is None:
            delta = 1
        if isinstance(delta, float) and delta.is_integer():
            delta = int(delta)
        if not isinstance(delta, int) or isinstance(delta, bool):
            return Outcome.failure(InvalidPayloadError('delta must be an integer'))
        return self.board.ledger.adjust_score(_team_key(payload.get('teamId')), delta)

    def _on_pause(self, payload: Dict[str, Any]) -> Outcome:
        return self.board.clock.pause()

    def _on_resume(self, payload: Dict[str, Any]) -> Outcome:
        return self.board.clock.resume()

    def _on_timer(self, payload: Dict[str, Any]) -> Outcome:
        action = str(payload.get('action') or '').lower()
        if action == 'start':
            return self.board.clock.start(max(0, _as_int(payload.get('durationSec'))))
        if action == 'stop':
            return self.board.clock.stop()
        if action == 'set':
            return self.board.clock.set_remaining(payload.get('remainingSec'))
        return Outcome.failure(InvalidPayloadError(f"Unknown timer action {action!r}"))

    def _on_set_visibility(self, payload: Dict[str, Any]) -> Outcome:
        return self.board.rounds.update_round_setting(payload.get('target') or 'showRoundHeader',
                                                      bool(payload.get('visible')))

    # ---- match-bound events ----

    def handle_match_event(self, match_id: str, body: Any) -> Outcome:
        validation = validate_event(body)
        if not validation:
            return _invalid(validation)
        if body.get('matchId') and body['matchId'] != match_id:
            return Outcome.failure(InvalidPayloadError('matchId does not match token'))
        event_type = body['type'].strip().lower()
        payload = body.get('payload') or {}
        matches = self.board.matches

        if event_type == 'timer':
            outcome = self._match_timer(match_id, payload)
        elif event_type == 'points':
            outcome = matches.adjust_score(match_id, _team_key(payload.get('team')), _as_int(payload.get('points')))
        elif event_type == 'penalty':
            outcome = matches.add_penalty(match_id, _team_key(payload.get('team')), str(payload.get('kind') or 'minor'))
        else:
            logger.warning(f"[interop-unhandled-match-event] match={match_id} type={event_type}")
            outcome = Outcome.success()
        self._log(f"match_{event_type}", bool(outcome), dict(payload, matchId=match_id))
        return outcome

    def _match_timer(self, match_id: str, payload: Dict[str, Any]) -> Outcome:
        matches = self.board.matches
        action = str(payload.get('action') or '').lower()
        duration = payload.get('durationSec', payload.get('duration', 0))
        if action == 'start':
            return matches.start_timer(match_id, duration, timer_type='round', auto_start=True)
        timer = (matches.get_match(match_id) or {}).get('timer')
        if not timer:
            return Outcome.failure(InvalidPayloadError(f"No timer for match {match_id!r}"))
        if action == 'pause':
            return matches.pause_timer(match_id, timer['timerId'])
        if action == 'resume':
            return matches.resume_timer(match_id, timer['timerId'])
        if action == 'stop':
            return matches.stop_timer(match_id, timer['timerId'])
        if action == 'set':
            return matches.set_timer_duration(match_id, timer['timerId'], duration)
        return Outcome.failure(InvalidPayloadError(f"Unknown timer action {action!r}"))

    # ---- lock ----

    def lock(self, locked) -> Outcome:
        outcome = self.board.remote.set_lock(bool(locked), self.source)
        self._log('lock', bool(outcome), {'locked': bool(locked)})
        return outcome


def _as_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
