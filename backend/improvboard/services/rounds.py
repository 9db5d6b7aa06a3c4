"""Round sequencing: current round, history, draft/queue and game lifecycle.

gameStatus moves notStarted -> live -> finished. `finished` is terminal until
`reset_game()`. Independently, `isBetweenRounds` is True exactly when
`current` holds the placeholder config.

When a round ends in `round` scoring mode the next round is picked in this
order: head of the upcoming queue, then the staged draft, then nothing
(between rounds). In `manual` mode the board always goes between rounds.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from improvboard.errors import (
    GameFinishedError,
    InvalidPayloadError,
    InvalidRoundConfigError,
    NoActiveRoundError,
    NoStagedRoundError,
    Outcome,
)
from .defaults import (
    ROUND_TYPES,
    TEAM_IDS,
    initial_round_state,
    new_round_config,
    normalize_round_config,
    placeholder_round,
    validate_round_config,
)
from .store import StateStore, run_inline

logger = logging.getLogger(__name__)


def _between_rounds() -> Dict[str, Any]:
    return {'current': placeholder_round(), 'isBetweenRounds': True}


def _finished(state: Dict[str, Any]) -> bool:
    return state['rounds'].get('gameStatus') == 'finished'


def _whole(value, label: str) -> int:
    """Integral count; None means 0. Booleans and fractions are rejected."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise InvalidPayloadError(f"{label} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidPayloadError(f"{label} must be an integer")
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidPayloadError(f"{label} must be an integer")


def _points(payload: Dict[str, Any]) -> Dict[str, int]:
    raw = payload.get('points')
    if not isinstance(raw, dict):
        raise InvalidPayloadError('points must be an object with team1/team2')
    return {team_id: _whole(raw.get(team_id), f"points.{team_id}") for team_id in TEAM_IDS}


def _penalties(payload: Dict[str, Any]) -> Dict[str, Dict[str, int]]:
    raw = payload.get('penalties')
    if raw is None:
        return {team_id: {'major': 0, 'minor': 0} for team_id in TEAM_IDS}
    if not isinstance(raw, dict):
        raise InvalidPayloadError('penalties must be an object')
    tally = {}
    for team_id in TEAM_IDS:
        counts = raw.get(team_id) or {}
        if not isinstance(counts, dict):
            raise InvalidPayloadError(f"penalties.{team_id} must be an object")
        tally[team_id] = {kind: _whole(counts.get(kind), f"penalties.{team_id}.{kind}") for kind in ('major', 'minor')}
    return tally


class RoundSequencer:
    def __init__(
        self,
        store: StateStore,
        report_renderer: Optional[Callable[[Dict[str, Any]], Any]] = None,
        spawn: Callable = run_inline,
    ):
        self.store = store
        self._report_renderer = report_renderer
        self._spawn = spawn

    # ---- reads ----

    def current_round(self) -> Dict[str, Any]:
        return self.store.get_state()['rounds']['current']

    def history(self) -> List[Dict[str, Any]]:
        return self.store.get_state()['rounds']['history']

    def create_next_round(self, round_type: str) -> Outcome:
        """Build (but do not apply) a default config numbered after the history."""
        if round_type not in ROUND_TYPES:
            return Outcome.failure(InvalidRoundConfigError(f"Unknown round type {round_type!r}"))
        return Outcome.success(new_round_config(round_type, len(self.history()) + 1))

    # ---- current round ----

    def start_round(self, config: Dict[str, Any]) -> Outcome:
        if not validate_round_config(config):
            logger.warning(f"[round-start-rejected] config={config!r}")
            return Outcome.failure(InvalidRoundConfigError('Invalid round config'))
        current = normalize_round_config(config)
        with self.store.transaction():
            if _finished(self.store.get_state()):
                logger.warning('[round-start-rejected] game already finished')
                return Outcome.failure(GameFinishedError('Game already finished; reset it first'))
            self.store.update({'rounds': {'current': current, 'isBetweenRounds': False}})
        logger.info(f"[round-start] number={current['number']} type={current['type']}")
        return Outcome.success(current)

    def save_round_results(self, payload: Dict[str, Any]) -> Outcome:
        """Archive the current round with its results and pick what comes next."""
        payload = payload if isinstance(payload, dict) else {}
        try:
            points = _points(payload)
            penalties = _penalties(payload)
        except InvalidPayloadError as exc:
            return Outcome.failure(exc)

        with self.store.transaction():
            state = self.store.get_state()
            rounds = state['rounds']
            if _finished(state):
                logger.warning('[round-end-rejected] game already finished')
                return Outcome.failure(GameFinishedError('Game already finished; reset it first'))
            if rounds.get('isBetweenRounds'):
                logger.warning('[round-end-rejected] no active round')
                return Outcome.failure(NoActiveRoundError('No active round to save results for'))

            history = list(rounds.get('history') or [])
            entry = dict(rounds['current'])
            entry.update({'number': len(history) + 1, 'points': points, 'penalties': penalties})
            if payload.get('notes') is not None:
                entry['notes'] = str(payload['notes'])
            history.append(entry)

            mode = state.get('scoringMode') or 'round'
            updates: Dict[str, Any] = {}
            round_updates: Dict[str, Any] = {'history': history}
            if mode == 'round':
                for team_id in TEAM_IDS:
                    score = int(state[team_id].get('score') or 0) + points[team_id]
                    updates[team_id] = {'score': max(0, score)}
                round_updates['gameStatus'] = 'live'
                staged, consumed = self._take_staged(rounds, len(history) + 1)
                round_updates.update(consumed)
                if staged is not None:
                    round_updates.update({'current': staged, 'isBetweenRounds': False})
                else:
                    round_updates.update(_between_rounds())
            else:
                round_updates.update(_between_rounds())
            updates['rounds'] = round_updates
            self.store.update(updates)

        logger.info(
            f"[round-end] number={entry['number']} mode={mode} points={points['team1']}-{points['team2']} "
            f"next={round_updates['current']['number'] if not round_updates['isBetweenRounds'] else None}"
        )
        return Outcome.success(history)

    def reset_rounds(self) -> Outcome:
        round_updates = _between_rounds()
        round_updates['history'] = []
        self.store.update({'rounds': round_updates})
        logger.info('[rounds-reset]')
        return Outcome.success()

    def update_round_setting(self, target: str, visible: bool) -> Outcome:
        if not isinstance(target, str) or not target:
            return Outcome.failure(InvalidPayloadError('target must be a setting name'))
        with self.store.transaction():
            settings = dict(self.store.get_state()['rounds'].get('settings') or initial_round_state()['settings'])
            settings[target] = bool(visible)
            self.store.update({'rounds': {'settings': settings}})
        return Outcome.success(settings)

    # ---- draft and queue ----

    def set_next_round_draft(self, config: Dict[str, Any]) -> Outcome:
        draft = normalize_round_config(config) if isinstance(config, dict) else None
        if not validate_round_config(draft):
            return Outcome.failure(InvalidRoundConfigError('Invalid draft round'))
        self.store.update({'rounds': {'nextRoundDraft': draft}})
        return Outcome.success(draft)

    def clear_next_round_draft(self) -> Outcome:
        self.store.update({'rounds': {'nextRoundDraft': None}})
        return Outcome.success()

    def enqueue_upcoming(self, config: Dict[str, Any]) -> Outcome:
        queued = normalize_round_config(config) if isinstance(config, dict) else None
        if not validate_round_config(queued):
            return Outcome.failure(InvalidRoundConfigError('Invalid upcoming round'))
        with self.store.transaction():
            upcoming = list(self.store.get_state()['rounds'].get('upcoming') or [])
            upcoming.append(queued)
            self.store.update({'rounds': {'upcoming': upcoming}})
        return Outcome.success(upcoming)

    def remove_upcoming(self, index: int) -> Outcome:
        with self.store.transaction():
            upcoming = list(self.store.get_state()['rounds'].get('upcoming') or [])
            if not isinstance(index, int) or not 0 <= index < len(upcoming):
                return Outcome.failure(InvalidPayloadError(f"No upcoming round at index {index!r}"))
            removed = upcoming.pop(index)
            self.store.update({'rounds': {'upcoming': upcoming}})
        return Outcome.success(removed)

    def clear_upcoming(self) -> Outcome:
        self.store.update({'rounds': {'upcoming': []}})
        return Outcome.success()

    def stage_plan(self, configs: List[Dict[str, Any]]) -> Outcome:
        """Replace draft and queue with an imported running order, in order."""
        staged = [normalize_round_config(c, i + 1) for i, c in enumerate(configs or []) if isinstance(c, dict)]
        if len(staged) != len(configs or []) or not all(validate_round_config(c) for c in staged):
            return Outcome.failure(InvalidRoundConfigError('Plan contains an invalid round'))
        self.store.update({'rounds': {'nextRoundDraft': None, 'upcoming': staged}})
        logger.info(f"[plan-staged] rounds={len(staged)}")
        return Outcome.success(len(staged))

    # ---- game lifecycle ----

    def start_game(self) -> Outcome:
        """Go live and, in round mode, pull the first staged round into play.

        gameStatus becomes `live` even when no round could be staged.
        """
        with self.store.transaction():
            state = self.store.get_state()
            rounds = state['rounds']
            if _finished(state):
                logger.warning('[game-start-rejected] game already finished')
                return Outcome.failure(GameFinishedError('Game already finished; reset it first'))
            round_updates: Dict[str, Any] = {'gameStatus': 'live'}
            if (state.get('scoringMode') or 'round') == 'manual':
                self.store.update({'rounds': round_updates})
                logger.info('[game-start] mode=manual')
                return Outcome.success(None)
            staged, consumed = self._take_staged(rounds, len(rounds.get('history') or []) + 1)
            round_updates.update(consumed)
            if staged is not None:
                round_updates.update({'current': staged, 'isBetweenRounds': False})
            self.store.update({'rounds': round_updates})

        if staged is None:
            logger.warning('[game-start] live without a staged round')
            return Outcome.failure(NoStagedRoundError('No upcoming round or draft to start'))
        logger.info(f"[game-start] mode=round number={staged['number']} type={staged['type']}")
        return Outcome.success(staged)

    def finish_game(self) -> Outcome:
        with self.store.transaction():
            snapshot = self.store.get_state()
            round_updates = _between_rounds()
            round_updates.update({'nextRoundDraft': None, 'upcoming': [], 'gameStatus': 'finished'})
            self.store.update({'rounds': round_updates})
        if self._report_renderer is not None:
            try:
                self._spawn(self._render_report, snapshot)
            except Exception:
                logger.error('[report-schedule-fail]', exc_info=True)
        logger.info(f"[game-finish] rounds={len(snapshot['rounds']['history'])}")
        return Outcome.success(snapshot)

    def reset_game(self) -> Outcome:
        round_updates = _between_rounds()
        round_updates.update({
            'history': [],
            'gameStatus': 'notStarted',
            'nextRoundDraft': None,
            'upcoming': [],
            'activePlaylist': None,
        })
        self.store.update({'rounds': round_updates})
        logger.info('[game-reset]')
        return Outcome.success()

    # ---- internals ----

    @staticmethod
    def _take_staged(rounds: Dict[str, Any], number: int) -> Tuple[Optional[Dict[str, Any]], Dict[str, Any]]:
        """Pick the next playable round: queue head first, then the draft.

        Returns the renumbered config (or None) and the round-state changes
        that consume it. An invalid queue head stays queued.
        """
        upcoming = list(rounds.get('upcoming') or [])
        if upcoming and validate_round_config(upcoming[0]):
            head = normalize_round_config(upcoming.pop(0), number)
            return head, {'upcoming': upcoming}
        draft = rounds.get('nextRoundDraft')
        if draft and validate_round_config(draft):
            return normalize_round_config(draft, number), {'nextRoundDraft': None}
        return None, {}

    def _render_report(self, snapshot: Dict[str, Any]) -> None:
        try:
            path = self._report_renderer(snapshot)
            logger.info(f"[report] written={path}")
        except Exception:
            logger.error('[report-fail] could not render game report', exc_info=True)
