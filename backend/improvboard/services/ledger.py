import logging
from typing import Any, Dict, List, Optional

from improvboard.errors import (
    InvalidPayloadError,
    Outcome,
    ScoringModeError,
    UnknownTeamError,
)
from .defaults import PENALTY_KINDS, SCORING_MODES, TEAM_IDS, initial_teams
from .store import StateStore

logger = logging.getLogger(__name__)


class TeamLedger:
    """Team identity, score and penalty counters for the shared board.

    Unknown team ids are silent no-ops (a falsy Outcome, nothing logged above
    DEBUG) so stale clients cannot break the control channel.
    """

    def __init__(self, store: StateStore):
        self.store = store

    def update_team(self, team_id: str, updates: Optional[Dict[str, Any]]) -> Outcome:
        if team_id not in TEAM_IDS:
            return Outcome.failure(UnknownTeamError(team_id))
        changes = {k: v for k, v in (updates or {}).items() if k in ('name', 'color') and isinstance(v, str)}
        if not changes:
            return Outcome.failure(InvalidPayloadError('updateTeam needs a name or color'))
        self.store.update({team_id: changes})
        return Outcome.success()

    def update_score(self, team_id: str, action: str) -> Outcome:
        """Apply a manual +1/-1. Only honoured in manual scoring mode."""
        if team_id not in TEAM_IDS:
            return Outcome.failure(UnknownTeamError(team_id))
        if action not in ('increment', 'decrement'):
            return Outcome.failure(InvalidPayloadError(f"Unknown score action {action!r}"))
        with self.store.transaction():
            state = self.store.get_state()
            mode = state.get('scoringMode') or 'round'
            if mode != 'manual':
                logger.warning(f"[score-ignored] team={team_id} action={action} mode={mode}")
                return Outcome.failure(ScoringModeError(f"Manual score updates are ignored in {mode!r} mode"))
            score = int(state[team_id].get('score') or 0)
            score = score + 1 if action == 'increment' else max(0, score - 1)
            self.store.update({team_id: {'score': score}})
        return Outcome.success(score)

    def adjust_score(self, team_id: str, delta: int) -> Outcome:
        """Apply a signed delta in one write. Same manual-mode gate and floor as update_score."""
        if team_id not in TEAM_IDS:
            return Outcome.failure(UnknownTeamError(team_id))
        if not isinstance(delta, int) or isinstance(delta, bool):
            return Outcome.failure(InvalidPayloadError('delta must be an integer'))
        with self.store.transaction():
            state = self.store.get_state()
            mode = state.get('scoringMode') or 'round'
            if mode != 'manual':
                logger.warning(f"[score-ignored] team={team_id} delta={delta} mode={mode}")
                return Outcome.failure(ScoringModeError(f"Manual score updates are ignored in {mode!r} mode"))
            score = int(state[team_id].get('score') or 0)
            if delta == 0:
                return Outcome.success(score)
            score = max(0, score + delta)
            self.store.update({team_id: {'score': score}})
        return Outcome.success(score)

    def update_penalty(self, team_id: str, kind: str) -> Outcome:
        if team_id not in TEAM_IDS:
            return Outcome.failure(UnknownTeamError(team_id))
        if kind not in PENALTY_KINDS:
            return Outcome.failure(InvalidPayloadError(f"Unknown penalty kind {kind!r}"))
        with self.store.transaction():
            penalties = dict(self.store.get_state()[team_id].get('penalties') or {'major': 0, 'minor': 0})
            penalties[kind] = int(penalties.get(kind) or 0) + 1
            self.store.update({team_id: {'penalties': penalties}})
        return Outcome.success(penalties)

    def reset_penalties(self, team_id: str) -> Outcome:
        if team_id not in TEAM_IDS:
            return Outcome.failure(UnknownTeamError(team_id))
        self.store.update({team_id: {'penalties': {'major': 0, 'minor': 0}}})
        return Outcome.success()

    def set_scoring_mode(self, mode: str) -> Outcome:
        if mode not in SCORING_MODES:
            return Outcome.failure(InvalidPayloadError(f"Invalid mode {mode!r}. Use 'round' or 'manual'."))
        self.store.update({'scoringMode': mode})
        logger.info(f"[scoring-mode] mode={mode}")
        return Outcome.success(mode)

    def reset_teams(self, keep_names: bool = True) -> Outcome:
        with self.store.transaction():
            current = self.store.get_state()
            teams = initial_teams()
            if keep_names:
                for team_id in TEAM_IDS:
                    teams[team_id]['name'] = current[team_id]['name']
                    teams[team_id]['color'] = current[team_id]['color']
            self.store.update(teams)
        return Outcome.success()

    def apply_team_identity(self, teams: List[Dict[str, Any]]) -> Outcome:
        """Rename/recolour both teams at once from an external plan.

        Needs at least two entries; missing names or colours keep the
        current values.
        """
        if not isinstance(teams, list) or len(teams) < 2:
            return Outcome.failure(InvalidPayloadError('need two teams'))
        with self.store.transaction():
            current = self.store.get_state()
            updates = {}
            for team_id, incoming in zip(TEAM_IDS, teams[:2]):
                incoming = incoming or {}
                updates[team_id] = {
                    'name': incoming.get('name') or current[team_id]['name'],
                    'color': incoming.get('color') or current[team_id]['color'],
                }
            self.store.update(updates)
        return Outcome.success()
