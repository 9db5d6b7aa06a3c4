"""
Error taxonomy for the match-control core.

These exceptions describe *why* an operation failed. The core never raises
them across a component boundary; they travel inside an ``Outcome`` so the
socket and HTTP layers can keep the "falsy sentinel, re-read the snapshot"
contract while still logging something meaningful.
"""
from dataclasses import dataclass
from typing import Any, Optional


class ScoreboardError(Exception):
    """Base class for every core failure."""
    pass


# ============ Identifier errors (always silent no-ops) ============

class UnknownTeamError(ScoreboardError):
    def __init__(self, team_id):
        self.team_id = team_id
        super().__init__(f"Unknown team {team_id!r}")


class UnknownMatchError(ScoreboardError):
    def __init__(self, match_id):
        self.match_id = match_id
        super().__init__(f"Unknown match {match_id!r}")


class UnknownTimerError(ScoreboardError):
    def __init__(self, match_id, timer_id):
        self.match_id = match_id
        self.timer_id = timer_id
        super().__init__(f"Timer {timer_id!r} is not active for match {match_id!r}")


class TemplateNotFoundError(ScoreboardError):
    def __init__(self, kind, item_id):
        self.item_id = item_id
        super().__init__(f"{kind} {item_id!r} not found")


# ============ Precondition errors ============

class NoActiveRoundError(ScoreboardError):
    """No round is in progress (board is between rounds)."""
    pass


class NoStagedRoundError(ScoreboardError):
    """Neither the upcoming queue nor the draft holds a playable round."""
    pass


class GameFinishedError(ScoreboardError):
    """The game already finished; reset before starting again."""
    pass


class ScoringModeError(ScoreboardError):
    """Operation not allowed in the current scoring mode."""
    pass


class PlaylistError(ScoreboardError):
    """Playlist navigation out of bounds or no active playlist."""
    pass


class InvalidTimerStateError(ScoreboardError):
    pass


# ============ Validation errors ============

class InvalidRoundConfigError(ScoreboardError):
    pass


class InvalidPayloadError(ScoreboardError):
    def __init__(self, message, errors=None):
        self.errors = list(errors) if errors else [message]
        super().__init__(message)


@dataclass
class Outcome:
    """Tagged result of a core operation. Truthy only on success."""
    ok: bool
    value: Any = None
    error: Optional[ScoreboardError] = None

    def __bool__(self) -> bool:
        return self.ok

    @property
    def message(self) -> Optional[str]:
        return str(self.error) if self.error else None

    @classmethod
    def success(cls, value=None) -> 'Outcome':
        return cls(True, value)

    @classmethod
    def failure(cls, error: ScoreboardError) -> 'Outcome':
        return cls(False, None, error)
