"""Per-match state with actively ticking countdowns.

Each running timer owns a background loop that sleeps for one tick, then
recomputes the remaining time from the anchor it was started with (never by
decrementing a counter). A loop keeps going only while its run record is
still the one registered for the match, so a pause, stop or restart makes
every older loop exit on its next wake-up without emitting anything.
"""
import copy
import logging
import math
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from improvboard.errors import (
    InvalidPayloadError,
    InvalidTimerStateError,
    Outcome,
    UnknownMatchError,
    UnknownTeamError,
    UnknownTimerError,
)
from .defaults import PENALTY_KINDS, TEAM_IDS
from .store import Broadcaster

logger = logging.getLogger(__name__)

MATCH_EVENT = 'matchStateUpdate'
TIMER_EVENT = 'timerUpdate'
MATCH_STATUSES = ('setup', 'active', 'paused', 'completed')


def match_room(match_id: str) -> str:
    return f"match:{match_id}"


def _gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def start_thread(fn, *args):
    thread = threading.Thread(target=fn, args=args, daemon=True)
    thread.start()
    return thread


class _Run:
    __slots__ = ('timer_id', 'anchor', 'initial_ms')

    def __init__(self, timer_id: str, anchor: float, initial_ms: int):
        self.timer_id = timer_id
        self.anchor = anchor
        self.initial_ms = initial_ms


class MatchStateManager:
    def __init__(
        self,
        broadcaster: Broadcaster,
        spawn: Callable = start_thread,
        sleep: Callable[[float], Any] = time.sleep,
        clock: Callable[[], float] = time.time,
        tick_ms: int = 100,
    ):
        self.broadcaster = broadcaster
        self._spawn = spawn
        self._sleep = sleep
        self._clock = clock
        self.tick_ms = tick_ms
        self._matches: Dict[str, Dict[str, Any]] = {}
        self._runs: Dict[str, _Run] = {}
        # Precise remaining time of a paused timer, keyed by match.
        self._held_ms: Dict[str, int] = {}
        self._lock = threading.RLock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ---- matches ----

    def create_match(self, payload: Optional[Dict[str, Any]] = None, forced_id: Optional[str] = None) -> Outcome:
        """Register a match and return its id.

        A forced id that is already taken is replaced by a generated one; the
        caller learns the id actually used from the returned value.
        """
        payload = payload if isinstance(payload, dict) else {}
        with self._lock:
            if forced_id and forced_id not in self._matches:
                match_id = forced_id
            else:
                if forced_id:
                    logger.warning(f"[match-id-taken] requested={forced_id}")
                match_id = _gen_id('match')
            now = self._now_ms()
            self._matches[match_id] = {
                'matchId': match_id,
                'name': payload.get('name') or 'Match',
                'teams': copy.deepcopy(payload.get('teams') or []),
                'status': 'setup',
                'score': {'team1': 0, 'team2': 0},
                'penalties': {'team1': [], 'team2': []},
                'timer': None,
                'metadata': {'createdAt': now, 'updatedAt': now},
            }
            self._publish_match(match_id)
        logger.info(f"[match-create] match={match_id}")
        return Outcome.success(match_id)

    def get_match(self, match_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            match = self._matches.get(match_id)
            return copy.deepcopy(match) if match else None

    def list_matches(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(m) for m in self._matches.values()]

    def set_score(self, match_id: str, team1, team2) -> Outcome:
        """Overwrite both scores."""
        try:
            score = {'team1': int(team1), 'team2': int(team2)}
        except (TypeError, ValueError):
            return Outcome.failure(InvalidPayloadError('scores must be integers'))
        with self._lock:
            if match_id not in self._matches:
                return Outcome.failure(UnknownMatchError(match_id))
            self._update(match_id, {'score': score})
        return Outcome.success(score)

    def adjust_score(self, match_id: str, team: str, points) -> Outcome:
        if team not in TEAM_IDS:
            return Outcome.failure(UnknownTeamError(team))
        try:
            points = int(points)
        except (TypeError, ValueError):
            return Outcome.failure(InvalidPayloadError('points must be an integer'))
        with self._lock:
            match = self._matches.get(match_id)
            if match is None:
                return Outcome.failure(UnknownMatchError(match_id))
            score = dict(match['score'])
            score[team] += points
            self._update(match_id, {'score': score})
        return Outcome.success(score)

    def add_penalty(self, match_id: str, team: str, kind: str) -> Outcome:
        if team not in TEAM_IDS:
            return Outcome.failure(UnknownTeamError(team))
        if kind not in PENALTY_KINDS:
            return Outcome.failure(InvalidPayloadError(f"Unknown penalty kind {kind!r}"))
        with self._lock:
            match = self._matches.get(match_id)
            if match is None:
                return Outcome.failure(UnknownMatchError(match_id))
            penalties = copy.deepcopy(match['penalties'])
            entry = {'kind': kind, 'at': self._now_ms()}
            penalties[team].append(entry)
            self._update(match_id, {'penalties': penalties})
        return Outcome.success(entry)

    def set_status(self, match_id: str, status: str) -> Outcome:
        if status not in MATCH_STATUSES:
            return Outcome.failure(InvalidPayloadError(f"Unknown match status {status!r}"))
        with self._lock:
            if match_id not in self._matches:
                return Outcome.failure(UnknownMatchError(match_id))
            self._update(match_id, {'status': status})
        return Outcome.success(status)

    # ---- timers ----

    def start_timer(self, match_id: str, duration, timer_type: str = 'round', auto_start: bool = True) -> Outcome:
        try:
            duration = int(duration)
        except (TypeError, ValueError):
            return Outcome.failure(InvalidPayloadError('duration must be an integer'))
        if duration < 0:
            return Outcome.failure(InvalidPayloadError('duration must be >= 0'))
        with self._lock:
            if match_id not in self._matches:
                return Outcome.failure(UnknownMatchError(match_id))
            self._cancel(match_id)
            now = self._now_ms()
            timer = {
                'matchId': match_id,
                'timerId': _gen_id('timer'),
                'type': timer_type,
                'duration': duration,
                'remaining': duration,
                'status': 'running' if auto_start else 'paused',
                'startedAt': now,
                'updatedAt': now,
            }
            self._update(match_id, {'timer': timer})
            if auto_start:
                self._launch(match_id, timer['timerId'], duration * 1000)
            else:
                self._held_ms[match_id] = duration * 1000
        logger.info(f"[match-timer-start] match={match_id} timer={timer['timerId']} duration={duration}")
        return Outcome.success(copy.deepcopy(timer))

    def pause_timer(self, match_id: str, timer_id: str) -> Outcome:
        with self._lock:
            found = self._active_timer(match_id, timer_id)
            if not found:
                return found
            timer = found.value
            if timer['status'] != 'running':
                return Outcome.failure(InvalidTimerStateError('Timer is not running'))
            run = self._runs.get(match_id)
            remaining_ms = self._remaining_ms(run) if run else timer['remaining'] * 1000
            self._cancel(match_id)
            self._held_ms[match_id] = remaining_ms
            timer = dict(timer, status='paused', remaining=math.ceil(remaining_ms / 1000), updatedAt=self._now_ms())
            self._update(match_id, {'timer': timer})
        return Outcome.success(copy.deepcopy(timer))

    def resume_timer(self, match_id: str, timer_id: str) -> Outcome:
        with self._lock:
            found = self._active_timer(match_id, timer_id)
            if not found:
                return found
            timer = found.value
            if timer['status'] != 'paused':
                return Outcome.failure(InvalidTimerStateError('Timer is not paused'))
            remaining_ms = self._held_ms.pop(match_id, timer['remaining'] * 1000)
            timer = dict(timer, status='running', updatedAt=self._now_ms())
            self._update(match_id, {'timer': timer})
            self._launch(match_id, timer_id, remaining_ms)
        return Outcome.success(copy.deepcopy(timer))

    def stop_timer(self, match_id: str, timer_id: str) -> Outcome:
        with self._lock:
            found = self._active_timer(match_id, timer_id)
            if not found:
                return found
            self._cancel(match_id)
            timer = dict(found.value, status='stopped', remaining=0, updatedAt=self._now_ms())
            self._update(match_id, {'timer': timer})
        return Outcome.success(copy.deepcopy(timer))

    def set_timer_duration(self, match_id: str, timer_id: str, duration) -> Outcome:
        """Load a new duration into the timer and leave it paused."""
        try:
            duration = int(duration)
        except (TypeError, ValueError):
            return Outcome.failure(InvalidPayloadError('duration must be an integer'))
        if duration < 0:
            return Outcome.failure(InvalidPayloadError('duration must be >= 0'))
        with self._lock:
            found = self._active_timer(match_id, timer_id)
            if not found:
                return found
            self._cancel(match_id)
            self._held_ms[match_id] = duration * 1000
            timer = dict(found.value, duration=duration, remaining=duration, status='paused', updatedAt=self._now_ms())
            self._update(match_id, {'timer': timer})
        return Outcome.success(copy.deepcopy(timer))

    def shutdown(self) -> None:
        """Cancel every running loop."""
        with self._lock:
            for match_id in list(self._runs):
                self._cancel(match_id)

    # ---- internals ----

    def _active_timer(self, match_id: str, timer_id: str) -> Outcome:
        match = self._matches.get(match_id)
        if match is None:
            return Outcome.failure(UnknownMatchError(match_id))
        timer = match.get('timer')
        if not timer or timer.get('timerId') != timer_id:
            return Outcome.failure(UnknownTimerError(match_id, timer_id))
        return Outcome.success(dict(timer))

    def _update(self, match_id: str, changes: Dict[str, Any]) -> None:
        current = self._matches[match_id]
        next_match = dict(current)
        next_match.update(copy.deepcopy(changes))
        next_match['metadata'] = dict(current['metadata'], updatedAt=self._now_ms())
        self._matches[match_id] = next_match
        self._publish_match(match_id)

    def _publish_match(self, match_id: str) -> None:
        self.broadcaster.publish(MATCH_EVENT, copy.deepcopy(self._matches[match_id]), match_room(match_id))

    def _cancel(self, match_id: str) -> None:
        self._runs.pop(match_id, None)
        self._held_ms.pop(match_id, None)

    def _remaining_ms(self, run: _Run) -> int:
        elapsed_ms = (self._clock() - run.anchor) * 1000
        return max(0, int(run.initial_ms - elapsed_ms))

    def _launch(self, match_id: str, timer_id: str, initial_ms: int) -> None:
        run = _Run(timer_id, self._clock(), initial_ms)
        self._runs[match_id] = run
        try:
            self._spawn(self._run_loop, match_id, run)
        except Exception:
            self._runs.pop(match_id, None)
            logger.error(f"[match-timer-spawn-fail] match={match_id} timer={timer_id}", exc_info=True)

    def _run_loop(self, match_id: str, run: _Run) -> None:
        while True:
            self._sleep(self.tick_ms / 1000)
            if not self._tick(match_id, run):
                return

    def _tick(self, match_id: str, run: _Run) -> bool:
        """Advance one run by one tick. Returns False once the run is over."""
        with self._lock:
            if self._runs.get(match_id) is not run:
                return False
            match = self._matches.get(match_id)
            timer = (match or {}).get('timer')
            if not timer or timer.get('timerId') != run.timer_id:
                self._runs.pop(match_id, None)
                return False
            remaining = math.ceil(self._remaining_ms(run) / 1000)
            expired = remaining <= 0
            tick = dict(timer, remaining=remaining, status='expired' if expired else 'running',
                        updatedAt=self._now_ms())
            next_match = dict(match, timer=tick)
            next_match['metadata'] = dict(match['metadata'], updatedAt=tick['updatedAt'])
            self._matches[match_id] = next_match
            self.broadcaster.publish(TIMER_EVENT, copy.deepcopy(tick), match_room(match_id))
            if expired:
                self._runs.pop(match_id, None)
                logger.info(f"[match-timer-expired] match={match_id} timer={run.timer_id}")
                self._publish_match(match_id)
                return False
        return True
