"""Lazy countdown for the shared board.

While `started`, the stored `remainingSec` is the value at the last anchor
(start, resume or set) and is never counted down in storage; the live value
is rebuilt from `startedAt` on every read. Something has to call `tick()`
periodically for auto-expiry to happen.
"""
import logging
import math
import time
from typing import Any, Callable, Dict

from improvboard.errors import InvalidPayloadError, InvalidTimerStateError, Outcome
from .defaults import stopped_timer
from .store import TIMER_TICK_EVENT, StateStore

logger = logging.getLogger(__name__)


def _seconds(value) -> int:
    if isinstance(value, bool):
        raise InvalidPayloadError('seconds must be a number')
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        raise InvalidPayloadError('seconds must be a number')
    if seconds < 0:
        raise InvalidPayloadError('seconds must be >= 0')
    return seconds


class RoundClock:
    def __init__(self, store: StateStore, clock: Callable[[], float] = time.time):
        self.store = store
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _timer(self) -> Dict[str, Any]:
        return self.store.get_state().get('timer') or stopped_timer()

    def _remaining(self, timer: Dict[str, Any]) -> int:
        base = timer.get('remainingSec')
        if base is None:
            base = timer.get('durationSec') or 0
        if timer.get('status') != 'started' or not timer.get('startedAt'):
            return int(base)
        elapsed = math.floor((self._now_ms() - timer['startedAt']) / 1000)
        return max(0, int(base) - elapsed)

    def read(self) -> Dict[str, Any]:
        """The timer as a display should show it right now."""
        timer = dict(self._timer())
        timer['remainingSec'] = self._remaining(timer)
        return timer

    def start(self, duration_sec) -> Outcome:
        try:
            duration = _seconds(duration_sec)
        except InvalidPayloadError as exc:
            return Outcome.failure(exc)
        timer = {
            'status': 'started',
            'durationSec': duration,
            'remainingSec': duration,
            'startedAt': self._now_ms(),
        }
        self.store.update({'timer': timer})
        logger.info(f"[clock-start] duration={duration}")
        return Outcome.success(timer)

    def pause(self) -> Outcome:
        with self.store.transaction():
            timer = self._timer()
            if timer.get('status') != 'started' or not timer.get('startedAt'):
                return Outcome.failure(InvalidTimerStateError('Timer is not running'))
            paused = {
                'status': 'paused',
                'durationSec': timer.get('durationSec') or 0,
                'remainingSec': self._remaining(timer),
                'startedAt': None,
            }
            self.store.update({'timer': paused})
        logger.info(f"[clock-pause] remaining={paused['remainingSec']}")
        return Outcome.success(paused)

    def resume(self) -> Outcome:
        with self.store.transaction():
            timer = self._timer()
            if timer.get('status') != 'paused':
                return Outcome.failure(InvalidTimerStateError('Timer is not paused'))
            resumed = dict(timer, status='started', startedAt=self._now_ms())
            self.store.update({'timer': resumed})
        return Outcome.success(resumed)

    def stop(self) -> Outcome:
        timer = stopped_timer()
        self.store.update({'timer': timer})
        return Outcome.success(timer)

    def set_duration(self, seconds) -> Outcome:
        """Change the duration and restart the countdown from it."""
        try:
            duration = _seconds(seconds)
        except InvalidPayloadError as exc:
            return Outcome.failure(exc)
        with self.store.transaction():
            timer = dict(self._timer(), durationSec=duration, remainingSec=duration)
            if timer.get('status') == 'started':
                timer['startedAt'] = self._now_ms()
            self.store.update({'timer': timer})
        return Outcome.success(timer)

    def set_remaining(self, seconds) -> Outcome:
        try:
            remaining = _seconds(seconds)
        except InvalidPayloadError as exc:
            return Outcome.failure(exc)
        with self.store.transaction():
            timer = dict(self._timer(), remainingSec=remaining)
            if timer.get('status') == 'started':
                timer['startedAt'] = self._now_ms()
            self.store.update({'timer': timer})
        return Outcome.success(timer)

    def tick(self) -> Outcome:
        """Publish the live view; stop the timer once it reaches zero."""
        with self.store.transaction():
            timer = self._timer()
            if timer.get('status') != 'started' or not timer.get('startedAt'):
                return Outcome.failure(InvalidTimerStateError('Timer is not running'))
            view = dict(timer, remainingSec=self._remaining(timer))
            if view['remainingSec'] <= 0:
                logger.info('[clock-expired]')
                return self.stop()
            self.store.broadcaster.publish(TIMER_TICK_EVENT, view)
        return Outcome.success(view)
