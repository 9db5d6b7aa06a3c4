"""Authoritative snapshot holder and fan-out.

`StateStore` owns the one mutable reference to the scoreboard snapshot.
Writers never touch the snapshot in place: they hand partial updates to
`update()`, which builds the next snapshot, swaps the reference, schedules a
best-effort persist and broadcasts the complete new snapshot. Readers get a
deep copy.

Read-modify-write sequences run inside `with store.transaction():` so a
background timer thread cannot interleave between the read and the swap.
"""
import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional

from .defaults import initial_state

logger = logging.getLogger(__name__)

STATE_EVENT = 'updateState'
TIMER_TICK_EVENT = 'timerTick'

Subscriber = Callable[[str, Any, Optional[str]], None]


def run_inline(fn, *args, **kwargs):
    """Default spawn: run the task synchronously."""
    return fn(*args, **kwargs)


class Broadcaster:
    """Ordered fan-out of (event, payload, room) to every subscriber."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(subscriber)

        def _unsubscribe():
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return _unsubscribe

    def publish(self, event: str, payload: Any, room: Optional[str] = None) -> None:
        # Held across delivery so two publishers cannot reorder events.
        with self._lock:
            for subscriber in list(self._subscribers):
                try:
                    subscriber(event, payload, room)
                except Exception:
                    logger.error(f"[broadcast-fail] event={event} room={room}", exc_info=True)


class StateStore:
    def __init__(
        self,
        initial: Optional[Dict[str, Any]] = None,
        broadcaster: Optional[Broadcaster] = None,
        persist: Optional[Callable[[Dict[str, Any]], Any]] = None,
        spawn: Callable = run_inline,
    ):
        self._state: Dict[str, Any] = copy.deepcopy(initial) if initial else initial_state()
        self.broadcaster = broadcaster or Broadcaster()
        self._persist = persist
        self._spawn = spawn
        self._lock = threading.RLock()
        # Latest unsaved snapshot; at most one drain worker writes it out.
        self._persist_lock = threading.Lock()
        self._pending: Optional[Dict[str, Any]] = None
        self._draining = False

    # ---- reads ----

    def get_state(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._state)

    @contextmanager
    def transaction(self):
        """Serialise a read-compute-write sequence against other writers."""
        with self._lock:
            yield self

    # ---- writes ----

    def update(self, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Merge `updates` into a new snapshot, swap it in, persist and broadcast.

        Merge rules: `team1`/`team2` are merged field by field, `rounds` is
        merged key by key (each key replaced wholesale), everything else is
        replaced. Returns a copy of the new snapshot, or None when `updates`
        is not a mapping.
        """
        if not isinstance(updates, dict):
            logger.error(f"[state-update-rejected] updates={updates!r}")
            return None
        with self._lock:
            next_state = self._merge(self._state, updates)
            self._state = next_state
            logger.debug(f"[state-update] keys={','.join(sorted(updates))}")
            self._after_write(next_state)
            return copy.deepcopy(next_state)

    def replace(self, state: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Swap in a complete snapshot (boot load, backup restore, reset)."""
        if not isinstance(state, dict):
            logger.error(f"[state-replace-rejected] state={type(state).__name__}")
            return None
        with self._lock:
            next_state = self._merge(initial_state(), state)
            self._state = next_state
            logger.info('[state-replace]')
            self._after_write(next_state)
            return copy.deepcopy(next_state)

    def load(self, state: Dict[str, Any]) -> bool:
        """Install a persisted snapshot without persisting it back or broadcasting."""
        if not isinstance(state, dict):
            return False
        with self._lock:
            self._state = self._merge(initial_state(), state)
        return True

    def broadcast(self) -> None:
        with self._lock:
            self.broadcaster.publish(STATE_EVENT, copy.deepcopy(self._state))

    # ---- internals ----

    @staticmethod
    def _merge(current: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
        next_state = copy.deepcopy(current)
        for key, value in updates.items():
            value = copy.deepcopy(value)
            if key in ('team1', 'team2') and isinstance(value, dict) and isinstance(next_state.get(key), dict):
                merged = next_state[key]
                merged.update(value)
                next_state[key] = merged
            elif key == 'rounds' and isinstance(value, dict) and isinstance(next_state.get(key), dict):
                next_state[key].update(value)
            else:
                next_state[key] = value
        return next_state

    def _after_write(self, snapshot: Dict[str, Any]) -> None:
        if self._persist is not None:
            self._schedule_persist(copy.deepcopy(snapshot))
        self.broadcaster.publish(STATE_EVENT, copy.deepcopy(snapshot))

    def _schedule_persist(self, snapshot: Dict[str, Any]) -> None:
        """Queue `snapshot` as the next write. Older unsaved snapshots are dropped."""
        with self._persist_lock:
            self._pending = snapshot
            if self._draining:
                return
            self._draining = True
        try:
            self._spawn(self._drain)
        except Exception:
            logger.error('[persist-schedule-fail]', exc_info=True)
            with self._persist_lock:
                self._draining = False

    def _drain(self) -> None:
        while True:
            with self._persist_lock:
                snapshot, self._pending = self._pending, None
                if snapshot is None:
                    self._draining = False
                    return
            self._persist_safely(snapshot)

    def _persist_safely(self, snapshot: Dict[str, Any]) -> None:
        try:
            self._persist(snapshot)
        except Exception:
            logger.error('[persist-fail] snapshot write failed', exc_info=True)
