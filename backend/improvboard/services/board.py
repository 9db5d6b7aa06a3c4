import logging
import time
from typing import Any, Callable, Dict, Optional

from improvboard.errors import InvalidPayloadError, Outcome, ScoreboardError
from .clock import RoundClock
from .defaults import TEAM_IDS, initial_state
from .ledger import TeamLedger
from .matches import MatchStateManager, start_thread
from .remote import RemoteControlArbiter
from .rounds import RoundSequencer
from .store import Broadcaster, StateStore, run_inline
from .templates import TemplateLibrary

logger = logging.getLogger(__name__)


class BackupUnavailableError(ScoreboardError):
    pass


class Board:
    """One instance of every core component, wired to a shared store.

    `spawn` runs fire-and-forget work (persistence, reports); `match_spawn`
    and `sleep` drive the per-match timer loops.
    """

    def __init__(
        self,
        initial: Optional[Dict[str, Any]] = None,
        repository=None,
        persist: bool = True,
        report_renderer: Optional[Callable[[Dict[str, Any]], Any]] = None,
        spawn: Callable = run_inline,
        match_spawn: Callable = start_thread,
        sleep: Callable[[float], Any] = time.sleep,
        clock: Callable[[], float] = time.time,
        tick_ms: int = 100,
        remote_source: str = 'mon-pacing',
    ):
        self.repository = repository
        self.broadcaster = Broadcaster()
        self.store = StateStore(
            initial=initial,
            broadcaster=self.broadcaster,
            persist=repository.save if repository is not None and persist else None,
            spawn=spawn,
        )
        self.ledger = TeamLedger(self.store)
        self.rounds = RoundSequencer(self.store, report_renderer=report_renderer, spawn=spawn)
        self.templates = TemplateLibrary(self.store)
        self.clock = RoundClock(self.store, clock=clock)
        self.matches = MatchStateManager(self.broadcaster, spawn=match_spawn, sleep=sleep, clock=clock, tick_ms=tick_ms)
        self.remote = RemoteControlArbiter(self.store, default_source=remote_source)

    def get_state(self) -> Dict[str, Any]:
        return self.store.get_state()

    def reset_all(self, keep_team_names: bool = True) -> Outcome:
        """Return the board to its initial state.

        The template library and playlists survive; everything about the
        match in progress does not.
        """
        with self.store.transaction():
            current = self.store.get_state()
            state = initial_state()
            if keep_team_names:
                for team_id in TEAM_IDS:
                    state[team_id]['name'] = current[team_id]['name']
                    state[team_id]['color'] = current[team_id]['color']
            state['rounds']['templates'] = current['rounds'].get('templates') or []
            state['rounds']['playlists'] = current['rounds'].get('playlists') or []
            self.store.replace(state)
        logger.info(f"[reset-all] keep_team_names={keep_team_names}")
        return Outcome.success()

    # ---- persistence ----

    def save_now(self) -> Outcome:
        if self.repository is None:
            return Outcome.failure(BackupUnavailableError('No snapshot repository configured'))
        try:
            self.repository.save(self.store.get_state())
        except Exception as exc:
            logger.error('[state-save-fail]', exc_info=True)
            return Outcome.failure(BackupUnavailableError(str(exc)))
        return Outcome.success()

    def create_backup(self, name: Optional[str] = None) -> Outcome:
        if self.repository is None:
            return Outcome.failure(BackupUnavailableError('No snapshot repository configured'))
        try:
            return Outcome.success(self.repository.create_backup(name or 'manual', self.store.get_state()))
        except Exception as exc:
            logger.error('[backup-create-fail]', exc_info=True)
            return Outcome.failure(BackupUnavailableError(str(exc)))

    def list_backups(self) -> Outcome:
        if self.repository is None:
            return Outcome.success([])
        try:
            return Outcome.success(self.repository.list_backups())
        except Exception as exc:
            logger.error('[backup-list-fail]', exc_info=True)
            return Outcome.failure(BackupUnavailableError(str(exc)))

    def restore_backup(self, backup_id) -> Outcome:
        """Replace the live board with a stored backup.

        The live board is itself backed up as `pre_restore` first.
        """
        if self.repository is None:
            return Outcome.failure(BackupUnavailableError('No snapshot repository configured'))
        try:
            restored = self.repository.load_backup(backup_id)
        except Exception as exc:
            logger.error(f"[backup-restore-fail] id={backup_id}", exc_info=True)
            return Outcome.failure(BackupUnavailableError(str(exc)))
        if not isinstance(restored, dict):
            return Outcome.failure(InvalidPayloadError(f"Backup {backup_id!r} not found"))
        with self.store.transaction():
            created = self.create_backup('pre_restore')
            if not created:
                return created
            self.store.replace(restored)
        logger.info(f"[backup-restore] id={backup_id}")
        return Outcome.success(self.store.get_state())
