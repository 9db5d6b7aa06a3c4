import logging
from typing import Any, Dict, Optional

from improvboard.errors import Outcome
from .defaults import local_remote_control
from .store import StateStore

logger = logging.getLogger(__name__)


class RemoteControlArbiter:
    """Records which actor is driving the board and whether local edits are locked.

    The flag is advisory: the control surface decides what to do with it.
    """

    def __init__(self, store: StateStore, default_source: str = 'mon-pacing'):
        self.store = store
        self.default_source = default_source

    def marker(self) -> Dict[str, Any]:
        return self.store.get_state().get('remoteControl') or local_remote_control()

    def is_locked(self) -> bool:
        return bool(self.marker().get('locked'))

    def mark_remote(self, source: Optional[str] = None) -> Outcome:
        """Claim the board for a remote actor. Clears any previous lock."""
        marker = {'source': source or self.default_source, 'locked': False}
        with self.store.transaction():
            if self.marker() != marker:
                self.store.update({'remoteControl': marker})
        return Outcome.success(marker)

    def set_lock(self, locked, source: Optional[str] = None) -> Outcome:
        marker = {'source': source or self.default_source, 'locked': bool(locked)}
        self.store.update({'remoteControl': marker})
        logger.info(f"[remote-lock] source={marker['source']} locked={marker['locked']}")
        return Outcome.success(marker)

    def release(self) -> Outcome:
        marker = local_remote_control()
        self.store.update({'remoteControl': marker})
        return Outcome.success(marker)
