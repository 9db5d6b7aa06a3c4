"""Durable storage of the board snapshot and its named backups.

Every method opens its own application context so it can run from a
background task as well as from a request.
"""
import json
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class SnapshotRepository:
    def __init__(self, app):
        self.app = app

    def save(self, snapshot: Dict[str, Any]) -> None:
        from improvboard import db
        from improvboard.models import ScoreboardSnapshot
        with self.app.app_context():
            row = ScoreboardSnapshot.query.order_by(ScoreboardSnapshot.id).first()
            if row is None:
                row = ScoreboardSnapshot(state=json.dumps(snapshot))
                db.session.add(row)
            else:
                row.state = json.dumps(snapshot)
            db.session.commit()

    def load(self) -> Optional[Dict[str, Any]]:
        from improvboard.models import ScoreboardSnapshot
        with self.app.app_context():
            row = ScoreboardSnapshot.query.order_by(ScoreboardSnapshot.id).first()
            return row.data if row else None

    def create_backup(self, name: str, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        from improvboard import db
        from improvboard.models import StateBackup
        with self.app.app_context():
            backup = StateBackup(name=name or 'manual', state=json.dumps(snapshot))
            db.session.add(backup)
            db.session.commit()
            logger.info(f"[backup-create] id={backup.id} name={backup.name}")
            return backup.to_dict()

    def list_backups(self) -> List[Dict[str, Any]]:
        from improvboard.models import StateBackup
        with self.app.app_context():
            rows = StateBackup.query.order_by(StateBackup.created_at.desc(), StateBackup.id.desc()).all()
            return [b.to_dict() for b in rows]

    def load_backup(self, backup_id) -> Optional[Dict[str, Any]]:
        from improvboard import db
        from improvboard.models import StateBackup
        with self.app.app_context():
            backup = db.session.get(StateBackup, backup_id)
            return json.loads(backup.state) if backup else None
