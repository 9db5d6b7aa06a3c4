from improvboard import db, bcrypt
from flask_login import UserMixin
from datetime import datetime
import json


class Operator(UserMixin, db.Model):
    """Referee account allowed to pair remote devices."""
    __tablename__ = 'operator'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class ScoreboardSnapshot(db.Model):
    """The single persisted copy of the live board."""
    __tablename__ = 'scoreboard_snapshot'
    id = db.Column(db.Integer, primary_key=True)
    state = db.Column(db.Text, nullable=False)  # JSON-encoded snapshot
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def data(self):
        return json.loads(self.state) if self.state else None


class StateBackup(db.Model):
    __tablename__ = 'state_backup'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    state = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self, include_state=False):
        data = {
            'id': self.id,
            'name': self.name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_state:
            data['state'] = json.loads(self.state)
        return data


class CategoryMapping(db.Model):
    """Pacing-device category name -> board round type."""
    __tablename__ = 'category_mapping'
    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(128), unique=True, nullable=False, index=True)
    round_type = db.Column(db.String(32), nullable=False)


class InteropLogEntry(db.Model):
    __tablename__ = 'interop_log_entry'
    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(32), nullable=False)  # plan, event, match_event, lock
    ok = db.Column(db.Boolean, default=True, nullable=False)
    payload = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'kind': self.kind,
            'ok': self.ok,
            'payload': json.loads(self.payload) if self.payload else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
