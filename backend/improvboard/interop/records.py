"""Database-backed category map and audit trail for the gateway."""
import json
from typing import Any, Dict

from improvboard.services.defaults import ROUND_TYPES


def load_category_map(app) -> Dict[str, str]:
    from improvboard.models import CategoryMapping
    with app.app_context():
        return {m.category: m.round_type for m in CategoryMapping.query.all()}


def save_category_map(app, mapping: Dict[str, str]) -> Dict[str, str]:
    """Replace the stored map. Entries with an unknown round type are dropped."""
    from improvboard import db
    from improvboard.models import CategoryMapping
    cleaned = {
        str(category): round_type
        for category, round_type in (mapping or {}).items()
        if str(category).strip() and round_type in ROUND_TYPES
    }
    with app.app_context():
        CategoryMapping.query.delete()
        for category, round_type in cleaned.items():
            db.session.add(CategoryMapping(category=category, round_type=round_type))
        db.session.commit()
    return cleaned


def record_interop(app, kind: str, ok: bool, data: Dict[str, Any]) -> None:
    from improvboard import db
    from improvboard.models import InteropLogEntry
    with app.app_context():
        db.session.add(InteropLogEntry(kind=kind[:32], ok=ok, payload=json.dumps(data, default=str)))
        db.session.commit()
