import copy
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from improvboard.errors import (
    GameFinishedError,
    InvalidPayloadError,
    InvalidRoundConfigError,
    Outcome,
    PlaylistError,
    TemplateNotFoundError,
)
from .defaults import normalize_round_config, validate_round_config
from .store import StateStore

logger = logging.getLogger(__name__)


def _template(template_id, name, description, round_type, min_players, max_players, time_limit,
              theme='', is_mixed=False, tags=()):
    return {
        'id': template_id,
        'name': name,
        'description': description,
        'config': {
            'type': round_type,
            'isMixed': is_mixed,
            'theme': theme,
            'minPlayers': min_players,
            'maxPlayers': max_players,
            'timeLimit': time_limit,
        },
        'tags': list(tags),
    }


DEFAULT_TEMPLATES = [
    _template('shortform-basic', 'Basic Shortform', 'Standard shortform round with 2-4 players',
              'shortform', 2, 4, 180, tags=('basic', 'shortform')),
    _template('musical-duet', 'Musical Duet', 'Two-person musical performance',
              'musical', 2, 2, 240, tags=('musical', 'duet')),
    _template('character-switches', 'Character Switch Scene', 'Scene where players swap characters periodically',
              'character', 3, 4, 300, theme='Character Switches', is_mixed=True, tags=('character', 'advanced')),
    _template('story-chain', 'Narrative Chain', 'Connected scenes telling a complete story',
              'narrative', 4, 6, 420, tags=('narrative', 'longform')),
    _template('challenge-emotional', 'Emotional Rollercoaster', 'Scene with rapid emotional changes',
              'challenge', 2, 3, 240, theme='Emotional Switches', tags=('challenge', 'emotions')),
    _template('mixed-genre', 'Genre Blender', 'Scene that switches between different movie/TV genres',
              'challenge', 3, 5, 360, theme='Genre Switches', tags=('challenge', 'genres', 'advanced')),
    _template('longform-start', 'Longform Opening', 'Initial scene to establish a longform narrative',
              'longform', 4, 8, 600, tags=('longform', 'opening')),
    _template('musical-group', 'Group Musical Number', 'Full-cast musical performance',
              'musical', 4, 8, 300, is_mixed=True, tags=('musical', 'group', 'finale')),
]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _valid_template_config(config) -> bool:
    # Templates carry no number; one is assigned when the template is played.
    return isinstance(config, dict) and validate_round_config(normalize_round_config(config, 1))


class TemplateLibrary:
    """Reusable round templates, playlists of templates, and playlist playback.

    Navigating a playlist replaces the current round with the template at the
    cursor, numbered after the history. The cursor clamps at both ends.
    """

    def __init__(self, store: StateStore):
        self.store = store

    def initialize_default_templates(self) -> bool:
        with self.store.transaction():
            if self.store.get_state()['rounds'].get('templates'):
                return False
            self.store.update({'rounds': {'templates': copy.deepcopy(DEFAULT_TEMPLATES)}})
        logger.info(f"[templates-seeded] count={len(DEFAULT_TEMPLATES)}")
        return True

    # ---- templates ----

    def save_template(self, payload: Dict[str, Any]) -> Outcome:
        payload = payload if isinstance(payload, dict) else {}
        name = payload.get('name')
        if not isinstance(name, str) or not name.strip():
            return Outcome.failure(InvalidPayloadError('template name is required'))
        if not _valid_template_config(payload.get('config')):
            return Outcome.failure(InvalidRoundConfigError('Invalid template config'))
        config = {k: v for k, v in payload['config'].items() if k != 'number'}
        template = {
            'id': str(uuid.uuid4()),
            'name': name,
            'description': payload.get('description'),
            'config': config,
            'tags': list(payload.get('tags') or []),
        }
        with self.store.transaction():
            templates = list(self.store.get_state()['rounds'].get('templates') or [])
            templates.append(template)
            self.store.update({'rounds': {'templates': templates}})
        return Outcome.success(template)

    def update_template(self, template_id: str, updates: Dict[str, Any]) -> Outcome:
        updates = {k: v for k, v in (updates or {}).items() if k != 'id'}
        if 'config' in updates and not _valid_template_config(updates['config']):
            return Outcome.failure(InvalidRoundConfigError('Invalid template config'))
        with self.store.transaction():
            templates = list(self.store.get_state()['rounds'].get('templates') or [])
            index = next((i for i, t in enumerate(templates) if t.get('id') == template_id), None)
            if index is None:
                return Outcome.failure(TemplateNotFoundError('Template', template_id))
            templates[index] = {**templates[index], **updates}
            self.store.update({'rounds': {'templates': templates}})
        return Outcome.success(templates[index])

    def delete_template(self, template_id: str) -> Outcome:
        with self.store.transaction():
            templates = list(self.store.get_state()['rounds'].get('templates') or [])
            remaining = [t for t in templates if t.get('id') != template_id]
            if len(remaining) == len(templates):
                return Outcome.failure(TemplateNotFoundError('Template', template_id))
            self.store.update({'rounds': {'templates': remaining}})
        return Outcome.success()

    # ---- playlists ----

    def _resolve(self, templates: List[Dict[str, Any]], refs) -> List[Dict[str, Any]]:
        by_id = {t.get('id'): t for t in templates}
        resolved = []
        for ref in refs or []:
            if isinstance(ref, str):
                if ref in by_id:
                    resolved.append(copy.deepcopy(by_id[ref]))
            elif isinstance(ref, dict) and _valid_template_config(ref.get('config')):
                resolved.append(copy.deepcopy(ref))
        return resolved

    def create_playlist(self, payload: Dict[str, Any]) -> Outcome:
        payload = payload if isinstance(payload, dict) else {}
        name = payload.get('name')
        if not isinstance(name, str) or not name.strip():
            return Outcome.failure(InvalidPayloadError('playlist name is required'))
        with self.store.transaction():
            rounds = self.store.get_state()['rounds']
            now = _now_ms()
            playlist = {
                'id': str(uuid.uuid4()),
                'name': name,
                'description': payload.get('description'),
                'rounds': self._resolve(rounds.get('templates') or [], payload.get('rounds')),
                'created': now,
                'lastModified': now,
            }
            playlists = list(rounds.get('playlists') or [])
            playlists.append(playlist)
            self.store.update({'rounds': {'playlists': playlists}})
        return Outcome.success(playlist)

    def update_playlist(self, playlist_id: str, updates: Dict[str, Any]) -> Outcome:
        updates = {k: v for k, v in (updates or {}).items() if k in ('name', 'description', 'rounds')}
        with self.store.transaction():
            rounds = self.store.get_state()['rounds']
            playlists = list(rounds.get('playlists') or [])
            index = next((i for i, p in enumerate(playlists) if p.get('id') == playlist_id), None)
            if index is None:
                return Outcome.failure(TemplateNotFoundError('Playlist', playlist_id))
            if 'rounds' in updates:
                updates['rounds'] = self._resolve(rounds.get('templates') or [], updates['rounds'])
            playlists[index] = {**playlists[index], **updates, 'lastModified': _now_ms()}
            self.store.update({'rounds': {'playlists': playlists}})
        return Outcome.success(playlists[index])

    def delete_playlist(self, playlist_id: str) -> Outcome:
        with self.store.transaction():
            rounds = self.store.get_state()['rounds']
            playlists = list(rounds.get('playlists') or [])
            remaining = [p for p in playlists if p.get('id') != playlist_id]
            if len(remaining) == len(playlists):
                return Outcome.failure(TemplateNotFoundError('Playlist', playlist_id))
            round_updates = {'playlists': remaining}
            if (rounds.get('activePlaylist') or {}).get('id') == playlist_id:
                round_updates['activePlaylist'] = None
            self.store.update({'rounds': round_updates})
        return Outcome.success()

    # ---- playback ----

    def start_playlist(self, playlist_id: str) -> Outcome:
        with self.store.transaction():
            rounds = self.store.get_state()['rounds']
            playlist = self._find_playlist(rounds, playlist_id)
            if playlist is None or not playlist.get('rounds'):
                return Outcome.failure(PlaylistError(f"Playlist {playlist_id!r} not found or empty"))
            return self._play(rounds, playlist, 0)

    def stop_playlist(self) -> Outcome:
        self.store.update({'rounds': {'activePlaylist': None}})
        return Outcome.success()

    def next_in_playlist(self) -> Outcome:
        return self._step(1)

    def previous_in_playlist(self) -> Outcome:
        return self._step(-1)

    def _step(self, delta: int) -> Outcome:
        with self.store.transaction():
            rounds = self.store.get_state()['rounds']
            active = rounds.get('activePlaylist')
            if not active:
                return Outcome.failure(PlaylistError('No active playlist'))
            playlist = self._find_playlist(rounds, active.get('id'))
            if playlist is None:
                return Outcome.failure(PlaylistError('Active playlist no longer exists'))
            index = int(active.get('currentIndex') or 0) + delta
            if not 0 <= index < len(playlist.get('rounds') or []):
                return Outcome.failure(PlaylistError(f"Playlist position {index} is out of range"))
            return self._play(rounds, playlist, index)

    @staticmethod
    def _find_playlist(rounds: Dict[str, Any], playlist_id) -> Optional[Dict[str, Any]]:
        return next((p for p in rounds.get('playlists') or [] if p.get('id') == playlist_id), None)

    def _play(self, rounds: Dict[str, Any], playlist: Dict[str, Any], index: int) -> Outcome:
        if rounds.get('gameStatus') == 'finished':
            logger.warning(f"[playlist-rejected] id={playlist['id']} game already finished")
            return Outcome.failure(GameFinishedError('Game already finished; reset it first'))
        template = playlist['rounds'][index]
        current = normalize_round_config(template.get('config') or {}, len(rounds.get('history') or []) + 1)
        if not validate_round_config(current):
            return Outcome.failure(InvalidRoundConfigError(f"Playlist round {index} is invalid"))
        self.store.update({'rounds': {
            'current': current,
            'isBetweenRounds': False,
            'activePlaylist': {'id': playlist['id'], 'currentIndex': index},
        }})
        logger.info(f"[playlist] id={playlist['id']} index={index} number={current['number']}")
        return Outcome.success(current)
