import uuid
from functools import wraps

from flask import Blueprint, current_app, g, jsonify, request
from flask_login import login_required

from improvboard import get_gateway
from improvboard.errors import InvalidPayloadError
from improvboard.interop.records import load_category_map, save_category_map
from improvboard.interop.tokens import sign_interop_token, verify_interop_token

interop_api = Blueprint('interop_api', __name__)


def _bearer_token():
    header = request.headers.get('Authorization', '')
    parts = header.split(' ')
    if len(parts) == 2 and parts[0].lower() == 'bearer':
        return parts[1]
    return None


def require_interop_token(view):
    """Resolve the pairing token into `g.interop`; 401 when auth is on and it is bad."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = _bearer_token()
        payload = None
        if token:
            payload = verify_interop_token(
                current_app.config['SECRET_KEY'],
                token,
                max_age=current_app.config.get('INTEROP_TOKEN_MAX_AGE_SEC'),
            )
        if current_app.config.get('INTEROP_AUTH_REQUIRED', True):
            if not token:
                return jsonify({'ok': False, 'error': 'Missing bearer token'}), 401
            if payload is None:
                return jsonify({'ok': False, 'error': 'Invalid token'}), 401
        g.interop = payload or {}
        return view(*args, **kwargs)
    return wrapper


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _errors(outcome):
    return getattr(outcome.error, 'errors', None) or [outcome.message]


@interop_api.route('/health', methods=['GET'])
def health():
    return jsonify({'ok': True, 'service': 'mon-pacing-interop'})


@interop_api.route('/qr', methods=['POST'])
@login_required
def pairing_payload():
    data = _json_body()
    match_id = data.get('matchId')
    if not isinstance(match_id, str) or not match_id:
        match_id = f"match_{uuid.uuid4().hex[:8]}"
    token = sign_interop_token(current_app.config['SECRET_KEY'], {'matchId': match_id, 'scope': 'monpacing'})
    origin = data.get('baseUrl') or current_app.config.get('PUBLIC_URL') or request.host_url
    url = f"{origin.rstrip('/')}/api/interop/mon-pacing"
    current_app.logger.info(f"[interop-pair] match={match_id}")
    return jsonify({'url': url, 'id': match_id, 'token': token})


@interop_api.route('/test', methods=['POST'])
@require_interop_token
def test_token():
    return jsonify({'ok': True, 'matchId': g.interop.get('matchId')})


@interop_api.route('/plan', methods=['POST'])
@require_interop_token
def import_plan():
    body = request.get_json(silent=True)
    bound = g.interop.get('matchId')
    if isinstance(body, dict) and body.get('matchId') and bound and body['matchId'] != bound:
        return jsonify({'ok': False, 'errors': ['matchId does not match token']}), 400
    outcome = get_gateway().import_plan(body, match_id=bound)
    if not outcome:
        return jsonify({'ok': False, 'errors': _errors(outcome)}), 400
    return jsonify({'ok': True, **outcome.value})


@interop_api.route('/plan', methods=['GET'])
@require_interop_token
def export_plan():
    return jsonify(get_gateway().export_plan())


@interop_api.route('/event', methods=['POST'])
@require_interop_token
def board_event():
    outcome = get_gateway().handle_event(request.get_json(silent=True))
    if not outcome and isinstance(outcome.error, InvalidPayloadError):
        return jsonify({'ok': False, 'errors': _errors(outcome)}), 400
    return jsonify({'ok': bool(outcome), 'error': outcome.message})


@interop_api.route('/matches/<match_id>/event', methods=['POST'])
@require_interop_token
def match_event(match_id):
    bound = g.interop.get('matchId')
    if bound and bound != match_id:
        return jsonify({'ok': False, 'errors': ['matchId does not match token']}), 400
    outcome = get_gateway().handle_match_event(match_id, request.get_json(silent=True))
    if not outcome:
        return jsonify({'ok': False, 'errors': _errors(outcome)}), 400
    return jsonify({'ok': True, 'result': outcome.value})


@interop_api.route('/lock', methods=['POST'])
@require_interop_token
def lock():
    data = _json_body()
    outcome = get_gateway().lock(bool(data.get('locked')))
    return jsonify({'ok': bool(outcome), 'locked': outcome.value['locked']})


@interop_api.route('/category-map', methods=['GET'])
@require_interop_token
def get_category_map():
    return jsonify({'ok': True, 'map': load_category_map(current_app._get_current_object())})


@interop_api.route('/category-map', methods=['PUT'])
@require_interop_token
def put_category_map():
    mapping = _json_body().get('map')
    if not isinstance(mapping, dict):
        return jsonify({'ok': False, 'error': 'map must be an object'}), 400
    saved = save_category_map(current_app._get_current_object(), mapping)
    return jsonify({'ok': True, 'map': saved})
