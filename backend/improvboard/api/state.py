from flask import Blueprint, current_app, jsonify, request
from improvboard import get_board

state_api = Blueprint('state_api', __name__)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _failure(outcome, status=400):
    return jsonify({'success': False, 'error': outcome.message}), status


@state_api.route('/state', methods=['GET'])
def get_state():
    return jsonify(get_board().get_state())


@state_api.route('/scoring-mode', methods=['GET'])
def get_scoring_mode():
    return jsonify({'mode': get_board().get_state()['scoringMode']})


@state_api.route('/scoring-mode', methods=['POST'])
def set_scoring_mode():
    data = _json_body()
    outcome = get_board().ledger.set_scoring_mode(data.get('mode'))
    if not outcome:
        return _failure(outcome)
    return jsonify({'success': True, 'mode': outcome.value})


@state_api.route('/score/<team_id>/<action>', methods=['POST'])
def update_score(team_id, action):
    board = get_board()
    outcome = board.ledger.update_score(team_id, action)
    if not outcome:
        current_app.logger.info(f"[score-rejected] team={team_id} action={action} reason={outcome.message}")
        return _failure(outcome)
    return jsonify({'success': True, 'score': outcome.value})


@state_api.route('/state/save', methods=['POST'])
def save_state():
    outcome = get_board().save_now()
    if not outcome:
        return _failure(outcome, 500)
    return jsonify({'success': True})


@state_api.route('/backup/list', methods=['GET'])
def list_backups():
    outcome = get_board().list_backups()
    if not outcome:
        return _failure(outcome, 500)
    return jsonify({'success': True, 'backups': outcome.value})


@state_api.route('/backup/create', methods=['POST'])
def create_backup():
    data = _json_body()
    outcome = get_board().create_backup(data.get('name'))
    if not outcome:
        return _failure(outcome, 500)
    return jsonify({'success': True, 'backup': outcome.value}), 201


@state_api.route('/backup/restore', methods=['POST'])
def restore_backup():
    data = _json_body()
    backup_id = data.get('id')
    if not isinstance(backup_id, int):
        return jsonify({'success': False, 'error': 'id is required'}), 400
    outcome = get_board().restore_backup(backup_id)
    if not outcome:
        return _failure(outcome, 404)
    current_app.logger.info(f"[backup-restored] id={backup_id}")
    return jsonify({'success': True, 'state': outcome.value})
