from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from .models import Operator

main = Blueprint('main', __name__)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@main.route('/')
def index():
    return jsonify({'service': 'improvboard', 'namespace': '/ws'})


@main.route('/health')
def health():
    return jsonify({'ok': True})


@main.route('/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = _json_body()
    operator = Operator.query.filter_by(username=data.get('username')).first()
    if operator and operator.check_password(data.get('password') or ''):
        login_user(operator)
        return jsonify({"success": True, "user": operator.to_dict()})
    return jsonify({"success": False, "message": "Invalid credentials"}), 401


@main.route('/check_login', methods=['GET', 'OPTIONS'])
def check_login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    if current_user.is_authenticated:
        return jsonify({"success": True, "user": current_user.to_dict()})
    return jsonify({"success": False}), 401


@main.route('/logout', methods=['POST', 'OPTIONS'])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})
