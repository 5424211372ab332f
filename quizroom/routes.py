from flask import Blueprint, current_app, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from quizroom import db
from quizroom.models import Account

main = Blueprint('main', __name__)


def _audit(account_id, action):
    current_app.extensions['live'].store.append_action_log(account_id, action)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the quizroom server!'})

@main.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    if not username or not password:
        return jsonify({'error': 'Missing username or password'}), 400

    if Account.query.filter_by(username=username).first():
        return jsonify({'error': 'Username already exists'}), 400

    account = Account(username=username)
    account.set_password(password)
    db.session.add(account)
    db.session.commit()
    _audit(account.id, 'register')

    return jsonify(account.to_dict()), 201

@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    account = Account.query.filter_by(username=data.get('username')).first()
    if account and account.check_password(data.get('password') or ''):
        login_user(account, remember=True)
        _audit(account.id, 'login')
        return jsonify({'message': 'Logged in successfully.', 'account': account.to_dict()})
    return jsonify({'error': 'Invalid username or password'}), 401

@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})

@main.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify(current_user.to_dict())

@main.route('/me/theme', methods=['PUT'])
@login_required
def update_theme():
    data = request.get_json(silent=True) or {}
    theme = (data.get('theme') or '').strip()
    if not theme:
        return jsonify({'error': 'Theme is required'}), 400
    account = current_user._get_current_object()
    account.theme = theme
    db.session.add(account)
    db.session.commit()
    _audit(current_user.id, 'update_theme')
    return jsonify({'message': 'Theme updated', 'theme': theme})
