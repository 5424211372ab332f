from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import func
from quizroom import db
from quizroom.models import Account, Quiz, QuizSession, RosterMember, Score, STATUS_WAITING

sessions = Blueprint('sessions', __name__)


@sessions.route('', methods=['POST'])
@login_required
def create_session():
    """
    Creates a new live session for a quiz; the caller becomes its host.
    """
    data = request.get_json(silent=True) or {}
    quiz_id = data.get('quiz_id')
    if not quiz_id:
        return jsonify({'error': 'quiz_id is required'}), 400
    if not db.session.get(Quiz, quiz_id):
        return jsonify({'error': 'Quiz not found'}), 404

    session = QuizSession(quiz_id=quiz_id, creator_id=current_user.id, status=STATUS_WAITING, current_question=0)
    db.session.add(session)
    db.session.commit()
    current_app.extensions['live'].store.append_action_log(current_user.id, 'create_session')
    return jsonify({'session_id': session.id}), 201


@sessions.route('/<string:session_id>', methods=['GET'])
@login_required
def get_session(session_id):
    session = db.session.get(QuizSession, session_id)
    if not session:
        return jsonify({'error': 'Session not found'}), 404
    payload = session.to_dict()
    quiz = session.quiz
    payload['category'] = quiz.category if quiz else None
    payload['difficulty'] = quiz.difficulty if quiz else None
    payload['total_questions'] = len(quiz.questions) if quiz else 0
    payload['is_host'] = session.creator_id == current_user.id
    return jsonify(payload)


@sessions.route('/<string:session_id>/players', methods=['GET'])
@login_required
def get_players(session_id):
    if not db.session.get(QuizSession, session_id):
        return jsonify({'error': 'Session not found'}), 404
    rows = (
        db.session.query(Account.id, Account.username)
        .join(RosterMember, RosterMember.account_id == Account.id)
        .filter(RosterMember.session_id == session_id)
        .order_by(Account.id)
        .all()
    )
    return jsonify([{'id': r.id, 'username': r.username} for r in rows])


@sessions.route('/leaderboard/global', methods=['GET'])
def global_leaderboard():
    total = func.sum(Score.score).label('total_score')
    rows = (
        db.session.query(Account.username, total)
        .join(Score, Score.account_id == Account.id)
        .group_by(Account.id, Account.username)
        .order_by(total.desc())
        .limit(10)
        .all()
    )
    return jsonify([{'username': r.username, 'total_score': int(r.total_score or 0)} for r in rows])
