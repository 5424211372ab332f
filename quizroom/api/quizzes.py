from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from quizroom import db
from quizroom.models import Quiz, QuizSession

quizzes = Blueprint('quizzes', __name__)


def _validate_questions(questions):
    """Return an error message for a malformed question list, else None."""
    if not isinstance(questions, list) or not questions:
        return 'At least one question is required'
    for i, q in enumerate(questions, start=1):
        if not isinstance(q, dict):
            return f'Question {i}: must be an object'
        if not str(q.get('question') or '').strip():
            return f'Question {i}: prompt is required'
        answer = q.get('correct_answer')
        if answer is None or not str(answer).strip():
            return f'Question {i}: correct_answer is required'
        options = q.get('options')
        if options is not None:
            if not isinstance(options, list) or not options:
                return f'Question {i}: options must be a non-empty list'
            if answer not in options:
                return f'Question {i}: correct_answer must match one of the options'
    return None


@quizzes.route('', methods=['POST'])
@login_required
def create_quiz():
    data = request.get_json(silent=True) or {}
    questions = data.get('questions')
    error = _validate_questions(questions)
    if error:
        return jsonify({'error': error}), 400

    quiz = Quiz(
        creator_id=current_user.id,
        category=data.get('category'),
        difficulty=data.get('difficulty'),
    )
    quiz.questions = [
        {k: q[k] for k in ('question', 'options', 'correct_answer') if k in q}
        for q in questions
    ]
    db.session.add(quiz)
    db.session.commit()
    current_app.extensions['live'].store.append_action_log(current_user.id, 'create_quiz')
    return jsonify({'quiz_id': quiz.id}), 201


@quizzes.route('', methods=['GET'])
@login_required
def list_quizzes():
    rows = Quiz.query.filter_by(creator_id=current_user.id).all()
    return jsonify([q.to_dict(include_questions=False) for q in rows])


@quizzes.route('/<string:quiz_id>', methods=['GET'])
@login_required
def get_quiz(quiz_id):
    quiz = db.session.get(Quiz, quiz_id)
    if not quiz:
        return jsonify({'error': 'Quiz not found'}), 404
    return jsonify(quiz.to_dict())


@quizzes.route('/<string:quiz_id>', methods=['DELETE'])
@login_required
def delete_quiz(quiz_id):
    quiz = db.session.get(Quiz, quiz_id)
    if not quiz:
        return jsonify({'error': 'Quiz not found'}), 404
    if quiz.creator_id != current_user.id:
        return jsonify({'error': 'You do not own this quiz'}), 403
    if QuizSession.query.filter_by(quiz_id=quiz.id).first():
        return jsonify({'error': 'Quiz has sessions and cannot be deleted'}), 409
    db.session.delete(quiz)
    db.session.commit()
    return jsonify({'message': 'Quiz deleted'})
