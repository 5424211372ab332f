from quizroom import db, bcrypt
from flask_login import UserMixin
from datetime import datetime
import json
import uuid

STATUS_WAITING = 'waiting'
STATUS_IN_PROGRESS = 'in_progress'
STATUS_FINISHED = 'finished'


def generate_id():
    return str(uuid.uuid4())


class Account(UserMixin, db.Model):
    __tablename__ = 'account'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    theme = db.Column(db.String(64), default='Alliance', nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'theme': self.theme,
        }


class Quiz(db.Model):
    __tablename__ = 'quiz'
    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    creator_id = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=False)
    questions_json = db.Column('questions', db.Text, nullable=False)  # JSON-encoded list of questions
    category = db.Column(db.String(64), nullable=True)
    difficulty = db.Column(db.String(32), nullable=True)

    @property
    def questions(self):
        try:
            return json.loads(self.questions_json or '[]')
        except ValueError:
            return []

    @questions.setter
    def questions(self, value):
        self.questions_json = json.dumps(list(value or []))

    def to_dict(self, include_questions=True):
        data = {
            'id': self.id,
            'creator_id': self.creator_id,
            'category': self.category,
            'difficulty': self.difficulty,
            'question_count': len(self.questions),
        }
        if include_questions:
            data['questions'] = self.questions
        return data


class QuizSession(db.Model):
    __tablename__ = 'quiz_session'
    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    quiz_id = db.Column(db.String(36), db.ForeignKey('quiz.id'), nullable=False)
    creator_id = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=False)
    status = db.Column(db.String(32), default=STATUS_WAITING, nullable=False)  # waiting, in_progress, finished
    current_question = db.Column(db.Integer, default=0, nullable=False)
    quiz = db.relationship('Quiz')

    def to_dict(self):
        return {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'creator_id': self.creator_id,
            'status': self.status,
            'current_question': self.current_question,
        }


class RosterMember(db.Model):
    __tablename__ = 'roster_member'
    session_id = db.Column(db.String(36), db.ForeignKey('quiz_session.id'), primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey('account.id'), primary_key=True)
    account = db.relationship('Account')


class Score(db.Model):
    __tablename__ = 'score'
    session_id = db.Column(db.String(36), db.ForeignKey('quiz_session.id'), primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey('account.id'), primary_key=True)
    score = db.Column(db.Integer, default=0, nullable=False)
    correct_answers = db.Column(db.Integer, default=0, nullable=False)
    time_taken = db.Column(db.Integer, default=0, nullable=False)


class BonusState(db.Model):
    __tablename__ = 'bonus_state'
    session_id = db.Column(db.String(36), db.ForeignKey('quiz_session.id'), primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey('account.id'), primary_key=True)
    consumed = db.Column(db.Integer, default=0, nullable=False)
    armed = db.Column(db.Boolean, default=False, nullable=False)


class ActionLog(db.Model):
    __tablename__ = 'action_log'
    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=True)
    action = db.Column(db.String(64), nullable=False)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
