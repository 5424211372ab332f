import os
import sys
from collections import defaultdict
from types import SimpleNamespace

import pytest

# Ensure the project root (containing the `quizroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from quizroom import create_app, db, socketio
from quizroom.config import Config
from quizroom.services.live.coordinator import SessionCoordinator
from quizroom.services.live.events import NAMESPACE, Outbound
from quizroom.services.live.state import SessionStateTable


QUESTIONS = [
    {'question': 'What is 2 + 2?', 'options': ['3', '4', '5'], 'correct_answer': '4'},
    {'question': 'Capital of France?', 'options': ['Paris', 'Rome'], 'correct_answer': 'Paris'},
]


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4


class RecordingChannel:
    """Stands in for the Socket.IO room channel in coordinator tests."""

    def __init__(self):
        self.published = []
        self.sent = []
        self.rooms = defaultdict(set)

    def subscribe(self, sid, session_id):
        if sid:
            self.rooms[session_id].add(sid)

    def unsubscribe(self, sid, session_id):
        if sid:
            self.rooms[session_id].discard(sid)

    def publish(self, session_id, event, payload):
        self.published.append((session_id, Outbound(event), payload))

    def send(self, sid, event, payload):
        if sid:
            self.sent.append((sid, Outbound(event), payload))

    def broadcasts(self, event):
        return [payload for _, name, payload in self.published if name == event]

    def sent_to(self, sid, event):
        return [payload for to, name, payload in self.sent if to == sid and name == event]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import quizroom.models  # noqa: F401
        db.create_all()
    # No app context is held while tests run so each request and socket
    # event gets its own, keeping Flask-Login's per-context user cache apart.
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def app_ctx(flask_app):
    with flask_app.app_context():
        yield flask_app
        db.session.remove()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def channel():
    return RecordingChannel()


@pytest.fixture()
def store(app_ctx):
    return app_ctx.extensions['live'].store


@pytest.fixture()
def coordinator(app_ctx, store, channel):
    return SessionCoordinator.from_config(app_ctx.config, store, SessionStateTable(), channel, logger=app_ctx.logger)


@pytest.fixture()
def seeded(app_ctx):
    """Host, two players and a waiting session over a two-question quiz."""
    from quizroom.models import Account, Quiz, QuizSession

    accounts = {}
    for name in ('host', 'alice', 'bob'):
        account = Account(username=name)
        account.set_password('password')
        db.session.add(account)
        db.session.commit()
        accounts[name] = account.id

    quiz = Quiz(creator_id=accounts['host'], category='general', difficulty='easy')
    quiz.questions = QUESTIONS
    db.session.add(quiz)
    db.session.commit()

    session = QuizSession(quiz_id=quiz.id, creator_id=accounts['host'])
    db.session.add(session)
    db.session.commit()

    return SimpleNamespace(quiz_id=quiz.id, session_id=session.id, **accounts)


def register_and_login(flask_app, username, password='password'):
    """Return a logged-in Flask test client and the account id."""
    http = flask_app.test_client()
    res = http.post('/register', json={'username': username, 'password': password})
    assert res.status_code == 201
    account_id = res.get_json()['id']
    res = http.post('/login', json={'username': username, 'password': password})
    assert res.status_code == 200
    return http, account_id


@pytest.fixture()
def login(flask_app):
    return lambda username: register_and_login(flask_app, username)


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _connect(http_client):
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=http_client,
            namespace=NAMESPACE,
        )
        clients.append(test_client)
        return test_client

    yield _connect
    for test_client in clients:
        try:
            if test_client.is_connected(NAMESPACE):
                test_client.disconnect(namespace=NAMESPACE)
        except Exception:
            pass
