from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from quizroom.config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from quizroom.routes import main
    flask_app.register_blueprint(main)

    from quizroom.api.quizzes import quizzes
    from quizroom.api.sessions import sessions
    flask_app.register_blueprint(quizzes, url_prefix='/api/quizzes')
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    # Live session engine: state table, coordinator, presence, score flush
    from quizroom.services.live.engine import build_engine
    from quizroom.services.live.scheduler import start_background_tasks
    engine = build_engine(flask_app, socketio)
    flask_app.extensions['live'] = engine

    from quizroom.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from quizroom.models import Account

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(Account, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed accounts
            for username in ['testuser1', 'testuser2', 'testuser3']:
                account = Account(username=username)
                account.set_password('password')
                db.session.add(account)

            db.session.commit()
            click.echo('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    start_background_tasks(flask_app, socketio, engine.presence, engine.sweeper)

    return flask_app
