import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///quizroom.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [o for o in os.environ.get('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',') if o]
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Scoring
    POINTS_PER_CORRECT = int(os.environ.get('POINTS_PER_CORRECT', '10'))
    BONUS_MULTIPLIER = int(os.environ.get('BONUS_MULTIPLIER', '2'))
    MAX_BONUSES = int(os.environ.get('MAX_BONUSES', '3'))
    # Advisory per-question timer sent to clients (seconds)
    QUESTION_DURATION_SEC = int(os.environ.get('QUESTION_DURATION_SEC', '20'))
    # Presence: sweep interval and silence threshold (seconds)
    PRESENCE_SWEEP_SEC = int(os.environ.get('PRESENCE_SWEEP_SEC', '10'))
    PRESENCE_TIMEOUT_SEC = int(os.environ.get('PRESENCE_TIMEOUT_SEC', '15'))
    # Live score flush interval (seconds)
    SCORE_FLUSH_SEC = int(os.environ.get('SCORE_FLUSH_SEC', '30'))
    # Live sessions with no intents for this long are evicted after a flush (seconds)
    SESSION_IDLE_SEC = int(os.environ.get('SESSION_IDLE_SEC', '3600'))
    # Background loops are off under TESTING unless this is set
    ENABLE_BACKGROUND_TASKS_IN_TESTS = False
