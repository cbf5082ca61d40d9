import os
import sys
import pytest

# Ensure the project root (containing the `wedding_quiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from wedding_quiz import create_app, db, socketio
from wedding_quiz.models import AdminLineId, Question, User
from wedding_quiz.services.quiz import clock

ADMIN_ID = 'U-admin'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    QUESTION_TIME_LIMIT_SEC = 15
    DEFAULT_QUESTION_SET = 'default'
    HEARTBEAT_INTERVAL_SEC = 30
    PRESENCE_STALE_SEC = 60
    SUBMISSION_GRACE_MS = 2000
    RANK_BONUS_POINTS = ''
    MAX_SCORE_ADJUSTMENT = 1000
    LEADERBOARD_LIMIT = 50


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import wedding_quiz.models  # noqa: F401
        db.create_all()
        db.session.add(AdminLineId(line_id=ADMIN_ID))
        db.session.commit()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


class FrozenClock:
    def __init__(self, start=1_700_000_000.0):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current += seconds


@pytest.fixture()
def frozen_clock(monkeypatch):
    fake = FrozenClock()
    monkeypatch.setattr(clock, 'now', fake)
    return fake


@pytest.fixture()
def make_question(flask_app):
    def _make(**fields):
        values = {
            'question_text': 'Where did the couple meet?',
            'correct_answer': 'B',
            'display_order': 1,
            'category': 'default',
            'points': 100,
            'time_limit': 0,
        }
        values.update(fields)
        question = Question(**values)
        db.session.add(question)
        db.session.commit()
        return question
    return _make


@pytest.fixture()
def make_user(flask_app):
    def _make(line_id, display_name=None, quiz_score=0):
        user = User(line_id=line_id, display_name=display_name or line_id, quiz_score=quiz_score)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def control(client):
    """Post a control command as the registered admin."""
    def _control(action, admin_id=ADMIN_ID, **extra):
        body = {'action': action, 'adminId': admin_id}
        body.update(extra)
        return client.post('/api/game/control', json=body)
    return _control
