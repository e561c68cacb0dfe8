import os
import sys
import pytest

# Ensure the backend root (containing the `monopay` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from monopay import create_app, db


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRES_DAYS = 7
    CORS_ORIGINS = ['http://localhost:3000']
    FRONTEND_URL = 'http://localhost:3000'
    MIN_PLAYERS = 2
    MAX_PLAYERS = 8
    DEFAULT_STARTING_BALANCE = 1500
    DEFAULT_GO_SALARY = 200
    RECENT_GAMES_LIMIT = 10
    POLL_INTERVAL_WAITING_SEC = 3
    POLL_INTERVAL_IN_PROGRESS_SEC = 5
    PASSWORD_RESET_TTL_SEC = 3600
    MAIL_SENDER = 'no-reply@monopay.test'
    MAIL_SUPPRESS_SEND = True


@pytest.fixture()
def flask_app():
    # No app context may stay pushed across test-client requests, or they
    # share `g` and the user Flask-Login caches there.
    application = create_app(TestConfig)
    with application.app_context():
        import monopay.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def app_ctx(flask_app):
    """For tests that call services directly."""
    with flask_app.app_context():
        yield flask_app


@pytest.fixture()
def make_user(flask_app):
    """Create a local account and return its id."""
    from monopay.models import User

    def _make(username, password='password123', **fields):
        with flask_app.app_context():
            user = User(username=username.lower(), **fields)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture()
def auth_headers(flask_app):
    from monopay.security import create_access_token

    def _headers(user_id):
        with flask_app.app_context():
            return {'Authorization': f'Bearer {create_access_token(user_id)}'}
    return _headers


@pytest.fixture()
def players(make_user, auth_headers):
    """Three accounts with ready-made bearer headers: alice, bob, cara."""
    out = {}
    for name in ('alice', 'bob', 'cara'):
        uid = make_user(name)
        out[name] = {'id': uid, 'headers': auth_headers(uid)}
    return out


@pytest.fixture()
def running_game(client, players):
    """Alice hosts, Bob joins and readies, Alice starts."""
    alice, bob = players['alice'], players['bob']
    game = client.post('/api/games/create', json={'name': 'Game Night', 'max_players': 4},
                       headers=alice['headers']).get_json()['game']
    client.post('/api/games/join', json={'code': game['code']}, headers=bob['headers'])
    client.post('/api/games/ready', json={'game_id': game['id']}, headers=bob['headers'])
    started = client.post('/api/games/start', json={'game_id': game['id']}, headers=alice['headers'])
    assert started.status_code == 200
    return started.get_json()['game']
