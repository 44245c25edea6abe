import os
import sys
import pytest

# Ensure the backend root (containing the `scoreboard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from scoreboard import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    RECOMPUTE_BATCH_SIZE = 500
    RECONCILE_INTERVAL_SEC = 0
    LOG_POINTS_DEGRADATION = True


@pytest.fixture()
def flask_app():
    # No app context stays pushed while tests run: every request gets its own
    # context, so flask.g (and the logged-in user cached there) is per request.
    # The in-memory SQLite database lives on one shared connection.
    application = create_app(TestConfig)
    with application.app_context():
        import scoreboard.models  # noqa: F401
        db.create_all()
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


def _login_client(flask_app, username):
    test_client = flask_app.test_client()
    res = test_client.post('/users/add', json={'username': username, 'password': 'password'})
    assert res.status_code == 201
    res = test_client.post('/login', json={'username': username, 'password': 'password'})
    assert res.status_code == 200
    test_client.user_id = res.get_json()['user']['id']
    return test_client


@pytest.fixture()
def owner_client(flask_app):
    return _login_client(flask_app, 'owner')


@pytest.fixture()
def other_client(flask_app):
    return _login_client(flask_app, 'intruder')


@pytest.fixture()
def make_players(flask_app):
    from scoreboard.models import Player

    def _make(*names):
        with flask_app.app_context():
            players = [Player(name=name) for name in names]
            db.session.add_all(players)
            db.session.commit()
            ids = [p.id for p in players]
            db.session.remove()
        return ids
    return _make


@pytest.fixture()
def make_game(flask_app):
    """Insert a game directly. ``seats`` is a list of (player_id, role,
    raw_bonus) tuples; slots are numbered in order."""
    from scoreboard.models import Game, Participation

    def _make(outcome, seats, created_by_id=None):
        with flask_app.app_context():
            game = Game(game_type='classic_10', outcome=outcome, created_by_id=created_by_id)
            for slot, (player_id, role, raw_bonus) in enumerate(seats, start=1):
                game.participations.append(Participation(
                    player_id=player_id, role=role, slot_number=slot, raw_bonus=raw_bonus,
                ))
            db.session.add(game)
            db.session.commit()
            game_id = game.id
            db.session.remove()
        return game_id
    return _make


@pytest.fixture()
def make_rating():
    def _make(test_client, name='League'):
        res = test_client.post('/api/ratings', json={'name': name})
        assert res.status_code == 201
        return res.get_json()['rating']['id']
    return _make


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
