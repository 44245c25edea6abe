from sqlalchemy.exc import SQLAlchemyError

from scoreboard import db, socketio
from scoreboard.models import Rating
from scoreboard.services.ratings import recompute as engine
from scoreboard.services.ratings.reconcile import reconcile_stale_ratings, start_reconcile_worker


def test_failed_recompute_is_repaired_by_reconcile(flask_app, owner_client, make_players, make_game, make_rating, monkeypatch):
    (a,) = make_players('A')
    rating_id = make_rating(owner_client)
    gid = make_game('civilians_win', [(a, 'sheriff', '0.5')])

    def boom(game_ids, batch_size):
        raise SQLAlchemyError('connection reset')

    monkeypatch.setattr(engine, '_load_seats', boom)
    res = owner_client.post(f'/api/ratings/{rating_id}/games', json={'game_id': gid})
    assert res.status_code == 500
    assert res.get_json()['error'] == 'Failed to recompute rating results'

    payload = owner_client.get(f'/api/ratings/{rating_id}').get_json()
    # membership committed, results untouched and flagged
    assert [g['id'] for g in payload['games']] == [gid]
    assert payload['results'] == []
    assert payload['rating']['results_stale'] is True

    monkeypatch.undo()
    with flask_app.app_context():
        assert reconcile_stale_ratings() == [rating_id]
        assert db.session.get(Rating, rating_id).results_stale is False
        assert reconcile_stale_ratings() == []
        db.session.remove()

    results = owner_client.get(f'/api/ratings/{rating_id}').get_json()['results']
    assert results[0]['points'] == 1.5
    assert results[0]['sheriff_games'] == 1


def test_reconcile_cli(flask_app, owner_client, make_rating):
    rating_id = make_rating(owner_client)
    with flask_app.app_context():
        db.session.get(Rating, rating_id).results_stale = True
        db.session.commit()
        db.session.remove()
    result = flask_app.test_cli_runner().invoke(args=['ratings-reconcile'])
    assert f'[{rating_id}]' in result.output


def test_worker_not_started_in_tests(flask_app, monkeypatch):
    started = []
    monkeypatch.setattr(socketio, 'start_background_task',
                        lambda *args, **kwargs: started.append(args))
    flask_app.config['RECONCILE_INTERVAL_SEC'] = 5
    start_reconcile_worker(flask_app)
    assert started == []
