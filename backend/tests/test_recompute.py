import logging
import threading
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from scoreboard import db
from scoreboard.models import Rating, RatingGame, RatingResult, User
from scoreboard.services.errors import NotFound, RecomputeFailed
from scoreboard.services.ratings import recompute as engine
from scoreboard.services.ratings.recompute import RatingLocks, recompute_rating


def _rating(name='Season'):
    owner = User.query.filter_by(username='engine-owner').first()
    if owner is None:
        owner = User(username='engine-owner')
        owner.set_password('password')
        db.session.add(owner)
    rating = Rating(name=name, owner=owner)
    db.session.add(rating)
    db.session.commit()
    return rating.id


def _link(rating_id, *game_ids):
    for gid in game_ids:
        db.session.add(RatingGame(rating_id=rating_id, game_id=gid))
    db.session.commit()


def _results(rating_id):
    rows = RatingResult.query.filter_by(rating_id=rating_id).order_by(RatingResult.player_id).all()
    return {
        r.player_id: (
            Decimal(str(r.points)), r.games_played, r.wins, r.civilian_wins,
            r.mafia_wins, r.don_games, r.sheriff_games, r.first_outs,
        )
        for r in rows
    }


@pytest.fixture()
def season(app_ctx, make_players, make_game):
    a, b = make_players('Anna', 'Boris')
    games = [
        make_game('civilians_win', [(a, 'civilian', '1.0'), (b, 'mafia', '0')]),
        make_game('mafia_win', [(a, 'don', '0,5'), (b, 'sheriff', None)]),
        make_game('draw', [(a, 'sheriff', '2'), (b, 'mafia', 'abc')]),
        make_game(None, [(a, 'civilian', '1'), (b, 'don', '-0.25')]),
    ]
    rating_id = _rating()
    _link(rating_id, *games)
    return {'rating_id': rating_id, 'a': a, 'b': b, 'games': games}


def test_empty_membership_has_no_results(app_ctx):
    rating_id = _rating()
    assert recompute_rating(rating_id) == 0
    assert _results(rating_id) == {}


def test_accumulates_points_wins_and_role_counts(season):
    assert recompute_rating(season['rating_id']) == 2
    results = _results(season['rating_id'])
    # 1.0 + win, 0.5 + win, 2 (draw), 1 (in progress)
    assert results[season['a']] == (Decimal('6.50'), 4, 2, 1, 1, 1, 1, 0)
    assert results[season['b']] == (Decimal('-0.25'), 4, 0, 0, 0, 1, 1, 0)


def test_mafia_side_win_counts_as_mafia_win(app_ctx, make_players, make_game):
    don, mafia, civ = make_players('Don', 'Mafia', 'Civ')
    gid = make_game('mafia_win', [(don, 'don', None), (mafia, 'mafia', '0.3'), (civ, 'civilian', '0.4')])
    rating_id = _rating()
    _link(rating_id, gid)
    recompute_rating(rating_id)
    results = _results(rating_id)
    assert results[don] == (Decimal('1.00'), 1, 1, 0, 1, 1, 0, 0)
    assert results[mafia] == (Decimal('1.30'), 1, 1, 0, 1, 0, 0, 0)
    assert results[civ] == (Decimal('0.40'), 1, 0, 0, 0, 0, 0, 0)


def test_recompute_is_idempotent(season):
    recompute_rating(season['rating_id'])
    first = _results(season['rating_id'])
    recompute_rating(season['rating_id'])
    assert _results(season['rating_id']) == first


def test_small_batches_give_the_same_result(season, flask_app):
    recompute_rating(season['rating_id'])
    expected = _results(season['rating_id'])
    flask_app.config['RECOMPUTE_BATCH_SIZE'] = 1
    recompute_rating(season['rating_id'])
    assert _results(season['rating_id']) == expected


def test_membership_is_read_at_execution_time(season):
    recompute_rating(season['rating_id'])
    RatingGame.query.filter_by(rating_id=season['rating_id']).delete()
    db.session.commit()
    recompute_rating(season['rating_id'])
    assert _results(season['rating_id']) == {}


def test_ratings_are_independent(season, make_game):
    other = _rating('Other')
    gid = make_game('civilians_win', [(season['b'], 'civilian', '3')])
    _link(other, gid)
    recompute_rating(season['rating_id'])
    recompute_rating(other)
    assert _results(other) == {season['b']: (Decimal('4.00'), 1, 1, 1, 0, 0, 0, 0)}
    assert _results(season['rating_id'])[season['b']][1] == 4


def test_store_failure_keeps_previous_results(season, monkeypatch):
    recompute_rating(season['rating_id'])
    before = _results(season['rating_id'])

    def boom(game_ids, batch_size):
        raise SQLAlchemyError('database went away')

    monkeypatch.setattr(engine, '_load_seats', boom)
    with pytest.raises(RecomputeFailed) as info:
        recompute_rating(season['rating_id'])
    assert info.value.stage == 'load_participations'
    assert _results(season['rating_id']) == before
    assert db.session.get(Rating, season['rating_id']).results_stale is True

    monkeypatch.undo()
    recompute_rating(season['rating_id'])
    db.session.expire_all()
    assert db.session.get(Rating, season['rating_id']).results_stale is False


def test_degraded_bonus_is_logged(season, caplog):
    with caplog.at_level(logging.WARNING):
        recompute_rating(season['rating_id'])
    assert any('[points-degraded]' in rec.getMessage() and "'abc'" in rec.getMessage() for rec in caplog.records)


def test_missing_rating_raises_not_found(app_ctx):
    with pytest.raises(NotFound):
        recompute_rating(4242)


def test_locks_are_per_rating():
    locks = RatingLocks()
    assert locks.get(1) is locks.get(1)
    assert locks.get(1) is not locks.get(2)

    acquired = {}
    with locks.hold(1):
        # Re-entrant for the holder
        with locks.hold(1):
            pass

        def worker():
            other = locks.get(2).acquire(timeout=1)
            if other:
                locks.get(2).release()
            same = locks.get(1).acquire(timeout=0.1)
            if same:
                locks.get(1).release()
            acquired['other'] = other
            acquired['same'] = same

        t = threading.Thread(target=worker)
        t.start()
        t.join()
    assert acquired == {'other': True, 'same': False}


def test_discarded_lock_is_replaced():
    locks = RatingLocks()
    first = locks.get(7)
    locks.discard(7)
    assert locks.get(7) is not first


def test_near_limit_bonus_degrades_to_zero(app_ctx, make_players, make_game):
    (a,) = make_players('Greedy')
    gid = make_game('civilians_win', [(a, 'civilian', '99999999.999')])
    rating_id = _rating()
    _link(rating_id, gid)
    assert recompute_rating(rating_id) == 1
    assert _results(rating_id)[a] == (Decimal('1.00'), 1, 1, 1, 0, 0, 0, 0)
    assert db.session.get(Rating, rating_id).results_stale is False


def test_totals_are_clamped_to_column_range(app_ctx, caplog):
    with caplog.at_level(logging.WARNING):
        assert engine._storable_points(Decimal('123456789.5'), 1, 2) == Decimal('99999999.99')
        assert engine._storable_points(Decimal('-123456789'), 1, 2) == Decimal('-99999999.99')
    assert engine._storable_points(Decimal('12.346'), 1, 2) == Decimal('12.35')
    assert any('[points-clamped]' in rec.getMessage() for rec in caplog.records)
