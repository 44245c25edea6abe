import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from scoreboard import db, socketio
from scoreboard.models import Game, Participation, Rating, RatingGame, RatingResult
from scoreboard.services.errors import NotFound, RecomputeFailed
from .outcomes import CIVILIAN_SIDE, is_win
from .points import parse_points

CENT = Decimal('0.01')
# Largest value rating_result.points NUMERIC(10, 2) holds
POINTS_MAX = Decimal('99999999.99')


class RatingLocks:
    """Registry of one re-entrant lock per rating id.

    Holding the lock for a rating serializes every recompute (and every
    membership change made under it) for that rating only.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.RLock] = {}

    def get(self, rating_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(rating_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[rating_id] = lock
            return lock

    @contextmanager
    def hold(self, rating_id: int) -> Iterator[None]:
        lock = self.get(rating_id)
        with lock:
            yield

    def discard(self, rating_id: int) -> None:
        with self._guard:
            self._locks.pop(rating_id, None)


rating_locks = RatingLocks()


@dataclass
class PlayerTotals:
    points: Decimal = Decimal('0')
    games_played: int = 0
    wins: int = 0
    civilian_wins: int = 0
    mafia_wins: int = 0
    don_games: int = 0
    sheriff_games: int = 0
    first_outs: int = 0  # reserved, nothing feeds it yet

    def add_seat(self, role: str, outcome, bonus: Decimal) -> None:
        won = is_win(role, outcome)
        self.games_played += 1
        self.points += bonus + (1 if won else 0)
        if won:
            self.wins += 1
            if role in CIVILIAN_SIDE:
                self.civilian_wins += 1
            else:
                self.mafia_wins += 1
        if role == 'don':
            self.don_games += 1
        elif role == 'sheriff':
            self.sheriff_games += 1


def _chunks(items: List[int], size: int) -> Iterator[List[int]]:
    size = max(1, int(size or 1))
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _load_seats(game_ids: List[int], batch_size: int) -> Iterator[Tuple]:
    """Yield (game_id, player_id, role, raw_bonus, outcome) for every seat."""
    for chunk in _chunks(game_ids, batch_size):
        rows = (
            db.session.query(
                Participation.game_id,
                Participation.player_id,
                Participation.role,
                Participation.raw_bonus,
                Game.outcome,
            )
            .join(Game, Game.id == Participation.game_id)
            .filter(Participation.game_id.in_(chunk))
            .order_by(Participation.game_id, Participation.slot_number)
            .all()
        )
        for row in rows:
            yield tuple(row)


def accumulate(seats: Iterable[Tuple], rating_id=None) -> Dict[int, PlayerTotals]:
    """Fold seats into per-player totals.

    ``seats`` yields (game_id, player_id, role, raw_bonus, outcome).
    """
    log_degraded = bool(current_app.config.get('LOG_POINTS_DEGRADATION', True))
    totals: Dict[int, PlayerTotals] = {}
    for game_id, player_id, role, raw_bonus, outcome in seats:
        bonus, degraded = parse_points(raw_bonus)
        if degraded and log_degraded:
            current_app.logger.warning(
                f"[points-degraded] rating={rating_id} game={game_id} player={player_id} raw={raw_bonus!r} value={bonus}"
            )
        totals.setdefault(player_id, PlayerTotals()).add_seat(role, outcome, bonus)
    return totals


def _storable_points(points: Decimal, rating_id, player_id) -> Decimal:
    value = points.quantize(CENT)
    if abs(value) > POINTS_MAX:
        current_app.logger.warning(f"[points-clamped] rating={rating_id} player={player_id} total={value}")
        value = POINTS_MAX.copy_sign(value)
    return value


def _notify(rating_id: int) -> None:
    try:
        socketio.emit('rating_results_updated', {'rating_id': rating_id}, to=f"rating:{rating_id}", namespace='/ws')
    except Exception as exc:
        current_app.logger.warning(f"[notify-failed] rating={rating_id} error={exc}")


def _mark_stale(rating_id: int) -> None:
    try:
        Rating.query.filter_by(id=rating_id).update({'results_stale': True}, synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[recompute-stale-flag-failed] rating={rating_id} error={exc}")


def recompute_rating(rating_id: int) -> int:
    """Rebuild every RatingResult row of a rating from its current membership.

    Membership and seats are read when this runs, never from a snapshot taken
    by the caller. Old rows are deleted and new rows inserted in a single
    transaction, so a reader sees either the previous result set or the new
    one. On a store failure the transaction is rolled back, the rating is
    flagged ``results_stale`` and ``RecomputeFailed`` is raised.

    Returns the number of result rows written.
    """
    batch_size = current_app.config.get('RECOMPUTE_BATCH_SIZE', 500)
    with rating_locks.hold(rating_id):
        stage = 'load_membership'
        try:
            rating = (
                Rating.query.filter_by(id=rating_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
            if rating is None:
                db.session.rollback()
                raise NotFound('Rating not found')
            game_ids = [
                gid for (gid,) in db.session.query(RatingGame.game_id)
                .filter(RatingGame.rating_id == rating_id)
                .order_by(RatingGame.game_id)
                .all()
            ]

            stage = 'load_participations'
            totals = accumulate(_load_seats(game_ids, batch_size), rating_id=rating_id) if game_ids else {}

            stage = 'replace_results'
            RatingResult.query.filter_by(rating_id=rating_id).delete(synchronize_session=False)
            for player_id in sorted(totals):
                t = totals[player_id]
                db.session.add(RatingResult(
                    rating_id=rating_id,
                    player_id=player_id,
                    points=_storable_points(t.points, rating_id, player_id),
                    games_played=t.games_played,
                    wins=t.wins,
                    civilian_wins=t.civilian_wins,
                    mafia_wins=t.mafia_wins,
                    don_games=t.don_games,
                    sheriff_games=t.sheriff_games,
                    first_outs=t.first_outs,
                ))
            rating.results_stale = False
            rating.results_updated_at = datetime.now(timezone.utc)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error(f"[recompute-failed] rating={rating_id} stage={stage} error={exc}")
            _mark_stale(rating_id)
            raise RecomputeFailed(rating_id, stage) from exc

        current_app.logger.info(f"[recompute] rating={rating_id} games={len(game_ids)} players={len(totals)}")

    _notify(rating_id)
    return len(totals)


def recompute_many(rating_ids: Iterable[int]) -> List[int]:
    """Recompute several ratings one after another; returns ids that failed."""
    failed = []
    for rid in sorted(set(rating_ids)):
        try:
            recompute_rating(rid)
        except (RecomputeFailed, NotFound):
            failed.append(rid)
    return failed
