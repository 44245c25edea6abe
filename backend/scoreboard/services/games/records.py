from contextlib import ExitStack
from typing import List

from flask import current_app

from scoreboard import db
from scoreboard.models import Game, Participation, Player, RatingGame, GAME_TYPES, OUTCOMES, ROLES
from scoreboard.services.errors import ValidationError, NotFound, Forbidden
from scoreboard.services.ratings.membership import MAX_ID, parse_positive_id
from scoreboard.services.ratings.recompute import rating_locks, recompute_many


def _int_field(value, field, minimum):
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer')
    try:
        parsed = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f'{field} must be an integer')
    if parsed < minimum:
        raise ValidationError(f'{field} must be at least {minimum}')
    if parsed > MAX_ID:
        raise ValidationError(f'{field} is too large')
    return parsed


def _parse_seats(seats) -> List[dict]:
    if not isinstance(seats, list):
        raise ValidationError('players must be a list')
    parsed = []
    slots, player_ids = set(), set()
    for seat in seats:
        if not isinstance(seat, dict):
            raise ValidationError('Each player entry must be an object')
        player_id = parse_positive_id(seat.get('player_id'))
        if player_id is None:
            raise ValidationError('player_id is required for every seat')
        role = seat.get('role')
        if role not in ROLES:
            raise ValidationError(f'Unknown role: {role}')
        slot = _int_field(seat.get('slot_number'), 'slot_number', 1)
        fouls = _int_field(seat.get('fouls', 0) or 0, 'fouls', 0)
        if slot in slots:
            raise ValidationError(f'Slot {slot} is taken twice')
        if player_id in player_ids:
            raise ValidationError(f'Player {player_id} holds more than one seat')
        slots.add(slot)
        player_ids.add(player_id)
        # Kept verbatim; the ratings engine normalizes it when aggregating
        raw_bonus = seat.get('raw_bonus', seat.get('additional_points'))
        parsed.append({
            'player_id': player_id,
            'role': role,
            'slot_number': slot,
            'fouls': fouls,
            'raw_bonus': None if raw_bonus is None else str(raw_bonus),
        })

    if player_ids:
        known = {pid for (pid,) in db.session.query(Player.id).filter(Player.id.in_(player_ids)).all()}
        missing = sorted(player_ids - known)
        if missing:
            raise NotFound(f'Players not found: {missing}')
    return parsed


def _apply_fields(game: Game, data) -> None:
    if 'game_type' in data and data['game_type'] not in GAME_TYPES:
        raise ValidationError(f"Unknown game type: {data['game_type']}")
    if 'outcome' in data and data['outcome'] is not None and data['outcome'] not in OUTCOMES:
        raise ValidationError(f"Unknown outcome: {data['outcome']}")
    if 'name' in data:
        game.name = data.get('name')
    if 'game_type' in data:
        game.game_type = data['game_type']
    if 'outcome' in data:
        game.outcome = data['outcome']


def _get_game(game_id) -> Game:
    game = Game.query.filter_by(id=game_id).first()
    if not game:
        raise NotFound('Game not found')
    return game


def _get_own_game(game_id, principal) -> Game:
    game = _get_game(game_id)
    if game.created_by_id is None or game.created_by_id != principal.id:
        raise Forbidden("You don't have permission to edit this game")
    return game


def _ratings_containing(game_id) -> List[int]:
    return sorted(
        rid for (rid,) in db.session.query(RatingGame.rating_id).filter(RatingGame.game_id == game_id).all()
    )


def get_game(game_id) -> Game:
    return _get_game(game_id)


def create_game(data, principal) -> Game:
    data = data if isinstance(data, dict) else {}
    game = Game(created_by_id=principal.id, game_type='classic_10')
    _apply_fields(game, data)
    seats = _parse_seats(data.get('players') or [])
    for seat in seats:
        game.participations.append(Participation(**seat))
    db.session.add(game)
    db.session.commit()
    current_app.logger.info(f"[game-create] game={game.id} seats={len(seats)}")
    return game


def _hold_ratings_of(game_id, stack: ExitStack) -> List[int]:
    """Take the lock of every rating containing the game, plus a row lock on
    the game itself, and return the rating ids.

    Locks are taken in sorted order. If membership grew while we waited, all
    of them are released and the wider set is taken again from scratch.
    """
    wanted = set(_ratings_containing(game_id))
    while True:
        held = ExitStack()
        for rid in sorted(wanted):
            held.enter_context(rating_locks.hold(rid))
        db.session.query(Game.id).filter(Game.id == game_id).with_for_update().first()
        current = set(_ratings_containing(game_id))
        if current <= wanted:
            stack.enter_context(held)
            return sorted(wanted)
        db.session.rollback()
        held.close()
        wanted |= current


def update_game(game_id, data, principal) -> Game:
    """Edit a game and recompute every rating it belongs to."""
    data = data if isinstance(data, dict) else {}
    game = _get_own_game(game_id, principal)
    seats = _parse_seats(data.get('players') or []) if 'players' in data else None
    with ExitStack() as stack:
        rating_ids = _hold_ratings_of(game.id, stack)
        _apply_fields(game, data)
        if seats is not None:
            Participation.query.filter_by(game_id=game.id).delete(synchronize_session=False)
            db.session.flush()
            db.session.expire(game, ['participations'])
            for seat in seats:
                db.session.add(Participation(game_id=game.id, **seat))
        db.session.add(game)
        db.session.commit()
        # A rating may have picked the game up after our membership read
        rating_ids = sorted(set(rating_ids) | set(_ratings_containing(game_id)))
        failed = recompute_many(rating_ids)
    if failed:
        current_app.logger.error(f"[game-update] game={game_id} ratings left stale={failed}")
    return game


def delete_game(game_id, principal) -> List[int]:
    """Delete a game with its seats and memberships, then recompute the
    ratings that contained it. Returns the affected rating ids."""
    game = _get_own_game(game_id, principal)
    with ExitStack() as stack:
        rating_ids = _hold_ratings_of(game.id, stack)
        db.session.delete(game)
        db.session.commit()
        # Memberships added after our read outlive the cascade on databases
        # without foreign key enforcement
        late = _ratings_containing(game_id)
        if late:
            RatingGame.query.filter_by(game_id=game_id).delete(synchronize_session=False)
            db.session.commit()
            rating_ids = sorted(set(rating_ids) | set(late))
        failed = recompute_many(rating_ids)
    current_app.logger.info(f"[game-delete] game={game_id} ratings={rating_ids} stale={failed}")
    return rating_ids
