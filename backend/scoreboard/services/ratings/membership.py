import re
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from scoreboard import db
from scoreboard.models import Game, RatingGame
from scoreboard.services.errors import ValidationError
from .access import get_owned_rating
from .recompute import rating_locks, recompute_rating


# Primary keys are 32-bit INTEGER columns
MAX_ID = 2 ** 31 - 1

_ID_TEXT = re.compile(r'[0-9]+', re.ASCII)


def parse_positive_id(value: Any) -> Optional[int]:
    """Return a positive int that fits an id column, or None if ``value``
    cannot be one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and _ID_TEXT.fullmatch(value.strip()):
        parsed = int(value.strip())
    else:
        return None
    return parsed if 0 < parsed <= MAX_ID else None


def collect_game_ids(data) -> List[Any]:
    """Raw candidate ids from ``{game_id}`` or ``{game_ids: [...]}``."""
    data = data if isinstance(data, dict) else {}
    game_ids = data.get('game_ids')
    if isinstance(game_ids, list) and game_ids:
        return game_ids
    game_id = data.get('game_id')
    if game_id is None or game_id == '' or isinstance(game_id, (list, dict)):
        raise ValidationError('Game ID is required')
    return [game_id]


def _plan_additions(rating_id: int, raw_ids: List[Any]):
    added: List[int] = []
    skipped: List[Dict[str, Any]] = []
    seen = set()
    candidates = []
    for raw in raw_ids:
        gid = parse_positive_id(raw)
        if gid is None:
            skipped.append({'id': raw, 'reason': 'invalid_id'})
            continue
        if gid in seen:
            skipped.append({'id': gid, 'reason': 'duplicate'})
            continue
        seen.add(gid)
        candidates.append(gid)

    if candidates:
        # Shared row locks: a concurrent game delete waits for this commit
        existing = {
            gid for (gid,) in db.session.query(Game.id)
            .filter(Game.id.in_(candidates))
            .with_for_update(read=True)
            .all()
        }
        members = {
            gid for (gid,) in db.session.query(RatingGame.game_id)
            .filter(RatingGame.rating_id == rating_id, RatingGame.game_id.in_(candidates))
            .all()
        }
    else:
        existing, members = set(), set()

    for gid in candidates:
        if gid not in existing:
            skipped.append({'id': gid, 'reason': 'not_found'})
        elif gid in members:
            skipped.append({'id': gid, 'reason': 'already_member'})
        else:
            added.append(gid)
    return added, skipped


def add_games(rating_id: int, raw_ids: List[Any], principal) -> Dict[str, list]:
    """Add games to a rating. Owner only; partial success per id.

    Every id that cannot be added lands in ``skipped`` with a reason
    (``invalid_id``, ``duplicate``, ``not_found``, ``already_member``).
    The rating is recomputed once if anything was added.
    """
    with rating_locks.hold(rating_id):
        rating = get_owned_rating(rating_id, principal)
        # A second attempt only happens when another process inserted one of
        # the same memberships between our read and our commit.
        for attempt in range(2):
            added, skipped = _plan_additions(rating.id, raw_ids)
            if not added:
                break
            for gid in added:
                db.session.add(RatingGame(rating_id=rating.id, game_id=gid))
            try:
                db.session.commit()
                break
            except IntegrityError:
                db.session.rollback()
                if attempt:
                    raise
                current_app.logger.warning(f"[membership-add-retry] rating={rating_id} concurrent insert")

        current_app.logger.info(f"[membership-add] rating={rating_id} added={added} skipped={len(skipped)}")
        if added:
            recompute_rating(rating_id)
    return {'added': added, 'skipped': skipped}


def remove_game(rating_id: int, raw_game_id: Any, principal) -> bool:
    """Remove a game from a rating. Owner only; removing a non-member is a no-op.

    The rating is recomputed in either case. Returns whether a row was deleted.
    """
    game_id = parse_positive_id(raw_game_id)
    if game_id is None:
        raise ValidationError('Game ID is required')
    with rating_locks.hold(rating_id):
        get_owned_rating(rating_id, principal)
        deleted = RatingGame.query.filter_by(rating_id=rating_id, game_id=game_id).delete(synchronize_session=False)
        db.session.commit()
        current_app.logger.info(f"[membership-remove] rating={rating_id} game={game_id} deleted={deleted}")
        recompute_rating(rating_id)
    return bool(deleted)
