from datetime import datetime, timezone

from flask import current_app

from scoreboard import db
from scoreboard.models import Club, Rating
from scoreboard.services.errors import ValidationError, NotFound
from .access import get_owned_rating
from .recompute import rating_locks

_EDITABLE = ('name', 'description', 'club_id', 'start_date', 'end_date', 'is_active')


def parse_date(value, field):
    if value in (None, ''):
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be an ISO date')
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'{field} must be an ISO date')
    return _aware(parsed)


def _club_id(value):
    if value in (None, ''):
        return None
    if isinstance(value, bool) or not isinstance(value, (int, str)) or not str(value).isdigit():
        raise ValidationError('club_id must be an integer')
    club = Club.query.filter_by(id=int(value)).first()
    if not club:
        raise NotFound('Club not found')
    return club.id


def _aware(value):
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _check_range(start, end):
    start, end = _aware(start), _aware(end)
    if start and end and end < start:
        raise ValidationError('end_date must not be before start_date')


def create_rating(data, principal) -> Rating:
    data = data or {}
    name = (data.get('name') or '').strip() if isinstance(data.get('name'), str) else ''
    if not name:
        raise ValidationError('Rating name is required')
    start = parse_date(data.get('start_date'), 'start_date')
    end = parse_date(data.get('end_date'), 'end_date')
    _check_range(start, end)
    rating = Rating(
        name=name,
        description=data.get('description'),
        owner_id=principal.id,
        club_id=_club_id(data.get('club_id')),
        start_date=start,
        end_date=end,
    )
    db.session.add(rating)
    db.session.commit()
    current_app.logger.info(f"[rating-create] rating={rating.id} owner={principal.id}")
    return rating


def update_rating(rating_id: int, data, principal) -> Rating:
    data = data or {}
    rating = get_owned_rating(rating_id, principal)
    changes = {k: data[k] for k in _EDITABLE if k in data}
    if 'name' in changes:
        name = changes['name'].strip() if isinstance(changes['name'], str) else ''
        if not name:
            raise ValidationError('Rating name is required')
        rating.name = name
    if 'description' in changes:
        rating.description = changes['description']
    if 'club_id' in changes:
        rating.club_id = _club_id(changes['club_id'])
    if 'start_date' in changes:
        rating.start_date = parse_date(changes['start_date'], 'start_date')
    if 'end_date' in changes:
        rating.end_date = parse_date(changes['end_date'], 'end_date')
    if 'is_active' in changes:
        if not isinstance(changes['is_active'], bool):
            raise ValidationError('is_active must be a boolean')
        rating.is_active = changes['is_active']
    _check_range(rating.start_date, rating.end_date)
    rating.updated_at = datetime.now(timezone.utc)
    db.session.add(rating)
    db.session.commit()
    return rating


def delete_rating(rating_id: int, principal, message=None) -> None:
    """Delete a rating together with its memberships and results."""
    with rating_locks.hold(rating_id):
        rating = get_owned_rating(rating_id, principal, message)
        db.session.delete(rating)
        db.session.commit()
    rating_locks.discard(rating_id)
    current_app.logger.info(f"[rating-delete] rating={rating_id}")
