from scoreboard.models import Rating
from scoreboard.services.errors import NotFound, Forbidden


def is_owner(principal, rating: Rating) -> bool:
    if principal is None or not getattr(principal, 'is_authenticated', False):
        return False
    return rating.owner_id == principal.id


def get_rating_or_404(rating_id) -> Rating:
    rating = Rating.query.filter_by(id=rating_id).first()
    if not rating:
        raise NotFound('Rating not found')
    return rating


def get_owned_rating(rating_id, principal, message=None) -> Rating:
    """Load a rating and require ``principal`` to own it."""
    rating = get_rating_or_404(rating_id)
    if not is_owner(principal, rating):
        raise Forbidden(message)
    return rating
