"""Read side of ratings. Nothing here writes or triggers a recompute."""
from sqlalchemy import func

from scoreboard import db
from scoreboard.models import Game, Rating, RatingGame, RatingResult
from .access import get_rating_or_404


def member_games(rating_id: int):
    """(game, added_at) pairs for a rating, newest game first."""
    return (
        db.session.query(Game, RatingGame.added_at)
        .join(RatingGame, RatingGame.game_id == Game.id)
        .filter(RatingGame.rating_id == rating_id)
        .order_by(Game.created_at.desc(), Game.id.desc())
        .all()
    )


def sorted_results(rating_id: int):
    return (
        RatingResult.query.filter_by(rating_id=rating_id)
        .order_by(RatingResult.points.desc(), RatingResult.wins.desc(), RatingResult.player_id.asc())
        .all()
    )


def _game_payload(game, added_at):
    data = game.to_dict(include_players=False)
    data['added_to_rating_at'] = added_at.isoformat() if added_at else None
    return data


def get_rating_games(rating_id: int):
    get_rating_or_404(rating_id)
    return [_game_payload(g, added_at) for g, added_at in member_games(rating_id)]


def get_rating_detail(rating_id: int):
    rating = get_rating_or_404(rating_id)
    return {
        'rating': rating.to_dict(),
        'games': [_game_payload(g, added_at) for g, added_at in member_games(rating_id)],
        'results': [r.to_dict() for r in sorted_results(rating_id)],
    }


def list_ratings(active=None):
    game_count = (
        db.session.query(func.count(RatingGame.id))
        .filter(RatingGame.rating_id == Rating.id)
        .correlate(Rating)
        .scalar_subquery()
    )
    player_count = (
        db.session.query(func.count(RatingResult.id))
        .filter(RatingResult.rating_id == Rating.id)
        .correlate(Rating)
        .scalar_subquery()
    )
    query = db.session.query(Rating, game_count, player_count)
    if active is not None:
        query = query.filter(Rating.is_active.is_(bool(active)))
    rows = query.order_by(Rating.created_at.desc(), Rating.id.desc()).all()
    payload = []
    for rating, games, players in rows:
        data = rating.to_dict()
        data['game_count'] = int(games or 0)
        data['player_count'] = int(players or 0)
        payload.append(data)
    return payload
