from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from scoreboard.services.ratings.management import create_rating, update_rating, delete_rating
from scoreboard.services.ratings.membership import add_games, remove_game, collect_game_ids
from scoreboard.services.ratings.queries import get_rating_detail, get_rating_games, list_ratings


ratings = Blueprint('ratings', __name__)


def _active_filter(value):
    if value is None:
        return None
    return value.lower() in ('1', 'true', 'yes')


@ratings.route('', methods=['GET'])
def get_ratings():
    active = _active_filter(request.args.get('active'))
    return jsonify({'success': True, 'ratings': list_ratings(active=active)})


@ratings.route('', methods=['POST'])
@login_required
def post_rating():
    rating = create_rating(request.get_json(silent=True), current_user)
    return jsonify({'success': True, 'rating': rating.to_dict()}), 201


@ratings.route('/<int:rating_id>', methods=['GET'])
def get_rating(rating_id):
    """Rating metadata, member games and results ordered by points."""
    payload = get_rating_detail(rating_id)
    return jsonify({'success': True, **payload})


@ratings.route('/<int:rating_id>', methods=['PATCH'])
@login_required
def patch_rating(rating_id):
    rating = update_rating(rating_id, request.get_json(silent=True), current_user)
    return jsonify({'success': True, 'rating': rating.to_dict()})


@ratings.route('/<int:rating_id>', methods=['DELETE'])
@login_required
def remove_rating(rating_id):
    delete_rating(rating_id, current_user, "You don't have permission to delete this rating")
    return jsonify({'success': True})


@ratings.route('/<int:rating_id>/games', methods=['GET'])
def get_games(rating_id):
    return jsonify({'success': True, 'games': get_rating_games(rating_id)})


@ratings.route('/<int:rating_id>/games', methods=['POST'])
@login_required
def post_games(rating_id):
    """Add one (``game_id``) or many (``game_ids``) games to a rating."""
    game_ids = collect_game_ids(request.get_json(silent=True))
    outcome = add_games(rating_id, game_ids, current_user)
    return jsonify({'success': True, **outcome}), 201


@ratings.route('/<int:rating_id>/games', methods=['DELETE'])
@login_required
def delete_game_from_rating(rating_id):
    game_id = request.args.get('game_id')
    if game_id is None:
        body = request.get_json(silent=True) or {}
        game_id = body.get('game_id') if isinstance(body, dict) else None
    removed = remove_game(rating_id, game_id, current_user)
    return jsonify({'success': True, 'removed': removed})
