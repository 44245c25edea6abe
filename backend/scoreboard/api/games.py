from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from scoreboard.services.games.records import create_game, get_game, update_game, delete_game


games = Blueprint('games', __name__)


@games.route('', methods=['POST'])
@login_required
def post_game():
    game = create_game(request.get_json(silent=True), current_user)
    return jsonify({'success': True, 'game': game.to_dict()}), 201


@games.route('/<int:game_id>', methods=['GET'])
def get_game_record(game_id):
    return jsonify({'success': True, 'game': get_game(game_id).to_dict()})


@games.route('/<int:game_id>', methods=['PUT'])
@login_required
def put_game(game_id):
    """Edit a game; every rating containing it is recomputed."""
    game = update_game(game_id, request.get_json(silent=True), current_user)
    return jsonify({'success': True, 'game': game.to_dict()})


@games.route('/<int:game_id>', methods=['DELETE'])
@login_required
def remove_game_record(game_id):
    rating_ids = delete_game(game_id, current_user)
    return jsonify({'success': True, 'recomputed_ratings': rating_ids})
