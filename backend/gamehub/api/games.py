import json

from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from gamehub import get_hub
from gamehub.games import GameError
from gamehub.models import MatchResult


games = Blueprint('games', __name__)


@games.errorhandler(GameError)
def handle_game_error(exc):
    return jsonify(exc.to_dict()), exc.http_status


@games.route('/', methods=['GET'])
@login_required
def list_games():
    """Directory listing, optionally filtered by game_type and status."""
    game_type = request.args.get('game_type') or None
    status = request.args.get('status') or None
    found = get_hub().manager.list_games(game_type=game_type, status=status)
    return jsonify([g.to_dict() for g in found])


@games.route('/create', methods=['POST'])
@login_required
def create_game():
    """
    Creates a new game session and seats the current user as its first player.
    """
    data = request.get_json(silent=True) or {}
    game = get_hub().manager.create_game(data.get('game_type'), current_user.username)
    current_app.logger.info(f"[create] game={game.id} type={game.game_type.value} player={current_user.username}")
    return jsonify(game.to_dict()), 201


@games.route('/history', methods=['GET'])
@login_required
def get_history():
    """
    Returns the finished matches the current user took part in.
    """
    # Match the JSON-encoded name; autoescape keeps % and _ literal
    needle = json.dumps(current_user.username)
    results = (
        MatchResult.query
        .filter(MatchResult.players.contains(needle, autoescape=True))
        .order_by(MatchResult.finished_at.desc(), MatchResult.id.desc())
        .limit(50)
        .all()
    )
    return jsonify([r.to_dict() for r in results])


@games.route('/<string:game_id>', methods=['GET'])
@login_required
def get_game_state(game_id):
    game = get_hub().manager.get_game(game_id.upper())
    return jsonify(game.to_dict())


@games.route('/<string:game_id>/join', methods=['POST'])
@login_required
def join_game(game_id):
    """
    Seats the current user in a waiting game. Joining a game you are already
    in returns its current state.
    """
    game, _ = get_hub().manager.join_game(game_id.upper(), current_user.username)
    return jsonify(game.to_dict()), 200


@games.route('/<string:game_id>/leave', methods=['POST'])
@login_required
def leave_game(game_id):
    """
    Removes the current user from a game. Leaving a game in progress forfeits it.
    """
    game = get_hub().manager.leave_game(game_id.upper(), current_user.username)
    return jsonify(game.to_dict()), 200
