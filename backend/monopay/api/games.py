from flask import Blueprint, jsonify, request
from flask_login import login_required

from monopay.security import acting_user

from monopay.services.games import lifecycle, ledger

games = Blueprint('games', __name__)


@games.route('/create', methods=['POST'])
@login_required
def create_game():
    """
    Creates a new game room and seats the current user as its host.
    """
    data = request.get_json(silent=True) or {}
    game = lifecycle.create_game(
        acting_user(),
        data.get('name'),
        max_players=data.get('max_players'),
        starting_balance=data.get('starting_balance'),
        go_salary=data.get('go_salary'),
        settings=data.get('settings'),
    )
    return jsonify({
        'message': 'Game created successfully',
        'game': game.to_dict(),
    }), 201


@games.route('/join', methods=['POST'])
@login_required
def join_game():
    """
    Joins a waiting game by its 6-character code. Re-joining is a no-op.
    """
    data = request.get_json(silent=True) or {}
    game, joined = lifecycle.join_game(acting_user(), data.get('code'))
    return jsonify({
        'message': 'Joined game successfully' if joined else 'Already in this game',
        'game': game.to_dict(),
    }), 200


@games.route('/leave', methods=['POST'])
@login_required
def leave_game():
    data = request.get_json(silent=True) or {}
    lifecycle.leave_game(acting_user(), data.get('game_id'))
    return jsonify({'message': 'Left game successfully'}), 200


@games.route('/my/active', methods=['GET'])
@login_required
def get_active_game():
    """
    Returns the game the current user has not finished yet, or null.
    """
    game = lifecycle.find_active_game(acting_user().id)
    return jsonify({'game': game.to_dict() if game else None}), 200


@games.route('/<string:code>', methods=['GET'])
@login_required
def get_game(code):
    """
    Returns the full state of a game, including its transaction history.
    Clients poll this while the game is waiting or in progress.
    """
    game = lifecycle.get_game_by_code(code)
    return jsonify({'game': game.to_dict(include_transactions=True)}), 200


@games.route('/ready', methods=['POST'])
@login_required
def toggle_ready():
    data = request.get_json(silent=True) or {}
    player = lifecycle.toggle_ready(acting_user(), data.get('game_id'))
    return jsonify({
        'message': 'You are ready' if player.is_ready else 'You are not ready',
        'players': [p.to_dict() for p in player.game.players],
    }), 200


@games.route('/start', methods=['POST'])
@login_required
def start_game():
    data = request.get_json(silent=True) or {}
    game = lifecycle.start_game(acting_user(), data.get('game_id'))
    return jsonify({'message': 'Game started', 'game': game.to_dict()}), 200


@games.route('/transfer', methods=['POST'])
@login_required
def transfer():
    """
    Moves money between the current player and another player or the bank.
    """
    data = request.get_json(silent=True) or {}
    game, entry = ledger.transfer(
        acting_user(),
        data.get('game_id'),
        data.get('amount'),
        data.get('category'),
        to_player_id=data.get('to_player_id'),
        description=data.get('description'),
    )
    return jsonify({
        'message': 'Transaction successful',
        'players': [p.to_dict() for p in game.players],
        'transaction': entry.to_dict(),
    }), 200


@games.route('/end', methods=['POST'])
@login_required
def end_game():
    data = request.get_json(silent=True) or {}
    game = lifecycle.end_game(acting_user(), data.get('game_id'))
    return jsonify({'message': 'Game ended', 'game': game.to_dict()}), 200
