from flask import Blueprint, jsonify, request
from flask_login import login_required

from monopay.security import acting_user
from monopay.services import friends as friend_service

friends = Blueprint('friends', __name__)


@friends.route('/list', methods=['GET'])
@login_required
def list_friends():
    """
    Returns the friend list plus pending requests in both directions.
    """
    user = acting_user()
    friend_rows = []
    for f in user.friends:
        row = f.summary()
        row['stats'] = {'games_played': f.games_played, 'games_won': f.games_won}
        friend_rows.append(row)
    return jsonify({
        'success': True,
        'friends': friend_rows,
        'pending_received': [r.to_received_dict() for r in user.received_requests],
        'pending_sent': [r.to_sent_dict() for r in user.sent_requests],
    })


@friends.route('/search', methods=['GET'])
@login_required
def search():
    users = friend_service.search_users(acting_user(), request.args.get('query'))
    return jsonify({'success': True, 'users': users})


@friends.route('/request', methods=['POST'])
@login_required
def send_request():
    data = request.get_json(silent=True) or {}
    friend_service.send_request(acting_user(), data.get('target_user_id'))
    return jsonify({'success': True, 'message': 'Friend request sent!'})


@friends.route('/accept', methods=['POST'])
@login_required
def accept_request():
    data = request.get_json(silent=True) or {}
    friend = friend_service.accept_request(acting_user(), data.get('requester_id'))
    return jsonify({'success': True, 'message': 'Friend request accepted!', 'friend': friend.summary()})


@friends.route('/reject', methods=['POST'])
@login_required
def reject_request():
    data = request.get_json(silent=True) or {}
    friend_service.reject_request(acting_user(), data.get('requester_id'))
    return jsonify({'success': True, 'message': 'Friend request rejected'})


@friends.route('/cancel', methods=['POST'])
@login_required
def cancel_request():
    data = request.get_json(silent=True) or {}
    friend_service.cancel_request(acting_user(), data.get('target_user_id'))
    return jsonify({'success': True, 'message': 'Friend request cancelled'})


@friends.route('/remove', methods=['POST'])
@login_required
def remove_friend():
    data = request.get_json(silent=True) or {}
    friend_service.remove_friend(acting_user(), data.get('friend_id'))
    return jsonify({'success': True, 'message': 'Friend removed'})
