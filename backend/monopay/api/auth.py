from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from monopay.security import acting_user, create_access_token
from monopay.services import accounts

auth = Blueprint('auth', __name__)

RESET_SENT_MESSAGE = 'If an account with that email exists, a password reset link has been sent.'


@auth.route('/signup', methods=['POST'])
def signup():
    data = request.get_json(silent=True) or {}
    user = accounts.signup(data.get('username'), data.get('password'))
    return jsonify({'user': user.to_dict(), 'message': 'Account created successfully'}), 201


@auth.route('/signin', methods=['POST'])
def signin():
    data = request.get_json(silent=True) or {}
    user = accounts.signin(data.get('username'), data.get('password'))
    return jsonify({'user': user.to_dict(), 'token': create_access_token(user.id)})


@auth.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': acting_user().to_dict()})


@auth.route('/check-username', methods=['POST'])
def check_username():
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    if not isinstance(username, str) or len(username.strip()) < accounts.USERNAME_MIN:
        return jsonify({'available': False, 'message': 'Username must be at least 3 characters'})
    taken = accounts.username_taken(username.strip())
    return jsonify({
        'available': not taken,
        'message': 'Username is taken' if taken else 'Username is available',
    })


@auth.route('/complete-profile', methods=['POST'])
@login_required
def complete_profile():
    """
    Finishes onboarding for federated users who were given a temporary username.
    """
    data = request.get_json(silent=True) or {}
    user = accounts.complete_profile(acting_user(), data.get('username'), data.get('display_name'))
    return jsonify({'user': user.to_dict(), 'message': 'Profile updated successfully'})


@auth.route('/profile', methods=['PUT'])
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}
    user = accounts.update_profile(
        acting_user(),
        username=data.get('username'),
        display_name=data.get('display_name'),
        email=data.get('email'),
    )
    return jsonify({'user': user.to_dict(), 'message': 'Profile updated successfully'})


@auth.route('/password', methods=['PUT'])
@login_required
def change_password():
    data = request.get_json(silent=True) or {}
    accounts.change_password(acting_user(), data.get('current_password'), data.get('new_password'))
    return jsonify({'message': 'Password updated successfully'})


@auth.route('/settings', methods=['PUT'])
@login_required
def update_settings():
    data = request.get_json(silent=True) or {}
    user = accounts.update_settings(acting_user(), data.get('settings') or {})
    return jsonify({'user': user.to_dict(), 'message': 'Settings updated successfully'})


@auth.route('/stats', methods=['GET'])
@login_required
def stats():
    """
    Returns lifetime stats and the most recent games, newest first.
    """
    limit = int(current_app.config.get('RECENT_GAMES_LIMIT', 10))
    stats, history = accounts.stats_for(acting_user(), limit)
    return jsonify({'stats': stats, 'game_history': history})


@auth.route('/oauth/google', methods=['POST'])
def oauth_google():
    data = request.get_json(silent=True) or {}
    user, is_new_user = accounts.google_login(
        data.get('google_id'), data.get('email'), data.get('name'), data.get('picture'),
    )
    return jsonify({
        'user': user.to_dict(),
        'token': create_access_token(user.id),
        'is_new_user': is_new_user,
    })


@auth.route('/oauth/apple', methods=['POST'])
def oauth_apple():
    data = request.get_json(silent=True) or {}
    user = accounts.apple_login(data.get('identity_token'), data.get('user'))
    return jsonify({'user': user.to_dict(), 'token': create_access_token(user.id)})


@auth.route('/password-reset', methods=['POST'])
def password_reset():
    """
    Mails a reset link. The response never reveals whether the email is known.
    """
    data = request.get_json(silent=True) or {}
    accounts.request_password_reset(data.get('email'))
    return jsonify({'success': True, 'message': RESET_SENT_MESSAGE})


@auth.route('/password-reset/confirm', methods=['POST'])
def password_reset_confirm():
    data = request.get_json(silent=True) or {}
    accounts.confirm_password_reset(data.get('token'), data.get('password'))
    return jsonify({'success': True, 'message': 'Password has been reset. Please sign in.'})
