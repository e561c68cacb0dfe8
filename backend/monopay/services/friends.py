from flask import current_app
from sqlalchemy import or_

from monopay import db
from monopay.errors import ConflictError, NotFoundError, ValidationError
from monopay.models import FriendRequest, User
from monopay.services.accounts import get_user

SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 10


def relationship_status(user: User, other: User) -> str:
    if user.is_friends_with(other):
        return 'friend'
    if user.sent_requests.filter_by(recipient_id=other.id).first():
        return 'pending_sent'
    if user.received_requests.filter_by(sender_id=other.id).first():
        return 'pending_received'
    return 'none'


def search_users(user: User, query):
    if not isinstance(query, str) or len(query.strip()) < SEARCH_MIN_LENGTH:
        raise ValidationError('INVALID_QUERY', 'Search query too short')
    pattern = f'%{query.strip()}%'
    matches = (
        User.query.filter(
            User.id != user.id,
            or_(User.uid.ilike(pattern), User.username.ilike(pattern), User.display_name.ilike(pattern)),
        )
        .order_by(User.username)
        .limit(SEARCH_LIMIT)
        .all()
    )
    results = []
    for other in matches:
        entry = other.summary()
        entry['status'] = relationship_status(user, other)
        results.append(entry)
    return results


def send_request(user: User, target_user_id) -> FriendRequest:
    if str(target_user_id) == str(user.id):
        raise ConflictError('SELF_REQUEST', 'Cannot send friend request to yourself')
    target = get_user(target_user_id)
    if user.is_friends_with(target):
        raise ConflictError('ALREADY_FRIENDS', 'Already friends with this user')
    if user.sent_requests.filter_by(recipient_id=target.id).first():
        raise ConflictError('REQUEST_ALREADY_SENT', 'Friend request already sent')
    if user.received_requests.filter_by(sender_id=target.id).first():
        raise ConflictError(
            'REQUEST_ALREADY_RECEIVED',
            'This user has already sent you a friend request. Accept it instead!',
        )
    request = FriendRequest(sender=user, recipient=target)
    db.session.add(request)
    db.session.commit()
    current_app.logger.info(f"[friend-request] from={user.id} to={target.id}")
    return request


def accept_request(user: User, requester_id) -> User:
    requester = get_user(requester_id)
    request = user.received_requests.filter_by(sender_id=requester.id).first()
    if not request:
        raise NotFoundError('REQUEST_NOT_FOUND', 'No friend request from this user')
    db.session.delete(request)
    # Both directions are stored, so each side lists the other
    if not user.is_friends_with(requester):
        user.friends.append(requester)
        requester.friends.append(user)
    db.session.commit()
    current_app.logger.info(f"[friend-accept] user={user.id} friend={requester.id}")
    return requester


def reject_request(user: User, requester_id) -> None:
    requester = get_user(requester_id)
    request = user.received_requests.filter_by(sender_id=requester.id).first()
    if request:
        db.session.delete(request)
        db.session.commit()


def cancel_request(user: User, target_user_id) -> None:
    target = get_user(target_user_id)
    request = user.sent_requests.filter_by(recipient_id=target.id).first()
    if request:
        db.session.delete(request)
        db.session.commit()


def remove_friend(user: User, friend_id) -> None:
    friend = get_user(friend_id)
    if friend in user.friends:
        user.friends.remove(friend)
    if user in friend.friends:
        friend.friends.remove(user)
    db.session.commit()
    current_app.logger.info(f"[friend-remove] user={user.id} friend={friend.id}")
