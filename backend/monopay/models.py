from monopay import db, bcrypt
from monopay.errors import ConflictError, StateError
from flask import current_app
from flask_login import UserMixin
from datetime import datetime, timezone
import json
import random
import secrets

STATUS_WAITING = 'waiting'
STATUS_IN_PROGRESS = 'in_progress'
# Declared for compatibility; nothing transitions into or out of it
STATUS_PAUSED = 'paused'
STATUS_FINISHED = 'finished'
ACTIVE_STATUSES = (STATUS_WAITING, STATUS_IN_PROGRESS, STATUS_PAUSED)

PLAYER_COLORS = ('red', 'blue', 'green', 'yellow', 'purple', 'orange', 'pink', 'cyan')

# No 0/O/1/I so codes can be read aloud across a table
GAME_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
GAME_CODE_LENGTH = 6

# Money columns are 32-bit integers
MAX_MONEY = 2 ** 31 - 1

DEFAULT_USER_SETTINGS = {
    'sound_enabled': True,
    'notifications_enabled': True,
    'dark_mode': True,
    'language': 'en',
}


def utcnow():
    """Naive UTC timestamp, matching what SQLite and Postgres hand back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


def generate_uid():
    return 'MP' + secrets.token_hex(4).upper()


friendship = db.Table(
    'friendship',
    db.Column('user_id', db.Integer, db.ForeignKey('user.id'), primary_key=True),
    db.Column('friend_id', db.Integer, db.ForeignKey('user.id'), primary_key=True),
)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(10), unique=True, nullable=False, index=True, default=generate_uid)
    username = db.Column(db.String(20), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(128), nullable=True)
    email = db.Column(db.String(254), nullable=True, index=True)
    display_name = db.Column(db.String(64), nullable=True)
    avatar = db.Column(db.String(512), nullable=True)
    google_id = db.Column(db.String(128), unique=True, nullable=True)
    apple_id = db.Column(db.String(128), unique=True, nullable=True)
    auth_provider = db.Column(db.String(16), default='local', nullable=False)  # local, google, apple
    is_profile_complete = db.Column(db.Boolean, default=True, nullable=False)
    # Aggregate stats, updated when a started game ends
    games_played = db.Column(db.Integer, default=0, nullable=False)
    games_won = db.Column(db.Integer, default=0, nullable=False)
    total_earnings = db.Column(db.Integer, default=0, nullable=False)
    favorite_property = db.Column(db.String(64), nullable=True)
    longest_streak = db.Column(db.Integer, default=0, nullable=False)
    current_streak = db.Column(db.Integer, default=0, nullable=False)
    settings_json = db.Column(db.Text, nullable=True)  # JSON-encoded dict
    password_reset_token = db.Column(db.String(64), nullable=True, index=True)  # sha256 hex
    password_reset_expires = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    friends = db.relationship(
        'User',
        secondary=friendship,
        primaryjoin=(friendship.c.user_id == id),
        secondaryjoin=(friendship.c.friend_id == id),
        order_by='User.username',
    )
    sent_requests = db.relationship(
        'FriendRequest', foreign_keys='FriendRequest.sender_id', back_populates='sender',
        lazy='dynamic', cascade='all, delete-orphan',
    )
    received_requests = db.relationship(
        'FriendRequest', foreign_keys='FriendRequest.recipient_id', back_populates='recipient',
        lazy='dynamic', cascade='all, delete-orphan',
    )
    history = db.relationship(
        'GameHistory', backref='user', lazy='dynamic',
        order_by='GameHistory.id', cascade='all, delete-orphan',
    )

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash or not password:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def settings(self) -> dict:
        merged = dict(DEFAULT_USER_SETTINGS)
        if self.settings_json:
            try:
                merged.update(json.loads(self.settings_json))
            except ValueError:
                pass
        return merged

    @settings.setter
    def settings(self, value: dict) -> None:
        self.settings_json = json.dumps(value)

    def is_friends_with(self, other) -> bool:
        return any(f.id == other.id for f in self.friends)

    def stats_dict(self):
        return {
            'games_played': self.games_played,
            'games_won': self.games_won,
            'total_earnings': self.total_earnings,
            'favorite_property': self.favorite_property,
            'longest_streak': self.longest_streak,
            'current_streak': self.current_streak,
        }

    def summary(self):
        return {
            'id': self.id,
            'uid': self.uid,
            'username': self.username,
            'display_name': self.display_name,
            'avatar': self.avatar,
        }

    def to_dict(self):
        # Credentials and reset tokens never leave the server
        data = self.summary()
        data.update({
            'email': self.email,
            'auth_provider': self.auth_provider,
            'is_profile_complete': self.is_profile_complete,
            'stats': self.stats_dict(),
            'settings': self.settings,
            'has_password': self.password_hash is not None,
            'created_at': _iso(self.created_at),
        })
        return data


class FriendRequest(db.Model):
    __tablename__ = 'friend_request'
    __table_args__ = (db.UniqueConstraint('sender_id', 'recipient_id', name='uq_friend_request_pair'),)
    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    sent_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    sender = db.relationship('User', foreign_keys=[sender_id], back_populates='sent_requests')
    recipient = db.relationship('User', foreign_keys=[recipient_id], back_populates='received_requests')

    def to_sent_dict(self):
        return {'to': self.recipient.summary(), 'sent_at': _iso(self.sent_at)}

    def to_received_dict(self):
        return {'from': self.sender.summary(), 'received_at': _iso(self.sent_at)}


class GameHistory(db.Model):
    __tablename__ = 'game_history'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    game_code = db.Column(db.String(GAME_CODE_LENGTH), nullable=False)
    date = db.Column(db.DateTime, default=utcnow, nullable=False)
    players = db.Column(db.Integer, nullable=False)
    result = db.Column(db.String(8), nullable=False)  # Won, Lost
    earnings = db.Column(db.Integer, default=0, nullable=False)
    edition = db.Column(db.String(32), default='Classic', nullable=False)

    def to_dict(self):
        return {
            'game_id': self.game_code,
            'date': _iso(self.date),
            'players': self.players,
            'result': self.result,
            'earnings': self.earnings,
            'edition': self.edition,
        }


def generate_game_code(length=GAME_CODE_LENGTH):
    """Generate a short game code unused by any game that hasn't finished."""
    while True:
        code = ''.join(random.choices(GAME_CODE_ALPHABET, k=length))
        clash = Game.query.filter(Game.code == code, Game.status != STATUS_FINISHED).first()
        if not clash:
            return code


class Game(db.Model):
    __tablename__ = 'game'
    # Codes are recycled once a game finishes
    __table_args__ = (
        db.Index(
            'uq_game_code_active', 'code', unique=True,
            sqlite_where=db.text("status != 'finished'"),
            postgresql_where=db.text("status != 'finished'"),
        ),
    )
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(GAME_CODE_LENGTH), nullable=False)
    name = db.Column(db.String(30), nullable=False)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    max_players = db.Column(db.Integer, default=8, nullable=False)
    starting_balance = db.Column(db.Integer, default=1500, nullable=False)
    go_salary = db.Column(db.Integer, default=200, nullable=False)
    status = db.Column(db.String(16), default=STATUS_WAITING, nullable=False, index=True)  # waiting, in_progress, paused, finished
    # Accepted as configuration only
    free_parking = db.Column(db.Boolean, default=False, nullable=False)
    double_go_salary = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    started_at = db.Column(db.DateTime, nullable=True)
    finished_at = db.Column(db.DateTime, nullable=True)

    host = db.relationship('User', foreign_keys=[host_id])
    players = db.relationship(
        'Player', back_populates='game', order_by='Player.id', cascade='all, delete-orphan',
    )
    ledger = db.relationship(
        'LedgerEntry', backref='game', lazy='dynamic',
        order_by='LedgerEntry.id', cascade='all, delete-orphan',
    )

    def __init__(self, **kwargs):
        super(Game, self).__init__(**kwargs)
        if self.status is None:
            self.status = STATUS_WAITING
        if self.max_players is None:
            self.max_players = 8
        if self.starting_balance is None:
            self.starting_balance = 1500
        if self.go_salary is None:
            self.go_salary = 200
        if not self.code:
            self.code = generate_game_code()

    @property
    def player_count(self):
        return len(self.players)

    @property
    def is_active(self):
        return self.status in ACTIVE_STATUSES

    def player_for(self, user_id):
        for p in self.players:
            if p.user_id == user_id or (p.user is not None and p.user.id == user_id):
                return p
        return None

    def add_player(self, user, is_host=False):
        if self.player_for(user.id):
            raise ConflictError('ALREADY_IN_GAME', 'Player already in game', game_code=self.code)
        if self.player_count >= self.max_players:
            raise ConflictError('GAME_FULL', 'Game is full')
        used = {p.color for p in self.players}
        color = next(c for c in PLAYER_COLORS if c not in used)
        player = Player(
            user=user,
            balance=self.starting_balance,
            color=color,
            is_host=is_host,
            is_ready=is_host,  # host is auto-ready
            joined_at=utcnow(),
        )
        self.players.append(player)
        return player

    def remove_player(self, user_id):
        player = self.player_for(user_id)
        if not player:
            raise StateError('NOT_IN_GAME', 'You are not in this game')
        self.players.remove(player)
        return player

    def record_entry(self, from_user_id, to_user_id, amount, category, description):
        entry = LedgerEntry(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount=amount,
            category=category,
            description=description,
            timestamp=utcnow(),
        )
        self.ledger.append(entry)
        return entry

    def poll_interval(self):
        cfg = current_app.config
        if self.status == STATUS_WAITING:
            return int(cfg.get('POLL_INTERVAL_WAITING_SEC', 3))
        if self.status == STATUS_IN_PROGRESS:
            return int(cfg.get('POLL_INTERVAL_IN_PROGRESS_SEC', 5))
        return None

    def to_dict(self, include_transactions=False):
        data = {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'host': self.host.summary() if self.host else None,
            'players': [p.to_dict() for p in self.players],
            'max_players': self.max_players,
            'starting_balance': self.starting_balance,
            'go_salary': self.go_salary,
            'status': self.status,
            'settings': {
                'free_parking': self.free_parking,
                'double_go_salary': self.double_go_salary,
            },
            'player_count': self.player_count,
            'created_at': _iso(self.created_at),
            'started_at': _iso(self.started_at),
            'finished_at': _iso(self.finished_at),
            'poll_interval': self.poll_interval(),
        }
        if include_transactions:
            data['transactions'] = [t.to_dict() for t in self.ledger]
        return data


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (db.UniqueConstraint('game_id', 'user_id', name='uq_player_game_user'),)
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    balance = db.Column(db.Integer, nullable=False)  # signed
    color = db.Column(db.String(16), nullable=False)
    is_ready = db.Column(db.Boolean, default=False, nullable=False)
    is_host = db.Column(db.Boolean, default=False, nullable=False)
    joined_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    game = db.relationship('Game', back_populates='players')
    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'user': self.user.summary() if self.user else None,
            'user_id': self.user_id,
            'balance': self.balance,
            'color': self.color,
            'is_ready': self.is_ready,
            'is_host': self.is_host,
            'joined_at': _iso(self.joined_at),
        }


class LedgerEntry(db.Model):
    """One balance-changing event. Rows are only ever inserted."""
    __tablename__ = 'ledger_entry'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    # NULL on either side means the bank
    from_user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    to_user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    amount = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(200), nullable=True)
    timestamp = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'from': self.from_user_id,
            'to': self.to_user_id,
            'amount': self.amount,
            'category': self.category,
            'description': self.description,
            'timestamp': _iso(self.timestamp),
        }
