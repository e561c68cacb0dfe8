from typing import Optional, Tuple

from flask import current_app

from monopay import db
from monopay.errors import (
    ConflictError, ForbiddenError, NotFoundError, StateError, ValidationError,
)
from monopay.models import (
    Game, Player, ACTIVE_STATUSES, MAX_MONEY, STATUS_WAITING, STATUS_IN_PROGRESS, STATUS_FINISHED,
    utcnow,
)
from .stats import record_game_results

GAME_NAME_MAX_LENGTH = 30


def find_active_game(user_id: int, exclude_game_id: Optional[int] = None) -> Optional[Game]:
    """Return the user's game that hasn't finished, if any.

    The check is not atomic with the create/join that follows it; two
    concurrent requests from one user can both pass.
    """
    q = Game.query.join(Player).filter(
        Player.user_id == user_id,
        Game.status.in_(ACTIVE_STATUSES),
    )
    if exclude_game_id is not None:
        q = q.filter(Game.id != exclude_game_id)
    return q.order_by(Game.id.desc()).first()


def get_game(game_id) -> Game:
    gid = _as_int(game_id)
    game = db.session.get(Game, gid) if gid is not None else None
    if not game:
        raise NotFoundError('GAME_NOT_FOUND', 'Game not found')
    return game


def get_game_by_code(code: str) -> Game:
    if not code:
        raise NotFoundError('GAME_NOT_FOUND', 'Game not found')
    # Prefer the live game; finished games may share a recycled code
    game = (
        Game.query.filter(Game.code == code.strip().upper())
        .order_by((Game.status == STATUS_FINISHED).asc(), Game.id.desc())
        .first()
    )
    if not game:
        raise NotFoundError('GAME_NOT_FOUND', 'Game not found')
    return game


def create_game(user, name, max_players=None, starting_balance=None, go_salary=None, settings=None) -> Game:
    cfg = current_app.config
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('INVALID_NAME', 'Game name is required')
    name = name.strip()
    if len(name) > GAME_NAME_MAX_LENGTH:
        raise ValidationError('INVALID_NAME', f'Game name must be {GAME_NAME_MAX_LENGTH} characters or less')

    existing = find_active_game(user.id)
    if existing:
        reject(ConflictError('ALREADY_IN_GAME', 'You are already in an active game', game_code=existing.code), user)

    min_cap = int(cfg.get('MIN_PLAYERS', 2))
    max_cap = int(cfg.get('MAX_PLAYERS', 8))
    capacity = _optional_int(max_players, 'max_players')
    capacity = max_cap if capacity is None else min(max(capacity, min_cap), max_cap)

    balance = _optional_int(starting_balance, 'starting_balance')
    if balance is None:
        balance = int(cfg.get('DEFAULT_STARTING_BALANCE', 1500))
    elif balance <= 0 or balance > MAX_MONEY:
        raise ValidationError('INVALID_BALANCE', f'Starting balance must be between 1 and {MAX_MONEY}')

    salary = _optional_int(go_salary, 'go_salary')
    if salary is None:
        salary = int(cfg.get('DEFAULT_GO_SALARY', 200))
    elif salary < 0 or salary > MAX_MONEY:
        raise ValidationError('INVALID_BALANCE', f'GO salary must be between 0 and {MAX_MONEY}')

    settings = settings if isinstance(settings, dict) else {}
    game = Game(
        name=name,
        host=user,
        max_players=capacity,
        starting_balance=balance,
        go_salary=salary,
        free_parking=bool(settings.get('free_parking', False)),
        double_go_salary=bool(settings.get('double_go_salary', False)),
    )
    game.add_player(user, is_host=True)
    db.session.add(game)
    db.session.commit()
    current_app.logger.info(f"[create] game={game.id} code={game.code} host={user.id} capacity={capacity}")
    return game


def join_game(user, code) -> Tuple[Game, bool]:
    """Seat the user in a waiting game. Returns ``(game, joined)``; ``joined`` is
    False when the user was already seated, in which case nothing changes.
    """
    if not code or not isinstance(code, str):
        raise ValidationError('INVALID_CODE', 'Game code is required')

    game = Game.query.filter_by(code=code.strip().upper(), status=STATUS_WAITING).first()
    if not game:
        reject(NotFoundError('GAME_NOT_FOUND_OR_STARTED', 'Game not found or already started'), user)

    other = find_active_game(user.id, exclude_game_id=game.id)
    if other:
        reject(ConflictError('ALREADY_IN_GAME', 'You are already in another active game', game_code=other.code), user)

    # Idempotent re-join
    if game.player_for(user.id):
        return game, False

    try:
        game.add_player(user)
    except ConflictError as exc:
        reject(exc, user)
    db.session.commit()
    current_app.logger.info(f"[join] game={game.id} code={game.code} user={user.id} players={game.player_count}")
    return game, True


def leave_game(user, game_id) -> Game:
    game = get_game(game_id)
    if not game.player_for(user.id):
        reject(StateError('NOT_IN_GAME', 'You are not in this game'), user)

    if game.host_id == user.id:
        if game.player_count > 1:
            game.remove_player(user.id)
            new_host = game.players[0]
            new_host.is_host = True
            game.host_id = new_host.user_id
            current_app.logger.info(f"[host] game={game.id} host {user.id} -> {new_host.user_id}")
        else:
            # Last one out closes the room
            was_running = game.status != STATUS_FINISHED and game.started_at is not None
            game.status = STATUS_FINISHED
            game.finished_at = utcnow()
            if was_running:
                record_game_results(game)
    else:
        game.remove_player(user.id)

    db.session.commit()
    current_app.logger.info(f"[leave] game={game.id} user={user.id} status={game.status}")
    return game


def toggle_ready(user, game_id) -> Player:
    game = get_game(game_id)
    player = game.player_for(user.id)
    if not player:
        reject(StateError('NOT_IN_GAME', 'You are not in this game'), user)
    player.is_ready = not player.is_ready
    db.session.commit()
    return player


def start_game(user, game_id) -> Game:
    game = get_game(game_id)
    if game.host_id != user.id:
        reject(ForbiddenError('FORBIDDEN', 'Only the host can start the game'), user)
    if game.status != STATUS_WAITING:
        reject(StateError('ALREADY_STARTED', 'Game has already started'), user)

    min_players = int(current_app.config.get('MIN_PLAYERS', 2))
    if game.player_count < min_players:
        reject(StateError('NEED_MORE_PLAYERS', f'Need at least {min_players} players to start'), user)
    if not all(p.is_ready for p in game.players):
        reject(StateError('NOT_ALL_READY', 'Not all players are ready'), user)

    game.status = STATUS_IN_PROGRESS
    game.started_at = utcnow()
    db.session.commit()
    current_app.logger.info(f"[start] game={game.id} code={game.code} players={game.player_count}")
    return game


def end_game(user, game_id) -> Game:
    """End the game at any stage. Host only."""
    game = get_game(game_id)
    if game.host_id != user.id:
        reject(ForbiddenError('FORBIDDEN', 'Only the host can end the game'), user)

    was_running = game.status != STATUS_FINISHED and game.started_at is not None
    game.status = STATUS_FINISHED
    game.finished_at = utcnow()
    if was_running:
        record_game_results(game)
    db.session.commit()
    current_app.logger.info(f"[end] game={game.id} code={game.code} stats_recorded={was_running}")
    return game


def reject(exc, user):
    current_app.logger.info(f"[reject] user={getattr(user, 'id', None)} code={exc.code}")
    raise exc


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_int(value, field):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError('INVALID_FIELD', f'{field} must be a whole number')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('INVALID_FIELD', f'{field} must be a whole number')
