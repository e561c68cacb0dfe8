from flask import current_app

from monopay import db
from monopay.models import Game, GameHistory


def record_game_results(game: Game) -> None:
    """Fold a finished game into every roster member's stats.

    Winners are the players holding the highest balance (ties all win).
    Earnings are balance minus the starting balance. History is trimmed
    to the most recent RECENT_GAMES_LIMIT entries per user.
    """
    players = list(game.players)
    if not players:
        return
    limit = int(current_app.config.get('RECENT_GAMES_LIMIT', 10))
    top = max(p.balance for p in players)

    for p in players:
        user = p.user
        won = p.balance == top
        earnings = p.balance - game.starting_balance
        user.games_played += 1
        user.total_earnings += earnings
        if won:
            user.games_won += 1
            user.current_streak += 1
            user.longest_streak = max(user.longest_streak, user.current_streak)
        else:
            user.current_streak = 0
        user.history.append(GameHistory(
            game_code=game.code,
            date=game.finished_at,
            players=len(players),
            result='Won' if won else 'Lost',
            earnings=earnings,
        ))
        db.session.flush()
        _prune_history(user, limit)

    current_app.logger.info(
        f"[stats] game={game.id} players={len(players)} winners={[p.user_id for p in players if p.balance == top]}"
    )


def _prune_history(user, limit: int) -> None:
    stale = GameHistory.query.filter_by(user_id=user.id).order_by(GameHistory.id.desc()).offset(limit).all()
    for entry in stale:
        db.session.delete(entry)


def recent_history(user, limit: int):
    """Newest first."""
    return GameHistory.query.filter_by(user_id=user.id).order_by(GameHistory.id.desc()).limit(limit).all()
