"""Balance-changing operations within a running game.

Each category is a row in ``CATEGORY_RULES``; ``transfer`` only ever asks
the table what to do, so adding a category means adding a row.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from flask import current_app

from monopay import db
from monopay.errors import ConflictError, StateError, ValidationError
from monopay.models import Game, LedgerEntry, Player, MAX_MONEY, STATUS_IN_PROGRESS
from .lifecycle import get_game, reject

DESCRIPTION_MAX_LENGTH = 200


class Category(str, Enum):
    TRANSFER = 'transfer'
    RENT = 'rent'
    BANK_PAY = 'bank_pay'
    TAX = 'tax'
    PURCHASE = 'purchase'
    BANK_RECEIVE = 'bank_receive'
    GO_SALARY = 'go_salary'


@dataclass(frozen=True)
class CategoryRule:
    label: str
    requires_recipient: bool
    debits_requester: bool
    credits_requester: bool
    credits_recipient: bool


CATEGORY_RULES = {
    Category.TRANSFER: CategoryRule('Transfer', True, True, False, True),
    Category.RENT: CategoryRule('Rent', True, True, False, True),
    Category.BANK_PAY: CategoryRule('Paid the bank', False, True, False, False),
    Category.TAX: CategoryRule('Tax', False, True, False, False),
    Category.PURCHASE: CategoryRule('Purchase', False, True, False, False),
    Category.BANK_RECEIVE: CategoryRule('Received from the bank', False, False, True, False),
    Category.GO_SALARY: CategoryRule('Passed GO', False, False, True, False),
}


def parse_category(value) -> Category:
    try:
        return Category(value)
    except ValueError:
        raise ValidationError('INVALID_CATEGORY', f'Unknown transaction type: {value!r}') from None


def parse_amount(value) -> int:
    """Positive whole numbers only; digit strings from form fields are accepted."""
    if isinstance(value, bool):
        value = None
    elif isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    elif isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0 or value > MAX_MONEY:
        raise ValidationError('INVALID_AMOUNT', 'Invalid amount')
    return value


def transfer(user, game_id, amount, category, to_player_id=None, description: Optional[str] = None) -> Tuple[Game, LedgerEntry]:
    """Apply one balance change and append its ledger entry in the same commit.

    ``to_player_id`` is the recipient's user id. The entry's ``from`` is
    always the acting player, including for bank credits; ``to`` is the
    recipient for peer categories and the bank (None) otherwise.
    """
    amount = parse_amount(amount)
    game = get_game(game_id)
    if game.status != STATUS_IN_PROGRESS:
        reject(StateError('NOT_IN_PROGRESS', 'Game is not in progress'), user)

    payer = game.player_for(user.id)
    if not payer:
        reject(StateError('NOT_IN_GAME', 'You are not in this game'), user)

    kind = parse_category(category)
    rule = CATEGORY_RULES[kind]

    recipient: Optional[Player] = None
    if rule.requires_recipient:
        if to_player_id in (None, ''):
            reject(ValidationError('INVALID_RECIPIENT', 'Recipient is required'), user)
        recipient = _resolve_recipient(game, to_player_id)
        if not recipient:
            reject(ValidationError('RECIPIENT_NOT_FOUND', 'Recipient not found in game'), user)

    if rule.debits_requester and payer.balance < amount:
        reject(ConflictError('INSUFFICIENT_BALANCE', 'Insufficient balance'), user)
    credited = payer if rule.credits_requester else recipient if rule.credits_recipient else None
    if credited is not None and credited.balance + amount > MAX_MONEY:
        reject(ValidationError('INVALID_AMOUNT', 'Balance would exceed the maximum'), user)

    if rule.debits_requester:
        payer.balance -= amount
    if rule.credits_requester:
        payer.balance += amount
    if rule.credits_recipient and recipient is not None:
        recipient.balance += amount

    text = description.strip()[:DESCRIPTION_MAX_LENGTH] if isinstance(description, str) else ''
    entry = game.record_entry(
        from_user_id=user.id,
        to_user_id=recipient.user_id if recipient else None,
        amount=amount,
        category=kind.value,
        description=text or rule.label,
    )
    db.session.commit()
    current_app.logger.info(
        f"[transfer] game={game.id} from={user.id} to={entry.to_user_id} amount={amount} type={kind.value}"
    )
    return game, entry


def _resolve_recipient(game: Game, to_player_id) -> Optional[Player]:
    try:
        target = int(to_player_id)
    except (TypeError, ValueError):
        return None
    return game.player_for(target)
