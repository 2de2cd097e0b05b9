"""Spending currency on locked choices, at most once per user and choice."""
from __future__ import annotations

from dataclasses import dataclass

from .accounts import CURRENCY_KEYS, User, unlock_key
from .errors import InsufficientFunds
from .graph import Story, currency_field_for

UNLOCKED = "unlocked"
ALREADY_UNLOCKED = "already_unlocked"
ALREADY_AVAILABLE = "already_available"


@dataclass
class UnlockResult:
    status: str
    key: str
    charged: int
    balance: int
    currency: str

    @property
    def charged_now(self) -> bool:
        return self.status == UNLOCKED

    def to_dict(self):
        return {
            "status": self.status,
            "key": self.key,
            "charged": self.charged,
            "balance": self.balance,
            "currency": self.currency,
        }


def is_choice_open(user: User, story: Story, node_id, choice) -> bool:
    if not choice.locked:
        return True
    entry = user.find_progress(story.id)
    return entry is not None and entry.has_unlocked(unlock_key(node_id, choice.id))


def unlock_choice(user: User, story: Story, node_id, choice_id) -> UnlockResult:
    """Charge ``user`` for a locked choice unless they already own it.

    The order of checks matters: lock state, then ownership, then balance.
    Nothing is changed when any check short-circuits. The caller persists
    the user with a conditional write so a duplicate request racing this
    one cannot commit a second deduction.
    """
    node = story.get_node(node_id)
    choice = node.get_choice(choice_id)
    currency_field = currency_field_for(story.origin)
    currency = CURRENCY_KEYS[currency_field]
    key = unlock_key(node.id, choice.id)
    balance = user.balance(currency_field)

    if not choice.locked:
        return UnlockResult(ALREADY_AVAILABLE, key, 0, balance, currency)

    entry = user.find_progress(story.id)
    if entry is not None and entry.has_unlocked(key):
        return UnlockResult(ALREADY_UNLOCKED, key, 0, balance, currency)

    cost = choice.unlock_cost
    if balance < cost:
        raise InsufficientFunds(cost=cost, balance=balance, currency=currency)

    entry = user.ensure_progress(story.id)
    user.credit(currency_field, -cost)
    entry.add_unlock(key)
    entry.last_node_id = node.id
    return UnlockResult(UNLOCKED, key, cost, user.balance(currency_field), currency)
