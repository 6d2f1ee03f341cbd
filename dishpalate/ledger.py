"""
Coin ledger and the coin-gated recipe unlock workflow.

An unlock touches two users and one recipe through four separate
single-record mutations, always in this order:

    debit viewer -> credit creator -> append purchaser -> count view

The store offers no multi-record transaction, so a failure part-way leaves
the earlier mutations in place. Nothing is rolled back; the steps that did
complete are reported on the raised ``UnlockInterrupted``.

There is no balance check (a viewer may go negative) and no guard against
repeat unlocks (each one charges again and appends the viewer again).
Concurrent unlocks by the same viewer are not serialized.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from dishpalate.db import DbClient, StoreError
from dishpalate.errors import NotFound

logger = logging.getLogger(__name__)

UNLOCK_COST = 10
CREATOR_REWARD = 1

DEBIT_VIEWER = "debit_viewer"
CREDIT_CREATOR = "credit_creator"
APPEND_PURCHASER = "append_purchaser"
COUNT_VIEW = "count_view"


class UnlockInterrupted(StoreError):
    def __init__(self, message: str, completed_steps: list[str]):
        super().__init__(message)
        self.completed_steps = list(completed_steps)


@dataclass
class UnlockOutcome:
    viewer_email: str
    recipe_id: str
    creator_email: str | None
    creator_credited: bool = False
    completed_steps: list[str] = field(default_factory=list)


def unlock_recipe(db: DbClient, viewer_email: str, recipe_id: str) -> UnlockOutcome:
    viewer = db.find_user_by_email(viewer_email)
    if not viewer:
        raise NotFound("User not found")
    recipe = db.get_recipe(recipe_id)
    if not recipe:
        raise NotFound("Recipe not found")

    outcome = UnlockOutcome(
        viewer_email=viewer_email,
        recipe_id=recipe_id,
        creator_email=recipe.creator_email,
    )
    steps = (
        (DEBIT_VIEWER, lambda: db.increment_user_coin(viewer_email, -UNLOCK_COST)),
        (
            CREDIT_CREATOR,
            lambda: db.increment_user_coin(recipe.creator_email, CREATOR_REWARD),
        ),
        (APPEND_PURCHASER, lambda: db.append_purchaser(recipe_id, viewer_email)),
        (COUNT_VIEW, lambda: db.increment_watch_count(recipe_id, 1)),
    )
    for name, apply in steps:
        try:
            matched = apply()
        except StoreError as exc:
            logger.error(
                "Unlock of %s by %s interrupted at %s after %s",
                recipe_id,
                viewer_email,
                name,
                outcome.completed_steps,
            )
            raise UnlockInterrupted(str(exc), outcome.completed_steps) from exc
        if name == CREDIT_CREATOR:
            outcome.creator_credited = bool(matched)
            if not matched:
                logger.warning(
                    "Recipe %s creator %s has no user record; reward not credited",
                    recipe_id,
                    recipe.creator_email,
                )
        outcome.completed_steps.append(name)

    logger.info("%s unlocked recipe %s", viewer_email, recipe_id)
    return outcome


def purchase_coins(db: DbClient, user_email: str, amount: int) -> None:
    """Add ``amount`` (any sign) to a user's balance."""
    if not db.find_user_by_email(user_email):
        raise NotFound("User not found")
    db.increment_user_coin(user_email, amount)
    logger.info("Adjusted %s balance by %d", user_email, amount)
