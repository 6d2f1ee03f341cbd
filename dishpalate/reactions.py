"""
Per-recipe reaction toggle.

A reaction is a single undifferentiated marker per user. Each call flips
it: react if absent, un-react if present.
"""

from __future__ import annotations

import logging

from dishpalate.db import DbClient
from dishpalate.errors import NotFound

logger = logging.getLogger(__name__)


def toggle_reaction(db: DbClient, recipe_id: str, user_email: str) -> bool:
    """Flip ``user_email``'s reaction on a recipe; return True if now reacting."""
    if not db.find_user_by_email(user_email):
        raise NotFound("User not found")
    recipe = db.get_recipe(recipe_id)
    if not recipe:
        raise NotFound("Recipe not found")

    if user_email in recipe.reaction:
        db.remove_reaction(recipe_id, user_email)
        logger.info("%s removed reaction on %s", user_email, recipe_id)
        return False
    db.add_reaction(recipe_id, user_email)
    logger.info("%s reacted to %s", user_email, recipe_id)
    return True
