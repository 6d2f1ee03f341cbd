"""
User directory and recipe catalog: plain create/list/get operations.
"""

from __future__ import annotations

import logging
from typing import Optional

from dishpalate.db import (
    DbClient,
    DuplicateUser,
    RecipeFilter,
    RecipeRecord,
    UserRecord,
)
from dishpalate.errors import NotFound, ValidationConflict

logger = logging.getLogger(__name__)


def register_user(db: DbClient, user: UserRecord) -> UserRecord:
    if db.find_user_by_email(user.email):
        raise ValidationConflict("User already exists")
    try:
        stored = db.insert_user(user)
    except DuplicateUser as exc:
        # Lost a race with a concurrent registration of the same email.
        raise ValidationConflict("User already exists") from exc
    logger.info("Registered user %s", stored.email)
    return stored


def list_users(db: DbClient) -> list[UserRecord]:
    return db.list_users()


def create_recipe(db: DbClient, recipe: RecipeRecord) -> RecipeRecord:
    # Counters always start empty, whatever the client sent.
    recipe.reaction = []
    recipe.purchased_by = []
    recipe.watch_count = 0
    stored = db.insert_recipe(recipe)
    logger.info("Created recipe %s by %s", stored.id, stored.creator_email)
    return stored


def list_recipes(
    db: DbClient,
    *,
    category: Optional[str] = None,
    country: Optional[str] = None,
    search: Optional[str] = None,
) -> list[RecipeRecord]:
    filters = RecipeFilter(
        category=category or None,
        country=country or None,
        search=search or None,
    )
    return db.list_recipes(filters)


def get_recipe(db: DbClient, recipe_id: str) -> RecipeRecord:
    recipe = db.get_recipe(recipe_id)
    if not recipe:
        raise NotFound("Recipe not found")
    return recipe
