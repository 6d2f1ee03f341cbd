"""
HTTP routes for the Dish Palate API.

Store failures are caught per route and answered with a fixed 500 message;
driver details are only logged. The unlock and reaction routes are
not token-protected, matching the deployed clients.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Iterator, Optional

from fastapi import APIRouter, Body, Depends, Query

from dishpalate import catalog, ledger, reactions
from dishpalate.config import Settings, get_settings
from dishpalate.db import DbClient, StoreError
from dishpalate.dependencies import get_db_client
from dishpalate.errors import InternalFailure
from dishpalate.schemas import (
    CoinPurchaseRequest,
    ReactionRequest,
    RecipeCreate,
    RecipeCreatedResponse,
    StatusResponse,
    TokenResponse,
    UnlockRequest,
    UserCreate,
    UserOut,
)
from dishpalate.tokens import issue_token, require_token

logger = logging.getLogger(__name__)

router = APIRouter()


@contextlib.contextmanager
def store_failure(message: str) -> Iterator[None]:
    try:
        yield
    except StoreError as exc:
        logger.exception("%s: %s", message, exc)
        raise InternalFailure(message) from exc


@router.post("/user", response_model=StatusResponse, status_code=201)
def register_user(payload: UserCreate, db: DbClient = Depends(get_db_client)):
    with store_failure("Failed to register user"):
        catalog.register_user(db, payload.to_record())
    return StatusResponse(success=True, message="User registered successfully")


@router.get("/users", response_model=list[UserOut])
def list_users(db: DbClient = Depends(get_db_client)):
    with store_failure("Failed to fetch users"):
        users = catalog.list_users(db)
    return [UserOut(**user.as_dict()) for user in users]


@router.post("/jwt", response_model=TokenResponse)
def create_token(
    claims: dict = Body(...),
    settings: Settings = Depends(get_settings),
):
    token = issue_token(
        claims,
        secret=settings.access_token_secret,
        lifetime_seconds=settings.access_token_lifetime_seconds,
    )
    return TokenResponse(token=token)


@router.post(
    "/recipe",
    response_model=RecipeCreatedResponse,
    status_code=201,
    dependencies=[Depends(require_token)],
)
def create_recipe(
    payload: RecipeCreate,
    db: DbClient = Depends(get_db_client),
):
    with store_failure("Failed to add recipe"):
        recipe = catalog.create_recipe(db, payload.to_record())
    return RecipeCreatedResponse(
        success=True, message="Recipe added successfully", insertedId=recipe.id
    )


@router.get("/recipes", dependencies=[Depends(require_token)])
def list_recipes(
    category: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: DbClient = Depends(get_db_client),
):
    with store_failure("Failed to fetch recipes"):
        recipes = catalog.list_recipes(
            db, category=category, country=country, search=search
        )
    return [recipe.as_dict() for recipe in recipes]


@router.get("/recipes/{recipe_id}", dependencies=[Depends(require_token)])
def get_recipe(
    recipe_id: str,
    db: DbClient = Depends(get_db_client),
):
    with store_failure("Failed to fetch recipe"):
        recipe = catalog.get_recipe(db, recipe_id)
    return recipe.as_dict()


@router.patch(
    "/coin", response_model=StatusResponse, dependencies=[Depends(require_token)]
)
def purchase_coins(
    payload: CoinPurchaseRequest,
    db: DbClient = Depends(get_db_client),
):
    with store_failure("Failed to update coins"):
        ledger.purchase_coins(db, payload.userEmail, payload.boughtCoins)
    return StatusResponse(success=True, message="Coins updated successfully")


@router.patch("/recipe-update", response_model=StatusResponse)
def unlock_recipe(payload: UnlockRequest, db: DbClient = Depends(get_db_client)):
    with store_failure("Failed to update recipe"):
        ledger.unlock_recipe(db, payload.userEmail, payload.recipeId)
    return StatusResponse(success=True, message="Recipe unlocked successfully")


@router.patch("/recipes/{recipe_id}/reaction", response_model=StatusResponse)
def toggle_reaction(
    recipe_id: str,
    payload: ReactionRequest,
    db: DbClient = Depends(get_db_client),
):
    with store_failure("Failed to update reaction"):
        reactions.toggle_reaction(db, recipe_id, payload.userEmail)
    return StatusResponse(success=True, message="Reaction updated successfully")
