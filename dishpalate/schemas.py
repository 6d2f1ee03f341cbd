"""
Pydantic schemas for the Dish Palate API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from dishpalate.db import RecipeRecord, UserRecord

# Keys the server owns on a recipe document; never taken from a request.
RESERVED_RECIPE_KEYS = frozenset(
    {"id", "_id", "reaction", "purchased_by", "watchCount"}
)


class StatusResponse(BaseModel):
    success: bool
    message: str


class LivenessResponse(BaseModel):
    message: str
    timestamp: datetime


class UserCreate(BaseModel):
    displayName: Optional[str] = None
    photoUrl: Optional[str] = None
    email: str = Field(..., min_length=1)
    coin: int = 0

    def to_record(self) -> UserRecord:
        return UserRecord(
            email=self.email,
            display_name=self.displayName,
            photo_url=self.photoUrl,
            coin=self.coin,
        )


class UserOut(BaseModel):
    id: Optional[str] = None
    displayName: Optional[str] = None
    photoUrl: Optional[str] = None
    email: str
    coin: int


class TokenResponse(BaseModel):
    token: str


class RecipeCreate(BaseModel):
    """Recipe fields; anything beyond the named ones is stored as sent."""

    model_config = ConfigDict(extra="allow")

    recipeName: str = Field(..., min_length=1)
    category: Optional[str] = None
    country: Optional[str] = None
    creatorEmail: Optional[str] = None

    def to_record(self) -> RecipeRecord:
        extra: dict[str, Any] = {
            k: v
            for k, v in (self.model_extra or {}).items()
            if k not in RESERVED_RECIPE_KEYS
        }
        return RecipeRecord(
            recipe_name=self.recipeName,
            category=self.category,
            country=self.country,
            creator_email=self.creatorEmail,
            extra=extra,
        )


class RecipeCreatedResponse(StatusResponse):
    insertedId: str


class CoinPurchaseRequest(BaseModel):
    userEmail: str
    boughtCoins: int


class UnlockRequest(BaseModel):
    userEmail: str
    recipeId: str


class ReactionRequest(BaseModel):
    userEmail: str
