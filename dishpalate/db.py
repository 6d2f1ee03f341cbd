"""
Document store abstraction for MongoDB, SQL and an in-memory test implementation.

Every backend offers the same atomic single-record operations. None of them
offers multi-record transactions, so callers that touch several records
(see ``dishpalate.ledger``) sequence the calls themselves.
"""

from __future__ import annotations

import contextlib
import copy
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Protocol

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo import errors as mongo_errors
from sqlalchemy import (
    JSON,
    Column,
    Float,
    Integer,
    String,
    create_engine,
    func,
    select,
    update,
)
from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A store operation failed; the driver error is chained as ``__cause__``."""


class DuplicateUser(StoreError):
    """A user with the same email already exists."""


def new_document_id() -> str:
    return str(ObjectId())


def is_document_id(value: str) -> bool:
    return ObjectId.is_valid(value)


@dataclass
class UserRecord:
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    coin: int = 0
    id: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "photoUrl": self.photo_url,
            "email": self.email,
            "coin": self.coin,
        }


@dataclass
class RecipeRecord:
    recipe_name: str
    category: Optional[str] = None
    country: Optional[str] = None
    creator_email: Optional[str] = None
    reaction: list[str] = field(default_factory=list)
    purchased_by: list[str] = field(default_factory=list)
    watch_count: int = 0
    # Presentation fields (image, details, video code...) stored verbatim.
    extra: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    def as_dict(self) -> dict:
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "recipeName": self.recipe_name,
                "category": self.category,
                "country": self.country,
                "creatorEmail": self.creator_email,
                "reaction": list(self.reaction),
                "purchased_by": list(self.purchased_by),
                "watchCount": self.watch_count,
            }
        )
        return data


@dataclass
class RecipeFilter:
    """Conjunctive recipe predicates; a ``None`` or empty field is not applied."""

    category: Optional[str] = None
    country: Optional[str] = None
    search: Optional[str] = None

    def matches(self, recipe: RecipeRecord) -> bool:
        if self.category and recipe.category != self.category:
            return False
        if self.country and recipe.country != self.country:
            return False
        if self.search and self.search.casefold() not in (
            recipe.recipe_name or ""
        ).casefold():
            return False
        return True


class DbClient(Protocol):
    """Interface for document store access."""

    def ping(self) -> None:
        ...

    def close(self) -> None:
        ...

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def insert_user(self, user: UserRecord) -> UserRecord:
        ...

    def list_users(self) -> list[UserRecord]:
        ...

    def increment_user_coin(self, email: str, amount: int) -> int:
        """Add ``amount`` to the balance of the user with ``email``.

        Returns the number of matched users (0 or 1).
        """
        ...

    def insert_recipe(self, recipe: RecipeRecord) -> RecipeRecord:
        ...

    def get_recipe(self, recipe_id: str) -> Optional[RecipeRecord]:
        ...

    def list_recipes(self, filters: RecipeFilter) -> list[RecipeRecord]:
        ...

    def append_purchaser(self, recipe_id: str, email: str) -> int:
        ...

    def increment_watch_count(self, recipe_id: str, amount: int = 1) -> int:
        ...

    def add_reaction(self, recipe_id: str, email: str) -> int:
        ...

    def remove_reaction(self, recipe_id: str, email: str) -> int:
        ...


class InMemoryDbClient:
    """Simple in-memory store for development and tests.

    Handlers run in a threadpool, so every operation holds one lock; each
    call is atomic like a single-document update in the real stores.
    """

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.recipes: Dict[str, RecipeRecord] = {}
        self._lock = threading.RLock()

    def ping(self) -> None:
        return None

    def close(self) -> None:
        return None

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.users.clear()
            self.recipes.clear()

    def _user(self, email: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._lock:
            user = self._user(email)
            return copy.deepcopy(user) if user else None

    def insert_user(self, user: UserRecord) -> UserRecord:
        with self._lock:
            if self._user(user.email):
                raise DuplicateUser(user.email)
            stored = copy.deepcopy(user)
            stored.id = new_document_id()
            self.users[stored.id] = stored
            return copy.deepcopy(stored)

    def list_users(self) -> list[UserRecord]:
        with self._lock:
            return [copy.deepcopy(u) for u in self.users.values()]

    def increment_user_coin(self, email: str, amount: int) -> int:
        with self._lock:
            user = self._user(email)
            if not user:
                return 0
            user.coin += amount
            return 1

    def insert_recipe(self, recipe: RecipeRecord) -> RecipeRecord:
        with self._lock:
            stored = copy.deepcopy(recipe)
            stored.id = new_document_id()
            self.recipes[stored.id] = stored
            return copy.deepcopy(stored)

    def get_recipe(self, recipe_id: str) -> Optional[RecipeRecord]:
        with self._lock:
            recipe = self.recipes.get(recipe_id)
            return copy.deepcopy(recipe) if recipe else None

    def list_recipes(self, filters: RecipeFilter) -> list[RecipeRecord]:
        with self._lock:
            return [
                copy.deepcopy(r) for r in self.recipes.values() if filters.matches(r)
            ]

    def _update_recipe(self, recipe_id: str, change) -> int:
        with self._lock:
            recipe = self.recipes.get(recipe_id)
            if not recipe:
                return 0
            change(recipe)
            return 1

    def append_purchaser(self, recipe_id: str, email: str) -> int:
        return self._update_recipe(
            recipe_id, lambda recipe: recipe.purchased_by.append(email)
        )

    def increment_watch_count(self, recipe_id: str, amount: int = 1) -> int:
        def bump(recipe: RecipeRecord) -> None:
            recipe.watch_count += amount

        return self._update_recipe(recipe_id, bump)

    def add_reaction(self, recipe_id: str, email: str) -> int:
        def react(recipe: RecipeRecord) -> None:
            if email not in recipe.reaction:
                recipe.reaction.append(email)

        return self._update_recipe(recipe_id, react)

    def remove_reaction(self, recipe_id: str, email: str) -> int:
        def unreact(recipe: RecipeRecord) -> None:
            recipe.reaction = [e for e in recipe.reaction if e != email]

        return self._update_recipe(recipe_id, unreact)


_RECIPE_FIELDS = (
    "_id",
    "recipeName",
    "category",
    "country",
    "creatorEmail",
    "reaction",
    "purchased_by",
    "watchCount",
)


@contextlib.contextmanager
def _mongo_errors() -> Iterator[None]:
    try:
        yield
    except mongo_errors.DuplicateKeyError as exc:
        raise DuplicateUser(str(exc)) from exc
    except mongo_errors.PyMongoError as exc:
        raise StoreError(str(exc)) from exc


def _user_from_doc(doc: dict) -> UserRecord:
    return UserRecord(
        id=str(doc["_id"]),
        display_name=doc.get("displayName"),
        photo_url=doc.get("photoUrl"),
        email=doc["email"],
        coin=doc.get("coin") or 0,
    )


def _recipe_from_doc(doc: dict) -> RecipeRecord:
    return RecipeRecord(
        id=str(doc["_id"]),
        recipe_name=doc.get("recipeName", ""),
        category=doc.get("category"),
        country=doc.get("country"),
        creator_email=doc.get("creatorEmail"),
        reaction=list(doc.get("reaction") or []),
        purchased_by=list(doc.get("purchased_by") or []),
        watch_count=doc.get("watchCount") or 0,
        extra={k: v for k, v in doc.items() if k not in _RECIPE_FIELDS},
    )


class MongoDbClient:
    """
    pymongo-backed implementation storing ``users`` and ``recipes`` collections.
    """

    def __init__(
        self,
        uri: str | None = None,
        database: str = "dish-palate",
        *,
        client: MongoClient | None = None,
    ):
        if client is None:
            if not uri:
                raise ValueError("MONGODB_URI is required for MongoDbClient")
            client = MongoClient(uri, serverSelectionTimeoutMS=5000)
        self.client = client
        self.db = self.client[database]
        self.users = self.db["users"]
        self.recipes = self.db["recipes"]

    @staticmethod
    def recipe_query(filters: RecipeFilter) -> dict:
        query: dict = {}
        if filters.category:
            query["category"] = filters.category
        if filters.country:
            query["country"] = filters.country
        if filters.search:
            query["recipeName"] = {
                "$regex": re.escape(filters.search),
                "$options": "i",
            }
        return query

    @staticmethod
    def _recipe_key(recipe_id: str) -> Optional[dict]:
        if not is_document_id(recipe_id):
            return None
        return {"_id": ObjectId(recipe_id)}

    def ping(self) -> None:
        with _mongo_errors():
            self.client.admin.command("ping")
            self.users.create_index([("email", ASCENDING)], unique=True)
        logger.info("Connected to MongoDB database %s", self.db.name)

    def close(self) -> None:
        self.client.close()

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        with _mongo_errors():
            doc = self.users.find_one({"email": email})
        return _user_from_doc(doc) if doc else None

    def insert_user(self, user: UserRecord) -> UserRecord:
        doc = {
            "displayName": user.display_name,
            "photoUrl": user.photo_url,
            "email": user.email,
            "coin": user.coin,
        }
        with _mongo_errors():
            result = self.users.insert_one(doc)
        stored = copy.copy(user)
        stored.id = str(result.inserted_id)
        return stored

    def list_users(self) -> list[UserRecord]:
        with _mongo_errors():
            return [_user_from_doc(doc) for doc in self.users.find()]

    def increment_user_coin(self, email: str, amount: int) -> int:
        with _mongo_errors():
            result = self.users.update_one(
                {"email": email}, {"$inc": {"coin": amount}}
            )
        return result.matched_count

    def insert_recipe(self, recipe: RecipeRecord) -> RecipeRecord:
        doc = dict(recipe.extra)
        doc.update(
            {
                "recipeName": recipe.recipe_name,
                "category": recipe.category,
                "country": recipe.country,
                "creatorEmail": recipe.creator_email,
                "reaction": list(recipe.reaction),
                "purchased_by": list(recipe.purchased_by),
                "watchCount": recipe.watch_count,
            }
        )
        with _mongo_errors():
            result = self.recipes.insert_one(doc)
        stored = copy.deepcopy(recipe)
        stored.id = str(result.inserted_id)
        return stored

    def get_recipe(self, recipe_id: str) -> Optional[RecipeRecord]:
        key = self._recipe_key(recipe_id)
        if key is None:
            return None
        with _mongo_errors():
            doc = self.recipes.find_one(key)
        return _recipe_from_doc(doc) if doc else None

    def list_recipes(self, filters: RecipeFilter) -> list[RecipeRecord]:
        with _mongo_errors():
            return [
                _recipe_from_doc(doc)
                for doc in self.recipes.find(self.recipe_query(filters))
            ]

    def _update_recipe(self, recipe_id: str, change: dict) -> int:
        key = self._recipe_key(recipe_id)
        if key is None:
            return 0
        with _mongo_errors():
            result = self.recipes.update_one(key, change)
        return result.matched_count

    def append_purchaser(self, recipe_id: str, email: str) -> int:
        return self._update_recipe(recipe_id, {"$push": {"purchased_by": email}})

    def increment_watch_count(self, recipe_id: str, amount: int = 1) -> int:
        return self._update_recipe(recipe_id, {"$inc": {"watchCount": amount}})

    def add_reaction(self, recipe_id: str, email: str) -> int:
        return self._update_recipe(recipe_id, {"$addToSet": {"reaction": email}})

    def remove_reaction(self, recipe_id: str, email: str) -> int:
        return self._update_recipe(recipe_id, {"$pull": {"reaction": email}})


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextlib.contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except sa_exc.IntegrityError as exc:
            raise DuplicateUser(str(exc.orig)) from exc
        except sa_exc.SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _to_user_record(row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            display_name=row.display_name,
            photo_url=row.photo_url,
            email=row.email,
            coin=row.coin,
        )

    @staticmethod
    def _to_recipe_record(row: "RecipeRow") -> RecipeRecord:
        return RecipeRecord(
            id=row.id,
            recipe_name=row.recipe_name,
            category=row.category,
            country=row.country,
            creator_email=row.creator_email,
            reaction=list(row.reaction or []),
            purchased_by=list(row.purchased_by or []),
            watch_count=row.watch_count,
            extra=dict(row.extra or {}),
        )

    def ping(self) -> None:
        with self._session() as session:
            session.execute(select(1))

    def close(self) -> None:
        self.engine.dispose()

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.email == email)
            ).scalar_one_or_none()
            return self._to_user_record(row) if row else None

    def insert_user(self, user: UserRecord) -> UserRecord:
        with self._session() as session:
            row = UserRow(
                id=new_document_id(),
                email=user.email,
                display_name=user.display_name,
                photo_url=user.photo_url,
                coin=user.coin,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            return self._to_user_record(row)

    def list_users(self) -> list[UserRecord]:
        with self._session() as session:
            rows = session.execute(
                select(UserRow).order_by(UserRow.created_at.asc())
            ).scalars()
            return [self._to_user_record(row) for row in rows]

    def increment_user_coin(self, email: str, amount: int) -> int:
        with self._session() as session:
            result = session.execute(
                update(UserRow)
                .where(UserRow.email == email)
                .values(coin=UserRow.coin + amount)
            )
            session.commit()
            return result.rowcount or 0

    def insert_recipe(self, recipe: RecipeRecord) -> RecipeRecord:
        with self._session() as session:
            row = RecipeRow(
                id=new_document_id(),
                recipe_name=recipe.recipe_name,
                category=recipe.category,
                country=recipe.country,
                creator_email=recipe.creator_email,
                reaction=list(recipe.reaction),
                purchased_by=list(recipe.purchased_by),
                watch_count=recipe.watch_count,
                extra=dict(recipe.extra),
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            return self._to_recipe_record(row)

    def get_recipe(self, recipe_id: str) -> Optional[RecipeRecord]:
        with self._session() as session:
            row = session.get(RecipeRow, recipe_id)
            return self._to_recipe_record(row) if row else None

    def list_recipes(self, filters: RecipeFilter) -> list[RecipeRecord]:
        stmt = select(RecipeRow).order_by(RecipeRow.created_at.asc())
        if filters.category:
            stmt = stmt.where(RecipeRow.category == filters.category)
        if filters.country:
            stmt = stmt.where(RecipeRow.country == filters.country)
        if filters.search:
            stmt = stmt.where(
                func.lower(RecipeRow.recipe_name).contains(
                    filters.search.lower(), autoescape=True
                )
            )
        with self._session() as session:
            return [self._to_recipe_record(row) for row in session.execute(stmt).scalars()]

    def increment_watch_count(self, recipe_id: str, amount: int = 1) -> int:
        with self._session() as session:
            result = session.execute(
                update(RecipeRow)
                .where(RecipeRow.id == recipe_id)
                .values(watch_count=RecipeRow.watch_count + amount)
            )
            session.commit()
            return result.rowcount or 0

    def _update_list(self, recipe_id: str, attr: str, change) -> int:
        with self._session() as session:
            row = session.get(RecipeRow, recipe_id, with_for_update=True)
            if not row:
                return 0
            # Reassign so the JSON column is flagged dirty.
            setattr(row, attr, change(list(getattr(row, attr) or [])))
            session.commit()
            return 1

    def append_purchaser(self, recipe_id: str, email: str) -> int:
        return self._update_list(
            recipe_id, "purchased_by", lambda items: items + [email]
        )

    def add_reaction(self, recipe_id: str, email: str) -> int:
        return self._update_list(
            recipe_id,
            "reaction",
            lambda items: items if email in items else items + [email],
        )

    def remove_reaction(self, recipe_id: str, email: str) -> int:
        return self._update_list(
            recipe_id, "reaction", lambda items: [e for e in items if e != email]
        )


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String(24), primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    display_name = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    coin = Column(Integer, nullable=False, default=0)
    created_at = Column(Float, nullable=False)


class RecipeRow(Base):
    __tablename__ = "recipes"

    id = Column(String(24), primary_key=True)
    recipe_name = Column(String, nullable=False, index=True)
    category = Column(String, nullable=True, index=True)
    country = Column(String, nullable=True, index=True)
    creator_email = Column(String, nullable=True)
    reaction = Column(JSON, nullable=False, default=list)
    purchased_by = Column(JSON, nullable=False, default=list)
    watch_count = Column(Integer, nullable=False, default=0)
    extra = Column(JSON, nullable=False, default=dict)
    created_at = Column(Float, nullable=False)
