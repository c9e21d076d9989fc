"""
Document store abstraction for SQL databases and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Optional, Protocol

from sqlalchemy import Column, Date, Float, String, create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from food_diary.errors import DuplicateRecordError, RecordNotFoundError
from food_diary.types import Gender, Meal

DEFAULT_FOOD_QUERY_LIMIT = 1000


class DbClient(Protocol):
    """Interface for the two collections (user records, food records) and auth accounts."""

    def create_account(self, email: str, password_hash: str) -> "AccountRecord":
        ...

    def get_account(self, user_id: str) -> Optional["AccountRecord"]:
        ...

    def get_account_by_email(self, email: str) -> Optional["AccountRecord"]:
        ...

    def update_account(
        self,
        user_id: str,
        *,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
        password_hash: Optional[str] = None,
    ) -> "AccountRecord":
        ...

    def get_profile(self, user_id: str) -> Optional["UserProfileRecord"]:
        ...

    def merge_profile(self, user_id: str, fields: dict) -> "UserProfileRecord":
        ...

    def create_food(
        self,
        user_id: str,
        *,
        name: str,
        meal: Meal,
        log_date: date,
        image_ref: Optional[str] = None,
    ) -> "FoodRecord":
        ...

    def get_food(self, food_id: str) -> Optional["FoodRecord"]:
        ...

    def update_food(
        self,
        food_id: str,
        *,
        name: Optional[str] = None,
        meal: Optional[Meal] = None,
        log_date: Optional[date] = None,
        image_ref: Optional[str] = None,
    ) -> "FoodRecord":
        ...

    def delete_food(self, food_id: str) -> None:
        ...

    def query_foods(
        self, user_id: str, limit: int = DEFAULT_FOOD_QUERY_LIMIT
    ) -> list["FoodRecord"]:
        ...

    def list_food_image_refs(self) -> list[str]:
        ...

    def list_profile_image_refs(self) -> list[str]:
        ...


@dataclass
class AccountRecord:
    user_id: str
    email: str
    password_hash: str
    display_name: str = ""
    photo_url: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())


@dataclass
class UserProfileRecord:
    user_id: str
    full_name: str = ""
    email: str = ""
    gender: Gender = Gender.UNSET
    image_ref: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "gender": self.gender.value,
            "image_ref": self.image_ref,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class FoodRecord:
    id: str
    user_id: str
    name: str
    meal: Meal
    log_date: date
    image_ref: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "meal": self.meal.value,
            "log_date": self.log_date.isoformat(),
            "image_ref": self.image_ref,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


PROFILE_FIELDS = ("full_name", "email", "gender", "image_ref")


def _food_sort_key(record) -> tuple:
    return (record.log_date, record.created_at)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.accounts: Dict[str, AccountRecord] = {}
        self.profiles: Dict[str, UserProfileRecord] = {}
        self.foods: Dict[str, FoodRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.accounts.clear()
        self.profiles.clear()
        self.foods.clear()

    def create_account(self, email: str, password_hash: str) -> AccountRecord:
        email = email.strip().lower()
        if self.get_account_by_email(email):
            raise DuplicateRecordError(email)
        record = AccountRecord(
            user_id=uuid.uuid4().hex, email=email, password_hash=password_hash
        )
        self.accounts[record.user_id] = record
        return replace(record)

    def get_account(self, user_id: str) -> Optional[AccountRecord]:
        record = self.accounts.get(user_id)
        return replace(record) if record else None

    def get_account_by_email(self, email: str) -> Optional[AccountRecord]:
        email = email.strip().lower()
        for record in self.accounts.values():
            if record.email == email:
                return replace(record)
        return None

    def update_account(
        self,
        user_id: str,
        *,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
        password_hash: Optional[str] = None,
    ) -> AccountRecord:
        record = self.accounts.get(user_id)
        if not record:
            raise RecordNotFoundError(user_id)
        if display_name is not None:
            record.display_name = display_name
        if photo_url is not None:
            record.photo_url = photo_url
        if password_hash is not None:
            record.password_hash = password_hash
        record.updated_at = time.time()
        return replace(record)

    def get_profile(self, user_id: str) -> Optional[UserProfileRecord]:
        record = self.profiles.get(user_id)
        return replace(record) if record else None

    def merge_profile(self, user_id: str, fields: dict) -> UserProfileRecord:
        record = self.profiles.get(user_id)
        if record is None:
            record = UserProfileRecord(user_id=user_id)
            self.profiles[user_id] = record
        for key in PROFILE_FIELDS:
            if key in fields:
                value = fields[key]
                setattr(record, key, Gender(value) if key == "gender" else value)
        record.updated_at = time.time()
        return replace(record)

    def create_food(
        self,
        user_id: str,
        *,
        name: str,
        meal: Meal,
        log_date: date,
        image_ref: Optional[str] = None,
    ) -> FoodRecord:
        record = FoodRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            name=name,
            meal=Meal(meal),
            log_date=log_date,
            image_ref=image_ref,
        )
        self.foods[record.id] = record
        return replace(record)

    def get_food(self, food_id: str) -> Optional[FoodRecord]:
        record = self.foods.get(food_id)
        return replace(record) if record else None

    def update_food(
        self,
        food_id: str,
        *,
        name: Optional[str] = None,
        meal: Optional[Meal] = None,
        log_date: Optional[date] = None,
        image_ref: Optional[str] = None,
    ) -> FoodRecord:
        record = self.foods.get(food_id)
        if not record:
            raise RecordNotFoundError(food_id)
        if name is not None:
            record.name = name
        if meal is not None:
            record.meal = Meal(meal)
        if log_date is not None:
            record.log_date = log_date
        if image_ref is not None:
            record.image_ref = image_ref
        record.updated_at = time.time()
        return replace(record)

    def delete_food(self, food_id: str) -> None:
        if self.foods.pop(food_id, None) is None:
            raise RecordNotFoundError(food_id)

    def query_foods(
        self, user_id: str, limit: int = DEFAULT_FOOD_QUERY_LIMIT
    ) -> list[FoodRecord]:
        rows = [r for r in self.foods.values() if r.user_id == user_id]
        rows.sort(key=_food_sort_key, reverse=True)
        return [replace(r) for r in rows[:limit]]

    def list_food_image_refs(self) -> list[str]:
        return [r.image_ref for r in self.foods.values() if r.image_ref]

    def list_profile_image_refs(self) -> list[str]:
        refs = [r.image_ref for r in self.profiles.values() if r.image_ref]
        refs.extend(r.photo_url for r in self.accounts.values() if r.photo_url)
        return refs


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

    def _to_account(self, row: "AccountRow") -> AccountRecord:
        return AccountRecord(
            user_id=row.user_id,
            email=row.email,
            password_hash=row.password_hash,
            display_name=row.display_name or "",
            photo_url=row.photo_url,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _to_profile(self, row: "ProfileRow") -> UserProfileRecord:
        return UserProfileRecord(
            user_id=row.user_id,
            full_name=row.full_name or "",
            email=row.email or "",
            gender=Gender(row.gender or ""),
            image_ref=row.image_ref,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _to_food(self, row: "FoodRow") -> FoodRecord:
        return FoodRecord(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            meal=Meal(row.meal),
            log_date=row.log_date,
            image_ref=row.image_ref,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def create_account(self, email: str, password_hash: str) -> AccountRecord:
        now = time.time()
        email = email.strip().lower()
        with self.Session() as session:
            row = AccountRow(
                user_id=uuid.uuid4().hex,
                email=email,
                password_hash=password_hash,
                display_name="",
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateRecordError(email) from exc
            session.refresh(row)
            return self._to_account(row)

    def get_account(self, user_id: str) -> Optional[AccountRecord]:
        with self.Session() as session:
            row = session.get(AccountRow, user_id)
            return self._to_account(row) if row else None

    def get_account_by_email(self, email: str) -> Optional[AccountRecord]:
        with self.Session() as session:
            stmt = select(AccountRow).where(AccountRow.email == email.strip().lower())
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_account(row) if row else None

    def update_account(
        self,
        user_id: str,
        *,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
        password_hash: Optional[str] = None,
    ) -> AccountRecord:
        with self.Session() as session:
            row = session.get(AccountRow, user_id)
            if not row:
                raise RecordNotFoundError(user_id)
            if display_name is not None:
                row.display_name = display_name
            if photo_url is not None:
                row.photo_url = photo_url
            if password_hash is not None:
                row.password_hash = password_hash
            row.updated_at = time.time()
            session.commit()
            session.refresh(row)
            return self._to_account(row)

    def get_profile(self, user_id: str) -> Optional[UserProfileRecord]:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            return self._to_profile(row) if row else None

    def merge_profile(self, user_id: str, fields: dict) -> UserProfileRecord:
        now = time.time()
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            if row is None:
                row = ProfileRow(
                    user_id=user_id,
                    full_name="",
                    email="",
                    gender="",
                    created_at=now,
                )
                session.add(row)
            for key in PROFILE_FIELDS:
                if key in fields:
                    value = fields[key]
                    setattr(row, key, Gender(value).value if key == "gender" else value)
            row.updated_at = now
            session.commit()
            session.refresh(row)
            return self._to_profile(row)

    def create_food(
        self,
        user_id: str,
        *,
        name: str,
        meal: Meal,
        log_date: date,
        image_ref: Optional[str] = None,
    ) -> FoodRecord:
        now = time.time()
        with self.Session() as session:
            row = FoodRow(
                id=uuid.uuid4().hex,
                user_id=user_id,
                name=name,
                meal=Meal(meal).value,
                log_date=log_date,
                image_ref=image_ref,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_food(row)

    def get_food(self, food_id: str) -> Optional[FoodRecord]:
        with self.Session() as session:
            row = session.get(FoodRow, food_id)
            return self._to_food(row) if row else None

    def update_food(
        self,
        food_id: str,
        *,
        name: Optional[str] = None,
        meal: Optional[Meal] = None,
        log_date: Optional[date] = None,
        image_ref: Optional[str] = None,
    ) -> FoodRecord:
        with self.Session() as session:
            row = session.get(FoodRow, food_id)
            if not row:
                raise RecordNotFoundError(food_id)
            if name is not None:
                row.name = name
            if meal is not None:
                row.meal = Meal(meal).value
            if log_date is not None:
                row.log_date = log_date
            if image_ref is not None:
                row.image_ref = image_ref
            row.updated_at = time.time()
            session.commit()
            session.refresh(row)
            return self._to_food(row)

    def delete_food(self, food_id: str) -> None:
        with self.Session() as session:
            row = session.get(FoodRow, food_id)
            if not row:
                raise RecordNotFoundError(food_id)
            session.delete(row)
            session.commit()

    def query_foods(
        self, user_id: str, limit: int = DEFAULT_FOOD_QUERY_LIMIT
    ) -> list[FoodRecord]:
        with self.Session() as session:
            stmt = (
                select(FoodRow)
                .where(FoodRow.user_id == user_id)
                .order_by(FoodRow.log_date.desc(), FoodRow.created_at.desc())
                .limit(limit)
            )
            return [self._to_food(row) for row in session.execute(stmt).scalars()]

    def list_food_image_refs(self) -> list[str]:
        with self.Session() as session:
            stmt = select(FoodRow.image_ref).where(FoodRow.image_ref.is_not(None))
            return [ref for ref in session.execute(stmt).scalars() if ref]

    def list_profile_image_refs(self) -> list[str]:
        with self.Session() as session:
            profile_refs = session.execute(
                select(ProfileRow.image_ref).where(ProfileRow.image_ref.is_not(None))
            ).scalars()
            account_refs = session.execute(
                select(AccountRow.photo_url).where(AccountRow.photo_url.is_not(None))
            ).scalars()
            return [ref for ref in [*profile_refs, *account_refs] if ref]


Base = declarative_base()


class AccountRow(Base):
    __tablename__ = "accounts"

    user_id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class ProfileRow(Base):
    __tablename__ = "user_tb"

    user_id = Column(String, primary_key=True)
    full_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    image_ref = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class FoodRow(Base):
    __tablename__ = "food_tb"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    meal = Column(String, nullable=False)
    log_date = Column(Date, nullable=False, index=True)
    image_ref = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)
