from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, SmallInteger, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from ..core.keys import Category
from .base import Base

_category_enum = Enum(
    Category,
    name="item_category",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    length=16,
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    session_token: Mapped[str | None] = mapped_column(String(64), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    spotify_user_id: Mapped[str | None] = mapped_column(String(128))
    spotify_access_token: Mapped[str | None] = mapped_column(Text)
    spotify_refresh_token: Mapped[str | None] = mapped_column(Text)
    spotify_token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    spotify_display_name: Mapped[str | None] = mapped_column(String(255))
    spotify_avatar_url: Mapped[str | None] = mapped_column(Text)

    favorites: Mapped[list["Favorite"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    ratings: Mapped[list["Rating"]] = relationship(back_populates="user", cascade="all, delete-orphan")

    @property
    def spotify_connected(self) -> bool:
        return bool(self.spotify_user_id)


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "dedup_key", name="uq_favorites_user_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    category: Mapped[Category] = mapped_column(_category_enum, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    artist: Mapped[str | None] = mapped_column(String(255))
    dedup_key: Mapped[str] = mapped_column(String(600), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

    user: Mapped[User] = relationship(back_populates="favorites")


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (UniqueConstraint("user_id", "item_key", name="uq_ratings_user_item"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    item_category: Mapped[Category] = mapped_column(_category_enum, nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_artist: Mapped[str | None] = mapped_column(String(255))
    item_key: Mapped[str] = mapped_column(String(600), nullable=False)
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user: Mapped[User] = relationship(back_populates="ratings")
