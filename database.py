#!/usr/bin/env python3
"""
Database models and configuration for the Delicious Fruit catalog.
Holds the SQLAlchemy schema for games, ratings, screenshots, tags, users
and user lists, plus engine/session helpers.
"""

from datetime import datetime
import logging

from sqlalchemy import (
    create_engine, Column, Integer, String, Boolean, DateTime, Text,
    ForeignKey, Float, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from sqlalchemy.pool import StaticPool

logger = logging.getLogger('delfruit.database')

Base = declarative_base()


class User(Base):
    """Site account. Only the fields the catalog joins against."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), default='user')  # 'admin' or 'user'
    date_created = Column(DateTime, default=datetime.utcnow)

    lists = relationship("UserList", back_populates="user", cascade="all, delete-orphan")


class Game(Base):
    """A catalog entry. ``removed`` is the soft-delete flag."""
    __tablename__ = "games"

    id = Column(Integer, primary_key=True)
    name = Column(String(500), nullable=False, index=True)
    sort_name = Column(String(500), nullable=False, index=True)
    url = Column(String(500), nullable=True)
    url_spdrn = Column(String(500), nullable=True)
    # Space separated author names; split on read when ``collab`` is set
    author_raw = Column('author', String(500), nullable=True)
    collab = Column(Boolean, default=False, nullable=False)
    date_created = Column(DateTime, nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    adder_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    removed = Column(Boolean, default=False, nullable=False, index=True)

    ratings = relationship("Rating", back_populates="game")


class Rating(Base):
    """A user's review of a game: rating, difficulty and an optional comment."""
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(Float, nullable=True)  # 0-10
    difficulty = Column(Float, nullable=True)  # 0-100
    comment = Column(Text, nullable=True)
    date_created = Column(DateTime, default=datetime.utcnow)
    removed = Column(Boolean, default=False, nullable=False)

    game = relationship("Game", back_populates="ratings")
    user = relationship("User")


class Screenshot(Base):
    """User submitted screenshot; listed only once approved."""
    __tablename__ = "screenshots"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    added_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    description = Column(Text, nullable=True)
    approved = Column(Boolean, default=False, nullable=False)
    removed = Column(Boolean, default=False, nullable=False)
    date_created = Column(DateTime, default=datetime.utcnow)

    game = relationship("Game")
    added_by = relationship("User")


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)


class GameTag(Base):
    """A tag applied to a game by a user."""
    __tablename__ = "game_tags"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    tag_id = Column(Integer, ForeignKey("tags.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    tag = relationship("Tag")


class UserList(Base):
    """A named, user owned list of games."""
    __tablename__ = "lists"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    date_created = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="lists")
    entries = relationship("ListGame", back_populates="list",
                           cascade="all, delete-orphan", order_by="ListGame.id")


class ListGame(Base):
    """Membership of a game in a list. At most one row per (list, game)."""
    __tablename__ = "list_games"
    __table_args__ = (
        UniqueConstraint('list_id', 'game_id', name='uq_list_games_list_game'),
    )

    id = Column(Integer, primary_key=True)
    list_id = Column(Integer, ForeignKey("lists.id"), nullable=False, index=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    added_at = Column(DateTime, default=datetime.utcnow)

    list = relationship("UserList", back_populates="entries")


def make_engine(database_url: str, echo: bool = False):
    """Create an engine for *database_url*.

    In-memory SQLite URLs get a single shared connection so every session
    (and every thread of the Flask test client) sees the same database.
    """
    if database_url in ('sqlite://', 'sqlite:///:memory:'):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, echo=echo)


def make_session_factory(engine):
    """Return a session factory bound to *engine*."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine) -> None:
    """Create all tables that do not exist yet.

    Raises whatever the engine raises; the caller decides whether a failed
    schema bootstrap is fatal.
    """
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized successfully")
