# models.py — Database models for the task board
# - UUID string primary keys everywhere
# - Board → Column → Card ownership hierarchy
# - Dense `order` per sibling group (columns per board, cards per column)
# - owner_id denormalized onto columns and cards at creation time

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, JSON, Boolean, Integer,
    Enum as SQLEnum, ForeignKey, Text, Index,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


def to_iso(dt):
    """ISO-8601 text for API payloads; None passes through"""
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


# ============================================================
# ENUMS
# ============================================================

class CardPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Theme(str, PyEnum):
    LIGHT = "light"
    DARK = "dark"
    VIOLET = "violet"


# ============================================================
# USERS
# ============================================================

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    theme = Column(SQLEnum(Theme), default=Theme.LIGHT, nullable=False)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    boards = relationship("Board", back_populates="owner")


# ============================================================
# TOKEN REVOCATION
# ============================================================

class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    id = Column(String, primary_key=True, default=new_uuid)
    jti = Column(String, unique=True, nullable=False, index=True)  # JWT ID
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    revoked_at = Column(DateTime(timezone=True), default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)


# ============================================================
# KANBAN BOARD
# ============================================================

class Board(Base):
    """Top of the ownership hierarchy"""
    __tablename__ = "boards"

    id = Column(String, primary_key=True, default=new_uuid)
    title = Column(String, nullable=False)
    icon = Column(String, nullable=False, default="📋")
    background = Column(String, nullable=False, default="bg-1")
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="boards")


class BoardColumn(Base):
    """Column in a board. `order` is dense per board_id."""
    __tablename__ = "board_columns"

    id = Column(String, primary_key=True, default=new_uuid)
    board_id = Column(String, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    order = Column(Integer, nullable=False, default=0)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_col_board_order", "board_id", "order"),
    )

    def __init__(self, *, owner_id: str, **kwargs):
        super().__init__(owner_id=owner_id, **kwargs)


class Card(Base):
    """Card in a column. `order` is dense per column_id."""
    __tablename__ = "cards"

    id = Column(String, primary_key=True, default=new_uuid)
    column_id = Column(String, ForeignKey("board_columns.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    order = Column(Integer, nullable=False, default=0)
    priority = Column(SQLEnum(CardPriority), default=CardPriority.LOW, nullable=False)
    labels = Column(JSON, default=list)
    due_date = Column(DateTime(timezone=True), nullable=True)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_card_column_order", "column_id", "order"),
    )

    def __init__(self, *, owner_id: str, **kwargs):
        super().__init__(owner_id=owner_id, **kwargs)
