# ownership.py — Ownership guard and point loaders
#
# Ownership is checked against the denormalized owner_id on the entity itself;
# the Board → Column → Card chain is never walked per request.
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from errors import ForbiddenError, NotFoundError, ValidationFailure
from models import Board, BoardColumn, Card


def parse_id(value: str, kind: str) -> str:
    """Reject ids that are not UUIDs before they reach the database"""
    try:
        return str(uuid.UUID(str(value)))
    except (ValueError, TypeError, AttributeError):
        raise ValidationFailure(f"Invalid {kind} id: {value!r}")


async def _load(db: AsyncSession, model, entity_id: str, kind: str):
    entity = await db.get(model, parse_id(entity_id, kind), populate_existing=True)
    if entity is None:
        raise NotFoundError(f"{kind.capitalize()} not found")
    return entity


async def load_board(db: AsyncSession, board_id: str) -> Board:
    return await _load(db, Board, board_id, "board")


async def load_column(db: AsyncSession, column_id: str) -> BoardColumn:
    return await _load(db, BoardColumn, column_id, "column")


async def load_card(db: AsyncSession, card_id: str) -> Card:
    return await _load(db, Card, card_id, "card")


KIND_NAMES = {Board: "board", BoardColumn: "column", Card: "card"}


def ensure_owner(entity, principal_id: str, action: str = "access"):
    """Fail closed unless the principal owns the entity"""
    if entity.owner_id != principal_id:
        kind = KIND_NAMES.get(type(entity), "resource")
        raise ForbiddenError(f"You do not have permission to {action} this {kind}")
    return entity
