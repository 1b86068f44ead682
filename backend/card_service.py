# card_service.py — Card CRUD, reordering and cross-column moves
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from errors import ConflictError
from models import Card, CardPriority
from ordering import (
    SiblingGroup, append, cards_of, close_gap, list_members, locked_sequence,
    move_across_groups, reorder_within_group, resequence,
)
from ownership import ensure_owner, load_card, load_column

logger = logging.getLogger("taskboard.cards")

UPDATABLE_FIELDS = ("title", "description", "due_date", "priority", "labels")


async def _reload_in_group(db: AsyncSession, card_id: str, group: SiblingGroup) -> Card:
    """Fresh copy of the card, which must still sit in `group`"""
    card = await load_card(db, card_id)
    if card.column_id != group.parent_id:
        raise ConflictError("Card was moved by another request, retry the request")
    return card


async def create_card(
    db: AsyncSession,
    principal_id: str,
    column_id: str,
    title: str,
    description: Optional[str] = None,
    priority: CardPriority = CardPriority.LOW,
    labels: Optional[List[str]] = None,
    due_date=None,
) -> Card:
    """Append a new card at the end of the column"""
    column = ensure_owner(await load_column(db, column_id), principal_id, "add cards to")
    group = cards_of(column.id)

    async with locked_sequence(db, group):
        column = await load_column(db, column.id)
        card = Card(
            column_id=column.id,
            title=title,
            description=description,
            priority=CardPriority(priority),
            labels=list(labels or []),
            due_date=due_date,
            order=await append(db, group),
            owner_id=column.owner_id,
        )
        db.add(card)

    return card


async def list_cards(db: AsyncSession, principal_id: str, column_id: str) -> List[Card]:
    column = ensure_owner(await load_column(db, column_id), principal_id, "view cards in")
    return await list_members(db, cards_of(column.id))


async def get_card(db: AsyncSession, principal_id: str, card_id: str) -> Card:
    return ensure_owner(await load_card(db, card_id), principal_id, "view")


async def update_card(db: AsyncSession, principal_id: str, card_id: str, fields: Dict[str, Any]) -> Card:
    """Update plain fields; order and column are never touched here"""
    card = ensure_owner(await load_card(db, card_id), principal_id, "update")
    for name in UPDATABLE_FIELDS:
        if name not in fields:
            continue
        value = fields[name]
        if name == "priority":
            value = CardPriority(value)
        elif name == "labels":
            value = list(value or [])
        setattr(card, name, value)
    await db.commit()
    return card


async def delete_card(db: AsyncSession, principal_id: str, card_id: str) -> int:
    """Delete the card and close the gap it leaves. Returns siblings shifted."""
    card = ensure_owner(await load_card(db, card_id), principal_id, "delete")
    group = cards_of(card.column_id)

    async with locked_sequence(db, group):
        current = await _reload_in_group(db, card.id, group)
        removed_order = current.order
        await db.delete(current)
        await db.flush()
        shifted = await close_gap(db, group, removed_order, exclude_id=current.id)

    logger.info(f"Deleted card {card_id} at {removed_order} from column {group.parent_id}")
    return shifted


async def reorder_cards(
    db: AsyncSession, principal_id: str, column_id: str, assignments: Sequence[Tuple[str, int]],
) -> List[Card]:
    column = ensure_owner(await load_column(db, column_id), principal_id, "reorder cards in")
    group = cards_of(column.id)
    async with locked_sequence(db, group):
        cards = await reorder_within_group(db, group, assignments)
    return cards


async def move_card(
    db: AsyncSession, principal_id: str, card_id: str, dest_column_id: str, dest_order: Optional[int] = None,
) -> Card:
    """Move a card to `dest_order` of a column (possibly its own).

    The card, its source column and the destination column must all belong to
    the principal. `dest_order` is clamped; None appends.
    """
    card = ensure_owner(await load_card(db, card_id), principal_id, "move")
    ensure_owner(await load_column(db, card.column_id), principal_id, "move cards out of")
    dest_column = ensure_owner(await load_column(db, dest_column_id), principal_id, "add cards to")

    source = cards_of(card.column_id)
    dest = cards_of(dest_column.id)

    async with locked_sequence(db, source, dest):
        current = await _reload_in_group(db, card.id, source)
        await load_column(db, dest_column.id)
        await move_across_groups(db, current, source, dest, dest_order)

    return current


async def resequence_cards(db: AsyncSession, principal_id: str, column_id: str) -> Tuple[int, List[Card]]:
    column = ensure_owner(await load_column(db, column_id), principal_id, "update")
    group = cards_of(column.id)
    async with locked_sequence(db, group):
        repaired = await resequence(db, group)
        cards = await list_members(db, group)
    return repaired, cards
