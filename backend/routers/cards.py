# routers/cards.py — Card endpoints: CRUD, reorder, cross-column move
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

import card_service
from auth import get_current_user, CurrentUser
from database import get_db_session
from models import Card, CardPriority, to_iso

router = APIRouter(prefix="/api/v1/cards", tags=["Cards"])


# ============================================================
# SCHEMAS
# ============================================================

class CardCreate(BaseModel):
    column_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    priority: CardPriority = CardPriority.LOW
    labels: List[str] = []
    due_date: Optional[datetime] = None


class CardUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    priority: Optional[CardPriority] = None
    labels: Optional[List[str]] = None
    due_date: Optional[datetime] = None


class CardOrder(BaseModel):
    id: str
    order: int = Field(..., ge=0)


class CardReorder(BaseModel):
    column_id: str
    card_orders: List[CardOrder]


class CardMove(BaseModel):
    destination_column_id: str
    order: Optional[int] = Field(None, ge=0)


class CardOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    column_id: str
    order: int
    priority: str
    labels: List[str] = []
    due_date: Optional[str] = None
    owner_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# Fields that may be cleared by sending null; the rest ignore nulls
NULLABLE_FIELDS = {"description", "due_date"}


def card_to_out(card: Card) -> CardOut:
    priority = card.priority.value if hasattr(card.priority, "value") else card.priority
    return CardOut(
        id=card.id,
        title=card.title,
        description=card.description,
        column_id=card.column_id,
        order=card.order,
        priority=priority or CardPriority.LOW.value,
        labels=card.labels or [],
        due_date=to_iso(card.due_date),
        owner_id=card.owner_id,
        created_at=to_iso(card.created_at),
        updated_at=to_iso(card.updated_at),
    )


# ============================================================
# ENDPOINTS
# ============================================================

@router.post("", response_model=CardOut, status_code=201)
async def create_card(
    data: CardCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Append a new card to the end of a column"""
    card = await card_service.create_card(
        db, user.id, data.column_id, data.title,
        description=data.description,
        priority=data.priority,
        labels=data.labels,
        due_date=data.due_date,
    )
    return card_to_out(card)


@router.get("/column/{column_id}", response_model=List[CardOut])
async def list_cards(
    column_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List a column's cards in order"""
    cards = await card_service.list_cards(db, user.id, column_id)
    return [card_to_out(c) for c in cards]


@router.post("/column/{column_id}/resequence")
async def resequence_cards(
    column_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Repair the column's card orders back to 0..N-1"""
    repaired, cards = await card_service.resequence_cards(db, user.id, column_id)
    return {"repaired": repaired, "cards": [card_to_out(c) for c in cards]}


@router.patch("/reorder", response_model=List[CardOut])
async def reorder_cards(
    data: CardReorder,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Apply drag-and-drop order hints within one column"""
    cards = await card_service.reorder_cards(
        db, user.id, data.column_id, [(o.id, o.order) for o in data.card_orders]
    )
    return [card_to_out(c) for c in cards]


@router.get("/{card_id}", response_model=CardOut)
async def get_card(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    card = await card_service.get_card(db, user.id, card_id)
    return card_to_out(card)


@router.put("/{card_id}", response_model=CardOut)
async def update_card(
    card_id: str,
    data: CardUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Update card fields; use the move endpoint to change column or order"""
    fields = {
        k: v for k, v in data.model_dump(exclude_unset=True).items()
        if v is not None or k in NULLABLE_FIELDS
    }
    card = await card_service.update_card(db, user.id, card_id, fields)
    return card_to_out(card)


@router.patch("/{card_id}/move", response_model=CardOut)
async def move_card(
    card_id: str,
    data: CardMove,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Move a card to another column (or within its own) at a given order"""
    card = await card_service.move_card(db, user.id, card_id, data.destination_column_id, data.order)
    return card_to_out(card)


@router.delete("/{card_id}", status_code=204)
async def delete_card(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a card and close the gap it leaves in its column"""
    await card_service.delete_card(db, user.id, card_id)
    return Response(status_code=204)
