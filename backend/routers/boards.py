# routers/boards.py — Board endpoints with nested column/card views
from typing import Optional, List

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import cascade
from auth import get_current_user, CurrentUser
from database import get_db_session
from models import Board, Card, to_iso
from ordering import columns_of, list_members
from ownership import ensure_owner, load_board
from routers.cards import CardOut, card_to_out
from routers.columns import ColumnOut, column_to_out

router = APIRouter(prefix="/api/v1/boards", tags=["Boards"])


# ============================================================
# SCHEMAS
# ============================================================

class BoardCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=50)
    icon: Optional[str] = Field(None, max_length=16)
    background: Optional[str] = Field(None, max_length=50)


class BoardUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=2, max_length=50)
    icon: Optional[str] = Field(None, max_length=16)
    background: Optional[str] = Field(None, max_length=50)


class BoardOut(BaseModel):
    id: str
    title: str
    icon: str
    background: str
    owner_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ColumnWithCardsOut(ColumnOut):
    cards: List[CardOut] = []


class BoardDetailOut(BoardOut):
    columns: List[ColumnWithCardsOut] = []


def _board_fields(board: Board) -> dict:
    return dict(
        id=board.id,
        title=board.title,
        icon=board.icon,
        background=board.background,
        owner_id=board.owner_id,
        created_at=to_iso(board.created_at),
        updated_at=to_iso(board.updated_at),
    )


async def _board_detail(db: AsyncSession, board: Board) -> BoardDetailOut:
    """Board with its columns in order, each carrying its cards in order"""
    columns = await list_members(db, columns_of(board.id))
    by_column = {c.id: [] for c in columns}
    if columns:
        stmt = (
            select(Card)
            .where(Card.column_id.in_(list(by_column)))
            .order_by(Card.order.asc(), Card.created_at.asc(), Card.id.asc())
        )
        result = await db.execute(stmt)
        for card in result.scalars().all():
            by_column[card.column_id].append(card_to_out(card))

    return BoardDetailOut(
        **_board_fields(board),
        columns=[
            ColumnWithCardsOut(**column_to_out(c).model_dump(), cards=by_column[c.id])
            for c in columns
        ],
    )


# ============================================================
# ENDPOINTS
# ============================================================

@router.get("", response_model=List[BoardOut])
async def list_boards(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List the caller's boards, newest first"""
    stmt = (
        select(Board)
        .where(Board.owner_id == user.id)
        .order_by(Board.created_at.desc())
    )
    result = await db.execute(stmt)
    return [BoardOut(**_board_fields(b)) for b in result.scalars().all()]


@router.post("", response_model=BoardOut, status_code=201)
async def create_board(
    data: BoardCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    board = Board(title=data.title, owner_id=user.id)
    if data.icon:
        board.icon = data.icon
    if data.background:
        board.background = data.background
    db.add(board)
    await db.commit()
    await db.refresh(board)
    return BoardOut(**_board_fields(board))


@router.get("/{board_id}", response_model=BoardDetailOut)
async def get_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    board = ensure_owner(await load_board(db, board_id), user.id, "view")
    return await _board_detail(db, board)


@router.put("/{board_id}", response_model=BoardOut)
async def update_board(
    board_id: str,
    data: BoardUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Update title, icon or background"""
    board = ensure_owner(await load_board(db, board_id), user.id, "update")

    if data.title is not None:
        board.title = data.title
    if data.icon is not None:
        board.icon = data.icon
    if data.background is not None:
        board.background = data.background

    await db.commit()
    await db.refresh(board)
    return BoardOut(**_board_fields(board))


@router.delete("/{board_id}", status_code=204)
async def delete_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a board together with its columns and cards"""
    board = ensure_owner(await load_board(db, board_id), user.id, "delete")
    await cascade.delete_board(db, board)
    return Response(status_code=204)
