# routers/columns.py — Column endpoints: CRUD, reorder, repair
from typing import Optional, List

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

import column_service
from auth import get_current_user, CurrentUser
from database import get_db_session
from models import BoardColumn, to_iso

router = APIRouter(prefix="/api/v1/columns", tags=["Columns"])


# ============================================================
# SCHEMAS
# ============================================================

class ColumnCreate(BaseModel):
    board_id: str
    title: str = Field(..., min_length=2, max_length=50)


class ColumnUpdate(BaseModel):
    title: str = Field(..., min_length=2, max_length=50)


class ColumnOrder(BaseModel):
    id: str
    order: int = Field(..., ge=0)


class ColumnReorder(BaseModel):
    board_id: str
    column_orders: List[ColumnOrder]


class ColumnOut(BaseModel):
    id: str
    title: str
    board_id: str
    order: int
    owner_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


def column_to_out(col: BoardColumn) -> ColumnOut:
    return ColumnOut(
        id=col.id,
        title=col.title,
        board_id=col.board_id,
        order=col.order,
        owner_id=col.owner_id,
        created_at=to_iso(col.created_at),
        updated_at=to_iso(col.updated_at),
    )


# ============================================================
# ENDPOINTS
# ============================================================

@router.post("", response_model=ColumnOut, status_code=201)
async def create_column(
    data: ColumnCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Append a new column to a board"""
    col = await column_service.create_column(db, user.id, data.board_id, data.title)
    return column_to_out(col)


@router.get("/board/{board_id}", response_model=List[ColumnOut])
async def list_columns(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List a board's columns in order"""
    columns = await column_service.list_columns(db, user.id, board_id)
    return [column_to_out(c) for c in columns]


@router.post("/board/{board_id}/resequence")
async def resequence_columns(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Repair the board's column orders back to 0..N-1"""
    repaired, columns = await column_service.resequence_columns(db, user.id, board_id)
    return {"repaired": repaired, "columns": [column_to_out(c) for c in columns]}


@router.patch("/reorder", response_model=List[ColumnOut])
async def reorder_columns(
    data: ColumnReorder,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Apply drag-and-drop order hints to a board's columns"""
    columns = await column_service.reorder_columns(
        db, user.id, data.board_id, [(o.id, o.order) for o in data.column_orders]
    )
    return [column_to_out(c) for c in columns]


@router.get("/{column_id}", response_model=ColumnOut)
async def get_column(
    column_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    col = await column_service.get_column(db, user.id, column_id)
    return column_to_out(col)


@router.put("/{column_id}", response_model=ColumnOut)
async def update_column(
    column_id: str,
    data: ColumnUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Rename a column; its order is unchanged"""
    col = await column_service.update_column(db, user.id, column_id, data.title)
    return column_to_out(col)


@router.delete("/{column_id}", status_code=204)
async def delete_column(
    column_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a column with its cards and close the gap it leaves"""
    await column_service.delete_column(db, user.id, column_id)
    return Response(status_code=204)
