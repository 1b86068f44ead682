# column_service.py — Column CRUD on top of the order sequencer
from typing import List, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

import cascade
from models import BoardColumn
from ordering import (
    append, columns_of, list_members, locked_sequence, reorder_within_group, resequence,
)
from ownership import ensure_owner, load_board, load_column


async def create_column(db: AsyncSession, principal_id: str, board_id: str, title: str) -> BoardColumn:
    """Append a new column at the end of the board"""
    board = ensure_owner(await load_board(db, board_id), principal_id, "add columns to")
    group = columns_of(board.id)

    async with locked_sequence(db, group):
        board = await load_board(db, board.id)
        column = BoardColumn(
            board_id=board.id,
            title=title,
            order=await append(db, group),
            owner_id=board.owner_id,
        )
        db.add(column)

    return column


async def list_columns(db: AsyncSession, principal_id: str, board_id: str) -> List[BoardColumn]:
    board = ensure_owner(await load_board(db, board_id), principal_id, "view")
    return await list_members(db, columns_of(board.id))


async def get_column(db: AsyncSession, principal_id: str, column_id: str) -> BoardColumn:
    return ensure_owner(await load_column(db, column_id), principal_id, "view")


async def update_column(db: AsyncSession, principal_id: str, column_id: str, title: str) -> BoardColumn:
    column = ensure_owner(await load_column(db, column_id), principal_id, "update")
    column.title = title
    await db.commit()
    return column


async def delete_column(db: AsyncSession, principal_id: str, column_id: str) -> dict:
    column = ensure_owner(await load_column(db, column_id), principal_id, "delete")
    return await cascade.delete_column(db, column)


async def reorder_columns(
    db: AsyncSession, principal_id: str, board_id: str, assignments: Sequence[Tuple[str, int]],
) -> List[BoardColumn]:
    board = ensure_owner(await load_board(db, board_id), principal_id, "update")
    group = columns_of(board.id)
    async with locked_sequence(db, group):
        columns = await reorder_within_group(db, group, assignments)
    return columns


async def resequence_columns(db: AsyncSession, principal_id: str, board_id: str) -> Tuple[int, List[BoardColumn]]:
    board = ensure_owner(await load_board(db, board_id), principal_id, "update")
    group = columns_of(board.id)
    async with locked_sequence(db, group):
        repaired = await resequence(db, group)
        columns = await list_members(db, group)
    return repaired, columns
