# cascade.py — Explicit cascade deletes for columns, boards and accounts
#
# Board:  fetch columns → delete their cards → delete columns → delete board
# Column: delete its cards → delete the column → close the gap among siblings
# Account: delete each owned board → delete revoked tokens → delete the user
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Board, BoardColumn, Card, RevokedToken, User
from ordering import cards_of, close_gap, columns_of, list_members, locked_sequence
from ownership import load_board, load_column

logger = logging.getLogger("taskboard.cascade")


async def _delete_cards_in(db: AsyncSession, column_ids: list) -> int:
    if not column_ids:
        return 0
    result = await db.execute(
        delete(Card)
        .where(Card.column_id.in_(column_ids))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def delete_column(db: AsyncSession, column: BoardColumn) -> dict:
    """Remove a column with all of its cards and compact the board's columns"""
    siblings = columns_of(column.board_id)
    async with locked_sequence(db, siblings, cards_of(column.id)):
        current = await load_column(db, column.id)
        removed_order = current.order

        cards_deleted = await _delete_cards_in(db, [current.id])
        await db.delete(current)
        await db.flush()
        shifted = await close_gap(db, siblings, removed_order, exclude_id=current.id)

    logger.info(
        f"Deleted column {column.id} from board {column.board_id}: "
        f"{cards_deleted} cards removed, {shifted} columns shifted"
    )
    return {"cards_deleted": cards_deleted, "columns_shifted": shifted}


async def delete_board(db: AsyncSession, board: Board) -> dict:
    """Remove a board and everything under it.

    Whole sibling groups disappear together, so no gap closing is needed.
    """
    known_columns = await list_members(db, columns_of(board.id))
    groups = [columns_of(board.id)] + [cards_of(c.id) for c in known_columns]

    async with locked_sequence(db, *groups):
        current = await load_board(db, board.id)
        columns = await list_members(db, columns_of(current.id))
        column_ids = [c.id for c in columns]

        cards_deleted = await _delete_cards_in(db, column_ids)
        result = await db.execute(
            delete(BoardColumn)
            .where(BoardColumn.board_id == current.id)
            .execution_options(synchronize_session=False)
        )
        columns_deleted = result.rowcount or 0
        await db.delete(current)

    logger.info(f"Deleted board {board.id}: {columns_deleted} columns, {cards_deleted} cards")
    return {"columns_deleted": columns_deleted, "cards_deleted": cards_deleted}


async def delete_account(db: AsyncSession, user_id: str) -> dict:
    """Remove a user with every board they own"""
    result = await db.execute(select(Board).where(Board.owner_id == user_id))
    boards = list(result.scalars().all())

    columns_deleted = cards_deleted = 0
    for board in boards:
        counts = await delete_board(db, board)
        columns_deleted += counts["columns_deleted"]
        cards_deleted += counts["cards_deleted"]

    try:
        await db.execute(
            delete(RevokedToken)
            .where(RevokedToken.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            delete(User)
            .where(User.id == user_id)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Deleted account {user_id[:8]}: {len(boards)} boards, "
        f"{columns_deleted} columns, {cards_deleted} cards"
    )
    return {"boards_deleted": len(boards), "columns_deleted": columns_deleted, "cards_deleted": cards_deleted}
