# tests/test_cascade.py — Board and column cascade deletes
import pytest
from sqlalchemy import select, func

import card_service
import cascade
import column_service
from models import Board, BoardColumn, Card


async def _count(db, model, *criteria) -> int:
    result = await db.execute(select(func.count(model.id)).where(*criteria))
    return result.scalar() or 0


@pytest.mark.asyncio
async def test_delete_column_removes_cards_and_closes_gap(db_session, test_user, test_board):
    cols = [
        await column_service.create_column(db_session, test_user.id, test_board.id, title)
        for title in ("To Do", "Doing", "Done")
    ]
    for title in ("a", "b", "c"):
        await card_service.create_card(db_session, test_user.id, cols[1].id, title)
    await card_service.create_card(db_session, test_user.id, cols[2].id, "kept")

    summary = await column_service.delete_column(db_session, test_user.id, cols[1].id)

    assert summary == {"cards_deleted": 3, "columns_shifted": 1}
    remaining = await column_service.list_columns(db_session, test_user.id, test_board.id)
    assert [(c.title, c.order) for c in remaining] == [("To Do", 0), ("Done", 1)]
    assert await _count(db_session, Card, Card.column_id == cols[1].id) == 0
    assert await _count(db_session, Card, Card.column_id == cols[2].id) == 1


@pytest.mark.asyncio
async def test_delete_first_column_shifts_all_siblings(db_session, test_user, test_board):
    cols = [
        await column_service.create_column(db_session, test_user.id, test_board.id, title)
        for title in ("One", "Two", "Three")
    ]
    await cascade.delete_column(db_session, cols[0])
    remaining = await column_service.list_columns(db_session, test_user.id, test_board.id)
    assert [(c.title, c.order) for c in remaining] == [("Two", 0), ("Three", 1)]


@pytest.mark.asyncio
async def test_delete_board_leaves_no_orphans(db_session, test_user, test_board):
    other = Board(title="Keep Me", owner_id=test_user.id)
    db_session.add(other)
    await db_session.commit()
    kept_col = await column_service.create_column(db_session, test_user.id, other.id, "Kept")
    await card_service.create_card(db_session, test_user.id, kept_col.id, "kept card")

    col_ids = []
    for title in ("To Do", "Done"):
        col = await column_service.create_column(db_session, test_user.id, test_board.id, title)
        col_ids.append(col.id)
        for n in range(2):
            await card_service.create_card(db_session, test_user.id, col.id, f"{title} {n}")

    summary = await cascade.delete_board(db_session, test_board)

    assert summary == {"columns_deleted": 2, "cards_deleted": 4}
    assert await _count(db_session, Board, Board.id == test_board.id) == 0
    assert await _count(db_session, BoardColumn, BoardColumn.board_id == test_board.id) == 0
    assert await _count(db_session, Card, Card.column_id.in_(col_ids)) == 0
    assert await _count(db_session, Card, Card.column_id == kept_col.id) == 1


@pytest.mark.asyncio
async def test_delete_empty_board(db_session, test_board):
    summary = await cascade.delete_board(db_session, test_board)
    assert summary == {"columns_deleted": 0, "cards_deleted": 0}
    assert await _count(db_session, Board, Board.id == test_board.id) == 0
