"""
Task Board — Order Sequencer

Keeps the `order` field of a sibling group (columns of a board, cards of a
column) dense: after every completed operation the orders are exactly
0..count-1. Sibling shifts are issued as range updates that increment or
decrement `order`; no group is rewritten wholesale except by an explicit
reorder or repair.

Every multi-row sequence runs inside `locked_sequence`, which serialises work
per group with an in-process keyed lock and commits the whole sequence as a
single transaction.
"""

import asyncio
import logging
import os
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from errors import ConflictError, ValidationFailure
from models import BoardColumn, Card

logger = logging.getLogger("taskboard.ordering")

LOCK_TIMEOUT_SECONDS = float(os.getenv("ORDER_LOCK_TIMEOUT_SECONDS", "10"))


# ============================================================
# SIBLING GROUPS
# ============================================================

@dataclass(frozen=True)
class SiblingGroup:
    """Rows of `model` sharing one value of `parent_field`"""
    model: type
    parent_field: str
    parent_id: str

    @property
    def parent_column(self):
        return getattr(self.model, self.parent_field)

    @property
    def lock_key(self) -> str:
        return f"{self.model.__tablename__}:{self.parent_id}"

    def where(self, *criteria) -> tuple:
        return (self.parent_column == self.parent_id, *criteria)


def columns_of(board_id: str) -> SiblingGroup:
    return SiblingGroup(BoardColumn, "board_id", board_id)


def cards_of(column_id: str) -> SiblingGroup:
    return SiblingGroup(Card, "column_id", column_id)


# ============================================================
# GROUP LOCKS
# ============================================================

class GroupLocks:
    """Keyed asyncio locks, one per sibling group, dropped when idle"""

    def __init__(self, timeout: float = LOCK_TIMEOUT_SECONDS):
        self.timeout = timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = defaultdict(int)  # holders + waiters

    def _checkout(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] += 1
        return lock

    def _checkin(self, key: str) -> None:
        self._users[key] -= 1
        if self._users[key] <= 0:
            self._users.pop(key, None)
            self._locks.pop(key, None)

    @asynccontextmanager
    async def hold(self, *keys: str):
        """Acquire every key, always in sorted order"""
        held: List[Tuple[str, asyncio.Lock]] = []
        try:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
                except asyncio.TimeoutError:
                    self._checkin(key)
                    logger.warning(f"Timed out after {self.timeout}s waiting for order lock {key}")
                    raise ConflictError("Sibling group is busy, retry the request")
                except asyncio.CancelledError:
                    self._checkin(key)
                    raise
                held.append((key, lock))
            yield
        finally:
            for key, lock in reversed(held):
                lock.release()
                self._checkin(key)

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def get_stats(self) -> dict:
        return {
            "tracked_groups": len(self._locks),
            "locked_groups": sum(1 for lock in self._locks.values() if lock.locked()),
        }


# Global lock registry (single process)
group_locks = GroupLocks()


@asynccontextmanager
async def locked_sequence(db: AsyncSession, *groups: SiblingGroup):
    """Run a reindexing sequence as one transaction while holding the groups' locks.

    Pre-checks done before entering have already read what they need, so any
    open read transaction is ended first; the body must re-read the rows it
    shifts. Commits on success, rolls back on any failure.
    """
    if db.in_transaction():
        await db.commit()
    async with group_locks.hold(*(g.lock_key for g in groups)):
        try:
            yield
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Integrity error during reindex of {[g.lock_key for g in groups]}: {e}")
            raise ConflictError("Parent changed during the operation, retry the request") from e
        except Exception:
            await db.rollback()
            raise


# ============================================================
# READS
# ============================================================

async def list_members(db: AsyncSession, group: SiblingGroup) -> list:
    """Members sorted by order; ties fall back to creation time, then id"""
    model = group.model
    stmt = (
        select(model)
        .where(*group.where())
        .order_by(model.order.asc(), model.created_at.asc(), model.id.asc())
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_members(db: AsyncSession, group: SiblingGroup, exclude_id: Optional[str] = None) -> int:
    model = group.model
    criteria = [model.id != exclude_id] if exclude_id else []
    stmt = select(func.count(model.id)).where(*group.where(*criteria))
    result = await db.execute(stmt)
    return result.scalar() or 0


# ============================================================
# SEQUENCER OPERATIONS
# ============================================================

async def append(db: AsyncSession, group: SiblingGroup) -> int:
    """Order for a new member at the end of the group: max + 1, or 0 when empty"""
    stmt = select(func.max(group.model.order)).where(*group.where())
    result = await db.execute(stmt)
    highest = result.scalar()
    return 0 if highest is None else highest + 1


async def _shift(db: AsyncSession, group: SiblingGroup, delta: int, *criteria) -> int:
    model = group.model
    stmt = (
        update(model)
        .where(*group.where(*criteria))
        .values(order=model.order + delta)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount or 0


async def close_gap(
    db: AsyncSession, group: SiblingGroup, removed_order: int, exclude_id: Optional[str] = None,
) -> int:
    """Decrement every member above `removed_order`.

    Run after the removed row is gone (or pass its id as `exclude_id`). Only
    shifts while `removed_order` is actually vacant, so retrying on an already
    compacted group is a no-op.
    """
    model = group.model
    excluded = [model.id != exclude_id] if exclude_id else []
    occupied = await db.execute(
        select(func.count(model.id)).where(*group.where(model.order == removed_order, *excluded))
    )
    if occupied.scalar():
        logger.debug(f"close_gap {group.lock_key} at {removed_order}: slot occupied, nothing to do")
        return 0
    shifted = await _shift(db, group, -1, model.order > removed_order, *excluded)
    logger.debug(f"close_gap {group.lock_key} above {removed_order}: {shifted} shifted")
    return shifted


async def open_slot(db: AsyncSession, group: SiblingGroup, at_order: int, exclude_id: Optional[str] = None) -> int:
    """Increment every member at or above `at_order`"""
    criteria = [group.model.order >= at_order]
    if exclude_id:
        criteria.append(group.model.id != exclude_id)
    return await _shift(db, group, 1, *criteria)


async def reorder_within_group(
    db: AsyncSession, group: SiblingGroup, assignments: Sequence[Tuple[str, int]],
) -> list:
    """Apply client order hints and re-derive a dense sequence.

    Supplied values are treated as desired positions, not stored verbatim.
    Members without a hint keep their relative order; hinted members are then
    placed at their hinted slot, lowest hint first, clamped to the end of the
    group. Equal hints keep payload order. The result is renumbered 0..N-1, so
    `{a: 1}` on `[a, b, c]` yields `[b, a, c]` and `{a: 5}` yields `[b, c, a]`.
    Unknown, foreign or duplicated ids are rejected.
    """
    members = await list_members(db, group)
    by_id = {m.id: m for m in members}

    hints: Dict[str, int] = {}
    for entity_id, order in assignments:
        if entity_id in hints:
            raise ValidationFailure(f"Duplicate id in reorder payload: {entity_id}")
        if entity_id not in by_id:
            raise ValidationFailure(f"{entity_id} does not belong to this group")
        if order < 0:
            raise ValidationFailure(f"Order must be non-negative, got {order} for {entity_id}")
        hints[entity_id] = order

    ranked = [m for m in members if m.id not in hints]
    last_slot = -1
    # sorted() is stable, so equal hints stay in payload order
    for entity_id, order in sorted(hints.items(), key=lambda item: item[1]):
        slot = min(max(order, last_slot + 1), len(ranked))
        ranked.insert(slot, by_id[entity_id])
        last_slot = slot

    changed = 0
    ordered = []
    for position, member in enumerate(ranked):
        if member.order != position:
            member.order = position
            changed += 1
        ordered.append(member)

    if changed:
        await db.flush()
    logger.info(f"Reordered {group.lock_key}: {changed} of {len(members)} members changed")
    return ordered


async def _move_within_group(
    db: AsyncSession, entity, group: SiblingGroup, dest_order: Optional[int],
) -> int:
    size = await count_members(db, group)
    last = max(size - 1, 0)
    target = last if dest_order is None else max(0, min(dest_order, last))
    current = entity.order
    if target == current:
        return target

    model = group.model
    if target > current:
        # moving forward: members in (current, target] slide back one
        await _shift(db, group, -1, model.order > current, model.order <= target, model.id != entity.id)
    else:
        # moving backward: members in [target, current) slide forward one
        await _shift(db, group, 1, model.order >= target, model.order < current, model.id != entity.id)

    entity.order = target
    await db.flush()
    logger.info(f"Moved {entity.id} within {group.lock_key}: {current} -> {target}")
    return target


async def move_across_groups(
    db: AsyncSession, entity, source: SiblingGroup, dest: SiblingGroup, dest_order: Optional[int],
) -> int:
    """Relocate `entity` to `dest` at `dest_order` (clamped; None appends).

    Returns the order the entity ended up with. Source and destination shifts
    touch disjoint rows; a same-group move takes the single bridging shift
    instead so no member is shifted twice.
    """
    if source == dest:
        return await _move_within_group(db, entity, source, dest_order)

    prior_order = entity.order
    dest_size = await count_members(db, dest, exclude_id=entity.id)
    target = dest_size if dest_order is None else max(0, min(dest_order, dest_size))

    closed = await close_gap(db, source, prior_order, exclude_id=entity.id)
    opened = await open_slot(db, dest, target, exclude_id=entity.id)

    setattr(entity, dest.parent_field, dest.parent_id)
    entity.order = target
    await db.flush()

    logger.info(
        f"Moved {entity.id} {source.lock_key}[{prior_order}] -> {dest.lock_key}[{target}] "
        f"(closed {closed}, opened {opened})"
    )
    return target


async def resequence(db: AsyncSession, group: SiblingGroup) -> int:
    """Repair pass: renumber the group 0..N-1 from its current ordering"""
    members = await list_members(db, group)
    changed = 0
    for position, member in enumerate(members):
        if member.order != position:
            member.order = position
            changed += 1
    if changed:
        await db.flush()
        logger.warning(f"Resequenced {group.lock_key}: repaired {changed} of {len(members)} orders")
    return changed
