"""
Database - Relational Store for Card Engine Records

Implements the StatsStore and FrameStore contracts on SQLAlchemy.

This module handles ONLY database I/O. Records are converted to and from
the pydantic schemas here, so repairs of damaged rows happen at this
boundary like with any other store. Every SQLAlchemyError is re-raised as
StorageUnavailable.

Calls are synchronous under the hood; the caller is a single-threaded
cooperative loop, so a short blocking query per call is acceptable.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional, Union

from sqlalchemy import create_engine, func, inspect, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from cardengine.config import get_database_url
from cardengine.errors import StorageUnavailable
from cardengine.memory.constants import Mode
from cardengine.memory.models import (
    Base,
    Frame,
    FrameStatsRow,
    Item,
    ItemStatsRow,
    ModeStateRow,
    ReviewEventRow,
)
from cardengine.schemas import FrameStats, ItemStats, ModeState, ReviewEvent

logger = logging.getLogger(__name__)

_TABLES = ('items', 'item_stats', 'mode_state', 'review_events', 'frames', 'frame_stats')


# ---- Engine and sessions ----

def get_engine(url: Optional[str] = None) -> Engine:
    """
    Get SQLAlchemy engine for database connection.

    Args:
        url: Connection string (defaults to DATABASE_URL)
    """
    db_url = url or get_database_url()
    if db_url.startswith("sqlite"):
        return create_engine(db_url, echo=False)
    return create_engine(
        db_url,
        pool_size=5,           # Keep 5 connections open
        max_overflow=10,       # Allow up to 10 extra connections
        pool_pre_ping=True,    # Verify connections before use
        echo=False
    )


def get_session(engine: Optional[Engine] = None) -> Session:
    """Get a SQLAlchemy session for database operations."""
    SessionLocal = sessionmaker(bind=engine or get_engine(), expire_on_commit=False)
    return SessionLocal()


def init_db(engine: Optional[Engine] = None) -> None:
    """
    Create the schema if any table is missing.

    Safe to call multiple times.
    """
    engine = engine or get_engine()
    existing_tables = set(inspect(engine).get_table_names())
    if not existing_tables.issuperset(_TABLES):
        Base.metadata.create_all(engine)
        logger.info("Created card engine schema")


def reset_db(engine: Optional[Engine] = None) -> None:
    """
    DANGEROUS: Delete all data and recreate tables.

    All review history will be lost!
    """
    engine = engine or get_engine()
    Base.metadata.drop_all(engine)
    logger.info("All card engine tables dropped")
    init_db(engine)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---- Row conversion ----

def _mode_state_data(row: ModeStateRow) -> dict:
    return {
        "stability": row.stability,
        "last_seen": row.last_seen,
        "due": row.due,
        "accuracy": row.accuracy,
        "streak": row.streak,
        "shown": row.shown,
    }


def _item_stats_from_row(row: ItemStatsRow) -> ItemStats:
    modes = {mode_row.mode: _mode_state_data(mode_row) for mode_row in row.modes}
    return ItemStats.model_validate({
        "item_id": row.item_id,
        "stage": row.stage,
        "introduced": row.introduced,
        **{mode.value: modes.get(mode.value) for mode in Mode},
    })


def _write_mode_state(row: ModeStateRow, state: ModeState) -> None:
    row.stability = state.stability
    row.last_seen = _to_utc(state.last_seen)
    row.due = _to_utc(state.due)
    row.accuracy = state.accuracy
    row.streak = state.streak
    row.shown = state.shown


def _frame_stats_from_row(row: FrameStatsRow) -> FrameStats:
    return FrameStats.model_validate({
        "frame_id": row.frame_id,
        "stability": row.stability,
        "last_seen": row.last_seen,
        "due": row.due,
        "accuracy": row.accuracy,
        "streak": row.streak,
        "shown": row.shown,
    })


def _review_event_from_row(row: ReviewEventRow) -> ReviewEvent:
    return ReviewEvent(
        item_id=row.item_id,
        mode=Mode(row.mode),
        success=row.success,
        timestamp=row.timestamp,
        recall_before=row.recall_before,
        stability_before=row.stability_before,
        stability_after=row.stability_after,
        due_after=row.due_after,
        accuracy_after=row.accuracy_after,
        streak_after=row.streak_after,
        stage_before=Mode(row.stage_before),
        stage_after=Mode(row.stage_after),
    )


def _review_event_row(event: ReviewEvent) -> ReviewEventRow:
    return ReviewEventRow(
        item_id=event.item_id,
        mode=event.mode.value,
        success=event.success,
        timestamp=_to_utc(event.timestamp),
        recall_before=event.recall_before,
        stability_before=event.stability_before,
        stability_after=event.stability_after,
        due_after=_to_utc(event.due_after),
        accuracy_after=event.accuracy_after,
        streak_after=event.streak_after,
        stage_before=event.stage_before.value,
        stage_after=event.stage_after.value,
    )


# ---- Store ----

class SqlStatsStore:
    """
    SQLAlchemy-backed store implementing StatsStore and FrameStore.

    Args:
        bind: Engine or session factory (defaults to an engine built from
            DATABASE_URL)
    """

    def __init__(self, bind: Union[Engine, sessionmaker, None] = None):
        if isinstance(bind, sessionmaker):
            self._session_factory = bind
        else:
            self._session_factory = sessionmaker(bind=bind or get_engine(), expire_on_commit=False)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Session that commits on success and maps driver errors."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageUnavailable(f"Database operation failed: {exc}") from exc
        finally:
            session.close()

    # ---- Catalog ----

    def _add_catalog(self, model, key: str, ids: Iterable[str]) -> None:
        with self._session() as session:
            position = session.query(func.count()).select_from(model).scalar() or 0
            for entry_id in ids:
                if session.get(model, entry_id) is None:
                    session.add(model(**{key: entry_id, "position": position}))
                    session.flush()
                    position += 1

    def add_items(self, item_ids: Iterable[str]) -> None:
        """Register item ids (duplicates are ignored)."""
        self._add_catalog(Item, "item_id", item_ids)

    def add_frames(self, frame_ids: Iterable[str]) -> None:
        """Register frame ids (duplicates are ignored)."""
        self._add_catalog(Frame, "frame_id", frame_ids)

    # ---- Item stats ----

    async def list_ids(self) -> list[str]:
        with self._session() as session:
            rows = session.query(Item.item_id).order_by(Item.position).all()
            return [row.item_id for row in rows]

    async def get_stats(self, item_id: str) -> Optional[ItemStats]:
        with self._session() as session:
            row = session.get(ItemStatsRow, item_id)
            if row is None:
                return None
            return _item_stats_from_row(row)

    async def ensure_stats(self, item_id: str) -> ItemStats:
        existing = await self.get_stats(item_id)
        if existing is not None:
            return existing
        stats = ItemStats.new(item_id, datetime.now(timezone.utc))
        await self.put_stats(stats)
        return stats

    async def put_stats(self, stats: ItemStats, event: Optional[ReviewEvent] = None) -> None:
        with self._session() as session:
            if session.get(Item, stats.item_id) is None:
                position = session.query(func.count()).select_from(Item).scalar() or 0
                session.add(Item(item_id=stats.item_id, position=position))
                session.flush()

            row = session.get(ItemStatsRow, stats.item_id)
            if row is None:
                row = ItemStatsRow(item_id=stats.item_id)
                session.add(row)
            row.stage = stats.stage.value
            row.introduced = stats.introduced

            mode_rows = {mode_row.mode: mode_row for mode_row in row.modes}
            for mode in Mode:
                mode_row = mode_rows.get(mode.value)
                if mode_row is None:
                    mode_row = ModeStateRow(item_id=stats.item_id, mode=mode.value)
                    row.modes.append(mode_row)
                _write_mode_state(mode_row, stats.mode_state(mode))

            if event is not None:
                session.add(_review_event_row(event))

    async def list_unintroduced_ids(self) -> list[str]:
        with self._session() as session:
            rows = (
                session.query(Item.item_id)
                .outerjoin(ItemStatsRow, ItemStatsRow.item_id == Item.item_id)
                .filter(or_(ItemStatsRow.item_id.is_(None), ItemStatsRow.introduced.is_(False)))
                .order_by(Item.position)
                .all()
            )
            return [row.item_id for row in rows]

    async def list_review_events(self, item_id: Optional[str] = None) -> list[ReviewEvent]:
        with self._session() as session:
            query = session.query(ReviewEventRow)
            if item_id is not None:
                query = query.filter(ReviewEventRow.item_id == item_id)
            return [_review_event_from_row(row) for row in query.order_by(ReviewEventRow.id).all()]

    # ---- Frame stats ----

    async def list_frame_ids(self) -> list[str]:
        with self._session() as session:
            rows = session.query(Frame.frame_id).order_by(Frame.position).all()
            return [row.frame_id for row in rows]

    async def get_frame_stats(self, frame_id: str) -> Optional[FrameStats]:
        with self._session() as session:
            row = session.get(FrameStatsRow, frame_id)
            if row is None:
                return None
            return _frame_stats_from_row(row)

    async def ensure_frame_stats(self, frame_id: str) -> FrameStats:
        existing = await self.get_frame_stats(frame_id)
        if existing is not None:
            return existing
        stats = FrameStats.new(frame_id, datetime.now(timezone.utc))
        await self.put_frame_stats(stats)
        return stats

    async def put_frame_stats(self, stats: FrameStats) -> None:
        with self._session() as session:
            if session.get(Frame, stats.frame_id) is None:
                position = session.query(func.count()).select_from(Frame).scalar() or 0
                session.add(Frame(frame_id=stats.frame_id, position=position))
                session.flush()

            row = session.get(FrameStatsRow, stats.frame_id)
            if row is None:
                row = FrameStatsRow(frame_id=stats.frame_id)
                session.add(row)
            row.stability = stats.stability
            row.last_seen = _to_utc(stats.last_seen)
            row.due = _to_utc(stats.due)
            row.accuracy = stats.accuracy
            row.streak = stats.streak
            row.shown = stats.shown

    async def list_due_frames(self, now: datetime, limit: int) -> list[FrameStats]:
        with self._session() as session:
            rows = (
                session.query(FrameStatsRow)
                .filter(FrameStatsRow.due <= _to_utc(now))
                .order_by(FrameStatsRow.due)
                .limit(limit)
                .all()
            )
            return [_frame_stats_from_row(row) for row in rows]
