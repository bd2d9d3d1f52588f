"""
SQLAlchemy ORM Models for the Card Engine Database

Defines the item catalog, per-mode memory state, review log and the verb
frame tables.
"""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Item(Base):
    """Catalog entry for a learnable item."""
    __tablename__ = 'items'

    item_id = Column(String(255), primary_key=True)
    # Insertion order doubles as catalog order
    position = Column(Integer, nullable=False)

    def __repr__(self):
        return f"<Item({self.item_id})>"


class ItemStatsRow(Base):
    """
    Stage pointer and introduction flag for an item.

    The three mode states live in `mode_state`.
    """
    __tablename__ = 'item_stats'

    item_id = Column(String(255), ForeignKey('items.item_id'), primary_key=True)
    stage = Column(String(20), nullable=False)
    introduced = Column(Boolean, nullable=False, default=False)

    modes = relationship(
        "ModeStateRow",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<ItemStatsRow({self.item_id}, stage={self.stage})>"


class ModeStateRow(Base):
    """Memory state of one item in one mode."""
    __tablename__ = 'mode_state'

    # Primary key: composite of item_id and mode
    item_id = Column(String(255), ForeignKey('item_stats.item_id'), primary_key=True)
    mode = Column(String(20), primary_key=True)

    stability = Column(Float, nullable=False)  # S, in days
    last_seen = Column(DateTime(timezone=True), nullable=False)
    due = Column(DateTime(timezone=True), nullable=False)
    accuracy = Column(Float, nullable=False)  # q
    streak = Column(Integer, nullable=False, default=0)
    shown = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<ModeStateRow({self.item_id}/{self.mode}, S={self.stability})>"


class ReviewEventRow(Base):
    """
    Log entry for a single answer.
    """
    __tablename__ = 'review_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(String(255), nullable=False, index=True)
    mode = Column(String(20), nullable=False)
    success = Column(Boolean, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    # State of the reviewed mode around the answer
    recall_before = Column(Float, nullable=False)
    stability_before = Column(Float, nullable=False)
    stability_after = Column(Float, nullable=False)
    due_after = Column(DateTime(timezone=True), nullable=False)
    accuracy_after = Column(Float, nullable=False)
    streak_after = Column(Integer, nullable=False)

    stage_before = Column(String(20), nullable=False)
    stage_after = Column(String(20), nullable=False)

    def __repr__(self):
        return f"<ReviewEventRow(id={self.id}, {self.item_id}/{self.mode}, success={self.success})>"


class Frame(Base):
    """Catalog entry for a verb frame."""
    __tablename__ = 'frames'

    frame_id = Column(String(255), primary_key=True)
    # Insertion order doubles as catalog order
    position = Column(Integer, nullable=False)

    def __repr__(self):
        return f"<Frame({self.frame_id})>"


class FrameStatsRow(Base):
    """Memory state of a verb frame."""
    __tablename__ = 'frame_stats'

    frame_id = Column(String(255), ForeignKey('frames.frame_id'), primary_key=True)
    stability = Column(Float, nullable=False)
    last_seen = Column(DateTime(timezone=True), nullable=False)
    due = Column(DateTime(timezone=True), nullable=False, index=True)
    accuracy = Column(Float, nullable=False)
    streak = Column(Integer, nullable=False, default=0)
    shown = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<FrameStatsRow({self.frame_id}, S={self.stability})>"
