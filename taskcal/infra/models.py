from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


task_tags = Table(
    "task_tags",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class ListModel(Base):
    __tablename__ = "lists"

    id = Column(Integer, primary_key=True)
    title = Column(String(100), nullable=False)
    color = Column(String(20), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class TagModel(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False, unique=True)
    color = Column(String(20), nullable=True)


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="TODO", index=True)
    priority = Column(String(10), nullable=False, default="NONE")
    due_date = Column(DateTime, nullable=True, index=True)
    start_date = Column(DateTime, nullable=True)
    estimated_time = Column(Integer, nullable=True)
    all_day = Column(Boolean, nullable=True)
    recurrence_rule = Column(String(500), nullable=True)
    list_id = Column(Integer, ForeignKey("lists.id", ondelete="SET NULL"), nullable=True, index=True)
    parent_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True, index=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)

    task_list = relationship(ListModel, lazy="joined")
    tags = relationship(TagModel, secondary=task_tags, lazy="selectin", order_by=TagModel.name)


class ReminderModel(Base):
    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False, default="IN_APP")
    fire_at = Column(DateTime, nullable=False, index=True)
    relative_offset = Column(Integer, nullable=True)
    status = Column(String(10), nullable=False, default="PENDING", index=True)
    snoozed_until = Column(DateTime, nullable=True)
    snooze_count = Column(Integer, nullable=False, default=0)
    sent_at = Column(DateTime, nullable=True)
    dismissed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class PreferenceModel(Base):
    __tablename__ = "preferences"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
