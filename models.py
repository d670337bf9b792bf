from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from recurrence import Frequency, RecurrenceRule, ScheduledItem


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class BudgetDuration(str, Enum):
    weekly = "Weekly"
    monthly = "Monthly"
    yearly = "Yearly"


class TaskStatus(str, Enum):
    todo = "TODO"
    in_progress = "IN_PROGRESS"
    done = "DONE"


class TaskPriority(str, Enum):
    low = "LOW"
    medium = "MEDIUM"
    high = "HIGH"


class TaskType(str, Enum):
    task = "TASK"
    event = "EVENT"
    appointment = "APPOINTMENT"
    reminder = "REMINDER"


def _values_enum(enum_cls: type[Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


FREQUENCY_ENUM = _values_enum(Frequency, "frequency")


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )


class Task(Base, TimestampMixin):
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[TaskStatus] = mapped_column(
        _values_enum(TaskStatus, "taskstatus"), nullable=False, default=TaskStatus.todo
    )
    priority: Mapped[TaskPriority] = mapped_column(
        _values_enum(TaskPriority, "taskpriority"),
        nullable=False,
        default=TaskPriority.medium,
    )
    type: Mapped[TaskType] = mapped_column(
        _values_enum(TaskType, "tasktype"), nullable=False, default=TaskType.task
    )
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    reminder_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    location: Mapped[Optional[str]] = mapped_column(String(200))
    subtasks: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    dependency_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_shared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    recurrence_frequency: Mapped[Frequency] = mapped_column(
        FREQUENCY_ENUM, nullable=False, default=Frequency.none
    )
    recurrence_interval: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )
    recurrence_end_date: Mapped[Optional[date]] = mapped_column(Date)
    next_recurrence_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    origin_task_id: Mapped[Optional[int]] = mapped_column(ForeignKey("tasks.id"))
    occurrence_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        UniqueConstraint(
            "origin_task_id", "occurrence_date", name="uq_task_origin_occurrence"
        ),
        Index("ix_tasks_user_next_recurrence", "user_id", "next_recurrence_date"),
        CheckConstraint("recurrence_interval > 0", name="ck_task_interval_positive"),
    )

    @property
    def anchor_date(self) -> Optional[datetime]:
        return self.due_date or self.reminder_time

    @property
    def recurrence_rule(self) -> Optional[RecurrenceRule]:
        if self.recurrence_frequency in (None, Frequency.none):
            return None
        return RecurrenceRule(
            frequency=self.recurrence_frequency,
            interval=self.recurrence_interval,
            end_date=self.recurrence_end_date,
        )

    def as_scheduled_item(self) -> ScheduledItem:
        return ScheduledItem(anchor_date=self.anchor_date, recurrence=self.recurrence_rule)


class RecurringTransaction(Base, TimestampMixin):
    __tablename__ = "recurring_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    frequency: Mapped[Frequency] = mapped_column(FREQUENCY_ENUM, nullable=False)
    interval_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    anchor_day: Mapped[Optional[int]] = mapped_column(Integer)
    next_due_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    end_date: Mapped[Optional[date]] = mapped_column(Date)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="origin_template"
    )

    __table_args__ = (
        CheckConstraint("interval_count > 0", name="ck_template_interval_positive"),
        CheckConstraint("amount_cents >= 0", name="ck_template_amount_positive"),
        Index("ix_recurring_user_next_due", "user_id", "next_due_date"),
    )

    @property
    def recurrence_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            frequency=self.frequency,
            interval=self.interval_count,
            end_date=self.end_date,
        )

    def as_scheduled_item(self) -> ScheduledItem:
        return ScheduledItem(anchor_date=self.next_due_date, recurrence=self.recurrence_rule)


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    description: Mapped[str] = mapped_column(String(240), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    origin_template_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("recurring_transactions.id", ondelete="SET NULL")
    )
    occurrence_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    origin_template: Mapped[Optional["RecurringTransaction"]] = relationship(
        "RecurringTransaction", back_populates="transactions"
    )

    __table_args__ = (
        UniqueConstraint(
            "origin_template_id",
            "occurrence_date",
            name="uq_txn_origin_occurrence",
        ),
        Index("ix_transactions_user_date", "user_id", "date"),
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )


class UserSettings(Base, TimestampMixin):
    __tablename__ = "user_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    budget_limit_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    budget_duration: Mapped[BudgetDuration] = mapped_column(
        _values_enum(BudgetDuration, "budgetduration"),
        nullable=False,
        default=BudgetDuration.monthly,
    )
    savings_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_user_settings_user"),
        CheckConstraint("budget_limit_cents >= 0", name="ck_settings_limit_positive"),
    )
