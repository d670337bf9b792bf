from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import BudgetDuration, TaskPriority, TaskStatus, TaskType, TransactionType
from recurrence import Frequency, RecurrenceRule


class RecurrenceIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    frequency: Frequency = Frequency.none
    interval: int = Field(default=1, gt=0)
    end_date: Optional[date] = Field(default=None, alias="endDate")

    @field_validator("end_date", mode="before")
    @classmethod
    def _end_date_calendar_day(cls, value):
        # ISO date-times from the client collapse to their calendar day.
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            frequency=self.frequency, interval=self.interval, end_date=self.end_date
        )


class SubTaskIn(BaseModel):
    id: str
    title: str = Field(..., min_length=1, max_length=200)
    is_completed: bool = False


class TaskIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.todo
    priority: TaskPriority = TaskPriority.medium
    type: TaskType = TaskType.task
    due_date: Optional[datetime] = None
    reminder_time: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = Field(default=None, max_length=200)
    subtasks: list[SubTaskIn] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    dependency_ids: list[int] = Field(default_factory=list)
    is_shared: bool = False
    recurrence: Optional[RecurrenceIn] = None


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    status: TaskStatus
    priority: TaskPriority
    type: TaskType
    due_date: Optional[datetime]
    reminder_time: Optional[datetime]
    recurrence_frequency: Frequency
    recurrence_interval: int
    recurrence_end_date: Optional[date]
    next_recurrence_date: Optional[datetime]
    origin_task_id: Optional[int]


class RecurringTransactionIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., ge=0)
    type: TransactionType
    frequency: Frequency
    interval_count: int = Field(default=1, gt=0)
    next_due_date: datetime
    end_date: Optional[date] = None

    @field_validator("frequency")
    @classmethod
    def _must_recur(cls, value: Frequency) -> Frequency:
        if value == Frequency.none:
            raise ValueError("Recurring transactions need a repeating frequency")
        return value


class RecurringTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    amount_cents: int
    type: TransactionType
    frequency: Frequency
    interval_count: int
    next_due_date: Optional[datetime]
    end_date: Optional[date]


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    amount_cents: int
    type: TransactionType
    date: datetime
    origin_template_id: Optional[int]
    occurrence_date: Optional[datetime]


class TransactionIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., ge=0)
    type: TransactionType
    date: Optional[datetime] = None


class BudgetSettingsIn(BaseModel):
    budget_limit_cents: int = Field(..., ge=0)
    budget_duration: BudgetDuration = BudgetDuration.monthly
    savings_cents: Optional[int] = Field(default=None, ge=0)


class BudgetSummaryOut(BaseModel):
    budget_limit_cents: int
    budget_duration: BudgetDuration
    savings_cents: int
    period_start: date
    period_end: date
    income_cents: int
    expense_cents: int
    remaining_cents: int
    transactions: list[TransactionOut]
    recurring: list[RecurringTransactionOut]
