from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from models import (
    RecurringTransaction,
    Task,
    Transaction,
    TransactionType,
    UserSettings,
)
from periods import Period, budget_period, build_occurrence_index, month_period
from recurrence import Frequency, compute_next, local_now, local_today, to_local_datetime
from rollover import RolloverEngine, RolloverResult
from schemas import BudgetSettingsIn, RecurringTransactionIn, TaskIn, TransactionIn

logger = logging.getLogger(__name__)


def get_current_user_id() -> int:
    return 1


def _period_bounds(period: Period) -> tuple[datetime, datetime]:
    start = datetime.combine(period.start, datetime.min.time())
    return start, datetime.combine(period.end + timedelta(days=1), datetime.min.time())


def next_recurrence_for(task: Task) -> Optional[datetime]:
    rule = task.recurrence_rule
    anchor = task.anchor_date
    if rule is None or anchor is None:
        return None
    return compute_next(rule, anchor, anchor_day=anchor.day)


class TaskService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, task_id: int) -> Task:
        task = self.session.get(Task, task_id)
        if not task or task.user_id != self.user_id:
            raise ValueError("Task not found")
        return task

    def list(self) -> list[Task]:
        stmt = (
            select(Task)
            .where(Task.user_id == self.user_id)
            .order_by(Task.created_at.desc(), Task.id.desc())
        )
        return self.session.scalars(stmt).all()

    def _apply(self, task: Task, data: TaskIn) -> None:
        task.title = data.title
        task.description = data.description
        task.status = data.status
        task.priority = data.priority
        task.type = data.type
        task.due_date = to_local_datetime(data.due_date)
        task.reminder_time = to_local_datetime(data.reminder_time)
        task.duration_minutes = data.duration_minutes
        task.location = data.location
        task.subtasks = [sub.model_dump() for sub in data.subtasks]
        task.tags = list(data.tags)
        task.dependency_ids = list(data.dependency_ids)
        task.is_shared = data.is_shared

        recurrence = data.recurrence
        if recurrence is None or recurrence.frequency == Frequency.none:
            task.recurrence_frequency = Frequency.none
            task.recurrence_interval = 1
            task.recurrence_end_date = None
        else:
            rule = recurrence.to_rule()
            task.recurrence_frequency = rule.frequency
            task.recurrence_interval = rule.interval
            task.recurrence_end_date = recurrence.end_date
        task.next_recurrence_date = next_recurrence_for(task)

    def create(self, data: TaskIn) -> Task:
        task = Task(user_id=self.user_id)
        self._apply(task, data)
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task

    def update(self, task_id: int, data: TaskIn) -> Task:
        task = self.get(task_id)
        self._apply(task, data)
        self.session.commit()
        self.session.refresh(task)
        return task

    def delete(self, task_id: int) -> None:
        task = self.get(task_id)
        self.session.execute(
            update(Task).where(Task.origin_task_id == task.id).values(origin_task_id=None)
        )
        self.session.delete(task)
        self.session.commit()

    def month_index(self, year: int, month: int) -> dict[date, list[Task]]:
        tasks = self.list()
        # Days a template already materialized are shown by the instance only.
        materialized = {
            (task.origin_task_id, task.occurrence_date.date())
            for task in tasks
            if task.origin_task_id is not None and task.occurrence_date is not None
        }
        index = build_occurrence_index(tasks, month_period(year, month))
        return {
            day: [task for task in day_tasks if (task.id, day) not in materialized]
            for day, day_tasks in index.items()
        }


class RecurringTransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, template_id: int) -> RecurringTransaction:
        template = self.session.get(RecurringTransaction, template_id)
        if not template or template.user_id != self.user_id:
            raise ValueError("Recurring transaction not found")
        return template

    def list(self) -> list[RecurringTransaction]:
        stmt = (
            select(RecurringTransaction)
            .where(RecurringTransaction.user_id == self.user_id)
            .order_by(RecurringTransaction.next_due_date)
        )
        return self.session.scalars(stmt).all()

    def occurrences(self, template_id: int) -> list[Transaction]:
        template = self.get(template_id)
        stmt = (
            select(Transaction)
            .where(Transaction.origin_template_id == template.id)
            .order_by(Transaction.occurrence_date.desc())
        )
        return self.session.scalars(stmt).all()

    def create(self, data: RecurringTransactionIn) -> RecurringTransaction:
        next_due = to_local_datetime(data.next_due_date)
        template = RecurringTransaction(
            user_id=self.user_id,
            description=data.description,
            type=data.type,
            amount_cents=data.amount_cents,
            frequency=data.frequency,
            interval_count=data.interval_count,
            anchor_day=next_due.day,
            next_due_date=next_due,
            end_date=data.end_date,
        )
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return template

    def delete(self, template_id: int) -> None:
        template = self.get(template_id)
        self.session.delete(template)
        self.session.commit()

    def process(self, template_id: int, now: Optional[datetime] = None) -> RecurringTransaction:
        template = self.get(template_id)
        posted = RolloverEngine(self.session).process_transaction(template, now)
        self.session.commit()
        self.session.refresh(template)
        logger.info(
            f"recurring_process: template={template.id} posted={posted} "
            f"next_due_date={template.next_due_date}"
        )
        return template

    def catch_up_all(self, now: Optional[datetime] = None) -> RolloverResult:
        result = RolloverEngine(self.session).run(now)
        self.session.commit()
        return result


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def create(self, data: TransactionIn) -> Transaction:
        posted_at = to_local_datetime(data.date) if data.date else local_now()
        txn = Transaction(
            user_id=self.user_id,
            description=data.description,
            type=data.type,
            amount_cents=data.amount_cents,
            date=posted_at,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise ValueError("Transaction not found")
        return txn

    def list(self) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        return self.session.scalars(stmt).all()

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()


class BudgetService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get_settings(self) -> UserSettings:
        settings = self.session.scalar(
            select(UserSettings).where(UserSettings.user_id == self.user_id)
        )
        if settings is None:
            settings = UserSettings(user_id=self.user_id)
            self.session.add(settings)
            self.session.commit()
            self.session.refresh(settings)
            logger.info(f"budget_settings_created: user={self.user_id}")
        return settings

    def update_settings(self, data: BudgetSettingsIn) -> UserSettings:
        settings = self.get_settings()
        settings.budget_limit_cents = data.budget_limit_cents
        settings.budget_duration = data.budget_duration
        if data.savings_cents is not None:
            settings.savings_cents = data.savings_cents
        self.session.commit()
        self.session.refresh(settings)
        return settings

    def _total(self, period: Period, txn_type: TransactionType) -> int:
        start, end = _period_bounds(period)
        stmt = select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
            Transaction.user_id == self.user_id,
            Transaction.type == txn_type,
            Transaction.date >= start,
            Transaction.date < end,
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def summary(self, today: Optional[date] = None) -> dict:
        settings = self.get_settings()
        period = budget_period(settings.budget_duration.value, today=today or local_today())
        income = self._total(period, TransactionType.income)
        expense = self._total(period, TransactionType.expense)
        return {
            "budget_limit_cents": settings.budget_limit_cents,
            "budget_duration": settings.budget_duration,
            "savings_cents": settings.savings_cents,
            "period_start": period.start,
            "period_end": period.end,
            "income_cents": income,
            "expense_cents": expense,
            "remaining_cents": settings.budget_limit_cents - expense,
            "transactions": TransactionService(self.session, self.user_id).list(),
            "recurring": RecurringTransactionService(self.session, self.user_id).list(),
        }
