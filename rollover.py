import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from models import RecurringTransaction, Task, TaskStatus, Transaction
from recurrence import (
    Frequency,
    InvalidRecurrenceRule,
    RecurrenceRule,
    compute_next,
    local_now,
)

logger = logging.getLogger(__name__)


@dataclass
class RolloverResult:
    transactions: list[int] = field(default_factory=list)
    tasks: list[int] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, list]:
        return {
            "transactions": list(self.transactions),
            "tasks": list(self.tasks),
            "failed": list(self.failed),
        }


def next_or_retire(
    rule: RecurrenceRule, occurrence: datetime, anchor_day: Optional[int] = None
) -> Optional[datetime]:
    """Advance one step; ``None`` once the rule's end date is passed."""
    next_date = compute_next(rule, occurrence, anchor_day=anchor_day)
    if next_date is None:
        return None
    if rule.end_date is not None and next_date.date() > rule.end_date.date():
        return None
    return next_date


def _past_end(rule: RecurrenceRule, occurrence: datetime) -> bool:
    return rule.end_date is not None and occurrence.date() > rule.end_date.date()


class RolloverEngine:
    def __init__(self, session: Session, max_catch_up: Optional[int] = None) -> None:
        self.session = session
        self.max_catch_up = (
            get_settings().max_catch_up if max_catch_up is None else max_catch_up
        )

    def run(self, now: Optional[datetime] = None) -> RolloverResult:
        now = now or local_now()
        result = RolloverResult()

        templates = self.session.scalars(
            select(RecurringTransaction)
            .where(
                RecurringTransaction.next_due_date.is_not(None),
                RecurringTransaction.next_due_date <= now,
            )
            .order_by(RecurringTransaction.next_due_date)
        ).all()
        for template in templates:
            try:
                self.catch_up_transaction(template, now)
            except InvalidRecurrenceRule as exc:
                logger.warning(f"rollover_skip: transaction={template.id} error={exc}")
                result.failed.append(f"transaction:{template.id}")
                continue
            result.transactions.append(template.id)

        tasks = self.session.scalars(
            select(Task)
            .where(
                Task.origin_task_id.is_(None),
                Task.next_recurrence_date.is_not(None),
                Task.next_recurrence_date <= now,
            )
            .order_by(Task.next_recurrence_date)
        ).all()
        for task in tasks:
            try:
                self.catch_up_task(task, now)
            except InvalidRecurrenceRule as exc:
                logger.warning(f"rollover_skip: task={task.id} error={exc}")
                result.failed.append(f"task:{task.id}")
                continue
            result.tasks.append(task.id)

        logger.info(
            f"rollover_run: transactions={len(result.transactions)} "
            f"tasks={len(result.tasks)} failed={len(result.failed)}"
        )
        return result

    def catch_up_transaction(
        self, template: RecurringTransaction, now: Optional[datetime] = None
    ) -> int:
        now = now or local_now()
        rule = template.recurrence_rule
        posted = 0
        iterations = 0
        while (
            template.next_due_date is not None
            and template.next_due_date <= now
            and iterations < self.max_catch_up
        ):
            occurrence = template.next_due_date
            if _past_end(rule, occurrence):
                logger.info(f"rollover_retire: transaction={template.id}")
                template.next_due_date = None
                break
            if self._post_transaction(template, occurrence, occurrence):
                posted += 1
            template.next_due_date = next_or_retire(rule, occurrence, template.anchor_day)
            iterations += 1
        return posted

    def process_transaction(
        self, template: RecurringTransaction, now: Optional[datetime] = None
    ) -> bool:
        """Post the pending occurrence immediately and advance one step."""
        now = now or local_now()
        rule = template.recurrence_rule
        occurrence = template.next_due_date
        if occurrence is None or _past_end(rule, occurrence):
            raise ValueError("Recurring transaction has ended")
        posted = self._post_transaction(template, occurrence, now)
        template.next_due_date = next_or_retire(rule, occurrence, template.anchor_day)
        return posted

    def catch_up_task(self, template: Task, now: Optional[datetime] = None) -> int:
        now = now or local_now()
        rule = template.recurrence_rule
        if rule is None:
            template.next_recurrence_date = None
            return 0
        anchor = template.anchor_date
        anchor_day = anchor.day if anchor else None
        posted = 0
        iterations = 0
        while (
            template.next_recurrence_date is not None
            and template.next_recurrence_date <= now
            and iterations < self.max_catch_up
        ):
            occurrence = template.next_recurrence_date
            if _past_end(rule, occurrence):
                logger.info(f"rollover_retire: task={template.id}")
                template.next_recurrence_date = None
                break
            if self._post_task(template, occurrence):
                posted += 1
            template.next_recurrence_date = next_or_retire(rule, occurrence, anchor_day)
            iterations += 1
        return posted

    def _post_transaction(
        self, template: RecurringTransaction, occurrence: datetime, posted_at: datetime
    ) -> bool:
        exists_stmt = (
            select(Transaction.id)
            .where(
                Transaction.origin_template_id == template.id,
                Transaction.occurrence_date == occurrence,
            )
            .limit(1)
        )
        if self.session.execute(exists_stmt).scalar_one_or_none():
            return False

        txn = Transaction(
            user_id=template.user_id,
            description=f"{template.description} (Recurring)",
            type=template.type,
            amount_cents=template.amount_cents,
            date=posted_at,
            origin_template_id=template.id,
            occurrence_date=occurrence,
        )
        self.session.add(txn)
        self.session.flush()
        return True

    def _post_task(self, template: Task, occurrence: datetime) -> bool:
        exists_stmt = (
            select(Task.id)
            .where(Task.origin_task_id == template.id, Task.occurrence_date == occurrence)
            .limit(1)
        )
        if self.session.execute(exists_stmt).scalar_one_or_none():
            return False

        reminder_time = None
        if template.reminder_time is not None:
            if template.due_date is not None:
                reminder_time = occurrence + (template.reminder_time - template.due_date)
            else:
                reminder_time = occurrence

        instance = Task(
            user_id=template.user_id,
            title=template.title,
            description=template.description,
            status=TaskStatus.todo,
            priority=template.priority,
            type=template.type,
            due_date=occurrence,
            reminder_time=reminder_time,
            duration_minutes=template.duration_minutes,
            location=template.location,
            subtasks=[{**sub, "is_completed": False} for sub in template.subtasks or []],
            tags=list(template.tags or []),
            dependency_ids=[],
            is_shared=template.is_shared,
            recurrence_frequency=Frequency.none,
            recurrence_interval=1,
            origin_task_id=template.id,
            occurrence_date=occurrence,
        )
        self.session.add(instance)
        self.session.flush()
        return True
