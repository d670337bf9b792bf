"""initial schema: tasks, recurring transactions, transactions

Revision ID: 202601050900
Revises:
Create Date: 2026-01-05 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202601050900"
down_revision = None
branch_labels = None
depends_on = None


FREQUENCY = sa.Enum(
    "none", "daily", "weekly", "monthly", "yearly", name="frequency"
)


def upgrade():
    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column(
            "status",
            sa.Enum("TODO", "IN_PROGRESS", "DONE", name="taskstatus"),
            nullable=False,
            server_default="TODO",
        ),
        sa.Column(
            "priority",
            sa.Enum("LOW", "MEDIUM", "HIGH", name="taskpriority"),
            nullable=False,
            server_default="MEDIUM",
        ),
        sa.Column(
            "type",
            sa.Enum("TASK", "EVENT", "APPOINTMENT", "REMINDER", name="tasktype"),
            nullable=False,
            server_default="TASK",
        ),
        sa.Column("due_date", sa.DateTime()),
        sa.Column("reminder_time", sa.DateTime()),
        sa.Column("duration_minutes", sa.Integer()),
        sa.Column("location", sa.String(length=200)),
        sa.Column("subtasks", sa.JSON(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("dependency_ids", sa.JSON(), nullable=False),
        sa.Column("is_shared", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "recurrence_frequency", FREQUENCY, nullable=False, server_default="none"
        ),
        sa.Column(
            "recurrence_interval", sa.Integer(), nullable=False, server_default="1"
        ),
        sa.Column("recurrence_end_date", sa.Date()),
        sa.Column("next_recurrence_date", sa.DateTime()),
        sa.Column("origin_task_id", sa.Integer(), sa.ForeignKey("tasks.id")),
        sa.Column("occurrence_date", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "origin_task_id", "occurrence_date", name="uq_task_origin_occurrence"
        ),
        sa.CheckConstraint("recurrence_interval > 0", name="ck_task_interval_positive"),
    )
    op.create_index(
        "ix_tasks_user_next_recurrence", "tasks", ["user_id", "next_recurrence_date"]
    )

    op.create_table(
        "recurring_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("frequency", FREQUENCY, nullable=False),
        sa.Column("interval_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("anchor_day", sa.Integer()),
        sa.Column("next_due_date", sa.DateTime()),
        sa.Column("end_date", sa.Date()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("interval_count > 0", name="ck_template_interval_positive"),
        sa.CheckConstraint("amount_cents >= 0", name="ck_template_amount_positive"),
    )
    op.create_index(
        "ix_recurring_user_next_due",
        "recurring_transactions",
        ["user_id", "next_due_date"],
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("description", sa.String(length=240), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column(
            "origin_template_id",
            sa.Integer(),
            sa.ForeignKey("recurring_transactions.id", ondelete="SET NULL"),
        ),
        sa.Column("occurrence_date", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "origin_template_id",
            "occurrence_date",
            name="uq_txn_origin_occurrence",
        ),
        sa.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])


def downgrade():
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_recurring_user_next_due", table_name="recurring_transactions")
    op.drop_table("recurring_transactions")
    op.drop_index("ix_tasks_user_next_recurrence", table_name="tasks")
    op.drop_table("tasks")
