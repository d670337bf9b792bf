"""add user_settings for budget limit, duration and savings

Revision ID: 202601120900
Revises: 202601050900
Create Date: 2026-01-12 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202601120900"
down_revision = "202601050900"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "user_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column(
            "budget_limit_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "budget_duration",
            sa.Enum("Weekly", "Monthly", "Yearly", name="budgetduration"),
            nullable=False,
            server_default="Monthly",
        ),
        sa.Column("savings_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", name="uq_user_settings_user"),
        sa.CheckConstraint(
            "budget_limit_cents >= 0", name="ck_settings_limit_positive"
        ),
    )


def downgrade():
    op.drop_table("user_settings")
