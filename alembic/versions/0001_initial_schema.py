"""initial schema: users, fleet, bills, status log and payments

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

USER_ROLES = ("ADMIN", "OPERATOR", "LEVEL1", "LEVEL2", "ACCOUNTS")
BILL_STATUSES = (
    "PENDING_L1", "PENDING_L2", "PENDING_PAYMENT", "PAID",
    "RETURNED_L1", "REJECTED_L1", "RETURNED_L2", "REJECTED_L2",
)


def _timestamps(mutable: bool = True):
    columns = [
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    ]
    if mutable:
        columns.append(sa.Column("updated_at", sa.DateTime(), nullable=False))
    return columns


def _index(table: str, *columns: str, unique: bool = False) -> None:
    for column in columns:
        op.create_index(op.f(f"ix_{table}_{column}"), table, [column], unique=unique)


def upgrade() -> None:
    op.execute("CREATE TYPE user_role AS ENUM (" + ", ".join(f"'{v}'" for v in USER_ROLES) + ")")
    op.execute("CREATE TYPE bill_status AS ENUM (" + ", ".join(f"'{v}'" for v in BILL_STATUSES) + ")")
    user_role = postgresql.ENUM(*USER_ROLES, name="user_role", create_type=False)
    bill_status = postgresql.ENUM(*BILL_STATUSES, name="bill_status", create_type=False)

    op.create_table(
        "users",
        *_timestamps(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("users", "created_at", "role", "is_active")
    _index("users", "email", unique=True)

    op.create_table(
        "regions",
        *_timestamps(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("city", sa.String(255), nullable=False),
        sa.Column("state", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("regions", "created_at")

    op.create_table(
        "ambulances",
        *_timestamps(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("region_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["region_id"], ["regions.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("ambulances", "created_at", "name", "region_id")
    _index("ambulances", "code", unique=True)

    op.create_table(
        "user_region_assignments",
        *_timestamps(mutable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("region_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["region_id"], ["regions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "region_id", name="uq_user_region"),
    )
    _index("user_region_assignments", "created_at", "user_id", "region_id")

    op.create_table(
        "ambulance_operator_assignments",
        *_timestamps(mutable=False),
        sa.Column("ambulance_id", sa.String(36), nullable=False),
        sa.Column("operator_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["ambulance_id"], ["ambulances.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["operator_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ambulance_id", "operator_id", name="uq_ambulance_operator"),
    )
    _index("ambulance_operator_assignments", "created_at", "ambulance_id", "operator_id")

    op.create_table(
        "bills",
        *_timestamps(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("vendor", sa.String(255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("invoice_number", sa.String(100), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", bill_status, nullable=False),
        sa.Column("region_id", sa.String(36), nullable=False),
        sa.Column("ambulance_id", sa.String(36), nullable=False),
        sa.Column("operator_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["region_id"], ["regions.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["ambulance_id"], ["ambulances.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["operator_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("bills", "created_at", "invoice_number", "status", "region_id", "ambulance_id", "operator_id")

    op.create_table(
        "bill_attachments",
        *_timestamps(mutable=False),
        sa.Column("bill_id", sa.String(36), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_url", sa.String(500), nullable=False),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("bill_attachments", "created_at", "bill_id")

    op.create_table(
        "bill_status_logs",
        *_timestamps(mutable=False),
        sa.Column("bill_id", sa.String(36), nullable=False),
        sa.Column("actor_id", sa.String(36), nullable=False),
        sa.Column("from_status", bill_status, nullable=True),
        sa.Column("to_status", bill_status, nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("bill_status_logs", "created_at", "bill_id", "actor_id")

    op.create_table(
        "payments",
        *_timestamps(),
        sa.Column("bill_id", sa.String(36), nullable=False),
        sa.Column("reference_no", sa.String(100), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_mode", sa.String(50), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_by_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["recorded_by_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bill_id"),
    )
    _index("payments", "created_at", "recorded_by_id")


def downgrade() -> None:
    for table in (
        "payments",
        "bill_status_logs",
        "bill_attachments",
        "bills",
        "ambulance_operator_assignments",
        "user_region_assignments",
        "ambulances",
        "regions",
        "users",
    ):
        op.drop_table(table)
    op.execute("DROP TYPE IF EXISTS bill_status")
    op.execute("DROP TYPE IF EXISTS user_role")
