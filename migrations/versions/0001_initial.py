"""Create users, loans and loan_applications tables"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="borrower"),
        sa.Column("photo_url", sa.String(length=1024), nullable=True),
        sa.Column("suspend_reason", sa.Text(), nullable=True),
        sa.Column("suspend_feedback", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
        ),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "loans",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("interest_rate", sa.Numeric(6, 3), nullable=True),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )

    op.create_table(
        "loan_applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("borrower_email", sa.String(length=255), nullable=False),
        sa.Column("loan_id", sa.String(length=64), nullable=True),
        sa.Column("loan_title", sa.String(length=255), nullable=True),
        sa.Column("loan_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("fee_status", sa.String(length=20), nullable=False, server_default="unpaid"),
        sa.Column("repay_status", sa.String(length=20), nullable=True),
        sa.Column("repay_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("deadline", sa.Date(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("approved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("disbursed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("paid_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("repaid_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'disbursed', 'rejected')",
            name="ck_loan_app_status",
        ),
        sa.CheckConstraint("fee_status IN ('unpaid', 'paid')", name="ck_loan_app_fee_status"),
        sa.CheckConstraint(
            "repay_status IS NULL OR repay_status IN ('unpaid', 'paid')",
            name="ck_loan_app_repay_status",
        ),
        sa.CheckConstraint(
            "repay_amount IS NULL OR repay_amount > 0",
            name="ck_loan_app_repay_amount_positive",
        ),
    )
    op.create_index("ix_loan_applications_borrower_email", "loan_applications", ["borrower_email"])
    # Borrower lookups compare case-insensitively.
    op.create_index(
        "ix_loan_applications_borrower_email_lower",
        "loan_applications",
        [sa.text("lower(borrower_email)")],
    )
    op.create_index("ix_loan_applications_loan_id", "loan_applications", ["loan_id"])
    op.create_index("ix_loan_applications_status", "loan_applications", ["status"])


def downgrade() -> None:
    op.drop_index("ix_loan_applications_status", table_name="loan_applications")
    op.drop_index("ix_loan_applications_loan_id", table_name="loan_applications")
    op.drop_index("ix_loan_applications_borrower_email_lower", table_name="loan_applications")
    op.drop_index("ix_loan_applications_borrower_email", table_name="loan_applications")
    op.drop_table("loan_applications")
    op.drop_table("loans")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_table("users")
