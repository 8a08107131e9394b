import uuid

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from lendmarket.db.base import Base


class LoanApplication(Base):
    __tablename__ = "loan_applications"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'disbursed', 'rejected')",
            name="ck_loan_app_status",
        ),
        CheckConstraint("fee_status IN ('unpaid', 'paid')", name="ck_loan_app_fee_status"),
        CheckConstraint(
            "repay_status IS NULL OR repay_status IN ('unpaid', 'paid')",
            name="ck_loan_app_repay_status",
        ),
        CheckConstraint(
            "repay_amount IS NULL OR repay_amount > 0", name="ck_loan_app_repay_amount_positive"
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    borrower_email = Column(String(255), nullable=False, index=True)
    loan_id = Column(String(64), nullable=True, index=True)
    loan_title = Column(String(255), nullable=True)
    loan_amount = Column(Numeric(18, 2), nullable=True)
    full_name = Column(String(255), nullable=True)
    details = Column(JSONB, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default="pending", index=True)
    fee_status = Column(String(20), nullable=False, default="unpaid")
    repay_status = Column(String(20), nullable=True)
    repay_amount = Column(Numeric(18, 2), nullable=True)
    deadline = Column(Date, nullable=True)
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    approved_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    repaid_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())
