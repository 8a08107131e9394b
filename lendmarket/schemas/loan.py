from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import ConfigDict, Field

from lendmarket.schemas.common import CamelModel


class LoanApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    REJECTED = "rejected"


class FeeStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class RepayStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class LoanApplicationCreate(CamelModel):
    """Application form; fields beyond the named ones are kept verbatim."""

    model_config = ConfigDict(extra="allow")

    borrower_email: Optional[str] = None
    loan_id: Optional[str] = None
    loan_title: Optional[str] = None
    loan_amount: Optional[Decimal] = Field(default=None, ge=0)
    full_name: Optional[str] = None

    def extra_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class LoanApplicationOut(CamelModel):
    id: UUID
    borrower_email: str
    loan_id: Optional[str] = None
    loan_title: Optional[str] = None
    loan_amount: Optional[Decimal] = None
    full_name: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    status: str
    fee_status: str
    repay_status: Optional[str] = None
    repay_amount: Optional[Decimal] = None
    deadline: Optional[date] = None
    comments: Optional[str] = None
    created_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    disbursed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    repaid_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LoanApplicationCreated(CamelModel):
    application_id: UUID


class LoanApplicationApproveRequest(CamelModel):
    repay_amount: Optional[Decimal] = None
    deadline: Optional[date] = None


class LoanApplicationAdminUpdate(CamelModel):
    status: Optional[LoanApplicationStatus] = None
    comments: Optional[str] = None
    fee_status: Optional[FeeStatus] = None


class LoanCreate(CamelModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    amount: Decimal = Field(gt=0)
    interest_rate: Optional[Decimal] = Field(default=None, ge=0)
    terms: Optional[str] = None


class LoanUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    interest_rate: Optional[Decimal] = Field(default=None, ge=0)
    terms: Optional[str] = None


class LoanOut(CamelModel):
    id: UUID
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    amount: Decimal
    interest_rate: Optional[Decimal] = None
    terms: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LoanCreated(CamelModel):
    loan_id: UUID
    message: str = "Loan added successfully"
