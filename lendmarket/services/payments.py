from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.core.errors import InvalidTransition, ValidationError
from lendmarket.core.security import SessionIdentity
from lendmarket.core.settings import settings
from lendmarket.schemas.loan import RepayStatus
from lendmarket.services.audit import record_audit_event
from lendmarket.services.loan_applications import (
    APPROVED,
    DISBURSED,
    ensure_owner_or_admin,
    get_application,
)
from lendmarket.services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")
# Stripe caps a single charge at 99,999,999 in the smallest currency unit.
_MAX_AMOUNT = Decimal("999999.99")


def to_cents(amount: Any) -> int:
    """Convert a positive currency amount to whole cents, rounding half up."""
    if amount is None or isinstance(amount, bool):
        raise ValidationError("Amount must be a positive number", details={"amount": amount})
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(
            "Amount must be a positive number", details={"amount": str(amount)}
        ) from exc
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be a positive number", details={"amount": str(amount)})
    if value > _MAX_AMOUNT:
        raise ValidationError(
            "Amount exceeds the maximum chargeable amount",
            details={"amount": str(amount), "max_amount": str(_MAX_AMOUNT)},
        )
    try:
        cents = int((value.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())
    except InvalidOperation as exc:
        raise ValidationError(
            "Amount must be a positive number", details={"amount": str(amount)}
        ) from exc
    if cents <= 0:
        raise ValidationError("Amount must be at least one cent", details={"amount": str(amount)})
    return cents


def _frontend_url(path: str) -> str:
    return f"{settings.frontend_base_url.rstrip('/')}{path}"


async def create_payment_intent(
    gateway: PaymentGateway,
    amount: Any,
    *,
    identity: SessionIdentity,
) -> str:
    amount_cents = to_cents(amount)
    intent = await gateway.create_payment_intent(
        amount_cents,
        settings.payment_currency,
        metadata={"email": identity.email},
    )
    record_audit_event(
        action="payment.intent_created",
        actor=identity.email,
        resource_type="payment_intent",
        resource_id=intent.id,
        new_value={"amount_cents": amount_cents, "currency": settings.payment_currency},
    )
    return intent.client_secret


async def disbursement_checkout(
    db: AsyncSession,
    gateway: PaymentGateway,
    application_id: str,
    *,
    identity: SessionIdentity,
) -> str:
    application = await get_application(db, application_id)
    if application.status != APPROVED:
        raise InvalidTransition(
            "Only approved applications can be disbursed",
            details={"status": application.status},
        )

    amount_cents = to_cents(application.loan_amount)
    session = await gateway.create_checkout_session(
        product_name=f"Loan Disbursement to {application.full_name or application.borrower_email}",
        amount_cents=amount_cents,
        currency=settings.payment_currency,
        success_url=_frontend_url(settings.disbursement_success_path),
        cancel_url=_frontend_url(settings.disbursement_cancel_path),
        metadata={"application_id": str(application.id), "purpose": "disbursement"},
    )
    record_audit_event(
        action="payment.disbursement_checkout",
        actor=identity.email,
        resource_type="loan_application",
        resource_id=application.id,
        new_value={"checkout_session": session.id, "amount_cents": amount_cents},
    )
    return session.url


async def repayment_checkout(
    db: AsyncSession,
    gateway: PaymentGateway,
    application_id: str,
    *,
    identity: SessionIdentity,
) -> str:
    application = await get_application(db, application_id)
    ensure_owner_or_admin(application, identity)
    if application.status not in (APPROVED, DISBURSED):
        raise InvalidTransition(
            "Only approved or disbursed applications can be repaid",
            details={"status": application.status},
        )
    if application.repay_status != RepayStatus.UNPAID.value:
        raise InvalidTransition(
            "Application has no outstanding repayment",
            details={"repay_status": application.repay_status},
        )

    amount_cents = to_cents(application.repay_amount)
    success_path = settings.repayment_success_path.format(application_id=application.id)
    session = await gateway.create_checkout_session(
        product_name=f"Loan Repayment - {application.loan_title or application.loan_id}",
        amount_cents=amount_cents,
        currency=settings.payment_currency,
        success_url=_frontend_url(success_path),
        cancel_url=_frontend_url(settings.repayment_cancel_path),
        metadata={"application_id": str(application.id), "purpose": "repayment"},
    )
    record_audit_event(
        action="payment.repayment_checkout",
        actor=identity.email,
        resource_type="loan_application",
        resource_id=application.id,
        new_value={"checkout_session": session.id, "amount_cents": amount_cents},
    )
    return session.url
