from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.api import deps
from lendmarket.core.security import SessionIdentity
from lendmarket.schemas.payments import CheckoutResponse, PaymentIntentRequest, PaymentIntentResponse
from lendmarket.services import payments as payments_service
from lendmarket.services.payment_gateway import PaymentGateway

router = APIRouter(tags=["payments"])


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    payload: PaymentIntentRequest,
    identity: SessionIdentity = Depends(deps.get_current_identity),
    gateway: PaymentGateway = Depends(deps.get_payment_gateway),
) -> PaymentIntentResponse:
    client_secret = await payments_service.create_payment_intent(
        gateway, payload.amount, identity=identity
    )
    return PaymentIntentResponse(client_secret=client_secret)


@router.post("/payment/admin/send/{application_id}", response_model=CheckoutResponse)
async def send_disbursement(
    application_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_admin),
    gateway: PaymentGateway = Depends(deps.get_payment_gateway),
) -> CheckoutResponse:
    url = await payments_service.disbursement_checkout(
        db, gateway, application_id, identity=identity
    )
    return CheckoutResponse(url=url)


@router.post("/payment/user/repay/{application_id}", response_model=CheckoutResponse)
async def start_repayment(
    application_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.get_current_identity),
    gateway: PaymentGateway = Depends(deps.get_payment_gateway),
) -> CheckoutResponse:
    url = await payments_service.repayment_checkout(
        db, gateway, application_id, identity=identity
    )
    return CheckoutResponse(url=url)
