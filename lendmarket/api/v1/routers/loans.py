from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.api import deps
from lendmarket.core.security import SessionIdentity
from lendmarket.schemas.common import MessageResponse
from lendmarket.schemas.loan import LoanCreate, LoanCreated, LoanOut, LoanUpdate
from lendmarket.services import loans as loans_service

router = APIRouter(prefix="/loans", tags=["loans"])


@router.get("", response_model=list[LoanOut])
async def list_loans(db: AsyncSession = Depends(deps.get_db_session)) -> list[LoanOut]:
    loans = await loans_service.list_loans(db)
    return [LoanOut.model_validate(loan) for loan in loans]


@router.get("/{loan_id}", response_model=LoanOut)
async def get_loan(loan_id: str, db: AsyncSession = Depends(deps.get_db_session)) -> LoanOut:
    loan = await loans_service.get_loan(db, loan_id)
    return LoanOut.model_validate(loan)


@router.post("", response_model=LoanCreated)
async def create_loan(
    payload: LoanCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_manager_or_admin),
) -> LoanCreated:
    loan = await loans_service.create_loan(db, payload, actor=identity)
    await db.commit()
    return LoanCreated(loan_id=loan.id)


@router.patch("/{loan_id}", response_model=LoanOut)
async def update_loan(
    loan_id: str,
    payload: LoanUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_manager_or_admin),
) -> LoanOut:
    loan = await loans_service.update_loan(db, loan_id, payload, actor=identity)
    await db.commit()
    return LoanOut.model_validate(loan)


@router.delete("/{loan_id}", response_model=MessageResponse)
async def delete_loan(
    loan_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_manager_or_admin),
) -> MessageResponse:
    await loans_service.delete_loan(db, loan_id, actor=identity)
    await db.commit()
    return MessageResponse(message="Loan deleted")
