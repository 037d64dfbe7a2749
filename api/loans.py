from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.common import envelope, get_current_user_id
from config import settings
from database import get_db
from models import Loan
from schemas.loan import LoanCreate, LoanStatusUpdate
from services import loans as loan_service

router = APIRouter(prefix="/api/loans", tags=["loans"])


def _loan_to_response(loan: Loan) -> dict[str, Any]:
    """Serialize loan to dict with camelCase for frontend."""
    return {
        "id": loan.id,
        "userId": loan.user_id,
        "type": loan.type,
        "amount": loan.amount,
        "interestRate": loan.interest_rate,
        "startDate": loan.start_date.isoformat(),
        "dueDate": loan.due_date.isoformat(),
        "totalInterest": loan.total_interest,
        "totalPayable": loan.total_payable,
        "status": loan.status,
        "paidAt": loan.paid_at.isoformat() if loan.paid_at else None,
        "borrowerName": loan.borrower_name,
        "borrowerAddress": loan.borrower_address,
        "borrowerPhone": loan.borrower_phone,
        "lenderName": loan.lender_name,
        "category": loan.category,
        "notes": loan.notes,
        "createdAt": loan.created_at.isoformat() if loan.created_at else None,
        "updatedAt": loan.updated_at.isoformat() if loan.updated_at else None,
    }


@router.post("", status_code=201)
async def create_loan(
    body: LoanCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    loan = await loan_service.create_loan(
        db,
        user_id,
        body,
        policy=settings.month_policy,
        currency=settings.currency_symbol,
    )
    await db.refresh(loan)
    return envelope(_loan_to_response(loan), "Loan created successfully")


@router.get("")
async def list_loans(
    type: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    result = await loan_service.list_loans(db, user_id, type=type, status=status, page=page, limit=limit)
    return envelope(
        {
            "loans": [_loan_to_response(l) for l in result["loans"]],
            "total": result["total"],
            "page": result["page"],
            "pages": result["pages"],
            "totals": result["totals"],
        }
    )


@router.get("/stats")
async def loan_stats(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db)):
    stats = await loan_service.loan_stats(db, user_id)
    by_status = stats["by_status"]
    return envelope(
        {
            "pending": by_status["pending"]["count"],
            "paid": by_status["paid"]["count"],
            "overdue": by_status["overdue"]["count"],
            "byStatus": by_status,
            "byType": stats["by_type"],
        }
    )


@router.get("/{loan_id}")
async def get_loan(loan_id: str, user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db)):
    loan = await loan_service.get_loan(db, loan_id, user_id)
    return envelope(_loan_to_response(loan))


@router.patch("/{loan_id}/status")
async def update_loan_status(
    loan_id: str,
    body: LoanStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    loan = await loan_service.update_status(db, loan_id, user_id, body.status)
    return envelope(_loan_to_response(loan), "Status updated")


@router.delete("/{loan_id}")
async def delete_loan(loan_id: str, user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db)):
    await loan_service.delete_loan(db, loan_id, user_id)
    return envelope(message="Loan deleted successfully")
