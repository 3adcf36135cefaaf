"""
Transaction API: list, create, show, edit, delete, confirm, cancel.
Ledger errors propagate to the handlers registered in app.common.error_handlers.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_db
from app.models.transaction import DocumentStatus, TransactionType
from app.schemas.transaction import (
    TransactionCreate,
    TransactionDeleteResponse,
    TransactionListResponse,
    TransactionResponse,
    TransactionSummary,
    TransactionUpdate,
)
from app.services.transaction_service import TransactionService

router = APIRouter()


@router.get("", response_model=TransactionListResponse)
def list_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[TransactionType] = Query(None),
    types: Optional[List[TransactionType]] = Query(None, description="Any of these types"),
    status: Optional[DocumentStatus] = Query(None),
    counterparty_id: Optional[int] = Query(None),
    partner_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Search by document number"),
    db: Session = Depends(get_db),
):
    transactions, total = TransactionService(db).list(
        skip=skip,
        limit=limit,
        type=type,
        types=types,
        status=status,
        counterparty_id=counterparty_id,
        partner_id=partner_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return TransactionListResponse(
        total=total,
        transactions=[TransactionSummary.model_validate(t) for t in transactions],
    )


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_transaction(data: TransactionCreate, db: Session = Depends(get_db)):
    """Create a draft. Ledgers are untouched until the document is confirmed."""
    transaction = TransactionService(db).create(data.model_dump())
    return TransactionResponse.model_validate(transaction)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: int, db: Session = Depends(get_db)):
    return TransactionResponse.model_validate(TransactionService(db).get(transaction_id))


@router.put("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(transaction_id: int, data: TransactionUpdate, db: Session = Depends(get_db)):
    """
    Replace the header and every entry of a draft (or cancelled) document.
    A confirmed document is rejected with 409.
    """
    service = TransactionService(db)
    transaction = service.update(service.get(transaction_id), data.model_dump())
    return TransactionResponse.model_validate(transaction)


@router.delete("/{transaction_id}", response_model=TransactionDeleteResponse)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    service = TransactionService(db)
    transaction = service.get(transaction_id)
    number = transaction.number
    service.delete(transaction)
    return TransactionDeleteResponse(message=f"Transaction {number} deleted")


@router.post("/{transaction_id}/confirm", response_model=TransactionResponse)
def confirm_transaction(transaction_id: int, db: Session = Depends(get_db)):
    """Apply every entry to its ledger. All or nothing."""
    service = TransactionService(db)
    return TransactionResponse.model_validate(service.confirm(service.get(transaction_id)))


@router.post("/{transaction_id}/cancel", response_model=TransactionResponse)
def cancel_transaction(transaction_id: int, db: Session = Depends(get_db)):
    """Cancel; a confirmed document has its ledger effects reversed."""
    service = TransactionService(db)
    return TransactionResponse.model_validate(service.cancel(service.get(transaction_id)))
