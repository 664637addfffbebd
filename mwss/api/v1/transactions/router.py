from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.auth.dependencies import require_admin
from mwss.auth.schemas import CurrentUser
from mwss.core.exceptions import ServiceError
from mwss.db.session import get_db
from mwss.notifications.dispatcher import NotificationDispatcher, get_dispatcher

from .schemas import (
    TransactionCreate,
    TransactionDecision,
    TransactionDecisionResponse,
    TransactionResponse,
    TransactionStatusCheck,
    TransactionSubmitted,
)
from . import service

router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])


# ----- Public -----

@router.post(
    "",
    response_model=TransactionSubmitted,
    status_code=status.HTTP_201_CREATED,
)
async def submit_transaction(
    payload: TransactionCreate,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> TransactionSubmitted:
    """Submit a payment for admin approval. The transaction reference must not have been used before."""
    try:
        return await service.submit_transaction(db, payload, dispatcher)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/check/{reference}",
    response_model=TransactionStatusCheck,
)
async def check_transaction(
    reference: str,
    db: AsyncSession = Depends(get_db),
) -> TransactionStatusCheck:
    try:
        return await service.check_transaction_status(db, reference)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# ----- Admin -----

@router.get(
    "",
    response_model=List[TransactionResponse],
    dependencies=[Depends(require_admin)],
)
async def list_transactions(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status: pending, approved, rejected"),
    db: AsyncSession = Depends(get_db),
) -> List[TransactionResponse]:
    try:
        return await service.list_transactions(db, status_filter=status_filter)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    dependencies=[Depends(require_admin)],
)
async def get_transaction(
    transaction_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> TransactionResponse:
    try:
        return await service.get_transaction_or_404(db, transaction_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{transaction_id}",
    response_model=TransactionDecisionResponse,
)
async def decide_transaction(
    transaction_id: UUID,
    payload: TransactionDecision,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> TransactionDecisionResponse:
    """Approve or reject a pending transaction. Approving a membership payment provisions the member and I-Card."""
    try:
        return await service.decide_transaction(
            db,
            transaction_id,
            payload,
            approver_id=current_user.id,
            dispatcher=dispatcher,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{transaction_id}/provision",
    response_model=TransactionDecisionResponse,
    dependencies=[Depends(require_admin)],
)
async def provision_transaction(
    transaction_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> TransactionDecisionResponse:
    """Retry the membership cascade for an approved membership payment whose provisioning failed."""
    try:
        return await service.reconcile_transaction(db, transaction_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
