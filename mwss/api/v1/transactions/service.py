"""
Payment transactions: public submission, admin decision, membership provisioning, fee settlement.

Decision order is fixed: the status change is committed first, then the follow-up cascade
runs (membership payments provision a member and card, fee payments mark the paying
student as paid), then notifications are queued. A cascade failure never reverts the
decision; it is returned as provisioning_error and can be retried through
reconcile_transaction.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.api.v1.students.service import settle_fee_payment
from mwss.core.clock import utcnow
from mwss.core.enums import TransactionCategory, TransactionStatus, check_transaction_transition
from mwss.core.exceptions import InvalidStateError, NotFoundError, ServiceError, ValidationError
from mwss.core.models import PaymentTransaction
from mwss.core.provisioning_service import ProvisioningRequest, ensure_membership
from mwss.db.errors import transient_db_errors
from mwss.notifications.dispatcher import NotificationDispatcher
from mwss.notifications.sinks import ADMIN_RECIPIENT, NotificationEvent

from .schemas import (
    MembershipProvisioned,
    TransactionCreate,
    TransactionDecision,
    TransactionDecisionResponse,
    TransactionResponse,
    TransactionStatusCheck,
    TransactionSubmitted,
)

logger = logging.getLogger(__name__)

DUPLICATE_REFERENCE_MESSAGE = "Transaction ID already exists"


def _to_response(t: PaymentTransaction) -> TransactionResponse:
    return TransactionResponse.model_validate(t)


async def get_transaction(db: AsyncSession, transaction_id: UUID) -> Optional[PaymentTransaction]:
    return await db.get(PaymentTransaction, transaction_id, populate_existing=True)


async def get_transaction_by_reference(db: AsyncSession, reference: str) -> Optional[PaymentTransaction]:
    result = await db.execute(
        select(PaymentTransaction).where(PaymentTransaction.transaction_reference == reference.strip())
    )
    return result.scalar_one_or_none()


# ----- Submission -----

async def submit_transaction(
    db: AsyncSession,
    payload: TransactionCreate,
    dispatcher: NotificationDispatcher,
) -> TransactionSubmitted:
    """Persist a pending transaction. Duplicate references are rejected before and at insert."""
    async with transient_db_errors("submitting transaction"):
        if await get_transaction_by_reference(db, payload.transaction_reference):
            raise ValidationError(DUPLICATE_REFERENCE_MESSAGE)

        txn = PaymentTransaction(
            category=payload.category.value,
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            amount=payload.amount,
            transaction_reference=payload.transaction_reference,
            payment_method=payload.payment_method,
            purpose=payload.purpose,
            father_name=payload.father_name,
            address=payload.address,
            city=payload.city,
            state=payload.state,
            pincode=payload.pincode,
            membership_level=payload.membership_level,
            status=TransactionStatus.PENDING.value,
        )
        db.add(txn)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent submission of the same reference
            await db.rollback()
            raise ValidationError(DUPLICATE_REFERENCE_MESSAGE)
        await db.refresh(txn)

    logger.info(
        "Transaction %s submitted (%s, ref=%s, amount=%s)",
        txn.id, txn.category, txn.transaction_reference, txn.amount,
    )
    details = {
        "category": txn.category,
        "amount": str(txn.amount),
        "transaction_reference": txn.transaction_reference,
        "payment_method": txn.payment_method or "N/A",
        "purpose": txn.purpose or "N/A",
    }
    dispatcher.notify(NotificationEvent.PAYMENT_SUBMITTED, txn.email, {"name": txn.name, **details})
    dispatcher.notify(
        NotificationEvent.PAYMENT_SUBMITTED,
        ADMIN_RECIPIENT,
        {"name": txn.name, "email": txn.email or "N/A", **details},
    )
    return TransactionSubmitted(
        message="Payment submitted successfully! Please wait for admin approval.",
        id=txn.id,
        status=txn.status,
    )


async def check_transaction_status(db: AsyncSession, reference: str) -> TransactionStatusCheck:
    async with transient_db_errors("checking transaction"):
        txn = await get_transaction_by_reference(db, reference)
    if not txn:
        raise NotFoundError("Transaction not found")
    return TransactionStatusCheck(status=txn.status, category=txn.category, amount=txn.amount)


async def list_transactions(
    db: AsyncSession,
    status_filter: Optional[str] = None,
) -> List[TransactionResponse]:
    q = select(PaymentTransaction)
    if status_filter:
        q = q.where(PaymentTransaction.status == status_filter)
    q = q.order_by(PaymentTransaction.created_at.desc())
    async with transient_db_errors("listing transactions"):
        result = await db.execute(q)
    return [_to_response(t) for t in result.scalars().all()]


async def get_transaction_or_404(db: AsyncSession, transaction_id: UUID) -> TransactionResponse:
    async with transient_db_errors("loading transaction"):
        txn = await get_transaction(db, transaction_id)
    if not txn:
        raise NotFoundError("Transaction not found")
    return _to_response(txn)


# ----- Decision -----

def _provisioning_request(txn: PaymentTransaction) -> ProvisioningRequest:
    return ProvisioningRequest(
        email=txn.email,
        name=txn.name,
        phone=txn.phone,
        address=txn.address,
        city=txn.city,
        membership_level=txn.membership_level,
        approved_by=txn.approved_by,
    )


async def _provision(
    db: AsyncSession,
    transaction_id: UUID,
    request: ProvisioningRequest,
) -> MembershipProvisioned:
    """Run the cascade and link the member onto the transaction. Errors propagate."""
    result = await ensure_membership(db, request)
    member, card = result.member, result.card
    async with transient_db_errors("linking transaction to member"):
        await db.execute(
            update(PaymentTransaction)
            .where(PaymentTransaction.id == transaction_id, PaymentTransaction.member_id.is_(None))
            .values(member_id=member.id)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    return MembershipProvisioned(
        member_id=member.id,
        membership_number=member.membership_number,
        member_created=result.member_created,
        card_id=card.id,
        card_number=card.card_number,
        valid_from=card.valid_from,
        valid_until=card.valid_until,
        card_created=result.card_created,
    )


async def _apply_status(
    db: AsyncSession,
    transaction_id: UUID,
    payload: TransactionDecision,
    approver_id: UUID,
) -> PaymentTransaction:
    """Commit pending -> approved/rejected. The UPDATE is guarded on status so only one decision wins."""
    txn = await get_transaction(db, transaction_id)
    if not txn:
        raise NotFoundError("Transaction not found")
    target = check_transaction_transition(txn.status, payload.status.value)

    now = utcnow()
    values = {"status": target.value, "updated_at": now}
    if target == TransactionStatus.APPROVED:
        values["approved_by"] = approver_id
        values["approved_at"] = now
    if payload.admin_notes is not None:
        values["admin_notes"] = payload.admin_notes

    result = await db.execute(
        update(PaymentTransaction)
        .where(
            PaymentTransaction.id == transaction_id,
            PaymentTransaction.status == TransactionStatus.PENDING.value,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise InvalidStateError("Transaction has already been decided")
    await db.commit()
    await db.refresh(txn)
    return txn


async def decide_transaction(
    db: AsyncSession,
    transaction_id: UUID,
    payload: TransactionDecision,
    approver_id: UUID,
    dispatcher: NotificationDispatcher,
) -> TransactionDecisionResponse:
    """Approve or reject a pending transaction; approval of a membership payment provisions a member and card, approval of a fee marks the student paid."""
    async with transient_db_errors("deciding transaction"):
        txn = await _apply_status(db, transaction_id, payload, approver_id)
    response = _to_response(txn)
    logger.info("Transaction %s %s by %s", transaction_id, response.status, approver_id)

    membership: Optional[MembershipProvisioned] = None
    provisioning_error: Optional[str] = None
    if response.status == TransactionStatus.APPROVED.value and response.category == TransactionCategory.MEMBERSHIP.value:
        membership, provisioning_error = await _try_provision(db, txn)
        if membership is not None:
            response.member_id = membership.member_id
    elif response.status == TransactionStatus.APPROVED.value and response.category == TransactionCategory.FEE.value:
        student_id, provisioning_error = await _try_settle_fee(db, txn)
        if student_id is not None:
            response.student_id = student_id

    _notify_decision(dispatcher, response, membership)
    return TransactionDecisionResponse(
        transaction=response,
        membership=membership,
        provisioning_error=provisioning_error,
    )


async def _try_provision(
    db: AsyncSession,
    txn: PaymentTransaction,
) -> Tuple[Optional[MembershipProvisioned], Optional[str]]:
    transaction_id = txn.id
    if not txn.email:
        message = "Membership payment has no payer email; no member was provisioned"
        logger.warning("Transaction %s: %s", transaction_id, message)
        return None, message
    request = _provisioning_request(txn)
    try:
        return await _provision(db, transaction_id, request), None
    except (ServiceError, SQLAlchemyError) as exc:
        message = exc.message if isinstance(exc, ServiceError) else "Database error during provisioning"
        logger.error("Provisioning failed for approved transaction %s: %s", transaction_id, exc)
        await db.rollback()
        return None, message


async def _try_settle_fee(
    db: AsyncSession,
    txn: PaymentTransaction,
) -> Tuple[Optional[UUID], Optional[str]]:
    """Mark the paying student's fee as paid. A payment from an unregistered email only gets logged."""
    transaction_id = txn.id
    if not txn.email:
        logger.info("Fee transaction %s has no payer email; no student to settle", transaction_id)
        return None, None
    email, paid_at = txn.email, txn.approved_at or utcnow()
    try:
        student_id = await settle_fee_payment(db, email, transaction_id, paid_at)
    except SQLAlchemyError as exc:
        logger.error("Fee settlement failed for approved transaction %s: %s", transaction_id, exc)
        await db.rollback()
        return None, "Database error while settling student fee"
    if student_id is None:
        logger.info("Fee transaction %s: no student registered under %s", transaction_id, email)
    return student_id, None


def _notify_decision(
    dispatcher: NotificationDispatcher,
    txn: TransactionResponse,
    membership: Optional[MembershipProvisioned],
) -> None:
    details = {
        "name": txn.name,
        "category": txn.category,
        "amount": str(txn.amount),
        "transaction_reference": txn.transaction_reference,
    }
    if txn.status == TransactionStatus.APPROVED.value:
        if membership is not None:
            details["membership_number"] = membership.membership_number or "N/A"
            details["card_number"] = membership.card_number
        dispatcher.notify(NotificationEvent.PAYMENT_APPROVED, txn.email, details)
    else:
        dispatcher.notify(NotificationEvent.PAYMENT_REJECTED, txn.email, details)


async def reconcile_transaction(
    db: AsyncSession,
    transaction_id: UUID,
) -> TransactionDecisionResponse:
    """Re-run the cascade for an approved membership or fee payment. Idempotent."""
    async with transient_db_errors("loading transaction"):
        txn = await get_transaction(db, transaction_id)
    if not txn:
        raise NotFoundError("Transaction not found")
    if txn.status != TransactionStatus.APPROVED.value:
        raise InvalidStateError(f"Only approved transactions can be provisioned (current: {txn.status})")
    if txn.category not in (TransactionCategory.MEMBERSHIP.value, TransactionCategory.FEE.value):
        raise ValidationError("Only membership and fee payments have a follow-up to provision")
    if not txn.email:
        raise ValidationError("Payment has no payer email")

    response = _to_response(txn)
    if txn.category == TransactionCategory.FEE.value:
        async with transient_db_errors("settling student fee"):
            student_id = await settle_fee_payment(db, txn.email, transaction_id, txn.approved_at or utcnow())
        if student_id is None:
            raise NotFoundError("No student registered under the payer email")
        response.student_id = student_id
        logger.info("Transaction %s reconciled: student %s", transaction_id, student_id)
        return TransactionDecisionResponse(transaction=response)

    membership = await _provision(db, transaction_id, _provisioning_request(txn))
    response.member_id = membership.member_id
    logger.info("Transaction %s reconciled: member %s", transaction_id, membership.membership_number)
    return TransactionDecisionResponse(transaction=response, membership=membership)
