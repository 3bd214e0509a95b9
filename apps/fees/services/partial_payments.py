"""Partial payment service - installment payment history, admin review and toggles."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from apps.fees.conf import engine_setting
from apps.fees.models import PaymentTransaction, StudentPayment, VerificationStatus
from .breakdown_calculation import ZERO, round_to_rupee
from .exceptions import (
    ConcurrencyConflictError,
    InvalidApprovalStateError,
    TransactionNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

APPROVAL_TYPES = ('full', 'partial', 'reject')
REVIEWABLE_STATUSES = (VerificationStatus.PENDING, VerificationStatus.VERIFICATION_PENDING)


def calculate_partial_payment_summary(
    *,
    payment: StudentPayment,
    installment_id: str,
    original_amount,
    semester_number: Optional[int] = None,
) -> dict:
    """
    Summarize partial payments made towards one installment.

    Args:
        payment: The student's payment record
        installment_id: Installment id as stored on transactions (e.g. '1-2')
        original_amount: Installment amount payable from the breakdown
        semester_number: Narrows the history when ids repeat across semesters

    Returns:
        Dict with totals, the ordered payment history and the
        partial payment restrictions
    """
    history = payment.transactions.filter(installment_id=installment_id)
    if semester_number:
        history = history.filter(semester_number=semester_number)
    history = list(history.order_by('partial_payment_sequence', 'created_at'))

    original_amount = Decimal(str(original_amount))
    total_paid = sum(
        (t.amount for t in history
         if t.verification_status in (VerificationStatus.APPROVED, VerificationStatus.PARTIALLY_APPROVED)),
        ZERO,
    )
    pending_amount = round_to_rupee(max(ZERO, original_amount - total_paid))
    max_partial_payments = engine_setting('MAX_PARTIAL_PAYMENTS')
    current_count = len(history)
    can_make_another = current_count < max_partial_payments and pending_amount > 0

    return {
        'installment_id': installment_id,
        'original_amount': original_amount,
        'total_paid': total_paid,
        'pending_amount': pending_amount,
        # 0 lets the student choose the amount of the next partial payment
        'next_payment_amount': 0 if can_make_another else pending_amount,
        'can_make_another_payment': can_make_another,
        'partial_payment_history': [
            {
                'id': t.id,
                'sequence_number': t.partial_payment_sequence,
                'amount': t.amount,
                'status': t.verification_status,
                'payment_date': t.created_at,
                'verified_at': t.verified_at,
                'notes': t.notes,
                'rejection_reason': t.rejection_reason,
            }
            for t in history
        ],
        'restrictions': {
            'max_partial_payments': max_partial_payments,
            'current_count': current_count,
            'remaining_payments': max(0, max_partial_payments - current_count),
        },
    }


def _load_transaction(transaction_id) -> PaymentTransaction:
    try:
        return PaymentTransaction.objects.get(id=transaction_id)
    except (PaymentTransaction.DoesNotExist, DjangoValidationError, ValueError):
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found")


def _conditional_update(txn: PaymentTransaction, **changes) -> None:
    # Only succeeds if nobody reviewed the transaction since it was read
    updated = PaymentTransaction.objects.filter(
        id=txn.id,
        verification_status=txn.verification_status,
    ).update(updated_at=timezone.now(), **changes)
    if updated == 0:
        raise ConcurrencyConflictError(
            f"Transaction {txn.id} was reviewed concurrently; reload and retry"
        )


def process_admin_partial_approval(
    *,
    transaction_id: UUID,
    approval_type: str,
    approved_amount=None,
    admin_notes: str = '',
    rejection_reason: str = '',
    reviewed_by=None,
) -> dict:
    """
    Review a submitted payment transaction.

    ``reject`` and ``full`` are terminal. ``partial`` approves part of the
    submitted amount and records the remainder as a new pending
    transaction with the next partial payment sequence.

    The whole review runs in one database transaction, and the write is
    conditional on the status read at the start so two admins cannot split
    the same transaction twice.

    Args:
        transaction_id: Transaction under review
        approval_type: 'full', 'partial' or 'reject'
        approved_amount: Approved part of the amount (partial only)
        admin_notes: Stored as verification notes
        rejection_reason: Stored on rejection
        reviewed_by: Admin user performing the review

    Returns:
        Dict with success flag, message and, for partial approvals, the id
        of the remainder transaction

    Raises:
        TransactionNotFoundError: If the transaction doesn't exist
        InvalidApprovalStateError: If it was already reviewed
        ValidationError: On unknown approval type or out-of-range amount
        ConcurrencyConflictError: If another review won the race
    """
    if approval_type not in APPROVAL_TYPES:
        raise ValidationError(f"Unknown approval type: {approval_type!r}")

    with transaction.atomic():
        txn = _load_transaction(transaction_id)
        if txn.verification_status not in REVIEWABLE_STATUSES:
            raise InvalidApprovalStateError(
                f"Transaction {txn.id} is {txn.verification_status} and cannot be reviewed"
            )

        verified_at = timezone.now()
        review = {
            'verified_at': verified_at,
            'verification_notes': admin_notes or '',
            'verified_by': reviewed_by,
        }

        if approval_type == 'reject':
            _conditional_update(
                txn,
                verification_status=VerificationStatus.REJECTED,
                rejection_reason=rejection_reason or '',
                **review,
            )
            logger.info("Transaction rejected", extra={'transaction_id': str(txn.id)})
            return {'success': True, 'message': 'Transaction rejected successfully'}

        if approval_type == 'full':
            _conditional_update(txn, verification_status=VerificationStatus.APPROVED, **review)
            logger.info("Transaction approved", extra={'transaction_id': str(txn.id)})
            return {'success': True, 'message': 'Transaction approved successfully'}

        try:
            approved = Decimal(str(approved_amount))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError("Approved amount is required for partial approval")
        if not approved.is_finite() or approved <= 0 or approved >= txn.amount:
            raise ValidationError(
                f"Approved amount must be greater than 0 and less than {txn.amount}"
            )
        remainder_amount = Decimal(round_to_rupee(txn.amount - approved))
        if remainder_amount <= 0:
            raise ValidationError("Remaining amount rounds to zero; use full approval instead")

        _conditional_update(
            txn,
            amount=approved,
            verification_status=VerificationStatus.PARTIALLY_APPROVED,
            **review,
        )
        remainder = PaymentTransaction.objects.create(
            payment_id=txn.payment_id,
            amount=remainder_amount,
            payment_method=txn.payment_method,
            reference_number=txn.reference_number,
            verification_status=VerificationStatus.PENDING,
            installment_id=txn.installment_id,
            semester_number=txn.semester_number,
            partial_payment_sequence=txn.partial_payment_sequence + 1,
            notes=f"Remaining amount from partial approval of transaction {txn.id}",
        )

    logger.info(
        "Transaction partially approved",
        extra={
            'transaction_id': str(txn.id),
            'approved_amount': str(approved),
            'remainder_transaction_id': str(remainder.id),
        },
    )
    return {
        'success': True,
        'message': f"Partially approved {approved}; remaining {remainder.amount} is pending",
        'new_transaction_id': remainder.id,
    }


def get_partial_payment_config(*, payment: StudentPayment, installment_key: str) -> bool:
    """Whether partial payments are allowed for ``"<semester>-<installment>"``."""
    return bool((payment.allow_partial_payments_json or {}).get(installment_key, False))


def update_partial_payment_config(
    *,
    payment: StudentPayment,
    installment_key: str,
    allow: bool,
) -> dict:
    """
    Enable or disable partial payments for one installment.

    Existing transactions are not touched.

    Returns:
        The updated configuration map
    """
    with transaction.atomic():
        locked = StudentPayment.objects.select_for_update().get(id=payment.id)
        config = dict(locked.allow_partial_payments_json or {})
        config[installment_key] = bool(allow)
        locked.allow_partial_payments_json = config
        locked.save(update_fields=['allow_partial_payments_json', 'updated_at'])

    payment.allow_partial_payments_json = config
    logger.info(
        "Partial payment configuration updated",
        extra={'payment_id': str(payment.id), 'installment_key': installment_key, 'allow': bool(allow)},
    )
    return config
