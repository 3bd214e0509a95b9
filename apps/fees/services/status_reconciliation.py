"""
Status Reconciliation Module
============================

Overlays recorded payment transactions on a computed breakdown and derives
a payment status per installment and for the student as a whole.

Per-installment statuses, evaluated in this order:

==========================================  =====================================================
Status                                      Condition
==========================================  =====================================================
``waived``                                  nothing payable, or scholarship alone covers it
``partially_waived``                        scholarship plus approved/pending still short of total
``paid``                                    approved + scholarship covers the total
``verification_pending``                    covered once pending verifications are approved
``partially_paid_verification_pending``     some amount awaiting verification
``overdue`` / ``partially_paid_overdue``    due date passed, nothing / something approved
``partially_paid_days_left``                something approved, due date ahead
``pending_10_plus_days``                    nothing paid, due date far enough ahead
``pending``                                 fallback
==========================================  =====================================================

Every transaction must name the installment it pays for; a transaction
without either an installment id or a semester number is rejected rather
than guessed at.
"""

import copy
import re
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from apps.fees.conf import engine_setting
from apps.fees.models import PaymentPlan, VerificationStatus
from .breakdown_calculation import ZERO, round_to_rupee
from .date_scheduling import parse_due_date
from .exceptions import UnallocatedPaymentError


class InstallmentStatus:
    WAIVED = 'waived'
    PARTIALLY_WAIVED = 'partially_waived'
    PAID = 'paid'
    VERIFICATION_PENDING = 'verification_pending'
    PARTIALLY_PAID_VERIFICATION_PENDING = 'partially_paid_verification_pending'
    OVERDUE = 'overdue'
    PARTIALLY_PAID_OVERDUE = 'partially_paid_overdue'
    PARTIALLY_PAID_DAYS_LEFT = 'partially_paid_days_left'
    PENDING_10_PLUS_DAYS = 'pending_10_plus_days'
    PENDING = 'pending'


SETTLED_STATUSES = {InstallmentStatus.PAID, InstallmentStatus.WAIVED}
APPROVED_STATUSES = {VerificationStatus.APPROVED, VerificationStatus.PARTIALLY_APPROVED}

_NUMBER_TOKEN = re.compile(r'\d+')


def _field(transaction, name):
    if isinstance(transaction, dict):
        return transaction.get(name)
    return getattr(transaction, name, None)


def parse_installment_number(installment_id) -> Optional[int]:
    """Installment number is the last numeric token of the id (``"1-2"`` -> 2)."""
    tokens = _NUMBER_TOKEN.findall(str(installment_id or ''))
    return int(tokens[-1]) if tokens else None


def allocate_transactions(transactions: Iterable) -> dict[tuple[int, int], list]:
    """
    Group transactions by ``(semester_number, installment_number)``.

    Rejected transactions are ignored. When the semester number is missing
    it is read from an id such as ``"2-1"``; a bare installment id means
    semester 1, and a bare semester number means its first installment.

    Raises:
        UnallocatedPaymentError: If a transaction has neither an
            installment id nor a semester number
    """
    allocated = defaultdict(list)
    for transaction in transactions:
        if _field(transaction, 'verification_status') == VerificationStatus.REJECTED:
            continue

        installment_id = _field(transaction, 'installment_id')
        semester_number = _field(transaction, 'semester_number')
        if not installment_id and not semester_number:
            raise UnallocatedPaymentError(
                f"Transaction {_field(transaction, 'id')} is not linked to an installment; "
                "general payments are not supported"
            )

        tokens = _NUMBER_TOKEN.findall(str(installment_id or ''))
        installment_number = int(tokens[-1]) if tokens else 1
        if not semester_number:
            semester_number = int(tokens[-2]) if len(tokens) >= 2 else 1

        allocated[(int(semester_number), installment_number)].append(transaction)
    return allocated


def _sum_amounts(transactions, statuses) -> Decimal:
    return sum(
        (Decimal(str(_field(t, 'amount') or 0)) for t in transactions
         if _field(t, 'verification_status') in statuses),
        ZERO,
    )


def days_until_due(due_date, today: date) -> int:
    """Whole days from ``today`` to the due date; an empty date counts as today."""
    parsed = parse_due_date(due_date)
    if parsed is None:
        return 0
    return (parsed - today).days


def derive_installment_status(
    *,
    due_date,
    total_payable,
    approved_amount,
    verification_pending_amount,
    scholarship_amount,
    today: date,
    pending_days_threshold: Optional[int] = None,
) -> str:
    """
    Derive the status of one installment.

    Args:
        due_date: ISO date string, date, or empty
        total_payable: Amount the installment is expected to collect
        approved_amount: Sum of approved and partially approved payments
        verification_pending_amount: Sum of payments awaiting verification
        scholarship_amount: Scholarship applied to the installment
        today: Reference date
        pending_days_threshold: Days ahead from which a due date counts as
            far off; defaults to the PAYMENT_ENGINE setting

    Returns:
        One of the :class:`InstallmentStatus` values
    """
    if pending_days_threshold is None:
        pending_days_threshold = engine_setting('PENDING_DAYS_THRESHOLD')

    total = Decimal(str(total_payable))
    approved = Decimal(str(approved_amount))
    awaiting = Decimal(str(verification_pending_amount))
    scholarship = Decimal(str(scholarship_amount))

    if total <= 0 or scholarship >= total:
        return InstallmentStatus.WAIVED
    if scholarship > 0 and (approved + awaiting) > 0 and approved + awaiting + scholarship < total:
        return InstallmentStatus.PARTIALLY_WAIVED
    if approved + scholarship >= total:
        return InstallmentStatus.PAID
    if approved + awaiting + scholarship >= total:
        return InstallmentStatus.VERIFICATION_PENDING
    if awaiting > 0:
        return InstallmentStatus.PARTIALLY_PAID_VERIFICATION_PENDING

    days = days_until_due(due_date, today)
    if days < 0:
        if approved > 0:
            return InstallmentStatus.PARTIALLY_PAID_OVERDUE
        return InstallmentStatus.OVERDUE
    if approved > 0:
        return InstallmentStatus.PARTIALLY_PAID_DAYS_LEFT
    if days >= pending_days_threshold:
        return InstallmentStatus.PENDING_10_PLUS_DAYS
    return InstallmentStatus.PENDING


def _aggregate_status(installments, today, threshold) -> str:
    statuses = [i['status'] for i in installments]
    if not statuses:
        return InstallmentStatus.PENDING

    if all(s in SETTLED_STATUSES for s in statuses):
        return InstallmentStatus.PAID
    if any(s in (InstallmentStatus.VERIFICATION_PENDING,
                 InstallmentStatus.PARTIALLY_PAID_VERIFICATION_PENDING) for s in statuses):
        return InstallmentStatus.VERIFICATION_PENDING
    if any(s in (InstallmentStatus.OVERDUE,
                 InstallmentStatus.PARTIALLY_PAID_OVERDUE) for s in statuses):
        return InstallmentStatus.OVERDUE
    if any(s in (InstallmentStatus.PARTIALLY_PAID_DAYS_LEFT,
                 InstallmentStatus.PARTIALLY_WAIVED) for s in statuses):
        return InstallmentStatus.PARTIALLY_PAID_DAYS_LEFT

    upcoming = _earliest_open(installments)
    if upcoming is None:
        return InstallmentStatus.PENDING
    if days_until_due(upcoming['payment_date'], today) >= threshold:
        return InstallmentStatus.PENDING_10_PLUS_DAYS
    return InstallmentStatus.PENDING


def _earliest_open(installments):
    open_installments = [i for i in installments if i['status'] not in SETTLED_STATUSES]
    dated = [i for i in open_installments if parse_due_date(i['payment_date'])]
    if dated:
        return min(dated, key=lambda i: parse_due_date(i['payment_date']))
    return open_installments[0] if open_installments else None


def _current_installment_status(installments) -> str:
    if any(i['status'] == InstallmentStatus.PAID for i in installments):
        return InstallmentStatus.PAID
    upcoming = _earliest_open(installments)
    if upcoming is None:
        return InstallmentStatus.PAID if installments else InstallmentStatus.PENDING
    return upcoming['status']


def reconcile_breakdown(
    *,
    breakdown: dict,
    transactions: Iterable,
    payment_plan: str,
    today: date,
    pending_days_threshold: Optional[int] = None,
) -> tuple[dict, dict]:
    """
    Annotate a breakdown with payment progress.

    The input breakdown is not modified. One-shot plans are reconciled as a
    single semester 1 / installment 1 entry, which replaces
    ``one_shot_payment`` in the returned semesters.

    Args:
        breakdown: Output of ``build_breakdown`` with dates applied
        transactions: PaymentTransaction instances or equivalent dicts
        payment_plan: Plan the breakdown was computed for
        today: Reference date for due-date comparisons
        pending_days_threshold: Overrides the PAYMENT_ENGINE setting

    Returns:
        Tuple of (reconciled breakdown, aggregate summary)

    Raises:
        UnallocatedPaymentError: If a transaction is not linked to an installment
    """
    if pending_days_threshold is None:
        pending_days_threshold = engine_setting('PENDING_DAYS_THRESHOLD')

    reconciled = copy.deepcopy(breakdown)
    if payment_plan == PaymentPlan.ONE_SHOT and reconciled.get('one_shot_payment'):
        one_shot = reconciled['one_shot_payment']
        reconciled['semesters'] = [{
            'semester_number': 1,
            'instalments': [dict(one_shot, installment_number=1)],
            'total': {
                'base_amount': one_shot['base_amount'],
                'gst_amount': one_shot['gst_amount'],
                'scholarship_amount': one_shot['scholarship_amount'],
                'discount_amount': one_shot['discount_amount'],
                'total_payable': one_shot['amount_payable'],
            },
        }]

    allocated = allocate_transactions(transactions)

    all_installments = []
    total_approved = ZERO
    for semester in reconciled['semesters']:
        for installment in semester['instalments']:
            key = (semester['semester_number'], installment['installment_number'])
            matched = allocated.get(key, [])
            approved = _sum_amounts(matched, APPROVED_STATUSES)
            awaiting = _sum_amounts(matched, {VerificationStatus.VERIFICATION_PENDING})
            total = installment['amount_payable']
            scholarship = installment['scholarship_amount']

            # amount_payable is already net of scholarship; compare against the gross
            installment['status'] = derive_installment_status(
                due_date=installment['payment_date'],
                total_payable=total + scholarship,
                approved_amount=approved,
                verification_pending_amount=awaiting,
                scholarship_amount=scholarship,
                today=today,
                pending_days_threshold=pending_days_threshold,
            )
            installment['amount_paid'] = approved
            installment['amount_pending'] = round_to_rupee(max(ZERO, total - approved))

            total_approved += approved
            all_installments.append(installment)

    schedule_total = sum(s['total']['total_payable'] for s in reconciled['semesters'])
    total_paid = min(total_approved, Decimal(schedule_total))
    upcoming = _earliest_open(all_installments)

    aggregate = {
        'total_payable': reconciled['admission_fee']['total_payable'] + schedule_total,
        'total_paid': total_paid,
        'total_pending': round_to_rupee(max(ZERO, schedule_total - total_paid)),
        'next_due_date': upcoming['payment_date'] if upcoming else '',
        'payment_status': _aggregate_status(all_installments, today, pending_days_threshold),
        'current_installment_status': _current_installment_status(all_installments),
    }
    return reconciled, aggregate
