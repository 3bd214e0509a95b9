"""
Payment Engine
==============

Single entry point for fee calculations. Every request names an action:

- ``breakdown``: fee schedule for a plan, with due dates
- ``status``: payment progress summary for a student
- ``full``: schedule annotated with per-installment status, plus summary
- ``partial_calculation``: partial payment summary for one installment
- ``admin_partial_approval``: review (approve / split / reject) a transaction
- ``partial_config``: read or toggle partial payments for one installment

Calculations are pure functions of the loaded records, so the engine keeps
no state between requests; only the admin review writes to the database.
"""

import logging
from datetime import date
from typing import Optional

from django.utils import timezone

from apps.fees.models import PaymentPlan
from .breakdown_calculation import build_breakdown
from .date_scheduling import apply_schedule_dates, resolve_schedule_dates
from .exceptions import PaymentRecordNotFoundError, ValidationError
from .fee_structure_resolution import (
    get_cohort_start_date,
    resolve_fee_structure,
    resolve_student_payment,
)
from .partial_payments import (
    calculate_partial_payment_summary,
    get_partial_payment_config,
    process_admin_partial_approval,
    update_partial_payment_config,
)
from .scholarship_resolution import SavedScholarship, resolve_scholarship
from .status_reconciliation import allocate_transactions, reconcile_breakdown

ACTIONS = (
    'breakdown',
    'status',
    'full',
    'partial_calculation',
    'admin_partial_approval',
    'partial_config',
)


class PaymentEngine:
    """
    Dispatches engine actions.

    Args:
        logger: Receives soft-failure warnings and debug output; tests can
            pass a mock to assert on them or silence them
        today: Reference date for status derivation; defaults to the
            current local date
    """

    def __init__(self, logger: Optional[logging.Logger] = None, today: Optional[date] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.today = today

    def handle(self, params: dict) -> dict:
        """
        Run one action.

        Args:
            params: Validated request values (snake_case), as produced by
                ``PaymentEngineRequestSerializer``

        Returns:
            Response payload; always contains ``success: True``

        Raises:
            PaymentEngineError: Any fatal error; nothing partial is returned
        """
        action = params.get('action') or 'full'
        if action not in ACTIONS:
            raise ValidationError(f"Unknown action: {action!r}")

        self.logger.debug("Payment engine request", extra={'action': action})
        handler = getattr(self, f'_handle_{action}')
        return handler(params)

    # -------------------------------------------------------------------------
    # Calculation actions
    # -------------------------------------------------------------------------

    def _reference_date(self) -> date:
        return self.today or timezone.localdate()

    def _compute(self, params):
        cohort_id = params.get('cohort_id')
        if not cohort_id:
            raise ValidationError("cohortId is required")
        student_id = params.get('student_id')

        payment_plan = params.get('payment_plan')
        scholarship = params.get('scholarship')
        student_payment = None
        if student_id:
            student_payment = resolve_student_payment(student_id=student_id, cohort_id=cohort_id)
            if student_payment is not None:
                payment_plan = payment_plan or student_payment.payment_plan or None
                if scholarship is None and student_payment.scholarship_id:
                    scholarship = SavedScholarship(student_payment.scholarship_id)
        if not payment_plan:
            raise ValidationError("paymentPlan is required when no student payment record exists")

        fee_structure = resolve_fee_structure(
            cohort_id=cohort_id,
            student_id=student_id,
            preview_data=params.get('fee_structure_data'),
        )
        resolution = resolve_scholarship(
            fee_structure=fee_structure,
            scholarship=scholarship,
            additional_discount_percentage=params.get('additional_discount_percentage'),
            logger=self.logger,
        )
        breakdown = build_breakdown(
            fee_structure,
            payment_plan,
            scholarship_amount=resolution.amount,
            logger=self.logger,
        )

        start_date = (
            params.get('start_date')
            or get_cohort_start_date(cohort_id=cohort_id)
            or self._reference_date()
        )
        dates = resolve_schedule_dates(
            payment_plan=payment_plan,
            fee_structure=fee_structure,
            custom_dates=params.get('custom_dates'),
            start_date=start_date,
        )
        apply_schedule_dates(breakdown, payment_plan, dates, logger=self.logger)

        return {
            'fee_structure': fee_structure,
            'payment_plan': payment_plan,
            'student_payment': student_payment,
            'scholarship': resolution,
            'breakdown': breakdown,
        }

    def _reconcile(self, computed):
        student_payment = computed['student_payment']
        transactions = list(student_payment.transactions.all()) if student_payment else []
        return reconcile_breakdown(
            breakdown=computed['breakdown'],
            transactions=transactions,
            payment_plan=computed['payment_plan'],
            today=self._reference_date(),
        )

    def _handle_breakdown(self, params):
        computed = self._compute(params)
        return {
            'success': True,
            'breakdown': computed['breakdown'],
            'fee_structure': computed['fee_structure'],
        }

    def _handle_status(self, params):
        computed = self._compute(params)
        _, aggregate = self._reconcile(computed)
        return {'success': True, 'aggregate': aggregate}

    def _handle_full(self, params):
        computed = self._compute(params)
        breakdown, aggregate = self._reconcile(computed)
        return {
            'success': True,
            'breakdown': breakdown,
            'fee_structure': computed['fee_structure'],
            'aggregate': aggregate,
        }

    # -------------------------------------------------------------------------
    # Partial payment actions
    # -------------------------------------------------------------------------

    def _require_student_payment(self, params):
        if not params.get('student_id') or not params.get('cohort_id'):
            raise ValidationError("studentId and cohortId are required")
        if not params.get('installment_id'):
            raise ValidationError("installmentId is required")
        payment = resolve_student_payment(
            student_id=params['student_id'],
            cohort_id=params['cohort_id'],
        )
        if payment is None:
            raise PaymentRecordNotFoundError(
                f"No payment record for student {params['student_id']} in cohort {params['cohort_id']}"
            )
        return payment

    def _installment_amount(self, breakdown, payment_plan, installment_id, semester_number):
        probe = {'installment_id': installment_id, 'semester_number': semester_number}
        (key,) = allocate_transactions([probe]).keys()
        if payment_plan == PaymentPlan.ONE_SHOT and breakdown.get('one_shot_payment'):
            if key == (1, 1):
                return breakdown['one_shot_payment']['amount_payable']
        for semester in breakdown['semesters']:
            for installment in semester['instalments']:
                if (semester['semester_number'], installment['installment_number']) == key:
                    return installment['amount_payable']
        raise ValidationError(f"Installment {installment_id} is not part of the payment schedule")

    def _handle_partial_calculation(self, params):
        payment = self._require_student_payment(params)
        computed = self._compute(params)
        original_amount = self._installment_amount(
            computed['breakdown'],
            computed['payment_plan'],
            params['installment_id'],
            params.get('semester_number'),
        )
        summary = calculate_partial_payment_summary(
            payment=payment,
            installment_id=params['installment_id'],
            original_amount=original_amount,
            semester_number=params.get('semester_number'),
        )
        return {'success': True, 'partial_payment_summary': summary}

    def _handle_admin_partial_approval(self, params):
        if not params.get('transaction_id') or not params.get('approval_type'):
            raise ValidationError("transactionId and approvalType are required")
        approval = process_admin_partial_approval(
            transaction_id=params['transaction_id'],
            approval_type=params['approval_type'],
            approved_amount=params.get('approved_amount'),
            admin_notes=params.get('admin_notes') or '',
            rejection_reason=params.get('rejection_reason') or '',
            reviewed_by=params.get('reviewed_by'),
        )
        return {'success': True, 'approval': approval}

    def _handle_partial_config(self, params):
        payment = self._require_student_payment(params)
        installment_key = params['installment_id']
        allow = params.get('allow_partial_payments')
        if allow is not None:
            update_partial_payment_config(payment=payment, installment_key=installment_key, allow=allow)
        return {
            'success': True,
            'partial_config': {
                'installment_id': installment_key,
                'allow_partial_payments': get_partial_payment_config(
                    payment=payment, installment_key=installment_key
                ),
            },
        }
