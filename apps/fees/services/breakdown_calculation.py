"""
Breakdown Calculation Module
============================

Numeric core of the fee engine: turns a fee structure, a payment plan and a
resolved scholarship amount into an unreconciled payment schedule.

All arithmetic is done in ``Decimal``. Intermediate components (base, GST,
scholarship, discount) keep 2-decimal precision, rounded half-up; only the
final payable amounts are rounded to whole rupees, and every payable is
clamped at zero before rounding.

Scholarship distribution is policy-driven by the fee structure's
``equal_scholarship_distribution`` flag:

- equal: the scholarship is spread evenly across semesters (rounding
  remainder on the last one) and, inside each semester, proportionally to
  the installment pattern.
- backwards (default): the scholarship is consumed greedily from the last
  semester towards the first, and inside a semester from the last
  installment towards the first.

Example:
    Computing an installment-wise schedule::

        from apps.fees.services.breakdown_calculation import build_breakdown

        breakdown = build_breakdown(
            fee_structure,
            PaymentPlan.INSTALMENT_WISE,
            scholarship_amount=Decimal('50000.00'),
        )
        for semester in breakdown['semesters']:
            print(semester['semester_number'], semester['total']['total_payable'])
"""

import logging
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from django.utils.module_loading import import_string

from apps.fees.conf import engine_setting
from apps.fees.models import PaymentPlan
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

GST_RATE = Decimal('18')
HUNDRED = Decimal('100')
PAISE = Decimal('0.01')
RUPEE = Decimal('1')
ZERO = Decimal('0.00')


# =============================================================================
# Rounding and GST helpers
# =============================================================================

def round_to_paise(amount) -> Decimal:
    """Round half-up to 2 decimal places."""
    return Decimal(amount).quantize(PAISE, rounding=ROUND_HALF_UP)


def round_to_rupee(amount) -> int:
    """Round half-up to the nearest whole currency unit."""
    return int(Decimal(amount).quantize(RUPEE, rounding=ROUND_HALF_UP))


def to_payable(amount) -> int:
    """Clamp an amount at zero and round it to the rupee."""
    return round_to_rupee(max(Decimal('0'), Decimal(amount)))


def calculate_gst(base_amount) -> Decimal:
    """GST charged on top of a pre-tax amount."""
    return round_to_paise(Decimal(base_amount) * GST_RATE / HUNDRED)


def extract_base_amount(total_amount) -> Decimal:
    """Pre-tax part of a GST-inclusive amount."""
    return round_to_paise(Decimal(total_amount) / (1 + GST_RATE / HUNDRED))


def extract_gst_amount(total_amount) -> Decimal:
    """GST part of a GST-inclusive amount."""
    total_amount = Decimal(total_amount)
    return round_to_paise(total_amount - total_amount / (1 + GST_RATE / HUNDRED))


def percentage_of(amount, percentage) -> Decimal:
    return round_to_paise(Decimal(amount) * Decimal(percentage) / HUNDRED)


def program_fee_base(total_program_fee, includes_gst) -> Decimal:
    """Pre-GST program fee, whichever way the fee was entered."""
    if includes_gst:
        return extract_base_amount(total_program_fee)
    return round_to_paise(total_program_fee)


# =============================================================================
# Installment distribution strategies
# =============================================================================

class InstallmentDistribution:
    """Splits a semester fee into per-installment percentages."""

    def percentages(self, installment_count):
        raise NotImplementedError


class EqualDistribution(InstallmentDistribution):
    """Every installment carries the same share."""

    def percentages(self, installment_count):
        share = HUNDRED / installment_count
        return [share] * installment_count


class FrontLoadedDistribution(EqualDistribution):
    """
    Front-loaded payment policy.

    Two, three and four installments follow fixed patterns that collect
    most of the semester fee early; any other count falls back to equal
    shares.
    """

    PATTERNS = {
        2: [60, 40],
        3: [40, 40, 20],
        4: [30, 30, 30, 10],
    }

    def percentages(self, installment_count):
        pattern = self.PATTERNS.get(installment_count)
        if pattern is None:
            return super().percentages(installment_count)
        return [Decimal(p) for p in pattern]


def get_installment_distribution():
    """Instantiate the strategy named by PAYMENT_ENGINE['INSTALLMENT_DISTRIBUTION']."""
    return import_string(engine_setting('INSTALLMENT_DISTRIBUTION'))()


# =============================================================================
# Fee structure inputs
# =============================================================================

def _to_decimal(value, field_name):
    if value is None or value == '' or isinstance(value, bool):
        raise ConfigurationError(f"Fee structure is missing a numeric {field_name}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ConfigurationError(f"Fee structure {field_name} is not numeric: {value!r}")
    if not result.is_finite():
        raise ConfigurationError(f"Fee structure {field_name} is not numeric: {value!r}")
    return result


def _to_count(value, field_name):
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Fee structure {field_name} must be a whole number")
    if count < 1:
        raise ConfigurationError(f"Fee structure {field_name} must be at least 1")
    return count


def read_fee_inputs(fee_structure):
    """
    Validate and coerce the numeric inputs of a fee structure.

    Works on saved structures and on unsaved preview structures whose
    attributes may still hold raw request values.

    Raises:
        ConfigurationError: If a fee is missing or non-numeric, or a count
            is below 1.
    """
    total_program_fee = _to_decimal(
        getattr(fee_structure, 'total_program_fee', None), 'total_program_fee'
    )
    admission_fee = _to_decimal(
        getattr(fee_structure, 'admission_fee', None), 'admission_fee'
    )
    discount_percentage = getattr(fee_structure, 'one_shot_discount_percentage', None)
    includes_gst = getattr(fee_structure, 'program_fee_includes_gst', True)

    return {
        'total_program_fee': total_program_fee,
        'admission_fee': admission_fee,
        'number_of_semesters': _to_count(
            getattr(fee_structure, 'number_of_semesters', None), 'number_of_semesters'
        ),
        'instalments_per_semester': _to_count(
            getattr(fee_structure, 'instalments_per_semester', None), 'instalments_per_semester'
        ),
        'one_shot_discount_percentage': (
            ZERO if discount_percentage in (None, '')
            else _to_decimal(discount_percentage, 'one_shot_discount_percentage')
        ),
        'program_fee_includes_gst': True if includes_gst is None else bool(includes_gst),
        'equal_scholarship_distribution': bool(
            getattr(fee_structure, 'equal_scholarship_distribution', False)
        ),
    }


# =============================================================================
# Scholarship distribution
# =============================================================================

def distribute_scholarship_across_semesters(
    semester_fee,
    number_of_semesters,
    scholarship_amount,
    equal_distribution,
):
    """
    Split a scholarship amount across semesters.

    Args:
        semester_fee (Decimal): Pre-GST fee of one semester.
        number_of_semesters (int): Semester count.
        scholarship_amount (Decimal): Total scholarship to distribute.
        equal_distribution (bool): Equal split when True, otherwise
            backwards from the last semester.

    Returns:
        list[Decimal]: Scholarship per semester, first semester first.

    Example:
        Backwards distribution of 150 over three semesters of 100::

            >>> distribute_scholarship_across_semesters(
            ...     Decimal('100'), 3, Decimal('150'), False)
            [Decimal('0.00'), Decimal('50.00'), Decimal('100.00')]
    """
    distribution = [ZERO] * number_of_semesters
    scholarship_amount = round_to_paise(scholarship_amount)
    if scholarship_amount <= 0:
        return distribution

    if equal_distribution:
        per_semester = round_to_paise(scholarship_amount / number_of_semesters)
        distribution = [per_semester] * number_of_semesters
        distribution[-1] += scholarship_amount - per_semester * number_of_semesters
        return distribution

    capacity = max(ZERO, round_to_paise(semester_fee))
    remaining = scholarship_amount
    for index in range(number_of_semesters - 1, -1, -1):
        if remaining <= 0:
            break
        portion = min(remaining, capacity)
        distribution[index] = portion
        remaining -= portion
    return distribution


def distribute_scholarship_within_semester(installment_amounts, semester_scholarship, follow_pattern):
    """
    Split one semester's scholarship across its installments.

    With ``follow_pattern`` the scholarship is shared proportionally to the
    installment amounts (rounding remainder on the last installment);
    otherwise it is consumed from the last installment backwards.
    """
    count = len(installment_amounts)
    distribution = [ZERO] * count
    semester_scholarship = round_to_paise(semester_scholarship)
    if count == 0 or semester_scholarship <= 0:
        return distribution

    if follow_pattern:
        total = sum(installment_amounts, ZERO)
        if total > 0:
            distribution = [
                round_to_paise(semester_scholarship * amount / total)
                for amount in installment_amounts
            ]
        else:
            per_installment = round_to_paise(semester_scholarship / count)
            distribution = [per_installment] * count
        distribution[-1] += semester_scholarship - sum(distribution, ZERO)
        return distribution

    remaining = semester_scholarship
    for index in range(count - 1, -1, -1):
        if remaining <= 0:
            break
        portion = min(remaining, max(ZERO, installment_amounts[index]))
        distribution[index] = portion
        remaining -= portion
    return distribution


# =============================================================================
# Plan calculations
# =============================================================================

def calculate_semester_fee(fees, discount_amount=ZERO):
    """Pre-GST fee of one semester once the admission fee base is taken out."""
    program_base = program_fee_base(fees['total_program_fee'], fees['program_fee_includes_gst'])
    admission_base = extract_base_amount(fees['admission_fee'])
    remaining_base = program_base - discount_amount - admission_base
    return remaining_base / fees['number_of_semesters']


def _installment_gst_ratio(fees):
    if not fees['program_fee_includes_gst']:
        return GST_RATE / HUNDRED
    program_base = extract_base_amount(fees['total_program_fee'])
    admission_base = extract_base_amount(fees['admission_fee'])
    remaining_base = program_base - admission_base
    if remaining_base <= 0:
        return GST_RATE / HUNDRED
    remaining_gst = (
        extract_gst_amount(fees['total_program_fee']) - extract_gst_amount(fees['admission_fee'])
    )
    return remaining_gst / remaining_base


def _installment_view(installment_number, base_amount, discount_amount, scholarship_amount, gst_ratio):
    taxable = base_amount - discount_amount - scholarship_amount
    gst_amount = round_to_paise(max(ZERO, taxable) * gst_ratio)
    return {
        'installment_number': installment_number,
        'payment_date': '',
        'base_amount': round_to_paise(base_amount),
        'gst_amount': gst_amount,
        'scholarship_amount': round_to_paise(scholarship_amount),
        'discount_amount': round_to_paise(discount_amount),
        'amount_payable': to_payable(taxable + gst_amount),
    }


def calculate_semester_payment(
    semester_number,
    fees,
    installments_per_semester,
    semester_scholarship,
    discount_amount=ZERO,
    distribution=None,
):
    """
    Build the installments of one semester.

    The semester fee is split by the installment distribution strategy; the
    plain discount is spread evenly over every installment of every
    semester; the semester's scholarship is spread according to the fee
    structure's distribution policy. GST is recomputed per installment on
    (base - discount - scholarship).

    Args:
        semester_number (int): 1-based semester number.
        fees (dict): Output of :func:`read_fee_inputs`.
        installments_per_semester (int): 1 for sem-wise plans.
        semester_scholarship (Decimal): This semester's scholarship share.
        discount_amount (Decimal): Program-wide plain discount.
        distribution (InstallmentDistribution, optional): Defaults to the
            configured strategy.

    Returns:
        list[dict]: Installment views, first installment first.
    """
    distribution = distribution or get_installment_distribution()
    semester_fee = calculate_semester_fee(fees)

    installment_amounts = [
        round_to_paise(semester_fee * percentage / HUNDRED)
        for percentage in distribution.percentages(installments_per_semester)
    ]
    discount_per_installment = round_to_paise(
        Decimal(discount_amount) / fees['number_of_semesters'] / installments_per_semester
    )
    # base_amount stays gross; the discount is taken off once, per installment
    scholarships = distribute_scholarship_within_semester(
        [amount - discount_per_installment for amount in installment_amounts],
        semester_scholarship,
        follow_pattern=fees['equal_scholarship_distribution'],
    )
    gst_ratio = _installment_gst_ratio(fees)

    return [
        _installment_view(
            index + 1,
            amount,
            discount_per_installment,
            scholarships[index],
            gst_ratio,
        )
        for index, amount in enumerate(installment_amounts)
    ]


def calculate_one_shot_payment(fees, scholarship_amount):
    """
    Single payment covering the whole program fee.

    The one-shot discount and the scholarship (which already carries any
    additional discount) are both taken off the pre-GST base; GST is then
    recomputed on what remains.
    """
    program_base = program_fee_base(fees['total_program_fee'], fees['program_fee_includes_gst'])
    admission_base = extract_base_amount(fees['admission_fee'])
    discount_amount = percentage_of(program_base, fees['one_shot_discount_percentage'])
    scholarship_amount = round_to_paise(scholarship_amount)

    base_amount = program_base - admission_base
    remaining = base_amount - discount_amount - scholarship_amount
    gst_amount = calculate_gst(max(ZERO, remaining))

    return {
        'installment_number': 1,
        'payment_date': '',
        'base_amount': round_to_paise(base_amount),
        'gst_amount': gst_amount,
        'scholarship_amount': scholarship_amount,
        'discount_amount': discount_amount,
        'amount_payable': to_payable(remaining + gst_amount),
    }


def _semester_total(installments):
    return {
        'base_amount': sum((i['base_amount'] for i in installments), ZERO),
        'gst_amount': sum((i['gst_amount'] for i in installments), ZERO),
        'scholarship_amount': sum((i['scholarship_amount'] for i in installments), ZERO),
        'discount_amount': sum((i['discount_amount'] for i in installments), ZERO),
        'total_payable': sum(i['amount_payable'] for i in installments),
    }


def build_breakdown(
    fee_structure,
    payment_plan,
    scholarship_amount=ZERO,
    distribution=None,
    apply_one_shot_discount_to_installments=None,
    logger=logger,
):
    """
    Compute the unreconciled breakdown for a payment plan.

    Args:
        fee_structure (FeeStructure): Saved or preview fee structure.
        payment_plan (str): One of :class:`PaymentPlan`.
        scholarship_amount (Decimal): Resolved scholarship (including any
            additional discount).
        distribution (InstallmentDistribution, optional): Installment split
            strategy; defaults to the configured one.
        apply_one_shot_discount_to_installments (bool, optional): Take the
            one-shot discount off semester plans too. Defaults to the
            PAYMENT_ENGINE setting.
        logger (logging.Logger, optional): Destination for debug output.

    Returns:
        dict: ``admission_fee``, ``semesters``, ``one_shot_payment`` and
        ``overall_summary``. Payment dates are left empty.

    Raises:
        ConfigurationError: If the fee structure inputs are invalid or the
            payment plan is unknown. Nothing is computed in that case.
    """
    fees = read_fee_inputs(fee_structure)
    if payment_plan not in PaymentPlan.values:
        raise ConfigurationError(f"Unknown payment plan: {payment_plan!r}")
    if apply_one_shot_discount_to_installments is None:
        apply_one_shot_discount_to_installments = engine_setting(
            'APPLY_ONE_SHOT_DISCOUNT_TO_INSTALLMENTS'
        )

    scholarship_amount = round_to_paise(scholarship_amount or ZERO)
    program_base = program_fee_base(fees['total_program_fee'], fees['program_fee_includes_gst'])

    admission_fee = {
        'base_amount': extract_base_amount(fees['admission_fee']),
        'gst_amount': extract_gst_amount(fees['admission_fee']),
        'scholarship_amount': ZERO,
        'discount_amount': ZERO,
        'total_payable': to_payable(fees['admission_fee']),
        'payment_date': '',
    }

    semesters = []
    one_shot_payment = None

    if payment_plan == PaymentPlan.ONE_SHOT:
        one_shot_payment = calculate_one_shot_payment(fees, scholarship_amount)
    else:
        installments_per_semester = (
            1 if payment_plan == PaymentPlan.SEM_WISE else fees['instalments_per_semester']
        )
        discount_amount = ZERO
        if apply_one_shot_discount_to_installments:
            discount_amount = percentage_of(program_base, fees['one_shot_discount_percentage'])

        semester_scholarships = distribute_scholarship_across_semesters(
            calculate_semester_fee(fees, discount_amount),
            fees['number_of_semesters'],
            scholarship_amount,
            fees['equal_scholarship_distribution'],
        )
        logger.debug(
            "Scholarship distributed across semesters",
            extra={
                'scholarship_amount': str(scholarship_amount),
                'distribution': [str(s) for s in semester_scholarships],
                'equal_distribution': fees['equal_scholarship_distribution'],
            },
        )

        distribution = distribution or get_installment_distribution()
        for semester_number in range(1, fees['number_of_semesters'] + 1):
            installments = calculate_semester_payment(
                semester_number,
                fees,
                installments_per_semester,
                semester_scholarships[semester_number - 1],
                discount_amount=discount_amount,
                distribution=distribution,
            )
            semesters.append({
                'semester_number': semester_number,
                'instalments': installments,
                'total': _semester_total(installments),
            })

    one_shot_items = [one_shot_payment] if one_shot_payment else []
    schedule_total = (
        sum(s['total']['total_payable'] for s in semesters)
        + sum(i['amount_payable'] for i in one_shot_items)
    )

    overall_summary = {
        'total_program_fee': program_base,
        'admission_fee': round_to_paise(fees['admission_fee']),
        'total_gst': admission_fee['gst_amount']
        + sum((s['total']['gst_amount'] for s in semesters), ZERO)
        + sum((i['gst_amount'] for i in one_shot_items), ZERO),
        'total_discount': sum((s['total']['discount_amount'] for s in semesters), ZERO)
        + sum((i['discount_amount'] for i in one_shot_items), ZERO),
        'total_scholarship': sum((s['total']['scholarship_amount'] for s in semesters), ZERO)
        + sum((i['scholarship_amount'] for i in one_shot_items), ZERO),
        'total_amount_payable': max(0, admission_fee['total_payable'] + schedule_total),
    }

    return {
        'admission_fee': admission_fee,
        'semesters': semesters,
        'one_shot_payment': one_shot_payment,
        'overall_summary': overall_summary,
    }
