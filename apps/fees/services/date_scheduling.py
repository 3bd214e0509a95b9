"""
Date Scheduling Module
======================

Assigns due dates to a computed breakdown.

Dates come from three sources, in strict priority order:

1. Custom dates supplied by the caller (preview / UI), using the flat UI
   keys ``one-shot`` and ``semester-{n}-instalment-{i}`` (``i`` 0-based).
   Required keys the caller left out are filled from the generated defaults.
2. The schedule persisted on the fee structure for the payment plan.
3. Defaults generated from the cohort start date.

Persisted schedules exist in two shapes: the nested one written by the
admin UI and a legacy flat one. :func:`normalize_persisted_dates` is the
only place that knows about either; everything else works on the flat map.

The admission date (``admission`` / ``admission_date``) is resolved
independently of the plan type. Resolving dates never changes amounts, and
a date that cannot be parsed is logged and left empty.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from apps.fees.models import FeeStructure, PaymentPlan
from .breakdown_calculation import read_fee_inputs

ONE_SHOT_KEY = 'one-shot'
ADMISSION_KEY = 'admission'
MONTHS_PER_SEMESTER = 6

FLAT_KEY_PATTERN = re.compile(r'^semester-(\d+)-instalment-(\d+)$')
SEMESTER_KEY_PATTERN = re.compile(r'^semester_(\d+)$')
INSTALLMENT_KEY_PATTERN = re.compile(r'^installment_(\d+)$')


def instalment_key(semester_number, index):
    """Flat UI key of an installment; ``index`` is 0-based."""
    return f'semester-{semester_number}-instalment-{index}'


def parse_due_date(value) -> Optional[date]:
    """
    Parse a due date given as ISO (date or timestamp) or ``DD/MM/YYYY``.

    Returns None for empty or unparseable values.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return isoparse(text).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, '%d/%m/%Y').date()
    except ValueError:
        return None


def normalize_persisted_dates(plan_json: Any, payment_plan: str) -> dict[str, str]:
    """
    Flatten a persisted date schedule into UI keys.

    Accepts the nested shape::

        {"program_fee_due_date": "2025-01-10"}
        {"semesters": {"semester_1": {"due_date": "2025-01-10"}}}
        {"semesters": {"semester_1": {"installments": {"installment_0": "2025-01-10"}}}}

    as well as the legacy flat shape keyed like the UI. Nested values win
    over flat ones for the same installment.
    """
    if not isinstance(plan_json, dict):
        return {}

    flat = {
        key: value
        for key, value in plan_json.items()
        if isinstance(value, str) and value
        and (key in (ONE_SHOT_KEY, ADMISSION_KEY) or FLAT_KEY_PATTERN.match(key))
    }

    admission_date = plan_json.get('admission_date')
    if isinstance(admission_date, str) and admission_date:
        flat.setdefault(ADMISSION_KEY, admission_date)

    if payment_plan == PaymentPlan.ONE_SHOT:
        nested = plan_json.get('one_shot')
        due_date = plan_json.get('program_fee_due_date')
        if isinstance(nested, dict) and nested.get('program_fee_due_date'):
            due_date = nested['program_fee_due_date']
        if isinstance(due_date, str) and due_date:
            flat[ONE_SHOT_KEY] = due_date
        return flat

    semesters = plan_json.get('semesters')
    if not isinstance(semesters, dict):
        return flat

    for semester_key, semester in semesters.items():
        match = SEMESTER_KEY_PATTERN.match(str(semester_key))
        if not match or not isinstance(semester, dict):
            continue
        semester_number = int(match.group(1))

        if payment_plan == PaymentPlan.SEM_WISE:
            due_date = semester.get('due_date')
            if isinstance(due_date, str) and due_date:
                flat[instalment_key(semester_number, 0)] = due_date
            continue

        installments = semester.get('installments')
        if not isinstance(installments, dict):
            continue
        for inst_key, due_date in installments.items():
            inst_match = INSTALLMENT_KEY_PATTERN.match(str(inst_key))
            if inst_match and isinstance(due_date, str) and due_date:
                flat[instalment_key(semester_number, int(inst_match.group(1)))] = due_date

    return flat


def convert_dates_to_plan_json(custom_dates: dict[str, str], payment_plan: str) -> dict[str, Any]:
    """Turn flat UI date keys into the nested shape stored on a fee structure."""
    result: dict[str, Any] = {}
    custom_dates = custom_dates or {}

    if custom_dates.get(ADMISSION_KEY):
        result['admission_date'] = custom_dates[ADMISSION_KEY]

    if payment_plan == PaymentPlan.ONE_SHOT:
        if custom_dates.get(ONE_SHOT_KEY):
            result['program_fee_due_date'] = custom_dates[ONE_SHOT_KEY]
        return result

    semesters: dict[str, dict] = {}
    for key, value in custom_dates.items():
        match = FLAT_KEY_PATTERN.match(key)
        if not match or not value:
            continue
        semester_key = f'semester_{match.group(1)}'
        index = int(match.group(2))

        if payment_plan == PaymentPlan.SEM_WISE:
            if index == 0:
                semesters.setdefault(semester_key, {})['due_date'] = value
        else:
            semester = semesters.setdefault(semester_key, {})
            semester.setdefault('installments', {})[f'installment_{index}'] = value

    if semesters:
        result['semesters'] = semesters
    return result


def required_date_keys(payment_plan: str, number_of_semesters: int, instalments_per_semester: int) -> list[str]:
    if payment_plan == PaymentPlan.ONE_SHOT:
        return [ONE_SHOT_KEY]
    if payment_plan == PaymentPlan.SEM_WISE:
        return [instalment_key(sem, 0) for sem in range(1, number_of_semesters + 1)]
    return [
        instalment_key(sem, index)
        for sem in range(1, number_of_semesters + 1)
        for index in range(instalments_per_semester)
    ]


def generate_default_dates(
    payment_plan: str,
    start_date: Optional[date],
    number_of_semesters: int,
    instalments_per_semester: int,
) -> dict[str, str]:
    """
    Generate due dates anchored on the cohort start date.

    One-shot is due on the start date; semester ``n`` starts
    ``(n - 1) * 6`` months later and installment ``i`` (0-based) of an
    installment-wise plan falls ``i`` months after that.
    """
    if start_date is None:
        return {}
    if payment_plan == PaymentPlan.ONE_SHOT:
        return {ONE_SHOT_KEY: start_date.isoformat()}

    per_semester = 1 if payment_plan == PaymentPlan.SEM_WISE else instalments_per_semester
    dates = {}
    for semester_number in range(1, number_of_semesters + 1):
        for index in range(per_semester):
            offset = (semester_number - 1) * MONTHS_PER_SEMESTER + index
            due = start_date + relativedelta(months=offset)
            dates[instalment_key(semester_number, index)] = due.isoformat()
    return dates


def _fill_missing(dates, required_keys, generated):
    for key in required_keys:
        if not dates.get(key) and generated.get(key):
            dates[key] = generated[key]
    return dates


def resolve_schedule_dates(
    *,
    payment_plan: str,
    fee_structure: FeeStructure,
    custom_dates: Optional[dict[str, Any]] = None,
    start_date: Optional[date] = None,
) -> dict[str, str]:
    """
    Resolve the flat date map for a plan.

    Args:
        payment_plan: Plan the breakdown was computed for
        fee_structure: Structure holding the persisted schedules
        custom_dates: Caller-supplied dates, flat UI keys (highest priority)
        start_date: Anchor for generated defaults

    Returns:
        Flat date map; values are raw strings as supplied or ISO dates
    """
    fees = read_fee_inputs(fee_structure)
    required_keys = required_date_keys(
        payment_plan, fees['number_of_semesters'], fees['instalments_per_semester']
    )
    generated = generate_default_dates(
        payment_plan, start_date, fees['number_of_semesters'], fees['instalments_per_semester']
    )
    persisted = normalize_persisted_dates(fee_structure.dates_for_plan(payment_plan), payment_plan)
    custom = normalize_persisted_dates(custom_dates, payment_plan)

    admission_date = custom.get(ADMISSION_KEY) or persisted.get(ADMISSION_KEY)

    if any(key != ADMISSION_KEY for key in custom):
        dates = _fill_missing(custom, required_keys, generated)
    elif any(key != ADMISSION_KEY for key in persisted):
        dates = _fill_missing(persisted, required_keys, generated)
    else:
        dates = dict(generated)

    if admission_date:
        dates[ADMISSION_KEY] = admission_date
    return dates


def _format_due_date(value, key, log) -> str:
    if not value:
        return ''
    parsed = parse_due_date(value)
    if parsed is None:
        log.warning(
            "Unparseable due date, leaving it empty",
            extra={'date_key': key, 'value': str(value)},
        )
        return ''
    return parsed.isoformat()


def apply_schedule_dates(
    breakdown: dict,
    payment_plan: str,
    dates: dict[str, str],
    logger: Optional[logging.Logger] = None,
) -> dict:
    """Set ``payment_date`` on every entry of the breakdown, in place."""
    log = logger or logging.getLogger(__name__)

    breakdown['admission_fee']['payment_date'] = _format_due_date(
        dates.get(ADMISSION_KEY), ADMISSION_KEY, log
    )

    if payment_plan == PaymentPlan.ONE_SHOT and breakdown.get('one_shot_payment'):
        breakdown['one_shot_payment']['payment_date'] = _format_due_date(
            dates.get(ONE_SHOT_KEY), ONE_SHOT_KEY, log
        )

    for semester in breakdown.get('semesters', []):
        for installment in semester['instalments']:
            key = instalment_key(semester['semester_number'], installment['installment_number'] - 1)
            installment['payment_date'] = _format_due_date(dates.get(key), key, log)

    return breakdown
