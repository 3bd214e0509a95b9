"""Fee structure resolution service - picks the structure a calculation runs on."""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from apps.fees.models import Cohort, FeeStructure, StructureType, StudentPayment
from .exceptions import FeeStructureNotFoundError

# Fields a preview override may set on the unsaved structure
PREVIEW_FIELDS = (
    'total_program_fee',
    'admission_fee',
    'number_of_semesters',
    'instalments_per_semester',
    'one_shot_discount_percentage',
    'program_fee_includes_gst',
    'equal_scholarship_distribution',
    'custom_dates_enabled',
    'one_shot_dates',
    'sem_wise_dates',
    'instalment_wise_dates',
)


def _build_preview_structure(cohort_id, student_id, preview_data: dict[str, Any]) -> FeeStructure:
    values = {
        field: preview_data[field]
        for field in PREVIEW_FIELDS
        if preview_data.get(field) is not None
    }
    for blob in ('one_shot_dates', 'sem_wise_dates', 'instalment_wise_dates'):
        if not isinstance(values.get(blob), dict):
            values[blob] = {}
    return FeeStructure(
        cohort_id=cohort_id,
        student_id=student_id,
        structure_type=StructureType.COHORT,
        **values,
    )


def resolve_fee_structure(
    *,
    cohort_id: UUID,
    student_id: Optional[UUID] = None,
    preview_data: Optional[dict[str, Any]] = None,
) -> FeeStructure:
    """
    Resolve the fee structure for a cohort and, optionally, a student.

    Priority:
    1. Preview override (unsaved structure built from ``preview_data``)
    2. The student's own custom structure
    3. The cohort default

    Args:
        cohort_id: Cohort UUID
        student_id: Student UUID, if the calculation is per student
        preview_data: Fee structure fields to preview without saving

    Returns:
        FeeStructure instance (unsaved for previews)

    Raises:
        FeeStructureNotFoundError: If there is neither a preview nor a
            cohort default structure
    """
    if preview_data:
        return _build_preview_structure(cohort_id, student_id, preview_data)

    if student_id:
        custom = FeeStructure.objects.filter(
            cohort_id=cohort_id,
            student_id=student_id,
            structure_type=StructureType.CUSTOM,
        ).first()
        if custom is not None:
            return custom

    default = FeeStructure.objects.filter(
        cohort_id=cohort_id,
        structure_type=StructureType.COHORT,
    ).first()
    if default is None:
        raise FeeStructureNotFoundError(f"Fee structure not found for cohort {cohort_id}")
    return default


def get_cohort_start_date(*, cohort_id: UUID) -> Optional[date]:
    """Return the cohort's start date, or None when unknown."""
    return Cohort.objects.filter(id=cohort_id).values_list('start_date', flat=True).first()


def resolve_student_payment(*, student_id: UUID, cohort_id: UUID) -> Optional[StudentPayment]:
    """Return the student's payment record in the cohort, if any."""
    return (
        StudentPayment.objects
        .select_related('scholarship')
        .filter(student_id=student_id, cohort_id=cohort_id)
        .first()
    )
