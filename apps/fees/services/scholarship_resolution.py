"""Scholarship resolution service - turns a scholarship selection into an amount."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError

from apps.fees.models import CohortScholarship, FeeStructure
from .breakdown_calculation import (
    ZERO,
    percentage_of,
    program_fee_base,
    read_fee_inputs,
)


@dataclass(frozen=True)
class SavedScholarship:
    """Scholarship stored for the cohort, referenced by id."""
    scholarship_id: Union[UUID, str]


@dataclass(frozen=True)
class EphemeralScholarship:
    """Scholarship supplied inline by the caller (preview / what-if)."""
    percentage: Decimal
    name: str = ''


Scholarship = Union[SavedScholarship, EphemeralScholarship]


@dataclass(frozen=True)
class ScholarshipResolution:
    base_percentage: Decimal = ZERO
    additional_percentage: Decimal = ZERO
    base_amount: Decimal = ZERO
    amount: Decimal = ZERO
    name: str = ''

    @property
    def total_percentage(self) -> Decimal:
        return self.base_percentage + self.additional_percentage

    @property
    def additional_amount(self) -> Decimal:
        return self.amount - self.base_amount


def _lookup_saved_percentage(scholarship: SavedScholarship, log) -> tuple[Decimal, str]:
    try:
        saved = CohortScholarship.objects.get(id=scholarship.scholarship_id)
    except (CohortScholarship.DoesNotExist, DjangoValidationError, ValueError):
        log.warning(
            "Scholarship could not be resolved, applying 0%",
            extra={'scholarship_id': str(scholarship.scholarship_id)},
        )
        return ZERO, ''
    return Decimal(saved.amount_percentage), saved.name


def resolve_scholarship(
    *,
    fee_structure: FeeStructure,
    scholarship: Optional[Scholarship] = None,
    additional_discount_percentage: Optional[Decimal] = None,
    logger: Optional[logging.Logger] = None,
) -> ScholarshipResolution:
    """
    Resolve the scholarship amount for a fee structure.

    The scholarship percentage and the additional discount percentage stack
    additively and are both applied to the pre-GST program fee.

    Args:
        fee_structure: Resolved (saved or preview) fee structure
        scholarship: Saved or ephemeral selection, or None
        additional_discount_percentage: Manual discount on top of the scholarship
        logger: Destination for soft-failure warnings

    Returns:
        ScholarshipResolution with percentages and amounts

    Raises:
        ConfigurationError: If the fee structure's program fee is invalid
    """
    log = logger or logging.getLogger(__name__)
    fees = read_fee_inputs(fee_structure)
    base = program_fee_base(fees['total_program_fee'], fees['program_fee_includes_gst'])

    base_percentage, name = ZERO, ''
    if isinstance(scholarship, SavedScholarship):
        base_percentage, name = _lookup_saved_percentage(scholarship, log)
    elif isinstance(scholarship, EphemeralScholarship):
        base_percentage, name = Decimal(str(scholarship.percentage)), scholarship.name

    additional_percentage = Decimal(str(additional_discount_percentage or 0))

    return ScholarshipResolution(
        base_percentage=base_percentage,
        additional_percentage=additional_percentage,
        base_amount=percentage_of(base, base_percentage),
        amount=percentage_of(base, base_percentage + additional_percentage),
        name=name,
    )
