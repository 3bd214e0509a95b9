"""
Fees services - Business logic layer.

This package contains all business operations for the fees app:
- Fee structure and scholarship resolution
- Payment breakdown calculation
- Due date scheduling
- Payment status reconciliation
- Partial payments and admin review
"""

# Resolution
from .fee_structure_resolution import (
    resolve_fee_structure,
    get_cohort_start_date,
    resolve_student_payment,
)
from .scholarship_resolution import (
    SavedScholarship,
    EphemeralScholarship,
    ScholarshipResolution,
    resolve_scholarship,
)

# Calculation
from .breakdown_calculation import (
    GST_RATE,
    round_to_paise,
    round_to_rupee,
    calculate_gst,
    extract_base_amount,
    extract_gst_amount,
    EqualDistribution,
    FrontLoadedDistribution,
    distribute_scholarship_across_semesters,
    distribute_scholarship_within_semester,
    calculate_one_shot_payment,
    calculate_semester_payment,
    build_breakdown,
)

# Scheduling
from .date_scheduling import (
    normalize_persisted_dates,
    convert_dates_to_plan_json,
    generate_default_dates,
    resolve_schedule_dates,
    apply_schedule_dates,
)

# Reconciliation
from .status_reconciliation import (
    InstallmentStatus,
    allocate_transactions,
    derive_installment_status,
    reconcile_breakdown,
)

# Partial payments
from .partial_payments import (
    calculate_partial_payment_summary,
    process_admin_partial_approval,
    get_partial_payment_config,
    update_partial_payment_config,
)

# Engine
from .payment_engine import PaymentEngine

# Domain Exceptions
from .exceptions import (
    PaymentEngineError,
    ConfigurationError,
    ValidationError,
    NotFoundError,
    FeeStructureNotFoundError,
    PaymentRecordNotFoundError,
    TransactionNotFoundError,
    UnallocatedPaymentError,
    InvalidApprovalStateError,
    ConcurrencyConflictError,
)

__all__ = [
    # Resolution Services
    'resolve_fee_structure',
    'get_cohort_start_date',
    'resolve_student_payment',
    'SavedScholarship',
    'EphemeralScholarship',
    'ScholarshipResolution',
    'resolve_scholarship',
    # Calculation Services
    'GST_RATE',
    'round_to_paise',
    'round_to_rupee',
    'calculate_gst',
    'extract_base_amount',
    'extract_gst_amount',
    'EqualDistribution',
    'FrontLoadedDistribution',
    'distribute_scholarship_across_semesters',
    'distribute_scholarship_within_semester',
    'calculate_one_shot_payment',
    'calculate_semester_payment',
    'build_breakdown',
    # Scheduling Services
    'normalize_persisted_dates',
    'convert_dates_to_plan_json',
    'generate_default_dates',
    'resolve_schedule_dates',
    'apply_schedule_dates',
    # Reconciliation Services
    'InstallmentStatus',
    'allocate_transactions',
    'derive_installment_status',
    'reconcile_breakdown',
    # Partial Payment Services
    'calculate_partial_payment_summary',
    'process_admin_partial_approval',
    'get_partial_payment_config',
    'update_partial_payment_config',
    # Engine
    'PaymentEngine',
    # Exceptions
    'PaymentEngineError',
    'ConfigurationError',
    'ValidationError',
    'NotFoundError',
    'FeeStructureNotFoundError',
    'PaymentRecordNotFoundError',
    'TransactionNotFoundError',
    'UnallocatedPaymentError',
    'InvalidApprovalStateError',
    'ConcurrencyConflictError',
]
