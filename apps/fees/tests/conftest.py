import pytest
import uuid
from datetime import date
from decimal import Decimal
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.fees.models import (
    Cohort,
    CohortScholarship,
    FeeStructure,
    PaymentPlan,
    PaymentTransaction,
    StructureType,
    StudentPayment,
    VerificationStatus,
)

User = get_user_model()


# =============================================================================
# Users and clients
# =============================================================================

@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def fees_user(db):
    """Create and return a regular (non-staff) user."""
    return User.objects.create_user(
        username='student-desk',
        email='desk@example.com',
        password='TestPass123!',
    )


@pytest.fixture
def fees_admin(db):
    """Create and return a staff user allowed to review payments."""
    return User.objects.create_user(
        username='fees-admin',
        email='admin@example.com',
        password='TestPass123!',
        is_staff=True,
    )


@pytest.fixture
def user_client(api_client, fees_user):
    """Return API client authenticated as a regular user."""
    refresh = RefreshToken.for_user(fees_user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def admin_client(fees_admin):
    """Return API client authenticated as staff."""
    client = APIClient()
    refresh = RefreshToken.for_user(fees_admin)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


# =============================================================================
# Cohort and fee structures
# =============================================================================

@pytest.fixture
def cohort(db):
    """Cohort starting 15 Jan 2025."""
    return Cohort.objects.create(
        name='Creators Cohort',
        cohort_code='CC-2025-01',
        start_date=date(2025, 1, 15),
    )


@pytest.fixture
def fee_structure(cohort):
    """
    Cohort default fee structure.

    236000 GST-inclusive program fee (200000 base), 11800 admission fee
    (10000 base), 2 semesters of 2 installments, 5% one-shot discount.
    """
    return FeeStructure.objects.create(
        cohort=cohort,
        structure_type=StructureType.COHORT,
        total_program_fee=Decimal('236000.00'),
        admission_fee=Decimal('11800.00'),
        number_of_semesters=2,
        instalments_per_semester=2,
        one_shot_discount_percentage=Decimal('5.00'),
        program_fee_includes_gst=True,
        equal_scholarship_distribution=False,
    )


@pytest.fixture
def unsaved_fee_structure():
    """Same numbers as ``fee_structure`` without touching the database."""
    def _build(**overrides):
        values = {
            'total_program_fee': Decimal('236000.00'),
            'admission_fee': Decimal('11800.00'),
            'number_of_semesters': 2,
            'instalments_per_semester': 2,
            'one_shot_discount_percentage': Decimal('5.00'),
            'program_fee_includes_gst': True,
            'equal_scholarship_distribution': False,
        }
        values.update(overrides)
        return FeeStructure(**values)
    return _build


@pytest.fixture
def merit_scholarship(cohort):
    """10% scholarship offered in the cohort."""
    return CohortScholarship.objects.create(
        cohort=cohort,
        name='Merit',
        amount_percentage=Decimal('10.00'),
    )


# =============================================================================
# Student payments
# =============================================================================

@pytest.fixture
def student_id():
    return uuid.UUID('7f1d0c1e-3a52-4a0e-9d43-52f4f0d7a001')


@pytest.fixture
def student_payment(cohort, student_id):
    """Instalment-wise payment record without scholarship."""
    return StudentPayment.objects.create(
        student_id=student_id,
        cohort=cohort,
        payment_plan=PaymentPlan.INSTALMENT_WISE,
    )


@pytest.fixture
def submitted_transaction(student_payment):
    """50000 payment for semester 1 / installment 1 awaiting verification."""
    return PaymentTransaction.objects.create(
        payment=student_payment,
        amount=Decimal('50000.00'),
        payment_method='bank_transfer',
        reference_number='UTR-0001',
        verification_status=VerificationStatus.VERIFICATION_PENDING,
        installment_id='1-1',
        semester_number=1,
    )
