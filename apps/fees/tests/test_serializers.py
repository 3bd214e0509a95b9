"""
Tests for payment engine request and response serializers.
"""
import pytest
import uuid
from decimal import Decimal
from apps.fees.models import PaymentPlan
from apps.fees.serializers import BreakdownSerializer, PaymentEngineRequestSerializer
from apps.fees.services import EphemeralScholarship, SavedScholarship, build_breakdown

COHORT_ID = str(uuid.UUID('0b6f3c1e-1111-4c44-9a55-7f2d8b9c0001'))
STUDENT_ID = str(uuid.UUID('0b6f3c1e-2222-4c44-9a55-7f2d8b9c0002'))


class TestPaymentEngineRequestSerializer:
    """Test request validation and camelCase mapping."""

    def test_minimal_breakdown_request(self):
        """camelCase fields map to snake_case values."""
        serializer = PaymentEngineRequestSerializer(data={
            'action': 'breakdown',
            'cohortId': COHORT_ID,
            'paymentPlan': 'sem_wise',
            'startDate': '2025-01-15',
        })

        assert serializer.is_valid(), serializer.errors
        data = serializer.validated_data
        assert str(data['cohort_id']) == COHORT_ID
        assert data['payment_plan'] == PaymentPlan.SEM_WISE
        assert data['scholarship'] is None
        assert data['additional_discount_percentage'] == Decimal('0')

    def test_action_defaults_to_full(self):
        serializer = PaymentEngineRequestSerializer(data={'cohortId': COHORT_ID})
        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data['action'] == 'full'

    def test_unknown_action(self):
        serializer = PaymentEngineRequestSerializer(data={'action': 'refund', 'cohortId': COHORT_ID})
        assert not serializer.is_valid()
        assert 'action' in serializer.errors

    def test_saved_scholarship(self):
        scholarship_id = str(uuid.uuid4())
        serializer = PaymentEngineRequestSerializer(data={
            'cohortId': COHORT_ID,
            'scholarshipId': scholarship_id,
        })

        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data['scholarship'] == SavedScholarship(scholarship_id)

    def test_temporary_scholarship_uses_inline_data(self):
        """A ``temp-`` id with inline data resolves to an ephemeral scholarship."""
        serializer = PaymentEngineRequestSerializer(data={
            'cohortId': COHORT_ID,
            'scholarshipId': 'temp-1712',
            'scholarshipData': {'name': 'Preview', 'amount_percentage': '12.5'},
        })

        assert serializer.is_valid(), serializer.errors
        scholarship = serializer.validated_data['scholarship']
        assert isinstance(scholarship, EphemeralScholarship)
        assert scholarship.percentage == Decimal('12.5')
        assert scholarship.name == 'Preview'

    def test_temporary_id_without_data_is_ignored(self):
        serializer = PaymentEngineRequestSerializer(data={
            'cohortId': COHORT_ID,
            'scholarshipId': 'temp-1712',
        })
        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data['scholarship'] is None

    @pytest.mark.parametrize('value', ['-1', '100.01', 'abc'])
    def test_additional_discount_range(self, value):
        serializer = PaymentEngineRequestSerializer(data={
            'cohortId': COHORT_ID,
            'additionalDiscountPercentage': value,
        })
        assert not serializer.is_valid()
        assert 'additionalDiscountPercentage' in serializer.errors

    def test_cohort_required_for_calculations(self):
        serializer = PaymentEngineRequestSerializer(data={'action': 'status'})
        assert not serializer.is_valid()
        assert 'cohortId' in serializer.errors

    def test_approval_requires_transaction_and_type(self):
        """Reviews need the transaction and the decision, not a cohort."""
        serializer = PaymentEngineRequestSerializer(data={'action': 'admin_partial_approval'})
        assert not serializer.is_valid()
        assert 'transactionId' in serializer.errors

        serializer = PaymentEngineRequestSerializer(data={
            'action': 'admin_partial_approval',
            'transactionId': str(uuid.uuid4()),
        })
        assert not serializer.is_valid()
        assert 'approvalType' in serializer.errors

        serializer = PaymentEngineRequestSerializer(data={
            'action': 'admin_partial_approval',
            'transactionId': str(uuid.uuid4()),
            'approvalType': 'partial',
            'approvedAmount': '1500.00',
        })
        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data['approved_amount'] == Decimal('1500.00')

    @pytest.mark.parametrize('action', ['partial_calculation', 'partial_config'])
    def test_partial_actions_require_student_and_installment(self, action):
        serializer = PaymentEngineRequestSerializer(data={'action': action, 'cohortId': COHORT_ID})
        assert not serializer.is_valid()
        assert 'studentId' in serializer.errors

        serializer = PaymentEngineRequestSerializer(data={
            'action': action,
            'cohortId': COHORT_ID,
            'studentId': STUDENT_ID,
        })
        assert not serializer.is_valid()
        assert 'installmentId' in serializer.errors

    def test_fee_structure_preview_is_validated(self):
        serializer = PaymentEngineRequestSerializer(data={
            'cohortId': COHORT_ID,
            'paymentPlan': 'one_shot',
            'feeStructureData': {'total_program_fee': '118000', 'number_of_semesters': 0},
        })
        assert not serializer.is_valid()
        assert 'feeStructureData' in serializer.errors

    def test_fee_structure_preview_values_are_coerced(self):
        serializer = PaymentEngineRequestSerializer(data={
            'cohortId': COHORT_ID,
            'paymentPlan': 'one_shot',
            'feeStructureData': {'total_program_fee': '118000', 'number_of_semesters': 3},
        })

        assert serializer.is_valid(), serializer.errors
        preview = serializer.validated_data['fee_structure_data']
        assert preview['total_program_fee'] == Decimal('118000')
        assert preview['number_of_semesters'] == 3

    def test_custom_dates(self):
        serializer = PaymentEngineRequestSerializer(data={
            'cohortId': COHORT_ID,
            'customDates': {'one-shot': '2025-02-01', 'admission': ''},
        })
        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data['custom_dates'] == {'one-shot': '2025-02-01', 'admission': ''}


class TestBreakdownSerializer:
    """Test the camelCase response shape."""

    def test_breakdown_shape(self, unsaved_fee_structure):
        breakdown = build_breakdown(unsaved_fee_structure(), PaymentPlan.INSTALMENT_WISE)

        data = BreakdownSerializer(breakdown).data

        assert set(data) == {'admissionFee', 'semesters', 'oneShotPayment', 'overallSummary'}
        assert data['oneShotPayment'] is None
        assert data['overallSummary']['totalGST'] == Decimal('36000.00')
        assert data['overallSummary']['totalAmountPayable'] == 236000
        installment = data['semesters'][0]['instalments'][0]
        assert installment['amountPayable'] == 67260
        assert installment['installmentNumber'] == 1
        assert 'status' not in installment
