import pytest
from decimal import Decimal
from django.urls import reverse
from rest_framework import status
from apps.fees.models import PaymentTransaction, VerificationStatus
from apps.fees.permissions import IsPaymentAdmin


@pytest.fixture
def engine_url():
    return reverse('fees:payment-engine')


# =============================================================================
# Calculation actions
# =============================================================================

@pytest.mark.django_db
class TestBreakdownAction:
    """Tests for POST /api/payment-engine/ with action=breakdown"""

    def test_breakdown(self, user_client, engine_url, cohort, fee_structure):
        """Schedule is computed and dated from the cohort start."""
        response = user_client.post(engine_url, {
            'action': 'breakdown',
            'cohortId': str(cohort.id),
            'paymentPlan': 'instalment_wise',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['success'] is True
        breakdown = response.data['breakdown']
        assert breakdown['overallSummary']['totalAmountPayable'] == 236000
        assert [i['paymentDate'] for i in breakdown['semesters'][0]['instalments']] == [
            '2025-01-15', '2025-02-15',
        ]
        assert response.data['feeStructure']['id'] == str(fee_structure.id)
        assert 'aggregate' not in response.data

    def test_inline_scholarship_preview(self, user_client, engine_url, cohort, fee_structure):
        """Temporary scholarships are applied without being saved."""
        response = user_client.post(engine_url, {
            'action': 'breakdown',
            'cohortId': str(cohort.id),
            'paymentPlan': 'sem_wise',
            'scholarshipId': 'temp-1',
            'scholarshipData': {'name': 'What-if', 'amount_percentage': '10'},
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['breakdown']['overallSummary']['totalAmountPayable'] == 212400

    def test_fee_structure_preview(self, user_client, engine_url, cohort):
        """Preview values work even before a structure is saved."""
        response = user_client.post(engine_url, {
            'action': 'breakdown',
            'cohortId': str(cohort.id),
            'paymentPlan': 'one_shot',
            'feeStructureData': {
                'total_program_fee': '236000',
                'admission_fee': '11800',
                'number_of_semesters': 2,
                'instalments_per_semester': 2,
                'one_shot_discount_percentage': '5',
            },
            'customDates': {'one-shot': '2025-02-01'},
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        one_shot = response.data['breakdown']['oneShotPayment']
        assert one_shot['amountPayable'] == 212400
        assert one_shot['paymentDate'] == '2025-02-01'

    def test_missing_fee_structure(self, user_client, engine_url, cohort):
        response = user_client.post(engine_url, {
            'action': 'breakdown',
            'cohortId': str(cohort.id),
            'paymentPlan': 'sem_wise',
        }, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['success'] is False
        assert 'error' in response.data

    def test_plan_required_without_payment_record(self, user_client, engine_url, cohort, fee_structure):
        response = user_client.post(engine_url, {
            'action': 'breakdown',
            'cohortId': str(cohort.id),
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['success'] is False

    def test_invalid_request(self, user_client, engine_url):
        """Serializer errors are reported per field."""
        response = user_client.post(engine_url, {'action': 'breakdown'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['success'] is False
        assert 'cohortId' in response.data['error']

    def test_unauthenticated(self, api_client, engine_url, cohort, fee_structure):
        response = api_client.post(engine_url, {
            'action': 'breakdown',
            'cohortId': str(cohort.id),
            'paymentPlan': 'sem_wise',
        }, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['success'] is False
        assert 'error' in response.data


@pytest.mark.django_db
class TestStatusActions:
    """Tests for action=status and action=full"""

    def test_full_uses_student_payment_record(
        self, user_client, engine_url, cohort, fee_structure, student_payment, submitted_transaction, student_id
    ):
        """Plan comes from the payment record; submitted payments await verification."""
        response = user_client.post(engine_url, {
            'action': 'full',
            'cohortId': str(cohort.id),
            'studentId': str(student_id),
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        first = response.data['breakdown']['semesters'][0]['instalments'][0]
        assert first['status'] == 'partially_paid_verification_pending'
        assert first['amountPending'] == 67260
        aggregate = response.data['aggregate']
        assert aggregate['paymentStatus'] == 'verification_pending'
        assert aggregate['totalPayable'] == 236000
        assert aggregate['totalPaid'] == Decimal('0')

    def test_status_overdue(self, user_client, engine_url, cohort, fee_structure, student_payment, student_id):
        response = user_client.post(engine_url, {
            'action': 'status',
            'cohortId': str(cohort.id),
            'studentId': str(student_id),
            'startDate': '2020-01-01',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert 'breakdown' not in response.data
        assert response.data['aggregate']['paymentStatus'] == 'overdue'
        assert response.data['aggregate']['nextDueDate'] == '2020-01-01'

    def test_saved_scholarship_on_payment_record(
        self, user_client, engine_url, cohort, fee_structure, student_payment, merit_scholarship, student_id
    ):
        student_payment.scholarship = merit_scholarship
        student_payment.save()

        response = user_client.post(engine_url, {
            'action': 'full',
            'cohortId': str(cohort.id),
            'studentId': str(student_id),
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        summary = response.data['breakdown']['overallSummary']
        assert summary['totalScholarship'] == Decimal('20000.00')
        assert summary['totalAmountPayable'] == 212400


# =============================================================================
# Partial payment actions
# =============================================================================

@pytest.mark.django_db
class TestPartialPaymentActions:
    """Tests for partial_calculation, admin_partial_approval and partial_config"""

    def test_partial_calculation(
        self, user_client, engine_url, cohort, fee_structure, submitted_transaction, student_id
    ):
        """Original amount comes from the installment's payable."""
        response = user_client.post(engine_url, {
            'action': 'partial_calculation',
            'cohortId': str(cohort.id),
            'studentId': str(student_id),
            'installmentId': '1-1',
            'semesterNumber': 1,
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        summary = response.data['partialPaymentSummary']
        assert summary['originalAmount'] == Decimal('67260')
        assert summary['pendingAmount'] == 67260
        assert summary['canMakeAnotherPayment'] is True
        assert summary['restrictions']['currentCount'] == 1
        assert len(summary['partialPaymentHistory']) == 1

    def test_partial_calculation_without_payment_record(self, user_client, engine_url, cohort, fee_structure, student_id):
        response = user_client.post(engine_url, {
            'action': 'partial_calculation',
            'cohortId': str(cohort.id),
            'studentId': str(student_id),
            'installmentId': '1-1',
        }, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_admin_partial_approval(self, admin_client, engine_url, submitted_transaction, fees_admin):
        response = admin_client.post(engine_url, {
            'action': 'admin_partial_approval',
            'transactionId': str(submitted_transaction.id),
            'approvalType': 'partial',
            'approvedAmount': '20000',
            'adminNotes': 'Half received',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        new_id = response.data['approval']['newTransactionId']
        remainder = PaymentTransaction.objects.get(id=new_id)
        assert remainder.amount == Decimal('30000.00')
        submitted_transaction.refresh_from_db()
        assert submitted_transaction.verified_by == fees_admin

    def test_approval_requires_staff(self, user_client, engine_url, submitted_transaction):
        response = user_client.post(engine_url, {
            'action': 'admin_partial_approval',
            'transactionId': str(submitted_transaction.id),
            'approvalType': 'full',
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data == {
            'success': False,
            'error': IsPaymentAdmin.message,
        }
        submitted_transaction.refresh_from_db()
        assert submitted_transaction.verification_status == VerificationStatus.VERIFICATION_PENDING

    def test_reviewing_twice_is_rejected(self, admin_client, engine_url, submitted_transaction):
        payload = {
            'action': 'admin_partial_approval',
            'transactionId': str(submitted_transaction.id),
            'approvalType': 'full',
        }
        assert admin_client.post(engine_url, payload, format='json').status_code == status.HTTP_200_OK

        response = admin_client.post(engine_url, payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['success'] is False

    def test_partial_config_toggle(self, admin_client, engine_url, cohort, student_payment, student_id):
        response = admin_client.post(engine_url, {
            'action': 'partial_config',
            'cohortId': str(cohort.id),
            'studentId': str(student_id),
            'installmentId': '1-2',
            'allowPartialPayments': True,
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['partialConfig'] == {'installmentId': '1-2', 'allowPartialPayments': True}
        student_payment.refresh_from_db()
        assert student_payment.allow_partial_payments_json == {'1-2': True}

    def test_partial_config_read_open_to_users(self, user_client, engine_url, cohort, student_payment, student_id):
        response = user_client.post(engine_url, {
            'action': 'partial_config',
            'cohortId': str(cohort.id),
            'studentId': str(student_id),
            'installmentId': '1-2',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['partialConfig']['allowPartialPayments'] is False

    def test_partial_config_change_requires_staff(self, user_client, engine_url, cohort, student_payment, student_id):
        response = user_client.post(engine_url, {
            'action': 'partial_config',
            'cohortId': str(cohort.id),
            'studentId': str(student_id),
            'installmentId': '1-2',
            'allowPartialPayments': False,
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN


# =============================================================================
# Health check
# =============================================================================

@pytest.mark.django_db
class TestHealthCheck:
    """Tests for GET /api/health/"""

    def test_health_check(self, client):
        response = client.get(reverse('health-check'))

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {'status': 'ok', 'database': 'ok'}

    def test_plain_http_not_redirected(self, client, settings):
        """Test settings keep the https redirect off even with DEBUG off."""
        settings.DEBUG = False

        response = client.get(reverse('health-check'), secure=False)

        assert settings.SECURE_SSL_REDIRECT is False
        assert response.status_code == status.HTTP_200_OK
