from decimal import Decimal

from rest_framework import serializers

from .models import FeeStructure, PaymentPlan
from .services.payment_engine import ACTIONS
from .services.scholarship_resolution import EphemeralScholarship, SavedScholarship

EPHEMERAL_SCHOLARSHIP_PREFIX = 'temp-'


def _money(**kwargs):
    return serializers.DecimalField(max_digits=14, decimal_places=2, coerce_to_string=False, **kwargs)


def _percentage(**kwargs):
    return serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal('0'),
        max_value=Decimal('100'),
        **kwargs
    )


# =============================================================================
# Input Serializers
# =============================================================================

class ScholarshipDataSerializer(serializers.Serializer):
    """Inline scholarship supplied for previews."""

    id = serializers.CharField(required=False, allow_blank=True)
    name = serializers.CharField(required=False, allow_blank=True, default='')
    amount_percentage = _percentage()


class PaymentEngineRequestSerializer(serializers.Serializer):
    """
    Validate a payment engine request.

    Field names follow the camelCase wire contract; validated data is
    snake_case. The scholarship selection is resolved here, once, into a
    ``SavedScholarship`` / ``EphemeralScholarship`` under ``scholarship``.
    """

    action = serializers.ChoiceField(choices=ACTIONS, default='full')
    cohortId = serializers.UUIDField(source='cohort_id', required=False)
    studentId = serializers.UUIDField(source='student_id', required=False, allow_null=True)
    paymentPlan = serializers.ChoiceField(
        source='payment_plan',
        choices=PaymentPlan.choices,
        required=False,
        allow_null=True,
    )
    scholarshipId = serializers.CharField(
        source='scholarship_id',
        required=False,
        allow_null=True,
        allow_blank=True,
    )
    scholarshipData = ScholarshipDataSerializer(
        source='scholarship_data',
        required=False,
        allow_null=True,
    )
    additionalDiscountPercentage = _percentage(
        source='additional_discount_percentage',
        required=False,
        default=Decimal('0'),
    )
    customDates = serializers.DictField(
        source='custom_dates',
        child=serializers.CharField(allow_blank=True),
        required=False,
        allow_null=True,
    )
    feeStructureData = serializers.DictField(
        source='fee_structure_data',
        required=False,
        allow_null=True,
    )
    startDate = serializers.DateField(source='start_date', required=False, allow_null=True)

    # Partial payments
    installmentId = serializers.CharField(source='installment_id', max_length=20, required=False)
    semesterNumber = serializers.IntegerField(source='semester_number', min_value=1, required=False)
    transactionId = serializers.UUIDField(source='transaction_id', required=False)
    approvalType = serializers.ChoiceField(
        source='approval_type',
        choices=['full', 'partial', 'reject'],
        required=False,
    )
    approvedAmount = serializers.DecimalField(
        source='approved_amount',
        max_digits=12,
        decimal_places=2,
        required=False,
        allow_null=True,
    )
    adminNotes = serializers.CharField(source='admin_notes', required=False, allow_blank=True)
    rejectionReason = serializers.CharField(source='rejection_reason', required=False, allow_blank=True)
    allowPartialPayments = serializers.BooleanField(
        source='allow_partial_payments',
        required=False,
        allow_null=True,
        default=None,
    )

    def validate_feeStructureData(self, value):
        if not value:
            return value
        preview = FeeStructureSerializer(data=value, partial=True)
        preview.is_valid(raise_exception=True)
        return dict(preview.validated_data)

    def validate(self, attrs):
        """Resolve the scholarship variant and check per-action requirements."""
        scholarship_id = attrs.pop('scholarship_id', None) or ''
        scholarship_data = attrs.pop('scholarship_data', None)

        scholarship = None
        if scholarship_data and (
            not scholarship_id or scholarship_id.startswith(EPHEMERAL_SCHOLARSHIP_PREFIX)
        ):
            scholarship = EphemeralScholarship(
                percentage=scholarship_data['amount_percentage'],
                name=scholarship_data.get('name', ''),
            )
        elif scholarship_id and not scholarship_id.startswith(EPHEMERAL_SCHOLARSHIP_PREFIX):
            scholarship = SavedScholarship(scholarship_id)
        attrs['scholarship'] = scholarship

        action = attrs.get('action')
        if action != 'admin_partial_approval' and not attrs.get('cohort_id'):
            raise serializers.ValidationError({'cohortId': 'This field is required.'})
        if action == 'admin_partial_approval':
            if not attrs.get('transaction_id'):
                raise serializers.ValidationError({'transactionId': 'This field is required.'})
            if not attrs.get('approval_type'):
                raise serializers.ValidationError({'approvalType': 'This field is required.'})
        if action in ('partial_calculation', 'partial_config'):
            if not attrs.get('student_id'):
                raise serializers.ValidationError({'studentId': 'This field is required.'})
            if not attrs.get('installment_id'):
                raise serializers.ValidationError({'installmentId': 'This field is required.'})
        return attrs


# =============================================================================
# Output Serializers
# =============================================================================

class FeeStructureSerializer(serializers.ModelSerializer):
    """Fee structure as stored (snake_case, like the stored row)."""

    class Meta:
        model = FeeStructure
        fields = [
            'id',
            'cohort',
            'student_id',
            'structure_type',
            'total_program_fee',
            'admission_fee',
            'number_of_semesters',
            'instalments_per_semester',
            'one_shot_discount_percentage',
            'program_fee_includes_gst',
            'equal_scholarship_distribution',
            'custom_dates_enabled',
            'is_setup_complete',
            'one_shot_dates',
            'sem_wise_dates',
            'instalment_wise_dates',
        ]
        read_only_fields = ['id', 'cohort', 'student_id', 'structure_type', 'is_setup_complete']


class InstallmentSerializer(serializers.Serializer):
    installmentNumber = serializers.IntegerField(source='installment_number')
    paymentDate = serializers.CharField(source='payment_date', allow_blank=True)
    baseAmount = _money(source='base_amount')
    gstAmount = _money(source='gst_amount')
    scholarshipAmount = _money(source='scholarship_amount')
    discountAmount = _money(source='discount_amount')
    amountPayable = serializers.IntegerField(source='amount_payable')
    # Present once reconciled
    status = serializers.CharField(required=False)
    amountPaid = _money(source='amount_paid', required=False)
    amountPending = serializers.IntegerField(source='amount_pending', required=False)


class SemesterTotalSerializer(serializers.Serializer):
    baseAmount = _money(source='base_amount')
    gstAmount = _money(source='gst_amount')
    scholarshipAmount = _money(source='scholarship_amount')
    discountAmount = _money(source='discount_amount')
    totalPayable = serializers.IntegerField(source='total_payable')


class SemesterSerializer(serializers.Serializer):
    semesterNumber = serializers.IntegerField(source='semester_number')
    instalments = InstallmentSerializer(many=True)
    total = SemesterTotalSerializer()


class AdmissionFeeSerializer(SemesterTotalSerializer):
    paymentDate = serializers.CharField(source='payment_date', allow_blank=True)


class OverallSummarySerializer(serializers.Serializer):
    totalProgramFee = _money(source='total_program_fee')
    admissionFee = _money(source='admission_fee')
    totalGST = _money(source='total_gst')
    totalDiscount = _money(source='total_discount')
    totalScholarship = _money(source='total_scholarship')
    totalAmountPayable = serializers.IntegerField(source='total_amount_payable')


class BreakdownSerializer(serializers.Serializer):
    admissionFee = AdmissionFeeSerializer(source='admission_fee')
    semesters = SemesterSerializer(many=True)
    oneShotPayment = InstallmentSerializer(source='one_shot_payment', allow_null=True)
    overallSummary = OverallSummarySerializer(source='overall_summary')


class AggregateSerializer(serializers.Serializer):
    totalPayable = serializers.IntegerField(source='total_payable')
    totalPaid = _money(source='total_paid')
    totalPending = serializers.IntegerField(source='total_pending')
    nextDueDate = serializers.CharField(source='next_due_date', allow_blank=True)
    paymentStatus = serializers.CharField(source='payment_status')
    currentInstallmentStatus = serializers.CharField(source='current_installment_status')


class PartialPaymentHistorySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    sequenceNumber = serializers.IntegerField(source='sequence_number')
    amount = _money()
    status = serializers.CharField()
    paymentDate = serializers.DateTimeField(source='payment_date')
    verifiedAt = serializers.DateTimeField(source='verified_at', allow_null=True)
    notes = serializers.CharField(allow_blank=True)
    rejectionReason = serializers.CharField(source='rejection_reason', allow_blank=True)


class PartialPaymentRestrictionsSerializer(serializers.Serializer):
    maxPartialPayments = serializers.IntegerField(source='max_partial_payments')
    currentCount = serializers.IntegerField(source='current_count')
    remainingPayments = serializers.IntegerField(source='remaining_payments')


class PartialPaymentSummarySerializer(serializers.Serializer):
    installmentId = serializers.CharField(source='installment_id')
    originalAmount = _money(source='original_amount')
    totalPaid = _money(source='total_paid')
    pendingAmount = serializers.IntegerField(source='pending_amount')
    nextPaymentAmount = serializers.IntegerField(source='next_payment_amount')
    canMakeAnotherPayment = serializers.BooleanField(source='can_make_another_payment')
    partialPaymentHistory = PartialPaymentHistorySerializer(source='partial_payment_history', many=True)
    restrictions = PartialPaymentRestrictionsSerializer()


class ApprovalResultSerializer(serializers.Serializer):
    message = serializers.CharField()
    newTransactionId = serializers.UUIDField(source='new_transaction_id', required=False)


class PartialConfigSerializer(serializers.Serializer):
    installmentId = serializers.CharField(source='installment_id')
    allowPartialPayments = serializers.BooleanField(source='allow_partial_payments')


class PaymentEngineResponseSerializer(serializers.Serializer):
    """Shape engine results into the camelCase response contract."""

    success = serializers.BooleanField()
    breakdown = BreakdownSerializer(required=False)
    feeStructure = FeeStructureSerializer(source='fee_structure', required=False)
    aggregate = AggregateSerializer(required=False)
    partialPaymentSummary = PartialPaymentSummarySerializer(source='partial_payment_summary', required=False)
    approval = ApprovalResultSerializer(required=False)
    partialConfig = PartialConfigSerializer(source='partial_config', required=False)
