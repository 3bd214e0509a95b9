from django.conf import settings
from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal
import uuid


class PaymentPlan(models.TextChoices):
    ONE_SHOT = 'one_shot', 'One Shot'
    SEM_WISE = 'sem_wise', 'Semester Wise'
    INSTALMENT_WISE = 'instalment_wise', 'Instalment Wise'


class StructureType(models.TextChoices):
    COHORT = 'cohort', 'Cohort Default'
    CUSTOM = 'custom', 'Custom (Per Student)'


class VerificationStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    VERIFICATION_PENDING = 'verification_pending', 'Verification Pending'
    APPROVED = 'approved', 'Approved'
    PARTIALLY_APPROVED = 'partially_approved', 'Partially Approved'
    REJECTED = 'rejected', 'Rejected'


class Cohort(models.Model):
    """Program cohort; its start date anchors generated due dates."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    cohort_code = models.CharField(max_length=50, unique=True)
    start_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'cohorts'
        ordering = ['-start_date', 'name']

    def __str__(self):
        return f"{self.name} ({self.cohort_code})"


class FeeStructure(models.Model):
    """
    Fee configuration for a cohort, or a per-student override of it.

    A ``custom`` structure carries a ``student_id`` and, when present,
    supersedes the cohort default entirely.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    cohort = models.ForeignKey(
        Cohort,
        on_delete=models.CASCADE,
        related_name='fee_structures'
    )
    student_id = models.UUIDField(null=True, blank=True, db_index=True)
    structure_type = models.CharField(
        max_length=10,
        choices=StructureType.choices,
        default=StructureType.COHORT
    )

    # Amounts
    total_program_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    admission_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    # Schedule shape
    number_of_semesters = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)]
    )
    instalments_per_semester = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)]
    )
    one_shot_discount_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))]
    )

    # Policy toggles
    program_fee_includes_gst = models.BooleanField(default=True)
    equal_scholarship_distribution = models.BooleanField(default=False)
    custom_dates_enabled = models.BooleanField(default=False)
    is_setup_complete = models.BooleanField(default=False)

    # Persisted schedules (nested or legacy flat shape)
    one_shot_dates = models.JSONField(default=dict, blank=True)
    sem_wise_dates = models.JSONField(default=dict, blank=True)
    instalment_wise_dates = models.JSONField(default=dict, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='fee_structures_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'fee_structures'
        constraints = [
            models.UniqueConstraint(
                fields=['cohort'],
                condition=models.Q(structure_type='cohort'),
                name='unique_cohort_fee_structure',
            ),
            models.UniqueConstraint(
                fields=['cohort', 'student_id'],
                condition=models.Q(structure_type='custom'),
                name='unique_custom_fee_structure_per_student',
            ),
        ]
        indexes = [
            models.Index(fields=['cohort', 'structure_type'], name='fee_struct_cohort_type_idx'),
        ]

    def __str__(self):
        if self.structure_type == StructureType.CUSTOM:
            return f"Custom fees for {self.student_id} ({self.cohort_id})"
        return f"Cohort fees ({self.cohort_id})"

    def dates_for_plan(self, payment_plan):
        """Return the persisted date blob for a payment plan."""
        blobs = {
            PaymentPlan.ONE_SHOT: self.one_shot_dates,
            PaymentPlan.SEM_WISE: self.sem_wise_dates,
            PaymentPlan.INSTALMENT_WISE: self.instalment_wise_dates,
        }
        return blobs.get(payment_plan) or {}


class CohortScholarship(models.Model):
    """Percentage-based fee waiver offered within a cohort."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    cohort = models.ForeignKey(
        Cohort,
        on_delete=models.CASCADE,
        related_name='scholarships'
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    amount_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))]
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'cohort_scholarships'
        ordering = ['cohort', 'amount_percentage']

    def __str__(self):
        return f"{self.name} ({self.amount_percentage}%)"


class StudentPayment(models.Model):
    """A student's payment record within a cohort."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    student_id = models.UUIDField(db_index=True)
    cohort = models.ForeignKey(
        Cohort,
        on_delete=models.CASCADE,
        related_name='student_payments'
    )
    payment_plan = models.CharField(
        max_length=20,
        choices=PaymentPlan.choices,
        blank=True
    )
    scholarship = models.ForeignKey(
        CohortScholarship,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='student_payments'
    )

    # {"<semester>-<installment>": bool}
    allow_partial_payments_json = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'student_payments'
        unique_together = [['student_id', 'cohort']]

    def __str__(self):
        return f"Payments of {self.student_id} in {self.cohort_id}"


class PaymentTransaction(models.Model):
    """
    A recorded payment against a specific installment.

    Created by the payment flow outside this app; the only write path here
    is the admin review (approve, reject or split).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment = models.ForeignKey(
        StudentPayment,
        on_delete=models.CASCADE,
        related_name='transactions'
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    payment_method = models.CharField(max_length=50, blank=True)
    reference_number = models.CharField(max_length=100, blank=True)

    verification_status = models.CharField(
        max_length=30,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING,
        db_index=True
    )

    # Allocation
    installment_id = models.CharField(max_length=20, blank=True)
    semester_number = models.PositiveIntegerField(null=True, blank=True)
    partial_payment_sequence = models.PositiveIntegerField(default=1)

    # Review
    notes = models.TextField(blank=True)
    verification_notes = models.TextField(blank=True)
    rejection_reason = models.TextField(blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verified_payment_transactions'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payment_transactions'
        indexes = [
            models.Index(fields=['payment', 'installment_id'], name='pay_txn_payment_inst_idx'),
            models.Index(fields=['payment', 'verification_status'], name='pay_txn_payment_status_idx'),
        ]
        ordering = ['partial_payment_sequence', 'created_at']

    def __str__(self):
        return f"{self.amount} ({self.verification_status}) for {self.installment_id or '-'}"
