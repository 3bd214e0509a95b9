# ==========================================
# apps/fees/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html
from .models import (
    Cohort,
    CohortScholarship,
    FeeStructure,
    PaymentTransaction,
    StudentPayment,
    VerificationStatus,
)


class CohortScholarshipInline(admin.TabularInline):
    """Inline admin for scholarships offered in a cohort."""
    model = CohortScholarship
    extra = 0
    fields = ['name', 'amount_percentage', 'description']


@admin.register(Cohort)
class CohortAdmin(admin.ModelAdmin):
    list_display = ['name', 'cohort_code', 'start_date', 'created_at']
    search_fields = ['name', 'cohort_code']
    ordering = ['-start_date']
    inlines = [CohortScholarshipInline]


@admin.register(FeeStructure)
class FeeStructureAdmin(admin.ModelAdmin):
    """
    Admin interface for fee structures.

    Cohort defaults and per-student custom structures share the table;
    filter by structure type to tell them apart.
    """

    list_display = [
        'cohort',
        'structure_type',
        'student_id',
        'total_program_fee',
        'admission_fee',
        'number_of_semesters',
        'instalments_per_semester',
        'is_setup_complete',
    ]
    list_filter = ['structure_type', 'program_fee_includes_gst', 'is_setup_complete']
    search_fields = ['cohort__name', 'cohort__cohort_code', 'student_id']
    readonly_fields = ['created_at', 'updated_at']

    fieldsets = (
        ('Scope', {
            'fields': ('cohort', 'structure_type', 'student_id', 'created_by')
        }),
        ('Fees', {
            'fields': (
                'total_program_fee',
                'admission_fee',
                'program_fee_includes_gst',
                'one_shot_discount_percentage',
            )
        }),
        ('Schedule', {
            'fields': (
                'number_of_semesters',
                'instalments_per_semester',
                'equal_scholarship_distribution',
                'custom_dates_enabled',
                'is_setup_complete',
            )
        }),
        ('Saved Dates', {
            'fields': ('one_shot_dates', 'sem_wise_dates', 'instalment_wise_dates'),
            'classes': ('collapse',)
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


class PaymentTransactionInline(admin.TabularInline):
    """Inline admin for transactions of a payment record."""
    model = PaymentTransaction
    fk_name = 'payment'
    extra = 0
    fields = [
        'installment_id',
        'semester_number',
        'partial_payment_sequence',
        'amount',
        'verification_status',
        'verified_at',
    ]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        """Transactions come from the payment flow, not the admin."""
        return False


@admin.register(StudentPayment)
class StudentPaymentAdmin(admin.ModelAdmin):
    list_display = ['student_id', 'cohort', 'payment_plan', 'scholarship', 'created_at']
    list_filter = ['payment_plan', 'cohort']
    search_fields = ['student_id', 'cohort__name']
    inlines = [PaymentTransactionInline]


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = [
        'id',
        'payment',
        'installment_id',
        'semester_number',
        'amount',
        'status_badge',
        'partial_payment_sequence',
        'created_at',
    ]
    list_filter = ['verification_status', 'created_at']
    search_fields = ['reference_number', 'payment__student_id', 'installment_id']
    readonly_fields = ['verified_at', 'verified_by', 'created_at', 'updated_at']

    def status_badge(self, obj):
        """Display verification status as colored badge."""
        colors = {
            VerificationStatus.PENDING: ('#E5C49A', '#2C1810'),
            VerificationStatus.VERIFICATION_PENDING: ('#A47449', 'white'),
            VerificationStatus.APPROVED: ('#6B8E5E', 'white'),
            VerificationStatus.PARTIALLY_APPROVED: ('#8FAF7F', 'white'),
            VerificationStatus.REJECTED: ('#B85C5C', 'white'),
        }
        bg, fg = colors.get(obj.verification_status, ('#ccc', '#666'))
        return format_html(
            '<span style="background: {}; color: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            bg, fg, obj.get_verification_status_display()
        )
    status_badge.short_description = 'Status'
