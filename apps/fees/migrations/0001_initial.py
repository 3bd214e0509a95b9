# Generated manually for the fees app

import uuid
from decimal import Decimal
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Cohort',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('cohort_code', models.CharField(max_length=50, unique=True)),
                ('start_date', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'cohorts',
                'ordering': ['-start_date', 'name'],
            },
        ),
        migrations.CreateModel(
            name='CohortScholarship',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('amount_percentage', models.DecimalField(decimal_places=2, max_digits=5, validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cohort', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='scholarships', to='fees.cohort')),
            ],
            options={
                'db_table': 'cohort_scholarships',
                'ordering': ['cohort', 'amount_percentage'],
            },
        ),
        migrations.CreateModel(
            name='FeeStructure',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('student_id', models.UUIDField(blank=True, db_index=True, null=True)),
                ('structure_type', models.CharField(choices=[('cohort', 'Cohort Default'), ('custom', 'Custom (Per Student)')], default='cohort', max_length=10)),
                ('total_program_fee', models.DecimalField(decimal_places=2, max_digits=12, validators=[MinValueValidator(Decimal('0.00'))])),
                ('admission_fee', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=[MinValueValidator(Decimal('0.00'))])),
                ('number_of_semesters', models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])),
                ('instalments_per_semester', models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])),
                ('one_shot_discount_percentage', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5, validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))])),
                ('program_fee_includes_gst', models.BooleanField(default=True)),
                ('equal_scholarship_distribution', models.BooleanField(default=False)),
                ('custom_dates_enabled', models.BooleanField(default=False)),
                ('is_setup_complete', models.BooleanField(default=False)),
                ('one_shot_dates', models.JSONField(blank=True, default=dict)),
                ('sem_wise_dates', models.JSONField(blank=True, default=dict)),
                ('instalment_wise_dates', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cohort', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_structures', to='fees.cohort')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='fee_structures_created', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'fee_structures',
                'indexes': [models.Index(fields=['cohort', 'structure_type'], name='fee_struct_cohort_type_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('structure_type', 'cohort')), fields=('cohort',), name='unique_cohort_fee_structure'),
                    models.UniqueConstraint(condition=models.Q(('structure_type', 'custom')), fields=('cohort', 'student_id'), name='unique_custom_fee_structure_per_student'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StudentPayment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('student_id', models.UUIDField(db_index=True)),
                ('payment_plan', models.CharField(blank=True, choices=[('one_shot', 'One Shot'), ('sem_wise', 'Semester Wise'), ('instalment_wise', 'Instalment Wise')], max_length=20)),
                ('allow_partial_payments_json', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cohort', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='student_payments', to='fees.cohort')),
                ('scholarship', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='student_payments', to='fees.cohortscholarship')),
            ],
            options={
                'db_table': 'student_payments',
                'unique_together': {('student_id', 'cohort')},
            },
        ),
        migrations.CreateModel(
            name='PaymentTransaction',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[MinValueValidator(Decimal('0.00'))])),
                ('payment_method', models.CharField(blank=True, max_length=50)),
                ('reference_number', models.CharField(blank=True, max_length=100)),
                ('verification_status', models.CharField(choices=[('pending', 'Pending'), ('verification_pending', 'Verification Pending'), ('approved', 'Approved'), ('partially_approved', 'Partially Approved'), ('rejected', 'Rejected')], db_index=True, default='pending', max_length=30)),
                ('installment_id', models.CharField(blank=True, max_length=20)),
                ('semester_number', models.PositiveIntegerField(blank=True, null=True)),
                ('partial_payment_sequence', models.PositiveIntegerField(default=1)),
                ('notes', models.TextField(blank=True)),
                ('verification_notes', models.TextField(blank=True)),
                ('rejection_reason', models.TextField(blank=True)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('payment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transactions', to='fees.studentpayment')),
                ('verified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verified_payment_transactions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'payment_transactions',
                'ordering': ['partial_payment_sequence', 'created_at'],
                'indexes': [
                    models.Index(fields=['payment', 'installment_id'], name='pay_txn_payment_inst_idx'),
                    models.Index(fields=['payment', 'verification_status'], name='pay_txn_payment_status_idx'),
                ],
            },
        ),
    ]
