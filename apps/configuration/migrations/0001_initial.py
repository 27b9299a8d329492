from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='LibraryConfiguration',
            fields=[
                ('id', models.PositiveSmallIntegerField(default=1, editable=False, primary_key=True, serialize=False)),
                ('maintenance_mode', models.BooleanField(default=False, verbose_name='Maintenance Mode')),
                ('support_email', models.EmailField(default='help@bookflix.lib', max_length=254, verbose_name='Support Email')),
                ('standard_loan_days', models.PositiveIntegerField(default=7, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(365)], verbose_name='Standard Loan Period (days)')),
                ('premium_loan_days', models.PositiveIntegerField(default=20, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(365)], verbose_name='Premium Loan Period (days)')),
                ('standard_max_loans', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(20)], verbose_name='Standard Concurrent Loans')),
                ('premium_max_loans', models.PositiveIntegerField(default=4, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(20)], verbose_name='Premium Concurrent Loans')),
                ('grace_period_days', models.PositiveIntegerField(default=0, help_text='Days past the due date that are not charged', validators=[django.core.validators.MaxValueValidator(30)], verbose_name='Grace Period (days)')),
                ('max_renewals', models.PositiveIntegerField(default=2, validators=[django.core.validators.MaxValueValidator(10)], verbose_name='Maximum Renewals')),
                ('reservation_pickup_days', models.PositiveIntegerField(default=3, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(30)], verbose_name='Reservation Pickup Window (days)')),
                ('reminder_days_before_due', models.PositiveIntegerField(default=2, validators=[django.core.validators.MaxValueValidator(14)], verbose_name='Due Reminder Lead Time (days)')),
                ('daily_fine', models.DecimalField(decimal_places=2, default=Decimal('0.50'), max_digits=6, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('100'))], verbose_name='Daily Fine')),
                ('premium_fine_discount', models.DecimalField(decimal_places=2, default=Decimal('0.50'), help_text='Fraction taken off the daily fine for premium members (0.50 = 50%)', max_digits=3, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('1'))], verbose_name='Premium Fine Discount')),
                ('max_fine_cap', models.DecimalField(decimal_places=2, default=Decimal('20.00'), max_digits=8, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('1000'))], verbose_name='Maximum Fine per Loan')),
                ('outstanding_fine_threshold', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Members whose unpaid fines exceed this amount cannot borrow', max_digits=8, validators=[django.core.validators.MinValueValidator(Decimal('0'))], verbose_name='Outstanding Fine Threshold')),
                ('auto_charge_fines', models.BooleanField(default=False, help_text='Raise pending fines on overdue loans before they are returned', verbose_name='Auto Charge Fines')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Last Modification Timestamp')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Last Modified By')),
            ],
            options={
                'verbose_name': 'Library Configuration',
                'verbose_name_plural': 'Library Configuration',
                'db_table': 'configuration_library',
            },
        ),
    ]
