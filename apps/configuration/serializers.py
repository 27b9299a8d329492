import copy

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from .models import LibraryConfiguration


class LibraryConfigurationSerializer(serializers.ModelSerializer):
    """
    Admin settings exposed with the camelCase keys the admin console uses
    """
    supportEmail = serializers.EmailField(source='support_email', required=False)
    maintenanceMode = serializers.BooleanField(source='maintenance_mode', required=False)
    standardLoanDays = serializers.IntegerField(source='standard_loan_days', min_value=1, max_value=365, required=False)
    premiumLoanDays = serializers.IntegerField(source='premium_loan_days', min_value=1, max_value=365, required=False)
    standardMaxLoans = serializers.IntegerField(source='standard_max_loans', min_value=1, max_value=20, required=False)
    maxConcurrentLoans = serializers.IntegerField(source='premium_max_loans', min_value=1, max_value=20, required=False)
    gracePeriod = serializers.IntegerField(source='grace_period_days', min_value=0, max_value=30, required=False)
    maxRenewals = serializers.IntegerField(source='max_renewals', min_value=0, max_value=10, required=False)
    reservationPickupDays = serializers.IntegerField(source='reservation_pickup_days', min_value=1, max_value=30, required=False)
    reminderDaysBeforeDue = serializers.IntegerField(source='reminder_days_before_due', min_value=0, max_value=14, required=False)
    dailyFine = serializers.DecimalField(source='daily_fine', max_digits=6, decimal_places=2, min_value=0, max_value=100, required=False)
    premiumFineDiscount = serializers.DecimalField(source='premium_fine_discount', max_digits=3, decimal_places=2, min_value=0, max_value=1, required=False)
    maxFineCap = serializers.DecimalField(source='max_fine_cap', max_digits=8, decimal_places=2, min_value=0, max_value=1000, required=False)
    outstandingFineThreshold = serializers.DecimalField(source='outstanding_fine_threshold', max_digits=8, decimal_places=2, min_value=0, required=False)
    autoChargeFines = serializers.BooleanField(source='auto_charge_fines', required=False)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = LibraryConfiguration
        fields = [
            'supportEmail', 'maintenanceMode',
            'standardLoanDays', 'premiumLoanDays', 'standardMaxLoans',
            'maxConcurrentLoans', 'gracePeriod', 'maxRenewals',
            'reservationPickupDays', 'reminderDaysBeforeDue',
            'dailyFine', 'premiumFineDiscount', 'maxFineCap',
            'outstandingFineThreshold', 'autoChargeFines', 'updatedAt',
        ]

    def validate(self, data):
        candidate = copy.copy(self.instance) if self.instance else LibraryConfiguration()
        for field, value in data.items():
            setattr(candidate, field, value)

        try:
            candidate.clean()
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.message_dict)

        if candidate.max_fine_cap < candidate.daily_fine:
            raise serializers.ValidationError({
                'maxFineCap': 'The fine cap must be at least one day of fines.'
            })

        return data
