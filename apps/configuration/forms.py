from django import forms
from django.utils.translation import gettext_lazy as _

from .models import LibraryConfiguration


class LibraryConfigurationForm(forms.ModelForm):
    class Meta:
        model = LibraryConfiguration
        fields = [
            'maintenance_mode', 'support_email',
            'standard_loan_days', 'premium_loan_days',
            'standard_max_loans', 'premium_max_loans',
            'grace_period_days', 'max_renewals',
            'reservation_pickup_days', 'reminder_days_before_due',
            'daily_fine', 'premium_fine_discount', 'max_fine_cap',
            'outstanding_fine_threshold', 'auto_charge_fines',
        ]
        widgets = {
            'daily_fine': forms.NumberInput(attrs={'step': '0.01'}),
            'premium_fine_discount': forms.NumberInput(attrs={'step': '0.05', 'max': '1'}),
            'max_fine_cap': forms.NumberInput(attrs={'step': '0.01'}),
            'outstanding_fine_threshold': forms.NumberInput(attrs={'step': '0.01'}),
        }

    def clean(self):
        cleaned_data = super().clean()
        daily_fine = cleaned_data.get('daily_fine')
        max_fine_cap = cleaned_data.get('max_fine_cap')

        if daily_fine is not None and max_fine_cap is not None and max_fine_cap < daily_fine:
            self.add_error('max_fine_cap', _('The fine cap must be at least one day of fines'))

        return cleaned_data
