from django.contrib import admin

from .forms import LibraryConfigurationForm
from .models import LibraryConfiguration


@admin.register(LibraryConfiguration)
class LibraryConfigurationAdmin(admin.ModelAdmin):
    form = LibraryConfigurationForm
    list_display = ('__str__', 'standard_loan_days', 'premium_loan_days', 'daily_fine', 'max_fine_cap', 'updated_at')
    readonly_fields = ('updated_at', 'updated_by')
    fieldsets = (
        ('General', {
            'fields': ('maintenance_mode', 'support_email')
        }),
        ('Borrowing Limits', {
            'fields': ('standard_loan_days', 'premium_loan_days',
                      'standard_max_loans', 'premium_max_loans',
                      'grace_period_days', 'max_renewals')
        }),
        ('Reservations & Reminders', {
            'fields': ('reservation_pickup_days', 'reminder_days_before_due')
        }),
        ('Fine Rates', {
            'fields': ('daily_fine', 'premium_fine_discount', 'max_fine_cap',
                      'outstanding_fine_threshold', 'auto_charge_fines')
        }),
        ('Metadata', {
            'fields': ('updated_at', 'updated_by')
        }),
    )

    def has_add_permission(self, request):
        return not LibraryConfiguration.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)
