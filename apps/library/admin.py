from django.contrib import admin, messages

from .constants import FineStatus, LoanStatus
from .models import Book, BookCopy, Category, Fine, Loan, Member, Reservation
from .services import CirculationError, FineService, LoanService


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ('member_code', 'user', 'subscription_tier', 'subscription_status', 'subscription_ends_at', 'is_active')
    list_filter = ('subscription_tier', 'subscription_status', 'is_active')
    search_fields = ('member_code', 'user__username', 'user__first_name', 'user__last_name', 'user__email')
    raw_id_fields = ('user',)
    readonly_fields = ('member_code',)


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name',)
    prepopulated_fields = {'slug': ('name',)}


class BookCopyInline(admin.TabularInline):
    model = BookCopy
    extra = 1
    fields = ('copy_number', 'barcode', 'status', 'condition', 'shelf_location', 'is_active')
    readonly_fields = ('status',)


@admin.register(Book)
class BookAdmin(admin.ModelAdmin):
    list_display = ('title', 'author', 'isbn', 'category', 'total_copies', 'available_copies', 'is_active')
    list_filter = ('category', 'is_active', 'language')
    search_fields = ('title', 'author', 'isbn')
    inlines = [BookCopyInline]


@admin.register(BookCopy)
class BookCopyAdmin(admin.ModelAdmin):
    list_display = ('book', 'copy_number', 'barcode', 'status', 'condition')
    list_filter = ('status', 'condition')
    search_fields = ('book__title', 'barcode')
    readonly_fields = ('status',)


@admin.register(Loan)
class LoanAdmin(admin.ModelAdmin):
    list_display = ('member', 'book', 'book_copy', 'borrowed_date', 'due_date', 'returned_date', 'status', 'renewal_count')
    list_filter = ('status', 'borrowed_date', 'due_date')
    search_fields = ('member__member_code', 'member__user__username', 'book__title', 'book_copy__barcode')
    date_hierarchy = 'borrowed_date'
    raw_id_fields = ('member', 'book', 'book_copy')
    readonly_fields = ('status', 'returned_date', 'returned_by', 'renewal_count', 'last_renewal_date')
    actions = ['return_selected']

    @admin.action(description='Return selected loans')
    def return_selected(self, request, queryset):
        returned = 0
        for loan in queryset.filter(status__in=LoanStatus.open_statuses()):
            try:
                LoanService.return_loan(loan, returned_by=request.user)
            except CirculationError as e:
                self.message_user(request, f"{loan}: {e.message}", messages.WARNING)
                continue
            returned += 1
        self.message_user(request, f"{returned} loan(s) returned", messages.SUCCESS)


@admin.register(Fine)
class FineAdmin(admin.ModelAdmin):
    list_display = ('member', 'loan', 'amount', 'days_overdue', 'status', 'issued_date')
    list_filter = ('status', 'issued_date')
    search_fields = ('member__member_code', 'member__user__username', 'loan__book__title')
    readonly_fields = ('status', 'paid_date', 'waived_date', 'waived_by')
    raw_id_fields = ('member', 'loan')
    actions = ['waive_selected']

    @admin.action(description='Waive selected fines')
    def waive_selected(self, request, queryset):
        waived = 0
        for fine in queryset.filter(status=FineStatus.PENDING):
            FineService.waive(fine, waived_by=request.user, reason='Waived from admin')
            waived += 1
        self.message_user(request, f"{waived} fine(s) waived", messages.SUCCESS)


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ('member', 'book', 'status', 'queue_position', 'reserved_date', 'expiry_date')
    list_filter = ('status', 'reserved_date')
    search_fields = ('member__member_code', 'member__user__username', 'book__title')
    raw_id_fields = ('member', 'book', 'book_copy')
    readonly_fields = ('status', 'queue_position', 'ready_date', 'expiry_date', 'completed_date', 'cancelled_date')
