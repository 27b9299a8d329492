from rest_framework import serializers

from apps.configuration.models import LibraryConfiguration
from .constants import CopyStatus, ReservationStatus, SubscriptionStatus, SubscriptionTier
from .policy import CENTS
from .models import Book, BookCopy, Category, Fine, Loan, Member, Reservation


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'description', 'is_active']
        read_only_fields = ['slug']
        # duplicates are rejected by the view with a conflict
        extra_kwargs = {'name': {'validators': []}}


class BookCopySerializer(serializers.ModelSerializer):
    class Meta:
        model = BookCopy
        fields = ['id', 'copy_number', 'barcode', 'status', 'condition', 'shelf_location']
        read_only_fields = ['status']


class BookSerializer(serializers.ModelSerializer):
    category = CategorySerializer(read_only=True)
    category_id = serializers.PrimaryKeyRelatedField(
        source='category', queryset=Category.objects.all(), write_only=True, required=False, allow_null=True
    )
    total_copies = serializers.IntegerField(read_only=True)
    available_copies = serializers.IntegerField(read_only=True)
    waiting_reservations = serializers.SerializerMethodField()

    class Meta:
        model = Book
        fields = [
            'id', 'title', 'author', 'isbn', 'category', 'category_id', 'language',
            'publication_year', 'description', 'cover_image',
            'total_copies', 'available_copies', 'waiting_reservations', 'created_at',
        ]

    def get_waiting_reservations(self, obj):
        count = getattr(obj, 'waiting_count', None)
        if count is None:
            count = obj.reservations.filter(status=ReservationStatus.PENDING).count()
        return count


class BookDetailSerializer(BookSerializer):
    copies = BookCopySerializer(many=True, read_only=True)

    class Meta(BookSerializer.Meta):
        fields = BookSerializer.Meta.fields + ['copies']


class StockSerializer(serializers.Serializer):
    count = serializers.IntegerField(min_value=1, max_value=100, default=1)


class CopyStatusSerializer(serializers.Serializer):
    copyId = serializers.UUIDField()
    status = serializers.ChoiceField(choices=[CopyStatus.AVAILABLE, CopyStatus.MAINTENANCE])


class MemberSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    name = serializers.CharField(source='display_name', read_only=True)
    effective_tier = serializers.CharField(read_only=True)
    limits = serializers.SerializerMethodField()
    active_loans = serializers.SerializerMethodField()
    pending_fines = serializers.SerializerMethodField()

    class Meta:
        model = Member
        fields = [
            'id', 'member_code', 'username', 'email', 'name', 'phone', 'membership_date',
            'subscription_tier', 'subscription_status', 'subscription_ends_at',
            'effective_tier', 'limits', 'active_loans', 'pending_fines',
        ]
        read_only_fields = ['member_code', 'membership_date']

    def get_limits(self, obj):
        if 'policy_settings' not in self.context:
            self.context['policy_settings'] = LibraryConfiguration.policy_settings()
        envelope = obj.envelope(self.context['policy_settings'])
        return {
            'maxConcurrentLoans': envelope.max_concurrent_loans,
            'loanPeriodDays': envelope.loan_period_days,
            'dailyFineRate': str(envelope.daily_fine_rate.quantize(CENTS)),
            'fineCap': str(envelope.fine_cap),
        }

    def get_active_loans(self, obj):
        return obj.open_loan_count()

    def get_pending_fines(self, obj):
        return str(obj.pending_fine_total())


class MemberUpdateSerializer(serializers.ModelSerializer):
    """Staff edits to a member's subscription"""
    subscription_tier = serializers.ChoiceField(choices=SubscriptionTier.choices, required=False)
    subscription_status = serializers.ChoiceField(choices=SubscriptionStatus.choices, required=False)

    class Meta:
        model = Member
        fields = ['phone', 'subscription_tier', 'subscription_status', 'subscription_ends_at']


class LoanSerializer(serializers.ModelSerializer):
    member_code = serializers.CharField(source='member.member_code', read_only=True)
    member_name = serializers.CharField(source='member.display_name', read_only=True)
    book_title = serializers.CharField(source='book.title', read_only=True)
    book_author = serializers.CharField(source='book.author', read_only=True)
    copy_number = serializers.IntegerField(source='book_copy.copy_number', read_only=True)
    days_overdue = serializers.SerializerMethodField()
    days_remaining = serializers.SerializerMethodField()
    fine_amount = serializers.SerializerMethodField()

    class Meta:
        model = Loan
        fields = [
            'id', 'member', 'member_code', 'member_name', 'book', 'book_title', 'book_author',
            'book_copy', 'copy_number', 'borrowed_date', 'due_date', 'returned_date', 'status',
            'renewal_count', 'last_renewal_date', 'days_overdue', 'days_remaining', 'fine_amount',
        ]
        read_only_fields = fields

    def get_days_overdue(self, obj):
        return obj.days_overdue()

    def get_days_remaining(self, obj):
        return obj.days_remaining()

    def get_fine_amount(self, obj):
        return str(obj.advisory_fine(self._policy_settings()))

    def _policy_settings(self):
        if 'policy_settings' not in self.context:
            self.context['policy_settings'] = LibraryConfiguration.policy_settings()
        return self.context['policy_settings']


class BorrowSerializer(serializers.Serializer):
    memberId = serializers.PrimaryKeyRelatedField(source='member', queryset=Member.active_objects.all(), required=False)
    bookId = serializers.PrimaryKeyRelatedField(source='book', queryset=Book.objects.all())


class LoanActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['renew', 'return'])


class FineSerializer(serializers.ModelSerializer):
    member_code = serializers.CharField(source='member.member_code', read_only=True)
    book_title = serializers.CharField(source='loan.book.title', read_only=True)

    class Meta:
        model = Fine
        fields = [
            'id', 'member', 'member_code', 'loan', 'book_title', 'amount', 'days_overdue',
            'status', 'issued_date', 'paid_date', 'waived_date', 'notes',
        ]
        read_only_fields = fields


class FineActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['pay', 'waive'])
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)


class ReservationSerializer(serializers.ModelSerializer):
    member_code = serializers.CharField(source='member.member_code', read_only=True)
    member_name = serializers.CharField(source='member.display_name', read_only=True)
    book_title = serializers.CharField(source='book.title', read_only=True)
    copy_number = serializers.IntegerField(source='book_copy.copy_number', read_only=True)
    days_until_expiry = serializers.SerializerMethodField()

    class Meta:
        model = Reservation
        fields = [
            'id', 'member', 'member_code', 'member_name', 'book', 'book_title', 'book_copy',
            'copy_number', 'status', 'queue_position', 'reserved_date', 'ready_date',
            'expiry_date', 'completed_date', 'cancelled_date', 'days_until_expiry',
        ]
        read_only_fields = fields

    def get_days_until_expiry(self, obj):
        return obj.days_until_expiry()


class ReservationCreateSerializer(serializers.Serializer):
    memberId = serializers.PrimaryKeyRelatedField(source='member', queryset=Member.active_objects.all(), required=False)
    bookId = serializers.PrimaryKeyRelatedField(source='book', queryset=Book.objects.all())


class ReservationActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['markReady', 'complete', 'cancel'])
