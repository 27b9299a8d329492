import django_filters
from django.db.models import Q
from django.utils import timezone

from .constants import CopyStatus, FineStatus, LoanStatus, ReservationStatus
from .models import Book, Category, Fine, Loan, Member, Reservation


class CategoryFilter(django_filters.FilterSet):
    is_active = django_filters.BooleanFilter(label='Active')

    class Meta:
        model = Category
        fields = ['is_active']


class BookFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(
        method='filter_search',
        label='Title, Author or ISBN'
    )
    author = django_filters.CharFilter(
        lookup_expr='icontains',
        label='Author'
    )
    category = django_filters.CharFilter(
        field_name='category__slug',
        label='Category'
    )
    language = django_filters.CharFilter(
        lookup_expr='iexact',
        label='Language'
    )
    available = django_filters.BooleanFilter(
        method='filter_available',
        label='Has Available Copies'
    )

    class Meta:
        model = Book
        fields = ['q', 'author', 'category', 'language', 'available']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(title__icontains=value) |
            Q(author__icontains=value) |
            Q(isbn__icontains=value)
        )

    def filter_available(self, queryset, name, value):
        in_stock = Q(copies__status=CopyStatus.AVAILABLE, copies__is_active=True)
        if value:
            return queryset.filter(in_stock).distinct()
        return queryset.exclude(in_stock)


class LoanFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(
        choices=LoanStatus.choices,
        empty_label='All Statuses'
    )
    member = django_filters.UUIDFilter(field_name='member_id')
    book = django_filters.UUIDFilter(field_name='book_id')
    is_overdue = django_filters.BooleanFilter(
        method='filter_overdue',
        label='Overdue Only'
    )
    borrowed_date = django_filters.DateFromToRangeFilter(label='Borrowed Date Range')

    class Meta:
        model = Loan
        fields = ['status', 'member', 'book', 'is_overdue']

    def filter_overdue(self, queryset, name, value):
        overdue = Q(status__in=LoanStatus.open_statuses(), due_date__lt=timezone.now())
        if value:
            return queryset.filter(overdue)
        return queryset.exclude(overdue)


class ReservationFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(
        choices=ReservationStatus.choices,
        empty_label='All Statuses'
    )
    member = django_filters.UUIDFilter(field_name='member_id')
    book = django_filters.UUIDFilter(field_name='book_id')

    class Meta:
        model = Reservation
        fields = ['status', 'member', 'book']


class FineFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(
        choices=FineStatus.choices,
        empty_label='All Statuses'
    )
    member = django_filters.UUIDFilter(field_name='member_id')
    issued_date = django_filters.DateFromToRangeFilter(label='Issued Date Range')
    min_amount = django_filters.NumberFilter(field_name='amount', lookup_expr='gte')

    class Meta:
        model = Fine
        fields = ['status', 'member']


class MemberFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(
        method='filter_search',
        label='Name, Username or Member ID'
    )

    class Meta:
        model = Member
        fields = ['subscription_tier', 'subscription_status']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(member_code__icontains=value) |
            Q(user__username__icontains=value) |
            Q(user__first_name__icontains=value) |
            Q(user__last_name__icontains=value)
        )
