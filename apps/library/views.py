import logging

from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from django.utils.text import slugify
from rest_framework import generics, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import ServiceError
from apps.core.permissions import (
    IsLibrarianOrReadOnly,
    IsOwnerOrLibrarian,
    is_librarian,
)
from .constants import LoanStatus, ReservationStatus
from .filters import BookFilter, CategoryFilter, FineFilter, LoanFilter, MemberFilter, ReservationFilter
from .models import Book, BookCopy, Category, Fine, Loan, Member, Reservation
from .serializers import (
    BookCopySerializer,
    BookDetailSerializer,
    BookSerializer,
    BorrowSerializer,
    CategorySerializer,
    CopyStatusSerializer,
    FineActionSerializer,
    FineSerializer,
    LoanActionSerializer,
    LoanSerializer,
    MemberSerializer,
    MemberUpdateSerializer,
    ReservationActionSerializer,
    ReservationCreateSerializer,
    ReservationSerializer,
    StockSerializer,
)
from .services import FineService, LoanService, ReservationService, StockService

logger = logging.getLogger(__name__)

UUID_REGEX = '[0-9a-f-]{32,36}'


def member_for_request(request, member=None):
    """
    Resolve the member an action applies to. Staff may act for anyone;
    members only for themselves.
    """
    if member is not None:
        if member.user_id != request.user.pk and not is_librarian(request.user):
            raise PermissionDenied('You can only act on your own account.')
        return member

    try:
        return request.user.library_member
    except Member.DoesNotExist:
        raise PermissionDenied('No library membership is linked to this account.')


class OwnedQuerysetMixin:
    """
    Limit list endpoints to the requester's own rows unless they are staff
    """
    member_lookup = 'member__user'

    def scope_to_owner(self, queryset):
        if is_librarian(self.request.user):
            return queryset
        return queryset.filter(**{self.member_lookup: self.request.user})


# ==================== CATALOGUE ====================

class CategoryViewSet(viewsets.ModelViewSet):
    """
    Catalogue categories; staff manage them
    """
    queryset = Category.objects.all()
    serializer_class = CategorySerializer
    permission_classes = [IsLibrarianOrReadOnly]
    filterset_class = CategoryFilter
    ordering_fields = ['name', 'created_at']
    lookup_value_regex = UUID_REGEX

    def check_unique_name(self, name, exclude=None):
        clash = Category.objects.filter(Q(name__iexact=name) | Q(slug=slugify(name)))
        if exclude is not None:
            clash = clash.exclude(pk=exclude.pk)
        if clash.exists():
            raise ServiceError(
                'Category already exists',
                code='duplicate_category',
                status_code=status.HTTP_409_CONFLICT,
            )

    def perform_create(self, serializer):
        self.check_unique_name(serializer.validated_data['name'])
        category = serializer.save()
        logger.info(f"Category {category.slug} created by {self.request.user.get_username()}")

    def perform_update(self, serializer):
        name = serializer.validated_data.get('name')
        if name is not None:
            self.check_unique_name(name, exclude=serializer.instance)
        serializer.save()


class BookViewSet(viewsets.ModelViewSet):
    """
    Catalogue browsing; staff manage books and stock
    """
    permission_classes = [IsLibrarianOrReadOnly]
    filterset_class = BookFilter
    ordering_fields = ['title', 'author', 'publication_year', 'created_at']
    lookup_value_regex = UUID_REGEX

    def get_queryset(self):
        return Book.active_objects.select_related('category').annotate(
            waiting_count=Count('reservations', filter=Q(reservations__status=ReservationStatus.PENDING))
        )

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return BookDetailSerializer
        return BookSerializer

    def perform_destroy(self, instance):
        if instance.loans.filter(status__in=LoanStatus.open_statuses()).exists():
            raise PermissionDenied('Books with copies on loan cannot be removed.')
        instance.deactivate()
        logger.info(f"Book {instance.pk} withdrawn by {self.request.user.get_username()}")

    @action(detail=True, methods=['get', 'post', 'patch'], url_path='stock')
    def stock(self, request, pk=None):
        book = self.get_object()

        if request.method == 'POST':
            serializer = StockSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            copies, result = StockService.add_copies(book, serializer.validated_data['count'])
            return Response(
                {
                    'message': f'{len(copies)} copy(ies) added',
                    'copies': BookCopySerializer(copies, many=True).data,
                    'promotedReservations': [str(r.pk) for r in result.promoted],
                },
                status=status.HTTP_201_CREATED
            )

        if request.method == 'PATCH':
            serializer = CopyStatusSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            copy = get_object_or_404(BookCopy, pk=serializer.validated_data['copyId'], book=book)
            copy = StockService.set_copy_status(copy, serializer.validated_data['status'])
            return Response({'message': 'Copy status updated', 'copy': BookCopySerializer(copy).data})

        copies = book.copies.filter(is_active=True).order_by('copy_number')
        return Response({
            'bookId': str(book.pk),
            'totalCopies': copies.count(),
            'availableCopies': book.available_copies,
            'copies': BookCopySerializer(copies, many=True).data,
        })


# ==================== BORROWINGS ====================

class BorrowView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = BorrowSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        member = member_for_request(request, serializer.validated_data.get('member'))
        loan = LoanService.borrow(member, serializer.validated_data['book'], issued_by=request.user)

        return Response(
            {'message': 'Book borrowed successfully', 'borrowing': LoanSerializer(loan).data},
            status=status.HTTP_201_CREATED
        )


class LoanViewSet(OwnedQuerysetMixin,
                  mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  viewsets.GenericViewSet):
    """
    Loan history; PATCH with ``action`` renews or returns
    """
    serializer_class = LoanSerializer
    permission_classes = [IsOwnerOrLibrarian]
    filterset_class = LoanFilter
    ordering_fields = ['borrowed_date', 'due_date']
    lookup_value_regex = UUID_REGEX

    def get_queryset(self):
        queryset = Loan.objects.select_related('member__user', 'book', 'book_copy')
        return self.scope_to_owner(queryset)

    def list(self, request, *args, **kwargs):
        LoanService.settle_overdue()
        return super().list(request, *args, **kwargs)

    def partial_update(self, request, pk=None):
        loan = self.get_object()
        serializer = LoanActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if serializer.validated_data['action'] == 'renew':
            loan = LoanService.renew(loan)
            return Response({'message': 'Book renewed successfully', 'borrowing': LoanSerializer(loan).data})

        loan, fine = LoanService.return_loan(loan, returned_by=request.user)
        payload = {'message': 'Book returned successfully', 'borrowing': LoanSerializer(loan).data}
        if fine is not None:
            payload['fine'] = FineSerializer(fine).data
        return Response(payload)


class MemberLoansView(generics.ListAPIView):
    serializer_class = LoanSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = LoanFilter

    def get_queryset(self):
        member = get_object_or_404(Member, pk=self.kwargs['member_id'])
        member_for_request(self.request, member)
        LoanService.settle_overdue()
        return Loan.objects.filter(member=member).select_related('member__user', 'book', 'book_copy')


# ==================== RESERVATIONS ====================

class ReservationViewSet(OwnedQuerysetMixin,
                         mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         viewsets.GenericViewSet):
    """
    Reservation queue entries; PATCH with ``action`` moves them along
    """
    serializer_class = ReservationSerializer
    permission_classes = [IsOwnerOrLibrarian]
    filterset_class = ReservationFilter
    ordering_fields = ['reserved_date', 'queue_position']
    lookup_value_regex = UUID_REGEX

    def get_queryset(self):
        queryset = Reservation.objects.select_related('member__user', 'book', 'book_copy')
        return self.scope_to_owner(queryset)

    def create(self, request):
        serializer = ReservationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        member = member_for_request(request, serializer.validated_data.get('member'))
        reservation = ReservationService.reserve(member, serializer.validated_data['book'])

        return Response(
            {'message': 'Book reserved successfully', 'reservation': ReservationSerializer(reservation).data},
            status=status.HTTP_201_CREATED
        )

    def partial_update(self, request, pk=None):
        reservation = self.get_object()
        serializer = ReservationActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        action_name = serializer.validated_data['action']

        if action_name == 'markReady':
            if not is_librarian(request.user):
                raise PermissionDenied('Librarian access required.')
            reservation = ReservationService.mark_ready(reservation)
            return Response({'message': 'Reservation marked as ready', 'reservation': ReservationSerializer(reservation).data})

        if action_name == 'complete':
            loan = ReservationService.complete(reservation, issued_by=request.user)
            reservation.refresh_from_db()
            return Response({
                'message': 'Reservation completed and book borrowed',
                'reservation': ReservationSerializer(reservation).data,
                'borrowing': LoanSerializer(loan).data,
            })

        reservation = ReservationService.cancel(reservation, cancelled_by=request.user)
        return Response({'message': 'Reservation cancelled', 'reservation': ReservationSerializer(reservation).data})


class BookReservationsView(generics.ListAPIView):
    """Live queue for one book, head first"""
    serializer_class = ReservationSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        book = get_object_or_404(Book, pk=self.kwargs['book_id'])
        ReservationService.settle_book(book)
        return Reservation.objects.filter(
            book=book, status__in=ReservationStatus.live_statuses()
        ).select_related('member__user', 'book', 'book_copy').order_by('queue_position', 'reserved_date')


# ==================== FINES ====================

class FineViewSet(OwnedQuerysetMixin,
                  mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  viewsets.GenericViewSet):
    serializer_class = FineSerializer
    permission_classes = [IsOwnerOrLibrarian]
    filterset_class = FineFilter
    ordering_fields = ['issued_date', 'amount']
    lookup_value_regex = UUID_REGEX

    def get_queryset(self):
        queryset = Fine.objects.select_related('member__user', 'loan__book')
        return self.scope_to_owner(queryset)

    def partial_update(self, request, pk=None):
        fine = self.get_object()
        serializer = FineActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if serializer.validated_data['action'] == 'pay':
            fine = FineService.pay(fine)
            return Response({'message': 'Fine paid successfully', 'fine': FineSerializer(fine).data})

        if not is_librarian(request.user):
            raise PermissionDenied('Librarian access required.')
        fine = FineService.waive(fine, waived_by=request.user, reason=serializer.validated_data.get('notes', ''))
        return Response({'message': 'Fine waived', 'fine': FineSerializer(fine).data})


# ==================== MEMBERS ====================

class MemberViewSet(mixins.ListModelMixin,
                    mixins.RetrieveModelMixin,
                    mixins.UpdateModelMixin,
                    viewsets.GenericViewSet):
    permission_classes = [IsOwnerOrLibrarian]
    filterset_class = MemberFilter
    owner_field = 'user'
    lookup_value_regex = UUID_REGEX
    http_method_names = ['get', 'patch', 'head', 'options']

    def get_queryset(self):
        return Member.active_objects.select_related('user')

    def get_serializer_class(self):
        if self.action == 'partial_update':
            return MemberUpdateSerializer
        return MemberSerializer

    def list(self, request, *args, **kwargs):
        if not is_librarian(request.user):
            raise PermissionDenied('Librarian access required.')
        return super().list(request, *args, **kwargs)

    def partial_update(self, request, *args, **kwargs):
        if not is_librarian(request.user):
            raise PermissionDenied('Librarian access required.')
        member = self.get_object()
        serializer = MemberUpdateSerializer(member, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info(f"Member {member.member_code} updated by {request.user.get_username()}: {sorted(serializer.validated_data)}")
        return Response(MemberSerializer(member).data)

    @action(detail=False, methods=['get'])
    def me(self, request):
        member = member_for_request(request)
        return Response(MemberSerializer(member).data)
