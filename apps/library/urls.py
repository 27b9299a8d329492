from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

app_name = 'library'

router = DefaultRouter()
router.register('categories', views.CategoryViewSet, basename='category')
router.register('books', views.BookViewSet, basename='book')
router.register('borrowings', views.LoanViewSet, basename='borrowing')
router.register('reservations', views.ReservationViewSet, basename='reservation')
router.register('fines', views.FineViewSet, basename='fine')
router.register('members', views.MemberViewSet, basename='member')

urlpatterns = [
    # Borrowings
    path('borrowings/borrow/', views.BorrowView.as_view(), name='borrow'),
    path('borrowings/member/<uuid:member_id>/', views.MemberLoansView.as_view(), name='member_borrowings'),

    # Reservations
    path('reservations/book/<uuid:book_id>/', views.BookReservationsView.as_view(), name='book_reservations'),

    path('', include(router.urls)),
]
