from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.models import Group
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from apps.core.permissions import LIBRARIAN_GROUP
from apps.library.constants import CopyStatus, FineStatus, ReservationStatus, SubscriptionTier
from apps.library.models import Book, Category, Fine
from apps.library.services import LoanService, ReservationService

from .helpers import NOW, LibraryTestCase, make_book, make_member, make_user


class ApiTestCase(LibraryTestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.member = make_member('alice')
        self.other = make_member('bob')
        self.librarian = make_user('librarian')
        self.librarian.groups.add(Group.objects.get_or_create(name=LIBRARIAN_GROUP)[0])
        self.book = make_book(copies=1)

    def login(self, user):
        self.client.force_authenticate(user=user)


class BorrowApiTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.url = reverse('library:borrow')

    def test_member_borrows_for_self(self):
        self.login(self.member.user)

        response = self.client.post(self.url, {'bookId': str(self.book.pk)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertEqual(body['message'], 'Book borrowed successfully')
        self.assertEqual(body['borrowing']['book'], str(self.book.pk))
        self.assertEqual(body['borrowing']['status'], 'active')
        self.assertEqual(body['borrowing']['fine_amount'], '0.00')

    def test_loan_limit_denial_payload(self):
        LoanService.borrow(self.member, make_book('Emma', author='Jane Austen'))
        self.login(self.member.user)

        response = self.client.post(self.url, {'bookId': str(self.book.pk)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        body = response.json()
        self.assertEqual(body['code'], 'LoanLimitReached')
        self.assertEqual(body['limit'], 1)
        self.assertIn('Borrowing limit reached', body['error'])

    def test_no_copy_is_a_conflict(self):
        LoanService.borrow(self.other, self.book)
        self.login(self.member.user)

        response = self.client.post(self.url, {'bookId': str(self.book.pk)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()['code'], 'NoCopyAvailable')

    def test_member_cannot_borrow_for_someone_else(self):
        self.login(self.member.user)

        response = self.client.post(
            self.url, {'bookId': str(self.book.pk), 'memberId': str(self.other.pk)}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()['code'], 'permission_denied')

    def test_librarian_issues_on_behalf_of_member(self):
        self.login(self.librarian)

        response = self.client.post(
            self.url, {'bookId': str(self.book.pk), 'memberId': str(self.member.pk)}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()['borrowing']['member'], str(self.member.pk))

    def test_missing_book_is_a_validation_error(self):
        self.login(self.member.user)

        response = self.client.post(self.url, {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['code'], 'invalid')
        self.assertIn('bookId', response.json()['details'])

    def test_requires_authentication(self):
        response = self.client.post(self.url, {'bookId': str(self.book.pk)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class LoanApiTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.loan = LoanService.borrow(self.member, self.book)
        self.url = reverse('library:borrowing-detail', args=[self.loan.pk])

    def test_renew(self):
        self.login(self.member.user)

        response = self.client.patch(self.url, {'action': 'renew'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['message'], 'Book renewed successfully')
        self.assertEqual(response.json()['borrowing']['renewal_count'], 1)

    def test_return(self):
        self.login(self.librarian)

        response = self.client.patch(self.url, {'action': 'return'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['message'], 'Book returned successfully')
        self.assertNotIn('fine', response.json())
        self.assertEqual(self.book.available_copies, 1)

    def test_late_return_reports_fine(self):
        book = make_book('Emma', author='Jane Austen')
        loan = LoanService.borrow(self.other, book, now=NOW)
        self.login(self.librarian)

        response = self.client.patch(
            reverse('library:borrowing-detail', args=[loan.pk]), {'action': 'return'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['fine']['amount'], '20.00')

    def test_unknown_action_rejected(self):
        self.login(self.member.user)
        response = self.client.patch(self.url, {'action': 'lose'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_members_loans_are_hidden(self):
        self.login(self.other.user)

        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(reverse('library:borrowing-list')).json()['count'], 0)

    def test_librarian_sees_every_loan(self):
        LoanService.borrow(self.other, make_book('Emma', author='Jane Austen'))
        self.login(self.librarian)

        response = self.client.get(reverse('library:borrowing-list'))

        self.assertEqual(response.json()['count'], 2)

    def test_member_borrowings(self):
        url = reverse('library:member_borrowings', args=[self.member.pk])

        self.login(self.member.user)
        self.assertEqual(self.client.get(url).json()['count'], 1)

        self.login(self.other.user)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)


class ReservationApiTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.loan = LoanService.borrow(self.other, self.book)

    def test_reserve_and_list_queue(self):
        self.login(self.member.user)

        response = self.client.post(reverse('library:reservation-list'), {'bookId': str(self.book.pk)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()['reservation']['queue_position'], 1)

        queue = self.client.get(reverse('library:book_reservations', args=[self.book.pk])).json()
        self.assertEqual([r['member'] for r in queue], [str(self.member.pk)])

    def test_reserve_available_book_is_a_conflict(self):
        self.login(self.member.user)

        response = self.client.post(
            reverse('library:reservation-list'),
            {'bookId': str(make_book('Emma', author='Jane Austen').pk)},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()['code'], 'copy_available')

    def test_cancel(self):
        reservation = ReservationService.reserve(self.member, self.book)
        self.login(self.member.user)

        response = self.client.patch(
            reverse('library:reservation-detail', args=[reservation.pk]), {'action': 'cancel'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['reservation']['status'], ReservationStatus.CANCELLED)

    def test_mark_ready_needs_librarian(self):
        reservation = ReservationService.reserve(self.member, self.book)
        self.login(self.member.user)

        response = self.client.patch(
            reverse('library:reservation-detail', args=[reservation.pk]), {'action': 'markReady'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_complete_after_return(self):
        reservation = ReservationService.reserve(self.member, self.book)
        LoanService.return_loan(self.loan)
        self.login(self.member.user)

        response = self.client.patch(
            reverse('library:reservation-detail', args=[reservation.pk]), {'action': 'complete'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body['reservation']['status'], ReservationStatus.COMPLETED)
        self.assertEqual(body['borrowing']['member'], str(self.member.pk))


class FineApiTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        loan = LoanService.borrow(self.member, self.book, now=NOW)
        loan, _ = LoanService.return_loan(loan, now=NOW + timedelta(days=10))
        self.fine = Fine.objects.get(loan=loan)
        self.url = reverse('library:fine-detail', args=[self.fine.pk])

    def test_member_pays_own_fine(self):
        self.login(self.member.user)

        response = self.client.patch(self.url, {'action': 'pay'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['fine']['status'], FineStatus.PAID)

    def test_paying_twice_conflicts(self):
        self.login(self.member.user)
        self.client.patch(self.url, {'action': 'pay'}, format='json')

        response = self.client.patch(self.url, {'action': 'pay'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['code'], 'fine_settled')

    def test_only_librarian_waives(self):
        self.login(self.member.user)
        response = self.client.patch(self.url, {'action': 'waive'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.login(self.librarian)
        response = self.client.patch(self.url, {'action': 'waive', 'notes': 'Storm closure'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['fine']['status'], FineStatus.WAIVED)

    def test_filter_pending(self):
        self.login(self.member.user)
        response = self.client.get(reverse('library:fine-list'), {'status': 'pending'})
        self.assertEqual(response.json()['count'], 1)
        self.assertEqual(Decimal(response.json()['results'][0]['amount']), Decimal('1.50'))


class MemberApiTest(ApiTestCase):
    def test_me_reports_limits(self):
        self.login(self.member.user)

        body = self.client.get(reverse('library:member-me')).json()

        self.assertEqual(body['member_code'], self.member.member_code)
        self.assertEqual(body['effective_tier'], 'standard')
        self.assertEqual(body['limits'], {
            'maxConcurrentLoans': 1,
            'loanPeriodDays': 7,
            'dailyFineRate': '0.50',
            'fineCap': '20.00',
        })

    def test_member_list_is_staff_only(self):
        self.login(self.member.user)
        self.assertEqual(self.client.get(reverse('library:member-list')).status_code, status.HTTP_403_FORBIDDEN)

        self.login(self.librarian)
        self.assertEqual(self.client.get(reverse('library:member-list')).json()['count'], 2)

    def test_member_cannot_view_another_member(self):
        self.login(self.member.user)
        response = self.client.get(reverse('library:member-detail', args=[self.other.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_librarian_upgrades_subscription(self):
        self.login(self.librarian)

        response = self.client.patch(
            reverse('library:member-detail', args=[self.member.pk]),
            {'subscription_tier': SubscriptionTier.YEARLY},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['limits']['maxConcurrentLoans'], 4)
        self.assertEqual(response.json()['limits']['dailyFineRate'], '0.25')


class BookApiTest(ApiTestCase):
    def test_available_filter(self):
        LoanService.borrow(self.member, self.book)
        make_book('Emma', author='Jane Austen')
        self.login(self.other.user)

        response = self.client.get(reverse('library:book-list'), {'available': 'true'})

        self.assertEqual([b['title'] for b in response.json()['results']], ['Emma'])

    def test_members_cannot_edit_catalogue(self):
        self.login(self.member.user)
        response = self.client.post(reverse('library:book-list'), {'title': 'X', 'author': 'Y'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_librarian_adds_stock_and_serves_queue(self):
        LoanService.borrow(self.other, self.book)
        reservation = ReservationService.reserve(self.member, self.book)
        self.login(self.librarian)

        response = self.client.post(reverse('library:book-stock', args=[self.book.pk]), {'count': 2}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()['promotedReservations'], [str(reservation.pk)])
        stock = self.client.get(reverse('library:book-stock', args=[self.book.pk])).json()
        self.assertEqual(stock['totalCopies'], 3)
        self.assertEqual(stock['availableCopies'], 1)

    def test_copy_sent_to_maintenance(self):
        copy = self.book.copies.get()
        self.login(self.librarian)

        response = self.client.patch(
            reverse('library:book-stock', args=[self.book.pk]),
            {'copyId': str(copy.pk), 'status': CopyStatus.MAINTENANCE},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['copy']['status'], CopyStatus.MAINTENANCE)

    def test_withdraw_book(self):
        self.login(self.librarian)

        response = self.client.delete(reverse('library:book-detail', args=[self.book.pk]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Book.objects.get(pk=self.book.pk).is_active)

    def test_book_on_loan_cannot_be_withdrawn(self):
        LoanService.borrow(self.member, self.book)
        self.login(self.librarian)

        response = self.client.delete(reverse('library:book-detail', args=[self.book.pk]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Book.objects.get(pk=self.book.pk).is_active)


class CategoryApiTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.url = reverse('library:category-list')
        self.fiction = Category.objects.create(name='Fiction')
        self.archive = Category.objects.create(name='Archive', is_active=False)

    def test_list_filters_on_active(self):
        self.login(self.member)

        response = self.client.get(self.url, {'is_active': 'true'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [row['name'] for row in response.json()['results']]
        self.assertIn('Fiction', names)
        self.assertNotIn('Archive', names)

    def test_librarian_creates_category(self):
        self.login(self.librarian)

        response = self.client.post(self.url, {'name': 'Science Fiction'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()['slug'], 'science-fiction')

    def test_duplicate_name_is_a_conflict(self):
        self.login(self.librarian)

        response = self.client.post(self.url, {'name': 'fiction'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()['code'], 'duplicate_category')
        self.assertEqual(Category.objects.filter(name__iexact='fiction').count(), 1)

    def test_rename_onto_existing_name_is_a_conflict(self):
        self.login(self.librarian)

        response = self.client.patch(
            reverse('library:category-detail', args=[self.archive.pk]), {'name': 'Fiction'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_member_cannot_create(self):
        self.login(self.member)

        response = self.client.post(self.url, {'name': 'Poetry'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Category.objects.filter(name='Poetry').exists())
