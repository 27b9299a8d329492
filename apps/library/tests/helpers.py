from datetime import datetime, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase

from apps.library.constants import SubscriptionStatus, SubscriptionTier
from apps.library.models import Book, BookCopy, Member

User = get_user_model()

NOW = datetime(2024, 3, 1, 10, 0, tzinfo=dt_timezone.utc)


def make_user(username, **extra):
    return User.objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password='pass12345',
        **extra
    )


def make_member(username, tier=SubscriptionTier.FREE, status=SubscriptionStatus.ACTIVE):
    return Member.objects.create(
        user=make_user(username),
        subscription_tier=tier,
        subscription_status=status,
    )


def make_book(title='Dune', copies=1, author='Frank Herbert'):
    book = Book.objects.create(title=title, author=author)
    for number in range(1, copies + 1):
        BookCopy.objects.create(book=book, copy_number=number)
    return book


class LibraryTestCase(TestCase):
    """Clears the cached library configuration between tests"""

    def setUp(self):
        cache.clear()
        self.addCleanup(cache.clear)
