import random

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify
from faker import Faker

from apps.library.constants import SubscriptionStatus, SubscriptionTier
from apps.library.models import Book, BookCopy, Category, Member

User = get_user_model()

CATEGORY_NAMES = [
    'Fiction', 'Mystery', 'Science Fiction', 'Fantasy', 'Biography',
    'History', 'Science', 'Children', 'Poetry', 'Self Help',
]


class Command(BaseCommand):
    help = 'Generates dummy catalogue and member data for development'

    def add_arguments(self, parser):
        parser.add_argument('--books', type=int, default=40, help='Number of books to create')
        parser.add_argument('--members', type=int, default=15, help='Number of members to create')
        parser.add_argument('--max-copies', type=int, default=3, help='Maximum copies per book')
        parser.add_argument('--seed', type=int, help='Seed for repeatable data')

    def handle(self, *args, **options):
        fake = Faker()
        if options['seed'] is not None:
            Faker.seed(options['seed'])
            random.seed(options['seed'])

        with transaction.atomic():
            categories = self.create_categories()
            self.create_books(fake, categories, options['books'], options['max_copies'])
            self.create_members(fake, options['members'])

        self.stdout.write(self.style.SUCCESS('Library dummy data created'))

    def create_categories(self):
        categories = []
        for name in CATEGORY_NAMES:
            category, _ = Category.objects.get_or_create(slug=slugify(name), defaults={'name': name})
            categories.append(category)
        self.stdout.write(f'Ensured {len(categories)} categories exist')
        return categories

    def create_books(self, fake, categories, count, max_copies):
        created = 0
        for _ in range(count):
            book = Book.objects.create(
                title=fake.catch_phrase(),
                author=fake.name(),
                isbn=fake.unique.isbn13(separator=''),
                category=random.choice(categories),
                publication_year=int(fake.year()),
                description=fake.paragraph(nb_sentences=3),
            )
            BookCopy.objects.bulk_create([
                BookCopy(book=book, copy_number=number)
                for number in range(1, random.randint(1, max(1, max_copies)) + 1)
            ])
            created += 1
        self.stdout.write(f'Created {created} books')

    def create_members(self, fake, count):
        created = 0
        for _ in range(count):
            username = fake.unique.user_name()
            if User.objects.filter(username=username).exists():
                continue
            user = User.objects.create_user(
                username=username,
                email=fake.unique.email(),
                password='bookflix123',
                first_name=fake.first_name(),
                last_name=fake.last_name(),
            )
            Member.objects.create(
                user=user,
                phone=fake.numerify('##########'),
                subscription_tier=random.choice(SubscriptionTier.values),
                subscription_status=random.choices(
                    SubscriptionStatus.values, weights=[8, 1, 1]
                )[0],
            )
            created += 1
        self.stdout.write(f'Created {created} members (password: bookflix123)')
