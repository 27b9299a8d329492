import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


def base_fields():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, unique=True, verbose_name='Universal ID')),
        ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Creation Timestamp')),
        ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Last Modification Timestamp')),
        ('is_active', models.BooleanField(db_index=True, default=True, help_text='False hides the record from circulation without deleting it', verbose_name='Active Status')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=base_fields() + [
                ('name', models.CharField(max_length=100, unique=True, verbose_name='Category Name')),
                ('slug', models.SlugField(max_length=120, unique=True, verbose_name='Slug')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
            ],
            options={
                'verbose_name': 'Category',
                'verbose_name_plural': 'Categories',
                'db_table': 'library_categories',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Book',
            fields=base_fields() + [
                ('title', models.CharField(db_index=True, max_length=500, verbose_name='Title')),
                ('author', models.CharField(db_index=True, max_length=300, verbose_name='Author')),
                ('isbn', models.CharField(blank=True, max_length=20, null=True, unique=True, verbose_name='ISBN')),
                ('language', models.CharField(default='English', max_length=50, verbose_name='Language')),
                ('publication_year', models.PositiveIntegerField(blank=True, null=True, verbose_name='Publication Year')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('cover_image', models.URLField(blank=True, verbose_name='Cover Image')),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='books', to='library.category', verbose_name='Category')),
            ],
            options={
                'verbose_name': 'Book',
                'verbose_name_plural': 'Books',
                'db_table': 'library_books',
                'ordering': ['title'],
                'indexes': [
                    models.Index(fields=['title', 'author'], name='library_book_title_author_idx'),
                    models.Index(fields=['language'], name='library_book_language_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BookCopy',
            fields=base_fields() + [
                ('copy_number', models.PositiveIntegerField(verbose_name='Copy Number')),
                ('barcode', models.CharField(blank=True, max_length=100, null=True, unique=True, verbose_name='Barcode')),
                ('status', models.CharField(choices=[('available', 'Available'), ('borrowed', 'Borrowed'), ('reserved', 'Reserved'), ('maintenance', 'Maintenance')], db_index=True, default='available', max_length=20, verbose_name='Status')),
                ('condition', models.CharField(choices=[('new', 'New'), ('good', 'Good'), ('fair', 'Fair'), ('poor', 'Poor')], default='good', max_length=10, verbose_name='Condition')),
                ('shelf_location', models.CharField(blank=True, max_length=100, verbose_name='Shelf Location')),
                ('notes', models.TextField(blank=True, verbose_name='Notes')),
                ('book', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='copies', to='library.book', verbose_name='Book')),
            ],
            options={
                'verbose_name': 'Book Copy',
                'verbose_name_plural': 'Book Copies',
                'db_table': 'library_book_copies',
                'ordering': ['book', 'copy_number'],
                'indexes': [
                    models.Index(fields=['book', 'status'], name='library_copy_book_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('book', 'copy_number'), name='unique_copy_number_per_book'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Member',
            fields=base_fields() + [
                ('member_code', models.CharField(db_index=True, max_length=50, unique=True, verbose_name='Member ID')),
                ('phone', models.CharField(blank=True, max_length=20, verbose_name='Phone')),
                ('membership_date', models.DateField(default=django.utils.timezone.localdate, verbose_name='Membership Date')),
                ('subscription_tier', models.CharField(choices=[('free', 'Free'), ('monthly', 'Monthly'), ('yearly', 'Yearly')], default='free', max_length=20, verbose_name='Subscription Tier')),
                ('subscription_status', models.CharField(choices=[('active', 'Active'), ('cancelled', 'Cancelled'), ('expired', 'Expired')], default='active', max_length=20, verbose_name='Subscription Status')),
                ('subscription_ends_at', models.DateTimeField(blank=True, help_text='End of the paid period; an active subscription past this date counts as expired', null=True, verbose_name='Subscription Ends At')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='library_member', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Member',
                'verbose_name_plural': 'Members',
                'db_table': 'library_members',
                'ordering': ['member_code'],
                'indexes': [
                    models.Index(fields=['subscription_tier', 'subscription_status'], name='library_member_subscr_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Loan',
            fields=base_fields() + [
                ('borrowed_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Borrowed Date')),
                ('due_date', models.DateTimeField(db_index=True, verbose_name='Due Date')),
                ('returned_date', models.DateTimeField(blank=True, null=True, verbose_name='Returned Date')),
                ('status', models.CharField(choices=[('active', 'Active'), ('returned', 'Returned'), ('overdue', 'Overdue')], db_index=True, default='active', max_length=20, verbose_name='Status')),
                ('renewal_count', models.PositiveIntegerField(default=0, verbose_name='Renewal Count')),
                ('last_renewal_date', models.DateTimeField(blank=True, null=True, verbose_name='Last Renewal Date')),
                ('notes', models.TextField(blank=True, verbose_name='Notes')),
                ('book', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loans', to='library.book', verbose_name='Book')),
                ('book_copy', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loans', to='library.bookcopy', verbose_name='Book Copy')),
                ('issued_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='issued_loans', to=settings.AUTH_USER_MODEL, verbose_name='Issued By')),
                ('member', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loans', to='library.member', verbose_name='Member')),
                ('returned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='received_loans', to=settings.AUTH_USER_MODEL, verbose_name='Returned By')),
            ],
            options={
                'verbose_name': 'Loan',
                'verbose_name_plural': 'Loans',
                'db_table': 'library_loans',
                'ordering': ['-borrowed_date'],
                'indexes': [
                    models.Index(fields=['member', 'status'], name='library_loan_member_status_idx'),
                    models.Index(fields=['status', 'due_date'], name='library_loan_status_due_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status__in', ['active', 'overdue'])), fields=('book_copy',), name='one_open_loan_per_copy'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Fine',
            fields=base_fields() + [
                ('amount', models.DecimalField(decimal_places=2, max_digits=8, verbose_name='Amount')),
                ('days_overdue', models.PositiveIntegerField(default=0, verbose_name='Days Overdue')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('waived', 'Waived')], db_index=True, default='pending', max_length=20, verbose_name='Status')),
                ('issued_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Issued Date')),
                ('paid_date', models.DateTimeField(blank=True, null=True, verbose_name='Paid Date')),
                ('waived_date', models.DateTimeField(blank=True, null=True, verbose_name='Waived Date')),
                ('notes', models.TextField(blank=True, verbose_name='Notes')),
                ('loan', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fines', to='library.loan', verbose_name='Loan')),
                ('member', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fines', to='library.member', verbose_name='Member')),
                ('waived_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='waived_fines', to=settings.AUTH_USER_MODEL, verbose_name='Waived By')),
            ],
            options={
                'verbose_name': 'Fine',
                'verbose_name_plural': 'Fines',
                'db_table': 'library_fines',
                'ordering': ['-issued_date'],
                'indexes': [
                    models.Index(fields=['member', 'status'], name='library_fine_member_status_idx'),
                    models.Index(fields=['status', 'issued_date'], name='library_fine_status_issued_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'pending')), fields=('loan',), name='one_pending_fine_per_loan'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Reservation',
            fields=base_fields() + [
                ('status', models.CharField(choices=[('pending', 'Pending'), ('ready', 'Ready for Pickup'), ('completed', 'Completed'), ('expired', 'Expired'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20, verbose_name='Status')),
                ('queue_position', models.PositiveIntegerField(verbose_name='Queue Position')),
                ('reserved_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Reserved Date')),
                ('ready_date', models.DateTimeField(blank=True, null=True, verbose_name='Ready Date')),
                ('expiry_date', models.DateTimeField(blank=True, db_index=True, null=True, verbose_name='Pickup Expiry Date')),
                ('completed_date', models.DateTimeField(blank=True, null=True, verbose_name='Completed Date')),
                ('cancelled_date', models.DateTimeField(blank=True, null=True, verbose_name='Cancelled Date')),
                ('notes', models.TextField(blank=True, verbose_name='Notes')),
                ('book', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reservations', to='library.book', verbose_name='Book')),
                ('book_copy', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reservations', to='library.bookcopy', verbose_name='Held Copy')),
                ('cancelled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='cancelled_reservations', to=settings.AUTH_USER_MODEL, verbose_name='Cancelled By')),
                ('member', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reservations', to='library.member', verbose_name='Member')),
            ],
            options={
                'verbose_name': 'Reservation',
                'verbose_name_plural': 'Reservations',
                'db_table': 'library_reservations',
                'ordering': ['book', 'queue_position'],
                'indexes': [
                    models.Index(fields=['member', 'status'], name='library_resv_member_status_idx'),
                    models.Index(fields=['book', 'status'], name='library_resv_book_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('book', 'queue_position'), name='unique_queue_position_per_book'),
                    models.UniqueConstraint(condition=models.Q(('status__in', ['pending', 'ready'])), fields=('member', 'book'), name='one_live_reservation_per_member_book'),
                ],
            },
        ),
    ]
