from dataclasses import replace

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.configuration.models import LibraryConfiguration
from apps.library.services import FineService


class Command(BaseCommand):
    """
    Run the overdue fine sweep once, outside the Celery schedule.
    """

    help = 'Mark overdue loans and raise pending fines'

    def add_arguments(self, parser):
        parser.add_argument(
            '--force-charge',
            action='store_true',
            help='Raise pending fines even when auto charging is switched off'
        )

    def handle(self, *args, **options):
        policy_settings = LibraryConfiguration.policy_settings()
        if options['force_charge'] and not policy_settings.auto_charge_fines:
            policy_settings = replace(policy_settings, auto_charge_fines=True)

        self.stdout.write(self.style.HTTP_INFO(f"Calculating fines at {timezone.now():%Y-%m-%d %H:%M}"))
        stats = FineService.calculate_overdue_fines(policy_settings=policy_settings)

        self.stdout.write(f"Loans marked overdue: {stats['overdue']}")
        self.stdout.write(f"Overdue loans processed: {stats['processed']}")
        self.stdout.write(f"Fines created: {stats['created']}, updated: {stats['updated']}")
        if stats['errors']:
            self.stdout.write(self.style.ERROR(f"Errors: {stats['errors']} (see logs)"))
        else:
            self.stdout.write(self.style.SUCCESS("Fine calculation completed"))
