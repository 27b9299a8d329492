import json
import os

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.configuration.models import LibraryConfiguration
from apps.configuration.serializers import LibraryConfigurationSerializer


class Command(BaseCommand):
    """
    Django management command to load library settings from a JSON file.

    The file holds one object using the admin console keys, e.g.
    ``{"standardLoanDays": 7, "dailyFine": "0.50"}``. Keys left out keep
    their current value.
    """

    help = 'Import library circulation settings from a JSON file'

    def add_arguments(self, parser):
        parser.add_argument(
            '--file',
            type=str,
            default='apps/configuration/data/library_settings.json',
            help='Path to JSON file containing library settings'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Validate the file without saving to database'
        )

    def handle(self, *args, **options):
        file_path = options['file']
        dry_run = options['dry_run']

        self.stdout.write(self.style.HTTP_INFO(f"Starting library settings import from: {file_path}"))

        if not os.path.exists(file_path):
            raise CommandError(f"File not found: {file_path}")

        try:
            with open(file_path, 'r', encoding='utf-8') as file:
                data = json.load(file)
        except json.JSONDecodeError as e:
            raise CommandError(f"Invalid JSON file: {e}")

        if not isinstance(data, dict):
            raise CommandError("JSON data should be an object of settings")

        config = LibraryConfiguration.reload()
        serializer = LibraryConfigurationSerializer(config, data=data, partial=True)
        if not serializer.is_valid():
            for field, errors in serializer.errors.items():
                self.stderr.write(self.style.ERROR(f"{field}: {'; '.join(str(e) for e in errors)}"))
            raise CommandError("Library settings are invalid; nothing was imported")

        unknown = sorted(set(data) - set(serializer.fields))
        for key in unknown:
            self.stdout.write(self.style.WARNING(f"Ignoring unknown setting: {key}"))

        if dry_run:
            self.stdout.write(self.style.WARNING("Settings are valid (dry run, nothing saved)"))
            return

        with transaction.atomic():
            serializer.save()

        LibraryConfiguration.reload()
        self.stdout.write(self.style.SUCCESS(f"Imported {len(data) - len(unknown)} library setting(s)"))
