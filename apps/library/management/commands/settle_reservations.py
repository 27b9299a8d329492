from django.core.management.base import BaseCommand

from apps.library.services import ReservationService


class Command(BaseCommand):
    help = 'Expire unclaimed reservations and promote waiting ones'

    def handle(self, *args, **options):
        stats = ReservationService.settle_all()

        self.stdout.write(f"Books checked: {stats['books']}")
        self.stdout.write(f"Reservations expired: {stats['expired']}, promoted: {stats['promoted']}")
        if stats['errors']:
            self.stdout.write(self.style.ERROR(f"Errors: {stats['errors']} (see logs)"))
        else:
            self.stdout.write(self.style.SUCCESS("Reservation settlement completed"))
