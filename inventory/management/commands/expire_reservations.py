from django.core.management.base import BaseCommand
from django.utils import timezone
from inventory.models import StockReservation
from inventory.services import release_reservation


class Command(BaseCommand):
    help = "Release active stock reservations whose expires_at has passed."

    def handle(self, *args, **options):
        now = timezone.now()
        ids = list(
            StockReservation.objects.filter(state=StockReservation.STATE_ACTIVE, expires_at__lt=now).values_list(
                "id", flat=True
            )
        )
        count = 0
        # Each release locks and re-checks its own reservation
        for reservation_id in ids:
            if release_reservation(reservation_id=reservation_id, reference_id="expired") is not None:
                count += 1
        self.stdout.write(self.style.SUCCESS(f"Expired reservations released: {count}"))
