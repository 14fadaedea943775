from django.core.management.base import BaseCommand
from quotations.services import expire_overdue


class Command(BaseCommand):
    help = "Expire draft and sent quotations whose validity date has passed"

    def handle(self, *args, **options):
        count = expire_overdue()
        self.stdout.write(self.style.SUCCESS(f"Expired {count} quotations."))
