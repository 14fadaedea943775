from django.core.management.base import BaseCommand
from inventory.services import sync_with_lots


class Command(BaseCommand):
    help = "Recompute available stock from active lots and repair any drift."

    def add_arguments(self, parser):
        parser.add_argument("--product", type=int, default=None, help="Only reconcile this product id")
        parser.add_argument("--warehouse", type=int, default=None, help="Only reconcile this warehouse id")

    def handle(self, *args, **options):
        report = sync_with_lots(product=options["product"], warehouse=options["warehouse"])
        for c in report.corrections:
            self.stdout.write(
                f"product={c['product_id']} warehouse={c['warehouse_id']}: {c['previous']} -> {c['corrected']}"
            )
        self.stdout.write(self.style.SUCCESS(f"Records checked: {report.checked}, corrected: {report.corrected}"))
