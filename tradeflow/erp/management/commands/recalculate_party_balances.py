from django.core.management.base import BaseCommand

from erp.models import Customer, Vendor
from erp.services.balance_service import resync_party_balances


class Command(BaseCommand):
    help = 'Recomputes every customer and vendor outstanding balance from its orders'

    def add_arguments(self, parser):
        parser.add_argument("--batch-size", type=int, default=500)

    def handle(self, *args, **options):
        batch_size = options["batch_size"]
        total_drifted = 0

        for party_model in (Customer, Vendor):
            label = party_model._meta.verbose_name_plural
            self.stdout.write(f"Recalculating {label}...")
            examined, drifted = resync_party_balances(party_model, batch_size=batch_size)
            total_drifted += drifted
            self.stdout.write(f"Checked {examined} {label}, corrected {drifted}")

        if total_drifted:
            self.stdout.write(self.style.WARNING(f'Corrected {total_drifted} drifted balance(s).'))
        self.stdout.write(self.style.SUCCESS('Successfully recalculated party balances.'))
