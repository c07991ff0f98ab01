"""
Management command to check open-period balances against purchases.

Every BalanceEntry should equal what the household's unsettled purchases
add up to. This recomputes them and reports any member whose stored
totals differ. Read-only.

Usage:
    python manage.py audit_balances
    python manage.py audit_balances --household <uuid>
"""

from django.core.management.base import BaseCommand, CommandError

from apps.households.models import Household
from apps.ledger.services import find_drift


class Command(BaseCommand):
    help = 'Recompute open-period balances from unsettled purchases and report drift'

    def add_arguments(self, parser):
        parser.add_argument(
            '--household',
            help='Only audit this household (UUID)',
        )

    def handle(self, *args, **options):
        households = Household.objects.all().order_by('created_at')
        if options['household']:
            households = households.filter(id=options['household'])
            if not households.exists():
                raise CommandError(f"Household {options['household']} not found")

        drifted = 0
        for household in households:
            drift = find_drift(household_id=household.id)
            if not drift:
                self.stdout.write(f'  {household.name}: ok')
                continue

            drifted += 1
            self.stdout.write(self.style.WARNING(f'  {household.name}: {len(drift)} member(s) drifted'))
            for row in drift:
                self.stdout.write(
                    f"    - member {row['member_id']}: stored {row['stored']} "
                    f"!= recomputed {row['recomputed']}"
                )

        if drifted:
            raise CommandError(f'{drifted} household(s) have balance drift', returncode=1)

        self.stdout.write(self.style.SUCCESS('All balances match their purchases.'))
