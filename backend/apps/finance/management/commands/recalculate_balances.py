from django.core.management.base import BaseCommand, CommandError

from apps.companies.models import Company
from apps.finance.services.balance_service import BalanceService
from shared.formatting import format_brl


class Command(BaseCommand):
    help = "Recompute the stored current balance of companies from their paid transactions"

    def add_arguments(self, parser):
        parser.add_argument("--company", type=int, help="Company id (default: all companies)")

    def handle(self, *args, **options):
        companies = Company.objects.all().order_by("pk")
        if options.get("company"):
            companies = companies.filter(pk=options["company"])
            if not companies.exists():
                raise CommandError(f"Company {options['company']} not found")
        count = 0
        for company in companies:
            stats = BalanceService.recalculate_company_balance(company)
            self.stdout.write(f"{company.name}: {format_brl(stats.current_balance)}")
            count += 1
        self.stdout.write(self.style.SUCCESS(f"Balances recalculated for {count} company(ies)."))
