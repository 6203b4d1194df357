from django.core.management.base import BaseCommand, CommandError

from apps.budgeting.services import UsageService
from apps.companies.models import Company


class Command(BaseCommand):
    help = "Rebuild monthly cost center usage from transactions"

    def add_arguments(self, parser):
        parser.add_argument("--company", type=int, help="Company id (default: all active companies)")

    def handle(self, *args, **options):
        companies = Company.objects.filter(is_active=True)
        if options.get("company"):
            companies = companies.filter(pk=options["company"])
            if not companies.exists():
                raise CommandError(f"Company {options['company']} not found")
        total = 0
        for company in companies:
            count = UsageService.recalculate_all(company)
            total += count
            self.stdout.write(f"{company.name}: {count} transactions")
        self.stdout.write(self.style.SUCCESS(f"Usage rebuilt from {total} transactions."))
