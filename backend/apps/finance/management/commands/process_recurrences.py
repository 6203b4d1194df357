from datetime import date

from django.core.management.base import BaseCommand, CommandError

from apps.companies.models import Company
from apps.finance.services.recurrence_service import RecurrenceService


class Command(BaseCommand):
    help = "Generate the transactions of recurring templates that are due"

    def add_arguments(self, parser):
        parser.add_argument("--company", type=int, help="Company id (default: all companies)")
        parser.add_argument("--date", help="Reference date YYYY-MM-DD (default: today)")

    def handle(self, *args, **options):
        company = None
        if options.get("company"):
            company = Company.objects.filter(pk=options["company"]).first()
            if company is None:
                raise CommandError(f"Company {options['company']} not found")
        today = None
        if options.get("date"):
            try:
                today = date.fromisoformat(options["date"])
            except ValueError as exc:
                raise CommandError(f"Invalid date: {options['date']}") from exc

        result = RecurrenceService.process_due_templates(company=company, today=today)
        if result.failed:
            self.stdout.write(self.style.WARNING(f"{result.failed} template(s) failed; see logs."))
        self.stdout.write(
            self.style.SUCCESS(
                f"Generated {result.generated} transaction(s), deactivated {result.deactivated} template(s), "
                f"skipped {result.skipped}."
            )
        )
