from django.core.management.base import BaseCommand
from rides.services.offer_timeout import process_offer_timeouts


class Command(BaseCommand):
    help = "Expire price offers whose deadline has passed and reopen rides left without offers."

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=500,
            help="Maximum number of overdue offers processed in one run (default: 500).",
        )

    def handle(self, *args, **options):
        overdue_count, expired_count = process_offer_timeouts(limit=options["limit"])

        self.stdout.write(
            self.style.SUCCESS(
                f"Found {overdue_count} overdue offer(s); expired {expired_count}."
            )
        )
