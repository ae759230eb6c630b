from django.core.management.base import BaseCommand
from django.utils import timezone

from care.models import RecordRequest
from care.services.record_requests import expired_approvals


class Command(BaseCommand):
    help = "Report approved record requests whose access window has passed; --purge turns them into denials."

    def add_arguments(self, parser):
        parser.add_argument("--purge", action="store_true", help="mark expired approvals as denied")

    def handle(self, *args, **options):
        now = timezone.now()
        expired = expired_approvals(now)
        count = expired.count()
        if options["purge"] and count:
            expired.update(status=RecordRequest.STATUS_DENIED, denied_reason="access expired", updated_at=now)
            self.stdout.write(self.style.SUCCESS(f"Closed {count} expired approvals at {now:%Y-%m-%d %H:%M}"))
        else:
            self.stdout.write(f"{count} expired approvals")
