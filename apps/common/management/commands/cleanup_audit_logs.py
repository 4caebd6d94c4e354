from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.common.services import AuditService


class Command(BaseCommand):
    help = 'Delete audit log entries older than the retention period'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=settings.AUDIT_RETENTION_DAYS,
            help='Retention period in days (default: AUDIT_RETENTION_DAYS)'
        )

    def handle(self, *args, **options):
        days = options['days']
        if days < 1:
            raise CommandError('Retention period must be at least one day')

        deleted = AuditService.cleanup_old_logs(retention_days=days)
        self.stdout.write(
            self.style.SUCCESS(f'Deleted {deleted} audit log entries older than {days} days')
        )
