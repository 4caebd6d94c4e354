from django.core.management.base import BaseCommand

from apps.common.services import AuditService


class Command(BaseCommand):
    help = 'Report suspicious activity found in the last day of audit logs'

    def handle(self, *args, **options):
        findings = AuditService.detect_suspicious_activity()

        for ip in findings['multiple_failed_logins']:
            self.stdout.write(
                self.style.WARNING(f"{ip['count']} failed logins from {ip['ip_address']}")
            )
        for user in findings['unusual_data_access']:
            self.stdout.write(
                self.style.WARNING(f"{user['count']} data access events by user {user['user_id']}")
            )
        for user in findings['off_hours_activity']:
            self.stdout.write(
                self.style.WARNING(f"{user['count']} off-hours events by user {user['user_id']}")
            )

        total = sum(len(items) for items in findings.values())
        if total:
            self.stdout.write(self.style.ERROR(f'Suspicious activity findings: {total}'))
        else:
            self.stdout.write(self.style.SUCCESS('No suspicious activity detected'))
