from django.core.management.base import BaseCommand

from apps.membership.services import MembershipService


class Command(BaseCommand):
    help = 'Send expiry notices for memberships expiring in the configured lookahead bands'

    def handle(self, *args, **options):
        summary = MembershipService.check_expiring_memberships()

        for days, count in summary['notified'].items():
            self.stdout.write(f'{days}-day notices sent: {count}')

        if summary['skipped']:
            self.stdout.write(self.style.WARNING(f"Already notified today: {summary['skipped']}"))
        if summary['failed']:
            self.stdout.write(self.style.ERROR(f"Failed notices: {summary['failed']}"))

        self.stdout.write(self.style.SUCCESS('Expiring membership check complete'))
