from django.core.management.base import BaseCommand

from apps.membership.services import MembershipService


class Command(BaseCommand):
    help = 'Seed membership tiers from the MEMBERSHIP_TIERS setting'

    def handle(self, *args, **options):
        created_count, updated_count = MembershipService.create_membership_tiers()
        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully set up membership tiers: {created_count} created, {updated_count} updated'
            )
        )
