from django.core.management.base import BaseCommand

from apps.referrals.services import ReferralService


class Command(BaseCommand):
    help = 'Seed referral commission rules from the COMMISSION_RULES setting'

    def handle(self, *args, **options):
        created_count, updated_count = ReferralService.initialize_commission_rules()
        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully set up commission rules: {created_count} created, {updated_count} updated'
            )
        )
