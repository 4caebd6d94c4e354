from django.apps import AppConfig
from django.core.signals import setting_changed


class MembershipConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.membership'
    verbose_name = 'Membership'

    def ready(self):
        from .tiers import reload_tier_table
        setting_changed.connect(reload_tier_table)
