from django.apps import AppConfig
from django.core.signals import setting_changed


class ReferralsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.referrals'
    verbose_name = 'Referrals'

    def ready(self):
        from .commissions import reload_commission_rules
        setting_changed.connect(reload_commission_rules)
