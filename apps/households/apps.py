from django.apps import AppConfig


class HouseholdsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.households'
    label = 'households'
    verbose_name = 'Households'
