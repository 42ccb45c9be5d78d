from django.apps import AppConfig


class QuotingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.quoting"
    verbose_name = "Quote calculation engine"
