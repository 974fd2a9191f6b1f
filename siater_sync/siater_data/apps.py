from django.apps import AppConfig


class SiaterDataConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "siater_data"
    verbose_name = "Siater feed sync"
