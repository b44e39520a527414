from django.apps import AppConfig


class SafetyConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'safety'
    verbose_name = 'Emergency contacts and SOS alerts'
