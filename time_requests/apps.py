from django.apps import AppConfig


class TimeRequestsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "time_requests"
    verbose_name = "Time requests"
