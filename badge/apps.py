from django.apps import AppConfig


class BadgeConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'badge'
    verbose_name = "Cart badge"

    def ready(self):
        # Register system checks and the settings-reset receiver
        from . import checks  # noqa: F401
        from . import conf  # noqa: F401
